"""
OTP Guard Application
=====================
Standalone FastAPI app: OTP router, health router and janitor lifecycle.
"""

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
import structlog

from . import __version__
from .api import create_otp_router
from .config import OTPGuardConfig, build_service
from .health import create_health_router
from .logging import setup_logging
from .otp.janitor import OTPJanitor
from .otp.service import OTPService

logger = structlog.get_logger(__name__)


def create_app(
    config: Optional[OTPGuardConfig] = None,
    service: Optional[OTPService] = None,
    configure_logging: bool = True,
) -> FastAPI:
    """
    Build the OTP Guard application.

    The janitor and delivery channels are started on startup and stopped
    on shutdown.
    """
    config = config or OTPGuardConfig()
    if configure_logging:
        setup_logging(config.service_name, config.log_level, config.log_json)

    service = service or build_service(config)
    janitor = OTPJanitor(service.store, interval=config.janitor_interval, clock=service.now)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Starting OTP service", service=config.service_name, store=service.store.name)
        await service.delivery.initialize()
        janitor.start()
        yield
        logger.info("Shutting down OTP service", service=config.service_name)
        await janitor.stop()
        await service.delivery.close()
        await service.store.close()

    app = FastAPI(title=config.service_name, version=__version__, lifespan=lifespan)
    app.state.otp_service = service
    app.state.otp_janitor = janitor

    app.include_router(create_otp_router(service))
    app.include_router(
        create_health_router(config.service_name, service.store, __version__, janitor)
    )
    return app
