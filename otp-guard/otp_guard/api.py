"""
OTP HTTP Router
===============
FastAPI endpoints exposing OTP generation, verification and administration.
"""

from datetime import datetime, timedelta
from typing import Dict, Optional

from fastapi import APIRouter, Query
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
import structlog

from .errors import UserErrors
from .otp.exceptions import ConfigurationError
from .otp.models import CharacterSet, GenerateOutcome, OTPChannel, OTPPurpose
from .otp.service import OTPService

logger = structlog.get_logger(__name__)


class GenerateRequest(BaseModel):
    identifier: str = Field(..., min_length=1)
    channel: OTPChannel
    purpose: OTPPurpose
    display_name: Optional[str] = None


class VerifyRequest(BaseModel):
    record_id: str = Field(..., min_length=1)
    code: str = Field(..., min_length=1)
    identifier: Optional[str] = None


class VerifyByIdentifierRequest(BaseModel):
    identifier: str = Field(..., min_length=1)
    code: str = Field(..., min_length=1)
    purpose: OTPPurpose


class PolicyUpdate(BaseModel):
    code_length: Optional[int] = Field(None, ge=1, le=64)
    expiry_seconds: Optional[int] = Field(None, gt=0)
    max_attempts: Optional[int] = Field(None, ge=1)
    resend_cooldown_seconds: Optional[int] = Field(None, ge=0)
    charset: Optional[CharacterSet] = None


class PolicyResponse(BaseModel):
    purpose: OTPPurpose
    code_length: int
    expiry_seconds: int
    max_attempts: int
    resend_cooldown_seconds: int
    charset: CharacterSet


class StatusResponse(BaseModel):
    exists: bool
    is_valid: Optional[bool] = None
    is_used: Optional[bool] = None
    attempts_remaining: Optional[int] = None
    expires_at: Optional[datetime] = None
    purpose: Optional[OTPPurpose] = None


class ResendResponse(BaseModel):
    can_resend: bool
    cooldown_until: Optional[datetime] = None
    time_remaining: Optional[str] = None


class StatisticsResponse(BaseModel):
    active: int
    used: int
    expired: int
    active_cooldowns: int
    by_purpose: Dict[str, int]
    by_channel: Dict[str, int]


_GENERATE_STATUS = {
    GenerateOutcome.SENT: 200,
    GenerateOutcome.THROTTLED: 429,
    GenerateOutcome.DELIVERY_FAILED: 502,
}


def _policy_response(purpose: OTPPurpose, policy) -> PolicyResponse:
    return PolicyResponse(purpose=purpose, **policy.to_dict())


def create_otp_router(service: OTPService, prefix: str = "/otp") -> APIRouter:
    """
    Create the OTP router.

    Args:
        service: OTPService instance the endpoints delegate to
        prefix: URL prefix

    Returns:
        FastAPI router
    """
    router = APIRouter(prefix=prefix, tags=["OTP"])

    @router.post("/generate")
    async def generate(body: GenerateRequest):
        """Issue a code and hand it to the delivery channel."""
        result = await service.generate(
            body.identifier, body.channel, body.purpose, body.display_name,
        )

        if result.outcome == GenerateOutcome.CONFIGURATION_ERROR:
            raise UserErrors.config_error(
                f"No OTP policy for purpose {body.purpose.value}"
            )

        headers = None
        if result.outcome == GenerateOutcome.THROTTLED and result.retry_after is not None:
            headers = {"Retry-After": str(result.retry_after)}

        return JSONResponse(
            status_code=_GENERATE_STATUS[result.outcome],
            content=jsonable_encoder(result.to_dict()),
            headers=headers,
        )

    @router.post("/verify")
    async def verify(body: VerifyRequest):
        """Verify a code by record id."""
        result = await service.verify(body.record_id, body.code, body.identifier)
        return JSONResponse(
            status_code=200 if result.success else 400,
            content=jsonable_encoder(result.to_dict()),
        )

    @router.post("/verify-by-identifier")
    async def verify_by_identifier(body: VerifyByIdentifierRequest):
        """Verify a code against the active record for an identifier."""
        result = await service.verify_by_identifier(body.identifier, body.code, body.purpose)
        return JSONResponse(
            status_code=200 if result.success else 400,
            content=jsonable_encoder(result.to_dict()),
        )

    @router.get("/resend-status", response_model=ResendResponse)
    async def resend_status(identifier: str = Query(..., min_length=1), purpose: OTPPurpose = Query(...)):
        status = await service.can_resend(identifier, purpose)
        return ResendResponse(**vars(status))

    @router.get("/admin/statistics", response_model=StatisticsResponse)
    async def statistics():
        stats = await service.get_statistics()
        return StatisticsResponse(**vars(stats))

    @router.get("/admin/config/{purpose}", response_model=PolicyResponse)
    async def get_config(purpose: OTPPurpose):
        policy = service.get_config(purpose)
        if policy is None:
            raise UserErrors.not_found("OTP policy")
        return _policy_response(purpose, policy)

    @router.patch("/admin/config/{purpose}", response_model=PolicyResponse)
    async def update_config(purpose: OTPPurpose, body: PolicyUpdate):
        changes = body.model_dump(exclude_none=True)
        partial = {}
        if "expiry_seconds" in changes:
            partial["expiry"] = timedelta(seconds=changes.pop("expiry_seconds"))
        if "resend_cooldown_seconds" in changes:
            partial["resend_cooldown"] = timedelta(seconds=changes.pop("resend_cooldown_seconds"))
        partial.update(changes)

        if service.get_config(purpose) is None:
            raise UserErrors.not_found("OTP policy")
        try:
            policy = service.set_config(purpose, **partial)
        except ConfigurationError as e:
            raise UserErrors.invalid_request(str(e))
        return _policy_response(purpose, policy)

    @router.get("/{record_id}/status", response_model=StatusResponse)
    async def status(record_id: str):
        otp_status = await service.get_status(record_id)
        return StatusResponse(**vars(otp_status))

    @router.delete("/{record_id}")
    async def invalidate(record_id: str):
        return {"invalidated": await service.invalidate(record_id)}

    return router
