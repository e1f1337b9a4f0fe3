"""
Tests for configuration, factories and logging setup
"""

import logging

import pytest
import structlog

from otp_guard.config import OTPGuardConfig, build_delivery, build_service, build_store
from otp_guard.delivery import LoggingDeliveryChannel, SMTPEmailChannel, TwilioSMSChannel
from otp_guard.errors import UserErrors
from otp_guard.logging import _add_service_context, request_id_var, setup_logging
from otp_guard.otp import InMemoryOTPStore, OTPChannel, RedisOTPStore


class TestConfig:
    """Tests for environment-driven settings."""

    def test_defaults(self, monkeypatch):
        for name in ("OTP_STORE_BACKEND", "OTP_JANITOR_INTERVAL", "LOG_JSON"):
            monkeypatch.delenv(name, raising=False)

        config = OTPGuardConfig()

        assert config.store_backend == "memory"
        assert config.janitor_interval == 60.0
        assert config.log_json is True

    def test_reads_environment(self, monkeypatch):
        monkeypatch.setenv("OTP_STORE_BACKEND", "redis")
        monkeypatch.setenv("OTP_JANITOR_INTERVAL", "15")
        monkeypatch.setenv("SMTP_PORT", "2525")
        monkeypatch.setenv("LOG_JSON", "off")

        config = OTPGuardConfig()

        assert config.store_backend == "redis"
        assert config.janitor_interval == 15.0
        assert config.smtp_port == 2525
        assert config.log_json is False


class TestFactories:
    """Tests for component construction."""

    def test_build_memory_store(self):
        assert isinstance(build_store(OTPGuardConfig(store_backend="memory")), InMemoryOTPStore)

    def test_build_redis_store(self):
        store = build_store(OTPGuardConfig(store_backend="Redis", redis_prefix="svc"))

        assert isinstance(store, RedisOTPStore)
        assert store.prefix == "svc"

    def test_unknown_backend(self):
        with pytest.raises(ValueError):
            build_store(OTPGuardConfig(store_backend="etcd"))

    def test_delivery_falls_back_to_logging(self):
        router = build_delivery(OTPGuardConfig(twilio_account_sid="", smtp_host=""))

        assert isinstance(router.routes[OTPChannel.EMAIL], LoggingDeliveryChannel)
        assert router.routes[OTPChannel.SMS] is router.routes[OTPChannel.EMAIL]

    def test_delivery_uses_configured_providers(self):
        router = build_delivery(OTPGuardConfig(
            twilio_account_sid="AC123",
            twilio_auth_token="secret",
            smtp_host="smtp.example.com",
        ))

        assert isinstance(router.routes[OTPChannel.SMS], TwilioSMSChannel)
        assert isinstance(router.routes[OTPChannel.EMAIL], SMTPEmailChannel)
        assert router.routes[OTPChannel.EMAIL].settings.host == "smtp.example.com"

    def test_build_service(self):
        service = build_service(OTPGuardConfig(store_backend="memory"))

        assert isinstance(service.store, InMemoryOTPStore)
        assert service.get_config("TWO_FACTOR_AUTH") is not None


class TestUserErrors:
    """Tests for user-facing HTTP errors."""

    def test_config_error_hides_detail(self):
        exc = UserErrors.config_error("no policy for TWO_FACTOR_AUTH")

        assert exc.status_code == 503
        assert exc.detail["code"] == "CONFIG_ERROR"
        assert "TWO_FACTOR_AUTH" not in exc.detail["message"]

    def test_not_found(self):
        exc = UserErrors.not_found("OTP policy")

        assert exc.status_code == 404
        assert exc.detail["message"] == "OTP policy not found"


class TestLogging:
    """Tests for structlog setup."""

    def test_service_context_added(self):
        token = request_id_var.set("req-42")
        try:
            event = _add_service_context(None, "info", {"event": "x"})
        finally:
            request_id_var.reset(token)

        assert event["request_id"] == "req-42"
        assert "service" in event

    def test_setup_logging_json(self, capsys):
        setup_logging("otp-test", level="INFO", json_output=True)
        try:
            structlog.get_logger("otp_guard.test").info("hello", recipient="u**r@example.com")
            out = capsys.readouterr().out
        finally:
            structlog.reset_defaults()
            logging.getLogger().handlers.clear()

        assert '"event": "hello"' in out
        assert '"service": "otp-test"' in out
