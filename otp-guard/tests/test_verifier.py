"""
Unit Tests for verification rules
=================================
"""

from datetime import datetime, timedelta, timezone

from otp_guard.otp import OTPChannel, OTPPurpose, OTPRecord, VerifyOutcome
from otp_guard.otp.verifier import RecordAction, evaluate

NOW = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)


def make_record(**overrides) -> OTPRecord:
    values = dict(
        record_id="rec-1",
        identifier="user@example.com",
        code="123456",
        channel=OTPChannel.EMAIL,
        purpose=OTPPurpose.EMAIL_VERIFICATION,
        max_attempts=3,
        created_at=NOW,
        expires_at=NOW + timedelta(minutes=10),
    )
    values.update(overrides)
    return OTPRecord(**values)


class TestEvaluate:
    """Tests for the ordered verification rules."""

    def test_missing_record(self):
        result, action = evaluate(None, "123456", NOW)

        assert result.outcome == VerifyOutcome.INVALID_OR_EXPIRED
        assert result.message == "Invalid or expired OTP"
        assert action == RecordAction.KEEP

    def test_success_marks_used(self):
        record = make_record()

        result, action = evaluate(record, "123456", NOW)

        assert result.success
        assert result.purpose == OTPPurpose.EMAIL_VERIFICATION
        assert record.is_used is True
        assert record.verified_at == NOW
        assert record.attempts == 1
        assert action == RecordAction.SAVE

    def test_success_case_insensitive(self):
        record = make_record(code="AB12CD34", purpose=OTPPurpose.PASSWORD_RESET)

        result, _ = evaluate(record, "ab12cd34", NOW)

        assert result.success

    def test_used_record(self):
        record = make_record(is_used=True, attempts=1)

        result, action = evaluate(record, "123456", NOW)

        assert result.outcome == VerifyOutcome.ALREADY_USED
        assert record.attempts == 1
        assert action == RecordAction.KEEP

    def test_used_checked_before_expiry(self):
        record = make_record(is_used=True, expires_at=NOW - timedelta(seconds=1))

        result, _ = evaluate(record, "123456", NOW)

        assert result.outcome == VerifyOutcome.ALREADY_USED

    def test_expired_deletes(self):
        record = make_record(expires_at=NOW - timedelta(milliseconds=1))

        result, action = evaluate(record, "123456", NOW)

        assert result.outcome == VerifyOutcome.EXPIRED
        assert action == RecordAction.DELETE

    def test_valid_at_exact_expiry(self):
        record = make_record(expires_at=NOW)

        result, _ = evaluate(record, "123456", NOW)

        assert result.success

    def test_identifier_mismatch_consumes_no_attempt(self):
        record = make_record()

        result, action = evaluate(record, "123456", NOW, identifier="other@example.com")

        assert result.outcome == VerifyOutcome.INVALID_REQUEST
        assert record.attempts == 0
        assert record.is_used is False
        assert action == RecordAction.KEEP

    def test_identifier_match(self):
        record = make_record()

        result, _ = evaluate(record, "123456", NOW, identifier="user@example.com")

        assert result.success

    def test_mismatch_reports_remaining(self):
        record = make_record()

        result, action = evaluate(record, "000000", NOW)

        assert result.outcome == VerifyOutcome.CODE_MISMATCH
        assert result.attempts_remaining == 2
        assert result.message == "Invalid OTP code. 2 attempts remaining."
        assert record.attempts == 1
        assert action == RecordAction.SAVE

    def test_last_mismatch_reports_zero_remaining(self):
        record = make_record(attempts=2)

        result, _ = evaluate(record, "000000", NOW)

        assert result.outcome == VerifyOutcome.CODE_MISMATCH
        assert result.attempts_remaining == 0

    def test_exhausted_even_with_correct_code(self):
        """Once the budget is spent the correct code no longer helps."""
        record = make_record(attempts=3)

        result, action = evaluate(record, "123456", NOW)

        assert result.outcome == VerifyOutcome.ATTEMPTS_EXHAUSTED
        assert action == RecordAction.DELETE
        assert record.is_used is False

    def test_to_dict(self):
        record = make_record()

        result, _ = evaluate(record, "123456", NOW)

        assert result.to_dict() == {
            "success": True,
            "message": "OTP verified successfully",
            "purpose": "EMAIL_VERIFICATION",
        }
