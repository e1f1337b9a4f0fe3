"""
OTP Verifier
============
Stateless verification rules applied to a looked-up record.
"""

from datetime import datetime
from enum import Enum
from typing import Optional, Tuple

from .codes import codes_match
from .models import OTPRecord, VerifyOutcome, VerifyResult


class RecordAction(str, Enum):
    """What the store must do with the record after evaluation."""
    KEEP = "keep"
    SAVE = "save"
    DELETE = "delete"


MESSAGES = {
    VerifyOutcome.SUCCESS: "OTP verified successfully",
    VerifyOutcome.INVALID_OR_EXPIRED: "Invalid or expired OTP",
    VerifyOutcome.ALREADY_USED: "OTP has already been used",
    VerifyOutcome.EXPIRED: "OTP has expired",
    VerifyOutcome.INVALID_REQUEST: "Invalid OTP request",
    VerifyOutcome.ATTEMPTS_EXHAUSTED: (
        "Maximum verification attempts exceeded. Please request a new OTP."
    ),
    VerifyOutcome.NOT_FOUND: "No valid OTP found for this request",
}


def evaluate(
    record: Optional[OTPRecord],
    code: str,
    now: datetime,
    identifier: Optional[str] = None,
) -> Tuple[VerifyResult, RecordAction]:
    """
    Apply the verification rules to *record*.

    The record is mutated in place (attempt counter, terminal flags); the
    returned action tells the caller how to persist it. Must run inside
    the store's atomic section so the attempt increment and the budget
    check cannot interleave with another verification.

    Args:
        record: Record looked up by id, or None
        code: Candidate code
        now: Evaluation time
        identifier: Optional cross-check against the record's identifier

    Returns:
        Tuple of (result, action)
    """
    if record is None:
        return _result(VerifyOutcome.INVALID_OR_EXPIRED), RecordAction.KEEP

    if record.is_used:
        return _result(VerifyOutcome.ALREADY_USED), RecordAction.KEEP

    if record.is_expired(now):
        return _result(VerifyOutcome.EXPIRED), RecordAction.DELETE

    if identifier and identifier != record.identifier:
        return _result(VerifyOutcome.INVALID_REQUEST), RecordAction.KEEP

    record.attempts += 1

    if record.attempts > record.max_attempts:
        return _result(VerifyOutcome.ATTEMPTS_EXHAUSTED), RecordAction.DELETE

    if codes_match(code, record.code):
        record.is_used = True
        record.verified_at = now
        return (
            _result(VerifyOutcome.SUCCESS, purpose=record.purpose),
            RecordAction.SAVE,
        )

    remaining = record.max_attempts - record.attempts
    return (
        VerifyResult(
            outcome=VerifyOutcome.CODE_MISMATCH,
            message=f"Invalid OTP code. {remaining} attempts remaining.",
            attempts_remaining=remaining,
        ),
        RecordAction.SAVE,
    )


def _result(outcome: VerifyOutcome, **kwargs) -> VerifyResult:
    return VerifyResult(outcome=outcome, message=MESSAGES[outcome], **kwargs)
