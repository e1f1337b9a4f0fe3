"""
OTP Service
===========
Issues codes, verifies them and exposes administrative introspection.
"""

import math
from collections import Counter
from typing import Any, Optional, TYPE_CHECKING
import structlog

from .codes import generate_code, new_record_id
from .exceptions import ConfigurationError
from .masking import format_time_remaining, mask_identifier
from .models import (
    GenerateOutcome,
    GenerateResult,
    OTPChannel,
    OTPMessage,
    OTPPolicy,
    OTPPurpose,
    OTPRecord,
    OTPStatistics,
    OTPStatus,
    ResendStatus,
    VerifyOutcome,
    VerifyResult,
    utcnow,
)
from .policy import PolicyTable
from .store import InMemoryOTPStore, OTPStore
from .verifier import MESSAGES, evaluate

if TYPE_CHECKING:
    from ..delivery.base import DeliveryChannel

logger = structlog.get_logger(__name__)


class OTPService:
    """
    OTP issuance and verification.

    Example:
        service = OTPService(delivery=ChannelRouter({...}))
        result = await service.generate("a@b.com", OTPChannel.EMAIL,
                                        OTPPurpose.EMAIL_VERIFICATION)
        ...
        outcome = await service.verify(result.record_id, "123456")
    """

    def __init__(
        self,
        store: Optional[OTPStore] = None,
        policies: Optional[PolicyTable] = None,
        delivery: Optional["DeliveryChannel"] = None,
        clock=utcnow,
    ):
        self.store = store or InMemoryOTPStore()
        self.policies = policies or PolicyTable()
        if delivery is None:
            from ..delivery.base import LoggingDeliveryChannel
            delivery = LoggingDeliveryChannel()
        self.delivery = delivery
        self._clock = clock

    def now(self):
        return self._clock()

    # -- generation ---------------------------------------------------------

    def _throttled(self, cooldown_until) -> GenerateResult:
        now = self.now()
        return GenerateResult(
            outcome=GenerateOutcome.THROTTLED,
            message=(
                "Please wait before requesting another OTP. "
                f"You can resend after {format_time_remaining(cooldown_until, now)}"
            ),
            cooldown_until=cooldown_until,
            retry_after=max(0, math.ceil((cooldown_until - now).total_seconds())),
        )

    async def generate(
        self,
        identifier: str,
        channel: OTPChannel,
        purpose: OTPPurpose,
        display_name: Optional[str] = None,
    ) -> GenerateResult:
        """
        Issue a new code for *identifier* and hand it to the delivery channel.

        Args:
            identifier: Email address or phone number
            channel: Delivery channel
            purpose: Business reason; selects the policy
            display_name: Optional name used to personalise the message

        Returns:
            GenerateResult (sent, throttled, configuration error or
            delivery failure)
        """
        channel = OTPChannel(channel)
        purpose = OTPPurpose(purpose)
        masked = mask_identifier(identifier)

        cooldown_until = await self.store.get_cooldown(identifier, purpose)
        if cooldown_until is not None and cooldown_until > self.now():
            logger.info("OTP request throttled", recipient=masked, purpose=purpose.value)
            return self._throttled(cooldown_until)

        try:
            policy = self.policies.require(purpose)
        except ConfigurationError as e:
            # A previous code for the pair is discarded even though nothing
            # new is issued. On the normal path issue() does this atomically.
            await self.store.invalidate_active(identifier, purpose)
            logger.error("OTP policy missing", purpose=purpose.value, error=str(e))
            return GenerateResult(
                outcome=GenerateOutcome.CONFIGURATION_ERROR,
                message="Invalid OTP purpose configuration",
            )

        now = self.now()
        record = OTPRecord(
            record_id=new_record_id(),
            identifier=identifier,
            code=generate_code(policy.code_length, policy.charset),
            channel=channel,
            purpose=purpose,
            max_attempts=policy.max_attempts,
            created_at=now,
            expires_at=now + policy.expiry,
        )
        new_cooldown = now + policy.resend_cooldown

        raced_cooldown = await self.store.issue(record, new_cooldown, now)
        if raced_cooldown is not None:
            logger.info("OTP request throttled", recipient=masked, purpose=purpose.value)
            return self._throttled(raced_cooldown)

        message = OTPMessage(
            identifier=identifier,
            code=record.code,
            channel=channel,
            purpose=purpose,
            expiry_minutes=policy.expiry_minutes,
            display_name=display_name,
        )

        try:
            await self.delivery.deliver(message)
        except Exception as e:
            # Cooldown stays in place; it guards against request floods.
            await self.store.delete(record.record_id)
            logger.warning(
                "OTP delivery failed",
                record_id=record.record_id,
                recipient=masked,
                channel=channel.value,
                error=str(e),
            )
            return GenerateResult(
                outcome=GenerateOutcome.DELIVERY_FAILED,
                message="Failed to send OTP. Please try again.",
            )
        except BaseException:
            # Cancelled mid-send; roll back before propagating.
            await self.store.delete(record.record_id)
            logger.warning("OTP delivery interrupted", record_id=record.record_id)
            raise

        logger.info(
            "OTP issued",
            record_id=record.record_id,
            recipient=masked,
            channel=channel.value,
            purpose=purpose.value,
            expires_at=record.expires_at.isoformat(),
        )
        return GenerateResult(
            outcome=GenerateOutcome.SENT,
            message=f"OTP sent successfully to {masked}",
            record_id=record.record_id,
            expires_at=record.expires_at,
            cooldown_until=new_cooldown,
        )

    # -- verification -------------------------------------------------------

    async def verify(
        self,
        record_id: str,
        code: str,
        identifier: Optional[str] = None,
    ) -> VerifyResult:
        """
        Verify *code* against the record.

        Args:
            record_id: Id returned by generate
            code: Candidate code (case-insensitive)
            identifier: Optional cross-check against the record

        Returns:
            VerifyResult
        """
        now = self.now()
        result = await self.store.transact(
            record_id,
            lambda record: evaluate(record, code, now, identifier),
        )

        log = logger.info if result.success else logger.warning
        log(
            "OTP verification",
            record_id=record_id,
            outcome=result.outcome.value,
            attempts_remaining=result.attempts_remaining,
        )
        return result

    async def verify_by_identifier(
        self,
        identifier: str,
        code: str,
        purpose: OTPPurpose,
    ) -> VerifyResult:
        """Verify against the single active record for (identifier, purpose)."""
        purpose = OTPPurpose(purpose)
        record = await self.store.find_active(identifier, purpose, self.now())
        if record is None:
            logger.info(
                "No active OTP for identifier",
                recipient=mask_identifier(identifier),
                purpose=purpose.value,
            )
            return VerifyResult(
                outcome=VerifyOutcome.NOT_FOUND,
                message=MESSAGES[VerifyOutcome.NOT_FOUND],
            )

        result = await self.verify(record.record_id, code, identifier)
        if result.success:
            result.record_id = record.record_id
        return result

    # -- introspection ------------------------------------------------------

    async def get_status(self, record_id: str) -> OTPStatus:
        record = await self.store.get(record_id)
        if record is None:
            return OTPStatus(exists=False)

        return OTPStatus(
            exists=True,
            is_valid=record.is_active(self.now()),
            is_used=record.is_used,
            attempts_remaining=record.attempts_remaining,
            expires_at=record.expires_at,
            purpose=record.purpose,
        )

    async def can_resend(self, identifier: str, purpose: OTPPurpose) -> ResendStatus:
        now = self.now()
        cooldown_until = await self.store.get_cooldown(identifier, OTPPurpose(purpose))
        if cooldown_until is None or cooldown_until <= now:
            return ResendStatus(can_resend=True)

        return ResendStatus(
            can_resend=False,
            cooldown_until=cooldown_until,
            time_remaining=format_time_remaining(cooldown_until, now),
        )

    async def invalidate(self, record_id: str) -> bool:
        """Delete a record on the caller's request."""
        removed = await self.store.delete(record_id)
        if removed:
            logger.info("OTP invalidated", record_id=record_id)
        return removed

    async def get_statistics(self) -> OTPStatistics:
        now = self.now()
        stats = OTPStatistics(active_cooldowns=await self.store.count_cooldowns(now))
        by_purpose: Counter = Counter()
        by_channel: Counter = Counter()

        for record in await self.store.list_records():
            if record.is_used:
                stats.used += 1
            elif record.is_expired(now):
                stats.expired += 1
            else:
                stats.active += 1
            by_purpose[record.purpose.value] += 1
            by_channel[record.channel.value] += 1

        stats.by_purpose = dict(by_purpose)
        stats.by_channel = dict(by_channel)
        return stats

    # -- administration -----------------------------------------------------

    def get_config(self, purpose: OTPPurpose) -> Optional[OTPPolicy]:
        return self.policies.get_config(purpose)

    def set_config(self, purpose: OTPPurpose, **partial: Any) -> OTPPolicy:
        return self.policies.set_config(purpose, **partial)

    async def clear_all(self) -> None:
        await self.store.clear()
        logger.warning("OTP store cleared")
