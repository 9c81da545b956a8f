"""
OTP Verification Service

Gates checkout behind proof of access to an email address or mobile number.

Flow per identifier:
    Unverified --send--> OTP-Sent --verify(match)--> Verified
    OTP-Sent --expiry / failed verify / new send--> Unverified

Pending codes live in a process-local map owned by ``OTPService``:
    - the code is stored *before* delivery, so it stays valid even when the
      provider rejects the send
    - a new send for the same identifier overwrites the pending code
    - every verify attempt consumes the entry, matched or not
    - expiry is checked lazily at verify time; ``purge_expired`` drops
      stale entries on demand
    - the map is bounded; the oldest pending code is evicted past
      ``max_entries``

The clock is injectable so expiry is testable without sleeping.
"""

import logging
import secrets
from collections import OrderedDict
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from functools import lru_cache
from typing import Callable, Optional

from tableorder.core.config import get_settings
from tableorder.core.exceptions import DeliveryError, OTPExpiredError, OTPNotFoundError
from tableorder.services.notifications import BaseNotificationService, get_notification_service

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utc_clock() -> datetime:
    return datetime.now(timezone.utc)


class OTPChannel(str, Enum):
    EMAIL = "email"
    MOBILE = "mobile"


@dataclass(frozen=True)
class OTPChallenge:
    code: str
    expires_at: datetime

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at < now


def generate_code(length: int) -> str:
    """Random numeric code with exactly ``length`` digits (no leading zero)."""
    low = 10 ** (length - 1)
    return str(low + secrets.randbelow(9 * low))


class OTPService:
    """Issues, stores and checks one-time codes for both channels."""

    def __init__(
        self,
        notifier: BaseNotificationService,
        ttl_seconds: int = 300,
        code_lengths: Optional[dict[OTPChannel, int]] = None,
        max_entries: int = 10_000,
        clock: Clock = utc_clock,
    ):
        self.notifier = notifier
        self.ttl = timedelta(seconds=ttl_seconds)
        self.code_lengths = code_lengths or {OTPChannel.EMAIL: 6, OTPChannel.MOBILE: 6}
        self.max_entries = max_entries
        self.clock = clock
        self._pending: "OrderedDict[tuple[OTPChannel, str], OTPChallenge]" = OrderedDict()

    def __len__(self) -> int:
        return len(self._pending)

    @property
    def ttl_minutes(self) -> int:
        return max(1, int(self.ttl.total_seconds() // 60))

    def _store(self, key: tuple[OTPChannel, str], challenge: OTPChallenge) -> None:
        self._pending.pop(key, None)
        self._pending[key] = challenge
        while len(self._pending) > self.max_entries:
            evicted, _ = self._pending.popitem(last=False)
            logger.warning(f"OTP store full, evicted pending code for {evicted[1]}")

    def issue(self, channel: OTPChannel, identifier: str) -> OTPChallenge:
        """Create and store a fresh code without delivering it."""
        challenge = OTPChallenge(
            code=generate_code(self.code_lengths[channel]),
            expires_at=self.clock() + self.ttl,
        )
        self._store((channel, identifier), challenge)
        return challenge

    async def send(self, channel: OTPChannel, identifier: str) -> OTPChallenge:
        """
        Issue a code for ``identifier`` and deliver it over ``channel``.

        Raises:
            DeliveryError: the provider rejected the message. The stored
                code remains valid until it expires or is verified.
        """
        challenge = self.issue(channel, identifier)
        logger.info(f"Sending {channel.value} OTP to {identifier}")

        if channel == OTPChannel.EMAIL:
            result = await self.notifier.send_otp_email(identifier, challenge.code, self.ttl_minutes)
        else:
            result = await self.notifier.send_otp_sms(identifier, challenge.code, self.ttl_minutes)

        if not result.success:
            logger.error(f"OTP delivery to {identifier} failed: {result.error_message}")
            raise DeliveryError(result.error_message or "Failed to send OTP")

        return challenge

    def verify(self, channel: OTPChannel, identifier: str, code: str) -> bool:
        """
        Check ``code`` against the pending challenge and consume it.

        Returns:
            True on match, False on mismatch (the code is gone either way).

        Raises:
            OTPNotFoundError: nothing pending for the identifier.
            OTPExpiredError: the pending code has expired.
        """
        key = (channel, identifier)
        challenge = self._pending.pop(key, None)

        if challenge is None:
            raise OTPNotFoundError()

        if challenge.is_expired(self.clock()):
            logger.info(f"Expired {channel.value} OTP presented for {identifier}")
            raise OTPExpiredError()

        matched = secrets.compare_digest(challenge.code, code)
        logger.info(f"{channel.value} OTP for {identifier}: {'verified' if matched else 'mismatch'}")
        return matched

    def purge_expired(self) -> int:
        """Drop every expired challenge; returns how many were removed."""
        now = self.clock()
        stale = [key for key, challenge in self._pending.items() if challenge.is_expired(now)]
        for key in stale:
            del self._pending[key]
        if stale:
            logger.debug(f"Purged {len(stale)} expired OTPs")
        return len(stale)


@lru_cache()
def get_otp_service() -> OTPService:
    """Process-wide OTP service."""
    settings = get_settings()
    return OTPService(
        notifier=get_notification_service(),
        ttl_seconds=settings.otp_ttl_seconds,
        code_lengths={
            OTPChannel.EMAIL: settings.email_otp_length,
            OTPChannel.MOBILE: settings.mobile_otp_length,
        },
        max_entries=settings.otp_max_entries,
    )


def reset_otp_service() -> None:
    get_otp_service.cache_clear()
