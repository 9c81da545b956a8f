"""
Mock Payment Service Implementation

Simulates UPI payment verification without contacting a gateway.
Used in development mode (ENV_MODE=development).

Behavior:
    - Simulates provider latency
    - Fails a configurable share of verifications with realistic reasons
    - Generates TXN_/REF_ style references
"""

import asyncio
import random
import time
import logging
from typing import Optional

from tableorder.services.payment.base import (
    BasePaymentService,
    UPIVerificationResult,
)

logger = logging.getLogger(__name__)


class MockPaymentService(BasePaymentService):
    """
    Mock implementation of the payment service.

    Example:
        >>> service = MockPaymentService(failure_rate=0.0)
        >>> result = await service.verify_upi_payment("42")
        >>> result.status
        'success'
    """

    DECLINE_REASONS = [
        ("U30", "Debit has failed at the remitter bank."),
        ("U16", "Risk threshold exceeded."),
        ("ZM", "Invalid UPI PIN entered."),
        ("XH", "Payer account does not exist."),
    ]

    def __init__(
        self,
        failure_rate: float = 0.0,
        min_latency: float = 0.2,
        max_latency: float = 0.8,
    ):
        self.failure_rate = failure_rate
        self.min_latency = min_latency
        self.max_latency = max_latency

        logger.info(
            f"MockPaymentService initialized "
            f"(failure_rate={failure_rate:.0%}, "
            f"latency={min_latency}-{max_latency}s)"
        )

    @property
    def provider_name(self) -> str:
        return "mock"

    async def _simulate_latency(self) -> float:
        """Sleep for a random latency; returns it in milliseconds."""
        latency = random.uniform(self.min_latency, self.max_latency) if self.max_latency > 0 else 0.0
        await asyncio.sleep(latency)
        return latency * 1000

    def _should_fail(self) -> bool:
        return random.random() < self.failure_rate

    async def verify_upi_payment(
        self,
        order_id: str,
        transaction_id: Optional[str] = None,
    ) -> UPIVerificationResult:
        latency_ms = await self._simulate_latency()
        stamp = int(time.time() * 1000)

        if self._should_fail():
            code, reason = random.choice(self.DECLINE_REASONS)
            logger.debug(f"Mock: UPI payment for order {order_id} declined - {code}")
            return UPIVerificationResult(
                success=False,
                transaction_id=transaction_id,
                response_code=code,
                error_message=reason,
                response_time_ms=latency_ms,
            )

        result = UPIVerificationResult(
            success=True,
            transaction_id=transaction_id or f"TXN_{stamp}",
            response_code="00",
            approval_ref_no=f"REF_{stamp}",
            response_time_ms=latency_ms,
        )
        logger.info(f"Mock: UPI payment for order {order_id} confirmed - {result.transaction_id}")
        return result

    async def health_check(self) -> bool:
        return True
