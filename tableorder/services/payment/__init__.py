"""
Payment Service Factory

Single entry point for obtaining a payment service instance; the rest of
the application stays agnostic about which implementation is active.

Usage:
    from tableorder.services.payment import get_payment_service

    payment_service = get_payment_service()
    result = await payment_service.verify_upi_payment("42")

Environment Switching:
    - ENV_MODE=development → MockPaymentService (no network calls)
    - ENV_MODE=staging / production → GatewayPaymentService
"""

import logging
from functools import lru_cache

from tableorder.core.config import get_settings
from tableorder.services.payment.base import (
    BasePaymentService,
    UPIVerificationResult,
)
from tableorder.services.payment.mock import MockPaymentService
from tableorder.services.payment.gateway import GatewayPaymentService

logger = logging.getLogger(__name__)


@lru_cache()
def get_payment_service() -> BasePaymentService:
    """
    Get the configured payment service instance.

    Raises:
        ValueError: If not in development mode and UPI_GATEWAY_URL is unset
    """
    settings = get_settings()

    if settings.is_development:
        logger.info("Payment Service: Using MockPaymentService (development mode)")
        return MockPaymentService(
            failure_rate=settings.mock_payment_failure_rate,
            min_latency=settings.mock_min_latency,
            max_latency=settings.mock_max_latency,
        )

    logger.info(
        f"Payment Service: Using GatewayPaymentService "
        f"({settings.env_mode.value} mode)"
    )
    return GatewayPaymentService()


def reset_payment_service() -> None:
    """Clear the cached payment service instance."""
    get_payment_service.cache_clear()
    logger.debug("Payment service cache cleared")


__all__ = [
    "get_payment_service",
    "reset_payment_service",
    "BasePaymentService",
    "UPIVerificationResult",
    "MockPaymentService",
    "GatewayPaymentService",
]
