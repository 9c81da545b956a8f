"""
UPI Gateway Payment Service Implementation

Production implementation that asks the configured UPI gateway for the
status of a collect/intent transaction.
Used when ENV_MODE=production or ENV_MODE=staging.

Requirements:
    - UPI_GATEWAY_URL must be set in environment
    - UPI_GATEWAY_API_KEY is sent as a bearer token when present

Gateway contract:
    POST {UPI_GATEWAY_URL}/transactions/verify
        {"orderId": "...", "transactionId": "..."}
    -> {"status": "success"|"failure", "transactionId": "...",
        "responseCode": "00", "approvalRefNo": "...", "message": "..."}
"""

import logging
import time
from typing import Optional

import httpx

from tableorder.core.config import get_settings
from tableorder.services.payment.base import (
    BasePaymentService,
    UPIVerificationResult,
)

logger = logging.getLogger(__name__)


class GatewayPaymentService(BasePaymentService):
    """
    UPI verification over HTTP.

    Example:
        >>> service = GatewayPaymentService()
        >>> result = await service.verify_upi_payment("42", "T2310181234")
    """

    def __init__(self, transport: Optional[httpx.AsyncBaseTransport] = None):
        """
        Raises:
            ValueError: If UPI_GATEWAY_URL is not configured
        """
        settings = get_settings()

        if not settings.upi_gateway_url:
            raise ValueError(
                "UPI_GATEWAY_URL is required outside development mode. "
                "Set it in your .env file or environment variables."
            )

        headers = {"Content-Type": "application/json"}
        if settings.upi_gateway_api_key:
            headers["Authorization"] = f"Bearer {settings.upi_gateway_api_key}"

        self._base_url = settings.upi_gateway_url.rstrip("/")
        self._headers = headers
        self._timeout = settings.upi_gateway_timeout
        self._transport = transport

        logger.info(f"GatewayPaymentService initialized ({self._base_url})")

    @property
    def provider_name(self) -> str:
        return "upi-gateway"

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self._base_url,
            headers=self._headers,
            timeout=self._timeout,
            transport=self._transport,
        )

    async def verify_upi_payment(
        self,
        order_id: str,
        transaction_id: Optional[str] = None,
    ) -> UPIVerificationResult:
        start = time.monotonic()
        body = {"orderId": order_id, "transactionId": transaction_id}

        try:
            async with self._client() as client:
                response = await client.post("/transactions/verify", json=body)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as e:
            logger.error(f"UPI gateway rejected verification for order {order_id}: {e.response.status_code}")
            return UPIVerificationResult(
                success=False,
                transaction_id=transaction_id,
                response_code=str(e.response.status_code),
                error_message="Payment verification failed",
            )
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"UPI gateway error for order {order_id}: {e}")
            return UPIVerificationResult(
                success=False,
                transaction_id=transaction_id,
                error_message="Payment gateway unavailable",
            )

        elapsed_ms = (time.monotonic() - start) * 1000
        success = data.get("status") == "success"
        logger.info(f"UPI gateway: order {order_id} -> {data.get('status')} ({elapsed_ms:.0f}ms)")

        return UPIVerificationResult(
            success=success,
            transaction_id=data.get("transactionId") or transaction_id,
            response_code=str(data.get("responseCode", "00" if success else "ERROR")),
            approval_ref_no=data.get("approvalRefNo"),
            error_message=None if success else data.get("message", "Payment verification failed"),
            response_time_ms=elapsed_ms,
        )

    async def health_check(self) -> bool:
        try:
            async with self._client() as client:
                response = await client.get("/health")
            return response.status_code < 500
        except httpx.HTTPError as e:
            logger.error(f"UPI gateway health check failed: {e}")
            return False
