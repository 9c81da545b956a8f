"""
Payment Service Abstract Base Class

Defines the interface for confirming UPI payments made by diners.
Both MockPaymentService and GatewayPaymentService implement it, so the
verify endpoint behaves identically whichever one is active.

Design Pattern: Strategy Pattern
    - Runtime switching between providers via ENV_MODE
    - The mock keeps local checkout usable without a gateway account
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional


@dataclass
class UPIVerificationResult:
    """
    Standardized result of a UPI payment check.

    Attributes:
        success: Whether the payment was confirmed
        transaction_id: Provider transaction reference
        response_code: "00" on success, provider/mock error code otherwise
        approval_ref_no: Bank approval reference, when confirmed
        error_message: Human-readable reason for a failure
        response_time_ms: Time taken by the provider
    """
    success: bool
    transaction_id: Optional[str] = None
    response_code: str = "ERROR"
    approval_ref_no: Optional[str] = None
    error_message: Optional[str] = None
    response_time_ms: float = 0.0

    @property
    def status(self) -> str:
        return "success" if self.success else "failure"

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "status": self.status,
            "transaction_id": self.transaction_id,
            "response_code": self.response_code,
            "approval_ref_no": self.approval_ref_no,
            "message": self.error_message,
        }


class BasePaymentService(ABC):
    """Abstract base class for payment services."""

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Return the name of the payment provider."""
        pass

    @abstractmethod
    async def verify_upi_payment(
        self,
        order_id: str,
        transaction_id: Optional[str] = None,
    ) -> UPIVerificationResult:
        """
        Confirm that a UPI payment for ``order_id`` went through.

        Args:
            order_id: Client-side order reference used in the UPI link
            transaction_id: Transaction id reported by the UPI app, if any
        """
        pass

    @abstractmethod
    async def health_check(self) -> bool:
        """Verify connectivity to the payment provider."""
        pass
