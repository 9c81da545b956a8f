"""
Notification Service Abstract Base Class

Defines the interface for delivering OTP codes by SMS and email.
Supports both Mock (development) and Real (production) implementations.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from tableorder.core.config import get_settings


@dataclass
class NotificationResult:
    """Result from sending a notification."""
    success: bool
    message_id: Optional[str] = None
    error_message: Optional[str] = None
    provider: str = "unknown"


def render_otp_text(code: str, ttl_minutes: int) -> str:
    return f"Your OTP for Restaurant Order is: {code}. Valid for {ttl_minutes} minutes."


def render_otp_html(code: str, ttl_minutes: int) -> str:
    return f"""
    <div style="font-family: Arial, sans-serif; padding: 20px; max-width: 600px; margin: 0 auto;">
        <h2 style="color: #333;">Your One-Time Password</h2>
        <p style="color: #666; font-size: 16px;">Use the following OTP to verify your email address:</p>
        <div style="background-color: #f5f5f5; padding: 20px; border-radius: 5px; text-align: center; margin: 20px 0;">
            <h1 style="color: #333; letter-spacing: 5px; font-size: 32px;">{code}</h1>
        </div>
        <p style="color: #666; font-size: 14px;">This OTP will expire in {ttl_minutes} minutes.</p>
        <p style="color: #999; font-size: 12px;">If you didn't request this OTP, please ignore this email.</p>
    </div>
    """


class BaseNotificationService(ABC):
    """Abstract base class for notification services."""

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Return the provider name."""
        pass

    @abstractmethod
    async def send_sms(
        self,
        to_phone: str,
        message: str,
    ) -> NotificationResult:
        """Send an SMS message."""
        pass

    @abstractmethod
    async def send_email(
        self,
        to_email: str,
        subject: str,
        body_html: str,
        body_text: Optional[str] = None,
    ) -> NotificationResult:
        """Send an email."""
        pass

    @abstractmethod
    async def health_check(self) -> bool:
        """Check service connectivity."""
        pass

    async def send_otp_email(self, to_email: str, code: str, ttl_minutes: int) -> NotificationResult:
        """Deliver an OTP by email."""
        settings = get_settings()
        return await self.send_email(
            to_email=to_email,
            subject=f"Your OTP for {settings.restaurant_name} Order",
            body_html=render_otp_html(code, ttl_minutes),
            body_text=render_otp_text(code, ttl_minutes),
        )

    async def send_otp_sms(self, to_phone: str, code: str, ttl_minutes: int) -> NotificationResult:
        """Deliver an OTP by SMS."""
        return await self.send_sms(to_phone, render_otp_text(code, ttl_minutes))
