"""
Pydantic Schemas for Request/Response Validation

The public JSON API speaks camelCase (``tableNumber``, ``isAvailable``);
models are declared in snake_case and aliased through ``CamelModel``.
Monetary values are ``Decimal`` internally and serialized as JSON numbers.
"""

import re
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Annotated, Optional, List, Dict, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    PlainSerializer,
    StrictBool,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel

from tableorder.core.config import get_settings
from tableorder.models import OrderStatus, PaymentStatus, PaymentMethod


EMAIL_PATTERN = re.compile(r"^[\w\.\+-]+@[\w\.-]+\.\w+$")
MOBILE_PATTERN = re.compile(r"^\+?\d{10,15}$")
CENTS = Decimal("0.01")

Money = Annotated[Decimal, PlainSerializer(float, return_type=float, when_used="json")]


def _validate_email(v: Optional[str]) -> Optional[str]:
    if v is None or v == "":
        return None
    v = v.strip().lower()
    if not EMAIL_PATTERN.match(v):
        raise ValueError("Invalid email address")
    return v


def _validate_mobile(v: Optional[str]) -> Optional[str]:
    if v is None or v == "":
        return None
    cleaned = re.sub(r"[\s-]", "", v)
    if not MOBILE_PATTERN.match(cleaned):
        raise ValueError("Mobile number must have 10 to 15 digits")

    # Local numbers are the canonical form: "+919876543210" -> "9876543210"
    country_code = get_settings().sms_country_code
    if country_code and cleaned.startswith(country_code):
        local = cleaned[len(country_code):]
        if len(local) >= 10:
            return local
    return cleaned


def _require(v: Optional[str], label: str) -> str:
    if not v:
        raise ValueError(f"{label} is required")
    return v


class CamelModel(BaseModel):
    """Base model accepting both camelCase and snake_case keys."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


# =============================================================================
# MENU
# =============================================================================

class CustomizationOption(CamelModel):
    """A named choice group on a menu item, e.g. "Spice Level"."""
    name: str = Field(..., min_length=1, max_length=50, examples=["Cheese"])
    choices: List[str] = Field(..., min_length=1, examples=[["None", "Swiss", "Cheddar"]])
    max_choices: int = Field(default=1, ge=1, examples=[1])

    @field_validator("choices")
    @classmethod
    def dedupe_choices(cls, v: List[str]) -> List[str]:
        # Choices form a set; keep first occurrence order for display
        return list(dict.fromkeys(c.strip() for c in v if c.strip()))


class MenuItemCreate(CamelModel):
    """Request schema for adding a catalog item."""
    name: str = Field(..., min_length=1, max_length=100, examples=["Classic Burger"])
    description: str = Field(default="", max_length=1000)
    price: Money = Field(..., gt=0, max_digits=10, decimal_places=2, examples=[12.99])
    category: str = Field(..., min_length=1, max_length=50, examples=["Mains"])
    subcategory: Optional[str] = Field(None, max_length=50)
    image_url: str = Field(default="", max_length=500)
    is_vegetarian: bool = False
    is_best_seller: bool = False
    is_available: bool = True
    customizations: List[CustomizationOption] = Field(default_factory=list)


class MenuItemUpdate(CamelModel):
    """Partial update; omitted fields are left untouched."""
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=1000)
    price: Optional[Money] = Field(None, gt=0, max_digits=10, decimal_places=2)
    category: Optional[str] = Field(None, min_length=1, max_length=50)
    subcategory: Optional[str] = Field(None, max_length=50)
    image_url: Optional[str] = Field(None, max_length=500)
    is_vegetarian: Optional[bool] = None
    is_best_seller: Optional[bool] = None
    is_available: Optional[bool] = None
    customizations: Optional[List[CustomizationOption]] = None


class AvailabilityUpdate(CamelModel):
    is_available: StrictBool


class MenuItemResponse(CamelModel):
    id: int
    name: str
    description: str
    price: Money
    category: str
    subcategory: Optional[str] = None
    image_url: str
    is_vegetarian: bool
    is_best_seller: bool
    is_available: bool
    customizations: List[CustomizationOption]


# =============================================================================
# ORDERS
# =============================================================================

class OrderItemCreate(CamelModel):
    """One cart line as submitted at checkout."""
    menu_item_id: int = Field(..., ge=1, examples=[1])
    quantity: int = Field(..., ge=1, examples=[2])
    customizations: Dict[str, List[str]] = Field(default_factory=dict)

    @field_validator("customizations", mode="before")
    @classmethod
    def wrap_single_choices(cls, v):
        if v is None:
            return {}
        if isinstance(v, dict):
            return {k: [c] if isinstance(c, str) else c for k, c in v.items()}
        return v


class OrderCreate(CamelModel):
    """Request schema for creating an order from a cart snapshot."""

    # Identity
    user_id: Optional[int] = Field(None, ge=1)
    user_email: Optional[str] = Field(None, examples=["diner@example.com"])
    mobile_number: Optional[str] = Field(None, examples=["9876543210"])
    customer_name: Optional[str] = Field(None, max_length=100)

    # Table and items
    table_number: int = Field(..., ge=1, examples=[4])
    items: List[OrderItemCreate] = Field(..., min_length=1)
    cooking_instructions: Optional[str] = Field(None, max_length=500)

    # Payment
    payment_status: PaymentStatus = PaymentStatus.PENDING
    payment_method: Optional[PaymentMethod] = None
    total: Money = Field(..., ge=0)

    @field_validator("total")
    @classmethod
    def round_total(cls, v: Decimal) -> Decimal:
        # Browsers sum prices as floats (62.940000000000005); keep the cents
        return v.quantize(CENTS, rounding=ROUND_HALF_UP)

    @field_validator("user_email")
    @classmethod
    def validate_email(cls, v: Optional[str]) -> Optional[str]:
        return _validate_email(v)

    @field_validator("mobile_number")
    @classmethod
    def validate_mobile(cls, v: Optional[str]) -> Optional[str]:
        return _validate_mobile(v)

    @model_validator(mode="after")
    def require_contact(self) -> "OrderCreate":
        if not self.user_email and not self.mobile_number:
            raise ValueError("Either userEmail or mobileNumber is required")
        return self


class OrderResponse(CamelModel):
    id: int
    user_id: Optional[int] = None
    user_email: Optional[str] = None
    mobile_number: Optional[str] = None
    customer_name: Optional[str] = None
    table_number: int
    items: List[OrderItemCreate]
    cooking_instructions: Optional[str] = None
    status: OrderStatus
    payment_status: PaymentStatus
    payment_method: Optional[PaymentMethod] = None
    total: Money
    created_at: datetime
    updated_at: Optional[datetime] = None


class OrderStatusUpdate(CamelModel):
    status: OrderStatus


class PaymentStatusUpdate(CamelModel):
    status: PaymentStatus


# =============================================================================
# USERS & AUTH
# =============================================================================

class RegisterRequest(CamelModel):
    email: str
    password: str = Field(..., min_length=6, max_length=128)
    full_name: str = Field(..., min_length=2, max_length=100)
    mobile_number: Optional[str] = None

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: str) -> str:
        return _require(_validate_email(v), "Email")

    @field_validator("mobile_number")
    @classmethod
    def validate_mobile(cls, v: Optional[str]) -> Optional[str]:
        return _validate_mobile(v)


class LoginRequest(CamelModel):
    """
    Customer login: ``email`` + ``password`` for registered accounts, or
    ``mobile`` + ``name`` for diners identifying themselves at the table.
    """
    email: Optional[str] = None
    password: Optional[str] = Field(None, min_length=1, max_length=128)
    mobile: Optional[str] = Field(None, examples=["9876543210"])
    name: Optional[str] = Field(None, min_length=1, max_length=100, examples=["Asha"])

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: Optional[str]) -> Optional[str]:
        return _validate_email(v)

    @field_validator("mobile")
    @classmethod
    def validate_mobile(cls, v: Optional[str]) -> Optional[str]:
        return _validate_mobile(v)

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        return v.strip() or None

    @model_validator(mode="after")
    def require_credentials(self) -> "LoginRequest":
        if self.email and self.password:
            return self
        if self.mobile and self.name:
            return self
        raise ValueError("Provide email and password, or mobile and name")

    @property
    def uses_mobile(self) -> bool:
        return not (self.email and self.password)


class AdminLoginRequest(CamelModel):
    email: str
    password: str = Field(..., min_length=6, max_length=128)

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: str) -> str:
        return _require(_validate_email(v), "Email")


class UserResponse(CamelModel):
    id: int
    email: Optional[str] = None
    mobile_number: Optional[str] = None
    full_name: Optional[str] = None
    is_admin: bool
    created_at: datetime


# =============================================================================
# OTP
# =============================================================================

class EmailOTPRequest(CamelModel):
    email: str

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: str) -> str:
        return _require(_validate_email(v), "Email")


class EmailOTPVerify(EmailOTPRequest):
    otp: str = Field(..., pattern=r"^\d{4,8}$")


class MobileOTPRequest(CamelModel):
    mobile_number: str

    @field_validator("mobile_number")
    @classmethod
    def validate_mobile(cls, v: str) -> str:
        return _require(_validate_mobile(v), "Mobile number")


class MobileOTPVerify(MobileOTPRequest):
    otp: str = Field(..., pattern=r"^\d{4,8}$")


class OTPResponse(CamelModel):
    success: bool
    message: str
    user: Optional[UserResponse] = None


# =============================================================================
# PAYMENTS
# =============================================================================

class UPIVerifyRequest(CamelModel):
    order_id: str = Field(..., min_length=1)
    transaction_id: Optional[str] = None

    @field_validator("order_id", mode="before")
    @classmethod
    def stringify_order_id(cls, v: Union[str, int]) -> str:
        return str(v) if isinstance(v, int) else v


class UPIVerifyResponse(CamelModel):
    status: str
    transaction_id: Optional[str] = None
    response_code: str
    approval_ref_no: Optional[str] = None
    message: Optional[str] = None


# =============================================================================
# GENERIC
# =============================================================================

class MessageResponse(CamelModel):
    success: bool = True
    message: str


class ErrorResponse(BaseModel):
    """Standard error response."""
    success: bool = False
    error: str
    detail: Optional[str] = None


class HealthResponse(CamelModel):
    """Health check response."""
    status: str
    database: str
    redis: str
    notification_service: str
    payment_service: str
    timestamp: datetime
