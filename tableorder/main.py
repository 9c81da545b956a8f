"""
FastAPI Application Entry Point

Table Ordering System - dine-in menu, cart checkout, kitchen and admin API.
Supports both Mock services (development) and Real providers (production).

Endpoints (all under /api unless noted):
    - Auth: /register, /login, /logout, /user, /admin/login, /admin/logout, /admin/user
    - Menu: /menu, /menu/{id}, /menu/{id}/availability
    - Orders: /orders, /orders/{id}, /orders/{id}/status, /orders/{id}/payment-status,
      /users/{email}/orders, /orders/export/csv
    - OTP: /send-email-otp, /verify-email-otp, /send-mobile-otp, /verify-mobile-otp
    - Payments: /payments/upi/verify
    - GET /health: System health check

Run with:
    uvicorn tableorder.main:app --host 0.0.0.0 --port 5000
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Optional

import redis
from fastapi import APIRouter, Depends, FastAPI, Query, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.middleware.sessions import SessionMiddleware

from tableorder.core.config import get_settings, setup_logging
from tableorder.core.exceptions import AuthError, OrderingError, ValidationError
from tableorder.database import async_session_maker, engine, get_db, init_db
from tableorder.models import OrderStatus, User
from tableorder.schemas import (
    AdminLoginRequest,
    AvailabilityUpdate,
    EmailOTPRequest,
    EmailOTPVerify,
    ErrorResponse,
    HealthResponse,
    LoginRequest,
    MenuItemCreate,
    MenuItemResponse,
    MenuItemUpdate,
    MessageResponse,
    MobileOTPRequest,
    MobileOTPVerify,
    OrderCreate,
    OrderResponse,
    OrderStatusUpdate,
    OTPResponse,
    PaymentStatusUpdate,
    RegisterRequest,
    UPIVerifyRequest,
    UPIVerifyResponse,
    UserResponse,
)
from tableorder.services import menu as menu_service
from tableorder.services import orders as order_service
from tableorder.services import users as user_service
from tableorder.services.export import export_filename, order_to_record, orders_to_csv
from tableorder.services.notifications import get_notification_service
from tableorder.services.otp import OTPChannel, get_otp_service
from tableorder.services.payment import get_payment_service
from tableorder.services.rate_limit import get_login_limiter
from tableorder.tasks import append_order_to_ledger

# Initialize configuration and logging
settings = get_settings()
setup_logging()
logger = logging.getLogger(__name__)

SESSION_USER_KEY = "user_id"


# =============================================================================
# APPLICATION LIFECYCLE
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Manage application startup and shutdown events.
    """
    # Startup
    logger.info("=" * 60)
    logger.info(f"Starting {settings.app_name}")
    logger.info(f"   Version: {settings.app_version}")
    logger.info(f"   Environment: {settings.env_mode.value}")
    logger.info(f"   Debug: {settings.debug}")
    logger.info("=" * 60)

    # Initialize database
    await init_db()
    async with async_session_maker() as db:
        await user_service.ensure_admin_user(db, settings.admin_email, settings.admin_password)
        if settings.seed_menu:
            await menu_service.seed_default_menu(db)
    logger.info("Database initialized")

    # Log service configuration
    logger.info(f"Notification Service: {get_notification_service().provider_name}")
    logger.info(f"Payment Service: {get_payment_service().provider_name}")

    # Validate production config
    if settings.use_real_services:
        missing = settings.validate_production_config()
        if missing:
            logger.warning(f"Missing production config: {missing}")

    logger.info("Application ready")

    yield  # Application runs

    # Shutdown
    logger.info("Shutting down...")
    await engine.dispose()
    logger.info("Cleanup complete")


# =============================================================================
# APPLICATION INSTANCE
# =============================================================================

app = FastAPI(
    title=settings.app_name,
    description=(
        "Dine-in ordering API: menu, OTP-gated checkout, kitchen display "
        "and admin back-office."
    ),
    version=settings.app_version,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Signed cookie session carrying the logged-in user id
app.add_middleware(
    SessionMiddleware,
    secret_key=settings.session_secret,
    max_age=settings.session_max_age_seconds,
    same_site="lax",
    https_only=settings.is_production,
)

api = APIRouter(prefix="/api")

ERROR_RESPONSES = {
    400: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    500: {"model": ErrorResponse},
}


# =============================================================================
# DEPENDENCIES
# =============================================================================

async def current_user(request: Request, db: AsyncSession = Depends(get_db)) -> User:
    """Resolve the session user, or fail with 401."""
    user_id = request.session.get(SESSION_USER_KEY)
    if user_id is None:
        raise AuthError("Not authenticated")

    user = await user_service.get_user(db, user_id)
    if user is None:
        request.session.clear()
        raise AuthError("Not authenticated")
    return user


async def require_admin(user: User = Depends(current_user)) -> User:
    if not user.is_admin:
        raise AuthError.forbidden()
    return user


# =============================================================================
# ROOT & HEALTH ENDPOINTS
# =============================================================================

@app.get("/", tags=["Root"])
async def root() -> dict[str, str]:
    """API root with navigation links."""
    return {
        "message": f"Welcome to {settings.restaurant_name}",
        "version": settings.app_version,
        "environment": settings.env_mode.value,
        "documentation": "/docs",
        "health": "/health",
    }


@app.get(
    "/health",
    response_model=HealthResponse,
    tags=["Health"],
    summary="System Health Check",
)
async def health_check(db: AsyncSession = Depends(get_db)) -> HealthResponse:
    """Verify all system components are operational."""

    # Check database
    db_status = "healthy"
    try:
        await db.execute(select(func.count()).select_from(User))
    except Exception as e:
        db_status = f"unhealthy: {str(e)}"
        logger.error(f"Database health check failed: {e}")

    # Check Redis
    redis_status = "healthy"
    try:
        r = redis.Redis.from_url(settings.redis_url, socket_timeout=2)
        r.ping()
        r.close()
    except redis.RedisError as e:
        redis_status = f"unhealthy: {str(e)}"
        logger.error(f"Redis health check failed: {e}")

    notification_status = (
        "healthy" if await get_notification_service().health_check() else "unhealthy"
    )
    payment_status = "healthy" if await get_payment_service().health_check() else "unhealthy"

    overall = "operational" if all(
        s == "healthy" for s in [db_status, redis_status, notification_status, payment_status]
    ) else "degraded"

    return HealthResponse(
        status=overall,
        database=db_status,
        redis=redis_status,
        notification_service=notification_status,
        payment_service=payment_status,
        timestamp=datetime.now(),
    )


# =============================================================================
# AUTH ENDPOINTS
# =============================================================================

@api.post("/register", response_model=UserResponse, status_code=201, tags=["Auth"])
async def register(
    payload: RegisterRequest,
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> UserResponse:
    user = await user_service.register_user(db, payload)
    request.session[SESSION_USER_KEY] = user.id
    return UserResponse.model_validate(user)


@api.post(
    "/login",
    response_model=UserResponse,
    responses={401: {"model": ErrorResponse}, 429: {"model": ErrorResponse}},
    tags=["Auth"],
)
async def login(
    payload: LoginRequest,
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> UserResponse:
    """Log in with email + password, or with mobile + name at the table."""
    if payload.uses_mobile:
        user = await user_service.login_with_mobile(
            db, payload.mobile, payload.name, get_login_limiter()
        )
    else:
        user = await user_service.authenticate_user(
            db, payload.email, payload.password, get_login_limiter()
        )
    request.session[SESSION_USER_KEY] = user.id
    return UserResponse.model_validate(user)


@api.post("/logout", response_model=MessageResponse, tags=["Auth"])
async def logout(request: Request) -> MessageResponse:
    request.session.clear()
    return MessageResponse(message="Logged out")


@api.get("/user", response_model=UserResponse, tags=["Auth"])
async def read_current_user(user: User = Depends(current_user)) -> UserResponse:
    return UserResponse.model_validate(user)


@api.post(
    "/admin/login",
    response_model=UserResponse,
    responses={401: {"model": ErrorResponse}, 403: {"model": ErrorResponse}, 429: {"model": ErrorResponse}},
    tags=["Auth"],
)
async def admin_login(
    payload: AdminLoginRequest,
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> UserResponse:
    user = await user_service.authenticate_user(
        db, payload.email, payload.password, get_login_limiter()
    )
    if not user.is_admin:
        logger.warning(f"Non-admin {user.email} attempted admin login")
        raise AuthError.forbidden()

    request.session[SESSION_USER_KEY] = user.id
    return UserResponse.model_validate(user)


@api.post("/admin/logout", response_model=MessageResponse, tags=["Auth"])
async def admin_logout(request: Request) -> MessageResponse:
    request.session.clear()
    return MessageResponse(message="Logged out")


@api.get("/admin/user", response_model=UserResponse, tags=["Auth"])
async def read_admin_user(user: User = Depends(require_admin)) -> UserResponse:
    return UserResponse.model_validate(user)


# =============================================================================
# MENU ENDPOINTS
# =============================================================================

@api.get("/menu", response_model=list[MenuItemResponse], tags=["Menu"])
async def list_menu(
    available: bool = Query(False, description="Only items currently available"),
    db: AsyncSession = Depends(get_db),
) -> list[MenuItemResponse]:
    items = await menu_service.list_menu_items(db, available_only=available)
    return [MenuItemResponse.model_validate(item) for item in items]


@api.get("/menu/{item_id}", response_model=MenuItemResponse, responses=ERROR_RESPONSES, tags=["Menu"])
async def read_menu_item(item_id: int, db: AsyncSession = Depends(get_db)) -> MenuItemResponse:
    item = await menu_service.require_menu_item(db, item_id)
    return MenuItemResponse.model_validate(item)


@api.post("/menu", response_model=MenuItemResponse, status_code=201, tags=["Menu"])
async def create_menu_item(
    payload: MenuItemCreate,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_admin),
) -> MenuItemResponse:
    item = await menu_service.create_menu_item(db, payload)
    return MenuItemResponse.model_validate(item)


@api.patch("/menu/{item_id}", response_model=MenuItemResponse, responses=ERROR_RESPONSES, tags=["Menu"])
async def update_menu_item(
    item_id: int,
    payload: MenuItemUpdate,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_admin),
) -> MenuItemResponse:
    item = await menu_service.update_menu_item(db, item_id, payload)
    return MenuItemResponse.model_validate(item)


@api.delete("/menu/{item_id}", response_model=MessageResponse, responses=ERROR_RESPONSES, tags=["Menu"])
async def delete_menu_item(
    item_id: int,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_admin),
) -> MessageResponse:
    await menu_service.delete_menu_item(db, item_id)
    return MessageResponse(message=f"Menu item #{item_id} deleted")


@api.post(
    "/menu/{item_id}/availability",
    response_model=MenuItemResponse,
    responses=ERROR_RESPONSES,
    tags=["Menu"],
)
async def set_menu_availability(
    item_id: int,
    payload: AvailabilityUpdate,
    db: AsyncSession = Depends(get_db),
) -> MenuItemResponse:
    item = await menu_service.set_availability(db, item_id, payload.is_available)
    return MenuItemResponse.model_validate(item)


# =============================================================================
# ORDER ENDPOINTS
# =============================================================================

@api.get("/orders", response_model=list[OrderResponse], tags=["Orders"])
async def list_orders(
    status: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db),
) -> list[OrderResponse]:
    """All orders, newest first, optionally filtered by status."""
    status_enum = None
    if status:
        try:
            status_enum = OrderStatus(status)
        except ValueError:
            raise ValidationError(
                f"Invalid status. Options: {[s.value for s in OrderStatus]}"
            )

    orders = await order_service.get_all_orders(db, status=status_enum)
    return [OrderResponse.model_validate(order) for order in orders]


@api.post(
    "/orders",
    response_model=OrderResponse,
    status_code=201,
    responses={400: {"model": ErrorResponse}},
    tags=["Orders"],
)
async def create_order(
    payload: OrderCreate,
    db: AsyncSession = Depends(get_db),
) -> OrderResponse:
    """Create an order from a cart snapshot and queue its ledger entry."""
    order = await order_service.create_order(db, payload)

    catalog = await menu_service.get_menu_items_by_ids(
        db, (line["menuItemId"] for line in order.items)
    )
    try:
        append_order_to_ledger.delay(order_to_record(order, catalog))
    except Exception as e:
        # The order is already stored; the ledger can be rebuilt from the CSV export
        logger.warning(f"Could not queue ledger entry for order #{order.id}: {e}")

    return OrderResponse.model_validate(order)


@api.get("/orders/export/csv", tags=["Orders"], response_class=Response)
async def export_orders_csv(
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_admin),
) -> Response:
    """Download every order as a CSV attachment."""
    orders = await order_service.get_all_orders(db)
    catalog = await menu_service.get_menu_items_by_ids(
        db, (line["menuItemId"] for order in orders for line in order.items)
    )
    content = orders_to_csv(orders, catalog)
    logger.info(f"{admin.email} exported {len(orders)} orders to CSV")

    return Response(
        content=content,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{export_filename()}"'},
    )


@api.get("/orders/{order_id}", response_model=OrderResponse, responses=ERROR_RESPONSES, tags=["Orders"])
async def read_order(order_id: int, db: AsyncSession = Depends(get_db)) -> OrderResponse:
    order = await order_service.require_order(db, order_id)
    return OrderResponse.model_validate(order)


@api.post(
    "/orders/{order_id}/status",
    response_model=OrderResponse,
    responses=ERROR_RESPONSES,
    tags=["Orders"],
)
async def update_order_status(
    order_id: int,
    payload: OrderStatusUpdate,
    db: AsyncSession = Depends(get_db),
) -> OrderResponse:
    order = await order_service.update_order_status(db, order_id, payload.status)
    return OrderResponse.model_validate(order)


@api.post(
    "/orders/{order_id}/payment-status",
    response_model=OrderResponse,
    responses=ERROR_RESPONSES,
    tags=["Orders"],
)
async def update_payment_status(
    order_id: int,
    payload: PaymentStatusUpdate,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_admin),
) -> OrderResponse:
    order = await order_service.update_payment_status(db, order_id, payload.status)
    return OrderResponse.model_validate(order)


@api.get("/users/{email}/orders", response_model=list[OrderResponse], tags=["Orders"])
async def list_user_orders(email: str, db: AsyncSession = Depends(get_db)) -> list[OrderResponse]:
    orders = await order_service.get_user_orders(db, email)
    return [OrderResponse.model_validate(order) for order in orders]


# =============================================================================
# OTP ENDPOINTS
# =============================================================================

@api.post("/send-email-otp", response_model=MessageResponse, responses=ERROR_RESPONSES, tags=["OTP"])
async def send_email_otp(payload: EmailOTPRequest) -> MessageResponse:
    await get_otp_service().send(OTPChannel.EMAIL, payload.email)
    return MessageResponse(message="OTP sent to your email")


@api.post("/verify-email-otp", response_model=OTPResponse, responses=ERROR_RESPONSES, tags=["OTP"])
async def verify_email_otp(
    payload: EmailOTPVerify,
    db: AsyncSession = Depends(get_db),
) -> OTPResponse:
    if not get_otp_service().verify(OTPChannel.EMAIL, payload.email, payload.otp):
        raise ValidationError("Invalid OTP")

    user = await user_service.get_or_create_user_by_email(db, payload.email)
    return OTPResponse(
        success=True,
        message="Email verified successfully",
        user=UserResponse.model_validate(user),
    )


@api.post("/send-mobile-otp", response_model=MessageResponse, responses=ERROR_RESPONSES, tags=["OTP"])
async def send_mobile_otp(payload: MobileOTPRequest) -> MessageResponse:
    await get_otp_service().send(OTPChannel.MOBILE, payload.mobile_number)
    return MessageResponse(message="OTP sent to your mobile number")


@api.post("/verify-mobile-otp", response_model=OTPResponse, responses=ERROR_RESPONSES, tags=["OTP"])
async def verify_mobile_otp(payload: MobileOTPVerify) -> OTPResponse:
    if not get_otp_service().verify(OTPChannel.MOBILE, payload.mobile_number, payload.otp):
        raise ValidationError("Invalid OTP")

    return OTPResponse(success=True, message="Mobile number verified successfully")


# =============================================================================
# PAYMENT ENDPOINTS
# =============================================================================

@api.post(
    "/payments/upi/verify",
    response_model=UPIVerifyResponse,
    responses={400: {"model": UPIVerifyResponse}},
    tags=["Payments"],
)
async def verify_upi_payment(payload: UPIVerifyRequest):
    result = await get_payment_service().verify_upi_payment(
        payload.order_id, payload.transaction_id
    )
    body = UPIVerifyResponse(**result.to_dict())

    if not result.success:
        return JSONResponse(
            status_code=400,
            content=body.model_dump(by_alias=True, exclude_none=True),
        )
    return body


app.include_router(api)


# =============================================================================
# ERROR HANDLERS
# =============================================================================

@app.exception_handler(OrderingError)
async def ordering_error_handler(request: Request, exc: OrderingError) -> JSONResponse:
    """Map domain errors to the standard error envelope."""
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path}: {exc.detail}")

    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(error=exc.error, detail=exc.detail).model_dump(),
    )


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Schema mismatches are reported as 400 rather than 422."""
    messages = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error["loc"] if part != "body")
        messages.append(f"{location}: {error['msg']}" if location else error["msg"])

    return JSONResponse(
        status_code=400,
        content=ErrorResponse(error="Validation failed", detail="; ".join(messages)).model_dump(),
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all exception handler."""
    logger.exception(f"Unhandled exception: {exc}")

    return JSONResponse(
        status_code=500,
        content={
            "success": False,
            "error": "Internal Server Error",
            "detail": str(exc) if settings.debug else "An unexpected error occurred",
        },
    )
