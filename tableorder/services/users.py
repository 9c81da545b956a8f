"""
User accounts and authentication.

Passwords are stored as ``<scrypt digest hex>.<salt hex>``.
"""

import asyncio
import hashlib
import hmac
import logging
import secrets
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from tableorder.core.exceptions import AuthError, ValidationError
from tableorder.models import User
from tableorder.schemas import RegisterRequest
from tableorder.services.rate_limit import LoginRateLimiter

logger = logging.getLogger(__name__)

SCRYPT_N = 2 ** 14
SCRYPT_R = 8
SCRYPT_P = 1
KEY_LENGTH = 64


def _scrypt(password: str, salt: str) -> bytes:
    return hashlib.scrypt(
        password.encode(),
        salt=salt.encode(),
        n=SCRYPT_N,
        r=SCRYPT_R,
        p=SCRYPT_P,
        dklen=KEY_LENGTH,
    )


async def hash_password(password: str) -> str:
    salt = secrets.token_hex(16)
    digest = await asyncio.to_thread(_scrypt, password, salt)
    return f"{digest.hex()}.{salt}"


async def verify_password(supplied: str, stored: Optional[str]) -> bool:
    if not stored or "." not in stored:
        return False
    hashed, salt = stored.split(".", 1)
    supplied_digest = await asyncio.to_thread(_scrypt, supplied, salt)
    return hmac.compare_digest(bytes.fromhex(hashed), supplied_digest)


async def get_user_by_email(db: AsyncSession, email: str) -> Optional[User]:
    result = await db.execute(select(User).where(User.email == email))
    return result.scalar_one_or_none()


async def get_user(db: AsyncSession, user_id: int) -> Optional[User]:
    return await db.get(User, user_id)


async def register_user(db: AsyncSession, payload: RegisterRequest) -> User:
    """Create a customer account; duplicate email or mobile is a 400."""
    if await get_user_by_email(db, payload.email):
        raise ValidationError("An account with this email already exists")

    user = User(
        email=payload.email,
        mobile_number=payload.mobile_number,
        full_name=payload.full_name,
        password=await hash_password(payload.password),
        is_admin=False,
    )
    db.add(user)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ValidationError("An account with this email or mobile number already exists")
    await db.refresh(user)

    logger.info(f"Registered user #{user.id} ({user.email})")
    return user


async def authenticate_user(
    db: AsyncSession,
    email: str,
    password: str,
    limiter: LoginRateLimiter,
) -> User:
    """
    Check credentials, enforcing the failed-login limit for ``email``.

    Unknown email and wrong password both answer "Invalid credentials".
    """
    limiter.check(email)

    user = await get_user_by_email(db, email)
    if user is None or not await verify_password(password, user.password):
        failures = limiter.record_failure(email)
        logger.info(f"Failed login for {email} ({failures} in window)")
        raise AuthError("Invalid credentials")

    limiter.reset(email)
    logger.info(f"Login successful for {email}")
    return user


async def get_user_by_mobile(db: AsyncSession, mobile_number: str) -> Optional[User]:
    result = await db.execute(select(User).where(User.mobile_number == mobile_number))
    return result.scalar_one_or_none()


async def login_with_mobile(
    db: AsyncSession,
    mobile_number: str,
    name: str,
    limiter: LoginRateLimiter,
) -> User:
    """
    Table-side login: find or create the diner by mobile number.

    The supplied name replaces the stored one. Numbers belonging to
    password accounts must log in with their password instead.
    """
    limiter.check(mobile_number)

    user = await get_user_by_mobile(db, mobile_number)
    if user is not None and user.password:
        failures = limiter.record_failure(mobile_number)
        logger.info(f"Mobile login refused for password account {mobile_number} ({failures} in window)")
        raise AuthError("Invalid credentials")

    if user is None:
        user = User(mobile_number=mobile_number, full_name=name, is_admin=False)
        db.add(user)
        try:
            await db.commit()
        except IntegrityError:
            await db.rollback()
            user = await get_user_by_mobile(db, mobile_number)
            if user is None:
                raise
        else:
            await db.refresh(user)
            logger.info(f"Created user #{user.id} from mobile login {mobile_number}")

    if user.full_name != name:
        user.full_name = name
        await db.commit()
        await db.refresh(user)

    limiter.reset(mobile_number)
    logger.info(f"Mobile login successful for {mobile_number}")
    return user


async def get_or_create_user_by_email(db: AsyncSession, email: str) -> User:
    """Ensure an account exists for an email proven by OTP."""
    user = await get_user_by_email(db, email)
    if user is not None:
        return user

    user = User(email=email, is_admin=False)
    db.add(user)
    try:
        await db.commit()
    except IntegrityError:
        # A concurrent verification created it first
        await db.rollback()
        user = await get_user_by_email(db, email)
        if user is None:
            raise
        return user

    await db.refresh(user)
    logger.info(f"Created user #{user.id} from verified email {email}")
    return user


async def ensure_admin_user(db: AsyncSession, email: str, password: str) -> User:
    """Seed the admin account, promoting an existing user with that email."""
    user = await get_user_by_email(db, email)

    if user is None:
        user = User(
            email=email,
            full_name="Administrator",
            password=await hash_password(password),
            is_admin=True,
        )
        db.add(user)
        logger.info(f"Seeded admin user {email}")
    elif not user.is_admin:
        user.is_admin = True
        logger.info(f"Promoted {email} to admin")
    else:
        return user

    await db.commit()
    await db.refresh(user)
    return user
