"""
Order creation and status transitions.

Orders are created once from a cart snapshot. Only the shape of the
snapshot is validated: the submitted total is stored as given and item
availability is not re-checked. Status and payment status are plain field
overwrites restricted to fixed value sets.
"""

import logging
from decimal import Decimal
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tableorder.core.exceptions import NotFoundError, ValidationError
from tableorder.models import (
    Order,
    OrderStatus,
    PaymentStatus,
    STATUS_UPDATE_TARGETS,
)
from tableorder.schemas import OrderCreate
from tableorder.services.menu import get_menu_items_by_ids

logger = logging.getLogger(__name__)


async def _log_total_drift(db: AsyncSession, payload: OrderCreate) -> None:
    """Warn when the client total disagrees with current catalog prices."""
    catalog = await get_menu_items_by_ids(db, (line.menu_item_id for line in payload.items))

    missing = [line.menu_item_id for line in payload.items if line.menu_item_id not in catalog]
    if missing:
        logger.warning(f"Order references unknown menu items: {missing}")
        return

    expected = sum(
        (Decimal(catalog[line.menu_item_id].price) * line.quantity for line in payload.items),
        Decimal("0"),
    )
    if expected != payload.total:
        logger.warning(
            f"Submitted total {payload.total} differs from catalog total {expected} "
            f"(table {payload.table_number})"
        )


async def create_order(db: AsyncSession, payload: OrderCreate) -> Order:
    """Persist a validated cart snapshot as a pending order."""
    await _log_total_drift(db, payload)

    order = Order(
        user_id=payload.user_id,
        user_email=payload.user_email,
        mobile_number=payload.mobile_number,
        customer_name=payload.customer_name,
        table_number=payload.table_number,
        items=[line.model_dump(by_alias=True) for line in payload.items],
        cooking_instructions=payload.cooking_instructions,
        total=payload.total,
        status=OrderStatus.PENDING,
        payment_status=payload.payment_status,
        payment_method=payload.payment_method,
    )
    db.add(order)
    await db.commit()
    await db.refresh(order)

    logger.info(
        f"Order #{order.id} created for table {order.table_number} "
        f"({len(order.items)} lines, total {order.total})"
    )
    return order


async def get_order(db: AsyncSession, order_id: int) -> Optional[Order]:
    return await db.get(Order, order_id)


async def require_order(db: AsyncSession, order_id: int) -> Order:
    order = await get_order(db, order_id)
    if order is None:
        raise NotFoundError(f"Order #{order_id} not found")
    return order


async def get_all_orders(db: AsyncSession, status: Optional[OrderStatus] = None) -> list[Order]:
    """All orders, newest first."""
    query = select(Order).order_by(Order.created_at.desc(), Order.id.desc())
    if status is not None:
        query = query.where(Order.status == status)
    result = await db.execute(query)
    return list(result.scalars().all())


async def get_user_orders(db: AsyncSession, email: str) -> list[Order]:
    """Orders placed with ``email``, newest first."""
    result = await db.execute(
        select(Order)
        .where(Order.user_email == email.lower())
        .order_by(Order.created_at.desc(), Order.id.desc())
    )
    return list(result.scalars().all())


async def update_order_status(db: AsyncSession, order_id: int, status: OrderStatus) -> Order:
    """
    Set the kitchen status.

    Only ``in progress``, ``completed`` and ``cancelled`` are accepted as
    targets; no transition graph is enforced beyond that.
    """
    if status not in STATUS_UPDATE_TARGETS:
        allowed = ", ".join(s.value for s in STATUS_UPDATE_TARGETS)
        raise ValidationError(f"Invalid order status '{status.value}'. Allowed: {allowed}")

    order = await require_order(db, order_id)
    previous = order.status
    order.status = status
    await db.commit()
    await db.refresh(order)

    logger.info(f"Order #{order_id} status {previous.value} -> {status.value}")
    return order


async def update_payment_status(db: AsyncSession, order_id: int, status: PaymentStatus) -> Order:
    """Overwrite the payment status unconditionally."""
    order = await require_order(db, order_id)
    previous = order.payment_status
    order.payment_status = status
    await db.commit()
    await db.refresh(order)

    logger.info(f"Order #{order_id} payment {previous.value} -> {status.value}")
    return order

