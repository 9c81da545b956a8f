"""
Client-side cart model.

The cart lives with the diner until checkout. Each ``add_item`` call appends
a new line (identical selections are never merged) and captures the item's
price at that moment, so ``subtotal`` reflects what the diner saw even if
the catalog changes later. Availability is not checked here.

At checkout ``to_order_draft`` turns the cart into an ``OrderCreate``
payload carrying the client-computed total.
"""

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Callable, Mapping, Optional, Sequence, Union

from tableorder.models import PaymentMethod, PaymentStatus
from tableorder.schemas import OrderCreate, OrderItemCreate

logger = logging.getLogger(__name__)

Notifier = Callable[[str], None]
Selections = Mapping[str, Union[str, Sequence[str]]]


def _log_notifier(message: str) -> None:
    logger.info(message)


def canonical_selections(customizations: Optional[Selections]) -> tuple:
    """Order-insensitive, hashable form of a customization mapping."""
    if not customizations:
        return ()
    canonical = []
    for name, choices in customizations.items():
        if isinstance(choices, str):
            choices = [choices]
        canonical.append((name, tuple(sorted(choices))))
    return tuple(sorted(canonical))


@dataclass
class CartLine:
    menu_item_id: int
    name: str
    unit_price: Decimal
    quantity: int = 1
    customizations: dict[str, list[str]] = field(default_factory=dict)

    @property
    def selection_key(self) -> tuple:
        return canonical_selections(self.customizations)

    @property
    def line_total(self) -> Decimal:
        return self.unit_price * self.quantity


class Cart:
    """An ordered collection of cart lines for one table."""

    def __init__(self, notifier: Notifier = _log_notifier):
        self.notifier = notifier
        self.lines: list[CartLine] = []
        self.table_number: Optional[int] = None
        self.cooking_instructions: str = ""

    def __len__(self) -> int:
        return len(self.lines)

    def __iter__(self):
        return iter(self.lines)

    @property
    def item_count(self) -> int:
        return sum(line.quantity for line in self.lines)

    @property
    def subtotal(self) -> Decimal:
        return sum((line.line_total for line in self.lines), Decimal("0"))

    def add_item(
        self,
        menu_item: Any,
        quantity: int = 1,
        customizations: Optional[Selections] = None,
    ) -> CartLine:
        """
        Append a line for ``menu_item``.

        ``menu_item`` is anything with ``id``, ``name`` and ``price``
        attributes (an ORM row or a ``MenuItemResponse``).
        """
        if quantity < 1:
            raise ValueError("quantity must be at least 1")

        selections = {
            name: [choices] if isinstance(choices, str) else list(choices)
            for name, choices in (customizations or {}).items()
        }
        line = CartLine(
            menu_item_id=menu_item.id,
            name=menu_item.name,
            unit_price=Decimal(str(menu_item.price)),
            quantity=quantity,
            customizations=selections,
        )
        self.lines.append(line)
        self.notifier(f"{menu_item.name} added to cart")
        return line

    def remove_item(self, menu_item_id: int) -> None:
        self.lines = [line for line in self.lines if line.menu_item_id != menu_item_id]

    def update_quantity(self, menu_item_id: int, quantity: int) -> None:
        """Set the quantity of every line for the item; 0 removes them."""
        if quantity < 0:
            raise ValueError("quantity cannot be negative")
        if quantity == 0:
            self.remove_item(menu_item_id)
            return
        for line in self.lines:
            if line.menu_item_id == menu_item_id:
                line.quantity = quantity

    def set_table_number(self, table_number: int) -> None:
        self.table_number = table_number

    def set_cooking_instructions(self, instructions: str) -> None:
        self.cooking_instructions = instructions

    def clear(self) -> None:
        """Empty the cart. The table number is kept."""
        self.lines = []
        self.cooking_instructions = ""

    def find_lines(
        self,
        menu_item_id: int,
        customizations: Optional[Selections] = None,
    ) -> list[CartLine]:
        key = canonical_selections(customizations)
        return [
            line for line in self.lines
            if line.menu_item_id == menu_item_id and line.selection_key == key
        ]

    def to_order_draft(
        self,
        user_email: Optional[str] = None,
        mobile_number: Optional[str] = None,
        user_id: Optional[int] = None,
        customer_name: Optional[str] = None,
        payment_method: Optional[PaymentMethod] = None,
        payment_status: PaymentStatus = PaymentStatus.PENDING,
    ) -> OrderCreate:
        """
        Snapshot the cart as an order payload.

        Raises:
            ValueError: the cart is empty or no table number is set
            pydantic.ValidationError: the snapshot does not form a valid order
        """
        if not self.lines:
            raise ValueError("Cart is empty")
        if self.table_number is None:
            raise ValueError("Table number is not set")

        return OrderCreate(
            user_id=user_id,
            user_email=user_email,
            mobile_number=mobile_number,
            customer_name=customer_name,
            table_number=self.table_number,
            items=[
                OrderItemCreate(
                    menu_item_id=line.menu_item_id,
                    quantity=line.quantity,
                    customizations=line.customizations,
                )
                for line in self.lines
            ],
            cooking_instructions=self.cooking_instructions or None,
            payment_status=payment_status,
            payment_method=payment_method,
            total=self.subtotal,
        )
