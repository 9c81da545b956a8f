"""
Order export for the admin back-office.

Builds one flat row per order (items rendered as readable summaries such as
``2x Classic Burger (Cheese: Swiss)``) and serializes rows to CSV with pandas.
The same rows feed the Excel ledger task.
"""

from datetime import datetime
from typing import Any, Mapping, Optional

import pandas as pd

from tableorder.models import MenuItem, Order


EXPORT_COLUMNS = [
    "order_id",
    "created_at",
    "table_number",
    "customer_name",
    "user_email",
    "mobile_number",
    "items",
    "cooking_instructions",
    "total",
    "status",
    "payment_status",
    "payment_method",
]


def summarize_line(line: Mapping[str, Any], catalog: Mapping[int, MenuItem]) -> str:
    menu_item_id = line.get("menuItemId")
    item = catalog.get(menu_item_id)
    name = item.name if item is not None else f"Item #{menu_item_id}"

    chosen = [
        f"{option}: {', '.join(choices)}"
        for option, choices in sorted((line.get("customizations") or {}).items())
        if choices
    ]
    suffix = f" ({'; '.join(chosen)})" if chosen else ""
    return f"{line.get('quantity', 1)}x {name}{suffix}"


def summarize_items(items: list[Mapping[str, Any]], catalog: Mapping[int, MenuItem]) -> str:
    return " | ".join(summarize_line(line, catalog) for line in items)


def order_to_record(order: Order, catalog: Optional[Mapping[int, MenuItem]] = None) -> dict[str, Any]:
    """Flat, JSON-safe view of an order."""
    return {
        "order_id": order.id,
        "created_at": order.created_at.isoformat() if order.created_at else None,
        "table_number": order.table_number,
        "customer_name": order.customer_name,
        "user_email": order.user_email,
        "mobile_number": order.mobile_number,
        "items": summarize_items(order.items, catalog or {}),
        "cooking_instructions": order.cooking_instructions,
        "total": float(order.total),
        "status": order.status.value,
        "payment_status": order.payment_status.value,
        "payment_method": order.payment_method.value if order.payment_method else None,
    }


def orders_to_dataframe(orders: list[Order], catalog: Mapping[int, MenuItem]) -> pd.DataFrame:
    rows = [order_to_record(order, catalog) for order in orders]
    return pd.DataFrame(rows, columns=EXPORT_COLUMNS)


def orders_to_csv(orders: list[Order], catalog: Mapping[int, MenuItem]) -> str:
    return orders_to_dataframe(orders, catalog).to_csv(index=False)


def export_filename(now: Optional[datetime] = None) -> str:
    return f"orders-{(now or datetime.now()).strftime('%Y-%m-%d')}.csv"
