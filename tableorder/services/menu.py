"""
Menu catalog operations: CRUD for the admin back-office and the kitchen's
availability toggle.
"""

import logging
from decimal import Decimal
from typing import Iterable, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from tableorder.core.exceptions import NotFoundError
from tableorder.models import MenuItem
from tableorder.schemas import CustomizationOption, MenuItemCreate, MenuItemUpdate

logger = logging.getLogger(__name__)


DEFAULT_MENU: list[dict] = [
    {
        "name": "Classic Burger",
        "description": "Juicy beef patty with lettuce, tomato, and special sauce",
        "price": Decimal("12.99"),
        "category": "Mains",
        "subcategory": "Burgers",
        "image_url": "https://images.unsplash.com/photo-1470337458703-46ad1756a187",
        "is_best_seller": True,
        "customizations": [
            {"name": "Cheese", "choices": ["None", "American", "Swiss", "Cheddar"], "maxChoices": 1},
            {"name": "Toppings", "choices": ["Lettuce", "Tomato", "Onion", "Pickles"], "maxChoices": 4},
        ],
    },
    {
        "name": "Caesar Salad",
        "description": "Crisp romaine lettuce, croutons, parmesan cheese",
        "price": Decimal("9.99"),
        "category": "Starters",
        "subcategory": "Salads",
        "image_url": "https://images.unsplash.com/photo-1454944338482-a69bb95894af",
        "is_vegetarian": True,
        "customizations": [
            {"name": "Protein", "choices": ["None", "Chicken", "Shrimp"], "maxChoices": 1},
            {"name": "Dressing", "choices": ["Regular", "Light", "On Side"], "maxChoices": 1},
        ],
    },
]


def _dump_customizations(options: Iterable[CustomizationOption]) -> list[dict]:
    return [option.model_dump(by_alias=True) for option in options]


async def list_menu_items(db: AsyncSession, available_only: bool = False) -> list[MenuItem]:
    query = select(MenuItem).order_by(MenuItem.category, MenuItem.id)
    if available_only:
        query = query.where(MenuItem.is_available.is_(True))
    result = await db.execute(query)
    return list(result.scalars().all())


async def get_menu_item(db: AsyncSession, item_id: int) -> Optional[MenuItem]:
    return await db.get(MenuItem, item_id)


async def require_menu_item(db: AsyncSession, item_id: int) -> MenuItem:
    item = await get_menu_item(db, item_id)
    if item is None:
        raise NotFoundError(f"Menu item #{item_id} not found")
    return item


async def get_menu_items_by_ids(db: AsyncSession, ids: Iterable[int]) -> dict[int, MenuItem]:
    ids = set(ids)
    if not ids:
        return {}
    result = await db.execute(select(MenuItem).where(MenuItem.id.in_(ids)))
    return {item.id: item for item in result.scalars().all()}


async def create_menu_item(db: AsyncSession, payload: MenuItemCreate) -> MenuItem:
    data = payload.model_dump(exclude={"customizations"})
    item = MenuItem(**data, customizations=_dump_customizations(payload.customizations))
    db.add(item)
    await db.commit()
    await db.refresh(item)
    logger.info(f"Menu item #{item.id} created: {item.name}")
    return item


async def update_menu_item(db: AsyncSession, item_id: int, payload: MenuItemUpdate) -> MenuItem:
    item = await require_menu_item(db, item_id)

    changes = payload.model_dump(exclude_unset=True, exclude={"customizations"})
    for field, value in changes.items():
        # Only subcategory may be cleared with null
        if value is None and field != "subcategory":
            continue
        setattr(item, field, value)
    if payload.customizations is not None:
        item.customizations = _dump_customizations(payload.customizations)

    await db.commit()
    await db.refresh(item)
    logger.info(f"Menu item #{item.id} updated: {sorted(payload.model_fields_set)}")
    return item


async def delete_menu_item(db: AsyncSession, item_id: int) -> None:
    item = await require_menu_item(db, item_id)
    await db.delete(item)
    await db.commit()
    logger.info(f"Menu item #{item_id} deleted")


async def set_availability(db: AsyncSession, item_id: int, is_available: bool) -> MenuItem:
    """
    Overwrite an item's availability.

    Carts already holding the item are not touched; availability is
    advisory for the customer flow.
    """
    item = await require_menu_item(db, item_id)
    item.is_available = is_available
    await db.commit()
    await db.refresh(item)
    logger.info(f"Menu item #{item_id} marked {'available' if is_available else 'unavailable'}")
    return item


async def seed_default_menu(db: AsyncSession) -> int:
    """Insert ``DEFAULT_MENU`` when the catalog is empty."""
    count = (await db.execute(select(func.count(MenuItem.id)))).scalar() or 0
    if count:
        return 0

    for entry in DEFAULT_MENU:
        db.add(MenuItem(**entry))
    await db.commit()
    logger.info(f"Seeded {len(DEFAULT_MENU)} default menu items")
    return len(DEFAULT_MENU)
