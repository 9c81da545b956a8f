import logging
from decimal import Decimal

import pytest

from tableorder.core.exceptions import NotFoundError, ValidationError
from tableorder.models import OrderStatus, PaymentStatus
from tableorder.schemas import MenuItemUpdate, OrderCreate
from tableorder.services import menu, orders, users


def _order(**overrides) -> OrderCreate:
    data = {
        "user_email": "diner@example.com",
        "table_number": 2,
        "items": [{"menu_item_id": 1, "quantity": 2}],
        "total": Decimal("25.98"),
    }
    data.update(overrides)
    return OrderCreate(**data)


def test_seed_default_menu_runs_once(run_db):
    async def scenario(db):
        first = await menu.seed_default_menu(db)
        second = await menu.seed_default_menu(db)
        return first, second, await menu.list_menu_items(db)

    first, second, items = run_db(scenario)

    assert first == 2
    assert second == 0
    assert len(items) == 2


def test_update_menu_item_can_clear_subcategory(run_db):
    async def scenario(db):
        await menu.seed_default_menu(db)
        return await menu.update_menu_item(
            db, 1, MenuItemUpdate(subcategory=None, name=None)
        )

    item = run_db(scenario)

    assert item.subcategory is None
    assert item.name == "Classic Burger"


def test_set_availability_missing_item(run_db):
    with pytest.raises(NotFoundError):
        run_db(lambda db: menu.set_availability(db, 5, False))


def test_create_order_stores_submitted_total(run_db, caplog):
    async def scenario(db):
        await menu.seed_default_menu(db)
        return await orders.create_order(db, _order(total=Decimal("1.00")))

    with caplog.at_level(logging.WARNING, logger="tableorder.services.orders"):
        order = run_db(scenario)

    assert order.total == Decimal("1.00")
    assert order.status == OrderStatus.PENDING
    assert order.payment_status == PaymentStatus.PENDING
    assert "differs from catalog total" in caplog.text


def test_update_order_status_checks_target_before_lookup(run_db):
    with pytest.raises(ValidationError):
        run_db(lambda db: orders.update_order_status(db, 999, OrderStatus.PENDING))

    with pytest.raises(NotFoundError):
        run_db(lambda db: orders.update_order_status(db, 999, OrderStatus.COMPLETED))


def test_update_payment_status_missing_order(run_db):
    with pytest.raises(NotFoundError):
        run_db(lambda db: orders.update_payment_status(db, 1, PaymentStatus.PAID))


def test_ensure_admin_user_promotes_existing_account(run_db):
    async def scenario(db):
        created = await users.get_or_create_user_by_email(db, "boss@example.com")
        promoted = await users.ensure_admin_user(db, "boss@example.com", "admin123")
        again = await users.ensure_admin_user(db, "boss@example.com", "admin123")
        return created, promoted, again

    created, promoted, again = run_db(scenario)

    assert created.id == promoted.id == again.id
    assert promoted.is_admin is True


def test_get_or_create_user_by_email_is_idempotent(run_db):
    async def scenario(db):
        first = await users.get_or_create_user_by_email(db, "diner@example.com")
        second = await users.get_or_create_user_by_email(db, "diner@example.com")
        return first.id, second.id, first.password

    first_id, second_id, password = run_db(scenario)

    assert first_id == second_id
    assert password is None


def test_get_or_create_user_by_email_survives_concurrent_insert(run_db, monkeypatch):
    real_lookup = users.get_user_by_email
    calls = []

    async def lookup_missing_once(db, email):
        # The first lookup runs before a concurrent request commits the same email
        calls.append(email)
        if len(calls) == 1:
            return None
        return await real_lookup(db, email)

    async def scenario(db):
        existing = await users.get_or_create_user_by_email(db, "diner@example.com")
        existing_id = existing.id
        monkeypatch.setattr(users, "get_user_by_email", lookup_missing_once)
        again = await users.get_or_create_user_by_email(db, "diner@example.com")
        return existing_id, again.id

    existing_id, again_id = run_db(scenario)

    assert existing_id == again_id
    assert len(calls) == 2
