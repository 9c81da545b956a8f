from dataclasses import dataclass
from decimal import Decimal

import pytest

from tableorder.cart import Cart, canonical_selections
from tableorder.models import PaymentStatus


@dataclass
class Item:
    id: int
    name: str
    price: Decimal


BURGER = Item(1, "Classic Burger", Decimal("100"))
SALAD = Item(2, "Caesar Salad", Decimal("50"))


@pytest.fixture()
def notices():
    return []


@pytest.fixture()
def cart(notices):
    return Cart(notifier=notices.append)


def test_add_item_appends_line_and_notifies(cart, notices):
    cart.add_item(BURGER, quantity=2)

    assert len(cart) == 1
    assert cart.lines[0].quantity == 2
    assert notices == ["Classic Burger added to cart"]


def test_identical_adds_are_not_merged(cart):
    cart.add_item(BURGER, customizations={"Cheese": ["Swiss"]})
    cart.add_item(BURGER, customizations={"Cheese": ["Swiss"]})

    assert len(cart) == 2
    assert cart.item_count == 2


def test_subtotal_scenario(cart):
    cart.add_item(BURGER, quantity=2)
    cart.add_item(SALAD, quantity=1)

    assert cart.subtotal == Decimal("250")


def test_subtotal_uses_price_at_add_time(cart):
    item = Item(1, "Classic Burger", Decimal("100"))
    cart.add_item(item, quantity=2)
    item.price = Decimal("120")

    assert cart.subtotal == Decimal("200")


def test_remove_item_drops_every_line_for_the_id(cart):
    cart.add_item(BURGER, customizations={"Cheese": ["Swiss"]})
    cart.add_item(BURGER, customizations={"Cheese": ["Cheddar"]})
    cart.add_item(SALAD)

    cart.remove_item(BURGER.id)

    assert [line.menu_item_id for line in cart] == [SALAD.id]


def test_update_quantity_zero_matches_remove(notices):
    by_update, by_remove = Cart(notices.append), Cart(notices.append)
    for c in (by_update, by_remove):
        c.add_item(BURGER, quantity=3)
        c.add_item(SALAD, quantity=1)

    by_update.update_quantity(BURGER.id, 0)
    by_remove.remove_item(BURGER.id)

    assert by_update.lines == by_remove.lines


def test_update_quantity_sets_all_matching_lines(cart):
    cart.add_item(BURGER, customizations={"Cheese": ["Swiss"]})
    cart.add_item(BURGER)
    cart.add_item(SALAD)

    cart.update_quantity(BURGER.id, 4)

    assert [line.quantity for line in cart] == [4, 4, 1]


def test_unknown_ids_are_silent_noops(cart):
    cart.add_item(SALAD)

    cart.remove_item(999)
    cart.update_quantity(999, 3)

    assert len(cart) == 1
    assert cart.lines[0].quantity == 1


def test_clear_keeps_table_number(cart):
    cart.set_table_number(7)
    cart.set_cooking_instructions("No onions")
    cart.add_item(BURGER)

    cart.clear()

    assert len(cart) == 0
    assert cart.cooking_instructions == ""
    assert cart.table_number == 7


def test_find_lines_ignores_selection_order(cart):
    cart.add_item(BURGER, customizations={"Toppings": ["Onion", "Lettuce"], "Cheese": "Swiss"})

    found = cart.find_lines(BURGER.id, {"Cheese": ["Swiss"], "Toppings": ["Lettuce", "Onion"]})

    assert len(found) == 1
    assert cart.find_lines(BURGER.id, {"Cheese": ["Cheddar"]}) == []


def test_canonical_selections_is_structural():
    assert canonical_selections({"a": ["y", "x"], "b": "z"}) == canonical_selections(
        {"b": ["z"], "a": ["x", "y"]}
    )
    assert canonical_selections(None) == canonical_selections({}) == ()


def test_unavailable_items_can_still_be_added(cart):
    @dataclass
    class Unavailable(Item):
        is_available: bool = False

    cart.add_item(Unavailable(5, "Sold Out Soup", Decimal("8")))

    assert len(cart) == 1


def test_to_order_draft_snapshots_cart(cart):
    cart.set_table_number(3)
    cart.set_cooking_instructions("Less spicy")
    cart.add_item(BURGER, quantity=2, customizations={"Cheese": "Swiss"})
    cart.add_item(SALAD)

    draft = cart.to_order_draft(user_email="Diner@Example.com")

    assert draft.table_number == 3
    assert draft.user_email == "diner@example.com"
    assert draft.total == Decimal("250")
    assert draft.payment_status == PaymentStatus.PENDING
    assert draft.cooking_instructions == "Less spicy"
    assert draft.items[0].customizations == {"Cheese": ["Swiss"]}


def test_to_order_draft_requires_lines_and_table(cart):
    with pytest.raises(ValueError):
        cart.to_order_draft(user_email="diner@example.com")

    cart.add_item(BURGER)
    with pytest.raises(ValueError):
        cart.to_order_draft(user_email="diner@example.com")
