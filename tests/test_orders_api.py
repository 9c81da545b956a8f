from decimal import Decimal

from tableorder.cart import Cart
from tableorder.schemas import MenuItemResponse
from tests.conftest import order_payload


def test_create_order_defaults_to_pending(client, ledger_task):
    response = client.post("/api/orders", json=order_payload())

    assert response.status_code == 201
    order = response.json()
    assert order["status"] == "pending"
    assert order["paymentStatus"] == "pending"
    assert order["tableNumber"] == 4
    assert order["total"] == 25.98
    assert order["items"] == [
        {"menuItemId": 1, "quantity": 2, "customizations": {"Cheese": ["Swiss"]}}
    ]

    assert len(ledger_task.payloads) == 1
    record = ledger_task.payloads[0]
    assert record["order_id"] == order["id"]
    assert record["items"] == "2x Classic Burger (Cheese: Swiss)"


def test_create_order_keeps_explicit_payment_status(client):
    response = client.post(
        "/api/orders",
        json=order_payload(paymentStatus="paid", paymentMethod="upi"),
    )

    assert response.status_code == 201
    assert response.json()["status"] == "pending"
    assert response.json()["paymentStatus"] == "paid"
    assert response.json()["paymentMethod"] == "upi"


def test_create_order_ignores_client_supplied_status(client):
    response = client.post("/api/orders", json=order_payload(status="completed"))

    assert response.status_code == 201
    assert response.json()["status"] == "pending"


def test_create_order_rejects_bad_shape(client):
    payload = order_payload()
    del payload["tableNumber"]

    response = client.post("/api/orders", json=payload)

    assert response.status_code == 400
    body = response.json()
    assert body["success"] is False
    assert "tableNumber" in body["detail"]


def test_create_order_requires_contact(client):
    payload = order_payload()
    del payload["userEmail"]

    response = client.post("/api/orders", json=payload)
    assert response.status_code == 400

    response = client.post("/api/orders", json=dict(payload, mobileNumber="98765 43210"))
    assert response.status_code == 201
    assert response.json()["mobileNumber"] == "9876543210"


def test_create_order_accepts_float_summed_total(client):
    # What a browser gets from 12.99 * 1 + 9.99 * 5
    total = 0 + 12.99 * 1 + 9.99 * 5
    assert total != 62.94

    response = client.post(
        "/api/orders",
        json=order_payload(
            items=[
                {"menuItemId": 1, "quantity": 1, "customizations": {}},
                {"menuItemId": 2, "quantity": 5, "customizations": {}},
            ],
            total=total,
        ),
    )

    assert response.status_code == 201
    assert response.json()["total"] == 62.94


def test_create_order_accepts_large_quantities(client):
    response = client.post(
        "/api/orders",
        json=order_payload(
            items=[{"menuItemId": 2, "quantity": 100, "customizations": {}}],
            total=999.0,
        ),
    )

    assert response.status_code == 201
    assert response.json()["items"][0]["quantity"] == 100


def test_create_order_rejects_empty_items(client):
    response = client.post("/api/orders", json=order_payload(items=[]))

    assert response.status_code == 400


def test_total_is_stored_as_submitted_with_stale_prices(admin_client):
    menu = [MenuItemResponse.model_validate(i) for i in admin_client.get("/api/menu").json()]
    burger = next(i for i in menu if i.id == 1)
    salad = next(i for i in menu if i.id == 2)

    cart = Cart(notifier=lambda message: None)
    cart.set_table_number(9)
    cart.add_item(burger.model_copy(update={"price": Decimal("100")}), quantity=2)
    cart.add_item(salad.model_copy(update={"price": Decimal("50")}), quantity=1)
    assert cart.subtotal == Decimal("250")

    # Price changes server-side between add-to-cart and checkout
    response = admin_client.patch("/api/menu/1", json={"price": 15.5})
    assert response.status_code == 200

    draft = cart.to_order_draft(user_email="diner@example.com")
    response = admin_client.post(
        "/api/orders",
        json=draft.model_dump(mode="json", by_alias=True, exclude_none=True),
    )

    assert response.status_code == 201
    assert response.json()["total"] == 250


def test_list_orders_newest_first(client):
    first = client.post("/api/orders", json=order_payload()).json()
    second = client.post("/api/orders", json=order_payload(tableNumber=5)).json()

    response = client.get("/api/orders")

    assert response.status_code == 200
    assert [o["id"] for o in response.json()] == [second["id"], first["id"]]


def test_list_orders_filters_by_status(client):
    first = client.post("/api/orders", json=order_payload()).json()
    client.post("/api/orders", json=order_payload())
    client.post(f"/api/orders/{first['id']}/status", json={"status": "completed"})

    response = client.get("/api/orders", params={"status": "completed"})
    assert [o["id"] for o in response.json()] == [first["id"]]

    response = client.get("/api/orders", params={"status": "delivered"})
    assert response.status_code == 400


def test_get_order(client):
    created = client.post("/api/orders", json=order_payload()).json()

    assert client.get(f"/api/orders/{created['id']}").json()["id"] == created["id"]
    assert client.get("/api/orders/999").status_code == 404


def test_update_status_to_completed(client):
    created = client.post("/api/orders", json=order_payload()).json()

    response = client.post(f"/api/orders/{created['id']}/status", json={"status": "completed"})

    assert response.status_code == 200
    assert response.json()["status"] == "completed"


def test_update_status_accepts_in_progress(client):
    created = client.post("/api/orders", json=order_payload()).json()

    response = client.post(f"/api/orders/{created['id']}/status", json={"status": "in progress"})

    assert response.json()["status"] == "in progress"


def test_update_status_unknown_order_is_not_found(client):
    response = client.post("/api/orders/999/status", json={"status": "completed"})

    assert response.status_code == 404
    assert response.json()["success"] is False


def test_update_status_rejects_invalid_targets(client):
    created = client.post("/api/orders", json=order_payload()).json()

    for status in ("pending", "shipped"):
        response = client.post(f"/api/orders/{created['id']}/status", json={"status": status})
        assert response.status_code == 400


def test_no_transition_graph_is_enforced(client):
    created = client.post("/api/orders", json=order_payload()).json()
    url = f"/api/orders/{created['id']}/status"

    client.post(url, json={"status": "cancelled"})
    response = client.post(url, json={"status": "in progress"})

    assert response.json()["status"] == "in progress"


def test_update_payment_status_overwrites(admin_client):
    created = admin_client.post("/api/orders", json=order_payload()).json()
    url = f"/api/orders/{created['id']}/payment-status"

    assert admin_client.post(url, json={"status": "paid"}).json()["paymentStatus"] == "paid"
    assert admin_client.post(url, json={"status": "paid"}).json()["paymentStatus"] == "paid"
    assert admin_client.post(url, json={"status": "pending"}).json()["paymentStatus"] == "pending"
    assert admin_client.post(url, json={"status": "refunded"}).status_code == 400
    assert admin_client.post("/api/orders/999/payment-status", json={"status": "paid"}).status_code == 404


def test_update_payment_status_requires_admin(client):
    created = client.post("/api/orders", json=order_payload()).json()
    url = f"/api/orders/{created['id']}/payment-status"

    assert client.post(url, json={"status": "paid"}).status_code == 401

    client.post("/api/login", json={"mobile": "9876543210", "name": "Asha"})
    assert client.post(url, json={"status": "paid"}).status_code == 403

    assert client.get(f"/api/orders/{created['id']}").json()["paymentStatus"] == "pending"


def test_user_orders(client):
    mine = client.post("/api/orders", json=order_payload(userEmail="Me@Example.com")).json()
    client.post("/api/orders", json=order_payload(userEmail="other@example.com"))

    response = client.get("/api/users/me@example.com/orders")

    assert response.status_code == 200
    assert [o["id"] for o in response.json()] == [mine["id"]]


def test_unavailable_items_can_be_ordered(client):
    client.post("/api/menu/1/availability", json={"isAvailable": False})

    response = client.post("/api/orders", json=order_payload())

    assert response.status_code == 201


def test_ledger_queue_failure_does_not_fail_order(client, monkeypatch):
    class BrokenTask:
        def delay(self, payload):
            raise ConnectionError("broker down")

    monkeypatch.setattr("tableorder.main.append_order_to_ledger", BrokenTask())

    response = client.post("/api/orders", json=order_payload())

    assert response.status_code == 201
