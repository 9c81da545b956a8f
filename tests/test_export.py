import csv
import io
from datetime import datetime

import pytest
from filelock import Timeout

from tableorder.services.export import EXPORT_COLUMNS, export_filename, summarize_line
from tableorder.services.ledger import LEDGER_COLUMNS, OrderLedger
from tableorder.tasks import LedgerBusy, append_order_to_ledger
from tests.conftest import order_payload


class Named:
    def __init__(self, name):
        self.name = name


def test_summarize_line():
    catalog = {1: Named("Classic Burger")}
    line = {
        "menuItemId": 1,
        "quantity": 2,
        "customizations": {"Toppings": ["Lettuce", "Onion"], "Cheese": ["Swiss"]},
    }

    assert summarize_line(line, catalog) == "2x Classic Burger (Cheese: Swiss; Toppings: Lettuce, Onion)"
    assert summarize_line({"menuItemId": 7, "quantity": 1}, catalog) == "1x Item #7"


def test_export_filename():
    assert export_filename(datetime(2026, 3, 9, 20, 15)) == "orders-2026-03-09.csv"


def test_csv_export(admin_client):
    admin_client.post("/api/orders", json=order_payload())
    admin_client.post(
        "/api/orders",
        json=order_payload(
            tableNumber=6,
            items=[
                {"menuItemId": 2, "quantity": 1, "customizations": {}},
                {"menuItemId": 1, "quantity": 1, "customizations": {"Cheese": "Cheddar"}},
            ],
            total=22.98,
        ),
    )

    response = admin_client.get("/api/orders/export/csv")

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/csv")
    assert "attachment" in response.headers["content-disposition"]
    assert "orders-" in response.headers["content-disposition"]

    rows = list(csv.DictReader(io.StringIO(response.text)))
    assert list(rows[0].keys()) == EXPORT_COLUMNS
    assert [row["table_number"] for row in rows] == ["6", "4"]
    assert rows[0]["items"] == "1x Caesar Salad | 1x Classic Burger (Cheese: Cheddar)"
    assert rows[1]["items"] == "2x Classic Burger (Cheese: Swiss)"
    assert rows[1]["status"] == "pending"


def test_csv_export_with_no_orders(admin_client):
    response = admin_client.get("/api/orders/export/csv")

    assert response.status_code == 200
    assert response.text.strip() == ",".join(EXPORT_COLUMNS)


def test_csv_export_requires_admin(client):
    client.post("/api/orders", json=order_payload())

    assert client.get("/api/orders/export/csv").status_code == 401

    client.post("/api/login", json={"mobile": "9876543210", "name": "Asha"})
    response = client.get("/api/orders/export/csv")

    assert response.status_code == 403
    assert "diner@example.com" not in response.text


@pytest.fixture()
def ledger(tmp_path):
    return OrderLedger(path=tmp_path / "ledger.xlsx", lock_timeout=1)


def record(order_id):
    return {
        "order_id": order_id,
        "created_at": "2026-01-01T12:00:00",
        "table_number": 4,
        "items": "2x Classic Burger",
        "total": 25.98,
        "status": "pending",
        "payment_status": "pending",
    }


def test_ledger_appends_rows(ledger):
    assert ledger.read_all() == []

    assert ledger.append_order(record(1))["success"] is True
    assert ledger.append_order(record(2))["success"] is True

    rows = ledger.read_all()
    assert [row["order_id"] for row in rows] == [1, 2]
    assert set(rows[0]) == set(LEDGER_COLUMNS)


def test_ledger_lock_timeout_is_reported(ledger, monkeypatch):
    class HeldLock:
        def __init__(self, path, timeout):
            self.path = path

        def __enter__(self):
            raise Timeout(self.path)

        def __exit__(self, *exc):
            return False

    monkeypatch.setattr("tableorder.services.ledger.FileLock", HeldLock)

    result = ledger.append_order(record(1))

    assert result["success"] is False
    assert "Lock timeout" in result["message"]


def test_ledger_clear(ledger):
    ledger.append_order(record(1))

    assert ledger.clear() is True
    assert ledger.read_all() == []


def test_ledger_task_writes_configured_file():
    OrderLedger().clear()

    result = append_order_to_ledger.apply(args=[record(5)]).get()

    assert result["success"] is True
    assert result["order_id"] == 5
    assert [row["order_id"] for row in OrderLedger().read_all()] == [5]


def test_ledger_task_raises_when_busy(monkeypatch):
    monkeypatch.setattr(
        "tableorder.tasks.OrderLedger.append_order",
        lambda self, rec: {"success": False, "message": "Lock timeout (30s)", "order_id": 1},
    )

    outcome = append_order_to_ledger.apply(args=[record(1)], throw=False)

    assert outcome.failed()
    assert isinstance(outcome.result, LedgerBusy)
