import asyncio
import os
import re
import tempfile
from datetime import timedelta
from pathlib import Path

import pytest

# Settings are read at import time, so the environment must be in place first
_TMP_DIR = Path(tempfile.mkdtemp(prefix="tableorder-tests-"))
DB_FILE = _TMP_DIR / "test.db"

os.environ["ENV_MODE"] = "development"
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{DB_FILE}"
os.environ["REDIS_URL"] = "redis://localhost:6379/15"
os.environ["CELERY_TASK_ALWAYS_EAGER"] = "true"
os.environ["DATA_DIRECTORY"] = str(_TMP_DIR / "data")
os.environ["MOCK_NOTIFICATION_FAILURE_RATE"] = "0"
os.environ["MOCK_PAYMENT_FAILURE_RATE"] = "0"
os.environ["MOCK_MIN_LATENCY"] = "0"
os.environ["MOCK_MAX_LATENCY"] = "0"
os.environ["SEED_MENU"] = "true"
os.environ["ADMIN_EMAIL"] = "admin@restaurant.com"
os.environ["ADMIN_PASSWORD"] = "admin123"

from fastapi.testclient import TestClient  # noqa: E402

from tableorder.database import async_session_maker, init_db  # noqa: E402
from tableorder.main import app  # noqa: E402
from tableorder.services.notifications import get_notification_service, reset_notification_service  # noqa: E402
from tableorder.services.otp import reset_otp_service  # noqa: E402
from tableorder.services.payment import reset_payment_service  # noqa: E402
from tableorder.services.rate_limit import reset_login_limiter  # noqa: E402

ADMIN_CREDENTIALS = {"email": "admin@restaurant.com", "password": "admin123"}
OTP_PATTERN = re.compile(r"OTP for .* is: (\d+)")


class DummyTask:
    """Stands in for a Celery task; records what would have been queued."""

    def __init__(self):
        self.payloads = []

    def delay(self, payload):
        self.payloads.append(payload)


class FakeClock:
    def __init__(self, start):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


@pytest.fixture(autouse=True)
def fresh_state():
    """Empty database file and fresh process-local services for every test."""
    if DB_FILE.exists():
        DB_FILE.unlink()
    reset_notification_service()
    reset_otp_service()
    reset_login_limiter()
    reset_payment_service()
    yield


@pytest.fixture()
def ledger_task(monkeypatch):
    task = DummyTask()
    monkeypatch.setattr("tableorder.main.append_order_to_ledger", task)
    return task


@pytest.fixture()
def client(ledger_task):
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture()
def admin_client(client):
    response = client.post("/api/admin/login", json=ADMIN_CREDENTIALS)
    assert response.status_code == 200
    return client


@pytest.fixture()
def outbox():
    """Messages captured by the mock notification service."""
    return get_notification_service()


def read_otp(notifier, recipient: str) -> str:
    message = notifier.last_message_to(recipient)
    assert message is not None, f"no message sent to {recipient}"
    return OTP_PATTERN.search(message["body"]).group(1)


@pytest.fixture()
def run_db():
    """Run ``fn(session)`` against a freshly created schema."""

    def runner(fn):
        async def main():
            await init_db()
            async with async_session_maker() as session:
                return await fn(session)

        return asyncio.run(main())

    return runner


def order_payload(**overrides):
    payload = {
        "userEmail": "diner@example.com",
        "customerName": "Diner",
        "tableNumber": 4,
        "items": [
            {"menuItemId": 1, "quantity": 2, "customizations": {"Cheese": ["Swiss"]}},
        ],
        "total": 25.98,
    }
    payload.update(overrides)
    return payload
