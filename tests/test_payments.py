import asyncio
import json

import httpx
import pytest

from tableorder.core.config import get_settings
from tableorder.services.payment import (
    GatewayPaymentService,
    MockPaymentService,
    get_payment_service,
)


def test_upi_verify_success_envelope(client):
    response = client.post("/api/payments/upi/verify", json={"orderId": 42})

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "success"
    assert body["responseCode"] == "00"
    assert body["transactionId"].startswith("TXN_")
    assert body["approvalRefNo"].startswith("REF_")


def test_upi_verify_keeps_supplied_transaction_id(client):
    response = client.post(
        "/api/payments/upi/verify",
        json={"orderId": "42", "transactionId": "T2601011200"},
    )

    assert response.json()["transactionId"] == "T2601011200"


def test_upi_verify_failure_is_400(client):
    get_payment_service().failure_rate = 1.0

    response = client.post("/api/payments/upi/verify", json={"orderId": "42"})

    assert response.status_code == 400
    body = response.json()
    assert body["status"] == "failure"
    assert body["message"]


def test_upi_verify_requires_order_id(client):
    assert client.post("/api/payments/upi/verify", json={}).status_code == 400


def test_mock_service_is_used_in_development():
    assert isinstance(get_payment_service(), MockPaymentService)


@pytest.fixture()
def gateway_settings(monkeypatch):
    settings = get_settings()
    monkeypatch.setattr(settings, "upi_gateway_url", "https://gateway.test/")
    monkeypatch.setattr(settings, "upi_gateway_api_key", "key_123")
    return settings


def gateway(handler) -> GatewayPaymentService:
    return GatewayPaymentService(transport=httpx.MockTransport(handler))


def test_gateway_requires_url(monkeypatch):
    monkeypatch.setattr(get_settings(), "upi_gateway_url", None)

    with pytest.raises(ValueError):
        GatewayPaymentService()


def test_gateway_success(gateway_settings):
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["auth"] = request.headers["Authorization"]
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={
            "status": "success",
            "transactionId": "T1",
            "responseCode": "00",
            "approvalRefNo": "R1",
        })

    result = asyncio.run(gateway(handler).verify_upi_payment("42"))

    assert result.success is True
    assert result.approval_ref_no == "R1"
    assert seen["url"] == "https://gateway.test/transactions/verify"
    assert seen["auth"] == "Bearer key_123"
    assert seen["body"] == {"orderId": "42", "transactionId": None}


def test_gateway_declined(gateway_settings):
    def handler(request):
        return httpx.Response(200, json={"status": "failure", "responseCode": "U30", "message": "Debit failed"})

    result = asyncio.run(gateway(handler).verify_upi_payment("42", "T9"))

    assert result.success is False
    assert result.response_code == "U30"
    assert result.error_message == "Debit failed"
    assert result.transaction_id == "T9"


def test_gateway_http_error(gateway_settings):
    def handler(request):
        return httpx.Response(502, text="bad gateway")

    result = asyncio.run(gateway(handler).verify_upi_payment("42"))

    assert result.success is False
    assert result.response_code == "502"


def test_gateway_unreachable(gateway_settings):
    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    service = gateway(handler)

    assert asyncio.run(service.verify_upi_payment("42")).success is False
    assert asyncio.run(service.health_check()) is False
