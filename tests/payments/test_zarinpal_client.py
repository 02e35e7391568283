import json
from decimal import Decimal

import httpx
import pytest

from application.dtos.payments import PaymentRequest
from domain.common.exceptions import (
    PaymentGatewayError,
    PaymentRecoverableError,
    PaymentVerificationMismatch,
)
from infrastructure.external.payments.zarinpal_client import ZarinpalClient


def _client(handler):
    client = ZarinpalClient(merchant_id="m", sandbox=True, transport=httpx.MockTransport(handler))
    client._retry_cfg = {"max": 1, "base": 0.01}
    return client


def _payment_request(amount="100000"):
    return PaymentRequest(
        amount=Decimal(amount),
        description="Enrollment in course: Async Python",
        callback_url="http://backend.test/api/v1/enrollments/verify",
        email="sara@example.com",
    )


@pytest.mark.asyncio
async def test_request_payment_sends_rial_amount():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"data": {"code": 100, "authority": "A0000000001"}, "errors": []})

    client = _client(handler)
    result = await client.request_payment(_payment_request())
    await client.aclose()

    assert seen["url"] == "https://sandbox.zarinpal.com/pg/v4/payment/request.json"
    assert seen["body"]["merchant_id"] == "m"
    assert seen["body"]["amount"] == 1_000_000
    assert seen["body"]["metadata"] == {"email": "sara@example.com"}
    assert result.authority == "A0000000001"
    assert result.payment_url == "https://sandbox.zarinpal.com/pg/StartPay/A0000000001"


@pytest.mark.asyncio
async def test_request_payment_error_code():
    def handler(request):
        return httpx.Response(200, json={"data": [], "errors": {"code": -10, "message": "Terminal is not valid"}})

    client = _client(handler)
    with pytest.raises(PaymentGatewayError) as exc:
        await client.request_payment(_payment_request())
    assert exc.value.provider_code == "-10"
    assert not isinstance(exc.value, PaymentRecoverableError)


@pytest.mark.asyncio
@pytest.mark.parametrize("code, already", [(100, False), (101, True)])
async def test_verify_success_codes(code, already):
    def handler(request):
        body = json.loads(request.content)
        assert body == {"merchant_id": "m", "amount": 1_500_000, "authority": "A1"}
        return httpx.Response(200, json={
            "data": {"code": code, "ref_id": 201, "card_pan": "502229******5995", "card_hash": "abc"},
            "errors": [],
        })

    result = await _client(handler).verify_payment("A1", Decimal("150000"))
    assert result.ref_id == "201"
    assert result.card_pan == "502229******5995"
    assert result.already_verified is already


@pytest.mark.asyncio
async def test_verify_amount_mismatch():
    def handler(request):
        return httpx.Response(200, json={"data": [], "errors": {"code": -50, "message": "Session is not valid, amounts values is not the same."}})

    with pytest.raises(PaymentVerificationMismatch) as exc:
        await _client(handler).verify_payment("A1", Decimal("100000"))
    assert exc.value.provider_code == "-50"


@pytest.mark.asyncio
async def test_verify_not_paid_is_terminal():
    def handler(request):
        return httpx.Response(200, json={"data": [], "errors": {"code": -51}})

    with pytest.raises(PaymentGatewayError) as exc:
        await _client(handler).verify_payment("A1", Decimal("100000"))
    assert exc.value.provider_code == "-51"
    assert exc.value.message == "session is not paid"


@pytest.mark.asyncio
async def test_timeout_is_recoverable():
    calls = []

    def handler(request):
        calls.append(request)
        raise httpx.ReadTimeout("timed out", request=request)

    with pytest.raises(PaymentRecoverableError):
        await _client(handler).verify_payment("A1", Decimal("100000"))
    # one retry configured
    assert len(calls) == 2


@pytest.mark.asyncio
async def test_server_error_is_recoverable():
    def handler(request):
        return httpx.Response(502, text="bad gateway")

    with pytest.raises(PaymentRecoverableError):
        await _client(handler).request_payment(_payment_request())


def test_missing_merchant_id_is_rejected():
    with pytest.raises(RuntimeError):
        ZarinpalClient(merchant_id=None)
