"""
ZarinPal REST v4 adapter over httpx.

Protocol notes:
- ``POST {api}/request.json`` returns ``data.authority``; the browser is sent to
  ``{start_pay}/{authority}``.
- ``POST {api}/verify.json`` returns ``data.ref_id``; code 101 means the
  session had already been verified.
- Amounts are sent in Rial; domain amounts are Toman.
- A non-success response puts ``errors.code`` (negative) in the body, with
  ``data`` empty.
"""
from __future__ import annotations

from decimal import Decimal
from typing import Any, Optional

import httpx

from application.dtos.payments import (
    PaymentRequest,
    PaymentRequestResult,
    PaymentVerification,
)
from core.config import settings
from core.settings import payment_settings
from domain.common.exceptions import (
    PaymentGatewayError,
    PaymentRecoverableError,
    PaymentVerificationMismatch,
)
from infrastructure.external.payments.base import BasePaymentClient
from shared.codes.payment_codes import (
    ZARINPAL_AMOUNT_MISMATCH_CODES,
    ZARINPAL_ERROR_MESSAGES,
    ZARINPAL_SUCCESS_CODES,
)


class ZarinpalClient(BasePaymentClient):
    provider = "zarinpal"

    def __init__(
        self,
        *,
        merchant_id: Optional[str] = None,
        sandbox: Optional[bool] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        cfg = payment_settings.zarinpal
        super().__init__(
            timeouts=payment_settings.timeouts.model_dump(),
            retry={"max": payment_settings.retry.max, "base": payment_settings.retry.base_backoff},
            transport=transport,
        )
        self.merchant_id = merchant_id or cfg.merchant_id
        if not self.merchant_id:
            raise RuntimeError("ZARINPAL__MERCHANT_ID not configured")
        if sandbox is None:
            # Production always talks to the live host
            sandbox = cfg.sandbox and not settings.is_production
        self.sandbox = sandbox
        self.api_base = (cfg.sandbox_api_base if sandbox else cfg.api_base).rstrip("/")
        self.start_pay_url = (cfg.sandbox_start_pay_url if sandbox else cfg.start_pay_url).rstrip("/")
        self.amount_multiplier = cfg.amount_multiplier

    async def _post(self, path: str, payload: dict[str, Any], *, operation: str) -> dict[str, Any]:
        async def _call():
            async with self.client() as c:
                resp = await c.post(
                    f"{self.api_base}/{path}",
                    json=payload,
                    headers={"Accept": "application/json"},
                )
                return resp

        try:
            resp = await self._retry(_call)
        except (httpx.TimeoutException, httpx.TransportError) as exc:
            raise PaymentRecoverableError(
                f"ZarinPal {operation} unreachable: {exc.__class__.__name__}",
                provider=self.provider,
            ) from exc

        if resp.status_code >= 500:
            raise PaymentRecoverableError(
                f"ZarinPal {operation} returned HTTP {resp.status_code}",
                provider=self.provider,
                provider_code=str(resp.status_code),
            )
        try:
            body = resp.json()
        except ValueError as exc:
            raise PaymentGatewayError(
                f"ZarinPal {operation} returned a non-JSON body",
                provider=self.provider,
                provider_code=str(resp.status_code),
            ) from exc
        return body if isinstance(body, dict) else {}

    @staticmethod
    def _result_code(body: dict[str, Any]) -> Optional[int]:
        data = body.get("data")
        if isinstance(data, dict) and data.get("code") is not None:
            return int(data["code"])
        errors = body.get("errors")
        if isinstance(errors, dict) and errors.get("code") is not None:
            return int(errors["code"])
        return None

    def _error_message(self, code: Optional[int], body: dict[str, Any]) -> str:
        errors = body.get("errors")
        if isinstance(errors, dict) and errors.get("message"):
            return str(errors["message"])
        return ZARINPAL_ERROR_MESSAGES.get(code, f"ZarinPal error: {code}")

    async def request_payment(self, req: PaymentRequest) -> PaymentRequestResult:  # type: ignore[override]
        amount = self._to_gateway_amount(req.amount)
        metadata = {k: v for k, v in {"email": req.email, "mobile": req.mobile}.items() if v}
        payload = {
            "merchant_id": self.merchant_id,
            "amount": amount,
            "callback_url": req.callback_url,
            "description": req.description,
            "metadata": metadata,
        }
        body = await self._post("request.json", payload, operation="request")
        code = self._result_code(body)
        data = body.get("data") if isinstance(body.get("data"), dict) else {}
        if code != 100 or not data.get("authority"):
            raise PaymentGatewayError(
                self._error_message(code, body),
                provider=self.provider,
                provider_code=str(code) if code is not None else None,
            )
        authority = str(data["authority"])
        self._log("gateway_payment_requested", authority=authority, amount_minor=amount, sandbox=self.sandbox)
        return PaymentRequestResult(
            authority=authority,
            payment_url=f"{self.start_pay_url}/{authority}",
            provider=self.provider,
        )

    async def verify_payment(self, authority: str, amount: Decimal) -> PaymentVerification:  # type: ignore[override]
        amount_minor = self._to_gateway_amount(amount)
        payload = {
            "merchant_id": self.merchant_id,
            "amount": amount_minor,
            "authority": authority,
        }
        body = await self._post("verify.json", payload, operation="verify")
        code = self._result_code(body)
        data = body.get("data") if isinstance(body.get("data"), dict) else {}

        if code in ZARINPAL_SUCCESS_CODES and data.get("ref_id") is not None:
            self._log("gateway_payment_verified", authority=authority, code=code, ref_id=data.get("ref_id"))
            return PaymentVerification(
                authority=authority,
                ref_id=str(data["ref_id"]),
                provider=self.provider,
                card_pan=data.get("card_pan"),
                card_hash=data.get("card_hash"),
                already_verified=code == 101,
            )
        if code in ZARINPAL_AMOUNT_MISMATCH_CODES:
            raise PaymentVerificationMismatch(
                self._error_message(code, body),
                provider=self.provider,
                provider_code=str(code),
                details={"authority": authority, "amount_minor": amount_minor},
            )
        raise PaymentGatewayError(
            self._error_message(code, body),
            provider=self.provider,
            provider_code=str(code) if code is not None else None,
            details={"authority": authority},
        )
