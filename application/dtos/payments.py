"""
Payment gateway DTOs (Pydantic v2) used at the gateway port boundary.

Amounts are domain currency units; adapters convert to provider units.
"""
from __future__ import annotations

from decimal import Decimal
from typing import Optional
from pydantic import BaseModel, Field
from pydantic.types import condecimal


class PaymentRequest(BaseModel):
    amount: condecimal(gt=0)  # type: ignore[valid-type]
    description: str
    callback_url: str
    email: Optional[str] = None
    mobile: Optional[str] = None


class PaymentRequestResult(BaseModel):
    authority: str
    payment_url: str
    provider: str


class PaymentVerification(BaseModel):
    authority: str
    ref_id: str
    provider: str
    card_pan: Optional[str] = None
    card_hash: Optional[str] = None
    already_verified: bool = False


class SimulatedPaymentResult(BaseModel):
    authority: str
    ref_id: str
    verify_url: str = Field(description="Callback URL the browser would be sent to")
    amount: Optional[Decimal] = None
