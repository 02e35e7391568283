"""
Factory for payment gateway clients.
"""
from __future__ import annotations

from typing import Callable, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from core.settings import payment_settings
from application.ports.payment_gateway import PaymentGateway


def get_payment_gateway(
    provider: Optional[str] = None,
    session_factory: Optional[Callable[[], AsyncSession]] = None,
) -> PaymentGateway:
    name = (provider or payment_settings.default_provider).lower()
    if name == "zarinpal":
        from .zarinpal_client import ZarinpalClient
        return ZarinpalClient()
    if name in {"simulator", "sim", "test"}:
        from .simulator_client import SimulatedPaymentGateway
        if session_factory is None:
            from infrastructure.database import AsyncSessionLocal
            session_factory = AsyncSessionLocal
        return SimulatedPaymentGateway(session_factory)
    raise ValueError(f"Unsupported payment provider: {name}")
