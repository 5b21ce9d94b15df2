from typing import Optional

import httpx

from app.core.config import Settings, get_settings
from app.models.payment import PaymentProvider
from .base import CallbackResult, CallbackUrls, PaymentGateway, PaymentRedirect
from .momo import MomoConfig, MomoGateway
from .vnpay import VNPayConfig, VNPayGateway


def build_gateways(settings: Settings,
                   transport: Optional[httpx.AsyncBaseTransport] = None) -> dict[PaymentProvider, PaymentGateway]:
    """Adapters get their secrets here, once; nothing downstream reads the environment."""
    momo = MomoGateway(
        MomoConfig(
            partner_code=settings.MOMO_PARTNER_CODE,
            access_key=settings.MOMO_ACCESS_KEY,
            secret_key=settings.MOMO_SECRET_KEY.get_secret_value(),
            endpoint=settings.MOMO_ENDPOINT,
            partner_name=settings.MOMO_PARTNER_NAME,
            store_id=settings.MOMO_STORE_ID,
            lang=settings.MOMO_LANG,
            timeout_seconds=settings.GATEWAY_TIMEOUT_SECONDS,
            min_amount=settings.GATEWAY_MIN_AMOUNT,
        ),
        transport=transport,
    )
    vnpay = VNPayGateway(
        VNPayConfig(
            tmn_code=settings.VNPAY_TMN_CODE,
            hash_secret=settings.VNPAY_HASH_SECRET.get_secret_value(),
            pay_url=settings.VNPAY_URL,
            locale=settings.VNPAY_LOCALE,
            expire_minutes=settings.VNPAY_EXPIRE_MINUTES,
            min_amount=settings.GATEWAY_MIN_AMOUNT,
        )
    )
    return {momo.provider: momo, vnpay.provider: vnpay}


_gateways: dict[PaymentProvider, PaymentGateway] | None = None


def get_gateways() -> dict[PaymentProvider, PaymentGateway]:
    """FastAPI dependency; tests override it with adapters on a mock transport."""
    global _gateways
    if _gateways is None:
        _gateways = build_gateways(get_settings())
    return _gateways


__all__ = [
    "CallbackResult", "CallbackUrls", "PaymentGateway", "PaymentRedirect",
    "MomoConfig", "MomoGateway", "VNPayConfig", "VNPayGateway",
    "build_gateways", "get_gateways",
]
