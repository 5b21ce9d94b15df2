from datetime import datetime
from typing import Optional
from pydantic import BaseModel

from app.models.payment import PaymentProvider, PaymentStatus


class PaymentResponse(BaseModel):
    id: int
    booking_id: int
    order_id: str
    request_id: Optional[str] = None
    amount: int
    provider: PaymentProvider
    status: PaymentStatus
    pay_url: Optional[str] = None
    transaction_id: Optional[str] = None
    result_code: Optional[int] = None
    message: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class PaymentRedirectResponse(BaseModel):
    provider: PaymentProvider
    order_id: str
    amount: int
    pay_url: str
    qr_code_url: Optional[str] = None
    deeplink: Optional[str] = None

    class Config:
        from_attributes = True


class GatewayConfigResponse(BaseModel):
    tmn_code: str
    pay_url: str
    return_url: str
    ipn_url: str
    hash_secret_configured: bool
