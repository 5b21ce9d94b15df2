import hashlib
import hmac
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Mapping, Optional
from urllib.parse import quote

from app.core.exceptions import GatewayError
from app.models.payment import PaymentProvider
from app.services.gateways.base import CallbackResult, CallbackUrls, PaymentGateway, PaymentRedirect, field_text

logger = logging.getLogger(__name__)

VNPAY_VERSION = "2.1.0"
VNPAY_COMMAND = "pay"
VNPAY_CURRENCY = "VND"
VNPAY_ORDER_TYPE = "other"
VNPAY_TIMEZONE = timezone(timedelta(hours=7))
VNPAY_DATE_FORMAT = "%Y%m%d%H%M%S"
SIGNATURE_FIELDS = ("vnp_SecureHash", "vnp_SecureHashType")
# characters encodeURIComponent leaves alone
UNRESERVED = "-_.!~*'()"


@dataclass(frozen=True)
class VNPayConfig:
    tmn_code: str
    hash_secret: str = field(repr=False)
    pay_url: str
    locale: str = "vn"
    expire_minutes: int = 15
    min_amount: int = 1000


def build_sign_data(params: Mapping[str, Any]) -> str:
    """Sorted by key, empty values dropped, each value percent-encoded."""
    return "&".join(
        f"{key}={quote(str(params[key]), safe=UNRESERVED)}"
        for key in sorted(params)
        if params[key] not in ("", None)
    )


class VNPayGateway(PaymentGateway):
    """Hosted-page provider: the browser is sent to a signed URL, no API call is made."""
    provider = PaymentProvider.VNPAY

    def __init__(self, config: VNPayConfig, clock: Optional[Callable[[], datetime]] = None):
        self.config = config
        self.min_amount = config.min_amount
        self._clock = clock or (lambda: datetime.now(VNPAY_TIMEZONE))

    def callback_urls(self, public_base_url: str) -> CallbackUrls:
        base = public_base_url.rstrip("/")
        return CallbackUrls(
            redirect_url=f"{base}/api/v1/payment/vnpay/return",
            ipn_url=f"{base}/api/v1/payment/vnpay/ipn",
        )

    def sign(self, params: Mapping[str, Any]) -> str:
        sign_data = build_sign_data(params)
        return hmac.new(self.config.hash_secret.encode("utf-8"), sign_data.encode("utf-8"),
                        hashlib.sha512).hexdigest().upper()

    def build_params(self, order_id: str, amount: int, description: str,
                     return_url: str, client_ip: str) -> dict:
        created = self._clock().astimezone(VNPAY_TIMEZONE)
        expires = created + timedelta(minutes=self.config.expire_minutes)
        return {
            "vnp_Version": VNPAY_VERSION,
            "vnp_Command": VNPAY_COMMAND,
            "vnp_TmnCode": self.config.tmn_code,
            "vnp_Amount": amount * 100,
            "vnp_CurrCode": VNPAY_CURRENCY,
            "vnp_TxnRef": order_id,
            "vnp_OrderInfo": description,
            "vnp_OrderType": VNPAY_ORDER_TYPE,
            "vnp_Locale": self.config.locale,
            "vnp_ReturnUrl": return_url,
            "vnp_IpAddr": client_ip,
            "vnp_CreateDate": created.strftime(VNPAY_DATE_FORMAT),
            "vnp_ExpireDate": expires.strftime(VNPAY_DATE_FORMAT),
        }

    def build_payment_url(self, params: Mapping[str, Any]) -> str:
        return f"{self.config.pay_url}?{build_sign_data(params)}&vnp_SecureHash={self.sign(params)}"

    async def create_payment_request(self, order_id: str, amount: int, description: str,
                                     callback_urls: CallbackUrls, client_ip: str = "127.0.0.1",
                                     extra_data: str = "") -> PaymentRedirect:
        self.check_amount(amount)
        if not self.config.tmn_code or not self.config.hash_secret:
            raise GatewayError(self.provider.value, "gateway is not configured")

        params = self.build_params(order_id, amount, description, callback_urls.redirect_url, client_ip)
        logger.info(f"Built VNPay payment URL for order {order_id} amount {amount}")
        return PaymentRedirect(
            provider=self.provider,
            order_id=order_id,
            amount=amount,
            pay_url=self.build_payment_url(params),
            request_id=params["vnp_CreateDate"],
        )

    def verify_callback_signature(self, payload: Mapping[str, Any]) -> bool:
        received = payload.get("vnp_SecureHash")
        if not received or not self.config.hash_secret:
            return False
        unsigned = {key: value for key, value in payload.items() if key not in SIGNATURE_FIELDS}
        return hmac.compare_digest(str(received).upper(), self.sign(unsigned))

    def parse_callback(self, payload: Mapping[str, Any]) -> CallbackResult:
        order_id = field_text(payload, "vnp_TxnRef")
        if not order_id:
            raise ValueError("vnp_TxnRef missing")
        response_code = field_text(payload, "vnp_ResponseCode")
        transaction_status = field_text(payload, "vnp_TransactionStatus")
        success = response_code == "00" and transaction_status in ("00", "")
        return CallbackResult(
            order_id=order_id,
            success=success,
            amount=int(field_text(payload, "vnp_Amount")) // 100,
            transaction_id=field_text(payload, "vnp_TransactionNo") or None,
            result_code=int(response_code) if response_code.isdigit() else None,
            message="Payment successful" if success else f"Payment failed ({response_code or 'no code'})",
            signature=field_text(payload, "vnp_SecureHash") or None,
        )
