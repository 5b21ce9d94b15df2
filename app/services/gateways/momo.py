import hashlib
import hmac
import logging
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional

import httpx

from app.core.exceptions import GatewayError
from app.models.payment import PaymentProvider
from app.services.gateways.base import CallbackResult, CallbackUrls, PaymentGateway, PaymentRedirect, field_text

logger = logging.getLogger(__name__)

REQUEST_TYPE = "captureWallet"

# the provider signs these exact key sequences; order is part of the contract
REQUEST_SIGNATURE_FIELDS = (
    "accessKey", "amount", "extraData", "ipnUrl", "orderId", "orderInfo",
    "partnerCode", "redirectUrl", "requestId", "requestType",
)
CALLBACK_SIGNATURE_FIELDS = (
    "accessKey", "amount", "extraData", "message", "orderId", "orderInfo", "orderType",
    "partnerCode", "payType", "requestId", "responseTime", "resultCode", "transId",
)


@dataclass(frozen=True)
class MomoConfig:
    partner_code: str
    access_key: str
    secret_key: str = field(repr=False)
    endpoint: str
    partner_name: str = "Cinema"
    store_id: str = "CinemaStore"
    lang: str = "vi"
    timeout_seconds: float = 10.0
    min_amount: int = 1000


class MomoGateway(PaymentGateway):
    """Wallet-redirect provider: signed JSON request, provider answers with a pay URL."""
    provider = PaymentProvider.MOMO

    def __init__(self, config: MomoConfig, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.config = config
        self.min_amount = config.min_amount
        self._transport = transport

    def callback_urls(self, public_base_url: str) -> CallbackUrls:
        base = public_base_url.rstrip("/")
        return CallbackUrls(
            redirect_url=f"{base}/api/v1/payment/momo/return",
            ipn_url=f"{base}/api/v1/payment/momo/callback",
        )

    def _sign(self, fields: tuple[str, ...], values: Mapping[str, Any]) -> str:
        raw = "&".join(f"{name}={field_text(values, name)}" for name in fields)
        return hmac.new(self.config.secret_key.encode("utf-8"), raw.encode("utf-8"), hashlib.sha256).hexdigest()

    def sign_request(self, values: Mapping[str, Any]) -> str:
        return self._sign(REQUEST_SIGNATURE_FIELDS, {**values, "accessKey": self.config.access_key})

    def sign_callback(self, values: Mapping[str, Any]) -> str:
        return self._sign(CALLBACK_SIGNATURE_FIELDS, {**values, "accessKey": self.config.access_key})

    def build_request_body(self, order_id: str, amount: int, description: str,
                           callback_urls: CallbackUrls, extra_data: str = "") -> dict:
        body = {
            "partnerCode": self.config.partner_code,
            "partnerName": self.config.partner_name,
            "storeId": self.config.store_id,
            "requestId": order_id,
            "amount": amount,
            "orderId": order_id,
            "orderInfo": description,
            "redirectUrl": callback_urls.redirect_url,
            "ipnUrl": callback_urls.ipn_url,
            "lang": self.config.lang,
            "requestType": REQUEST_TYPE,
            "autoCapture": True,
            "extraData": extra_data,
            "orderGroupId": "",
        }
        body["signature"] = self.sign_request(body)
        return body

    async def create_payment_request(self, order_id: str, amount: int, description: str,
                                     callback_urls: CallbackUrls, client_ip: str = "127.0.0.1",
                                     extra_data: str = "") -> PaymentRedirect:
        self.check_amount(amount)
        if not self.config.access_key or not self.config.secret_key:
            raise GatewayError(self.provider.value, "gateway is not configured")

        body = self.build_request_body(order_id, amount, description, callback_urls, extra_data)
        logger.info(f"Creating MoMo payment for order {order_id} amount {amount}")
        try:
            async with httpx.AsyncClient(timeout=self.config.timeout_seconds, transport=self._transport) as client:
                response = await client.post(self.config.endpoint, json=body)
            data = response.json()
        except httpx.HTTPError as e:
            logger.error(f"MoMo request for order {order_id} failed: {e.__class__.__name__}")
            raise GatewayError(self.provider.value, "provider unreachable") from e
        except ValueError as e:
            raise GatewayError(self.provider.value, f"unreadable response (HTTP {response.status_code})") from e

        if data.get("resultCode") != 0:
            logger.warning(f"MoMo rejected order {order_id}: resultCode={data.get('resultCode')}")
            raise GatewayError(self.provider.value, str(data.get("message") or "payment request rejected"))
        if not data.get("payUrl"):
            raise GatewayError(self.provider.value, "response carried no pay URL")

        return PaymentRedirect(
            provider=self.provider,
            order_id=order_id,
            amount=amount,
            pay_url=data["payUrl"],
            request_id=data.get("requestId", order_id),
            qr_code_url=data.get("qrCodeUrl"),
            deeplink=data.get("deeplink"),
        )

    def verify_callback_signature(self, payload: Mapping[str, Any]) -> bool:
        received = payload.get("signature")
        if not received or not self.config.secret_key:
            return False
        return hmac.compare_digest(str(received), self.sign_callback(payload))

    def parse_callback(self, payload: Mapping[str, Any]) -> CallbackResult:
        order_id = field_text(payload, "orderId")
        if not order_id:
            raise ValueError("orderId missing")
        result_code = int(payload.get("resultCode"))
        extra_data = field_text(payload, "extraData")
        return CallbackResult(
            order_id=order_id,
            success=result_code == 0,
            amount=int(payload.get("amount")),
            transaction_id=field_text(payload, "transId") or None,
            result_code=result_code,
            message=field_text(payload, "message"),
            signature=field_text(payload, "signature") or None,
            booking_id=int(extra_data) if extra_data.isdigit() else None,
        )
