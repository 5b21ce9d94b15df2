import hashlib
import hmac
from types import SimpleNamespace
from urllib.parse import parse_qsl, urlsplit

import httpx
import pytest

from app.core.exceptions import GatewayError, ValidationError
from app.services.gateways import CallbackUrls, MomoConfig, MomoGateway
from app.services.gateways.vnpay import build_sign_data


MOMO_SECRET = "momo-test-secret"
VNPAY_SECRET = "VNPAYTESTSECRET"
MOMO_PAY_URL = "https://test-payment.momo.vn/v2/gateway/pay?t=abc"

URLS = CallbackUrls(redirect_url="http://localhost:8000/api/v1/payment/momo/return",
                    ipn_url="http://localhost:8000/api/v1/payment/momo/callback")


def momo_with(handler) -> MomoGateway:
    config = MomoConfig(partner_code="MOMOTEST", access_key="test-access-key", secret_key=MOMO_SECRET,
                        endpoint="https://momo.test/v2/gateway/api/create")
    return MomoGateway(config, transport=httpx.MockTransport(handler))


def test_momo_request_signature_uses_fixed_field_order(momo_gateway):
    body = momo_gateway.build_request_body("BK-1-abc", 50000, "Thanh toan ve xem phim BK-1-abc", URLS, "7")
    raw = (
        "accessKey=test-access-key&amount=50000&extraData=7"
        f"&ipnUrl={URLS.ipn_url}&orderId=BK-1-abc&orderInfo=Thanh toan ve xem phim BK-1-abc"
        f"&partnerCode=MOMOTEST&redirectUrl={URLS.redirect_url}&requestId=BK-1-abc&requestType=captureWallet"
    )
    expected = hmac.new(MOMO_SECRET.encode(), raw.encode(), hashlib.sha256).hexdigest()
    assert body["signature"] == expected
    assert body["requestType"] == "captureWallet"
    assert body["autoCapture"] is True
    assert body["requestId"] == body["orderId"] == "BK-1-abc"


async def test_momo_create_payment_request(momo_gateway, momo_requests):
    redirect = await momo_gateway.create_payment_request("BK-1-abc", 50000, "tickets", URLS, extra_data="7")

    assert redirect.pay_url == MOMO_PAY_URL
    assert redirect.amount == 50000
    assert redirect.request_id == "BK-1-abc"
    assert redirect.deeplink == "momo://app?action=pay"
    assert len(momo_requests) == 1
    assert momo_requests[0]["extraData"] == "7"
    assert momo_requests[0]["ipnUrl"] == URLS.ipn_url


async def test_momo_rejection_is_gateway_error():
    gateway = momo_with(lambda request: httpx.Response(200, json={"resultCode": 21, "message": "Invalid amount"}))
    with pytest.raises(GatewayError) as exc_info:
        await gateway.create_payment_request("BK-1-abc", 50000, "tickets", URLS)
    assert exc_info.value.status_code == 502
    assert MOMO_SECRET not in exc_info.value.message


async def test_momo_unreachable_is_gateway_error():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(GatewayError):
        await momo_with(handler).create_payment_request("BK-1-abc", 50000, "tickets", URLS)


async def test_momo_non_json_response_is_gateway_error():
    gateway = momo_with(lambda request: httpx.Response(502, text="<html>Bad Gateway</html>"))
    with pytest.raises(GatewayError):
        await gateway.create_payment_request("BK-1-abc", 50000, "tickets", URLS)


async def test_amount_below_minimum_is_rejected_before_any_call(momo_gateway, momo_requests):
    with pytest.raises(ValidationError):
        await momo_gateway.create_payment_request("BK-1-abc", 220, "tickets", URLS)
    assert momo_requests == []


def test_momo_callback_signature(momo_gateway, momo_callback):
    payment = SimpleNamespace(order_id="BK-1-abc", request_id="BK-1-abc", amount=50000, booking_id=7)
    payload = momo_callback(payment)

    assert momo_gateway.verify_callback_signature(payload)
    assert not momo_gateway.verify_callback_signature({**payload, "amount": 1000})
    assert not momo_gateway.verify_callback_signature({**payload, "signature": "0" * 64})
    assert not momo_gateway.verify_callback_signature({k: v for k, v in payload.items() if k != "signature"})


def test_momo_parse_callback(momo_gateway, momo_callback):
    payment = SimpleNamespace(order_id="BK-1-abc", request_id="BK-1-abc", amount=50000, booking_id=7)
    result = momo_gateway.parse_callback(momo_callback(payment, result_code=1006, message="Transaction denied"))

    assert result.order_id == "BK-1-abc"
    assert result.success is False
    assert result.amount == 50000
    assert result.booking_id == 7
    assert result.result_code == 1006
    assert result.transaction_id == "4088878653"


def test_vnpay_sign_data_is_sorted_and_encoded():
    params = {"vnp_TxnRef": "BK-1-abc", "vnp_Amount": 5000000, "vnp_OrderInfo": "Thanh toan ve", "vnp_BankCode": ""}
    assert build_sign_data(params) == "vnp_Amount=5000000&vnp_OrderInfo=Thanh%20toan%20ve&vnp_TxnRef=BK-1-abc"


async def test_vnpay_payment_url(vnpay_gateway):
    urls = vnpay_gateway.callback_urls("http://localhost:8000")
    redirect = await vnpay_gateway.create_payment_request("BK-1-abc", 50000, "Thanh toan ve xem phim BK-1-abc",
                                                          urls, client_ip="10.0.0.8")
    parts = urlsplit(redirect.pay_url)
    params = dict(parse_qsl(parts.query))

    assert parts.netloc == "sandbox.vnpayment.vn"
    assert params["vnp_Amount"] == "5000000"
    assert params["vnp_Version"] == "2.1.0"
    assert params["vnp_Command"] == "pay"
    assert params["vnp_CurrCode"] == "VND"
    assert params["vnp_OrderType"] == "other"
    assert params["vnp_IpAddr"] == "10.0.0.8"
    assert params["vnp_ReturnUrl"] == "http://localhost:8000/api/v1/payment/vnpay/return"
    assert params["vnp_CreateDate"] == "20240110090000"
    assert params["vnp_ExpireDate"] == "20240110091500"
    assert params["vnp_SecureHash"] == params["vnp_SecureHash"].upper()
    assert "%20" in parts.query
    # the signed URL verifies like a callback carrying the same fields
    assert vnpay_gateway.verify_callback_signature(params)


def test_vnpay_signature_is_hmac_sha512_of_sign_data(vnpay_gateway):
    params = {"vnp_TxnRef": "BK-1-abc", "vnp_Amount": "5000000", "vnp_ResponseCode": "00"}
    expected = hmac.new(VNPAY_SECRET.encode(), build_sign_data(params).encode(), hashlib.sha512).hexdigest().upper()
    assert vnpay_gateway.sign(params) == expected


def test_vnpay_callback_verification(vnpay_gateway, vnpay_callback):
    payment = SimpleNamespace(order_id="BK-1-abc", amount=50000)
    params = vnpay_callback(payment)

    assert vnpay_gateway.verify_callback_signature(params)
    assert vnpay_gateway.verify_callback_signature({**params, "vnp_SecureHash": params["vnp_SecureHash"].lower()})
    assert vnpay_gateway.verify_callback_signature({**params, "vnp_SecureHashType": "HmacSHA512"})
    assert not vnpay_gateway.verify_callback_signature({**params, "vnp_Amount": "100"})
    assert not vnpay_gateway.verify_callback_signature({k: v for k, v in params.items() if k != "vnp_SecureHash"})


def test_vnpay_parse_callback(vnpay_gateway, vnpay_callback):
    payment = SimpleNamespace(order_id="BK-1-abc", amount=50000)

    paid = vnpay_gateway.parse_callback(vnpay_callback(payment))
    assert paid.success is True
    assert paid.amount == 50000
    assert paid.transaction_id == "14226112"

    declined = vnpay_gateway.parse_callback(vnpay_callback(payment, response_code="24"))
    assert declined.success is False
    assert declined.result_code == 24


def test_gateway_config_repr_hides_secrets(momo_gateway, vnpay_gateway):
    assert MOMO_SECRET not in repr(momo_gateway.config)
    assert VNPAY_SECRET not in repr(vnpay_gateway.config)
