from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Mapping, Optional

from app.core.exceptions import ValidationError
from app.models.payment import PaymentProvider


@dataclass(frozen=True)
class CallbackUrls:
    redirect_url: str  # browser lands here after paying
    ipn_url: str  # provider's server-to-server notification


@dataclass
class PaymentRedirect:
    provider: PaymentProvider
    order_id: str
    amount: int
    pay_url: str
    request_id: Optional[str] = None
    qr_code_url: Optional[str] = None
    deeplink: Optional[str] = None


@dataclass(frozen=True)
class CallbackResult:
    """Provider-neutral view of a callback, built only after its signature checked out."""
    order_id: str
    success: bool
    amount: int
    transaction_id: Optional[str]
    result_code: Optional[int]
    message: str
    signature: Optional[str] = None
    booking_id: Optional[int] = None


def field_text(payload: Mapping[str, Any], key: str) -> str:
    value = payload.get(key)
    return "" if value is None else str(value)


class PaymentGateway(ABC):
    provider: PaymentProvider
    min_amount: int = 1000

    def check_amount(self, amount: int) -> None:
        if amount < self.min_amount:
            raise ValidationError(
                f"Amount {amount} is below the {self.provider.value} minimum of {self.min_amount}",
                details={"amount": amount, "minimum": self.min_amount})

    @abstractmethod
    def callback_urls(self, public_base_url: str) -> CallbackUrls:
        ...

    @abstractmethod
    async def create_payment_request(self, order_id: str, amount: int, description: str,
                                     callback_urls: CallbackUrls, client_ip: str = "127.0.0.1",
                                     extra_data: str = "") -> PaymentRedirect:
        ...

    @abstractmethod
    def verify_callback_signature(self, payload: Mapping[str, Any]) -> bool:
        ...

    @abstractmethod
    def parse_callback(self, payload: Mapping[str, Any]) -> CallbackResult:
        """Raises ValueError when the payload is structurally unusable."""
        ...
