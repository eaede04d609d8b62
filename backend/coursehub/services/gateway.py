"""
PayU Gateway Adapter — Outbound request signing and inbound webhook verification.

Signature formats are a wire contract with the gateway:

    request:  key|txnid|amount|productinfo|firstname|email|udf1|udf2|udf3|udf4|udf5||||||salt
    response: salt|status||||||udf5|udf4|udf3|udf2|udf1|email|firstname|productinfo|amount|txnid|key

Both are SHA-512 hex digests. Field order and the 2-decimal amount string
must not change.
"""
import logging
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Mapping, Optional

from coursehub.config import Settings
from coursehub.errors import GatewayUnavailableError
from coursehub.models import payment as status
from coursehub.utils.hashing import sha512_hex, digests_match

logger = logging.getLogger(__name__)

UDF_FIELDS = ("udf1", "udf2", "udf3", "udf4", "udf5")

STATUS_MAP = {
    "success": status.SUCCESS,
    "pending": status.PENDING,
    "failed": status.FAILED,
    "failure": status.FAILED,
    "bounced": status.FAILED,
    "cancel": status.CANCELLED,
    "cancelled": status.CANCELLED,
    "usercancelled": status.CANCELLED,
    "dropped": status.CANCELLED,
    "timeout": status.TIMEOUT,
}


def format_amount(amount: Decimal) -> str:
    """Gateway amount string: exactly two decimals."""
    return str(Decimal(amount).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def map_status(gateway_status: Optional[str]) -> str:
    """Translate the gateway's status vocabulary; anything unknown fails closed."""
    if not gateway_status:
        return status.FAILED
    return STATUS_MAP.get(gateway_status.strip().lower(), status.FAILED)


@dataclass(frozen=True)
class PayUGateway:
    merchant_key: Optional[str]
    salt: Optional[str]
    base_url: Optional[str]
    success_url: str = ""
    failure_url: str = ""
    cancel_url: str = ""

    @classmethod
    def from_settings(cls, settings: Settings) -> "PayUGateway":
        callback = settings.payment_callback_url
        return cls(
            merchant_key=settings.PAYU_MERCHANT_KEY,
            salt=settings.PAYU_SALT,
            base_url=settings.PAYU_BASE_URL,
            success_url=settings.PAYU_SUCCESS_URL or callback,
            failure_url=settings.PAYU_FAILURE_URL or callback,
            cancel_url=settings.PAYU_CANCEL_URL or callback,
        )

    @property
    def is_configured(self) -> bool:
        return bool(self.merchant_key and self.salt and self.base_url)

    def _require_config(self):
        if not self.is_configured:
            raise GatewayUnavailableError(
                "Payment service not configured. Please configure payment credentials."
            )

    @property
    def payment_url(self) -> str:
        self._require_config()
        return f"{self.base_url.rstrip('/')}/_payment"

    def sign(self, fields: Mapping[str, str]) -> str:
        """Hash for an outbound payment request."""
        self._require_config()
        parts = [
            self.merchant_key,
            fields["txnid"],
            fields["amount"],
            fields["productinfo"],
            fields["firstname"],
            fields["email"],
            *(fields.get(name) or "" for name in UDF_FIELDS),
            "", "", "", "", "",
            self.salt,
        ]
        return sha512_hex("|".join(parts))

    def response_hash(self, response: Mapping[str, str]) -> str:
        """Hash the gateway is expected to send back for ``response``."""
        self._require_config()
        parts = [
            self.salt,
            response.get("status") or "",
            "", "", "", "", "",
            *(response.get(name) or "" for name in reversed(UDF_FIELDS)),
            response.get("email") or "",
            response.get("firstname") or "",
            response.get("productinfo") or "",
            response.get("amount") or "",
            response.get("txnid") or "",
            self.merchant_key,
        ]
        return sha512_hex("|".join(parts))

    def verify(self, response: Mapping[str, str]) -> bool:
        """True iff the response carries the signature our secret produces."""
        is_valid = digests_match(self.response_hash(response), response.get("hash"))
        if not is_valid:
            logger.error(
                "PayU response signature mismatch txnid=%s status=%s",
                response.get("txnid"), response.get("status"),
            )
        return is_valid

    def build_payment_request(
        self,
        transaction_id: str,
        amount: Decimal,
        product_info: str,
        first_name: str,
        email: str,
        phone: str,
        user_id: str = "",
        course_id: str = "",
    ) -> dict:
        """Signed parameter set the client posts to ``payment_url``."""
        self._require_config()
        fields = {
            "txnid": transaction_id,
            "amount": format_amount(amount),
            "productinfo": product_info,
            "firstname": first_name,
            "email": email,
            "udf1": user_id,
            "udf2": course_id,
        }
        params = {
            **fields,
            "key": self.merchant_key,
            "phone": phone,
            "surl": self.success_url,
            "furl": self.failure_url,
            "curl": self.cancel_url,
            "hash": self.sign(fields),
        }
        logger.info("PayU payment request created txnid=%s amount=%s", transaction_id, fields["amount"])
        return params
