"""
AmwalPay - Request Signing
Builds the SecureHash sent with a SmartBox payment request.

The gateway verifies every request by recomputing an HMAC-SHA256 over
``name=value`` pairs joined with ``&`` in a fixed field order, keyed with
the merchant's hex-encoded secret key. The same primitive signs callbacks.
"""
from __future__ import annotations

import hashlib
import hmac
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Mapping, Optional, Sequence, Union

import structlog

from amwalpay.exceptions import (
    ComputationError,
    ConfigurationError,
    InvalidAmountError,
)
from amwalpay.models import SignedRequest

logger = structlog.get_logger(__name__)

# Order is part of the wire contract with the gateway
REQUEST_SIGNING_FIELDS: tuple[str, ...] = (
    "Amount",
    "CurrencyId",
    "MerchantId",
    "MerchantReference",
    "RequestDateTime",
    "SessionToken",
    "TerminalId",
)

CURRENCY_OMR = 512
TRX_DATETIME_FORMAT = "%Y%m%d%H%M%S"
DEFAULT_REQUEST_SOURCE = "Checkout_Python"
PAYMENT_VIEW_TYPE_POPUP = 1

# Placeholders the SmartBox script sends for absent values
EMPTY_MARKERS = frozenset({"null", "undefined"})

AmountLike = Union[Decimal, int, float, str]


def require_setting(value: Optional[str], setting: str) -> str:
    if value is None or not str(value).strip():
        raise ConfigurationError(f"{setting} must not be empty", setting=setting)
    return str(value)


def _render_value(value: Any) -> str:
    if value is None:
        return ""
    text = str(value)
    return "" if text in EMPTY_MARKERS else text


def format_amount(amount: AmountLike) -> str:
    """
    Render an amount the way it is hashed and sent.

    Plain notation, no thousands separators, precision as given:
    Decimal("10.500") -> "10.500", 10.5 -> "10.5".
    """
    if isinstance(amount, bool):
        raise InvalidAmountError(amount)
    try:
        if isinstance(amount, Decimal):
            value = amount
        elif isinstance(amount, (int, float)):
            value = Decimal(str(amount))
        elif isinstance(amount, str):
            value = Decimal(amount.strip())
        else:
            raise InvalidAmountError(amount)
    except InvalidOperation:
        raise InvalidAmountError(amount) from None

    if not value.is_finite() or value.is_signed():
        raise InvalidAmountError(amount)
    return format(value, "f")


def format_trx_datetime(value: Union[datetime, str]) -> str:
    """Format a request timestamp as YYYYMMDDHHMMSS"""
    if isinstance(value, datetime):
        return value.strftime(TRX_DATETIME_FORMAT)
    text = str(value).strip()
    if len(text) != 14 or not text.isdigit():
        raise ValueError(f"Timestamp must be YYYYMMDDHHMMSS, got {value!r}")
    return text


def make_merchant_reference(order_id: Union[str, int], now: Optional[datetime] = None) -> str:
    """
    Build a per-attempt merchant reference: ``{order_id}_{yymmddSS}``.

    The suffix keeps retries of the same order distinct; the order id is
    recovered from the callback by splitting on the last underscore.
    """
    order_id = str(order_id).strip()
    if not order_id:
        raise ValueError("order_id is required")
    now = now or datetime.now()
    return f"{order_id}_{now.strftime('%y%m%d%S')}"


def language_for_locale(locale: Optional[str]) -> str:
    """Map a store locale to the SmartBox LanguageId (en/ar)"""
    return "en" if locale and "en" in locale.lower() else "ar"


def build_signing_string(fields: Sequence[str], values: Mapping[str, Any]) -> str:
    """Join ``name=value`` pairs in the given field order with ``&``"""
    return "&".join(f"{name}={_render_value(values.get(name))}" for name in fields)


def compute_secure_hash(signing_string: str, secret_key: str) -> str:
    """
    HMAC-SHA256 of the signing string, keyed with the hex-decoded secret.

    Returns upper-case hex, as the gateway produces it.
    """
    require_setting(secret_key, "secret_key")
    try:
        key = bytes.fromhex(secret_key)
    except ValueError:
        raise ConfigurationError("secret_key must be hex-encoded", setting="secret_key") from None

    try:
        digest = hmac.new(key, signing_string.encode("utf-8"), hashlib.sha256).hexdigest()
    except (TypeError, ValueError) as e:
        raise ComputationError(f"Secure hash computation failed: {e}", original_error=e) from e
    return digest.upper()


class RequestSigner:
    """Signs outbound SmartBox payment requests"""

    def __init__(self, log: Optional[Any] = None) -> None:
        self.log = log or logger

    def signing_values(
        self,
        amount: str,
        currency_id: Union[int, str],
        merchant_id: str,
        merchant_reference: str,
        terminal_id: str,
        trx_datetime: str,
        session_token: str = "",
    ) -> dict[str, Any]:
        """Signing context keyed by REQUEST_SIGNING_FIELDS names"""
        return {
            "Amount": amount,
            "CurrencyId": currency_id,
            "MerchantId": merchant_id,
            "MerchantReference": merchant_reference,
            "RequestDateTime": trx_datetime,
            "SessionToken": session_token,
            "TerminalId": terminal_id,
        }

    def build_signed_request(
        self,
        amount: AmountLike,
        currency_id: Union[int, str],
        merchant_id: str,
        merchant_reference: str,
        terminal_id: str,
        secret_key: str,
        timestamp: Union[datetime, str],
        *,
        language_id: str = "en",
        request_source: str = DEFAULT_REQUEST_SOURCE,
        payment_view_type: int = PAYMENT_VIEW_TYPE_POPUP,
        session_token: str = "",
    ) -> SignedRequest:
        """
        Sign a payment request and build the SmartBox payload.

        Raises:
            ConfigurationError: empty merchant id, terminal id or secret key.
            InvalidAmountError: negative or unparsable amount.
        """
        merchant_id = require_setting(merchant_id, "merchant_id")
        terminal_id = require_setting(terminal_id, "terminal_id")
        require_setting(secret_key, "secret_key")
        if not merchant_reference:
            raise ValueError("merchant_reference is required")

        amount_str = format_amount(amount)
        trx_datetime = format_trx_datetime(timestamp)

        values = self.signing_values(
            amount=amount_str,
            currency_id=currency_id,
            merchant_id=merchant_id,
            merchant_reference=merchant_reference,
            terminal_id=terminal_id,
            trx_datetime=trx_datetime,
            session_token=session_token,
        )
        secure_hash = compute_secure_hash(
            build_signing_string(REQUEST_SIGNING_FIELDS, values),
            secret_key,
        )

        payload = {
            "AmountTrxn": amount_str,
            "MerchantReference": merchant_reference,
            "MID": merchant_id,
            "TID": terminal_id,
            "CurrencyId": currency_id,
            "LanguageId": language_id,
            "SecureHash": secure_hash,
            "TrxDateTime": trx_datetime,
            "PaymentViewType": payment_view_type,
            "RequestSource": request_source,
            "SessionToken": session_token,
        }

        self.log.debug(
            "request_signed",
            merchant_reference=merchant_reference,
            amount=amount_str,
            secure_hash=secure_hash,
        )
        return SignedRequest(secure_hash=secure_hash, payload=payload)


# Global instance
request_signer = RequestSigner()
