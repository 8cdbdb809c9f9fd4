"""
AmwalPay - Callback Verification
Decides whether a SmartBox redirect callback reports an approved payment.
"""
from __future__ import annotations

import hmac
from decimal import Decimal, InvalidOperation
from typing import Any, Mapping, Optional, Union

import structlog

from amwalpay.exceptions import MalformedCallbackError
from amwalpay.models import CallbackDecision, CallbackParams
from amwalpay.services.signing import (
    EMPTY_MARKERS,
    build_signing_string,
    compute_secure_hash,
    require_setting,
)

logger = structlog.get_logger(__name__)

# Order is part of the wire contract with the gateway
CALLBACK_SIGNING_FIELDS: tuple[str, ...] = (
    "amount",
    "currencyId",
    "customerId",
    "customerTokenId",
    "merchantId",
    "merchantReference",
    "responseCode",
    "terminalId",
    "transactionId",
    "transactionTime",
)

APPROVED_RESPONSE_CODE = "00"


def _query_value(params: Mapping[str, Any], name: str) -> str:
    value = params.get(name)
    # parse_qs style multi-values: first one wins
    if isinstance(value, (list, tuple)):
        value = value[0] if value else None
    if value is None:
        return ""
    # Hashed exactly as received, so no stripping
    text = str(value)
    return "" if not text.strip() or text in EMPTY_MARKERS else text


def _required(params: Mapping[str, Any], name: str) -> str:
    value = _query_value(params, name)
    if not value:
        raise MalformedCallbackError("missing", field=name)
    return value


def parse_callback(params: Optional[Mapping[str, Any]]) -> CallbackParams:
    """
    Parse callback query parameters.

    Raises:
        MalformedCallbackError: a required field is missing or not numeric.
    """
    if not params or not isinstance(params, Mapping):
        raise MalformedCallbackError("no parameters", field="*")

    amount = _required(params, "amount")
    try:
        parsed_amount = Decimal(amount)
    except InvalidOperation:
        raise MalformedCallbackError("not a number", field="amount") from None
    if not parsed_amount.is_finite() or parsed_amount.is_signed():
        raise MalformedCallbackError("not a non-negative amount", field="amount")

    currency_id = _required(params, "currencyId")
    if not currency_id.isdigit():
        raise MalformedCallbackError("not numeric", field="currencyId")

    merchant_reference = _required(params, "merchantReference")
    order_id_from_reference(merchant_reference)

    return CallbackParams(
        merchant_reference=merchant_reference,
        amount=amount,
        currency_id=currency_id,
        response_code=_required(params, "responseCode"),
        transaction_id=_required(params, "transactionId"),
        transaction_time=_required(params, "transactionTime"),
        secure_hash_value=_required(params, "secureHashValue"),
        customer_id=_query_value(params, "customerId"),
        customer_token_id=_query_value(params, "customerTokenId"),
    )


def order_id_from_reference(merchant_reference: str) -> str:
    """Recover the order id from a ``{order_id}_{suffix}`` merchant reference"""
    order_id, sep, suffix = (merchant_reference or "").rpartition("_")
    if not sep or not order_id or not suffix:
        raise MalformedCallbackError("no order id", field="merchantReference")
    return order_id


def hashes_equal(computed: str, supplied: str) -> bool:
    """Constant-time comparison of two hash strings"""
    return hmac.compare_digest(computed.encode("utf-8"), supplied.encode("utf-8"))


class CallbackVerifier:
    """
    Verifies SmartBox callbacks.

    A callback is approved when responseCode is "00" OR the recomputed
    SecureHash matches the one supplied by the gateway. This mirrors the
    deployed behaviour: a forged callback carrying "00" is accepted
    regardless of its hash (logged as ``callback_hash_mismatch_accepted``),
    and an authentic callback is accepted whatever its response code
    (logged as ``callback_response_code_ignored``). With ``strict=True``
    both conditions are required.
    """

    def __init__(self, strict: bool = False, log: Optional[Any] = None) -> None:
        self.strict = strict
        self.log = log or logger

    def signing_values(
        self,
        params: CallbackParams,
        merchant_id: str,
        terminal_id: str,
    ) -> dict[str, str]:
        """Signing context keyed by CALLBACK_SIGNING_FIELDS names"""
        return {
            "amount": params.amount,
            "currencyId": params.currency_id,
            "customerId": params.customer_id,
            "customerTokenId": params.customer_token_id,
            "merchantId": merchant_id,
            "merchantReference": params.merchant_reference,
            "responseCode": params.response_code,
            "terminalId": terminal_id,
            "transactionId": params.transaction_id,
            "transactionTime": params.transaction_time,
        }

    def compute_hash(
        self,
        params: CallbackParams,
        merchant_id: str,
        terminal_id: str,
        secret_key: str,
    ) -> str:
        """Recompute the callback SecureHash from local credentials"""
        values = self.signing_values(params, merchant_id, terminal_id)
        return compute_secure_hash(
            build_signing_string(CALLBACK_SIGNING_FIELDS, values),
            secret_key,
        )

    def verify(
        self,
        callback_params: Union[CallbackParams, Mapping[str, Any], None],
        merchant_id: str,
        terminal_id: str,
        secret_key: str,
    ) -> CallbackDecision:
        """
        Decide whether a callback reports an approved payment.

        Malformed callbacks resolve to a not-approved decision.

        Raises:
            ConfigurationError: empty merchant id, terminal id or secret key.
            ComputationError: the hash primitive failed.
        """
        merchant_id = require_setting(merchant_id, "merchant_id")
        terminal_id = require_setting(terminal_id, "terminal_id")
        require_setting(secret_key, "secret_key")

        try:
            if isinstance(callback_params, CallbackParams):
                params = callback_params
            else:
                params = parse_callback(callback_params)
            order_id = order_id_from_reference(params.merchant_reference)
        except MalformedCallbackError as e:
            self.log.warning("callback_malformed", field=e.field, error=e.message)
            return CallbackDecision(approved=False, reason=e.message)

        computed_hash = self.compute_hash(params, merchant_id, terminal_id, secret_key)
        supplied_hash = params.secure_hash_value

        hash_matches = hashes_equal(computed_hash, supplied_hash)
        code_approved = params.response_code == APPROVED_RESPONSE_CODE

        if self.strict:
            approved = code_approved and hash_matches
        else:
            approved = code_approved or hash_matches

        if approved and code_approved and hash_matches:
            reason = "hash_match"
        elif approved and code_approved:
            reason = "response_code_only"
            self.log.warning(
                "callback_hash_mismatch_accepted",
                order_id=order_id,
                transaction_id=params.transaction_id,
            )
        elif approved:
            reason = "hash_only"
            self.log.warning(
                "callback_response_code_ignored",
                order_id=order_id,
                transaction_id=params.transaction_id,
                response_code=params.response_code,
            )
        elif not hash_matches:
            reason = "hash_mismatch"
        else:
            reason = "declined_by_gateway"

        self.log.debug(
            "callback_verified",
            order_id=order_id,
            approved=approved,
            response_code=params.response_code,
            supplied_hash=supplied_hash,
            computed_hash=computed_hash,
        )

        return CallbackDecision(
            approved=approved,
            computed_hash=computed_hash,
            supplied_hash=supplied_hash,
            order_id=order_id,
            transaction_id=params.transaction_id,
            response_code=params.response_code,
            reason=reason,
        )


# Global instance
callback_verifier = CallbackVerifier()
