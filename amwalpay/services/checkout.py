"""
AmwalPay - Checkout Flow
Connects the signer and verifier to the host shop's orders and settings.

The host owns routing, persistence and rendering. It hands us an
``OrderGateway`` and a ``ConfigProvider``; we hand back what to render
(``SmartBoxRequest``) or where to redirect (``CallbackOutcome``).
"""
from __future__ import annotations

import json
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Mapping, Optional, Protocol, Union

import structlog

from amwalpay.config import config as default_config
from amwalpay.exceptions import (
    AmwalPayError,
    MalformedCallbackError,
    OrderNotFoundError,
)
from amwalpay.models import (
    CallbackDecision,
    CallbackOutcome,
    Environment,
    PaymentState,
    SmartBoxRequest,
)
from amwalpay.services.callback import CallbackVerifier, order_id_from_reference
from amwalpay.services.signing import (
    CURRENCY_OMR,
    DEFAULT_REQUEST_SOURCE,
    RequestSigner,
    language_for_locale,
    make_merchant_reference,
)

logger = structlog.get_logger(__name__)

REDIRECT_RETURN = "return"
REDIRECT_CANCEL = "cancel"


class ConfigProvider(Protocol):
    """Read-only merchant settings supplied by the host"""
    merchant_id: str
    terminal_id: str
    secret_key: str
    environment: str
    debug: bool


class OrderGateway(Protocol):
    """Order access supplied by the host"""

    def load(self, order_id: str) -> Optional[Any]: ...

    def total_amount(self, order_id: str) -> Union[Decimal, str]: ...

    def set_payment_state(
        self,
        order_id: str,
        state: PaymentState,
        remote_id: Optional[str],
    ) -> None: ...


class AmwalPayCheckout:
    """SmartBox checkout: request rendering and callback handling"""

    def __init__(
        self,
        orders: OrderGateway,
        settings: Optional[ConfigProvider] = None,
        log: Optional[Any] = None,
        signer: Optional[RequestSigner] = None,
        verifier: Optional[CallbackVerifier] = None,
    ) -> None:
        self.orders = orders
        self.settings = settings or default_config
        self.log = log or logger
        self.signer = signer or RequestSigner(log=self.log)
        self.verifier = verifier or CallbackVerifier(
            strict=getattr(self.settings, "strict_hash", False),
            log=self.log,
        )

    def _audit(self, event: str, **fields: Any) -> None:
        # Payment audit trail is only written with the merchant debug flag on
        if self.settings.debug:
            self.log.info(event, **fields)

    def start_checkout(
        self,
        order_id: str,
        callback_url: str,
        locale: Optional[str] = "en",
        now: Optional[datetime] = None,
    ) -> SmartBoxRequest:
        """
        Build the signed SmartBox request for an order.

        Raises:
            OrderNotFoundError: the host has no such order.
            ConfigurationError: merchant settings are incomplete.
        """
        order_id = str(order_id or "").strip()
        if not order_id or self.orders.load(order_id) is None:
            raise OrderNotFoundError(order_id)

        now = now or datetime.now()
        merchant_reference = make_merchant_reference(order_id, now)
        script_url = Environment.from_name(self.settings.environment).smartbox_url

        signed = self.signer.build_signed_request(
            amount=self.orders.total_amount(order_id),
            currency_id=CURRENCY_OMR,
            merchant_id=self.settings.merchant_id,
            merchant_reference=merchant_reference,
            terminal_id=self.settings.terminal_id,
            secret_key=self.settings.secret_key,
            timestamp=now,
            language_id=language_for_locale(locale),
            request_source=getattr(self.settings, "request_source", DEFAULT_REQUEST_SOURCE),
        )

        request = SmartBoxRequest(
            payload=signed.payload,
            json_data=json.dumps(signed.payload, separators=(",", ":")),
            script_url=script_url,
            callback_url=callback_url,
        )
        self._audit(
            "payment_request",
            order_id=order_id,
            payload=signed.payload,
            url=script_url,
            callback_url=callback_url,
        )
        return request

    def handle_callback(self, params: Optional[Mapping[str, Any]]) -> CallbackOutcome:
        """
        Verify a SmartBox callback; only an approval changes the order state.

        Never raises for bad input: the customer must always be redirected.
        """
        try:
            order_id = order_id_from_reference(_first(params, "merchantReference"))
        except MalformedCallbackError:
            self.log.warning("callback_without_order", params=_loggable(params))
            return CallbackOutcome(
                approved=False,
                redirect=REDIRECT_CANCEL,
                message="Order ID not found.",
            )

        if self.orders.load(order_id) is None:
            self.log.warning("callback_unknown_order", order_id=order_id)
            return CallbackOutcome(
                approved=False,
                redirect=REDIRECT_CANCEL,
                order_id=order_id,
                message="Invalid order ID.",
            )

        self._audit("callback_response", order_id=order_id, params=_loggable(params))

        try:
            decision = self.verifier.verify(
                params,
                merchant_id=self.settings.merchant_id,
                terminal_id=self.settings.terminal_id,
                secret_key=self.settings.secret_key,
            )
        except AmwalPayError as e:
            self.log.exception("callback_verification_failed", order_id=order_id, error=e.message)
            decision = CallbackDecision(approved=False, order_id=order_id, reason=e.message)

        self._audit(
            "callback_hashes",
            order_id=order_id,
            supplied_hash=decision.supplied_hash,
            computed_hash=decision.computed_hash,
        )

        if decision.approved:
            self._check_amount(order_id, _first(params, "amount"))
            self.orders.set_payment_state(order_id, PaymentState.COMPLETED, decision.transaction_id)
            self._audit("callback_approved", order_id=order_id, note="AmwalPay : Payment Approved")
            return CallbackOutcome(
                approved=True,
                redirect=REDIRECT_RETURN,
                order_id=order_id,
                transaction_id=decision.transaction_id,
                decision=decision,
            )

        # Declines leave the order untouched, the host only shows the cancel step
        self._audit("callback_declined", order_id=order_id, note="AmwalPay : Payment is not completed")
        return CallbackOutcome(
            approved=False,
            redirect=REDIRECT_CANCEL,
            order_id=order_id,
            transaction_id=decision.transaction_id,
            message="Payment is not completed.",
            decision=decision,
        )

    def _check_amount(self, order_id: str, paid_amount: str) -> None:
        # Observation only, approval is decided by the verifier
        try:
            expected = Decimal(str(self.orders.total_amount(order_id)))
            paid = Decimal(paid_amount)
        except (InvalidOperation, ValueError):
            self.log.warning("callback_amount_unreadable", order_id=order_id, amount=paid_amount)
            return
        if paid != expected:
            self.log.warning(
                "callback_amount_mismatch",
                order_id=order_id,
                expected=str(expected),
                paid=str(paid),
            )


def _first(params: Optional[Mapping[str, Any]], name: str) -> str:
    if not isinstance(params, Mapping):
        return ""
    value = params.get(name)
    if isinstance(value, (list, tuple)):
        value = value[0] if value else None
    return "" if value is None else str(value).strip()


def _loggable(params: Any) -> Optional[dict]:
    return dict(params) if isinstance(params, Mapping) else None
