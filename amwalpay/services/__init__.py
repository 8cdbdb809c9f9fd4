from .signing import (
    CURRENCY_OMR,
    REQUEST_SIGNING_FIELDS,
    RequestSigner,
    request_signer,
    build_signing_string,
    compute_secure_hash,
    format_amount,
    make_merchant_reference,
)
from .callback import (
    CALLBACK_SIGNING_FIELDS,
    CallbackVerifier,
    callback_verifier,
    parse_callback,
    order_id_from_reference,
)
from .checkout import AmwalPayCheckout, ConfigProvider, OrderGateway

__all__ = [
    "CURRENCY_OMR",
    "REQUEST_SIGNING_FIELDS",
    "RequestSigner",
    "request_signer",
    "build_signing_string",
    "compute_secure_hash",
    "format_amount",
    "make_merchant_reference",
    "CALLBACK_SIGNING_FIELDS",
    "CallbackVerifier",
    "callback_verifier",
    "parse_callback",
    "order_id_from_reference",
    "AmwalPayCheckout",
    "ConfigProvider",
    "OrderGateway",
]
