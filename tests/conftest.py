"""
Pytest configuration for AmwalPay tests

Provides:
- Merchant settings fixture
- Independent hash helper used to build expected values
- Callback builder signed the way the gateway signs
"""
import hashlib
import hmac
from unittest.mock import MagicMock

import pytest

from amwalpay.config import Config
from amwalpay.services.callback import CALLBACK_SIGNING_FIELDS

MERCHANT_ID = "100045"
TERMINAL_ID = "10045001"
SECRET_KEY = "abc123"


def gateway_hash(message: str, secret_key: str = SECRET_KEY) -> str:
    """HMAC-SHA256 keyed with the hex-decoded secret, upper-case hex"""
    return hmac.new(
        bytes.fromhex(secret_key),
        message.encode("utf-8"),
        hashlib.sha256,
    ).hexdigest().upper()


def signed_callback(
    secret_key: str = SECRET_KEY,
    merchant_id: str = MERCHANT_ID,
    terminal_id: str = TERMINAL_ID,
    **overrides,
) -> dict:
    """Callback query as the gateway would send it, with a valid hash"""
    params = {
        "merchantReference": "1001_250101",
        "amount": "10.500",
        "currencyId": "512",
        "customerId": "",
        "customerTokenId": "",
        "responseCode": "00",
        "transactionId": "TRX-7781",
        "transactionTime": "2025-01-01 12:00:05",
    }
    params.update(overrides)
    values = {**params, "merchantId": merchant_id, "terminalId": terminal_id}
    message = "&".join(f"{name}={values[name]}" for name in CALLBACK_SIGNING_FIELDS)
    params["secureHashValue"] = gateway_hash(message, secret_key)
    return params


@pytest.fixture
def settings():
    """Fully configured UAT merchant"""
    return Config(
        environment="uat",
        merchant_id=MERCHANT_ID,
        terminal_id=TERMINAL_ID,
        secret_key=SECRET_KEY,
        debug=True,
        request_source="Checkout_Python",
        strict_hash=False,
        log_level="INFO",
        log_format="console",
    )


@pytest.fixture
def mock_log():
    """Structured logger double"""
    return MagicMock()
