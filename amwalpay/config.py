"""
AmwalPay - Configuration
Loads merchant settings from environment variables
"""
from __future__ import annotations

import os
import string
from dataclasses import dataclass

from dotenv import load_dotenv

from amwalpay.exceptions import ConfigurationError
from amwalpay.models import Environment

# Load .env file from the current directory, if any
load_dotenv()

HEX_DIGITS = frozenset(string.hexdigits)


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


@dataclass
class Config:
    """Gateway configuration from environment variables"""

    # Merchant credentials issued by AmwalPay
    environment: str
    merchant_id: str
    terminal_id: str
    secret_key: str  # Hex-encoded HMAC key, never sent to the browser

    # Behaviour
    debug: bool
    request_source: str
    strict_hash: bool  # Require hash match in addition to responseCode "00"

    # Logging
    log_level: str
    log_format: str

    @classmethod
    def from_env(cls) -> "Config":
        """Create config from environment variables"""
        return cls(
            environment=os.getenv("AMWALPAY_ENVIRONMENT", "uat"),
            merchant_id=os.getenv("AMWALPAY_MERCHANT_ID", "").strip(),
            terminal_id=os.getenv("AMWALPAY_TERMINAL_ID", "").strip(),
            secret_key=os.getenv("AMWALPAY_SECRET_KEY", "").strip(),
            debug=_env_flag("AMWALPAY_DEBUG", "true"),
            request_source=os.getenv("AMWALPAY_REQUEST_SOURCE", "Checkout_Python"),
            strict_hash=_env_flag("AMWALPAY_STRICT_HASH", "false"),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            log_format=os.getenv("LOG_FORMAT", "json"),
        )

    @property
    def smartbox_url(self) -> str:
        """SmartBox script URL of the configured environment"""
        return Environment.from_name(self.environment).smartbox_url

    def is_configured(self) -> bool:
        """Check if all merchant credentials are present"""
        return bool(self.merchant_id and self.terminal_id and self.secret_key)

    def validate(self) -> None:
        """Validate required configuration"""
        Environment.from_name(self.environment)
        if not self.merchant_id:
            raise ConfigurationError("AMWALPAY_MERCHANT_ID is required", setting="merchant_id")
        if not self.terminal_id:
            raise ConfigurationError("AMWALPAY_TERMINAL_ID is required", setting="terminal_id")
        if not self.secret_key:
            raise ConfigurationError("AMWALPAY_SECRET_KEY is required", setting="secret_key")
        if len(self.secret_key) % 2 or not set(self.secret_key) <= HEX_DIGITS:
            raise ConfigurationError("AMWALPAY_SECRET_KEY must be hex-encoded", setting="secret_key")


# Global config instance
config = Config.from_env()
