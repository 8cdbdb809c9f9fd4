"""
AmwalPay - Data Models
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, NamedTuple, Optional

from amwalpay.exceptions import ConfigurationError


class Environment(str, Enum):
    """Gateway environments, each with its own SmartBox endpoint"""
    PROD = "prod"  # Production
    UAT = "uat"    # User acceptance testing
    SIT = "sit"    # System integration testing

    @property
    def smartbox_url(self) -> str:
        """SmartBox script URL for this environment"""
        urls = {
            Environment.PROD: "https://checkout.amwalpg.com/js/SmartBox.js?v=1.1",
            Environment.UAT: "https://test.amwalpg.com:7443/js/SmartBox.js?v=1.1",
            Environment.SIT: "https://test.amwalpg.com:19443/js/SmartBox.js?v=1.1",
        }
        return urls[self]

    @classmethod
    def from_name(cls, name: Optional[str]) -> "Environment":
        """Resolve a configured environment name, case-insensitively"""
        try:
            return cls((name or "").strip().lower())
        except ValueError:
            raise ConfigurationError(
                f"Unknown environment {name!r}, expected one of prod/uat/sit",
                setting="environment",
            ) from None


class PaymentState(str, Enum):
    """Order payment states driven by the callback decision"""
    PENDING = "pending"
    COMPLETED = "completed"


class SignedRequest(NamedTuple):
    """Outbound request: the secure hash and the payload handed to SmartBox"""
    secure_hash: str
    payload: Dict[str, Any]


@dataclass(frozen=True)
class CallbackParams:
    """Transaction fields echoed back by the gateway on redirect"""
    merchant_reference: str
    amount: str
    currency_id: str
    response_code: str
    transaction_id: str
    transaction_time: str
    secure_hash_value: str
    customer_id: str = ""
    customer_token_id: str = ""


@dataclass(frozen=True)
class CallbackDecision:
    """Approval outcome of a callback plus both hashes for audit"""
    approved: bool
    computed_hash: Optional[str] = None
    supplied_hash: Optional[str] = None
    order_id: Optional[str] = None
    transaction_id: Optional[str] = None
    response_code: Optional[str] = None
    reason: Optional[str] = None


@dataclass
class SmartBoxRequest:
    """Everything the host page needs to open the SmartBox checkout"""
    payload: Dict[str, Any]
    json_data: str
    script_url: str
    callback_url: str


@dataclass
class CallbackOutcome:
    """What the host should do after a callback: redirect and state change"""
    approved: bool
    redirect: str  # "return" or "cancel"
    order_id: Optional[str] = None
    transaction_id: Optional[str] = None
    message: Optional[str] = None
    decision: Optional[CallbackDecision] = field(default=None, repr=False)
