#!/usr/bin/env python3
"""
Sign a SmartBox test request with the merchant settings from .env
and print the payload to paste into the gateway's test page.

Usage: python sign_test_request.py [order_id] [amount]
"""
import json
import sys
from datetime import datetime

from amwalpay.config import config
from amwalpay.logging import configure_logging
from amwalpay.services.signing import CURRENCY_OMR, make_merchant_reference, request_signer


def main() -> int:
    configure_logging(level=config.log_level, log_format="console", debug=config.debug)
    config.validate()

    order_id = sys.argv[1] if len(sys.argv) > 1 else "TEST"
    amount = sys.argv[2] if len(sys.argv) > 2 else "1.000"
    now = datetime.now()

    secure_hash, payload = request_signer.build_signed_request(
        amount=amount,
        currency_id=CURRENCY_OMR,
        merchant_id=config.merchant_id,
        merchant_reference=make_merchant_reference(order_id, now),
        terminal_id=config.terminal_id,
        secret_key=config.secret_key,
        timestamp=now,
        request_source=config.request_source,
    )

    print(f"Environment: {config.environment}")
    print(f"SmartBox:    {config.smartbox_url}")
    print(f"SecureHash:  {secure_hash}")
    print(f"\nPayload:\n{json.dumps(payload, indent=2)}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
