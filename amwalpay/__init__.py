"""AmwalPay SmartBox integration: signed payment requests and callback verification."""

__version__ = "1.0.0"
