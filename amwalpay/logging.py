"""structlog setup for the AmwalPay integration.

Events go to stdout, rendered as JSON or for the console. Credentials and
card tokens are masked before rendering. Secure hashes stay readable, since
comparing the supplied and computed hash is the point of the callback audit.
"""

from __future__ import annotations

import logging
import sys
from typing import Any, MutableMapping

import structlog

MASK = "***REDACTED***"

# Normalised names (lower case, no "_" or "-") of payment fields never logged in full
SECRET_FIELDS = frozenset({"secretkey", "password", "authorization"})
TOKEN_FIELDS = frozenset({"sessiontoken", "customertokenid"})


def _normalise(key: Any) -> str:
    return str(key).replace("_", "").replace("-", "").lower()


def _mask_value(name: str, value: Any) -> Any:
    if not isinstance(value, str) or not value:
        return value
    # A token prefix is enough to match a log line to a saved card
    if name in TOKEN_FIELDS and len(value) > 8:
        return value[:4] + MASK
    return MASK


def _is_sensitive(name: str) -> bool:
    return name in SECRET_FIELDS or name in TOKEN_FIELDS or "secret" in name


def _mask(data: Any) -> Any:
    if isinstance(data, MutableMapping):
        masked = {}
        for key, value in data.items():
            name = _normalise(key)
            masked[key] = _mask_value(name, value) if _is_sensitive(name) else _mask(value)
        return masked
    if isinstance(data, list):
        return [_mask(item) for item in data]
    return data


class SensitiveDataFilter:
    """structlog processor masking merchant secrets and customer tokens.

    Applies to nested payloads too, e.g. the callback query logged under
    ``params`` where ``customerTokenId`` identifies a saved card. The
    ``customerId`` and hash fields are left as sent by the gateway.
    """

    def __call__(
        self,
        logger: logging.Logger,
        method_name: str,
        event_dict: MutableMapping[str, Any],
    ) -> MutableMapping[str, Any]:
        return _mask(event_dict)


def configure_logging(
    level: str = "INFO",
    log_format: str = "json",
    debug: bool = False,
) -> None:
    """Configure structlog on top of the standard logging module.

    Args:
        level: Log level name; unknown names fall back to INFO.
        log_format: "json" or "console".
        debug: Merchant debug flag. Forces DEBUG so that payment requests
            and callback hash comparisons are written out.
    """
    if debug:
        log_level = logging.DEBUG
    else:
        log_level = logging.getLevelName(str(level).upper())
        if not isinstance(log_level, int):
            log_level = logging.INFO

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(log_level)
    logging.basicConfig(level=log_level, handlers=[handler], force=True)

    if log_format == "json":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=True)

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        SensitiveDataFilter(),
    ]

    structlog.configure(
        processors=shared_processors + [
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler.setFormatter(structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared_processors,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    ))

    structlog.get_logger(__name__).debug("logging_configured", format=log_format, debug=debug)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


__all__ = ["MASK", "SensitiveDataFilter", "configure_logging", "get_logger"]
