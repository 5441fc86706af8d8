"""
Structured logging setup using structlog.

Provides consistent, structured logging across all Signet components.
Every event passes through a redaction processor so CLOB credential
headers and API secrets never reach a log sink.
"""
import logging
import re
import sys
from typing import Any, Optional

import structlog

REDACTED = "[REDACTED]"

SENSITIVE_KEYS = frozenset(
    {
        "secret",
        "api_secret",
        "passphrase",
        "api_passphrase",
        "private_key",
    }
)

_JSON_HEADER_PATTERN = re.compile(r'"(POLY_[A-Z_]+)"\s*:\s*"[^"]+"')
_KV_HEADER_PATTERN = re.compile(r"(POLY_[A-Z_]+)=([A-Za-z0-9._\-]+)")
_REPR_HEADER_PATTERN = re.compile(r"'(POLY_[A-Z_]+)'\s*:\s*'[^']+'")


def redact_string(value: str) -> str:
    """Mask POLY_* header values embedded in free-form text."""
    value = _JSON_HEADER_PATTERN.sub(lambda m: f'"{m.group(1)}":"{REDACTED}"', value)
    value = _REPR_HEADER_PATTERN.sub(lambda m: f"'{m.group(1)}': '{REDACTED}'", value)
    return _KV_HEADER_PATTERN.sub(lambda m: f"{m.group(1)}={REDACTED}", value)


def _redact_value(key: Optional[str], value: Any) -> Any:
    if key is not None and (key.lower() in SENSITIVE_KEYS or key.upper().startswith("POLY_")):
        return REDACTED
    if isinstance(value, str):
        return redact_string(value)
    if isinstance(value, dict):
        return {k: _redact_value(str(k), v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return type(value)(_redact_value(None, v) for v in value)
    return value


def redact_credentials(
    logger: Any, method_name: str, event_dict: structlog.types.EventDict
) -> structlog.types.EventDict:
    """structlog processor that strips credential material from an event."""
    return {key: _redact_value(key, value) for key, value in event_dict.items()}


def setup_logging(
    level: str = "INFO",
    json_output: bool = False,
    log_file: Optional[str] = None,
) -> structlog.stdlib.BoundLogger:
    """Configure structured logging for Signet.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_output: If True, output JSON formatted logs
        log_file: Optional file path for log output

    Returns:
        Configured logger instance
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    handlers: list[logging.Handler] = []

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(log_level)
    handlers.append(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(log_level)
        handlers.append(file_handler)

    logging.basicConfig(
        format="%(message)s",
        level=log_level,
        handlers=handlers,
        force=True,
    )

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
        redact_credentials,
    ]

    if json_output:
        processors = shared_processors + [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors = shared_processors + [
            structlog.dev.ConsoleRenderer(
                colors=sys.stderr.isatty(),
                exception_formatter=structlog.dev.plain_traceback,
            ),
        ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    return structlog.get_logger("signet")


def get_logger(name: str = "signet") -> structlog.stdlib.BoundLogger:
    """Get a logger instance with the given name.

    Args:
        name: Logger name (will be prefixed with 'signet.')
    """
    if not name.startswith("signet"):
        name = f"signet.{name}"
    return structlog.get_logger(name)
