"""Logging Hardening and Redaction.

This module provides filters to prevent key material and envelope contents
from appearing in application logs.
"""
import logging
import re

_JSON_FIELD = r'("{name}":\s*)("[^"]*"|\[[0-9,\s]*\])'

SECRET_PATTERNS = [
    # Envelope fields, base64 or integer-array form (legacy names included)
    (re.compile(_JSON_FIELD.format(name=name)), r'\1"[REDACTED]"')
    for name in ("iv", "encryptedKey", "ciphertext", "key", "data")
] + [
    # Private JWK members
    (re.compile(_JSON_FIELD.format(name=name)), r'\1"[REDACTED]"')
    for name in ("d", "p", "q", "dp", "dq", "qi")
] + [
    (re.compile(r"-----BEGIN (?:ENCRYPTED )?PRIVATE KEY-----.*?-----END (?:ENCRYPTED )?PRIVATE KEY-----", re.S),
     "[REDACTED PRIVATE KEY]"),
    # Also catch keyword-based assignments
    (re.compile(r'\b(iv|encrypted_key|ciphertext)=\S+'), r'\1=[REDACTED]'),
]


def redact(text: str) -> str:
    for pattern, replacement in SECRET_PATTERNS:
        text = pattern.sub(replacement, text)
    return text


class SecretRedactionFilter(logging.Filter):
    """Filter that redacts secret-like patterns from log records."""

    def filter(self, record: logging.LogRecord) -> bool:
        if isinstance(record.msg, str):
            record.msg = redact(record.msg)

        # Also redact arguments if they are strings
        if record.args and isinstance(record.args, tuple):
            record.args = tuple(redact(arg) if isinstance(arg, str) else arg for arg in record.args)

        return True


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def setup_logging_redaction() -> None:
    """Apply the SecretRedactionFilter to the root logger, its handlers and all existing loggers."""
    redact_filter = SecretRedactionFilter()

    root_logger = logging.getLogger()

    # Remove existing filters if any (to avoid duplicates)
    for f in root_logger.filters[:]:
        if isinstance(f, SecretRedactionFilter):
            root_logger.removeFilter(f)
    root_logger.addFilter(redact_filter)

    # Records from child loggers skip root's logger-level filters but pass its handlers
    for handler in root_logger.handlers:
        for f in handler.filters[:]:
            if isinstance(f, SecretRedactionFilter):
                handler.removeFilter(f)
        handler.addFilter(redact_filter)

    for name in logging.root.manager.loggerDict:
        logger = logging.getLogger(name)
        if not any(isinstance(f, SecretRedactionFilter) for f in logger.filters):
            logger.addFilter(redact_filter)

    logging.info("Logging redaction filters active.")
