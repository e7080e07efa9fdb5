"""
Log setup for the dashboard service.

Every line carries a domain tag (assembly, identity, api) and passes through
a redaction filter, since directory keys and database DSNs can end up in
exception messages.
"""
import logging
import re
import sys

DOMAIN_ASSEMBLY = "assembly"
DOMAIN_IDENTITY = "identity"
DOMAIN_API = "api"

_LOG_FORMAT = "%(asctime)s | %(levelname)s | [%(domain)s] | %(name)s | %(message)s"
_QUIET_LOGGERS = ("httpx", "httpcore", "sqlalchemy.engine")


def get_domain_logger(name: str, domain: str) -> logging.LoggerAdapter[logging.Logger]:
    return logging.LoggerAdapter(logging.getLogger(name), {"domain": domain})


class DomainDefaultFilter(logging.Filter):
    """Tag records from third-party loggers so the format never misses %(domain)s."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "domain"):
            record.domain = "app"  # type: ignore[attr-defined]
        return True


# Patterns with three groups keep the trailing "@" of a DSN.
_SECRET_PATTERNS = [
    re.compile(r"(?i)(authorization\s*[=:]\s*bearer\s+)([^\s,;]+)"),
    re.compile(r"(?i)(api[_-]?key\s*[=:]\s*)([^\s,;]+)"),
    re.compile(r"(?i)(secret\s*[=:]\s*)([^\s,;]+)"),
    re.compile(r"(?i)(password\s*[=:]\s*)([^\s,;]+)"),
    re.compile(r"(\w+(?:\+\w+)?://[^:/@\s]+:)([^@\s]+)(@)"),
]


def redact_secrets(message: str) -> str:
    text = str(message or "")
    for pattern in _SECRET_PATTERNS:
        replacement = r"\1[REDACTED]\3" if pattern.groups == 3 else r"\1[REDACTED]"
        text = pattern.sub(replacement, text)
    return text


class SecretRedactionFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        record.msg = redact_secrets(record.getMessage())
        record.args = ()
        return True


class SuppressHealthCheckFilter(logging.Filter):
    """Drop successful /health lines from the uvicorn access log."""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        return not ("/health" in message and "200" in message)


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=_LOG_FORMAT,
        handlers=[logging.StreamHandler(sys.stdout)],
    )
    domain_filter = DomainDefaultFilter()
    redaction_filter = SecretRedactionFilter()
    for handler in logging.getLogger().handlers:
        handler.addFilter(domain_filter)
        handler.addFilter(redaction_filter)
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").addFilter(SuppressHealthCheckFilter())
