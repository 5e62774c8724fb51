"""Logging configuration for the statement ledger.

Statement text routinely carries IBANs and the account holder's name, and
parsers log raw lines at debug level. Every handler installed by
``setup_logging`` therefore runs a ``SensitiveDataFilter`` that masks
IBANs in the rendered message, plus any value registered at runtime with
``register_sensitive_values`` (the pipeline registers the holder and IBAN
it reads from a statement header).
"""

import logging
import re
import sys
from collections.abc import Iterable
from pathlib import Path

# Default log file name
DEFAULT_LOG_FILE = "statement_ledger.log"

PACKAGE_LOGGER = "statement_ledger"

# Context keys masked in log output
SENSITIVE_FIELDS = {"iban", "account_number", "holder", "card_number", "token", "password"}

MASK = "***"

# Compact or space-grouped IBANs (country code, check digits, 11-30 chars)
IBAN_TEXT_PATTERN = re.compile(
    r"\b[A-Z]{2}\d{2}(?:[A-Z0-9]{11,30}|(?: [A-Z0-9]{4}){2,7}(?: [A-Z0-9]{1,3})?)\b"
)

# Registered values shorter than this are not masked
MIN_SENSITIVE_LENGTH = 3

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def mask_iban(iban: str) -> str:
    """Keep the country code and the last four characters of an IBAN."""
    compact = iban.replace(" ", "")
    return f"{compact[:2]}{MASK}{compact[-4:]}"


def mask_sensitive_text(text: str, values: Iterable[str] = ()) -> str:
    """Mask IBANs and the given literal values in free text.

    Args:
        text: Text to mask.
        values: Extra values (e.g. holder names), matched case-insensitively.

    Returns:
        The masked text.
    """
    masked = IBAN_TEXT_PATTERN.sub(lambda m: mask_iban(m.group(0)), text)
    # Longest first so a full name wins over a registered surname
    for value in sorted(values, key=len, reverse=True):
        masked = re.sub(re.escape(value), MASK, masked, flags=re.IGNORECASE)
    return masked


def _sanitize_context(context: dict[str, object]) -> dict[str, object]:
    """Mask sensitive fields in a context dict.

    Keys listed in SENSITIVE_FIELDS are replaced outright; other string
    values still have IBANs masked.

    Args:
        context: Dictionary of context values.

    Returns:
        Dictionary with sensitive fields masked.
    """
    sanitized: dict[str, object] = {}
    for key, value in context.items():
        if key.lower() in SENSITIVE_FIELDS:
            sanitized[key] = MASK
        elif isinstance(value, str):
            sanitized[key] = mask_sensitive_text(value)
        else:
            sanitized[key] = value
    return sanitized


class SensitiveDataFilter(logging.Filter):
    """Handler filter that masks IBANs and registered values in messages."""

    def __init__(self, values: Iterable[str] = ()):
        """Initialize filter.

        Args:
            values: Literal values to mask in addition to IBANs.
        """
        super().__init__()
        self.values: set[str] = set()
        self.remember(*values)

    def remember(self, *values: str | None) -> None:
        """Add values to mask; empty and very short values are ignored."""
        for value in values:
            if value and len(value.strip()) >= MIN_SENSITIVE_LENGTH:
                self.values.add(value.strip())

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        masked = mask_sensitive_text(message, self.values)
        if masked != message:
            record.msg = masked
            record.args = None
        return True


def setup_logging(
    level: str = "INFO",
    log_file: str | None = None,
    console_output: bool = True,
) -> logging.Logger:
    """Configure logging for the application.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        log_file: Path to log file. If None, uses DEFAULT_LOG_FILE.
        console_output: Whether to also output to stderr.

    Returns:
        The package logger.
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    logger = logging.getLogger(PACKAGE_LOGGER)
    logger.setLevel(numeric_level)
    logger.handlers.clear()

    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)
    sensitive_filter = SensitiveDataFilter()

    if log_file is None:
        log_file = DEFAULT_LOG_FILE

    log_path = Path(log_file)
    log_path.parent.mkdir(parents=True, exist_ok=True)
    file_handler = logging.FileHandler(log_path, encoding="utf-8")
    file_handler.setLevel(numeric_level)
    file_handler.setFormatter(formatter)
    file_handler.addFilter(sensitive_filter)
    logger.addHandler(file_handler)

    if console_output:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(numeric_level)
        console_handler.setFormatter(formatter)
        console_handler.addFilter(sensitive_filter)
        logger.addHandler(console_handler)

    return logger


def register_sensitive_values(*values: str | None) -> None:
    """Mask these values in everything the package handlers emit from now on.

    Args:
        *values: Values such as the account holder or IBAN; None is ignored.
    """
    for handler in logging.getLogger(PACKAGE_LOGGER).handlers:
        for log_filter in handler.filters:
            if isinstance(log_filter, SensitiveDataFilter):
                log_filter.remember(*values)


def get_logger(name: str) -> logging.Logger:
    """Get a logger for a specific module.

    Args:
        name: Module name (typically __name__).

    Returns:
        A logger namespaced under ``statement_ledger``.
    """
    if name.startswith(PACKAGE_LOGGER):
        return logging.getLogger(name)
    return logging.getLogger(f"{PACKAGE_LOGGER}.{name}")


class LogContext:
    """Context manager that brackets a pipeline stage with debug/error log lines.

    Example:
        with LogContext(logger, "parse", file="estratto.pdf", parser="bancoposta"):
            ...
    """

    def __init__(self, logger: logging.Logger, operation: str, **context: object):
        """Initialize log context.

        Args:
            logger: Logger instance to use.
            operation: Name of the stage being performed.
            **context: Additional context to include in log messages.
        """
        self.logger = logger
        self.operation = operation
        self.context = context

    def _describe(self) -> str:
        sanitized = _sanitize_context(self.context)
        context_str = ", ".join(f"{k}={v}" for k, v in sanitized.items())
        return f"{self.operation} ({context_str})" if context_str else self.operation

    def __enter__(self) -> "LogContext":
        self.logger.debug(f"Starting {self._describe()}")
        return self

    def __exit__(
        self,
        exc_type: type | None,
        exc_val: BaseException | None,
        exc_tb: object | None,
    ) -> bool:
        if exc_type is not None:
            self.logger.error(
                f"Error in {self._describe()}: {exc_type.__name__}: {mask_sensitive_text(str(exc_val))}",
                exc_info=True,
            )
        else:
            self.logger.debug(f"Completed {self._describe()}")
        return False
