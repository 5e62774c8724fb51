"""Text normalization helpers shared by parsers and the rule engine."""

import re
import unicodedata
from dataclasses import dataclass
from typing import Generic, TypeVar

T = TypeVar("T")

# Placeholder used when a description is empty after cleaning
EMPTY_DESCRIPTION = "Transaction"

_WHITESPACE_RE = re.compile(r"\s+")


@dataclass(frozen=True)
class Normalized(Generic[T]):
    """Result of a lenient normalization.

    Attributes:
        value: The normalized value (the fallback when defaulted).
        defaulted: True when the input could not be parsed and the
            fallback value was substituted.
    """

    value: T
    defaulted: bool = False


def collapse_whitespace(text: str) -> str:
    """Collapse whitespace runs to single spaces and trim."""
    return _WHITESPACE_RE.sub(" ", text).strip()


def clean_description(text: str | None) -> str:
    """Clean a transaction description for storage and display.

    Args:
        text: Raw description text.

    Returns:
        Whitespace-collapsed description, or the placeholder if empty.
    """
    if not text:
        return EMPTY_DESCRIPTION
    cleaned = collapse_whitespace(str(text))
    return cleaned or EMPTY_DESCRIPTION


def strip_accents(text: str) -> str:
    """Remove combining diacritical marks (è -> e)."""
    decomposed = unicodedata.normalize("NFD", text)
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def normalize_for_matching(text: str | None) -> str:
    """Normalize text for rule matching.

    Lowercases, trims, collapses whitespace and strips diacritics.
    The result is only used for comparisons and is never persisted.

    Args:
        text: Text to normalize.

    Returns:
        Normalized text (empty string for empty input).
    """
    if not text:
        return ""
    return strip_accents(collapse_whitespace(str(text).lower()))
