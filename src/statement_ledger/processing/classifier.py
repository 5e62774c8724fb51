"""Income/expense classification for statement descriptions.

Classification is an ordered list of named rules. Each rule either
returns a verdict or passes; the first verdict wins and the final rule
always answers, so ``classify`` is total.
"""

import re
from collections.abc import Callable
from dataclasses import dataclass
from typing import Optional

from statement_ledger.models.transaction import TransactionType
from statement_ledger.utils.logging_config import get_logger

logger = get_logger(__name__)

INCOME_KEYWORDS = [
    "stipendio", "salary", "salario", "pensione", "pension",
    "accredito", "accr", "rimborso", "refund", "versamento", "deposito",
    "bonifico da", "bonifico ricevuto", "interesse", "interessi",
    "dividendo", "dividendi", "rendita", "entrata",
]

EXPENSE_KEYWORDS = [
    "pagamento", "pos", "addebito", "prelievo", "withdrawal",
    "commissione", "commissioni", "imposta", "tassa", "bollettino", "f24",
    "pedaggio", "multa", "bonifico a", "bonifico verso", "carta", "bancomat",
]

# Hints that mark an operation as payment, debit or tax
EXPENSE_HINTS = ["pagamento", "pos", "addebito", "prelievo", "imposta", "tassa", "f24", "commissione"]

TRANSFER_KEYWORDS = ["bonifico", "postagiro", "giroconto"]

# Transfer wording that implies incoming money when no preposition is present
TRANSFER_INCOME_KEYWORDS = ["ricevuto", "ricevuta", "in entrata", "in arrivo"]

BUSINESS_PATTERN = re.compile(
    r"\b(srl|s\.r\.l|spa|s\.p\.a|snc|sas|ltd|gmbh|sarl|"
    r"amazon|google|microsoft|apple|netflix|spotify)\b"
)
PERSONAL_PATTERN = re.compile(r"\b(dott|dr|ing|prof|sig|sig\.ra|mr|ms)\b\.?")

DIRECTION_PATTERN = re.compile(r"\b(da|a|verso)\s+[a-z0-9]")

# Operation keywords recognized at the start of a description
OPERATION_TYPE_PATTERN = re.compile(
    r"^(PAGAMENTO\s+POS|PAGAMENTO|BONIFICO|ADDEBITO|POSTAGIRO|PRELIEVO|IMPOSTA|"
    r"STIPENDIO|F24|COMMISSION[EI]|GIROCONTO|ACCR\.?\s?RIC\.?|ACCREDITO)\b",
    re.IGNORECASE,
)


@dataclass(frozen=True)
class ClassificationInput:
    """Lowercased, whitespace-collapsed classifier input."""

    hint: str
    description: str

    @classmethod
    def build(cls, hint: Optional[str], description: Optional[str]) -> "ClassificationInput":
        def prep(value: Optional[str]) -> str:
            return re.sub(r"\s+", " ", str(value or "")).strip().lower()

        return cls(prep(hint), prep(description))

    @property
    def mentions_transfer(self) -> bool:
        return _has_any(self.hint, TRANSFER_KEYWORDS) or _has_any(self.description, TRANSFER_KEYWORDS)


@dataclass(frozen=True)
class ClassificationRule:
    """Named classification step.

    Attributes:
        name: Step name, reported by ``explain``.
        decide: Returns a verdict, or None to pass to the next rule.
    """

    name: str
    decide: Callable[[ClassificationInput], Optional[TransactionType]]


def _has_any(text: str, keywords: list[str]) -> bool:
    """Check for any keyword as a whole word or phrase."""
    return any(re.search(rf"\b{re.escape(kw)}\b", text) for kw in keywords)


def _direction(text: str) -> Optional[TransactionType]:
    """Direction implied by the first from/to preposition in text."""
    match = DIRECTION_PATTERN.search(text)
    if not match:
        return None
    return TransactionType.INCOME if match.group(1) == "da" else TransactionType.EXPENSE


def _counterparty_kind(text: str) -> Optional[TransactionType]:
    """Businesses receive payments, people with titles usually send them."""
    if BUSINESS_PATTERN.search(text):
        return TransactionType.EXPENSE
    if PERSONAL_PATTERN.search(text):
        return TransactionType.INCOME
    return None


def _income_keywords(data: ClassificationInput) -> Optional[TransactionType]:
    if _has_any(data.description, INCOME_KEYWORDS) or "accr" in data.hint:
        return TransactionType.INCOME
    return None


def _hinted_transfer(data: ClassificationInput) -> Optional[TransactionType]:
    if not _has_any(data.hint, TRANSFER_KEYWORDS):
        return None

    # Only look at the text after the transfer keyword when it is present
    tail = data.description
    keyword = re.search(r"\b(bonifico|postagiro|giroconto)\b", tail)
    if keyword:
        tail = tail[keyword.end():]

    direction = _direction(tail)
    if direction is not None:
        return direction
    if _has_any(data.description, TRANSFER_INCOME_KEYWORDS):
        return TransactionType.INCOME
    return TransactionType.EXPENSE


def _expense_keywords(data: ClassificationInput) -> Optional[TransactionType]:
    if _has_any(data.description, EXPENSE_KEYWORDS) or _has_any(data.hint, EXPENSE_HINTS):
        return TransactionType.EXPENSE
    return None


def _leading_preposition(data: ClassificationInput) -> Optional[TransactionType]:
    if data.description.startswith("da "):
        return TransactionType.INCOME
    if data.description.startswith(("a ", "verso ")):
        return TransactionType.EXPENSE
    return None


def _transfer_counterparty(data: ClassificationInput) -> Optional[TransactionType]:
    if not data.mentions_transfer:
        return None
    return _counterparty_kind(data.description)


def _default_expense(data: ClassificationInput) -> Optional[TransactionType]:
    return TransactionType.EXPENSE


DEFAULT_RULES: tuple[ClassificationRule, ...] = (
    ClassificationRule("income_keywords", _income_keywords),
    ClassificationRule("hinted_transfer", _hinted_transfer),
    ClassificationRule("expense_keywords", _expense_keywords),
    ClassificationRule("leading_preposition", _leading_preposition),
    ClassificationRule("transfer_counterparty", _transfer_counterparty),
    ClassificationRule("default_expense", _default_expense),
)


class TransactionClassifier:
    """Decides income vs. expense for a description.

    Rules are tried in order; the default rule set ends with an
    unconditional expense verdict so ambiguous descriptions never
    inflate income.
    """

    def __init__(self, rules: tuple[ClassificationRule, ...] = DEFAULT_RULES):
        """Initialize classifier.

        Args:
            rules: Ordered classification rules.
        """
        self.rules = rules

    def explain(
        self, operation_type_hint: Optional[str], description: Optional[str]
    ) -> tuple[TransactionType, str]:
        """Classify and report which rule decided.

        Args:
            operation_type_hint: Operation keyword found by the parser, if any.
            description: Transaction description.

        Returns:
            Tuple of (verdict, rule name).
        """
        data = ClassificationInput.build(operation_type_hint, description)
        for rule in self.rules:
            verdict = rule.decide(data)
            if verdict is not None:
                return verdict, rule.name
        return TransactionType.EXPENSE, "default_expense"

    def classify(
        self, operation_type_hint: Optional[str], description: Optional[str]
    ) -> TransactionType:
        """Classify a description as income or expense.

        Args:
            operation_type_hint: Operation keyword found by the parser, if any.
            description: Transaction description.

        Returns:
            TransactionType.INCOME or TransactionType.EXPENSE.
        """
        verdict, rule_name = self.explain(operation_type_hint, description)
        logger.debug(f"Classified {str(description)[:40]!r} as {verdict.value} ({rule_name})")
        return verdict


_default_classifier = TransactionClassifier()


def classify(operation_type_hint: Optional[str], description: Optional[str]) -> TransactionType:
    """Classify with the default rule set."""
    return _default_classifier.classify(operation_type_hint, description)


def extract_operation_type(description: Optional[str]) -> Optional[str]:
    """Find the operation keyword at the start of a description.

    Args:
        description: Description text.

    Returns:
        Upper-cased operation keyword with collapsed whitespace, or None.
    """
    if not description:
        return None
    match = OPERATION_TYPE_PATTERN.match(description.strip())
    if not match:
        return None
    return re.sub(r"\s+", " ", match.group(1)).upper()
