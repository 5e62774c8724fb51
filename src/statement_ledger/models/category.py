"""Category and categorization rule data models."""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from statement_ledger.utils.text_utils import normalize_for_matching


class CategoryType(Enum):
    """Which transaction direction a category is meant for."""

    INCOME = "income"
    EXPENSE = "expense"
    BOTH = "both"


class MatchType(Enum):
    """How a rule pattern is compared against a description."""

    CONTAINS = "contains"
    STARTS_WITH = "startsWith"
    ENDS_WITH = "endsWith"

    @classmethod
    def parse(cls, value: str) -> "MatchType":
        """Parse a match type, accepting snake_case and camelCase spellings.

        Args:
            value: Match type name.

        Returns:
            The MatchType.

        Raises:
            ValueError: If the value is not a known match type.
        """
        key = value.replace("_", "").lower()
        for member in cls:
            if member.value.lower() == key:
                return member
        raise ValueError(f"Unknown match type: {value!r}")


class CategorySource(Enum):
    """How a category was decided for a transaction."""

    MANUAL = "manual"
    RULE = "rule"
    FALLBACK = "fallback"


@dataclass
class Category:
    """Spending or income category.

    Attributes:
        name: Unique human-readable name.
        category_type: Direction the category is meant for.
        id: Store-assigned id (None until persisted).
        color: Display color (hex).
        icon: Display icon name.
        is_active: Inactive categories are never assigned.
    """

    name: str
    category_type: CategoryType = CategoryType.EXPENSE
    id: Optional[int] = None
    color: Optional[str] = None
    icon: Optional[str] = None
    is_active: bool = True

    @classmethod
    def from_dict(cls, data: dict[str, object]) -> "Category":
        """Create a Category from a dictionary (e.g., from YAML config).

        Args:
            data: Dictionary containing category data.

        Returns:
            A new Category instance.
        """
        try:
            category_type = CategoryType(str(data.get("type", "expense")))
        except ValueError:
            category_type = CategoryType.EXPENSE

        return cls(
            name=str(data["name"]),
            category_type=category_type,
            id=int(data["id"]) if data.get("id") is not None else None,  # type: ignore[arg-type]
            color=str(data["color"]) if "color" in data else None,
            icon=str(data["icon"]) if "icon" in data else None,
            is_active=bool(data.get("active", True)),
        )

    def __repr__(self) -> str:
        return f"Category(id={self.id!r}, name={self.name!r}, type={self.category_type.value})"


@dataclass
class CategoryRule:
    """Pattern rule assigning a category to matching descriptions.

    Rules are evaluated by ascending priority, ties broken by longer
    pattern first.

    Attributes:
        pattern: Text compared against the normalized description.
        category_id: Category assigned on match.
        category_name: Name of the category (resolved by the store or config).
        match_type: contains, startsWith or endsWith.
        priority: Lower numbers are evaluated first.
        enabled: Disabled rules never match.
        id: Store-assigned id.
    """

    pattern: str
    category_id: Optional[int] = None
    category_name: Optional[str] = None
    match_type: MatchType = MatchType.CONTAINS
    priority: int = 10
    enabled: bool = True
    id: Optional[int] = None

    @property
    def normalized_pattern(self) -> str:
        """Pattern normalized the same way as descriptions."""
        return normalize_for_matching(self.pattern)

    @property
    def sort_key(self) -> tuple[int, int]:
        """Key for evaluation order: priority asc, pattern length desc."""
        return (self.priority, -len(self.pattern))

    def matches(self, normalized_description: str) -> bool:
        """Check a normalized description against this rule.

        Args:
            normalized_description: Description passed through
                ``normalize_for_matching``.

        Returns:
            True if the rule is enabled and its pattern matches.
        """
        if not self.enabled:
            return False
        pattern = self.normalized_pattern
        if not pattern:
            return False
        if self.match_type == MatchType.STARTS_WITH:
            return normalized_description.startswith(pattern)
        if self.match_type == MatchType.ENDS_WITH:
            return normalized_description.endswith(pattern)
        return pattern in normalized_description

    @classmethod
    def from_dict(cls, data: dict[str, object]) -> "CategoryRule":
        """Create a CategoryRule from a dictionary (e.g., from YAML config).

        Args:
            data: Dictionary with pattern, category and optional
                match_type, priority, enabled.

        Returns:
            A new CategoryRule instance.
        """
        return cls(
            pattern=str(data["pattern"]),
            category_id=int(data["category_id"]) if data.get("category_id") is not None else None,  # type: ignore[arg-type]
            category_name=str(data["category"]) if "category" in data else None,
            match_type=MatchType.parse(str(data.get("match_type", "contains"))),
            priority=int(data.get("priority", 10)),  # type: ignore[arg-type]
            enabled=bool(data.get("enabled", True)),
            id=int(data["id"]) if data.get("id") is not None else None,  # type: ignore[arg-type]
        )

    def __repr__(self) -> str:
        return (
            f"CategoryRule(pattern={self.pattern!r}, category={self.category_name!r}, "
            f"match={self.match_type.value}, priority={self.priority})"
        )


def sort_rules(rules: list[CategoryRule]) -> list[CategoryRule]:
    """Return rules in evaluation order (priority asc, pattern length desc)."""
    return sorted(rules, key=lambda r: r.sort_key)


@dataclass(frozen=True)
class CategoryMatch:
    """Outcome of categorizing one description.

    Exactly one of three cases: a manual override, a matching rule, or
    the fallback category.

    Attributes:
        source: Which case produced the category.
        category_name: Name of the assigned category.
        category_id: Id of the assigned category (None for the fallback).
        rule: The matching rule, for the rule case.
    """

    source: CategorySource
    category_name: str
    category_id: Optional[int] = None
    rule: Optional[CategoryRule] = None

    @classmethod
    def manual(cls, category: Category) -> "CategoryMatch":
        return cls(CategorySource.MANUAL, category.name, category.id)

    @classmethod
    def from_rule(cls, rule: CategoryRule, category: Category) -> "CategoryMatch":
        return cls(CategorySource.RULE, category.name, category.id, rule)

    @classmethod
    def fallback(cls, category_name: str, category_id: Optional[int] = None) -> "CategoryMatch":
        return cls(CategorySource.FALLBACK, category_name, category_id)
