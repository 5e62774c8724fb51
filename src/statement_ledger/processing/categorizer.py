"""Rule-based transaction categorizer with manual-override precedence."""

from collections.abc import Iterable
from typing import TYPE_CHECKING, Optional

from statement_ledger.models.category import Category, CategoryMatch, CategoryRule, sort_rules
from statement_ledger.models.transaction import Transaction
from statement_ledger.utils.logging_config import get_logger
from statement_ledger.utils.text_utils import normalize_for_matching

if TYPE_CHECKING:
    from statement_ledger.storage.base import TransactionStore

logger = get_logger(__name__)

DEFAULT_FALLBACK_CATEGORY = "Other"


class Categorizer:
    """Assigns categories from one snapshot of rules and categories.

    Precedence:
    1. Manual override resolving to an active category
    2. First matching enabled rule of an active category, by priority
       ascending then pattern length descending
    3. The fallback category

    The rule list is filtered and ordered once at construction, so a batch
    is always categorized against a consistent snapshot.
    """

    def __init__(
        self,
        rules: Iterable[CategoryRule],
        categories: Iterable[Category],
        fallback_category: str = DEFAULT_FALLBACK_CATEGORY,
    ):
        """Initialize categorizer.

        Args:
            rules: Rules to evaluate (any order).
            categories: Known categories, used to resolve rule owners and
                manual overrides.
            fallback_category: Name assigned when nothing matches.
        """
        self.categories = list(categories)
        self._by_id = {c.id: c for c in self.categories if c.id is not None}
        self._by_name = {c.name: c for c in self.categories}
        self.fallback_category = fallback_category

        self.rules: list[tuple[CategoryRule, Category]] = []
        for rule in sort_rules(list(rules)):
            owner = self._owner(rule)
            if rule.enabled and owner is not None and owner.is_active:
                self.rules.append((rule, owner))

        logger.debug(f"Categorizer loaded {len(self.rules)} active rules")

    def _owner(self, rule: CategoryRule) -> Optional[Category]:
        if rule.category_id is not None and rule.category_id in self._by_id:
            return self._by_id[rule.category_id]
        if rule.category_name is not None:
            return self._by_name.get(rule.category_name)
        return None

    def match(self, description: str, manual_category_id: Optional[int] = None) -> CategoryMatch:
        """Decide the category for a description.

        Args:
            description: Transaction description.
            manual_category_id: Category pinned by the user, if any.

        Returns:
            CategoryMatch tagged with how the category was decided.
        """
        if manual_category_id is not None:
            pinned = self._by_id.get(manual_category_id)
            if pinned is not None and pinned.is_active:
                return CategoryMatch.manual(pinned)
            logger.debug(f"Manual category {manual_category_id} missing or inactive, evaluating rules")

        normalized = normalize_for_matching(description)
        for rule, owner in self.rules:
            if rule.matches(normalized):
                return CategoryMatch.from_rule(rule, owner)

        fallback = self._by_name.get(self.fallback_category)
        return CategoryMatch.fallback(self.fallback_category, fallback.id if fallback else None)

    def categorize_transaction(self, txn: Transaction) -> CategoryMatch:
        """Categorize one transaction in place.

        Args:
            txn: Transaction to categorize.

        Returns:
            The CategoryMatch applied.
        """
        manual_id = txn.manual_category_id if txn.is_manual_override else None
        result = self.match(txn.description, manual_id)
        txn.assign_category(result.category_name, result.category_id, result.source.value)
        return result

    def categorize(self, transactions: list[Transaction]) -> list[Transaction]:
        """Categorize a batch of transactions.

        Args:
            transactions: Transactions to categorize.

        Returns:
            Same list with categories assigned (modified in place).
        """
        counts: dict[str, int] = {"manual": 0, "rule": 0, "fallback": 0}
        for txn in transactions:
            counts[self.categorize_transaction(txn).source.value] += 1

        logger.info(
            f"Categorized {len(transactions)} transactions: {counts['rule']} by rule, "
            f"{counts['manual']} manual, {counts['fallback']} fallback"
        )
        return transactions


def categorize_transactions(
    transactions: list[Transaction],
    rules: Iterable[CategoryRule],
    categories: Iterable[Category],
    fallback_category: str = DEFAULT_FALLBACK_CATEGORY,
) -> list[Transaction]:
    """Convenience wrapper around Categorizer.categorize."""
    return Categorizer(rules, categories, fallback_category).categorize(transactions)


def preview_categorization(
    description: str,
    rules: Iterable[CategoryRule],
    categories: Iterable[Category],
    fallback_category: str = DEFAULT_FALLBACK_CATEGORY,
) -> CategoryMatch:
    """Show which category a description would get, without a transaction.

    Args:
        description: Description to test.
        rules: Rules to evaluate.
        categories: Known categories.
        fallback_category: Fallback category name.

    Returns:
        The CategoryMatch (rule case carries the matching rule).
    """
    return Categorizer(rules, categories, fallback_category).match(description)


def recategorize_all(store: "TransactionStore", fallback_category: str = DEFAULT_FALLBACK_CATEGORY) -> int:
    """Re-run the rule engine over every persisted transaction.

    Manual overrides keep their category. Rules are loaded once for the
    whole sweep.

    Args:
        store: Transaction store.
        fallback_category: Fallback category name.

    Returns:
        Number of transactions whose category changed.
    """
    categorizer = Categorizer(store.load_active_rules(), store.load_categories().values(), fallback_category)
    updates: dict[str, tuple[str, Optional[int]]] = {}
    transactions = store.list_transactions()
    for txn in transactions:
        before = (txn.category, txn.category_id)
        categorizer.categorize_transaction(txn)
        if (txn.category, txn.category_id) != before:
            updates[txn.id] = (txn.category, txn.category_id)

    if updates:
        store.update_categories(updates)
    logger.info(f"Recategorized {len(transactions)} transactions, {len(updates)} changed")
    return len(updates)
