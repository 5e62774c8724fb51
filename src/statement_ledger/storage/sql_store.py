"""SQLAlchemy implementation of the transaction store."""

from decimal import Decimal
from typing import Optional

from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from statement_ledger.models.balance import BalanceAssertion, RunningBalanceInputs
from statement_ledger.models.category import Category, CategoryRule, CategoryType, MatchType, sort_rules
from statement_ledger.models.transaction import Transaction, TransactionType
from statement_ledger.storage.base import InsertResult, StorageError, TransactionStore
from statement_ledger.storage.database import create_db_engine, create_session_factory, session_scope
from statement_ledger.storage.models import (
    Base,
    BalanceAuditRow,
    BalanceSettingRow,
    CategoryRow,
    CategoryRuleRow,
    FileBalanceRow,
    TransactionRow,
)
from statement_ledger.utils.logging_config import get_logger

logger = get_logger(__name__)

# Primary key of the balance settings singleton
_SETTINGS_ID = 1


def _to_category(row: CategoryRow) -> Category:
    try:
        category_type = CategoryType(row.type)
    except ValueError:
        category_type = CategoryType.EXPENSE
    return Category(
        name=row.name,
        category_type=category_type,
        id=row.id,
        color=row.color,
        icon=row.icon,
        is_active=row.is_active,
    )


def _to_transaction(row: TransactionRow) -> Transaction:
    return Transaction(
        id=row.id,
        date=row.date,
        amount=Decimal(row.amount),
        description=row.description,
        transaction_type=TransactionType(row.type),
        value_date=row.value_date,
        accounting_date=row.accounting_date,
        category=row.category,
        category_id=row.category_id,
        category_source=row.category_source,
        is_manual_override=row.is_manual_override,
        manual_category_id=row.manual_category_id,
        content_hash=row.content_hash,
        source_kind=row.source_kind,
        source_file=row.source_file,
        source_line=row.source_line,
    )


def _to_row(txn: Transaction) -> TransactionRow:
    return TransactionRow(
        id=txn.id,
        date=txn.date,
        value_date=txn.value_date,
        accounting_date=txn.accounting_date,
        amount=txn.amount,
        description=txn.description,
        type=txn.transaction_type.value,
        category=txn.category,
        category_id=txn.category_id,
        category_source=txn.category_source,
        is_manual_override=txn.is_manual_override,
        manual_category_id=txn.manual_category_id,
        content_hash=txn.content_hash,
        source_kind=txn.source_kind,
        source_file=txn.source_file,
        source_line=txn.source_line,
    )


class SqlTransactionStore(TransactionStore):
    """Transaction store backed by a SQL database (SQLite by default).

    Every public method runs in its own transaction via ``session_scope``.
    """

    def __init__(self, database_url: str, default_base_balance: Decimal = Decimal("0")):
        """Initialize the store and create missing tables.

        Args:
            database_url: SQLAlchemy database URL.
            default_base_balance: Base balance when neither a manual nor a
                file balance is set.
        """
        self.engine = create_db_engine(database_url)
        self.session_factory = create_session_factory(self.engine)
        self.default_base_balance = default_base_balance
        Base.metadata.create_all(bind=self.engine)
        logger.debug(f"Opened store at {self.engine.url.render_as_string(hide_password=True)}")

    def close(self) -> None:
        """Release pooled connections."""
        self.engine.dispose()

    # Categories and rules

    def load_existing_hashes(self) -> set[str]:
        with session_scope(self.session_factory) as session:
            return set(session.scalars(select(TransactionRow.content_hash)))

    def load_categories(self) -> dict[int, Category]:
        with session_scope(self.session_factory) as session:
            return {row.id: _to_category(row) for row in session.scalars(select(CategoryRow))}

    def load_active_rules(self) -> list[CategoryRule]:
        with session_scope(self.session_factory) as session:
            stmt = (
                select(CategoryRuleRow, CategoryRow.name)
                .join(CategoryRow, CategoryRuleRow.category_id == CategoryRow.id)
                .where(CategoryRuleRow.enabled.is_(True), CategoryRow.is_active.is_(True))
                .order_by(CategoryRuleRow.priority.asc(), func.length(CategoryRuleRow.pattern).desc())
            )
            rules = [
                CategoryRule(
                    pattern=rule.pattern,
                    category_id=rule.category_id,
                    category_name=name,
                    match_type=MatchType.parse(rule.match_type),
                    priority=rule.priority,
                    enabled=rule.enabled,
                    id=rule.id,
                )
                for rule, name in session.execute(stmt)
            ]
        # Re-sort in Python so ties order the same on every backend
        return sort_rules(rules)

    def seed_categories(self, categories: list[Category], rules: list[CategoryRule]) -> bool:
        with session_scope(self.session_factory) as session:
            if session.scalar(select(func.count()).select_from(CategoryRow)):
                return False

            rows: dict[str, CategoryRow] = {}
            for category in categories:
                row = CategoryRow(
                    name=category.name,
                    type=category.category_type.value,
                    color=category.color,
                    icon=category.icon,
                    is_active=category.is_active,
                )
                session.add(row)
                rows[category.name] = row
            session.flush()

            for rule in rules:
                owner = rows.get(rule.category_name or "")
                if owner is None:
                    logger.warning(f"Skipping rule {rule.pattern!r}: unknown category {rule.category_name!r}")
                    continue
                session.add(
                    CategoryRuleRow(
                        category_id=owner.id,
                        pattern=rule.pattern,
                        match_type=rule.match_type.value,
                        priority=rule.priority,
                        enabled=rule.enabled,
                    )
                )
        logger.info(f"Seeded {len(categories)} categories and {len(rules)} rules")
        return True

    # Transactions

    def insert_transactions(self, batch: list[Transaction]) -> InsertResult:
        if not batch:
            return InsertResult(inserted=0, duplicates=0)

        inserted = 0
        duplicates = 0
        try:
            with session_scope(self.session_factory) as session:
                hashes = [txn.content_hash for txn in batch]
                ids = [txn.id for txn in batch]
                seen_hashes = set(
                    session.scalars(select(TransactionRow.content_hash).where(TransactionRow.content_hash.in_(hashes)))
                )
                seen_ids = set(session.scalars(select(TransactionRow.id).where(TransactionRow.id.in_(ids))))
                for txn in batch:
                    if txn.content_hash in seen_hashes or txn.id in seen_ids:
                        duplicates += 1
                        continue
                    session.add(_to_row(txn))
                    seen_hashes.add(txn.content_hash)
                    seen_ids.add(txn.id)
                    inserted += 1
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to insert {len(batch)} transactions: {e}") from e

        logger.info(f"Inserted {inserted} transactions, skipped {duplicates} duplicates")
        return InsertResult(inserted=inserted, duplicates=duplicates)

    def list_transactions(self) -> list[Transaction]:
        with session_scope(self.session_factory) as session:
            rows = session.scalars(select(TransactionRow).order_by(TransactionRow.date, TransactionRow.id))
            return [_to_transaction(row) for row in rows]

    def update_categories(self, updates: dict[str, tuple[str, Optional[int]]]) -> None:
        with session_scope(self.session_factory) as session:
            for transaction_id, (name, category_id) in updates.items():
                session.execute(
                    update(TransactionRow)
                    .where(TransactionRow.id == transaction_id)
                    .values(category=name, category_id=category_id, category_source="rule")
                )

    def set_manual_category(self, transaction_id: str, category_id: Optional[int]) -> None:
        with session_scope(self.session_factory) as session:
            row = session.get(TransactionRow, transaction_id)
            if row is None:
                raise StorageError(f"Transaction not found: {transaction_id}")
            if category_id is None:
                row.is_manual_override = False
                row.manual_category_id = None
                return
            category = session.get(CategoryRow, category_id)
            if category is None:
                raise StorageError(f"Category not found: {category_id}")
            row.is_manual_override = True
            row.manual_category_id = category_id
            row.category = category.name
            row.category_id = category_id
            row.category_source = "manual"

    # Balances

    def _settings(self, session: Session) -> BalanceSettingRow:
        settings = session.get(BalanceSettingRow, _SETTINGS_ID)
        if settings is None:
            settings = BalanceSettingRow(id=_SETTINGS_ID, manual_balance=None)
            session.add(settings)
        return settings

    def get_running_balance_inputs(self) -> RunningBalanceInputs:
        with session_scope(self.session_factory) as session:
            settings = session.get(BalanceSettingRow, _SETTINGS_ID)
            if settings is not None and settings.manual_balance is not None:
                base, source = Decimal(settings.manual_balance), "manual"
            else:
                selected = session.scalars(
                    select(FileBalanceRow)
                    .where(FileBalanceRow.is_selected.is_(True))
                    .order_by(FileBalanceRow.id.desc())
                ).first()
                if selected is not None:
                    base, source = Decimal(selected.balance), "file"
                else:
                    base, source = self.default_base_balance, "default"
            rows = session.scalars(select(TransactionRow))
            transactions = [_to_transaction(row) for row in rows]
        return RunningBalanceInputs(base_balance=base, base_source=source, prior_transactions=transactions)

    def save_file_balance(self, assertion: BalanceAssertion, file_name: str, select: bool = False) -> int:
        with session_scope(self.session_factory) as session:
            row = FileBalanceRow(
                file_name=file_name,
                balance=assertion.value,
                extraction_pattern=assertion.extraction_pattern,
                statement_date=assertion.statement_date,
                is_selected=False,
            )
            session.add(row)
            session.flush()
            balance_id = row.id
        if select:
            self.select_file_balance(balance_id)
        return balance_id

    def select_file_balance(self, balance_id: int) -> None:
        with session_scope(self.session_factory) as session:
            row = session.get(FileBalanceRow, balance_id)
            if row is None:
                raise StorageError(f"File balance not found: {balance_id}")
            session.execute(update(FileBalanceRow).values(is_selected=False))
            row.is_selected = True
            settings = self._settings(session)
            old = settings.manual_balance
            # Selecting a document balance replaces any manual override
            settings.manual_balance = None
            session.add(
                BalanceAuditRow(
                    action="select_file",
                    old_balance=old,
                    new_balance=row.balance,
                    reason=f"{row.file_name} ({row.extraction_pattern})",
                )
            )
        logger.info(f"Selected file balance {balance_id} as base balance")

    def set_manual_balance(self, value: Decimal, reason: str = "manual") -> None:
        with session_scope(self.session_factory) as session:
            settings = self._settings(session)
            old = settings.manual_balance
            settings.manual_balance = value
            session.add(BalanceAuditRow(action="manual", old_balance=old, new_balance=value, reason=reason))
        logger.info(f"Manual base balance set to {value}")

    def clear_manual_balance(self) -> None:
        with session_scope(self.session_factory) as session:
            settings = self._settings(session)
            old = settings.manual_balance
            settings.manual_balance = None
            session.add(BalanceAuditRow(action="reset", old_balance=old, new_balance=None, reason="cleared"))
        logger.info("Manual base balance cleared")

    def latest_file_balance(self) -> Optional[BalanceAssertion]:
        with session_scope(self.session_factory) as session:
            row = session.scalars(select(FileBalanceRow).order_by(FileBalanceRow.id.desc())).first()
            if row is None:
                return None
            return BalanceAssertion(
                value=Decimal(row.balance),
                extraction_pattern=row.extraction_pattern,
                statement_date=row.statement_date,
            )
