"""Shared fixtures for statement ledger tests."""

from collections.abc import Iterator
from pathlib import Path

import pytest

from statement_ledger.config import Config, load_categories
from statement_ledger.models.category import Category, CategoryRule, CategoryType, MatchType
from statement_ledger.storage.sql_store import SqlTransactionStore

CONFIG_DIR = Path(__file__).parent.parent / "config"

# BancoPosta export: header block, then one POS payment spread over
# description, date/amount and card detail lines
BANCOPOSTA_LINES = [
    "BANCOPOSTA",
    "RIEPILOGO CONTO CORRENTE",
    "SALDO E MOVIMENTI AL 30 SETTEMBRE 2025",
    "CONTO NR. 000012345678 INTESTATO A MARIO ROSSI",
    "IBAN IT60X0542811101000000123456",
    "SALDO CONTABILE 1.300,00 € SALDO DISPONIBILE 1.300,00 €",
    "LISTA MOVIMENTI",
    "DATA CONTABILE   DATA VALUTA   ADDEBITI   ACCREDITI   DESCRIZIONE OPERAZIONI",
    "PAGAMENTO POS STAZIONE FRUTTA ROMA",
    "13/09/2025 11/09/2025 15,24",
    "13/09/2025 10.32 CARTA ****2943",
]


@pytest.fixture
def bancoposta_lines() -> list[str]:
    """Reconstructed lines of a one-transaction BancoPosta statement."""
    return list(BANCOPOSTA_LINES)


@pytest.fixture
def categories() -> list[Category]:
    """A small set of persisted categories."""
    return [
        Category(name="Alimenti", category_type=CategoryType.EXPENSE, id=1),
        Category(name="Abbonamenti", category_type=CategoryType.EXPENSE, id=2),
        Category(name="Stipendio", category_type=CategoryType.INCOME, id=3),
        Category(name="Other", category_type=CategoryType.BOTH, id=4),
        Category(name="Archivio", category_type=CategoryType.EXPENSE, id=5, is_active=False),
    ]


@pytest.fixture
def rules() -> list[CategoryRule]:
    """Rules owned by the categories fixture."""
    return [
        CategoryRule(pattern="stazione frutta", category_id=1, category_name="Alimenti", priority=10),
        CategoryRule(pattern="netflix", category_id=2, category_name="Abbonamenti", priority=10),
        CategoryRule(
            pattern="stipendio", category_id=3, category_name="Stipendio",
            match_type=MatchType.STARTS_WITH, priority=5,
        ),
        CategoryRule(pattern="frutta", category_id=5, category_name="Archivio", priority=1),
    ]


@pytest.fixture
def config(tmp_path: Path) -> Config:
    """Config with the default categories and a temporary database."""
    config = Config(database_url=f"sqlite:///{tmp_path / 'ledger.db'}")
    config.categories, config.category_rules = load_categories(CONFIG_DIR / "categories.yaml")
    return config


@pytest.fixture
def store(config: Config) -> Iterator[SqlTransactionStore]:
    """SQLite store on a temporary file, seeded with the default categories."""
    store = SqlTransactionStore(config.database_url)
    store.seed_categories(config.categories, config.category_rules)
    yield store
    store.close()
