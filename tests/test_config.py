"""Tests for configuration loading."""

from decimal import Decimal
from pathlib import Path

import pytest

from statement_ledger.config import DATABASE_URL_ENV, ConfigError, load_categories, load_config
from statement_ledger.models.category import CategoryType, MatchType

CONFIG_DIR = Path(__file__).parent.parent / "config"


class TestLoadConfig:
    """Tests for load_config."""

    def test_repository_config(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test the shipped settings and categories."""
        monkeypatch.delenv(DATABASE_URL_ENV, raising=False)

        config = load_config(CONFIG_DIR)

        assert config.ingestion.min_document_bytes == 100
        assert config.ingestion.column_gap == 50.0
        assert config.balance.low_ratio == Decimal("0.05")
        assert config.balance.high_ratio == Decimal("0.2")
        assert config.fallback_category == "Other"
        assert config.database_url == "sqlite:///data/ledger.db"
        assert "Other" in {c.name for c in config.categories}

    def test_env_overrides_database_url(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test the environment override."""
        monkeypatch.setenv(DATABASE_URL_ENV, "sqlite:///:memory:")
        assert load_config(CONFIG_DIR).database_url == "sqlite:///:memory:"

    def test_missing_files_use_defaults(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test that an empty config directory is not an error."""
        monkeypatch.delenv(DATABASE_URL_ENV, raising=False)

        config = load_config(tmp_path)

        assert config.categories == []
        assert config.balance.high_absolute == Decimal("200")

    def test_inverted_thresholds_rejected(self, tmp_path: Path) -> None:
        """Test threshold validation."""
        (tmp_path / "settings.yaml").write_text("balance:\n  low_ratio: 0.5\n  high_ratio: 0.1\n")
        with pytest.raises(ConfigError, match="low_ratio"):
            load_config(tmp_path)

    def test_section_must_be_mapping(self, tmp_path: Path) -> None:
        """Test structural validation of settings."""
        (tmp_path / "settings.yaml").write_text("balance: [1, 2]\n")
        with pytest.raises(ConfigError, match="'balance' must be a mapping"):
            load_config(tmp_path)


class TestLoadCategories:
    """Tests for load_categories."""

    def test_rules_sorted_and_typed(self) -> None:
        """Test the shipped rules."""
        categories, rules = load_categories(CONFIG_DIR / "categories.yaml")

        by_name = {c.name: c for c in categories}
        assert by_name["Stipendio"].category_type == CategoryType.INCOME
        assert by_name["Other"].category_type == CategoryType.BOTH
        keys = [r.sort_key for r in rules]
        assert keys == sorted(keys)

    def test_match_type_spellings(self, tmp_path: Path) -> None:
        """Test camelCase and snake_case match types."""
        path = tmp_path / "categories.yaml"
        path.write_text(
            "categories:\n"
            "  - {name: Casa}\n"
            "rules:\n"
            "  - {category: Casa, pattern: affitto, match_type: startsWith}\n"
            "  - {category: Casa, pattern: condominio, match_type: ends_with, priority: 3}\n"
        )

        _, rules = load_categories(path)

        assert [r.match_type for r in rules] == [MatchType.ENDS_WITH, MatchType.STARTS_WITH]

    def test_unknown_category_rejected(self, tmp_path: Path) -> None:
        """Test rules pointing at missing categories."""
        path = tmp_path / "categories.yaml"
        path.write_text("categories:\n  - {name: Casa}\nrules:\n  - {category: Viaggi, pattern: hotel}\n")

        with pytest.raises(ConfigError, match="unknown category 'Viaggi'"):
            load_categories(path)

    def test_bad_match_type_rejected(self, tmp_path: Path) -> None:
        """Test invalid match types."""
        path = tmp_path / "categories.yaml"
        path.write_text("categories:\n  - {name: Casa}\nrules:\n  - {category: Casa, pattern: x, match_type: regex}\n")

        with pytest.raises(ConfigError, match="Invalid rule"):
            load_categories(path)
