"""Configuration loading and validation for the statement ledger."""

import os
from dataclasses import dataclass, field
from decimal import Decimal
from pathlib import Path
from typing import Optional

import yaml

from statement_ledger.models.category import Category, CategoryRule, sort_rules
from statement_ledger.utils.logging_config import get_logger

logger = get_logger(__name__)

# Environment variable overriding database.url
DATABASE_URL_ENV = "STATEMENT_LEDGER_DATABASE_URL"

DEFAULT_DATABASE_URL = "sqlite:///data/ledger.db"


class ConfigError(Exception):
    """Exception raised for configuration errors."""

    pass


@dataclass
class IngestionConfig:
    """Limits and layout parameters for document ingestion.

    Attributes:
        min_document_bytes: Documents smaller than this are rejected.
        max_pdf_pages: Pages beyond this limit are not extracted.
        max_spreadsheet_bytes: Larger spreadsheets are rejected.
        column_gap: Horizontal gap that marks a column boundary.
    """

    min_document_bytes: int = 100
    max_pdf_pages: int = 500
    max_spreadsheet_bytes: int = 50 * 1024 * 1024
    column_gap: float = 50.0

    @classmethod
    def from_dict(cls, data: dict[str, object]) -> "IngestionConfig":
        """Create from dictionary."""
        return cls(
            min_document_bytes=int(data.get("min_document_bytes", 100)),  # type: ignore[arg-type]
            max_pdf_pages=int(data.get("max_pdf_pages", 500)),  # type: ignore[arg-type]
            max_spreadsheet_bytes=int(data.get("max_spreadsheet_bytes", 50 * 1024 * 1024)),  # type: ignore[arg-type]
            column_gap=float(data.get("column_gap", 50.0)),  # type: ignore[arg-type]
        )


@dataclass
class BalanceConfig:
    """Thresholds for balance reconciliation alerts.

    Ratios are |difference| / |base balance|. When the base balance is
    zero the absolute thresholds apply instead.

    Attributes:
        low_ratio: Below this ratio no alert is raised.
        high_ratio: Above this ratio the alert is high.
        low_absolute: Absolute low bound used when the base is zero.
        high_absolute: Absolute high bound used when the base is zero.
        default_base_balance: Base when neither a manual nor a file balance exists.
    """

    low_ratio: Decimal = field(default_factory=lambda: Decimal("0.05"))
    high_ratio: Decimal = field(default_factory=lambda: Decimal("0.20"))
    low_absolute: Decimal = field(default_factory=lambda: Decimal("50"))
    high_absolute: Decimal = field(default_factory=lambda: Decimal("200"))
    default_base_balance: Decimal = field(default_factory=lambda: Decimal("0"))

    @classmethod
    def from_dict(cls, data: dict[str, object]) -> "BalanceConfig":
        """Create from dictionary."""
        config = cls(
            low_ratio=Decimal(str(data.get("low_ratio", "0.05"))),
            high_ratio=Decimal(str(data.get("high_ratio", "0.20"))),
            low_absolute=Decimal(str(data.get("low_absolute", "50"))),
            high_absolute=Decimal(str(data.get("high_absolute", "200"))),
            default_base_balance=Decimal(str(data.get("default_base_balance", "0"))),
        )
        if config.low_ratio > config.high_ratio:
            raise ConfigError("balance.low_ratio must not exceed balance.high_ratio")
        if config.low_absolute > config.high_absolute:
            raise ConfigError("balance.low_absolute must not exceed balance.high_absolute")
        return config


@dataclass
class LoggingConfig:
    """Configuration for logging.

    Attributes:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        file: Path to log file.
    """

    level: str = "INFO"
    file: str = "statement_ledger.log"

    @classmethod
    def from_dict(cls, data: dict[str, object]) -> "LoggingConfig":
        """Create from dictionary."""
        return cls(
            level=str(data.get("level", "INFO")),
            file=str(data.get("file", "statement_ledger.log")),
        )


@dataclass
class Config:
    """Main configuration container.

    Attributes:
        ingestion: Document ingestion limits.
        balance: Balance reconciliation thresholds.
        logging: Logging configuration.
        database_url: SQLAlchemy database URL.
        fallback_category: Category assigned when no rule matches.
        categories: Default categories used to seed an empty store.
        category_rules: Default rules, in evaluation order.
    """

    ingestion: IngestionConfig = field(default_factory=IngestionConfig)
    balance: BalanceConfig = field(default_factory=BalanceConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    database_url: str = DEFAULT_DATABASE_URL
    fallback_category: str = "Other"
    categories: list[Category] = field(default_factory=list)
    category_rules: list[CategoryRule] = field(default_factory=list)


def load_yaml_file(path: Path) -> dict[str, object]:
    """Load a YAML file.

    Args:
        path: Path to the YAML file.

    Returns:
        Parsed YAML content.

    Raises:
        FileNotFoundError: If file doesn't exist.
        ConfigError: If the top level is not a mapping.
        yaml.YAMLError: If file is invalid YAML.
    """
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    with open(path, encoding="utf-8") as f:
        content = yaml.safe_load(f)

    if content is None:
        return {}
    if not isinstance(content, dict):
        raise ConfigError(f"{path.name} must contain a mapping, got {type(content).__name__}")
    return content


def _section(data: dict[str, object], name: str) -> dict[str, object]:
    value = data.get(name)
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ConfigError(f"'{name}' must be a mapping, got {type(value).__name__}")
    return value


def load_settings(path: Path, config: Config) -> None:
    """Load settings.yaml into a Config.

    Args:
        path: Path to settings.yaml.
        config: Config updated in place.
    """
    data = load_yaml_file(path)

    config.ingestion = IngestionConfig.from_dict(_section(data, "ingestion"))
    config.balance = BalanceConfig.from_dict(_section(data, "balance"))
    config.logging = LoggingConfig.from_dict(_section(data, "logging"))

    categorization = _section(data, "categorization")
    config.fallback_category = str(categorization.get("fallback_category", config.fallback_category))

    database = _section(data, "database")
    config.database_url = str(database.get("url", config.database_url))


def load_categories(path: Path) -> tuple[list[Category], list[CategoryRule]]:
    """Load default categories and rules from categories.yaml.

    Args:
        path: Path to categories.yaml.

    Returns:
        Tuple of (categories, rules in evaluation order).

    Raises:
        ConfigError: If the structure is invalid or a rule names an
            unknown category.
    """
    data = load_yaml_file(path)

    categories: list[Category] = []
    cat_list = data.get("categories") or []
    if not isinstance(cat_list, list):
        raise ConfigError(f"'categories' must be a list, got {type(cat_list).__name__}")
    for cat_data in cat_list:
        categories.append(Category.from_dict(cat_data))

    names = {c.name for c in categories}
    rules: list[CategoryRule] = []
    rule_list = data.get("rules") or []
    if not isinstance(rule_list, list):
        raise ConfigError(f"'rules' must be a list, got {type(rule_list).__name__}")
    for rule_data in rule_list:
        try:
            rule = CategoryRule.from_dict(rule_data)
        except (KeyError, ValueError) as e:
            raise ConfigError(f"Invalid rule {rule_data!r}: {e}") from e
        if rule.category_name not in names:
            raise ConfigError(f"Rule '{rule.pattern}' references unknown category '{rule.category_name}'")
        rules.append(rule)

    return categories, sort_rules(rules)


def load_config(
    config_dir: Optional[Path] = None,
    settings_path: Optional[Path] = None,
    categories_path: Optional[Path] = None,
) -> Config:
    """Load complete configuration.

    Missing files are reported as warnings and leave defaults in place.

    Args:
        config_dir: Base config directory (default: ./config).
        settings_path: Path to settings.yaml (or None to use default).
        categories_path: Path to categories.yaml (or None to use default).

    Returns:
        Complete Config object.
    """
    if config_dir is None:
        config_dir = Path("config")
    if settings_path is None:
        settings_path = config_dir / "settings.yaml"
    if categories_path is None:
        categories_path = config_dir / "categories.yaml"

    config = Config()

    if settings_path.exists():
        load_settings(settings_path, config)
        logger.debug(f"Loaded settings from {settings_path}")
    else:
        logger.warning(f"Settings file not found: {settings_path}, using defaults")

    if categories_path.exists():
        config.categories, config.category_rules = load_categories(categories_path)
        logger.debug(
            f"Loaded {len(config.categories)} categories and "
            f"{len(config.category_rules)} rules from {categories_path}"
        )
    else:
        logger.warning(f"Categories file not found: {categories_path}, store will not be seeded")

    env_url = os.environ.get(DATABASE_URL_ENV)
    if env_url:
        config.database_url = env_url

    return config
