"""Command-line interface for the statement ledger."""

import argparse
import sys
from pathlib import Path
from typing import Optional

import yaml
from dotenv import load_dotenv
from rich.console import Console
from rich.progress import BarColumn, Progress, SpinnerColumn, TextColumn
from rich.table import Table

from statement_ledger import __version__
from statement_ledger.config import Config, ConfigError, load_config
from statement_ledger.parsers.base import DocumentKind, ParseError
from statement_ledger.storage.base import StorageError
from statement_ledger.storage.sql_store import SqlTransactionStore
from statement_ledger.utils.decimal_utils import format_italian, parse_signed_amount
from statement_ledger.utils.logging_config import get_logger, setup_logging

# Load environment variables from .env file (if it exists)
load_dotenv()

console = Console()
logger = get_logger(__name__)

DOCUMENT_EXTENSIONS = {
    ".pdf": DocumentKind.PDF,
    ".xlsx": DocumentKind.SPREADSHEET,
    ".xlsm": DocumentKind.SPREADSHEET,
    ".csv": DocumentKind.SPREADSHEET,
}

ALERT_STYLES = {"none": "green", "medium": "yellow", "high": "red"}


def create_parser() -> argparse.ArgumentParser:
    """Create and configure the argument parser.

    Returns:
        Configured ArgumentParser.
    """
    parser = argparse.ArgumentParser(
        prog="statement-ledger",
        description="Import Italian bank statements into a categorized transaction ledger",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s ingest estratto_conto_settembre.pdf
  %(prog)s ingest movimenti.xlsx movimenti.csv
  %(prog)s balance
  %(prog)s set-balance 1.234,56
  %(prog)s preview "PAGAMENTO POS ESSELUNGA MILANO"
        """,
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    parser.add_argument(
        "--config-dir",
        type=Path,
        default=Path("config"),
        help="Base config directory (default: ./config)",
    )

    parser.add_argument(
        "--database",
        default=None,
        metavar="URL",
        help="Database URL (overrides settings.yaml and the environment)",
    )

    parser.add_argument(
        "-v", "--verbose",
        action="count",
        default=0,
        help="Increase output verbosity (-v, -vv)",
    )

    subparsers = parser.add_subparsers(dest="command", metavar="COMMAND")

    ingest = subparsers.add_parser("ingest", help="Import statement documents")
    ingest.add_argument("files", nargs="+", type=Path, metavar="FILE", help="PDF, xlsx or CSV statements")
    ingest.add_argument(
        "--strict",
        action="store_true",
        help="Strict mode: abort on first failed document instead of skipping",
    )

    subparsers.add_parser("balance", help="Show the computed balance and the latest document balance")

    set_balance = subparsers.add_parser("set-balance", help="Set or clear the manual base balance")
    set_balance.add_argument("amount", nargs="?", default=None, metavar="AMOUNT", help="Base balance, e.g. 1.234,56")
    set_balance.add_argument("--reason", default="manual", help="Reason recorded in the audit log")
    set_balance.add_argument("--clear", action="store_true", help="Remove the manual base balance")

    subparsers.add_parser("recategorize", help="Re-run category rules over all transactions")

    preview = subparsers.add_parser("preview", help="Show the category a description would get")
    preview.add_argument("description", metavar="DESCRIPTION")

    override = subparsers.add_parser("override", help="Pin or unpin a transaction's category")
    override.add_argument("transaction_id", metavar="TRANSACTION_ID")
    override.add_argument("--category", default=None, help="Category name to pin")
    override.add_argument("--clear", action="store_true", help="Remove the pinned category")

    subparsers.add_parser("validate-config", help="Validate configuration files only")

    return parser


def get_log_level(verbosity: int) -> str:
    """Convert verbosity count to log level.

    Args:
        verbosity: Number of -v flags.

    Returns:
        Log level string.
    """
    if verbosity >= 2:
        return "DEBUG"
    elif verbosity >= 1:
        return "INFO"
    else:
        return "WARNING"


def detect_document_kind(path: Path) -> Optional[DocumentKind]:
    """Document kind from a file extension, or None if unsupported."""
    return DOCUMENT_EXTENSIONS.get(path.suffix.lower())


def open_store(config: Config) -> SqlTransactionStore:
    """Open the configured store, seeding default categories when empty.

    Args:
        config: Application configuration.

    Returns:
        Ready-to-use store.
    """
    store = SqlTransactionStore(config.database_url, config.balance.default_base_balance)
    if config.categories and store.seed_categories(config.categories, config.category_rules):
        console.print(f"[dim]Seeded {len(config.categories)} default categories[/dim]")
    return store


def create_progress() -> Progress:
    """Create a progress display.

    Returns:
        Rich Progress instance.
    """
    return Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        TextColumn("[progress.percentage]{task.percentage:>3.0f}%"),
        console=console,
    )


def validate_config(args: argparse.Namespace) -> int:
    """Validate configuration files.

    Args:
        args: Parsed command-line arguments.

    Returns:
        0 if valid, 1 if errors found.
    """
    console.print("[bold]Validating configuration files...[/bold]\n")

    errors = []
    warnings = []

    config_dir = args.config_dir
    if not config_dir.exists():
        warnings.append(f"Config directory not found: {config_dir}")

    for label, path in (("Settings", config_dir / "settings.yaml"), ("Categories", config_dir / "categories.yaml")):
        if path.exists():
            console.print(f"[green]✓[/green] {label}: {path}")
        else:
            warnings.append(f"{label} file not found: {path}")

    try:
        config = load_config(config_dir=config_dir)
        console.print("\n[green]✓[/green] Configuration loaded successfully")
        console.print(f"  - {len(config.categories)} categories")
        console.print(f"  - {len(config.category_rules)} rules")
        console.print(f"  - fallback category: {config.fallback_category}")
        if config.categories and config.fallback_category not in {c.name for c in config.categories}:
            warnings.append(f"Fallback category '{config.fallback_category}' is not defined in categories.yaml")
    except (ConfigError, OSError, ValueError, yaml.YAMLError) as e:
        errors.append(f"Failed to load configuration: {e}")

    if warnings:
        console.print("\n[yellow]Warnings:[/yellow]")
        for w in warnings:
            console.print(f"  - {w}")

    if errors:
        console.print("\n[red]Errors:[/red]")
        for err in errors:
            console.print(f"  - {err}")
        return 1

    console.print("\n[green]Configuration is valid.[/green]")
    return 0


def display_summary(rows: list[tuple[str, str, int, int, int]], errors: list[str]) -> None:
    """Display the per-document ingestion summary.

    Args:
        rows: (file, parser, inserted, duplicates, unparsed) per ingested document.
        errors: Error messages for documents that failed.
    """
    table = Table(title="Ingestion Summary")
    table.add_column("File")
    table.add_column("Layout")
    table.add_column("Inserted", justify="right")
    table.add_column("Duplicates", justify="right")
    table.add_column("Unparsed", justify="right")
    for file_name, parser_name, inserted, duplicates, unparsed in rows:
        table.add_row(file_name, parser_name, str(inserted), str(duplicates), str(unparsed))
    console.print(table)

    if errors:
        console.print(f"\n[red]Errors ({len(errors)}):[/red]")
        for e in errors[:10]:
            console.print(f"  - {e}")
        if len(errors) > 10:
            console.print(f"  ... and {len(errors) - 10} more")


def run_ingest(args: argparse.Namespace, config: Config) -> int:
    """Ingest each document named on the command line.

    Returns:
        0 if every document was ingested, 1 otherwise.
    """
    from statement_ledger.processing.pipeline import IngestionPipeline

    store = open_store(config)
    pipeline = IngestionPipeline(config, store)

    rows: list[tuple[str, str, int, int, int]] = []
    errors: list[str] = []

    with create_progress() as progress:
        task = progress.add_task("Ingesting statements...", total=len(args.files))
        for path in args.files:
            progress.update(task, advance=1)
            kind = detect_document_kind(path)
            if kind is None:
                errors.append(f"{path.name}: unsupported file type")
                continue
            if not path.is_file():
                errors.append(f"{path.name}: file not found")
                continue

            progress.console.print(f"  Ingesting {path.name}")
            try:
                result = pipeline.ingest(path.read_bytes(), kind, path.name)
            except ParseError as e:
                error_msg = f"{path.name}: {e}"
                if args.strict:
                    console.print(f"[red]Error: {error_msg}[/red]")
                    return 1
                errors.append(error_msg)
                logger.warning(error_msg)
                continue

            stats = result.stats
            rows.append((path.name, result.parser_name, stats.inserted, stats.duplicates, stats.unparsed))
            if stats.defaulted_dates or stats.defaulted_amounts:
                progress.console.print(
                    f"  [yellow]{stats.defaulted_dates} dates and {stats.defaulted_amounts} amounts "
                    f"could not be read and were defaulted[/yellow]"
                )
            if result.has_balance_alert:
                validation = result.balance_validation
                progress.console.print(
                    f"  [{ALERT_STYLES[validation.alert_level.value]}]Balance mismatch: computed "
                    f"€{format_italian(validation.current_balance)}, document states "
                    f"€{format_italian(validation.asserted_balance)}[/]"
                )

    display_summary(rows, errors)
    return 1 if errors else 0


def show_balance(config: Config) -> int:
    """Print the base balance, computed balance and latest document balance."""
    from statement_ledger.processing.balance import BalanceReconciler, compute_balance

    store = open_store(config)
    inputs = store.get_running_balance_inputs()
    computed = compute_balance(inputs.base_balance, inputs.prior_transactions)

    console.print(f"Base balance ({inputs.base_source}): €{format_italian(inputs.base_balance)}")
    console.print(f"Transactions: {len(inputs.prior_transactions)}")
    console.print(f"[bold]Computed balance: €{format_italian(computed)}[/bold]")

    assertion = store.latest_file_balance()
    if assertion is None:
        console.print("[dim]No document balance recorded[/dim]")
        return 0

    validation = BalanceReconciler(config.balance).validate(computed, assertion.value, inputs.base_balance)
    when = f" at {assertion.statement_date.isoformat()}" if assertion.statement_date else ""
    style = ALERT_STYLES[validation.alert_level.value]
    console.print(f"Document balance{when}: €{format_italian(assertion.value)} ({assertion.extraction_pattern})")
    console.print(
        f"[{style}]Difference: €{format_italian(validation.difference)} "
        f"(alert: {validation.alert_level.value})[/{style}]"
    )
    return 0


def set_balance(args: argparse.Namespace, config: Config) -> int:
    """Set or clear the manual base balance."""
    store = open_store(config)
    if args.clear:
        store.clear_manual_balance()
        console.print("[green]Manual base balance cleared[/green]")
        return 0
    if args.amount is None:
        console.print("[red]Error: AMOUNT is required unless --clear is given[/red]")
        return 1
    try:
        value = parse_signed_amount(args.amount)
    except ValueError:
        console.print(f"[red]Error: invalid amount: {args.amount}[/red]")
        return 1
    store.set_manual_balance(value, args.reason)
    console.print(f"[green]Manual base balance set to €{format_italian(value)}[/green]")
    return 0


def recategorize(config: Config) -> int:
    """Re-run category rules over every stored transaction."""
    from statement_ledger.processing.categorizer import recategorize_all

    store = open_store(config)
    with console.status("[bold green]Recategorizing transactions..."):
        changed = recategorize_all(store, config.fallback_category)
    console.print(f"[green]{changed} transactions changed category[/green]")
    return 0


def preview(args: argparse.Namespace, config: Config) -> int:
    """Show which category a description would get."""
    from statement_ledger.processing.categorizer import preview_categorization

    store = open_store(config)
    match = preview_categorization(
        args.description,
        store.load_active_rules(),
        store.load_categories().values(),
        config.fallback_category,
    )
    console.print(f"Category: [bold]{match.category_name}[/bold] ({match.source.value})")
    if match.rule is not None:
        rule = match.rule
        console.print(f"  Rule: {rule.match_type.value} '{rule.pattern}' (priority {rule.priority})")
    return 0


def override_category(args: argparse.Namespace, config: Config) -> int:
    """Pin or unpin the category of one transaction."""
    store = open_store(config)
    if args.clear:
        store.set_manual_category(args.transaction_id, None)
        console.print(f"[green]Category pin removed from {args.transaction_id}[/green]")
        return 0
    if not args.category:
        console.print("[red]Error: --category is required unless --clear is given[/red]")
        return 1

    by_name = {c.name.lower(): c for c in store.load_categories().values()}
    category = by_name.get(args.category.lower())
    if category is None or category.id is None:
        console.print(f"[red]Error: unknown category: {args.category}[/red]")
        return 1
    store.set_manual_category(args.transaction_id, category.id)
    console.print(f"[green]{args.transaction_id} pinned to {category.name}[/green]")
    return 0


def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point for the CLI.

    Args:
        argv: Arguments (default: sys.argv[1:]).

    Returns:
        Exit code (0 for success, non-zero for errors).
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 1

    if args.command == "validate-config":
        setup_logging(level=get_log_level(args.verbose), console_output=args.verbose > 0)
        return validate_config(args)

    try:
        config = load_config(config_dir=args.config_dir)
    except (ConfigError, OSError, yaml.YAMLError) as e:
        console.print(f"[red]Error: {e}[/red]")
        console.print("Run 'statement-ledger validate-config' to check configuration files.")
        return 1

    setup_logging(
        level=get_log_level(args.verbose) if args.verbose else config.logging.level,
        log_file=config.logging.file,
        console_output=args.verbose > 0,
    )
    if args.database:
        config.database_url = args.database

    try:
        if args.command == "ingest":
            return run_ingest(args, config)
        if args.command == "balance":
            return show_balance(config)
        if args.command == "set-balance":
            return set_balance(args, config)
        if args.command == "recategorize":
            return recategorize(config)
        if args.command == "preview":
            return preview(args, config)
        if args.command == "override":
            return override_category(args, config)
    except (ParseError, StorageError) as e:
        console.print(f"[red]Error: {e}[/red]")
        logger.error(str(e))
        return 1

    parser.print_usage()
    return 1


if __name__ == "__main__":
    sys.exit(main())
