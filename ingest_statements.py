#!/usr/bin/env python3
"""Bank statement ledger.

Entry point script wrapping the package CLI for running from a checkout.

Usage:
    python ingest_statements.py ingest estratto_conto.pdf
    python ingest_statements.py balance

For full documentation and options:
    python ingest_statements.py --help
"""

import sys
from pathlib import Path

# Add src to path for development installs
src_path = Path(__file__).parent / "src"
if src_path.exists():
    sys.path.insert(0, str(src_path))

from statement_ledger.cli import main

if __name__ == "__main__":
    sys.exit(main())
