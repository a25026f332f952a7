"""research-ledger CLI.

Usage:
    python -m research_ledger.cli validate config/ledger.yaml
    python -m research_ledger.cli db init
    python -m research_ledger.cli projections rebuild --item 12
    python -m research_ledger.cli duplicates calculate 12 3 --mode verified
    python -m research_ledger.cli duplicates list 12 3
"""

import typer

from research_ledger.cli.db import db_app
from research_ledger.cli.duplicates import duplicates_app
from research_ledger.cli.projections import projections_app
from research_ledger.cli.validate import validate_command

app = typer.Typer(help="research-ledger: duplicate detection and verification bookkeeping")

app.command(name="validate")(validate_command)

app.add_typer(db_app, name="db")
app.add_typer(projections_app, name="projections")
app.add_typer(duplicates_app, name="duplicates")

__all__ = [
    "app",
    "validate_command",
    "db_app",
    "projections_app",
    "duplicates_app",
]
