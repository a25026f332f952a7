"""Database maintenance commands."""

from pathlib import Path

import typer

from research_ledger.cli.utils import (
    CONFIG_OPTION_HELP,
    DEFAULT_CONFIG,
    display_success,
    handle_errors,
    load_config,
)
from research_ledger.db import create_db_engine, init_db

db_app = typer.Typer(help="Manage the ledger database")


@db_app.command(name="init")
@handle_errors
def db_init(
    config_path: Path = typer.Option(DEFAULT_CONFIG, "--config", "-c", help=CONFIG_OPTION_HELP),
):
    """Create all ledger tables that do not exist yet."""
    config = load_config(config_path)
    engine = create_db_engine(config.database)
    init_db(engine)
    display_success("Database schema is up to date")
