"""Duplicate-search projection maintenance commands."""

from pathlib import Path
from typing import List, Optional

import typer

from research_ledger.cli.utils import (
    CONFIG_OPTION_HELP,
    DEFAULT_CONFIG,
    display_success,
    handle_errors,
    open_session_factory,
)
from research_ledger.db import session_scope
from research_ledger.services.projection_service import ProjectionMaintainer

projections_app = typer.Typer(help="Maintain duplicate-search projections")


@projections_app.command(name="rebuild")
@handle_errors
def projections_rebuild(
    item: Optional[List[int]] = typer.Option(
        None, "--item", "-i", help="Research item id to rebuild (repeatable)"
    ),
    config_path: Path = typer.Option(DEFAULT_CONFIG, "--config", "-c", help=CONFIG_OPTION_HELP),
):
    """Recompute projection rows for all items, or for the given ones."""
    factory = open_session_factory(config_path)
    with session_scope(factory) as session:
        count = ProjectionMaintainer(session).rebuild(item or None)

    display_success(f"Rebuilt {count} projection rows")
