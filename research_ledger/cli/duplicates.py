"""Duplicate calculation commands."""

from pathlib import Path

import typer

from research_ledger.cli.utils import (
    CONFIG_OPTION_HELP,
    DEFAULT_CONFIG,
    display_error,
    display_info,
    display_success,
    handle_errors,
    open_session_factory,
)
from research_ledger.db import session_scope
from research_ledger.services.duplicate_service import (
    CALCULATE_ON_VERIFIED,
    CALCULATION_MODES,
    DuplicateService,
)

duplicates_app = typer.Typer(help="Calculate and inspect duplicate edges")


@duplicates_app.command(name="calculate")
@handle_errors
def duplicates_calculate(
    research_item_id: int = typer.Argument(..., help="Research item to check"),
    research_entity_id: int = typer.Argument(..., help="Entity whose viewpoint is used"),
    mode: str = typer.Option(
        CALCULATE_ON_VERIFIED, "--mode", "-m", help="verified or draftAndSuggested"
    ),
    clean_old: bool = typer.Option(
        False, "--clean-old", help="Delete the item's edges before recalculating"
    ),
    config_path: Path = typer.Option(DEFAULT_CONFIG, "--config", "-c", help=CONFIG_OPTION_HELP),
):
    """Recalculate the duplicates of one item for one entity."""
    if mode not in CALCULATION_MODES:
        display_error(f"Unknown mode '{mode}', expected one of: {', '.join(CALCULATION_MODES)}")
        raise typer.Exit(code=1)

    factory = open_session_factory(config_path)
    with session_scope(factory) as session:
        pairs = DuplicateService(session).calculate(
            research_item_id,
            research_entity_id,
            calculate_on=mode,
            clean_old_duplicates=clean_old,
        )

    display_success(f"Found {len(pairs)} duplicates")
    for pair in pairs:
        typer.echo(
            f"  {pair.research_item_id} -> {pair.duplicate_id} "
            f"(entity {pair.research_entity_id})"
        )


@duplicates_app.command(name="list")
@handle_errors
def duplicates_list(
    research_item_id: int = typer.Argument(..., help="Research item"),
    research_entity_id: int = typer.Argument(..., help="Entity whose edges are listed"),
    config_path: Path = typer.Option(DEFAULT_CONFIG, "--config", "-c", help=CONFIG_OPTION_HELP),
):
    """List the active duplicate edges of an item."""
    factory = open_session_factory(config_path)
    with session_scope(factory) as session:
        edges = DuplicateService(session).get_active_duplicates(
            research_item_id, research_entity_id
        )
        duplicate_ids = [edge.duplicate_id for edge in edges]

    if not duplicate_ids:
        display_info("No active duplicates")
        return

    typer.echo(f"Item {research_item_id} has {len(duplicate_ids)} active duplicates:")
    for duplicate_id in duplicate_ids:
        typer.echo(f" - {duplicate_id}")
