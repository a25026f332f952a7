"""`research-ledger validate`: check a configuration file without touching the database."""

from pathlib import Path

import typer

from research_ledger.cli.utils import display_error, display_success, handle_errors
from research_ledger.services.config_manager import ConfigManager
from research_ledger.utils.exceptions import ConfigValidationError


@handle_errors
def validate_command(
    config_path: Path = typer.Argument(..., help="Config file to validate"),
):
    """Load the file, substitute ${VAR} references and validate the result."""
    try:
        config = ConfigManager(config_path=str(config_path)).load_config()
    except (FileNotFoundError, ConfigValidationError) as e:
        display_error(f"Validation failed: {e}")
        raise typer.Exit(code=1)

    dialect = config.database.url.split("://", 1)[0]
    display_success(f"Configuration is valid ({dialect})")
