"""Shared CLI utilities.

Provides configuration loading, database access and consistent error
handling for all commands.
"""

import functools
from pathlib import Path
from typing import Callable, TypeVar

import structlog
import typer
from sqlalchemy.orm import Session, sessionmaker

from research_ledger.db import create_db_engine, create_session_factory
from research_ledger.models.config import LedgerConfig
from research_ledger.observability.context import correlation_id_context, new_correlation_id
from research_ledger.observability.logging import configure_logging, log_context
from research_ledger.services.config_manager import DEFAULT_CONFIG_PATH, ConfigManager
from research_ledger.utils.exceptions import ConfigValidationError, LedgerError

logger = structlog.get_logger()

# Type variable for decorator
F = TypeVar("F", bound=Callable)

CONFIG_OPTION_HELP = "Path to the ledger configuration file"
DEFAULT_CONFIG = Path(DEFAULT_CONFIG_PATH)


def load_config(config_path: Path) -> LedgerConfig:
    """Load and validate configuration, then configure logging from it.

    Raises:
        typer.Exit: If configuration is invalid.
    """
    config_manager = ConfigManager(config_path=str(config_path))
    try:
        config = config_manager.load_config()
    except (FileNotFoundError, ConfigValidationError) as e:
        typer.secho(f"Configuration Error: {e}", fg=typer.colors.RED)
        raise typer.Exit(code=1)

    configure_logging(level=config.logging.level, json_output=config.logging.json_output)
    return config


def open_session_factory(config_path: Path) -> sessionmaker[Session]:
    """Build a session factory for the configured database."""
    config = load_config(config_path)
    return create_session_factory(create_db_engine(config.database))


def handle_errors(func: F) -> F:
    """Decorator for consistent error handling.

    Runs the command under a fresh correlation id. Domain errors are shown
    with their code; anything else is logged with its traceback.
    """

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        corr_id = new_correlation_id("cli")
        with correlation_id_context(corr_id), log_context(command=func.__name__):
            try:
                return func(*args, **kwargs)
            except typer.Exit:
                raise
            except LedgerError as e:
                logger.warning("command_rejected", code=e.code, **e.context())
                typer.secho(f"Error [{e.code}]: {e}", fg=typer.colors.RED)
                raise typer.Exit(code=1)
            except Exception as e:
                logger.exception("command_failed")
                typer.secho(f"Error: {e}", fg=typer.colors.RED)
                raise typer.Exit(code=1)

    return wrapper  # type: ignore[return-value]


def display_success(message: str) -> None:
    typer.secho(message, fg=typer.colors.GREEN)


def display_error(message: str) -> None:
    typer.secho(message, fg=typer.colors.RED)


def display_info(message: str) -> None:
    typer.secho(message, fg=typer.colors.CYAN)
