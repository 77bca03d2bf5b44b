"""Shared helpers for the recall CLI subgroups."""

import asyncio
import logging
from collections.abc import Callable
from pathlib import Path
from typing import Any, TypeVar

import typer
from pydantic import ValidationError as PydanticValidationError

from recall.application.config import EngineConfig, resolve_config
from recall.application.engine import StudyEngine
from recall.application.factory import open_engine
from recall.application.scheduler import Rating
from recall.domain.errors import NotFoundError, RecallError, ValidationError

T = TypeVar("T")

_LOG_LEVELS = {0: logging.ERROR, 1: logging.WARNING, 2: logging.INFO}


def _resolve_with_overrides(ctx: typer.Context | None = None, **kwargs: Any) -> EngineConfig:
    """Merge the global options stored on the context with command overrides."""
    overrides: dict[str, Any] = {}
    if ctx is not None and isinstance(ctx.obj, dict):
        overrides.update(ctx.obj.get("overrides", {}))
    overrides.update(kwargs)
    try:
        return resolve_config(overrides)
    except PydanticValidationError as e:
        typer.secho(f"Invalid configuration: {e}", fg="red", err=True)
        raise typer.Exit(2) from e


def configure_logging(verbose: int) -> None:
    logging.getLogger().setLevel(_LOG_LEVELS.get(verbose, logging.DEBUG))


def humanize_error(e: Exception) -> str:
    """Translate engine errors into short, user-facing messages."""
    if isinstance(e, NotFoundError):
        return f"No {e.kind} with id '{e.key}'"
    if isinstance(e, ValidationError):
        return f"Invalid input: {e}"
    return str(e)


def with_engine(config: EngineConfig, action: Callable[[StudyEngine], T]) -> T:
    """
    Open an engine, run ``action`` against it and flush before returning.

    Engine errors become a red message and exit code 1.
    """

    async def run() -> T:
        engine = await open_engine(config)
        try:
            return action(engine)
        finally:
            await engine.close()

    try:
        return asyncio.run(run())
    except RecallError as e:
        typer.secho(humanize_error(e), fg="red", err=True)
        raise typer.Exit(1) from e


def parse_rating(value: str) -> int:
    """Accept a rating name (again/hard/good/easy) or a raw 0-5 quality."""
    name = value.strip().upper()
    if name in Rating.__members__:
        return int(Rating[name])
    try:
        return int(value)
    except ValueError:
        raise typer.BadParameter(
            f"'{value}' is not a quality (0-5) or one of again, hard, good, easy"
        ) from None


def ensure_parent(path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
