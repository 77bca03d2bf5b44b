"""recall CLI — root commands and subgroup registration."""

import dataclasses
import json
import logging
import sys
import time
from pathlib import Path
from typing import Annotated

import typer

from recall.application.engine import StudyEngine
from recall.application.scheduler import (
    RATING_LABELS,
    Rating,
    format_interval,
    preview_intervals,
)
from recall.application.snapshot import card_to_record
from recall.application.streak_tracker import milestone_label
from recall.domain.models import Card, DataSummary
from recall.interface._common import (
    _resolve_with_overrides,
    configure_logging,
    ensure_parent,
    parse_rating,
    with_engine,
)

# ---------------------------------------------------------------------------
# Root app
# ---------------------------------------------------------------------------

app = typer.Typer(
    help="recall: spaced-repetition study engine.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.WARNING,
    format="%(levelname)s:%(name)s:%(message)s",
    stream=sys.stderr,
)
logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Register subgroups
# ---------------------------------------------------------------------------

from recall.interface.pack_commands import pack_app  # noqa: E402
from recall.interface.serve_commands import serve  # noqa: E402

app.add_typer(pack_app, name="pack")
app.command("serve")(serve)

config_app = typer.Typer(help="Inspect recall configuration.")
app.add_typer(config_app, name="config")


# ---------------------------------------------------------------------------
# Global callback
# ---------------------------------------------------------------------------


@app.callback()
def main_callback(
    ctx: typer.Context,
    data_dir: Annotated[
        Path | None, typer.Option(help="Directory holding recall.json. Defaults to config.")
    ] = None,
    backend: Annotated[str | None, typer.Option(help="Storage backend: json, memory.")] = None,
    timezone: Annotated[
        str | None, typer.Option(help="IANA time zone for day boundaries.")
    ] = None,
    verbose: Annotated[
        int,
        typer.Option(
            "--verbose", "-v", count=True, help="Increase verbosity. Repeat for more detail."
        ),
    ] = 1,
):
    """Global settings for recall."""
    ctx.ensure_object(dict)
    ctx.obj["overrides"] = {
        "data_dir": data_dir,
        "backend": backend,
        "timezone": timezone,
        "verbose": verbose,
    }
    configure_logging(verbose)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _describe(card: Card) -> str:
    due = card.next_review_date.strftime("%Y-%m-%d %H:%M") if card.next_review_date else "now"
    return (
        f"{card.id}  {card.source_type.value}:{card.source_id}  "
        f"due {due}  interval {card.interval}d  ease {card.ease_factor:.2f}"
    )


def _echo_summary(verb: str, summary: DataSummary) -> None:
    typer.secho(
        f"{verb} {summary.total_cards} card(s), {summary.total_packs} pack(s), "
        f"{summary.total_reviews} review(s).",
        fg="green",
    )


# ---------------------------------------------------------------------------
# Cards
# ---------------------------------------------------------------------------


@app.command()
def add(
    ctx: typer.Context,
    source_type: Annotated[str, typer.Argument(help="Content kind: milestone or concept.")],
    source_id: Annotated[str, typer.Argument(help="Id of the referenced content.")],
    pack: Annotated[
        list[str] | None, typer.Option("--pack", "-p", help="Extra pack id (repeatable).")
    ] = None,
):
    """[bold green]Save[/bold green] a piece of content for review."""
    config = _resolve_with_overrides(ctx)
    card = with_engine(config, lambda engine: engine.add_card(source_type, source_id, pack))
    typer.secho(f"Added {card.id} ({card.source_type.value}:{card.source_id})", fg="green")


@app.command()
def remove(
    ctx: typer.Context,
    card_id: Annotated[str, typer.Argument(help="Card id.")],
):
    """Remove a card and its undo history."""
    config = _resolve_with_overrides(ctx)
    with_engine(config, lambda engine: engine.remove_card(card_id))
    typer.echo(f"Removed {card_id}")


@app.command()
def due(
    ctx: typer.Context,
    pack: Annotated[str | None, typer.Option("--pack", "-p", help="Restrict to a pack.")] = None,
    json_output: Annotated[bool, typer.Option("--json", help="Output as JSON.")] = False,
):
    """List cards that are due for review."""
    config = _resolve_with_overrides(ctx)
    cards = with_engine(config, lambda engine: engine.get_due_cards(pack))

    if json_output:
        typer.echo(
            json.dumps([card_to_record(c).model_dump(mode="json") for c in cards], indent=2)
        )
        return

    if not cards:
        typer.secho("Nothing due.", fg="green")
        return
    typer.echo(f"{len(cards)} card(s) due:")
    for card in cards:
        typer.echo(f"  {_describe(card)}")


@app.command()
def review(
    ctx: typer.Context,
    card_id: Annotated[str, typer.Argument(help="Card id.")],
    rating: Annotated[
        str, typer.Argument(help="again, hard, good, easy, or a quality from 0 to 5.")
    ],
):
    """Record a single review outcome."""
    quality = parse_rating(rating)
    config = _resolve_with_overrides(ctx)

    def run(engine: StudyEngine) -> Card:
        engine.record_review(card_id, quality)
        return engine.store.get_card(card_id)

    card = with_engine(config, run)
    typer.echo(
        f"Reviewed {card.id}: next review in {format_interval(card.interval)} "
        f"(ease {card.ease_factor:.2f})"
    )


@app.command()
def study(
    ctx: typer.Context,
    pack: Annotated[str | None, typer.Option("--pack", "-p", help="Restrict to a pack.")] = None,
    limit: Annotated[int | None, typer.Option(help="Maximum cards this session.")] = None,
):
    """[bold green]Study[/bold green] due cards interactively (u = undo, q = quit)."""
    config = _resolve_with_overrides(ctx)
    keys = {str(n): rating for n, rating in enumerate(Rating, start=1)}

    def run(engine: StudyEngine) -> None:
        queue = engine.get_due_cards(pack)
        if limit is not None:
            queue = queue[:limit]
        if not queue:
            typer.secho("Nothing due.", fg="green")
            return

        started = time.monotonic()
        awarded = engine.streaks.history.awarded_milestones
        reviewed = 0
        last_card_id: str | None = None
        i = 0
        while i < len(queue):
            card = queue[i]
            typer.secho(
                f"\n[{i + 1}/{len(queue)}] {card.source_type.value}:{card.source_id}", bold=True
            )
            previews = preview_intervals(card.scheduling_state(), engine.clock.now())
            typer.echo(
                "  ".join(
                    f"[{key}] {RATING_LABELS[r]} ({format_interval(previews[r])})"
                    for key, r in keys.items()
                )
            )
            choice = typer.prompt("Rating (1-4, u = undo, q = quit)").strip().lower()

            if choice == "q":
                break
            if choice == "u":
                if last_card_id is not None and engine.undo_last_review(last_card_id):
                    typer.secho("Undone.", fg="yellow")
                    reviewed -= 1
                    last_card_id = None
                    i -= 1
                else:
                    typer.secho("Nothing to undo.", fg="yellow")
                continue
            if choice not in keys:
                typer.secho(f"Unknown choice '{choice}'.", fg="red")
                continue

            engine.record_review(card.id, int(keys[choice]))
            reviewed += 1
            last_card_id = card.id
            i += 1

            for milestone in sorted(engine.streaks.history.awarded_milestones - awarded):
                typer.secho(f"Achievement unlocked: {milestone_label(milestone)}!", fg="magenta")
            awarded = engine.streaks.history.awarded_milestones

        minutes = (time.monotonic() - started) / 60
        if reviewed > 0:
            engine.add_study_time(minutes)
        status = engine.streaks.status(engine.clock.today())
        typer.echo(
            f"\nReviewed {reviewed} card(s) in {minutes:.1f} min. "
            f"Streak: {status.current_streak} day(s). {status.message}"
        )

    with_engine(config, run)


# ---------------------------------------------------------------------------
# Stats
# ---------------------------------------------------------------------------


@app.command()
def stats(
    ctx: typer.Context,
    json_output: Annotated[bool, typer.Option("--json", help="Output as JSON.")] = False,
):
    """Show study statistics."""
    config = _resolve_with_overrides(ctx)
    result = with_engine(config, lambda engine: engine.get_stats())

    if json_output:
        typer.echo(json.dumps(dataclasses.asdict(result), indent=2, default=str))
        return

    typer.echo(
        f"Cards: {result.total_cards}  New: {result.new_cards}  "
        f"Learning: {result.learning_cards}  Mastered: {result.mastered_cards}"
    )
    typer.echo(
        f"Due now: {result.due_now}  Today: {result.due_today}  "
        f"Tomorrow: {result.due_tomorrow}  This week: {result.due_this_week}"
    )
    typer.echo(
        f"Streak: {result.current_streak} day(s)  Longest: {result.longest_streak}  "
        f"Studied today: {'yes' if result.studied_today else 'no'}"
    )
    typer.echo(
        f"Retention 7d: {result.retention_rate_7d:.0%}  30d: {result.retention_rate_30d:.0%}  "
        f"Average ease: {result.average_ease_factor:.2f}"
    )
    typer.echo(
        f"Reviews: {result.total_reviews} total, {result.reviews_today} today  "
        f"Minutes studied: {result.total_minutes_studied:.0f}"
    )
    if result.achievements:
        labels = ", ".join(milestone_label(m) for m in result.achievements)
        typer.echo(f"Achievements: {labels}")
    if result.most_challenging_ids:
        typer.echo(f"Most challenging: {', '.join(result.most_challenging_ids)}")
    if result.overdue_ids:
        typer.secho(f"Overdue: {len(result.overdue_ids)} card(s)", fg="yellow")


# ---------------------------------------------------------------------------
# Data management
# ---------------------------------------------------------------------------


@app.command()
def export(
    ctx: typer.Context,
    path: Annotated[
        Path | None, typer.Argument(help="Output file. Prints to stdout when omitted.")
    ] = None,
):
    """Export all data as JSON."""
    config = _resolve_with_overrides(ctx)
    document = with_engine(config, lambda engine: engine.export_data())
    text = document.model_dump_json(indent=2)

    if path is None:
        typer.echo(text)
        return
    ensure_parent(path)
    path.write_text(text, encoding="utf-8")
    typer.secho(f"Exported {len(document.cards)} card(s) to {path}", fg="green")


@app.command("import")
def import_cmd(
    ctx: typer.Context,
    path: Annotated[Path, typer.Argument(help="Export file to restore.")],
    force: Annotated[
        bool, typer.Option("--force", "-f", help="Bypass confirmation for destructive actions.")
    ] = False,
):
    """Replace all data with the contents of an export file."""
    try:
        document = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        typer.secho(f"Could not read {path}: {e}", fg="red", err=True)
        raise typer.Exit(1) from e

    if not force:
        typer.confirm("This replaces all existing data. Continue?", abort=True)

    config = _resolve_with_overrides(ctx)
    summary = with_engine(config, lambda engine: engine.import_data(document))
    _echo_summary("Imported", summary)


@app.command()
def clear(
    ctx: typer.Context,
    force: Annotated[
        bool, typer.Option("--force", "-f", help="Bypass confirmation for destructive actions.")
    ] = False,
):
    """Delete every card, pack, review and the streak history."""
    if not force:
        typer.confirm("Delete ALL study data?", abort=True)
    config = _resolve_with_overrides(ctx)
    summary = with_engine(config, lambda engine: engine.clear_all())
    _echo_summary("Deleted", summary)


# ---------------------------------------------------------------------------
# Config subgroup
# ---------------------------------------------------------------------------


@config_app.command("show")
def config_show(ctx: typer.Context):
    """Display final resolved configuration."""
    config = _resolve_with_overrides(ctx)
    d = {k: str(v) if isinstance(v, Path) else v for k, v in config.model_dump().items()}
    typer.echo(json.dumps(d, indent=2))
