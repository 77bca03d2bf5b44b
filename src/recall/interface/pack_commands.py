"""`recall pack` subgroup — organise cards into packs."""

import json
from typing import Annotated

import typer

from recall.application.engine import StudyEngine
from recall.application.snapshot import pack_to_record
from recall.interface._common import _resolve_with_overrides, with_engine

pack_app = typer.Typer(help="Create and manage card packs.", no_args_is_help=True)


@pack_app.command("list")
def pack_list(
    ctx: typer.Context,
    json_output: Annotated[bool, typer.Option("--json", help="Output as JSON.")] = False,
):
    """List all packs with their card counts."""
    config = _resolve_with_overrides(ctx)

    def run(engine: StudyEngine):
        return [(p, len(engine.store.get_cards_by_pack(p.id))) for p in engine.store.packs]

    rows = with_engine(config, run)

    if json_output:
        payload = [
            {**pack_to_record(p).model_dump(mode="json"), "card_count": n} for p, n in rows
        ]
        typer.echo(json.dumps(payload, indent=2))
        return

    for pack, count in rows:
        marker = " (default)" if pack.is_default else ""
        typer.echo(f"{pack.id}  {pack.name}{marker}  [{count} card(s)]")


@pack_app.command("create")
def pack_create(
    ctx: typer.Context,
    name: Annotated[str, typer.Argument(help="Pack name (1-50 characters).")],
    description: Annotated[str | None, typer.Option(help="Optional description.")] = None,
    color: Annotated[str | None, typer.Option(help="Colour as #RRGGBB.")] = None,
):
    """Create a new pack."""
    config = _resolve_with_overrides(ctx)
    pack = with_engine(config, lambda engine: engine.create_pack(name, description, color))
    typer.secho(f"Created pack {pack.id} '{pack.name}'", fg="green")


@pack_app.command("rename")
def pack_rename(
    ctx: typer.Context,
    pack_id: Annotated[str, typer.Argument(help="Pack id.")],
    name: Annotated[str, typer.Argument(help="New name.")],
):
    """Rename a pack (default packs cannot be renamed)."""
    config = _resolve_with_overrides(ctx)
    pack = with_engine(config, lambda engine: engine.rename_pack(pack_id, name))
    typer.secho(f"Renamed {pack.id} to '{pack.name}'", fg="green")


@pack_app.command("delete")
def pack_delete(
    ctx: typer.Context,
    pack_id: Annotated[str, typer.Argument(help="Pack id.")],
    force: Annotated[bool, typer.Option("--force", "-f", help="Skip confirmation.")] = False,
):
    """Delete a pack. Its cards are kept."""
    if not force:
        typer.confirm(f"Delete pack {pack_id}?", abort=True)
    config = _resolve_with_overrides(ctx)
    with_engine(config, lambda engine: engine.delete_pack(pack_id))
    typer.secho(f"Deleted pack {pack_id}", fg="green")


@pack_app.command("add-card")
def pack_add_card(
    ctx: typer.Context,
    pack_id: Annotated[str, typer.Argument(help="Pack id.")],
    card_id: Annotated[str, typer.Argument(help="Card id.")],
):
    """Add a card to a pack."""
    config = _resolve_with_overrides(ctx)
    with_engine(config, lambda engine: engine.move_card_to_pack(card_id, pack_id))
    typer.echo(f"Added {card_id} to {pack_id}")


@pack_app.command("remove-card")
def pack_remove_card(
    ctx: typer.Context,
    pack_id: Annotated[str, typer.Argument(help="Pack id.")],
    card_id: Annotated[str, typer.Argument(help="Card id.")],
):
    """Remove a card from a pack (not from a default pack)."""
    config = _resolve_with_overrides(ctx)
    with_engine(config, lambda engine: engine.remove_card_from_pack(card_id, pack_id))
    typer.echo(f"Removed {card_id} from {pack_id}")
