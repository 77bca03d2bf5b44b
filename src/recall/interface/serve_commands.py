"""`recall serve` — run the HTTP server."""

from typing import Annotated

import typer

from recall.interface._common import _resolve_with_overrides


def serve(
    ctx: typer.Context,
    port: Annotated[int, typer.Option(help="Port to bind the server to.")] = 8777,
    host: Annotated[str, typer.Option(help="Host to bind the server to.")] = "127.0.0.1",
):
    """Start the HTTP server over a single engine instance."""
    import uvicorn

    from recall.server import create_app

    config = _resolve_with_overrides(ctx)
    typer.secho(f"Starting recall server on {host}:{port} ({config.backend})", fg="green")
    uvicorn.run(create_app(config), host=host, port=port)
