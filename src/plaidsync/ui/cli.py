from __future__ import annotations

import json
from typing import cast

import typer

from plaidsync.context import AppContext
from plaidsync.core.config import AppConfig, ConfigError, load_config_from_env
from plaidsync.core.logging import configure_logging
from plaidsync.tools.catalog import build_registry
from plaidsync.ui.mcp.server import Transport, run_server

app = typer.Typer(
    help="plaidsync: Plaid transactions sync over the Model Context Protocol.",
    no_args_is_help=True,
)


def _load_config() -> AppConfig:
    try:
        config = load_config_from_env()
    except ConfigError as e:
        typer.echo(f"Configuration error: {e}", err=True)
        raise typer.Exit(code=1) from e
    configure_logging(config.log_level)
    return config


@app.command("serve")
def serve(
    transport: str = typer.Option(
        "stdio", help="MCP transport: 'stdio' or 'sse' (HTTP)"
    ),
    host: str | None = typer.Option(None, help="Bind address for the sse transport"),
    port: int | None = typer.Option(None, help="Port for the sse transport"),
) -> None:
    """Run the MCP server until interrupted."""
    if transport not in ("stdio", "sse"):
        typer.echo(f"Unknown transport {transport!r}; use 'stdio' or 'sse'", err=True)
        raise typer.Exit(code=2)
    context = AppContext.build(_load_config())
    run_server(
        context, transport=cast(Transport, transport), host=host, port=port
    )


@app.command("tools")
def list_tools() -> None:
    """List tools and their JSON schemas for the configured PLAIDSYNC_FEATURES."""
    config = _load_config()
    registry = build_registry(AppContext.build(config))
    typer.echo(f"Features: {config.features}")
    for tool in registry.all():
        typer.echo(f"  {tool.name:<28} {tool.description}")
        typer.echo(json.dumps(tool.input_schema, indent=2))


def main() -> None:
    app()


if __name__ == "__main__":
    main()
