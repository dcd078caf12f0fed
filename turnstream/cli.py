"""turnstream CLI: Typer + Rich terminal interface.

Commands: serve, models list/show, keys create, turns show.
"""

from __future__ import annotations

import asyncio
import logging

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from turnstream import __version__
from turnstream.auth import generate_api_key
from turnstream.keys import key_status, load_keys_env
from turnstream.persistence.database import close_db, init_db
from turnstream.persistence.store import ChatStore
from turnstream.providers.registry import load_catalog, load_server_config

# Load provider keys from ~/.turnstream/keys.env and .env on startup
load_keys_env()

console = Console()

# ── App and sub-apps ─────────────────────────────────────────────

app = typer.Typer(
    name="turnstream",
    help="Streaming response coordinator for LLM chat turns.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

models_app = typer.Typer(
    name="models",
    help="Inspect the model catalog.",
    no_args_is_help=True,
)
app.add_typer(models_app, name="models")

keys_app = typer.Typer(
    name="keys",
    help="Manage API keys for the streaming endpoint.",
    no_args_is_help=True,
)
app.add_typer(keys_app, name="keys")

turns_app = typer.Typer(
    name="turns",
    help="Inspect persisted assistant turns.",
    no_args_is_help=True,
)
app.add_typer(turns_app, name="turns")


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"turnstream {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        False, "--version", "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
) -> None:
    """turnstream: live LLM turn streaming with durable checkpoints."""


# ── Helpers ──────────────────────────────────────────────────────


def _load_catalog():
    """Load the model catalog, exit on error."""
    try:
        return load_catalog()
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[red]Error loading model catalog:[/red] {e}")
        raise typer.Exit(1) from None


def _resolve_db_path(db_path: str | None) -> str:
    return db_path or load_server_config().db_path


async def _with_store(db_path: str, fn):
    db = await init_db(db_path)
    try:
        return await fn(ChatStore(db))
    finally:
        await close_db(db)


# ── serve ────────────────────────────────────────────────────────


@app.command()
def serve(
    host: str = typer.Option(None, "--host", help="Bind address (default from config)"),
    port: int = typer.Option(None, "--port", "-p", help="Bind port (default from config)"),
    db_path: str = typer.Option(None, "--db", help="SQLite database path"),
    log_level: str = typer.Option("info", "--log-level", help="Logging level"),
) -> None:
    """Run the streaming API server."""
    import uvicorn

    from turnstream.server import create_app

    logging.basicConfig(
        level=getattr(logging, log_level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    server_config = load_server_config()
    updates = {
        key: value
        for key, value in (("host", host), ("port", port), ("db_path", db_path))
        if value is not None
    }
    server_config = server_config.model_copy(update=updates)

    console.print(Panel(
        f"[bold]URL:[/bold] http://{server_config.host}:{server_config.port}\n"
        f"[bold]Database:[/bold] {server_config.db_path}\n"
        f"[bold]CORS origins:[/bold] {', '.join(server_config.cors_origins) or '-'}",
        title="[bold blue]turnstream[/bold blue]",
        border_style="blue",
    ))

    uvicorn.run(
        create_app(server_config=server_config),
        host=server_config.host,
        port=server_config.port,
        log_level=log_level.lower(),
    )


# ── models ───────────────────────────────────────────────────────


@models_app.command("list")
def models_list() -> None:
    """Show all catalog models as a table."""
    catalog = _load_catalog()
    keys = key_status([p.api_key_env for p in catalog.providers.values()])

    table = Table(title="Model Catalog", show_lines=True)
    table.add_column("Model ID", style="bold cyan")
    table.add_column("Display Name")
    table.add_column("Provider", style="dim")
    table.add_column("Vision", justify="center")
    table.add_column("Key", justify="center")

    for model_id, cfg in catalog.models.items():
        provider = catalog.providers[cfg.provider]
        table.add_row(
            model_id,
            cfg.display_name,
            cfg.provider,
            "yes" if cfg.supports_vision else "no",
            "[green]set[/green]" if keys[provider.api_key_env] else "[red]missing[/red]",
        )

    console.print(table)


@models_app.command("show")
def models_show(
    model_id: str = typer.Argument(..., help="Catalog model id"),
) -> None:
    """Show full details for one model."""
    catalog = _load_catalog()
    models = catalog.models

    if model_id not in models:
        console.print(f"[red]Model not found:[/red] '{model_id}'")
        console.print(f"[dim]Available: {', '.join(models)}[/dim]")
        raise typer.Exit(1) from None

    cfg = models[model_id]
    provider = catalog.providers[cfg.provider]
    table = Table(title=f"Model: {model_id}", show_header=False, show_lines=True)
    table.add_column("Field", style="bold")
    table.add_column("Value")

    table.add_row("Display Name", cfg.display_name)
    table.add_row("Provider", f"{provider.display_name} ({provider.id})")
    table.add_row("LiteLLM Model", cfg.model)
    table.add_row("API Key Env", provider.api_key_env)
    if provider.api_base:
        table.add_row("API Base", provider.api_base)
    table.add_row("Vision", "yes" if cfg.supports_vision else "no")

    console.print(table)


# ── keys ─────────────────────────────────────────────────────────


@keys_app.command("create")
def keys_create(
    user: str = typer.Option(..., "--user", "-u", help="User id the key authenticates as"),
    label: str = typer.Option("", "--label", help="Free-form label"),
    db_path: str = typer.Option(None, "--db", help="SQLite database path"),
) -> None:
    """Mint an API key. The raw key is printed once and never stored."""
    raw_key, key_hash, prefix = generate_api_key()

    async def _create(store: ChatStore) -> None:
        await store.create_api_key(user, key_hash, prefix, label)

    asyncio.run(_with_store(_resolve_db_path(db_path), _create))

    console.print(Panel(
        f"[bold]User:[/bold] {user}\n"
        f"[bold]Key:[/bold] {raw_key}\n"
        "[dim]Store it now, only its hash is kept.[/dim]",
        title="[bold green]API key created[/bold green]",
        border_style="green",
    ))


# ── turns ────────────────────────────────────────────────────────


_STATUS_STYLE = {
    "STREAMING": "bold yellow",
    "COMPLETED": "bold green",
    "FAILED": "bold red",
}


@turns_app.command("show")
def turns_show(
    turn_id: str = typer.Argument(..., help="Turn (assistant message) id"),
    db_path: str = typer.Option(None, "--db", help="SQLite database path"),
) -> None:
    """Show a persisted assistant turn."""
    turn = asyncio.run(
        _with_store(_resolve_db_path(db_path), lambda store: store.get_turn(turn_id))
    )
    if turn is None:
        console.print(f"[red]Turn not found:[/red] '{turn_id}'")
        raise typer.Exit(1) from None

    style = _STATUS_STYLE.get(turn.status.value, "")
    table = Table(title=f"Turn: {turn.id}", show_header=False, show_lines=True)
    table.add_column("Field", style="bold")
    table.add_column("Value")

    table.add_row("Status", f"[{style}]{turn.status.value}[/{style}]")
    table.add_row("Conversation", turn.conversation_id)
    table.add_row("Trigger Message", turn.trigger_message_id)
    table.add_row("Model", f"{turn.provider_id} / {turn.model_id}")
    table.add_row("Created", turn.created_at.isoformat())
    table.add_row("Updated", turn.updated_at.isoformat())
    if turn.error_message:
        table.add_row("Error", f"[red]{turn.error_message}[/red]")
    table.add_row("Content", turn.content or "[dim](empty)[/dim]")

    console.print(table)


# ── Entry point ──────────────────────────────────────────────────

if __name__ == "__main__":
    app()
