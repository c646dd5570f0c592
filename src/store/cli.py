"""
Atelier Store CLI

Thin wrapper around the Store facade providing a command-line interface.

Usage:
    atelier init
    atelier status [--json]
    atelier scan [--json]
    atelier duplicates [PATH] [--json]
    atelier meta PATH [--set key=value ...] [--json]
    atelier config [--lora-dir DIR] [--wildcard-dir DIR]
    atelier serve [--host HOST] [--port PORT]
"""

from __future__ import annotations

import json as json_module
from pathlib import Path
from typing import List, Optional

import typer

from ..utils.paths import format_size
from .layout import StoreError
from .models import DirectoryNode, FileNode

app = typer.Typer(
    name="atelier",
    help="Atelier - characters, LoRA library and prompt tools",
    no_args_is_help=True,
)


def get_store():
    """Get or create Store instance from the application config."""
    from . import Store
    from config.settings import get_config

    cfg = get_config()
    return Store(
        root=cfg.data_path,
        config_defaults=cfg.store_defaults(),
        civitai_api_key=cfg.api.civitai_token,
    )


def output_json(data) -> None:
    """Output data as JSON."""
    typer.echo(json_module.dumps(data, indent=2, default=str, ensure_ascii=False))


def output_error(message: str) -> None:
    """Output error message."""
    typer.secho(f"Error: {message}", fg=typer.colors.RED, err=True)


def output_success(message: str) -> None:
    """Output success message."""
    typer.secho(message, fg=typer.colors.GREEN)


def output_warning(message: str) -> None:
    """Output warning message."""
    typer.secho(f"Warning: {message}", fg=typer.colors.YELLOW)


def _print_tree(nodes, indent: int = 0) -> None:
    pad = "  " * indent
    for node in nodes:
        if isinstance(node, DirectoryNode):
            typer.echo(f"{pad}{node.name}/")
            _print_tree(node.children, indent + 1)
        elif isinstance(node, FileNode):
            label = node.generation.value if node.generation else "Unknown"
            typer.echo(f"{pad}{node.name}  [{label}, {format_size(node.size)}]")


def _parse_assignments(items: List[str]) -> dict:
    """Turn ``key=value`` strings into a patch; values are JSON when possible."""
    patch = {}
    for item in items:
        if "=" not in item:
            raise typer.BadParameter(f"Expected key=value, got: {item}")
        key, raw = item.split("=", 1)
        try:
            patch[key.strip()] = json_module.loads(raw)
        except json_module.JSONDecodeError:
            patch[key.strip()] = raw
    return patch


# =============================================================================
# Store Commands
# =============================================================================

@app.command("init")
def init_store():
    """Initialize the data directory."""
    store = get_store()

    if store.is_initialized():
        output_warning(f"Store already initialized at {store.layout.root}")
        raise typer.Exit(0)

    store.init()
    output_success(f"Store initialized at {store.layout.root}")


@app.command("status")
def status(
    json: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """Show store status."""
    info = get_store().status()

    if json:
        output_json(info)
        return

    typer.echo(f"Atelier v{info['version']}")
    typer.echo(f"Data dir:   {info['dataDir']} ({'initialized' if info['initialized'] else 'not initialized'})")
    if info["loraDirFound"]:
        typer.echo(f"LoRA dir:   {info['loraDir']} ({info['loraCount']} file(s))")
    else:
        output_warning("LoRA directory not configured or missing")
    typer.echo(f"Metadata:   {info['metaCount']} record(s)")
    typer.echo(f"Characters: {info['characterCount']}, lists: {info['listCount']}")


@app.command("config")
def config(
    lora_dir: Optional[Path] = typer.Option(None, "--lora-dir", help="LoRA directory"),
    wildcard_dir: Optional[Path] = typer.Option(None, "--wildcard-dir", help="Wildcard directory"),
    json: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """Show or update user settings."""
    store = get_store()
    patch = {}
    if lora_dir is not None:
        patch["loraDir"] = str(lora_dir.expanduser().resolve())
    if wildcard_dir is not None:
        patch["wildcardDir"] = str(wildcard_dir.expanduser().resolve())

    cfg = store.update_config(patch) if patch else store.get_config()
    data = cfg.to_json()
    if data.get("geminiApiKey"):
        data["geminiApiKey"] = "***"

    if json:
        output_json(data)
    else:
        for key, value in data.items():
            typer.echo(f"{key}: {value}")


# =============================================================================
# LoRA Commands
# =============================================================================

@app.command("scan")
def scan(
    json: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """Scan the LoRA directory and print the tree."""
    result = get_store().list_loras()

    if json:
        output_json(result.model_dump(by_alias=True, mode="json"))
        return

    if not result.root_dir:
        output_error("LoRA directory not configured. Run 'atelier config --lora-dir DIR'.")
        raise typer.Exit(1)

    typer.echo(result.root_dir)
    _print_tree(result.files, indent=1)


@app.command("duplicates")
def duplicates(
    path: str = typer.Argument("", help="Folder to search (default: whole library)"),
    json: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """List files that look like copies of each other."""
    try:
        groups = get_store().duplicates(path)
    except StoreError as e:
        output_error(str(e))
        raise typer.Exit(1)

    if json:
        output_json([[n.model_dump(by_alias=True, mode="json") for n in g] for g in groups])
        return

    if not groups:
        output_success("No duplicates found.")
        return

    typer.echo(f"Found {len(groups)} duplicate set(s):")
    for group in groups:
        typer.echo(f"  {group[0].name} ({format_size(group[0].size)})")
        for node in group:
            typer.echo(f"    - {node.path}")


@app.command("meta")
def meta(
    path: str = typer.Argument(..., help="LoRA path relative to the library root"),
    set_: List[str] = typer.Option([], "--set", help="key=value to merge (repeatable)"),
    json: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """Show or update the metadata record of a LoRA."""
    store = get_store()
    try:
        if set_:
            record = store.update_meta(path, _parse_assignments(set_))
        else:
            record = store.meta_store.get(path)
    except ValueError as e:
        output_error(str(e))
        raise typer.Exit(1)

    if record is None:
        output_warning(f"No metadata for {path}")
        raise typer.Exit(0)

    data = record.to_json()
    if json:
        output_json(data)
    else:
        for key, value in data.items():
            typer.echo(f"{key}: {value}")


# =============================================================================
# Server
# =============================================================================

@app.command("serve")
def serve(
    host: Optional[str] = typer.Option(None, "--host", help="Bind address"),
    port: Optional[int] = typer.Option(None, "--port", help="Port"),
    reload: bool = typer.Option(False, "--reload", help="Auto-reload on code changes"),
):
    """Run the API server."""
    import uvicorn
    from config.settings import get_config

    cfg = get_config()
    uvicorn.run(
        "apps.api.src.main:app",
        host=host or cfg.server.host,
        port=port or cfg.server.port,
        reload=reload,
        log_level=cfg.server.log_level.lower(),
    )


if __name__ == "__main__":
    app()
