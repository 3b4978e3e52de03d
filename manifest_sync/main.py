"""manifest-sync CLI - resolve a plugin's source contract and update manifest.json."""
import json
from contextlib import nullcontext
from pathlib import Path
from typing import Optional

import typer
from rich.markup import escape
from rich.table import Table

from .analyzer.contract import ManifestMetadata, extract_manifest_metadata
from .assembler.manifest_builder import build_manifest
from .assembler.manifest_file import ManifestFile, read_package_json
from .config import __version__, get_config
from .errors import ContractError
from .loader.runtime_loader import RuntimeLoader, default_strategies
from .utils.safe_console import SafeConsole

app = typer.Typer(
    name="manifest-sync",
    help="Resolve a plugin's source contract and keep manifest.json in sync",
    add_completion=False
)
console = SafeConsole()


def build_loader(project_path: Path) -> RuntimeLoader:
    """Runtime loader configured from the environment, run from the project root."""
    config = get_config()
    return RuntimeLoader(default_strategies(
        deno_binary=config.deno_binary,
        node_binary=config.node_binary,
        cwd=project_path,
        output_limit=config.loader_output_limit,
    ))


def run_extraction(project_path: Path, exclude_events: Optional[str]) -> ManifestMetadata:
    """Shared resolution step for both extract and update commands.

    Exits with status 1 on any contract error.
    """
    config = get_config()
    excluded = exclude_events if exclude_events is not None else config.excluded_events

    try:
        status = console.status("[cyan]Resolving plugin contract...") if console.is_terminal else nullcontext()
        with status:
            return extract_manifest_metadata(project_path, excluded, loader=build_loader(project_path))
    except ContractError as e:
        console.error(str(e))
        raise typer.Exit(1)


def _metadata_table(metadata: ManifestMetadata) -> Table:
    table = Table(title="Plugin contract", show_header=False)
    table.add_column("Field", style="bold")
    table.add_column("Value")

    entrypoint = metadata.entrypoint
    if entrypoint is not None:
        table.add_row("Entrypoint", escape(f"{entrypoint.function_name} in {entrypoint.file_path}"))
    table.add_row("Settings schema", "resolved" if metadata.settings_schema is not None else "[yellow]missing[/yellow]")
    if metadata.allow_missing_command_schema:
        table.add_row("Command schema", "[dim]none (null command type)[/dim]")
    else:
        table.add_row("Command schema", "resolved")
    table.add_row("Supported events", escape(", ".join(metadata.supported_events)))
    if metadata.excluded_supported_events:
        table.add_row("Excluded events", escape(", ".join(metadata.excluded_supported_events)))
    return table


@app.command()
def extract(
    project_path: Optional[Path] = typer.Argument(None, help="Plugin repository root (default: GITHUB_WORKSPACE or .)"),
    exclude_events: Optional[str] = typer.Option(
        None, "--exclude-events", "-x", help="Comma-separated supported events to leave out"
    ),
    as_json: bool = typer.Option(False, "--json", help="Print the metadata bundle as JSON"),
):
    """Resolve the plugin contract and print the metadata bundle."""
    project_path = (project_path or get_config().workspace).resolve()
    metadata = run_extraction(project_path, exclude_events)

    if as_json:
        typer.echo(json.dumps(metadata.to_dict(), indent=2, ensure_ascii=False))
    else:
        console.print(_metadata_table(metadata))


@app.command()
def update(
    project_path: Optional[Path] = typer.Argument(None, help="Plugin repository root (default: GITHUB_WORKSPACE or .)"),
    manifest: Optional[Path] = typer.Option(None, "--manifest", "-m", help="Path to manifest.json"),
    repository: Optional[str] = typer.Option(None, "--repository", help="owner/name of the plugin repository"),
    ref_name: Optional[str] = typer.Option(None, "--ref-name", help="Branch or tag the manifest is built for"),
    exclude_events: Optional[str] = typer.Option(
        None, "--exclude-events", "-x", help="Comma-separated supported events to leave out"
    ),
    skip_bot_events: Optional[str] = typer.Option(
        None, "--skip-bot-events", help="Whether the plugin ignores events sent by bots (default: true)"
    ),
):
    """Resolve the plugin contract and write it into manifest.json."""
    config = get_config()
    project_path = (project_path or config.workspace).resolve()

    repository = repository or config.repository
    ref_name = ref_name or config.ref_name
    if not repository or not ref_name:
        console.error("Repository and ref name are required (--repository/--ref-name or "
                      "GITHUB_REPOSITORY/GITHUB_REF_NAME)")
        raise typer.Exit(1)

    manifest_file = ManifestFile(manifest or config.manifest_path or project_path / "manifest.json")
    try:
        existing_manifest = manifest_file.read()
    except ValueError as e:
        console.error(str(e))
        raise typer.Exit(1)

    metadata = run_extraction(project_path, exclude_events)

    package_json, package_warning = read_package_json(project_path)
    if package_warning:
        console.warning(package_warning)

    updated, warnings = build_manifest(
        existing_manifest,
        {
            "settingsSchema": metadata.settings_schema,
            "commandSchema": metadata.command_schema,
        },
        package_json,
        {"repository": repository, "ref_name": ref_name},
        {
            "supportedEvents": metadata.supported_events,
            "skipBotEvents": skip_bot_events if skip_bot_events is not None else config.skip_bot_events,
            "allowMissingCommandSchema": metadata.allow_missing_command_schema,
        },
    )

    for warning in warnings:
        console.warning(warning)

    manifest_file.write(updated)
    console.print(f"[green]✓ Manifest updated:[/green] {escape(str(manifest_file.manifest_path))}")


@app.command()
def version():
    """Show the manifest-sync version."""
    typer.echo(f"manifest-sync {__version__}")


if __name__ == "__main__":
    app()
