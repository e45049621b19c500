# src/graphloader/cli.py
"""graphloader Command Line Interface.

Entry point for the graphloader CLI tool.
"""

from __future__ import annotations

import json
from collections.abc import Iterable
from pathlib import Path
from typing import TYPE_CHECKING, Literal

import typer
from dynaconf.vendor.ruamel.yaml.parser import ParserError as YamlParserError
from dynaconf.vendor.ruamel.yaml.scanner import ScannerError as YamlScannerError
from pydantic import ValidationError

from graphloader import __version__
from graphloader.contracts import SourceCategory, SourceRow
from graphloader.core.config import EdgeSettings, GraphLoaderSettings, TagSettings, load_settings, resolve_config

if TYPE_CHECKING:
    from graphloader.contracts import WriteClient
    from graphloader.core.checkpoint import CheckpointStore

__all__ = [
    "app",
    "load_settings",  # Re-exported from config for convenience
]

app = typer.Typer(
    name="graphloader",
    help="graphloader: partitioned bulk loading into a graph database.",
    no_args_is_help=True,
)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"graphloader version {__version__}")
        raise typer.Exit()


def _load_dotenv(env_file: Path | None = None) -> bool:
    """Load environment variables from a .env file.

    Raises:
        typer.Exit: If an explicit env_file path doesn't exist.
    """
    from dotenv import load_dotenv

    if env_file is not None:
        if not env_file.exists():
            typer.secho(f"Error: .env file not found: {env_file}", fg=typer.colors.RED, err=True)
            raise typer.Exit(1)
        return load_dotenv(env_file, override=False)

    return load_dotenv(override=False)


@app.callback()
def main(
    version: bool | None = typer.Option(
        None,
        "--version",
        "-V",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
    no_dotenv: bool = typer.Option(
        False,
        "--no-dotenv",
        help="Skip loading .env file.",
    ),
    env_file: Path | None = typer.Option(
        None,
        "--env-file",
        help="Path to .env file (skips automatic search).",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable verbose/debug logging.",
    ),
    json_logs: bool = typer.Option(
        False,
        "--json-logs",
        help="Output structured JSON logs (for machine processing).",
    ),
) -> None:
    """graphloader: partitioned bulk loading into a graph database."""
    from graphloader.core.logging import configure_logging

    configure_logging(json_output=json_logs, level="DEBUG" if verbose else "INFO")

    if not no_dotenv:
        _load_dotenv(env_file=env_file)
    elif env_file is not None:
        typer.secho("Warning: --env-file ignored because --no-dotenv is set.", fg=typer.colors.YELLOW, err=True)


def _load_settings_or_exit(settings: str) -> GraphLoaderSettings:
    settings_path = Path(settings).expanduser()
    try:
        return load_settings(settings_path)
    except (YamlParserError, YamlScannerError) as e:
        typer.echo(f"YAML syntax error in {settings}: {e.problem}", err=True)
        raise typer.Exit(1) from None
    except FileNotFoundError:
        typer.echo(f"Error: Settings file not found: {settings}", err=True)
        raise typer.Exit(1) from None
    except ValidationError as e:
        typer.echo("Configuration errors:", err=True)
        for error in e.errors():
            loc = ".".join(str(x) for x in error["loc"])
            typer.echo(f"  - {loc}: {error['msg']}", err=True)
        raise typer.Exit(1) from None


def _make_writer(config: GraphLoaderSettings) -> WriteClient:
    """Writer for one partition against the configured cluster."""
    from graphloader.plugins.clients import GraphClientWriter, NebulaExecutor

    return GraphClientWriter(config.graph, NebulaExecutor(config.graph))


def _open_checkpoint_store(config: GraphLoaderSettings) -> CheckpointStore:
    from graphloader.core.checkpoint import CheckpointStore

    url = config.checkpoint.url
    if url.startswith("sqlite:///") and ":memory:" not in url:
        Path(url.removeprefix("sqlite:///")).expanduser().parent.mkdir(parents=True, exist_ok=True)
    return CheckpointStore.from_url(url)


def _rows_for(entity: EdgeSettings | TagSettings, partition_id: int) -> Iterable[SourceRow]:
    from graphloader.plugins.sources import CSVSource, partition_rows

    if entity.data.category != SourceCategory.CSV:
        raise typer.BadParameter(f"{entity.name}: source category {entity.data.category} has no reader")
    return partition_rows(CSVSource(entity.data).rows(), entity.partitions, partition_id)


def _select_entities(config: GraphLoaderSettings, names: list[str] | None) -> list[EdgeSettings | TagSettings]:
    entities: list[EdgeSettings | TagSettings] = [*config.tags, *config.edges]
    if not names:
        return entities
    known = {entity.name for entity in entities}
    unknown = sorted(set(names) - known)
    if unknown:
        typer.echo(f"Error: unknown entities: {', '.join(unknown)}", err=True)
        raise typer.Exit(1)
    return [entity for entity in entities if entity.name in names]


@app.command()
def run(
    settings: str = typer.Option(
        ...,
        "--settings",
        "-s",
        help="Path to settings YAML file.",
    ),
    entity: list[str] | None = typer.Option(
        None,
        "--entity",
        "-e",
        help="Load only this tag or edge (repeatable).",
    ),
    dry_run: bool = typer.Option(
        False,
        "--dry-run",
        "-n",
        help="Validate and show what would be loaded without writing.",
    ),
    output_format: Literal["console", "json"] = typer.Option(
        "console",
        "--format",
        "-f",
        help="Output format: 'console' (human-readable) or 'json' (structured JSON).",
    ),
) -> None:
    """Load the configured tags and edges into the graph store.

    Exits with status 1 if any partition aborted.
    """
    from graphloader.engine import LoadRunner

    config = _load_settings_or_exit(settings)
    entities = _select_entities(config, entity)

    if dry_run:
        typer.echo("Dry run mode - would load:")
        for selected in entities:
            kind = "edge" if isinstance(selected, EdgeSettings) else "tag"
            typer.echo(f"  {kind} {selected.name}: {selected.data.category}, {selected.partitions} partition(s)")
        return

    needs_store = any(selected.checkpoint and config.checkpoint.is_resumable(selected.data.category) for selected in entities)
    store = _open_checkpoint_store(config) if needs_store else None

    runner = LoadRunner(config, writer_factory=lambda: _make_writer(config), checkpoint_store=store)
    try:
        results = [runner.run_entity(selected, lambda pid, selected=selected: _rows_for(selected, pid)) for selected in entities]
    except Exception as e:
        if output_format == "json":
            typer.echo(json.dumps({"event": "error", "error": str(e), "error_type": type(e).__name__}), err=True)
        else:
            typer.echo(f"Error during load: {e}", err=True)
        raise typer.Exit(1) from None
    finally:
        if store is not None:
            store.close()

    counters = runner.counters.snapshot()
    if output_format == "json":
        typer.echo(
            json.dumps(
                {
                    "event": "load_completed",
                    "entities": [
                        {
                            "name": result.name,
                            "records": result.records,
                            "failed_partitions": sorted(result.failures),
                            "checkpoint_total": result.checkpoint_total,
                        }
                        for result in results
                    ],
                    **counters,
                }
            )
        )
    else:
        for result in results:
            status = "ok" if result.succeeded else f"FAILED partitions {sorted(result.failures)}"
            typer.echo(f"{result.name}: {result.records} records, {status}")
            for partition_id, error in sorted(result.failures.items()):
                typer.echo(f"  partition {partition_id}: {error}", err=True)
        typer.echo(f"Batches succeeded: {counters['batch_success']}, failed: {counters['batch_failure']}")

    if not all(result.succeeded for result in results):
        raise typer.Exit(1)


@app.command()
def validate(
    settings: str = typer.Option(
        ...,
        "--settings",
        "-s",
        help="Path to settings YAML file.",
    ),
    show_config: bool = typer.Option(
        False,
        "--show-config",
        help="Print the resolved configuration (secrets redacted) as JSON.",
    ),
) -> None:
    """Validate a settings file without connecting to the graph store."""
    config = _load_settings_or_exit(settings)

    missing = [
        f"{selected.name}: {selected.data.path}"
        for selected in (*config.tags, *config.edges)
        if selected.data.category == SourceCategory.CSV and not Path(selected.data.path or "").exists()
    ]
    if missing:
        typer.echo("Missing source files:", err=True)
        for line in missing:
            typer.echo(f"  - {line}", err=True)
        raise typer.Exit(1)

    if show_config:
        typer.echo(json.dumps(resolve_config(config), indent=2))
        return

    typer.echo("Configuration valid.")
    typer.echo(f"  Space: {config.graph.space}")
    typer.echo(f"  Tags: {', '.join(tag.name for tag in config.tags) or '(none)'}")
    typer.echo(f"  Edges: {', '.join(edge.name for edge in config.edges) or '(none)'}")


@app.command()
def checkpoints(
    settings: str = typer.Option(
        ...,
        "--settings",
        "-s",
        help="Path to settings YAML file.",
    ),
    stream: str | None = typer.Option(
        None,
        "--stream",
        help="Only show checkpoints of this entity.",
    ),
) -> None:
    """List stored checkpoint offsets."""
    config = _load_settings_or_exit(settings)
    store = _open_checkpoint_store(config)
    try:
        records = store.records(stream)
    finally:
        store.close()

    if not records:
        typer.echo("No checkpoints found.")
        return
    for record in records:
        typer.echo(f"{record.stream_name}.{record.partition_id}: {record.offset}")


@app.command("reset-checkpoints")
def reset_checkpoints(
    settings: str = typer.Option(
        ...,
        "--settings",
        "-s",
        help="Path to settings YAML file.",
    ),
    stream: str = typer.Option(
        ...,
        "--stream",
        help="Entity whose checkpoints are deleted.",
    ),
    yes: bool = typer.Option(
        False,
        "--yes",
        "-y",
        help="Skip the confirmation prompt.",
    ),
) -> None:
    """Delete an entity's checkpoints so the next run starts from the beginning."""
    config = _load_settings_or_exit(settings)
    if not yes and not typer.confirm(f"Delete all checkpoints of {stream!r}?"):
        typer.echo("Aborted.")
        raise typer.Exit(1)

    store = _open_checkpoint_store(config)
    try:
        removed = store.clear(stream)
    finally:
        store.close()
    typer.echo(f"Reset {removed} partition checkpoint(s) of {stream}.")


if __name__ == "__main__":
    app()
