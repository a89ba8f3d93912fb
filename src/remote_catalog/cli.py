import logging
from pathlib import Path

import typer
from rich.console import Console
from rich.markup import escape

from remote_catalog.config import (
    DEFAULT_PROPERTIES_PATH,
    CatalogConfig,
    load_properties,
    parse_overrides,
    resolve_config,
)
from remote_catalog.errors import CatalogError
from remote_catalog.host import (
    check_compatibility,
    on_initialize,
    on_register_maintenance_tasks,
)
from remote_catalog.refresh import RefreshCoordinator
from remote_catalog.util.cache import now_millis
from remote_catalog.util.logging import configure_logging

app = typer.Typer(add_completion=False)
console = Console()

PropertiesOption = typer.Option(None, "--properties", "-p", help="TOML file with catalog properties.")
SetOption = typer.Option([], "--set", "-s", help="Property override as KEY=VALUE.")
RootDirOption = typer.Option(None, "--root-dir", help="Directory storage paths are relative to.")
HostVersionOption = typer.Option(None, "--host-version", help="Fail unless the host meets the minimum.")


def _check_log_level(value: str) -> str:
    if logging.getLevelNamesMapping().get(value.upper()) is None:
        raise typer.BadParameter(f"Unknown log level: {value}")
    return value


LogLevelOption = typer.Option("WARNING", "--log-level", callback=_check_log_level)


class ConsoleRegistrar:
    def __init__(self) -> None:
        self.bindings: dict[str, Path] = {}

    def register(self, name: str, path: Path) -> None:
        self.bindings[name] = path
        console.print(f"Registered catalog [bold]{name}[/bold] -> {path}")


def _load_config(
    properties: Path | None,
    overrides: list[str],
    root_dir: Path | None,
    host_version: str | None,
) -> CatalogConfig:
    if host_version is not None:
        check_compatibility(host_version)
    values: dict[str, str] = {}
    if properties is not None:
        values.update(load_properties(properties))
    elif DEFAULT_PROPERTIES_PATH.exists():
        values.update(load_properties(DEFAULT_PROPERTIES_PATH))
    values.update(parse_overrides(overrides))
    return resolve_config(values, root_dir=root_dir)


@app.command()
def sync(
    properties: Path | None = PropertiesOption,
    set_: list[str] = SetOption,
    root_dir: Path | None = RootDirOption,
    host_version: str | None = HostVersionOption,
    log_level: str = LogLevelOption,
) -> None:
    """Download the catalog if the cache is stale, then register it."""
    configure_logging(log_level)
    try:
        cfg = _load_config(properties, set_, root_dir, host_version)
        registrar = ConsoleRegistrar()
        path = on_initialize(cfg, registrar)
    except CatalogError as exc:
        console.print(f"[red]{escape(str(exc))}[/red]")
        raise typer.Exit(code=1) from exc
    if cfg.catalog_name not in registrar.bindings:
        console.print(
            f"[yellow]Catalog name {cfg.catalog_name} is reserved, not registered: {path}[/yellow]"
        )


@app.command()
def refresh(
    properties: Path | None = PropertiesOption,
    set_: list[str] = SetOption,
    root_dir: Path | None = RootDirOption,
    host_version: str | None = HostVersionOption,
    log_level: str = LogLevelOption,
) -> None:
    """Download the catalog now, ignoring the expire time."""
    configure_logging(log_level)
    try:
        cfg = _load_config(properties, set_, root_dir, host_version)
        result = on_register_maintenance_tasks(cfg).force_refresh()
    except CatalogError as exc:
        console.print(f"[red]{escape(str(exc))}[/red]")
        raise typer.Exit(code=1) from exc
    console.print(f"Refreshed {result.name}: {result.path}")


@app.command()
def clean(
    properties: Path | None = PropertiesOption,
    set_: list[str] = SetOption,
    root_dir: Path | None = RootDirOption,
    host_version: str | None = HostVersionOption,
    log_level: str = LogLevelOption,
) -> None:
    """Delete the cached catalog and its timestamp."""
    configure_logging(log_level)
    try:
        cfg = _load_config(properties, set_, root_dir, host_version)
        removed = on_register_maintenance_tasks(cfg).clean()
    except CatalogError as exc:
        console.print(f"[red]{escape(str(exc))}[/red]")
        raise typer.Exit(code=1) from exc
    if removed:
        console.print(f"Deleted cache for {cfg.catalog_name}")
    else:
        console.print(f"Nothing to delete for {cfg.catalog_name}")


@app.command()
def status(
    properties: Path | None = PropertiesOption,
    set_: list[str] = SetOption,
    root_dir: Path | None = RootDirOption,
    log_level: str = LogLevelOption,
) -> None:
    """Show where the catalog is cached and whether it is still valid."""
    configure_logging(log_level)
    try:
        cfg = _load_config(properties, set_, root_dir, None)
        coordinator = RefreshCoordinator(cfg)
        state = coordinator.state()
    except CatalogError as exc:
        console.print(f"[red]{escape(str(exc))}[/red]")
        raise typer.Exit(code=1) from exc
    now = now_millis()
    valid = state.is_valid(cfg.ttl_millis, now)
    console.print(f"catalog: {cfg.catalog_name}")
    console.print(f"url: {cfg.source_url}")
    console.print(f"content: {coordinator.entry.content_path}")
    console.print(f"metadata: {coordinator.entry.metadata_path}")
    if state.last_refreshed_at_millis:
        console.print(f"age_ms: {state.age_millis(now)} (ttl_ms: {cfg.ttl_millis})")
    else:
        console.print("age_ms: never refreshed")
    if valid:
        console.print("[green]valid[/green]")
    else:
        console.print("[yellow]stale[/yellow]")


if __name__ == "__main__":
    app()
