"""Entry points called by the host build.

The host supplies properties once, calls :func:`on_initialize` on every build
and exposes the callables from :func:`on_register_maintenance_tasks` as tasks.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol
import re

from remote_catalog.config import CatalogConfig, resolve_config
from remote_catalog.errors import CatalogError, CompatibilityError
from remote_catalog.refresh import Clock, Fetcher, RefreshCoordinator, RefreshResult
from remote_catalog.util.cache import FileCache, now_millis
from remote_catalog.util.logging import get_logger

LOG = get_logger(__name__)

MINIMUM_HOST_VERSION = "7.2"
TASK_GROUP = "version-catalog"
REFRESH_TASK_NAME = "refreshRemoteVersionCatalog"
CLEAN_TASK_NAME = "cleanRemoteVersionCatalog"

_VERSION_PART = re.compile(r"^(\d+)")
_QUALIFIER = re.compile(r"[^\d.]")


class CatalogRegistrar(Protocol):
    def register(self, name: str, path: Path) -> None: ...


@dataclass(frozen=True)
class MaintenanceTasks:
    group: str
    force_refresh: Callable[[], RefreshResult]
    clean: Callable[[], bool]

    def as_dict(self) -> dict[str, Callable[[], object]]:
        return {REFRESH_TASK_NAME: self.force_refresh, CLEAN_TASK_NAME: self.clean}


def parse_version(version: str) -> tuple[int, ...]:
    parts: list[int] = []
    for raw in version.strip().split("."):
        match = _VERSION_PART.match(raw)
        if not match:
            break
        parts.append(int(match.group(1)))
        if match.group(1) != raw:
            # "7.2-rc-1": stop at the first qualifier
            break
    return tuple(parts)


def is_prerelease(version: str) -> bool:
    return _QUALIFIER.search(version.strip()) is not None


def check_compatibility(host_version: str, minimum: str = MINIMUM_HOST_VERSION) -> None:
    current = parse_version(host_version)
    if not current:
        raise CompatibilityError(f"Cannot parse host version: {host_version!r}")
    required = parse_version(minimum)
    width = max(len(current), len(required))
    # A pre-release ranks below the release with the same numbers.
    current_key = (_pad(current, width), not is_prerelease(host_version))
    required_key = (_pad(required, width), not is_prerelease(minimum))
    if current_key < required_key:
        raise CompatibilityError(
            f"Host version must be at least {minimum}, otherwise version catalogs cannot be used "
            f"(found {host_version})."
        )


def on_initialize(
    config: CatalogConfig,
    registrar: CatalogRegistrar,
    fetcher: Fetcher | None = None,
    store: FileCache | None = None,
    clock: Clock = now_millis,
) -> Path:
    """Make sure the cached catalog is fresh and bind it under its catalog name."""
    coordinator = RefreshCoordinator(config, fetcher=fetcher, store=store, clock=clock)
    try:
        result = coordinator.ensure_fresh()
    except CatalogError as exc:
        LOG.error("Remote version catalog %s failed: %s", config.catalog_name, exc)
        raise

    if config.is_reserved:
        LOG.warning(
            "Catalog name %r is reserved, skipping registration of %s",
            config.catalog_name,
            result.path,
        )
        return result.path

    registrar.register(config.catalog_name, result.path)
    return result.path


def on_register_maintenance_tasks(
    config: CatalogConfig,
    fetcher: Fetcher | None = None,
    store: FileCache | None = None,
    clock: Clock = now_millis,
) -> MaintenanceTasks:
    coordinator = RefreshCoordinator(config, fetcher=fetcher, store=store, clock=clock)

    def force_refresh() -> RefreshResult:
        try:
            return coordinator.force_refresh()
        except CatalogError as exc:
            LOG.error("Refreshing %s failed: %s", config.catalog_name, exc)
            raise

    def clean() -> bool:
        try:
            return coordinator.clean()
        except CatalogError as exc:
            LOG.error("Cleaning %s failed: %s", config.catalog_name, exc)
            raise

    return MaintenanceTasks(group=TASK_GROUP, force_refresh=force_refresh, clean=clean)


def bootstrap(
    host_version: str,
    properties: Mapping[str, object],
    registrar: CatalogRegistrar,
    root_dir: Path | None = None,
    fetcher: Fetcher | None = None,
) -> Path:
    """Startup sequence: version check, then configuration, then the cache."""
    try:
        check_compatibility(host_version)
        config = resolve_config(properties, root_dir=root_dir)
    except CatalogError as exc:
        LOG.error("%s", exc)
        raise
    return on_initialize(config, registrar, fetcher=fetcher)


def _pad(version: tuple[int, ...], width: int) -> tuple[int, ...]:
    return version + (0,) * (width - len(version))
