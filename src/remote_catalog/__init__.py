"""Local cache for a remotely hosted version catalog."""

from remote_catalog.config import CatalogConfig, load_properties, resolve_config
from remote_catalog.errors import (
    CatalogError,
    CompatibilityError,
    ConfigurationError,
    EmptyContentError,
    FetchError,
    StorageIOError,
)
from remote_catalog.host import (
    CatalogRegistrar,
    MaintenanceTasks,
    bootstrap,
    check_compatibility,
    on_initialize,
    on_register_maintenance_tasks,
)
from remote_catalog.refresh import RefreshCoordinator, RefreshResult

__all__ = [
    "CatalogConfig",
    "CatalogError",
    "CatalogRegistrar",
    "CompatibilityError",
    "ConfigurationError",
    "EmptyContentError",
    "FetchError",
    "MaintenanceTasks",
    "RefreshCoordinator",
    "RefreshResult",
    "StorageIOError",
    "bootstrap",
    "check_compatibility",
    "load_properties",
    "on_initialize",
    "on_register_maintenance_tasks",
    "resolve_config",
]
