from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from pathlib import Path
import tomllib

from remote_catalog.errors import ConfigurationError

# eg: https://example.com/libs.versions.toml
PROP_REMOTE_URL = "remote.version.catalog.url"
# eg: common
PROP_CATALOG_NAME = "remote.version.catalog.name"
# Relative to the root directory, defaults to .gradle/
PROP_CATALOG_PATH = "remote.version.catalog.path"
PROP_EXPIRE_MILLIS = "remote.version.catalog.expire"
PROP_RESERVED_NAMES = "remote.version.catalog.reserved"

DEFAULT_TTL_MILLIS = 86_400_000
DEFAULT_STORAGE_DIRNAME = ".gradle"
DEFAULT_RESERVED_NAMES: tuple[str, ...] = ("libs",)
DEFAULT_PROPERTIES_PATH = Path("catalog.toml")


@dataclass(frozen=True)
class CatalogConfig:
    source_url: str
    catalog_name: str
    storage_directory: Path
    ttl_millis: int = DEFAULT_TTL_MILLIS
    reserved_names: tuple[str, ...] = DEFAULT_RESERVED_NAMES

    @property
    def is_reserved(self) -> bool:
        return self.catalog_name in self.reserved_names


def resolve_config(properties: Mapping[str, object], root_dir: Path | None = None) -> CatalogConfig:
    """Build a :class:`CatalogConfig` from host-supplied properties.

    Raises ConfigurationError naming the first offending property. Nothing
    is read from or written to the cache here.
    """
    root = root_dir if root_dir is not None else Path.cwd()

    url = _optional(properties, PROP_REMOTE_URL)
    if url is None:
        raise ConfigurationError(f"Please define the property ({PROP_REMOTE_URL})", PROP_REMOTE_URL)

    name = _optional(properties, PROP_CATALOG_NAME)
    if name is None:
        raise ConfigurationError(
            f"Please define the property ({PROP_CATALOG_NAME})", PROP_CATALOG_NAME
        )
    if not _is_valid_file_name(name):
        raise ConfigurationError(
            f"Catalog name cannot be used as a file name: {PROP_CATALOG_NAME}={name}",
            PROP_CATALOG_NAME,
        )

    storage_override = _optional(properties, PROP_CATALOG_PATH)
    if storage_override is not None:
        storage_directory = root / storage_override
        if not storage_directory.is_dir():
            raise ConfigurationError(
                f"Path is not exist, please check property: {PROP_CATALOG_PATH}={storage_directory}",
                PROP_CATALOG_PATH,
            )
    else:
        storage_directory = root / DEFAULT_STORAGE_DIRNAME

    ttl_millis = DEFAULT_TTL_MILLIS
    raw_ttl = _optional(properties, PROP_EXPIRE_MILLIS)
    if raw_ttl is not None:
        try:
            ttl_millis = int(raw_ttl)
        except ValueError as exc:
            raise ConfigurationError(
                f"Expire time must be an integer number of millis: {PROP_EXPIRE_MILLIS}={raw_ttl}",
                PROP_EXPIRE_MILLIS,
            ) from exc
        if ttl_millis < 0:
            raise ConfigurationError(
                f"Expire time cannot be negative: {PROP_EXPIRE_MILLIS}={raw_ttl}",
                PROP_EXPIRE_MILLIS,
            )

    reserved_names = DEFAULT_RESERVED_NAMES
    if PROP_RESERVED_NAMES in properties:
        raw_reserved = str(properties[PROP_RESERVED_NAMES])
        reserved_names = tuple(part.strip() for part in raw_reserved.split(",") if part.strip())

    return CatalogConfig(
        source_url=url,
        catalog_name=name,
        storage_directory=storage_directory,
        ttl_millis=ttl_millis,
        reserved_names=reserved_names,
    )


def load_properties(path: Path) -> dict[str, str]:
    """Read properties from a TOML file.

    ``remote.version.catalog.url = "..."`` and a ``[remote.version.catalog]``
    table are equivalent; both flatten to dotted keys.
    """
    if not path.exists():
        raise ConfigurationError(f"Missing properties file: {path}")
    try:
        raw = tomllib.loads(path.read_text(encoding="utf-8"))
    except tomllib.TOMLDecodeError as exc:
        raise ConfigurationError(f"Invalid TOML in {path}: {exc}") from exc
    return _flatten(raw)


def parse_overrides(pairs: Iterable[str]) -> dict[str, str]:
    overrides: dict[str, str] = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        key = key.strip()
        if not sep or not key:
            raise ConfigurationError(f"Expected KEY=VALUE, got: {pair}")
        overrides[key] = value.strip()
    return overrides


def _flatten(raw: Mapping[str, object], prefix: str = "") -> dict[str, str]:
    flat: dict[str, str] = {}
    for key, value in raw.items():
        dotted = f"{prefix}{key}"
        if isinstance(value, Mapping):
            flat.update(_flatten(value, prefix=f"{dotted}."))
        elif isinstance(value, bool):
            flat[dotted] = str(value).lower()
        elif isinstance(value, list):
            flat[dotted] = ",".join(str(item) for item in value)
        else:
            flat[dotted] = str(value)
    return flat


def _optional(properties: Mapping[str, object], key: str) -> str | None:
    value = properties.get(key)
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _is_valid_file_name(name: str) -> bool:
    if name in (".", ".."):
        return False
    return not any(ch in name for ch in ("/", "\\", "\0"))
