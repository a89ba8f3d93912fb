"""Errors raised while resolving, fetching and storing a remote version catalog."""

from __future__ import annotations

from pathlib import Path


class CatalogError(Exception):
    """Base exception for remote catalog failures."""


class ConfigurationError(CatalogError):
    """Raised when a required property is missing or invalid."""

    def __init__(self, message: str, property_name: str | None = None) -> None:
        super().__init__(message)
        self.property_name = property_name


class CompatibilityError(CatalogError):
    """Raised when the host version is below the supported minimum."""


class FetchError(CatalogError):
    """Raised when the remote catalog cannot be reached."""

    def __init__(self, url: str, message: str | None = None) -> None:
        super().__init__(message or f"Failed to fetch {url}")
        self.url = url


class EmptyContentError(CatalogError):
    """Raised when the remote catalog was reached but returned a blank body."""

    def __init__(self, url: str) -> None:
        super().__init__(f"Content is empty: {url}")
        self.url = url


class StorageIOError(CatalogError):
    """Raised when the cached content or its timestamp cannot be read or written."""

    def __init__(self, path: Path, message: str) -> None:
        super().__init__(f"{message} ({path})")
        self.path = path
