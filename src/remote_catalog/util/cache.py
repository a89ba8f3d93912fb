from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
import stat
import time

from remote_catalog.errors import StorageIOError
from remote_catalog.util.logging import get_logger

LOG = get_logger(__name__)

CONTENT_SUFFIX = ".versions.toml"
METADATA_SUFFIX = ".update_at.txt"


def now_millis() -> int:
    return time.time_ns() // 1_000_000


@dataclass(frozen=True)
class CacheEntry:
    name: str
    content_path: Path

    @property
    def metadata_path(self) -> Path:
        return self.content_path.with_name(self.content_path.name + METADATA_SUFFIX)


@dataclass(frozen=True)
class CacheState:
    has_content: bool
    last_refreshed_at_millis: int

    def age_millis(self, now: int) -> int:
        return now - self.last_refreshed_at_millis

    def is_valid(self, ttl_millis: int, now: int) -> bool:
        if not self.has_content or self.last_refreshed_at_millis <= 0:
            return False
        return self.age_millis(now) <= ttl_millis


class FileCache:
    """Content and refresh timestamp for catalogs stored under one directory.

    The store has no notion of URLs or TTLs. A missing or unreadable
    timestamp reads as ``0`` so the entry always looks stale.
    """

    def __init__(self, base_dir: Path) -> None:
        self.base_dir = base_dir

    def entry(self, name: str) -> CacheEntry:
        return CacheEntry(name=name, content_path=self.base_dir / f"{name}{CONTENT_SUFFIX}")

    def read(self, entry: CacheEntry) -> CacheState:
        return CacheState(
            has_content=self._has_content(entry.content_path),
            last_refreshed_at_millis=self._read_timestamp(entry.metadata_path),
        )

    def read_text(self, entry: CacheEntry) -> str:
        try:
            return entry.content_path.read_text(encoding="utf-8")
        except OSError as exc:
            raise StorageIOError(entry.content_path, f"Cannot read cached catalog: {exc}") from exc

    def write(self, entry: CacheEntry, content: str, timestamp_millis: int) -> None:
        # Content must land before the timestamp: an interrupted write then reads as stale.
        _replace_text(entry.content_path, content)
        _replace_text(entry.metadata_path, str(timestamp_millis))

    def clear(self, entry: CacheEntry) -> bool:
        removed = False
        for path in (entry.content_path, entry.metadata_path):
            try:
                path.unlink()
                removed = True
            except FileNotFoundError:
                continue
            except OSError as exc:
                raise StorageIOError(path, f"Cannot delete cached file: {exc}") from exc
        return removed

    @staticmethod
    def _has_content(path: Path) -> bool:
        try:
            info = path.stat()
        except (FileNotFoundError, NotADirectoryError):
            return False
        except OSError as exc:
            raise StorageIOError(path, f"Cannot inspect cached catalog: {exc}") from exc
        return stat.S_ISREG(info.st_mode) and info.st_size > 0

    @staticmethod
    def _read_timestamp(path: Path) -> int:
        try:
            text = path.read_text(encoding="utf-8").strip()
        except FileNotFoundError:
            return 0
        except (OSError, ValueError) as exc:
            LOG.debug("Ignoring unreadable timestamp %s: %s", path, exc)
            return 0
        if not (text.isascii() and text.isdigit()):
            LOG.debug("Ignoring malformed timestamp %s: %r", path, text)
            return 0
        return int(text)


def _replace_text(path: Path, text: str) -> None:
    tmp_path = path.with_name(path.name + ".tmp")
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path.write_text(text, encoding="utf-8")
        tmp_path.replace(path)
    except OSError as exc:
        if tmp_path.exists():
            tmp_path.unlink()
        raise StorageIOError(path, f"Cannot write cache file: {exc}") from exc
