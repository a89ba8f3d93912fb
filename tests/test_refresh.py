import pytest

from remote_catalog.config import CatalogConfig
from remote_catalog.errors import EmptyContentError, FetchError
from remote_catalog.refresh import RefreshCoordinator
from remote_catalog.util.cache import FileCache, now_millis

URL = "https://x/libs.versions.toml"
BODY = "[versions]\nagp = \"8.5.0\"\n"


class FakeFetcher:
    def __init__(self, *bodies: str) -> None:
        self.bodies = list(bodies) or [BODY]
        self.calls: list[str] = []

    def __call__(self, url: str) -> str:
        self.calls.append(url)
        if len(self.bodies) > 1:
            return self.bodies.pop(0)
        return self.bodies[0]


class FakeClock:
    def __init__(self, now: int) -> None:
        self.now = now

    def __call__(self) -> int:
        return self.now


def _config(tmp_path, ttl_millis: int = 1000) -> CatalogConfig:
    return CatalogConfig(
        source_url=URL,
        catalog_name="common",
        storage_directory=tmp_path,
        ttl_millis=ttl_millis,
    )


def test_first_invocation_fetches_and_commits(tmp_path) -> None:
    fetcher = FakeFetcher()
    started = now_millis()
    coordinator = RefreshCoordinator(_config(tmp_path), fetcher=fetcher)

    result = coordinator.ensure_fresh()

    assert fetcher.calls == [URL]
    assert result.fetched is True
    assert result.path == tmp_path / "common.versions.toml"
    assert result.path.read_text(encoding="utf-8") == BODY
    stamp = int((tmp_path / "common.versions.toml.update_at.txt").read_text(encoding="utf-8"))
    assert stamp >= started
    assert stamp == result.refreshed_at_millis


def test_ttl_scenario_skips_then_refetches(tmp_path) -> None:
    fetcher = FakeFetcher("first", "second")
    clock = FakeClock(1_000_000)
    coordinator = RefreshCoordinator(_config(tmp_path, ttl_millis=1000), fetcher=fetcher, clock=clock)

    assert coordinator.ensure_fresh().fetched is True

    clock.now += 500
    second = coordinator.ensure_fresh()
    assert second.fetched is False
    assert second.refreshed_at_millis == 1_000_000
    assert len(fetcher.calls) == 1

    clock.now += 1000
    third = coordinator.ensure_fresh()
    assert third.fetched is True
    assert third.refreshed_at_millis == 1_001_500
    assert len(fetcher.calls) == 2
    assert third.path.read_text(encoding="utf-8") == "second"
    assert FileCache(tmp_path).read(coordinator.entry).last_refreshed_at_millis == 1_001_500


def test_valid_cache_is_left_untouched(tmp_path) -> None:
    store = FileCache(tmp_path)
    entry = store.entry("common")
    store.write(entry, "cached", 5_000)

    def fail_fetch(_url: str) -> str:
        raise AssertionError("network fetch should not happen on a valid cache")

    coordinator = RefreshCoordinator(
        _config(tmp_path), fetcher=fail_fetch, clock=FakeClock(5_900)
    )
    result = coordinator.ensure_fresh()

    assert result.fetched is False
    assert store.read_text(entry) == "cached"
    assert store.read(entry).last_refreshed_at_millis == 5_000


def test_malformed_timestamp_triggers_fetch(tmp_path) -> None:
    store = FileCache(tmp_path)
    entry = store.entry("common")
    entry.content_path.write_text("cached", encoding="utf-8")
    entry.metadata_path.write_text("yesterday", encoding="utf-8")
    fetcher = FakeFetcher("fresh")

    coordinator = RefreshCoordinator(_config(tmp_path), fetcher=fetcher, clock=FakeClock(10))
    assert coordinator.is_valid() is False
    assert coordinator.ensure_fresh().fetched is True
    assert store.read_text(entry) == "fresh"


def test_force_refresh_ignores_ttl(tmp_path) -> None:
    store = FileCache(tmp_path)
    entry = store.entry("common")
    store.write(entry, "cached", 5_000)
    fetcher = FakeFetcher("forced")

    coordinator = RefreshCoordinator(
        _config(tmp_path, ttl_millis=10**9), fetcher=fetcher, clock=FakeClock(5_001)
    )
    assert coordinator.is_valid() is True

    result = coordinator.force_refresh()
    assert result.fetched is True
    assert fetcher.calls == [URL]
    assert store.read_text(entry) == "forced"
    assert store.read(entry).last_refreshed_at_millis == 5_001


@pytest.mark.parametrize("body", ["", "   \n\t"])
def test_blank_body_fails_without_writing(tmp_path, body: str) -> None:
    coordinator = RefreshCoordinator(_config(tmp_path), fetcher=FakeFetcher(body))

    with pytest.raises(EmptyContentError) as excinfo:
        coordinator.ensure_fresh()

    assert excinfo.value.url == URL
    assert list(tmp_path.iterdir()) == []


def test_blank_body_leaves_stale_cache_unmodified(tmp_path) -> None:
    store = FileCache(tmp_path)
    entry = store.entry("common")
    store.write(entry, "old", 1)

    coordinator = RefreshCoordinator(_config(tmp_path), fetcher=FakeFetcher(""), clock=FakeClock(10_000))
    with pytest.raises(EmptyContentError):
        coordinator.force_refresh()

    assert store.read_text(entry) == "old"
    assert store.read(entry).last_refreshed_at_millis == 1


def test_fetch_error_is_not_masked_by_stale_cache(tmp_path) -> None:
    store = FileCache(tmp_path)
    entry = store.entry("common")
    store.write(entry, "old", 1)
    calls = {"count": 0}

    def broken_fetch(url: str) -> str:
        calls["count"] += 1
        raise FetchError(url, "connection refused")

    coordinator = RefreshCoordinator(_config(tmp_path), fetcher=broken_fetch, clock=FakeClock(10_000))
    with pytest.raises(FetchError, match="connection refused"):
        coordinator.ensure_fresh()

    assert calls["count"] == 1
    assert store.read_text(entry) == "old"
    assert store.read(entry).last_refreshed_at_millis == 1


def test_clean_then_invalid(tmp_path) -> None:
    coordinator = RefreshCoordinator(_config(tmp_path), fetcher=FakeFetcher(), clock=FakeClock(100))
    coordinator.ensure_fresh()
    assert coordinator.is_valid() is True

    assert coordinator.clean() is True
    assert coordinator.is_valid() is False
    assert coordinator.clean() is False


def test_transitions_are_logged(tmp_path, caplog) -> None:
    caplog.set_level("INFO", logger="remote_catalog")
    clock = FakeClock(100)
    coordinator = RefreshCoordinator(_config(tmp_path), fetcher=FakeFetcher(), clock=clock)

    coordinator.ensure_fresh()
    coordinator.ensure_fresh()

    messages = [record.getMessage() for record in caplog.records]
    assert any("Download version catalog file" in message for message in messages)
    assert any("Download successfully" in message for message in messages)
    assert any("skip download" in message for message in messages)


def test_clean_logs_only_when_something_was_deleted(tmp_path, caplog) -> None:
    caplog.set_level("INFO", logger="remote_catalog")
    coordinator = RefreshCoordinator(_config(tmp_path), fetcher=FakeFetcher(), clock=FakeClock(100))

    assert coordinator.clean() is False
    assert not any("deleted" in record.getMessage() for record in caplog.records)

    coordinator.ensure_fresh()
    caplog.clear()
    assert coordinator.clean() is True
    assert any("deleted" in record.getMessage() for record in caplog.records)
