"""Unit tests for the reference-counted live query cache."""

from typing import Any
from unittest.mock import MagicMock

import pytest

from restaurant_pos_service.services.live_query import LiveQueryCache, RepositoryLoader


class FakeLoader:
    """Loader returning a counter-stamped snapshot per call."""

    collections = ["orders", "tables"]

    def __init__(self) -> None:
        self.calls: list[tuple[str, str]] = []

    def __call__(self, organization_id: str, collection: str) -> list[dict[str, Any]]:
        self.calls.append((organization_id, collection))
        return [{"version": len(self.calls)}]


@pytest.fixture
def loader() -> FakeLoader:
    return FakeLoader()


@pytest.fixture
def cache(loader: FakeLoader) -> LiveQueryCache:
    return LiveQueryCache(loader)


@pytest.mark.unit
class TestLiveQueryCache:
    """Tests for subscription reference counting."""

    def test_open_delivers_initial_snapshot(self, cache: LiveQueryCache) -> None:
        received: list[Any] = []

        cache.open("org_1", "orders", received.append)

        assert received == [[{"version": 1}]]

    def test_subscribers_share_one_load(self, cache: LiveQueryCache, loader: FakeLoader) -> None:
        cache.open("org_1", "orders", MagicMock())
        cache.open("org_1", "orders", MagicMock())

        assert loader.calls == [("org_1", "orders")]
        assert cache.subscriber_count("org_1", "orders") == 2

    def test_entry_dropped_after_last_close(self, cache: LiveQueryCache) -> None:
        first = cache.open("org_1", "orders", MagicMock())
        second = cache.open("org_1", "orders", MagicMock())

        cache.close(first)
        assert cache.snapshot("org_1", "orders") is not None

        cache.close(second)
        assert cache.snapshot("org_1", "orders") is None
        assert cache.subscriber_count("org_1", "orders") == 0

    def test_close_twice_is_a_no_op(self, cache: LiveQueryCache) -> None:
        first = cache.open("org_1", "orders", MagicMock())
        cache.open("org_1", "orders", MagicMock())

        cache.close(first)
        cache.close(first)

        assert cache.subscriber_count("org_1", "orders") == 1

    def test_notify_reloads_and_pushes_to_all_subscribers(self, cache: LiveQueryCache) -> None:
        first, second = MagicMock(), MagicMock()
        cache.open("org_1", "orders", first)
        cache.open("org_1", "orders", second)

        cache.notify("org_1", "orders")

        first.assert_called_with([{"version": 2}])
        second.assert_called_with([{"version": 2}])

    def test_notify_unwatched_collection_does_not_load(
        self, cache: LiveQueryCache, loader: FakeLoader
    ) -> None:
        cache.open("org_1", "orders", MagicMock())

        cache.notify("org_1", "tables")
        cache.notify("org_2", "orders")

        assert loader.calls == [("org_1", "orders")]

    def test_failing_listener_does_not_stop_others(self, cache: LiveQueryCache) -> None:
        healthy = MagicMock()
        cache.open("org_1", "orders", MagicMock(side_effect=[None, RuntimeError("gone")]))
        cache.open("org_1", "orders", healthy)

        cache.notify("org_1", "orders")

        healthy.assert_called_with([{"version": 2}])

    def test_can_watch_uses_loader_collections(self, cache: LiveQueryCache) -> None:
        assert cache.can_watch("orders")
        assert not cache.can_watch("secrets")


@pytest.mark.unit
class TestRepositoryLoader:
    """Tests for loading snapshots through repositories."""

    def test_loads_json_documents(self, table: Any, organization_id: str) -> None:
        repository = MagicMock()
        repository.list_for_organization.return_value = [table]
        loader = RepositoryLoader({"tables": repository})

        snapshot = loader(organization_id, "tables")

        assert snapshot[0]["id"] == "tbl_1"
        assert snapshot[0]["status"] == "available"
        assert loader.collections == ["tables"]
