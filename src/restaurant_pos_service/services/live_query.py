"""Reference-counted live queries over organization collections.

Many subscribers (browser sessions, components) can watch the same
``(organization_id, collection)``. The cache keeps a single snapshot per key,
loads it once when the first subscriber opens, refreshes it when a write
calls ``notify``, and drops it when the last subscriber closes.
"""

import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel

from restaurant_pos_service.observability.metrics import record_subscription_change

logger = logging.getLogger(__name__)

Snapshot = list[dict[str, Any]]
Listener = Callable[[Snapshot], None]
Loader = Callable[[str, str], Snapshot]


@dataclass(eq=False)
class SubscriptionHandle:
    """Returned by ``open``; pass back to ``close`` to unsubscribe."""

    organization_id: str
    collection: str
    listener: Listener
    closed: bool = False

    @property
    def key(self) -> tuple[str, str]:
        return (self.organization_id, self.collection)


@dataclass
class _Entry:
    snapshot: Snapshot
    handles: list[SubscriptionHandle] = field(default_factory=list)


class LiveQueryCache:
    """Shared snapshots keyed by organization and collection."""

    def __init__(self, loader: Loader) -> None:
        """Initialize the cache.

        Args:
            loader: Called as ``loader(organization_id, collection)`` to read a snapshot
        """
        self._loader = loader
        self._entries: dict[tuple[str, str], _Entry] = {}
        self._lock = threading.RLock()

    def open(self, organization_id: str, collection: str, listener: Listener) -> SubscriptionHandle:
        """Subscribe to a collection; the listener immediately receives the current snapshot."""
        handle = SubscriptionHandle(organization_id, collection, listener)
        with self._lock:
            entry = self._entries.get(handle.key)
            if entry is None:
                entry = _Entry(snapshot=self._loader(organization_id, collection))
                self._entries[handle.key] = entry
                logger.info(f"Started live query {collection} for {organization_id}")
            entry.handles.append(handle)
            snapshot = entry.snapshot
        record_subscription_change(1, collection)
        listener(snapshot)
        return handle

    def close(self, handle: SubscriptionHandle) -> None:
        """Unsubscribe; closing twice is a no-op."""
        with self._lock:
            if handle.closed:
                return
            handle.closed = True
            entry = self._entries.get(handle.key)
            if entry is None:
                return
            entry.handles.remove(handle)
            record_subscription_change(-1, handle.collection)
            if not entry.handles:
                del self._entries[handle.key]
                logger.info(f"Stopped live query {handle.collection} for {handle.organization_id}")

    def notify(self, organization_id: str, collection: str) -> None:
        """Reload a watched collection after a write and push it to subscribers.

        Unwatched collections are not reloaded.
        """
        key = (organization_id, collection)
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return
            entry.snapshot = self._loader(organization_id, collection)
            snapshot = entry.snapshot
            listeners = [h.listener for h in entry.handles]
        for listener in listeners:
            try:
                listener(snapshot)
            except Exception:
                logger.exception(f"Live query listener for {collection} failed")

    def can_watch(self, collection: str) -> bool:
        """Whether the loader knows ``collection``; loaders without a list accept any."""
        collections = getattr(self._loader, "collections", None)
        return collections is None or collection in collections

    def subscriber_count(self, organization_id: str, collection: str) -> int:
        with self._lock:
            entry = self._entries.get((organization_id, collection))
            return len(entry.handles) if entry else 0

    def snapshot(self, organization_id: str, collection: str) -> Snapshot | None:
        with self._lock:
            entry = self._entries.get((organization_id, collection))
            return entry.snapshot if entry else None


class RepositoryLoader:
    """Loader reading snapshots through the collection repositories."""

    def __init__(self, repositories: dict[str, Any]) -> None:
        self.repositories = repositories

    @property
    def collections(self) -> list[str]:
        return sorted(self.repositories)

    def __call__(self, organization_id: str, collection: str) -> Snapshot:
        repository = self.repositories[collection]
        documents: list[BaseModel] = repository.list_for_organization(organization_id)
        return [document.model_dump(mode="json") for document in documents]
