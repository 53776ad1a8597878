"""In-process query cache keyed by tuples, with prefix invalidation."""
from __future__ import annotations

import logging
from typing import Any, Callable

from shadowme.application.ports.collaborators import QueryKey

logger = logging.getLogger(__name__)

RefetchCallback = Callable[[QueryKey], None]


class QueryCache:
    """Implements application.ports.collaborators.QueryInvalidator.

    Invalidating a key marks every cached entry whose key starts with it as
    stale and fires the refetch callbacks registered for those entries.
    """

    def __init__(self) -> None:
        self._entries: dict[QueryKey, Any] = {}
        self._stale: set[QueryKey] = set()
        self._refetchers: dict[QueryKey, RefetchCallback] = {}

    def set(self, key: QueryKey, value: Any) -> None:
        self._entries[key] = value
        self._stale.discard(key)

    def get(self, key: QueryKey) -> Any | None:
        return self._entries.get(key)

    def is_stale(self, key: QueryKey) -> bool:
        return key in self._stale

    def on_invalidate(self, key: QueryKey, callback: RefetchCallback) -> None:
        self._refetchers[key] = callback

    def invalidate(self, key: QueryKey) -> None:
        matched = {k for k in (*self._entries, *self._refetchers) if k[: len(key)] == key}
        logger.debug("Invalidating %s (%d matches)", key, len(matched))
        for k in matched:
            if k in self._entries:
                self._stale.add(k)
            callback = self._refetchers.get(k)
            if callback is not None:
                callback(k)
