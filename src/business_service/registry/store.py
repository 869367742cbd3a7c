from __future__ import annotations

"""Authoritative owner of the node query state and the published registry snapshot."""

import asyncio
import logging
import threading
from dataclasses import replace
from datetime import datetime
from typing import Any, Awaitable, Callable, List, Optional, Set, Tuple

from business_service.registry.models import NodePage, QueryState, RegistrySnapshot
from business_service.registry.reconciliation import reconcile_observations
from project_utility.clock import utc_now
from project_utility.telemetry import emit as telemetry_emit

__all__ = [
    "DEFAULT_FETCH_ERROR",
    "FILTER_FIELDS",
    "NodeFetcher",
    "RegistryStore",
    "SnapshotListener",
]

NodeFetcher = Callable[[QueryState], Awaitable[NodePage]]
SnapshotListener = Callable[[RegistrySnapshot], None]

DEFAULT_FETCH_ERROR = "Failed to fetch node data"
FILTER_FIELDS = frozenset({"status", "sort", "order", "include_offline", "limit"})


class RegistryStore:
    """
    Drive refresh cycles against a fetch collaborator and fan snapshots out to subscribers.

    Every fetch is tagged with a sequence number when issued. With `discard_stale` enabled a
    completion that is not the most recently issued fetch is dropped, so overlapping refreshes
    always settle on the newest query. Disabling it restores "last completion wins".

    All reads-then-writes of query state and snapshot happen under a single re-entrant lock and
    listeners are notified while it is held, so they observe snapshots in publication order.
    """

    def __init__(
        self,
        fetcher: NodeFetcher,
        *,
        query: Optional[QueryState] = None,
        discard_stale: bool = True,
        clock: Callable[[], datetime] = utc_now,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._fetcher = fetcher
        self._query = query or QueryState()
        self._snapshot = RegistrySnapshot()
        self._discard_stale = discard_stale
        self._clock = clock
        self._logger = logger or logging.getLogger("business_service.registry.store")
        self._lock = threading.RLock()
        self._listeners: List[SnapshotListener] = []
        self._issued = 0
        self._in_flight: Set["asyncio.Task[RegistrySnapshot]"] = set()

    # ------------------------------------------------------------------ read API
    @property
    def snapshot(self) -> RegistrySnapshot:
        with self._lock:
            return self._snapshot

    @property
    def query(self) -> QueryState:
        with self._lock:
            return self._query

    @property
    def in_flight(self) -> int:
        """Number of issued fetches that have not settled yet."""

        return len(self._in_flight)

    def subscribe(self, listener: SnapshotListener) -> Callable[[], None]:
        """Register `listener`, deliver the current snapshot, and return an unsubscribe callable."""

        with self._lock:
            self._listeners.append(listener)
            self._deliver(listener, self._snapshot)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    # ------------------------------------------------------------------ mutations
    def fetch(self) -> "asyncio.Task[RegistrySnapshot]":
        """
        Start a refresh with the current query.

        `loading` is published before this returns; the returned task resolves to the snapshot
        that was current once the fetch settled.
        """

        loop = asyncio.get_running_loop()
        with self._lock:
            self._issued += 1
            sequence = self._issued
            query = self._query
            self._publish(replace(self._snapshot, loading=True))
        self._logger.debug(
            "registry.fetch.started",
            extra={
                "sequence": sequence,
                "page": query.page,
                "limit": query.limit,
                "status": query.status,
                "sort": query.sort,
                "order": query.order,
                "include_offline": query.include_offline,
            },
        )
        task = loop.create_task(self._run_fetch(sequence, query), name=f"registry-fetch-{sequence}")
        # the event loop keeps only weak references to tasks
        self._in_flight.add(task)
        task.add_done_callback(self._in_flight.discard)
        return task

    def refresh(self) -> "asyncio.Task[RegistrySnapshot]":
        return self.fetch()

    def set_page(self, page: int) -> "asyncio.Task[RegistrySnapshot]":
        asyncio.get_running_loop()
        with self._lock:
            self._query = self._query.with_page(page)
        return self.fetch()

    def set_filter(self, **changes: Any) -> "asyncio.Task[RegistrySnapshot]":
        """Merge any of status/sort/order/include_offline/limit into the query and reset to page 1."""

        unknown = set(changes) - FILTER_FIELDS
        if unknown:
            raise TypeError(f"unsupported filter field(s): {', '.join(sorted(unknown))}")
        asyncio.get_running_loop()
        with self._lock:
            self._query = replace(self._query, **changes, page=1)
        return self.fetch()

    # ------------------------------------------------------------------ fetch cycle
    async def _run_fetch(self, sequence: int, query: QueryState) -> RegistrySnapshot:
        try:
            page = await self._fetcher(query)
            nodes = reconcile_observations(page.nodes)
        except Exception as exc:
            message = str(exc) or DEFAULT_FETCH_ERROR
            snapshot, published = self._settle(sequence, RegistrySnapshot(error=message), keep_last_updated=True)
            if published:
                self._logger.warning(
                    "registry.fetch.failed",
                    extra={"sequence": sequence, "error": message, "status_code": getattr(exc, "status_code", None)},
                )
                telemetry_emit(
                    "registry.fetch.failed",
                    level="warning",
                    payload={"sequence": sequence, "error": message},
                )
            return snapshot

        snapshot, published = self._settle(
            sequence,
            RegistrySnapshot(
                nodes=tuple(nodes),
                pagination=page.pagination,
                last_updated=self._clock(),
            ),
        )
        if published:
            self._logger.info(
                "registry.fetch.completed",
                extra={"sequence": sequence, "raw_count": len(page.nodes), "node_count": len(nodes)},
            )
            telemetry_emit(
                "registry.fetch.completed",
                payload={"sequence": sequence, "raw_count": len(page.nodes), "node_count": len(nodes)},
            )
        return snapshot

    def _settle(
        self,
        sequence: int,
        snapshot: RegistrySnapshot,
        *,
        keep_last_updated: bool = False,
    ) -> Tuple[RegistrySnapshot, bool]:
        """Publish `snapshot` unless a newer fetch was issued; report whether it was published."""

        with self._lock:
            if self._discard_stale and sequence != self._issued:
                self._logger.debug(
                    "registry.fetch.discarded",
                    extra={"sequence": sequence, "latest": self._issued, "error": snapshot.error},
                )
                telemetry_emit(
                    "registry.fetch.discarded",
                    level="debug",
                    payload={"sequence": sequence, "latest": self._issued, "failed": snapshot.error is not None},
                )
                return self._snapshot, False
            if keep_last_updated:
                snapshot = replace(snapshot, last_updated=self._snapshot.last_updated)
            self._publish(snapshot)
            return snapshot, True

    def _publish(self, snapshot: RegistrySnapshot) -> None:
        self._snapshot = snapshot
        for listener in list(self._listeners):
            self._deliver(listener, snapshot)

    def _deliver(self, listener: SnapshotListener, snapshot: RegistrySnapshot) -> None:
        try:
            listener(snapshot)
        except Exception:
            self._logger.exception("registry.listener_failed")
