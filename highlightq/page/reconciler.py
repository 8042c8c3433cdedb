"""
Debounced reaction to document mutations.

    idle --notify--> pending --timer fires--> idle (one rescan pass)

Every notification while pending re-arms the timer and adds its inserted
elements to the burst, so N notifications inside the debounce window cost
exactly one pass. Text-only insertions (the fragments a render leaves behind)
never start a rescan.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable

from bs4.element import PageElement, Tag

from highlightq.config import MUTATION_DEBOUNCE_SECONDS
from highlightq.observability.logging import get_logger
from highlightq.observability.telemetry import counter
from highlightq.page.document import MutationRecord, PageDocument
from highlightq.page.scanner import ScanScheduler

logger = get_logger(__name__)


class MutationReconciler:
    def __init__(
        self,
        document: PageDocument,
        scheduler: ScanScheduler,
        debounce_seconds: float = MUTATION_DEBOUNCE_SECONDS,
    ):
        self.document = document
        self.scheduler = scheduler
        self.debounce_seconds = debounce_seconds
        self.passes = 0
        self._added: list[PageElement] = []
        self._timer: asyncio.TimerHandle | None = None
        self._unsubscribe: Callable[[], None] | None = None

    @property
    def state(self) -> str:
        return "pending" if self._timer is not None else "idle"

    @property
    def connected(self) -> bool:
        return self._unsubscribe is not None

    def connect(self) -> None:
        if self._unsubscribe is None:
            self._unsubscribe = self.document.observe(self.notify)

    def disconnect(self) -> None:
        """Stop observing and drop any burst still waiting on the timer."""
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        self._added.clear()

    def notify(self, records: list[MutationRecord]) -> None:
        exclusions = self.scheduler.exclusions
        # Wrappers and injected styles are our own output, never new content
        added = [
            node
            for record in records
            for node in record.added_nodes
            if isinstance(node, Tag) and not exclusions.is_excluded(node)
        ]
        if not added:
            return
        self._added.extend(added)
        if self._timer is not None:
            self._timer.cancel()
        loop = asyncio.get_running_loop()
        self._timer = loop.call_later(self.debounce_seconds, self._fire)

    def _fire(self) -> None:
        self._timer = None
        burst, self._added = self._added, []
        self.passes += 1
        counter("reconcile.passes")

        seen: set[int] = set()
        scanned = 0
        for node in burst:
            if id(node) in seen or not self.document.is_attached(node):
                continue
            seen.add(id(node))
            if self.scheduler.on_subtree_added(node) is not None:
                scanned += 1
        logger.debug("Reconcile pass %d rescanned %d subtrees", self.passes, scanned)
