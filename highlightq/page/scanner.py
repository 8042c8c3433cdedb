"""
Text discovery and idle-time batching.

    iter_text_nodes(root)  - depth-first text nodes, pruned by ExclusionTable
    ScanScheduler.scan()   - collect candidates, drain them batch_size at a
                             time, yielding to the event loop between batches

A node is claimed (marked processed) in the same synchronous step that checks
it, right before its batch is handed on. Two overlapping scans can therefore
collect the same node, but only one of them ever claims it.
"""

from __future__ import annotations

import asyncio
import weakref
from collections.abc import Awaitable, Callable, Iterator
from dataclasses import dataclass

from bs4.element import NavigableString, PageElement, PreformattedString, Tag

from highlightq.config import EXCLUDED_TAGS, SCAN_BATCH_SIZE, WRAPPER_CLASS
from highlightq.observability.logging import get_logger
from highlightq.observability.telemetry import counter
from highlightq.page.document import PageDocument

logger = get_logger(__name__)


# =============================================================================
# TEXT UNITS AND PROCESSED-NODE TRACKING
# =============================================================================


class TextUnit:
    """
    Non-owning handle on a live text node plus the text it had when scanned.

    The node is held through a weak reference, so a node dropped from the
    page is free to be collected and `node` then returns None.
    """

    def __init__(self, node: NavigableString):
        self._ref = weakref.ref(node)
        self.text = str(node)
        # Where the next sentence search starts in the current node
        self.offset = 0

    @property
    def node(self) -> NavigableString | None:
        return self._ref()

    def advance(self, node: NavigableString) -> None:
        """Point at the text that follows a rendered highlight."""
        self._ref = weakref.ref(node)
        self.text = str(node)
        self.offset = 0

    def skip(self, sentence: str) -> None:
        """Move the search past `sentence` without rendering it."""
        index = self.text.find(sentence, self.offset)
        if index >= 0:
            self.offset = index + len(sentence)

    def __repr__(self) -> str:
        preview = self.text[:30] + ("..." if len(self.text) > 30 else "")
        return f"TextUnit({preview!r})"


class ProcessedNodeSet:
    """
    Identity set of text nodes that never keeps a node alive.

    NavigableString compares equal by content, so entries are keyed by id()
    and validated against a weak reference; the weakref callback removes the
    entry when the node is collected, before its id can be reused.
    """

    def __init__(self) -> None:
        self._refs: dict[int, weakref.ref] = {}

    def __contains__(self, node: object) -> bool:
        ref = self._refs.get(id(node))
        return ref is not None and ref() is node

    def add(self, node: NavigableString) -> None:
        key = id(node)
        self._refs[key] = weakref.ref(node, lambda ref, key=key: self._discard(key, ref))

    def discard(self, node: object) -> None:
        if node in self:
            del self._refs[id(node)]

    def _discard(self, key: int, ref: weakref.ref) -> None:
        if self._refs.get(key) is ref:
            del self._refs[key]

    def __len__(self) -> int:
        return len(self._refs)


# =============================================================================
# EXCLUSIONS
# =============================================================================


@dataclass(frozen=True)
class ExclusionTable:
    """Which elements never contribute text: one table for every code path."""

    tags: frozenset[str] = EXCLUDED_TAGS
    wrapper_class: str = WRAPPER_CLASS

    def is_wrapper(self, element: Tag) -> bool:
        return self.wrapper_class in (element.get("class") or [])

    def is_excluded(self, element: Tag) -> bool:
        if element.name in self.tags or self.is_wrapper(element):
            return True
        editable = element.get("contenteditable")
        return editable is not None and str(editable).lower() != "false"

    def inside_excluded(self, node: PageElement) -> bool:
        if isinstance(node, Tag) and self.is_excluded(node):
            return True
        return any(self.is_excluded(parent) for parent in node.parents if parent.name)

    def inside_wrapper(self, node: PageElement) -> bool:
        if isinstance(node, Tag) and self.is_wrapper(node):
            return True
        return any(self.is_wrapper(parent) for parent in node.parents if parent.name)


DEFAULT_EXCLUSIONS = ExclusionTable()


def is_candidate_text(node: PageElement) -> bool:
    """Plain, non-blank text (comments, doctypes and CDATA are not text)."""
    return (
        isinstance(node, NavigableString)
        and not isinstance(node, PreformattedString)
        and bool(node.strip())
    )


def iter_text_nodes(
    root: PageElement, exclusions: ExclusionTable = DEFAULT_EXCLUSIONS
) -> Iterator[NavigableString]:
    """Depth-first, document-order text nodes under `root`, pruning excluded subtrees."""
    if exclusions.inside_excluded(root):
        return
    if isinstance(root, NavigableString):
        if is_candidate_text(root):
            yield root
        return

    stack: list[PageElement] = list(reversed(root.contents))
    while stack:
        node = stack.pop()
        if isinstance(node, Tag):
            if not exclusions.is_excluded(node):
                stack.extend(reversed(node.contents))
        elif is_candidate_text(node):
            yield node


# =============================================================================
# SCHEDULER
# =============================================================================

BatchHandler = Callable[[list[TextUnit]], Awaitable[None]]


class ScanScheduler:
    def __init__(
        self,
        document: PageDocument,
        on_batch: BatchHandler,
        batch_size: int = SCAN_BATCH_SIZE,
        exclusions: ExclusionTable = DEFAULT_EXCLUSIONS,
        processed: ProcessedNodeSet | None = None,
    ):
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        self.document = document
        self.batch_size = batch_size
        self.exclusions = exclusions
        self.processed = processed if processed is not None else ProcessedNodeSet()
        self._on_batch = on_batch
        self._tasks: set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def collect(self, root: PageElement) -> list[NavigableString]:
        return [node for node in iter_text_nodes(root, self.exclusions) if node not in self.processed]

    def scan(self, root: PageElement | None = None) -> asyncio.Task:
        """Collect unprocessed text under `root` (default: body) and start draining it."""
        nodes = self.collect(self.document.body if root is None else root)
        counter("scan.collected", len(nodes))
        task = asyncio.get_running_loop().create_task(self._drain(nodes))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def on_subtree_added(self, node: PageElement) -> asyncio.Task | None:
        """Scan a newly inserted element; bare text insertions are ignored."""
        if not isinstance(node, Tag):
            return None
        return self.scan(node)

    async def join(self) -> None:
        """Wait until every scan started so far (and any it triggers) has drained."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def claim(self, nodes: list[NavigableString]) -> list[TextUnit]:
        """
        Mark still-eligible nodes processed and wrap them as TextUnits.

        Synchronous on purpose: nothing can interleave between the membership
        check and the add.
        """
        units: list[TextUnit] = []
        for node in nodes:
            if node in self.processed:
                continue
            if not self.document.is_attached(node) or self.exclusions.inside_excluded(node):
                counter("scan.skipped_detached")
                continue
            self.processed.add(node)
            units.append(TextUnit(node))
        return units

    def release(self, units: list[TextUnit]) -> None:
        """Unmark units that were claimed but never processed so a later scan picks them up."""
        for unit in units:
            node = unit.node
            if node is not None:
                self.processed.discard(node)

    def cancel(self) -> None:
        """Stop every drain in progress; nodes not yet claimed stay unprocessed."""
        for task in list(self._tasks):
            task.cancel()

    async def _drain(self, nodes: list[NavigableString]) -> None:
        for start in range(0, len(nodes), self.batch_size):
            # One batch per idle slice
            await asyncio.sleep(0)
            units = self.claim(nodes[start : start + self.batch_size])
            if not units:
                continue
            counter("scan.batches")
            try:
                await self._on_batch(units)
            except asyncio.CancelledError:
                self.release(units)
                raise
            except Exception as exc:
                # A failed batch costs its annotations, never the rest of the scan
                logger.warning("Scan batch of %d units failed: %s", len(units), exc)
                counter("scan.batch_errors")
