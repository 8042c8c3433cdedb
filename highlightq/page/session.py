"""
One page's highlighting pipeline.

    session = PageSession(document, runtime, gateway, cache, origin_context, store)
    await session.start()     # styles, observer, initial scan
    await session.settle()    # wait for scans and pending mutation bursts

Flow per scan batch:
    TextUnits -> segment -> dispatcher.resolve -> renderer.render

A batch from a restricted origin marks the session restricted and paints
nothing. Error results are never painted.
"""

from __future__ import annotations

import asyncio
from typing import Any

from highlightq.classification.dispatcher import ClassificationDispatcher
from highlightq.classification.models import SentimentLabel
from highlightq.classification.runtime import ProviderRuntime
from highlightq.classification.segmenter import build_sentences
from highlightq.config import (
    HIGHLIGHTING_STORAGE_KEY,
    MIN_SENTENCE_LENGTH,
    MUTATION_DEBOUNCE_SECONDS,
    SCAN_BATCH_SIZE,
)
from highlightq.gateway.boundary import BoundaryGateway, NotPermittedError
from highlightq.observability.logging import get_logger
from highlightq.observability.telemetry import counter, log_event, time_block
from highlightq.page.document import PageDocument
from highlightq.page.reconciler import MutationReconciler
from highlightq.page.renderer import HighlightRenderer, Selection
from highlightq.page.scanner import DEFAULT_EXCLUSIONS, ExclusionTable, ScanScheduler, TextUnit
from highlightq.storage.cache import CacheStore
from highlightq.storage.kv import KeyValueStore, get_value, set_value

logger = get_logger(__name__)


class PageSession:
    def __init__(
        self,
        document: PageDocument,
        runtime: ProviderRuntime,
        gateway: BoundaryGateway,
        cache: CacheStore,
        origin_context: str | None,
        store: KeyValueStore,
        batch_size: int = SCAN_BATCH_SIZE,
        debounce_seconds: float = MUTATION_DEBOUNCE_SECONDS,
        min_sentence_length: int = MIN_SENTENCE_LENGTH,
        exclusions: ExclusionTable = DEFAULT_EXCLUSIONS,
    ):
        self.document = document
        self.origin_context = origin_context
        self.min_sentence_length = min_sentence_length
        self._store = store

        self.dispatcher = ClassificationDispatcher(runtime, cache, gateway, origin_context)
        self.scheduler = ScanScheduler(
            document, self._process_batch, batch_size=batch_size, exclusions=exclusions
        )
        self.renderer = HighlightRenderer(document, exclusions, processed=self.scheduler.processed)
        self.reconciler = MutationReconciler(document, self.scheduler, debounce_seconds)

        self.selection = Selection()
        self.enabled = False
        self.restricted = False
        self.units_seen = 0
        self.highlights_rendered = 0

    async def start(self) -> bool:
        """
        Begin highlighting unless the user switched it off.

        Returns:
            False when the persisted highlightingEnabled preference is False

        Side Effects:
            - Injects the stylesheet, starts observing mutations, schedules a
              scan of the whole body
        """
        enabled = get_value(self._store, HIGHLIGHTING_STORAGE_KEY, True)
        if enabled is False:
            logger.info("Highlighting disabled by preference, not scanning")
            self.enabled = False
            return False

        self.enabled = True
        self.renderer.ensure_styles()
        self.reconciler.connect()
        self.scheduler.scan()
        log_event("session.started", origin=self.origin_context)
        return True

    def stop(self) -> None:
        """Stop observing and cancel scans in flight; unprocessed text stays eligible."""
        self.enabled = False
        self.reconciler.disconnect()
        self.scheduler.cancel()

    async def settle(self) -> None:
        """Wait until no scan is draining and no mutation burst is pending."""
        while True:
            await self.scheduler.join()
            if self.reconciler.state == "pending":
                await asyncio.sleep(self.reconciler.debounce_seconds)
                continue
            if self.scheduler.pending:
                continue
            return

    async def rescan(self) -> None:
        """Scan the whole body again; already processed nodes are skipped."""
        self.scheduler.scan()
        await self.settle()

    async def _process_batch(self, units: list[TextUnit]) -> None:
        self.units_seen += len(units)
        sentences = [
            sentence
            for unit in units
            for sentence in build_sentences(unit, min_length=self.min_sentence_length)
        ]
        if not sentences:
            return

        try:
            with time_block("session.resolve"):
                results = await self.dispatcher.resolve(sentences)
        except NotPermittedError as exc:
            self.restricted = True
            counter("session.restricted")
            logger.info("Skipping highlighting: %s", exc)
            return

        if not self.enabled:
            # Switched off while the batch was in flight
            self.scheduler.release(units)
            return

        for sentence, result in zip(sentences, results):
            if result.error:
                counter("session.error_results")
                if sentence.source_unit is not None:
                    sentence.source_unit.skip(sentence.text)
                continue
            if sentence.source_unit is not None and self.renderer.render(
                sentence.source_unit, sentence.text, result
            ):
                self.highlights_rendered += 1

    # ------------------------------------------------------------------
    # Commands from the background router
    # ------------------------------------------------------------------

    async def set_highlighting(self, enabled: bool) -> dict[str, Any]:
        """
        Persist the global toggle and apply it to this page.

        Turning off removes every wrapper (idempotent) and stops observing;
        turning on re-injects styles and rescans.
        """
        set_value(self._store, HIGHLIGHTING_STORAGE_KEY, enabled)
        if not enabled:
            self.stop()
            removed = self.renderer.unwrap_all()
            return {"success": True, "removed": removed}

        started = await self.start()
        return {"success": started}

    def highlight_selection(
        self,
        text: str | None = None,
        label: SentimentLabel | None = None,
        color: str | None = None,
    ) -> dict[str, Any]:
        return self.renderer.highlight_selection(self.selection, text=text, label=label, color=color)
