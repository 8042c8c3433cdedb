"""
Paints classification results into the document.

Two entry points:
    render()              - automatic path, one sentence inside one text node
    highlight_selection() - manual path for a user selection, with a
                            first-occurrence text search as fallback

Every wrapper is a <span class="sem-sentiment ..."> and wrappers never nest:
text already inside one is neither rendered again nor selectable for a
manual highlight. unwrap_all() reverses everything.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from bs4.element import NavigableString, Tag

from highlightq.classification.models import SentimentLabel, SentimentResult
from highlightq.config import STYLE_ELEMENT_ID, WRAPPER_CLASS, WRAPPER_LABEL_ATTR
from highlightq.observability.logging import get_logger
from highlightq.observability.telemetry import counter
from highlightq.page.document import PageDocument
from highlightq.page.scanner import (
    DEFAULT_EXCLUSIONS,
    ExclusionTable,
    ProcessedNodeSet,
    TextUnit,
    iter_text_nodes,
)

logger = get_logger(__name__)

LABEL_COLORS: dict[SentimentLabel, str] = {
    SentimentLabel.POSITIVE: "#22c55e",
    SentimentLabel.NEUTRAL: "#6b7280",
    SentimentLabel.NEGATIVE: "#ef4444",
    SentimentLabel.RISK: "#f97316",
    SentimentLabel.INFORMATIVE: "#3b82f6",
}

# Manual highlights are refused inside form fields even when editable
# elements are otherwise scannable
_FORM_FIELDS = frozenset({"input", "textarea"})


def build_stylesheet() -> str:
    rules = [
        f".{WRAPPER_CLASS} {{ padding: 0.1em 0.2em; margin: 0.05em; "
        "border-radius: 0.2em; display: inline; }"
    ]
    for label, color in LABEL_COLORS.items():
        rules.append(
            f".{WRAPPER_CLASS}-{label.css_name} {{ background-color: {color} !important; "
            "color: white !important; }"
        )
    return "\n".join(rules)


@dataclass
class TextRange:
    """A selection between two offsets, possibly spanning sibling text nodes."""

    start_node: NavigableString
    start_offset: int
    end_node: NavigableString
    end_offset: int

    @property
    def collapsed(self) -> bool:
        return self.start_node is self.end_node and self.start_offset == self.end_offset

    def text(self) -> str:
        if self.start_node is self.end_node:
            return str(self.start_node)[self.start_offset : self.end_offset]
        parts = [str(self.start_node)[self.start_offset :]]
        for sibling in self.start_node.next_siblings:
            if sibling is self.end_node:
                break
            parts.append(sibling.get_text() if isinstance(sibling, Tag) else str(sibling))
        parts.append(str(self.end_node)[: self.end_offset])
        return "".join(parts)


@dataclass
class Selection:
    range: TextRange | None = None

    @property
    def is_empty(self) -> bool:
        return self.range is None or self.range.collapsed


class HighlightRenderer:
    def __init__(
        self,
        document: PageDocument,
        exclusions: ExclusionTable = DEFAULT_EXCLUSIONS,
        processed: ProcessedNodeSet | None = None,
    ):
        self.document = document
        self.exclusions = exclusions
        # Fragments left around a wrapper were already scanned as part of the
        # original node and must not be classified again
        self.processed = processed

    # ------------------------------------------------------------------
    # Wrappers
    # ------------------------------------------------------------------

    def make_wrapper(self, label: SentimentLabel | None = None, color: str | None = None) -> Tag:
        span = self.document.new_tag("span")
        classes = [WRAPPER_CLASS]
        if label is not None:
            classes.append(f"{WRAPPER_CLASS}-{label.css_name}")
            span[WRAPPER_LABEL_ATTR] = label.css_name
            span["title"] = f"Sentiment: {label.value}"
        elif color:
            span["style"] = f"background-color: {color}"
            span["data-color"] = color
        span["class"] = classes
        return span

    def ensure_styles(self) -> bool:
        """Inject the highlight stylesheet once; False when already present."""
        if self.document.soup.find(id=STYLE_ELEMENT_ID) is not None:
            return False
        style = self.document.new_tag("style", id=STYLE_ELEMENT_ID)
        style.string = build_stylesheet()
        self.document.append(self.document.head, style)
        logger.info("Injected highlight styles")
        return True

    # ------------------------------------------------------------------
    # Automatic path
    # ------------------------------------------------------------------

    def _skip(self, reason: str) -> bool:
        counter(f"render.skipped.{reason}")
        logger.debug("Render skipped: %s", reason)
        return False

    def render(self, unit: TextUnit, matched_text: str, result: SentimentResult) -> bool:
        """
        Wrap the first occurrence of `matched_text` at or after `unit.offset`.

        The node is replaced by [before] <span> [after]; afterwards the unit
        points at the `after` fragment so later sentences of the same node
        can still be rendered.

        Returns:
            False (nothing changed) when the node is gone, already inside a
            wrapper, or no longer contains the text
        """
        node = unit.node
        if node is None or not self.document.is_attached(node):
            return self._skip("detached")
        if self.exclusions.inside_excluded(node):
            return self._skip("excluded")

        content = str(node)
        start = content.find(matched_text, unit.offset) if matched_text else -1
        if start < 0:
            return self._skip("text_changed")

        before = content[:start]
        after = content[start + len(matched_text) :]
        span = self.make_wrapper(label=result.label)
        span.string = matched_text

        head = NavigableString(before) if before else None
        tail = NavigableString(after) if after else None
        replacement = [fragment for fragment in (head, span, tail) if fragment is not None]
        if self.processed is not None:
            for fragment in (head, tail):
                if fragment is not None:
                    self.processed.add(fragment)

        self.document.replace_node(node, replacement)
        if tail is not None:
            unit.advance(tail)
        counter("render.wrapped")
        return True

    # ------------------------------------------------------------------
    # Manual path
    # ------------------------------------------------------------------

    def highlight_range(
        self, rng: TextRange, label: SentimentLabel | None = None, color: str | None = None
    ) -> bool:
        """Surround `rng` with a wrapper. Ranges touching a wrapper are refused."""
        start, end = rng.start_node, rng.end_node
        if not (self.document.is_attached(start) and self.document.is_attached(end)):
            return self._skip("detached")
        for node in (start, end):
            if any(parent.name in _FORM_FIELDS for parent in node.parents):
                logger.warning("Cannot highlight text inside an input or textarea element")
                return self._skip("form_field")
            if self.exclusions.inside_wrapper(node):
                return self._skip("already_wrapped")
        if rng.collapsed:
            return self._skip("empty_range")

        if start is end:
            return self._surround_single(rng, label, color)
        if start.parent is end.parent:
            return self._surround_siblings(rng, label, color)
        # Partially selected elements cannot be surrounded without splitting them
        return self._skip("unsurroundable")

    def _surround_single(
        self, rng: TextRange, label: SentimentLabel | None, color: str | None
    ) -> bool:
        content = str(rng.start_node)
        if not 0 <= rng.start_offset < rng.end_offset <= len(content):
            return self._skip("bad_offsets")
        span = self.make_wrapper(label=label, color=color)
        span.string = content[rng.start_offset : rng.end_offset]
        replacement: list = []
        if rng.start_offset > 0:
            replacement.append(NavigableString(content[: rng.start_offset]))
        replacement.append(span)
        if rng.end_offset < len(content):
            replacement.append(NavigableString(content[rng.end_offset :]))
        self.document.replace_node(rng.start_node, replacement)
        counter("render.manual")
        return True

    def _surround_siblings(
        self, rng: TextRange, label: SentimentLabel | None, color: str | None
    ) -> bool:
        start, end = rng.start_node, rng.end_node
        parent = start.parent
        first, last = parent.index(start), parent.index(end)
        if first > last:
            return self._skip("bad_offsets")
        start_text, end_text = str(start), str(end)
        middle = parent.contents[first + 1 : last]

        span = self.make_wrapper(label=label, color=color)
        if start_text[rng.start_offset :]:
            span.append(NavigableString(start_text[rng.start_offset :]))
        for node in middle:
            span.append(node.extract())
        if end_text[: rng.end_offset]:
            span.append(NavigableString(end_text[: rng.end_offset]))

        head: list = []
        if start_text[: rng.start_offset]:
            head.append(NavigableString(start_text[: rng.start_offset]))
        head.append(span)
        tail = end_text[rng.end_offset :]

        self.document.replace_node(start, head)
        self.document.replace_node(end, [NavigableString(tail)] if tail else [])
        counter("render.manual")
        return True

    def highlight_text_fallback(
        self, text: str, label: SentimentLabel | None = None, color: str | None = None
    ) -> bool:
        """Wrap the first occurrence of `text` found in the body, and only that one."""
        if not text:
            return False
        for node in iter_text_nodes(self.document.body, self.exclusions):
            index = str(node).find(text)
            if index < 0:
                continue
            rng = TextRange(node, index, node, index + len(text))
            if self.highlight_range(rng, label=label, color=color):
                return True
            logger.warning("Fallback highlight failed on first occurrence")
            return False
        logger.warning("Fallback could not find the requested text on the page")
        return False

    def highlight_selection(
        self,
        selection: Selection | None,
        text: str | None = None,
        label: SentimentLabel | None = None,
        color: str | None = None,
    ) -> dict[str, Any]:
        """
        Highlight the live selection, or search for `text` when there is none.

        Returns:
            {"success": bool, "method": "direct" | "fallback" |
            "fallback-after-direct-failed"} or an error payload
        """
        if selection is None or selection.is_empty:
            if text:
                ok = self.highlight_text_fallback(text, label=label, color=color)
                return {"success": ok, "method": "fallback"}
            return {"success": False, "error": "No selection and no text provided for fallback"}

        rng = selection.range
        selected = rng.text()
        if text and selected.strip() != text.strip():
            logger.warning("Selection differs from requested text, using the selection")

        if self.highlight_range(rng, label=label, color=color):
            selection.range = None
            return {"success": True, "method": "direct"}

        ok = self.highlight_text_fallback(selected or text or "", label=label, color=color)
        return {"success": ok, "method": "fallback-after-direct-failed"}

    # ------------------------------------------------------------------
    # Removal
    # ------------------------------------------------------------------

    def unwrap_all(self, root: Tag | None = None) -> int:
        """
        Replace every wrapper under `root` (default: whole document) with its plain text.

        Adjacent text fragments are merged back together. Returns the number
        of wrappers removed, so a second call returns 0.
        """
        removed = 0
        scope = self.document.soup if root is None else root
        for wrapper in scope.find_all("span", class_=WRAPPER_CLASS):
            parent = wrapper.parent
            if parent is None or not self.document.is_attached(wrapper):
                continue
            self.document.replace_node(wrapper, [NavigableString(wrapper.get_text())])
            parent.smooth()
            removed += 1
        if removed:
            counter("render.unwrapped", removed)
            logger.info("Removed %d highlights", removed)
        return removed
