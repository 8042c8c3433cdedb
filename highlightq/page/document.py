"""
Live HTML document with mutation notifications.

PageDocument wraps a BeautifulSoup tree and is the only way pipeline code
changes structure, so every insertion, replacement and removal is reported
to observers as MutationRecords (the role a MutationObserver plays in a
browser). Observers are called synchronously; debouncing is their business.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass, field

from bs4 import BeautifulSoup
from bs4.element import NavigableString, PageElement, Tag

from highlightq.observability.logging import get_logger

logger = get_logger(__name__)


@dataclass
class MutationRecord:
    target: Tag | None
    added_nodes: list[PageElement] = field(default_factory=list)
    removed_nodes: list[PageElement] = field(default_factory=list)


MutationCallback = Callable[[list[MutationRecord]], None]


class PageDocument:
    def __init__(self, markup: str | BeautifulSoup = "", parser: str = "html.parser"):
        self.parser = parser
        self.soup = markup if isinstance(markup, BeautifulSoup) else BeautifulSoup(markup, parser)
        self._observers: list[MutationCallback] = []

    # ------------------------------------------------------------------
    # Structure
    # ------------------------------------------------------------------

    @property
    def body(self) -> Tag:
        return self.soup.body or self.soup

    @property
    def head(self) -> Tag:
        """The <head> element, created when the markup has none."""
        if self.soup.head is not None:
            return self.soup.head
        head = self.soup.new_tag("head")
        container = self.soup.html or self.soup
        container.insert(0, head)
        return head

    def is_attached(self, node: PageElement | None) -> bool:
        """True when `node` is still reachable from the document root."""
        if node is None:
            return False
        current: PageElement = node
        while current.parent is not None:
            current = current.parent
        return current is self.soup

    def new_tag(self, name: str, **attrs: str) -> Tag:
        return self.soup.new_tag(name, attrs=attrs)

    def render(self) -> str:
        return str(self.soup)

    # ------------------------------------------------------------------
    # Observation
    # ------------------------------------------------------------------

    def observe(self, callback: MutationCallback) -> Callable[[], None]:
        """Register `callback`; returns a function that unregisters it."""
        self._observers.append(callback)

        def _unsubscribe() -> None:
            if callback in self._observers:
                self._observers.remove(callback)

        return _unsubscribe

    def _emit(self, record: MutationRecord) -> None:
        for callback in list(self._observers):
            callback([record])

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def append_html(self, parent: Tag, markup: str) -> list[PageElement]:
        """Parse `markup` and append its top-level nodes to `parent`."""
        fragment = BeautifulSoup(markup, self.parser)
        added = list(fragment.contents)
        for node in added:
            parent.append(node.extract())
        self._emit(MutationRecord(target=parent, added_nodes=added))
        return added

    def append(self, parent: Tag, node: PageElement) -> PageElement:
        parent.append(node)
        self._emit(MutationRecord(target=parent, added_nodes=[node]))
        return node

    def replace_node(self, old: PageElement, new_nodes: Sequence[PageElement]) -> None:
        """Put `new_nodes` where `old` was; `old` ends up detached."""
        parent = old.parent
        if parent is None:
            raise ValueError("Cannot replace a detached node")
        if new_nodes:
            old.replace_with(*new_nodes)
        else:
            old.extract()
        self._emit(MutationRecord(target=parent, added_nodes=list(new_nodes), removed_nodes=[old]))

    def remove(self, node: PageElement) -> None:
        parent = node.parent
        node.extract()
        self._emit(MutationRecord(target=parent, removed_nodes=[node]))

    def set_text(self, node: NavigableString, text: str) -> NavigableString:
        """Swap a text node for one carrying `text` (strings are immutable)."""
        replacement = NavigableString(text)
        self.replace_node(node, [replacement])
        return replacement
