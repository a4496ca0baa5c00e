"""Document accessor protocol consumed by extractors and crawlers."""

from __future__ import annotations

from typing import Any, Protocol, TypeAlias, runtime_checkable

NodeHandle: TypeAlias = Any

INNER_HTML = "innerHTML"


class DocumentAccessor(Protocol):
    """Minimal view of a rendered page.

    Extraction and crawl logic depend only on this protocol. Selectors are
    CSS selectors. ``read_attribute(node, INNER_HTML)`` returns the node's
    inner markup, which the address and invoice extractors need.

    Implementations raise ``NavigationFailure`` when a page cannot be loaded.
    """

    async def navigate(self, url: str, wait_for: str | None = None) -> None:
        """Load ``url`` and optionally wait until ``wait_for`` matches."""
        ...

    async def query(
        self, selector: str, within: NodeHandle | None = None
    ) -> list[NodeHandle]:
        """Return every node matching ``selector``, in document order."""
        ...

    async def read_text(self, node: NodeHandle) -> str:
        """Return the visible text of ``node``."""
        ...

    async def read_attribute(self, node: NodeHandle, name: str) -> str | None:
        """Return an attribute value, or None when it is absent."""
        ...

    def current_url(self) -> str:
        """Return the URL of the loaded page after any redirects."""
        ...


@runtime_checkable
class ScrollableDocument(Protocol):
    """Optional capability used to advance infinite-scroll feeds."""

    async def scroll_to_bottom(self) -> None: ...


async def first_node(
    document: DocumentAccessor, selector: str, within: NodeHandle | None = None
) -> NodeHandle | None:
    nodes = await document.query(selector, within)
    return nodes[0] if nodes else None


async def first_text(
    document: DocumentAccessor,
    selectors: str | tuple[str, ...] | list[str],
    within: NodeHandle | None = None,
) -> str:
    """Return the cleaned text of the first non-empty match, or ``""``.

    Selectors are tried in order.
    """
    if isinstance(selectors, str):
        selectors = (selectors,)
    for selector in selectors:
        for node in await document.query(selector, within):
            text = " ".join((await document.read_text(node)).split())
            if text:
                return text
    return ""


async def first_attribute(
    document: DocumentAccessor,
    selector: str,
    name: str,
    within: NodeHandle | None = None,
) -> str | None:
    for node in await document.query(selector, within):
        value = await document.read_attribute(node, name)
        if value:
            return value
    return None


async def all_texts(
    document: DocumentAccessor, selector: str, within: NodeHandle | None = None
) -> list[str]:
    texts: list[str] = []
    for node in await document.query(selector, within):
        text = " ".join((await document.read_text(node)).split())
        if text:
            texts.append(text)
    return texts


async def page_text(document: DocumentAccessor) -> str:
    """Return the text of the whole page body, line structure preserved."""
    body = await first_node(document, "body")
    if body is None:
        return ""
    return await document.read_text(body)
