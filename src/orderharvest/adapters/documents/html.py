"""Document accessor over static HTML, parsed with BeautifulSoup."""

from __future__ import annotations

from collections.abc import Mapping, Sequence

from bs4 import BeautifulSoup, Tag

from orderharvest.core.document import INNER_HTML
from orderharvest.core.errors import NavigationFailure

PageSource = str | Sequence[str]


class HtmlDocument:
    """Serves saved HTML pages keyed by URL.

    A page may be a single HTML string or a sequence of snapshots; each
    ``scroll_to_bottom`` call moves to the next snapshot of the current URL,
    which is how an infinite-scroll feed grows. ``redirects`` maps a
    requested URL to the URL actually served (e.g. a sign-in page).
    """

    def __init__(
        self,
        pages: Mapping[str, PageSource] | None = None,
        *,
        redirects: Mapping[str, str] | None = None,
        parser: str = "html.parser",
    ) -> None:
        self._pages: dict[str, list[str]] = {
            url: [source] if isinstance(source, str) else list(source)
            for url, source in (pages or {}).items()
        }
        self._redirects = dict(redirects or {})
        self._parser = parser
        self._url = "about:blank"
        self._snapshot = 0
        self._soup: BeautifulSoup | None = None
        self.visits: list[str] = []

    @classmethod
    def from_html(cls, html: str, url: str = "about:blank") -> HtmlDocument:
        """Build an accessor already positioned on a single page."""
        document = cls({url: html})
        document._load(url)
        return document

    def _load(self, url: str) -> None:
        self._url = url
        self._snapshot = 0
        self._soup = BeautifulSoup(self._pages[url][0], self._parser)

    async def navigate(self, url: str, wait_for: str | None = None) -> None:
        self.visits.append(url)
        target = self._redirects.get(url, url)
        if target not in self._pages:
            raise NavigationFailure(url, "page not available")
        self._load(target)

    async def query(self, selector: str, within: Tag | None = None) -> list[Tag]:
        root = within if within is not None else self._soup
        if root is None:
            return []
        return list(root.select(selector))

    async def read_text(self, node: Tag) -> str:
        lines = (" ".join(line.split()) for line in node.get_text("\n").splitlines())
        return "\n".join(line for line in lines if line)

    async def read_attribute(self, node: Tag, name: str) -> str | None:
        if name == INNER_HTML:
            return node.decode_contents()
        value = node.get(name)
        if isinstance(value, list):
            return " ".join(value)
        return value

    def current_url(self) -> str:
        return self._url

    async def scroll_to_bottom(self) -> None:
        snapshots = self._pages.get(self._url, [])
        if self._snapshot + 1 < len(snapshots):
            self._snapshot += 1
            self._soup = BeautifulSoup(snapshots[self._snapshot], self._parser)
