"""Tests for the static HTML document accessor."""

from __future__ import annotations

import asyncio
from typing import Any

import pytest

from orderharvest.adapters.documents.html import HtmlDocument
from orderharvest.core.document import (
    INNER_HTML,
    ScrollableDocument,
    all_texts,
    first_attribute,
    first_text,
    page_text,
)
from orderharvest.core.errors import NavigationFailure

PAGE = """
<html><body>
  <div class="card">
    <span class="label">Order placed</span>
    <span class="value">14   November 2024</span>
  </div>
  <div class="card">
    <span class="label"></span>
    <a class="link" href="/dp/B0ABCDEFGH">Widget <b>Deluxe</b></a>
  </div>
</body></html>
"""


def _run_async(coro: Any) -> Any:
    """Run an async function synchronously."""
    return asyncio.run(coro)


class TestHtmlDocument:
    """Tests for HtmlDocument."""

    def test_navigate_and_query(self) -> None:
        # input
        document = HtmlDocument({"https://a.test/": PAGE})

        # act
        async def act() -> list[Any]:
            await document.navigate("https://a.test/")
            return await document.query(".card")

        cards = _run_async(act())

        # assert
        assert len(cards) == 2
        assert document.current_url() == "https://a.test/"
        assert document.visits == ["https://a.test/"]

    def test_unknown_url_raises(self) -> None:
        # input
        document = HtmlDocument()

        # act & assert
        with pytest.raises(NavigationFailure, match="page not available"):
            _run_async(document.navigate("https://missing.test/"))

    def test_redirect(self) -> None:
        # input
        document = HtmlDocument(
            {"https://a.test/ap/signin": "<form name='signIn'></form>"},
            redirects={"https://a.test/orders": "https://a.test/ap/signin"},
        )

        # act
        _run_async(document.navigate("https://a.test/orders"))

        # assert
        assert document.current_url() == "https://a.test/ap/signin"

    def test_read_text_keeps_lines(self) -> None:
        # input
        document = HtmlDocument.from_html(PAGE)

        # act
        text = _run_async(page_text(document))

        # assert
        assert text.splitlines()[:2] == ["Order placed", "14 November 2024"]

    def test_query_within_node(self) -> None:
        # input
        document = HtmlDocument.from_html(PAGE)

        # act
        async def act() -> str:
            second = (await document.query(".card"))[1]
            return await first_text(document, (".label", ".link"), second)

        result = _run_async(act())

        # assert
        assert result == "Widget Deluxe"

    def test_attributes(self) -> None:
        # input
        document = HtmlDocument.from_html(PAGE)

        # act
        async def act() -> tuple[str | None, str | None]:
            href = await first_attribute(document, "a.link", "href")
            link = (await document.query("a.link"))[0]
            return href, await document.read_attribute(link, INNER_HTML)

        href, inner = _run_async(act())

        # assert
        assert href == "/dp/B0ABCDEFGH"
        assert inner == "Widget <b>Deluxe</b>"

    def test_all_texts_skips_blank(self) -> None:
        # input
        document = HtmlDocument.from_html(PAGE)

        # act
        result = _run_async(all_texts(document, ".label"))

        # assert
        assert result == ["Order placed"]

    def test_scroll_advances_snapshots(self) -> None:
        # input
        url = "https://a.test/feed"
        document = HtmlDocument({url: ["<p>one</p>", "<p>one</p><p>two</p>"]})

        # act
        async def act() -> list[int]:
            await document.navigate(url)
            counts = [len(await document.query("p"))]
            await document.scroll_to_bottom()
            counts.append(len(await document.query("p")))
            await document.scroll_to_bottom()
            counts.append(len(await document.query("p")))
            return counts

        counts = _run_async(act())

        # assert
        assert isinstance(document, ScrollableDocument)
        assert counts == [1, 2, 2]
