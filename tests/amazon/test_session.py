"""Tests for sign-in detection."""

from __future__ import annotations

import asyncio
from typing import Any

import pytest

from orderharvest.adapters.documents.html import HtmlDocument
from orderharvest.amazon.session import (
    check_auth_status,
    ensure_signed_in,
    is_sign_in_page,
    require_signed_in,
)
from orderharvest.amazon.urls import order_history_url
from orderharvest.core.errors import AuthenticationRequired
from tests.amazon.fixtures import (
    SIGN_IN_PAGE,
    SIGN_IN_URL,
    order_card,
    order_list_page,
)

HISTORY_URL = order_history_url("uk")
GREETING = '<span id="nav-link-accountList-nav-line-1">Hello, Jane</span>'


def _run_async(coro: Any) -> Any:
    """Run an async function synchronously."""
    return asyncio.run(coro)


class TestCheckAuthStatus:
    """Tests for check_auth_status."""

    def test_signed_in(self) -> None:
        # input
        page = order_list_page([order_card()]).replace("<body>", f"<body>{GREETING}")
        document = HtmlDocument({HISTORY_URL: page})

        # act
        status = _run_async(check_auth_status(document, "uk"))

        # assert
        assert status.authenticated
        assert status.message == "Authenticated"
        assert status.username == "Hello, Jane"
        assert document.visits == [HISTORY_URL]

    def test_redirected_to_sign_in(self) -> None:
        # input
        document = HtmlDocument(
            {SIGN_IN_URL: SIGN_IN_PAGE}, redirects={HISTORY_URL: SIGN_IN_URL}
        )

        # act
        status = _run_async(check_auth_status(document, "uk"))

        # assert
        assert not status.authenticated
        assert status.message == "Not logged in - sign in required"

    def test_no_order_history(self) -> None:
        # input
        document = HtmlDocument({HISTORY_URL: "<html><body>Hi</body></html>"})

        # act
        status = _run_async(check_auth_status(document, "uk"))

        # assert
        assert not status.authenticated
        assert status.message == "Order history not found - sign in to continue"

    def test_unknown_region(self) -> None:
        # input
        document = HtmlDocument()

        # act
        status = _run_async(check_auth_status(document, "zz"))

        # assert
        assert not status.authenticated
        assert status.message == "Unknown region: zz"
        assert document.visits == []

    def test_navigation_failure(self) -> None:
        # input
        document = HtmlDocument()

        # act
        status = _run_async(check_auth_status(document, "uk"))

        # assert
        assert not status.authenticated
        assert "page not available" in status.message


class TestEnsureSignedIn:
    """Tests for ensure_signed_in and require_signed_in."""

    def test_raises_with_sign_in_url(self) -> None:
        # input
        document = HtmlDocument(
            {SIGN_IN_URL: SIGN_IN_PAGE}, redirects={HISTORY_URL: SIGN_IN_URL}
        )

        # act & assert
        with pytest.raises(AuthenticationRequired) as exc_info:
            _run_async(ensure_signed_in(document, "uk"))
        assert exc_info.value.url == SIGN_IN_URL

    def test_sign_in_form_detected(self) -> None:
        # input
        document = HtmlDocument.from_html(SIGN_IN_PAGE, HISTORY_URL)

        # act & assert
        assert _run_async(is_sign_in_page(document))
        with pytest.raises(AuthenticationRequired):
            _run_async(require_signed_in(document))

    def test_order_page_is_not_sign_in(self) -> None:
        # input
        document = HtmlDocument.from_html(order_list_page([]), HISTORY_URL)

        # act & assert
        assert not _run_async(is_sign_in_page(document))
        _run_async(require_signed_in(document))
