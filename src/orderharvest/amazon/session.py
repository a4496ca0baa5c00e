"""Sign-in detection for an Amazon browsing session."""

from __future__ import annotations

from dataclasses import dataclass

from orderharvest.amazon.logger import AmazonExtractionLogger
from orderharvest.amazon.urls import is_sign_in_url, order_history_url, sign_in_url
from orderharvest.core.document import DocumentAccessor, first_text
from orderharvest.core.errors import AuthenticationRequired, NavigationFailure
from orderharvest.core.regions import get_region_by_code

SIGN_IN_SELECTOR = "#signInSubmit, form[name='signIn']"
ORDER_HISTORY_SELECTOR = (
    '[data-component="orderCard"], .order-card, .js-order-card, #ordersContainer'
)
USERNAME_SELECTORS = ("#nav-link-accountList-nav-line-1", "span.nav-line-1")


@dataclass(frozen=True, slots=True)
class AuthStatus:
    authenticated: bool
    region: str
    message: str
    username: str | None = None


async def is_sign_in_page(document: DocumentAccessor) -> bool:
    """True when the loaded page is a sign-in form or a redirect to one."""
    if is_sign_in_url(document.current_url()):
        return True
    return bool(await document.query(SIGN_IN_SELECTOR))


async def require_signed_in(document: DocumentAccessor) -> None:
    """Raise ``AuthenticationRequired`` if the loaded page asks for sign-in."""
    if await is_sign_in_page(document):
        raise AuthenticationRequired(document.current_url())


async def check_auth_status(
    document: DocumentAccessor,
    region: str,
    logger: AmazonExtractionLogger | None = None,
) -> AuthStatus:
    """Open the order history page and report whether the session is signed in."""
    logger = logger or AmazonExtractionLogger()
    if get_region_by_code(region) is None:
        return AuthStatus(False, region, f"Unknown region: {region}")

    try:
        await document.navigate(order_history_url(region))
    except NavigationFailure as e:
        status = AuthStatus(False, region, str(e))
        logger.auth_status(region, False, status.message)
        return status

    if await is_sign_in_page(document):
        status = AuthStatus(False, region, "Not logged in - sign in required")
    elif await document.query(ORDER_HISTORY_SELECTOR):
        username = await first_text(document, USERNAME_SELECTORS)
        status = AuthStatus(True, region, "Authenticated", username or None)
    else:
        message = "Order history not found - sign in to continue"
        status = AuthStatus(False, region, message)

    logger.auth_status(region, status.authenticated, status.message)
    return status


async def ensure_signed_in(
    document: DocumentAccessor,
    region: str,
    logger: AmazonExtractionLogger | None = None,
) -> AuthStatus:
    """Like ``check_auth_status`` but raises when the session is not signed in."""
    status = await check_auth_status(document, region, logger)
    if not status.authenticated:
        raise AuthenticationRequired(sign_in_url(region), status.message)
    return status
