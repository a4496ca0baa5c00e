"""Saved-page factories for the Amazon extractor tests.

Markup is trimmed to the elements each layout probe reads.
"""

from __future__ import annotations

from bs4 import Tag

from orderharvest.adapters.documents.html import HtmlDocument

BASE_URL = "https://www.amazon.co.uk"
ORDER_ID = "203-1234567-1234567"
DETAIL_URL = f"{BASE_URL}/gp/your-account/order-details?orderID={ORDER_ID}"
INVOICE_URL = f"{BASE_URL}/gp/css/summary/print.html?orderID={ORDER_ID}"
SHIP_TRACK_1 = f"{BASE_URL}/gp/your-account/ship-track?itemId=abc&shipmentId=SHIP1"
SHIP_TRACK_2 = f"{BASE_URL}/gp/your-account/ship-track?itemId=def&shipmentId=SHIP2"
TRANSACTIONS_URL = f"{BASE_URL}/cpe/yourpayments/transactions"
GIFT_CARD_URL = f"{BASE_URL}/gc/balance"
SIGN_IN_URL = f"{BASE_URL}/ap/signin"


def order_card(
    order_id: str = ORDER_ID,
    *,
    date_text: str = "14 November 2024",
    total: str = "£25.99",
    status: str = "Delivered 16 November",
    item_count: int = 1,
    recipient: str = "Jane Doe",
) -> str:
    items = "".join(
        f'<div class="yohtmlc-item">'
        f'<a href="/dp/B0000000{index:02d}">Item {index}</a></div>'
        for index in range(item_count)
    )
    order_id_block = (
        f'<div class="yohtmlc-order-id"><span>Order #</span>'
        f'<span dir="ltr">{order_id}</span></div>'
        if order_id
        else ""
    )
    return f"""
    <div class="js-order-card">
      <div class="order-header">
        <div><span>Order placed</span><span>{date_text}</span></div>
        <div><span>Total</span><span>{total}</span></div>
        <div class="recipient"><span>Ship to</span><span>{recipient}</span></div>
        {order_id_block}
      </div>
      <div class="delivery-box">
        <span class="delivery-box__primary-text">{status}</span>
      </div>
      {items}
    </div>
    """


def order_list_page(
    cards: list[str], *, count: int | None = None, next_href: str | None = None
) -> str:
    count_block = f'<span class="num-orders">{count} orders</span>' if count else ""
    if next_href:
        pager = (
            '<ul class="a-pagination"><li class="a-last">'
            f'<a href="{next_href}">Next</a></li></ul>'
        )
    else:
        pager = (
            '<ul class="a-pagination"><li class="a-last a-disabled">Next</li></ul>'
        )
    return f"""
    <html><body>
      <div id="ordersContainer">
        {count_block}
        {"".join(cards)}
        {pager}
      </div>
    </body></html>
    """


def detail_page(order_id: str = ORDER_ID) -> str:
    """Order detail page with two shipments of one item each."""
    return f"""
    <html><body>
      <div data-component="orderId"><span>Order # {order_id}</span></div>
      <div data-component="orderDate"><span>Ordered on 14 November 2024</span></div>
      <div data-component="shipments">
        <div data-component="shipmentStatus">
          <h4 class="od-status-message">Delivered 16 November</h4>
        </div>
        <a href="/gp/your-account/ship-track?itemId=abc&amp;shipmentId=SHIP1">Track</a>
        <div data-component="purchasedItems">
          <div data-component="itemTitle">
            <a href="/dp/B0ABCDEFGH">Widget Deluxe</a>
          </div>
          <div data-component="unitPrice"><span class="a-offscreen">£10.00</span></div>
          <div data-component="orderedMerchant"><span>Sold by: Acme Ltd</span></div>
          <div data-component="itemCondition">Condition: New</div>
          <img src="https://m.media-amazon.com/images/I/widget.jpg">
        </div>
      </div>
      <div data-component="shipments">
        <div data-component="shipmentStatus">
          <h4 class="od-status-message">Arriving Friday</h4>
        </div>
        <a href="/gp/your-account/ship-track?itemId=def&amp;shipmentId=SHIP2">Track</a>
        <div data-component="purchasedItems">
          <div data-component="itemTitle">
            <a href="/dp/B0GADGET01">Gadget Mini</a>
          </div>
          <div data-component="unitPrice"><span class="a-offscreen">£10.00</span></div>
          <div class="od-item-view-qty"><span>2</span></div>
        </div>
      </div>
      <div data-component="shippingAddress"><ul>
        <li class="displayAddressFullName">Jane Doe</li>
        <li>12 High Street</li>
        <li>LONDON SW1A 1AA</li>
      </ul></div>
      <div data-component="viewPaymentPlanSummaryWidget">
        <span data-testid="method-details-name">Visa</span>
        <span data-testid="method-details-number">•••• 1234</span>
      </div>
      <div data-component="chargeSummary">
        <div class="od-line-item-row">
          <span class="od-line-item-row-label">Item(s) Subtotal:</span>
          <span class="od-line-item-row-content">£30.00</span>
        </div>
        <div class="od-line-item-row">
          <span class="od-line-item-row-label">Postage &amp; Packing:</span>
          <span class="od-line-item-row-content">£0.00</span>
        </div>
        <div class="od-line-item-row">
          <span class="od-line-item-row-label">VAT:</span>
          <span class="od-line-item-row-content">£5.00</span>
        </div>
        <div class="od-line-item-row">
          <span class="od-line-item-row-label">Grand Total:</span>
          <span class="od-line-item-row-content">£30.00</span>
        </div>
      </div>
      <a href="/your-orders/invoice/popover?orderId={order_id}">Invoice</a>
    </body></html>
    """


def ship_track_page(tracking_id: str, carrier_code: str) -> str:
    return f"""
    <html><body>
      <div class="pt-delivery-card-trackingId">{tracking_id}</div>
      <p>Delivery By {carrier_code}</p>
    </body></html>
    """


def invoice_page(quantity: int = 2) -> str:
    return f"""
    <html><body>
      <div>Order Placed: 14 November 2024</div>
      <div>Amazon.co.uk order number: {ORDER_ID}</div>
      <div class="displayAddressDiv"><ul>
        <li class="displayAddressFullName">Jane Doe</li>
        <li>12 High Street</li>
        <li>LONDON SW1A 1AA</li>
      </ul></div>
      <table>
        <tr>
          <td>{quantity} of: <a href="/dp/B0ABCDEFGH">Widget Deluxe</a><br>
            Sold by: Acme Ltd<br>
            Condition: New</td>
          <td>£10.00</td>
        </tr>
      </table>
      <div>Item(s) Subtotal: £20.00</div>
      <div>Grand Total: £20.00</div>
      <div>Payment method: Visa ending in 1234</div>
    </body></html>
    """


def transaction_line(card: str, amount: str, order_id: str, merchant: str) -> str:
    return (
        '<div class="apx-transactions-line-item-component-container">'
        f"<span>{card}</span><span>{amount}</span>"
        f"<span>Order #{order_id}</span><span>{merchant}</span></div>"
    )


def transactions_page(groups: list[tuple[str, list[str]]]) -> str:
    """Feed page: each group is a date heading and its line items."""
    body = "".join(
        f'<div class="apx-transaction-date-container"><span>{date_text}</span></div>'
        + "".join(lines)
        for date_text, lines in groups
    )
    return f"<html><body><div class='feed'>{body}</div></body></html>"


def gift_card_row(date_text: str, description: str, amount: str, balance: str) -> str:
    return (
        f"<tr><td>{date_text}</td><td>{description}</td>"
        f"<td>{amount}</td><td>{balance}</td></tr>"
    )


GIFT_CARD_ROWS = [
    gift_card_row(
        "11 Nov 2025",
        "Gift Card added; Claim code: xxxx-xxxxxx-8HBR; "
        "Serial number: 2660069114742969",
        "£10.00",
        "£35.00",
    ),
    gift_card_row(
        "5 Nov 2025",
        "Applied to order "
        '<a href="/gp/your-account/order-details?orderID=203-1111111-2222222">'
        "203-1111111-2222222</a>",
        "-£15.00",
        "£25.00",
    ),
    gift_card_row(
        "1 Nov 2025",
        "Refund from order 203-3333333-4444444",
        "£5.00",
        "£40.00",
    ),
    gift_card_row("20 Oct 2025", "Promotional credit", "£35.00", "£35.00"),
]


def gift_card_page(
    rows: list[str], *, balance: str = "£35.00", next_href: str | None = None
) -> str:
    if next_href:
        pager = (
            '<ul class="a-pagination"><li class="a-last">'
            f'<a href="{next_href}">Next</a></li></ul>'
        )
    else:
        pager = ""
    return f"""
    <html><body>
      <span data-testid="gc-balance">{balance}</span>
      <table class="a-bordered">
        <thead><tr><th>Date</th><th>Description</th><th>Amount</th>
        <th>Closing balance</th></tr></thead>
        <tbody>{"".join(rows)}</tbody>
      </table>
      {pager}
    </body></html>
    """


SIGN_IN_PAGE = """
<html><body>
  <form name="signIn"><input id="signInSubmit" type="submit"></form>
</body></html>
"""


class UnreadableDocument(HtmlDocument):
    """HtmlDocument that cannot read the text of nodes mentioning ``marker``."""

    marker = ""

    async def read_text(self, node: Tag) -> str:
        if self.marker and self.marker in str(node):
            msg = "node is detached from the document"
            raise RuntimeError(msg)
        return await super().read_text(node)


def unreadable_document(
    html: str, marker: str, url: str = "about:blank"
) -> UnreadableDocument:
    document = UnreadableDocument.from_html(html, url)
    assert isinstance(document, UnreadableDocument)
    document.marker = marker
    return document
