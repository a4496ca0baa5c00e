"""Document accessor implementations.

``PlaywrightDocument`` lives in ``orderharvest.adapters.documents.playwright``
and needs the ``browser`` extra, so it is not re-exported here.
"""

from orderharvest.adapters.documents.html import HtmlDocument

__all__ = ["HtmlDocument"]
