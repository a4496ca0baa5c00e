"""Static table of the 16 supported storefront regions."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class Region:
    """One storefront: domain, currency and locale conventions."""

    code: str
    domain: str
    currency: str
    language: str
    date_format: str
    tax_fields: tuple[str, ...]

    @property
    def base_url(self) -> str:
        return f"https://www.{self.domain}"


REGIONS: tuple[Region, ...] = (
    Region("us", "amazon.com", "USD", "en_US", "MMMM D, YYYY", ("tax",)),
    Region("uk", "amazon.co.uk", "GBP", "en_GB", "D MMMM YYYY", ("vat",)),
    Region("ca", "amazon.ca", "CAD", "en_US", "MMMM D, YYYY", ("gst", "pst")),
    Region("de", "amazon.de", "EUR", "en_GB", "D. MMMM YYYY", ("vat",)),
    Region("fr", "amazon.fr", "EUR", "en_GB", "D MMMM YYYY", ("vat",)),
    Region("es", "amazon.es", "EUR", "en_GB", "D de MMMM de YYYY", ("vat",)),
    Region("it", "amazon.it", "EUR", "en_GB", "D MMMM YYYY", ("vat",)),
    Region("nl", "amazon.nl", "EUR", "en_GB", "D MMMM YYYY", ("vat",)),
    Region("jp", "amazon.co.jp", "JPY", "ja_JP", "YYYY年M月D日", ()),
    Region("au", "amazon.com.au", "AUD", "en_AU", "D MMMM YYYY", ("gst",)),
    Region("mx", "amazon.com.mx", "MXN", "en_US", "D de MMMM de YYYY", ("iva",)),
    Region("in", "amazon.in", "INR", "en_GB", "D MMMM YYYY", ("gst",)),
    Region("ae", "amazon.ae", "AED", "en_AE", "D MMMM YYYY", ("vat",)),
    Region("sa", "amazon.sa", "SAR", "en_AE", "D MMMM YYYY", ("vat",)),
    Region("ie", "amazon.ie", "EUR", "en_GB", "D MMMM YYYY", ("vat",)),
    Region("be", "amazon.com.be", "EUR", "en_GB", "D MMMM YYYY", ("vat",)),
)

_BY_CODE: dict[str, Region] = {region.code: region for region in REGIONS}


def get_region_by_code(code: str | None) -> Region | None:
    """Look up a region by its code, ignoring case."""
    return _BY_CODE.get((code or "").strip().lower())


def get_region_by_domain(domain: str) -> Region | None:
    """Look up a region by domain, with or without the ``www.`` prefix."""
    for region in REGIONS:
        if domain in (region.domain, f"www.{region.domain}"):
            return region
    return None


def get_region_codes() -> list[str]:
    return [region.code for region in REGIONS]


def currency_for_region(code: str | None, default: str = "USD") -> str:
    region = get_region_by_code(code)
    return region.currency if region else default
