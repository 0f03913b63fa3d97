"""Cafe name/address extraction from crawled HTML pages."""

from __future__ import annotations

from dataclasses import dataclass

from bs4 import BeautifulSoup

from coffee_map.common.models import CafeDetails

DEFAULT_NAME_SELECTOR = "h1.cafe-name"
DEFAULT_ADDRESS_SELECTOR = "div.cafe-address"


def _first_text(soup: BeautifulSoup, selector: str) -> str | None:
    element = soup.select_one(selector)
    if element is None:
        return None
    return next(element.stripped_strings, None)


@dataclass(frozen=True)
class CafeDetailsExtractor:
    name_selector: str = DEFAULT_NAME_SELECTOR
    address_selector: str = DEFAULT_ADDRESS_SELECTOR

    @classmethod
    def from_settings(cls, crawl_settings: dict) -> "CafeDetailsExtractor":
        return cls(
            name_selector=crawl_settings.get("name_selector") or DEFAULT_NAME_SELECTOR,
            address_selector=crawl_settings.get("address_selector") or DEFAULT_ADDRESS_SELECTOR,
        )

    def extract(self, html_body: str) -> CafeDetails | None:
        soup = BeautifulSoup(html_body, "html.parser")
        name = _first_text(soup, self.name_selector)
        if not name:
            return None
        address = _first_text(soup, self.address_selector)
        if not address:
            return None
        return CafeDetails(name=name, address=address)
