"""
AutoScout24 Hungary adapter.

The listing query is sorted newest-first; each result article carries the
listing id and a link to the detail ("ajanlat") page. Detail pages expose
the make and model in a definition list and the mileage, first
registration and power in the key-facts strip.

Category fields (make, model, first-registration year) and the price are
required; a page missing any of them raises ParseIncompleteError so the
listing is dropped instead of being retried forever.
"""

import re
import logging
from typing import Optional
from urllib.parse import urljoin
from bs4 import BeautifulSoup

from .base import HttpFetcher
from ..config import SourceConfig, get_source_config
from ..models import ParsedDetail
from ..outcomes import ParseIncompleteError

logger = logging.getLogger(__name__)

NUMBER_PATTERN = re.compile(r"[0-9]+")

# Key-facts strip positions
KEYFACT_MILEAGE = 3
KEYFACT_FIRST_REGISTRATION = 4
KEYFACT_POWER = 5

DIESEL_FUELS = {"Dízel (Particulate Filter)", "Dízel"}
PETROL_FUELS = {
    "Benzin",
    "Benzin (Particulate Filter)",
    "Super 95 (Particulate Filter)",
    "Super 95",
    "91-es normálbenzin",
    "Super E10 Plus 95-ös",
    "Super Plus 98-as",
    "E10-es 91-es normálbenzin",
    "Super Plus E10 98-as",
}


def _numbers(text: str) -> list[str]:
    return NUMBER_PATTERN.findall(text or "")


def _joined_number(text: str) -> Optional[int]:
    """'123 456 km' -> 123456"""
    digits = _numbers(text)
    return int("".join(digits)) if digits else None


class AutoScoutAdapter:
    """
    Source adapter for autoscout24.hu.

    Usage:
        adapter = AutoScoutAdapter()
        pairs = adapter.parse_listing_page(adapter.discover_page())
        detail = adapter.parse_detail(adapter.fetch_detail(pairs[0][1]))
    """

    name = "autoscout24.hu"

    def __init__(self, config: Optional[SourceConfig] = None, fetcher: Optional[HttpFetcher] = None):
        self.config = config or get_source_config()
        self.fetcher = fetcher or HttpFetcher(self.config)

    @property
    def listing_url(self) -> str:
        return f"{self.config.base_url}{self.config.query}"

    # =========================================================================
    # DISCOVERY
    # =========================================================================

    def discover_page(self) -> str:
        logger.info(f"Looking for new entries on {self.config.base_url}")
        return self.fetcher.get_text(self.listing_url)

    def parse_listing_page(self, raw: str) -> list[tuple[str, str]]:
        """
        Extract (external_id, detail_url) pairs from a result page.

        Returns:
            Pairs ordered oldest first (the page itself is newest first)
        """
        soup = BeautifulSoup(raw, "html.parser")
        pairs = []
        seen = set()

        for article in soup.select("article.cldt-summary-full-item, article[data-guid]"):
            external_id = self._external_id(article)
            link = article.find("a", href=True)
            if not external_id or link is None:
                continue

            path = self._detail_path(link["href"])
            if path is None or external_id in seen:
                continue
            seen.add(external_id)
            pairs.append((external_id, urljoin(self.config.base_url, path)))

        pairs.reverse()
        logger.debug(f"Parsed {len(pairs)} listings from result page")
        return pairs

    def _external_id(self, article) -> Optional[str]:
        if article.get("data-guid"):
            return article["data-guid"]
        # id="li-<listing id>", the listing id may itself contain dashes
        parts = (article.get("id") or "").split("-")
        if len(parts) < 2:
            return None
        return "-".join(parts[1:])

    def _detail_path(self, href: str) -> Optional[str]:
        # "/ajanlat/<slug>" possibly prefixed with the host
        segments = [s for s in href.split("?")[0].split("/") if s]
        if "ajanlat" not in segments:
            return None
        index = segments.index("ajanlat")
        if index + 1 >= len(segments):
            return None
        return f"/ajanlat/{segments[index + 1]}"

    # =========================================================================
    # EXTRACTION
    # =========================================================================

    def fetch_detail(self, detail_url: str) -> str:
        logger.info(f"Scraping url: {detail_url}")
        return self.fetcher.get_text(detail_url)

    def parse_detail(self, raw: str) -> ParsedDetail:
        soup = BeautifulSoup(raw, "html.parser")
        keyfacts = [el.get_text(" ", strip=True) for el in soup.select(".sc-font-l.cldt-stage-primary-keyfact")]

        make = self._definition(soup, "Márka", exact=False)
        model = self._definition(soup, "Modell", exact=False)
        age_years = self._first_registration_year(keyfacts)
        price = self._price(soup)

        missing = [
            name for name, value in (
                ("make", make), ("model", model), ("age_years", age_years), ("price", price),
            ) if not value
        ]
        if missing:
            raise ParseIncompleteError(missing)

        return ParsedDetail(
            make=make,
            model=model,
            age_years=age_years,
            price=price,
            mileage=self._keyfact_joined(keyfacts, KEYFACT_MILEAGE),
            power=self._keyfact_first(keyfacts, KEYFACT_POWER),
            engine_displacement=_joined_number(self._definition(soup, "Hengerűrtartalom")),
            fuel_type=self._fuel_type(soup),
            transmission=self._transmission(soup),
            city=self._city(soup),
            postal_code=self._postal_code(soup),
        )

    def _definition(self, soup, label: str, exact: bool = True) -> Optional[str]:
        """Text of the <dd> following the <dt> labelled `label`."""
        for dt in soup.find_all("dt"):
            text = dt.get_text(strip=True)
            if text == label or (not exact and label in text):
                dd = dt.find_next_sibling("dd")
                value = dd.get_text(" ", strip=True) if dd else ""
                return value or None
        return None

    def _first_registration_year(self, keyfacts: list[str]) -> Optional[int]:
        # "05/2015" -> 2015
        if len(keyfacts) <= KEYFACT_FIRST_REGISTRATION:
            return None
        numbers = _numbers(keyfacts[KEYFACT_FIRST_REGISTRATION])
        return int(numbers[1]) if len(numbers) > 1 else None

    def _keyfact_joined(self, keyfacts: list[str], index: int) -> Optional[int]:
        if len(keyfacts) <= index:
            return None
        return _joined_number(keyfacts[index])

    def _keyfact_first(self, keyfacts: list[str], index: int) -> Optional[int]:
        # "110 kW (150 LE)" -> 110
        if len(keyfacts) <= index:
            return None
        numbers = _numbers(keyfacts[index])
        return int(numbers[0]) if numbers else None

    def _price(self, soup) -> Optional[int]:
        blocks = soup.select(".cldt-price")
        if not blocks:
            return None
        block = blocks[1] if len(blocks) > 1 else blocks[0]
        heading = block.find("h2")
        return _joined_number(heading.get_text() if heading else block.get_text())

    def _fuel_type(self, soup) -> Optional[str]:
        value = self._definition(soup, "Üzemanyag")
        if not value:
            return None
        variants = [v.strip() for v in value.split("/")]
        if any(v in DIESEL_FUELS for v in variants):
            return "Dízel"
        if any(v in PETROL_FUELS for v in variants):
            return "Benzin"
        return value

    def _transmission(self, soup) -> Optional[str]:
        value = self._definition(soup, "Váltó típusa")
        if value == "Sebességváltó":
            return "Manuális"
        return value

    def _city(self, soup) -> Optional[str]:
        city = soup.select_one(".cldt-stage-vendor-text.sc-font-s span.sc-font-bold")
        if city is None:
            return None
        return city.get_text(strip=True) or None

    def _postal_code(self, soup) -> Optional[int]:
        element = soup.select_one("div[data-item-name='vendor-contact-city']")
        if element is None:
            return None
        first = element.get_text(" ", strip=True).split(" ")[0]
        return int(first) if NUMBER_PATTERN.fullmatch(first) else None

    def close(self) -> None:
        self.fetcher.close()
