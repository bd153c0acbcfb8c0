"""Gewobag adapter for Berlin rental offers."""

import asyncio
import logging
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import urljoin

from ..models.listing import ListingRecord, SourceTag
from . import register_adapter
from .base import HtmlAdapter, clean_text

logger = logging.getLogger(__name__)


@register_adapter("gewobag")
class GewobagAdapter(HtmlAdapter):
    """
    Adapter for gewobag.de rental offers.

    The offer page is server-rendered; filters are plain query parameters.
    Each offer is an .angebot-big-box element whose id attribute is stable.
    """

    source_tag = SourceTag.GEWOBAG
    item_selector = ".angebot-big-box"
    required_fields = ("address", "title", "size", "price")

    BASE_URL = "https://www.gewobag.de"
    SEARCH_URL = f"{BASE_URL}/fuer-mietinteressentinnen/mietangebote/"

    def __init__(self, config: Dict[str, Any]):
        super().__init__(config)
        self.districts = list(config.get("districts", []))
        self.max_rent = config.get("max_rent")
        self.min_area = config.get("min_area")
        self.max_area = config.get("max_area")
        self.no_wbs = config.get("no_wbs", True)

    async def fetch_listings(self) -> List[ListingRecord]:
        """Fetch and parse the Gewobag offer page."""
        logger.info("Fetching Gewobag listings from website")
        response = await asyncio.to_thread(
            self._request, "GET", self.SEARCH_URL, params=self._search_params()
        )
        logger.debug(f"Fetched Gewobag page ({len(response.text)} characters)")
        return self.parse(response.text)

    def _search_params(self) -> List[Tuple[str, str]]:
        """Query string of the offer page, repeated keys for multi-selects."""
        params = [("bezirke[]", district) for district in self.districts]
        params += [
            ("objekttyp[]", "wohnung"),
            ("gesamtmiete_von", ""),
            ("gesamtmiete_bis", _param(self.max_rent)),
            ("gesamtflaeche_von", _param(self.min_area)),
            ("gesamtflaeche_bis", _param(self.max_area)),
            ("zimmer_von", ""),
            ("zimmer_bis", ""),
        ]
        if self.no_wbs:
            params.append(("keinwbs", "1"))
        params.append(("sort-by", ""))
        return params

    def _normalize(self, element, index: int) -> Optional[ListingRecord]:
        address = clean_text(element.select_one(".angebot-address address"))
        title = clean_text(element.select_one(".angebot-title"))
        size = clean_text(element.select_one(".angebot-area td"))
        price = clean_text(element.select_one(".angebot-kosten td"))

        link_elem = element.select_one(".read-more-link")
        href = link_elem.get("href", "") if link_elem else ""
        image = element.select_one(".slider-element img")

        return ListingRecord(
            id=self._listing_id(element, index, address, title, price),
            source=self.source_tag,
            title=title,
            address=address,
            price=price,
            size=size,
            image_url=image.get("src", "") if image else "",
            link=urljoin(self.BASE_URL, href) if href else "",
        )


def _param(value: Any) -> str:
    return "" if value is None else str(value)
