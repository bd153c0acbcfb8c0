"""wohnraumkarte.de adapter: JSON API listings that we apply to automatically."""

import asyncio
import logging
from typing import Any, Dict, List, Optional

from ..models.listing import ListingRecord, SourceTag
from . import register_adapter
from .base import BaseAdapter

logger = logging.getLogger(__name__)


@register_adapter("wohnraumkarte")
class WohnraumkarteAdapter(BaseAdapter):
    """
    Adapter for the wohnraumkarte.de listing API.

    The search endpoint returns {"results": [...], "paging": {...}} with
    German field names. New listings from this source get an application.
    """

    source_tag = SourceTag.WOHNRAUMKARTE
    submits_applications = True

    BASE_URL = "https://www.wohnraumkarte.de"
    API_URL = f"{BASE_URL}/api/getImmoList"

    def __init__(self, config: Dict[str, Any]):
        super().__init__(config)
        self.params = dict(config.get("params", {}))

    async def fetch_listings(self) -> List[ListingRecord]:
        """Fetch rental listings from the wohnraumkarte API."""
        logger.info("Fetching wohnraumkarte listings from API")
        response = await asyncio.to_thread(self._request, "GET", self.API_URL, params=self.params)
        data = response.json()

        results = data.get("results") if isinstance(data, dict) else None
        if not isinstance(results, list):
            raise ValueError("wohnraumkarte response has no results list")

        listings = []
        for raw in results:
            listing = self._normalize(raw)
            if listing:
                listings.append(listing)
        return listings

    def _normalize(self, raw: Dict[str, Any]) -> Optional[ListingRecord]:
        """Convert an API result into a ListingRecord."""
        if not isinstance(raw, dict):
            return None

        wrk_id = _field(raw, "wrk_id")
        if not wrk_id:
            logger.debug(f"Skipping wohnraumkarte result without wrk_id: {raw.get('titel')!r}")
            return None

        city_line = " ".join(part for part in (_field(raw, "plz"), _field(raw, "ort")) if part)
        address = ", ".join(part for part in (_field(raw, "strasse"), city_line) if part)

        price = _field(raw, "preis")
        size = _field(raw, "groesse")
        slug = _field(raw, "slug")

        return ListingRecord(
            id=wrk_id,
            source=self.source_tag,
            title=_field(raw, "titel"),
            address=address,
            price=f"{price}€" if price else "",
            size=f"{size}m²" if size else "",
            rooms=_field(raw, "anzahl_zimmer"),
            image_url=_field(raw, "preview_img_url"),
            link=f"{self.BASE_URL}/{slug}" if slug else "",
        )


def _field(raw: Dict[str, Any], key: str) -> str:
    value = raw.get(key)
    if value is None:
        return ""
    return str(value).strip()
