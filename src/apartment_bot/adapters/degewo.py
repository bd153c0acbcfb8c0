"""Degewo adapter: session-bound search form on degewo.de."""

import asyncio
import logging
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import urljoin

import requests

from ..exceptions import SessionError
from ..models.listing import ListingRecord, SourceTag
from ..services.session import SessionManager
from . import register_adapter
from .base import USER_AGENT, HtmlAdapter, clean_text

logger = logging.getLogger(__name__)

FORM_PREFIX = "tx_openimmo_immobilie"

# Signed TYPO3 form state captured from the search page
FORM_REFERRER = [
    (f"{FORM_PREFIX}[__referrer][@extension]", "Openimmo"),
    (f"{FORM_PREFIX}[__referrer][@controller]", "Immobilie"),
    (f"{FORM_PREFIX}[__referrer][@action]", "search"),
    (
        f"{FORM_PREFIX}[__referrer][@request]",
        '{"@extension":"Openimmo","@controller":"Immobilie","@action":"search"}'
        "53dd4f0226cd686d2566450b5ce9bcce5bc791a4",
    ),
    (
        f"{FORM_PREFIX}[__trustedProperties]",
        '{"search":1,"page":1,"latitude":1,"longitude":1,"distance":1,"nettokaltmiete":1,'
        '"nettokaltmiete_start":1,"nettokaltmiete_end":1,"warmmiete":1,"warmmiete_start":1,'
        '"warmmiete_end":1,"wohnflaeche":1,"anzahlZimmer":1,"ausstattung":[1,1,1,1,1,1,1,1,1,1,1,1,1,1],'
        '"wbsSozialwohnung":1,"sortBy":1,"sortOrder":1,"regionalerZusatz":[1,1,1,1,1,1,1,1,1,1,1,1,1]}'
        "1ce6a043e74a2d313c077ab1feb945feaf24c953",
    ),
]

# svg icon on a property row -> ListingRecord field
PROPERTY_ICONS = {
    "#i-squares": "size",
    "#i-room": "rooms",
    "#i-calendar2": "available_from",
}


@register_adapter("degewo")
class DegewoAdapter(HtmlAdapter):
    """
    Adapter for degewo.de apartment search.

    The search endpoint only answers with results when the request carries
    the cookies of a browsing session, so the adapter owns a SessionManager
    that fetches the search page for fresh cookies every 30 minutes.
    """

    source_tag = SourceTag.DEGEWO
    item_selector = ".article-list__item--immosearch"
    required_fields = ("address", "title", "price")

    BASE_URL = "https://www.degewo.de"
    SEARCH_URL = f"{BASE_URL}/immosuche"

    def __init__(self, config: Dict[str, Any]):
        super().__init__(config)
        self.cold_rent = str(config.get("cold_rent", ""))
        self.districts = list(config.get("districts", []))
        self.session = SessionManager(
            self._refresh_session,
            refresh_interval=float(config.get("session_refresh_minutes", 30)) * 60,
            name="Degewo session",
        )

    async def fetch_listings(self) -> List[ListingRecord]:
        """Post the search form with session cookies and parse the result page."""
        logger.info("Fetching Degewo listings")
        cookies = await self.session.get_token()

        headers = {
            "Cookie": cookies,
            "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8",
            "Accept-Language": "en-US,en;q=0.5",
            "Referer": self.SEARCH_URL,
            "Origin": self.BASE_URL,
        }
        try:
            response = await asyncio.to_thread(
                self._request, "POST", self.SEARCH_URL, headers=headers, data=self._search_form()
            )
        except requests.HTTPError as e:
            if e.response is not None and e.response.status_code in (401, 403):
                self.session.invalidate()
            raise

        logger.debug(f"Fetched Degewo page ({len(response.text)} characters)")
        return self.parse(response.text)

    async def _refresh_session(self) -> str:
        return await asyncio.to_thread(self._request_session_cookies)

    def _request_session_cookies(self) -> str:
        """Open the search page and collect its cookies as a Cookie header value."""
        with requests.Session() as http:
            response = http.get(self.SEARCH_URL, headers={"User-Agent": USER_AGENT}, timeout=self.timeout)
            response.raise_for_status()
            cookies = "; ".join(f"{cookie.name}={cookie.value}" for cookie in http.cookies)

        if not cookies:
            raise SessionError("No cookies received from Degewo")
        return cookies

    def _search_form(self) -> List[Tuple[str, str]]:
        """Form-encoded search request, filters from config."""
        fields = {
            "search": "search",
            "page": "1",
            "latitude": "",
            "longitude": "",
            "location": "",
            "distance": "1",
            "nettokaltmiete": self.cold_rent,
            "nettokaltmiete_start": "",
            "nettokaltmiete_end": "",
            "warmmiete": "",
            "warmmiete_start": "",
            "warmmiete_end": "",
            "wohnflaeche": "",
            "wohnflaeche_start": "",
            "wohnflaeche_end": "",
            "anzahlZimmer": "",
            "anzahlZimmer_start": "",
            "anzahlZimmer_end": "",
            "ausstattung": "",
            "wbsSozialwohnung": "0",
            "sortBy": "immobilie_preise_warmmiete",
            "sortOrder": "asc",
            "regionalerZusatz": "",
        }
        form = list(FORM_REFERRER)
        form += [(f"{FORM_PREFIX}[{key}]", value) for key, value in fields.items()]
        form.append((f"{FORM_PREFIX}[ausstattung][]", ""))
        form += [(f"{FORM_PREFIX}[regionalerZusatz][]", district) for district in self.districts]
        return form

    def _normalize(self, element, index: int) -> Optional[ListingRecord]:
        address = clean_text(element.select_one(".article__meta"))
        title = clean_text(element.select_one(".article__title"))
        price = clean_text(element.select_one(".article__price-tag .price"))

        properties = {"size": "", "rooms": "", "available_from": ""}
        for prop in element.select(".article__properties-item"):
            use = prop.select_one("svg use")
            icon = (use.get("xlink:href") or use.get("href")) if use else None
            name = PROPERTY_ICONS.get(icon)
            if name:
                properties[name] = clean_text(prop.select_one(".text"))

        features = [clean_text(tag) for tag in element.select(".article__tags-item")]

        link_elem = element.select_one("a")
        href = link_elem.get("href", "") if link_elem else ""

        return ListingRecord(
            id=self._listing_id(element, index, address, title, price),
            source=self.source_tag,
            title=title,
            address=address,
            price=price,
            size=properties["size"],
            rooms=properties["rooms"],
            available_from=properties["available_from"],
            features=[feature for feature in features if feature],
            image_url=_image_url(element),
            link=urljoin(self.BASE_URL, href) if href else "",
        )


def _image_url(element) -> str:
    img = element.select_one("img")
    if img is None:
        return ""
    if img.get("src"):
        return img["src"]
    srcset = (img.get("data-srcset") or "").split()
    return srcset[0] if srcset else ""
