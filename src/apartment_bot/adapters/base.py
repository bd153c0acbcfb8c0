"""Abstract base adapters for apartment listing sources."""

import hashlib
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Tuple

import requests
from bs4 import BeautifulSoup

from ..models.listing import ListingRecord, SourceTag

logger = logging.getLogger(__name__)

USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)
DEFAULT_TIMEOUT = 30


def clean_text(element) -> str:
    """Whitespace-normalized text of a BeautifulSoup element, "" if missing."""
    if element is None:
        return ""
    return " ".join(element.get_text(" ", strip=True).split())


class BaseAdapter(ABC):
    """
    Abstract base class for all listing source adapters.

    Each adapter must implement:
    - fetch_listings(): Retrieve and normalize listings, raising on failure

    fetch_all() wraps fetch_listings() for the polling cycle: any transport,
    session or parse failure is logged and yields an empty list so one bad
    fetch never breaks the schedule.

    Subclasses should use the @register_adapter decorator to register
    themselves with the adapter registry.
    """

    source_tag: SourceTag
    submits_applications: bool = False

    def __init__(self, config: Dict[str, Any]):
        """
        Initialize adapter with configuration.

        Args:
            config: Source-specific configuration (sources.<name> in config.yaml)
        """
        self.config = config
        self.timeout = config.get("request_timeout", DEFAULT_TIMEOUT)
        self.source_name: str = self.source_tag.value

    @property
    def template(self) -> str:
        """Name of the notification template for this source."""
        return f"{self.source_name}.md.j2"

    async def fetch_all(self) -> List[ListingRecord]:
        """Fetch listings for one polling cycle. Never raises."""
        try:
            listings = await self.fetch_listings()
        except Exception as e:
            logger.error(f"Error fetching from {self.source_name}: {e}")
            return []

        logger.info(f"Fetched {len(listings)} listings from {self.source_name}")
        return listings

    @abstractmethod
    async def fetch_listings(self) -> List[ListingRecord]:
        """
        Fetch listings from the source and return normalized records.

        Raises:
            requests.RequestException: On transport failure or non-2xx status
            SessionError: If a required session cannot be obtained
            ValueError: If the response has an unexpected shape
        """
        pass

    def get_source_name(self) -> str:
        """Get the name of this source."""
        return self.source_name

    def is_available(self) -> bool:
        """Check if the source is enabled in configuration."""
        return bool(self.config.get("enabled", True))

    def _request(self, method: str, url: str, headers: Optional[Dict[str, str]] = None, **kwargs) -> requests.Response:
        """Blocking HTTP call with the browser User-Agent and timeout. Run it via asyncio.to_thread."""
        request_headers = {"User-Agent": USER_AGENT}
        request_headers.update(headers or {})
        response = requests.request(method, url, headers=request_headers, timeout=self.timeout, **kwargs)
        response.raise_for_status()
        return response


class HtmlAdapter(BaseAdapter):
    """
    Base class for adapters that scrape a server-rendered listing page.

    Subclasses set item_selector and required_fields and implement
    _normalize() for a single listing element. Elements missing any
    required field are dropped rather than emitted half-empty.
    """

    item_selector: str
    required_fields: Tuple[str, ...] = ("address", "title", "price")

    def __init__(self, config: Dict[str, Any]):
        super().__init__(config)
        self.fallback_id = config.get("fallback_id", "index")

    def parse(self, html: str) -> List[ListingRecord]:
        """Parse a result page into listing records in page order."""
        soup = BeautifulSoup(html, "html.parser")
        elements = soup.select(self.item_selector)
        logger.debug(f"Found {len(elements)} raw listings on {self.source_name} page")

        listings = []
        for index, element in enumerate(elements):
            try:
                listing = self._normalize(element, index)
            except Exception as e:
                logger.debug(f"Failed to parse {self.source_name} listing #{index}: {e}")
                continue

            if listing is None:
                continue
            if not all(getattr(listing, name) for name in self.required_fields):
                logger.debug(f"Dropping incomplete {self.source_name} listing #{index}")
                continue
            listings.append(listing)

        return listings

    @abstractmethod
    def _normalize(self, element, index: int) -> Optional[ListingRecord]:
        """
        Convert one listing element into a ListingRecord.

        Args:
            element: BeautifulSoup tag matched by item_selector
            index: Position of the element on the current page

        Returns:
            ListingRecord, or None if the element cannot be normalized
        """
        pass

    def _listing_id(self, element, index: int, address: str, title: str, price: str) -> str:
        """
        Native id attribute, or a synthesized fallback.

        The index fallback ("gewobag-3") changes when the portal reorders its
        results; the content fallback hashes address, title and price instead.
        """
        native_id = (element.get("id") or "").strip()
        if native_id:
            return native_id

        if self.fallback_id == "content":
            digest = hashlib.sha1(f"{address}|{title}|{price}".encode("utf-8")).hexdigest()
            return f"{self.source_name}-{digest[:12]}"
        return f"{self.source_name}-{index}"
