"""Normalized listing data models shared by all sources."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List
from urllib.parse import quote


class SourceTag(str, Enum):
    """Listing sources. The value partitions the seen-set."""

    WOHNRAUMKARTE = "wohnraumkarte"  # JSON API, auto-applies
    GEWOBAG = "gewobag"
    DEGEWO = "degewo"

    def __str__(self) -> str:
        return self.value


@dataclass
class ListingRecord:
    """
    Normalized apartment listing.

    Every adapter converts its source-specific shape into this record. Display
    fields are free-form text exactly as the source shows them. Optional fields
    are empty strings or lists when the source does not expose them.
    """

    # Identification: unique within its source only
    id: str
    source: SourceTag

    # Display fields
    title: str
    address: str
    price: str  # rent text, e.g. "500€"
    size: str

    # Optional fields
    rooms: str = ""
    available_from: str = ""
    features: List[str] = field(default_factory=list)
    image_url: str = ""
    link: str = ""

    @property
    def maps_link(self) -> str:
        """Google Maps search link for the address."""
        if not self.address:
            return ""
        return f"https://www.google.com/maps/search/?api=1&query={quote(self.address, safe='')}"

    def __repr__(self) -> str:
        return f"ListingRecord({self.source.value}:{self.id}, {self.title!r}, {self.price})"


@dataclass(frozen=True)
class SeenRecord:
    """A listing that has already been processed. Never updated or deleted."""

    source: str
    listing_id: str
    first_seen_at: datetime


@dataclass
class SessionToken:
    """Portal session cookies with the time they were issued (monotonic seconds)."""

    cookie_string: str
    issued_at: float

    def age(self, now: float) -> float:
        return now - self.issued_at
