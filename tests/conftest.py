"""Shared fixtures for apartment-bot tests."""

import asyncio
import copy

import pytest

from apartment_bot.adapters.base import BaseAdapter
from apartment_bot.config import DEFAULT_CONFIG, Settings
from apartment_bot.exceptions import ApplicationError
from apartment_bot.models.listing import ListingRecord, SourceTag
from apartment_bot.services.seen_store import SqliteSeenStore


class FakeAdapter(BaseAdapter):
    """Adapter returning canned listings, or raising a canned error."""

    def __init__(self, listings=None, source_tag=SourceTag.GEWOBAG, submits_applications=False, error=None):
        self.source_tag = source_tag
        self.submits_applications = submits_applications
        super().__init__({})
        self.listings = listings or []
        self.error = error
        self.fetch_calls = 0

    async def fetch_listings(self):
        self.fetch_calls += 1
        if self.error:
            raise self.error
        return list(self.listings)


class FakeNotifier:
    """Records notifications; raises for listing ids in fail_ids."""

    def __init__(self, fail_ids=()):
        self.sent = []
        self.fail_ids = set(fail_ids)

    async def notify(self, listing, applied=None):
        if listing.id in self.fail_ids:
            raise RuntimeError(f"boom for {listing.id}")
        self.sent.append((listing, applied))
        return True

    async def close(self):
        pass

    @property
    def sent_ids(self):
        return [listing.id for listing, _ in self.sent]


class FakeApplications:
    """Records submitted applications; fails for listing ids in fail_ids."""

    def __init__(self, fail_ids=()):
        self.submitted = []
        self.fail_ids = set(fail_ids)

    async def submit(self, listing):
        if listing.id in self.fail_ids:
            raise ApplicationError(f"rejected {listing.id}")
        self.submitted.append(listing.id)


@pytest.fixture
def make_listing():
    """Factory for creating test listings."""

    def _make(listing_id: str, source: SourceTag = SourceTag.GEWOBAG, **overrides) -> ListingRecord:
        fields = dict(
            id=listing_id,
            source=source,
            title=f"Apartment {listing_id}",
            address=f"Teststraße {listing_id}, 10115 Berlin",
            price="650€",
            size="45m²",
        )
        fields.update(overrides)
        return ListingRecord(**fields)

    return _make


@pytest.fixture
def make_adapter():
    return FakeAdapter


@pytest.fixture
def notifier():
    return FakeNotifier()


@pytest.fixture
def applications():
    return FakeApplications()


@pytest.fixture
def store(tmp_path):
    """An initialized SQLite seen store in a temp directory."""
    seen_store = SqliteSeenStore(str(tmp_path / "data" / "seen.db"))
    asyncio.run(seen_store.initialize())
    yield seen_store
    asyncio.run(seen_store.close())


@pytest.fixture
def settings(tmp_path):
    """Fully populated settings without touching the environment."""
    return Settings(
        telegram_bot_token="123456:TEST-TOKEN",
        telegram_chat_id="42",
        database_url=f"sqlite:///{tmp_path / 'bot.db'}",
        applicant_name="Mustermann",
        applicant_first_name="Erika",
        applicant_phone="+49 30 1234567",
        applicant_email="erika@example.com",
        application_text="Sehr geehrte Damen und Herren,\nwir interessieren uns für die Wohnung.",
        config=copy.deepcopy(DEFAULT_CONFIG),
    )
