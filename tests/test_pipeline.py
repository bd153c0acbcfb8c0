"""Tests for the fetch -> filter -> dispatch -> persist pipeline."""

import asyncio
from unittest.mock import AsyncMock

import pytest

from apartment_bot.models.listing import SourceTag
from apartment_bot.services.notifier import TelegramNotifier
from apartment_bot.services.pipeline import ListingPipeline, PipelineResult

from conftest import FakeAdapter, FakeApplications, FakeNotifier


def seen(store, source, listing_id):
    return asyncio.run(store.has(source, listing_id))


class TestListingPipeline:
    """Tests for ListingPipeline.run()."""

    def test_all_new_listings_dispatched_once_and_marked(self, store, notifier, make_listing):
        adapter = FakeAdapter([make_listing("A"), make_listing("B"), make_listing("C")])
        pipeline = ListingPipeline(store, notifier)

        result = asyncio.run(pipeline.run(adapter))

        assert notifier.sent_ids == ["A", "B", "C"]
        assert result.new == ["A", "B", "C"]
        assert result.fetched == 3
        for listing_id in ("A", "B", "C"):
            assert seen(store, SourceTag.GEWOBAG, listing_id)

    def test_seen_listings_are_skipped(self, store, notifier, make_listing):
        asyncio.run(store.mark_seen(SourceTag.GEWOBAG, "B"))
        adapter = FakeAdapter([make_listing("A"), make_listing("B"), make_listing("C")])

        result = asyncio.run(ListingPipeline(store, notifier).run(adapter))

        assert notifier.sent_ids == ["A", "C"]
        assert result.skipped == 1
        assert result.new == ["A", "C"]

    def test_second_run_sends_nothing(self, store, notifier, make_listing):
        adapter = FakeAdapter([make_listing("A"), make_listing("B")])
        pipeline = ListingPipeline(store, notifier)

        asyncio.run(pipeline.run(adapter))
        result = asyncio.run(pipeline.run(adapter))

        assert notifier.sent_ids == ["A", "B"]
        assert result.new == []
        assert result.skipped == 2

    def test_failed_record_is_not_marked_and_batch_continues(self, store, make_listing):
        notifier = FakeNotifier(fail_ids={"B"})
        adapter = FakeAdapter([make_listing("A"), make_listing("B"), make_listing("C")])

        result = asyncio.run(ListingPipeline(store, notifier).run(adapter))

        assert notifier.sent_ids == ["A", "C"]
        assert result.failed == ["B"]
        assert seen(store, SourceTag.GEWOBAG, "A")
        assert not seen(store, SourceTag.GEWOBAG, "B")
        assert seen(store, SourceTag.GEWOBAG, "C")

    def test_failed_record_is_retried_next_cycle(self, store, make_listing):
        notifier = FakeNotifier(fail_ids={"B"})
        adapter = FakeAdapter([make_listing("A"), make_listing("B")])
        pipeline = ListingPipeline(store, notifier)

        asyncio.run(pipeline.run(adapter))
        notifier.fail_ids.clear()
        result = asyncio.run(pipeline.run(adapter))

        assert result.new == ["B"]
        assert notifier.sent_ids == ["A", "B"]

    def test_store_error_fails_only_that_record(self, notifier, make_listing):
        store = AsyncMock()
        store.has.side_effect = [False, RuntimeError("database is locked"), False]
        adapter = FakeAdapter([make_listing("A"), make_listing("B"), make_listing("C")])

        result = asyncio.run(ListingPipeline(store, notifier).run(adapter))

        assert result.failed == ["B"]
        assert notifier.sent_ids == ["A", "C"]
        assert store.mark_seen.await_count == 2

    def test_fetch_error_yields_empty_result(self, store, notifier):
        adapter = FakeAdapter(error=ConnectionError("portal down"))

        result = asyncio.run(ListingPipeline(store, notifier).run(adapter))

        assert result == PipelineResult(source="gewobag")
        assert notifier.sent == []

    def test_exception_escaping_fetch_is_contained(self, store, notifier):
        adapter = FakeAdapter()
        adapter.fetch_all = AsyncMock(side_effect=RuntimeError("unexpected"))

        result = asyncio.run(ListingPipeline(store, notifier).run(adapter))

        assert result.fetched == 0
        assert result.new == []

    def test_portal_sources_do_not_apply(self, store, notifier, applications, make_listing):
        adapter = FakeAdapter([make_listing("A")])

        asyncio.run(ListingPipeline(store, notifier, applications).run(adapter))

        assert applications.submitted == []
        assert notifier.sent[0][1] is None

    def test_rejects_unknown_policy(self, store, notifier):
        with pytest.raises(ValueError, match="policy"):
            ListingPipeline(store, notifier, on_application_failure="ignore")

    def test_summary(self):
        result = PipelineResult(source="degewo", fetched=4, new=["a"], skipped=2, failed=["b"])
        assert result.summary() == "degewo: 4 fetched, 1 new, 2 already seen, 1 failed"


class TestApplications:
    """Application handling for sources that submit applications."""

    @pytest.fixture
    def api_listing(self, make_listing):
        def _make(listing_id):
            return make_listing(listing_id, source=SourceTag.WOHNRAUMKARTE)

        return _make

    def test_applies_then_notifies(self, store, notifier, applications, api_listing):
        adapter = FakeAdapter([api_listing("w1")], source_tag=SourceTag.WOHNRAUMKARTE, submits_applications=True)

        asyncio.run(ListingPipeline(store, notifier, applications).run(adapter))

        assert applications.submitted == ["w1"]
        assert notifier.sent[0][1] is True
        assert seen(store, SourceTag.WOHNRAUMKARTE, "w1")

    def test_application_failure_marks_seen_by_default(self, store, notifier, api_listing):
        applications = FakeApplications(fail_ids={"w1"})
        adapter = FakeAdapter(
            [api_listing("w1"), api_listing("w2")],
            source_tag=SourceTag.WOHNRAUMKARTE,
            submits_applications=True,
        )

        result = asyncio.run(ListingPipeline(store, notifier, applications).run(adapter))

        assert [(listing.id, applied) for listing, applied in notifier.sent] == [("w1", False), ("w2", True)]
        assert result.new == ["w1", "w2"]
        assert seen(store, SourceTag.WOHNRAUMKARTE, "w1")

    def test_application_failure_retry_policy_leaves_unseen(self, store, notifier, api_listing):
        applications = FakeApplications(fail_ids={"w1"})
        adapter = FakeAdapter([api_listing("w1")], source_tag=SourceTag.WOHNRAUMKARTE, submits_applications=True)
        pipeline = ListingPipeline(store, notifier, applications, on_application_failure="retry")

        result = asyncio.run(pipeline.run(adapter))

        assert result.failed == ["w1"]
        assert notifier.sent == []
        assert not seen(store, SourceTag.WOHNRAUMKARTE, "w1")

        applications.fail_ids.clear()
        result = asyncio.run(pipeline.run(adapter))
        assert result.new == ["w1"]
        assert applications.submitted == ["w1"]

    def test_missing_application_service_fails_record(self, store, notifier, api_listing):
        adapter = FakeAdapter([api_listing("w1")], source_tag=SourceTag.WOHNRAUMKARTE, submits_applications=True)

        result = asyncio.run(ListingPipeline(store, notifier).run(adapter))

        assert result.failed == ["w1"]
        assert not seen(store, SourceTag.WOHNRAUMKARTE, "w1")


class TestEndToEnd:
    def test_gewobag_listing_reaches_telegram_and_seen_set(self, store, make_listing):
        bot = AsyncMock()
        notifier = TelegramNotifier(bot, chat_id="42")
        listing = make_listing("gewobag-7", title="Bar", address="Foo 1", price="500€", size="40m²")

        result = asyncio.run(ListingPipeline(store, notifier).run(FakeAdapter([listing])))

        assert result.new == ["gewobag-7"]
        bot.send_message.assert_awaited_once()
        text = bot.send_message.call_args.kwargs["text"]
        assert "Foo 1" in text
        assert "500€" in text
        assert bot.send_message.call_args.kwargs["chat_id"] == "42"
        assert asyncio.run(store.has("gewobag", "gewobag-7")) is True
