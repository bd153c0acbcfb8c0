"""Tests for listing models."""

from apartment_bot.models.listing import ListingRecord, SessionToken, SourceTag


class TestSourceTag:
    """Tests for SourceTag enum."""

    def test_values_are_partition_keys(self):
        assert SourceTag.WOHNRAUMKARTE.value == "wohnraumkarte"
        assert SourceTag.GEWOBAG.value == "gewobag"
        assert SourceTag.DEGEWO.value == "degewo"

    def test_str_is_value(self):
        assert str(SourceTag.DEGEWO) == "degewo"
        assert f"{SourceTag.GEWOBAG}-3" == "gewobag-3"

    def test_lookup_by_value(self):
        assert SourceTag("gewobag") is SourceTag.GEWOBAG


class TestListingRecord:
    """Tests for ListingRecord dataclass."""

    def test_optional_fields_default_empty(self):
        listing = ListingRecord(
            id="1", source=SourceTag.GEWOBAG, title="T", address="A", price="1€", size="1m²"
        )
        assert listing.rooms == ""
        assert listing.available_from == ""
        assert listing.features == []
        assert listing.image_url == ""
        assert listing.link == ""

    def test_features_not_shared_between_instances(self, make_listing):
        first = make_listing("1")
        second = make_listing("2")
        first.features.append("Balkon")
        assert second.features == []

    def test_maps_link_encodes_address(self, make_listing):
        listing = make_listing("1", address="Foo 1, 10115 Berlin")
        assert listing.maps_link == (
            "https://www.google.com/maps/search/?api=1&query=Foo%201%2C%2010115%20Berlin"
        )

    def test_maps_link_empty_without_address(self, make_listing):
        assert make_listing("1", address="").maps_link == ""

    def test_repr(self, make_listing):
        result = repr(make_listing("gewobag-7", price="500€"))
        assert "gewobag:gewobag-7" in result
        assert "500€" in result


class TestSessionToken:
    def test_age(self):
        token = SessionToken(cookie_string="a=b", issued_at=100.0)
        assert token.age(160.0) == 60.0
