"""
Tests for the Image Refresh Gate

Refresh policy, non-destructive failure handling and marker writes.
"""
from datetime import datetime, timezone
from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest

from src.homematch.pipelines.image_refresh import ImageRefreshGate
from src.homematch.utils.exceptions import DataSourceError, ImageSourceError

NOW = datetime(2026, 5, 1, 12, 0, tzinfo=timezone.utc)


def zillow_urls(count, start=0):
    return [f"https://photos.zillowstatic.com/fp/img{i}-cc_ft_1536.jpg" for i in range(start, start + count)]


def make_listing(images=None, zpid="12345", status=None, count=None, refreshed_at=None):
    return SimpleNamespace(
        id="prop-1",
        zpid=zpid,
        images=images,
        zillow_images_refreshed_at=refreshed_at,
        zillow_images_refreshed_count=count,
        zillow_images_refresh_status=status,
    )


@pytest.fixture
def store():
    return SimpleNamespace(update_property_images=AsyncMock())


def make_gate(store, fetched=None, error=None, **kwargs):
    client = SimpleNamespace(fetch_image_urls=AsyncMock(return_value=fetched, side_effect=error))
    options = {"enabled": True, "min_images": 10, "sleep": AsyncMock(), "now": lambda: NOW}
    options.update(kwargs)
    return ImageRefreshGate(store, client, **options), client


class TestRefreshPolicy:
    """Tests for deciding whether to fetch."""

    async def test_disabled_gate_does_nothing(self, store):
        """A disabled gate never calls Zillow."""
        gate, client = make_gate(store, fetched=zillow_urls(3), enabled=False)

        outcome = await gate.maybe_refresh(make_listing(images=zillow_urls(2)))

        assert outcome.status == "disabled"
        client.fetch_image_urls.assert_not_awaited()

    async def test_listing_without_zpid(self, store):
        """Listings without a zpid cannot be refreshed."""
        gate, client = make_gate(store, fetched=zillow_urls(3))

        outcome = await gate.maybe_refresh(make_listing(zpid=None))

        assert outcome.status == "no_zpid"
        client.fetch_image_urls.assert_not_awaited()

    async def test_complete_gallery_with_marker_is_skipped(self, store):
        """Eleven images with a successful marker and min_images 10 need no refresh."""
        gate, client = make_gate(store, fetched=zillow_urls(20))
        listing = make_listing(images=zillow_urls(11), status="ok", count=11, refreshed_at=NOW)

        outcome = await gate.maybe_refresh(listing)

        assert outcome.status == "skipped"
        assert outcome.image_count == 11
        client.fetch_image_urls.assert_not_awaited()
        store.update_property_images.assert_not_awaited()

    async def test_small_gallery_is_refreshed(self, store):
        """A gallery below min_images is fetched even with a marker."""
        gate, client = make_gate(store, fetched=zillow_urls(12))
        listing = make_listing(images=zillow_urls(4), status="ok", count=4, refreshed_at=NOW)

        outcome = await gate.maybe_refresh(listing)

        assert outcome.status == "ok"
        client.fetch_image_urls.assert_awaited_once_with("12345")

    async def test_missing_marker_is_refreshed(self, store):
        """A large gallery that was never refreshed is fetched."""
        gate, client = make_gate(store, fetched=zillow_urls(15))

        await gate.maybe_refresh(make_listing(images=zillow_urls(15, start=100)))

        client.fetch_image_urls.assert_awaited_once()

    async def test_failed_marker_is_retried(self, store):
        """A previous failed refresh does not count as successful."""
        gate, client = make_gate(store, fetched=zillow_urls(15))
        listing = make_listing(images=zillow_urls(15), status="failed", count=15, refreshed_at=NOW)

        await gate.maybe_refresh(listing)

        client.fetch_image_urls.assert_awaited_once()

    async def test_force_images_overrides_marker(self, store):
        """force_images refreshes complete, marked galleries."""
        gate, client = make_gate(store, fetched=zillow_urls(15), force_images=True)
        listing = make_listing(images=zillow_urls(11), status="ok", count=11, refreshed_at=NOW)

        await gate.maybe_refresh(listing)

        client.fetch_image_urls.assert_awaited_once()


class TestRefreshOutcomes:
    """Tests for applying fetched galleries."""

    async def test_failure_keeps_existing_images(self, store):
        """A failed fetch records a failed marker and never clears the gallery."""
        existing = zillow_urls(5)
        gate, _ = make_gate(store, error=ImageSourceError("status 503"))
        listing = make_listing(images=list(existing))

        outcome = await gate.maybe_refresh(listing)

        assert outcome.status == "failed"
        assert outcome.changed is False
        assert listing.images == existing
        store.update_property_images.assert_awaited_once_with(
            "prop-1", refreshed_at=NOW, refreshed_count=5, status="failed", images=None
        )
        assert listing.zillow_images_refresh_status == "failed"

    async def test_empty_gallery_keeps_existing_images(self, store):
        """Galleries with no usable photos leave stored images alone."""
        existing = zillow_urls(3)
        fetched = ["https://maps.googleapis.com/maps/api/streetview?location=1,2", "http://insecure.example/a.jpg"]
        gate, _ = make_gate(store, fetched=fetched)
        listing = make_listing(images=list(existing))

        outcome = await gate.maybe_refresh(listing)

        assert outcome.status == "empty"
        assert listing.images == existing
        store.update_property_images.assert_awaited_once_with(
            "prop-1", refreshed_at=NOW, refreshed_count=0, status="empty", images=None
        )

    async def test_new_gallery_replaces_images(self, store):
        """A different gallery is written and mirrored onto the listing."""
        fetched = zillow_urls(12) + zillow_urls(2)
        gate, _ = make_gate(store, fetched=fetched)
        listing = make_listing(images=zillow_urls(3, start=50))

        outcome = await gate.maybe_refresh(listing)

        assert outcome.status == "ok"
        assert outcome.changed is True
        assert outcome.image_count == 12
        assert listing.images == zillow_urls(12)
        assert listing.zillow_images_refresh_status == "ok"
        assert listing.zillow_images_refreshed_count == 12
        store.update_property_images.assert_awaited_once_with(
            "prop-1", refreshed_at=NOW, refreshed_count=12, status="ok", images=zillow_urls(12)
        )

    async def test_unchanged_gallery_with_matching_marker_writes_nothing(self, store):
        """Same gallery and same marker is a no-op."""
        gallery = zillow_urls(6)
        gate, _ = make_gate(store, fetched=list(gallery))
        listing = make_listing(images=list(gallery), status="ok", count=6, refreshed_at=NOW)

        outcome = await gate.maybe_refresh(listing)

        assert outcome.status == "unchanged"
        assert outcome.changed is False
        store.update_property_images.assert_not_awaited()

    async def test_unchanged_gallery_without_marker_records_it(self, store):
        """Same gallery without a marker only writes the marker."""
        gallery = zillow_urls(12)
        gate, _ = make_gate(store, fetched=list(gallery))
        listing = make_listing(images=list(gallery))

        outcome = await gate.maybe_refresh(listing)

        assert outcome.status == "unchanged"
        store.update_property_images.assert_awaited_once_with(
            "prop-1", refreshed_at=NOW, refreshed_count=12, status="ok", images=None
        )

    async def test_store_write_failure_leaves_listing_untouched(self, store):
        """When the gallery cannot be saved the listing keeps its old images."""
        existing = zillow_urls(2)
        store.update_property_images.side_effect = DataSourceError("write failed")
        gate, _ = make_gate(store, fetched=zillow_urls(12))
        listing = make_listing(images=list(existing))

        outcome = await gate.maybe_refresh(listing)

        assert outcome.status == "failed"
        assert listing.images == existing
        assert listing.zillow_images_refresh_status is None

    async def test_delay_after_each_fetch(self, store):
        """The image delay follows every Zillow call, failed or not."""
        sleep = AsyncMock()
        gate, _ = make_gate(store, error=ImageSourceError("boom"), delay_seconds=0.6, sleep=sleep)

        await gate.maybe_refresh(make_listing(images=[]))

        sleep.assert_awaited_once_with(0.6)
