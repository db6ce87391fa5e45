"""
Tests for Source Hashing
"""
from types import SimpleNamespace

from src.homematch.vibes.hashing import (
    compute_source_hash,
    neighborhood_source_hash,
    property_salient_fields,
    property_source_hash,
    should_skip,
)


def make_listing(**overrides):
    values = {
        "id": "p-1",
        "address": "123 Main St",
        "city": "Austin",
        "property_type": "single_family",
        "bedrooms": 3,
        "bathrooms": 2,
        "square_feet": 1800,
        "price": 450000,
        "year_built": 1998,
        "images": [f"https://photos.zillowstatic.com/fp/{i}.jpg" for i in range(8)],
        "description": "Lovely home",
    }
    values.update(overrides)
    return SimpleNamespace(**values)


class TestComputeSourceHash:
    """Tests for compute_source_hash."""

    def test_deterministic(self):
        """Equal content gives equal hashes."""
        assert compute_source_hash({"a": 1, "b": [1, 2]}) == compute_source_hash({"a": 1, "b": [1, 2]})

    def test_key_order_does_not_matter(self):
        """Keys are canonicalized before hashing."""
        assert compute_source_hash({"a": 1, "b": 2}) == compute_source_hash({"b": 2, "a": 1})

    def test_md5_hex(self):
        """The digest is 32 hex characters."""
        digest = compute_source_hash({"a": 1})

        assert len(digest) == 32
        int(digest, 16)

    def test_content_change_changes_hash(self):
        """Different values give different hashes."""
        assert compute_source_hash({"a": 1}) != compute_source_hash({"a": 2})


class TestPropertySourceHash:
    """Tests for listing fingerprints."""

    def test_independent_of_entity_id(self):
        """Two listings with the same content share a hash."""
        assert property_source_hash(make_listing(id="p-1")) == property_source_hash(make_listing(id="p-2"))

    def test_integral_bathrooms_hash_alike(self):
        """2 and 2.0 bathrooms are the same content."""
        assert property_source_hash(make_listing(bathrooms=2)) == property_source_hash(make_listing(bathrooms=2.0))

    def test_only_leading_images_and_count(self):
        """Images past the fifth only matter through the count."""
        listing = make_listing()
        fields = property_salient_fields(listing)

        assert len(fields["images"]) == 5
        assert fields["image_count"] == 8

        reordered_tail = make_listing(images=listing.images[:5] + list(reversed(listing.images[5:])))
        assert property_source_hash(reordered_tail) == property_source_hash(listing)

        one_more = make_listing(images=listing.images + ["https://photos.zillowstatic.com/fp/x.jpg"])
        assert property_source_hash(one_more) != property_source_hash(listing)

    def test_non_salient_fields_ignored(self):
        """Descriptions do not feed the hash."""
        assert property_source_hash(make_listing(description="Changed")) == property_source_hash(make_listing())

    def test_price_change(self):
        """A price change invalidates stored vibes."""
        assert property_source_hash(make_listing(price=460000)) != property_source_hash(make_listing())

    def test_missing_images(self):
        """Listings without images still hash."""
        assert property_source_hash(make_listing(images=None)) == property_source_hash(make_listing(images=[]))


class TestNeighborhoodSourceHash:
    """Tests for neighborhood fingerprints."""

    def test_walk_score_change(self):
        """Neighborhood attributes feed the hash."""
        base = dict(id="n-1", name="Zilker", city="Austin", state="TX", metro_area="Austin",
                    median_price=800000, walk_score=60, transit_score=40)
        changed = dict(base, walk_score=65)

        assert neighborhood_source_hash(SimpleNamespace(**base)) != neighborhood_source_hash(SimpleNamespace(**changed))

    def test_sample_listings_feed_the_hash(self):
        """Different sample listings give different hashes."""
        neighborhood = SimpleNamespace(name="Zilker", city="Austin", state="TX")
        first = [{"address": "1 Barton Springs Rd", "price": 700000}]
        second = [{"address": "2 Lamar Blvd", "price": 650000}]

        assert neighborhood_source_hash(neighborhood, first) != neighborhood_source_hash(neighborhood, second)

    def test_only_leading_sample_listings_count(self):
        """Listings past the tenth never change the hash."""
        neighborhood = SimpleNamespace(name="Zilker", city="Austin", state="TX")
        sample = [{"address": f"{i} Oak St", "price": 500000 + i} for i in range(10)]
        longer = sample + [{"address": "99 Elm St", "price": 900000}]

        assert neighborhood_source_hash(neighborhood, sample) == neighborhood_source_hash(neighborhood, longer)


class TestShouldSkip:
    """Tests for should_skip."""

    def test_matching_hash(self):
        assert should_skip(False, "abc", "abc") is True

    def test_missing_hash(self):
        assert should_skip(False, None, "abc") is False

    def test_stale_hash(self):
        assert should_skip(False, "old", "abc") is False

    def test_force(self):
        assert should_skip(True, "abc", "abc") is False
