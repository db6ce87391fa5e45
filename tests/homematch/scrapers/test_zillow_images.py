"""
Tests for the Zillow Image Scraper
"""
import httpx
import pytest

from src.homematch.scrapers.zillow_images import (
    ZillowImageClient,
    filter_gallery_urls,
    is_street_view_image_url,
    is_zillow_static_image_url,
)
from src.homematch.utils.exceptions import ImageSourceError

PHOTO = "https://photos.zillowstatic.com/fp/abc123-cc_ft_1536.jpg"


class TestUrlFilters:
    """Tests for gallery URL filtering."""

    def test_zillow_static_hosts(self):
        """Only https zillowstatic.com hosts qualify."""
        assert is_zillow_static_image_url(PHOTO) is True
        assert is_zillow_static_image_url("https://maps.zillowstatic.com/x.jpg") is True
        assert is_zillow_static_image_url("http://photos.zillowstatic.com/x.jpg") is False
        assert is_zillow_static_image_url("https://zillowstatic.com.evil.example/x.jpg") is False
        assert is_zillow_static_image_url("not a url") is False

    def test_street_view(self):
        """Google Street View API images are recognized."""
        assert is_street_view_image_url(
            "https://maps.googleapis.com/maps/api/streetview?size=600x400&location=1,2"
        ) is True
        assert is_street_view_image_url(PHOTO) is False

    def test_filter_gallery(self):
        """Filtering drops junk and duplicates and keeps order."""
        second = "https://photos.zillowstatic.com/fp/def456-cc_ft_1536.jpg"
        urls = [
            PHOTO,
            "https://maps.googleapis.com/maps/api/streetview?location=1,2",
            None,
            "  ",
            second,
            PHOTO,
            "https://example.com/photo.jpg",
        ]

        assert filter_gallery_urls(urls) == [PHOTO, second]


class TestZillowImageClient:
    """Tests for ZillowImageClient."""

    async def test_fetch_image_urls(self):
        """Strings and url objects are both accepted."""
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json={"images": [PHOTO, {"url": "https://photos.zillowstatic.com/fp/2.jpg"}, 7]})

        client = ZillowImageClient("rapid-key", host="zillow.p.rapidapi.com", transport=httpx.MockTransport(handler))

        urls = await client.fetch_image_urls("2077")

        assert urls == [PHOTO, "https://photos.zillowstatic.com/fp/2.jpg"]
        request = seen[0]
        assert request.url.host == "zillow.p.rapidapi.com"
        assert request.url.path == "/images"
        assert request.url.params["zpid"] == "2077"
        assert request.headers["X-RapidAPI-Key"] == "rapid-key"
        assert request.headers["X-RapidAPI-Host"] == "zillow.p.rapidapi.com"

    async def test_missing_images_key(self):
        """A payload without images yields an empty list."""
        client = ZillowImageClient(
            "rapid-key", transport=httpx.MockTransport(lambda request: httpx.Response(200, json={"message": "none"}))
        )

        assert await client.fetch_image_urls("1") == []

    async def test_http_error(self):
        """Non-2xx responses raise ImageSourceError."""
        client = ZillowImageClient(
            "rapid-key", transport=httpx.MockTransport(lambda request: httpx.Response(503))
        )

        with pytest.raises(ImageSourceError, match="503"):
            await client.fetch_image_urls("1")

    async def test_transport_error(self):
        """Network failures raise ImageSourceError."""
        def handler(request):
            raise httpx.ConnectError("connection refused")

        client = ZillowImageClient("rapid-key", transport=httpx.MockTransport(handler))

        with pytest.raises(ImageSourceError):
            await client.fetch_image_urls("1")
