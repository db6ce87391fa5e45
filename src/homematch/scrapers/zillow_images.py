"""
Zillow Image Scraper

Fetches listing galleries from the RapidAPI Zillow images endpoint and
filters them down to usable Zillow photos.
"""
from typing import Any, Iterable, List, Optional
from urllib.parse import urlparse

import httpx

from src.homematch.utils.exceptions import ImageSourceError
from src.homematch.utils.logger import get_logger

logger = get_logger(__name__)

ZILLOW_STATIC_HOST = "photos.zillowstatic.com"
ZILLOW_STATIC_DOMAIN = ".zillowstatic.com"


def is_street_view_image_url(url: str) -> bool:
    """True for Google Street View API images Zillow mixes into galleries."""
    try:
        parsed = urlparse(url)
    except ValueError:
        return False
    host = (parsed.hostname or "").lower()
    if host == "maps.googleapis.com" and "/maps/api/streetview" in parsed.path:
        return True
    return "streetview" in parsed.path.lower() and "google" in host


def is_zillow_static_image_url(url: str) -> bool:
    """True for https URLs served from zillowstatic.com."""
    try:
        parsed = urlparse(url)
    except ValueError:
        return False
    if parsed.scheme != "https":
        return False
    host = (parsed.hostname or "").lower()
    return host == ZILLOW_STATIC_HOST or host.endswith(ZILLOW_STATIC_DOMAIN)


def filter_gallery_urls(urls: Iterable[Any]) -> List[str]:
    """
    Keep well-formed Zillow photo URLs.

    Street View shots and duplicates are dropped; order is preserved.
    """
    seen = set()
    gallery: List[str] = []
    for url in urls:
        if not isinstance(url, str):
            continue
        url = url.strip()
        if not url or url in seen:
            continue
        if is_street_view_image_url(url) or not is_zillow_static_image_url(url):
            continue
        seen.add(url)
        gallery.append(url)
    return gallery


def _extract_urls(payload: Any) -> List[str]:
    images = payload.get("images") if isinstance(payload, dict) else None
    if not isinstance(images, list):
        return []

    urls = []
    for item in images:
        if isinstance(item, str):
            urls.append(item)
        elif isinstance(item, dict) and isinstance(item.get("url"), str):
            urls.append(item["url"])
    return urls


class ZillowImageClient:
    """
    Client for the RapidAPI Zillow images endpoint.

    Returns raw gallery URLs; callers filter them with filter_gallery_urls.
    """

    def __init__(
        self,
        api_key: str,
        host: str = "us-housing-market-data1.p.rapidapi.com",
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize the image client.

        Args:
            api_key: RapidAPI key
            host: RapidAPI host serving the images endpoint
            timeout: Request timeout in seconds
            transport: Optional httpx transport (tests)
        """
        self.api_key = api_key
        self.host = host
        self.timeout = timeout
        self.transport = transport
        logger.debug("zillow_image_client_initialized", host=host)

    async def fetch_image_urls(self, zpid: str) -> List[str]:
        """
        Fetch the gallery of a listing.

        Args:
            zpid: Zillow property id

        Returns:
            Gallery URLs as returned by the API

        Raises:
            ImageSourceError: On HTTP or transport failures
        """
        url = f"https://{self.host}/images"
        headers = {
            "X-RapidAPI-Key": self.api_key,
            "X-RapidAPI-Host": self.host,
        }

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.get(url, params={"zpid": zpid}, headers=headers)
                response.raise_for_status()
                payload = response.json()
        except httpx.HTTPStatusError as e:
            logger.warning(
                "zillow_images_request_failed",
                zpid=zpid,
                status_code=e.response.status_code
            )
            raise ImageSourceError(
                f"Zillow images request failed with status {e.response.status_code}",
                original_error=e,
            ) from e
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(
                "zillow_images_request_failed",
                zpid=zpid,
                error=str(e),
                error_type=type(e).__name__
            )
            raise ImageSourceError(f"Zillow images request failed: {e}", original_error=e) from e

        urls = _extract_urls(payload)
        logger.debug("zillow_images_fetched", zpid=zpid, count=len(urls))
        return urls
