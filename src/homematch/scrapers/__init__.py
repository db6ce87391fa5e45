"""
Scrapers Package

Image source clients for listing galleries.
"""
from src.homematch.scrapers.zillow_images import (
    ZillowImageClient,
    filter_gallery_urls,
    is_street_view_image_url,
    is_zillow_static_image_url,
)

__all__ = [
    "ZillowImageClient",
    "filter_gallery_urls",
    "is_street_view_image_url",
    "is_zillow_static_image_url",
]
