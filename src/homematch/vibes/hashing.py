"""
Source Hashing

Content fingerprints of the fields that shape generated vibes. A stored
vibes row whose hash matches the current fingerprint is still valid.
"""
import hashlib
import json
from typing import Any, Dict, Optional, Sequence

# Only the leading images shape the hero shots the model sees
HASHED_IMAGE_COUNT = 5

# Sample listings beyond this many never reach the hash
HASHED_SAMPLE_COUNT = 10


def compute_source_hash(fields: Dict[str, Any]) -> str:
    """
    Compute the MD5 hex digest of the canonical JSON of the fields.

    Keys are sorted, so field order never changes the result. The hash
    depends only on content, never on the entity id.
    """
    canonical = json.dumps(
        fields,
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
        default=str,
    )
    return hashlib.md5(canonical.encode("utf-8")).hexdigest()


def property_salient_fields(entity: Any) -> Dict[str, Any]:
    """Salient fields of a listing (ORM row or any object with the same attributes)."""
    images = list(getattr(entity, "images", None) or [])
    bathrooms = getattr(entity, "bathrooms", None)
    return {
        "address": getattr(entity, "address", None),
        "city": getattr(entity, "city", None),
        "property_type": getattr(entity, "property_type", None),
        "bedrooms": getattr(entity, "bedrooms", None),
        # 2 and 2.0 must hash alike
        "bathrooms": float(bathrooms) if bathrooms is not None else None,
        "square_feet": getattr(entity, "square_feet", None),
        "price": getattr(entity, "price", None),
        "year_built": getattr(entity, "year_built", None),
        "images": images[:HASHED_IMAGE_COUNT],
        "image_count": len(images),
    }


def neighborhood_salient_fields(
    entity: Any,
    sample_properties: Optional[Sequence[Dict[str, Any]]] = None,
) -> Dict[str, Any]:
    """
    Salient fields of a neighborhood.

    The leading sample listings are part of the fingerprint, so a
    neighborhood whose listings turned over is regenerated.
    """
    return {
        "name": getattr(entity, "name", None),
        "city": getattr(entity, "city", None),
        "state": getattr(entity, "state", None),
        "metro_area": getattr(entity, "metro_area", None),
        "median_price": getattr(entity, "median_price", None),
        "walk_score": getattr(entity, "walk_score", None),
        "transit_score": getattr(entity, "transit_score", None),
        "sample_properties": list(sample_properties or [])[:HASHED_SAMPLE_COUNT],
    }


def property_source_hash(entity: Any) -> str:
    return compute_source_hash(property_salient_fields(entity))


def neighborhood_source_hash(
    entity: Any,
    sample_properties: Optional[Sequence[Dict[str, Any]]] = None,
) -> str:
    return compute_source_hash(neighborhood_salient_fields(entity, sample_properties))


def should_skip(force: bool, stored_hash: Optional[str], current_hash: str) -> bool:
    """True when stored vibes exist, match the current content, and force is off."""
    if force:
        return False
    return stored_hash is not None and stored_hash == current_hash
