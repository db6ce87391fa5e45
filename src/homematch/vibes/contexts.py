"""
Generation Contexts

Closed set of tagged payloads the vibes service generates from. The
``kind`` field selects the prompt and output model.
"""
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field


class PropertyContext(BaseModel):
    """Listing facts and gallery sent to the vision model."""

    kind: Literal["property"] = "property"
    entity_id: str
    address: str
    city: Optional[str] = None
    state: Optional[str] = None
    price: Optional[int] = None
    bedrooms: Optional[int] = None
    bathrooms: Optional[float] = None
    square_feet: Optional[int] = None
    property_type: Optional[str] = None
    year_built: Optional[int] = None
    lot_size_sqft: Optional[int] = None
    amenities: Optional[List[str]] = None
    description: Optional[str] = None
    images: List[str] = Field(default_factory=list)

    @classmethod
    def from_entity(cls, entity: Any) -> "PropertyContext":
        return cls(
            entity_id=str(entity.id),
            address=entity.address,
            city=entity.city,
            state=entity.state,
            price=entity.price,
            bedrooms=entity.bedrooms,
            bathrooms=entity.bathrooms,
            square_feet=entity.square_feet,
            property_type=entity.property_type,
            year_built=entity.year_built,
            lot_size_sqft=entity.lot_size_sqft,
            amenities=list(entity.amenities) if entity.amenities else None,
            description=entity.description,
            images=list(entity.images or []),
        )

    def input_summary(self) -> Dict[str, Any]:
        """Listing facts stored alongside the generated vibes."""
        return self.model_dump(
            include={
                "address", "city", "state", "price", "bedrooms", "bathrooms",
                "square_feet", "property_type", "year_built", "lot_size_sqft",
                "amenities",
            }
        )


class ListingStats(BaseModel):
    """Aggregate statistics of the listings in a neighborhood."""

    total_properties: int
    avg_price: Optional[float] = None
    median_price: Optional[float] = None
    price_range_min: Optional[int] = None
    price_range_max: Optional[int] = None
    avg_bedrooms: Optional[float] = None
    avg_bathrooms: Optional[float] = None
    avg_square_feet: Optional[float] = None


class SampleListing(BaseModel):
    address: str
    price: Optional[int] = None
    bedrooms: Optional[int] = None
    bathrooms: Optional[float] = None
    property_type: Optional[str] = None


class NeighborhoodContext(BaseModel):
    """Neighborhood facts, listing sample and optional statistics."""

    kind: Literal["neighborhood"] = "neighborhood"
    entity_id: str
    name: str
    city: Optional[str] = None
    state: Optional[str] = None
    metro_area: Optional[str] = None
    median_price: Optional[int] = None
    walk_score: Optional[int] = None
    transit_score: Optional[int] = None
    listing_stats: Optional[ListingStats] = None
    sample_properties: List[SampleListing] = Field(default_factory=list)

    @classmethod
    def from_entity(
        cls,
        entity: Any,
        sample_properties: Optional[List[Dict[str, Any]]] = None,
        listing_stats: Optional[Dict[str, Any]] = None,
    ) -> "NeighborhoodContext":
        return cls(
            entity_id=str(entity.id),
            name=entity.name,
            city=entity.city,
            state=entity.state,
            metro_area=entity.metro_area,
            median_price=entity.median_price,
            walk_score=entity.walk_score,
            transit_score=entity.transit_score,
            listing_stats=ListingStats(**listing_stats) if listing_stats else None,
            sample_properties=[SampleListing(**p) for p in sample_properties or []],
        )

    def input_summary(self) -> Dict[str, Any]:
        """Neighborhood facts stored alongside the generated vibes."""
        return {
            "neighborhood": self.model_dump(
                include={
                    "name", "city", "state", "metro_area", "median_price",
                    "walk_score", "transit_score",
                }
            ),
            "listing_stats": self.listing_stats.model_dump() if self.listing_stats else None,
            "sample_properties": [p.model_dump() for p in self.sample_properties],
        }


VibesContext = Annotated[
    Union[PropertyContext, NeighborhoodContext],
    Field(discriminator="kind"),
]
