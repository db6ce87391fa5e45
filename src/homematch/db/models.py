"""
SQLAlchemy ORM Models

Listings the vibes backfill reads, and the generated vibes it writes.
Vibes tables hold at most one row per entity (unique entity id).
"""
import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import (
    String, Integer, Float, DateTime, Text, ForeignKey, Index, CheckConstraint
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.homematch.db.base import Base, TimestampMixin, SoftDeleteMixin


def new_uuid() -> str:
    return str(uuid.uuid4())


class Neighborhood(Base, TimestampMixin):
    """Neighborhood the app groups listings into."""
    __tablename__ = "neighborhoods"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    city: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    state: Mapped[Optional[str]] = mapped_column(
        String(2),
        nullable=True,
        comment="State abbreviation (CA)"
    )
    metro_area: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    median_price: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    walk_score: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    transit_score: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    properties: Mapped[list["Property"]] = relationship(
        "Property",
        back_populates="neighborhood"
    )
    vibes: Mapped[Optional["NeighborhoodVibes"]] = relationship(
        "NeighborhoodVibes",
        back_populates="neighborhood",
        uselist=False,
        cascade="all, delete-orphan"
    )

    __table_args__ = (
        Index("idx_neighborhoods_state", "state"),
        Index("idx_neighborhoods_created_at", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<Neighborhood(id={self.id}, name={self.name}, state={self.state})>"


class Property(Base, TimestampMixin, SoftDeleteMixin):
    """
    Listing table.

    One record per listing. Images and the Zillow refresh marker are the
    only columns the vibes backfill writes.
    """
    __tablename__ = "properties"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    zpid: Mapped[Optional[str]] = mapped_column(
        String(32),
        nullable=True,
        comment="Zillow property id"
    )

    address: Mapped[str] = mapped_column(String(255), nullable=False)
    city: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    state: Mapped[Optional[str]] = mapped_column(String(2), nullable=True)
    zip_code: Mapped[Optional[str]] = mapped_column(String(10), nullable=True)

    price: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    bedrooms: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    bathrooms: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    square_feet: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    property_type: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    year_built: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    lot_size_sqft: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    amenities: Mapped[Optional[list]] = mapped_column(JSONB, nullable=True)
    images: Mapped[Optional[list]] = mapped_column(
        JSONB,
        nullable=True,
        comment="Ordered gallery image URLs"
    )

    neighborhood_id: Mapped[Optional[str]] = mapped_column(
        String(36),
        ForeignKey("neighborhoods.id", ondelete="SET NULL"),
        nullable=True
    )

    # Zillow image refresh marker
    zillow_images_refreshed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        comment="Last Zillow gallery refresh attempt"
    )
    zillow_images_refreshed_count: Mapped[Optional[int]] = mapped_column(
        Integer,
        nullable=True,
        comment="Gallery size observed at last refresh"
    )
    zillow_images_refresh_status: Mapped[Optional[str]] = mapped_column(
        String(20),
        nullable=True,
        comment="ok, empty or failed"
    )

    neighborhood: Mapped[Optional[Neighborhood]] = relationship(
        "Neighborhood",
        back_populates="properties"
    )
    vibes: Mapped[Optional["PropertyVibes"]] = relationship(
        "PropertyVibes",
        back_populates="property",
        uselist=False,
        cascade="all, delete-orphan"
    )

    __table_args__ = (
        CheckConstraint(
            "zillow_images_refresh_status IN ('ok', 'empty', 'failed')",
            name="check_zillow_images_refresh_status"
        ),
        Index("idx_properties_created_at", "created_at"),
        Index("idx_properties_price", "price"),
        Index("idx_properties_neighborhood_id", "neighborhood_id"),
    )

    @property
    def image_count(self) -> int:
        return len(self.images or [])

    def __repr__(self) -> str:
        return f"<Property(id={self.id}, zpid={self.zpid}, address={self.address})>"


class PropertyVibes(Base, TimestampMixin):
    """Generated vibes for a listing (1:1 with properties)."""
    __tablename__ = "property_vibes"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    property_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("properties.id", ondelete="CASCADE"),
        nullable=False,
        unique=True
    )

    tagline: Mapped[str] = mapped_column(String(255), nullable=False)
    vibe_statement: Mapped[str] = mapped_column(Text, nullable=False)
    feature_highlights: Mapped[Optional[list]] = mapped_column(JSONB, nullable=True)
    lifestyle_fits: Mapped[Optional[list]] = mapped_column(JSONB, nullable=True)
    suggested_tags: Mapped[Optional[list]] = mapped_column(JSONB, nullable=True)
    emotional_hooks: Mapped[Optional[list]] = mapped_column(JSONB, nullable=True)
    primary_vibes: Mapped[Optional[list]] = mapped_column(JSONB, nullable=True)
    aesthetics: Mapped[Optional[dict]] = mapped_column(JSONB, nullable=True)

    input_data: Mapped[Optional[dict]] = mapped_column(JSONB, nullable=True)
    raw_output: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    model_used: Mapped[str] = mapped_column(String(100), nullable=False)
    images_analyzed: Mapped[Optional[list]] = mapped_column(JSONB, nullable=True)
    source_data_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    generation_cost_usd: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    confidence: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    property: Mapped[Property] = relationship("Property", back_populates="vibes")

    def __repr__(self) -> str:
        return f"<PropertyVibes(property_id={self.property_id}, hash={self.source_data_hash})>"


class NeighborhoodVibes(Base, TimestampMixin):
    """Generated vibes for a neighborhood (1:1 with neighborhoods)."""
    __tablename__ = "neighborhood_vibes"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    neighborhood_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("neighborhoods.id", ondelete="CASCADE"),
        nullable=False,
        unique=True
    )

    tagline: Mapped[str] = mapped_column(String(255), nullable=False)
    vibe_statement: Mapped[str] = mapped_column(Text, nullable=False)
    neighborhood_themes: Mapped[Optional[list]] = mapped_column(JSONB, nullable=True)
    local_highlights: Mapped[Optional[list]] = mapped_column(JSONB, nullable=True)
    resident_fits: Mapped[Optional[list]] = mapped_column(JSONB, nullable=True)
    suggested_tags: Mapped[Optional[list]] = mapped_column(JSONB, nullable=True)

    input_data: Mapped[Optional[dict]] = mapped_column(JSONB, nullable=True)
    raw_output: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    model_used: Mapped[str] = mapped_column(String(100), nullable=False)
    source_data_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    generation_cost_usd: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    confidence: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    neighborhood: Mapped[Neighborhood] = relationship("Neighborhood", back_populates="vibes")

    def __repr__(self) -> str:
        return f"<NeighborhoodVibes(neighborhood_id={self.neighborhood_id}, hash={self.source_data_hash})>"


# Column name of the entity key, per vibes model
VIBES_ENTITY_KEYS: dict[type, str] = {
    PropertyVibes: "property_id",
    NeighborhoodVibes: "neighborhood_id",
}
