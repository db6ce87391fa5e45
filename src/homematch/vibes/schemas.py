"""
Vibes Output Models

Pydantic models validating the JSON the vision model returns. The model
answers in camelCase; fields are snake_case with camelCase aliases.
"""
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

LIFESTYLE_TAGS = [
    "Work from Home Ready",
    "Commuter Friendly",
    "Cozy Retreat",
    "Entertainment Haven",
    "Family Haven",
    "Culinary Paradise",
    "Pet Paradise",
    "Wellness Sanctuary",
    "Natural Light Haven",
    "Urban Oasis",
    "Weekend Retreat",
    "Outdoor Living",
    "City Views",
    "Beach Lifestyle",
    "Future Family Home",
    "Entertainer's Dream",
    "First-Time Buyer Friendly",
    "Investment Ready",
    "Modern Minimalist",
    "Classic Charm",
]


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class Vibe(_CamelModel):
    """Individual vibe with intensity score."""

    name: str = Field(..., min_length=1, max_length=50)
    intensity: float = Field(..., ge=0, le=1)
    source: Literal["interior", "exterior", "both"]


class LifestyleFit(_CamelModel):
    """Lifestyle the home suits, with a fit score."""

    category: str = Field(..., min_length=1, max_length=50)
    score: float = Field(..., ge=0, le=1)
    reason: str = Field(..., min_length=1, max_length=200)


class NotableFeature(_CamelModel):
    """Feature spotted in the photos."""

    feature: str = Field(..., min_length=1, max_length=100)
    location: Optional[str] = Field(None, max_length=50)
    appeal_factor: str = Field(..., min_length=1, max_length=200, alias="appealFactor")


class Aesthetics(_CamelModel):
    """Visual qualities of the home."""

    lighting_quality: Literal[
        "natural_abundant",
        "natural_moderate",
        "artificial_warm",
        "artificial_cool",
        "mixed",
    ] = Field(..., alias="lightingQuality")
    color_palette: List[str] = Field(default_factory=list, max_length=4, alias="colorPalette")
    architectural_style: str = Field(..., max_length=50, alias="architecturalStyle")
    overall_condition: Literal[
        "pristine",
        "well_maintained",
        "dated_but_clean",
        "needs_work",
    ] = Field(..., alias="overallCondition")


class PropertyVibesOutput(_CamelModel):
    """Vibes generated for a listing."""

    tagline: str = Field(..., min_length=10, max_length=80)
    vibe_statement: str = Field(..., min_length=20, max_length=200, alias="vibeStatement")
    primary_vibes: List[Vibe] = Field(..., min_length=2, max_length=4, alias="primaryVibes")
    lifestyle_fits: List[LifestyleFit] = Field(..., min_length=2, max_length=6, alias="lifestyleFits")
    notable_features: List[NotableFeature] = Field(
        ..., min_length=2, max_length=8, alias="notableFeatures"
    )
    aesthetics: Aesthetics
    emotional_hooks: List[str] = Field(..., min_length=2, max_length=4, alias="emotionalHooks")
    suggested_tags: List[str] = Field(..., min_length=2, max_length=4, alias="suggestedTags")


class NeighborhoodTheme(_CamelModel):
    name: str = Field(..., min_length=1, max_length=50)
    description: str = Field(..., min_length=1, max_length=200)


class LocalHighlight(_CamelModel):
    name: str = Field(..., min_length=1, max_length=100)
    category: str = Field(..., min_length=1, max_length=50)
    description: str = Field(..., min_length=1, max_length=200)


class NeighborhoodVibesOutput(_CamelModel):
    """Vibes generated for a neighborhood."""

    tagline: str = Field(..., min_length=10, max_length=80)
    vibe_statement: str = Field(..., min_length=20, max_length=240, alias="vibeStatement")
    neighborhood_themes: List[NeighborhoodTheme] = Field(
        ..., min_length=2, max_length=5, alias="neighborhoodThemes"
    )
    local_highlights: List[LocalHighlight] = Field(
        default_factory=list, max_length=6, alias="localHighlights"
    )
    resident_fits: List[LifestyleFit] = Field(..., min_length=1, max_length=6, alias="residentFits")
    suggested_tags: List[str] = Field(..., min_length=2, max_length=4, alias="suggestedTags")
