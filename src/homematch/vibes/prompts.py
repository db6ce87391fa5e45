"""
Vibes Prompts

System and user prompts for listing and neighborhood vibes.
"""
from typing import Optional

from src.homematch.vibes.contexts import NeighborhoodContext, PropertyContext
from src.homematch.vibes.schemas import LIFESTYLE_TAGS

_TAG_LIST = "\n".join(f"- {tag}" for tag in LIFESTYLE_TAGS)

PROPERTY_SYSTEM_PROMPT = f"""You are a real estate copywriter and interior design expert. Your job is to analyze property photos and extract the "vibes" - the emotional essence, aesthetic qualities, and lifestyle potential that would resonate with home buyers.

You must respond ONLY with valid JSON matching the exact schema provided. No markdown, no explanations, no additional text.

Key principles:
1. BE SPECIFIC: Instead of "nice kitchen", say "chef's kitchen with quartz counters and stainless appliances"
2. BE EVOCATIVE: Use sensory language that helps buyers visualize living there
3. BE HONEST: If something looks dated or modest, frame it positively but accurately
4. FIND THE STORY: Every home has a narrative - find what makes THIS home special
5. NEUTRAL TONE: Content should resonate with any home buyer (individuals, families, roommates)

Available lifestyle tags you can suggest (pick 2-4 most relevant):
{_TAG_LIST}"""

NEIGHBORHOOD_SYSTEM_PROMPT = f"""You are a local real estate writer who knows what it feels like to live in a neighborhood. Using the facts, listing statistics and sample listings provided, describe the neighborhood's character for someone deciding where to buy.

You must respond ONLY with valid JSON matching the exact schema provided. No markdown, no explanations, no additional text.

Stay grounded in the data you are given. Do not invent named businesses, schools or landmarks.

Available lifestyle tags you can suggest (pick 2-4 most relevant):
{_TAG_LIST}"""


PROPERTY_RESPONSE_FORMAT = """Respond with a JSON object matching this EXACT structure:
{
  "tagline": "string (10-80 chars) - punchy headline capturing the essence",
  "vibeStatement": "string (20-200 chars) - 1-2 sentence summary of the home's lifestyle vibe",
  "primaryVibes": [
    {"name": "string", "intensity": "number 0.0-1.0 based on visual evidence", "source": "interior" | "exterior" | "both"}
  ],
  "lifestyleFits": [
    {"category": "string", "score": "number 0.0-1.0", "reason": "string (max 200 chars)"}
  ],
  "notableFeatures": [
    {"feature": "string", "location": "string", "appealFactor": "string (max 200 chars)"}
  ],
  "aesthetics": {
    "lightingQuality": "natural_abundant" | "natural_moderate" | "artificial_warm" | "artificial_cool" | "mixed",
    "colorPalette": ["2-4 dominant color tones"],
    "architecturalStyle": "string",
    "overallCondition": "pristine" | "well_maintained" | "dated_but_clean" | "needs_work"
  },
  "emotionalHooks": ["2-4 specific lifestyle moments this home enables"],
  "suggestedTags": ["2-4 tags from the predefined list"]
}

Requirements:
- primaryVibes: 2-4 items, ordered by intensity (highest first). Vary the intensities meaningfully.
- lifestyleFits: 2-6 items. Only include lifestyles that score 0.3+
- notableFeatures: 2-8 specific features that would catch a buyer's eye
- emotionalHooks: 2-4 specific moments (not generic like "relaxing at home")
- suggestedTags: 2-4 tags from the predefined list ONLY"""


def format_price(price: Optional[float]) -> str:
    """Format a price as whole US dollars ($1,250,000)."""
    if price is None:
        return "Unknown"
    return f"${price:,.0f}"


def _format_sqft(value: Optional[int], suffix: str = "sqft") -> Optional[str]:
    return f"{value:,} {suffix}" if value else None


def build_property_user_prompt(context: PropertyContext, image_count: int) -> str:
    """Build the user prompt for a listing with the given number of images."""
    location = ", ".join(part for part in (context.address, context.city, context.state) if part)
    lines = [
        f"Analyze the {image_count} property image(s) and extract the vibes.",
        "",
        "PROPERTY DETAILS:",
        f"- Address: {location}",
        f"- Price: {format_price(context.price)}",
        f"- Bedrooms: {context.bedrooms if context.bedrooms is not None else 'Unknown'}"
        f" | Bathrooms: {context.bathrooms if context.bathrooms is not None else 'Unknown'}",
        f"- Square Feet: {_format_sqft(context.square_feet) or 'Unknown'}",
        f"- Property Type: {context.property_type or 'Unknown'}",
        f"- Year Built: {context.year_built or 'Unknown'}",
    ]
    lot = _format_sqft(context.lot_size_sqft, "sqft lot")
    if lot:
        lines.append(f"- Lot Size: {lot}")
    if context.amenities:
        lines.append(f"- Listed Amenities: {', '.join(context.amenities[:10])}")
    if context.description:
        lines.append(f"- Listing Description: {context.description[:1000]}")

    lines.append("")
    lines.append(PROPERTY_RESPONSE_FORMAT)
    return "\n".join(lines)


NEIGHBORHOOD_RESPONSE_FORMAT = """Respond with a JSON object matching this EXACT structure:
{
  "tagline": "string (10-80 chars) - headline capturing the neighborhood",
  "vibeStatement": "string (20-240 chars) - 1-2 sentences on what living here feels like",
  "neighborhoodThemes": [{"name": "string", "description": "string (max 200 chars)"}],
  "localHighlights": [{"name": "string", "category": "string", "description": "string (max 200 chars)"}],
  "residentFits": [{"category": "string", "score": "number 0.0-1.0", "reason": "string (max 200 chars)"}],
  "suggestedTags": ["2-4 tags from the predefined list"]
}

Requirements:
- neighborhoodThemes: 2-5 items
- localHighlights: up to 6 items, only what the data supports
- residentFits: 1-6 items
- suggestedTags: 2-4 tags from the predefined list ONLY"""


def build_neighborhood_user_prompt(context: NeighborhoodContext) -> str:
    """Build the user prompt for a neighborhood."""
    location = ", ".join(part for part in (context.city, context.state) if part)
    lines = [
        f"Describe the vibe of the {context.name} neighborhood.",
        "",
        "NEIGHBORHOOD DETAILS:",
        f"- Name: {context.name}",
        f"- Location: {location or 'Unknown'}",
        f"- Metro Area: {context.metro_area or 'Unknown'}",
        f"- Median Price: {format_price(context.median_price)}",
        f"- Walk Score: {context.walk_score if context.walk_score is not None else 'Unknown'}",
        f"- Transit Score: {context.transit_score if context.transit_score is not None else 'Unknown'}",
    ]

    stats = context.listing_stats
    if stats:
        lines.extend([
            "",
            "LISTING STATISTICS:",
            f"- Listings: {stats.total_properties}",
            f"- Average Price: {format_price(stats.avg_price)}",
            f"- Median Price: {format_price(stats.median_price)}",
            f"- Price Range: {format_price(stats.price_range_min)} - {format_price(stats.price_range_max)}",
            f"- Average Bedrooms: {stats.avg_bedrooms if stats.avg_bedrooms is not None else 'Unknown'}",
            f"- Average Bathrooms: {stats.avg_bathrooms if stats.avg_bathrooms is not None else 'Unknown'}",
            f"- Average Square Feet: {stats.avg_square_feet if stats.avg_square_feet is not None else 'Unknown'}",
        ])

    if context.sample_properties:
        lines.extend(["", "SAMPLE LISTINGS:"])
        for sample in context.sample_properties:
            details = [format_price(sample.price)]
            if sample.bedrooms is not None:
                details.append(f"{sample.bedrooms} bd")
            if sample.bathrooms is not None:
                details.append(f"{sample.bathrooms:g} ba")
            if sample.property_type:
                details.append(sample.property_type)
            lines.append(f"- {sample.address} ({', '.join(details)})")

    lines.append("")
    lines.append(NEIGHBORHOOD_RESPONSE_FORMAT)
    return "\n".join(lines)
