"""
Vibes Service

Generates vibes for a listing or a neighborhood from its generation
context and converts results into vibes table records.
"""
import json
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ValidationError

from src.homematch.utils.exceptions import GenerationError
from src.homematch.utils.logger import get_logger
from src.homematch.vibes.contexts import NeighborhoodContext, PropertyContext
from src.homematch.vibes.image_selector import select_strategic_images
from src.homematch.vibes.openrouter_client import OpenRouterClient
from src.homematch.vibes.prompts import (
    NEIGHBORHOOD_SYSTEM_PROMPT,
    PROPERTY_SYSTEM_PROMPT,
    build_neighborhood_user_prompt,
    build_property_user_prompt,
)
from src.homematch.vibes.schemas import NeighborhoodVibesOutput, PropertyVibesOutput

logger = get_logger(__name__)

PROPERTY_CONFIDENCE = 0.85
NEIGHBORHOOD_CONFIDENCE = 0.82


@dataclass
class GenerationResult:
    """Outcome of one successful generation call."""

    entity_id: str
    output: BaseModel
    model_used: str
    cost_usd: float
    raw_text: str
    processing_time_ms: int
    selected_images: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def images_analyzed(self) -> List[str]:
        return [image["url"] for image in self.selected_images]


def _strip_code_fence(text: str) -> str:
    stripped = text.strip()
    if stripped.startswith("```"):
        stripped = stripped.split("\n", 1)[1] if "\n" in stripped else ""
        if stripped.rstrip().endswith("```"):
            stripped = stripped.rstrip()[:-3]
    return stripped.strip()


class VibesService:
    """Vibes generation over an OpenRouter client."""

    def __init__(self, client: OpenRouterClient, model: Optional[str] = None):
        self.client = client
        self.model = model or client.default_model

    async def generate(
        self, context: Union[PropertyContext, NeighborhoodContext]
    ) -> GenerationResult:
        """
        Generate vibes for a context.

        Raises:
            GenerationError: When the call fails or the output does not validate
        """
        if context.kind == "property":
            return await self._generate_property(context)
        if context.kind == "neighborhood":
            return await self._generate_neighborhood(context)
        raise ValueError(f"Unsupported context kind: {context.kind}")

    async def _generate_property(self, context: PropertyContext) -> GenerationResult:
        start = time.monotonic()

        selection = select_strategic_images(
            context.images,
            context.property_type,
            context.lot_size_sqft,
        )
        if not selection.selected_images:
            raise GenerationError(f"No images available for property {context.entity_id}")

        user_message = self.client.create_vision_message(
            build_property_user_prompt(context, len(selection.selected_images)),
            selection.urls,
            detail="low",
        )
        response, usage = await self.client.chat_completion(
            [{"role": "system", "content": PROPERTY_SYSTEM_PROMPT}, user_message],
            model=self.model,
            temperature=0.7,
            max_tokens=2000,
            response_format={"type": "json_object"},
        )

        raw_text = self._content(response)
        output = self._parse(raw_text, PropertyVibesOutput, context.entity_id)

        logger.debug(
            "property_vibes_generated",
            property_id=context.entity_id,
            images=len(selection.selected_images),
            strategy=selection.strategy,
            cost_usd=round(usage.estimated_cost_usd, 6)
        )

        return GenerationResult(
            entity_id=context.entity_id,
            output=output,
            model_used=self.model,
            cost_usd=usage.estimated_cost_usd,
            raw_text=raw_text,
            processing_time_ms=int((time.monotonic() - start) * 1000),
            selected_images=[
                {"url": image.url, "category": image.category}
                for image in selection.selected_images
            ],
        )

    async def _generate_neighborhood(self, context: NeighborhoodContext) -> GenerationResult:
        start = time.monotonic()

        response, usage = await self.client.chat_completion(
            [
                {"role": "system", "content": NEIGHBORHOOD_SYSTEM_PROMPT},
                {"role": "user", "content": build_neighborhood_user_prompt(context)},
            ],
            model=self.model,
            temperature=0.6,
            max_tokens=1200,
            response_format={"type": "json_object"},
        )

        raw_text = self._content(response)
        output = self._parse(raw_text, NeighborhoodVibesOutput, context.entity_id)

        return GenerationResult(
            entity_id=context.entity_id,
            output=output,
            model_used=self.model,
            cost_usd=usage.estimated_cost_usd,
            raw_text=raw_text,
            processing_time_ms=int((time.monotonic() - start) * 1000),
        )

    @staticmethod
    def _content(response: Dict[str, Any]) -> str:
        choices = response.get("choices") or []
        content = choices[0].get("message", {}).get("content") if choices else None
        if not content:
            raise GenerationError("Empty response from LLM")
        return content

    @staticmethod
    def _parse(raw_text: str, model: type, entity_id: str) -> BaseModel:
        try:
            return model.model_validate(json.loads(_strip_code_fence(raw_text)))
        except (ValueError, ValidationError) as e:
            logger.warning(
                "vibes_output_invalid",
                entity_id=entity_id,
                error=str(e)[:500],
                raw_text=raw_text[:500]
            )
            raise GenerationError(f"Failed to parse LLM response: {e}", original_error=e) from e

    @staticmethod
    def to_property_record(
        result: GenerationResult,
        context: PropertyContext,
        source_hash: str,
    ) -> Dict[str, Any]:
        """Build the property_vibes upsert payload."""
        output: PropertyVibesOutput = result.output
        return {
            "property_id": result.entity_id,
            "tagline": output.tagline,
            "vibe_statement": output.vibe_statement,
            "feature_highlights": [f.model_dump(by_alias=True) for f in output.notable_features],
            "lifestyle_fits": [f.model_dump(by_alias=True) for f in output.lifestyle_fits],
            "suggested_tags": list(output.suggested_tags),
            "emotional_hooks": list(output.emotional_hooks),
            "primary_vibes": [v.model_dump(by_alias=True) for v in output.primary_vibes],
            "aesthetics": output.aesthetics.model_dump(by_alias=True),
            "input_data": {
                "property": context.input_summary(),
                "images": result.selected_images,
                "modelId": result.model_used,
            },
            "raw_output": result.raw_text,
            "model_used": result.model_used,
            "images_analyzed": result.images_analyzed,
            "source_data_hash": source_hash,
            "generation_cost_usd": result.cost_usd,
            "confidence": PROPERTY_CONFIDENCE,
        }

    @staticmethod
    def to_neighborhood_record(
        result: GenerationResult,
        context: NeighborhoodContext,
        source_hash: str,
    ) -> Dict[str, Any]:
        """Build the neighborhood_vibes upsert payload."""
        output: NeighborhoodVibesOutput = result.output
        return {
            "neighborhood_id": result.entity_id,
            "tagline": output.tagline,
            "vibe_statement": output.vibe_statement,
            "neighborhood_themes": [t.model_dump(by_alias=True) for t in output.neighborhood_themes],
            "local_highlights": [h.model_dump(by_alias=True) for h in output.local_highlights],
            "resident_fits": [f.model_dump(by_alias=True) for f in output.resident_fits],
            "suggested_tags": list(output.suggested_tags),
            "input_data": {
                **context.input_summary(),
                "modelId": result.model_used,
            },
            "raw_output": result.raw_text,
            "model_used": result.model_used,
            "source_data_hash": source_hash,
            "generation_cost_usd": result.cost_usd,
            "confidence": NEIGHBORHOOD_CONFIDENCE,
        }
