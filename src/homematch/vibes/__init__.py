"""
Vibes Package

Source hashing, generation contexts, prompts and the OpenRouter-backed
vibes service.
"""
from src.homematch.vibes.contexts import NeighborhoodContext, PropertyContext, VibesContext
from src.homematch.vibes.hashing import (
    compute_source_hash,
    neighborhood_salient_fields,
    neighborhood_source_hash,
    property_salient_fields,
    property_source_hash,
    should_skip,
)
from src.homematch.vibes.openrouter_client import OpenRouterClient, UsageInfo
from src.homematch.vibes.service import GenerationResult, VibesService

__all__ = [
    "NeighborhoodContext",
    "PropertyContext",
    "VibesContext",
    "compute_source_hash",
    "neighborhood_salient_fields",
    "neighborhood_source_hash",
    "property_salient_fields",
    "property_source_hash",
    "should_skip",
    "OpenRouterClient",
    "UsageInfo",
    "GenerationResult",
    "VibesService",
]
