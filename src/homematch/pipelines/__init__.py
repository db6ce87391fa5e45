"""
Pipelines Package

Vibes backfill: configuration, the batch controller, per-entity enrichers,
the image refresh gate and the resumable runner.
"""
from src.homematch.pipelines.backfill import (
    BackfillController,
    BackfillResult,
    BatchCursor,
    BatchParams,
    FailureRecord,
)
from src.homematch.pipelines.config import BackfillConfig, build_arg_parser, config_from_args
from src.homematch.pipelines.cursor import CursorFileStore, CursorFingerprint, ReportWriter
from src.homematch.pipelines.enrichment import (
    NeighborhoodVibesEnricher,
    PropertyVibesEnricher,
    StatsErrorClassifier,
    StatsState,
    VibesEnricher,
)
from src.homematch.pipelines.image_refresh import ImageRefreshGate, ImageRefreshOutcome
from src.homematch.pipelines.runner import ResumableRunner, RunnerSummary

__all__ = [
    # Controller
    "BackfillController",
    "BackfillResult",
    "BatchCursor",
    "BatchParams",
    "FailureRecord",
    # Configuration
    "BackfillConfig",
    "build_arg_parser",
    "config_from_args",
    # Cursor and reports
    "CursorFileStore",
    "CursorFingerprint",
    "ReportWriter",
    # Enrichers
    "VibesEnricher",
    "PropertyVibesEnricher",
    "NeighborhoodVibesEnricher",
    "StatsErrorClassifier",
    "StatsState",
    # Image refresh
    "ImageRefreshGate",
    "ImageRefreshOutcome",
    # Runner
    "ResumableRunner",
    "RunnerSummary",
]
