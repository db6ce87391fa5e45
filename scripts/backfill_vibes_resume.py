"""
Resumable Vibes Backfill Script

Generates listing or neighborhood vibes in repeated batches until nothing
is left to do, persisting the scan offset between batches so an
interrupted backfill resumes where it stopped.

Usage:
    python scripts/backfill_vibes_resume.py [--entity property] [--limit 200] [--full-refresh]
    python scripts/backfill_vibes_resume.py --entity neighborhood --states CA,NY
    python scripts/backfill_vibes_resume.py --ids <uuid>,<uuid> --force
"""
import sys
from pathlib import Path

# Add project root to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

import asyncio
import os
import signal
from typing import Optional

from dotenv import load_dotenv

from config.settings import Settings, get_settings
from src.homematch.db import VibesStore, create_engine_from_url, create_session_factory
from src.homematch.pipelines import (
    BackfillConfig,
    BackfillController,
    CursorFileStore,
    ImageRefreshGate,
    NeighborhoodVibesEnricher,
    PropertyVibesEnricher,
    ReportWriter,
    ResumableRunner,
    RunnerSummary,
    StatsErrorClassifier,
    VibesEnricher,
    build_arg_parser,
    config_from_args,
)
from src.homematch.scrapers import ZillowImageClient
from src.homematch.utils.exceptions import ConfigurationError, DataSourceError
from src.homematch.utils.logger import get_logger, setup_logging
from src.homematch.vibes import OpenRouterClient, VibesService

logger = get_logger(__name__)


def load_env_file(env_file: Optional[str]) -> Optional[str]:
    """
    Load environment variables before settings are built.

    An explicit --env-file (or $ENV_FILE) wins over the process
    environment; otherwise .env.local is layered over .env.

    Returns:
        Path of the env file that was loaded, if any
    """
    selected = env_file or os.environ.get("ENV_FILE")
    if selected:
        if not Path(selected).exists():
            raise ConfigurationError(f"Env file not found: {selected}")
        load_dotenv(selected, override=True)
        return selected

    loaded = None
    if Path(".env.local").exists():
        load_dotenv(".env.local", override=True)
        loaded = ".env.local"
    load_dotenv(".env")
    return loaded


def build_enricher(config: BackfillConfig, settings: Settings, store: VibesStore) -> VibesEnricher:
    """
    Wire the generation and image clients for the configured entity.

    Raises:
        ConfigurationError: When a required API key is missing
    """
    openrouter_key = settings.cleaned_secret(settings.openrouter_api_key)
    if not openrouter_key:
        raise ConfigurationError("OPENROUTER_API_KEY is not set")

    client = OpenRouterClient(
        api_key=openrouter_key,
        base_url=settings.openrouter_base_url,
        default_model=settings.openrouter_model,
        timeout=settings.openrouter_timeout_seconds,
        max_retries=settings.openrouter_max_retries,
        referer=settings.openrouter_referer,
        title=settings.openrouter_title,
    )
    service = VibesService(client, model=settings.openrouter_model)

    if config.entity == "neighborhood":
        classifier = StatsErrorClassifier(
            codes=settings.stats_disable_error_codes,
            patterns=settings.stats_disable_error_patterns,
        )
        return NeighborhoodVibesEnricher(store, service, config, classifier=classifier)

    image_gate = None
    if config.refresh_images:
        rapidapi_key = settings.cleaned_secret(settings.rapidapi_key)
        if not rapidapi_key:
            raise ConfigurationError("RAPIDAPI_KEY is required for --refresh-images")
        image_client = ZillowImageClient(
            api_key=rapidapi_key,
            host=settings.rapidapi_host,
            timeout=settings.rapidapi_timeout_seconds,
        )
        image_gate = ImageRefreshGate(
            store,
            image_client,
            enabled=True,
            force_images=config.force_images,
            min_images=config.min_images,
            delay_seconds=config.image_delay_seconds,
        )

    return PropertyVibesEnricher(store, service, config, image_gate=image_gate)


def print_header(config: BackfillConfig) -> None:
    print("\n" + "=" * 60)
    print(f"{config.entity.upper()} VIBES BACKFILL")
    print("=" * 60)
    print(f"Data Source:   {config.data_source or 'unknown'}")
    print(f"Limit:         {config.limit if config.limit is not None else 'all'}")
    print(f"Page Size:     {config.page_size}")
    print(f"Force:         {config.force}")
    if config.entity == "property":
        print(f"Min Price:     {config.min_price}")
        print(f"Refresh Imgs:  {config.refresh_images} (min {config.min_images}, force {config.force_images})")
    else:
        print(f"States:        {', '.join(config.states) if config.states else 'all'}")
        print(f"Stats:         {config.include_stats}")
    if config.entity_ids:
        print(f"Entity IDs:    {len(config.entity_ids)}")
    print(f"Cursor:        {config.cursor_file if config.cursor else 'off'}")
    print(f"Log File:      {config.log_file}")
    print("=" * 60 + "\n")


def print_summary(summary: RunnerSummary) -> None:
    totals = summary.totals
    print("\n" + "=" * 60)
    print("BACKFILL SUMMARY")
    print("=" * 60)
    print(f"Runs:          {summary.runs}")
    print(f"Stop Reason:   {summary.stop_reason}")
    print(f"Attempted:     {totals.attempted}")
    print(f"Skipped:       {totals.skipped}")
    print(f"Success:       {totals.success}")
    print(f"Failed:        {totals.failed}")
    print(f"Cost (USD):    ${totals.total_cost_usd:.4f}")
    if summary.final_offset is not None:
        print(f"Final Offset:  {summary.final_offset}")
    print("=" * 60 + "\n")

    for failure in summary.failures[:10]:
        print(f"  ✗ {failure.entity_id} [{failure.code}] {failure.error[:120]}")
    if len(summary.failures) > 10:
        print(f"  ... and {len(summary.failures) - 10} more (see report)")


async def run_backfill(config: BackfillConfig, settings: Settings) -> RunnerSummary:
    """Build the pipeline and run it until a stop condition is reached."""
    engine = create_engine_from_url(
        settings.database_url,
        pool_size=settings.database_pool_size,
        max_overflow=settings.database_max_overflow,
        pool_timeout=settings.database_pool_timeout,
        pool_recycle=settings.database_pool_recycle,
        echo=settings.database_echo,
    )

    stop_requested = asyncio.Event()

    def request_stop(signame: str) -> None:
        if not stop_requested.is_set():
            print(f"\n! {signame} received, finishing the current entity...\n")
            logger.warning("backfill_stop_requested", signal=signame)
        stop_requested.set()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, request_stop, sig.name)
        except NotImplementedError:
            # Windows event loops do not support signal handlers
            logger.debug("signal_handler_unavailable", signal=sig.name)

    try:
        store = VibesStore(create_session_factory(engine))
        enricher = build_enricher(config, settings, store)
        runner = ResumableRunner(
            config,
            BackfillController(enricher),
            CursorFileStore(config.cursor_file),
            ReportWriter(config.report_dir, config.run_name),
            data_source=config.data_source,
            should_stop=stop_requested.is_set,
        )
        return await runner.run()
    finally:
        await engine.dispose()


def main() -> int:
    """Main entry point for the resumable backfill."""
    parser = build_arg_parser()
    args = parser.parse_args()

    try:
        env_file = load_env_file(args.env_file)
        settings = get_settings()
        config = config_from_args(args, logs_dir=settings.logs_dir, data_source=settings.database_host)
        config.env_file = env_file
    except ConfigurationError as e:
        print(f"\n✗ Configuration error: {e}\n")
        return 1

    setup_logging(
        level=settings.log_level,
        log_format=settings.log_format,
        environment=settings.environment,
        log_file=config.log_file,
    )
    print_header(config)

    try:
        summary = asyncio.run(run_backfill(config, settings))
    except ConfigurationError as e:
        print(f"\n✗ Configuration error: {e}\n")
        logger.error("backfill_configuration_error", error=str(e))
        return 1
    except DataSourceError as e:
        print(f"\n✗ Data source error: {e}\n")
        logger.error("backfill_data_source_error", error=str(e))
        return 1

    print_summary(summary)
    print("✓ Backfill finished\n")
    return 0


if __name__ == "__main__":
    sys.exit(main())
