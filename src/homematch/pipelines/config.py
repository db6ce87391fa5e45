"""
Backfill Configuration

Command-line flags and the BackfillConfig passed explicitly through the
runner, controller, enrichers and image gate.
"""
import argparse
import re
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from src.homematch.utils.exceptions import ConfigurationError

UUID_RE = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[1-5][0-9a-f]{3}-[89ab][0-9a-f]{3}-[0-9a-f]{12}$",
    re.IGNORECASE,
)
STATE_RE = re.compile(r"^[A-Z]{2}$")

ENTITIES = ("property", "neighborhood")

DEFAULT_LIMIT = 200
DEFAULT_PAGE_SIZE = 50
DEFAULT_DELAY_MS = 1500
DEFAULT_PAUSE_MS = 0
DEFAULT_MAX_RUNS = 9999
DEFAULT_MIN_IMAGES = 10
FULL_REFRESH_MIN_IMAGES = 30
DEFAULT_IMAGE_DELAY_MS = 600
DEFAULT_MIN_PRICE = 100000
DEFAULT_SAMPLE_LIMIT = 12
DEFAULT_STOP_AFTER_NO_SUCCESS_RUNS = 3
DEFAULT_LOGS_DIR = ".logs"


@dataclass
class BackfillConfig:
    """Resolved options of one backfill invocation."""

    entity: str = "property"
    limit: Optional[int] = DEFAULT_LIMIT
    page_size: int = DEFAULT_PAGE_SIZE
    delay_seconds: float = DEFAULT_DELAY_MS / 1000
    pause_seconds: float = DEFAULT_PAUSE_MS / 1000
    max_runs: int = DEFAULT_MAX_RUNS
    full_refresh: bool = False
    force: bool = False
    refresh_images: bool = False
    force_images: bool = False
    min_images: int = DEFAULT_MIN_IMAGES
    image_delay_seconds: float = DEFAULT_IMAGE_DELAY_MS / 1000
    min_price: int = DEFAULT_MIN_PRICE
    states: Optional[List[str]] = None
    entity_ids: Optional[List[str]] = None
    sample_limit: int = DEFAULT_SAMPLE_LIMIT
    include_stats: bool = True
    cursor: bool = False
    reset_cursor: bool = False
    cursor_file: Path = field(default_factory=lambda: Path(DEFAULT_LOGS_DIR) / "backfill-property-vibes-cursor.json")
    stop_after_no_success_runs: int = DEFAULT_STOP_AFTER_NO_SUCCESS_RUNS
    log_file: Path = field(default_factory=lambda: Path(DEFAULT_LOGS_DIR) / "backfill-property-vibes.log")
    report_dir: Path = field(default_factory=lambda: Path(DEFAULT_LOGS_DIR))
    env_file: Optional[str] = None
    data_source: str = ""

    @property
    def run_name(self) -> str:
        return f"backfill-{self.entity}-vibes"

    @property
    def cursor_filters(self) -> Dict[str, Any]:
        """Filters a persisted cursor offset is only meaningful for."""
        if self.entity == "neighborhood":
            return {"states": sorted(self.states) if self.states else None}
        return {"min_price": self.min_price}

    def to_report(self) -> Dict[str, Any]:
        """JSON-safe view of the configuration."""
        data = asdict(self)
        for key in ("cursor_file", "log_file", "report_dir"):
            data[key] = str(data[key])
        return data


def _ms_to_seconds(value: Optional[int], default_ms: int) -> float:
    if value is None or value < 0:
        return default_ms / 1000
    return value / 1000


def _positive_or(value: Optional[int], default: int) -> int:
    return value if value is not None and value > 0 else default


def _split_csv(value: Optional[str]) -> List[str]:
    if not value:
        return []
    return [part.strip() for part in value.split(",") if part.strip()]


def normalize_states(states: Optional[Sequence[str]]) -> Optional[List[str]]:
    """
    Upper-case and de-duplicate state codes, preserving order.

    Raises:
        ConfigurationError: When a code is not two letters
    """
    if not states:
        return None

    normalized: List[str] = []
    for state in states:
        code = state.strip().upper()
        if code and code not in normalized:
            normalized.append(code)

    invalid = [s for s in normalized if not STATE_RE.match(s)]
    if invalid:
        raise ConfigurationError(
            f"Invalid states: {', '.join(invalid)} (expected state codes like CA)"
        )
    return normalized or None


def validate_entity_ids(ids: Optional[Sequence[str]]) -> Optional[List[str]]:
    """
    Validate explicit entity ids.

    Raises:
        ConfigurationError: When an id is not a UUID
    """
    if not ids:
        return None

    invalid = [i for i in ids if not UUID_RE.match(i)]
    if invalid:
        raise ConfigurationError(f"Invalid ids: {', '.join(invalid)} (expected UUIDs)")
    return list(dict.fromkeys(ids))


def build_arg_parser() -> argparse.ArgumentParser:
    """Build the argument parser of the resumable backfill CLI."""
    parser = argparse.ArgumentParser(
        description="Generate listing or neighborhood vibes in resumable batches"
    )
    parser.add_argument(
        "--entity",
        choices=ENTITIES,
        default="property",
        help="Entity to backfill (default: property)"
    )
    limit_group = parser.add_mutually_exclusive_group()
    limit_group.add_argument(
        "--limit",
        type=int,
        default=None,
        help=f"Entities attempted per run (default: {DEFAULT_LIMIT})"
    )
    limit_group.add_argument(
        "--all",
        action="store_true",
        help="Process everything in a single run"
    )
    parser.add_argument("--page-size", type=int, default=None,
                        help=f"Rows fetched per page (default: {DEFAULT_PAGE_SIZE})")
    parser.add_argument("--delay-ms", type=int, default=None,
                        help=f"Delay after each generation call (default: {DEFAULT_DELAY_MS})")
    parser.add_argument("--pause-ms", type=int, default=None,
                        help=f"Pause between runs (default: {DEFAULT_PAUSE_MS})")
    parser.add_argument("--max-runs", type=int, default=None,
                        help=f"Maximum runs (default: {DEFAULT_MAX_RUNS})")
    parser.add_argument("--full-refresh", action="store_true",
                        help="Regenerate everything and refresh images (implies --force --refresh-images)")
    parser.add_argument("--force", action="store_true",
                        help="Regenerate even when stored vibes are current")
    parser.add_argument("--refresh-images", action=argparse.BooleanOptionalAction, default=None,
                        help="Refresh listing galleries from Zillow before generating")
    parser.add_argument("--force-images", action="store_true",
                        help="Refresh galleries even when they look complete")
    parser.add_argument("--min-images", type=int, default=None,
                        help=f"Gallery size considered complete (default: {DEFAULT_MIN_IMAGES}, "
                             f"{FULL_REFRESH_MIN_IMAGES} with --full-refresh)")
    parser.add_argument("--image-delay-ms", type=int, default=None,
                        help=f"Delay after each Zillow call (default: {DEFAULT_IMAGE_DELAY_MS})")
    parser.add_argument("--min-price", type=int, default=None,
                        help=f"Minimum listing price (default: {DEFAULT_MIN_PRICE})")
    parser.add_argument("--states", default=None,
                        help="Comma-separated state codes (neighborhoods only)")
    parser.add_argument("--ids", default=None,
                        help="Comma-separated entity UUIDs to process")
    parser.add_argument("--sample-limit", type=int, default=None,
                        help=f"Listings sampled per neighborhood (default: {DEFAULT_SAMPLE_LIMIT})")
    parser.add_argument("--no-stats", action="store_true",
                        help="Skip neighborhood listing statistics")
    parser.add_argument("--cursor", action=argparse.BooleanOptionalAction, default=None,
                        help="Persist and resume the scan offset (default: on with force or image refresh)")
    parser.add_argument("--reset-cursor", action="store_true",
                        help="Start the scan from offset 0")
    parser.add_argument("--cursor-file", default=None,
                        help="Cursor file (default: .logs/backfill-<entity>-vibes-cursor.json)")
    parser.add_argument("--stop-after-no-success-runs", type=int, default=None,
                        help=f"Stop after this many consecutive runs without a success "
                             f"(default: {DEFAULT_STOP_AFTER_NO_SUCCESS_RUNS})")
    parser.add_argument("--log-file", default=None,
                        help="Run log (default: .logs/backfill-<entity>-vibes.log)")
    parser.add_argument("--report-dir", default=None,
                        help=f"Report directory (default: {DEFAULT_LOGS_DIR})")
    parser.add_argument("--env-file", default=None,
                        help="Env file to load (default: $ENV_FILE or .env.local)")
    return parser


def config_from_args(
    args: argparse.Namespace,
    logs_dir: str = DEFAULT_LOGS_DIR,
    data_source: str = "",
) -> BackfillConfig:
    """
    Resolve parsed flags into a BackfillConfig.

    Out-of-range numbers fall back to their defaults; a non-positive
    limit means a single run over everything.

    Raises:
        ConfigurationError: On malformed ids or state codes, or flags that
            do not apply to the chosen entity
    """
    entity = args.entity
    run_name = f"backfill-{entity}-vibes"

    if args.all:
        limit = None
    elif args.limit is None:
        limit = DEFAULT_LIMIT
    else:
        limit = args.limit if args.limit > 0 else None

    force = args.force
    refresh_images = bool(args.refresh_images)
    min_images = args.min_images if args.min_images is not None else DEFAULT_MIN_IMAGES
    if args.full_refresh:
        force = True
        if args.refresh_images is None:
            refresh_images = True
        if args.min_images is None:
            min_images = FULL_REFRESH_MIN_IMAGES
    min_images = max(0, min_images)

    if args.cursor is not None:
        cursor = args.cursor
    else:
        cursor = args.full_refresh or force or refresh_images or args.force_images

    states = normalize_states(_split_csv(args.states))
    if states and entity != "neighborhood":
        raise ConfigurationError("--states only applies to --entity neighborhood")
    if entity == "neighborhood" and (refresh_images or args.force_images):
        raise ConfigurationError("Image refresh only applies to --entity property")

    min_price = args.min_price if args.min_price is not None and args.min_price >= 0 else DEFAULT_MIN_PRICE

    return BackfillConfig(
        entity=entity,
        limit=limit,
        page_size=_positive_or(args.page_size, DEFAULT_PAGE_SIZE),
        delay_seconds=_ms_to_seconds(args.delay_ms, DEFAULT_DELAY_MS),
        pause_seconds=_ms_to_seconds(args.pause_ms, DEFAULT_PAUSE_MS),
        max_runs=_positive_or(args.max_runs, DEFAULT_MAX_RUNS),
        full_refresh=args.full_refresh,
        force=force,
        refresh_images=refresh_images,
        force_images=args.force_images,
        min_images=min_images,
        image_delay_seconds=_ms_to_seconds(args.image_delay_ms, DEFAULT_IMAGE_DELAY_MS),
        min_price=min_price,
        states=states,
        entity_ids=validate_entity_ids(_split_csv(args.ids)),
        sample_limit=_positive_or(args.sample_limit, DEFAULT_SAMPLE_LIMIT),
        include_stats=not args.no_stats,
        cursor=cursor,
        reset_cursor=args.reset_cursor,
        cursor_file=Path(args.cursor_file or Path(logs_dir) / f"{run_name}-cursor.json"),
        stop_after_no_success_runs=_positive_or(
            args.stop_after_no_success_runs, DEFAULT_STOP_AFTER_NO_SUCCESS_RUNS
        ),
        log_file=Path(args.log_file or Path(logs_dir) / f"{run_name}.log"),
        report_dir=Path(args.report_dir or logs_dir),
        env_file=args.env_file,
        data_source=data_source,
    )
