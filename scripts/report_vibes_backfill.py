"""
Vibes Backfill Coverage Report

Prints, for the same listing selection the backfill scans, whether each
listing's vibes are missing, stale (source hash changed) or current.

Usage:
    python scripts/report_vibes_backfill.py [--limit 50] [--offset 0] [--min-price 100000]
"""
import sys
from pathlib import Path

# Add project root to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

import argparse
import asyncio
from typing import Any, Dict, List, Optional

from dotenv import load_dotenv

from config.settings import get_settings
from src.homematch.db import VibesStore, create_engine_from_url, create_session_factory
from src.homematch.pipelines.config import DEFAULT_MIN_PRICE
from src.homematch.utils.exceptions import DataSourceError
from src.homematch.utils.logger import get_logger, setup_logging
from src.homematch.vibes.hashing import property_source_hash

logger = get_logger(__name__)


def coverage_status(current_hash: str, vibes: Optional[Any]) -> str:
    if vibes is None:
        return "missing"
    if vibes.source_data_hash != current_hash:
        return "stale"
    return "current"


def build_rows(properties: List[Any], vibes_by_id: Dict[str, Any]) -> List[Dict[str, Any]]:
    """Coverage row per listing, in scan order."""
    rows = []
    for prop in properties:
        vibes = vibes_by_id.get(prop.id)
        rows.append({
            "property_id": prop.id,
            "address": prop.address,
            "status": coverage_status(property_source_hash(prop), vibes),
            "model": vibes.model_used if vibes else None,
            "cost_usd": float(vibes.generation_cost_usd or 0) if vibes else 0.0,
            "images_analyzed": len(vibes.images_analyzed or []) if vibes else 0,
        })
    return rows


async def collect(limit: int, offset: int, min_price: int) -> List[Dict[str, Any]]:
    settings = get_settings()
    engine = create_engine_from_url(settings.database_url, echo=settings.database_echo)
    try:
        store = VibesStore(create_session_factory(engine))
        properties = await store.fetch_property_page(offset, limit, min_price)
        vibes_by_id = await store.fetch_vibes("property", [p.id for p in properties])
        return build_rows(properties, vibes_by_id)
    finally:
        await engine.dispose()


def print_report(rows: List[Dict[str, Any]], offset: int) -> None:
    print("\n" + "=" * 60)
    print("PROPERTY VIBES COVERAGE")
    print("=" * 60)
    for row in rows:
        address = (row["address"] or "")[:32]
        print(
            f"{row['status']:<8} {row['property_id']}  {address:<32} "
            f"{row['model'] or '-':<28} ${row['cost_usd']:.4f}  imgs={row['images_analyzed']}"
        )

    counts = {status: 0 for status in ("missing", "stale", "current")}
    for row in rows:
        counts[row["status"]] += 1
    total_cost = sum(row["cost_usd"] for row in rows)

    print("=" * 60)
    print(f"Offset:   {offset}")
    print(f"Listings: {len(rows)}")
    print(f"Missing:  {counts['missing']}")
    print(f"Stale:    {counts['stale']}")
    print(f"Current:  {counts['current']}")
    print(f"Cost:     ${total_cost:.4f}")
    print("=" * 60 + "\n")


def main() -> int:
    parser = argparse.ArgumentParser(description="Report vibes coverage for listings")
    parser.add_argument("--limit", type=int, default=50, help="Listings to report (default: 50)")
    parser.add_argument("--offset", type=int, default=0, help="Scan offset (default: 0)")
    parser.add_argument("--min-price", type=int, default=DEFAULT_MIN_PRICE,
                        help=f"Minimum listing price (default: {DEFAULT_MIN_PRICE})")
    parser.add_argument("--env-file", default=None, help="Env file to load (default: .env)")
    args = parser.parse_args()

    load_dotenv(args.env_file or ".env", override=bool(args.env_file))
    settings = get_settings()
    setup_logging(level=settings.log_level, log_format=settings.log_format, environment=settings.environment)

    try:
        rows = asyncio.run(collect(max(1, args.limit), max(0, args.offset), max(0, args.min_price)))
    except DataSourceError as e:
        print(f"\n✗ Data source error: {e}\n")
        logger.error("coverage_report_failed", error=str(e))
        return 1

    print_report(rows, args.offset)
    return 0


if __name__ == "__main__":
    sys.exit(main())
