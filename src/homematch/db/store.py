"""
Vibes Entity Store

Session-per-call facade over the repositories used by the backfill.
Every call runs in its own transaction and returns detached rows, so a
failure on one entity never poisons the session used for the next.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.homematch.db.models import Neighborhood, Property
from src.homematch.db.repository import (
    NeighborhoodRepository,
    NeighborhoodVibesRepository,
    PropertyRepository,
    PropertyVibesRepository,
)
from src.homematch.db.session import get_db_session
from src.homematch.utils.exceptions import DataSourceError
from src.homematch.utils.logger import get_logger

logger = get_logger(__name__)


class VibesStore:
    """Entity store for the vibes backfill."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory
        self.properties = PropertyRepository()
        self.neighborhoods = NeighborhoodRepository()
        self.property_vibes = PropertyVibesRepository()
        self.neighborhood_vibes = NeighborhoodVibesRepository()

    def _vibes_repo(self, entity: str):
        if entity == "property":
            return self.property_vibes
        if entity == "neighborhood":
            return self.neighborhood_vibes
        raise ValueError(f"Unknown entity: {entity}")

    async def _read(self, operation: str, func, *args, **kwargs):
        try:
            async with get_db_session(self.session_factory) as session:
                return await func(session, *args, **kwargs)
        except SQLAlchemyError as e:
            logger.error("store_read_failed", operation=operation, error=str(e))
            raise DataSourceError(f"Failed to {operation}: {e}", original_error=e) from e

    async def _write(self, operation: str, func, *args, **kwargs):
        try:
            async with get_db_session(self.session_factory) as session:
                return await func(session, *args, **kwargs)
        except SQLAlchemyError as e:
            raise DataSourceError(f"Failed to {operation}: {e}", original_error=e) from e

    # Listings

    async def fetch_properties_by_ids(self, ids: Sequence[str]) -> List[Property]:
        return await self._read("read properties", self.properties.get_by_ids, ids)

    async def fetch_property_page(
        self, offset: int, limit: int, min_price: int
    ) -> List[Property]:
        return await self._read(
            "read properties", self.properties.get_page, offset, limit, min_price=min_price
        )

    async def update_property_images(
        self,
        property_id: str,
        refreshed_at: datetime,
        refreshed_count: int,
        status: str,
        images: Optional[List[str]] = None,
    ) -> None:
        await self._write(
            "update property images",
            self.properties.update_images,
            property_id,
            refreshed_at,
            refreshed_count,
            status,
            images=images,
        )

    # Neighborhoods

    async def fetch_neighborhoods_by_ids(
        self, ids: Sequence[str], states: Optional[Sequence[str]] = None
    ) -> List[Neighborhood]:
        rows = await self._read("read neighborhoods", self.neighborhoods.get_by_ids, ids)
        if states:
            rows = [row for row in rows if row.state in states]
        return rows

    async def fetch_neighborhood_page(
        self, offset: int, limit: int, states: Optional[Sequence[str]] = None
    ) -> List[Neighborhood]:
        return await self._read(
            "read neighborhoods", self.neighborhoods.get_page, offset, limit, states=states
        )

    async def fetch_neighborhood_sample(
        self, neighborhood_id: str, limit: int
    ) -> List[Dict[str, Any]]:
        return await self._read(
            "read neighborhood listings",
            self.properties.get_neighborhood_sample,
            neighborhood_id,
            limit=limit,
        )

    async def fetch_neighborhood_stats(self, neighborhood_id: str) -> Optional[Dict[str, Any]]:
        return await self._read(
            "read neighborhood stats", self.neighborhoods.get_listing_stats, neighborhood_id
        )

    # Vibes

    async def fetch_vibes_hashes(self, entity: str, ids: Sequence[str]) -> Dict[str, str]:
        return await self._read("read vibes hashes", self._vibes_repo(entity).get_hashes, ids)

    async def fetch_vibes(self, entity: str, ids: Sequence[str]) -> Dict[str, Any]:
        return await self._read("read vibes", self._vibes_repo(entity).get_by_entity_ids, ids)

    async def upsert_vibes(self, entity: str, record: Dict[str, Any]) -> None:
        await self._write("upsert vibes", self._vibes_repo(entity).upsert, record)
