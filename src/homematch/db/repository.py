"""
Repository Pattern for Data Access

Query and write operations for listings, neighborhoods and their vibes.
Every method takes the session explicitly; transactions are owned by
the caller.
"""
import statistics
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence, Type, TypeVar

from sqlalchemy import desc, func, select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession

from src.homematch.db.models import (
    Neighborhood,
    NeighborhoodVibes,
    Property,
    PropertyVibes,
    VIBES_ENTITY_KEYS,
)
from src.homematch.utils.logger import get_logger

logger = get_logger(__name__)

T = TypeVar('T')


def dialect_insert(session: AsyncSession, model: Type[Any]):
    """Return the INSERT construct supporting ON CONFLICT for the session's dialect."""
    dialect = session.bind.dialect.name if session.bind is not None else "postgresql"
    if dialect == "sqlite":
        return sqlite.insert(model)
    return postgresql.insert(model)


class BaseRepository:
    """
    Base repository with common read operations.

    Generic repository that can be extended for specific models.
    """

    def __init__(self, model: Type[T]):
        """
        Initialize repository with model class.

        Args:
            model: SQLAlchemy model class
        """
        self.model = model
        logger.debug("repository_initialized", model=model.__name__)

    async def get_by_id(self, session: AsyncSession, id_value: Any) -> Optional[T]:
        """
        Get single record by primary key.

        Args:
            session: Database session
            id_value: Primary key value

        Returns:
            Model instance or None
        """
        result = await session.get(self.model, id_value)
        logger.debug(
            "repository_get_by_id",
            model=self.model.__name__,
            id=id_value,
            found=result is not None
        )
        return result

    async def get_by_ids(self, session: AsyncSession, ids: Sequence[str]) -> List[T]:
        """
        Get records whose primary key is in the id list.

        Unknown ids are silently absent from the result.
        """
        if not ids:
            return []

        query = select(self.model).where(self.model.id.in_(list(ids)))
        result = (await session.execute(query)).scalars().all()
        logger.debug(
            "repository_get_by_ids",
            model=self.model.__name__,
            requested=len(ids),
            found=len(result)
        )
        return list(result)

    async def count(self, session: AsyncSession) -> int:
        """Count all records."""
        result = await session.execute(select(func.count()).select_from(self.model))
        return result.scalar_one()


class PropertyRepository(BaseRepository):
    """Repository for listing queries and image refresh writes."""

    def __init__(self):
        super().__init__(Property)

    async def get_by_ids(self, session: AsyncSession, ids: Sequence[str]) -> List[Property]:
        """Get active listings whose id is in the id list."""
        if not ids:
            return []

        query = select(Property).where(Property.id.in_(list(ids)), Property.is_active.is_(True))
        result = (await session.execute(query)).scalars().all()
        logger.debug("property_get_by_ids", requested=len(ids), found=len(result))
        return list(result)

    async def get_page(
        self,
        session: AsyncSession,
        offset: int,
        limit: int,
        min_price: int = 100000,
    ) -> List[Property]:
        """
        Get one page of backfill candidates.

        Candidates are active, have a zpid and a price at or above min_price, ordered
        newest first with id as tie-breaker so pages are stable.

        Args:
            session: Database session
            offset: Rows to skip
            limit: Page size
            min_price: Minimum listing price

        Returns:
            List of properties
        """
        query = (
            select(Property)
            .where(
                Property.is_active.is_(True),
                Property.zpid.is_not(None),
                Property.price >= min_price,
            )
            .order_by(desc(Property.created_at), desc(Property.id))
            .offset(offset)
            .limit(limit)
        )
        result = (await session.execute(query)).scalars().all()
        logger.debug("property_page_fetched", offset=offset, limit=limit, count=len(result))
        return list(result)

    async def update_images(
        self,
        session: AsyncSession,
        property_id: str,
        refreshed_at: datetime,
        refreshed_count: int,
        status: str,
        images: Optional[List[str]] = None,
    ) -> None:
        """
        Record an image refresh attempt.

        The gallery is replaced only when images is given; the marker is
        always written.
        """
        values: Dict[str, Any] = {
            "zillow_images_refreshed_at": refreshed_at,
            "zillow_images_refreshed_count": refreshed_count,
            "zillow_images_refresh_status": status,
            "updated_at": func.now(),
        }
        if images is not None:
            values["images"] = images

        await session.execute(
            update(Property).where(Property.id == property_id).values(**values)
        )
        logger.debug(
            "property_images_updated",
            property_id=property_id,
            status=status,
            count=refreshed_count,
            images_replaced=images is not None
        )

    async def get_neighborhood_sample(
        self,
        session: AsyncSession,
        neighborhood_id: str,
        limit: int = 12,
    ) -> List[Dict[str, Any]]:
        """
        Get a small sample of active listings in a neighborhood, newest first.

        Listings without an address are dropped.
        """
        query = (
            select(
                Property.address,
                Property.price,
                Property.bedrooms,
                Property.bathrooms,
                Property.property_type,
            )
            .where(Property.neighborhood_id == neighborhood_id, Property.is_active.is_(True))
            .order_by(desc(Property.created_at), desc(Property.id))
            .limit(limit)
        )
        rows = (await session.execute(query)).all()
        return [dict(row._mapping) for row in rows if row.address]


class NeighborhoodRepository(BaseRepository):
    """Repository for neighborhood queries and listing statistics."""

    def __init__(self):
        super().__init__(Neighborhood)

    async def get_page(
        self,
        session: AsyncSession,
        offset: int,
        limit: int,
        states: Optional[Sequence[str]] = None,
    ) -> List[Neighborhood]:
        """
        Get one page of neighborhoods, newest first.

        Args:
            session: Database session
            offset: Rows to skip
            limit: Page size
            states: Optional state codes to restrict to

        Returns:
            List of neighborhoods
        """
        query = select(Neighborhood)
        if states:
            query = query.where(Neighborhood.state.in_(list(states)))
        query = (
            query
            .order_by(desc(Neighborhood.created_at), desc(Neighborhood.id))
            .offset(offset)
            .limit(limit)
        )
        result = (await session.execute(query)).scalars().all()
        logger.debug(
            "neighborhood_page_fetched",
            offset=offset,
            limit=limit,
            states=list(states) if states else None,
            count=len(result)
        )
        return list(result)

    async def get_listing_stats(
        self,
        session: AsyncSession,
        neighborhood_id: str,
    ) -> Optional[Dict[str, Any]]:
        """
        Aggregate listing statistics for a neighborhood.

        Returns:
            Dictionary of statistics, or None when the neighborhood has no listings
        """
        aggregate = select(
            func.count(Property.id).label("total_properties"),
            func.avg(Property.price).label("avg_price"),
            func.min(Property.price).label("price_range_min"),
            func.max(Property.price).label("price_range_max"),
            func.avg(Property.bedrooms).label("avg_bedrooms"),
            func.avg(Property.bathrooms).label("avg_bathrooms"),
            func.avg(Property.square_feet).label("avg_square_feet"),
        ).where(Property.neighborhood_id == neighborhood_id, Property.is_active.is_(True))

        row = (await session.execute(aggregate)).one()
        if not row.total_properties:
            return None

        prices = (
            await session.execute(
                select(Property.price).where(
                    Property.neighborhood_id == neighborhood_id,
                    Property.is_active.is_(True),
                    Property.price.is_not(None),
                )
            )
        ).scalars().all()

        def _round(value: Any, digits: int = 1) -> Optional[float]:
            return round(float(value), digits) if value is not None else None

        return {
            "total_properties": row.total_properties,
            "avg_price": _round(row.avg_price, 0),
            "median_price": statistics.median(prices) if prices else None,
            "price_range_min": row.price_range_min,
            "price_range_max": row.price_range_max,
            "avg_bedrooms": _round(row.avg_bedrooms),
            "avg_bathrooms": _round(row.avg_bathrooms),
            "avg_square_feet": _round(row.avg_square_feet, 0),
        }


class VibesRepository(BaseRepository):
    """Repository for generated vibes keyed by their entity id."""

    def __init__(self, model: Type[Any]):
        super().__init__(model)
        self.entity_key = VIBES_ENTITY_KEYS[model]

    @property
    def entity_column(self):
        return getattr(self.model, self.entity_key)

    async def get_hashes(
        self,
        session: AsyncSession,
        entity_ids: Sequence[str],
    ) -> Dict[str, str]:
        """
        Get stored source hashes for a set of entities.

        Returns:
            Mapping of entity id to source_data_hash; entities without
            vibes are absent
        """
        if not entity_ids:
            return {}

        query = select(self.entity_column, self.model.source_data_hash).where(
            self.entity_column.in_(list(entity_ids))
        )
        rows = (await session.execute(query)).all()
        return {entity_id: source_hash for entity_id, source_hash in rows}

    async def get_by_entity_ids(
        self,
        session: AsyncSession,
        entity_ids: Sequence[str],
    ) -> Dict[str, Any]:
        """Get vibes rows for a set of entities, keyed by entity id."""
        if not entity_ids:
            return {}

        query = select(self.model).where(self.entity_column.in_(list(entity_ids)))
        rows = (await session.execute(query)).scalars().all()
        return {getattr(row, self.entity_key): row for row in rows}

    async def upsert(self, session: AsyncSession, record: Dict[str, Any]) -> None:
        """
        Insert or update vibes by entity id.

        Args:
            session: Database session
            record: Vibes field values (must include the entity id)
        """
        entity_id = record.get(self.entity_key)
        if not entity_id:
            raise ValueError(f"{self.entity_key} is required for upsert")

        stmt = dialect_insert(session, self.model).values(**record)
        stmt = stmt.on_conflict_do_update(
            index_elements=[self.entity_key],
            set_={
                **{k: v for k, v in record.items() if k not in (self.entity_key, "id")},
                "updated_at": func.now(),
            }
        )

        await session.execute(stmt)
        await session.flush()

        logger.debug("vibes_upserted", model=self.model.__name__, entity_id=entity_id)


class PropertyVibesRepository(VibesRepository):
    def __init__(self):
        super().__init__(PropertyVibes)


class NeighborhoodVibesRepository(VibesRepository):
    def __init__(self):
        super().__init__(NeighborhoodVibes)
