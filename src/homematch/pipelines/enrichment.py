"""
Vibes Enrichers

Per-entity strategies the backfill controller drives: how a page of
listings or neighborhoods is read, hashed, prepared and turned into a
stored vibes row.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from src.homematch.pipelines.config import BackfillConfig
from src.homematch.pipelines.image_refresh import ImageRefreshGate
from src.homematch.utils.exceptions import DataSourceError
from src.homematch.utils.logger import get_logger
from src.homematch.vibes.contexts import NeighborhoodContext, PropertyContext
from src.homematch.vibes.hashing import neighborhood_source_hash, property_source_hash
from src.homematch.vibes.service import VibesService

logger = get_logger(__name__)


class VibesEnricher(ABC):
    """Entity-specific half of a vibes backfill."""

    entity: str = ""

    def entity_id(self, entity: Any) -> str:
        return str(entity.id)

    @abstractmethod
    async def fetch_by_ids(self, ids: Sequence[str]) -> List[Any]:
        """Fetch the entities of an explicit id list."""

    @abstractmethod
    async def fetch_page(self, offset: int, limit: int) -> List[Any]:
        """Fetch one page of the ordered scan."""

    @abstractmethod
    async def fetch_existing_hashes(self, ids: Sequence[str]) -> Dict[str, str]:
        """Fetch stored source hashes keyed by entity id."""

    @abstractmethod
    def source_hash(self, entity: Any) -> str:
        """Hash of the entity's current salient fields."""

    async def prepare(self, entity: Any) -> None:
        """Side effects that must land before the skip decision."""

    @abstractmethod
    async def enrich(self, entity: Any, source_hash: str) -> float:
        """
        Generate and store vibes for one entity.

        Returns:
            Reported generation cost in USD
        """

    def failure_details(self, entity: Any) -> Dict[str, Any]:
        """Identifying fields recorded with a failure."""
        return {}


class PropertyVibesEnricher(VibesEnricher):
    """Listing vibes, with an optional gallery refresh before hashing."""

    entity = "property"

    def __init__(
        self,
        store: Any,
        service: VibesService,
        config: BackfillConfig,
        image_gate: Optional[ImageRefreshGate] = None,
    ):
        self.store = store
        self.service = service
        self.config = config
        self.image_gate = image_gate

    async def fetch_by_ids(self, ids: Sequence[str]) -> List[Any]:
        return await self.store.fetch_properties_by_ids(ids)

    async def fetch_page(self, offset: int, limit: int) -> List[Any]:
        return await self.store.fetch_property_page(offset, limit, self.config.min_price)

    async def fetch_existing_hashes(self, ids: Sequence[str]) -> Dict[str, str]:
        return await self.store.fetch_vibes_hashes(self.entity, ids)

    def source_hash(self, entity: Any) -> str:
        return property_source_hash(entity)

    async def prepare(self, entity: Any) -> None:
        if self.image_gate is None:
            return
        outcome = await self.image_gate.maybe_refresh(entity)
        if outcome.status not in ("disabled", "skipped"):
            logger.debug(
                "image_refresh_outcome",
                property_id=entity.id,
                status=outcome.status,
                changed=outcome.changed,
                image_count=outcome.image_count
            )

    async def enrich(self, entity: Any, source_hash: str) -> float:
        context = PropertyContext.from_entity(entity)
        result = await self.service.generate(context)
        record = self.service.to_property_record(result, context, source_hash)
        await self.store.upsert_vibes(self.entity, record)
        return result.cost_usd

    def failure_details(self, entity: Any) -> Dict[str, Any]:
        return {"zpid": getattr(entity, "zpid", None)}


def _error_chain(error: BaseException) -> Iterable[Any]:
    seen = set()
    pending: List[Any] = [error]
    while pending:
        current = pending.pop()
        if current is None or id(current) in seen:
            continue
        seen.add(id(current))
        yield current
        pending.extend([
            getattr(current, "original_error", None),
            getattr(current, "orig", None),
            getattr(current, "__cause__", None),
        ])


class StatsErrorClassifier:
    """
    Recognizes statistics errors that will recur for every neighborhood.

    Matches a database error code (asyncpg ``sqlstate``, psycopg
    ``pgcode`` or a plain ``code`` attribute) or a message substring
    anywhere in the exception chain.
    """

    def __init__(self, codes: Sequence[str] = ("42702",), patterns: Sequence[str] = ("is ambiguous",)):
        self.codes = {str(code) for code in codes}
        self.patterns = [pattern.lower() for pattern in patterns]

    def matches(self, error: BaseException) -> bool:
        for current in _error_chain(error):
            for attr in ("sqlstate", "pgcode", "code"):
                code = getattr(current, attr, None)
                if code is not None and str(code) in self.codes:
                    return True
            message = str(current).lower()
            if any(pattern in message for pattern in self.patterns):
                return True
        return False


@dataclass
class StatsState:
    """Whether neighborhood statistics are still fetched in this run."""

    disabled: bool = False
    reason: Optional[str] = None

    def disable(self, reason: str) -> None:
        self.disabled = True
        self.reason = reason


class NeighborhoodVibesEnricher(VibesEnricher):
    """Neighborhood vibes from attributes, a listing sample and statistics."""

    entity = "neighborhood"

    def __init__(
        self,
        store: Any,
        service: VibesService,
        config: BackfillConfig,
        classifier: Optional[StatsErrorClassifier] = None,
        stats_state: Optional[StatsState] = None,
    ):
        self.store = store
        self.service = service
        self.config = config
        self.classifier = classifier or StatsErrorClassifier()
        self.stats_state = stats_state or StatsState()
        # Sample fetched by prepare, keyed by neighborhood id
        self._prepared_sample: Optional[Tuple[str, List[Dict[str, Any]]]] = None

    async def fetch_by_ids(self, ids: Sequence[str]) -> List[Any]:
        return await self.store.fetch_neighborhoods_by_ids(ids, self.config.states)

    async def fetch_page(self, offset: int, limit: int) -> List[Any]:
        return await self.store.fetch_neighborhood_page(offset, limit, self.config.states)

    async def fetch_existing_hashes(self, ids: Sequence[str]) -> Dict[str, str]:
        return await self.store.fetch_vibes_hashes(self.entity, ids)

    def source_hash(self, entity: Any) -> str:
        return neighborhood_source_hash(entity, self._sample_for(self.entity_id(entity)))

    async def prepare(self, entity: Any) -> None:
        neighborhood_id = self.entity_id(entity)
        self._prepared_sample = (neighborhood_id, await self.fetch_sample(neighborhood_id))

    def _sample_for(self, neighborhood_id: str) -> Optional[List[Dict[str, Any]]]:
        if self._prepared_sample and self._prepared_sample[0] == neighborhood_id:
            return self._prepared_sample[1]
        return None

    async def fetch_stats(self, neighborhood_id: str) -> Optional[Dict[str, Any]]:
        """
        Fetch listing statistics, degrading instead of failing.

        Errors the classifier recognizes disable statistics for the rest
        of the run; other errors only drop statistics for this neighborhood.
        """
        if not self.config.include_stats or self.stats_state.disabled:
            return None

        try:
            return await self.store.fetch_neighborhood_stats(neighborhood_id)
        except DataSourceError as e:
            if self.classifier.matches(e):
                self.stats_state.disable(str(e))
                logger.warning(
                    "neighborhood_stats_disabled",
                    neighborhood_id=neighborhood_id,
                    error=str(e)
                )
            else:
                logger.warning(
                    "neighborhood_stats_failed",
                    neighborhood_id=neighborhood_id,
                    error=str(e)
                )
            return None

    async def fetch_sample(self, neighborhood_id: str) -> List[Dict[str, Any]]:
        try:
            return await self.store.fetch_neighborhood_sample(neighborhood_id, self.config.sample_limit)
        except DataSourceError as e:
            logger.warning(
                "neighborhood_sample_failed",
                neighborhood_id=neighborhood_id,
                error=str(e)
            )
            return []

    async def enrich(self, entity: Any, source_hash: str) -> float:
        neighborhood_id = self.entity_id(entity)
        sample = self._sample_for(neighborhood_id)
        if sample is None:
            sample = await self.fetch_sample(neighborhood_id)
        stats = await self.fetch_stats(neighborhood_id)

        context = NeighborhoodContext.from_entity(entity, sample_properties=sample, listing_stats=stats)
        result = await self.service.generate(context)
        record = self.service.to_neighborhood_record(result, context, source_hash)
        await self.store.upsert_vibes(self.entity, record)
        return result.cost_usd

    def failure_details(self, entity: Any) -> Dict[str, Any]:
        return {
            "name": getattr(entity, "name", None),
            "city": getattr(entity, "city", None),
            "state": getattr(entity, "state", None),
        }
