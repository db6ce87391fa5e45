"""
Vibes Backfill Controller

Pages through listings or neighborhoods, skips entities whose stored
vibes are current, enriches the rest one at a time and reports counters.

Pagination is offset-based over a newest-first ordering. Rows inserted
ahead of the cursor between pages shift the scan, so an entity can be
visited twice or missed until a later scan; keyset pagination would
avoid this but is not used.
"""
import asyncio
import time
from dataclasses import asdict, dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

from src.homematch.pipelines.enrichment import VibesEnricher
from src.homematch.utils.exceptions import GenerationError
from src.homematch.utils.logger import get_logger
from src.homematch.vibes.hashing import should_skip

logger = get_logger(__name__)


@dataclass
class BatchParams:
    """Inputs of one controller run."""

    entity_ids: Optional[List[str]] = None
    limit: Optional[int] = None
    page_size: int = 50
    offset: int = 0
    force: bool = False
    delay_seconds: float = 0.0


@dataclass
class BatchCursor:
    """Progress snapshot emitted after every entity of a scan."""

    offset: int
    last_entity_id: Optional[str]
    attempted: int
    skipped: int
    success: int
    failed: int
    total_cost_usd: float


@dataclass
class FailureRecord:
    entity_id: str
    error: str
    code: Optional[str] = None
    details: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class BackfillResult:
    attempted: int = 0
    skipped: int = 0
    success: int = 0
    failed: int = 0
    total_cost_usd: float = 0.0
    total_time_ms: int = 0
    failures: List[FailureRecord] = field(default_factory=list)
    next_offset: Optional[int] = None
    canceled: bool = False


StopPredicate = Callable[[], bool]
CursorCallback = Callable[[BatchCursor], Union[None, Awaitable[None]]]


def failure_code(error: BaseException) -> str:
    """HTTP status for generation failures that carry one, else the exception class name."""
    if isinstance(error, GenerationError) and error.status is not None:
        return str(error.status)
    return type(error).__name__


class BackfillController:
    """
    Drives an enricher over an id list or an ordered scan.

    Entities are processed strictly one at a time. The offset advances by
    one per entity, skipped or attempted, so a run resumed from
    ``next_offset`` continues exactly where the previous run stopped.
    """

    def __init__(
        self,
        enricher: VibesEnricher,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.enricher = enricher
        self.sleep = sleep

    async def run(
        self,
        params: BatchParams,
        should_stop: Optional[StopPredicate] = None,
        on_cursor: Optional[CursorCallback] = None,
    ) -> BackfillResult:
        """
        Run one backfill pass.

        Args:
            params: Target, paging and force options
            should_stop: Polled before every page and entity; True cancels the run
            on_cursor: Called after every entity of a scan with the new offset

        Returns:
            BackfillResult

        Raises:
            DataSourceError: When a page or the stored hashes cannot be read
        """
        should_stop = should_stop or (lambda: False)
        explicit_ids = params.entity_ids or None
        if explicit_ids:
            target: float = len(explicit_ids)
        elif params.limit is not None:
            target = params.limit
        else:
            target = float("inf")

        result = BackfillResult()
        offset = max(0, params.offset)
        last_entity_id: Optional[str] = None
        started = time.monotonic()

        logger.info(
            "backfill_started",
            entity=self.enricher.entity,
            limit=params.limit if params.limit is not None else "all",
            page_size=params.page_size,
            offset=None if explicit_ids else offset,
            entity_ids=len(explicit_ids) if explicit_ids else 0,
            force=params.force
        )

        async def emit_cursor() -> None:
            if on_cursor is None or explicit_ids:
                return
            cursor = BatchCursor(
                offset=offset,
                last_entity_id=last_entity_id,
                attempted=result.attempted,
                skipped=result.skipped,
                success=result.success,
                failed=result.failed,
                total_cost_usd=result.total_cost_usd,
            )
            try:
                outcome = on_cursor(cursor)
                if asyncio.iscoroutine(outcome):
                    await outcome
            except Exception as e:
                logger.warning("cursor_persist_failed", offset=offset, error=str(e))

        while result.attempted < target:
            if should_stop():
                result.canceled = True
                break

            if explicit_ids:
                page = await self.enricher.fetch_by_ids(explicit_ids)
            else:
                page = await self.enricher.fetch_page(offset, params.page_size)

            logger.info(
                "backfill_page_fetched",
                entity=self.enricher.entity,
                offset=None if explicit_ids else offset,
                count=len(page)
            )
            if not page:
                break

            stored_hashes: Dict[str, str] = {}
            if not params.force:
                stored_hashes = await self.enricher.fetch_existing_hashes(
                    [self.enricher.entity_id(entity) for entity in page]
                )

            for entity in page:
                if should_stop():
                    result.canceled = True
                    break
                if result.attempted >= target:
                    break

                entity_id = self.enricher.entity_id(entity)
                attempted = await self._process(entity, entity_id, stored_hashes, params, result)

                offset += 1
                last_entity_id = entity_id
                await emit_cursor()

                if attempted and params.delay_seconds > 0 and result.attempted < target:
                    await self.sleep(params.delay_seconds)

            if result.canceled or explicit_ids or len(page) < params.page_size:
                break

        result.total_time_ms = int((time.monotonic() - started) * 1000)
        result.next_offset = None if explicit_ids else offset

        logger.info(
            "backfill_completed",
            entity=self.enricher.entity,
            attempted=result.attempted,
            skipped=result.skipped,
            success=result.success,
            failed=result.failed,
            cost_usd=round(result.total_cost_usd, 4),
            time_ms=result.total_time_ms,
            next_offset=result.next_offset,
            canceled=result.canceled
        )
        return result

    async def _process(
        self,
        entity: Any,
        entity_id: str,
        stored_hashes: Dict[str, str],
        params: BatchParams,
        result: BackfillResult,
    ) -> bool:
        """Skip or enrich one entity. Returns True when it was attempted."""
        try:
            await self.enricher.prepare(entity)
            current_hash = self.enricher.source_hash(entity)
        except Exception as e:
            result.attempted += 1
            self._record_failure(entity, entity_id, e, result)
            return True

        if should_skip(params.force, stored_hashes.get(entity_id), current_hash):
            result.skipped += 1
            logger.debug("backfill_entity_skipped", entity=self.enricher.entity, entity_id=entity_id)
            return False

        result.attempted += 1
        logger.info(
            "backfill_entity_attempted",
            entity=self.enricher.entity,
            entity_id=entity_id,
            reason="force" if params.force else ("stale" if entity_id in stored_hashes else "missing"),
            attempted=result.attempted
        )

        try:
            cost = await self.enricher.enrich(entity, current_hash)
        except Exception as e:
            self._record_failure(entity, entity_id, e, result)
            return True

        result.success += 1
        result.total_cost_usd += cost or 0.0
        return True

    def _record_failure(
        self,
        entity: Any,
        entity_id: str,
        error: BaseException,
        result: BackfillResult,
    ) -> None:
        record = FailureRecord(
            entity_id=entity_id,
            error=str(error) or type(error).__name__,
            code=failure_code(error),
            details=self.enricher.failure_details(entity),
        )
        result.failed += 1
        result.failures.append(record)
        logger.warning(
            "backfill_entity_failed",
            entity=self.enricher.entity,
            entity_id=entity_id,
            error=record.error,
            code=record.code,
            **record.details
        )
