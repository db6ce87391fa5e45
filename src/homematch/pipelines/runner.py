"""
Resumable Backfill Runner

Invokes the backfill controller run after run until there is nothing
left to do or the run looks stuck, persisting the scan offset between
runs and writing a report at the end.
"""
import asyncio
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional

from src.homematch.pipelines.backfill import (
    BackfillController,
    BackfillResult,
    BatchCursor,
    BatchParams,
    FailureRecord,
)
from src.homematch.pipelines.config import BackfillConfig
from src.homematch.pipelines.cursor import CursorFileStore, CursorFingerprint, ReportWriter
from src.homematch.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass
class RunnerTotals:
    attempted: int = 0
    skipped: int = 0
    success: int = 0
    failed: int = 0
    total_cost_usd: float = 0.0
    total_time_ms: int = 0

    def add(self, result: BackfillResult) -> None:
        self.attempted += result.attempted
        self.skipped += result.skipped
        self.success += result.success
        self.failed += result.failed
        self.total_cost_usd += result.total_cost_usd
        self.total_time_ms += result.total_time_ms


@dataclass
class RunnerSummary:
    """
    Outcome of a resumable run.

    stop_reason is one of exhausted, max_runs, no_success,
    cursor_stalled, canceled, single_run or error.
    """

    runs: int = 0
    totals: RunnerTotals = field(default_factory=RunnerTotals)
    failures: List[FailureRecord] = field(default_factory=list)
    stop_reason: Optional[str] = None
    final_offset: Optional[int] = None
    wall_time_ms: int = 0
    error: Optional[str] = None


class ResumableRunner:
    """Drives repeated controller runs with a persistent cursor."""

    def __init__(
        self,
        config: BackfillConfig,
        controller: BackfillController,
        cursor_store: CursorFileStore,
        report_writer: ReportWriter,
        data_source: str = "",
        should_stop: Optional[Callable[[], bool]] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.config = config
        self.controller = controller
        self.cursor_store = cursor_store
        self.report_writer = report_writer
        self.data_source = data_source
        self.should_stop = should_stop or (lambda: False)
        self.sleep = sleep
        self.fingerprint = CursorFingerprint(
            data_source=data_source,
            entity=config.entity,
            filters=config.cursor_filters,
        )

    @property
    def cursor_active(self) -> bool:
        """Cursors only apply to repeated, limited scans."""
        return self.config.cursor and self.config.limit is not None and not self.config.entity_ids

    @property
    def single_run(self) -> bool:
        return self.config.limit is None or bool(self.config.entity_ids)

    def _load_offset(self) -> int:
        if not self.cursor_active:
            if self.config.cursor:
                logger.warning("cursor_ignored", reason="single run (--all or --ids)")
            return 0

        if self.config.reset_cursor:
            offset = 0
            logger.info("cursor_reset", reason="requested", path=str(self.cursor_store.path))
        else:
            loaded = self.cursor_store.load(self.fingerprint)
            offset = loaded.offset
            if loaded.reason == "mismatch":
                logger.warning(
                    "cursor_reset",
                    reason="fingerprint_mismatch",
                    stored=(loaded.stored or {}).get("fingerprint"),
                    current=self.fingerprint.to_dict()
                )
            elif loaded.reason == "invalid":
                logger.warning("cursor_reset", reason="invalid", path=str(self.cursor_store.path))

        self.cursor_store.save(offset, self.fingerprint)
        logger.info("cursor_loaded", offset=offset, path=str(self.cursor_store.path))
        return offset

    def _save_cursor(self, cursor: BatchCursor) -> None:
        self.cursor_store.save(cursor, self.fingerprint)

    async def run(self) -> RunnerSummary:
        """
        Run until exhausted, stuck, canceled or out of runs.

        The report is written on every exit path, including data source
        errors, which are re-raised afterwards.

        Returns:
            RunnerSummary
        """
        started = time.monotonic()
        summary = RunnerSummary()
        config = self.config

        try:
            offset = self._load_offset()
            no_success_runs = 0

            while summary.runs < config.max_runs:
                if self.should_stop():
                    summary.stop_reason = "canceled"
                    break

                summary.runs += 1
                run_offset = offset if self.cursor_active else 0
                logger.info(
                    "run_started",
                    run=summary.runs,
                    max_runs=config.max_runs,
                    limit=config.limit if config.limit is not None else "all",
                    offset=run_offset if self.cursor_active else None
                )

                result = await self.controller.run(
                    BatchParams(
                        entity_ids=config.entity_ids,
                        limit=config.limit,
                        page_size=config.page_size,
                        offset=run_offset,
                        force=config.force,
                        delay_seconds=config.delay_seconds,
                    ),
                    should_stop=self.should_stop,
                    on_cursor=self._save_cursor if self.cursor_active else None,
                )

                summary.totals.add(result)
                summary.failures.extend(result.failures)
                logger.info(
                    "run_completed",
                    run=summary.runs,
                    attempted=result.attempted,
                    skipped=result.skipped,
                    success=result.success,
                    failed=result.failed,
                    next_offset=result.next_offset
                )

                if self.cursor_active:
                    previous = offset
                    offset = result.next_offset if result.next_offset is not None else offset
                    if result.attempted > 0 and offset == previous:
                        logger.warning("cursor_stalled", offset=offset)
                        summary.stop_reason = "cursor_stalled"
                        break
                    self.cursor_store.save(offset, self.fingerprint, canceled=result.canceled)
                    logger.info("cursor_advanced", offset=offset)

                if result.canceled:
                    summary.stop_reason = "canceled"
                    break

                if self.single_run:
                    summary.stop_reason = "single_run"
                    break

                if result.attempted == 0:
                    logger.info("backfill_exhausted", runs=summary.runs)
                    summary.stop_reason = "exhausted"
                    break

                if result.success == 0 and result.failed > 0:
                    no_success_runs += 1
                    logger.warning(
                        "run_without_success",
                        consecutive=no_success_runs,
                        threshold=config.stop_after_no_success_runs
                    )
                    if no_success_runs >= config.stop_after_no_success_runs:
                        logger.warning("stuck_run_stopped", consecutive=no_success_runs)
                        summary.stop_reason = "no_success"
                        break
                else:
                    no_success_runs = 0

                if config.pause_seconds > 0:
                    await self.sleep(config.pause_seconds)
            else:
                summary.stop_reason = "max_runs"

            summary.final_offset = offset if self.cursor_active else None
            return summary

        except Exception as e:
            summary.stop_reason = "error"
            summary.error = str(e)
            logger.error("backfill_run_failed", error=str(e), error_type=type(e).__name__)
            raise

        finally:
            summary.wall_time_ms = int((time.monotonic() - started) * 1000)
            self._write_report(summary)
            logger.info(
                "backfill_finished",
                runs=summary.runs,
                stop_reason=summary.stop_reason,
                attempted=summary.totals.attempted,
                success=summary.totals.success,
                failed=summary.totals.failed,
                skipped=summary.totals.skipped,
                cost_usd=round(summary.totals.total_cost_usd, 4),
                wall_time_ms=summary.wall_time_ms
            )

    def build_report(self, summary: RunnerSummary) -> Dict[str, Any]:
        return {
            "data_source": self.data_source,
            "config": self.config.to_report(),
            "runs": summary.runs,
            "stop_reason": summary.stop_reason,
            "final_offset": summary.final_offset,
            "totals": {
                "attempted": summary.totals.attempted,
                "skipped": summary.totals.skipped,
                "success": summary.totals.success,
                "failed": summary.totals.failed,
                "total_cost_usd": summary.totals.total_cost_usd,
                "total_time_ms": summary.totals.total_time_ms,
            },
            "wall_time_ms": summary.wall_time_ms,
            "error": summary.error,
            "failures": [failure.to_dict() for failure in summary.failures],
        }

    def _write_report(self, summary: RunnerSummary) -> None:
        try:
            self.report_writer.write(self.build_report(summary))
        except OSError as e:
            logger.warning("report_write_failed", error=str(e))
