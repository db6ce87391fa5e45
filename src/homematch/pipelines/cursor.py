"""
Cursor and Report Files

Durable scan offset shared between backfill invocations, and the JSON
report written when a resumable run ends.
"""
import json
import os
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Tuple, Union

from src.homematch.pipelines.backfill import BatchCursor
from src.homematch.utils.logger import get_logger

logger = get_logger(__name__)

CURSOR_VERSION = 1
CURSOR_MODE = "offset"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _write_json_atomic(path: Path, payload: Dict[str, Any]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_name(f"{path.name}.tmp")
    try:
        tmp_path.write_text(json.dumps(payload, indent=2, default=str), encoding="utf-8")
        os.replace(tmp_path, path)
    finally:
        if tmp_path.exists():
            tmp_path.unlink()


@dataclass(frozen=True)
class CursorFingerprint:
    """
    What a persisted offset was computed against.

    An offset is only reused when the data source, entity and filters
    all match the current invocation.
    """

    data_source: str
    entity: str
    filters: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Any) -> Optional["CursorFingerprint"]:
        if not isinstance(data, dict):
            return None
        filters = data.get("filters")
        return cls(
            data_source=str(data.get("data_source") or ""),
            entity=str(data.get("entity") or ""),
            filters=filters if isinstance(filters, dict) else {},
        )


@dataclass
class CursorLoad:
    """Offset to resume from and why. reason is ok, missing, invalid or mismatch."""

    offset: int
    reason: str
    stored: Optional[Dict[str, Any]] = None


class CursorFileStore:
    """JSON cursor file written atomically after every processed entity."""

    def __init__(self, path: Union[str, Path], now: Callable[[], datetime] = _utcnow):
        self.path = Path(path)
        self.now = now

    def load(self, fingerprint: CursorFingerprint) -> CursorLoad:
        """
        Load the stored offset for a fingerprint.

        Missing, unreadable and mismatched cursors all resume from offset 0.
        """
        if not self.path.exists():
            return CursorLoad(offset=0, reason="missing")

        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning("cursor_unreadable", path=str(self.path), error=str(e))
            return CursorLoad(offset=0, reason="invalid")

        if (
            not isinstance(data, dict)
            or data.get("version") != CURSOR_VERSION
            or data.get("mode") != CURSOR_MODE
        ):
            return CursorLoad(offset=0, reason="invalid")

        try:
            offset = int(data.get("offset", 0))
        except (TypeError, ValueError):
            return CursorLoad(offset=0, reason="invalid", stored=data)

        stored = CursorFingerprint.from_dict(data.get("fingerprint"))
        if stored != fingerprint:
            return CursorLoad(offset=0, reason="mismatch", stored=data)

        return CursorLoad(offset=max(0, offset), reason="ok", stored=data)

    def save(
        self,
        cursor: Union[BatchCursor, int],
        fingerprint: CursorFingerprint,
        canceled: bool = False,
    ) -> None:
        """Persist an offset (or a full cursor snapshot) for a fingerprint."""
        if isinstance(cursor, BatchCursor):
            offset = cursor.offset
            progress: Optional[Dict[str, Any]] = asdict(cursor)
        else:
            offset = int(cursor)
            progress = None

        payload = {
            "version": CURSOR_VERSION,
            "mode": CURSOR_MODE,
            "offset": offset,
            "fingerprint": fingerprint.to_dict(),
            "progress": progress,
            "canceled": canceled,
            "updated_at": self.now().isoformat(),
        }
        _write_json_atomic(self.path, payload)


class ReportWriter:
    """Writes a run report as a latest file plus a timestamped archive copy."""

    def __init__(
        self,
        report_dir: Union[str, Path],
        name: str,
        now: Callable[[], datetime] = _utcnow,
    ):
        self.report_dir = Path(report_dir)
        self.name = name
        self.now = now

    def write(self, report: Dict[str, Any]) -> Tuple[Path, Path]:
        """
        Write the report.

        Returns:
            Tuple of (latest path, archive path)
        """
        finished_at = self.now().isoformat()
        stamp = finished_at.replace(":", "-").replace(".", "-").replace("+", "-")
        latest_path = self.report_dir / f"{self.name}-report.json"
        archive_path = self.report_dir / f"{self.name}-report-{stamp}.json"

        payload = {"finished_at": finished_at, **report}
        _write_json_atomic(latest_path, payload)
        _write_json_atomic(archive_path, payload)

        logger.info(
            "report_written",
            latest=str(latest_path),
            archive=str(archive_path)
        )
        return latest_path, archive_path
