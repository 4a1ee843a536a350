"""Append-only report series, optionally mirrored to a JSON Lines file."""

from __future__ import annotations
import json
import logging
from functools import lru_cache
from pathlib import Path
from threading import Lock
from typing import List, Optional

from pydantic import ValidationError

from models.records import ReportRecord
from services.errors import PersistenceFailure
from services.retry import NO_RETRY, RetryPolicy
from settings import get_settings

logger = logging.getLogger(__name__)


class TimeSeriesStore:
    """Append-only series of report records.

    With a persistence path every record becomes one line appended to the
    file; existing lines are never rewritten. Unreadable lines are skipped on
    load and left in place.
    """

    def __init__(
        self,
        name: str,
        persistence_path: Optional[Path] = None,
        lock_timeout_seconds: float = 5.0,
        retry_policy: RetryPolicy = NO_RETRY,
    ) -> None:
        self.name = name
        self.persistence_path = persistence_path
        self.lock_timeout_seconds = lock_timeout_seconds
        self.retry_policy = retry_policy
        self._records: List[ReportRecord] = []
        self._lock = Lock()
        self._needs_newline = False
        if persistence_path:
            persistence_path.parent.mkdir(parents=True, exist_ok=True)
            self._load_from_disk()

    def append(self, record: ReportRecord) -> None:
        self.retry_policy.call(self._append_once, record)
        logger.info(
            "Report appended",
            extra={"operation": "append_report", "building_id": record.building_id},
        )

    def latest(self, building_id: str) -> Optional[ReportRecord]:
        """Return the newest record for ``building_id`` or ``None``."""

        with self._locked("latest"):
            newest: Optional[ReportRecord] = None
            for record in self._records:
                if record.building_id != building_id:
                    continue
                if newest is None or record.created_at >= newest.created_at:
                    newest = record
            return newest

    def records(self, building_id: Optional[str] = None) -> List[ReportRecord]:
        with self._locked("records"):
            return [
                record
                for record in self._records
                if building_id is None or record.building_id == building_id
            ]

    def _append_once(self, record: ReportRecord) -> None:
        if self.persistence_path:
            try:
                self._write_line(record.model_dump_json(by_alias=True))
            except OSError as exc:
                # A partial line may be left behind; start the next one fresh.
                self._needs_newline = True
                raise PersistenceFailure(
                    f"Could not write report for {record.building_id!r} to {self.name!r}: {exc}"
                ) from exc
        with self._locked("append"):
            self._records.append(record)

    def _write_line(self, line: str) -> None:
        prefix = "\n" if self._needs_newline else ""
        # Single write on an O_APPEND handle; concurrent appenders do not interleave.
        with self.persistence_path.open("a", encoding="utf-8") as handle:  # type: ignore[union-attr]
            handle.write(f"{prefix}{line}\n")
        self._needs_newline = False

    def _locked(self, operation: str) -> "_TimedLock":
        return _TimedLock(self._lock, self.lock_timeout_seconds, f"{self.name}.{operation}")

    def _load_from_disk(self) -> None:
        if not self.persistence_path or not self.persistence_path.exists():
            return

        try:
            raw = self.persistence_path.read_text(encoding="utf-8")
        except OSError as exc:
            raise PersistenceFailure(
                f"Could not read report store {str(self.persistence_path)!r}: {exc}"
            ) from exc

        self._needs_newline = bool(raw) and not raw.endswith("\n")
        for line_number, line in enumerate(raw.splitlines(), start=1):
            if not line.strip():
                continue
            try:
                self._records.append(ReportRecord.model_validate_json(line))
            except ValidationError as exc:
                logger.warning(
                    "Skipping unreadable report line %d",
                    line_number,
                    extra={
                        "url": str(self.persistence_path),
                        "reason": f"{exc.error_count()} validation error(s)",
                    },
                )


class _TimedLock:
    """Context manager acquiring a lock within a deadline or failing."""

    def __init__(self, lock: Lock, timeout: float, label: str) -> None:
        self._lock = lock
        self._timeout = timeout
        self._label = label

    def __enter__(self) -> None:
        if not self._lock.acquire(timeout=self._timeout):
            raise PersistenceFailure(
                f"Timed out after {self._timeout}s waiting for {self._label}"
            )

    def __exit__(self, *exc_info) -> None:
        self._lock.release()


@lru_cache
def build_default_store(
    name: Optional[str] = None,
    path: Optional[str] = None,
) -> TimeSeriesStore:
    settings = get_settings()
    store_name = settings.store_name if name is None else name
    store_path = settings.store_path if path is None else path
    persistence = Path(store_path) if store_path else None
    return TimeSeriesStore(
        name=store_name,
        persistence_path=persistence,
        lock_timeout_seconds=settings.persistence_timeout_seconds,
        retry_policy=RetryPolicy(
            max_attempts=settings.retry_max_attempts,
            backoff_seconds=settings.retry_backoff_seconds,
        ),
    )
