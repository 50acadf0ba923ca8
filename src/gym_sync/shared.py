"""gym_sync.shared

Shared utilities used by every sync mode: the failure taxonomy, RejectWriter,
SyncCounters, data-quality warning recording, and run-report writing.
"""

from __future__ import annotations

import csv
import enum
import json
import logging
from dataclasses import asdict, dataclass, field, is_dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

log = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Failure taxonomy
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class FetchFailed:
    """Outcome of an upstream request that did not yield a document.

    Exactly one of status_code (HTTP-level non-success) or transport_error
    (timeout, DNS, connection reset, undecodable body) is set.
    """

    resource: str                 # 'sanction' | 'result_set' | 'past_meets'
    resource_id: int | None
    status_code: int | None = None
    transport_error: str | None = None

    def describe(self) -> str:
        target = self.resource if self.resource_id is None else f"{self.resource} {self.resource_id}"
        if self.status_code is not None:
            return f"{target}: HTTP {self.status_code}"
        return f"{target}: {self.transport_error}"


class FetchFailedError(Exception):
    """Raised when a single-resource sync has to surface a FetchFailed."""

    def __init__(self, failure: FetchFailed) -> None:
        super().__init__(f"Failed to fetch {failure.describe()}")
        self.failure = failure


class SyncError(Exception):
    """Fatal failure of a sanction reconcile; the enclosing transaction rolls back."""

    def __init__(self, sanction_id: int | None, cause: BaseException) -> None:
        super().__init__(f"Failed to sync sanction {sanction_id}: {cause}")
        self.sanction_id = sanction_id
        self.cause = cause


@dataclass
class DataQualityWarning:
    """A per-record problem: the record is skipped and the sync continues."""

    record_kind: str
    reason: str
    record: dict[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:
        return f"{self.record_kind}: {self.reason}"


# ---------------------------------------------------------------------------
# RejectWriter
# ---------------------------------------------------------------------------

class RejectWriter:
    """Lazy-open CSV writers for skipped records, one file per record kind.

    Rows of kind "session" written to rejects.csv land in rejects_session.csv,
    so every file's header is exactly the columns of its own record type plus
    _reject_reason.  Rows without a kind go to the base path.
    """

    def __init__(self, path: Path | None) -> None:
        self._path = path
        self._files: dict[str, tuple[Any, csv.DictWriter]] = {}
        self._kinds: list[str] = []
        self.rows_written = 0

    def path_for(self, record_kind: str) -> Path | None:
        if self._path is None or not record_kind:
            return self._path
        return self._path.with_stem(f"{self._path.stem}_{record_kind}")

    @property
    def paths(self) -> list[Path]:
        return [self.path_for(kind) for kind in self._kinds]  # type: ignore[misc]

    def write(self, row: dict[str, Any], reason: str, record_kind: str = "") -> None:
        if self._path is None:
            return
        if record_kind not in self._files:
            path = self.path_for(record_kind)
            path.parent.mkdir(parents=True, exist_ok=True)
            fh = open(path, "w", newline="", encoding="utf-8")
            writer = csv.DictWriter(fh, fieldnames=list(row.keys()) + ["_reject_reason"])
            writer.writeheader()
            self._files[record_kind] = (fh, writer)
            self._kinds.append(record_kind)
        fh, writer = self._files[record_kind]
        out = dict(row)
        out["_reject_reason"] = reason
        writer.writerow(out)
        fh.flush()
        self.rows_written += 1

    def close(self) -> None:
        for fh, _ in self._files.values():
            fh.close()
        self._files.clear()


# ---------------------------------------------------------------------------
# SyncCounters
# ---------------------------------------------------------------------------

@dataclass
class SyncCounters:
    sanctions_upserted: int = 0
    clubs_upserted: int = 0
    placeholder_clubs: int = 0
    gymnasts_upserted: int = 0
    gymnasts_skipped: int = 0
    sessions_upserted: int = 0
    sessions_skipped: int = 0
    result_sets_upserted: int = 0
    result_sets_skipped: int = 0
    participants_upserted: int = 0
    participants_skipped: int = 0
    scores_upserted: int = 0
    scores_skipped: int = 0
    # Club-participation batch
    meets_listed: int = 0
    meets_in_range: int = 0
    meets_checked: int = 0
    meets_synced: int = 0
    fetch_failures: int = 0
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        d = {k: v for k, v in self.__dict__.items() if k != "warnings"}
        d["warnings"] = self.warnings[:50]
        return d

    def write_snapshot(self) -> dict[str, int]:
        """Current values of the counters that describe rows written to the store."""
        return {name: getattr(self, name) for name in _WRITE_COUNTERS}

    def restore_writes(self, snapshot: dict[str, int]) -> None:
        """Undo write counts made inside a transaction that rolled back.

        Skip, fetch and warning counters are left alone: those events happened
        whether or not the writes were kept.
        """
        for name, value in snapshot.items():
            setattr(self, name, value)


_WRITE_COUNTERS = (
    "sanctions_upserted",
    "clubs_upserted",
    "placeholder_clubs",
    "gymnasts_upserted",
    "sessions_upserted",
    "result_sets_upserted",
    "participants_upserted",
    "scores_upserted",
    "meets_synced",
)


def record_warning(
    counters: SyncCounters,
    rejects: RejectWriter | None,
    warning: DataQualityWarning,
) -> None:
    """Log a data-quality warning, keep it on the counters, write it to rejects."""
    log.warning("Skipping %s", warning)
    counters.warnings.append(str(warning))
    if rejects is not None:
        rejects.write(warning.record, warning.reason, warning.record_kind)


def record_to_row(record: Any) -> dict[str, Any]:
    """Flatten a staging dataclass into a rejects-CSV row."""
    if is_dataclass(record):
        return {k: _cell(v) for k, v in asdict(record).items()}
    return dict(record)


def _cell(value: Any) -> Any:
    if value is None:
        return ""
    if isinstance(value, enum.Enum):
        return value.value
    return value


# ---------------------------------------------------------------------------
# Run report
# ---------------------------------------------------------------------------

def write_run_report(
    run_id: str,
    started_at: str,
    mode: str,
    dry_run: bool,
    params: dict[str, Any],
    counters: SyncCounters,
    report_dir: Path = Path("./artifacts/reports"),
) -> Path:
    report = {
        "run_id": run_id,
        "mode": mode,
        "started_at": started_at,
        "finished_at": datetime.now(timezone.utc).isoformat(),
        "dry_run": dry_run,
        **params,
        "counters": counters.to_dict(),
    }
    report_path = report_dir / f"{run_id}.json"
    report_path.parent.mkdir(parents=True, exist_ok=True)
    report_path.write_text(json.dumps(report, indent=2, default=str))
    return report_path
