"""gym_sync.sync_sanction

Single-resource sync operations:

  sync_sanction_and_participants  fetch one sanction document, reconcile it in
                                  one transaction, return the refreshed summary
  sync_scores                     fetch one result set's scores and upsert each
                                  score on its own (no multi-row transaction)

Both surface an upstream failure as FetchFailedError.  With dry_run=True every
write happens inside one transaction that is rolled back at the end.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal

import psycopg

from gym_sync.fetch import UsagymClient
from gym_sync.reconcile import SanctionSummary, fetch_sanction_summary, reconcile
from gym_sync.sanction_document import (
    MalformedDocumentError,
    ScoreRecord,
    SanctionDocument,
    parse_sanction_document,
    parse_scores,
)
from gym_sync.shared import (
    DataQualityWarning,
    FetchFailed,
    FetchFailedError,
    RejectWriter,
    SyncCounters,
    SyncError,
    record_to_row,
    record_warning,
)
from gym_sync.store import Store

log = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Sanction
# ---------------------------------------------------------------------------

def load_sanction_document(
    client: UsagymClient,
    sanction_id: int,
    counters: SyncCounters,
) -> SanctionDocument | FetchFailed:
    """Fetch and parse one sanction.  MalformedDocumentError propagates."""
    payload = client.fetch_sanction(sanction_id)
    if isinstance(payload, FetchFailed):
        counters.fetch_failures += 1
        return payload
    doc = parse_sanction_document(payload)
    if doc.sanction_id != sanction_id:
        raise MalformedDocumentError(
            f"requested sanction {sanction_id} but document describes {doc.sanction_id}"
        )
    return doc


def sync_sanction_and_participants(
    store: Store,
    client: UsagymClient,
    sanction_id: int,
    counters: SyncCounters,
    rejects: RejectWriter | None = None,
    dry_run: bool = False,
) -> SanctionSummary | None:
    """Sync one sanction with its clubs, gymnasts, sessions and participants."""
    try:
        doc = load_sanction_document(client, sanction_id, counters)
    except MalformedDocumentError as exc:
        raise SyncError(sanction_id, exc) from exc
    if isinstance(doc, FetchFailed):
        raise FetchFailedError(doc)

    written = counters.write_snapshot()
    try:
        with store.connection() as conn:
            with conn.transaction() as tx:
                reconcile(conn, doc, counters, rejects)
                summary = fetch_sanction_summary(conn, sanction_id)
                if dry_run:
                    raise psycopg.Rollback(tx)
    except psycopg.Error as exc:
        # checkout timeouts, the summary read-back and commit failures
        counters.restore_writes(written)
        log.error("Failed to sync sanction %s: %s", sanction_id, exc)
        raise SyncError(sanction_id, exc) from exc

    if dry_run:
        log.info("[dry-run] sanction %s rolled back", sanction_id)
    return summary


# ---------------------------------------------------------------------------
# Scores
# ---------------------------------------------------------------------------

@dataclass
class ScoreRow:
    score_id: int
    result_set_id: int
    gymnast_id: int | None
    event_id: str
    final_score: Decimal | None
    rank: int | None
    tie: bool


def upsert_score(
    conn: psycopg.Connection,
    rec: ScoreRecord,
    result_set_id: int,
) -> ScoreRow:
    row = conn.execute(
        """
        INSERT INTO scores
          (score_id, result_set_id, gymnast_id, event_id, final_score, rank, tie)
        VALUES (%s, %s, %s, %s, %s, %s, %s)
        ON CONFLICT (score_id) DO UPDATE SET
          final_score = EXCLUDED.final_score,
          rank = EXCLUDED.rank
        RETURNING score_id, result_set_id, gymnast_id, event_id, final_score, rank, tie
        """,
        (
            rec.score_id, result_set_id, rec.person_id, rec.event_id,
            rec.final_score, rec.rank, rec.tie,
        ),
    ).fetchone()
    return ScoreRow(*row)


def _upsert_scores(
    conn: psycopg.Connection,
    result_set_id: int,
    records: list[ScoreRecord],
    counters: SyncCounters,
    rejects: RejectWriter | None,
) -> list[ScoreRow]:
    saved: list[ScoreRow] = []
    for rec in records:
        reason = None
        if rec.score_id is None:
            reason = "missing scoreId"
        elif rec.event_id is None:
            reason = f"missing eventId for score {rec.score_id}"
        if reason:
            counters.scores_skipped += 1
            record_warning(
                counters, rejects,
                DataQualityWarning("score", f"{reason} (result set {result_set_id})", record_to_row(rec)),
            )
            continue
        with conn.transaction():
            saved.append(upsert_score(conn, rec, rec.result_set_id or result_set_id))
        counters.scores_upserted += 1
    return saved


def sync_scores(
    store: Store,
    client: UsagymClient,
    result_set_id: int,
    counters: SyncCounters,
    rejects: RejectWriter | None = None,
    dry_run: bool = False,
) -> list[ScoreRow]:
    """Sync every score of one result set; returns the persisted rows."""
    payload = client.fetch_result_set(result_set_id)
    if isinstance(payload, FetchFailed):
        counters.fetch_failures += 1
        raise FetchFailedError(payload)

    records = parse_scores(payload)
    with store.connection() as conn:
        if dry_run:
            with conn.transaction() as tx:
                saved = _upsert_scores(conn, result_set_id, records, counters, rejects)
                raise psycopg.Rollback(tx)
        else:
            saved = _upsert_scores(conn, result_set_id, records, counters, rejects)

    log.info("Synced %d scores for result set %s", len(saved), result_set_id)
    return saved
