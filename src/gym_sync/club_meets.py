"""gym_sync.club_meets

Club-participation batch sync (--mode club_meets).

  1.  GET the past-meets listing
  2.  Keep meets whose start date is on/after `since`
  3.  For each candidate, in listing order:
        fetch the full sanction document  → skip on FetchFailed / malformed
        club id among the club table keys → reconcile in the shared transaction
  4.  Return the refreshed summaries of the synced sanctions

All sanctions share one outer transaction: a SyncError on any of them rolls
back the whole batch.
"""

from __future__ import annotations

import logging
from datetime import date

import psycopg

from gym_sync.fetch import UsagymClient
from gym_sync.reconcile import SanctionSummary, fetch_sanction_summaries, reconcile
from gym_sync.sanction_document import (
    MalformedDocumentError,
    MeetSummary,
    parse_meet_listing,
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
from gym_sync.sync_sanction import load_sanction_document

log = logging.getLogger(__name__)

# Sterling Gym, from the 2022-2023 season onwards
DEFAULT_CLUB_ID = 24029
DEFAULT_SINCE = date(2022, 9, 1)


def select_meets_since(
    meets: list[MeetSummary],
    since: date,
    counters: SyncCounters,
    rejects: RejectWriter | None = None,
) -> list[MeetSummary]:
    """Meets dated on/after since, in listing order, first occurrence per sanction."""
    selected: list[MeetSummary] = []
    seen: set[int] = set()
    for meet in meets:
        if meet.sanction_id is None or meet.start_date is None:
            record_warning(
                counters, rejects,
                DataQualityWarning(
                    "meet",
                    "missing sanctionId" if meet.sanction_id is None
                    else f"unparseable startDate for sanction {meet.sanction_id}",
                    record_to_row(meet),
                ),
            )
            continue
        if meet.start_date < since or meet.sanction_id in seen:
            continue
        seen.add(meet.sanction_id)
        selected.append(meet)
    return selected


def sync_all_meets_for_club(
    store: Store,
    client: UsagymClient,
    club_id: int,
    since: date,
    counters: SyncCounters,
    rejects: RejectWriter | None = None,
    dry_run: bool = False,
) -> list[SanctionSummary]:
    """Sync every meet since `since` in which club_id took part (all-or-nothing)."""
    listing = client.fetch_past_meets()
    if isinstance(listing, FetchFailed):
        counters.fetch_failures += 1
        raise FetchFailedError(listing)

    meets = parse_meet_listing(listing)
    counters.meets_listed += len(meets)
    candidates = select_meets_since(meets, since, counters, rejects)
    counters.meets_in_range += len(candidates)
    log.info(
        "Found %d meets since %s. Checking for club %s participation...",
        len(candidates), since.isoformat(), club_id,
    )

    synced: list[int] = []
    written = counters.write_snapshot()
    try:
        with store.connection() as conn:
            with conn.transaction() as tx:
                for meet in candidates:
                    counters.meets_checked += 1
                    log.info("Checking sanction %s (%s)", meet.sanction_id, meet.name)
                    try:
                        doc = load_sanction_document(client, meet.sanction_id, counters)  # type: ignore[arg-type]
                    except MalformedDocumentError as exc:
                        record_warning(
                            counters, rejects,
                            DataQualityWarning("meet", str(exc), record_to_row(meet)),
                        )
                        continue
                    if isinstance(doc, FetchFailed):
                        log.warning("Could not fetch details for %s; skipping", doc.describe())
                        continue
                    if not doc.has_club(club_id):
                        continue

                    log.info("Club %s participated in %s. Syncing...", club_id, meet.name)
                    reconcile(conn, doc, counters, rejects)
                    synced.append(doc.sanction_id)
                    counters.meets_synced += 1

                summaries = fetch_sanction_summaries(conn, synced)
                if dry_run:
                    raise psycopg.Rollback(tx)
    except SyncError:
        # a late failure undoes every sanction of the batch
        counters.restore_writes(written)
        raise

    log.info("Finished sync. Synced %d meets where club %s participated.", len(synced), club_id)
    return summaries
