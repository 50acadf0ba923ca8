"""gym_sync.reconcile

Writes one SanctionDocument into the relational store.

Processing order (later steps validate against earlier ones):
  0.  Advisory lock on the sanction id   → concurrent syncs of one sanction queue
  1.  Sanction         ON CONFLICT (sanction_id) refresh name/dates/status only
  2.  Clubs            ON CONFLICT DO NOTHING (club core data immutable once seen)
  3.  Gymnasts         needs person id + club id; unknown club → placeholder club;
                       ON CONFLICT DO NOTHING; ids collected as "accepted"
  4.  Sessions         session id must coerce to int; key (session_id, sanction_id)
  5.  Result sets      session id must coerce to int; key result_set_id
  6.  Participants     session id must coerce AND gymnast must be accepted;
                       ON CONFLICT (sanction_id, gymnast_id) refresh meet-time club

The whole sequence runs in one transaction block (a savepoint when the caller
already holds a transaction).  Data-quality problems skip the single record;
any store error raises SyncError and the block rolls back.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from datetime import date
from typing import Any

import psycopg

from gym_sync.sanction_document import (
    ClubRecord,
    ParticipantRecord,
    PersonRecord,
    ResultSetRecord,
    SanctionDocument,
    SanctionRecord,
    SessionRecord,
)
from gym_sync.shared import (
    DataQualityWarning,
    RejectWriter,
    SyncCounters,
    SyncError,
    record_to_row,
    record_warning,
)

log = logging.getLogger(__name__)

PLACEHOLDER_CLUB_NAME = "Unknown Club (placeholder)"


# ---------------------------------------------------------------------------
# Read-back
# ---------------------------------------------------------------------------

@dataclass
class SanctionSummary:
    sanction_id: int
    name: str | None
    start_date: date | None
    end_date: date | None
    city: str | None
    state: str | None
    site_name: str | None
    meet_status: str | None
    program: str | None


_SUMMARY_COLUMNS = (
    "sanction_id, name, start_date, end_date, city, state, site_name, "
    "meet_status::text, program::text"
)


def fetch_sanction_summaries(
    conn: psycopg.Connection,
    sanction_ids: list[int],
) -> list[SanctionSummary]:
    """Summary rows for sanction_ids, in the order given; missing ids are dropped."""
    if not sanction_ids:
        return []
    rows = conn.execute(
        f"SELECT {_SUMMARY_COLUMNS} FROM sanctions WHERE sanction_id = ANY(%s)",
        (list(sanction_ids),),
    ).fetchall()
    by_id = {row[0]: SanctionSummary(*row) for row in rows}
    return [by_id[sid] for sid in sanction_ids if sid in by_id]


def fetch_sanction_summary(
    conn: psycopg.Connection,
    sanction_id: int,
) -> SanctionSummary | None:
    found = fetch_sanction_summaries(conn, [sanction_id])
    return found[0] if found else None


# ---------------------------------------------------------------------------
# Row writers
# ---------------------------------------------------------------------------

def _enum_value(value: enum.Enum | None) -> str | None:
    return value.value if value is not None else None


def _lock_sanction(conn: psycopg.Connection, sanction_id: int) -> None:
    """Transaction-scoped; released on commit or rollback."""
    conn.execute("SELECT pg_advisory_xact_lock(%s)", (sanction_id,))


def upsert_sanction(conn: psycopg.Connection, rec: SanctionRecord) -> None:
    conn.execute(
        """
        INSERT INTO sanctions
          (sanction_id, name, start_date, end_date, city, state, site_name,
           website, program, meet_status, has_results, address1, zip, logo_url)
        VALUES (%s, %s, %s, %s, %s, %s, %s,
                %s, %s::program_type, %s::meet_status, %s, %s, %s, %s)
        ON CONFLICT (sanction_id) DO UPDATE SET
          name = EXCLUDED.name,
          start_date = EXCLUDED.start_date,
          end_date = EXCLUDED.end_date,
          meet_status = EXCLUDED.meet_status,
          last_synced_at = now()
        """,
        (
            rec.sanction_id, rec.name, rec.start_date, rec.end_date,
            rec.city, rec.state, rec.site_name, rec.website,
            _enum_value(rec.program), _enum_value(rec.meet_status),
            rec.has_results, rec.address1, rec.zip, rec.logo_url,
        ),
    )


def upsert_club(conn: psycopg.Connection, rec: ClubRecord) -> None:
    conn.execute(
        """
        INSERT INTO clubs
          (club_id, name, short_name, city, state, zip, website, email, phone)
        VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s)
        ON CONFLICT (club_id) DO NOTHING
        """,
        (
            rec.club_id, rec.name, rec.short_name, rec.city, rec.state,
            rec.zip, rec.website, rec.email, rec.phone,
        ),
    )


def upsert_placeholder_club(conn: psycopg.Connection, club_id: int) -> bool:
    """Insert a name-only club row; True if the club was not already stored."""
    row = conn.execute(
        """
        INSERT INTO clubs (club_id, name) VALUES (%s, %s)
        ON CONFLICT (club_id) DO NOTHING
        RETURNING club_id
        """,
        (club_id, PLACEHOLDER_CLUB_NAME),
    ).fetchone()
    return row is not None


def upsert_gymnast(conn: psycopg.Connection, rec: PersonRecord) -> None:
    conn.execute(
        """
        INSERT INTO gymnasts (gymnast_id, club_id, first_name, last_name, gender)
        VALUES (%s, %s, %s, %s, %s)
        ON CONFLICT (gymnast_id) DO NOTHING
        """,
        (rec.person_id, rec.club_id, rec.first_name, rec.last_name, rec.gender),
    )


def upsert_session(conn: psycopg.Connection, sanction_id: int, rec: SessionRecord) -> None:
    conn.execute(
        """
        INSERT INTO sessions (session_id, sanction_id, name, session_date, program)
        VALUES (%s, %s, %s, %s, %s::program_type)
        ON CONFLICT (session_id, sanction_id) DO NOTHING
        """,
        (rec.session_id, sanction_id, rec.name, rec.session_date, _enum_value(rec.program)),
    )


def upsert_result_set(conn: psycopg.Connection, sanction_id: int, rec: ResultSetRecord) -> None:
    conn.execute(
        """
        INSERT INTO result_sets
          (result_set_id, session_id, sanction_id, level, division, official)
        VALUES (%s, %s, %s, %s, %s, %s)
        ON CONFLICT (result_set_id) DO NOTHING
        """,
        (rec.result_set_id, rec.session_id, sanction_id, rec.level, rec.division, rec.official),
    )


def upsert_participant(
    conn: psycopg.Connection,
    sanction_id: int,
    rec: ParticipantRecord,
) -> None:
    conn.execute(
        """
        INSERT INTO sanction_gymnasts
          (sanction_id, gymnast_id, session_id, level, division, squad, club_id_for_meet)
        VALUES (%s, %s, %s, %s, %s, %s, %s)
        ON CONFLICT (sanction_id, gymnast_id) DO UPDATE SET
          club_id_for_meet = EXCLUDED.club_id_for_meet
        """,
        (
            sanction_id, rec.person_id, rec.session_id, rec.level,
            rec.division, rec.squad, rec.club_id,
        ),
    )


# ---------------------------------------------------------------------------
# Reconcile
# ---------------------------------------------------------------------------

class _Pass:
    """State shared by the steps of one reconcile call."""

    def __init__(
        self,
        conn: psycopg.Connection,
        doc: SanctionDocument,
        counters: SyncCounters,
        rejects: RejectWriter | None,
    ) -> None:
        self.conn = conn
        self.doc = doc
        self.counters = counters
        self.rejects = rejects
        self.known_club_ids: set[int] = set()
        self.accepted_gymnast_ids: set[int] = set()

    def skip(self, record_kind: str, reason: str, record: Any) -> None:
        row = record_to_row(record)
        row["sanction_id"] = self.doc.sanction_id
        record_warning(
            self.counters,
            self.rejects,
            DataQualityWarning(record_kind, f"{reason} (sanction {self.doc.sanction_id})", row),
        )

    def ensure_club(self, club_id: int) -> None:
        if club_id in self.known_club_ids:
            return
        if upsert_placeholder_club(self.conn, club_id):
            self.counters.placeholder_clubs += 1
        self.known_club_ids.add(club_id)


def _step_clubs(p: _Pass) -> None:
    for club in p.doc.clubs:
        if club.club_id is None:
            p.skip("club", "missing clubId", club)
            continue
        if club.name is None:
            p.skip("club", f"missing name for club {club.club_id}", club)
            continue
        upsert_club(p.conn, club)
        p.known_club_ids.add(club.club_id)
        p.counters.clubs_upserted += 1


def _step_gymnasts(p: _Pass) -> None:
    for person in p.doc.people:
        if person.person_id is None or person.club_id is None:
            p.counters.gymnasts_skipped += 1
            p.skip(
                "gymnast",
                f"missing {'personId' if person.person_id is None else 'clubId'} for "
                f"{person.first_name} {person.last_name}",
                person,
            )
            continue
        p.ensure_club(person.club_id)
        upsert_gymnast(p.conn, person)
        p.accepted_gymnast_ids.add(person.person_id)
        p.counters.gymnasts_upserted += 1


def _step_sessions(p: _Pass) -> None:
    for session in p.doc.sessions:
        if session.session_id is None:
            p.counters.sessions_skipped += 1
            p.skip("session", f"invalid sessionId {session.raw_session_id!r}", session)
            continue
        upsert_session(p.conn, p.doc.sanction_id, session)
        p.counters.sessions_upserted += 1


def _step_result_sets(p: _Pass) -> None:
    for rs in p.doc.result_sets:
        if rs.result_set_id is None:
            p.counters.result_sets_skipped += 1
            p.skip("result_set", "missing resultSetId", rs)
            continue
        if rs.session_id is None:
            p.counters.result_sets_skipped += 1
            p.skip("result_set", f"invalid sessionId {rs.raw_session_id!r}", rs)
            continue
        upsert_result_set(p.conn, p.doc.sanction_id, rs)
        p.counters.result_sets_upserted += 1


def _step_participants(p: _Pass) -> None:
    for sp in p.doc.participants:
        if sp.person_id is None or sp.person_id not in p.accepted_gymnast_ids:
            p.counters.participants_skipped += 1
            p.skip(
                "participant",
                f"personId {sp.person_id} not in the sanction's accepted people",
                sp,
            )
            continue
        if sp.session_id is None:
            p.counters.participants_skipped += 1
            p.skip("participant", f"invalid sessionId {sp.raw_session_id!r}", sp)
            continue
        if sp.club_id is not None:
            p.ensure_club(sp.club_id)
        upsert_participant(p.conn, p.doc.sanction_id, sp)
        p.counters.participants_upserted += 1


def reconcile(
    conn: psycopg.Connection,
    doc: SanctionDocument,
    counters: SyncCounters,
    rejects: RejectWriter | None = None,
) -> None:
    """Upsert every entity of doc in one transaction block.

    Raises SyncError (carrying the sanction id and the underlying cause) on any
    store failure; the block is rolled back before the error propagates.
    """
    sanction_id = doc.sanction_id
    p = _Pass(conn, doc, counters, rejects)
    written = counters.write_snapshot()
    try:
        with conn.transaction():
            _lock_sanction(conn, sanction_id)
            upsert_sanction(conn, doc.sanction)
            counters.sanctions_upserted += 1
            _step_clubs(p)
            _step_gymnasts(p)
            _step_sessions(p)
            _step_result_sets(p)
            _step_participants(p)
    except Exception as exc:
        counters.restore_writes(written)
        log.error("Failed to sync sanction %s: %s", sanction_id, exc)
        raise SyncError(sanction_id, exc) from exc

    log.info(
        "Synced sanction %s (%d gymnasts accepted)",
        sanction_id,
        len(p.accepted_gymnast_ids),
    )
