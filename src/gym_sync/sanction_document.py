"""gym_sync.sanction_document

Staging dataclasses for the upstream USA Gymnastics payloads, and the parsers
that build them from raw JSON.

Shapes handled:
  GET /v2/sanctions/{id}     → SanctionDocument (header + club/people/
                               sanctionPeople maps keyed by id strings +
                               sessions / sessionResultSets lists)
  GET /v2/resultsSets/{id}   → {"scores": [...]}  → ScoreRecord
  GET /v1/meets/past         → [{sanctionId, name, startDate, ...}] → MeetSummary

Parsing never rejects an individual child record: ids that fail to coerce are
kept as None and the reconciler decides whether to skip.  Only a document with
no usable sanction header raises MalformedDocumentError.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Any

from gym_sync.normalize import (
    MeetStatus,
    Program,
    map_meet_status,
    normalize_space,
    parse_date,
    parse_decimal,
    parse_flag,
    parse_integer,
    program_from_id,
    program_from_name,
    trim,
)


class MalformedDocumentError(ValueError):
    """Raised when a sanction detail document has no usable sanction header."""


# ---------------------------------------------------------------------------
# Staging dataclasses
# ---------------------------------------------------------------------------

@dataclass
class SanctionRecord:
    sanction_id: int
    name: str | None
    start_date: date | None
    end_date: date | None
    city: str | None
    state: str | None
    site_name: str | None
    website: str | None
    program: Program | None     # from the numeric header encoding
    meet_status: MeetStatus | None
    has_results: bool
    address1: str | None
    zip: str | None
    logo_url: str | None


@dataclass
class ClubRecord:
    club_id: int | None
    name: str | None
    short_name: str | None
    city: str | None
    state: str | None
    zip: str | None
    website: str | None
    email: str | None
    phone: str | None


@dataclass
class PersonRecord:
    person_id: int | None
    club_id: int | None
    first_name: str | None
    last_name: str | None
    gender: str | None


@dataclass
class SessionRecord:
    session_id: int | None
    raw_session_id: Any
    name: str | None
    session_date: date | None
    program: Program | None     # from the 'Men'/'Women' session encoding


@dataclass
class ResultSetRecord:
    result_set_id: int | None
    session_id: int | None
    raw_session_id: Any
    level: str | None
    division: str | None
    official: bool


@dataclass
class ParticipantRecord:
    person_id: int | None
    club_id: int | None          # club represented at this meet
    session_id: int | None
    raw_session_id: Any
    level: str | None
    division: str | None
    squad: str | None


@dataclass
class SanctionDocument:
    sanction: SanctionRecord
    clubs: list[ClubRecord] = field(default_factory=list)
    club_table_keys: set[int] = field(default_factory=set)
    people: list[PersonRecord] = field(default_factory=list)
    sessions: list[SessionRecord] = field(default_factory=list)
    result_sets: list[ResultSetRecord] = field(default_factory=list)
    participants: list[ParticipantRecord] = field(default_factory=list)

    @property
    def sanction_id(self) -> int:
        return self.sanction.sanction_id

    def has_club(self, club_id: int) -> bool:
        return club_id in self.club_table_keys


@dataclass
class ScoreRecord:
    score_id: int | None
    result_set_id: int | None
    person_id: int | None
    event_id: str | None
    final_score: Decimal | None
    rank: int | None
    tie: bool


@dataclass
class MeetSummary:
    sanction_id: int | None
    name: str | None
    start_date: date | None
    site_name: str | None


# ---------------------------------------------------------------------------
# Parsers
# ---------------------------------------------------------------------------

def _values(container: Any) -> list[dict[str, Any]]:
    """Upstream maps are keyed by id strings; some payloads send lists instead."""
    if isinstance(container, dict):
        items = container.values()
    elif isinstance(container, list):
        items = container
    else:
        return []
    return [item for item in items if isinstance(item, dict)]


def parse_sanction_header(raw: dict[str, Any]) -> SanctionRecord:
    sanction_id = parse_integer(raw.get("sanctionId"))
    if sanction_id is None:
        raise MalformedDocumentError(
            f"sanction header has no integer sanctionId: {raw.get('sanctionId')!r}"
        )
    return SanctionRecord(
        sanction_id=sanction_id,
        name=normalize_space(raw.get("name")),
        start_date=parse_date(raw.get("startDate")),
        end_date=parse_date(raw.get("endDate")),
        city=trim(raw.get("city")),
        state=trim(raw.get("state")),
        site_name=normalize_space(raw.get("siteName")),
        website=trim(raw.get("website")),
        program=program_from_id(raw.get("program")),
        meet_status=map_meet_status(raw.get("meetStatus")),
        has_results=parse_flag(raw.get("hasResults")),
        address1=trim(raw.get("address1")),
        zip=trim(raw.get("zip")),
        logo_url=trim(raw.get("logoUrl")),
    )


def parse_club(raw: dict[str, Any], key: Any = None) -> ClubRecord:
    club_id = parse_integer(raw.get("clubId"))
    if club_id is None:
        club_id = parse_integer(key)
    return ClubRecord(
        club_id=club_id,
        name=normalize_space(raw.get("name")),
        short_name=normalize_space(raw.get("shortName")),
        city=trim(raw.get("city")),
        state=trim(raw.get("state")),
        zip=trim(raw.get("zip")),
        website=trim(raw.get("website")),
        email=trim(raw.get("emailAddress")),
        phone=trim(raw.get("phone")),
    )


def parse_person(raw: dict[str, Any]) -> PersonRecord:
    return PersonRecord(
        person_id=parse_integer(raw.get("personId")),
        club_id=parse_integer(raw.get("clubId")),
        first_name=normalize_space(raw.get("firstName")),
        last_name=normalize_space(raw.get("lastName")),
        gender=trim(raw.get("gender")),
    )


def parse_session(raw: dict[str, Any]) -> SessionRecord:
    return SessionRecord(
        session_id=parse_integer(raw.get("sessionId")),
        raw_session_id=raw.get("sessionId"),
        name=normalize_space(raw.get("name")),
        session_date=parse_date(raw.get("date")),
        program=program_from_name(raw.get("program")),
    )


def parse_result_set(raw: dict[str, Any]) -> ResultSetRecord:
    return ResultSetRecord(
        result_set_id=parse_integer(raw.get("resultSetId")),
        session_id=parse_integer(raw.get("sessionId")),
        raw_session_id=raw.get("sessionId"),
        level=trim(raw.get("level")),
        division=normalize_space(raw.get("division")),
        official=parse_flag(raw.get("official")),
    )


def parse_participant(raw: dict[str, Any]) -> ParticipantRecord:
    return ParticipantRecord(
        person_id=parse_integer(raw.get("personId")),
        club_id=parse_integer(raw.get("clubId")),
        session_id=parse_integer(raw.get("sessionId")),
        raw_session_id=raw.get("sessionId"),
        level=trim(raw.get("level")),
        division=normalize_space(raw.get("division")),
        squad=trim(raw.get("squad")),
    )


def parse_sanction_document(payload: Any) -> SanctionDocument:
    """Build a SanctionDocument from a GET /v2/sanctions/{id} payload."""
    if not isinstance(payload, dict) or not isinstance(payload.get("sanction"), dict):
        raise MalformedDocumentError("sanction document has no 'sanction' header")

    sanction = parse_sanction_header(payload["sanction"])

    raw_clubs = payload.get("clubs") or {}
    clubs: list[ClubRecord] = []
    if isinstance(raw_clubs, dict):
        for key, raw in raw_clubs.items():
            if isinstance(raw, dict):
                clubs.append(parse_club(raw, key))
        keys = {parse_integer(k) for k in raw_clubs.keys()}
    else:
        clubs = [parse_club(raw) for raw in _values(raw_clubs)]
        keys = {c.club_id for c in clubs}
    keys.discard(None)

    return SanctionDocument(
        sanction=sanction,
        clubs=clubs,
        club_table_keys=keys,  # type: ignore[arg-type]
        people=[parse_person(raw) for raw in _values(payload.get("people"))],
        sessions=[parse_session(raw) for raw in _values(payload.get("sessions"))],
        result_sets=[
            parse_result_set(raw) for raw in _values(payload.get("sessionResultSets"))
        ],
        participants=[
            parse_participant(raw) for raw in _values(payload.get("sanctionPeople"))
        ],
    )


def parse_score(raw: dict[str, Any]) -> ScoreRecord:
    return ScoreRecord(
        score_id=parse_integer(raw.get("scoreId")),
        result_set_id=parse_integer(raw.get("resultSetId")),
        person_id=parse_integer(raw.get("personId")),
        event_id=trim(raw.get("eventId")),
        final_score=parse_decimal(raw.get("finalScore")),
        rank=parse_integer(raw.get("rank")),
        tie=parse_flag(raw.get("tie")),
    )


def parse_scores(payload: Any) -> list[ScoreRecord]:
    """Scores from a result-set payload; a payload without 'scores' → []."""
    if not isinstance(payload, dict):
        return []
    return [parse_score(raw) for raw in _values(payload.get("scores"))]


def parse_meet_summary(raw: dict[str, Any]) -> MeetSummary:
    return MeetSummary(
        sanction_id=parse_integer(raw.get("sanctionId")),
        name=normalize_space(raw.get("name")),
        start_date=parse_date(raw.get("startDate")),
        site_name=normalize_space(raw.get("siteName")),
    )


def parse_meet_listing(payload: Any) -> list[MeetSummary]:
    """Meets from GET /v1/meets/past, preserving listing order."""
    return [parse_meet_summary(raw) for raw in _values(payload)]
