"""Normalization functions for USA Gymnastics sanction ingestion.

Every function here is total: malformed or absent input yields None (or the
raw value, for event-code passthrough), never an exception.  Upstream payloads
routinely omit optional fields, so None is an expected result, not an error.
"""

from __future__ import annotations

import enum
import logging
import re
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any

log = logging.getLogger(__name__)

_INTEGER_RE = re.compile(r"^[+-]?\d+$")


class MeetStatus(str, enum.Enum):
    OPEN = "Open"
    CLOSED = "Closed"
    COMPLETE = "Complete"
    IN_PROGRESS = "InProgress"
    FUTURE = "Future"


class Program(str, enum.Enum):
    WOMENS = "Womens"
    MENS = "Mens"


# ---------------------------------------------------------------------------
# Rule 1: trim
# ---------------------------------------------------------------------------

def trim(value: Any) -> str | None:
    """Strip leading/trailing whitespace; treat empty string as None.

    Non-string scalars (phone numbers arrive as JSON numbers) are stringified.
    """
    if value is None:
        return None
    v = str(value).strip()
    return v if v else None


# ---------------------------------------------------------------------------
# Rule 2: normalize_space
# ---------------------------------------------------------------------------

def normalize_space(value: Any) -> str | None:
    """Collapse internal runs of whitespace to single spaces, then trim."""
    v = trim(value)
    if v is None:
        return None
    return re.sub(r"\s+", " ", v)


# ---------------------------------------------------------------------------
# Rule 3: parse_integer
# ---------------------------------------------------------------------------

def parse_integer(value: Any) -> int | None:
    """Parse an integer id from a string or number.

    '123' → 123, 123 → 123, 12.0 → 12.  Anything else ('', 'TBD', 12.5,
    booleans) → None.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if value.is_integer() else None
    if isinstance(value, Decimal):
        return int(value) if value.is_finite() and value == value.to_integral_value() else None
    v = trim(value)
    if v is None or not _INTEGER_RE.match(v):
        return None
    return int(v)


# ---------------------------------------------------------------------------
# Rule 4: parse_decimal
# ---------------------------------------------------------------------------

def parse_decimal(value: Any) -> Decimal | None:
    """Parse a decimal score from a string or number, returning None on failure."""
    if value is None or isinstance(value, bool):
        return None
    v = trim(value)
    if v is None:
        return None
    try:
        d = Decimal(v)
    except InvalidOperation:
        return None
    return d if d.is_finite() else None


# ---------------------------------------------------------------------------
# Rule 5: parse_date
# ---------------------------------------------------------------------------

def parse_date(value: Any) -> date | None:
    """Parse an ISO date or timestamp ('2023-01-14', '2023-01-14T08:00:00')."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    v = trim(value)
    if v is None:
        return None
    try:
        return date.fromisoformat(v[:10])
    except ValueError:
        return None


def parse_flag(value: Any) -> bool:
    """Upstream 0/1 flags → bool.  Absent → False."""
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes")
    return bool(value)


# ---------------------------------------------------------------------------
# Rule 6: map_meet_status
# ---------------------------------------------------------------------------

_MEET_STATUS_BY_LOWER = {
    "open": MeetStatus.OPEN,
    "closed": MeetStatus.CLOSED,
    "complete": MeetStatus.COMPLETE,
    "in progress": MeetStatus.IN_PROGRESS,
    "future": MeetStatus.FUTURE,
}


def map_meet_status(raw: Any) -> MeetStatus | None:
    """Case-insensitive match of the upstream meetStatus string.

    Unknown values are logged and mapped to None; they never abort a sync.
    """
    v = normalize_space(raw)
    if v is None:
        return None
    status = _MEET_STATUS_BY_LOWER.get(v.lower())
    if status is None:
        log.warning("Unknown meet status from API: %r", raw)
    return status


# ---------------------------------------------------------------------------
# Rule 7: program encodings
#
# The upstream encodes the same program concept two ways:
#   sanction.program  (detail header)  → numeric id: 1 = Womens, 2 = Mens
#   sessions[].program                 → string:     "Women", "Men"
# Both are folded into Program here; callers pick by field provenance.
# ---------------------------------------------------------------------------

_PROGRAM_BY_ID = {1: Program.WOMENS, 2: Program.MENS}
_PROGRAM_BY_NAME = {"women": Program.WOMENS, "men": Program.MENS}


def program_from_id(raw: Any) -> Program | None:
    """Map the numeric program id of a sanction header."""
    return _PROGRAM_BY_ID.get(parse_integer(raw))  # type: ignore[arg-type]


def program_from_name(raw: Any) -> Program | None:
    """Map the 'Men' / 'Women' program string of a session."""
    v = trim(raw)
    if v is None:
        return None
    return _PROGRAM_BY_NAME.get(v.lower())


# ---------------------------------------------------------------------------
# Rule 8: map_event_code
# ---------------------------------------------------------------------------

MENS_EVENTS = {
    "1": "Floor Exercise",
    "2": "Pommel Horse",
    "3": "Still Rings",
    "4": "Parallel Bars",
    "5": "Vault",
    "6": "High Bar",
    "aa": "All-Around",
}

WOMENS_EVENTS = {
    "1": "Vault",
    "2": "Uneven Bars",
    "3": "Balance Beam",
    "4": "Floor Exercise",
    "aa": "All-Around",
}

_EVENTS_BY_PROGRAM = {Program.MENS: MENS_EVENTS, Program.WOMENS: WOMENS_EVENTS}


def map_event_code(code: Any, program: Program | str | None) -> str | None:
    """Return the display name of an event code for a program.

    Unknown codes, and any code under an unknown program, pass through as the
    raw code.  An empty code → None.
    """
    v = trim(code)
    if v is None:
        return None
    if isinstance(program, str) and not isinstance(program, Program):
        try:
            program = Program(program)
        except ValueError:
            program = None
    table = _EVENTS_BY_PROGRAM.get(program)  # type: ignore[arg-type]
    if table is None:
        return v
    return table.get(v.lower(), v)
