"""Canned upstream payloads and a UsagymClient double for integration tests."""

from __future__ import annotations

import copy
from typing import Any
from unittest.mock import MagicMock

from gym_sync.fetch import UsagymClient
from gym_sync.shared import FetchFailed


SANCTION_ID = 59310
CLUB_ID = 24029

_SANCTION_PAYLOAD: dict[str, Any] = {
    "sanction": {
        "sanctionId": SANCTION_ID,
        "name": "Winter Classic",
        "startDate": "2023-01-14",
        "endDate": "2023-01-15",
        "city": "Sterling",
        "state": "VA",
        "siteName": "Sterling Gym",
        "website": "https://example.com/winter-classic",
        "program": 1,
        "meetStatus": "Complete",
        "hasResults": True,
        "address1": "1 Vault Way",
        "zip": "20166",
        "logoUrl": None,
    },
    "clubs": {
        "24029": {
            "clubId": 24029, "name": "Sterling Gymnastics", "shortName": "Sterling",
            "city": "Sterling", "state": "VA", "zip": "20166",
            "website": None, "emailAddress": "office@sterling.example", "phone": 7035550100,
        },
        "11111": {"clubId": 11111, "name": "Capital Flyers", "city": "Reston", "state": "VA"},
    },
    "people": {
        "501": {"personId": 501, "clubId": 24029, "firstName": "Ava", "lastName": "Smith", "gender": "F"},
        "502": {"personId": 502, "clubId": 11111, "firstName": "Mia", "lastName": "Jones", "gender": "F"},
        # club not in the club table → placeholder club
        "503": {"personId": 503, "clubId": 99999, "firstName": "Zoe", "lastName": "Park", "gender": "F"},
        # missing ids → gymnast and link both skipped
        "504": {"personId": None, "clubId": 24029, "firstName": "No", "lastName": "Id", "gender": "F"},
        "505": {"personId": 505, "clubId": None, "firstName": "No", "lastName": "Club", "gender": "F"},
    },
    "sessions": [
        {"sessionId": "1", "sanctionId": SANCTION_ID, "name": "Session 1", "date": "2023-01-14", "program": "Women"},
        {"sessionId": "TBD", "sanctionId": SANCTION_ID, "name": "Session ?", "date": "2023-01-15", "program": "Women"},
    ],
    "sessionResultSets": [
        {"resultSetId": 9001, "sessionId": "1", "sanctionId": SANCTION_ID, "level": "4", "division": "Jr A", "official": 1},
        {"resultSetId": 9002, "sessionId": "abc", "sanctionId": SANCTION_ID, "level": "5", "division": "Sr", "official": 0},
    ],
    "sanctionPeople": {
        "501": {"sanctionId": SANCTION_ID, "personId": 501, "clubId": 24029, "sessionId": "1", "level": "4", "division": "Jr A", "squad": "1"},
        # competed for a different club at this meet
        "502": {"sanctionId": SANCTION_ID, "personId": 502, "clubId": 33333, "sessionId": "1", "level": "4", "division": "Jr A", "squad": "2"},
        "503": {"sanctionId": SANCTION_ID, "personId": 503, "clubId": 99999, "sessionId": "x", "level": "4", "division": "Jr A", "squad": "2"},
        "505": {"sanctionId": SANCTION_ID, "personId": 505, "clubId": 24029, "sessionId": "1", "level": "4", "division": "Jr A", "squad": "1"},
    },
}


def make_sanction_payload(
    sanction_id: int = SANCTION_ID,
    club_ids: tuple[int, ...] | None = None,
    **header: Any,
) -> dict[str, Any]:
    """Deep copy of the canned sanction payload, re-keyed to sanction_id.

    club_ids restricts the club table (and the people/links of those clubs).
    """
    payload = copy.deepcopy(_SANCTION_PAYLOAD)
    payload["sanction"]["sanctionId"] = sanction_id
    payload["sanction"].update(header)
    for session in payload["sessions"]:
        session["sanctionId"] = sanction_id
    for rs in payload["sessionResultSets"]:
        rs["sanctionId"] = sanction_id
        rs["resultSetId"] = rs["resultSetId"] + (sanction_id - SANCTION_ID) * 10
    for sp in payload["sanctionPeople"].values():
        sp["sanctionId"] = sanction_id
    if club_ids is not None:
        keep = {str(c) for c in club_ids}
        payload["clubs"] = {k: v for k, v in payload["clubs"].items() if k in keep}
        payload["people"] = {
            k: v for k, v in payload["people"].items() if str(v["clubId"]) in keep
        }
        payload["sanctionPeople"] = {
            k: v for k, v in payload["sanctionPeople"].items() if k in payload["people"]
        }
    return payload


def make_client(
    sanctions: dict[int, Any] | None = None,
    result_sets: dict[int, Any] | None = None,
    past_meets: Any = None,
) -> MagicMock:
    """A UsagymClient double answering from canned payloads; unknown ids → HTTP 404."""
    sanctions = sanctions or {}
    result_sets = result_sets or {}
    client = MagicMock(spec=UsagymClient)
    client.fetch_sanction.side_effect = lambda sid: sanctions.get(
        sid, FetchFailed("sanction", sid, status_code=404)
    )
    client.fetch_result_set.side_effect = lambda rsid: result_sets.get(
        rsid, FetchFailed("result_set", rsid, status_code=404)
    )
    client.fetch_past_meets.return_value = (
        past_meets if past_meets is not None else FetchFailed("past_meets", None, status_code=503)
    )
    return client
