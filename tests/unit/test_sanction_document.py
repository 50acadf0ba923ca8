"""Unit tests for gym_sync.sanction_document parsers.

No database or network access required.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal

import pytest

from gym_sync.normalize import MeetStatus, Program
from gym_sync.sanction_document import (
    MalformedDocumentError,
    parse_meet_listing,
    parse_sanction_document,
    parse_scores,
)


def _payload(**overrides):
    payload = {
        "sanction": {
            "sanctionId": "59310",
            "name": "  Winter   Classic ",
            "startDate": "2023-01-14T00:00:00",
            "endDate": "2023-01-15",
            "program": 2,
            "meetStatus": "In progress",
            "hasResults": 1,
            "zip": 20166,
        },
        "clubs": {
            "24029": {"clubId": 24029, "name": "Sterling Gymnastics", "phone": 7035550100},
            "777": {"name": "Keyed Only"},
        },
        "people": {
            "501": {"personId": "501", "clubId": "24029", "firstName": "Ava", "lastName": "Smith"},
        },
        "sessions": [{"sessionId": "3", "name": "Session 3", "date": "2023-01-14", "program": "Men"}],
        "sessionResultSets": [{"resultSetId": 9001, "sessionId": "n/a", "official": 0}],
        "sanctionPeople": {
            "501": {"personId": 501, "clubId": 33333, "sessionId": "3", "squad": 2},
        },
    }
    payload.update(overrides)
    return payload


class TestParseSanctionDocument:
    def test_header(self):
        doc = parse_sanction_document(_payload())
        s = doc.sanction
        assert doc.sanction_id == 59310
        assert s.name == "Winter Classic"
        assert s.start_date == date(2023, 1, 14)
        assert s.end_date == date(2023, 1, 15)
        assert s.program == Program.MENS
        assert s.meet_status == MeetStatus.IN_PROGRESS
        assert s.has_results is True
        assert s.zip == "20166"

    def test_club_table(self):
        doc = parse_sanction_document(_payload())
        by_id = {c.club_id: c for c in doc.clubs}
        assert by_id[24029].phone == "7035550100"
        # club id falls back to its key in the club table
        assert by_id[777].name == "Keyed Only"
        assert doc.club_table_keys == {24029, 777}
        assert doc.has_club(24029)
        assert not doc.has_club(33333)

    def test_people_ids_coerced(self):
        person = parse_sanction_document(_payload()).people[0]
        assert person.person_id == 501
        assert person.club_id == 24029

    def test_session_uses_string_program_encoding(self):
        session = parse_sanction_document(_payload()).sessions[0]
        assert session.session_id == 3
        assert session.program == Program.MENS

    def test_uncoercible_session_kept_with_raw_value(self):
        rs = parse_sanction_document(_payload()).result_sets[0]
        assert rs.result_set_id == 9001
        assert rs.session_id is None
        assert rs.raw_session_id == "n/a"
        assert rs.official is False

    def test_participant(self):
        sp = parse_sanction_document(_payload()).participants[0]
        assert sp.club_id == 33333
        assert sp.session_id == 3
        assert sp.squad == "2"

    def test_missing_collections(self):
        doc = parse_sanction_document({"sanction": {"sanctionId": 1}})
        assert doc.clubs == []
        assert doc.people == []
        assert doc.sessions == []
        assert doc.result_sets == []
        assert doc.participants == []
        assert doc.club_table_keys == set()

    def test_null_entries_ignored(self):
        doc = parse_sanction_document(_payload(people={"1": None}, sessions=None))
        assert doc.people == []
        assert doc.sessions == []

    @pytest.mark.parametrize("payload", [
        None,
        [],
        {},
        {"sanction": None},
        {"sanction": {"sanctionId": "abc"}},
    ])
    def test_malformed(self, payload):
        with pytest.raises(MalformedDocumentError):
            parse_sanction_document(payload)


class TestParseScores:
    def test_scores(self):
        scores = parse_scores({"scores": [
            {"scoreId": 1, "resultSetId": "9001", "personId": 501, "eventId": 4,
             "finalScore": "9.125", "rank": "2", "tie": 1},
        ]})
        s = scores[0]
        assert s.score_id == 1
        assert s.result_set_id == 9001
        assert s.event_id == "4"
        assert s.final_score == Decimal("9.125")
        assert s.rank == 2
        assert s.tie is True

    def test_no_scores_key(self):
        assert parse_scores({}) == []
        assert parse_scores(None) == []


class TestParseMeetListing:
    def test_listing_order_preserved(self):
        meets = parse_meet_listing([
            {"sanctionId": 3, "name": "C", "startDate": "2023-03-01"},
            {"sanctionId": 1, "name": "A", "startDate": "2022-01-01"},
        ])
        assert [m.sanction_id for m in meets] == [3, 1]
        assert meets[0].start_date == date(2023, 3, 1)

    def test_non_list(self):
        assert parse_meet_listing(None) == []
