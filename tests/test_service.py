from dataclasses import replace
from datetime import datetime

import numpy as np
import pytest

from staffattend.attendance.decision import (
    ALREADY_CHECKED_IN,
    ALREADY_CHECKED_OUT,
    GOODBYE,
    NOT_CHECKED_IN,
    WELCOME,
)
from staffattend.attendance.ledger import AttendanceLedger
from staffattend.attendance.service import (
    INVALID_REQUEST,
    NOT_RECOGNIZED,
    UNKNOWN_IDENTITY,
    AttendanceService,
    remove_staff,
)
from staffattend.roster import Roster
from staffattend.types import CHECK_IN, CHECK_OUT, METHOD_FACE_SCAN, METHOD_MANUAL

DIM = 32


def face(value: float, axis: int = 0) -> np.ndarray:
    vec = np.zeros(DIM, dtype=np.float32)
    vec[axis] = value
    return vec


def make_service(ledger=None) -> AttendanceService:
    roster = Roster()
    roster.enroll("Alice", "EMP-001", [face(0.0)], role="Surgeon", identity_id="alice")
    roster.enroll("Bob", "EMP-002", [face(3.0, axis=1)], role="Nurse", identity_id="bob")
    return AttendanceService(roster, ledger if ledger is not None else AttendanceLedger())


def at(hour: int) -> datetime:
    return datetime(2024, 3, 4, hour)


def test_face_scan_toggles_through_the_day():
    service = make_service()
    first = service.log(probe=face(0.1), now=at(9))
    assert first.outcome == WELCOME
    assert first.identity.identity_id == "alice"
    assert first.score == 90
    assert first.record.method == METHOD_FACE_SCAN

    second = service.log(probe=face(0.05), now=at(17))
    assert second.outcome == GOODBYE
    assert service.ledger.lookup("alice", at(0)).check_out == at(17)

    third = service.log(probe=face(0.05), now=at(18))
    assert third.outcome == ALREADY_CHECKED_OUT


def test_unrecognized_face_leaves_ledger_untouched():
    service = make_service()
    result = service.log(probe=face(1.5, axis=5), now=at(9))
    assert result.outcome == NOT_RECOGNIZED
    assert result.identity is None
    assert len(service.ledger) == 0


def test_manual_confirmation_with_explicit_intent():
    service = make_service()
    assert service.log(identity_id="bob", intent=CHECK_OUT, now=at(8)).outcome == NOT_CHECKED_IN
    result = service.log(identity_id="bob", intent=CHECK_IN, now=at(9))
    assert result.outcome == WELCOME
    assert result.record.method == METHOD_MANUAL
    assert service.log(identity_id="bob", intent=CHECK_IN, now=at(10)).outcome == ALREADY_CHECKED_IN


def test_bad_requests():
    service = make_service()
    assert service.log(identity_id="nobody").outcome == UNKNOWN_IDENTITY
    assert service.log().outcome == INVALID_REQUEST
    assert service.log(probe=[]).outcome == INVALID_REQUEST
    assert service.log(identity_id="alice", intent="Lunch", now=at(9)).outcome == INVALID_REQUEST


class LaggingLedger(AttendanceLedger):
    """Ledger whose first lookup misses a record another request already wrote."""

    def __init__(self):
        super().__init__()
        self.stale_reads = 1

    def lookup(self, identity_id, day):
        if self.stale_reads:
            self.stale_reads -= 1
            return None
        return super().lookup(identity_id, day)


def test_lost_create_race_reports_already_checked_in():
    ledger = LaggingLedger()
    service = make_service(ledger)
    winner = AttendanceService(service.roster, AttendanceLedger())
    ledger.create(winner.log(identity_id="alice", intent=CHECK_IN, now=at(9)).record)

    result = service.log(identity_id="alice", intent=CHECK_IN, now=at(9))
    assert result.outcome == ALREADY_CHECKED_IN
    assert result.record.check_in == at(9)
    assert len(ledger) == 1


def test_to_dict_exposes_public_fields_only():
    service = make_service()
    payload = service.log(probe=face(0.1), now=at(9)).to_dict()
    assert payload["user"] == {"id": "alice", "name": "Alice", "role": "Surgeon", "employee_code": "EMP-001"}
    assert payload["type"] == CHECK_IN
    assert payload["record"]["check_in"] == "2024-03-04T09:00:00"


class StaleOpenLedger(AttendanceLedger):
    """Serves the pre-check-out copy of a record once, as a concurrent reader would."""

    def __init__(self, stale):
        super().__init__()
        self.stale = stale

    def lookup(self, identity_id, day):
        if self.stale is not None:
            stale, self.stale = self.stale, None
            return stale
        return super().lookup(identity_id, day)


def test_lost_check_out_race_reports_already_checked_out():
    opened = make_service().log(identity_id="alice", intent=CHECK_IN, now=at(9)).record
    ledger = StaleOpenLedger(opened)
    ledger.create(opened)
    ledger.save(replace(opened, check_out=at(17)))
    service = make_service(ledger)
    assert service.ledger is ledger

    result = service.log(identity_id="alice", intent=CHECK_OUT, now=at(18))
    assert result.outcome == ALREADY_CHECKED_OUT
    assert result.record.check_out == at(17)


def test_remove_staff_drops_their_attendance_only():
    service = make_service()
    service.log(identity_id="alice", intent=CHECK_IN, now=at(9))
    service.log(identity_id="bob", intent=CHECK_IN, now=at(9))
    service.log(identity_id="bob", intent=CHECK_IN, now=datetime(2024, 3, 5, 9))

    with pytest.raises(ValueError):
        remove_staff(service.roster, service.ledger, "bob", "EMP-001")
    assert len(service.ledger) == 3

    removed, deleted = remove_staff(service.roster, service.ledger, "bob", "emp-002")
    assert removed.name == "Bob"
    assert deleted == 2
    assert [r.identity_id for r in service.ledger.records_for(at(0))] == ["alice"]
