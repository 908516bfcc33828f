"""Per-day check-in / check-out state machine."""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import datetime, time
from typing import Optional, Tuple

from staffattend.types import (
    CHECK_IN,
    CHECK_OUT,
    INTENTS,
    METHOD_FACE_SCAN,
    STATUS_LATE,
    STATUS_PRESENT,
    AttendanceRecord,
    Identity,
)

LOGGER = logging.getLogger("staffattend.attendance.decision")

# States of the (identity, day) record
NO_RECORD = "no-record"
CHECKED_IN = "checked-in"
CHECKED_OUT = "checked-out"

# Outcome kinds
WELCOME = "welcome"
GOODBYE = "goodbye"
NOT_CHECKED_IN = "not-checked-in"
ALREADY_CHECKED_IN = "already-checked-in"
ALREADY_CHECKED_OUT = "already-checked-out"


def day_bounds(moment: datetime) -> Tuple[datetime, datetime]:
    """Local calendar day containing ``moment``: 00:00:00.000 through 23:59:59.999."""
    day = moment.date()
    return (
        datetime.combine(day, time(0, 0, 0, 0), tzinfo=moment.tzinfo),
        datetime.combine(day, time(23, 59, 59, 999000), tzinfo=moment.tzinfo),
    )


def record_state(record: Optional[AttendanceRecord]) -> str:
    if record is None:
        return NO_RECORD
    if record.check_out is None:
        return CHECKED_IN
    return CHECKED_OUT


def infer_intent(record: Optional[AttendanceRecord]) -> Optional[str]:
    """Auto-toggle intent; ``None`` once the day is already closed."""
    state = record_state(record)
    if state == NO_RECORD:
        return CHECK_IN
    if state == CHECKED_IN:
        return CHECK_OUT
    return None


@dataclass(frozen=True)
class AttendanceDecision:
    """What to persist (if anything) and what to tell the person at the kiosk."""

    record: Optional[AttendanceRecord]
    outcome: str
    message: str
    changed: bool
    action: Optional[str] = None

    @property
    def rejected(self) -> bool:
        return self.outcome == NOT_CHECKED_IN


def _clock(moment: datetime) -> str:
    return moment.strftime("%H:%M:%S")


def decide_attendance(
    identity: Identity,
    existing: Optional[AttendanceRecord],
    intent: Optional[str] = None,
    now: Optional[datetime] = None,
    method: str = METHOD_FACE_SCAN,
    late_after: Optional[time] = None,
) -> AttendanceDecision:
    """Apply a check-in/check-out request to today's record.

    ``existing`` must be the record for ``now``'s calendar day (or ``None``);
    it is never mutated, an updated copy is returned instead.
    """
    if intent is not None and intent not in INTENTS:
        raise ValueError(f"Unknown attendance intent {intent!r}")
    now = now or datetime.now()
    if existing is not None and existing.day != now.date():
        raise ValueError("Existing record belongs to a different day")

    state = record_state(existing)
    requested = intent if intent is not None else infer_intent(existing)

    if state == CHECKED_OUT:
        suffix = " for today" if intent is None else " today"
        return AttendanceDecision(existing, ALREADY_CHECKED_OUT, f"You have already checked out{suffix}.", False)

    if requested == CHECK_IN:
        if state == CHECKED_IN:
            return AttendanceDecision(existing, ALREADY_CHECKED_IN, "You have already checked in today.", False)
        status = STATUS_PRESENT
        if late_after is not None and now.time() > late_after:
            status = STATUS_LATE
        record = AttendanceRecord(
            identity_id=identity.identity_id,
            day=now.date(),
            check_in=now,
            status=status,
            method=method,
        )
        LOGGER.info("Check-in %s (%s) at %s status=%s", identity.name, identity.employee_code, _clock(now), status)
        return AttendanceDecision(
            record,
            WELCOME,
            f"Welcome, {identity.role} {identity.name}. Checked in at {_clock(now)}",
            True,
            CHECK_IN,
        )

    # requested == CHECK_OUT
    if state == NO_RECORD:
        return AttendanceDecision(None, NOT_CHECKED_IN, "You haven't checked in yet today.", False)
    record = replace(existing, check_out=now)
    LOGGER.info("Check-out %s (%s) at %s", identity.name, identity.employee_code, _clock(now))
    return AttendanceDecision(
        record,
        GOODBYE,
        f"Goodbye, {identity.name}. Checked out at {_clock(now)}",
        True,
        CHECK_OUT,
    )

