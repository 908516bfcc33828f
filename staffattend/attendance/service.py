"""Kiosk-facing attendance logging: identify, decide, persist."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Sequence, Tuple

from staffattend.attendance.decision import (
    ALREADY_CHECKED_IN,
    ALREADY_CHECKED_OUT,
    AttendanceDecision,
    decide_attendance,
)
from staffattend.attendance.ledger import AttendanceLedger
from staffattend.config import EngineConfig
from staffattend.recognition.matcher import resolve
from staffattend.roster import Roster
from staffattend.types import (
    METHOD_FACE_SCAN,
    METHOD_MANUAL,
    AttendanceRecord,
    DuplicateRecordError,
    Identity,
    UnknownIdentityError,
)

LOGGER = logging.getLogger("staffattend.attendance.service")

NOT_RECOGNIZED = "not-recognized"
UNKNOWN_IDENTITY = "unknown-identity"
INVALID_REQUEST = "invalid-request"
RECOGNIZED = "recognized"


@dataclass(frozen=True)
class AttendanceLogResult:
    outcome: str
    message: str
    identity: Optional[Identity] = None
    record: Optional[AttendanceRecord] = None
    action: Optional[str] = None
    score: Optional[int] = None

    def to_dict(self) -> dict:
        return {
            "outcome": self.outcome,
            "message": self.message,
            "user": self.identity.public_info() if self.identity else None,
            "type": self.action,
            "score": self.score,
            "record": self.record.to_dict() if self.record else None,
        }


class AttendanceService:
    """Turns a kiosk request into at most one ledger change."""

    def __init__(
        self,
        roster: Roster,
        ledger: AttendanceLedger,
        config: Optional[EngineConfig] = None,
    ) -> None:
        self.roster = roster
        self.ledger = ledger
        self.config = config or EngineConfig()

    def identify(self, probe: Sequence[float]) -> AttendanceLogResult:
        """Resolve a live probe without touching the ledger."""
        match = resolve(probe, self.roster.candidates(), self.config.match_threshold)
        if match.identity is None:
            LOGGER.info("Face not recognized (nearest distance %.4f)", match.distance)
            return AttendanceLogResult(NOT_RECOGNIZED, "Face not recognized", score=match.score)
        return AttendanceLogResult(RECOGNIZED, match.identity.name, identity=match.identity, score=match.score)

    def log(
        self,
        identity_id: Optional[str] = None,
        probe: Optional[Sequence[float]] = None,
        intent: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> AttendanceLogResult:
        """Check someone in or out.

        ``identity_id`` is a manual confirmation and wins over ``probe``.
        Without an ``intent`` the request toggles based on today's record.
        """
        score = None
        if identity_id:
            try:
                identity = self.roster.get(identity_id)
            except UnknownIdentityError:
                return AttendanceLogResult(UNKNOWN_IDENTITY, "User not found")
        elif probe is not None and len(probe) > 0:
            identified = self.identify(probe)
            if identified.identity is None:
                return identified
            identity, score = identified.identity, identified.score
        else:
            return AttendanceLogResult(INVALID_REQUEST, "Invalid request data")

        now = now or datetime.now()
        method = METHOD_MANUAL if intent is not None else METHOD_FACE_SCAN
        try:
            decision = self._apply(identity, intent, now, method)
        except ValueError as exc:
            return AttendanceLogResult(INVALID_REQUEST, str(exc), identity=identity, score=score)
        return AttendanceLogResult(
            decision.outcome,
            decision.message,
            identity=identity,
            record=decision.record,
            action=decision.action,
            score=score,
        )

    def _apply(self, identity: Identity, intent: Optional[str], now: datetime, method: str) -> AttendanceDecision:
        existing = self.ledger.lookup(identity.identity_id, now)
        decision = decide_attendance(identity, existing, intent, now, method, self.config.late_after)
        if not decision.changed:
            return decision
        try:
            if existing is None:
                self.ledger.create(decision.record)
            else:
                self.ledger.save(decision.record)
        except DuplicateRecordError:
            # Another request for the same person won the write.
            LOGGER.warning("Concurrent attendance write for %s; reporting stored state", identity.identity_id)
            current = self.ledger.lookup(identity.identity_id, now)
            if existing is None:
                return AttendanceDecision(current, ALREADY_CHECKED_IN, "You have already checked in today.", False)
            return AttendanceDecision(current, ALREADY_CHECKED_OUT, "You have already checked out today.", False)
        return decision


def remove_staff(
    roster: Roster,
    ledger: AttendanceLedger,
    identity_id: str,
    confirm_employee_code: str,
) -> Tuple[Identity, int]:
    """Delete a staff member and their attendance history.

    Nothing is removed unless ``confirm_employee_code`` matches. Returns the
    removed identity and the number of attendance records dropped with it.
    """
    identity = roster.remove(identity_id, confirm_employee_code)
    deleted = ledger.remove_identity(identity_id)
    LOGGER.info("Deleted %d attendance record(s) of %s", deleted, identity.employee_code)
    return identity, deleted
