"""Common dataclasses, constants and exceptions used across the staffattend package."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Optional, Sequence, Tuple

import numpy as np

# Descriptors are 1-D float64 vectors produced by the external face model.
Descriptor = np.ndarray

# Distance returned when two descriptors cannot be compared (length mismatch).
SENTINEL_DISTANCE = 1.0

ROLES: Tuple[str, ...] = ("Surgeon", "Doctor", "Nurse", "Admin")
DEFAULT_ROLE = "Doctor"

CHECK_IN = "Check-in"
CHECK_OUT = "Check-out"
INTENTS: Tuple[str, ...] = (CHECK_IN, CHECK_OUT)

STATUS_PRESENT = "Present"
STATUS_LATE = "Late"
STATUS_ABSENT = "Absent"

METHOD_FACE_SCAN = "FaceScan"
METHOD_MANUAL = "Manual"
METHOD_ADMIN = "Admin"


class AttendanceError(Exception):
    """Base class for roster and ledger failures."""


class DuplicateEmployeeError(AttendanceError):
    def __init__(self, existing: "Identity") -> None:
        super().__init__(f"Employee ID already exists: {existing.employee_code}")
        self.existing = existing


class InvalidRoleError(AttendanceError, ValueError):
    pass


class InvalidFaceModelError(AttendanceError, ValueError):
    pass


class UnknownIdentityError(AttendanceError, KeyError):
    pass


class DuplicateRecordError(AttendanceError):
    """Raised when a second record is created for the same identity and day."""

    def __init__(self, identity_id: str, day: date) -> None:
        super().__init__(f"Attendance already recorded for {identity_id} on {day.isoformat()}")
        self.identity_id = identity_id
        self.day = day


def normalize_employee_code(code: str) -> str:
    """Employee codes compare trimmed and case-insensitively."""
    return (code or "").strip().upper()


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def match_score(distance: float) -> int:
    """Display percentage for a distance, clamped at zero."""
    return max(0, round_half_up((1.0 - distance) * 100.0))


def as_descriptor(values: Sequence[float]) -> Descriptor:
    """Coerce any numeric sequence into a flat float64 vector."""
    return np.asarray(values, dtype=np.float64).reshape(-1)


@dataclass(frozen=True)
class Identity:
    """An enrolled staff member and their reference descriptors (the face model)."""

    identity_id: str
    name: str
    role: str
    employee_code: str
    descriptors: Tuple[Descriptor, ...] = ()
    created_at: Optional[datetime] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "descriptors", tuple(as_descriptor(d) for d in self.descriptors))

    @property
    def descriptors_count(self) -> int:
        return len(self.descriptors)

    def public_info(self) -> dict:
        """Fields safe to hand back to a kiosk or conflict prompt."""
        return {
            "id": self.identity_id,
            "name": self.name,
            "role": self.role,
            "employee_code": self.employee_code,
        }


@dataclass(frozen=True)
class MatchResult:
    """Outcome of resolving one probe against a candidate pool."""

    identity: Optional[Identity]
    distance: float

    @property
    def matched(self) -> bool:
        return self.identity is not None

    @property
    def score(self) -> int:
        return match_score(self.distance)


@dataclass(frozen=True)
class ConflictResult:
    """Outcome of checking a multi-sample enrollment against enrolled identities.

    ``candidate`` is the winning candidate whether or not it passed both gates,
    so callers can show near-miss percentages; ``identity`` is only set when the
    verdict is a conflict.
    """

    candidate: Optional[Identity]
    distance: float
    support_hits: int
    min_support_hits: int
    is_conflict: bool

    @property
    def identity(self) -> Optional[Identity]:
        return self.candidate if self.is_conflict else None

    @property
    def score(self) -> int:
        return match_score(self.distance)


@dataclass
class AttendanceRecord:
    """One attendance row per identity per calendar day."""

    identity_id: str
    day: date
    check_in: datetime
    check_out: Optional[datetime] = None
    status: str = STATUS_PRESENT
    method: str = METHOD_FACE_SCAN

    @property
    def checked_out(self) -> bool:
        return self.check_out is not None

    def to_dict(self) -> dict:
        return {
            "identity_id": self.identity_id,
            "day": self.day.isoformat(),
            "check_in": self.check_in.isoformat(),
            "check_out": self.check_out.isoformat() if self.check_out else None,
            "status": self.status,
            "method": self.method,
        }


@dataclass(frozen=True)
class Observation:
    """Single face observed in a frame by the external descriptor model."""

    descriptor: Descriptor
    det_score: float
    bbox: Tuple[float, float, float, float]
    landmarks: Optional[np.ndarray] = field(default=None, compare=False)
