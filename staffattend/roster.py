"""Enrolled staff roster: candidate pool, enrollment rules and parquet storage."""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, replace
from datetime import datetime
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence

import numpy as np
import pandas as pd
from tqdm import tqdm

from staffattend.config import EngineConfig
from staffattend.io_utils import ensure_dir, list_images
from staffattend.recognition.conflict import detect_conflict
from staffattend.recognition.enrollment import build_face_model
from staffattend.recognition.extractor import load_image
from staffattend.types import (
    DEFAULT_ROLE,
    ROLES,
    ConflictResult,
    Descriptor,
    DuplicateEmployeeError,
    Identity,
    InvalidFaceModelError,
    InvalidRoleError,
    UnknownIdentityError,
    as_descriptor,
    normalize_employee_code,
)

LOGGER = logging.getLogger("staffattend.roster")

MAX_SEARCH_LIMIT = 200


def _validate_role(role: Optional[str]) -> str:
    if role is None:
        return DEFAULT_ROLE
    if role not in ROLES:
        raise InvalidRoleError(f"Invalid role value: {role!r}")
    return role


def _validate_face_model(descriptors: Sequence[Sequence[float]]) -> tuple:
    if descriptors is None or len(descriptors) == 0:
        raise InvalidFaceModelError("Face model needs at least one descriptor")
    vectors = tuple(as_descriptor(d) for d in descriptors)
    if any(v.size == 0 for v in vectors):
        raise InvalidFaceModelError("Face model contains an empty descriptor")
    if len({v.size for v in vectors}) > 1:
        raise InvalidFaceModelError("Face model descriptors have different lengths")
    return vectors


class Roster:
    """Ordered collection of identities; the order is the candidate order."""

    def __init__(self, identities: Iterable[Identity] = ()) -> None:
        self._identities: Dict[str, Identity] = {}
        for identity in identities:
            self._insert(identity)

    def __len__(self) -> int:
        return len(self._identities)

    def __iter__(self):
        return iter(self._identities.values())

    def _insert(self, identity: Identity) -> None:
        existing = self.find_by_employee_code(identity.employee_code)
        if existing is not None and existing.identity_id != identity.identity_id:
            raise DuplicateEmployeeError(existing)
        self._identities[identity.identity_id] = identity

    def get(self, identity_id: str) -> Identity:
        try:
            return self._identities[identity_id]
        except KeyError:
            raise UnknownIdentityError(identity_id) from None

    def find_by_employee_code(self, employee_code: str) -> Optional[Identity]:
        code = normalize_employee_code(employee_code)
        for identity in self._identities.values():
            if identity.employee_code == code:
                return identity
        return None

    def candidates(self, exclude_id: Optional[str] = None) -> List[Identity]:
        """Candidate pool for matching, optionally without the identity being re-enrolled."""
        return [i for i in self._identities.values() if i.identity_id != exclude_id]

    def enroll(
        self,
        name: str,
        employee_code: str,
        descriptors: Sequence[Sequence[float]],
        role: Optional[str] = None,
        identity_id: Optional[str] = None,
        created_at: Optional[datetime] = None,
    ) -> Identity:
        if not name or not name.strip():
            raise ValueError("Name is required")
        code = normalize_employee_code(employee_code)
        if not code:
            raise ValueError("Employee ID is required")
        identity = Identity(
            identity_id=identity_id or uuid.uuid4().hex,
            name=name.strip(),
            role=_validate_role(role),
            employee_code=code,
            descriptors=_validate_face_model(descriptors),
            created_at=created_at or datetime.now(),
        )
        if identity.identity_id in self._identities:
            raise ValueError(f"Identity id already in use: {identity.identity_id}")
        self._insert(identity)
        LOGGER.info("Enrolled %s (%s) with %d descriptors", identity.name, code, identity.descriptors_count)
        return identity

    def re_enroll(self, identity_id: str, descriptors: Sequence[Sequence[float]]) -> Identity:
        """Replace the stored face model wholesale."""
        identity = replace(self.get(identity_id), descriptors=_validate_face_model(descriptors))
        self._identities[identity_id] = identity
        LOGGER.info("Re-enrolled %s with %d descriptors", identity.employee_code, identity.descriptors_count)
        return identity

    def update(
        self,
        identity_id: str,
        name: Optional[str] = None,
        role: Optional[str] = None,
        employee_code: Optional[str] = None,
    ) -> Identity:
        identity = self.get(identity_id)
        changes = {}
        if role:
            changes["role"] = _validate_role(role)
        if employee_code is not None:
            code = normalize_employee_code(employee_code)
            if not code:
                raise ValueError("Employee ID is required")
            if code != identity.employee_code:
                duplicate = self.find_by_employee_code(code)
                if duplicate is not None:
                    raise DuplicateEmployeeError(duplicate)
                changes["employee_code"] = code
        if name is not None:
            if not name.strip():
                raise ValueError("Name is required")
            changes["name"] = name.strip()
        identity = replace(identity, **changes)
        self._identities[identity_id] = identity
        return identity

    def remove(self, identity_id: str, confirm_employee_code: str) -> Identity:
        identity = self.get(identity_id)
        if normalize_employee_code(confirm_employee_code) != identity.employee_code:
            raise ValueError("Confirmation employee ID mismatch")
        del self._identities[identity_id]
        LOGGER.info("Removed %s (%s)", identity.name, identity.employee_code)
        return identity

    def search(self, query: str = "", limit: int = 50) -> List[Identity]:
        """Newest-first case-insensitive substring search over name, code and role."""
        limit = min(max(int(limit), 1), MAX_SEARCH_LIMIT)
        needle = (query or "").strip().lower()
        ordered = sorted(
            self._identities.values(),
            key=lambda i: i.created_at or datetime.min,
            reverse=True,
        )
        if needle:
            ordered = [
                i
                for i in ordered
                if needle in i.name.lower() or needle in i.employee_code.lower() or needle in i.role.lower()
            ]
        return ordered[:limit]


@dataclass(frozen=True)
class RegistrationCheck:
    """Pre-registration report: employee code collision and face duplicate verdict."""

    employee: Optional[Identity]
    face: ConflictResult

    @property
    def employee_exists(self) -> bool:
        return self.employee is not None

    @property
    def blocked(self) -> bool:
        return self.employee_exists or self.face.is_conflict

    def to_dict(self) -> dict:
        conflict = None
        if self.face.is_conflict:
            conflict = {
                "user": self.face.identity.public_info(),
                "score": self.face.score,
                "support_hits": self.face.support_hits,
            }
        return {
            "employee_exists": self.employee_exists,
            "employee": self.employee.public_info() if self.employee else None,
            "face_conflict": conflict,
            "nearest_score": self.face.score if self.face.candidate else None,
        }


def validate_registration(
    roster: Roster,
    probe_set: Sequence[Sequence[float]],
    employee_code: Optional[str] = None,
    exclude_id: Optional[str] = None,
    config: Optional[EngineConfig] = None,
) -> RegistrationCheck:
    """Check a pending enrollment before it is saved.

    Duplicate detection runs on the raw samples, not their average.
    """
    config = config or EngineConfig()
    employee = None
    if employee_code:
        employee = roster.find_by_employee_code(employee_code)
        if employee is not None and employee.identity_id == exclude_id:
            employee = None
    face = detect_conflict(probe_set, roster.candidates(exclude_id=exclude_id), config.conflict)
    return RegistrationCheck(employee=employee, face=face)


def save_roster(roster: Roster, path: Path) -> Path:
    """Write the roster to parquet, one row per identity."""
    ensure_dir(path.parent)
    rows = [
        {
            "identity_id": identity.identity_id,
            "name": identity.name,
            "role": identity.role,
            "employee_code": identity.employee_code,
            "created_at": identity.created_at,
            "descriptors": [d.tolist() for d in identity.descriptors],
        }
        for identity in roster
    ]
    df = pd.DataFrame(
        rows,
        columns=["identity_id", "name", "role", "employee_code", "created_at", "descriptors"],
    )
    df.to_parquet(path, index=False)
    LOGGER.info("Roster saved: %d identities -> %s", len(df), path)
    return path


def load_roster(path: Path) -> Roster:
    df = pd.read_parquet(path)
    identities = []
    for _, row in df.iterrows():
        created_at = row["created_at"]
        if isinstance(created_at, pd.Timestamp):
            created_at = created_at.to_pydatetime()
        elif created_at is not None and pd.isna(created_at):
            created_at = None
        identities.append(
            Identity(
                identity_id=str(row["identity_id"]),
                name=str(row["name"]),
                role=str(row["role"]),
                employee_code=normalize_employee_code(str(row["employee_code"])),
                descriptors=tuple(_normalize_descriptor_list(row["descriptors"])),
                created_at=created_at,
            )
        )
    LOGGER.info("Roster loaded: %d identities from %s", len(identities), path)
    return Roster(identities)


def _normalize_descriptor_list(raw) -> List[Descriptor]:
    """Convert a parquet-loaded list-of-lists column into descriptor vectors."""
    if raw is None:
        return []
    if isinstance(raw, np.ndarray) and raw.dtype != object and raw.ndim == 2:
        return [as_descriptor(row) for row in raw]
    return [as_descriptor(part) for part in raw]


def _parse_person_dir(name: str) -> tuple:
    """``EMP-0042__Jane Doe`` -> (code, name); bare names use the name as code."""
    if "__" in name:
        code, person = name.split("__", 1)
        return code, person.replace("_", " ")
    return name, name.replace("_", " ")


def build_roster_from_dirs(root: Path, extractor, role: Optional[str] = None) -> Roster:
    """Enroll one identity per ``<CODE>__<Name>`` image directory under ``root``."""
    roster = Roster()
    person_dirs = sorted(p for p in root.iterdir() if p.is_dir())
    for person_dir in tqdm(person_dirs, desc="Enrolling", unit="person"):
        code, name = _parse_person_dir(person_dir.name)
        samples: List[Descriptor] = []
        for image_path in list_images(person_dir):
            observation = extractor.extract(load_image(image_path))
            if observation is None:
                LOGGER.warning("No face found in %s", image_path)
                continue
            samples.append(observation.descriptor)
        if not samples:
            LOGGER.warning("Skipping %s: no usable samples", person_dir.name)
            continue
        roster.enroll(name=name, employee_code=code, descriptors=build_face_model(samples), role=role)
    if not len(roster):
        raise RuntimeError(f"No enrollable faces found under {root}")
    return roster

