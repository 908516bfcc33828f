from datetime import datetime
from pathlib import Path

import numpy as np
import pytest

from staffattend import roster as roster_module
from staffattend.config import EngineConfig
from staffattend.recognition.conflict import ConflictConfig
from staffattend.roster import Roster, build_roster_from_dirs, load_roster, save_roster, validate_registration
from staffattend.types import (
    DuplicateEmployeeError,
    InvalidFaceModelError,
    InvalidRoleError,
    Observation,
    UnknownIdentityError,
)

DIM = 16


def face(value: float, axis: int = 0) -> np.ndarray:
    vec = np.zeros(DIM, dtype=np.float32)
    vec[axis] = value
    return vec


def make_roster() -> Roster:
    roster = Roster()
    roster.enroll("Alice Smith", " emp-001 ", [face(0.0)], role="Surgeon", identity_id="alice",
                  created_at=datetime(2024, 1, 1))
    roster.enroll("Bob Jones", "EMP-002", [face(5.0, axis=1)], role="Nurse", identity_id="bob",
                  created_at=datetime(2024, 2, 1))
    return roster


def test_enroll_normalizes_employee_code_and_defaults_role():
    roster = Roster()
    identity = roster.enroll("  Carol  ", "emp-9", [face(1.0)])
    assert identity.employee_code == "EMP-9"
    assert identity.name == "Carol"
    assert identity.role == "Doctor"
    assert identity.descriptors_count == 1


def test_employee_code_is_unique_case_insensitively():
    roster = make_roster()
    with pytest.raises(DuplicateEmployeeError) as excinfo:
        roster.enroll("Other", "Emp-001", [face(1.0)])
    assert excinfo.value.existing.identity_id == "alice"


def test_enroll_rejects_bad_role_and_face_models():
    roster = Roster()
    with pytest.raises(InvalidRoleError):
        roster.enroll("Dan", "EMP-3", [face(0.0)], role="Janitor")
    with pytest.raises(InvalidFaceModelError):
        roster.enroll("Dan", "EMP-3", [])
    with pytest.raises(InvalidFaceModelError):
        roster.enroll("Dan", "EMP-3", [face(0.0), np.zeros(4, dtype=np.float32)])
    assert len(roster) == 0


def test_re_enroll_replaces_face_model_wholesale():
    roster = make_roster()
    updated = roster.re_enroll("alice", [face(2.0), face(2.1), face(2.2)])
    assert updated.descriptors_count == 3
    assert roster.get("alice").descriptors[0][0] == pytest.approx(2.0)


def test_update_checks_code_collisions():
    roster = make_roster()
    with pytest.raises(DuplicateEmployeeError):
        roster.update("bob", employee_code="emp-001")
    updated = roster.update("bob", name="Robert Jones", role="Admin", employee_code="emp-777")
    assert (updated.name, updated.role, updated.employee_code) == ("Robert Jones", "Admin", "EMP-777")


def test_update_rejects_blank_name_and_code():
    roster = make_roster()
    with pytest.raises(ValueError):
        roster.update("bob", name="   ")
    with pytest.raises(ValueError):
        roster.update("bob", employee_code="  ")
    assert roster.get("bob").name == "Bob Jones"
    assert roster.get("bob").employee_code == "EMP-002"


def test_remove_requires_matching_confirmation():
    roster = make_roster()
    with pytest.raises(ValueError):
        roster.remove("bob", "EMP-001")
    removed = roster.remove("bob", " emp-002")
    assert removed.name == "Bob Jones"
    with pytest.raises(UnknownIdentityError):
        roster.get("bob")


def test_search_and_candidates():
    roster = make_roster()
    assert [i.identity_id for i in roster.search()] == ["bob", "alice"]
    assert [i.identity_id for i in roster.search("surg")] == ["alice"]
    assert len(roster.search(limit=0)) == 1
    assert [i.identity_id for i in roster.candidates(exclude_id="alice")] == ["bob"]


def test_validate_registration_flags_face_duplicate():
    roster = make_roster()
    samples = [face(0.1), face(0.2), face(0.15), face(0.3)]
    check = validate_registration(roster, samples, employee_code="EMP-100")
    assert not check.employee_exists
    assert check.face.is_conflict
    assert check.blocked
    payload = check.to_dict()
    assert payload["face_conflict"]["user"]["employee_code"] == "EMP-001"
    assert payload["face_conflict"]["support_hits"] == 4


def test_validate_registration_skips_identity_being_re_enrolled():
    roster = make_roster()
    samples = [face(0.1)] * 4
    check = validate_registration(roster, samples, employee_code="emp-001", exclude_id="alice")
    assert not check.blocked
    assert check.face.candidate.identity_id == "bob"
    assert check.to_dict()["face_conflict"] is None


def test_validate_registration_reports_existing_employee_code():
    roster = make_roster()
    check = validate_registration(roster, [face(9.0, axis=4)] * 3, employee_code="emp-002")
    assert check.employee_exists
    assert check.employee.identity_id == "bob"
    assert not check.face.is_conflict


def test_roster_parquet_round_trip(tmp_path: Path):
    pytest.importorskip("pyarrow")
    roster = make_roster()
    roster.re_enroll("bob", [face(5.0, axis=1), face(5.1, axis=1)])
    path = save_roster(roster, tmp_path / "data" / "roster.parquet")

    loaded = load_roster(path)
    assert [i.identity_id for i in loaded] == ["alice", "bob"]
    bob = loaded.get("bob")
    assert bob.employee_code == "EMP-002"
    assert bob.descriptors_count == 2
    assert bob.descriptors[1].dtype == np.float64
    np.testing.assert_allclose(bob.descriptors[1], face(5.1, axis=1))
    assert loaded.get("alice").created_at == datetime(2024, 1, 1)


class FakeExtractor:
    def __init__(self, by_value):
        self.by_value = by_value

    def extract(self, frame):
        value = float(frame[0, 0, 0])
        descriptor = self.by_value.get(value)
        if descriptor is None:
            return None
        return Observation(descriptor, 0.99, (0.0, 0.0, 10.0, 10.0))


def test_build_roster_from_dirs(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    for folder, names in {"EMP-1__Jane_Doe": ["a.jpg", "b.jpg"], "EMP-2__John": ["c.png"], "EMP-3__Empty": []}.items():
        person = tmp_path / folder
        person.mkdir()
        for name in names:
            (person / name).write_bytes(b"")

    pixel = {"a.jpg": 1, "b.jpg": 2, "c.png": 3}
    monkeypatch.setattr(
        roster_module,
        "load_image",
        lambda path: np.full((4, 4, 3), pixel[Path(path).name], dtype=np.uint8),
    )
    extractor = FakeExtractor({1.0: face(1.0), 2.0: face(3.0), 3.0: face(7.0, axis=2)})

    roster = build_roster_from_dirs(tmp_path, extractor, role="Nurse")
    assert len(roster) == 2
    jane = roster.find_by_employee_code("emp-1")
    assert jane.name == "Jane Doe"
    assert jane.role == "Nurse"
    # centroid plus two raw samples
    assert jane.descriptors_count == 3
    assert jane.descriptors[0][0] == pytest.approx(2.0)


def test_engine_config_thresholds_reach_conflict_detector(monkeypatch: pytest.MonkeyPatch):
    roster = make_roster()
    real_detect = roster_module.detect_conflict
    seen = {}

    def spy(probes, candidates, config):
        seen["config"] = config
        return real_detect(probes, candidates, config)

    monkeypatch.setattr(roster_module, "detect_conflict", spy)
    validate_registration(roster, [face(0.1)] * 3, config=EngineConfig(strict_threshold=0.2, min_support_hits=3))
    assert isinstance(seen["config"], ConflictConfig)
    assert seen["config"].strict_threshold == pytest.approx(0.2)
    assert seen["config"].min_support_hits == 3
