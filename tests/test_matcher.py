import numpy as np
import pytest

from staffattend.recognition.descriptors import euclidean_distance
from staffattend.recognition.matcher import FaceMatcher, find_best_match, resolve
from staffattend.types import SENTINEL_DISTANCE, Identity

DIM = 128


def offset(distance: float, axis: int = 0) -> np.ndarray:
    vec = np.zeros(DIM, dtype=np.float32)
    vec[axis] = distance
    return vec


def make_identity(name: str, *descriptors: np.ndarray) -> Identity:
    return Identity(
        identity_id=name.lower(),
        name=name,
        role="Nurse",
        employee_code=f"EMP-{name.upper()}",
        descriptors=tuple(descriptors),
    )


def test_resolve_returns_alice_with_score():
    probe = offset(0.0)
    alice = make_identity("Alice", offset(0.1))
    match = resolve(probe, [alice], acceptance_threshold=0.5)
    assert match.identity is alice
    assert match.score == 90


def test_empty_pool_is_no_match():
    match = resolve(offset(0.0), [])
    assert match.identity is None
    assert match.distance == SENTINEL_DISTANCE


def test_candidate_uses_its_closest_view():
    probe = offset(0.0)
    alice = make_identity("Alice", offset(0.45), offset(0.2, axis=3))
    bob = make_identity("Bob", offset(0.3))
    match = find_best_match(probe, [bob, alice])
    assert match.identity is alice
    assert abs(match.distance - 0.2) < 1e-6


def test_global_minimum_wins_regardless_of_order():
    probe = offset(0.0)
    pool = [
        make_identity("Carol", offset(0.42)),
        make_identity("Dan", offset(0.15)),
        make_identity("Erin", offset(0.31)),
    ]
    for ordering in (pool, list(reversed(pool))):
        assert find_best_match(probe, ordering).identity.name == "Dan"


def test_ties_keep_first_seen_candidate():
    probe = offset(0.0)
    first = make_identity("First", offset(0.2))
    second = make_identity("Second", offset(0.2, axis=5))
    assert find_best_match(probe, [first, second]).identity is first
    assert find_best_match(probe, [second, first]).identity is second


def test_identity_without_references_is_skipped():
    empty = make_identity("Ghost")
    bob = make_identity("Bob", offset(0.3))
    match = find_best_match(offset(0.0), [empty, bob])
    assert match.identity is bob


def test_threshold_rejects_but_reports_distance():
    probe = offset(0.0)
    far = make_identity("Far", offset(0.7))
    match = resolve(probe, [far], acceptance_threshold=0.5)
    assert match.identity is None
    assert abs(match.distance - 0.7) < 1e-6
    assert match.score == 30
    strict = resolve(probe, [make_identity("Near", offset(0.4))], acceptance_threshold=0.38)
    assert strict.identity is None


def test_foreign_length_probe_never_matches():
    alice = make_identity("Alice", offset(0.0))
    match = resolve(np.zeros(64, dtype=np.float32), [alice])
    assert match.identity is None
    assert match.distance == SENTINEL_DISTANCE


def test_resolve_is_idempotent():
    probe = offset(0.05, axis=2)
    pool = [make_identity("Alice", offset(0.1)), make_identity("Bob", offset(0.2, axis=2))]
    assert resolve(probe, pool) == resolve(probe, pool)


def test_face_matcher_topk_orders_by_distance():
    pool = [
        make_identity("Alice", offset(0.6)),
        make_identity("Bob", offset(0.2)),
        make_identity("Carol", offset(0.4)),
    ]
    matcher = FaceMatcher(pool, acceptance_threshold=0.5)
    top = matcher.topk(offset(0.0), k=2)
    assert [identity.name for identity, _ in top] == ["Bob", "Carol"]
    assert matcher.best_match(offset(0.0)).identity.name == "Bob"


def test_descriptor_matrix_is_accepted_as_face_model():
    views = np.stack([offset(0.3), offset(0.2)], axis=0)
    alice = Identity(identity_id="alice", name="Alice", role="Nurse", employee_code="EMP-A", descriptors=views)
    assert alice.descriptors_count == 2
    match = resolve(offset(0.0), [alice])
    assert match.identity is alice
    assert match.distance == pytest.approx(0.2, abs=1e-6)


def test_empty_descriptor_matrix_is_skipped():
    ghost = Identity(identity_id="ghost", name="Ghost", role="Nurse", employee_code="EMP-G", descriptors=np.zeros((0, DIM)))
    match = resolve(offset(0.0), [ghost])
    assert match.identity is None
    assert match.distance == SENTINEL_DISTANCE


def test_threshold_boundary_agrees_with_pairwise_distance():
    alice = make_identity("Alice", [0.6])
    distance = euclidean_distance([0.1], [0.6])
    match = resolve([0.1], [alice], acceptance_threshold=0.5)
    assert match.distance == distance
    assert (match.identity is alice) == (distance <= 0.5)
