"""Multi-sample duplicate detection for enrollments."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence

from staffattend.recognition.matcher import candidate_distance
from staffattend.types import SENTINEL_DISTANCE, ConflictResult, Identity

LOGGER = logging.getLogger("staffattend.recognition.conflict")


def default_min_support_hits(sample_count: int) -> int:
    """Support requirement grows with sample count, clamped to [2, 3]."""
    return min(3, max(2, sample_count // 3))


@dataclass(frozen=True)
class ConflictConfig:
    strict_threshold: float = 0.38
    support_threshold: float = 0.42
    # None derives the requirement from the number of probes
    min_support_hits: Optional[int] = None

    def support_required(self, sample_count: int) -> int:
        if self.min_support_hits is not None:
            return self.min_support_hits
        return default_min_support_hits(sample_count)


@dataclass
class CandidateSupport:
    """Running tally of the evidence a probe set gives one candidate."""

    identity: Identity
    order: int
    support_hits: int = 0
    best_distance: float = SENTINEL_DISTANCE

    def observe(self, distance: float, support_threshold: float) -> None:
        if distance <= support_threshold:
            self.support_hits += 1
        if distance < self.best_distance:
            self.best_distance = distance

    def rank_key(self):
        return (-self.support_hits, self.best_distance, self.order)


def tally_support(
    probe_set: Sequence[Sequence[float]],
    candidates: Sequence[Identity],
    support_threshold: float,
) -> List[CandidateSupport]:
    tallies: List[CandidateSupport] = []
    for order, candidate in enumerate(candidates):
        if len(candidate.descriptors) == 0:
            continue
        tally = CandidateSupport(identity=candidate, order=order)
        for probe in probe_set:
            distance = candidate_distance(probe, candidate)
            if distance is not None:
                tally.observe(distance, support_threshold)
        LOGGER.debug(
            "Candidate %s support_hits=%d best_distance=%.4f",
            candidate.identity_id,
            tally.support_hits,
            tally.best_distance,
        )
        tallies.append(tally)
    return tallies


def detect_conflict(
    probe_set: Sequence[Sequence[float]],
    candidates: Sequence[Identity],
    config: Optional[ConflictConfig] = None,
) -> ConflictResult:
    """Decide whether a probe set duplicates an enrolled identity.

    The winner is the candidate with the most support hits, then the lowest
    best distance, then the earliest position in ``candidates``. It is only a
    conflict when its best distance is within the strict threshold and it has
    at least the required number of support hits.
    """
    config = config or ConflictConfig()
    required = config.support_required(len(probe_set))
    if not probe_set:
        return ConflictResult(None, SENTINEL_DISTANCE, 0, required, False)

    tallies = tally_support(probe_set, candidates, config.support_threshold)
    if not tallies:
        return ConflictResult(None, SENTINEL_DISTANCE, 0, required, False)

    winner = min(tallies, key=CandidateSupport.rank_key)
    is_conflict = (
        winner.best_distance <= config.strict_threshold
        and winner.support_hits >= required
    )
    if is_conflict:
        LOGGER.info(
            "Enrollment conflicts with %s (%s): best=%.4f support=%d/%d",
            winner.identity.name,
            winner.identity.employee_code,
            winner.best_distance,
            winner.support_hits,
            len(probe_set),
        )
    return ConflictResult(
        candidate=winner.identity,
        distance=winner.best_distance,
        support_hits=winner.support_hits,
        min_support_hits=required,
        is_conflict=is_conflict,
    )
