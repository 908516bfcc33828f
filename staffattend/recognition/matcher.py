"""Best-match resolver for live kiosk scans."""

from __future__ import annotations

import logging
from typing import List, Optional, Sequence, Tuple

from staffattend.recognition.descriptors import min_distance_to_references
from staffattend.types import SENTINEL_DISTANCE, Identity, MatchResult

LOGGER = logging.getLogger("staffattend.recognition.matcher")

DEFAULT_MATCH_THRESHOLD = 0.5


def candidate_distance(probe: Sequence[float], candidate: Identity) -> Optional[float]:
    """Minimum distance over a candidate's stored views, ``None`` if it has none."""
    if len(candidate.descriptors) == 0:
        LOGGER.warning("Identity %s has no reference descriptors; skipping", candidate.identity_id)
        return None
    return min_distance_to_references(probe, candidate.descriptors)


def find_best_match(probe: Sequence[float], candidates: Sequence[Identity]) -> MatchResult:
    """Globally closest candidate without any acceptance threshold.

    A candidate must beat the sentinel distance to be returned, and ties keep
    the first candidate seen.
    """
    best: Optional[Identity] = None
    best_distance = SENTINEL_DISTANCE
    for candidate in candidates:
        distance = candidate_distance(probe, candidate)
        if distance is None:
            continue
        LOGGER.debug("Candidate %s distance=%.4f", candidate.identity_id, distance)
        if distance < best_distance:
            best_distance = distance
            best = candidate
    return MatchResult(identity=best, distance=best_distance)


def resolve(
    probe: Sequence[float],
    candidates: Sequence[Identity],
    acceptance_threshold: float = DEFAULT_MATCH_THRESHOLD,
) -> MatchResult:
    """Identify who a probe belongs to; identity is ``None`` above the threshold.

    The nominal best distance is kept either way so callers can show it.
    """
    match = find_best_match(probe, candidates)
    if match.identity is not None and match.distance <= acceptance_threshold:
        return match
    return MatchResult(identity=None, distance=match.distance)


class FaceMatcher:
    """Holds a candidate pool and an acceptance threshold for repeated lookups."""

    def __init__(
        self,
        candidates: Sequence[Identity],
        acceptance_threshold: float = DEFAULT_MATCH_THRESHOLD,
    ) -> None:
        self.candidates = tuple(candidates)
        self.acceptance_threshold = acceptance_threshold

    def best_match(self, probe: Sequence[float]) -> MatchResult:
        return resolve(probe, self.candidates, self.acceptance_threshold)

    def topk(self, probe: Sequence[float], k: int = 3) -> List[Tuple[Identity, float]]:
        """Return the k closest candidates without applying the threshold."""
        scored: List[Tuple[Identity, float]] = []
        for candidate in self.candidates:
            distance = candidate_distance(probe, candidate)
            if distance is not None:
                scored.append((candidate, distance))
        # sort is stable, so equal distances keep pool order
        scored.sort(key=lambda item: item[1])
        return scored[:k]
