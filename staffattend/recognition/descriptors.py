"""Descriptor math shared by every matching call site."""

from __future__ import annotations

import logging
from typing import Sequence

import numpy as np
from scipy.spatial.distance import cdist

from staffattend.types import SENTINEL_DISTANCE, Descriptor, as_descriptor

LOGGER = logging.getLogger("staffattend.recognition.descriptors")


def euclidean_distance(a: Sequence[float], b: Sequence[float]) -> float:
    """L2 distance, or the sentinel when the lengths differ."""
    vec_a = as_descriptor(a)
    vec_b = as_descriptor(b)
    if vec_a.shape != vec_b.shape:
        LOGGER.debug("Descriptor length mismatch %d vs %d", vec_a.size, vec_b.size)
        return SENTINEL_DISTANCE
    return float(np.linalg.norm(vec_a - vec_b))


def average_descriptor(descriptors: Sequence[Sequence[float]]) -> Descriptor:
    """Element-wise mean of equal-length descriptors (centroid of enrollment samples)."""
    if len(descriptors) == 0:
        return np.empty((0,), dtype=np.float64)
    stacked = np.stack([as_descriptor(d) for d in descriptors], axis=0)
    return stacked.mean(axis=0)


def distances_to_references(probe: Sequence[float], references: Sequence[Sequence[float]]) -> np.ndarray:
    """Distance from ``probe`` to each reference, sentinel for foreign shapes.

    Keeps the reference order so first-seen tie-breaking still holds.
    """
    vec = as_descriptor(probe)
    refs = [as_descriptor(ref) for ref in references]
    out = np.full((len(refs),), SENTINEL_DISTANCE, dtype=np.float64)
    if len(refs) == 0:
        return out
    same_shape = [idx for idx, ref in enumerate(refs) if ref.shape == vec.shape]
    if len(same_shape) != len(refs):
        LOGGER.warning(
            "Skipping %d reference(s) whose length differs from probe length %d",
            len(refs) - len(same_shape),
            vec.size,
        )
    if not same_shape or vec.size == 0:
        return out
    stacked = np.stack([refs[idx] for idx in same_shape], axis=0)
    out[same_shape] = cdist(vec[None, :], stacked, metric="euclidean")[0]
    return out


def min_distance_to_references(probe: Sequence[float], references: Sequence[Sequence[float]]) -> float:
    """Best distance from a probe to any stored view of one identity."""
    if len(references) == 0:
        return SENTINEL_DISTANCE
    return float(distances_to_references(probe, references).min())
