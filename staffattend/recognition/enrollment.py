"""Enrollment sample collection and face-model construction."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence

from staffattend.config import EngineConfig
from staffattend.recognition.descriptors import average_descriptor
from staffattend.recognition.quality import ISSUE_MESSAGES, NO_FACE
from staffattend.types import Descriptor, as_descriptor

LOGGER = logging.getLogger("staffattend.recognition.enrollment")

WAITING = "waiting"
QUALITY_ERROR = "quality-error"
MODELING = "modeling"
FINALIZED = "finalized"


@dataclass(frozen=True)
class EnrollmentStatus:
    state: str
    message: str
    progress: int
    samples: int
    issue: Optional[str] = None


def build_face_model(samples: Sequence[Sequence[float]]) -> List[Descriptor]:
    """Reference set to store: the centroid first, then every raw sample."""
    if not samples:
        return []
    raw = [as_descriptor(sample) for sample in samples]
    return [average_descriptor(raw), *raw]


class EnrollmentSession:
    """Collects descriptors from consecutive frames until a face model is ready.

    Any frame without a face, or with a quality issue, throws away what has
    been collected so the stored model only holds a steady run of samples.
    """

    def __init__(self, config: Optional[EngineConfig] = None) -> None:
        self.config = config or EngineConfig()
        self.samples: List[Descriptor] = []
        self.state = WAITING
        self.started_ms: Optional[float] = None
        self.last_sample_ms: Optional[float] = None
        self.progress = 0

    def reset(self) -> None:
        self.samples = []
        self.state = WAITING
        self.started_ms = None
        self.last_sample_ms = None
        self.progress = 0

    def _status(self, message: str, issue: Optional[str] = None) -> EnrollmentStatus:
        return EnrollmentStatus(self.state, message, self.progress, len(self.samples), issue)

    def add_frame(
        self,
        descriptor: Optional[Sequence[float]],
        now_ms: float,
        issues: Sequence[str] = (),
    ) -> EnrollmentStatus:
        if self.state == FINALIZED:
            return self._status("Face model ready.")

        if descriptor is None:
            self.reset()
            return self._status(ISSUE_MESSAGES[NO_FACE], NO_FACE)

        issue = next((item for item in issues if item != NO_FACE), None)
        if issue is not None:
            self.reset()
            self.state = QUALITY_ERROR
            LOGGER.debug("Enrollment reset on quality issue %s", issue)
            return self._status(ISSUE_MESSAGES.get(issue, issue), issue)

        if self.started_ms is None:
            self.started_ms = now_ms
            self.state = MODELING
            self.progress = 5

        if self.last_sample_ms is not None and now_ms - self.last_sample_ms < self.config.sample_interval_ms:
            return self._status("Hold still, processing...")

        self.last_sample_ms = now_ms
        self.samples.append(as_descriptor(descriptor))

        elapsed = now_ms - self.started_ms
        sample_progress = min(1.0, len(self.samples) / self.config.required_samples)
        if self.config.required_duration_ms > 0:
            duration_progress = min(1.0, elapsed / self.config.required_duration_ms)
        else:
            duration_progress = 1.0
        self.progress = int(round(min(sample_progress, duration_progress) * 100))

        if len(self.samples) >= self.config.required_samples and elapsed >= self.config.required_duration_ms:
            self.state = FINALIZED
            self.progress = 100
            LOGGER.info("Enrollment finalized with %d samples over %.0f ms", len(self.samples), elapsed)
            return self._status("Face model ready.")
        return self._status("Hold still, processing...")

    @property
    def finalized(self) -> bool:
        return self.state == FINALIZED

    def probe_set(self) -> List[Descriptor]:
        """Raw samples used for duplicate detection."""
        return list(self.samples)

    def face_model(self) -> List[Descriptor]:
        if not self.finalized:
            raise RuntimeError("Enrollment session is not finalized yet")
        return build_face_model(self.samples)

