"""Capture-quality checks applied to a detected face before it is sampled."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional, Tuple

import cv2
import numpy as np

from staffattend.config import QualityConfig
from staffattend.types import Observation

LOGGER = logging.getLogger("staffattend.recognition.quality")

NO_FACE = "no-face"
OUTSIDE_FRAME = "outside-frame"
TOO_DARK = "too-dark"
TOO_BRIGHT = "too-bright"
TOO_SMALL = "too-small"
TOO_LARGE = "too-large"
LOOK_STRAIGHT = "look-straight"

ISSUE_MESSAGES = {
    NO_FACE: "Position your face inside the frame.",
    OUTSIDE_FRAME: "Your whole face must be inside the frame.",
    TOO_DARK: "Too dark. Add more light.",
    TOO_BRIGHT: "Too bright. Reduce direct light.",
    TOO_SMALL: "Face is too far. Move a little closer.",
    TOO_LARGE: "Face is too close. Move back a little.",
    LOOK_STRAIGHT: "Look straight at the camera.",
}


@dataclass(frozen=True)
class FrameRect:
    left: float
    top: float
    width: float
    height: float

    def contains(self, bbox: Tuple[float, float, float, float]) -> bool:
        x1, y1, x2, y2 = bbox
        return (
            x1 >= self.left
            and y1 >= self.top
            and x2 <= self.left + self.width
            and y2 <= self.top + self.height
        )


def guide_frame(frame_width: int, frame_height: int, config: Optional[QualityConfig] = None) -> FrameRect:
    """Centered guide box the face has to sit in."""
    config = config or QualityConfig()
    narrow = frame_width < config.narrow_below_px
    width_ratio = config.narrow_width_ratio if narrow else config.frame_width_ratio
    height_ratio = config.narrow_height_ratio if narrow else config.frame_height_ratio
    width = frame_width * width_ratio
    height = frame_height * height_ratio
    return FrameRect(
        left=(frame_width - width) / 2.0,
        top=(frame_height - height) / 2.0,
        width=width,
        height=height,
    )


def measure_brightness(frame: np.ndarray, bbox: Tuple[float, float, float, float]) -> float:
    """Mean grey level inside the face box of a BGR frame."""
    h, w = frame.shape[:2]
    x1, y1, x2, y2 = bbox
    x1 = int(np.clip(x1, 0, w))
    x2 = int(np.clip(x2, 0, w))
    y1 = int(np.clip(y1, 0, h))
    y2 = int(np.clip(y2, 0, h))
    crop = frame[y1:y2, x1:x2]
    if crop.size == 0:
        return 0.0
    crop = np.ascontiguousarray(crop)
    gray = cv2.cvtColor(crop, cv2.COLOR_BGR2GRAY) if crop.ndim == 3 else crop
    return float(gray.mean())


def landmark_asymmetry(landmarks: Optional[np.ndarray]) -> Optional[float]:
    """How far the nose sits off the eye midline; ``None`` without landmarks."""
    if landmarks is None:
        return None
    points = np.asarray(landmarks, dtype=np.float32)
    if points.ndim != 2 or points.shape[0] < 3:
        return None
    left_eye, right_eye, nose = points[0], points[1], points[2]
    dist_left = float(abs(nose[0] - left_eye[0]))
    dist_right = float(abs(right_eye[0] - nose[0]))
    denom = max(dist_left + dist_right, 1e-6)
    return abs(dist_left - dist_right) / denom


def assess_quality(
    bbox: Tuple[float, float, float, float],
    frame_shape: Tuple[int, ...],
    brightness: Optional[float] = None,
    landmarks: Optional[np.ndarray] = None,
    config: Optional[QualityConfig] = None,
) -> List[str]:
    """Return the quality issues for one detected face, in display priority order."""
    config = config or QualityConfig()
    frame_height, frame_width = int(frame_shape[0]), int(frame_shape[1])
    rect = guide_frame(frame_width, frame_height, config)
    issues: List[str] = []

    if not rect.contains(bbox):
        issues.append(OUTSIDE_FRAME)
    if brightness is not None:
        if brightness < config.min_brightness:
            issues.append(TOO_DARK)
        elif brightness > config.max_brightness:
            issues.append(TOO_BRIGHT)

    face_ratio = (bbox[2] - bbox[0]) / max(rect.width, 1e-6)
    if face_ratio < config.min_face_ratio:
        issues.append(TOO_SMALL)
    elif face_ratio > config.max_face_ratio:
        issues.append(TOO_LARGE)

    asymmetry = landmark_asymmetry(landmarks)
    if asymmetry is not None and asymmetry >= config.max_asymmetry:
        issues.append(LOOK_STRAIGHT)

    if issues:
        LOGGER.debug("Quality issues %s for bbox=%s frame=%sx%s", issues, bbox, frame_width, frame_height)
    return issues


def assess_observation(
    frame: np.ndarray,
    observation: Optional[Observation],
    config: Optional[QualityConfig] = None,
) -> List[str]:
    """Quality issues for whatever the extractor saw in ``frame``."""
    if observation is None:
        return [NO_FACE]
    brightness = measure_brightness(frame, observation.bbox)
    return assess_quality(
        observation.bbox,
        frame.shape,
        brightness=brightness,
        landmarks=observation.landmarks,
        config=config,
    )
