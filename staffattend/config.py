"""Engine configuration loaded from ``configs/engine.yaml``."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, fields, replace
from datetime import time
from pathlib import Path
from typing import Any, Dict, Optional

from staffattend.io_utils import load_yaml
from staffattend.recognition.conflict import ConflictConfig
from staffattend.types import SENTINEL_DISTANCE

LOGGER = logging.getLogger("staffattend.config")


@dataclass(frozen=True)
class QualityConfig:
    # Guide frame as a fraction of the camera frame (narrow screens get a larger box)
    frame_width_ratio: float = 0.58
    frame_height_ratio: float = 0.70
    narrow_width_ratio: float = 0.72
    narrow_height_ratio: float = 0.74
    narrow_below_px: int = 520
    # Face width relative to the guide frame width
    min_face_ratio: float = 0.35
    max_face_ratio: float = 0.95
    # Mean grey level inside the face box (0-255)
    min_brightness: float = 60.0
    max_brightness: float = 200.0
    # Nose offset between the eyes; 0 is perfectly frontal
    max_asymmetry: float = 0.35


@dataclass(frozen=True)
class EngineConfig:
    match_threshold: float = 0.5
    strict_threshold: float = 0.38
    support_threshold: float = 0.42
    min_support_hits: Optional[int] = None
    required_samples: int = 8
    required_duration_ms: int = 2200
    sample_interval_ms: int = 280
    late_after: Optional[time] = None
    quality: QualityConfig = field(default_factory=QualityConfig)

    @property
    def conflict(self) -> ConflictConfig:
        return ConflictConfig(
            strict_threshold=self.strict_threshold,
            support_threshold=self.support_threshold,
            min_support_hits=self.min_support_hits,
        )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EngineConfig":
        known = {f.name for f in fields(cls)}
        kwargs: Dict[str, Any] = {}
        for key, value in (data or {}).items():
            if key not in known:
                LOGGER.warning("Ignoring unknown engine config key %r", key)
                continue
            kwargs[key] = value

        quality_raw = kwargs.pop("quality", None) or {}
        quality_known = {f.name for f in fields(QualityConfig)}
        quality_kwargs = {}
        for key, value in quality_raw.items():
            if key not in quality_known:
                LOGGER.warning("Ignoring unknown quality config key %r", key)
                continue
            quality_kwargs[key] = float(value) if key != "narrow_below_px" else int(value)

        for key in ("match_threshold", "strict_threshold", "support_threshold"):
            if key in kwargs:
                kwargs[key] = float(kwargs[key])
        for key in ("required_samples", "required_duration_ms", "sample_interval_ms"):
            if key in kwargs:
                kwargs[key] = int(kwargs[key])
        if kwargs.get("min_support_hits") is not None:
            kwargs["min_support_hits"] = int(kwargs["min_support_hits"])
        if kwargs.get("late_after") is not None:
            kwargs["late_after"] = parse_clock(kwargs["late_after"])

        config = cls(quality=QualityConfig(**quality_kwargs), **kwargs)
        config.validate()
        return config

    def with_overrides(self, **overrides: Any) -> "EngineConfig":
        """Apply non-None overrides, typically CLI flags."""
        present = {key: value for key, value in overrides.items() if value is not None}
        if not present:
            return self
        config = replace(self, **present)
        config.validate()
        return config

    def validate(self) -> None:
        for key in ("match_threshold", "strict_threshold", "support_threshold"):
            value = getattr(self, key)
            if value < 0:
                raise ValueError(f"{key} must be non-negative, got {value}")
            if value >= SENTINEL_DISTANCE:
                LOGGER.warning("%s %.3f has no effect past the %.1f sentinel distance", key, value, SENTINEL_DISTANCE)
        if self.strict_threshold > self.support_threshold:
            LOGGER.warning(
                "strict_threshold %.3f is looser than support_threshold %.3f",
                self.strict_threshold,
                self.support_threshold,
            )
        if self.min_support_hits is not None and self.min_support_hits < 1:
            raise ValueError("min_support_hits must be at least 1")
        if self.required_samples < 1:
            raise ValueError("required_samples must be at least 1")
        if self.required_duration_ms < 0 or self.sample_interval_ms < 0:
            raise ValueError("enrollment timings must be non-negative")


def parse_clock(value: Any) -> time:
    """Parse ``HH:MM`` (or a YAML-native time) into a ``datetime.time``."""
    if isinstance(value, time):
        return value
    if isinstance(value, int):
        # YAML 1.1 reads an unquoted 09:30 as sexagesimal minutes
        return time(value // 60, value % 60)
    try:
        hours, minutes = str(value).strip().split(":", 1)
        return time(int(hours), int(minutes))
    except ValueError as exc:
        raise ValueError(f"Invalid clock value {value!r}; expected HH:MM") from exc


def load_engine_config(path: Optional[Path]) -> EngineConfig:
    """Load engine config from YAML; a missing path yields the defaults."""
    if path is None or not path.exists():
        if path is not None:
            LOGGER.info("Engine config %s not found; using defaults", path)
        return EngineConfig()
    return EngineConfig.from_dict(load_yaml(path))
