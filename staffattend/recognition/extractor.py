"""InsightFace-backed descriptor extraction (the external face model)."""

from __future__ import annotations

import base64
import logging
import os
import platform
from pathlib import Path
from typing import Any, Optional, Sequence, Tuple

import cv2
import numpy as np

from staffattend.types import Observation, as_descriptor

LOGGER = logging.getLogger("staffattend.recognition.extractor")


def _default_providers() -> Tuple[str, ...]:
    """Choose default ONNX providers based on platform."""
    system = platform.system()
    machine = platform.machine().lower()
    if system == "Darwin" and machine in {"arm64", "aarch64"}:
        return ("CoreMLExecutionProvider", "CPUExecutionProvider")
    return ("CPUExecutionProvider",)


def decode_image(data: bytes) -> np.ndarray:
    """Decode encoded image bytes (JPEG/PNG) into a BGR frame."""
    buffer = np.frombuffer(data, dtype=np.uint8)
    image = cv2.imdecode(buffer, cv2.IMREAD_COLOR)
    if image is None:
        raise ValueError("Unable to decode image payload")
    return image


def decode_base64_image(b64_data: str) -> np.ndarray:
    # b64_data may include a "data:image/jpeg;base64," prefix
    if "," in b64_data:
        b64_data = b64_data.split(",", 1)[1]
    return decode_image(base64.b64decode(b64_data))


def load_image(path: Path) -> np.ndarray:
    image = cv2.imread(str(path))
    if image is None:
        raise FileNotFoundError(f"Unable to read image: {path}")
    return image


class DescriptorExtractor:
    """Ready-to-use capability: frame in, zero or one face observation out.

    Built by :func:`init_extractor`; tests construct it directly around a fake
    analysis object exposing ``get(frame)``.
    """

    def __init__(self, analysis: Any, det_thresh: float = 0.5, backend: Optional[str] = None) -> None:
        self.analysis = analysis
        self.det_thresh = det_thresh
        self.backend = backend

    def extract(self, frame: np.ndarray) -> Optional[Observation]:
        """Observation for the largest confident face, ``None`` when there is none."""
        faces = [f for f in self.analysis.get(frame) if float(getattr(f, "det_score", 1.0)) >= self.det_thresh]
        if not faces:
            return None
        if len(faces) > 1:
            LOGGER.debug("Frame has %d faces; keeping the largest", len(faces))

        def _area(face) -> float:
            x1, y1, x2, y2 = (float(v) for v in face.bbox)
            return max(0.0, x2 - x1) * max(0.0, y2 - y1)

        face = max(faces, key=_area)
        embedding = getattr(face, "normed_embedding", None)
        if embedding is None:
            embedding = face.embedding
        if embedding is None:
            return None
        landmarks = getattr(face, "kps", None)
        return Observation(
            descriptor=as_descriptor(embedding),
            det_score=float(getattr(face, "det_score", 1.0)),
            bbox=tuple(float(v) for v in face.bbox),
            landmarks=None if landmarks is None else np.asarray(landmarks, dtype=np.float32),
        )


def init_extractor(
    model_name: str = "buffalo_l",
    providers: Optional[Sequence[str]] = None,
    det_size: Tuple[int, int] = (640, 640),
    det_thresh: float = 0.5,
) -> DescriptorExtractor:
    """Load the InsightFace detection + recognition models and return an extractor."""
    os.environ.setdefault("OMP_NUM_THREADS", "2")
    os.environ.setdefault("MKL_NUM_THREADS", "2")
    os.environ.setdefault("ORT_INTRA_OP_NUM_THREADS", "2")
    try:
        from insightface.app import FaceAnalysis
    except ImportError as exc:  # pragma: no cover - import guard
        raise RuntimeError(
            "insightface is required for DescriptorExtractor. "
            "Install it via `pip install insightface`."
        ) from exc

    provider_list = _default_providers() if providers is None else tuple(providers)
    LOGGER.info("Loading InsightFace pack %s providers=%s det_size=%s", model_name, provider_list, det_size)
    analysis = FaceAnalysis(
        name=model_name,
        allowed_modules=["detection", "recognition"],
        providers=list(provider_list),
    )
    analysis.prepare(ctx_id=0, det_size=det_size, det_thresh=det_thresh)
    LOGGER.info(
        "%s yields unit-norm embeddings; pair it with distance thresholds tuned for that scale "
        "(see configs/engine_arcface.yaml)",
        model_name,
    )

    backend = None
    recognition = analysis.models.get("recognition")
    if recognition is None:
        raise RuntimeError(f"InsightFace pack {model_name} has no recognition model")
    session = getattr(recognition, "session", None)
    if session is not None:
        backend = session.get_providers()[0]
    return DescriptorExtractor(analysis, det_thresh=det_thresh, backend=backend)
