"""I/O helpers shared across CLI entrypoints and the roster/ledger modules."""

from __future__ import annotations

import json
import logging
from dataclasses import asdict, is_dataclass
from datetime import date, datetime
from pathlib import Path
from typing import Any, Dict, Iterable, List

import numpy as np
import yaml

from staffattend.types import as_descriptor

LOGGER = logging.getLogger("staffattend.io")

IMAGE_SUFFIXES = {".jpg", ".jpeg", ".png"}


def ensure_dir(path: Path) -> Path:
    """Create directory (and parents) if it does not exist."""
    path.mkdir(parents=True, exist_ok=True)
    return path


def load_yaml(path: Path) -> Dict[str, Any]:
    """Load YAML file and return a dictionary."""
    with path.open("r", encoding="utf-8") as fh:
        data = yaml.safe_load(fh) or {}
    LOGGER.debug("Loaded YAML config %s -> keys=%s", path, list(data.keys()))
    return data


def _json_default(obj: Any) -> Any:
    if is_dataclass(obj):
        return asdict(obj)
    if isinstance(obj, Path):
        return str(obj)
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    if isinstance(obj, np.ndarray):
        return obj.tolist()
    if isinstance(obj, np.generic):
        return obj.item()
    raise TypeError(f"Object of type {type(obj)} is not JSON serializable")


def to_json(data: Any, indent: int = 2) -> str:
    return json.dumps(data, indent=indent, default=_json_default)


def load_json(path: Path) -> Any:
    """Read JSON from disk."""
    with path.open("r", encoding="utf-8") as fh:
        return json.load(fh)


def load_descriptors(path: Path) -> List[np.ndarray]:
    """Read one descriptor (flat list) or several (list of lists) from JSON.

    Also accepts ``{"descriptor": [...]}`` and ``{"descriptors": [[...], ...]}``.
    """
    payload = load_json(path)
    if isinstance(payload, dict):
        payload = payload.get("descriptors", payload.get("descriptor"))
    if not isinstance(payload, list) or not payload:
        raise ValueError(f"No descriptors found in {path}")
    if isinstance(payload[0], (int, float)):
        payload = [payload]
    return [as_descriptor(item) for item in payload]


def setup_logging(level: int = logging.INFO) -> None:
    """Configure application logging if not already configured."""
    if logging.getLogger().handlers:
        logging.getLogger().setLevel(level)
        return
    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )


def list_images(directory: Path) -> Iterable[Path]:
    """Yield image paths sorted in lexicographic order."""
    if not directory.exists():
        return []
    return sorted(p for p in directory.iterdir() if p.suffix.lower() in IMAGE_SUFFIXES)
