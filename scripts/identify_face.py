#!/usr/bin/env python3
"""CLI for identifying a live face descriptor against the enrolled roster."""

from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import Optional, Sequence

from staffattend.config import load_engine_config
from staffattend.io_utils import load_descriptors, setup_logging, to_json
from staffattend.recognition.matcher import resolve
from staffattend.roster import load_roster


LOGGER = logging.getLogger("scripts.identify_face")

EXIT_NOT_FOUND = 2


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Identify a face descriptor against the roster")
    parser.add_argument("descriptor_json", type=Path, help="JSON file holding one descriptor")
    parser.add_argument(
        "--roster",
        type=Path,
        default=Path("data/roster.parquet"),
        help="Roster parquet produced by build_roster/enroll_staff",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=Path("configs/engine.yaml"),
        help="Engine config YAML",
    )
    parser.add_argument(
        "--threshold",
        type=float,
        default=None,
        help="Override match_threshold (maximum accepted distance)",
    )
    return parser.parse_args(argv)


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)
    setup_logging()

    config = load_engine_config(args.config).with_overrides(match_threshold=args.threshold)
    roster = load_roster(args.roster)
    probe = load_descriptors(args.descriptor_json)[0]

    match = resolve(probe, roster.candidates(), config.match_threshold)
    payload = {
        "user": match.identity.public_info() if match.identity else None,
        "score": match.score,
        "distance": round(match.distance, 6),
    }
    print(to_json(payload))
    if match.identity is None:
        LOGGER.info("No identity within %.3f (nearest %.4f)", config.match_threshold, match.distance)
        return EXIT_NOT_FOUND
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
