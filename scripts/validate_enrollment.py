#!/usr/bin/env python3
"""CLI for checking a pending enrollment for employee-code and face duplicates."""

from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import Optional, Sequence

from staffattend.config import load_engine_config
from staffattend.io_utils import load_descriptors, setup_logging, to_json
from staffattend.roster import Roster, load_roster, validate_registration


LOGGER = logging.getLogger("scripts.validate_enrollment")

EXIT_CONFLICT = 3


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Validate enrollment samples against the roster")
    parser.add_argument("samples_json", type=Path, help="JSON file holding the enrollment samples")
    parser.add_argument("--employee-code", type=str, default=None, help="Employee ID being registered")
    parser.add_argument(
        "--exclude-id",
        type=str,
        default=None,
        help="Identity being re-enrolled (left out of the candidate pool)",
    )
    parser.add_argument("--roster", type=Path, default=Path("data/roster.parquet"))
    parser.add_argument("--config", type=Path, default=Path("configs/engine.yaml"))
    parser.add_argument("--strict-threshold", type=float, default=None)
    parser.add_argument("--support-threshold", type=float, default=None)
    parser.add_argument("--min-support-hits", type=int, default=None)
    return parser.parse_args(argv)


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)
    setup_logging()

    config = load_engine_config(args.config).with_overrides(
        strict_threshold=args.strict_threshold,
        support_threshold=args.support_threshold,
        min_support_hits=args.min_support_hits,
    )
    roster = load_roster(args.roster) if args.roster.exists() else Roster()
    samples = load_descriptors(args.samples_json)

    check = validate_registration(
        roster,
        samples,
        employee_code=args.employee_code,
        exclude_id=args.exclude_id,
        config=config,
    )
    print(to_json(check.to_dict()))
    if check.blocked:
        LOGGER.info("Enrollment blocked (employee_exists=%s face_conflict=%s)", check.employee_exists, check.face.is_conflict)
        return EXIT_CONFLICT
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
