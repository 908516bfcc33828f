#!/usr/bin/env python3
"""CLI for building a roster from per-person image folders."""

from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import Optional, Sequence

from staffattend.io_utils import setup_logging
from staffattend.recognition.extractor import init_extractor
from staffattend.roster import build_roster_from_dirs, save_roster
from staffattend.types import ROLES


LOGGER = logging.getLogger("scripts.build_roster")


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Build the staff roster from labeled face images")
    parser.add_argument(
        "--images-dir",
        type=Path,
        default=Path("data/staff"),
        help="Directory containing one <EMPLOYEE_CODE>__<Name> subdirectory per person",
    )
    parser.add_argument("--output", type=Path, default=Path("data/roster.parquet"))
    parser.add_argument("--role", type=str, choices=ROLES, default=None, help="Role assigned to every identity")
    parser.add_argument("--model", type=str, default="buffalo_l", help="InsightFace model pack name")
    parser.add_argument(
        "--providers",
        type=str,
        nargs="*",
        default=None,
        help="Execution providers for ONNXRuntime (e.g. CUDAExecutionProvider)",
    )
    return parser.parse_args(argv)


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)
    setup_logging()

    extractor = init_extractor(model_name=args.model, providers=args.providers)
    roster = build_roster_from_dirs(args.images_dir, extractor, role=args.role)
    save_roster(roster, args.output)
    LOGGER.info("Roster built: %d identities -> %s", len(roster), args.output)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
