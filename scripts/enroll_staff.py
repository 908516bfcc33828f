#!/usr/bin/env python3
"""CLI for enrolling (or re-enrolling) a staff member from captured samples."""

from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import Optional, Sequence

from staffattend.config import load_engine_config
from staffattend.io_utils import load_descriptors, setup_logging, to_json
from staffattend.recognition.enrollment import build_face_model
from staffattend.roster import Roster, load_roster, save_roster, validate_registration
from staffattend.types import ROLES, AttendanceError


LOGGER = logging.getLogger("scripts.enroll_staff")

EXIT_INVALID = 1
EXIT_CONFLICT = 3


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Enroll staff from enrollment samples")
    parser.add_argument("samples_json", type=Path, help="JSON file holding the enrollment samples")
    parser.add_argument("--name", type=str, default=None)
    parser.add_argument("--employee-code", type=str, default=None)
    parser.add_argument("--role", type=str, choices=ROLES, default=None)
    parser.add_argument(
        "--re-enroll",
        type=str,
        default=None,
        metavar="IDENTITY_ID",
        help="Replace the face model of an existing identity instead of creating one",
    )
    parser.add_argument("--roster", type=Path, default=Path("data/roster.parquet"))
    parser.add_argument("--config", type=Path, default=Path("configs/engine.yaml"))
    parser.add_argument(
        "--force",
        action="store_true",
        help="Save even when the face looks like an enrolled identity",
    )
    return parser.parse_args(argv)


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)
    setup_logging()

    config = load_engine_config(args.config)
    roster = load_roster(args.roster) if args.roster.exists() else Roster()
    samples = load_descriptors(args.samples_json)

    if args.re_enroll is None and (not args.name or not args.employee_code):
        print(to_json({"error": "--name and --employee-code are required for a new enrollment"}))
        return EXIT_INVALID

    check = validate_registration(
        roster,
        samples,
        employee_code=None if args.re_enroll else args.employee_code,
        exclude_id=args.re_enroll,
        config=config,
    )
    if check.face.is_conflict and not args.force:
        conflict = check.face.identity
        print(
            to_json(
                {
                    "error": "Face already registered",
                    "code": "FACE_ALREADY_REGISTERED",
                    "conflict_user": conflict.public_info(),
                    "score": check.face.score,
                }
            )
        )
        return EXIT_CONFLICT

    face_model = build_face_model(samples)
    try:
        if args.re_enroll:
            identity = roster.re_enroll(args.re_enroll, face_model)
        else:
            identity = roster.enroll(
                name=args.name,
                employee_code=args.employee_code,
                descriptors=face_model,
                role=args.role,
            )
    except (AttendanceError, ValueError) as exc:
        LOGGER.error("Enrollment rejected: %s", exc)
        print(to_json({"error": str(exc)}))
        return EXIT_CONFLICT if check.employee_exists else EXIT_INVALID

    save_roster(roster, args.roster)
    print(to_json({"user": identity.public_info(), "descriptors": identity.descriptors_count}))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
