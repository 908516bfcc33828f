#!/usr/bin/env python3
"""CLI for logging a kiosk check-in or check-out."""

from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import Optional, Sequence

from staffattend.attendance.decision import NOT_CHECKED_IN
from staffattend.attendance.ledger import ledger_file_lock, load_ledger_csv
from staffattend.attendance.service import (
    INVALID_REQUEST,
    NOT_RECOGNIZED,
    UNKNOWN_IDENTITY,
    AttendanceService,
)
from staffattend.config import load_engine_config
from staffattend.io_utils import load_descriptors, setup_logging, to_json
from staffattend.roster import load_roster
from staffattend.types import INTENTS


LOGGER = logging.getLogger("scripts.log_attendance")

EXIT_CODES = {
    INVALID_REQUEST: 1,
    NOT_CHECKED_IN: 1,
    NOT_RECOGNIZED: 2,
    UNKNOWN_IDENTITY: 2,
}


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Log attendance for a face scan or a confirmed identity")
    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument("--descriptor", type=Path, help="JSON file holding the live descriptor")
    source.add_argument("--identity-id", type=str, help="Manually confirmed identity id")
    parser.add_argument(
        "--type",
        dest="intent",
        choices=INTENTS,
        default=None,
        help="Explicit Check-in/Check-out (omit to toggle on today's record)",
    )
    parser.add_argument("--roster", type=Path, default=Path("data/roster.parquet"))
    parser.add_argument("--ledger", type=Path, default=Path("data/attendance.csv"))
    parser.add_argument("--config", type=Path, default=Path("configs/engine.yaml"))
    return parser.parse_args(argv)


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)
    setup_logging()

    config = load_engine_config(args.config)
    roster = load_roster(args.roster)
    probe = load_descriptors(args.descriptor)[0] if args.descriptor else None

    with ledger_file_lock(args.ledger):
        ledger = load_ledger_csv(args.ledger)
        service = AttendanceService(roster, ledger, config)
        result = service.log(identity_id=args.identity_id, probe=probe, intent=args.intent)
        if result.record is not None and result.action is not None:
            ledger.export_csv(args.ledger)

    print(to_json(result.to_dict()))
    return EXIT_CODES.get(result.outcome, 0)


if __name__ == "__main__":
    raise SystemExit(main())
