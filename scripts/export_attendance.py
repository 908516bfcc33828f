#!/usr/bin/env python3
"""CLI for exporting attendance rows joined with staff details."""

from __future__ import annotations

import argparse
import logging
from datetime import datetime
from pathlib import Path
from typing import Optional, Sequence

import pandas as pd

from staffattend.attendance.decision import day_bounds
from staffattend.attendance.ledger import load_ledger_csv
from staffattend.io_utils import setup_logging
from staffattend.roster import load_roster


LOGGER = logging.getLogger("scripts.export_attendance")


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Export attendance with staff names")
    parser.add_argument("--ledger", type=Path, default=Path("data/attendance.csv"))
    parser.add_argument("--roster", type=Path, default=Path("data/roster.parquet"))
    parser.add_argument("--day", type=str, default=None, help="Only export one day (YYYY-MM-DD)")
    parser.add_argument(
        "--output",
        type=Path,
        default=None,
        help="Output CSV path (defaults to <ledger stem>-export.csv)",
    )
    return parser.parse_args(argv)


def build_report(ledger_df: pd.DataFrame, staff_df: pd.DataFrame, day: Optional[datetime] = None) -> pd.DataFrame:
    df = ledger_df.copy()
    if day is not None:
        start, end = day_bounds(day)
        check_in = pd.to_datetime(df["check_in"])
        df = df[(check_in >= start) & (check_in <= end)]
    report = df.merge(staff_df, on="identity_id", how="left")
    columns = ["day", "employee_code", "name", "role", "check_in", "check_out", "status", "method"]
    return report[columns].sort_values(["day", "check_in"]).reset_index(drop=True)


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)
    setup_logging()

    ledger = load_ledger_csv(args.ledger)
    roster = load_roster(args.roster)
    staff_df = pd.DataFrame(
        [
            {
                "identity_id": i.identity_id,
                "employee_code": i.employee_code,
                "name": i.name,
                "role": i.role,
            }
            for i in roster
        ],
        columns=["identity_id", "employee_code", "name", "role"],
    )
    day = datetime.strptime(args.day, "%Y-%m-%d") if args.day else None
    report = build_report(ledger.to_frame(), staff_df, day)

    output_path = args.output or args.ledger.with_name(f"{args.ledger.stem}-export.csv")
    report.to_csv(output_path, index=False)
    LOGGER.info("Exported %d attendance rows to %s", len(report), output_path)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
