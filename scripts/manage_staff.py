#!/usr/bin/env python3
"""CLI for listing, editing and deleting enrolled staff."""

from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import Optional, Sequence

from staffattend.attendance.ledger import ledger_file_lock, load_ledger_csv
from staffattend.attendance.service import remove_staff
from staffattend.io_utils import setup_logging, to_json
from staffattend.roster import load_roster, save_roster
from staffattend.types import ROLES, DuplicateEmployeeError, UnknownIdentityError


LOGGER = logging.getLogger("scripts.manage_staff")

EXIT_INVALID = 1
EXIT_NOT_FOUND = 2
EXIT_DUPLICATE = 3


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Manage enrolled staff records")
    parser.add_argument("--roster", type=Path, default=Path("data/roster.parquet"))
    sub = parser.add_subparsers(dest="command", required=True)

    search = sub.add_parser("list", help="Newest-first staff listing with optional search")
    search.add_argument("--query", type=str, default="", help="Substring of name, employee ID or role")
    search.add_argument("--limit", type=int, default=50, help="Maximum rows (clamped to 1..200)")

    update = sub.add_parser("update", help="Change name, role or employee ID")
    update.add_argument("identity_id", type=str)
    update.add_argument("--name", type=str, default=None)
    update.add_argument("--role", type=str, choices=ROLES, default=None)
    update.add_argument("--employee-code", type=str, default=None)

    remove = sub.add_parser("remove", help="Delete a staff member and their attendance records")
    remove.add_argument("identity_id", type=str)
    remove.add_argument("--confirm", type=str, required=True, help="Employee ID of the person being deleted")
    remove.add_argument("--ledger", type=Path, default=Path("data/attendance.csv"))
    return parser.parse_args(argv)


def _list(args: argparse.Namespace) -> int:
    roster = load_roster(args.roster)
    staff = roster.search(args.query, args.limit)
    print(to_json({"count": len(staff), "users": [identity.public_info() for identity in staff]}))
    return 0


def _update(args: argparse.Namespace) -> int:
    roster = load_roster(args.roster)
    try:
        identity = roster.update(args.identity_id, name=args.name, role=args.role, employee_code=args.employee_code)
    except UnknownIdentityError:
        print(to_json({"error": "User not found"}))
        return EXIT_NOT_FOUND
    except DuplicateEmployeeError as exc:
        print(to_json({"error": str(exc), "user": exc.existing.public_info()}))
        return EXIT_DUPLICATE
    except ValueError as exc:
        print(to_json({"error": str(exc)}))
        return EXIT_INVALID
    save_roster(roster, args.roster)
    print(to_json({"user": identity.public_info()}))
    return 0


def _remove(args: argparse.Namespace) -> int:
    roster = load_roster(args.roster)
    with ledger_file_lock(args.ledger):
        ledger = load_ledger_csv(args.ledger)
        try:
            identity, deleted = remove_staff(roster, ledger, args.identity_id, args.confirm)
        except UnknownIdentityError:
            print(to_json({"error": "User not found"}))
            return EXIT_NOT_FOUND
        except ValueError as exc:
            print(to_json({"error": str(exc)}))
            return EXIT_INVALID
        save_roster(roster, args.roster)
        if deleted:
            ledger.export_csv(args.ledger)
    print(to_json({"user": identity.public_info(), "deleted_attendance_count": deleted}))
    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)
    setup_logging()

    if args.command == "list":
        return _list(args)
    if args.command == "update":
        return _update(args)
    return _remove(args)


if __name__ == "__main__":
    raise SystemExit(main())
