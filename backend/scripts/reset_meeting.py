#!/usr/bin/env python3
"""Reset a meeting by its public id: clear votes, availabilities, suggestions and non-host participants.
Run from backend: python scripts/reset_meeting.py <unique_id>
"""
import argparse
import sys
from pathlib import Path

# Ensure backend is on path when run as script
backend_dir = Path(__file__).resolve().parent.parent
if str(backend_dir) not in sys.path:
    sys.path.insert(0, str(backend_dir))

from slotking.db.session import SessionLocal
from slotking.services.meeting_service import reset_meeting


def main():
    parser = argparse.ArgumentParser(description="Reset a meeting (votes, availabilities, non-host participants).")
    parser.add_argument("unique_id", help="Public meeting id (the share link token)")
    args = parser.parse_args()

    db = SessionLocal()
    try:
        outcome = reset_meeting(db, args.unique_id)
        if not outcome.ok:
            print(f"Error: {outcome.detail}", file=sys.stderr)
            sys.exit(1)
        print(f"Meeting {args.unique_id} reset.")
    except Exception as e:
        db.rollback()
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    finally:
        db.close()


if __name__ == "__main__":
    main()
