# scripts/setup/migrate_visitor_status.py
"""
One-off migration: rewrite the legacy visitor status "checked_in" to "Visited".
"Visited" is the only arrived status the check-in flow writes; older imports
used "checked_in". Safe to run repeatedly.
Usage: python scripts/setup/migrate_visitor_status.py [--dry-run]
"""

import argparse
import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", ".."))

from datetime import datetime
from app.database import SessionLocal
from app.models.visitor import Visitor, VisitorStatus


def migrate(db, dry_run: bool = False) -> int:
    q = db.query(Visitor).filter(Visitor.status == VisitorStatus.CHECKED_IN)
    count = q.count()
    if count and not dry_run:
        q.update({Visitor.status: VisitorStatus.VISITED, Visitor.updated_at: datetime.utcnow()},
                 synchronize_session=False)
        db.commit()
    return count


def main():
    parser = argparse.ArgumentParser(description="Migrate legacy checked_in visitor status")
    parser.add_argument("--dry-run", action="store_true", help="Only count affected visitors")
    args = parser.parse_args()

    db = SessionLocal()
    try:
        count = migrate(db, dry_run=args.dry_run)
    finally:
        db.close()

    verb = "would be migrated" if args.dry_run else "migrated"
    print(f"✅ {count} visitor(s) {verb}: '{VisitorStatus.CHECKED_IN}' → '{VisitorStatus.VISITED}'")


if __name__ == "__main__":
    main()
