# scripts/setup/init_db.py
"""
Create the Visitrack tables (visitors, qr_scans) and, optionally, a demo
visitor whose ID can be typed into a station to test the whole loop.
Safe to re-run: existing tables and rows are left alone.
Usage:
  python scripts/setup/init_db.py
  python scripts/setup/init_db.py --demo-event 65f0c0ffee0000000000e001
"""

import argparse
import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", ".."))

from sqlalchemy import inspect, text
from sqlalchemy.exc import SQLAlchemyError
from app.config import settings
from app.database import SessionLocal, create_tables, engine
from app.models.qr_scan import QRScan
from app.models.visitor import Visitor
from app.schemas.visitor import VisitorCreate
from app.services import visitor_service

DEMO_EMAIL = "demo.visitor@example.com"


def seed_demo_visitor(db, event_id: str) -> Visitor:
    existing = visitor_service.find_registration(db, event_id, DEMO_EMAIL)
    if existing:
        return existing
    return visitor_service.register_visitor(db, VisitorCreate(
        name="Demo Visitor",
        email=DEMO_EMAIL,
        phone="+10000000000",
        company="Visitrack QA",
        event_id=event_id,
        event_name="Demo Expo",
        event_location="Hall A",
    ))


def main():
    parser = argparse.ArgumentParser(description="Create Visitrack tables")
    parser.add_argument("--demo-event", default=None, help="Also register a demo visitor for this event ID")
    args = parser.parse_args()

    print(f"🗄️  Visitrack database: {settings.DATABASE_URL}")
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        print(f"❌ Cannot connect: {e}")
        print("   For a local run: DATABASE_URL=sqlite:///./visitrack.db python scripts/setup/init_db.py")
        sys.exit(1)

    create_tables()
    print(f"✅ Tables: {', '.join(sorted(inspect(engine).get_table_names()))}")

    db = SessionLocal()
    try:
        if args.demo_event:
            visitor = seed_demo_visitor(db, args.demo_event)
            print(f"🎫 Demo visitor {visitor.name}: scan or type {visitor.id}")
        print(f"📊 {db.query(Visitor).count()} visitor(s), {db.query(QRScan).count()} scan(s)")
    finally:
        db.close()

    print(f"\n   uvicorn app.main:app --host {settings.BACKEND_IP} --port {settings.BACKEND_PORT}")


if __name__ == "__main__":
    main()
