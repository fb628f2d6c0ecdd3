"""
Test configuration and fixtures.
Every test gets its own file-backed SQLite database (the check-in stores open
sessions on worker threads, so an in-memory DB would not be shared).
"""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

# Must be set before anything imports app.config
os.environ["DATABASE_URL"] = "sqlite:///./test_visitrack.db"
os.environ["LOG_TO_FILE"] = "false"
os.environ.pop("API_KEY", None)

import pytest
from datetime import datetime
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from app.database import Base, get_db, get_session_factory
from app.models.visitor import Visitor, VisitorStatus
from app.models.qr_scan import QRScan  # noqa — registers the table
from app.main import app

VISITOR_ID = "507f1f77bcf86cd799439011"
EVENT_ID = "65f0c0ffee0000000000e001"


@pytest.fixture
def session_factory(tmp_path):
    engine = create_engine(
        f"sqlite:///{tmp_path / 'visitrack.db'}",
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(bind=engine)
    factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    yield factory
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db_session(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client(session_factory):
    """Test client wired to the per-test database (startup hooks are not run)."""
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def make_visitor(session_factory):
    def _make(visitor_id=VISITOR_ID, status=VisitorStatus.REGISTERED, event_id=EVENT_ID,
              name="Jane Doe", email="jane@example.com", **extra):
        db = session_factory()
        try:
            visitor = Visitor(
                id=visitor_id,
                name=name,
                email=email,
                phone="+15550100",
                company="Acme",
                event_id=event_id,
                event_name="Tech Expo",
                event_location="Hall B",
                status=status,
                created_at=datetime.utcnow(),
                updated_at=datetime.utcnow(),
                **extra,
            )
            db.add(visitor)
            db.commit()
            return visitor_id
        finally:
            db.close()
    return _make
