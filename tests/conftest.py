"""Pytest configuration and shared fixtures."""
import os

# The app module builds an engine at import time; keep it off the local database file
os.environ["DATABASE_URL"] = "sqlite://"

import pytest
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from complaint_tracker.database import build_engine, init_db
from complaint_tracker.models.domain import Report, StaffMember, WorkOrder, SequenceCounter
from complaint_tracker.models.audit import AuditEntry
from complaint_tracker.services.collaborators import Actor, DiskEvidenceStore, Evidence
from complaint_tracker.services.lifecycle import build_orchestrator


@pytest.fixture
def db_session():
    """Create a fresh in-memory database for each test."""
    # One shared connection so the API tests can reach it from the server thread
    engine = build_engine("sqlite://", poolclass=StaticPool)
    init_db(engine)

    TestingSessionLocal = sessionmaker(bind=engine)
    session = TestingSessionLocal()

    yield session

    session.close()
    engine.dispose()


@pytest.fixture
def staff(db_session):
    """An administrator and two field officers."""
    members = [
        StaffMember(id="admin_1", name="Maria Santos", position="Admin"),
        StaffMember(id="officer_a", name="Juan Dela Cruz", position="Field Officer"),
        StaffMember(id="officer_b", name="Ana Reyes", position="Field Officer"),
    ]
    db_session.add_all(members)
    db_session.commit()
    return {m.id: m for m in members}


@pytest.fixture
def sample_report(db_session):
    """A freshly submitted citizen report."""
    report = Report(
        report_code="RPT-0001",
        classification="Pothole",
        location="Rizal Ave cor. Mabini St",
        description="Deep pothole in the outer lane"
    )
    db_session.add(report)
    db_session.commit()
    db_session.refresh(report)
    return report


@pytest.fixture
def actor():
    return Actor(actor_id="admin_1", origin_address="10.0.0.5")


@pytest.fixture
def evidence_store(tmp_path):
    return DiskEvidenceStore(str(tmp_path / "uploads"))


@pytest.fixture
def evidence():
    return Evidence(content=b"%PDF-1.4 site inspection", original_name="inspection.pdf")


@pytest.fixture
def orchestrator(db_session, staff, evidence_store):
    return build_orchestrator(db_session, evidence_store)
