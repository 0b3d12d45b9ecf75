# tests/conftest.py
import os

# Settings are read at import time; point them at SQLite before importing the app.
os.environ.setdefault("DATABASE_URL", "sqlite://")

from decimal import Decimal  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine, event  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from hms_ledger.core.database import get_db  # noqa: E402
from hms_ledger.core.security import create_access_token  # noqa: E402
from hms_ledger.main import app  # noqa: E402
from hms_ledger.models import (  # noqa: E402
    Appointment,
    AppointmentStatus,
    Base,
    ConsultationType,
    Drug,
    Patient,
)
from hms_ledger.services.seed_service import seed_reference_data  # noqa: E402

ACTOR_ID = 7


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    # pysqlite needs these two hooks for SAVEPOINT (begin_nested) to behave.
    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")

    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def db(engine):
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine, future=True)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def reference(db):
    data = seed_reference_data(db)
    db.commit()
    return data


@pytest.fixture
def make_encounter(db):
    def _make(
        *,
        encounter_id=None,
        allergies=None,
        consultation_type=ConsultationType.OPD,
        status=AppointmentStatus.IN_PROGRESS,
        physician_id="PHY004",
    ) -> Appointment:
        patient = Patient(first_name="Test", last_name="Patient", allergies=allergies or [])
        db.add(patient)
        db.flush()
        appointment = Appointment(
            id=encounter_id,
            patient_id=patient.id,
            physician_id=physician_id,
            consultation_type=consultation_type,
            status=status,
        )
        db.add(appointment)
        db.flush()
        return appointment

    return _make


@pytest.fixture
def make_drug(db):
    def _make(name="Drug X", *, stock=10, reorder_level=5, therapeutic_class="Test class", contraindications=None):
        drug = Drug(
            name=name,
            generic_name=name.lower(),
            therapeutic_class=therapeutic_class,
            contraindications=contraindications or [],
            stock_quantity=stock,
            reorder_level=reorder_level,
            unit_price=Decimal("1.00"),
        )
        db.add(drug)
        db.flush()
        return drug

    return _make


@pytest.fixture
def client(db):
    def _override_get_db():
        yield db

    app.dependency_overrides[get_db] = _override_get_db
    token = create_access_token(ACTOR_ID)
    with TestClient(app) as c:
        c.headers.update({"Authorization": f"Bearer {token}"})
        yield c
    app.dependency_overrides.clear()
