#!/usr/bin/env python3
# scripts/seed_demo_data.py
"""
Ledger demo data seeder.

- Reference data: service catalogue, drug inventory, test catalogue
  (idempotent, shared with the test suite via seed_reference_data).
- Optional demo encounters: one patient per encounter with an
  IN_PROGRESS OPD appointment, ready for prescriptions, lab orders and
  completion.

Run:
  python -m scripts.seed_demo_data --reference
  python -m scripts.seed_demo_data --reference --encounters 5
"""
from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import NullPool

# Allow "python -m scripts.seed_demo_data" from repo root
REPO_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(REPO_ROOT))

from hms_ledger.core.config import get_settings  # noqa: E402
from hms_ledger.models import (  # noqa: E402
    Appointment,
    AppointmentStatus,
    ConsultationType,
    Patient,
)
from hms_ledger.services.consultation_service import start_consultation  # noqa: E402
from hms_ledger.services.seed_service import seed_reference_data  # noqa: E402
from hms_ledger.utils.datetime_utils import utc_now  # noqa: E402

logger = logging.getLogger("seed_demo_data")

DEMO_PATIENTS = [
    ("Asha", "Raman", ["penicillin"]),
    ("Vikram", "Iyer", []),
    ("Meena", "Sundar", ["sulfa"]),
    ("Karthik", "Nair", []),
    ("Divya", "Menon", []),
]

DEMO_PHYSICIANS = ["PHY001", "PHY002", "PHY004"]

# ----------------------------
# Engine / Session for seeding
# ----------------------------
_seed_settings = get_settings()

# NullPool is deliberate for scripts.
_seed_engine = create_engine(
    _seed_settings.database_url,
    future=True,
    pool_pre_ping=True,
    poolclass=NullPool,
)

SeedSessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=_seed_engine,
    future=True,
    expire_on_commit=False,
)


def seed_demo_encounters(db: Session, count: int) -> list[Appointment]:
    appointments = []
    consultation_types = list(ConsultationType)
    for i in range(count):
        first, last, allergies = DEMO_PATIENTS[i % len(DEMO_PATIENTS)]
        patient = Patient(first_name=first, last_name=last, allergies=allergies)
        db.add(patient)
        db.flush()

        appointment = Appointment(
            patient_id=patient.id,
            physician_id=DEMO_PHYSICIANS[i % len(DEMO_PHYSICIANS)],
            consultation_type=consultation_types[i % len(consultation_types)],
            status=AppointmentStatus.SCHEDULED,
            created_at=utc_now(),
        )
        db.add(appointment)
        db.flush()

        start_consultation(db, appointment.id, actor_id=None)
        appointments.append(appointment)
    return appointments


def main() -> None:
    parser = argparse.ArgumentParser(description="Seed ledger reference data and demo encounters")
    parser.add_argument("--reference", action="store_true", help="Seed service/drug/test catalogues")
    parser.add_argument("--encounters", type=int, default=0, help="Number of demo encounters to create")
    args = parser.parse_args()

    if not (args.reference or args.encounters):
        parser.print_help()
        raise SystemExit(1)

    logging.basicConfig(level=_seed_settings.log_level.upper(), format="%(levelname)s %(name)s: %(message)s")

    db: Session = SeedSessionLocal()
    try:
        if args.reference:
            seeded = seed_reference_data(db)
            logger.info(
                "Reference data: %s services, %s drugs, %s tests",
                len(seeded["services"]),
                len(seeded["drugs"]),
                len(seeded["tests"]),
            )
        if args.encounters:
            appointments = seed_demo_encounters(db, args.encounters)
            logger.info("Demo encounters: %s", [a.id for a in appointments])
        db.commit()
    except Exception:
        logger.exception("Seeding failed; rolling back")
        db.rollback()
        raise
    finally:
        db.close()


if __name__ == "__main__":
    main()
