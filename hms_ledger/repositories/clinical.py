# hms_ledger/repositories/clinical.py
"""
Explicit query methods for the clinical rows the ledger reads and updates.

Nothing in the services traverses ORM relationships; every cross-entity
read goes through one of these calls.
"""
from __future__ import annotations

from sqlalchemy.orm import Session

from hms_ledger.models.appointment import Appointment
from hms_ledger.models.lab_order import LabOrder, LabOrderStatus
from hms_ledger.models.patient import Patient
from hms_ledger.models.prescription import Dispensation, Prescription, PrescriptionStatus
from hms_ledger.models.soap_note import SoapNote


class AppointmentRepository:
    def __init__(self, db: Session):
        self.db = db

    def get(self, appointment_id: int, *, for_update: bool = False) -> Appointment | None:
        q = self.db.query(Appointment).filter(Appointment.id == appointment_id)
        if for_update:
            q = q.with_for_update()
        return q.first()


class PatientRepository:
    def __init__(self, db: Session):
        self.db = db

    def get(self, patient_id: int) -> Patient | None:
        return self.db.query(Patient).filter(Patient.id == patient_id).first()


class SoapNoteRepository:
    def __init__(self, db: Session):
        self.db = db

    def latest_for_appointment(self, appointment_id: int) -> SoapNote | None:
        return (
            self.db.query(SoapNote)
            .filter(SoapNote.appointment_id == appointment_id)
            .order_by(SoapNote.id.desc())
            .first()
        )

    def add(self, note: SoapNote) -> SoapNote:
        self.db.add(note)
        self.db.flush()
        return note


class PrescriptionRepository:
    def __init__(self, db: Session):
        self.db = db

    def get(self, prescription_id: int, *, for_update: bool = False) -> Prescription | None:
        q = self.db.query(Prescription).filter(Prescription.id == prescription_id)
        if for_update:
            q = q.with_for_update()
        return q.first()

    def add(self, prescription: Prescription) -> Prescription:
        self.db.add(prescription)
        self.db.flush()
        return prescription

    def delete(self, prescription: Prescription) -> None:
        self.db.delete(prescription)
        self.db.flush()

    def list_for_encounter(self, encounter_id: int) -> list[Prescription]:
        return (
            self.db.query(Prescription)
            .filter(Prescription.encounter_id == encounter_id)
            .order_by(Prescription.id.asc())
            .all()
        )

    def list_active_for_patient(self, patient_id: int, *, exclude_id: int | None = None) -> list[Prescription]:
        q = self.db.query(Prescription).filter(
            Prescription.patient_id == patient_id,
            Prescription.status.in_([PrescriptionStatus.PENDING, PrescriptionStatus.DISPENSED]),
        )
        if exclude_id is not None:
            q = q.filter(Prescription.id != exclude_id)
        return q.all()


class DispensationRepository:
    def __init__(self, db: Session):
        self.db = db

    def add(self, dispensation: Dispensation) -> Dispensation:
        self.db.add(dispensation)
        self.db.flush()
        return dispensation


class LabOrderRepository:
    def __init__(self, db: Session):
        self.db = db

    def get(self, lab_order_id: int, *, for_update: bool = False) -> LabOrder | None:
        q = self.db.query(LabOrder).filter(LabOrder.id == lab_order_id)
        if for_update:
            q = q.with_for_update()
        return q.first()

    def add(self, lab_order: LabOrder) -> LabOrder:
        self.db.add(lab_order)
        self.db.flush()
        return lab_order

    def list_for_encounter(self, encounter_id: int, *, status: LabOrderStatus | None = None) -> list[LabOrder]:
        q = self.db.query(LabOrder).filter(LabOrder.encounter_id == encounter_id)
        if status is not None:
            q = q.filter(LabOrder.status == status)
        return q.order_by(LabOrder.id.asc()).all()
