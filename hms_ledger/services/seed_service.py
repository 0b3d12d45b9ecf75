# hms_ledger/services/seed_service.py
from decimal import Decimal

from sqlalchemy.orm import Session

from hms_ledger.models.drug import Drug
from hms_ledger.models.service_catalogue import ServiceCatalogueEntry, ServiceCategory
from hms_ledger.models.test_catalogue import TestCatalogueEntry

# (code, name, category, unit_price)
DEFAULT_SERVICES = [
    ("CON-GP", "General Physician Consultation", ServiceCategory.CONSULTATION, "500.00"),
    ("CON-SP", "Specialist Consultation", ServiceCategory.CONSULTATION, "800.00"),
    ("CON-ER", "Emergency Consultation", ServiceCategory.CONSULTATION, "1000.00"),
    ("CON-FU", "Follow-up Consultation", ServiceCategory.CONSULTATION, "300.00"),
    ("LAB-CBC", "Complete Blood Count", ServiceCategory.LAB_TEST, "350.00"),
    ("LAB-LFT", "Liver Function Test", ServiceCategory.LAB_TEST, "600.00"),
    ("LAB-FBS", "Fasting Blood Sugar", ServiceCategory.LAB_TEST, "120.00"),
    ("PRC-DRS", "Wound Dressing", ServiceCategory.PROCEDURE, "250.00"),
    ("PRC-NEB", "Nebulization", ServiceCategory.PROCEDURE, "200.00"),
    ("MED-PCM", "Paracetamol 500mg", ServiceCategory.MEDICATION, "2.50"),
    ("MED-AMX", "Amoxicillin 500mg", ServiceCategory.MEDICATION, "8.00"),
    ("MED-IBU", "Ibuprofen 400mg", ServiceCategory.MEDICATION, "4.00"),
    ("BED-GEN", "General Ward Bed", ServiceCategory.BED_CHARGE, "1500.00"),
    ("BED-ICU", "ICU Bed", ServiceCategory.BED_CHARGE, "6000.00"),
]

# (name, generic_name, therapeutic_class, contraindications, strength, form, stock, reorder_level, unit_price)
DEFAULT_DRUGS = [
    ("Paracetamol", "Acetaminophen", "Analgesic", [], "500mg", "tablet", 500, 50, "2.50"),
    ("Amoxicillin", "Amoxicillin", "Penicillin", [], "500mg", "capsule", 200, 30, "8.00"),
    ("Ibuprofen", "Ibuprofen", "NSAID", ["Warfarin"], "400mg", "tablet", 300, 40, "4.00"),
    ("Warfarin", "Warfarin", "Anticoagulant", ["Ibuprofen", "Aspirin"], "5mg", "tablet", 80, 20, "6.00"),
]

# (code, name, turnaround_time hours)
DEFAULT_TESTS = [
    ("CBC", "Complete Blood Count", 4),
    ("LFT", "Liver Function Test", 24),
    ("FBS", "Fasting Blood Sugar", 2),
]


def seed_service_catalogue(db: Session) -> dict[str, ServiceCatalogueEntry]:
    services_map = {}
    for code, name, category, price in DEFAULT_SERVICES:
        existing = db.query(ServiceCatalogueEntry).filter(ServiceCatalogueEntry.code == code).first()
        if existing:
            services_map[code] = existing
            continue
        entry = ServiceCatalogueEntry(
            code=code,
            name=name,
            category=category,
            unit_price=Decimal(price),
            is_active=True,
            is_billable=True,
        )
        db.add(entry)
        services_map[code] = entry
    db.flush()
    return services_map


def seed_drugs(db: Session) -> dict[str, Drug]:
    drugs_map = {}
    for name, generic, klass, contraindications, strength, form, stock, reorder, price in DEFAULT_DRUGS:
        existing = db.query(Drug).filter(Drug.name == name).first()
        if existing:
            drugs_map[name] = existing
            continue
        drug = Drug(
            name=name,
            generic_name=generic,
            therapeutic_class=klass,
            contraindications=contraindications,
            strength=strength,
            form=form,
            stock_quantity=stock,
            reorder_level=reorder,
            unit_price=Decimal(price),
        )
        db.add(drug)
        drugs_map[name] = drug
    db.flush()
    return drugs_map


def seed_test_catalogue(db: Session) -> dict[str, TestCatalogueEntry]:
    tests_map = {}
    for code, name, turnaround in DEFAULT_TESTS:
        existing = db.query(TestCatalogueEntry).filter(TestCatalogueEntry.code == code).first()
        if existing:
            tests_map[code] = existing
            continue
        test = TestCatalogueEntry(code=code, name=name, turnaround_time=turnaround)
        db.add(test)
        tests_map[code] = test
    db.flush()
    return tests_map


def seed_reference_data(db: Session) -> dict[str, dict]:
    """
    Idempotently seed the service catalogue, drug inventory and test catalogue.
    Flushes only; the caller commits.
    """
    return {
        "services": seed_service_catalogue(db),
        "drugs": seed_drugs(db),
        "tests": seed_test_catalogue(db),
    }
