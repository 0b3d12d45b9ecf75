# hms_ledger/utils/id_generators.py
from hms_ledger.core.config import get_settings


def generate_account_number(encounter_id: int) -> str:
    """
    Billing account number in format: {prefix}{encounter id zero-padded}

    Deterministic, so a retried find-or-create for the same encounter
    always produces the same number and the unique constraint on
    account_no can never be tripped by two different encounters.

    Example: encounter 42 -> BA000042
    """
    settings = get_settings()
    return f"{settings.account_number_prefix}{int(encounter_id):0{settings.account_number_width}d}"


def stock_reference_no(prescription_id: int) -> str:
    return f"PRESCRIPTION-{prescription_id}"
