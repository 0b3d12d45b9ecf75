# hms_ledger/services/catalogue_matching.py
"""
Translate a clinical event ("General Physician Consultation", "Complete
Blood Count", ...) into a priced service catalogue entry.

Matching is a pure function over already-loaded entries so the tie-break
order can be tested without a database:

1. Only active + billable entries are candidates.
2. Strict mode (lab tests, procedures, medication, beds): the category must
   equal the requested one AND the keyword must appear in name, description
   or code.
   Consultation mode: category OR keyword OR "consultation" in the name.
3. Candidates are ranked by tier, then by PRIORITY_TERMS, then by id.
"""
from __future__ import annotations

from typing import Any, Iterable, Sequence

from hms_ledger.core.errors import ServiceNotFoundError
from hms_ledger.models.appointment import ConsultationType
from hms_ledger.models.service_catalogue import ServiceCategory

PRIORITY_TERMS: tuple[str, ...] = (
    "General Physician",
    "General",
    "Specialist",
    "Emergency",
    "Follow",
)

CONSULTATION_SEARCH_TERMS: dict[str, str] = {
    ConsultationType.OPD.value: "General Physician Consultation",
    ConsultationType.SPECIALIST.value: "Specialist Consultation",
    ConsultationType.FOLLOW_UP.value: "Follow-up Consultation",
    ConsultationType.EMERGENCY.value: "Emergency Consultation",
}
DEFAULT_CONSULTATION_TERM = "Consultation"

# Ranking tiers
TIER_EXACT = 0  # category matches and name equals the keyword
TIER_CATEGORY_AND_KEYWORD = 1
TIER_KEYWORD_ONLY = 2
TIER_CATEGORY_ONLY = 3  # also consultation-mode entries matched only by "consultation"


def _value(x: Any) -> str:
    return x.value if hasattr(x, "value") else str(x)


def _contains(haystack: str | None, needle: str) -> bool:
    return bool(haystack) and needle.casefold() in haystack.casefold()


def consultation_search_term(consultation_type: Any) -> str:
    return CONSULTATION_SEARCH_TERMS.get(_value(consultation_type), DEFAULT_CONSULTATION_TERM)


def keyword_matches(entry: Any, keyword: str) -> bool:
    keyword = (keyword or "").strip()
    if not keyword:
        return False
    return (
        _contains(entry.name, keyword)
        or _contains(getattr(entry, "description", None), keyword)
        or _contains(getattr(entry, "code", None), keyword)
    )


def is_candidate(entry: Any, category: Any, keyword: str, *, strict: bool = True) -> bool:
    if not (entry.is_active and entry.is_billable):
        return False
    category_match = _value(entry.category) == _value(category)
    if strict:
        return category_match and keyword_matches(entry, keyword)
    return category_match or keyword_matches(entry, keyword) or _contains(entry.name, _value(category))


def priority_index(name: str | None, priority_terms: Sequence[str] = PRIORITY_TERMS) -> int:
    """Position of the first priority term found in name; catch-all ranks last."""
    for idx, term in enumerate(priority_terms):
        if _contains(name, term):
            return idx
    return len(priority_terms)


def rank_key(
    entry: Any,
    category: Any,
    keyword: str,
    priority_terms: Sequence[str] = PRIORITY_TERMS,
) -> tuple[int, int, int]:
    category_match = _value(entry.category) == _value(category)
    kw_match = keyword_matches(entry, keyword)

    if category_match and (entry.name or "").casefold() == (keyword or "").strip().casefold():
        tier = TIER_EXACT
    elif category_match and kw_match:
        tier = TIER_CATEGORY_AND_KEYWORD
    elif kw_match:
        tier = TIER_KEYWORD_ONLY
    else:
        tier = TIER_CATEGORY_ONLY

    return (tier, priority_index(entry.name, priority_terms), entry.id or 0)


def rank_entries(
    entries: Iterable[Any],
    category: Any,
    keyword: str,
    *,
    strict: bool = True,
    priority_terms: Sequence[str] = PRIORITY_TERMS,
) -> list[Any]:
    candidates = [e for e in entries if is_candidate(e, category, keyword, strict=strict)]
    return sorted(candidates, key=lambda e: rank_key(e, category, keyword, priority_terms))


def select_service(
    entries: Iterable[Any],
    category: Any,
    keyword: str,
    *,
    strict: bool = True,
) -> Any:
    """
    Return the top-ranked entry or raise ServiceNotFoundError.
    Callers never fall back to a zero price.
    """
    ranked = rank_entries(entries, category, keyword, strict=strict)
    if not ranked:
        raise ServiceNotFoundError(_value(category), keyword)
    return ranked[0]


def select_consultation_service(entries: Iterable[Any], consultation_type: Any) -> Any:
    return select_service(
        entries,
        ServiceCategory.CONSULTATION,
        consultation_search_term(consultation_type),
        strict=False,
    )
