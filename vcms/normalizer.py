"""
Purpose: Canonicalize extracted contact and company fields.
Description: Rewrites representations only (whitespace, casing) and never infers new facts
or drops a non-empty field. Applying it twice gives the same record as applying it once.
Key Functions: normalize, normalize_contact, normalize_company.
"""

from __future__ import annotations

from typing import Any, Tuple

from pydantic import ValidationError

from .errors import NormalizationError
from .models import CompanyData, ContactData, ExtractionCandidate, NormalizedCompany, NormalizedContact


def _clean_email(value: str | None) -> str | None:
    if value is None:
        return None
    cleaned = value.strip().lower()
    # AIDEV-NOTE: Never drop a non-empty field; a whitespace-only email is kept as-is.
    return cleaned if cleaned else value


def normalize_contact(contact: ContactData) -> NormalizedContact:
    data = contact.model_dump()
    data["email"] = _clean_email(contact.email)
    return NormalizedContact.model_validate(data)


def normalize_company(company: CompanyData) -> NormalizedCompany:
    data = company.model_dump()
    name = company.company_name.strip()
    data["company_name"] = name if name else company.company_name
    return NormalizedCompany.model_validate(data)


def normalize(candidate: ExtractionCandidate | Any) -> Tuple[NormalizedContact, NormalizedCompany]:
    """Normalize a candidate's contact and company.

    Accepts an `ExtractionCandidate` or anything that validates into one (e.g. a dict
    decoded from a stored payload). A value that cannot be read as a candidate means the
    extraction service broke its contract, reported as `NormalizationError`.
    """
    if not isinstance(candidate, ExtractionCandidate):
        try:
            candidate = ExtractionCandidate.model_validate(candidate)
        except ValidationError as e:
            raise NormalizationError(f"Invalid extraction candidate: {e.error_count()} validation error(s)") from e
    return normalize_contact(candidate.contact), normalize_company(candidate.company)
