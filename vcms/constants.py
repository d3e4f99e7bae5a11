"""
Purpose: Constants for the VCMS package.
Description: Centralizes simple immutable values to avoid magic strings across the codebase.
Key Constants: DEFAULT_PROMPT_VERSION, SEEDED_INDUSTRY_LIST, PERSISTED_VALIDATED, PERSISTED_AMBIGUOUS.
"""

from typing import Tuple

# AIDEV-NOTE: Update when the extraction prompt schema changes.
DEFAULT_PROMPT_VERSION: str = "v1"

SEEDED_INDUSTRY_LIST: Tuple[str, ...] = (
    "Construction",
    "HVAC",
    "Plumbing",
    "Electrical",
    "Real Estate",
    "Legal",
    "Financial Services",
    "Technology",
    "Marketing",
    "Health",
    "Other",
)

# Persisted two-way validation status
PERSISTED_VALIDATED: str = "VALIDATED"
PERSISTED_AMBIGUOUS: str = "AMBIGUOUS"

# Placeholders for the synthetic candidate built when extraction fails
UNKNOWN_FIRST_NAME: str = "Unknown"
UNKNOWN_COMPANY_NAME: str = "Unknown Vendor"

# Transient HTTP statuses worth another attempt
RETRYABLE_STATUS_CODES = frozenset({429, 500, 502, 503, 504})
