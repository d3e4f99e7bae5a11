"""
Purpose: Shared Pydantic models for the VCMS package.
Description: Centralizes the data models used across extraction, normalization, scoring,
persistence and the CLI: media assets, extraction candidates, score inputs/components,
vendor profiles and pipeline results.
Key Functions/Classes: `ExtractionCandidate`, `ContactData`, `CompanyData`, `ScoreComponents`,
`VendorProfile`, `PipelineResult`.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


ExtractionStatus = Literal["Validated", "Ambiguous", "Failed"]
PersistedStatus = Literal["VALIDATED", "AMBIGUOUS"]


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class MediaAsset(BaseModel):
    id: str
    url: Optional[str] = None
    is_business_card: bool = False
    vendor_id: Optional[str] = None


class PhoneNumber(BaseModel):
    label: str = Field(..., description='Label for the number (e.g. "Mobile", "Office", "Fax", "Direct")')
    number: str


class ContactData(BaseModel):
    first_name: str = Field(..., min_length=1)
    last_name: Optional[str] = None
    title: Optional[str] = None
    email: Optional[str] = None
    emails: List[str] = Field(default_factory=list)
    phone_primary: Optional[str] = None
    phones: List[PhoneNumber] = Field(default_factory=list)

    @field_validator("emails", "phones", mode="before")
    @classmethod
    def _none_as_empty(cls, value: Any) -> Any:
        # Models answer null for "nothing found"
        return [] if value is None else value


class CompanyData(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    company_name: str = Field(..., min_length=1)
    website_domain: Optional[str] = None
    primary_industry_category: Optional[str] = None
    industry_synonyms: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("industry_synonyms", "industry_synonyms_used"),
        description='Keywords used to make the industry match (e.g. "H & A, heating and air conditioning")',
    )
    full_address: Optional[str] = None
    social_linkedin: Optional[str] = None


class NormalizedContact(ContactData):
    pass


class NormalizedCompany(CompanyData):
    pass


class ExtractionCandidate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    status: ExtractionStatus
    notes: str = Field(default="", validation_alias=AliasChoices("notes", "validation_notes"))
    contact: ContactData
    company: CompanyData
    raw_ocr_data: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("notes", mode="before")
    @classmethod
    def _none_notes(cls, value: Any) -> Any:
        return "" if value is None else value


class QualityInputs(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    star_rating: float = Field(0.0, ge=0, le=5, allow_inf_nan=False, validation_alias=AliasChoices("star_rating", "starRating"))
    review_count: int = Field(0, ge=0, validation_alias=AliasChoices("review_count", "reviewCount"))


class ReliabilityInputs(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    internal_rating: float = Field(0.0, ge=0, le=5, allow_inf_nan=False, validation_alias=AliasChoices("internal_rating", "internalRating"))
    # Reporting only; not weighted
    total_jobs: int = Field(0, ge=0, validation_alias=AliasChoices("total_jobs", "totalJobs"))


class ComplianceInputs(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    has_coi: bool = Field(False, validation_alias=AliasChoices("has_coi", "hasCOI"))
    has_contract: bool = Field(False, validation_alias=AliasChoices("has_contract", "hasContract"))
    is_do_not_use: bool = Field(False, validation_alias=AliasChoices("is_do_not_use", "isDoNotUse"))
    license_expired: bool = Field(False, validation_alias=AliasChoices("license_expired", "licenseExpired"))


class ScoreComponents(BaseModel):
    quality_score: float
    reliability_score: float
    compliance_score: int
    penalty_multiplier: float
    final_score: int


class VendorProfileCreate(BaseModel):
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    website: Optional[str] = None
    title: Optional[str] = None
    address: Optional[str] = None

    vcms_score: int = 0
    primary_industry: Optional[str] = None
    industry_synonyms: List[str] = Field(default_factory=list)

    validation_status: PersistedStatus
    validation_notes: str = ""
    raw_ocr_data: Dict[str, Any] = Field(default_factory=dict)
    is_do_not_use: bool = False
    custom_fields: Dict[str, Any] = Field(default_factory=dict)

    # Admin-maintained review data
    google_rating: Optional[float] = None
    review_count: Optional[int] = None
    angies_list_url: Optional[str] = None
    google_reviews_url: Optional[str] = None

    created_by: Optional[str] = None
    source_media_id: Optional[str] = None


class VendorProfile(VendorProfileCreate):
    id: str
    created_at: datetime = Field(default_factory=_utc_now)
    updated_at: datetime = Field(default_factory=_utc_now)


class PipelineResult(BaseModel):
    success: bool
    vendor_id: Optional[str] = None
    error: Optional[str] = None
    state: str
    validation_status: Optional[PersistedStatus] = None
    already_processed: bool = False

    def to_payload(self) -> Dict[str, Any]:
        """Return the wire shape handed back to callers of `process_vendor_media`."""
        if self.success:
            return {"success": True, "vendorId": self.vendor_id}
        return {"success": False, "error": self.error or "Unknown error"}
