"""
Purpose: Orchestration of the VCMS business-card pipeline.
Description: Sequences media lookup -> extraction -> normalization -> scoring -> persistence for one
media asset, owns failure handling, the duplicate-processing guard and the compensating rollback when
media tagging fails after the vendor profile was created. Also provides a bounded-concurrency batch
runner over independent media ids.
Key Functions/Classes: `VendorPipeline`, `PipelineState`, `process_vendor_media`,
`synthesize_ambiguous_candidate`, `build_vendor_profile`.
"""

from __future__ import annotations

import asyncio
from collections import Counter
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional

from .config import VcmsConfig
from .constants import PERSISTED_AMBIGUOUS, PERSISTED_VALIDATED, UNKNOWN_COMPANY_NAME, UNKNOWN_FIRST_NAME
from .errors import (
    ExtractionFailure,
    ExtractionTimeout,
    MediaNotFound,
    NormalizationError,
    PersistenceFailure,
    PipelineCancelled,
    VcmsError,
)
from .extraction import ExtractionService
from .models import (
    CompanyData,
    ContactData,
    ExtractionCandidate,
    MediaAsset,
    NormalizedCompany,
    NormalizedContact,
    PipelineResult,
    ScoreComponents,
    VendorProfileCreate,
)
from .normalizer import normalize
from .scoring import initial_score
from .store import VendorStore
from .vcms_logging import get_logger, log_error, log_event, log_summary, log_transition


logger = get_logger("vcms.pipeline")
audit_logger = get_logger("vcms.audit")


class PipelineState(str, Enum):
    START = "START"
    EXTRACTING = "EXTRACTING"
    EXTRACTED = "EXTRACTED"
    EXTRACTION_FAILED = "EXTRACTION_FAILED"
    NORMALIZING = "NORMALIZING"
    SCORING = "SCORING"
    PERSISTING = "PERSISTING"
    # Terminal
    DONE = "DONE"
    PERSIST_FAILED = "PERSIST_FAILED"
    MEDIA_NOT_FOUND = "MEDIA_NOT_FOUND"
    NORMALIZATION_FAILED = "NORMALIZATION_FAILED"
    ALREADY_PROCESSED = "ALREADY_PROCESSED"
    MEDIA_BUSY = "MEDIA_BUSY"
    CANCELLED = "CANCELLED"


def synthesize_ambiguous_candidate(error: ExtractionFailure) -> ExtractionCandidate:
    """Stand-in candidate used when the extraction service could not answer.

    Carries placeholders instead of invented contact data, so the vendor is obviously
    in need of manual review.
    """
    return ExtractionCandidate(
        status="Ambiguous",
        notes=(
            f"Extraction failed ({type(error).__name__}: {error}). "
            "Vendor created with placeholder data; review the business card manually."
        ),
        contact=ContactData(first_name=UNKNOWN_FIRST_NAME),
        company=CompanyData(company_name=UNKNOWN_COMPANY_NAME),
        raw_ocr_data={
            "error_type": type(error).__name__,
            "error": str(error),
            "retryable": error.retryable,
        },
    )


def build_vendor_profile(
    candidate: ExtractionCandidate,
    contact: NormalizedContact,
    company: NormalizedCompany,
    score: ScoreComponents,
    *,
    user_id: Optional[str] = None,
    media_id: Optional[str] = None,
) -> VendorProfileCreate:
    name = contact.first_name + (f" {contact.last_name}" if contact.last_name else "")
    return VendorProfileCreate(
        name=name,
        email=contact.email,
        phone=contact.phone_primary,
        website=company.website_domain,
        title=contact.title,
        vcms_score=score.final_score,
        primary_industry=company.primary_industry_category,
        industry_synonyms=[company.industry_synonyms] if company.industry_synonyms else [],
        # Failed extractions collapse to AMBIGUOUS; there is no terminal-failure vendor state
        validation_status=PERSISTED_VALIDATED if candidate.status == "Validated" else PERSISTED_AMBIGUOUS,
        validation_notes=candidate.notes,
        raw_ocr_data=candidate.raw_ocr_data,
        is_do_not_use=False,
        # Expanded contact info not promoted to first-class fields
        custom_fields={
            "all_phones": [p.model_dump() for p in candidate.contact.phones],
            "all_emails": list(candidate.contact.emails),
            "full_address": candidate.company.full_address,
        },
        created_by=user_id,
        source_media_id=media_id,
    )


class VendorPipeline:
    """Runs the business-card pipeline against one extraction service and one store."""

    def __init__(
        self,
        extraction: ExtractionService,
        store: VendorStore,
        config: Optional[VcmsConfig] = None,
    ) -> None:
        self.extraction = extraction
        self.store = store
        self.config = config or VcmsConfig()

    def _transition(self, media_id: str, state: PipelineState, **details: Any) -> None:
        log_transition(logger, media_id, state.value, **details)

    def _fail(self, media_id: str, state: PipelineState, error: BaseException) -> PipelineResult:
        log_error(logger, "pipeline_failed", error, media_id=media_id, state=state.value)
        self._transition(media_id, state)
        return PipelineResult(success=False, error=str(error), state=state.value)

    async def process(
        self,
        media_id: str,
        user_id: str,
        *,
        reprocess: bool = False,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> PipelineResult:
        self._transition(media_id, PipelineState.START, user_id=user_id)

        try:
            media = await self._load_media(media_id)
        except MediaNotFound as e:
            return self._fail(media_id, PipelineState.MEDIA_NOT_FOUND, e)

        if not reprocess and self._is_processed(media):
            return self._already_processed(media)

        if not await self.store.claim_media(media_id):
            return self._fail(
                media_id,
                PipelineState.MEDIA_BUSY,
                VcmsError(f"Media {media_id} is already being processed"),
            )
        try:
            # AIDEV-NOTE: Re-read under the claim; a run that released it meanwhile has tagged the media.
            media = await self._load_media(media_id)
            if not reprocess and self._is_processed(media):
                return self._already_processed(media)
            return await self._run(media, user_id, cancel_event)
        except MediaNotFound as e:
            return self._fail(media_id, PipelineState.MEDIA_NOT_FOUND, e)
        except PipelineCancelled as e:
            return self._fail(media_id, PipelineState.CANCELLED, e)
        finally:
            await self.store.release_media(media_id)

    @staticmethod
    def _is_processed(media: MediaAsset) -> bool:
        return bool(media.is_business_card and media.vendor_id)

    def _already_processed(self, media: MediaAsset) -> PipelineResult:
        self._transition(media.id, PipelineState.ALREADY_PROCESSED, vendor_id=media.vendor_id)
        return PipelineResult(
            success=True,
            vendor_id=media.vendor_id,
            state=PipelineState.ALREADY_PROCESSED.value,
            already_processed=True,
        )

    async def _load_media(self, media_id: str) -> MediaAsset:
        media = await self.store.get_media(media_id)
        if media is None:
            raise MediaNotFound(media_id)
        if not media.url:
            raise MediaNotFound(media_id, reason="Media has no resolvable URL")
        return media

    async def _run(self, media: MediaAsset, user_id: str, cancel_event: Optional[asyncio.Event]) -> PipelineResult:
        candidate = await self._extract(media, cancel_event)

        self._transition(media.id, PipelineState.NORMALIZING)
        try:
            contact, company = normalize(candidate)
        except NormalizationError as e:
            return self._fail(media.id, PipelineState.NORMALIZATION_FAILED, e)

        self._transition(media.id, PipelineState.SCORING)
        # AIDEV-NOTE: New vendors start with zero evidence; re-scoring happens elsewhere.
        score = initial_score()

        self._transition(media.id, PipelineState.PERSISTING, vcms_score=score.final_score)
        data = build_vendor_profile(candidate, contact, company, score, user_id=user_id, media_id=media.id)
        try:
            vendor_id = await self._persist(media.id, data)
        except PersistenceFailure as e:
            return self._fail(media.id, PipelineState.PERSIST_FAILED, e)

        self._transition(media.id, PipelineState.DONE, vendor_id=vendor_id)
        log_event(
            audit_logger,
            "CREATE_VENDOR_FROM_MEDIA",
            details={"vendor_id": vendor_id, "media_id": media.id, "user_id": user_id},
        )
        return PipelineResult(
            success=True,
            vendor_id=vendor_id,
            state=PipelineState.DONE.value,
            validation_status=data.validation_status,
        )

    async def _extract(self, media: MediaAsset, cancel_event: Optional[asyncio.Event]) -> ExtractionCandidate:
        self._transition(media.id, PipelineState.EXTRACTING, url=media.url)
        try:
            candidate = await self._call_extraction(media.url, cancel_event)
        except ExtractionFailure as e:
            # Recovered locally: the run always attempts to produce a vendor record
            self._transition(media.id, PipelineState.EXTRACTION_FAILED, error_type=type(e).__name__, error=str(e))
            return synthesize_ambiguous_candidate(e)
        self._transition(media.id, PipelineState.EXTRACTED, status=candidate.status)
        return candidate

    async def _call_extraction(self, url: str, cancel_event: Optional[asyncio.Event]) -> ExtractionCandidate:
        timeout = self.config.timeout_seconds
        task = asyncio.ensure_future(asyncio.wait_for(self.extraction.extract(url), timeout=timeout))
        waiter = asyncio.ensure_future(cancel_event.wait()) if cancel_event is not None else None
        try:
            if waiter is not None:
                await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
                if not task.done():
                    raise PipelineCancelled(f"Extraction abandoned by caller for {url}")
            try:
                return await task
            except asyncio.TimeoutError as e:
                raise ExtractionTimeout(timeout) from e
        finally:
            if waiter is not None:
                waiter.cancel()
            if not task.done():
                task.cancel()
                await asyncio.gather(task, return_exceptions=True)

    async def _persist(self, media_id: str, data: VendorProfileCreate) -> str:
        try:
            vendor_id = await self.store.create_vendor_profile(data)
        except PersistenceFailure:
            raise
        except Exception as e:
            raise PersistenceFailure(f"Could not create vendor profile: {e}") from e

        try:
            await self.store.mark_media_processed(media_id, vendor_id)
        except Exception as e:
            log_error(logger, "media_tagging_failed", e, media_id=media_id, vendor_id=vendor_id)
            await self._compensate(media_id, vendor_id, e)
        return vendor_id

    async def _compensate(self, media_id: str, vendor_id: str, error: Exception) -> None:
        """Roll back the vendor profile whose media tagging failed, then report the failure."""
        try:
            await self.store.delete_vendor_profile(vendor_id)
        except Exception as cleanup_error:
            log_error(logger, "rollback_failed", cleanup_error, media_id=media_id, vendor_id=vendor_id)
            raise PersistenceFailure(
                f"Could not tag media {media_id}: {error}; vendor profile {vendor_id} left orphaned",
                vendor_id=vendor_id,
                orphaned=True,
            ) from error
        log_event(logger, "vendor_rolled_back", details={"media_id": media_id, "vendor_id": vendor_id})
        raise PersistenceFailure(
            f"Could not tag media {media_id}: {error}; vendor profile {vendor_id} rolled back",
            vendor_id=vendor_id,
        ) from error

    async def process_many(
        self,
        media_ids: Iterable[str],
        user_id: str,
        *,
        reprocess: bool = False,
    ) -> List[PipelineResult]:
        """Process independent media ids concurrently, results in input order."""
        ids = list(media_ids)
        sem = asyncio.Semaphore(max(1, self.config.concurrency))

        async def worker(media_id: str) -> PipelineResult:
            async with sem:
                return await self.process(media_id, user_id, reprocess=reprocess)

        results = await asyncio.gather(*[worker(m) for m in ids])
        ok = sum(1 for r in results if r.success)
        reasons = Counter(r.state for r in results if not r.success)
        log_summary(logger, total=len(ids), ok=ok, fail=len(ids) - ok, reasons=dict(reasons))
        return list(results)


async def process_vendor_media(
    media_id: str,
    user_id: str,
    *,
    extraction: ExtractionService,
    store: VendorStore,
    config: Optional[VcmsConfig] = None,
    reprocess: bool = False,
    cancel_event: Optional[asyncio.Event] = None,
) -> Dict[str, Any]:
    """Entry point: always returns `{"success": True, "vendorId": ...}` or `{"success": False, "error": ...}`."""
    pipeline = VendorPipeline(extraction, store, config)
    try:
        result = await pipeline.process(media_id, user_id, reprocess=reprocess, cancel_event=cancel_event)
    except Exception as e:
        log_error(logger, "pipeline_error", e, media_id=media_id)
        return {"success": False, "error": str(e) or type(e).__name__}
    return result.to_payload()
