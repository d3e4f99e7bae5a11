"""
Purpose: Tests for the VCMS pipeline orchestrator.
Description: Uses a fixture-based fake extraction service against the in-memory store to cover the
happy path, status collapsing, media lookup failures, extraction fallback (error, timeout),
cancellation, duplicate-processing guard, and compensation when media tagging fails.
Key Tests: test_validated_card_creates_vendor, test_extraction_error_still_creates_ambiguous_vendor,
test_unknown_media_fails_without_writes, test_tagging_failure_rolls_back_vendor.
"""

from __future__ import annotations

import asyncio

import pytest

from vcms.errors import ExtractionFailure, PersistenceFailure
from vcms.pipeline import PipelineState, VendorPipeline, process_vendor_media
from vcms.store import InMemoryVendorStore


@pytest.mark.asyncio
async def test_validated_card_creates_vendor(store, fake_extraction, make_candidate, test_config):
    extraction = fake_extraction(make_candidate("Validated"))
    result = await VendorPipeline(extraction, store, test_config).process("card-1", "user-7")

    assert result.success
    assert result.state == PipelineState.DONE.value
    assert result.validation_status == "VALIDATED"
    assert extraction.calls == ["https://media.example.com/cards/card-1.jpg"]

    vendor = await store.get_vendor_profile(result.vendor_id)
    assert vendor is not None
    assert vendor.name == "Jane Smith"
    assert vendor.email == "jane.smith@coolair.com"
    assert vendor.phone == "555-0100"
    assert vendor.website == "coolair.com"
    assert vendor.title == "Owner"
    assert vendor.vcms_score == 0
    assert vendor.primary_industry == "HVAC"
    assert vendor.industry_synonyms == ["heating and air conditioning"]
    assert vendor.validation_status == "VALIDATED"
    assert vendor.validation_notes == "Name and company clearly printed."
    assert vendor.is_do_not_use is False
    assert vendor.created_by == "user-7"
    assert vendor.source_media_id == "card-1"
    assert vendor.custom_fields == {
        "all_phones": [{"label": "Cell", "number": "555-0100"}, {"label": "Office", "number": "555-0101"}],
        "all_emails": ["Jane.Smith@CoolAir.COM", "info@coolair.com"],
        "full_address": "12 Main St, Springfield, IL 62701",
    }

    media = await store.get_media("card-1")
    assert media.is_business_card
    assert media.vendor_id == result.vendor_id


@pytest.mark.asyncio
@pytest.mark.parametrize("status", ["Ambiguous", "Failed"])
async def test_non_validated_status_persists_as_ambiguous(status, store, fake_extraction, make_candidate, test_config):
    result = await VendorPipeline(fake_extraction(make_candidate(status)), store, test_config).process("card-1", "u1")
    assert result.success
    vendor = await store.get_vendor_profile(result.vendor_id)
    assert vendor.validation_status == "AMBIGUOUS"


@pytest.mark.asyncio
async def test_name_without_last_name(store, fake_extraction, make_candidate, test_config):
    candidate = make_candidate(contact={"first_name": "Cher"}, company={"company_name": "Solo Co"})
    result = await VendorPipeline(fake_extraction(candidate), store, test_config).process("card-1", "u1")
    vendor = await store.get_vendor_profile(result.vendor_id)
    assert vendor.name == "Cher"
    assert vendor.industry_synonyms == []
    assert vendor.custom_fields == {"all_phones": [], "all_emails": [], "full_address": None}


@pytest.mark.asyncio
@pytest.mark.parametrize("media_id", ["missing", "no-url"])
async def test_unknown_media_fails_without_writes(media_id, store, fake_extraction, make_candidate, test_config):
    extraction = fake_extraction(make_candidate())
    result = await VendorPipeline(extraction, store, test_config).process(media_id, "u1")
    assert not result.success
    assert result.state == PipelineState.MEDIA_NOT_FOUND.value
    assert extraction.calls == []
    assert await store.list_vendor_profiles() == []


@pytest.mark.asyncio
async def test_extraction_error_still_creates_ambiguous_vendor(store, fake_extraction, test_config):
    extraction = fake_extraction(error=ExtractionFailure("model unavailable", retryable=True))
    payload = await process_vendor_media("card-1", "u1", extraction=extraction, store=store, config=test_config)

    assert payload["success"] is True
    vendor = await store.get_vendor_profile(payload["vendorId"])
    assert vendor.validation_status == "AMBIGUOUS"
    assert vendor.name == "Unknown"
    assert "model unavailable" in vendor.validation_notes
    assert vendor.raw_ocr_data["error_type"] == "ExtractionFailure"
    assert (await store.get_media("card-1")).vendor_id == payload["vendorId"]


@pytest.mark.asyncio
async def test_extraction_timeout_becomes_ambiguous(store, fake_extraction, make_candidate, test_config):
    test_config.timeout_seconds = 0.05
    extraction = fake_extraction(make_candidate(), delay=2.0)
    result = await VendorPipeline(extraction, store, test_config).process("card-1", "u1")
    assert result.success
    assert result.validation_status == "AMBIGUOUS"
    assert extraction.cancelled
    vendor = await store.get_vendor_profile(result.vendor_id)
    assert "timed out" in vendor.validation_notes


@pytest.mark.asyncio
async def test_cancel_event_abandons_extraction(store, fake_extraction, make_candidate, test_config):
    extraction = fake_extraction(make_candidate(), delay=5.0)
    cancel = asyncio.Event()
    task = asyncio.create_task(
        VendorPipeline(extraction, store, test_config).process("card-1", "u1", cancel_event=cancel)
    )
    await asyncio.sleep(0.01)
    cancel.set()
    result = await task

    assert not result.success
    assert result.state == PipelineState.CANCELLED.value
    assert extraction.cancelled
    assert await store.list_vendor_profiles() == []
    # The claim is released, so a later run can proceed
    assert await store.claim_media("card-1")


@pytest.mark.asyncio
async def test_already_processed_media_returns_existing_vendor(store, fake_extraction, make_candidate, test_config):
    pipeline = VendorPipeline(fake_extraction(make_candidate()), store, test_config)
    first = await pipeline.process("card-1", "u1")
    second = await pipeline.process("card-1", "u1")

    assert second.success
    assert second.already_processed
    assert second.vendor_id == first.vendor_id
    assert len(await store.list_vendor_profiles()) == 1

    third = await pipeline.process("card-1", "u1", reprocess=True)
    assert third.success and third.vendor_id != first.vendor_id
    assert len(await store.list_vendor_profiles()) == 2


@pytest.mark.asyncio
async def test_concurrent_runs_for_same_media_create_one_vendor(store, fake_extraction, make_candidate, test_config):
    pipeline = VendorPipeline(fake_extraction(make_candidate(), delay=0.05), store, test_config)
    results = await pipeline.process_many(["card-1", "card-1"], "u1")

    states = sorted(r.state for r in results)
    assert states == [PipelineState.DONE.value, PipelineState.MEDIA_BUSY.value]
    assert len(await store.list_vendor_profiles()) == 1


class _SlowReadStore(InMemoryVendorStore):
    """`get_media` returns the state as read, then waits out a per-call delay."""

    def __init__(self, delays) -> None:
        super().__init__()
        self.delays = list(delays)

    async def get_media(self, media_id):
        media = await super().get_media(media_id)
        delay = self.delays.pop(0) if self.delays else 0.0
        await asyncio.sleep(delay)
        return media


@pytest.mark.asyncio
async def test_stale_read_does_not_create_second_vendor(fake_extraction, make_candidate, test_config):
    # The second run reads the untagged media, then stalls until the first run has finished
    store = await _seeded(_SlowReadStore, delays=[0.0, 0.1])
    pipeline = VendorPipeline(fake_extraction(make_candidate()), store, test_config)
    results = await asyncio.gather(pipeline.process("card-1", "u1"), pipeline.process("card-1", "u1"))

    states = sorted(r.state for r in results)
    assert states == [PipelineState.ALREADY_PROCESSED.value, PipelineState.DONE.value]
    vendors = await store.list_vendor_profiles()
    assert len(vendors) == 1
    assert all(r.vendor_id == vendors[0].id for r in results)


@pytest.mark.asyncio
async def test_process_many_independent_media(store, fake_extraction, make_candidate, test_config):
    pipeline = VendorPipeline(fake_extraction(make_candidate(), delay=0.01), store, test_config)
    results = await pipeline.process_many(["card-1", "card-2", "missing"], "u1")

    assert [r.success for r in results] == [True, True, False]
    assert results[2].state == PipelineState.MEDIA_NOT_FOUND.value
    assert len(await store.list_vendor_profiles()) == 2


class _TaggingFailsStore(InMemoryVendorStore):
    def __init__(self, delete_fails: bool = False) -> None:
        super().__init__()
        self.delete_fails = delete_fails

    async def mark_media_processed(self, media_id: str, vendor_id: str) -> None:
        raise RuntimeError("media table locked")

    async def delete_vendor_profile(self, vendor_id: str) -> None:
        if self.delete_fails:
            raise RuntimeError("vendor table locked")
        await super().delete_vendor_profile(vendor_id)


class _CreateFailsStore(InMemoryVendorStore):
    async def create_vendor_profile(self, data):
        raise PersistenceFailure("disk full")


async def _seeded(store_cls, **kwargs):
    from vcms.models import MediaAsset

    s = store_cls(**kwargs)
    await s.add_media(MediaAsset(id="card-1", url="https://media.example.com/cards/card-1.jpg"))
    return s


@pytest.mark.asyncio
async def test_tagging_failure_rolls_back_vendor(fake_extraction, make_candidate, test_config):
    store = await _seeded(_TaggingFailsStore)
    result = await VendorPipeline(fake_extraction(make_candidate()), store, test_config).process("card-1", "u1")

    assert not result.success
    assert result.state == PipelineState.PERSIST_FAILED.value
    assert "rolled back" in result.error
    assert await store.list_vendor_profiles() == []


@pytest.mark.asyncio
async def test_failed_rollback_reports_orphan(fake_extraction, make_candidate, test_config):
    store = await _seeded(_TaggingFailsStore, delete_fails=True)
    payload = await process_vendor_media(
        "card-1", "u1", extraction=fake_extraction(make_candidate()), store=store, config=test_config
    )

    assert payload["success"] is False
    vendors = await store.list_vendor_profiles()
    assert len(vendors) == 1
    assert "orphaned" in payload["error"]
    assert vendors[0].id in payload["error"]


@pytest.mark.asyncio
async def test_create_failure_leaves_media_untagged(fake_extraction, make_candidate, test_config):
    store = await _seeded(_CreateFailsStore)
    result = await VendorPipeline(fake_extraction(make_candidate()), store, test_config).process("card-1", "u1")

    assert not result.success
    assert result.state == PipelineState.PERSIST_FAILED.value
    assert "disk full" in result.error
    media = await store.get_media("card-1")
    assert not media.is_business_card
    assert media.vendor_id is None


@pytest.mark.asyncio
async def test_entry_point_payload_shapes(store, fake_extraction, make_candidate, test_config):
    ok = await process_vendor_media("card-1", "u1", extraction=fake_extraction(make_candidate()), store=store, config=test_config)
    assert set(ok) == {"success", "vendorId"}

    missing = await process_vendor_media("nope", "u1", extraction=fake_extraction(make_candidate()), store=store, config=test_config)
    assert missing["success"] is False
    assert "nope" in missing["error"]


@pytest.mark.asyncio
async def test_entry_point_reports_store_outage(fake_extraction, make_candidate, test_config):
    class _DownStore(InMemoryVendorStore):
        async def get_media(self, media_id):
            raise ConnectionError("store unreachable")

    payload = await process_vendor_media(
        "card-1", "u1", extraction=fake_extraction(make_candidate()), store=_DownStore(), config=test_config
    )
    assert payload == {"success": False, "error": "store unreachable"}
