"""
Purpose: Shared fixtures for the VCMS tests.
Description: A fixture-driven fake extraction service, candidate factory, and a seeded in-memory store.
Key Fixtures: make_candidate, fake_extraction, store, test_config.
"""

from __future__ import annotations

import asyncio
from typing import Any, Dict, List, Optional

import pytest
import pytest_asyncio

from vcms.config import VcmsConfig
from vcms.models import ExtractionCandidate, MediaAsset
from vcms.store import InMemoryVendorStore


CARD_URL = "https://media.example.com/cards/card-1.jpg"


def _candidate_payload(status: str = "Validated") -> Dict[str, Any]:
    return {
        "status": status,
        "validation_notes": "Name and company clearly printed.",
        "contact": {
            "first_name": "Jane",
            "last_name": "Smith",
            "title": "Owner",
            "email": "  Jane.Smith@CoolAir.COM ",
            "emails": ["Jane.Smith@CoolAir.COM", "info@coolair.com"],
            "phone_primary": "555-0100",
            "phones": [
                {"label": "Cell", "number": "555-0100"},
                {"label": "Office", "number": "555-0101"},
            ],
        },
        "company": {
            "company_name": "  Cool Air Heating & Cooling LLC ",
            "website_domain": "coolair.com",
            "primary_industry_category": "HVAC",
            "industry_synonyms_used": "heating and air conditioning",
            "full_address": "12 Main St, Springfield, IL 62701",
        },
    }


class FakeExtractionService:
    """Returns a fixed candidate (or raises a fixed error) after an optional delay."""

    def __init__(
        self,
        candidate: Optional[ExtractionCandidate] = None,
        *,
        error: Optional[BaseException] = None,
        delay: float = 0.0,
    ) -> None:
        self.candidate = candidate
        self.error = error
        self.delay = delay
        self.calls: List[str] = []
        self.cancelled = False

    async def extract(self, image_url: str) -> ExtractionCandidate:
        self.calls.append(image_url)
        if self.delay:
            try:
                await asyncio.sleep(self.delay)
            except asyncio.CancelledError:
                self.cancelled = True
                raise
        if self.error is not None:
            raise self.error
        assert self.candidate is not None
        return self.candidate


@pytest.fixture
def make_candidate():
    def _make(status: str = "Validated", **overrides: Any) -> ExtractionCandidate:
        payload = _candidate_payload(status)
        payload.update(overrides)
        return ExtractionCandidate.model_validate(payload)

    return _make


@pytest.fixture
def fake_extraction():
    return FakeExtractionService


@pytest.fixture
def test_config() -> VcmsConfig:
    return VcmsConfig(model="test-model", timeout_seconds=1.0, max_retries=0, backoff_seconds=0.0, concurrency=4)


@pytest_asyncio.fixture
async def store() -> InMemoryVendorStore:
    s = InMemoryVendorStore()
    await s.add_media(MediaAsset(id="card-1", url=CARD_URL))
    await s.add_media(MediaAsset(id="card-2", url="https://media.example.com/cards/card-2.jpg"))
    await s.add_media(MediaAsset(id="no-url", url=None))
    return s
