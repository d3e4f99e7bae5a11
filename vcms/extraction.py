"""
Purpose: Extraction Service contract and the vision-model implementation.
Description: Turns a business-card image URL into an `ExtractionCandidate` by calling an
OpenAI-compatible chat completions endpoint with an image content part and strict JSON output.
Transient transport trouble is retried with exponential backoff; semantic failures
(unparseable or schema-violating answers) are not.
Key Functions/Classes: `ExtractionService`, `VisionExtractionService`, `build_payload`, `parse_candidate`.
"""

from __future__ import annotations

import asyncio
import json
import time
from typing import Any, Dict, List, Optional, Protocol, Tuple

import httpx
from pydantic import ValidationError

from .config import VcmsConfig, get_extraction_api_key, get_extraction_endpoint
from .constants import (
    DEFAULT_PROMPT_VERSION,
    RETRYABLE_STATUS_CODES,
    SEEDED_INDUSTRY_LIST,
    UNKNOWN_COMPANY_NAME,
    UNKNOWN_FIRST_NAME,
)
from .errors import ExtractionFailure
from .models import ExtractionCandidate
from .vcms_logging import get_logger, log_event


logger = get_logger("vcms.extraction")


class ExtractionService(Protocol):
    async def extract(self, image_url: str) -> ExtractionCandidate:
        ...


def _build_system_prompt() -> str:
    industries = ", ".join(SEEDED_INDUSTRY_LIST)
    return (
        "You validate and classify vendor contact data read from a photographed business card. "
        "Output ONLY a valid JSON object matching the schema. No prose.\n"
        "Rules:\n"
        "- status is \"Validated\" when name and company are clearly legible, \"Ambiguous\" when you had to "
        "guess, \"Failed\" when the image is not a readable business card.\n"
        "- Explain the status and any validation issues in validation_notes.\n"
        "- If a field cannot be read, use null and say so in validation_notes; still report every field you could read.\n"
        f"- primary_industry_category must be one of: {industries}.\n"
        "- Never guess social profiles; only report what is printed on the card.\n"
        "- List every phone number in phones with a label (Office, Mobile, Cell, Direct, Fax). "
        "Prefer Cell or Direct for phone_primary.\n"
        "- List every email address in emails; the main one also goes in email.\n"
        "- Put the full printed street address in full_address.\n"
        "- Split the person's name into first_name and last_name; use the full legal company name.\n"
        "Schema:\n"
        f"{get_candidate_json_schema()}"
    )


def get_candidate_json_schema() -> str:
    """Return a compact JSON schema snippet for inclusion in the prompt text."""
    # Using a hand-authored snippet for clarity in prompts.
    return (
        '{\n'
        '  "status": "Validated|Ambiguous|Failed",\n'
        '  "validation_notes": "string",\n'
        '  "contact": {\n'
        '    "first_name": "string", "last_name": "string|null", "title": "string|null",\n'
        '    "email": "string|null", "emails": ["string"],\n'
        '    "phone_primary": "string|null", "phones": [{"label": "string", "number": "string"}]\n'
        '  },\n'
        '  "company": {\n'
        '    "company_name": "string", "website_domain": "string|null (root domain, e.g. hvacsolutions.com)",\n'
        '    "primary_industry_category": "string|null", "industry_synonyms_used": "string|null",\n'
        '    "full_address": "string|null", "social_linkedin": "string|null"\n'
        '  }\n'
        '}'
    )


def build_payload(cfg: VcmsConfig, image_url: str) -> Dict[str, Any]:
    return {
        "model": cfg.model,
        "messages": [
            {"role": "system", "content": _build_system_prompt()},
            {
                "role": "user",
                "content": [
                    {"type": "text", "text": "Extract the contact and business information from this business card."},
                    {"type": "image_url", "image_url": {"url": image_url}},
                ],
            },
        ],
        "temperature": cfg.temperature,
        "max_tokens": cfg.max_tokens,
        "response_format": {"type": "json_object"},
    }


def _parse_llm_json(raw_text: str) -> dict:
    # AIDEV-NOTE: Strict JSON parse; one simple repair attempt if wrapped in code fences.
    text = raw_text.strip()
    if text.startswith("```") and text.endswith("```"):
        text = text.strip("`")
        # Remove optional language tag lines
        if "\n" in text:
            parts = text.split("\n", 1)
            text = parts[1] if len(parts) > 1 else parts[0]
    return json.loads(text)


def parse_candidate(content: str, raw_meta: Optional[Dict[str, Any]] = None) -> ExtractionCandidate:
    """Parse a model answer into a candidate; any defect is a non-retryable ExtractionFailure."""
    try:
        obj = _parse_llm_json(content)
    except json.JSONDecodeError as e:
        raise ExtractionFailure(f"Model returned invalid JSON: {e.msg}") from e
    if not isinstance(obj, dict):
        raise ExtractionFailure("Model returned JSON that is not an object")
    data, missing = _fill_missing_names(obj)
    try:
        candidate = ExtractionCandidate.model_validate(data)
    except ValidationError as e:
        raise ExtractionFailure(f"Model answer failed schema validation: {e.error_count()} error(s)") from e
    raw = dict(raw_meta or {})
    raw["response"] = obj
    update: Dict[str, Any] = {"raw_ocr_data": raw}
    if missing:
        # A guessed-at name cannot be Validated
        note = f"Unreadable {' and '.join(missing)} replaced with a placeholder."
        update["status"] = "Ambiguous" if candidate.status == "Validated" else candidate.status
        update["notes"] = f"{candidate.notes} {note}".strip()
    return candidate.model_copy(update=update)


def _fill_missing_names(obj: Dict[str, Any]) -> Tuple[Dict[str, Any], List[str]]:
    """Put placeholders where the model answered null for a name, keeping the rest of the answer."""
    data = dict(obj)
    missing: List[str] = []
    for section, field, placeholder in (
        ("contact", "first_name", UNKNOWN_FIRST_NAME),
        ("company", "company_name", UNKNOWN_COMPANY_NAME),
    ):
        part = data.get(section)
        if not isinstance(part, dict):
            continue
        value = part.get(field)
        if value is None or (isinstance(value, str) and not value.strip()):
            data[section] = {**part, field: placeholder}
            missing.append(field)
    return data, missing


class VisionExtractionService:
    """Extraction Service backed by an OpenAI-compatible vision model."""

    def __init__(
        self,
        config: Optional[VcmsConfig] = None,
        client: Optional[httpx.AsyncClient] = None,
        *,
        api_key: Optional[str] = None,
        endpoint: Optional[str] = None,
    ) -> None:
        self.config = config or VcmsConfig()
        self._client = client
        self._api_key = api_key if api_key is not None else get_extraction_api_key()
        self._endpoint = (endpoint or get_extraction_endpoint()).rstrip("/")

    async def extract(self, image_url: str) -> ExtractionCandidate:
        if not self._api_key:
            raise ExtractionFailure("No extraction API key configured (set VCMS_API_KEY or OPENAI_API_KEY)")
        if self._client is not None:
            return await self._extract_with(self._client, image_url)
        async with httpx.AsyncClient() as client:
            return await self._extract_with(client, image_url)

    async def _extract_with(self, client: httpx.AsyncClient, image_url: str) -> ExtractionCandidate:
        cfg = self.config
        payload = build_payload(cfg, image_url)
        backoff_seconds = cfg.backoff_seconds
        attempts = 0
        while True:
            attempts += 1
            try:
                content, meta = await self._post(client, payload)
            except ExtractionFailure as e:
                if e.retryable and attempts <= cfg.max_retries:
                    log_event(logger, "extraction_retry", details={"attempt": attempts, "error": str(e), "sleep_seconds": backoff_seconds})
                    await asyncio.sleep(backoff_seconds)
                    backoff_seconds *= 2
                    continue
                raise
            meta["attempts"] = attempts
            return parse_candidate(content, meta)

    async def _post(self, client: httpx.AsyncClient, payload: Dict[str, Any]) -> Tuple[str, Dict[str, Any]]:
        headers = {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
        }
        attempt_timeout = self.config.request_timeout_seconds
        started = time.monotonic()
        try:
            # Enforced here as well, since injected transports ignore httpx's own timeout
            resp = await asyncio.wait_for(
                client.post(
                    f"{self._endpoint}/chat/completions",
                    json=payload,
                    headers=headers,
                    timeout=attempt_timeout,
                ),
                timeout=attempt_timeout,
            )
        except httpx.TransportError as e:
            # Covers timeouts, connect and read errors
            raise ExtractionFailure(f"Transport error: {type(e).__name__}", retryable=True) from e
        except asyncio.TimeoutError as e:
            raise ExtractionFailure(f"Request timed out after {attempt_timeout}s", retryable=True) from e
        elapsed_ms = int((time.monotonic() - started) * 1000)

        if resp.status_code in RETRYABLE_STATUS_CODES:
            raise ExtractionFailure(f"Extraction API returned HTTP {resp.status_code}", retryable=True)
        if resp.status_code != 200:
            raise ExtractionFailure(f"Extraction API returned HTTP {resp.status_code}: {resp.text[:200]}")
        try:
            data = resp.json()
            content = data["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise ExtractionFailure("Malformed chat completion response") from e
        if not isinstance(content, str):
            raise ExtractionFailure("Chat completion carried no text content")
        meta = {
            "model": payload["model"],
            "prompt_version": DEFAULT_PROMPT_VERSION,
            "request_ms": elapsed_ms,
            "token_counts": data.get("usage", {}),
        }
        return content, meta
