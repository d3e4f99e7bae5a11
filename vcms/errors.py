"""
Purpose: Error taxonomy for the VCMS pipeline.
Description: Typed exceptions raised by the extraction, scoring, persistence and orchestration layers.
Key Classes: VcmsError, MediaNotFound, ExtractionFailure, ScoringError, PersistenceFailure.
"""

from __future__ import annotations

from typing import Optional


class VcmsError(Exception):
    """Base class for every error raised by the vcms package."""


class ConfigError(VcmsError):
    pass


class MediaNotFound(VcmsError):
    def __init__(self, media_id: str, reason: str = "Media not found") -> None:
        super().__init__(f"{reason}: {media_id}")
        self.media_id = media_id


class ExtractionFailure(VcmsError):
    """The extraction service could not produce a candidate.

    `retryable` separates transport trouble (timeouts, 5xx, 429) from semantic
    failures such as an unparseable or schema-violating model answer.
    """

    def __init__(self, message: str, *, retryable: bool = False) -> None:
        super().__init__(message)
        self.retryable = retryable


class ExtractionTimeout(ExtractionFailure):
    def __init__(self, timeout_seconds: float) -> None:
        super().__init__(f"Extraction timed out after {timeout_seconds:g}s", retryable=True)
        self.timeout_seconds = timeout_seconds


class NormalizationError(VcmsError):
    pass


class ScoringError(VcmsError, ValueError):
    pass


class PersistenceFailure(VcmsError):
    def __init__(self, message: str, *, vendor_id: Optional[str] = None, orphaned: bool = False) -> None:
        super().__init__(message)
        self.vendor_id = vendor_id
        self.orphaned = orphaned


class VendorNotFound(VcmsError):
    def __init__(self, vendor_id: str) -> None:
        super().__init__(f"Vendor not found: {vendor_id}")
        self.vendor_id = vendor_id


class PipelineCancelled(VcmsError):
    pass
