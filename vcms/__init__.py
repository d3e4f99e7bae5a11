"""
Purpose: VCMS (Vendor Contact Management Scoring) package.
Description: Turns a business-card image into a scored, validated vendor profile through
extraction, normalization, deterministic scoring and persistence.
Key Functions/Classes: `process_vendor_media`, `VendorPipeline`, `calculate_vcms_score`, `normalize`.
"""

from .normalizer import normalize
from .pipeline import VendorPipeline, process_vendor_media
from .scoring import calculate_vcms_score

__all__ = [
    "VendorPipeline",
    "calculate_vcms_score",
    "normalize",
    "process_vendor_media",
]
