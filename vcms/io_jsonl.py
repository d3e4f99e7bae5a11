"""
Purpose: JSONL read/write helpers for the VCMS package.
Description: Small utilities to load media assets for seeding a store and to export vendor profiles.
Key Functions/Classes: `iter_media_assets_from_jsonl`, `write_vendor_profiles_jsonl`.
"""

from __future__ import annotations

import json
from typing import Iterable

from .models import MediaAsset, VendorProfile


def iter_media_assets_from_jsonl(path: str) -> Iterable[MediaAsset]:
    """Read media assets (`{"id": ..., "url": ...}` per line) from a JSONL file."""
    with open(path, "r", encoding="utf-8") as f:
        for line in f:
            line = line.strip()
            if not line:
                continue
            obj = json.loads(line)
            yield MediaAsset.model_validate(obj)


def write_vendor_profiles_jsonl(path: str, profiles: Iterable[VendorProfile]) -> int:
    """Write vendor profiles to a JSONL file, one sorted-key object per line."""
    count = 0
    with open(path, "w", encoding="utf-8") as f:
        for p in profiles:
            f.write(json.dumps(p.model_dump(mode="json"), sort_keys=True, ensure_ascii=False, separators=(",", ":")))
            f.write("\n")
            count += 1
    return count
