"""
Purpose: Vendor Store contract and two implementations.
Description: `InMemoryVendorStore` keeps media assets and vendor profiles in dicts guarded by an
asyncio lock; `JsonFileVendorStore` persists the same state as one JSON document, written to a
temp file and swapped in with `os.replace` after each write.
Key Functions/Classes: `VendorStore`, `InMemoryVendorStore`, `JsonFileVendorStore`.
"""

from __future__ import annotations

import asyncio
import json
import os
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol, Set, Union

from .errors import PersistenceFailure, VendorNotFound
from .models import MediaAsset, VendorProfile, VendorProfileCreate


class VendorStore(Protocol):
    async def add_media(self, asset: MediaAsset) -> None:
        ...

    async def get_media(self, media_id: str) -> Optional[MediaAsset]:
        ...

    async def claim_media(self, media_id: str) -> bool:
        """Atomically mark a media id as in-flight; False when another run holds it."""
        ...

    async def release_media(self, media_id: str) -> None:
        ...

    async def create_vendor_profile(self, data: VendorProfileCreate) -> str:
        ...

    async def mark_media_processed(self, media_id: str, vendor_id: str) -> None:
        ...

    async def get_vendor_profile(self, vendor_id: str) -> Optional[VendorProfile]:
        ...

    async def list_vendor_profiles(self) -> List[VendorProfile]:
        ...

    async def update_vendor_profile(self, vendor_id: str, changes: Dict[str, Any]) -> VendorProfile:
        ...

    async def delete_vendor_profile(self, vendor_id: str) -> None:
        ...

    async def list_media_for_vendor(self, vendor_id: str) -> List[MediaAsset]:
        ...


class InMemoryVendorStore:
    def __init__(self) -> None:
        self._media: Dict[str, MediaAsset] = {}
        self._vendors: Dict[str, VendorProfile] = {}
        self._claims: Set[str] = set()
        self._lock = asyncio.Lock()

    async def _after_write(self) -> None:
        """Hook for durable subclasses; called while holding the lock."""

    async def add_media(self, asset: MediaAsset) -> None:
        async with self._lock:
            previous = self._media.get(asset.id)
            self._media[asset.id] = asset
            try:
                await self._after_write()
            except PersistenceFailure:
                if previous is None:
                    del self._media[asset.id]
                else:
                    self._media[asset.id] = previous
                raise

    async def get_media(self, media_id: str) -> Optional[MediaAsset]:
        return self._media.get(media_id)

    async def claim_media(self, media_id: str) -> bool:
        async with self._lock:
            if media_id in self._claims:
                return False
            self._claims.add(media_id)
            return True

    async def release_media(self, media_id: str) -> None:
        async with self._lock:
            self._claims.discard(media_id)

    async def create_vendor_profile(self, data: VendorProfileCreate) -> str:
        async with self._lock:
            vendor_id = uuid.uuid4().hex
            self._vendors[vendor_id] = VendorProfile(id=vendor_id, **data.model_dump())
            try:
                await self._after_write()
            except PersistenceFailure:
                del self._vendors[vendor_id]
                raise
            return vendor_id

    async def mark_media_processed(self, media_id: str, vendor_id: str) -> None:
        async with self._lock:
            media = self._media.get(media_id)
            if media is None:
                raise PersistenceFailure(f"Media disappeared before tagging: {media_id}", vendor_id=vendor_id)
            if vendor_id not in self._vendors:
                raise PersistenceFailure(f"Cannot link media {media_id} to unknown vendor {vendor_id}", vendor_id=vendor_id)
            self._media[media_id] = media.model_copy(update={"is_business_card": True, "vendor_id": vendor_id})
            try:
                await self._after_write()
            except PersistenceFailure:
                self._media[media_id] = media
                raise

    async def get_vendor_profile(self, vendor_id: str) -> Optional[VendorProfile]:
        return self._vendors.get(vendor_id)

    async def list_vendor_profiles(self) -> List[VendorProfile]:
        return list(self._vendors.values())

    async def update_vendor_profile(self, vendor_id: str, changes: Dict[str, Any]) -> VendorProfile:
        async with self._lock:
            current = self._vendors.get(vendor_id)
            if current is None:
                raise VendorNotFound(vendor_id)
            data = current.model_dump()
            data.update(changes)
            data["updated_at"] = datetime.now(timezone.utc)
            updated = VendorProfile.model_validate(data)
            self._vendors[vendor_id] = updated
            try:
                await self._after_write()
            except PersistenceFailure:
                self._vendors[vendor_id] = current
                raise
            return updated

    async def delete_vendor_profile(self, vendor_id: str) -> None:
        async with self._lock:
            removed = self._vendors.pop(vendor_id, None)
            if removed is None:
                raise VendorNotFound(vendor_id)
            # Unlink business cards pointing at the deleted vendor
            unlinked: Dict[str, MediaAsset] = {}
            for media_id, media in list(self._media.items()):
                if media.vendor_id == vendor_id:
                    unlinked[media_id] = media
                    self._media[media_id] = media.model_copy(update={"vendor_id": None})
            try:
                await self._after_write()
            except PersistenceFailure:
                self._vendors[vendor_id] = removed
                self._media.update(unlinked)
                raise

    async def list_media_for_vendor(self, vendor_id: str) -> List[MediaAsset]:
        return [m for m in self._media.values() if m.vendor_id == vendor_id]


class JsonFileVendorStore(InMemoryVendorStore):
    """File-backed store for CLI use and single-host deployments.

    In-flight claims are held in memory only; they guard concurrent runs inside one process.
    """

    def __init__(self, path: Union[str, Path]) -> None:
        super().__init__()
        self.path = Path(path)
        if self.path.exists():
            self._load()

    def _load(self) -> None:
        with open(self.path, "r", encoding="utf-8") as f:
            state = json.load(f)
        self._media = {k: MediaAsset.model_validate(v) for k, v in state.get("media", {}).items()}
        self._vendors = {k: VendorProfile.model_validate(v) for k, v in state.get("vendors", {}).items()}

    async def _after_write(self) -> None:
        state = {
            "media": {k: v.model_dump(mode="json") for k, v in self._media.items()},
            "vendors": {k: v.model_dump(mode="json") for k, v in self._vendors.items()},
        }
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = f"{self.path}.tmp"
        try:
            with open(tmp, "w", encoding="utf-8") as f:
                json.dump(state, f, ensure_ascii=False, sort_keys=True)
            os.replace(tmp, self.path)
        except OSError as e:
            raise PersistenceFailure(f"Could not write store file {self.path}: {e}") from e
