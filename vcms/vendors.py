"""
Purpose: Vendor administration operations over a Vendor Store.
Description: Listing, editing and deleting vendor profiles, each write emitting an audit event.
Editing never re-scores a vendor.
Key Functions: get_all_vendors, update_vendor, delete_vendor.
"""

from __future__ import annotations

from typing import Any, Dict, List, Mapping

from .errors import VendorNotFound
from .models import VendorProfile
from .store import VendorStore
from .vcms_logging import get_logger, log_event


audit_logger = get_logger("vcms.audit")

EDITABLE_FIELDS = (
    "name",
    "email",
    "phone",
    "website",
    "address",
    "title",
    "primary_industry",
    "angies_list_url",
    "google_reviews_url",
    "google_rating",
    "review_count",
)


def _serialize(profile: VendorProfile) -> Dict[str, Any]:
    # Datetimes become ISO-8601 strings
    return profile.model_dump(mode="json")


async def get_all_vendors(store: VendorStore) -> List[Dict[str, Any]]:
    """Vendors sorted by name, each with the business cards linked to it."""
    vendors = await store.list_vendor_profiles()
    vendors.sort(key=lambda v: v.name.casefold())
    out: List[Dict[str, Any]] = []
    for vendor in vendors:
        row = _serialize(vendor)
        row["business_cards"] = [
            {"url": m.url, "is_business_card": m.is_business_card}
            for m in await store.list_media_for_vendor(vendor.id)
        ]
        out.append(row)
    return out


def _clean_changes(data: Mapping[str, Any]) -> Dict[str, Any]:
    changes: Dict[str, Any] = {}
    for field in EDITABLE_FIELDS:
        value = data.get(field)
        # Empty values leave the stored field untouched
        if value is None or value == "":
            continue
        if field == "google_rating":
            value = float(value)
        elif field == "review_count":
            value = int(value)
        changes[field] = value
    return changes


async def update_vendor(store: VendorStore, vendor_id: str, data: Mapping[str, Any]) -> Dict[str, Any]:
    """Apply editable fields from `data` to a vendor.

    Raises:
        VendorNotFound: unknown vendor id.
        ValueError: `google_rating` / `review_count` that do not parse as numbers.
    """
    changes = _clean_changes(data)
    updated = await store.update_vendor_profile(vendor_id, changes)
    log_event(
        audit_logger,
        "UPDATE_VENDOR",
        details={"vendor": updated.name or vendor_id, "vendor_id": vendor_id, "fields": sorted(changes)},
    )
    return _serialize(updated)


async def delete_vendor(store: VendorStore, vendor_id: str) -> None:
    vendor = await store.get_vendor_profile(vendor_id)
    if vendor is None:
        raise VendorNotFound(vendor_id)
    await store.delete_vendor_profile(vendor_id)
    log_event(audit_logger, "DELETE_VENDOR", details={"vendor": vendor.name or vendor_id, "vendor_id": vendor_id})
