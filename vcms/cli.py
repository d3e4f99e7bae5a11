"""
Purpose: CLI for the VCMS pipeline.
Description: Provides `vcms process` to turn business-card media into vendor profiles,
`vcms score` to compute a score from evidence flags, and `vcms vendors` to inspect a store.
Key Functions/Classes: Click entrypoints `vcms`, `process`, `score`, `vendors`.
"""

from __future__ import annotations

import asyncio
import json
import sys
from typing import List, Optional, Tuple

import click

from .config import VcmsConfig, get_extraction_api_key, get_store_path
from .errors import ScoringError
from .extraction import VisionExtractionService
from .io_jsonl import iter_media_assets_from_jsonl, write_vendor_profiles_jsonl
from .models import PipelineResult
from .pipeline import VendorPipeline
from .scoring import calculate_vcms_score, describe_score
from .store import JsonFileVendorStore
from .vendors import get_all_vendors


# AIDEV-NOTE: We use env var VCMS_API_KEY (or OPENAI_API_KEY) for the extraction service.


@click.group()
def vcms() -> None:
    """Vendor contact management scoring utilities."""


async def _process(
    store: JsonFileVendorStore,
    cfg: VcmsConfig,
    media_ids: List[str],
    user_id: str,
    media_jsonl: Optional[str],
    reprocess: bool,
) -> List[PipelineResult]:
    if media_jsonl:
        for asset in iter_media_assets_from_jsonl(media_jsonl):
            await store.add_media(asset)
    pipeline = VendorPipeline(VisionExtractionService(cfg), store, cfg)
    return await pipeline.process_many(media_ids, user_id, reprocess=reprocess)


@vcms.command()
@click.argument("media_ids", nargs=-1, required=True)
@click.option("--user-id", required=True, help="User the vendor profiles are created for")
@click.option("--store", "store_path", default=None, type=click.Path(dir_okay=False), help="JSON store file (default: $VCMS_STORE_PATH)")
@click.option("--media-jsonl", default=None, type=click.Path(exists=True, dir_okay=False), help="Seed media assets from JSONL first")
@click.option("--reprocess", is_flag=True, help="Process media already linked to a vendor again")
@click.option("--model", default=None, help="Vision model to use")
@click.option("--timeout-seconds", default=None, type=float, help="Extraction timeout")
@click.option("--concurrency", default=4, type=int, show_default=True)
def process(
    media_ids: Tuple[str, ...],
    user_id: str,
    store_path: Optional[str],
    media_jsonl: Optional[str],
    reprocess: bool,
    model: Optional[str],
    timeout_seconds: Optional[float],
    concurrency: int,
) -> None:
    """Create vendor profiles from business-card media."""
    if not get_extraction_api_key():
        click.echo("⚠️  No VCMS_API_KEY / OPENAI_API_KEY set; vendors will be created as AMBIGUOUS placeholders.", err=True)

    cfg = VcmsConfig(model=model, timeout_seconds=timeout_seconds, concurrency=concurrency)
    store = JsonFileVendorStore(store_path or get_store_path())
    results = asyncio.run(_process(store, cfg, list(media_ids), user_id, media_jsonl, reprocess))

    for media_id, result in zip(media_ids, results):
        click.echo(json.dumps({"mediaId": media_id, **result.to_payload()}, ensure_ascii=False))
    if not all(r.success for r in results):
        sys.exit(1)


@vcms.command()
@click.option("--star-rating", default=0.0, type=float, show_default=True)
@click.option("--review-count", default=0, type=int, show_default=True)
@click.option("--internal-rating", default=0.0, type=float, show_default=True)
@click.option("--total-jobs", default=0, type=int, show_default=True)
@click.option("--has-coi", is_flag=True)
@click.option("--has-contract", is_flag=True)
@click.option("--do-not-use", is_flag=True)
@click.option("--license-expired", is_flag=True)
@click.option("--explain", is_flag=True, help="Print a readable breakdown instead of JSON")
def score(
    star_rating: float,
    review_count: int,
    internal_rating: float,
    total_jobs: int,
    has_coi: bool,
    has_contract: bool,
    do_not_use: bool,
    license_expired: bool,
    explain: bool,
) -> None:
    """Compute a VCMS score from quality, reliability and compliance evidence."""
    try:
        components = calculate_vcms_score(
            {"star_rating": star_rating, "review_count": review_count},
            {"internal_rating": internal_rating, "total_jobs": total_jobs},
            {
                "has_coi": has_coi,
                "has_contract": has_contract,
                "is_do_not_use": do_not_use,
                "license_expired": license_expired,
            },
        )
    except ScoringError as e:
        raise click.UsageError(str(e)) from e

    if explain:
        for line in describe_score(components):
            click.echo(line)
    else:
        click.echo(components.model_dump_json())


@vcms.group()
def vendors() -> None:
    """Inspect stored vendor profiles."""


@vendors.command("list")
@click.option("--store", "store_path", default=None, type=click.Path(dir_okay=False))
def list_vendors(store_path: Optional[str]) -> None:
    """Print vendors sorted by name, one JSON object per line."""
    store = JsonFileVendorStore(store_path or get_store_path())
    for vendor in asyncio.run(get_all_vendors(store)):
        click.echo(json.dumps(vendor, ensure_ascii=False, sort_keys=True))


@vendors.command("export")
@click.option("--store", "store_path", default=None, type=click.Path(dir_okay=False))
@click.option("--output-jsonl", required=True, type=click.Path(dir_okay=False))
def export_vendors(store_path: Optional[str], output_jsonl: str) -> None:
    """Export every vendor profile to a JSONL file."""
    store = JsonFileVendorStore(store_path or get_store_path())
    profiles = asyncio.run(store.list_vendor_profiles())
    count = write_vendor_profiles_jsonl(output_jsonl, profiles)
    click.echo(f"✅ Exported {count} vendors to {output_jsonl}")


if __name__ == "__main__":  # pragma: no cover
    vcms()
