"""Dataset loading and bulk read router."""
import logging
import time
from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse, PlainTextResponse
from starlette.concurrency import run_in_threadpool
from zipgeo.config import Settings
from zipgeo.dependencies import get_app_settings, get_asset_source, get_dataset_service
from zipgeo.etl.ingest import parse_rows
from zipgeo.exceptions import AssetUnavailableError, IngestError, SnapshotUnavailableError
from zipgeo.services.asset_source import AssetSource
from zipgeo.services.dataset_service import DatasetService, bulk_entries

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/populate", response_class=PlainTextResponse)
async def populate(
    request: Request,
    service: DatasetService = Depends(get_dataset_service),
    assets: AssetSource = Depends(get_asset_source),
    settings: Settings = Depends(get_app_settings)
):
    """
    Load the source CSV and publish it as the current snapshot.

    Writes MASTER, LIST, EPOCH and one entry per ZIP code.
    """
    try:
        csv = await assets.fetch_text(settings.source_csv)
        parsed = await run_in_threadpool(parse_rows, csv)
    except (AssetUnavailableError, IngestError) as e:
        return JSONResponse({"error": str(e)}, status_code=500)

    if not parsed.records:
        return JSONResponse(
            {"error": "No valid ZIP code rows found", "skipped": parsed.skipped},
            status_code=500
        )

    result = await service.populate(parsed.records, skipped=parsed.skipped)
    request.app.state.index_cache.invalidate()
    return PlainTextResponse(result.message)


@router.get("/bulk")
async def bulk(
    assets: AssetSource = Depends(get_asset_source),
    settings: Settings = Depends(get_app_settings)
):
    """Per-ZIP `{key, value, metadata}` entries for an external bulk load."""
    try:
        csv = await assets.fetch_text(settings.source_csv)
        parsed = await run_in_threadpool(parse_rows, csv)
    except (AssetUnavailableError, IngestError) as e:
        return JSONResponse({"error": str(e)}, status_code=500)
    return bulk_entries(parsed.records)


@router.get("/list")
async def list_points(service: DatasetService = Depends(get_dataset_service)):
    """The point projection of the current snapshot."""
    start = time.perf_counter()
    try:
        points = await service.get_points()
    except SnapshotUnavailableError as e:
        return JSONResponse({"error": str(e)}, status_code=500)
    logger.debug("Fetched %d points in %.2f seconds", len(points), time.perf_counter() - start)
    return points


@router.get("/all")
async def list_all(
    service: DatasetService = Depends(get_dataset_service),
    settings: Settings = Depends(get_app_settings)
):
    """Every stored per-ZIP key with its metadata."""
    start = time.perf_counter()
    keys = await service.list_zip_keys(page_size=settings.list_page_size)
    logger.debug("Fetched %d keys in %.2f seconds", len(keys), time.perf_counter() - start)
    return [{"name": key.name, "metadata": key.metadata} for key in keys]


@router.get("/master")
async def master(service: DatasetService = Depends(get_dataset_service)):
    """The full master collection of the current snapshot."""
    start = time.perf_counter()
    try:
        records = await service.get_master()
    except SnapshotUnavailableError as e:
        return JSONResponse({"error": str(e)}, status_code=500)
    logger.debug("Fetched %d records in %.2f seconds", len(records), time.perf_counter() - start)
    return records
