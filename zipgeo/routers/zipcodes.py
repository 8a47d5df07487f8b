"""ZIP code lookup and reverse geocoding router."""
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import JSONResponse
from zipgeo.config import Settings
from zipgeo.dependencies import (
    get_app_settings, get_dataset_service, get_reverse_geocoder
)
from zipgeo.exceptions import InvalidQueryError, NoResultError, SnapshotUnavailableError
from zipgeo.services.dataset_service import DatasetService
from zipgeo.services.reverse_geocoder import ReverseGeocoder

router = APIRouter()


def _parse_coordinate(value: str) -> float:
    try:
        return float(value)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid latitude or longitude")


def _parse_radius(value: str, maximum: float) -> float:
    try:
        radius = float(value)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid radius value")
    if radius > maximum:
        raise HTTPException(status_code=400, detail="Invalid radius value")
    return radius


@router.get("/zipcode/{zip_code}")
async def get_zipcode(
    zip_code: str,
    service: DatasetService = Depends(get_dataset_service)
):
    """
    Get the directory record for a ZIP code.

    - **zip_code**: 5-digit ZIP code, e.g. `00501`
    """
    try:
        return await service.get_record(zip_code)
    except InvalidQueryError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except NoResultError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.get("/reverse/{lat}/{long}")
async def reverse_geocode(
    lat: str,
    long: str,
    radius_km: Optional[str] = Query(
        None, description="Search radius in kilometers; defaults to the configured radius"
    ),
    geocoder: ReverseGeocoder = Depends(get_reverse_geocoder),
    settings: Settings = Depends(get_app_settings)
):
    """
    Find the ZIP code nearest to a coordinate.

    - **lat**, **long**: decimal degrees
    - **radius_km**: optional override, up to the configured maximum

    Example: `/reverse/40.81/-73.04` → `{"zipCode": "00501", "city": "Holtsville", ...}`
    """
    latitude = _parse_coordinate(lat)
    longitude = _parse_coordinate(long)

    radius = settings.search_radius_km
    if radius_km is not None:
        radius = _parse_radius(radius_km, settings.max_search_radius_km)

    try:
        result = await geocoder.reverse(latitude, longitude, radius)
    except InvalidQueryError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except NoResultError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except SnapshotUnavailableError as e:
        return JSONResponse({"error": str(e)}, status_code=500)

    return result.to_dict()
