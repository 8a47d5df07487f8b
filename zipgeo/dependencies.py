"""FastAPI dependencies wiring services to the per-app state."""
from fastapi import Depends, Request

from zipgeo.config import Settings, get_settings
from zipgeo.services.asset_source import AssetSource
from zipgeo.services.dataset_service import DatasetService
from zipgeo.services.kv_store import KVStore
from zipgeo.services.reverse_geocoder import ReverseGeocoder


def get_app_settings(request: Request) -> Settings:
    return getattr(request.app.state, "settings", None) or get_settings()


def get_store(request: Request) -> KVStore:
    return KVStore(request.app.state.session_factory)


def get_dataset_service(
    request: Request,
    store: KVStore = Depends(get_store),
    settings: Settings = Depends(get_app_settings),
) -> DatasetService:
    return DatasetService(
        store,
        write_zip_entries=settings.write_zip_entries,
        lock=request.app.state.populate_lock,
    )


def get_reverse_geocoder(
    request: Request,
    store: KVStore = Depends(get_store),
) -> ReverseGeocoder:
    return ReverseGeocoder(store, request.app.state.index_cache)


def get_asset_source(settings: Settings = Depends(get_app_settings)) -> AssetSource:
    return AssetSource.from_settings(settings)
