"""Domain errors raised by the services and translated by the routers."""


class ZipGeoError(Exception):
    """Base class for all service errors."""


class IngestError(ZipGeoError):
    """The raw source cannot be ingested at all (e.g. missing columns)."""


class AssetUnavailableError(ZipGeoError):
    """The raw source asset could not be fetched."""


class SnapshotUnavailableError(ZipGeoError):
    """A snapshot entry is missing or does not match the current epoch."""


class InvalidQueryError(ZipGeoError):
    """Caller supplied a malformed ZIP, coordinate or radius."""


class NoResultError(ZipGeoError):
    """Nothing matched the query."""
