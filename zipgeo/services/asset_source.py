"""Fetch the raw ZIP code CSV from disk or over HTTP."""
import logging
from pathlib import Path
from typing import Union

import httpx

from zipgeo.config import Settings
from zipgeo.exceptions import AssetUnavailableError

logger = logging.getLogger(__name__)


class AssetSource:
    """Reads source assets by name, relative path, absolute path or URL."""

    def __init__(self, assets_dir: Union[str, Path], timeout: float = 30.0):
        self.assets_dir = Path(assets_dir)
        self.timeout = timeout

    @classmethod
    def from_settings(cls, settings: Settings) -> "AssetSource":
        return cls(settings.assets_dir, timeout=settings.asset_timeout_seconds)

    async def fetch_text(self, location: str) -> str:
        """
        Return the asset's text.

        Raises:
            AssetUnavailableError: if the file is missing or the download fails.
        """
        if location.startswith(("http://", "https://")):
            return await self._download(location)
        return self._read(location)

    def _read(self, location: str) -> str:
        path = Path(location)
        if not path.is_absolute():
            path = self.assets_dir / path
        try:
            return path.read_text(encoding="utf-8-sig")
        except OSError as e:
            logger.error("Cannot read asset %s: %s", path, e)
            raise AssetUnavailableError(f"Failed to fetch {path.name}") from e

    async def _download(self, url: str) -> str:
        logger.info("Downloading %s", url)
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.get(url)
                response.raise_for_status()
        except httpx.HTTPError as e:
            logger.error("Download of %s failed: %s", url, e)
            raise AssetUnavailableError(f"Failed to fetch {url}") from e
        return response.text
