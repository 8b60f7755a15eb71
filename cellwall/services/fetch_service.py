"""Downloads the supporters export and detects whether it changed."""

from __future__ import annotations

import hashlib
import os
from pathlib import Path
from typing import Optional

import httpx

from cellwall.services.parse_service import VAR_DATA_MARKER
from cellwall.utils.config import Settings, get_settings
from cellwall.utils.logger import get_logger


logger = get_logger(__name__)

BASE_FILE_NAME = "patrons_raw.txt"
OLD_FILE_NAME = "patrons_raw.old.txt"
STAGED_FILE_NAME = "patrons_raw.new.txt"


class FetchError(Exception):
    """Raised when the export cannot be downloaded or cached."""


def extract_var_data_line(content: str) -> str:
    """Keep only the last ``var data = ...`` line of an HTML page.

    Bodies without that line are returned unchanged, so plain delimited
    exports pass straight through.
    """
    data_line = ""
    for line in content.splitlines():
        if VAR_DATA_MARKER in line:
            data_line = line.strip()
    return data_line or content


def md5_digest(path: Path) -> str:
    digest = hashlib.md5()
    with path.open("rb") as handle:
        for chunk in iter(lambda: handle.read(65536), b""):
            digest.update(chunk)
    return digest.hexdigest()


class FetchService:
    """Caches exports as staged, current and previous copies.

    A download is staged first and only becomes the current copy through
    ``commit_update``, so a change that was never published stays "new"
    on the next check.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        client: Optional[httpx.Client] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._client = client

    @property
    def current_path(self) -> Path:
        return self._settings.cache_dir / BASE_FILE_NAME

    @property
    def previous_path(self) -> Path:
        return self._settings.cache_dir / OLD_FILE_NAME

    @property
    def staged_path(self) -> Path:
        return self._settings.cache_dir / STAGED_FILE_NAME

    def clear_cache(self) -> None:
        for path in (self.staged_path, self.current_path, self.previous_path):
            try:
                path.unlink()
            except FileNotFoundError:
                continue
            logger.info("Removed cached export | path=%s", path)

    def download(self, url: str) -> str:
        try:
            if self._client is not None:
                response = self._client.get(url, timeout=self._settings.fetch_timeout_seconds)
            else:
                response = httpx.get(
                    url,
                    timeout=self._settings.fetch_timeout_seconds,
                    follow_redirects=True,
                )
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise FetchError(
                f"export download failed with HTTP {exc.response.status_code}"
            ) from exc
        except httpx.HTTPError as exc:
            raise FetchError(f"export download failed: {exc}") from exc
        logger.info("Export downloaded | url=%s | bytes=%s", url, len(response.content))
        return response.text

    def check_for_update(self, url: str) -> Path | None:
        """Download ``url`` and return the staged path if it differs from the current copy."""
        if not url:
            raise FetchError("a source URL is required to fetch the export")

        content = extract_var_data_line(self.download(url))

        try:
            self._settings.cache_dir.mkdir(parents=True, exist_ok=True)
            self.staged_path.write_text(content, encoding="utf-8")
            staged_hash = md5_digest(self.staged_path)
            current_hash = md5_digest(self.current_path) if self.current_path.exists() else ""
            logger.debug("Export hashes | staged=%s | current=%s", staged_hash, current_hash)
            if staged_hash == current_hash:
                self.staged_path.unlink()
                logger.info("Export unchanged since last processed download")
                return None
        except OSError as exc:
            raise FetchError(f"cannot write export cache: {exc}") from exc
        return self.staged_path

    def commit_update(self) -> Path:
        """Promote the staged copy to current, keeping the old current as previous."""
        try:
            if self.current_path.exists():
                os.replace(self.current_path, self.previous_path)
            os.replace(self.staged_path, self.current_path)
        except OSError as exc:
            raise FetchError(f"cannot commit staged export: {exc}") from exc
        return self.current_path
