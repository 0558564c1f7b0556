import os
from typing import Optional

import requests
from requests import RequestException

from .storage_config import STATUS_EXPORT_FILE


class SyncError(RuntimeError):
    """Raised when the WebDAV share rejects or cannot serve a request."""


class SyncClient:
    """Publish status exports to, and fetch import files from, a WebDAV share."""

    def __init__(self, base_url: Optional[str] = None, user: Optional[str] = None, password: Optional[str] = None, timeout: int = 30):
        self.base_url = base_url or os.getenv("BOXALL_SYNC_URL")
        self.user = user or os.getenv("BOXALL_SYNC_USER")
        self.password = password or os.getenv("BOXALL_SYNC_PASSWORD")
        self.timeout = timeout
        if not self.base_url or not self.user or not self.password:
            raise ValueError("Sync share credentials not set")

    def _url(self, name: str) -> str:
        return f"{self.base_url.rstrip('/')}/{name.lstrip('/')}"

    def upload_status(self, local_path: str, remote_name: str = STATUS_EXPORT_FILE) -> None:
        """Replace the published status export with ``local_path``."""
        url = self._url(remote_name)
        try:
            with open(local_path, "rb") as fh:
                response = requests.put(
                    url,
                    data=fh,
                    auth=(self.user, self.password),
                    headers={"Content-Type": "application/json"},
                    timeout=self.timeout,
                )
        except RequestException as exc:  # pragma: no cover - network failure
            raise SyncError(f"Status upload failed: {exc}") from exc
        if response.status_code not in (200, 201, 204):
            raise SyncError(f"Status upload failed: {response.status_code} {response.text}")

    def download_file(self, remote_name: str, local_path: Optional[str] = None) -> str:
        """Fetch ``remote_name`` (e.g. an import CSV) and return the local path."""
        local_path = local_path or os.path.basename(remote_name)
        try:
            response = requests.get(
                self._url(remote_name), auth=(self.user, self.password), timeout=self.timeout
            )
        except RequestException as exc:  # pragma: no cover - network failure
            raise SyncError(f"Download of {remote_name} failed: {exc}") from exc
        if response.status_code != 200:
            raise SyncError(
                f"Download of {remote_name} failed: {response.status_code} {response.text}"
            )
        with open(local_path, "wb") as fh:
            fh.write(response.content)
        return local_path
