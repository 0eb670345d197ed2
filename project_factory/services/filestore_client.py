from __future__ import annotations

import logging

import requests

from project_factory.core.config import settings
from project_factory.core.errors import raise_error
from project_factory.services.http_client import ServiceClient

logger = logging.getLogger(__name__)

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


class FileStoreClient:
    def __init__(
        self,
        *,
        base_url: str | None = None,
        session: requests.Session | None = None,
    ) -> None:
        self._session = session or requests.Session()
        self._client = ServiceClient(base_url or settings.FILESTORE_HOST, session=self._session)

    def upload(self, content: bytes, tenant_id: str, filename: str = "template.xlsx") -> str:
        response = self._session.post(
            self._client.url(settings.FILESTORE_UPLOAD_PATH),
            files={"file": (filename, content, XLSX_MEDIA_TYPE)},
            data={"tenantId": tenant_id, "module": "HCM-ADMIN-CONSOLE-SERVER"},
            timeout=settings.HTTP_TIMEOUT_SECONDS,
        )
        response.raise_for_status()
        try:
            files = response.json().get("files") or []
        except ValueError as exc:
            raise requests.RequestException("File store returned invalid JSON.") from exc
        if not files or not files[0].get("fileStoreId"):
            raise_error("FILE", 500, "UPLOAD_ERROR", f"No fileStoreId returned for {filename}")
        filestore_id = str(files[0]["fileStoreId"])
        logger.info("filestore_upload tenant=%s filestore_id=%s bytes=%s", tenant_id, filestore_id, len(content))
        return filestore_id

    def resolve_url(self, tenant_id: str, filestore_id: str) -> str:
        payload = self._client.get(
            settings.FILESTORE_URL_PATH,
            params={"tenantId": tenant_id, "fileStoreIds": filestore_id},
        )
        entries = payload.get("fileStoreIds") or []
        url = entries[0].get("url") if entries else None
        if not url:
            raise_error("FILE", 500, "DOWNLOAD_URL_NOT_FOUND", f"fileStoreId {filestore_id}")
        return str(url)

    def download(self, url: str) -> bytes:
        return self._client.download(url)
