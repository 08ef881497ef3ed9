"""
Cash-Up Engine - Evidence Object Storage
========================================
Uploaded audit spreadsheets are stored outside the database; records keep
only the retrieval URL and the original file name.

- InMemoryEvidenceStorage: MinIO-style buckets held in process
- MinioEvidenceStorage: MinIO / S3 via the minio client
"""

import hashlib
import io
import logging
import re
import threading
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone

from core.constants import XLSX_CONTENT_TYPE
from core.errors import StorageError

logger = logging.getLogger("cashup.data_layer.evidence")


@dataclass(frozen=True)
class StoredEvidence:
    """Where an uploaded file ended up"""

    key: str
    url: str
    size: int
    etag: str


def build_object_key(folder: str, file_name: str) -> str:
    """Unique object key under folder, keeping a readable file name."""
    safe_name = re.sub(r"[^A-Za-z0-9._-]+", "_", file_name).strip("_") or "evidence"
    return f"{folder.strip('/')}/{uuid.uuid4().hex[:12]}-{safe_name}"


class EvidenceStorage(ABC):
    @abstractmethod
    def put(self, folder: str, file_name: str, data: bytes, content_type: str = XLSX_CONTENT_TYPE) -> StoredEvidence:
        """Store data under a fresh key in folder."""


class InMemoryEvidenceStorage(EvidenceStorage):
    """
    Mock object storage.
    In production, use MinioEvidenceStorage.
    """

    def __init__(self, bucket: str = "cashup-evidence", base_url: str = "memory://evidence"):
        self.bucket = bucket
        self.base_url = base_url.rstrip("/")
        self._lock = threading.Lock()
        self._objects: dict[str, dict] = {}

    def put(self, folder: str, file_name: str, data: bytes, content_type: str = XLSX_CONTENT_TYPE) -> StoredEvidence:
        key = build_object_key(folder, file_name)
        etag = hashlib.md5(data).hexdigest()
        with self._lock:
            self._objects[key] = {
                "content": bytes(data),
                "content_type": content_type,
                "original_name": file_name,
                "created_at": datetime.now(timezone.utc).isoformat(),
            }
        return StoredEvidence(key=key, url=f"{self.base_url}/{self.bucket}/{key}", size=len(data), etag=etag)

    def get(self, key: str) -> bytes | None:
        with self._lock:
            obj = self._objects.get(key)
            return obj["content"] if obj else None

    def __len__(self) -> int:
        return len(self._objects)


class MinioEvidenceStorage(EvidenceStorage):
    """MinIO / S3 object storage"""

    def __init__(self, client, bucket: str, base_url: str):
        self._client = client
        self.bucket = bucket
        self.base_url = base_url.rstrip("/")
        self._bucket_checked = False

    @classmethod
    def from_settings(cls, settings) -> "MinioEvidenceStorage":
        from minio import Minio

        client = Minio(
            settings.MINIO_ENDPOINT,
            access_key=settings.MINIO_ACCESS_KEY,
            secret_key=settings.MINIO_SECRET_KEY,
            secure=settings.MINIO_SECURE,
        )
        return cls(client, settings.MINIO_BUCKET, settings.EVIDENCE_BASE_URL)

    def _ensure_bucket(self) -> None:
        if self._bucket_checked:
            return
        if not self._client.bucket_exists(self.bucket):
            self._client.make_bucket(self.bucket)
            logger.info(f"Created evidence bucket {self.bucket}")
        self._bucket_checked = True

    def put(self, folder: str, file_name: str, data: bytes, content_type: str = XLSX_CONTENT_TYPE) -> StoredEvidence:
        key = build_object_key(folder, file_name)
        try:
            self._ensure_bucket()
            result = self._client.put_object(
                self.bucket,
                key,
                io.BytesIO(data),
                length=len(data),
                content_type=content_type,
                metadata={"original-name": file_name},
            )
        except Exception as e:
            logger.error(f"Evidence upload failed for {key}: {e}")
            raise StorageError(f"Failed to store evidence file: {e}", operation="put_object") from e
        return StoredEvidence(
            key=key,
            url=f"{self.base_url}/{self.bucket}/{key}",
            size=len(data),
            etag=getattr(result, "etag", "") or "",
        )
