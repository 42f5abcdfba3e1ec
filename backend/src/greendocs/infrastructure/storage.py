"""
File storage service for documents.

Handles storage of uploaded documents and resolution of a document's file
reference back to bytes. Supports the local filesystem for uploads and can
additionally read ``data:`` URLs and remote ``http(s)`` references.

Design Decisions:
- Abstract storage interface for multiple backends
- Content-addressable storage using document hash
- Integrity check on every local read (the stored name is the hash)
- Cleanup of orphaned files when the document row cannot be written
"""

import base64
import binascii
import logging
import mimetypes
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path

import httpx

from greendocs.config import get_settings
from greendocs.domain.errors import StorageError, UpstreamUnavailableError
from greendocs.domain.hashing import HASH_PREFIX, compute_document_hash, verify_hash

logger = logging.getLogger(__name__)

# Prefix of file references that point into the local backend.
LOCAL_SCHEME = "local:"


@dataclass
class StoredDocument:
    """Metadata for a stored document."""
    path: str
    document_hash: str
    size_bytes: int
    content_type: str
    # False when identical content was already stored; other documents may
    # reference the same path.
    created: bool = True

    @property
    def reference(self) -> str:
        """File reference recorded on the document row."""
        return f"{LOCAL_SCHEME}{self.path}"


@dataclass
class FetchedFile:
    """Bytes resolved from a file reference."""
    content: bytes
    content_type: str


class StorageBackend(ABC):
    """Abstract interface for document storage backends."""

    @abstractmethod
    async def store(
        self,
        content: bytes,
        filename: str,
        content_type: str,
    ) -> StoredDocument:
        """Store a document and return storage metadata."""
        pass

    @abstractmethod
    async def retrieve(self, path: str) -> bytes:
        """Retrieve document content by storage path."""
        pass

    @abstractmethod
    async def delete(self, path: str) -> bool:
        """Delete a document. Returns True if deleted."""
        pass


class LocalStorageBackend(StorageBackend):
    """
    Local filesystem storage.

    Stores documents in a content-addressable structure:
    storage_path/
        ab/
            cd/
                abcd1234....png
    """

    def __init__(self, base_path: Path | None = None) -> None:
        """
        Initialize local storage.

        Args:
            base_path: Base directory for storage. Uses config if None.
        """
        self.base_path = (base_path or get_settings().storage_path).resolve()
        self.base_path.mkdir(parents=True, exist_ok=True)
        logger.info(f"Local storage initialized at {self.base_path}")

    def _resolve(self, path: str) -> Path:
        file_path = (self.base_path / path).resolve()
        if not file_path.is_relative_to(self.base_path):
            raise ValueError("Path traversal not allowed")
        return file_path

    async def store(
        self,
        content: bytes,
        filename: str,
        content_type: str,
    ) -> StoredDocument:
        """
        Store document using content-addressable path.

        The path is derived from the hash to enable deduplication
        and easy integrity verification.
        """
        document_hash = compute_document_hash(content)

        # sha256:abcd... -> ab/cd/abcd....ext
        hash_value = document_hash.removeprefix(HASH_PREFIX)
        subdir = self.base_path / hash_value[:2] / hash_value[2:4]
        subdir.mkdir(parents=True, exist_ok=True)

        # Preserve original extension for content type hints
        ext = Path(filename).suffix.lower()
        file_path = subdir / f"{hash_value}{ext}"
        created = not file_path.exists()

        # Write atomically (write to temp, then rename)
        temp_path = file_path.with_suffix(".tmp")
        try:
            temp_path.write_bytes(content)
            temp_path.replace(file_path)
        except Exception:
            temp_path.unlink(missing_ok=True)
            raise

        return StoredDocument(
            path=file_path.relative_to(self.base_path).as_posix(),
            document_hash=document_hash,
            size_bytes=len(content),
            content_type=content_type,
            created=created,
        )

    async def retrieve(self, path: str) -> bytes:
        """Retrieve document and verify integrity."""
        file_path = self._resolve(path)

        if not file_path.exists():
            raise FileNotFoundError(f"Document not found: {path}")

        content = file_path.read_bytes()
        expected_hash = f"{HASH_PREFIX}{file_path.stem}"
        if not verify_hash(content, expected_hash):
            raise ValueError(f"Document integrity check failed: {path}")
        return content

    async def delete(self, path: str) -> bool:
        """Delete document file."""
        file_path = self._resolve(path)

        try:
            file_path.unlink()

            # Clean up empty parent directories
            parent = file_path.parent
            while parent != self.base_path:
                if not any(parent.iterdir()):
                    parent.rmdir()
                    parent = parent.parent
                else:
                    break

            return True
        except FileNotFoundError:
            return False


class FileStore:
    """
    High-level service for document files.

    Wraps the storage backend for uploads and resolves any file reference
    (local path, data URL or http(s) URL) to bytes for extraction.
    """

    def __init__(
        self,
        backend: StorageBackend | None = None,
        fetch_timeout: float | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """
        Initialize the file store.

        Args:
            backend: Storage backend. Creates LocalStorageBackend if None.
            fetch_timeout: Timeout in seconds for remote fetches. Uses config if None.
            http_client: Client for remote references. A short-lived client is
                created per fetch if None.
        """
        self.backend = backend or LocalStorageBackend()
        self.fetch_timeout = fetch_timeout or get_settings().file_fetch_timeout_seconds
        self._http_client = http_client

    async def store_upload(
        self,
        content: bytes,
        filename: str,
        content_type: str,
    ) -> StoredDocument:
        """Store an uploaded document."""
        if not content:
            raise ValueError("Cannot store empty document")

        logger.info(f"Storing upload: {filename} ({len(content)} bytes, {content_type})")
        return await self.backend.store(content, filename, content_type)

    async def discard(self, stored: StoredDocument) -> None:
        """Remove a stored file whose document row was never written."""
        if not stored.created:
            logger.info(f"Keeping {stored.path}: it was stored before this upload")
            return
        try:
            await self.backend.delete(stored.path)
        except (OSError, ValueError) as e:
            logger.warning(f"Failed to remove orphaned file {stored.path}: {e}")

    async def fetch(self, reference: str) -> FetchedFile:
        """
        Resolve a file reference to its content.

        Raises:
            UpstreamUnavailableError: If a remote file cannot be downloaded.
            StorageError: If a local or inline file is missing or corrupt.
        """
        if reference.startswith("data:"):
            return self._decode_data_url(reference)
        if reference.startswith(("http://", "https://")):
            return await self._download(reference)
        return await self._read_local(reference.removeprefix(LOCAL_SCHEME))

    async def _read_local(self, path: str) -> FetchedFile:
        try:
            content = await self.backend.retrieve(path)
        except (OSError, ValueError) as e:
            raise StorageError(f"Stored file unavailable: {e}") from e

        content_type = mimetypes.guess_type(path)[0] or "application/octet-stream"
        return FetchedFile(content=content, content_type=content_type)

    @staticmethod
    def _decode_data_url(reference: str) -> FetchedFile:
        header, sep, payload = reference.partition(",")
        if not sep or not header.endswith(";base64"):
            raise StorageError("File reference is not a base64 data URL")

        content_type = header.removeprefix("data:").removesuffix(";base64") or "application/octet-stream"
        try:
            content = base64.b64decode(payload, validate=True)
        except (binascii.Error, ValueError) as e:
            raise StorageError(f"File reference has an invalid base64 payload: {e}") from e

        return FetchedFile(content=content, content_type=content_type)

    async def _download(self, url: str) -> FetchedFile:
        try:
            if self._http_client is not None:
                response = await self._http_client.get(url, timeout=self.fetch_timeout)
            else:
                async with httpx.AsyncClient(timeout=self.fetch_timeout, follow_redirects=True) as client:
                    response = await client.get(url)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise UpstreamUnavailableError(
                f"Failed to fetch file from {url}. Status: {e.response.status_code}",
                status_code=e.response.status_code,
            ) from e
        except httpx.HTTPError as e:
            raise UpstreamUnavailableError(f"Failed to fetch file from {url}: {e}") from e

        content_type = response.headers.get("content-type", "image/jpeg").split(";")[0].strip()
        return FetchedFile(content=response.content, content_type=content_type)
