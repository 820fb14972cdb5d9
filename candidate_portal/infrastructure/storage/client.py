"""
Blob storage client for candidate files.

Supports Cloudflare R2 (S3-compatible) with mock mode for local development.
Each blob is one object keyed by a UUID the store generates at write time.
The stored name, original filename and kind travel as object metadata, and
the declared content type is the object's ContentType, so a download can be
served back exactly as it was uploaded.

Mock mode stores blobs in memory, enabling API testing without
provisioning actual object storage.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import AsyncGenerator, AsyncIterator, Callable, Optional, Protocol
from urllib.parse import quote, unquote
from uuid import UUID, uuid4

from ...core.submission.errors import BlobNotFoundError, BlobStreamError, StorageError
from ...core.submission.models import BlobId, BlobKind

logger = logging.getLogger(__name__)

# Size of each read from the backing store while streaming a download.
STREAM_CHUNK_BYTES = 256 * 1024

_MISSING_CODES = {"NoSuchKey", "404", "NotFound"}


@dataclass
class StorageConfig:
    """Configuration for R2/S3-compatible storage."""
    access_key_id: str
    secret_access_key: str
    bucket_name: str
    endpoint_url: str
    region: str = "auto"  # R2 uses 'auto' for region


@dataclass
class BlobDownload:
    """
    An opened blob, ready to stream.

    `chunks` yields the bytes in order. It raises BlobStreamError if the
    backing store fails mid-transfer and releases the underlying body once
    iteration has started. aclose() also covers a stream that never started.
    """
    blob_id: BlobId
    kind: BlobKind
    name: str
    filename: str
    content_type: str
    size: Optional[int]
    chunks: AsyncGenerator[bytes, None]
    close_body: Callable[[], None] = field(default=lambda: None, repr=False)

    async def aclose(self) -> None:
        """Stop the stream and release the body, whether or not streaming started."""
        await self.chunks.aclose()
        self.close_body()


class BlobStore(Protocol):
    """
    Protocol for blob storage operations.

    Using a protocol means tests can provide mocks and we can
    swap storage backends without changing dependent code.
    """

    async def put(
        self,
        data: bytes,
        name: str,
        content_type: str,
        kind: BlobKind,
        filename: str,
    ) -> BlobId:
        """Store bytes and return the generated blob id."""
        ...

    async def open_stream(self, blob_id: BlobId, kind: BlobKind) -> BlobDownload:
        """Open a blob of the given kind for streaming."""
        ...

    async def delete(self, blob_id: BlobId) -> None:
        """Remove a blob. Missing blobs are not an error."""
        ...

    def close(self) -> None:
        """Release the connection to the backing store."""
        ...


def build_blob_key(blob_id: BlobId) -> str:
    """Object key for a blob."""
    return f"blobs/{blob_id}"


def _error_code(error: Exception) -> str:
    response = getattr(error, "response", None) or {}
    return str(response.get("Error", {}).get("Code", ""))


class R2BlobStore:
    """
    Cloudflare R2 blob store.

    Uses boto3 because R2 is S3-compatible, so the same code works against
    AWS S3 or MinIO. boto3 is synchronous; every call runs on a worker
    thread to keep the event loop free.
    """

    def __init__(self, config: StorageConfig) -> None:
        """
        Initialize R2 client with boto3.

        boto3 is imported here (not at module level) so mock mode
        doesn't need it.
        """
        try:
            import boto3
            from botocore.config import Config
        except ImportError:
            raise ImportError(
                "boto3 is required for R2 storage. Install with: pip install boto3"
            )

        self._config = config

        # R2 requires v4 signatures and has specific endpoint patterns
        boto_config = Config(
            signature_version='s3v4',
            s3={'addressing_style': 'path'},
        )

        self._s3_client = boto3.client(
            's3',
            endpoint_url=config.endpoint_url,
            aws_access_key_id=config.access_key_id,
            aws_secret_access_key=config.secret_access_key,
            region_name=config.region,
            config=boto_config,
        )

        logger.debug(
            "Initialized R2 blob store",
            extra={
                "bucket": config.bucket_name,
                "endpoint": config.endpoint_url,
            }
        )

    async def put(
        self,
        data: bytes,
        name: str,
        content_type: str,
        kind: BlobKind,
        filename: str,
    ) -> BlobId:
        """
        Upload a blob to R2.

        The returned id is only handed out after put_object has returned,
        so callers never see the id of a blob whose write is unconfirmed.
        """
        blob_id = uuid4()
        key = build_blob_key(blob_id)

        try:
            await asyncio.to_thread(
                self._s3_client.put_object,
                Bucket=self._config.bucket_name,
                Key=key,
                Body=data,
                ContentType=content_type,
                # S3 metadata must be ASCII
                Metadata={
                    'kind': kind.value,
                    'name': quote(name),
                    'filename': quote(filename),
                },
            )
        except Exception as e:
            logger.error(
                "Failed to upload blob",
                extra={"blob_name": name, "kind": kind.value, "error": str(e)}
            )
            raise StorageError(f"Upload failed: {e}")

        logger.info(
            "Uploaded blob",
            extra={
                "blob_id": str(blob_id),
                "kind": kind.value,
                "size_bytes": len(data),
                "content_type": content_type,
            }
        )

        return blob_id

    async def open_stream(self, blob_id: BlobId, kind: BlobKind) -> BlobDownload:
        """
        Open a blob for streaming.

        A missing object, or one stored under a different kind, is a
        not-found condition. Any other failure is a storage error.
        """
        try:
            response = await asyncio.to_thread(
                self._s3_client.get_object,
                Bucket=self._config.bucket_name,
                Key=build_blob_key(blob_id),
            )
        except Exception as e:
            if _error_code(e) in _MISSING_CODES:
                raise BlobNotFoundError()
            logger.error(
                "Failed to open blob",
                extra={"blob_id": str(blob_id), "error": str(e)}
            )
            raise StorageError(f"Download failed: {e}")

        body = response['Body']
        metadata = response.get('Metadata', {})

        if metadata.get('kind') != kind.value:
            body.close()
            raise BlobNotFoundError()

        return BlobDownload(
            blob_id=blob_id,
            kind=kind,
            name=unquote(metadata.get('name', '')),
            filename=unquote(metadata.get('filename', '')),
            content_type=response.get('ContentType') or 'application/octet-stream',
            size=response.get('ContentLength'),
            chunks=self._iter_body(blob_id, body),
            close_body=body.close,
        )

    async def _iter_body(self, blob_id: BlobId, body) -> AsyncIterator[bytes]:
        try:
            while True:
                try:
                    chunk = await asyncio.to_thread(body.read, STREAM_CHUNK_BYTES)
                except Exception as e:
                    logger.error(
                        "Blob stream failed mid-transfer",
                        extra={"blob_id": str(blob_id), "error": str(e)}
                    )
                    raise BlobStreamError(f"Stream failed: {e}")
                if not chunk:
                    break
                yield chunk
        finally:
            body.close()

    async def delete(self, blob_id: BlobId) -> None:
        """Delete a blob. S3 delete_object succeeds for missing keys."""
        try:
            await asyncio.to_thread(
                self._s3_client.delete_object,
                Bucket=self._config.bucket_name,
                Key=build_blob_key(blob_id),
            )
        except Exception as e:
            logger.error(
                "Failed to delete blob",
                extra={"blob_id": str(blob_id), "error": str(e)}
            )
            raise StorageError(f"Delete failed: {e}")

        logger.info("Deleted blob", extra={"blob_id": str(blob_id)})

    def close(self) -> None:
        """Close the underlying HTTP connection pool."""
        try:
            self._s3_client.close()
        except Exception as e:
            logger.warning(
                "Error closing R2 client",
                extra={"error": str(e)}
            )


# ---------------------------------------------------------------------------
# Mock Storage for Local Development
# ---------------------------------------------------------------------------

@dataclass
class _StoredBlob:
    data: bytes
    name: str
    filename: str
    content_type: str
    kind: BlobKind


class MockBlobStore:
    """
    In-memory blob store for local development.

    Enables testing the full API flow without provisioning real object
    storage. Not suitable for production.
    """

    def __init__(self) -> None:
        self._blobs: dict[UUID, _StoredBlob] = {}
        logger.info("Initialized mock blob store (in-memory)")

    async def put(
        self,
        data: bytes,
        name: str,
        content_type: str,
        kind: BlobKind,
        filename: str,
    ) -> BlobId:
        """Store blob in memory."""
        blob_id = uuid4()
        self._blobs[blob_id] = _StoredBlob(
            data=bytes(data),
            name=name,
            filename=filename,
            content_type=content_type,
            kind=kind,
        )

        logger.debug(
            "Stored blob in mock storage",
            extra={"blob_id": str(blob_id), "kind": kind.value, "size_bytes": len(data)}
        )

        return blob_id

    async def open_stream(self, blob_id: BlobId, kind: BlobKind) -> BlobDownload:
        """Open blob from memory."""
        blob = self._blobs.get(blob_id)
        if blob is None or blob.kind is not kind:
            raise BlobNotFoundError()

        return BlobDownload(
            blob_id=blob_id,
            kind=blob.kind,
            name=blob.name,
            filename=blob.filename,
            content_type=blob.content_type,
            size=len(blob.data),
            chunks=self._iter_data(blob.data),
        )

    async def _iter_data(self, data: bytes) -> AsyncIterator[bytes]:
        for start in range(0, len(data), STREAM_CHUNK_BYTES):
            yield data[start:start + STREAM_CHUNK_BYTES]

    async def delete(self, blob_id: BlobId) -> None:
        """Delete blob from memory."""
        self._blobs.pop(blob_id, None)

    def close(self) -> None:
        """No-op: the mock store is shared across requests."""

    # Helpers for tests
    def __contains__(self, blob_id: BlobId) -> bool:
        return blob_id in self._blobs

    def __len__(self) -> int:
        return len(self._blobs)


# ---------------------------------------------------------------------------
# Factory Function
# ---------------------------------------------------------------------------

def create_blob_store(
    config: Optional[StorageConfig] = None,
    mock_mode: bool = False,
) -> BlobStore:
    """
    Create blob store based on configuration.

    Args:
        config: Storage configuration (required if not mock_mode)
        mock_mode: If True, return mock store for testing

    Returns:
        BlobStore implementation (R2 or Mock)
    """
    if mock_mode:
        return MockBlobStore()

    if config is None:
        raise ValueError("config is required when not in mock mode")

    return R2BlobStore(config)
