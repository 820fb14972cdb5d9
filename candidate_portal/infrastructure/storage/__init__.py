"""
Blob storage for resumes and introduction videos.

Supports R2 (Cloudflare) and S3 (AWS) via S3-compatible API.
Includes mock mode for local development without credentials.
"""

from .client import (
    BlobDownload,
    BlobStore,
    MockBlobStore,
    R2BlobStore,
    StorageConfig,
    create_blob_store,
)

__all__ = [
    "BlobDownload",
    "BlobStore",
    "MockBlobStore",
    "R2BlobStore",
    "StorageConfig",
    "create_blob_store",
]
