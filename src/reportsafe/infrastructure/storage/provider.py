"""Storage Provider Interface

Abstract base class defining the contract for evidence file storage.
Supports both local filesystem (development/self-hosted) and S3 (enterprise/K8s).
"""

from abc import ABC, abstractmethod
from typing import AsyncGenerator, BinaryIO


class StorageProvider(ABC):
    """Abstract storage provider for evidence attachments."""

    @abstractmethod
    async def upload(self, file_stream: BinaryIO, key: str, content_type: str) -> str:
        """Store a file and return its storage key.

        Args:
            file_stream: Binary file stream (SpooledTemporaryFile or similar)
            key: Relative storage key (e.g., "RS-HR-202401-000001/3f2a_photo.png")
            content_type: MIME type (e.g., "image/png")

        Returns:
            Storage key that can be used to retrieve or delete the file

        Raises:
            StorageError: If the upload fails
        """
        pass

    @abstractmethod
    async def download_stream(self, key: str) -> AsyncGenerator[bytes, None]:
        """Stream file content as bytes.

        Raises:
            NotFoundError: If the file doesn't exist
            StorageError: If the read fails
        """
        pass

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """Delete a file from storage.

        Returns:
            True if deleted, False if the file was not found

        Raises:
            StorageError: If the backend refuses the deletion
        """
        pass

    @abstractmethod
    async def file_exists(self, key: str) -> bool:
        pass

    @abstractmethod
    async def health_check(self) -> bool:
        """Check if storage backend is healthy and accessible."""
        pass
