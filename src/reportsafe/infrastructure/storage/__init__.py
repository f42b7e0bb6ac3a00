"""Storage infrastructure module.

Provides deployment-neutral evidence file storage via the StorageProvider interface.
"""

from reportsafe.infrastructure.storage.factory import create_storage_provider
from reportsafe.infrastructure.storage.local_storage import LocalStorage
from reportsafe.infrastructure.storage.provider import StorageProvider
from reportsafe.infrastructure.storage.s3_storage import S3Storage

__all__ = [
    "create_storage_provider",
    "StorageProvider",
    "LocalStorage",
    "S3Storage",
]
