"""Storage Provider Factory

Chooses between local filesystem and S3 based on the STORAGE_PROVIDER setting.
"""

import logging

from reportsafe.config.settings import Settings
from reportsafe.infrastructure.storage.local_storage import LocalStorage
from reportsafe.infrastructure.storage.provider import StorageProvider
from reportsafe.infrastructure.storage.s3_storage import S3Storage

logger = logging.getLogger(__name__)


def create_storage_provider(config: Settings) -> StorageProvider:
    """Build the evidence storage provider for this deployment.

    STORAGE_PROVIDER:
        "local" (default): files under STORAGE_LOCAL_PATH
        "s3": AWS S3 or MinIO (S3_BUCKET_NAME, S3_REGION, S3_ENDPOINT_URL;
              credentials from AWS_ACCESS_KEY_ID / AWS_SECRET_ACCESS_KEY)

    Example:
        ```
        # Self-hosted deployment (docker-compose)
        STORAGE_PROVIDER=local
        STORAGE_LOCAL_PATH=/data/uploads

        # MinIO
        STORAGE_PROVIDER=s3
        S3_BUCKET_NAME=reportsafe-evidence
        S3_ENDPOINT_URL=http://minio:9000
        ```
    """
    provider_type = config.storage_provider.lower()
    logger.info(f"Initializing storage provider: {provider_type}")

    if provider_type == "s3":
        return S3Storage(
            bucket_name=config.s3_bucket_name,
            region=config.s3_region,
            endpoint_url=config.s3_endpoint_url,
        )

    if provider_type != "local":
        raise ValueError(f"Unknown storage provider: {config.storage_provider}")

    return LocalStorage(base_path=config.storage_local_path)
