"""S3/MinIO Storage Implementation

S3-compatible evidence storage using aioboto3 for non-blocking async I/O.
Supports AWS S3 and self-hosted MinIO.
"""

import logging
from typing import AsyncGenerator, BinaryIO, Optional

import aioboto3
from botocore.exceptions import BotoCoreError, ClientError

from reportsafe.core.errors import NotFoundError, StorageError
from reportsafe.infrastructure.storage.provider import StorageProvider

logger = logging.getLogger(__name__)

_MISSING_CODES = {"404", "NoSuchKey", "NotFound"}


def _error_code(error: ClientError) -> str:
    return error.response.get("Error", {}).get("Code", "Unknown")


class S3Storage(StorageProvider):
    """Evidence files as objects in one S3 bucket."""

    def __init__(
        self,
        bucket_name: str,
        region: Optional[str] = "us-east-1",
        endpoint_url: Optional[str] = None,
        access_key: Optional[str] = None,
        secret_key: Optional[str] = None,
    ):
        """Initialize S3 storage provider.

        Args:
            bucket_name: S3 bucket name (required)
            region: AWS region
            endpoint_url: Custom S3 endpoint for MinIO/LocalStack (optional)
            access_key: AWS access key ID (optional, boto3 default chain otherwise)
            secret_key: AWS secret access key (optional)

        Raises:
            ValueError: If bucket_name is not provided
        """
        if not bucket_name:
            raise ValueError("S3_BUCKET_NAME is required when STORAGE_PROVIDER=s3")

        self.bucket_name = bucket_name
        self.region = region
        self.endpoint_url = endpoint_url

        self.session = aioboto3.Session(
            aws_access_key_id=access_key,
            aws_secret_access_key=secret_key,
            region_name=region,
        )

        logger.info(
            f"S3 storage initialized - bucket: {self.bucket_name}, "
            f"region: {self.region}, "
            f"endpoint: {self.endpoint_url or 'AWS'}"
        )

    def _client(self):
        return self.session.client("s3", region_name=self.region, endpoint_url=self.endpoint_url)

    async def upload(self, file_stream: BinaryIO, key: str, content_type: str) -> str:
        try:
            async with self._client() as s3:
                file_stream.seek(0)
                await s3.upload_fileobj(
                    file_stream,
                    self.bucket_name,
                    key,
                    ExtraArgs={"ContentType": content_type},
                )
        except ClientError as e:
            logger.error(f"S3 upload failed (error: {_error_code(e)}): {e}")
            raise StorageError(f"S3 upload failed: {_error_code(e)}") from e
        except BotoCoreError as e:
            logger.error(f"S3 upload failed: {e}")
            raise StorageError("S3 upload failed") from e

        logger.info(f"Uploaded file to S3: s3://{self.bucket_name}/{key}")
        return key

    async def download_stream(self, key: str) -> AsyncGenerator[bytes, None]:
        async with self._client() as s3:
            try:
                response = await s3.get_object(Bucket=self.bucket_name, Key=key)
                async for chunk in response["Body"].iter_chunks(chunk_size=65536):
                    yield chunk
            except ClientError as e:
                if _error_code(e) in _MISSING_CODES:
                    logger.warning(f"File not found in S3: {key}")
                    raise NotFoundError(key, f"File not found: {key}") from e
                logger.error(f"S3 download failed (error: {_error_code(e)}): {e}")
                raise StorageError(f"S3 download failed: {_error_code(e)}") from e
            except BotoCoreError as e:
                logger.error(f"S3 download failed: {e}")
                raise StorageError("S3 download failed") from e

    async def delete(self, key: str) -> bool:
        """Delete an object; S3 reports success even if it never existed"""
        try:
            async with self._client() as s3:
                await s3.delete_object(Bucket=self.bucket_name, Key=key)
        except ClientError as e:
            logger.error(f"S3 delete failed for {key}: {e}")
            raise StorageError(f"S3 delete failed: {_error_code(e)}") from e
        except BotoCoreError as e:
            logger.error(f"S3 delete failed for {key}: {e}")
            raise StorageError("S3 delete failed") from e

        logger.info(f"Deleted file from S3: s3://{self.bucket_name}/{key}")
        return True

    async def file_exists(self, key: str) -> bool:
        try:
            async with self._client() as s3:
                await s3.head_object(Bucket=self.bucket_name, Key=key)
                return True
        except ClientError as e:
            if _error_code(e) not in _MISSING_CODES:
                logger.error(f"Error checking file existence for {key}: {e}")
            return False
        except BotoCoreError as e:
            logger.error(f"Error checking file existence for {key}: {e}")
            return False

    async def health_check(self) -> bool:
        try:
            async with self._client() as s3:
                await s3.list_objects_v2(Bucket=self.bucket_name, MaxKeys=1)
            return True
        except (ClientError, BotoCoreError) as e:
            logger.error(f"S3 health check failed: {e}")
            return False
