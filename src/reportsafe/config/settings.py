"""
ReportSafe Service Settings

Configuration management using Pydantic settings with environment variable support.
"""

from typing import List, Optional
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """ReportSafe service configuration"""

    # Service Configuration
    service_name: str = Field(default="reportsafe-service", description="Service name")
    environment: str = Field(default="development", description="Environment (development, production)")
    port: int = Field(default=8010, description="Service port")
    host: str = Field(default="0.0.0.0", description="Service host")

    # Report persistence
    # REPOSITORY_BACKEND: "sql" (default) or "json"
    # - sql: SQLAlchemy async engine (SQLite for development, Postgres in production)
    # - json: flat JSON documents on disk, single-process deployments only
    repository_backend: str = Field(default="sql", description="Report repository backend (sql, json)")
    database_url: str = Field(
        default="sqlite+aiosqlite:///./reportsafe.db",
        description="Database connection URL"
    )
    json_data_dir: str = Field(default="./data/reports", description="Directory for JSON backend documents")

    # Evidence File Storage
    storage_provider: str = Field(default="local", description="Evidence storage provider (local, s3)")
    storage_local_path: str = Field(default="./data/uploads", description="Base directory for local storage")
    s3_bucket_name: Optional[str] = Field(
        default=None,
        description="S3 bucket name (required when STORAGE_PROVIDER=s3)"
    )
    s3_endpoint_url: Optional[str] = Field(
        default=None,
        description="S3/MinIO endpoint URL (optional, for MinIO/LocalStack)"
    )
    s3_region: Optional[str] = Field(
        default="us-east-1",
        description="AWS region (default: us-east-1)"
    )

    # Evidence limits
    max_image_size_mb: int = Field(default=10, description="Maximum image size in MB")
    max_video_size_mb: int = Field(default=100, description="Maximum video size in MB")
    max_document_size_mb: int = Field(default=25, description="Maximum document size in MB")
    allowed_file_types: str = Field(
        default=".png,.jpg,.jpeg,.gif,.webp,.mp4,.mov,.webm,.pdf,.txt,.doc,.docx",
        description="Allowed evidence file extensions (comma-separated)"
    )

    # Submission rules
    min_description_length: int = Field(default=10, description="Minimum incident description length")
    max_description_length: int = Field(default=5000, description="Maximum incident description length")
    strict_incident_types: bool = Field(
        default=False,
        description="Reject unknown incident types when minting case IDs instead of using GN"
    )

    # Pagination
    default_page_size: int = Field(default=20, description="Default page size")
    max_page_size: int = Field(default=100, description="Maximum page size")

    # Statistics
    statistics_window_days: int = Field(default=30, description="Days covered by daily report counts")

    # CORS Configuration
    cors_origins: List[str] = Field(
        default=["http://localhost:3000", "http://localhost:5000"],
        description="Allowed CORS origins"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"

    @property
    def max_image_size_bytes(self) -> int:
        return self.max_image_size_mb * 1024 * 1024

    @property
    def max_video_size_bytes(self) -> int:
        return self.max_video_size_mb * 1024 * 1024

    @property
    def max_document_size_bytes(self) -> int:
        return self.max_document_size_mb * 1024 * 1024

    @property
    def allowed_extensions(self) -> List[str]:
        """Parse allowed file types into list"""
        return [ext.strip().lower() for ext in self.allowed_file_types.split(",") if ext.strip()]


# Global settings instance
settings = Settings()
