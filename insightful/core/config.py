# Application settings and environment variable loading (Pydantic BaseSettings)

from pydantic import Field
from pydantic_settings import BaseSettings
from typing import Optional


class Settings(BaseSettings):
    """Application settings with environment variable support"""

    # Security Settings (Required - no defaults for secrets)
    secret_key: str
    access_token_expire_minutes: int = Field(default=60 * 24)
    jwt_algorithm: str = Field(default="HS256")

    # Database Settings (Required - no defaults for credentials)
    database_url: str

    # S3/R2/MinIO Settings (Required - no defaults for credentials)
    s3_endpoint: str
    s3_access_key: str
    s3_secret_key: str
    s3_bucket: str

    # Public base URL objects are served from (e.g. R2 public bucket domain)
    s3_public_url: Optional[str] = None
    # Endpoint the browser/CLI can reach; presigned URLs are signed against it
    s3_presign_endpoint: Optional[str] = None
    s3_region: str = Field(default="us-east-1")
    s3_secure: bool = Field(default=False)
    s3_presign_expires_seconds: int = Field(default=3600)
    s3_auto_create_bucket: bool = Field(default=False)

    # Redis Settings (Required - no defaults)
    redis_url: str

    # External analysis pipeline called by the worker
    analysis_service_url: Optional[str] = None
    analysis_timeout_seconds: float = Field(default=600.0)

    max_direct_upload_mb: int = Field(default=50)
    log_level: str = Field(default="INFO")
    cors_origins: str = Field(default="")

    class Config:
        env_file = ".env"
        case_sensitive = False

    def cors_origin_list(self) -> list:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]


# Global settings instance
settings = Settings()
