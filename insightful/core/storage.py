# S3-compatible object storage client (MinIO SDK) - presigned uploads, deletes, public URLs

from minio import Minio
from minio.error import S3Error
from typing import BinaryIO, Optional, Dict, Any
from functools import lru_cache
import os
import logging
from datetime import timedelta
from urllib.parse import urlparse

import urllib3
from .config import settings

logger = logging.getLogger(__name__)


class StorageError(Exception):
    """Raised when an object storage operation fails"""


class StorageClient:
    """S3-compatible storage client wrapper (works against MinIO, R2 and AWS S3)"""

    def __init__(self):
        endpoint, secure = self._parse_endpoint(settings.s3_endpoint, default_secure=settings.s3_secure)

        # Tune underlying HTTP connection pool.
        pool_maxsize = int(os.getenv("S3_HTTP_POOL_MAXSIZE", "16"))
        connect_timeout = float(os.getenv("S3_HTTP_CONNECT_TIMEOUT", "5"))
        read_timeout = float(os.getenv("S3_HTTP_READ_TIMEOUT", "60"))
        total_retries = int(os.getenv("S3_HTTP_TOTAL_RETRIES", "3"))
        backoff = float(os.getenv("S3_HTTP_BACKOFF_FACTOR", "0.2"))

        http_client = urllib3.PoolManager(
            maxsize=pool_maxsize,
            timeout=urllib3.Timeout(connect=connect_timeout, read=read_timeout),
            retries=urllib3.Retry(
                total=total_retries,
                backoff_factor=backoff,
                status_forcelist=[500, 502, 503, 504],
                allowed_methods={"GET", "PUT", "HEAD", "DELETE"},
            ),
        )

        self.client = Minio(
            endpoint=endpoint,
            access_key=settings.s3_access_key,
            secret_key=settings.s3_secret_key,
            secure=secure,
            region=settings.s3_region,
            http_client=http_client,
        )
        self.bucket_name = settings.s3_bucket

        # Presigned URLs must be signed with a hostname the CLIENT can reach.
        # A concrete region keeps the SDK from doing a bucket-location call on presign.
        if settings.s3_presign_endpoint:
            presign_endpoint, presign_secure = self._parse_endpoint(settings.s3_presign_endpoint)
            self._presign_client = Minio(
                endpoint=presign_endpoint,
                access_key=settings.s3_access_key,
                secret_key=settings.s3_secret_key,
                secure=presign_secure,
                region=settings.s3_region,
            )
        else:
            self._presign_client = self.client

    @staticmethod
    def _parse_endpoint(url_or_hostport: str, default_secure: bool = False) -> tuple[str, bool]:
        """
        Accepts either:
        - full URL: https://<account>.r2.cloudflarestorage.com
        - host:port: 127.0.0.1:9000

        Returns: (endpoint_without_scheme, secure)
        """
        raw = (url_or_hostport or "").strip()
        if not raw:
            raise ValueError("Empty endpoint")

        if "://" not in raw:
            return raw.rstrip("/"), default_secure

        parsed = urlparse(raw)
        if not parsed.netloc:
            raise ValueError(f"Invalid endpoint URL: {raw}")
        return parsed.netloc, parsed.scheme.lower() == "https"

    def ensure_bucket_exists(self) -> None:
        """Create bucket if it doesn't exist"""
        try:
            if not self.client.bucket_exists(self.bucket_name):
                self.client.make_bucket(self.bucket_name)
                logger.info(f"Created bucket '{self.bucket_name}'")
        except S3Error as e:
            raise StorageError(f"Failed to create/access bucket '{self.bucket_name}': {e}")

    def check(self) -> None:
        """Raise StorageError unless the bucket is reachable"""
        try:
            if not self.client.bucket_exists(self.bucket_name):
                raise StorageError(f"Bucket '{self.bucket_name}' does not exist")
        except S3Error as e:
            raise StorageError(f"Storage unreachable: {e}")

    def upload_file(
        self,
        file_obj: BinaryIO,
        object_name: str,
        file_size: int,
        content_type: str = "application/octet-stream"
    ) -> str:
        """
        Upload file to the bucket

        Args:
            file_obj: File-like object to upload
            object_name: S3 object key/path
            file_size: Size of file in bytes
            content_type: MIME type

        Returns:
            str: Object name/key
        """
        try:
            self.client.put_object(
                bucket_name=self.bucket_name,
                object_name=object_name,
                data=file_obj,
                length=file_size,
                content_type=content_type
            )
            return object_name
        except S3Error as e:
            raise StorageError(f"Failed to upload file '{object_name}': {e}")

    def get_presigned_put_url(
        self,
        object_name: str,
        expires_seconds: Optional[int] = None,
    ) -> str:
        """
        Generate a presigned PUT URL for direct upload to the bucket.

        Args:
            object_name: S3 object key
            expires_seconds: Expiry in seconds (default S3_PRESIGN_EXPIRES_SECONDS)
        """
        try:
            expires_seconds = int(expires_seconds or settings.s3_presign_expires_seconds)
            return self._presign_client.presigned_put_object(
                bucket_name=self.bucket_name,
                object_name=object_name,
                expires=timedelta(seconds=expires_seconds),
            )
        except S3Error as e:
            raise StorageError(f"Failed to create presigned PUT url for '{object_name}': {e}")

    def get_public_url(self, object_name: str) -> str:
        """
        Build the public URL of an object from S3_PUBLIC_URL.

        Trailing slashes on the base and leading slashes on the key are dropped.
        """
        base = (settings.s3_public_url or "").strip()
        if not base:
            raise StorageError("Public URL not configured")
        return f"{base.rstrip('/')}/{object_name.lstrip('/')}"

    def get_file_info(self, object_name: str) -> Optional[Dict[str, Any]]:
        """
        Get object metadata

        Returns:
            Dict with file info or None if not found
        """
        try:
            stat = self.client.stat_object(
                bucket_name=self.bucket_name,
                object_name=object_name
            )
            return {
                "size": stat.size,
                "last_modified": stat.last_modified,
                "content_type": stat.content_type,
                "etag": stat.etag
            }
        except S3Error:
            return None

    def delete_file(self, object_name: str) -> bool:
        """
        Delete object from the bucket

        Returns:
            bool: True if deleted successfully
        """
        try:
            self.client.remove_object(
                bucket_name=self.bucket_name,
                object_name=object_name
            )
            return True
        except S3Error as e:
            raise StorageError(f"Failed to delete file '{object_name}': {e}")


@lru_cache
def get_storage() -> StorageClient:
    """
    Shared storage client. Use in FastAPI route dependencies:
    `storage: StorageClient = Depends(get_storage)`
    """
    return StorageClient()
