"""
Object storage client for trimmed clips (the primary sink).

Supports Cloudflare R2 (S3-compatible) with mock mode for local development.
Campaign "folders" are key prefixes under a root folder name, so a clip
lands at:

    {root_folder}/{folder_id}/{file_name}

Mock mode stores clips in memory, enabling API testing without
provisioning actual object storage.
"""

import asyncio
import logging
import os
from dataclasses import dataclass
from typing import Optional
from urllib.parse import quote

from ...core.pipeline.delivery import NotAuthenticatedError, PrimarySink
from ...core.pipeline.models import PrimaryReceipt

logger = logging.getLogger(__name__)


class StorageError(Exception):
    """Raised when storage operations fail."""
    pass


# S3/R2 error codes that mean the credentials themselves are the problem
AUTH_ERROR_CODES = frozenset({
    "ExpiredToken",
    "ExpiredTokenException",
    "InvalidAccessKeyId",
    "InvalidToken",
    "SignatureDoesNotMatch",
    "AccessDenied",
    "Unauthorized",
})


@dataclass
class StorageConfig:
    """
    Configuration for R2/S3-compatible storage.

    Using a dataclass instead of raw parameters means:
    - Configuration is explicit and documented
    - Easy to validate at construction time
    - Simple to create test configurations
    """
    access_key_id: str
    secret_access_key: str
    bucket_name: str
    endpoint_url: str
    root_folder_name: str = "Zeus Videos"
    region: str = "auto"  # R2 uses 'auto' for region
    link_expiry_seconds: int = 7 * 24 * 3600


def build_clip_key(root_folder_name: str, folder_id: str, file_name: str) -> str:
    """Storage key for a clip: root folder, campaign folder, file name."""
    root = root_folder_name.strip("/")
    folder = folder_id.strip("/")
    return f"{root}/{folder}/{file_name}"


def _error_code(error: Exception) -> str:
    response = getattr(error, "response", None) or {}
    return response.get("Error", {}).get("Code", "")


def _is_auth_failure(error: Exception) -> bool:
    if type(error).__name__ in ("NoCredentialsError", "PartialCredentialsError"):
        return True
    if _error_code(error) in AUTH_ERROR_CODES:
        return True
    # boto3's transfer manager wraps ClientError into a plain message
    message = str(error)
    return any(f"({code})" in message for code in AUTH_ERROR_CODES)


class R2PrimarySink:
    """
    Cloudflare R2 object storage sink.

    Uses boto3 because R2 is S3-compatible. This abstraction means
    we could swap to actual S3, MinIO, or other S3-compatible storage
    with minimal changes.

    boto3 is synchronous, so uploads run in a worker thread to keep the
    event loop free while a large clip streams out.
    """

    def __init__(self, config: StorageConfig) -> None:
        """
        Initialize R2 client with boto3.

        We import boto3 here (not at module level) because mock mode
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

        logger.info(
            "Initialized R2 storage sink",
            extra={
                "bucket": config.bucket_name,
                "endpoint": config.endpoint_url,
                "root_folder": config.root_folder_name,
            }
        )

    async def upload(
        self,
        local_path: str,
        file_name: str,
        folder_id: str,
    ) -> PrimaryReceipt:
        """
        Upload a clip into a campaign folder.

        upload_file streams from disk (multipart for large clips) rather
        than reading the whole video into memory.
        """
        storage_path = build_clip_key(self._config.root_folder_name, folder_id, file_name)

        try:
            await asyncio.to_thread(
                self._s3_client.upload_file,
                local_path,
                self._config.bucket_name,
                storage_path,
                ExtraArgs={
                    'ContentType': 'video/mp4',
                    'Metadata': {
                        # S3 user metadata must be ASCII
                        'folder-id': quote(folder_id, safe=''),
                        'original-filename': quote(file_name, safe=''),
                    },
                },
            )
        except Exception as e:
            logger.error(
                "Failed to upload clip",
                extra={"storage_path": storage_path, "error": str(e)}
            )
            if _is_auth_failure(e):
                raise NotAuthenticatedError(f"Storage credentials rejected: {e}") from e
            raise StorageError(f"Clip upload failed: {e}") from e

        logger.info(
            "Uploaded clip",
            extra={
                "storage_path": storage_path,
                "size_bytes": os.path.getsize(local_path),
            }
        )

        return PrimaryReceipt(
            id=storage_path,
            name=file_name,
            web_view_link=await self.get_presigned_url(storage_path),
        )

    async def get_presigned_url(
        self,
        storage_path: str,
        expiry_seconds: Optional[int] = None,
    ) -> Optional[str]:
        """
        Generate a temporary download URL.

        A link is a convenience, so failing to sign one doesn't fail the
        upload that already happened.
        """
        try:
            return self._s3_client.generate_presigned_url(
                'get_object',
                Params={
                    'Bucket': self._config.bucket_name,
                    'Key': storage_path,
                },
                ExpiresIn=expiry_seconds or self._config.link_expiry_seconds,
            )
        except Exception as e:
            logger.warning(
                "Failed to generate presigned URL",
                extra={"storage_path": storage_path, "error": str(e)}
            )
            return None


# ---------------------------------------------------------------------------
# Mock Storage for Local Development
# ---------------------------------------------------------------------------

class MockPrimarySink:
    """
    In-memory storage for local development.

    This mock enables testing the full API flow without provisioning
    real object storage. Clips are stored in a dictionary and links are
    mock URIs.
    """

    def __init__(self, root_folder_name: str = "Zeus Videos") -> None:
        self._root_folder_name = root_folder_name
        self._clips: dict[str, bytes] = {}
        logger.info("Initialized mock storage sink (in-memory)")

    @property
    def clips(self) -> dict[str, bytes]:
        return dict(self._clips)

    async def upload(
        self,
        local_path: str,
        file_name: str,
        folder_id: str,
    ) -> PrimaryReceipt:
        """Store clip in memory."""
        storage_path = build_clip_key(self._root_folder_name, folder_id, file_name)

        try:
            with open(local_path, "rb") as f:
                self._clips[storage_path] = f.read()
        except OSError as e:
            raise StorageError(f"Clip upload failed: {e}") from e

        logger.debug(
            "Stored clip in mock storage",
            extra={
                "storage_path": storage_path,
                "size_bytes": len(self._clips[storage_path]),
            }
        )

        return PrimaryReceipt(
            id=storage_path,
            name=file_name,
            web_view_link=f"mock://storage/{storage_path}",
        )


# ---------------------------------------------------------------------------
# Factory Function
# ---------------------------------------------------------------------------

def create_primary_sink(
    config: Optional[StorageConfig] = None,
    mock_mode: bool = False,
) -> PrimarySink:
    """
    Create the primary sink based on configuration.

    Args:
        config: Storage configuration (required if not mock_mode)
        mock_mode: If True, return mock sink for testing

    Returns:
        PrimarySink implementation (R2 or Mock)
    """
    if mock_mode:
        return MockPrimarySink(config.root_folder_name if config else "Zeus Videos")

    if config is None:
        raise ValueError("config is required when not in mock mode")

    return R2PrimarySink(config)
