import asyncio
import logging
from typing import List, Optional, Protocol

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from common.exceptions import DependencyError
from settings.config import Settings, get_settings

logger = logging.getLogger(__name__)


class ObjectStore(Protocol):
    """
    The operations the workflows need from a bucket-scoped object store.
    """

    bucket: str

    async def upload(self, key: str, data: bytes, content_type: Optional[str] = None) -> None: ...

    async def download(self, key: str) -> bytes: ...

    async def remove(self, keys: List[str]) -> None: ...

    def public_url(self, key: str) -> str: ...

    async def presigned_url(self, key: str, expires_in: int = 3600) -> str: ...


class S3ObjectStore:
    """
    ObjectStore backed by one S3 bucket. boto3 is blocking, so calls run in a worker thread.
    """

    def __init__(self, bucket: str, client=None, settings: Optional[Settings] = None):
        self.bucket = bucket
        self._client = client
        self.settings = settings or get_settings()

    def _get_s3_client(self):
        """
        Construct a boto3 S3 client using application settings.
        Prefers explicit credentials from settings when provided.
        """
        settings = self.settings
        kwargs: dict = {}

        if getattr(settings, "AWS_REGION", None):
            kwargs["region_name"] = settings.AWS_REGION
        if getattr(settings, "AWS_ACCESS_KEY_ID", None) and getattr(settings, "AWS_SECRET_ACCESS_KEY", None):
            kwargs["aws_access_key_id"] = settings.AWS_ACCESS_KEY_ID
            kwargs["aws_secret_access_key"] = settings.AWS_SECRET_ACCESS_KEY
            if settings.AWS_SESSION_TOKEN:
                kwargs["aws_session_token"] = settings.AWS_SESSION_TOKEN

        return boto3.client("s3", **kwargs)

    @property
    def client(self):
        if self._client is None:
            self._client = self._get_s3_client()
        return self._client

    async def upload(self, key: str, data: bytes, content_type: Optional[str] = None) -> None:
        extra = {"ContentType": content_type} if content_type else {}

        def _put() -> None:
            # Keys carry a millisecond stamp, so an existing object here means a collision
            self.client.put_object(Bucket=self.bucket, Key=key, Body=data, IfNoneMatch="*", **extra)

        try:
            await asyncio.to_thread(_put)
        except (BotoCoreError, ClientError) as exc:
            logger.error("Upload of %s to bucket %s failed: %s", key, self.bucket, exc)
            raise DependencyError("File upload failed", details=str(exc)) from exc

    async def download(self, key: str) -> bytes:
        def _get() -> bytes:
            response = self.client.get_object(Bucket=self.bucket, Key=key)
            return response["Body"].read()

        try:
            return await asyncio.to_thread(_get)
        except (BotoCoreError, ClientError) as exc:
            logger.error("Download of %s from bucket %s failed: %s", key, self.bucket, exc)
            raise DependencyError("File download failed", details=str(exc)) from exc

    async def remove(self, keys: List[str]) -> None:
        keys = [k for k in keys if k]
        if not keys:
            return

        def _delete() -> None:
            self.client.delete_objects(
                Bucket=self.bucket,
                Delete={"Objects": [{"Key": k} for k in keys], "Quiet": True},
            )

        try:
            await asyncio.to_thread(_delete)
        except (BotoCoreError, ClientError) as exc:
            raise DependencyError("File removal failed", details=str(exc)) from exc

    def public_url(self, key: str) -> str:
        settings = self.settings
        if settings.STORAGE_PUBLIC_BASE_URL:
            return f"{settings.STORAGE_PUBLIC_BASE_URL.rstrip('/')}/{self.bucket}/{key}"
        region = settings.AWS_REGION or "us-east-1"
        return f"https://{self.bucket}.s3.{region}.amazonaws.com/{key}"

    async def presigned_url(self, key: str, expires_in: int = 3600) -> str:
        def _generate() -> str:
            return self.client.generate_presigned_url(
                ClientMethod="get_object",
                Params={"Bucket": self.bucket, "Key": key},
                ExpiresIn=expires_in,
            )

        try:
            return await asyncio.to_thread(_generate)
        except (BotoCoreError, ClientError) as exc:
            raise DependencyError("Could not sign download URL", details=str(exc)) from exc


async def discard_quietly(store: ObjectStore, key: Optional[str], reason: str) -> bool:
    """
    Best-effort delete used for compensation and superseded files. Failures are logged only.
    """
    if not key:
        return True
    try:
        await store.remove([key])
    except DependencyError as exc:
        logger.error("Could not delete %s from %s (%s): %s", key, store.bucket, reason, exc.details or exc.message)
        return False
    logger.info("Deleted %s from %s (%s)", key, store.bucket, reason)
    return True
