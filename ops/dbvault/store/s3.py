"""
S3 remote store backend for dbvault.

Objects are addressed by key inside one bucket. Listings report the
object's LastModified as uploaded_at and an s3://<bucket>/<key> url
that fetch() accepts.

Invariants:
    - Credentials are checked before a client is created; missing or
      empty credentials raise ConfigurationError with no network call
    - botocore failures are re-raised as RemoteStoreError
    - The client is created lazily and reused until close()
"""

from __future__ import annotations

import logging
from typing import Any, List

from aiobotocore.session import get_session
from botocore.exceptions import BotoCoreError, ClientError

from ..config import S3Config
from ..errors import RemoteStoreError
from .base import StoredObject

logger = logging.getLogger(__name__)

URL_SCHEME = "s3://"


class S3RemoteStore:
    """RemoteStore implementation backed by S3 (or an S3-compatible API).

    Attributes:
        s3_config: S3 configuration, including credentials

    Example:
        >>> store = S3RemoteStore(S3Config.from_env())
        >>> try:
        ...     objects = await store.list("dbvault-backup/daily/")
        ... finally:
        ...     await store.close()
    """

    def __init__(self, s3_config: S3Config) -> None:
        self.s3_config = s3_config
        self._session = None
        self._s3_ctx = None
        self._s3_client = None

    async def _ensure_client(self) -> Any:
        """Initialize S3 client on first use."""
        if self._s3_client is not None:
            return self._s3_client

        credentials = self.s3_config.credentials
        credentials.require()

        self._session = get_session()

        client_kwargs = {
            "region_name": self.s3_config.region,
            "aws_access_key_id": credentials.access_key_id,
            "aws_secret_access_key": credentials.secret_access_key,
        }
        if credentials.session_token:
            client_kwargs["aws_session_token"] = credentials.session_token
        if self.s3_config.endpoint_url:
            client_kwargs["endpoint_url"] = self.s3_config.endpoint_url

        self._s3_ctx = self._session.create_client("s3", **client_kwargs)
        self._s3_client = await self._s3_ctx.__aenter__()
        return self._s3_client

    async def close(self) -> None:
        """Close S3 client."""
        if self._s3_client:
            await self._s3_ctx.__aexit__(None, None, None)
            self._s3_client = None
            self._s3_ctx = None

    def url_for(self, key: str) -> str:
        return f"{URL_SCHEME}{self.s3_config.bucket}/{key}"

    async def put(self, key: str, data: bytes, content_type: str) -> None:
        client = await self._ensure_client()
        try:
            await client.put_object(
                Bucket=self.s3_config.bucket,
                Key=key,
                Body=data,
                ContentType=content_type,
            )
        except (BotoCoreError, ClientError) as e:
            raise RemoteStoreError(f"Upload failed: {e}", operation="put", key=key) from e

    async def list(self, prefix: str) -> List[StoredObject]:
        client = await self._ensure_client()
        objects = []
        try:
            paginator = client.get_paginator("list_objects_v2")
            async for page in paginator.paginate(Bucket=self.s3_config.bucket, Prefix=prefix):
                for obj in page.get("Contents", []):
                    objects.append(
                        StoredObject(
                            key=obj["Key"],
                            uploaded_at=obj["LastModified"],
                            url=self.url_for(obj["Key"]),
                            size=obj.get("Size", 0),
                        )
                    )
        except (BotoCoreError, ClientError) as e:
            raise RemoteStoreError(f"Listing failed: {e}", operation="list", key=prefix) from e
        return objects

    async def delete(self, key: str) -> None:
        client = await self._ensure_client()
        try:
            await client.delete_object(Bucket=self.s3_config.bucket, Key=key)
        except (BotoCoreError, ClientError) as e:
            raise RemoteStoreError(f"Delete failed: {e}", operation="delete", key=key) from e

    async def fetch(self, url: str) -> bytes:
        if not url.startswith(URL_SCHEME):
            raise RemoteStoreError(f"Unsupported object url: {url}", operation="fetch")
        bucket, _, key = url[len(URL_SCHEME):].partition("/")
        if not bucket or not key:
            raise RemoteStoreError(f"Malformed object url: {url}", operation="fetch")

        client = await self._ensure_client()
        try:
            response = await client.get_object(Bucket=bucket, Key=key)
            return await response["Body"].read()
        except (BotoCoreError, ClientError) as e:
            raise RemoteStoreError(f"Download failed: {e}", operation="fetch", key=key) from e
