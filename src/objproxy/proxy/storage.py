"""Object-store access for the proxy."""

from __future__ import annotations

import asyncio
from typing import BinaryIO, Iterator

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from ..common.settings import ProxySettings


DEFAULT_CHUNK_SIZE = 64 * 1024


class ObjectFetchError(Exception):
    """Raised when an object cannot be fetched, whatever the backend cause."""

    def __init__(self, bucket: str, key: str, reason: str):
        super().__init__(reason)
        self.bucket = bucket
        self.key = key
        self.reason = reason


class ObjectStore:
    async def get_object(self, bucket: str, key: str) -> BinaryIO:  # pragma: no cover - interface
        raise NotImplementedError


class S3ObjectStore(ObjectStore):
    def __init__(self, settings: ProxySettings):
        session = boto3.session.Session(
            aws_access_key_id=settings.access_key,
            aws_secret_access_key=settings.secret_key.get_secret_value(),
            region_name=settings.region,
        )
        self._client = session.client("s3", endpoint_url=settings.endpoint_url)

    async def get_object(self, bucket: str, key: str) -> BinaryIO:
        try:
            response = await asyncio.to_thread(self._client.get_object, Bucket=bucket, Key=key)
        except (ClientError, BotoCoreError) as exc:
            raise ObjectFetchError(bucket, key, str(exc)) from exc
        return response["Body"]


def iter_object(body: BinaryIO, chunk_size: int = DEFAULT_CHUNK_SIZE) -> Iterator[bytes]:
    """Yield an object body in chunks, closing it once exhausted or abandoned."""

    try:
        while True:
            chunk = body.read(chunk_size)
            if not chunk:
                break
            yield chunk
    finally:
        body.close()
