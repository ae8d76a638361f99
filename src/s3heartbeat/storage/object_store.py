from __future__ import annotations

from typing import Any

import boto3
from botocore.client import Config
from botocore.exceptions import BotoCoreError, ClientError

from s3heartbeat.config.object_store_config import EndpointConfig
from s3heartbeat.errors import StorageOperationError
from s3heartbeat.logging_config import get_logger

# us-east-1 rejects an explicit LocationConstraint
_DEFAULT_LOCATION = "us-east-1"

logger = get_logger(__name__)


def build_client_kwargs(
    endpoint: EndpointConfig,
    access_key: str,
    secret_key: str,
    session_token: str | None = None,
) -> dict[str, Any]:
    client_kwargs: dict[str, Any] = {
        "config": Config(
            signature_version="s3v4",
            s3={"use_accelerate_endpoint": endpoint.accelerate},
        ),
        "region_name": endpoint.region,
        "aws_access_key_id": access_key,
        "aws_secret_access_key": secret_key,
    }
    if session_token:
        client_kwargs["aws_session_token"] = session_token
    if endpoint.endpoint_url:
        client_kwargs["endpoint_url"] = endpoint.endpoint_url
    return client_kwargs


def _error_code(exc: Exception) -> str | None:
    if isinstance(exc, ClientError):
        return exc.response.get("Error", {}).get("Code")
    return None


class ObjectStore:
    """
    One authenticated S3 client.

    Instances are handed out by CredentialClientProvider, which owns them and
    calls close() when a handle is replaced.
    """

    def __init__(self, client):
        self.client = client
        self.closed = False

    @classmethod
    def connect(
        cls,
        endpoint: EndpointConfig,
        access_key: str,
        secret_key: str,
        session_token: str | None = None,
    ) -> ObjectStore:
        kwargs = build_client_kwargs(endpoint, access_key, secret_key, session_token)
        return cls(boto3.client("s3", **kwargs))

    def list_objects(self, bucket: str, limit: int = 1000, prefix: str = "") -> list[str]:
        try:
            response = self.client.list_objects_v2(Bucket=bucket, Prefix=prefix, MaxKeys=limit)
        except (ClientError, BotoCoreError) as e:
            raise StorageOperationError(
                f"Error listing objects in bucket {bucket!r} (code={_error_code(e)}): {e}",
                operation="list",
            ) from e
        return [obj["Key"] for obj in response.get("Contents", [])]

    def put_object(self, bucket: str, key: str, data: bytes, content_type: str = "text/plain") -> None:
        try:
            self.client.put_object(Bucket=bucket, Key=key, Body=data, ContentType=content_type)
        except (ClientError, BotoCoreError) as e:
            raise StorageOperationError(f"Error putting object {bucket}/{key}: {e}", operation="put") from e

    def delete_object(self, bucket: str, key: str) -> None:
        try:
            self.client.delete_object(Bucket=bucket, Key=key)
        except (ClientError, BotoCoreError) as e:
            raise StorageOperationError(f"Error deleting object {bucket}/{key}: {e}", operation="delete") from e

    def create_bucket(self, bucket: str, region: str) -> None:
        params: dict[str, Any] = {"Bucket": bucket}
        if region != _DEFAULT_LOCATION:
            params["CreateBucketConfiguration"] = {"LocationConstraint": region}
        try:
            self.client.create_bucket(**params)
        except (ClientError, BotoCoreError) as e:
            raise StorageOperationError(f"Error creating bucket {bucket!r}: {e}", operation="create_bucket") from e

    def delete_bucket(self, bucket: str) -> None:
        try:
            self.client.delete_bucket(Bucket=bucket)
        except (ClientError, BotoCoreError) as e:
            raise StorageOperationError(f"Error deleting bucket {bucket!r}: {e}", operation="delete_bucket") from e

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        try:
            self.client.close()
        except Exception:
            # the handle is being discarded either way
            logger.warning("Error closing S3 client", exc_info=True)
