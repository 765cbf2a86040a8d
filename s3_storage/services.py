from __future__ import annotations
"""Thin facade over the S3 API.

Every public call opens its own client and closes it before returning,
successful or not; clients are never shared between calls.
"""
from contextlib import closing
import io
import logging
import threading
from typing import BinaryIO, Callable, Mapping, Optional, Union

import boto3
from botocore.client import Config
from botocore.exceptions import ClientError

from .models import ListedObject, ListingPage, ObjectDetails
from .settings import ClientConfiguration

LOGGER = logging.getLogger(__name__)

DEFAULT_ACL = "private"
DEFAULT_PRESIGN_EXPIRY = 3600
NOT_FOUND_CODES = frozenset({"404", "NoSuchKey", "NotFound", "NoSuchBucket"})

Payload = Union[bytes, bytearray, BinaryIO]


class ObjectNotFoundError(LookupError):
    """Raised when a requested object does not exist in the store."""


class TransferCancelledError(RuntimeError):
    """Raised when a download is cancelled by the caller."""


def is_not_found(exc: BaseException) -> bool:
    if not isinstance(exc, ClientError):
        return False
    return str(exc.response.get("Error", {}).get("Code", "")) in NOT_FOUND_CODES


class ObjectStoreService:
    """Encapsulates the individual S3 round trips used by the storage engine."""

    def __init__(
        self,
        configuration: ClientConfiguration,
        client_factory: Callable[..., object] | None = None,
    ):
        self._configuration = configuration
        self._client_factory = client_factory or boto3.client

    @property
    def configuration(self) -> ClientConfiguration:
        return self._configuration

    def create_client(self):
        """Return a new authenticated S3 client for the bound configuration."""

        configuration = self._configuration
        config = Config(
            signature_version="s3v4",
            max_pool_connections=max(configuration.max_concurrency, 1),
        )
        client_kwargs = {
            "region_name": configuration.region,
            "aws_access_key_id": configuration.access_key_id or None,
            "aws_secret_access_key": configuration.secret_access_key or None,
            "config": config,
        }
        if configuration.endpoint_url:
            client_kwargs["endpoint_url"] = configuration.endpoint_url
        return self._client_factory("s3", **client_kwargs)

    def list_page(
        self,
        container: str,
        prefix: str = "",
        delimiter: str | None = None,
        marker: str | None = None,
        page_size: int | None = None,
    ) -> ListingPage:
        """Fetch a single page of a listing.

        Raises:
            BotoCoreError | ClientError: when the listing request fails.
        """

        list_params = {
            "Bucket": container,
            "MaxKeys": page_size or self._configuration.page_size,
        }
        if prefix:
            list_params["Prefix"] = prefix
        if delimiter:
            list_params["Delimiter"] = delimiter
        if marker:
            list_params["ContinuationToken"] = marker

        with closing(self.create_client()) as client:
            response = client.list_objects_v2(**list_params)

        items = [
            ListedObject(
                container=container,
                key=entry["Key"],
                size=entry.get("Size"),
                last_modified=entry.get("LastModified"),
                etag=entry.get("ETag"),
            )
            for entry in response.get("Contents", [])
        ]
        prefixes = [common["Prefix"] for common in response.get("CommonPrefixes", [])]
        truncated = bool(response.get("IsTruncated", False))
        LOGGER.debug(
            "Listed %d object(s) and %d prefix(es) in '%s' under '%s'%s",
            len(items),
            len(prefixes),
            container,
            prefix,
            " (truncated)" if truncated else "",
        )
        return ListingPage(
            container=container,
            prefix=prefix,
            items=items,
            common_prefixes=prefixes,
            continuation_marker=response.get("NextContinuationToken") if truncated else None,
            truncated=truncated,
        )

    def head_object(self, container: str, key: str) -> ObjectDetails | None:
        """Return the object's details, or ``None`` when it does not exist."""

        with closing(self.create_client()) as client:
            try:
                response = client.head_object(Bucket=container, Key=key)
            except ClientError as exc:
                if is_not_found(exc):
                    return None
                raise
        return ObjectDetails(
            container=container,
            key=key,
            size=response.get("ContentLength"),
            last_modified=response.get("LastModified"),
            etag=response.get("ETag"),
            content_type=response.get("ContentType"),
            metadata=dict(response.get("Metadata") or {}),
        )

    def get_object(self, container: str, key: str) -> BinaryIO:
        """Download an object's content into an in-memory stream.

        The body is read before the client is released so the returned
        stream stays usable.
        """

        with closing(self.create_client()) as client:
            try:
                response = client.get_object(Bucket=container, Key=key)
            except ClientError as exc:
                if is_not_found(exc):
                    raise ObjectNotFoundError(f"Object '{container}/{key}' not found") from exc
                raise
            body = response["Body"]
            try:
                content = body.read()
            finally:
                body.close()
        return io.BytesIO(content)

    def put_object(
        self,
        container: str,
        key: str,
        data: Payload,
        *,
        metadata: Mapping[str, str] | None = None,
        acl: str | None = None,
    ) -> dict:
        params = {
            "Bucket": container,
            "Key": key,
            "Body": data,
            "ACL": acl or DEFAULT_ACL,
        }
        if metadata:
            params["Metadata"] = dict(metadata)
        params.update(self.encryption_settings())
        with closing(self.create_client()) as client:
            receipt = client.put_object(**params)
        LOGGER.debug("Stored object '%s/%s'", container, key)
        return receipt

    def delete_object(self, container: str, key: str) -> dict:
        with closing(self.create_client()) as client:
            receipt = client.delete_object(Bucket=container, Key=key)
        LOGGER.debug("Deleted object '%s/%s'", container, key)
        return receipt

    def copy_object(
        self,
        source_container: str,
        source_key: str,
        target_container: str,
        target_key: str,
    ) -> dict:
        with closing(self.create_client()) as client:
            receipt = client.copy_object(
                Bucket=target_container,
                Key=target_key,
                CopySource={"Bucket": source_container, "Key": source_key},
            )
        LOGGER.debug(
            "Copied '%s/%s' to '%s/%s'",
            source_container,
            source_key,
            target_container,
            target_key,
        )
        return receipt

    def presign_get(
        self,
        container: str,
        key: str,
        *,
        expires_in: int = DEFAULT_PRESIGN_EXPIRY,
    ) -> str:
        """Create a presigned HTTPS GET URL for the object."""

        if expires_in <= 0:
            raise ValueError("expires_in must be greater than zero")
        with closing(self.create_client()) as client:
            return client.generate_presigned_url(
                "get_object",
                Params={"Bucket": container, "Key": key},
                ExpiresIn=expires_in,
            )

    def get_container_location(self, container: str) -> str:
        """Return the region a container lives in.

        Raises:
            BotoCoreError | ClientError: when the container is missing or
            inaccessible.
        """

        with closing(self.create_client()) as client:
            response = client.get_bucket_location(Bucket=container)
        # Buckets in us-east-1 report an empty location constraint.
        return response.get("LocationConstraint") or "us-east-1"

    def download_file(
        self,
        container: str,
        key: str,
        destination: str,
        *,
        callback: Optional[Callable[[int], None]] = None,
    ) -> None:
        """Download an object to the provided local path.

        ``callback`` receives the byte count of every transferred chunk, as
        built by :func:`build_transfer_callback`.
        """

        with closing(self.create_client()) as client:
            client.download_file(container, key, destination, Callback=callback)

    def encryption_settings(self) -> dict[str, str]:
        if not self._configuration.encryption_enabled:
            return {}
        return {
            "ServerSideEncryption": "aws:kms",
            "SSEKMSKeyId": self._configuration.kms_key_id.strip(),
        }


def build_transfer_callback(
    progress_callback: Optional[Callable[[int], None]],
    cancel_requested: Optional[Callable[[], bool]],
):
    """Return a chunk callback reporting the cumulative byte count.

    The callback may be shared by concurrent transfers; the running total
    covers all of them.
    """

    if not progress_callback and not cancel_requested:
        return None

    transferred = 0
    lock = threading.Lock()

    def _callback(bytes_amount: int) -> None:
        nonlocal transferred
        if cancel_requested and cancel_requested():
            raise TransferCancelledError("Transfer cancelled by user")
        with lock:
            transferred += bytes_amount
            total = transferred
        if progress_callback:
            progress_callback(total)
        if cancel_requested and cancel_requested():
            raise TransferCancelledError("Transfer cancelled by user")

    return _callback
