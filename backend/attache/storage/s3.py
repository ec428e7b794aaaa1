"""
S3Storage — stores versions in an S3 (or S3-compatible, e.g. MinIO) bucket.

The object key is ``<directory>/<filename>``.

Options:
    bucket:        (required) the bucket holding the objects.
    region:        (optional) AWS region, also used to build plain URLs.
    endpoint_url:  (optional) custom endpoint for S3-compatible services.
    acl:           (optional) canned ACL applied on save/copy, e.g. "public-read".
    virtual_host:  (optional) build virtual-host style URLs.
    signed:        (optional) return presigned GET URLs from build_uri.
    expires_in:    (optional) lifetime of presigned URLs in seconds (default 3600).
    client:        (optional) a pre-built boto3 S3 client.
"""

from __future__ import annotations

import posixpath
from typing import Any

import boto3
from boto3.exceptions import S3UploadFailedError
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from attache.core.logging import get_logger
from attache.pipeline.errors import StorageError
from attache.storage.base import Storage

logger = get_logger(__name__)

DEFAULT_REGION = "us-east-1"
DEFAULT_EXPIRES_IN = 3600


def object_key(directory: str, filename: str) -> str:
    """S3 keys never start with a slash."""
    return posixpath.join((directory or "").lstrip("/"), filename.lstrip("/")).lstrip("/")


class S3Storage(Storage):
    """Storage backend for Amazon S3 and S3-compatible services."""

    name = "s3"

    def save(
        self,
        directory: str,
        filename: str,
        source_path: str,
        opts: dict[str, Any],
    ) -> None:
        bucket = self._bucket(opts, "save")
        key = object_key(directory, filename)
        extra_args = {"ACL": opts["acl"]} if isinstance(opts.get("acl"), str) else None
        try:
            self._client(opts).upload_file(source_path, bucket, key, ExtraArgs=extra_args)
        except FileNotFoundError as exc:
            raise StorageError(str(exc), operation="save", path=source_path) from exc
        except (BotoCoreError, ClientError, S3UploadFailedError) as exc:
            raise StorageError(str(exc), operation="save", path=f"{bucket}/{key}") from exc

    def delete(self, directory: str, filename: str, opts: dict[str, Any]) -> None:
        bucket = self._bucket(opts, "delete")
        key = object_key(directory, filename)
        try:
            # S3 answers 204 for keys that do not exist.
            self._client(opts).delete_object(Bucket=bucket, Key=key)
        except (BotoCoreError, ClientError) as exc:
            raise StorageError(str(exc), operation="delete", path=f"{bucket}/{key}") from exc

    def copy(
        self,
        directory: str,
        filename: str,
        to_directory: str,
        to_filename: str,
        opts: dict[str, Any],
    ) -> None:
        bucket = self._bucket(opts, "copy")
        key = object_key(directory, filename)
        to_key = object_key(to_directory, to_filename)
        params: dict[str, Any] = {
            "Bucket": bucket,
            "Key": to_key,
            "CopySource": {"Bucket": bucket, "Key": key},
        }
        if isinstance(opts.get("acl"), str):
            params["ACL"] = opts["acl"]
        try:
            self._client(opts).copy_object(**params)
        except (BotoCoreError, ClientError) as exc:
            raise StorageError(str(exc), operation="copy", path=f"{bucket}/{key}") from exc

    def retrieve(
        self,
        directory: str,
        filename: str,
        destination_path: str,
        opts: dict[str, Any],
    ) -> None:
        bucket = self._bucket(opts, "retrieve")
        key = object_key(directory, filename)
        try:
            self._client(opts).download_file(bucket, key, destination_path)
        except (BotoCoreError, ClientError, OSError) as exc:
            raise StorageError(str(exc), operation="retrieve", path=f"{bucket}/{key}") from exc

    def build_uri(self, directory: str, filename: str, opts: dict[str, Any]) -> str:
        """
        Build the URL of an object.

        Examples::

            build_uri("path/to", "file.ext", {"bucket": "my-bucket"})
            # "https://s3.us-east-1.amazonaws.com/my-bucket/path/to/file.ext"
            build_uri("path/to", "file.ext", {"bucket": "my-bucket", "virtual_host": True})
            # "https://my-bucket.s3.us-east-1.amazonaws.com/path/to/file.ext"
            build_uri("path/to", "file.ext", {"bucket": "my-bucket", "signed": True})
            # "https://...&X-Amz-Signature=..."
        """
        bucket = self._bucket(opts, "build_uri")
        key = object_key(directory, filename)

        if opts.get("signed"):
            return self._client(opts).generate_presigned_url(
                "get_object",
                Params={"Bucket": bucket, "Key": key},
                ExpiresIn=int(opts.get("expires_in") or DEFAULT_EXPIRES_IN),
            )

        endpoint_url = opts.get("endpoint_url")
        if endpoint_url:
            return f"{endpoint_url.rstrip('/')}/{bucket}/{key}"

        region = opts.get("region") or DEFAULT_REGION
        if opts.get("virtual_host"):
            return f"https://{bucket}.s3.{region}.amazonaws.com/{key}"
        return f"https://s3.{region}.amazonaws.com/{bucket}/{key}"

    # ─── Helpers ───────────────────────────────────────

    def _bucket(self, opts: dict[str, Any], operation: str) -> str:
        bucket = opts.get("bucket")
        if not bucket:
            raise StorageError("Storage option 'bucket' is required", operation=operation)
        return bucket

    def _client(self, opts: dict[str, Any]):
        if opts.get("client") is not None:
            return opts["client"]

        config = Config(
            s3={"addressing_style": "virtual" if opts.get("virtual_host") else "path"},
            retries={"max_attempts": 3},
        )
        kwargs: dict[str, Any] = {"config": config}
        if opts.get("region"):
            kwargs["region_name"] = opts["region"]
        if opts.get("endpoint_url"):
            kwargs["endpoint_url"] = opts["endpoint_url"]
        return boto3.client("s3", **kwargs)
