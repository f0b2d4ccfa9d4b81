"""
Cloud storage module for reading and writing book content.

This module provides functionality for:
- Uploading, fetching, downloading and deleting objects in a bucket
- Creating, deleting and listing buckets in the configured project
- Generating signed URLs for secure, time-limited downloads

Objects live in Google Cloud Storage and are accessed through its
S3-interoperable XML API with HMAC credentials, so a plain boto3 S3 client
pointed at ``api_url`` does all the transport work. Every botocore failure is
re-raised as ``StorageError`` with the original exception chained.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import boto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError

from .configuration import CloudSettings
from .errors import BookNotFoundError, StorageError
from .signing import UrlSigner

logger = logging.getLogger(__name__)

_MISSING_CODES = {"404", "NoSuchKey", "NoSuchBucket", "NotFound"}


def _is_missing(exc: ClientError) -> bool:
    return str(exc.response.get("Error", {}).get("Code")) in _MISSING_CODES


class CloudStorage:
    """
    Bucket-scoped object storage client.

    The underlying boto3 client is created lazily on first use so that the
    application can start without credentials (e.g. for ``/sayHello``).

    Args:
        settings: Service settings (endpoint, HMAC keys, project, bucket)
        client: Pre-built S3-compatible client, mainly for tests
    """

    def __init__(self, settings: CloudSettings, client=None) -> None:
        self.settings = settings
        self._client = client
        self.signer = UrlSigner(settings)

    @property
    def bucket_name(self) -> str:
        return self.settings.require("bucket_name")

    def _get_client(self):
        if self._client is None:
            logger.info(f"Creating storage client for {self.settings.api_url}")
            self._client = boto3.client(
                "s3",
                endpoint_url=self.settings.api_url,
                aws_access_key_id=self.settings.require("hmac_access_id"),
                aws_secret_access_key=self.settings.require("hmac_secret"),
                region_name="auto",
                config=BotoConfig(signature_version="s3v4", user_agent_extra=self.settings.application_name),
            )
        return self._client

    def upload_file(self, bucket_name: str, file_path: str, data: bytes, content_type: str) -> None:
        """
        Upload ``data`` to ``bucket_name/file_path`` with the given content type.

        Raises:
            StorageError: If the store rejects the write
        """
        client = self._get_client()
        try:
            logger.info(f"Uploading {len(data)} bytes to {bucket_name}/{file_path} ({content_type})")
            client.put_object(Bucket=bucket_name, Key=file_path, Body=data, ContentType=content_type)
        except (ClientError, BotoCoreError) as exc:
            logger.error(f"Upload of {bucket_name}/{file_path} failed: {exc}")
            raise StorageError(f"Upload of {bucket_name}/{file_path} failed: {exc}") from exc

    def get_file(self, bucket_name: str, file_path: str) -> bytes:
        """
        Fetch an object's content.

        Raises:
            BookNotFoundError: If the object does not exist
            StorageError: For any other failure
        """
        client = self._get_client()
        try:
            response = client.get_object(Bucket=bucket_name, Key=file_path)
            return response["Body"].read()
        except ClientError as exc:
            if _is_missing(exc):
                raise BookNotFoundError(f"{bucket_name}/{file_path} does not exist") from exc
            logger.error(f"Fetching {bucket_name}/{file_path} failed: {exc}")
            raise StorageError(f"Fetching {bucket_name}/{file_path} failed: {exc}") from exc
        except BotoCoreError as exc:
            logger.error(f"Fetching {bucket_name}/{file_path} failed: {exc}")
            raise StorageError(f"Fetching {bucket_name}/{file_path} failed: {exc}") from exc

    def download_file(self, bucket_name: str, file_name: str, destination_directory: Path) -> Path:
        """
        Save an object into an existing local directory.

        Returns:
            Path of the written file (``destination_directory/file_name``)
        """
        directory = Path(destination_directory)
        if not directory.is_dir():
            raise StorageError("Provided destinationDirectory path is not a directory")

        target = directory.resolve() / file_name
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(self.get_file(bucket_name, file_name))
        logger.info(f"Downloaded {bucket_name}/{file_name} to {target}")
        return target

    def delete_file(self, bucket_name: str, file_name: str) -> None:
        client = self._get_client()
        try:
            client.delete_object(Bucket=bucket_name, Key=file_name)
            logger.info(f"Deleted {bucket_name}/{file_name}")
        except (ClientError, BotoCoreError) as exc:
            logger.error(f"Delete of {bucket_name}/{file_name} failed: {exc}")
            raise StorageError(f"Delete of {bucket_name}/{file_name} failed: {exc}") from exc

    def create_bucket(self, bucket_name: str) -> None:
        client = self._get_client()
        try:
            client.create_bucket(Bucket=bucket_name)
            logger.info(f"Created bucket {bucket_name} in project {self.settings.project_id or '<default>'}")
        except (ClientError, BotoCoreError) as exc:
            raise StorageError(f"Creating bucket {bucket_name} failed: {exc}") from exc

    def delete_bucket(self, bucket_name: str) -> None:
        client = self._get_client()
        try:
            client.delete_bucket(Bucket=bucket_name)
            logger.info(f"Deleted bucket {bucket_name}")
        except (ClientError, BotoCoreError) as exc:
            raise StorageError(f"Deleting bucket {bucket_name} failed: {exc}") from exc

    def list_bucket(self, bucket_name: str, prefix: Optional[str] = None) -> list[str]:
        """
        List object names in a bucket, following continuation pages.

        Args:
            bucket_name: Bucket to list
            prefix: Only return names starting with this prefix
        """
        client = self._get_client()
        params = {"Bucket": bucket_name}
        if prefix:
            params["Prefix"] = prefix
        try:
            names: list[str] = []
            for page in client.get_paginator("list_objects_v2").paginate(**params):
                names.extend(item["Key"] for item in page.get("Contents", []))
            return names
        except (ClientError, BotoCoreError) as exc:
            raise StorageError(f"Listing bucket {bucket_name} failed: {exc}") from exc

    def list_buckets(self) -> list[str]:
        client = self._get_client()
        try:
            response = client.list_buckets()
        except (ClientError, BotoCoreError) as exc:
            raise StorageError(f"Listing buckets failed: {exc}") from exc
        return [bucket["Name"] for bucket in response.get("Buckets", [])]

    def signed_url(self, file_path: str, expires_in: int) -> str:
        return self.signer.signed_url(file_path, expires_in)
