"""S3 storage backend."""

from __future__ import annotations

import logging
from typing import Any

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from .base import StorageDriver, secret_env

logger = logging.getLogger(__name__)

DEFAULT_REGION = "us-east-1"

ACCESS_KEY = "REGISTRY_STORAGE_S3_ACCESSKEY"
SECRET_KEY = "REGISTRY_STORAGE_S3_SECRETKEY"

# Errors that will not go away by retrying with the same credentials.
NON_RETRIABLE_CODES = {"AccessDenied", "InvalidAccessKeyId", "SignatureDoesNotMatch"}

NOT_FOUND_CODES = {"404", "NoSuchBucket", "NotFound"}


def _error_code(error: ClientError) -> str:
    return str(error.response.get("Error", {}).get("Code", ""))


class S3Driver(StorageDriver):
    """Stores blobs in an S3 bucket.

    Config fields: ``bucket``, ``region``, ``regionEndpoint``, ``encrypt``.
    Credentials are read from the user configuration secret; when the bucket
    name is empty one is generated and remembered in the Config status.
    """

    storage_type = "s3"

    def __init__(self, config: dict[str, Any], clients: Any, params: Any):
        super().__init__(config, clients, params)
        self._client: Any = None

    @property
    def bucket(self) -> str:
        return self.config.get("bucket", "")

    @property
    def region(self) -> str:
        return self.config.get("region") or DEFAULT_REGION

    def _resolve_bucket(self, cr: dict[str, Any]) -> None:
        self.resolve_name(cr, "bucket", f"{self.params.cluster_name}-image-registry-{self.region}")

    def s3_client(self) -> Any:
        """Return a boto3 S3 client for the configured region and credentials."""
        if self._client is None:
            credentials = self.user_credentials()
            config = Config(signature_version="s3v4")
            self._client = boto3.client(
                "s3",
                endpoint_url=self.config.get("regionEndpoint") or None,
                region_name=self.region,
                aws_access_key_id=credentials.get(ACCESS_KEY) or None,
                aws_secret_access_key=credentials.get(SECRET_KEY) or None,
                config=config,
            )
        return self._client

    def storage_changed(self, cr: dict[str, Any]) -> bool:
        self._resolve_bucket(cr)
        return super().storage_changed(cr)

    def storage_exists(self, cr: dict[str, Any]) -> bool:
        self._resolve_bucket(cr)
        try:
            self.s3_client().head_bucket(Bucket=self.bucket)
            return True
        except ClientError as e:
            if _error_code(e) in NOT_FOUND_CODES:
                return False
            raise

    def create_storage(self, cr: dict[str, Any]) -> None:
        self._resolve_bucket(cr)
        client = self.s3_client()

        create_params: dict[str, Any] = {"Bucket": self.bucket}
        if self.region != DEFAULT_REGION:
            create_params["CreateBucketConfiguration"] = {"LocationConstraint": self.region}

        try:
            client.create_bucket(**create_params)
            self.created = True
            logger.info(f"Created S3 bucket {self.bucket}")
        except ClientError as e:
            if _error_code(e) != "BucketAlreadyOwnedByYou":
                self.record_operation("create", "error")
                raise
            logger.info(f"S3 bucket {self.bucket} already exists")

        if self.config.get("encrypt"):
            client.put_bucket_encryption(
                Bucket=self.bucket,
                ServerSideEncryptionConfiguration={
                    "Rules": [{"ApplyServerSideEncryptionByDefault": {"SSEAlgorithm": "AES256"}}],
                },
            )
        client.put_bucket_tagging(
            Bucket=self.bucket,
            Tagging={
                "TagSet": [
                    {"Key": "openshift.io/cluster", "Value": self.params.cluster_name},
                    {"Key": "Name", "Value": self.bucket},
                ]
            },
        )
        self.record_operation("create", "success")

    def _empty_bucket(self) -> None:
        client = self.s3_client()
        paginator = client.get_paginator("list_object_versions")
        for page in paginator.paginate(Bucket=self.bucket):
            objects = [
                {"Key": item["Key"], "VersionId": item["VersionId"]}
                for item in page.get("Versions", []) + page.get("DeleteMarkers", [])
            ]
            if objects:
                client.delete_objects(Bucket=self.bucket, Delete={"Objects": objects, "Quiet": True})

    def remove_remote_storage(self, cr: dict[str, Any]) -> tuple[bool, Exception | None]:
        try:
            self._empty_bucket()
            self.s3_client().delete_bucket(Bucket=self.bucket)
            logger.info(f"Deleted S3 bucket {self.bucket}")
            return False, None
        except ClientError as e:
            code = _error_code(e)
            if code == "NoSuchBucket":
                return False, None
            return code not in NON_RETRIABLE_CODES, e
        except BotoCoreError as e:
            return True, e

    def config_env(self) -> list[dict[str, Any]]:
        return [
            {"name": "REGISTRY_STORAGE", "value": self.storage_type},
            {"name": "REGISTRY_STORAGE_S3_BUCKET", "value": self.bucket},
            {"name": "REGISTRY_STORAGE_S3_REGION", "value": self.region},
            {"name": "REGISTRY_STORAGE_S3_REGIONENDPOINT", "value": self.config.get("regionEndpoint", "")},
            {"name": "REGISTRY_STORAGE_S3_ENCRYPT", "value": "true" if self.config.get("encrypt") else "false"},
            secret_env(ACCESS_KEY, optional=True),
            secret_env(SECRET_KEY, optional=True),
        ]

    def secrets(self) -> dict[str, str]:
        credentials = self.user_credentials()
        return {key: credentials[key] for key in (ACCESS_KEY, SECRET_KEY) if credentials.get(key)}

    def state(self) -> dict[str, Any]:
        return {
            "bucket": self.bucket,
            "region": self.region,
            "regionEndpoint": self.config.get("regionEndpoint", ""),
            "encrypt": bool(self.config.get("encrypt", False)),
        }
