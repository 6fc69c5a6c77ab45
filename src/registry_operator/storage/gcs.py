"""Google Cloud Storage backend."""

from __future__ import annotations

import json
import logging
from typing import Any

from google.api_core.exceptions import Conflict, Forbidden, GoogleAPIError, NotFound, Unauthorized
from google.cloud import storage
from google.oauth2 import service_account

from ..constants import PRIVATE_CONFIGURATION_SECRET_NAME
from .base import StorageDriver

logger = logging.getLogger(__name__)

KEYFILE = "REGISTRY_STORAGE_GCS_KEYFILE"
KEYFILE_DIRECTORY = "/gcs"
KEYFILE_NAME = "keyfile"
VOLUME_NAME = "registry-storage-keyfile"


class GCSDriver(StorageDriver):
    """Stores blobs in a Google Cloud Storage bucket.

    Config fields: ``bucket``, ``region``, ``projectID``. The service account
    key (JSON) is read from the user configuration secret and mounted into the
    registry pod as a file.
    """

    storage_type = "gcs"

    def __init__(self, config: dict[str, Any], clients: Any, params: Any):
        super().__init__(config, clients, params)
        self._client: storage.Client | None = None

    @property
    def bucket(self) -> str:
        return self.config.get("bucket", "")

    def _resolve_bucket(self, cr: dict[str, Any]) -> None:
        self.resolve_name(cr, "bucket", f"{self.params.cluster_name}-image-registry")

    def gcs_client(self) -> storage.Client:
        """Return a storage client using the keyfile from the user secret, if any."""
        if self._client is None:
            keyfile = self.user_credentials().get(KEYFILE)
            credentials = None
            if keyfile:
                credentials = service_account.Credentials.from_service_account_info(json.loads(keyfile))
            self._client = storage.Client(project=self.config.get("projectID") or None, credentials=credentials)
        return self._client

    def storage_changed(self, cr: dict[str, Any]) -> bool:
        self._resolve_bucket(cr)
        return super().storage_changed(cr)

    def storage_exists(self, cr: dict[str, Any]) -> bool:
        self._resolve_bucket(cr)
        return self.gcs_client().lookup_bucket(self.bucket) is not None

    def create_storage(self, cr: dict[str, Any]) -> None:
        self._resolve_bucket(cr)
        try:
            self.gcs_client().create_bucket(self.bucket, location=self.config.get("region") or None)
            self.created = True
            logger.info(f"Created GCS bucket {self.bucket}")
        except Conflict:
            logger.info(f"GCS bucket {self.bucket} already exists")
        except GoogleAPIError:
            self.record_operation("create", "error")
            raise
        self.record_operation("create", "success")

    def remove_remote_storage(self, cr: dict[str, Any]) -> tuple[bool, Exception | None]:
        try:
            client = self.gcs_client()
            for blob in client.list_blobs(self.bucket):
                blob.delete()
            client.bucket(self.bucket).delete()
            logger.info(f"Deleted GCS bucket {self.bucket}")
            return False, None
        except NotFound:
            return False, None
        except (Forbidden, Unauthorized) as e:
            return False, e
        except GoogleAPIError as e:
            return True, e

    def config_env(self) -> list[dict[str, Any]]:
        return [
            {"name": "REGISTRY_STORAGE", "value": self.storage_type},
            {"name": "REGISTRY_STORAGE_GCS_BUCKET", "value": self.bucket},
            {"name": "REGISTRY_STORAGE_GCS_KEYFILE", "value": f"{KEYFILE_DIRECTORY}/{KEYFILE_NAME}"},
        ]

    def volumes(self) -> tuple[list[dict[str, Any]], list[dict[str, Any]]]:
        volume = {
            "name": VOLUME_NAME,
            "secret": {
                "secretName": PRIVATE_CONFIGURATION_SECRET_NAME,
                "items": [{"key": KEYFILE, "path": KEYFILE_NAME}],
            },
        }
        mount = {"name": VOLUME_NAME, "mountPath": KEYFILE_DIRECTORY, "readOnly": True}
        return [volume], [mount]

    def secrets(self) -> dict[str, str]:
        keyfile = self.user_credentials().get(KEYFILE)
        return {KEYFILE: keyfile} if keyfile else {}

    def state(self) -> dict[str, Any]:
        return {
            "bucket": self.bucket,
            "region": self.config.get("region", ""),
            "projectID": self.config.get("projectID", ""),
        }
