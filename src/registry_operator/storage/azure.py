"""Azure Blob storage backend."""

from __future__ import annotations

import logging
from typing import Any

from azure.core.credentials import AzureNamedKeyCredential
from azure.core.exceptions import AzureError, HttpResponseError, ResourceExistsError, ResourceNotFoundError
from azure.storage.blob import BlobServiceClient

from ..exceptions import ConfigurationError
from .base import StorageDriver, secret_env

logger = logging.getLogger(__name__)

ACCOUNT_NAME = "REGISTRY_STORAGE_AZURE_ACCOUNTNAME"
ACCOUNT_KEY = "REGISTRY_STORAGE_AZURE_ACCOUNTKEY"

DEFAULT_ENDPOINT_SUFFIX = "core.windows.net"


class AzureDriver(StorageDriver):
    """Stores blobs in an Azure storage account container.

    Config fields: ``accountName``, ``container``. The account key is read
    from the user configuration secret.
    """

    storage_type = "azure"

    def __init__(self, config: dict[str, Any], clients: Any, params: Any):
        super().__init__(config, clients, params)
        self._service: BlobServiceClient | None = None

    @property
    def account_name(self) -> str:
        return self.config.get("accountName", "")

    @property
    def container(self) -> str:
        return self.config.get("container", "")

    def validate_configuration(self, previous_state: dict[str, Any]) -> None:
        super().validate_configuration(previous_state)
        if not self.account_name:
            raise ConfigurationError("azure storage requires accountName")

    def _resolve_container(self, cr: dict[str, Any]) -> None:
        self.resolve_name(cr, "container", f"{self.params.cluster_name}-image-registry")

    def blob_service(self) -> BlobServiceClient:
        """Return a BlobServiceClient authenticated with the account key."""
        if self._service is None:
            account_key = self.user_credentials().get(ACCOUNT_KEY, "")
            suffix = self.config.get("endpointSuffix") or DEFAULT_ENDPOINT_SUFFIX
            self._service = BlobServiceClient(
                account_url=f"https://{self.account_name}.blob.{suffix}",
                credential=AzureNamedKeyCredential(self.account_name, account_key),
            )
        return self._service

    def storage_changed(self, cr: dict[str, Any]) -> bool:
        self._resolve_container(cr)
        return super().storage_changed(cr)

    def storage_exists(self, cr: dict[str, Any]) -> bool:
        self._resolve_container(cr)
        return self.blob_service().get_container_client(self.container).exists()

    def create_storage(self, cr: dict[str, Any]) -> None:
        self._resolve_container(cr)
        try:
            self.blob_service().create_container(self.container)
            self.created = True
            logger.info(f"Created Azure container {self.container}")
        except ResourceExistsError:
            logger.info(f"Azure container {self.container} already exists")
        except AzureError:
            self.record_operation("create", "error")
            raise
        self.record_operation("create", "success")

    def remove_remote_storage(self, cr: dict[str, Any]) -> tuple[bool, Exception | None]:
        try:
            self.blob_service().delete_container(self.container)
            logger.info(f"Deleted Azure container {self.container}")
            return False, None
        except ResourceNotFoundError:
            return False, None
        except HttpResponseError as e:
            return e.status_code not in (401, 403), e
        except AzureError as e:
            return True, e

    def config_env(self) -> list[dict[str, Any]]:
        return [
            {"name": "REGISTRY_STORAGE", "value": self.storage_type},
            {"name": "REGISTRY_STORAGE_AZURE_CONTAINER", "value": self.container},
            secret_env(ACCOUNT_NAME),
            secret_env(ACCOUNT_KEY),
        ]

    def secrets(self) -> dict[str, str]:
        return {
            ACCOUNT_NAME: self.account_name,
            ACCOUNT_KEY: self.user_credentials().get(ACCOUNT_KEY, ""),
        }

    def state(self) -> dict[str, Any]:
        return {"accountName": self.account_name, "container": self.container}
