"""Private configuration Secret consumed by the registry pods."""

from __future__ import annotations

import base64
import secrets
from typing import Any

from kubernetes.client.exceptions import ApiException

from ..constants import KIND_SECRET, PRIVATE_CONFIGURATION_SECRET_NAME
from ..k8s.client import ResourceClient, is_not_found
from ..parameters import Parameters
from ..storage import StorageDriver
from .mutator import Mutator

HTTP_SECRET_KEY = "REGISTRY_HTTP_SECRET"


def _encode(value: str) -> str:
    return base64.b64encode(value.encode("utf-8")).decode("ascii")


def _decode(value: str) -> str:
    return base64.b64decode(value).decode("utf-8")


class SecretMutator(Mutator):
    """Holds storage credentials and the registry HTTP secret.

    The HTTP secret comes from ``spec.httpSecret``; when unset, the value
    already stored is kept, and a random one is generated on first creation.
    """

    kind = KIND_SECRET

    def __init__(self, client: ResourceClient, params: Parameters, cr: dict[str, Any], driver: StorageDriver):
        super().__init__(client, params, cr)
        self.driver = driver

    def object_name(self) -> str:
        return PRIVATE_CONFIGURATION_SECRET_NAME

    def _http_secret(self) -> str:
        configured = (self.cr or {}).get("spec", {}).get("httpSecret")
        if configured:
            return configured
        try:
            current = self.client.get(self.object_name(), self.object_namespace())
        except ApiException as e:
            if not is_not_found(e):
                raise
        else:
            stored = (current.get("data") or {}).get(HTTP_SECRET_KEY)
            if stored:
                return _decode(stored)
        return secrets.token_hex(64)

    def expected(self) -> dict[str, Any]:
        values = dict(self.driver.secrets())
        values[HTTP_SECRET_KEY] = self._http_secret()
        return {
            "apiVersion": "v1",
            "kind": self.kind,
            "metadata": self.metadata(),
            "type": "Opaque",
            "data": {key: _encode(value) for key, value in sorted(values.items())},
        }
