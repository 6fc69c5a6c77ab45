"""ServiceAccount the registry pods run as."""

from __future__ import annotations

from typing import Any

from ..constants import KIND_SERVICE_ACCOUNT
from .mutator import Mutator


class ServiceAccountMutator(Mutator):
    """Only the metadata is managed; token and pull secrets belong to the cluster."""

    kind = KIND_SERVICE_ACCOUNT

    def object_name(self) -> str:
        return self.params.service_account

    def expected(self) -> dict[str, Any]:
        return {
            "apiVersion": "v1",
            "kind": self.kind,
            "metadata": self.metadata(),
        }
