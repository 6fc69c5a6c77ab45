"""Base class for the objects the operator keeps converged."""

from __future__ import annotations

import copy
import hashlib
import json
from abc import ABC, abstractmethod
from typing import Any

from ..constants import ANNOTATION_CHECKSUM, API_GROUP_VERSION, KIND_CONFIG
from ..k8s.client import DeleteOptions, ResourceClient
from ..parameters import Parameters


def checksum(obj: Any) -> str:
    """Return the ``sha256:<hex>`` digest of the canonical JSON form of obj."""
    data = json.dumps(obj, sort_keys=True, separators=(",", ":"), default=str)
    return f"sha256:{hashlib.sha256(data.encode('utf-8')).hexdigest()}"


def owner_reference(cr: dict[str, Any]) -> dict[str, Any]:
    """Build a controller owner reference pointing at the Config."""
    meta = cr.get("metadata", {})
    return {
        "apiVersion": cr.get("apiVersion", API_GROUP_VERSION),
        "kind": cr.get("kind", KIND_CONFIG),
        "name": meta.get("name"),
        "uid": meta.get("uid"),
        "controller": True,
    }


def get_controller_of(obj: dict[str, Any]) -> dict[str, Any] | None:
    """Return the owner reference marked as controller, if any."""
    for ref in obj.get("metadata", {}).get("ownerReferences") or []:
        if ref.get("controller"):
            return ref
    return None


def is_controlled_by(obj: dict[str, Any], cr: dict[str, Any]) -> bool:
    """Return True if obj's controller owner reference points at cr."""
    ref = get_controller_of(obj)
    if ref is None:
        return False
    return ref.get("uid") == cr.get("metadata", {}).get("uid")


def merge_object_meta(existing: dict[str, Any], required: dict[str, Any]) -> None:
    """Copy the identity and ownership metadata of required into existing."""
    existing_meta = existing.setdefault("metadata", {})
    required_meta = required.get("metadata", {})
    for key in ("name", "namespace", "labels", "annotations", "ownerReferences"):
        if required_meta.get(key) is None:
            existing_meta.pop(key, None)
        else:
            existing_meta[key] = copy.deepcopy(required_meta[key])


class Mutator(ABC):
    """Produces one desired object and merges it into the live one.

    Subclasses implement :meth:`expected`, returning the full desired manifest,
    and may override :meth:`merge` to limit which top-level fields are copied
    onto the live object. Mutators are rebuilt on every pass and hold no state
    between passes.
    """

    kind: str = ""

    def __init__(self, client: ResourceClient, params: Parameters, cr: dict[str, Any] | None = None):
        self.client = client
        self.params = params
        self.cr = cr

    @abstractmethod
    def object_name(self) -> str:
        """Name of the managed object."""

    def object_namespace(self) -> str | None:
        """Namespace of the managed object, None for cluster-scoped kinds."""
        return self.params.namespace

    @abstractmethod
    def expected(self) -> dict[str, Any]:
        """Build the desired object."""

    def name(self) -> str:
        """Human readable identity used in logs and errors."""
        namespace = self.object_namespace()
        if namespace:
            return f"{self.kind}, Namespace={namespace}, Name={self.object_name()}"
        return f"{self.kind}, Name={self.object_name()}"

    def owned(self) -> bool:
        """Whether the object is deleted when the registry is removed."""
        return True

    def metadata(self, **extra: Any) -> dict[str, Any]:
        """Common metadata for the desired object."""
        meta: dict[str, Any] = {"name": self.object_name()}
        namespace = self.object_namespace()
        if namespace:
            meta["namespace"] = namespace
        if self.cr is not None:
            meta["ownerReferences"] = [owner_reference(self.cr)]
        meta.update({key: value for key, value in extra.items() if value is not None})
        return meta

    def get(self) -> dict[str, Any]:
        return self.client.get(self.object_name(), self.object_namespace())

    def _desired_with_checksum(self) -> tuple[dict[str, Any], str]:
        desired = self.expected()
        dgst = checksum(desired)
        annotations = desired.setdefault("metadata", {}).get("annotations") or {}
        annotations[ANNOTATION_CHECKSUM] = dgst
        desired["metadata"]["annotations"] = annotations
        return desired, dgst

    def create(self) -> dict[str, Any]:
        desired, _ = self._desired_with_checksum()
        return self.client.create(desired)

    def update(self, current: dict[str, Any]) -> tuple[dict[str, Any] | None, bool]:
        """Converge a copy of the live object towards the desired one.

        Args:
            current: Deep copy of the live object; it is modified in place

        Returns:
            Tuple of the written object (None if nothing was written) and
            whether a write happened
        """
        desired, dgst = self._desired_with_checksum()
        current_annotations = current.get("metadata", {}).get("annotations") or {}
        if current_annotations.get(ANNOTATION_CHECKSUM) == dgst:
            return None, False

        merge_object_meta(current, desired)
        self.merge(current, desired)
        return self.client.replace(current), True

    def merge(self, current: dict[str, Any], desired: dict[str, Any]) -> None:
        """Copy the fields the operator owns from desired into current."""
        for key, value in desired.items():
            if key in ("apiVersion", "kind", "metadata", "status"):
                continue
            current[key] = copy.deepcopy(value)

    def delete(self, options: DeleteOptions | None = None) -> None:
        self.client.delete(self.object_name(), self.object_namespace(), options)
