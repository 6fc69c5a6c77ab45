"""Pod template of the registry Deployment."""

from __future__ import annotations

from typing import Any

from kubernetes.client.exceptions import ApiException

from ..constants import (
    ANNOTATION_CONFIG_MAP_CHECKSUM,
    ANNOTATION_SECRET_CHECKSUM,
    ANNOTATION_STORAGE_TYPE,
    ANNOTATION_SUPPLEMENTAL_GROUPS,
    CERTIFICATES_CONFIG_MAP_NAME,
    PRIVATE_CONFIGURATION_SECRET_NAME,
    TLS_SECRET_NAME,
)
from ..exceptions import ConfigurationError
from ..k8s.client import Clients
from ..parameters import Parameters
from ..storage import StorageDriver
from .mutator import checksum
from .service import tls_enabled

TLS_MOUNT_PATH = "/etc/secrets"
CERTIFICATES_MOUNT_PATH = "/etc/pki/ca-trust/source/anchors"


def log_level(cr: dict[str, Any]) -> str:
    """Map ``spec.logging`` (0..n) to a registry log level."""
    level = cr.get("spec", {}).get("logging", 2)
    if level is None:
        level = 2
    if level <= 0:
        return "error"
    if level == 1:
        return "warn"
    if level in (2, 3):
        return "info"
    return "debug"


def request_limit_env(cr: dict[str, Any], direction: str) -> list[dict[str, Any]]:
    """Env vars throttling read or write requests.

    Raises:
        ConfigurationError: If a limit is negative
    """
    limits = (cr.get("spec", {}).get("requests") or {}).get(direction) or {}
    max_running = limits.get("maxRunning") or 0
    max_in_queue = limits.get("maxInQueue") or 0
    if max_running == 0 and max_in_queue == 0:
        return []
    if max_running < 0:
        raise ConfigurationError(f"requests.{direction}.maxRunning must be a positive number")
    if max_in_queue < 0:
        raise ConfigurationError(f"requests.{direction}.maxInQueue must be a positive number")
    prefix = f"REGISTRY_OPENSHIFT_REQUESTS_{direction.upper()}"
    return [
        {"name": f"{prefix}_MAXRUNNING", "value": str(max_running)},
        {"name": f"{prefix}_MAXINQUEUE", "value": str(max_in_queue)},
        {"name": f"{prefix}_MAXWAITINQUEUE", "value": str(limits.get("maxWaitInQueue") or "0s")},
    ]


def security_context(clients: Clients, namespace: str) -> dict[str, Any]:
    """Pod security context with fsGroup taken from the namespace's supplemental group range.

    Raises:
        ConfigurationError: If the namespace annotation is missing or malformed
    """
    ns = clients.namespaces.get(namespace)
    annotations = ns.get("metadata", {}).get("annotations") or {}
    sgrange = annotations.get(ANNOTATION_SUPPLEMENTAL_GROUPS)
    if sgrange is None:
        raise ConfigurationError(
            f"namespace {namespace!r} doesn't have annotation {ANNOTATION_SUPPLEMENTAL_GROUPS}"
        )
    if "/" not in sgrange:
        raise ConfigurationError(
            f"annotation {ANNOTATION_SUPPLEMENTAL_GROUPS} in namespace {namespace!r} doesn't contain '/'"
        )
    try:
        gid = int(sgrange.split("/", 1)[0])
    except ValueError as e:
        raise ConfigurationError(
            f"unable to parse annotation {ANNOTATION_SUPPLEMENTAL_GROUPS} in namespace {namespace!r}: {e}"
        ) from e
    return {"fsGroup": gid}


def probe(cr: dict[str, Any], params: Parameters, initial_delay_seconds: int | None = None) -> dict[str, Any]:
    http_get: dict[str, Any] = {"path": params.healthz_route, "port": params.container_port}
    http_get["scheme"] = "HTTPS" if tls_enabled(cr) else "HTTP"
    result: dict[str, Any] = {"timeoutSeconds": params.healthz_timeout_seconds, "httpGet": http_get}
    if initial_delay_seconds is not None:
        result["initialDelaySeconds"] = initial_delay_seconds
    return result


def _data_checksum(client: Any, name: str, namespace: str) -> str:
    obj = client.get(name, namespace)
    return checksum(obj.get("data") or {})


def make_pod_template_spec(
    cr: dict[str, Any],
    params: Parameters,
    driver: StorageDriver,
    clients: Clients,
) -> tuple[dict[str, Any], dict[str, str]]:
    """Build the registry pod template.

    Args:
        cr: Config resource
        params: Deployment parameters
        driver: Storage driver for the configured backend
        clients: Kubernetes clients, used to read the namespace, the private
            configuration secret and the certificates ConfigMap

    Returns:
        Tuple of the pod template and the annotations for the Deployment

    Raises:
        ConfigurationError: If the Config cannot be turned into a pod template
        ApiException: If a referenced object cannot be read
    """
    spec = cr.get("spec", {})

    env: list[dict[str, Any]] = [
        {"name": "REGISTRY_HTTP_ADDR", "value": f":{params.container_port}"},
        {"name": "REGISTRY_HTTP_NET", "value": "tcp"},
        {
            "name": "REGISTRY_HTTP_SECRET",
            "valueFrom": {
                "secretKeyRef": {"name": PRIVATE_CONFIGURATION_SECRET_NAME, "key": "REGISTRY_HTTP_SECRET"},
            },
        },
        {"name": "REGISTRY_LOG_LEVEL", "value": log_level(cr)},
        {"name": "REGISTRY_OPENSHIFT_QUOTA_ENABLED", "value": "true"},
        {"name": "REGISTRY_STORAGE_CACHE_BLOBDESCRIPTOR", "value": "inmemory"},
        {"name": "REGISTRY_STORAGE_DELETE_ENABLED", "value": "true"},
    ]
    env.extend(driver.config_env())
    volumes, mounts = driver.volumes()

    env.extend(request_limit_env(cr, "read"))
    env.extend(request_limit_env(cr, "write"))

    if tls_enabled(cr):
        volumes.append({"name": "registry-tls", "secret": {"secretName": TLS_SECRET_NAME}})
        mounts.append({"name": "registry-tls", "mountPath": TLS_MOUNT_PATH})
        env.append({"name": "REGISTRY_HTTP_TLS_CERTIFICATE", "value": f"{TLS_MOUNT_PATH}/tls.crt"})
        env.append({"name": "REGISTRY_HTTP_TLS_KEY", "value": f"{TLS_MOUNT_PATH}/tls.key"})

    volumes.append({"name": "registry-certificates", "configMap": {"name": CERTIFICATES_CONFIG_MAP_NAME}})
    mounts.append({"name": "registry-certificates", "mountPath": CERTIFICATES_MOUNT_PATH})

    pod_security_context = security_context(clients, params.namespace)

    template_annotations = {
        ANNOTATION_SECRET_CHECKSUM: _data_checksum(
            clients.secrets, PRIVATE_CONFIGURATION_SECRET_NAME, params.namespace
        ),
        ANNOTATION_CONFIG_MAP_CHECKSUM: _data_checksum(
            clients.config_maps, CERTIFICATES_CONFIG_MAP_NAME, params.namespace
        ),
    }

    container: dict[str, Any] = {
        "name": params.container_name,
        "image": spec.get("imagePullSpec") or params.default_image,
        "ports": [{"containerPort": params.container_port, "protocol": "TCP"}],
        "env": env,
        "volumeMounts": mounts,
        "livenessProbe": probe(cr, params, initial_delay_seconds=10),
        "readinessProbe": probe(cr, params),
        "resources": {"requests": {"cpu": "100m", "memory": "256Mi"}},
    }

    pod_spec: dict[str, Any] = {
        "containers": [container],
        "volumes": volumes,
        "serviceAccountName": params.service_account,
        "securityContext": pod_security_context,
    }
    if spec.get("nodeSelector"):
        pod_spec["nodeSelector"] = dict(spec["nodeSelector"])

    template = {
        "metadata": {"labels": dict(params.labels), "annotations": template_annotations},
        "spec": pod_spec,
    }
    return template, {ANNOTATION_STORAGE_TYPE: driver.storage_type}
