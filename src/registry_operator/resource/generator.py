"""Orchestration of apply, remove and status passes over all mutators."""

from __future__ import annotations

import logging
import os
import threading
import time
from typing import Any

from kubernetes.client.exceptions import ApiException

from ..constants import (
    API_GROUP_VERSION,
    COND_PROGRESSING,
    CONFIG_NAME,
    KIND_CONFIG,
    LABEL_CREATED_BY_OPERATOR,
    MANAGEMENT_STATE_MANAGED,
)
from ..exceptions import ApplyError, ConfigurationError, RegistryOperatorError, StorageSyncError, StorageTeardownError
from ..k8s.client import Clients, DeleteOptions, is_conflict, is_not_found
from ..logging import log_resource_event
from ..parameters import Parameters
from ..storage import StorageDriver, new_driver, new_driver_from_status
from ..tracing import trace_span
from ..utils.conditions import set_available_condition, set_progressing_condition
from ..utils.errors import sanitize_exception
from .apply import apply_mutator
from .clusteroperator import ClusterOperatorMutator, deployment_conditions
from .clusterrole import ClusterRoleMutator
from .clusterrolebinding import ClusterRoleBindingMutator
from .configmap import CertificatesConfigMapMutator, ServiceCAConfigMapMutator
from .configstate import ConfigStateMutator, read_config_state
from .deployment import DeploymentMutator
from .imageconfig import ImageConfigMutator
from .mutator import Mutator, is_controlled_by
from .route import RouteMutator, desired_routes, route_is_created_by_operator
from .secret import SecretMutator
from .service import ServiceMutator, internal_registry_hostname
from .serviceaccount import ServiceAccountMutator

logger = logging.getLogger(__name__)

STORAGE_REMOVE_INTERVAL_SECONDS = float(os.getenv("STORAGE_REMOVE_INTERVAL_SECONDS", "1"))
STORAGE_REMOVE_TIMEOUT_SECONDS = float(os.getenv("STORAGE_REMOVE_TIMEOUT_SECONDS", "300"))

REASON_RESOURCE_APPLIED = "ResourceApplied"


def default_config() -> dict[str, Any]:
    """The Config created when none exists yet."""
    return {
        "apiVersion": API_GROUP_VERSION,
        "kind": KIND_CONFIG,
        "metadata": {"name": CONFIG_NAME},
        "spec": {
            "managementState": MANAGEMENT_STATE_MANAGED,
            "replicas": 1,
            "storage": {"filesystem": {"emptyDir": {}}},
        },
    }


def _status(cr: dict[str, Any]) -> dict[str, Any]:
    status = cr.get("status") or {}
    cr["status"] = status
    return status


class Generator:
    """Builds the ordered mutator list for a Config and drives it.

    The Config dict passed to :meth:`apply` and :meth:`remove` is treated as
    a working copy: its ``status`` is updated in place and it is up to the
    caller to persist it.

    Passes are serialized per Generator; kopf runs handlers on a worker pool
    and an owned-object event can arrive while a Config pass is running.
    """

    def __init__(
        self,
        clients: Clients,
        params: Parameters,
        remove_interval: float = STORAGE_REMOVE_INTERVAL_SECONDS,
        remove_timeout: float = STORAGE_REMOVE_TIMEOUT_SECONDS,
    ):
        self.clients = clients
        self.params = params
        self.remove_interval = remove_interval
        self.remove_timeout = remove_timeout
        self._lock = threading.RLock()

    def list_routes(self, cr: dict[str, Any]) -> list[Mutator]:
        return [
            RouteMutator(self.clients.routes, self.clients.secrets, self.params, cr, route)
            for route in desired_routes(cr, self.params)
        ]

    def list_mutators(self, cr: dict[str, Any], driver: StorageDriver | None) -> list[Mutator]:
        """Mutators in apply order. The ClusterOperator comes last.

        The driver may be None when the list is only used for deletion.
        """
        c = self.clients
        p = self.params
        mutators: list[Mutator] = [
            ClusterRoleMutator(c.cluster_roles, p, cr),
            ClusterRoleBindingMutator(c.cluster_role_bindings, p, cr),
            ServiceAccountMutator(c.service_accounts, p, cr),
            ServiceCAConfigMapMutator(c.config_maps, p, cr),
            CertificatesConfigMapMutator(c.config_maps, p, cr),
            SecretMutator(c.secrets, p, cr, driver),  # type: ignore[arg-type]
            ServiceMutator(c.services, p, cr),
            DeploymentMutator(c.deployments, p, cr, driver, c),  # type: ignore[arg-type]
        ]
        mutators.extend(self.list_routes(cr))
        mutators.append(ImageConfigMutator(c.image_configs, c.routes, p))
        mutators.append(ClusterOperatorMutator(c.cluster_operators, c.deployments, p, cr))
        return mutators

    def sync_storage(self, cr: dict[str, Any]) -> StorageDriver:
        """Make sure the configured storage exists and record it in status.

        Returns:
            Driver for the configured storage

        Raises:
            ConfigurationError: If the storage configuration is invalid
            StorageSyncError: If talking to the storage backend failed
        """
        driver = new_driver(cr.get("spec", {}).get("storage"), self.clients, self.params)
        status = _status(cr)
        with trace_span("generator.sync_storage", attributes={"storage.type": driver.storage_type}):
            self._sync_driver(cr, driver, status)
        return driver

    def _sync_driver(self, cr: dict[str, Any], driver: StorageDriver, status: dict[str, Any]) -> None:
        try:
            driver.validate_configuration(read_config_state(self.clients.config_maps, self.params))
            changed = driver.storage_changed(cr)
            if changed or not driver.storage_exists(cr):
                driver.create_storage(cr)
                status["storageManaged"] = driver.created or (
                    not changed and bool(status.get("storageManaged"))
                )
            status.setdefault("storageManaged", False)
            status["storage"] = {driver.storage_type: driver.state()}
        except ConfigurationError:
            raise
        except Exception as e:
            raise StorageSyncError(f"unable to sync storage configuration: {sanitize_exception(e)}") from e

    def remove_obsolete_routes(self, cr: dict[str, Any]) -> list[str]:
        """Delete operator-created routes of this Config that are no longer requested.

        Returns:
            Names of the deleted routes
        """
        known = {route["name"] for route in desired_routes(cr, self.params)}
        deleted: list[str] = []
        routes = self.clients.routes.list(self.params.namespace, label_selector=f"{LABEL_CREATED_BY_OPERATOR}=true")
        for route in routes:
            name = route.get("metadata", {}).get("name")
            if not route_is_created_by_operator(route) or not is_controlled_by(route, cr):
                continue
            if name in known:
                continue
            try:
                self.clients.routes.delete(name, self.params.namespace, DeleteOptions())
            except ApiException as e:
                if is_not_found(e):
                    continue
                raise
            logger.info(f"Deleted obsolete route {name}")
            deleted.append(name)
        return deleted

    def _apply_all(self, mutators: list[Mutator]) -> int:
        writes = 0
        for mutator in mutators:
            try:
                if apply_mutator(mutator):
                    writes += 1
            except ApiException as e:
                raise ApplyError(mutator.name(), sanitize_exception(e)) from e
        return writes

    def apply(self, cr: dict[str, Any]) -> int:
        """Converge every managed object towards the Config.

        Args:
            cr: Config resource; its status is updated in place

        Returns:
            Number of objects written

        Raises:
            ConfigurationError: If the Config cannot be deployed
            RegistryOperatorError: If any step of the pass failed
        """
        name = cr.get("metadata", {}).get("name", CONFIG_NAME)
        with self._lock, trace_span("generator.apply", kind=KIND_CONFIG, attributes={"config.name": name}):
            try:
                driver = self.sync_storage(cr)
                writes = self._apply_all(self.list_mutators(cr, driver))
                writes += len(self.remove_obsolete_routes(cr))
                writes += self._apply_all([ConfigStateMutator(self.clients.config_maps, self.params, cr, driver)])
            except Exception as e:
                self._report_failure(cr, e)
                raise
            self.update_config_status(cr)
        log_resource_event(
            logger,
            resource_kind=KIND_CONFIG,
            resource_name=name,
            namespace=self.params.namespace,
            event="applied",
            reason=REASON_RESOURCE_APPLIED,
            message="all resources applied",
            writes=writes,
        )
        return writes

    def _report_failure(self, cr: dict[str, Any], error: Exception) -> None:
        try:
            self.apply_cluster_operator(cr, error)
            self.update_config_status(cr, error)
        except Exception as e:
            logger.error(f"Unable to report failure on cluster operator status: {sanitize_exception(e)}")

    def _deployment(self) -> dict[str, Any] | None:
        try:
            return self.clients.deployments.get(self.params.deployment_name, self.params.namespace)
        except ApiException as e:
            if is_not_found(e):
                return None
            raise

    def update_config_status(self, cr: dict[str, Any], error: BaseException | None = None) -> None:
        """Mirror the outcome of a pass into the Config status."""
        status = _status(cr)
        conditions = status.get("conditions") or []
        if error is None:
            set_available_condition(conditions, True, REASON_RESOURCE_APPLIED, "all resources applied")
        else:
            set_available_condition(conditions, False, REASON_RESOURCE_APPLIED, sanitize_exception(error))
        status["conditions"] = conditions
        self.refresh_config_progress(cr)
        status["internalRegistryHostname"] = internal_registry_hostname(
            self.params.service_name, self.params.namespace, self.params.container_port
        )
        status["observedGeneration"] = cr.get("metadata", {}).get("generation", 0)

    def refresh_config_progress(self, cr: dict[str, Any]) -> None:
        """Update only the Progressing condition of the Config from the Deployment."""
        status = _status(cr)
        conditions = status.get("conditions") or []
        set_progressing_condition(conditions, *deployment_conditions(self._deployment())[COND_PROGRESSING])
        status["conditions"] = conditions

    def apply_cluster_operator(
        self,
        cr: dict[str, Any] | None,
        error: BaseException | None = None,
        keep_degraded: bool = False,
    ) -> bool:
        """Refresh the ClusterOperator status only.

        Args:
            cr: Config the status is reported for
            error: Terminal error of the pass, sets Degraded
            keep_degraded: Leave a stored Degraded condition alone when there
                is no error; used by refreshes that are not full passes

        Returns:
            True if the ClusterOperator was written
        """
        mutator = ClusterOperatorMutator(
            self.clients.cluster_operators, self.clients.deployments, self.params, cr, error, keep_degraded
        )
        with self._lock:
            try:
                return apply_mutator(mutator)
            except ApiException as e:
                raise ApplyError(mutator.name(), sanitize_exception(e)) from e

    def remove(self, cr: dict[str, Any]) -> None:
        """Delete every owned object, then tear down the storage.

        Raises:
            RegistryOperatorError: If an object could not be deleted
            StorageTeardownError: If the storage could not be removed
        """
        name = cr.get("metadata", {}).get("name", CONFIG_NAME)
        with self._lock, trace_span("generator.remove", kind=KIND_CONFIG, attributes={"config.name": name}):
            mutators = self.list_mutators(cr, None)
            state = ConfigStateMutator(self.clients.config_maps, self.params, cr, None)  # type: ignore[arg-type]
            mutators.append(state)
            for mutator in mutators:
                if not mutator.owned():
                    continue
                try:
                    mutator.delete(DeleteOptions(grace_period_seconds=0, propagation_policy="Foreground"))
                except ApiException as e:
                    if is_not_found(e):
                        continue
                    raise RegistryOperatorError(
                        f"failed to delete object {mutator.name()}: {sanitize_exception(e)}"
                    ) from e
                logger.info(f"Object {mutator.name()} deleted")
            self.teardown_storage(cr)

    def teardown_storage(self, cr: dict[str, Any]) -> None:
        """Poll the driver's remove_storage until it succeeds, fails for good or times out."""
        status = _status(cr)
        if not status.get("storage"):
            logger.info("No storage recorded in status, nothing to tear down")
            return

        driver = new_driver_from_status(status["storage"], self.clients, self.params)
        deadline = time.monotonic() + self.remove_timeout
        while True:
            retriable, error = driver.remove_storage(cr)
            if error is None:
                break
            if not retriable:
                raise StorageTeardownError("unable to remove storage", error)
            if time.monotonic() >= deadline:
                raise StorageTeardownError("timed out removing storage", error)
            logger.warning(f"Removing storage failed, retrying: {sanitize_exception(error)}")
            time.sleep(self.remove_interval)

        status["storage"] = {}
        status["storageManaged"] = False

    def bootstrap(self) -> dict[str, Any]:
        """Create the default Config if missing and publish the ClusterOperator.

        Returns:
            The existing or newly created Config
        """
        try:
            cr = self.clients.configs.get(CONFIG_NAME)
        except ApiException as e:
            if not is_not_found(e):
                raise
            logger.info(f"Creating default Config {CONFIG_NAME}")
            try:
                cr = self.clients.configs.create(default_config())
            except ApiException as create_error:
                if not is_conflict(create_error):
                    raise
                cr = self.clients.configs.get(CONFIG_NAME)

        try:
            self.apply_cluster_operator(cr, keep_degraded=True)
        except RegistryOperatorError as e:
            logger.error(f"Unable to create cluster operator resource: {e}")
        return cr
