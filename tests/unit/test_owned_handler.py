"""Tests for the owned-object event handler."""

from __future__ import annotations

from unittest.mock import Mock, patch

import pytest
from kubernetes.client.exceptions import ApiException

from conftest import all_writes, api_error, make_config, reset_calls
from registry_operator.constants import (
    CLUSTER_OPERATOR_NAME,
    CONFIG_NAME,
    PRIVATE_CONFIGURATION_SECRET_NAME,
)
from registry_operator.exceptions import ApplyError, ConfigurationError
from registry_operator.handlers import owned
from registry_operator.handlers.owned import OwnedObjectHandler, is_owned_by_config
from registry_operator.handlers.shared import persist_config_status
from registry_operator.resource.mutator import owner_reference
from registry_operator.utils.conditions import find_condition


def _owned_by(cr, kind="Secret", name="obj"):
    return {
        "apiVersion": "v1",
        "kind": kind,
        "metadata": {"name": name, "ownerReferences": [owner_reference(cr)]},
    }


@pytest.fixture
def handler():
    return OwnedObjectHandler()


@pytest.fixture
def applied(installed_generator, config_cr, clients):
    installed_generator.apply(config_cr)
    reset_calls(clients)
    return config_cr


class TestIsOwnedByConfig:
    """Test cases for the kopf filter."""

    def test_owned(self, config_cr):
        assert is_owned_by_config(_owned_by(config_cr))

    def test_not_owned(self):
        assert not is_owned_by_config({"metadata": {}})

    def test_other_controller(self):
        ref = {"apiVersion": "apps/v1", "kind": "ReplicaSet", "name": "x", "uid": "u", "controller": True}
        assert not is_owned_by_config({"metadata": {"ownerReferences": [ref]}})


class TestResolveConfig:
    """Test cases for OwnedObjectHandler.resolve_config."""

    def test_resolves_managed_config(self, handler, generator, config_cr):
        cr = handler.resolve_config(generator, _owned_by(config_cr))
        assert cr["metadata"]["uid"] == config_cr["metadata"]["uid"]

    def test_config_gone(self, handler, generator, clients, config_cr):
        obj = _owned_by(config_cr)
        clients.configs.delete(CONFIG_NAME)
        assert handler.resolve_config(generator, obj) is None

    def test_other_incarnation(self, handler, generator, config_cr):
        stale = dict(config_cr, metadata=dict(config_cr["metadata"], uid="old-uid"))
        assert handler.resolve_config(generator, _owned_by(stale)) is None

    @pytest.mark.parametrize("state", ["Unmanaged", "Removed"])
    def test_not_managed(self, handler, generator, clients, state):
        cr = clients.configs.seed(make_config(managementState=state))
        assert handler.resolve_config(generator, _owned_by(cr)) is None

    def test_being_deleted(self, handler, generator, clients):
        cr = make_config()
        cr["metadata"]["deletionTimestamp"] = "2024-01-01T00:00:00Z"
        cr = clients.configs.seed(cr)
        assert handler.resolve_config(generator, _owned_by(cr)) is None

    def test_wrong_api_version(self, handler, generator, config_cr):
        obj = _owned_by(config_cr)
        obj["metadata"]["ownerReferences"][0]["apiVersion"] = "example.com/v1"
        assert handler.resolve_config(generator, obj) is None

    def test_lookup_errors_propagate(self, handler, generator, clients, config_cr):
        with patch.object(clients.configs, "get", side_effect=api_error(500)):
            with pytest.raises(ApiException):
                handler.resolve_config(generator, _owned_by(config_cr))


class TestHandle:
    """Test cases for OwnedObjectHandler.handle."""

    def test_unknown_kind_is_ignored(self, handler, applied, clients):
        handler.handle("MODIFIED", _owned_by(applied, kind="Pod"))
        assert all_writes(clients) == []

    def test_deleted_secret_is_recreated(self, handler, applied, clients, params, kopf_events):
        secret = clients.secrets.get(PRIVATE_CONFIGURATION_SECRET_NAME, params.namespace)
        clients.secrets.delete(PRIVATE_CONFIGURATION_SECRET_NAME, params.namespace)

        handler.handle("DELETED", secret)

        assert clients.secrets.get(PRIVATE_CONFIGURATION_SECRET_NAME, params.namespace)
        stored = clients.configs.get(CONFIG_NAME)
        assert find_condition(stored["status"]["conditions"], "Available")["status"] == "True"

    def test_deployment_status_change_refreshes_status_only(self, handler, applied, clients, params, kopf_events):
        deployment = clients.deployments.get(params.deployment_name, params.namespace)
        deployment["kind"] = "Deployment"
        deployment["status"] = {"replicas": 1, "updatedReplicas": 1, "availableReplicas": 1}
        clients.deployments.seed(deployment)

        handler.handle("MODIFIED", deployment)

        kinds = {kind for kind, _, _ in all_writes(clients)}
        assert kinds == {"ClusterOperator", "Config"}
        operator = clients.cluster_operators.get(CLUSTER_OPERATOR_NAME)
        assert find_condition(operator["status"]["conditions"], "Available")["status"] == "True"
        assert find_condition(operator["status"]["conditions"], "Progressing")["status"] == "False"

    def test_deployment_status_change_keeps_failure(
        self, handler, applied, installed_generator, clients, params, kopf_events
    ):
        failing = dict(applied, spec=dict(applied["spec"], storage={"s3": {}, "filesystem": {"emptyDir": {}}}))
        with pytest.raises(ConfigurationError):
            installed_generator.apply(failing)
        clients.configs.replace_status(failing)
        deployment = clients.deployments.get(params.deployment_name, params.namespace)
        deployment["kind"] = "Deployment"
        deployment["status"] = {"replicas": 1, "updatedReplicas": 1, "availableReplicas": 1}
        clients.deployments.seed(deployment)

        handler.handle("MODIFIED", deployment)

        operator = clients.cluster_operators.get(CLUSTER_OPERATOR_NAME)
        degraded = find_condition(operator["status"]["conditions"], "Degraded")
        assert degraded["status"] == "True"
        assert "more than one storage backend" in degraded["message"]
        assert find_condition(operator["status"]["conditions"], "Available")["status"] == "True"
        stored = clients.configs.get(CONFIG_NAME)
        available = find_condition(stored["status"]["conditions"], "Available")
        assert available["status"] == "False"
        assert available["message"] != "all resources applied"
        assert find_condition(stored["status"]["conditions"], "Progressing")["status"] == "False"

    def test_deployment_status_change_sets_degraded_false_when_missing(
        self, handler, installed_generator, config_cr, clients, params, kopf_events
    ):
        installed_generator.apply(config_cr)
        clients.cluster_operators.delete(CLUSTER_OPERATOR_NAME)
        deployment = clients.deployments.get(params.deployment_name, params.namespace)
        deployment["kind"] = "Deployment"

        handler.handle("MODIFIED", deployment)

        operator = clients.cluster_operators.get(CLUSTER_OPERATOR_NAME)
        assert find_condition(operator["status"]["conditions"], "Degraded")["status"] == "False"

    def test_deleted_deployment_is_recreated(self, handler, applied, clients, params, kopf_events):
        deployment = clients.deployments.get(params.deployment_name, params.namespace)
        deployment["kind"] = "Deployment"
        clients.deployments.delete(params.deployment_name, params.namespace)

        handler.handle("DELETED", deployment)

        assert clients.deployments.get(params.deployment_name, params.namespace)

    def test_unresolved_config_is_ignored(self, handler, applied, clients):
        handler.handle("MODIFIED", _owned_by({"metadata": {"name": CONFIG_NAME, "uid": "old-uid"}}))
        assert all_writes(clients) == []

    def test_status_is_persisted_on_failure(self, handler, applied, clients, kopf_events):
        with patch.object(clients.services, "get", side_effect=api_error(500)):
            with pytest.raises(ApplyError):
                handler.handle("MODIFIED", _owned_by(applied, kind="Service"))

        stored = clients.configs.get(CONFIG_NAME)
        assert find_condition(stored["status"]["conditions"], "Available")["status"] == "False"

    def test_module_function_dispatches(self, applied, clients, params, kopf_events):
        secret = clients.secrets.get(PRIVATE_CONFIGURATION_SECRET_NAME, params.namespace)
        clients.secrets.delete(PRIVATE_CONFIGURATION_SECRET_NAME, params.namespace)

        owned.handle_owned_event(event={"type": "DELETED"}, body=secret)

        assert clients.secrets.get(PRIVATE_CONFIGURATION_SECRET_NAME, params.namespace)


class TestPersistConfigStatus:
    """Test cases for persist_config_status."""

    def test_unchanged_status_is_not_written(self, generator, clients, config_cr):
        config_cr["status"] = {"a": 1}
        assert persist_config_status(generator, config_cr, {"a": 1}) is False
        assert clients.configs.writes == []

    def test_changed_status_is_written(self, generator, clients, config_cr):
        config_cr["status"] = {"a": 1}
        assert persist_config_status(generator, config_cr, {}) is True
        assert clients.configs.get(CONFIG_NAME)["status"] == {"a": 1}

    def test_conflict_is_skipped(self, generator, clients, config_cr):
        config_cr["status"] = {"a": 1}
        clients.configs.conflicts = 1
        assert persist_config_status(generator, config_cr, {}) is False

    def test_other_errors_propagate(self, generator, clients, config_cr):
        config_cr["status"] = {"a": 1}
        clients.configs.replace_status = Mock(side_effect=api_error(500))
        with pytest.raises(ApiException):
            persist_config_status(generator, config_cr, {})


class TestRegistration:
    """Test cases for the owned kinds table."""

    def test_every_owned_kind_has_a_handler(self, handler):
        assert set(handler.handlers) == set(owned.OWNED_RESOURCES)
