"""Tests for the registry pod template."""

from __future__ import annotations

import pytest

from conftest import make_config
from registry_operator.constants import (
    ANNOTATION_CONFIG_MAP_CHECKSUM,
    ANNOTATION_SECRET_CHECKSUM,
    ANNOTATION_SUPPLEMENTAL_GROUPS,
    CERTIFICATES_CONFIG_MAP_NAME,
    PRIVATE_CONFIGURATION_SECRET_NAME,
)
from registry_operator.exceptions import ConfigurationError
from registry_operator.resource.podtemplate import (
    log_level,
    make_pod_template_spec,
    probe,
    request_limit_env,
    security_context,
)
from registry_operator.storage import new_driver


def _env(template):
    return {e["name"]: e.get("value", e.get("valueFrom")) for e in template["spec"]["containers"][0]["env"]}


@pytest.fixture
def seeded(clients, params):
    clients.secrets.seed(
        {"metadata": {"name": PRIVATE_CONFIGURATION_SECRET_NAME, "namespace": params.namespace}, "data": {"a": "Yg=="}}
    )
    clients.config_maps.seed(
        {"metadata": {"name": CERTIFICATES_CONFIG_MAP_NAME, "namespace": params.namespace}, "data": {}}
    )
    return clients


class TestLogLevel:
    """Test cases for log_level."""

    @pytest.mark.parametrize(
        "level,expected",
        [(None, "info"), (0, "error"), (1, "warn"), (2, "info"), (3, "info"), (4, "debug"), (9, "debug")],
    )
    def test_mapping(self, level, expected):
        spec = {} if level is None else {"logging": level}
        assert log_level({"spec": spec}) == expected


class TestRequestLimits:
    """Test cases for request_limit_env."""

    def test_no_limits(self):
        assert request_limit_env(make_config(), "read") == []

    def test_limits(self):
        cr = make_config(requests={"write": {"maxRunning": 5, "maxInQueue": 10}})
        env = {e["name"]: e["value"] for e in request_limit_env(cr, "write")}
        assert env == {
            "REGISTRY_OPENSHIFT_REQUESTS_WRITE_MAXRUNNING": "5",
            "REGISTRY_OPENSHIFT_REQUESTS_WRITE_MAXINQUEUE": "10",
            "REGISTRY_OPENSHIFT_REQUESTS_WRITE_MAXWAITINQUEUE": "0s",
        }

    def test_negative_limit_is_rejected(self):
        cr = make_config(requests={"read": {"maxRunning": -1}})
        with pytest.raises(ConfigurationError):
            request_limit_env(cr, "read")


class TestSecurityContext:
    """Test cases for security_context."""

    def test_fs_group_from_annotation(self, clients, params):
        assert security_context(clients, params.namespace) == {"fsGroup": 1000430000}

    def test_missing_annotation(self, clients, params):
        ns = clients.namespaces.get(params.namespace)
        ns["metadata"]["annotations"] = {}
        clients.namespaces.seed(ns)
        with pytest.raises(ConfigurationError):
            security_context(clients, params.namespace)

    @pytest.mark.parametrize("value", ["1000430000", "abc/10"])
    def test_malformed_annotation(self, clients, params, value):
        ns = clients.namespaces.get(params.namespace)
        ns["metadata"]["annotations"] = {ANNOTATION_SUPPLEMENTAL_GROUPS: value}
        clients.namespaces.seed(ns)
        with pytest.raises(ConfigurationError):
            security_context(clients, params.namespace)


class TestProbe:
    """Test cases for probe."""

    def test_https_when_tls(self, params):
        assert probe(make_config(), params)["httpGet"]["scheme"] == "HTTPS"

    def test_http_without_tls(self, params):
        result = probe(make_config(tls=False), params, initial_delay_seconds=10)
        assert result["httpGet"]["scheme"] == "HTTP"
        assert result["initialDelaySeconds"] == 10


class TestMakePodTemplateSpec:
    """Test cases for make_pod_template_spec."""

    def test_filesystem_template(self, seeded, params):
        cr = make_config()
        driver = new_driver(cr["spec"]["storage"], seeded, params)

        template, annotations = make_pod_template_spec(cr, params, driver, seeded)

        env = _env(template)
        assert env["REGISTRY_STORAGE"] == "filesystem"
        assert env["REGISTRY_HTTP_TLS_CERTIFICATE"] == "/etc/secrets/tls.crt"
        assert annotations == {"imageregistry.operator.openshift.io/storagetype": "filesystem"}
        volumes = {v["name"] for v in template["spec"]["volumes"]}
        assert {"registry-storage", "registry-tls", "registry-certificates"} <= volumes
        assert template["spec"]["securityContext"] == {"fsGroup": 1000430000}
        assert template["metadata"]["annotations"][ANNOTATION_SECRET_CHECKSUM].startswith("sha256:")
        assert template["metadata"]["annotations"][ANNOTATION_CONFIG_MAP_CHECKSUM].startswith("sha256:")

    def test_secret_change_changes_template(self, seeded, params):
        cr = make_config()
        driver = new_driver(cr["spec"]["storage"], seeded, params)
        before, _ = make_pod_template_spec(cr, params, driver, seeded)

        secret = seeded.secrets.get(PRIVATE_CONFIGURATION_SECRET_NAME, params.namespace)
        secret["data"] = {"a": "Yw=="}
        seeded.secrets.seed(secret)
        after, _ = make_pod_template_spec(cr, params, driver, seeded)

        assert (
            before["metadata"]["annotations"][ANNOTATION_SECRET_CHECKSUM]
            != after["metadata"]["annotations"][ANNOTATION_SECRET_CHECKSUM]
        )

    def test_image_and_node_selector(self, seeded, params):
        cr = make_config(imagePullSpec="registry.example.com/registry:1", nodeSelector={"role": "infra"})
        driver = new_driver(cr["spec"]["storage"], seeded, params)

        template, _ = make_pod_template_spec(cr, params, driver, seeded)

        assert template["spec"]["containers"][0]["image"] == "registry.example.com/registry:1"
        assert template["spec"]["nodeSelector"] == {"role": "infra"}

    def test_no_tls_volume_without_tls(self, seeded, params):
        cr = make_config(tls=False)
        driver = new_driver(cr["spec"]["storage"], seeded, params)

        template, _ = make_pod_template_spec(cr, params, driver, seeded)

        assert "registry-tls" not in {v["name"] for v in template["spec"]["volumes"]}
        assert "REGISTRY_HTTP_TLS_CERTIFICATE" not in _env(template)
