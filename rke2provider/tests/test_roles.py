import logging

import pytest

from rke2provider.modules.rke2.models import ClusterRole
from rke2provider.modules.rke2.roles import resolve, parse_role


@pytest.mark.parametrize("role,service", [
    ("init", "rke2-server"),
    ("controlplane", "rke2-server"),
    ("worker", "rke2-agent"),
])
def test_service_name_follows_role(role, service):
    assert resolve(role, "abc", "10.0.0.1").service_name == service


def test_init_node_starts_the_cluster():
    settings = resolve("init", "abc", "10.0.0.1")
    assert settings.cluster_init is True
    assert settings.join_server == ""


@pytest.mark.parametrize("role", ["controlplane", "worker"])
def test_joining_nodes_register_on_supervisor_port(role):
    settings = resolve(role, "abc", "cp.local")
    assert settings.cluster_init is False
    assert settings.join_server == "https://cp.local:9345"


@pytest.mark.parametrize("role", ["init", "controlplane", "worker"])
def test_tls_san_is_control_plane_host(role):
    assert resolve(role, "abc", "cp.local").tls_san == ("cp.local",)


def test_host_is_not_validated():
    assert resolve("worker", "abc", "not a host").join_server == "https://not a host:9345"


def test_unknown_role_falls_back_to_server(caplog):
    with caplog.at_level(logging.WARNING):
        settings = resolve("master", "abc", "cp.local")
    assert settings.service_name == "rke2-server"
    assert settings.cluster_init is False
    assert settings.join_server == "https://cp.local:9345"
    assert "Unrecognized cluster role" in caplog.text


def test_parse_role_accepts_enum_values():
    assert parse_role("worker") is ClusterRole.WORKER
    assert parse_role(ClusterRole.INIT) is ClusterRole.INIT


def test_rke2_config_keys():
    config = resolve("init", "abc", "10.0.0.1").to_rke2_config()
    assert config == {
        "cluster-init": True,
        "token": "abc",
        "server": "",
        "tls-san": ["10.0.0.1"],
    }
