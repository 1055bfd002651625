import json
import logging
import shutil
import subprocess

import pytest
import yaml

from rke2provider.modules.rke2.environment import EffectiveEnvironment
from rke2provider.modules.rke2.models import ClusterDescriptor, EnvStrategy
from rke2provider.modules.rke2.render import BOOT_STAGE, merge_command, render, to_yaml
from rke2provider.modules.rke2.schema import validation_errors
from rke2provider.modules.rke2.utils import merge_fragments

USER_FRAGMENT = "/etc/rancher/rke2/config.d/90_userdata.yaml"
PROVIDER_FRAGMENT = "/etc/rancher/rke2/config.d/99_userdata.yaml"


def files_of(config):
    install = config.steps(BOOT_STAGE)[0]
    return {f.path: f for f in install.files}


def env_lines(config, service):
    return files_of(config)[f"/etc/default/{service}"].content.split("\n")


@pytest.fixture
def empty_env():
    return EffectiveEnvironment.build(base={})


def test_init_node(empty_env):
    cluster = ClusterDescriptor(role="init", cluster_token="abc", control_plane_host="10.0.0.1")
    config = render(cluster, empty_env)

    provider = files_of(config)[PROVIDER_FRAGMENT].content
    assert provider == '{"cluster-init":true,"server":"","tls-san":["10.0.0.1"],"token":"abc"}'

    services = config.steps(BOOT_STAGE)[1].systemctl
    assert services.enable == ("rke2-server",)
    assert services.start == ("rke2-server",)


def test_worker_behind_http_proxy():
    env = EffectiveEnvironment.build(base={"HTTP_PROXY": "http://proxy:3128"})
    cluster = ClusterDescriptor(role="worker", cluster_token="abc", control_plane_host="cp.local")
    config = render(cluster, env)

    provider = json.loads(files_of(config)[PROVIDER_FRAGMENT].content)
    assert provider["server"] == "https://cp.local:9345"
    assert provider["cluster-init"] is False

    lines = env_lines(config, "rke2-agent")
    assert lines[:2] == ["HTTP_PROXY=http://proxy:3128", "CONTAINERD_HTTP_PROXY=http://proxy:3128"]
    assert not any("HTTPS_PROXY" in line for line in lines)
    assert config.steps(BOOT_STAGE)[1].systemctl.enable == ("rke2-agent",)


def test_cluster_cidrs_are_excluded_from_proxy(empty_env):
    cluster = ClusterDescriptor(
        role="controlplane",
        cluster_token="abc",
        control_plane_host="cp.local",
        options="cluster-cidr: 10.42.0.0/16\nservice-cidr: 10.43.0.0/16\n",
    )
    lines = env_lines(render(cluster, empty_env), "rke2-server")
    assert "NO_PROXY=,10.42.0.0/16,10.43.0.0/16,.svc,.svc.cluster,.svc.cluster.local" in lines


def test_empty_options_become_empty_object(empty_env):
    cluster = ClusterDescriptor(role="worker", cluster_token="abc", control_plane_host="cp.local")
    content = files_of(render(cluster, empty_env))[USER_FRAGMENT].content
    assert content == "{}"
    assert json.loads(content) == {}


def test_user_options_are_written_as_sorted_json(empty_env):
    cluster = ClusterDescriptor(
        role="init",
        control_plane_host="10.0.0.1",
        options="write-kubeconfig-mode: '0644'\ncni: calico\ntls-san:\n  - extra.local\n",
    )
    content = files_of(render(cluster, empty_env))[USER_FRAGMENT].content
    assert content == '{"cni":"calico","tls-san":["extra.local"],"write-kubeconfig-mode":"0644"}'


def test_dates_in_options_stay_strings(empty_env):
    cluster = ClusterDescriptor(role="init", control_plane_host="h", options="since: 2024-01-01\n")
    assert files_of(render(cluster, empty_env))[USER_FRAGMENT].content == '{"since":"2024-01-01"}'


def test_file_layout_and_permissions(empty_env):
    cluster = ClusterDescriptor(role="worker", cluster_token="abc", control_plane_host="cp.local")
    files = files_of(render(cluster, empty_env))
    assert list(files) == [USER_FRAGMENT, PROVIDER_FRAGMENT, "/etc/default/rke2-agent"]
    assert all(f.permissions == 0o400 for f in files.values())


def test_single_boot_stage_with_merge_command(empty_env):
    cluster = ClusterDescriptor(role="init", cluster_token="abc", control_plane_host="10.0.0.1")
    config = render(cluster, empty_env)

    assert [name for name, _ in config.stages] == ["boot.before"]
    install, services = config.steps(BOOT_STAGE)
    assert len(install.commands) == 1
    command = install.commands[0]
    assert command.startswith("jq -s ")
    assert command.endswith("/etc/rancher/rke2/config.d/*.yaml > /etc/rancher/rke2/config.yaml")
    assert services.systemctl is not None


@pytest.mark.skipif(shutil.which("jq") is None, reason="jq is not installed")
def test_merge_command_matches_python_merge(tmp_path, empty_env):
    cluster = ClusterDescriptor(
        role="controlplane",
        cluster_token="abc",
        control_plane_host="cp.local",
        options="tls-san: [extra]\ntoken: user\netcd: {a: 1, b: 2}\nserver: x\n",
    )
    config_dir = tmp_path / "config.d"
    config_dir.mkdir()
    files = files_of(render(cluster, empty_env))
    (config_dir / "90_userdata.yaml").write_text(files[USER_FRAGMENT].content)
    (config_dir / "99_userdata.yaml").write_text(files[PROVIDER_FRAGMENT].content)
    (config_dir / "95_extra.yaml").write_text('{"etcd":{"b":3,"c":{"d":true}},"tls-san":["mid"],"server":null}')
    out = tmp_path / "config.yaml"

    subprocess.run(merge_command(str(config_dir), str(out)), shell=True, check=True)

    merged = json.loads(out.read_text())
    assert merged == merge_fragments(config_dir)
    assert merged["tls-san"] == ["extra", "mid", "cp.local"]
    assert merged["etcd"] == {"a": 1, "b": 3, "c": {"d": True}}
    assert merged["token"] == "abc"
    assert merged["server"] == "https://cp.local:9345"


def test_plain_strategy(empty_env):
    env = EffectiveEnvironment.build(base={"HTTP_PROXY": "http://proxy:3128"})
    cluster = ClusterDescriptor(role="worker", cluster_token="abc", control_plane_host="cp.local")
    config = render(cluster, env, strategy=EnvStrategy.PLAIN)

    assert not any(line.startswith("CONTAINERD_") for line in env_lines(config, "rke2-agent"))
    assert config.steps(BOOT_STAGE)[0].commands[-1] == "systemctl daemon-reload"


def test_render_is_deterministic():
    env = EffectiveEnvironment.build(base={"HTTPS_PROXY": "https://p:3129", "NO_PROXY": "localhost"})
    cluster = ClusterDescriptor(
        role="controlplane",
        cluster_token="abc",
        control_plane_host="cp.local",
        options="service-cidr: 10.43.0.0/16\n",
    )
    assert to_yaml(render(cluster, env)) == to_yaml(render(cluster, env))


def test_malformed_options_do_not_abort_render(empty_env, caplog):
    # Known weakness: the user fragment degrades to empty content
    cluster = ClusterDescriptor(role="worker", cluster_token="abc", control_plane_host="cp.local",
                                options="cluster-cidr: [10.42.0.0/16\n")
    with caplog.at_level(logging.WARNING):
        config = render(cluster, empty_env)

    files = files_of(config)
    assert files[USER_FRAGMENT].content == ""
    assert json.loads(files[PROVIDER_FRAGMENT].content)["token"] == "abc"
    assert "NO_PROXY=,.svc,.svc.cluster,.svc.cluster.local" in env_lines(config, "rke2-agent")
    assert "Failed to convert configuration to JSON" in caplog.text


def test_non_string_cidr_contributes_nothing(empty_env):
    cluster = ClusterDescriptor(role="worker", cluster_token="abc", control_plane_host="cp.local",
                                options="cluster-cidr:\n  v4: 10.42.0.0/16\n")
    assert "NO_PROXY=,.svc,.svc.cluster,.svc.cluster.local" in env_lines(render(cluster, empty_env), "rke2-agent")


def test_document_matches_schema(empty_env):
    cluster = ClusterDescriptor(role="worker", cluster_token="abc", control_plane_host="cp.local")
    document = yaml.safe_load(to_yaml(render(cluster, empty_env)))
    assert validation_errors(document) == []
    assert document["stages"]["boot.before"][0]["files"][0]["permissions"] == 256
