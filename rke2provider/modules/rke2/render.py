"""Render the boot-time configuration document for an RKE2 node.

The document installs two configuration fragments and the service
environment file, merges every fragment into the consolidated RKE2 config
and enables the server or agent service:

- ``config.d/90_userdata.yaml``: user options
- ``config.d/99_userdata.yaml``: role-derived settings (wins on conflicts)
- ``/etc/default/<service>``: proxy environment
"""

import logging
import posixpath
from typing import Optional

import yaml

from .environment import EffectiveEnvironment
from .models import ClusterDescriptor, EnvStrategy, File, Step, Systemctl, YipConfig
from .proxy import proxy_env_content
from .roles import resolve
from .utils import normalize_options, parse_options, to_json_content

logger = logging.getLogger("rke2.render")

PROVIDER_NAME = "RKE2 Cluster Provider"
BOOT_STAGE = "boot.before"

CONFIG_DIR = "/etc/rancher/rke2/config.d"
CONFIG_FILE = "/etc/rancher/rke2/config.yaml"
SERVICE_ENV_DIR = "/etc/default"

USER_FRAGMENT = "90_userdata.yaml"
PROVIDER_FRAGMENT = "99_userdata.yaml"

FILE_PERMISSIONS = 0o400

# Objects deep-merged, arrays concatenated, anything else taken from the later file
MERGE_PROGRAM = (
    'def merge($a; $b): '
    'if ($a|type) == "object" and ($b|type) == "object" '
    'then reduce ($b|keys_unsorted[]) as $k ($a; .[$k] = merge(.[$k]; $b[$k])) '
    'elif ($a|type) == "array" and ($b|type) == "array" then $a + $b '
    'elif $b == null then $a '
    'else $b end; '
    'reduce .[] as $f ({}; merge(.; $f))'
)


def merge_command(config_dir: str = CONFIG_DIR, output: str = CONFIG_FILE) -> str:
    """Shell command merging every fragment of config_dir into output."""
    return f"jq -s '{MERGE_PROGRAM}' {config_dir}/*.yaml > {output}"


def render(
    cluster: ClusterDescriptor,
    env: Optional[EffectiveEnvironment] = None,
    strategy: EnvStrategy = EnvStrategy.CONTAINERD,
) -> YipConfig:
    """Build the boot configuration for a node.

    Args:
        cluster: Cluster descriptor received from the host
        env: Environment snapshot to read proxy settings from
        strategy: Flavour of the service environment file

    Returns:
        YipConfig: The document the host executes
    """
    if env is None:
        env = EffectiveEnvironment()

    options = normalize_options(cluster.options)
    settings = resolve(cluster.role, cluster.cluster_token, cluster.control_plane_host)
    logger.info(f"Rendering {settings.service_name} configuration for role {cluster.role!r}")

    user_content = to_json_content(options)
    provider_content = to_json_content(settings.to_rke2_config())
    env_content = proxy_env_content(env, parse_options(options), strategy=strategy)

    commands = [merge_command()]
    if strategy is EnvStrategy.PLAIN:
        commands.append("systemctl daemon-reload")

    install = Step(
        name="Install RKE2 Configuration Files",
        files=(
            File(posixpath.join(CONFIG_DIR, USER_FRAGMENT), FILE_PERMISSIONS, user_content),
            File(posixpath.join(CONFIG_DIR, PROVIDER_FRAGMENT), FILE_PERMISSIONS, provider_content),
            File(posixpath.join(SERVICE_ENV_DIR, settings.service_name), FILE_PERMISSIONS, env_content),
        ),
        commands=tuple(commands),
    )
    services = Step(
        name="Enable Systemd Services",
        systemctl=Systemctl(
            enable=(settings.service_name,),
            start=(settings.service_name,),
        ),
    )

    return YipConfig(name=PROVIDER_NAME, stages=((BOOT_STAGE, (install, services)),))


def to_yaml(config: YipConfig) -> str:
    """Serialize a rendered document for the host."""
    return yaml.safe_dump(config.to_dict(), default_flow_style=False, sort_keys=False)
