"""
RKE2 Cluster Provider Module

Renders the boot-time configuration for a node joining an RKE2 cluster:

- Role resolution (init, control plane or worker)
- Proxy environment for the RKE2 service and containerd
- Configuration fragments and the merge into /etc/rancher/rke2/config.yaml
- Service enablement for rke2-server or rke2-agent
"""

from .models import (
    ClusterRole,
    ClusterDescriptor,
    EnvStrategy,
    ServiceSettings,
    File,
    Step,
    Systemctl,
    YipConfig,
)
from .roles import resolve, SERVER_SERVICE, AGENT_SERVICE
from .proxy import build_proxy_env, compose_no_proxy, K8S_NO_PROXY
from .environment import EffectiveEnvironment, scan_config_env
from .render import render, to_yaml
from .utils import merge_fragments

__all__ = [
    # Models
    'ClusterRole',
    'ClusterDescriptor',
    'EnvStrategy',
    'ServiceSettings',
    'File',
    'Step',
    'Systemctl',
    'YipConfig',

    # Rendering
    'resolve',
    'build_proxy_env',
    'compose_no_proxy',
    'render',
    'to_yaml',
    'merge_fragments',

    # Environment
    'EffectiveEnvironment',
    'scan_config_env',

    'SERVER_SERVICE',
    'AGENT_SERVICE',
    'K8S_NO_PROXY',
]
