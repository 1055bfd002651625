"""Map a cluster role onto the RKE2 service and its join settings."""

import logging

from .models import ClusterRole, ServiceSettings

logger = logging.getLogger("rke2.roles")

SERVER_SERVICE = "rke2-server"
AGENT_SERVICE = "rke2-agent"

# Supervisor port RKE2 servers listen on for node registration
SUPERVISOR_PORT = 9345


def parse_role(role: str) -> ClusterRole:
    """Return the ClusterRole for a raw role string.

    Unrecognized values fall back to a joining control-plane node.
    """
    try:
        return ClusterRole(role)
    except ValueError:
        logger.warning(f"Unrecognized cluster role {role!r}, treating it as '{ClusterRole.CONTROL_PLANE.value}'")
        return ClusterRole.CONTROL_PLANE


def resolve(role: str, cluster_token: str, control_plane_host: str) -> ServiceSettings:
    """Compute the service identity and join settings for a node.

    Args:
        role: Role assigned by the host (init, controlplane or worker)
        cluster_token: Shared cluster join token
        control_plane_host: Hostname or IP of the control plane, used verbatim

    Returns:
        ServiceSettings for the node
    """
    cluster_role = parse_role(role)

    join_server = f"https://{control_plane_host}:{SUPERVISOR_PORT}"
    cluster_init = cluster_role is ClusterRole.INIT
    if cluster_init:
        join_server = ""

    service_name = AGENT_SERVICE if cluster_role is ClusterRole.WORKER else SERVER_SERVICE

    return ServiceSettings(
        service_name=service_name,
        cluster_init=cluster_init,
        join_server=join_server,
        token=cluster_token,
        tls_san=(control_plane_host,),
    )
