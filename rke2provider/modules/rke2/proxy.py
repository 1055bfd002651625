"""Proxy environment lines for the RKE2 service and its containerd."""

import logging
from typing import Any, List, Mapping

from .models import EnvStrategy

logger = logging.getLogger("rke2.proxy")

# In-cluster service domains that must never go through the proxy
K8S_NO_PROXY = ".svc,.svc.cluster,.svc.cluster.local"

CONTAINERD_PREFIX = "CONTAINERD_"


def option_cidr(options: Mapping[str, Any], key: str) -> str:
    """Return a CIDR option as a string, or "" when absent or not a string."""
    value = options.get(key)
    if value is None:
        return ""
    if not isinstance(value, str):
        logger.warning(f"Ignoring user option {key!r}: expected a string, got {type(value).__name__}")
        return ""
    return value


def compose_no_proxy(base_no_proxy: str, cluster_cidr: str = "", service_cidr: str = "") -> str:
    """Build the NO_PROXY value.

    The base value comes first, then each non-empty CIDR and finally the
    Kubernetes service suffixes. Segments are always comma separated, so an
    empty base produces a leading comma.
    """
    no_proxy = base_no_proxy
    if cluster_cidr:
        no_proxy = f"{no_proxy},{cluster_cidr}"
    if service_cidr:
        no_proxy = f"{no_proxy},{service_cidr}"
    return f"{no_proxy},{K8S_NO_PROXY}"


def build_proxy_env(
    http_proxy: str,
    https_proxy: str,
    base_no_proxy: str,
    cluster_cidr: str = "",
    service_cidr: str = "",
    strategy: EnvStrategy = EnvStrategy.CONTAINERD,
) -> List[str]:
    """Return the ordered environment file lines.

    Each non-empty variable is emitted as ``NAME=value``, followed by its
    ``CONTAINERD_NAME=value`` twin when the containerd strategy is used.
    """
    variables = (
        ("HTTP_PROXY", http_proxy),
        ("HTTPS_PROXY", https_proxy),
        ("NO_PROXY", compose_no_proxy(base_no_proxy, cluster_cidr, service_cidr)),
    )

    lines: List[str] = []
    for name, value in variables:
        if not value:
            continue
        lines.append(f"{name}={value}")
        if strategy is EnvStrategy.CONTAINERD:
            lines.append(f"{CONTAINERD_PREFIX}{name}={value}")
    return lines


def proxy_env_content(env, options: Mapping[str, Any], strategy: EnvStrategy = EnvStrategy.CONTAINERD) -> str:
    """Render the environment file from an EffectiveEnvironment and parsed user options."""
    lines = build_proxy_env(
        env.http_proxy,
        env.https_proxy,
        env.no_proxy,
        cluster_cidr=option_cidr(options, "cluster-cidr"),
        service_cidr=option_cidr(options, "service-cidr"),
        strategy=strategy,
    )
    return "\n".join(lines)
