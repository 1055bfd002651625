"""Host plugin protocol.

The host runs the provider binary with the event name as its only argument
and writes one JSON event to stdin::

    {"name": "cluster.provision", "data": "{\"config\": \"<cloud-config>\"}"}

The provider answers with one JSON object on stdout::

    {"state": "", "data": "<rendered document>", "error": ""}
"""
import json
import logging
from typing import Any, Callable, Dict, IO, Optional

import yaml
from pydantic import ValidationError

from .modules.rke2.environment import EffectiveEnvironment
from .modules.rke2.models import ClusterDescriptor, EnvStrategy, YipConfig
from .modules.rke2.render import render, to_yaml
from .utils import redact_sensitive_data

logger = logging.getLogger("rke2.plugin")

EVENT_CLUSTER_PROVISION = "cluster.provision"

Provider = Callable[[ClusterDescriptor], YipConfig]


class PluginError(Exception):
    """Raised when the host invocation cannot be served at all."""
    pass


def response(data: str = "", error: str = "", state: str = "") -> Dict[str, str]:
    return {"state": state, "data": data, "error": error}


def default_provider(strategy: EnvStrategy = EnvStrategy.CONTAINERD, scan_dirs=None) -> Provider:
    """Provider rendering against the process environment and config scan."""
    def provide(cluster: ClusterDescriptor) -> YipConfig:
        env = EffectiveEnvironment.from_process(scan_dirs)
        return render(cluster, env, strategy=strategy)
    return provide


def cluster_from_event(event: Dict[str, Any]) -> Optional[ClusterDescriptor]:
    """Extract the cluster descriptor from a provision event.

    Returns None when the cloud-config carries no ``cluster`` section.

    Raises:
        ValueError: If the event payload is malformed
    """
    raw = event.get("data") or "{}"
    try:
        payload = json.loads(raw) if isinstance(raw, str) else raw
    except json.JSONDecodeError as e:
        raise ValueError(f"event data is not valid JSON: {e}") from e
    if not isinstance(payload, dict):
        raise ValueError("event data must be a JSON object")

    try:
        cloud_config = yaml.safe_load(payload.get("config") or "") or {}
    except yaml.YAMLError as e:
        raise ValueError(f"cloud-config is not valid YAML: {e}") from e
    if not isinstance(cloud_config, dict):
        raise ValueError("cloud-config must be a mapping")

    cluster = cloud_config.get("cluster")
    if not cluster:
        return None
    if not isinstance(cluster, dict):
        raise ValueError("cluster section must be a mapping")

    logger.debug(f"Cluster section: {redact_sensitive_data(cluster)}")
    try:
        return ClusterDescriptor.model_validate(cluster)
    except ValidationError as e:
        raise ValueError(f"invalid cluster section: {e}") from e


def handle_provision(event: Dict[str, Any], provider: Provider) -> Dict[str, str]:
    """Serve a cluster.provision event; payload problems go into the response error."""
    try:
        cluster = cluster_from_event(event)
    except ValueError as e:
        logger.error(f"Invalid provision event: {e}")
        return response(error=str(e))

    if cluster is None:
        logger.info("No cluster section in configuration, nothing to provision")
        return response()

    return response(data=to_yaml(provider(cluster)))


HANDLERS = {
    EVENT_CLUSTER_PROVISION: handle_provision,
}


def run(event_name: str, stdin: IO[str], stdout: IO[str], provider: Provider) -> None:
    """Read one event from stdin, dispatch it and write the response to stdout.

    Raises:
        PluginError: If the event is unknown or stdin does not hold an event
    """
    handler = HANDLERS.get(event_name)
    if handler is None:
        raise PluginError(f"unsupported event: {event_name!r}")

    raw = stdin.read()
    try:
        event = json.loads(raw) if raw.strip() else {}
    except json.JSONDecodeError as e:
        raise PluginError(f"could not decode event from stdin: {e}") from e
    if not isinstance(event, dict):
        raise PluginError("event must be a JSON object")

    result = handler(event, provider)
    json.dump(result, stdout)
    stdout.write("\n")
    stdout.flush()
