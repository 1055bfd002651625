"""Data models for the RKE2 cluster provider."""

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ClusterRole(str, Enum):
    """Roles a node can be assigned by the host runtime."""
    INIT = 'init'
    CONTROL_PLANE = 'controlplane'
    WORKER = 'worker'


class EnvStrategy(str, Enum):
    """How the service environment file is written."""
    CONTAINERD = 'containerd'
    PLAIN = 'plain'


class ClusterDescriptor(BaseModel):
    """The ``cluster`` section handed over by the host runtime."""
    model_config = ConfigDict(populate_by_name=True, extra='ignore', frozen=True)

    role: str = ''
    cluster_token: str = ''
    control_plane_host: str = ''
    options: str = Field(default='', alias='config')

    @field_validator('role', 'cluster_token', 'control_plane_host', mode='before')
    @classmethod
    def none_to_empty(cls, v: Any) -> Any:
        return '' if v is None else v

    @field_validator('options', mode='before')
    @classmethod
    def serialize_options(cls, v: Any) -> Any:
        """Accept options given inline as a mapping as well as a YAML string."""
        if v is None:
            return ''
        if isinstance(v, (dict, list)):
            return json.dumps(v, sort_keys=True)
        return v


@dataclass(frozen=True)
class ServiceSettings:
    """Role-derived settings for one node."""
    service_name: str
    cluster_init: bool
    join_server: str
    token: str
    tls_san: Tuple[str, ...]

    def to_rke2_config(self) -> Dict[str, Any]:
        """Map the settings onto RKE2 config keys."""
        return {
            'cluster-init': self.cluster_init,
            'token': self.token,
            'server': self.join_server,
            'tls-san': list(self.tls_san),
        }


@dataclass(frozen=True)
class File:
    """A file the host writes before boot."""
    path: str
    permissions: int
    content: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            'path': self.path,
            'permissions': self.permissions,
            'content': self.content,
        }


@dataclass(frozen=True)
class Systemctl:
    enable: Tuple[str, ...] = ()
    start: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {'enable': list(self.enable), 'start': list(self.start)}


@dataclass(frozen=True)
class Step:
    """One step of a boot stage."""
    name: str
    files: Tuple[File, ...] = ()
    commands: Tuple[str, ...] = ()
    systemctl: Optional[Systemctl] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {'name': self.name}
        if self.files:
            data['files'] = [f.to_dict() for f in self.files]
        if self.commands:
            data['commands'] = list(self.commands)
        if self.systemctl is not None:
            data['systemctl'] = self.systemctl.to_dict()
        return data


@dataclass(frozen=True)
class YipConfig:
    """The rendered document returned to the host for execution."""
    name: str
    stages: Tuple[Tuple[str, Tuple[Step, ...]], ...] = field(default_factory=tuple)

    def steps(self, stage: str) -> List[Step]:
        for name, steps in self.stages:
            if name == stage:
                return list(steps)
        return []

    def to_dict(self) -> Dict[str, Any]:
        return {
            'name': self.name,
            'stages': {
                name: [s.to_dict() for s in steps]
                for name, steps in self.stages
            },
        }
