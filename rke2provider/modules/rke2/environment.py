"""Process environment snapshot and the cloud-config directory scan.

The scan collects ``env`` entries (``KEY=VALUE`` strings or a mapping) from
YAML files under the configured directories. Directories are read in order,
files sorted by name inside each, and later entries override earlier ones.
The result is merged into an immutable snapshot instead of being written
back into ``os.environ``.
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, Iterable, Mapping, Optional

import yaml

from ...config import Config
from .utils import FRAGMENT_SUFFIXES

logger = logging.getLogger("rke2.environment")


def _env_pairs(entries: Any, source: Path) -> Dict[str, str]:
    pairs: Dict[str, str] = {}
    if isinstance(entries, dict):
        for key, value in entries.items():
            pairs[str(key)] = "" if value is None else str(value)
    elif isinstance(entries, list):
        for entry in entries:
            key, sep, value = str(entry).partition("=")
            if not sep:
                logger.debug(f"Ignoring env entry without '=' in {source}: {entry!r}")
                continue
            pairs[key] = value
    elif entries is not None:
        logger.warning(f"Ignoring 'env' in {source}: expected a list or mapping")
    return pairs


def scan_config_env(directories: Optional[Iterable[str]] = None) -> Dict[str, str]:
    """Collect environment pairs declared in cloud-config files.

    Args:
        directories: Directories to scan, defaults to Config.SCAN_DIRS

    Returns:
        dict: Variable name to value
    """
    if directories is None:
        directories = Config.SCAN_DIRS

    env: Dict[str, str] = {}
    for directory in directories:
        root = Path(directory)
        if not root.is_dir():
            logger.debug(f"Config directory {root} does not exist, skipping")
            continue
        for path in sorted(p for p in root.rglob("*") if p.is_file() and p.suffix in FRAGMENT_SUFFIXES):
            try:
                with open(path, "r", encoding="utf-8") as f:
                    data = yaml.safe_load(f)
            except (OSError, yaml.YAMLError) as e:
                logger.warning(f"Could not read config file {path}: {e}")
                continue
            if isinstance(data, dict) and "env" in data:
                env.update(_env_pairs(data["env"], path))
    if env:
        logger.debug(f"Found {len(env)} environment entries in config directories")
    return env


@dataclass(frozen=True)
class EffectiveEnvironment:
    """Read-only view of the variables used during one render."""
    values: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))

    def __post_init__(self):
        object.__setattr__(self, "values", MappingProxyType(dict(self.values)))

    def get(self, key: str, default: str = "") -> str:
        return self.values.get(key, default)

    @property
    def http_proxy(self) -> str:
        return self.get("HTTP_PROXY")

    @property
    def https_proxy(self) -> str:
        return self.get("HTTPS_PROXY")

    @property
    def no_proxy(self) -> str:
        return self.get("NO_PROXY")

    @classmethod
    def build(
        cls,
        base: Optional[Mapping[str, str]] = None,
        scanned: Optional[Mapping[str, str]] = None,
    ) -> 'EffectiveEnvironment':
        """Overlay scanned config pairs on a base environment (os.environ by default)."""
        values = dict(os.environ if base is None else base)
        values.update(scanned or {})
        return cls(values)

    @classmethod
    def from_process(cls, directories: Optional[Iterable[str]] = None) -> 'EffectiveEnvironment':
        """Snapshot os.environ merged with the config directory scan."""
        return cls.build(os.environ, scan_config_env(directories))
