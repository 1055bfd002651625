"""Utility functions for RKE2 configuration fragments."""

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Union

import yaml

logger = logging.getLogger("rke2.utils")

FRAGMENT_SUFFIXES = ('.yaml', '.yml')


def normalize_options(options: str) -> str:
    """Return the options string, or ``{}`` when nothing was supplied."""
    if not options or not options.strip():
        return "{}"
    return options


def parse_options(options: str) -> Dict[str, Any]:
    """Parse user options into a mapping.

    Unparsable or non-mapping options yield an empty dict and a warning.
    """
    try:
        data = yaml.safe_load(normalize_options(options))
    except yaml.YAMLError as e:
        logger.warning(f"Error while parsing user options: {e}")
        return {}
    if data is None:
        return {}
    if not isinstance(data, dict):
        logger.warning(f"User options must be a mapping, got {type(data).__name__}")
        return {}
    return data


def to_json_content(data: Union[str, Dict[str, Any]]) -> str:
    """Convert YAML text or a mapping to compact, key-sorted JSON.

    Failures are logged and produce an empty string so the rest of the
    document can still be assembled.
    """
    try:
        if isinstance(data, str):
            data = yaml.safe_load(data)
        return json.dumps(data, sort_keys=True, separators=(',', ':'), default=str)
    except (yaml.YAMLError, TypeError, ValueError) as e:
        logger.warning(f"Failed to convert configuration to JSON, writing empty content: {e}")
        return ""


def merge_dicts(base: Dict[Any, Any], override: Dict[Any, Any]) -> Dict[Any, Any]:
    """Recursively merge two dictionaries.

    Nested dicts are merged, lists are concatenated and any other value in
    ``override`` replaces the one in ``base``.

    Args:
        base: Base dictionary
        override: Dictionary with values to override

    Returns:
        dict: Merged dictionary
    """
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = merge_dicts(result[key], value)
        elif key in result and isinstance(result[key], list) and isinstance(value, list):
            result[key] = result[key] + value
        elif value is None and key in result:
            continue
        else:
            result[key] = value
    return result


def list_fragments(directory: Union[str, Path]) -> List[Path]:
    """Return the fragment files of a config directory in merge order."""
    directory = Path(directory)
    if not directory.is_dir():
        return []
    return sorted(
        (p for p in directory.iterdir() if p.is_file() and p.suffix in FRAGMENT_SUFFIXES),
        key=lambda p: p.name,
    )


def read_yaml_file(path: Union[str, Path]) -> Any:
    """Read a YAML file and return its parsed contents (None when empty).

    Raises:
        FileNotFoundError: If the file does not exist
        yaml.YAMLError: If the file is not valid YAML
    """
    try:
        with open(path, 'r', encoding='utf-8') as f:
            return yaml.safe_load(f)
    except FileNotFoundError:
        logger.error(f"YAML file not found: {path}")
        raise
    except yaml.YAMLError as e:
        logger.error(f"Invalid YAML in {path}: {e}")
        raise


def merge_values(base: Any, override: Any) -> Any:
    """Merge two fragment documents with the rules of the boot merge command.

    Mappings are deep merged and lists concatenated. A null override keeps
    ``base``; any other override replaces it, including a non-mapping
    document replacing a mapping.
    """
    if isinstance(base, dict) and isinstance(override, dict):
        return merge_dicts(base, override)
    if isinstance(base, list) and isinstance(override, list):
        return base + override
    if override is None:
        return base
    return override


def merge_fragments(directory: Union[str, Path]) -> Any:
    """Merge every fragment in ``directory``; later file names win on scalars."""
    merged: Any = {}
    for path in list_fragments(directory):
        data = read_yaml_file(path)
        if data is not None and not isinstance(data, dict):
            logger.warning(f"Fragment {path} is not a mapping, it replaces the merged document")
        logger.debug(f"Merging fragment {path}")
        merged = merge_values(merged, data)
    return merged


def write_yaml_file(path: Union[str, Path], data: Any, mode: int = 0o600) -> None:
    """Write a YAML file with the given data.

    Raises:
        IOError: If the file cannot be written
    """
    try:
        os.makedirs(os.path.dirname(os.path.abspath(path)), exist_ok=True)
        with open(path, 'w', encoding='utf-8') as f:
            yaml.safe_dump(data, f, default_flow_style=False, sort_keys=False)
        os.chmod(path, mode)
    except (IOError, OSError) as e:
        logger.error(f"Failed to write YAML file {path}: {e}")
        raise
