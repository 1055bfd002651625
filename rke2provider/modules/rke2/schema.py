"""JSON schema for rendered boot configuration documents."""
from typing import Any, List

from jsonschema import Draft7Validator

FILE_SCHEMA = {
    "type": "object",
    "properties": {
        "path": {"type": "string", "minLength": 1},
        "permissions": {"type": "integer", "minimum": 0},
        "content": {"type": "string"},
    },
    "required": ["path", "permissions", "content"],
}

STEP_SCHEMA = {
    "type": "object",
    "properties": {
        "name": {"type": "string"},
        "files": {"type": "array", "items": FILE_SCHEMA},
        "commands": {"type": "array", "items": {"type": "string"}},
        "systemctl": {
            "type": "object",
            "properties": {
                "enable": {"type": "array", "items": {"type": "string"}},
                "start": {"type": "array", "items": {"type": "string"}},
            },
        },
    },
    "required": ["name"],
}

DOCUMENT_SCHEMA = {
    "type": "object",
    "properties": {
        "name": {"type": "string"},
        "stages": {
            "type": "object",
            "additionalProperties": {"type": "array", "items": STEP_SCHEMA},
        },
    },
    "required": ["name", "stages"],
}


def validation_errors(document: Any) -> List[str]:
    """Return the schema violations of a rendered document, empty when valid."""
    validator = Draft7Validator(DOCUMENT_SCHEMA)
    errors = sorted(validator.iter_errors(document), key=lambda e: list(e.path))
    return [f"{'/'.join(str(p) for p in e.path) or '<root>'}: {e.message}" for e in errors]
