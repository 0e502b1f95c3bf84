"""JSON schemas and validation for request payloads.

Schemas check the shape of a payload (required keys, JSON types). Value
rules such as lengths and URL format are enforced by the domain, which
trims first. Unknown keys are allowed and ignored downstream.
"""

import re
from typing import Any, Dict, Mapping, Optional

import jsonschema

from ..domain.result import ValidationError

_STRING = {"type": "string"}
_NULLABLE_STRING = {"type": ["string", "null"]}
_TRACK_IDS = {"type": "array", "items": {"type": "string", "minLength": 1}}

PREFERENCES_SCHEMA = {
    "type": "object",
    "properties": {
        "theme": {"type": "string", "enum": ["light", "dark"]},
        "language": {"type": "string", "minLength": 1},
        "notifications": {"type": "boolean"},
    },
}

TRACK_PROPERTIES = {
    "title": _STRING,
    "artist": _STRING,
    "duration": {"type": "number", "minimum": 0},
    "fileUrl": _STRING,
    "coverUrl": _NULLABLE_STRING,
    "genre": _NULLABLE_STRING,
    "tags": {"type": "array", "items": {"type": "string"}},
    "isPublic": {"type": "boolean"},
}

PLAYLIST_PROPERTIES = {
    "name": _STRING,
    "description": _NULLABLE_STRING,
    "coverUrl": _NULLABLE_STRING,
    "isPublic": {"type": "boolean"},
    "trackIds": _TRACK_IDS,
}

SCHEMAS: Dict[str, Dict[str, Any]] = {
    "register": {
        "type": "object",
        "required": ["username", "email", "password"],
        "properties": {"username": _STRING, "email": _STRING, "password": _STRING},
    },
    "login": {
        "type": "object",
        "required": ["email", "password"],
        "properties": {"email": _STRING, "password": _STRING},
    },
    "refresh": {
        "type": "object",
        "required": ["refreshToken"],
        "properties": {"refreshToken": {"type": "string", "minLength": 1}},
    },
    "profile_update": {
        "type": "object",
        "properties": {"username": _STRING, "email": _STRING, "preferences": PREFERENCES_SCHEMA},
    },
    "password_change": {
        "type": "object",
        "required": ["currentPassword", "newPassword"],
        "properties": {"currentPassword": _STRING, "newPassword": _STRING},
    },
    "track_create": {
        "type": "object",
        "required": ["title", "artist", "duration", "fileUrl"],
        "properties": TRACK_PROPERTIES,
    },
    "track_update": {
        "type": "object",
        "properties": TRACK_PROPERTIES,
    },
    "playlist_create": {
        "type": "object",
        "required": ["name"],
        "properties": PLAYLIST_PROPERTIES,
    },
    "playlist_update": {
        "type": "object",
        "properties": PLAYLIST_PROPERTIES,
    },
    "playlist_duplicate": {
        "type": "object",
        "properties": {"isPublic": {"type": "boolean"}},
    },
    "add_track": {
        "type": "object",
        "required": ["trackId"],
        "properties": {"trackId": {"type": "string", "minLength": 1}},
    },
    "track_batch": {
        "type": "object",
        "required": ["trackIds"],
        "properties": {"trackIds": dict(_TRACK_IDS, minItems=1)},
    },
    "reorder": {
        "type": "object",
        "required": ["trackIds"],
        "properties": {"trackIds": _TRACK_IDS},
    },
}

# Never echo these values back in an error message
SENSITIVE_FIELDS = frozenset({"password", "currentPassword", "newPassword", "refreshToken"})

# Messages are built from the schema only, never from the offending value
_MESSAGES = {
    "type": lambda where, expected: f"{where} must be of type {expected}",
    "enum": lambda where, allowed: f"{where} must be one of: {', '.join(map(str, allowed))}",
    "minLength": lambda where, n: f"{where} must be at least {n} character(s) long",
    "maxLength": lambda where, n: f"{where} must be at most {n} character(s) long",
    "minimum": lambda where, n: f"{where} must be at least {n}",
    "maximum": lambda where, n: f"{where} must be at most {n}",
    "minItems": lambda where, n: f"{where} must contain at least {n} item(s)",
    "maxItems": lambda where, n: f"{where} must contain at most {n} item(s)",
}

_CAMEL_BOUNDARY = re.compile(r"(?<!^)(?=[A-Z])")


def to_snake_case(name: str) -> str:
    """``fileUrl`` -> ``file_url``; snake_case names pass through."""
    return _CAMEL_BOUNDARY.sub("_", name).lower()


def _describe(error: jsonschema.exceptions.ValidationError, path: Optional[str]) -> str:
    where = path or "payload"
    if error.validator == "required":
        missing = [name for name in error.validator_value if name not in error.instance]
        return f"{path + '.' if path else ''}{missing[0]} is required"
    template = _MESSAGES.get(error.validator)
    if template is None:
        return f"{where} is invalid"
    return template(where, error.validator_value)


def validate_payload(schema_name: str, payload: Any) -> Dict[str, Any]:
    """
    Validate a payload and return it with snake_case keys.

    Raises:
        ValidationError: The payload does not match the schema; the message
            names the failing path.
    """
    schema = SCHEMAS[schema_name]
    if payload is None:
        payload = {}
    validator = jsonschema.Draft7Validator(schema, format_checker=jsonschema.Draft7Validator.FORMAT_CHECKER)
    error = jsonschema.exceptions.best_match(validator.iter_errors(payload))
    if error is not None:
        path = ".".join(str(p) for p in error.absolute_path) or None
        if path in SENSITIVE_FIELDS:
            raise ValidationError(f"{path} is invalid", field=path)
        raise ValidationError(_describe(error, path), field=path)

    if not isinstance(payload, Mapping):
        return {}
    return {to_snake_case(key): value for key, value in payload.items()}
