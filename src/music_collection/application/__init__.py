"""
Application Layer - the boundary between callers and the domain.

Payload schemas, response envelopes, service wiring and the
``CollectionAPI`` facade.
"""

from .api import CollectionAPI, list_query
from .container import ServiceContainer, build_container
from .envelope import Envelope, error_envelope, status_for, success_envelope
from .schemas import SCHEMAS, to_snake_case, validate_payload

__all__ = [
    "CollectionAPI",
    "list_query",
    "ServiceContainer",
    "build_container",
    "Envelope",
    "error_envelope",
    "status_for",
    "success_envelope",
    "SCHEMAS",
    "to_snake_case",
    "validate_payload",
]
