"""Response envelopes.

Transport-agnostic shape of every outcome:

    {"status": "success", "data": ..., "pagination": {...}}   # pagination optional
    {"status": "error", "message": ..., "code": ...}

``status_code`` carries the HTTP status a web adapter would send.
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple, Type

from ..domain.query import PageInfo
from ..domain.result import (
    AuthenticationError,
    BadRequestError,
    ConflictError,
    DomainError,
    ForbiddenError,
    InvalidCredentialsError,
    InvalidTokenError,
    NotFoundError,
    RateLimitedError,
    UnavailableError,
    ValidationError,
)

# Checked in order; subclasses resolve through their base
STATUS_CODES: Tuple[Tuple[Type[DomainError], int], ...] = (
    (ValidationError, 400),
    (BadRequestError, 400),
    (InvalidCredentialsError, 401),
    (InvalidTokenError, 401),
    (AuthenticationError, 401),
    (ForbiddenError, 403),
    (NotFoundError, 404),
    (ConflictError, 409),
    (RateLimitedError, 429),
    (UnavailableError, 503),
)

SERVER_ERROR_MESSAGE = "Server Error"


@dataclass(frozen=True)
class Envelope:
    """An outcome ready to be serialized."""
    status_code: int
    body: Dict[str, Any]

    @property
    def ok(self) -> bool:
        return self.body.get("status") == "success"

    @property
    def data(self) -> Any:
        return self.body.get("data")


def status_for(error: Exception) -> int:
    """HTTP status for an error; anything unrecognised is a 500."""
    for error_type, status in STATUS_CODES:
        if isinstance(error, error_type):
            return status
    return 500


def success_envelope(data: Any = None, pagination: Optional[PageInfo] = None, status_code: int = 200) -> Envelope:
    body: Dict[str, Any] = {"status": "success", "data": data}
    if pagination is not None:
        body["pagination"] = pagination.to_dict()
    return Envelope(status_code=status_code, body=body)


def error_envelope(error: Exception) -> Envelope:
    """Render an error. Non-domain errors never leak their message."""
    status = status_for(error)
    if isinstance(error, DomainError) and status != 500:
        body = {"status": "error", "message": error.message, "code": error.code}
    else:
        body = {"status": "error", "message": SERVER_ERROR_MESSAGE, "code": "server_error"}
    return Envelope(status_code=status, body=body)
