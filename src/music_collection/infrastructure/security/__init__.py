"""Security adapters: password hashing, token signing, principal resolution."""

from .passwords import PasslibPasswordHasher
from .principal import PrincipalResolver
from .tokens import JoseTokenCodec

__all__ = ["JoseTokenCodec", "PasslibPasswordHasher", "PrincipalResolver"]
