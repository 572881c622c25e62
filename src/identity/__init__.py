"""Identity package: the in-memory identity table and identity errors."""

from src.identity.exceptions import (
    AuthenticationError,
    CredentialResetError,
    IdentityError,
    PermissionDeniedError,
    RegistrationError,
)
from src.identity.store import IdentityStore

__all__ = [
    "AuthenticationError",
    "CredentialResetError",
    "IdentityError",
    "IdentityStore",
    "PermissionDeniedError",
    "RegistrationError",
]
