"""Errors raised by registration, login and PIN reset."""


class IdentityError(Exception):
    """Base exception for identity operations."""
    pass


class AuthenticationError(IdentityError):
    """
    Login rejected.

    Always the same message, whatever the reason.
    """

    def __init__(self):
        super().__init__("Incorrect PIN. Access denied.")


class RegistrationError(IdentityError):
    """Registration form rejected or could not be saved."""
    pass


class PermissionDeniedError(IdentityError):
    """Action reserved for the admin."""
    pass


class CredentialResetError(IdentityError):
    """PIN reset was not confirmed by the store; the old PIN still holds."""
    pass
