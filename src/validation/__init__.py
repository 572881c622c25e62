"""Form validation package."""

from src.validation.validator import (
    PaymentValidator,
    RegistrationValidator,
    get_user_friendly_summary,
)

__all__ = ["PaymentValidator", "RegistrationValidator", "get_user_friendly_summary"]
