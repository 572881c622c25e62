"""
Form Validation

Checks registration and payment forms before anything is written.

IMPORTANT: Validation NEVER silently fixes issues.
It reports them so the user can correct the form.
Errors block the action; warnings are shown but don't.
"""

from datetime import datetime
from typing import Iterable, Optional

from src.config import AppSettings, SecuritySettings, get_settings
from src.models.payment import MONTHS, PaymentRecord, PaymentStatus
from src.models.user import is_valid_house_id
from src.models.validation import ValidationIssue, ValidationResult


class RegistrationValidator:
    """Validates the registration form of a new house."""

    def __init__(self, settings: Optional[SecuritySettings] = None):
        self._settings = settings or get_settings().security

    def validate(
        self,
        house_id: str,
        name: str,
        pin: str,
        confirm_pin: str,
        already_registered: bool = False,
    ) -> ValidationResult:
        issues = []

        if not is_valid_house_id(house_id):
            issues.append(ValidationIssue(
                field="house_id",
                issue_type="invalid_value",
                message=f"Unknown house: {house_id}",
                severity="error",
                suggested_fix="Pick the block letter, block number and house number again",
            ))
        elif already_registered:
            issues.append(ValidationIssue(
                field="house_id",
                issue_type="duplicate",
                message=f"House {house_id} is already registered",
                severity="error",
                suggested_fix="Log in instead, or ask the treasurer to reset the PIN",
            ))

        if not name.strip():
            issues.append(ValidationIssue(
                field="name",
                issue_type="missing",
                message="Name is required",
                severity="error",
            ))

        if pin != confirm_pin:
            issues.append(ValidationIssue(
                field="confirm_pin",
                issue_type="mismatch",
                message="PINs do not match",
                severity="error",
            ))
        if len(pin.strip()) < self._settings.min_pin_length:
            issues.append(ValidationIssue(
                field="pin",
                issue_type="too_short",
                message=f"PIN must be at least {self._settings.min_pin_length} digits",
                severity="error",
            ))
        elif not pin.strip().isdigit():
            issues.append(ValidationIssue(
                field="pin",
                issue_type="not_numeric",
                message="PIN should contain digits only",
                severity="warning",
            ))

        return ValidationResult(subject="registration", issues=issues)


class PaymentValidator:
    """
    Validates a dues payment before it is submitted.

    Duplicate detection compares against the payments already loaded.
    """

    def __init__(self, settings: Optional[AppSettings] = None):
        self._settings = settings or get_settings().app

    def validate(
        self,
        house_id: str,
        month: str,
        year: int,
        amount: int,
        existing: Iterable[PaymentRecord] = (),
        now: Optional[datetime] = None,
    ) -> ValidationResult:
        now = now or datetime.utcnow()
        issues = []

        if month not in MONTHS:
            issues.append(ValidationIssue(
                field="month",
                issue_type="invalid_value",
                message=f"Unknown month: {month}",
                severity="error",
            ))

        if year < now.year - 5 or year > now.year + 1:
            issues.append(ValidationIssue(
                field="year",
                issue_type="out_of_range",
                message=f"Year {year} is outside {now.year - 5}-{now.year + 1}",
                severity="error",
            ))

        if amount <= 0:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="invalid_value",
                message="Amount must be greater than zero",
                severity="error",
            ))
        elif amount > self._settings.max_dues_amount:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="absurd_value",
                message=f"Amount Rp {amount:,} is unusually high",
                severity="error",
                suggested_fix="Check for extra zeros",
            ))
        elif amount != self._settings.default_dues_amount:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="unusual_amount",
                message=f"Amount differs from the usual dues of Rp {self._settings.default_dues_amount:,}",
                severity="warning",
            ))

        for payment in existing:
            if (
                payment.house_id == house_id
                and payment.month == month
                and payment.year == year
                and payment.status != PaymentStatus.REJECTED
            ):
                issues.append(ValidationIssue(
                    field="period",
                    issue_type="duplicate",
                    message=f"A {payment.status.value} payment for {month} {year} already exists",
                    severity="warning",
                ))
                break

        return ValidationResult(subject="payment", issues=issues)


def get_user_friendly_summary(result: ValidationResult) -> str:
    """One message listing what needs fixing."""
    if not result.issues:
        return "All details look good."

    errors = [issue.message for issue in result.issues if issue.severity == "error"]
    if errors:
        return "Please fix: " + "; ".join(errors)
    return "Note: " + "; ".join(result.warnings)
