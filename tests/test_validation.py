"""Tests for registration and payment validation."""

from datetime import datetime

from src.config import AppSettings, SecuritySettings
from src.models.payment import PaymentRecord, PaymentStatus
from src.validation import (
    PaymentValidator,
    RegistrationValidator,
    get_user_friendly_summary,
)

NOW = datetime(2024, 3, 10)


def issue_types(result):
    return {issue.issue_type for issue in result.issues}


class TestRegistrationValidator:
    """Registration form checks."""

    def setup_method(self):
        self.validator = RegistrationValidator(SecuritySettings())

    def test_valid_form(self):
        result = self.validator.validate("A1/2", "Pak Joko", "4321", "4321")
        assert result.is_valid
        assert result.issues == []

    def test_pin_mismatch(self):
        result = self.validator.validate("A1/2", "Pak Joko", "4321", "4322")
        assert result.has_errors
        assert "mismatch" in issue_types(result)

    def test_pin_too_short(self):
        result = self.validator.validate("A1/2", "Pak Joko", "123", "123")
        assert "too_short" in issue_types(result)

    def test_non_numeric_pin_is_warning(self):
        result = self.validator.validate("A1/2", "Pak Joko", "abcd", "abcd")
        assert result.is_valid
        assert "not_numeric" in issue_types(result)

    def test_missing_name(self):
        result = self.validator.validate("A1/2", "  ", "4321", "4321")
        assert "missing" in issue_types(result)

    def test_invalid_house(self):
        result = self.validator.validate("Z9/99", "Pak Joko", "4321", "4321")
        assert "invalid_value" in issue_types(result)

    def test_already_registered(self):
        result = self.validator.validate("A1/1", "Pak Budi", "4321", "4321", already_registered=True)
        assert "duplicate" in issue_types(result)


class TestPaymentValidator:
    """Payment form checks."""

    def setup_method(self):
        self.validator = PaymentValidator(AppSettings())

    def test_valid_payment(self):
        result = self.validator.validate("A1/1", "Maret", 2024, 50000, now=NOW)
        assert result.is_valid
        assert result.issues == []

    def test_unknown_month(self):
        result = self.validator.validate("A1/1", "March", 2024, 50000, now=NOW)
        assert result.has_errors

    def test_year_out_of_range(self):
        result = self.validator.validate("A1/1", "Maret", 2030, 50000, now=NOW)
        assert "out_of_range" in issue_types(result)

    def test_zero_amount(self):
        result = self.validator.validate("A1/1", "Maret", 2024, 0, now=NOW)
        assert result.has_errors

    def test_absurd_amount(self):
        result = self.validator.validate("A1/1", "Maret", 2024, 50_000_000, now=NOW)
        assert "absurd_value" in issue_types(result)

    def test_unusual_amount_is_warning(self):
        result = self.validator.validate("A1/1", "Maret", 2024, 75000, now=NOW)
        assert result.is_valid
        assert "unusual_amount" in issue_types(result)

    def test_duplicate_period_is_warning(self):
        existing = [
            PaymentRecord(house_id="A1/1", month="Maret", year=2024, amount=50000,
                          status=PaymentStatus.PENDING),
        ]
        result = self.validator.validate("A1/1", "Maret", 2024, 50000, existing=existing, now=NOW)
        assert result.is_valid
        assert "duplicate" in issue_types(result)

    def test_rejected_payment_is_not_a_duplicate(self):
        existing = [
            PaymentRecord(house_id="A1/1", month="Maret", year=2024, amount=50000,
                          status=PaymentStatus.REJECTED),
        ]
        result = self.validator.validate("A1/1", "Maret", 2024, 50000, existing=existing, now=NOW)
        assert result.issues == []


class TestSummary:
    def test_summary_lists_errors(self):
        result = RegistrationValidator(SecuritySettings()).validate("A1/2", "", "1", "2")
        summary = get_user_friendly_summary(result)
        assert summary.startswith("Please fix:")
        assert "PINs do not match" in summary

    def test_summary_ok(self):
        result = RegistrationValidator(SecuritySettings()).validate("A1/2", "Joko", "4321", "4321")
        assert get_user_friendly_summary(result) == "All details look good."
