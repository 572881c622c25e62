"""
Tests for SiWarga models

Test strategy:
1. Unit tests for individual components (models, validators)
2. Integration tests for flows (against the in-memory local store)
3. No real network calls in tests (httpx.MockTransport)
"""

import pytest
from datetime import datetime
from uuid import uuid4

from src.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)
from src.models.payment import (
    MONTHS,
    PaymentRecord,
    PaymentStatus,
    generate_payment_id,
    parse_timestamp,
)
from src.models.user import (
    ADMIN_HOUSE_ID,
    InvalidHouseIdError,
    Role,
    Session,
    UserRecord,
    compose_house_id,
    is_valid_house_id,
    placeholder_admin,
)
from src.models.validation import ValidationIssue, ValidationResult
from src.security.hasher import hash_secret


class TestHouseIds:
    """Tests for house identifier helpers."""

    def test_compose_house_id(self):
        """Pickers compose to <letter><block>/<house>."""
        assert compose_house_id("A", "1", "12") == "A1/12"
        assert compose_house_id("d", 5, 22) == "D5/22"

    def test_compose_rejects_out_of_range(self):
        """Values outside the fixed sets are rejected."""
        with pytest.raises(InvalidHouseIdError):
            compose_house_id("E", "1", "1")
        with pytest.raises(InvalidHouseIdError):
            compose_house_id("A", "6", "1")
        with pytest.raises(InvalidHouseIdError):
            compose_house_id("A", "1", "23")

    def test_is_valid_house_id(self):
        """Only well-formed resident identifiers are valid."""
        assert is_valid_house_id("B3/7")
        assert not is_valid_house_id(ADMIN_HOUSE_ID)
        assert not is_valid_house_id("B3-7")
        assert not is_valid_house_id("B37/1")


class TestUserRecord:
    """Tests for UserRecord coercion and wire format."""

    def test_reads_wire_names(self):
        """houseNumber is accepted on input and emitted on output."""
        user = UserRecord.model_validate(
            {"houseNumber": "A1/1", "name": " Pak Budi ", "role": "resident", "pin": "1234"}
        )
        assert user.house_id == "A1/1"
        assert user.name == "Pak Budi"
        assert user.to_wire() == {
            "houseNumber": "A1/1",
            "name": "Pak Budi",
            "role": "resident",
            "pin": "1234",
        }

    def test_numeric_pin_coerced_to_string(self):
        """Spreadsheet numbers become strings, integral floats lose .0."""
        assert UserRecord(house_id="A1/1", pin=10147).pin == "10147"
        assert UserRecord(house_id="A1/1", pin=10147.0).pin == "10147"
        assert UserRecord(house_id="A1/1", pin=None).pin == ""

    def test_pin_is_not_stripped(self):
        """The model keeps the credential exactly as stored."""
        assert UserRecord(house_id="A1/1", pin=" 1234 ").pin == " 1234 "

    def test_legacy_role_names(self):
        """'warga' and blank roles load as resident."""
        assert UserRecord(house_id="A1/1", role="warga").role == Role.RESIDENT
        assert UserRecord(house_id="A1/1", role="").role == Role.RESIDENT
        assert UserRecord(house_id="Admin", role="ADMIN").role == Role.ADMIN

    def test_rejects_empty_house_id(self):
        """A user without a house id is invalid."""
        with pytest.raises(ValueError):
            UserRecord(house_id="   ")

    def test_placeholder_admin(self):
        """The placeholder admin has an empty PIN."""
        admin = placeholder_admin()
        assert admin.is_admin
        assert admin.house_id == ADMIN_HOUSE_ID
        assert admin.pin == ""

    def test_first_name(self):
        assert UserRecord(house_id="A1/1", name="Budi Santoso").first_name == "Budi"
        assert UserRecord(house_id="A1/1", name="").first_name == "A1/1"

    def test_session_properties(self):
        session = Session(user=UserRecord(house_id="A1/1", name="Budi"))
        assert session.house_id == "A1/1"
        assert not session.is_admin
        assert not session.credential_upgraded


class TestPaymentRecord:
    """Tests for PaymentRecord coercion and wire format."""

    def test_sheet_row_coercion(self):
        """Numbers as strings/floats and odd statuses are normalized."""
        payment = PaymentRecord.model_validate({
            "id": 17,
            "houseNumber": "A1/1",
            "userName": "Pak Budi",
            "month": "Januari",
            "year": "2024",
            "amount": 50000.0,
            "status": "CONFIRMED",
            "note": None,
            "proofLink": "",
            "date": "2024-01-05T10:00:00.000Z",
        })
        assert payment.id == "17"
        assert payment.year == 2024
        assert payment.amount == 50000
        assert payment.status == PaymentStatus.CONFIRMED
        assert payment.note == ""
        assert payment.date == datetime(2024, 1, 5, 10, 0)

    def test_unknown_status_is_pending(self):
        payment = PaymentRecord(house_id="A1/1", month="Mei", year=2024, amount=1, status="??")
        assert payment.status == PaymentStatus.PENDING

    def test_status_enum_members_are_kept(self):
        """A review decision passed as an enum member is not reset."""
        for status in PaymentStatus:
            payment = PaymentRecord(house_id="A1/1", month="Mei", year=2024, amount=1, status=status)
            assert payment.status is status
        confirmed = PaymentRecord(
            house_id="A1/1", month="Mei", year=2024, amount=1, status=PaymentStatus.CONFIRMED,
        )
        assert confirmed.to_wire()["status"] == "confirmed"

    def test_rejects_negative_amount(self):
        """Test that negative amounts are rejected."""
        with pytest.raises(ValueError):
            PaymentRecord(house_id="A1/1", month="Mei", year=2024, amount=-5)

    def test_wire_date_format(self):
        """Dates are written as ISO with milliseconds and Z."""
        payment = PaymentRecord(
            house_id="A1/1", month="Mei", year=2024, amount=50000,
            date=datetime(2024, 5, 1, 8, 30),
        )
        wire = payment.to_wire()
        assert wire["date"] == "2024-05-01T08:30:00.000Z"
        assert wire["houseNumber"] == "A1/1"
        assert wire["proofLink"] == ""

    def test_period(self):
        payment = PaymentRecord(house_id="A1/1", month="Mei", year=2024, amount=1)
        assert payment.period == "Mei 2024"

    def test_generate_payment_id(self):
        assert len(generate_payment_id()) == 9
        assert generate_payment_id() != generate_payment_id()

    def test_parse_timestamp(self):
        assert parse_timestamp("2024-02-05") == datetime(2024, 2, 5)
        assert parse_timestamp("garbage") is None
        assert parse_timestamp("") is None

    def test_months(self):
        assert len(MONTHS) == 12
        assert MONTHS[0] == "Januari"


class TestValidationModels:
    """Tests for validation result models."""

    def test_validation_issue_creation(self):
        """Test ValidationIssue model creation."""
        issue = ValidationIssue(
            field="amount",
            issue_type="invalid_value",
            message="Amount must be greater than zero",
            severity="error",
        )
        assert issue.field == "amount"
        assert issue.severity == "error"

    def test_validation_result_counts(self):
        """Errors and warnings are counted separately."""
        result = ValidationResult(
            subject="payment",
            issues=[
                ValidationIssue(field="a", issue_type="x", message="bad", severity="error"),
                ValidationIssue(field="b", issue_type="y", message="hmm", severity="warning"),
            ],
        )
        assert result.has_errors
        assert result.error_count == 1
        assert not result.is_valid
        assert result.warnings == ["hmm"]

    def test_empty_result_is_valid(self):
        result = ValidationResult(subject="registration", issues=[])
        assert result.is_valid
        assert not result.has_errors


class TestAuditModels:
    """Tests for audit-related models."""

    def test_audit_event_creation(self):
        """Test AuditEvent model creation."""
        event = AuditEvent(
            event_type=AuditEventType.USER_REGISTERED,
            entity_type="user",
            entity_id="A1/1",
            description="House A1/1 registered",
        )
        assert event.event_type == AuditEventType.USER_REGISTERED
        assert event.severity == AuditSeverity.INFO
        assert event.event_id is not None

    def test_audit_event_to_log_dict(self):
        """Test AuditEvent to_log_dict method."""
        correlation_id = uuid4()
        event = AuditEvent(
            event_type=AuditEventType.LOGIN_FAILED,
            severity=AuditSeverity.WARNING,
            entity_id="A1/1",
            correlation_id=correlation_id,
            description="Login failed",
        )
        log_dict = event.to_log_dict()
        assert log_dict["event_type"] == "login_failed"
        assert log_dict["severity"] == "warning"
        assert log_dict["correlation_id"] == str(correlation_id)

    def test_login_events_carry_no_pin(self):
        """Audit events never contain PIN material."""
        events = [
            AuditEventBuilder.login_succeeded("A1/1", "resident", "legacy_plaintext"),
            AuditEventBuilder.login_failed("A1/1"),
            AuditEventBuilder.credential_upgraded("A1/1", "legacy_plaintext"),
            AuditEventBuilder.credential_reset("A1/1", "Admin"),
        ]
        for event in events:
            dumped = str(event.to_log_dict())
            assert "1234" not in dumped
            assert hash_secret("1234") not in dumped

    def test_builder_payment_status_updated(self):
        event = AuditEventBuilder.payment_status_updated("abc123def", "confirmed", "Admin")
        assert event.event_type == AuditEventType.PAYMENT_STATUS_UPDATED
        assert event.entity_id == "abc123def"
