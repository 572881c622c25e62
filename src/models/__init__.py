"""
Data Models Package

This package contains all Pydantic models used in SiWarga.
All data flowing through the system must conform to these schemas.
"""

from src.models.user import (
    ADMIN_HOUSE_ID,
    BLOCK_LETTERS,
    BLOCK_NUMBERS,
    HOUSE_NUMBERS,
    InvalidHouseIdError,
    Role,
    Session,
    UserRecord,
    compose_house_id,
    is_valid_house_id,
    placeholder_admin,
)
from src.models.payment import (
    MONTHS,
    PaymentRecord,
    PaymentStatus,
)
from src.models.validation import (
    ValidationIssue,
    ValidationResult,
)
from src.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # User models
    "ADMIN_HOUSE_ID",
    "BLOCK_LETTERS",
    "BLOCK_NUMBERS",
    "HOUSE_NUMBERS",
    "InvalidHouseIdError",
    "Role",
    "Session",
    "UserRecord",
    "compose_house_id",
    "is_valid_house_id",
    "placeholder_admin",
    # Payment models
    "MONTHS",
    "PaymentRecord",
    "PaymentStatus",
    # Validation models
    "ValidationIssue",
    "ValidationResult",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
