"""
Audit Models for SiWarga

Every significant action in the system is logged for audit purposes.
This provides:
1. Traceability of registrations, logins, PIN resets and verifications
2. Debugging information when the spreadsheet backend misbehaves
3. Accountability for the treasurer's decisions

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
CRITICAL: Audit events never contain PINs or PIN digests.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Identity
    USER_REGISTERED = "user_registered"
    REGISTRATION_FAILED = "registration_failed"
    LOGIN_SUCCEEDED = "login_succeeded"
    LOGIN_FAILED = "login_failed"
    CREDENTIAL_UPGRADED = "credential_upgraded"
    CREDENTIAL_UPGRADE_FAILED = "credential_upgrade_failed"
    CREDENTIAL_RESET = "credential_reset"
    CREDENTIAL_RESET_FAILED = "credential_reset_failed"

    # Payments
    PROOF_UPLOADED = "proof_uploaded"
    PAYMENT_SUBMITTED = "payment_submitted"
    PAYMENT_STATUS_UPDATED = "payment_status_updated"

    # Data sync
    DATA_SYNCED = "data_synced"
    SYNC_FAILED = "sync_failed"

    # Settings panel
    SETTINGS_UNLOCKED = "settings_unlocked"
    SETTINGS_UNLOCK_FAILED = "settings_unlock_failed"
    SETTINGS_LOCKED_OUT = "settings_locked_out"
    SETTINGS_PASSWORD_CHANGED = "settings_password_changed"

    # System events
    SYSTEM_ERROR = "system_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=datetime.utcnow,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'user', 'payment')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="House identifier or payment id"
    )

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., one login attempt)"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    # Error information (if applicable)
    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.login_failed(house_id, correlation_id)
        event = AuditEventBuilder.credential_reset(house_id, actor)
    """

    @staticmethod
    def user_registered(house_id: str, name: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.USER_REGISTERED,
            entity_type="user",
            entity_id=house_id,
            description=f"House registered: {house_id}",
            details={"name": name},
            is_user_action=True,
        )

    @staticmethod
    def registration_failed(house_id: str, reason: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.REGISTRATION_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="user",
            entity_id=house_id,
            description=f"Registration failed for {house_id}",
            error_message=reason,
            is_user_action=True,
        )

    @staticmethod
    def login_succeeded(
        house_id: str,
        role: str,
        match_path: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LOGIN_SUCCEEDED,
            entity_type="user",
            entity_id=house_id,
            correlation_id=correlation_id,
            description=f"Login: {house_id}",
            details={"role": role, "match_path": match_path},
            is_user_action=True,
        )

    @staticmethod
    def login_failed(
        house_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        # No detail on why: a near miss is still a miss
        return AuditEvent(
            event_type=AuditEventType.LOGIN_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="user",
            entity_id=house_id,
            correlation_id=correlation_id,
            description=f"Rejected login for {house_id}",
            is_user_action=True,
        )

    @staticmethod
    def credential_upgraded(
        house_id: str,
        match_path: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CREDENTIAL_UPGRADED,
            entity_type="user",
            entity_id=house_id,
            correlation_id=correlation_id,
            description=f"Stored PIN of {house_id} rewritten as digest",
            details={"accepted_via": match_path},
        )

    @staticmethod
    def credential_upgrade_failed(
        house_id: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CREDENTIAL_UPGRADE_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="user",
            entity_id=house_id,
            correlation_id=correlation_id,
            description=f"Could not persist upgraded PIN of {house_id}",
            error_message=error_message,
        )

    @staticmethod
    def credential_reset(house_id: str, actor: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CREDENTIAL_RESET,
            entity_type="user",
            entity_id=house_id,
            description=f"PIN of {house_id} reset to the default",
            details={"actor": actor},
            is_user_action=True,
        )

    @staticmethod
    def credential_reset_failed(house_id: str, actor: str, error_message: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CREDENTIAL_RESET_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="user",
            entity_id=house_id,
            description=f"PIN reset of {house_id} failed",
            details={"actor": actor},
            error_message=error_message,
            is_user_action=True,
        )

    @staticmethod
    def proof_uploaded(house_id: str, file_name: str, size_bytes: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PROOF_UPLOADED,
            entity_type="proof",
            entity_id=house_id,
            description=f"Proof uploaded: {file_name}",
            details={"file_name": file_name, "file_size_bytes": size_bytes},
            is_user_action=True,
        )

    @staticmethod
    def payment_submitted(payment_id: str, house_id: str, period: str, amount: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PAYMENT_SUBMITTED,
            entity_type="payment",
            entity_id=payment_id,
            description=f"Payment submitted by {house_id} for {period}",
            details={"house_id": house_id, "period": period, "amount": amount},
            is_user_action=True,
        )

    @staticmethod
    def payment_status_updated(payment_id: str, status: str, actor: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PAYMENT_STATUS_UPDATED,
            entity_type="payment",
            entity_id=payment_id,
            description=f"Payment {payment_id} marked {status}",
            details={"status": status, "actor": actor},
            is_user_action=True,
        )

    @staticmethod
    def data_synced(source: str, user_count: int, payment_count: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DATA_SYNCED,
            severity=AuditSeverity.DEBUG,
            description=f"Loaded {user_count} users and {payment_count} payments from {source}",
            details={"source": source, "users": user_count, "payments": payment_count},
        )

    @staticmethod
    def sync_failed(source: str, error_message: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYNC_FAILED,
            severity=AuditSeverity.ERROR,
            description=f"Sync with {source} failed",
            error_message=error_message,
            details={"source": source},
        )

    @staticmethod
    def settings_event(event_type: AuditEventType, description: str, **details: Any) -> AuditEvent:
        severity = (
            AuditSeverity.WARNING
            if event_type in (AuditEventType.SETTINGS_UNLOCK_FAILED, AuditEventType.SETTINGS_LOCKED_OUT)
            else AuditSeverity.INFO
        )
        return AuditEvent(
            event_type=event_type,
            severity=severity,
            entity_type="settings",
            description=description,
            details=details,
            is_user_action=True,
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )
