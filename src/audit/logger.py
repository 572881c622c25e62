"""
Audit Logger

DESIGN DECISION: Every significant action in the system is logged.
This provides:
1. Traceability of logins, PIN changes and payment reviews
2. Debugging capability when the spreadsheet backend misbehaves
3. An activity view for the treasurer

The audit logger:
- Is async to not block main flow
- Gracefully handles failures (doesn't crash the app if logging fails)
- Supports correlation IDs to trace related events
"""

from typing import Optional
from uuid import UUID, uuid4

import structlog

from src.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)
from src.services.storage import AuditStorageInterface


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. Audit storage (for the admin activity view)
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger("siwarga.audit")

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity in (AuditSeverity.ERROR, AuditSeverity.CRITICAL):
            self._logger.error("audit_event", **log_dict)
        elif event.severity == AuditSeverity.WARNING:
            self._logger.warning("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def recent_events(self, limit: int = 50) -> list[AuditEvent]:
        """Most recent persisted events, newest first ([] without storage)."""
        if not self._storage:
            return []
        try:
            return await self._storage.get_recent_events(limit=limit)
        except Exception as e:
            self._logger.error("audit_storage_read_failed", error=str(e))
            return []

    async def log_user_registered(self, house_id: str, name: str) -> None:
        await self.log(AuditEventBuilder.user_registered(house_id, name))

    async def log_registration_failed(self, house_id: str, reason: str) -> None:
        await self.log(AuditEventBuilder.registration_failed(house_id, reason))

    async def log_login_succeeded(
        self,
        house_id: str,
        role: str,
        match_path: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.login_succeeded(house_id, role, match_path, correlation_id))

    async def log_login_failed(
        self,
        house_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.login_failed(house_id, correlation_id))

    async def log_credential_upgraded(
        self,
        house_id: str,
        match_path: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.credential_upgraded(house_id, match_path, correlation_id))

    async def log_credential_upgrade_failed(
        self,
        house_id: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.credential_upgrade_failed(house_id, error_message, correlation_id))

    async def log_credential_reset(self, house_id: str, actor: str) -> None:
        await self.log(AuditEventBuilder.credential_reset(house_id, actor))

    async def log_credential_reset_failed(self, house_id: str, actor: str, error_message: str) -> None:
        await self.log(AuditEventBuilder.credential_reset_failed(house_id, actor, error_message))

    async def log_proof_uploaded(self, house_id: str, file_name: str, size_bytes: int) -> None:
        await self.log(AuditEventBuilder.proof_uploaded(house_id, file_name, size_bytes))

    async def log_payment_submitted(self, payment_id: str, house_id: str, period: str, amount: int) -> None:
        await self.log(AuditEventBuilder.payment_submitted(payment_id, house_id, period, amount))

    async def log_payment_status_updated(self, payment_id: str, status: str, actor: str) -> None:
        await self.log(AuditEventBuilder.payment_status_updated(payment_id, status, actor))

    async def log_data_synced(self, source: str, user_count: int, payment_count: int) -> None:
        await self.log(AuditEventBuilder.data_synced(source, user_count, payment_count))

    async def log_sync_failed(self, source: str, error_message: str) -> None:
        await self.log(AuditEventBuilder.sync_failed(source, error_message))

    async def log_settings_event(self, event_type: AuditEventType, description: str, **details) -> None:
        await self.log(AuditEventBuilder.settings_event(event_type, description, **details))

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        event = AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        )
        await self.log(event)


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a new user action (e.g., a login attempt).
    """
    return uuid4()
