"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Run the same flows against the spreadsheet backend or the local store
2. Use in-memory storage for testing
3. Keep business logic decoupled from storage implementation

The backend is a plain table store: list everything, append, update one
row. There are no transactions and no conflict detection; the last write
wins.
"""

from abc import ABC, abstractmethod

from src.models.audit import AuditEvent
from src.models.payment import PaymentRecord, PaymentStatus
from src.models.user import UserRecord


class UserStorageInterface(ABC):
    """
    Abstract interface for user storage.

    Records are returned exactly as stored; normalization happens in the
    identity store, not here.
    """

    @abstractmethod
    async def list_users(self) -> list[UserRecord]:
        """
        List all user records.

        Raises:
            SyncError: If the backend cannot be read
        """
        pass

    @abstractmethod
    async def register_user(self, user: UserRecord) -> bool:
        """
        Append a new user.

        Raises:
            DuplicateError: If the house is already registered
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    async def update_user(self, user: UserRecord) -> bool:
        """
        Overwrite the user with the same house identifier.

        Raises:
            NotFoundError: If no such user exists
            StorageError: If the write fails
        """
        pass


class PaymentStorageInterface(ABC):
    """Abstract interface for payment storage and proof attachments."""

    @abstractmethod
    async def list_payments(self) -> list[PaymentRecord]:
        """
        List all payments (any order).

        Raises:
            SyncError: If the backend cannot be read
        """
        pass

    @abstractmethod
    async def add_payment(self, payment: PaymentRecord) -> bool:
        """Append a payment."""
        pass

    @abstractmethod
    async def update_payment_status(
        self,
        payment_id: str,
        status: PaymentStatus,
    ) -> bool:
        """
        Set the status of one payment.

        Raises:
            NotFoundError: If the payment doesn't exist
        """
        pass

    @abstractmethod
    async def store_proof(
        self,
        data: bytes,
        mime_type: str,
        file_name: str,
    ) -> str:
        """
        Store a proof attachment.

        Returns:
            A URL the attachment can be viewed at
        """
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """
        Get the most recent audit events.

        Returns:
            List of recent events (newest first)
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class DuplicateError(StorageError):
    """Attempted to insert a duplicate entity."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass


class SyncError(ConnectionError):
    """Backend unreachable or answered with something unusable."""
    pass
