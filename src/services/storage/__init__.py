"""
Storage Services Package

Provides abstract interfaces and two concrete implementations:
the Apps Script/Google Sheets backend and the local key-value store.
"""

from src.services.storage.interface import (
    AuditStorageInterface,
    ConnectionError,
    DuplicateError,
    NotFoundError,
    PaymentStorageInterface,
    StorageError,
    SyncError,
    UserStorageInterface,
)
from src.services.storage.local import (
    LocalAuditStorage,
    LocalKeyValueStore,
    LocalPaymentStorage,
    LocalUserStorage,
)
from src.services.storage.remote import (
    AppsScriptClient,
    RemoteActionError,
    RemotePaymentStorage,
    RemoteUserStorage,
    backend_script_source,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "PaymentStorageInterface",
    "UserStorageInterface",
    # Exceptions
    "ConnectionError",
    "DuplicateError",
    "NotFoundError",
    "RemoteActionError",
    "StorageError",
    "SyncError",
    # Local implementation
    "LocalAuditStorage",
    "LocalKeyValueStore",
    "LocalPaymentStorage",
    "LocalUserStorage",
    # Remote implementation
    "AppsScriptClient",
    "RemotePaymentStorage",
    "RemoteUserStorage",
    "backend_script_source",
]
