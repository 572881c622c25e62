"""Services package."""

from src.services.proof import (
    ProofService,
    ProofUpload,
    ProofValidationError,
    get_embed_url,
)
from src.services.storage import (
    AppsScriptClient,
    AuditStorageInterface,
    ConnectionError,
    DuplicateError,
    LocalAuditStorage,
    LocalKeyValueStore,
    LocalPaymentStorage,
    LocalUserStorage,
    NotFoundError,
    PaymentStorageInterface,
    RemotePaymentStorage,
    RemoteUserStorage,
    StorageError,
    SyncError,
    UserStorageInterface,
)

__all__ = [
    # Proof services
    "ProofService",
    "ProofUpload",
    "ProofValidationError",
    "get_embed_url",
    # Storage services
    "AppsScriptClient",
    "AuditStorageInterface",
    "ConnectionError",
    "DuplicateError",
    "LocalAuditStorage",
    "LocalKeyValueStore",
    "LocalPaymentStorage",
    "LocalUserStorage",
    "NotFoundError",
    "PaymentStorageInterface",
    "RemotePaymentStorage",
    "RemoteUserStorage",
    "StorageError",
    "SyncError",
    "UserStorageInterface",
]
