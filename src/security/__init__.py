"""Credential hashing, reconciliation and the settings-panel lock."""

from src.security.hasher import hash_secret, same_secret
from src.security.reconciler import (
    DEFAULT_ADMIN_PIN,
    DIGEST_LENGTH_THRESHOLD,
    RESET_PIN,
    CredentialKind,
    MatchOutcome,
    MatchPath,
    StoredCredential,
    classify_credential,
    match_credential,
    matches,
    normalize_record,
    normalize_records,
    reset_credential,
)
from src.security.settings_lock import SettingsLock, SettingsLockedError

__all__ = [
    "DEFAULT_ADMIN_PIN",
    "DIGEST_LENGTH_THRESHOLD",
    "RESET_PIN",
    "CredentialKind",
    "MatchOutcome",
    "MatchPath",
    "SettingsLock",
    "SettingsLockedError",
    "StoredCredential",
    "classify_credential",
    "hash_secret",
    "match_credential",
    "matches",
    "normalize_record",
    "normalize_records",
    "reset_credential",
    "same_secret",
]
