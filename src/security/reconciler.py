"""
Identity Reconciler

Owns two decisions about the PIN field of user records:
1. Normalization: rewrite plaintext PINs to digests when records are loaded.
2. Matching: decide whether a typed PIN matches a stored credential at login.

WHAT THE PIN FIELD MAY CONTAIN:
The Users sheet started out with a plaintext PIN column and was later
migrated to SHA-256 digests. Historic rows may still be plaintext, the
spreadsheet may have turned a text PIN into a number (dropping leading
zeros, "010147" -> 10147), and an admin row may exist with no PIN at all.

THE LENGTH-20 HEURISTIC:
A stored value shorter than 20 characters is taken to be plaintext, anything
else is taken to be a digest. This is a heuristic, not a type guarantee:
a digest is always exactly 64 characters and no real PIN comes near 20, so
any threshold in between works. 20 is kept because existing data and
clients were written against it.

Everything here is pure. Writing an upgraded credential back to storage is
the caller's job (see AuthFlow in src.orchestrator).
"""

import re
from enum import Enum
from typing import Iterable, Optional, Union

from pydantic import BaseModel

from src.models.user import Role, UserRecord
from src.security.hasher import hash_secret, same_secret

DIGEST_LENGTH_THRESHOLD = 20
DEFAULT_ADMIN_PIN = "1234"
RESET_PIN = "123456"

_NUMERIC = re.compile(r"[0-9]+")


# =============================================================================
# STORED CREDENTIAL CLASSIFICATION
# =============================================================================

class CredentialKind(str, Enum):
    """What a stored PIN field holds."""
    EMPTY = "empty"
    PLAINTEXT_NUMERIC = "plaintext_numeric"
    PLAINTEXT_OTHER = "plaintext_other"
    DIGEST = "digest"


class StoredCredential(BaseModel):
    """A stored PIN field tagged with its kind."""

    kind: CredentialKind
    value: str

    @property
    def is_plaintext(self) -> bool:
        return self.kind in (CredentialKind.PLAINTEXT_NUMERIC, CredentialKind.PLAINTEXT_OTHER)


def is_numeric(value: str) -> bool:
    return bool(_NUMERIC.fullmatch(value))


def strip_leading_zeros(value: str) -> Optional[str]:
    """Decimal string of value's integer value, or None if not numeric."""
    if not is_numeric(value):
        return None
    return value.lstrip("0") or "0"


def classify_credential(value: str) -> StoredCredential:
    """Tag a raw PIN field (length heuristic, see module docstring)."""
    if value == "":
        return StoredCredential(kind=CredentialKind.EMPTY, value=value)
    if len(value) >= DIGEST_LENGTH_THRESHOLD:
        return StoredCredential(kind=CredentialKind.DIGEST, value=value)
    if is_numeric(value.strip()):
        return StoredCredential(kind=CredentialKind.PLAINTEXT_NUMERIC, value=value)
    return StoredCredential(kind=CredentialKind.PLAINTEXT_OTHER, value=value)


# =============================================================================
# NORMALIZATION
# =============================================================================

def normalize_record(record: UserRecord) -> UserRecord:
    """Return record with a plaintext PIN replaced by its digest."""
    credential = classify_credential(record.pin)
    if credential.kind == CredentialKind.DIGEST:
        return record
    # EMPTY hashes to "" and stays empty
    return record.model_copy(update={"pin": hash_secret(record.pin)})


def normalize_records(records: Iterable[UserRecord]) -> list[UserRecord]:
    """
    Normalize a freshly loaded batch of user records.

    Idempotent: a digest is 64 characters, above the threshold, so it is
    never hashed twice. The backing store is not touched.
    """
    return [normalize_record(record) for record in records]


# =============================================================================
# MATCHING
# =============================================================================

class MatchPath(str, Enum):
    """Which comparison accepted the typed PIN."""
    DIGEST = "digest"
    DIGEST_STRIPPED_ZEROS = "digest_stripped_zeros"
    LEGACY_PLAINTEXT = "legacy_plaintext"
    LEGACY_NUMERIC = "legacy_numeric"
    EMPTY_BOOTSTRAP = "empty_bootstrap"
    ADMIN_DEFAULT = "admin_default"


# Paths that accepted something other than a proper digest of the PIN
UPGRADE_PATHS = frozenset({
    MatchPath.LEGACY_PLAINTEXT,
    MatchPath.LEGACY_NUMERIC,
    MatchPath.EMPTY_BOOTSTRAP,
    MatchPath.ADMIN_DEFAULT,
})


class MatchOutcome(BaseModel):
    """
    Result of comparing a typed PIN with a stored credential.

    Deliberately says nothing about near misses: a failed outcome only
    carries matched=False.
    """

    matched: bool
    path: Optional[MatchPath] = None
    upgraded_credential: Optional[str] = None

    @property
    def needs_upgrade(self) -> bool:
        return self.upgraded_credential is not None

    def __bool__(self) -> bool:
        return self.matched


NO_MATCH = MatchOutcome(matched=False)


def _find_match_path(typed: str, stored: str, role: Role) -> Optional[MatchPath]:
    h1 = hash_secret(typed)
    stripped = strip_leading_zeros(typed)
    h2 = hash_secret(stripped) if stripped is not None else None

    if same_secret(stored, h1):
        return MatchPath.DIGEST
    if h2 is not None and same_secret(stored, h2):
        return MatchPath.DIGEST_STRIPPED_ZEROS
    if same_secret(stored, typed):
        return MatchPath.LEGACY_PLAINTEXT
    stored_number = strip_leading_zeros(stored)
    if stripped is not None and stored_number is not None and same_secret(stripped, stored_number):
        return MatchPath.LEGACY_NUMERIC
    if stored == "" and typed == DEFAULT_ADMIN_PIN:
        return MatchPath.EMPTY_BOOTSTRAP
    if (
        role == Role.ADMIN
        and same_secret(stored, hash_secret(DEFAULT_ADMIN_PIN))
        and typed == DEFAULT_ADMIN_PIN
    ):
        return MatchPath.ADMIN_DEFAULT
    return None


def match_credential(
    typed_pin: object,
    stored_credential: object,
    role: Union[Role, str],
) -> MatchOutcome:
    """
    Decide whether typed_pin unlocks stored_credential.

    Comparisons are tried in MatchPath order and the first hit wins.
    Never raises: None and non-string values are treated as text.
    """
    typed = "" if typed_pin is None else str(typed_pin).strip()
    stored = "" if stored_credential is None else str(stored_credential).strip()
    try:
        role = Role(role)
    except ValueError:
        role = Role.RESIDENT

    path = _find_match_path(typed, stored, role)
    if path is None:
        return NO_MATCH

    upgraded = hash_secret(typed) if path in UPGRADE_PATHS else None
    return MatchOutcome(matched=True, path=path, upgraded_credential=upgraded)


def matches(typed_pin: object, stored_credential: object, role: Union[Role, str]) -> bool:
    """Boolean form of match_credential."""
    return match_credential(typed_pin, stored_credential, role).matched


# =============================================================================
# RESET
# =============================================================================

def reset_credential() -> str:
    """Credential written by an admin PIN reset. Prior value is irrelevant."""
    return hash_secret(RESET_PIN)
