"""
Credential Hasher

Maps a PIN (or any secret) to a 64-character lowercase SHA-256 hex digest.

DESIGN DECISION: The empty secret hashes to the empty string.
An empty credential means "no PIN set yet" everywhere in the system,
and hashing it would turn that marker into a real-looking digest.
"""

import hashlib
import secrets
from typing import Any

ENCODING = "utf-8"


def hash_secret(secret: Any) -> str:
    """
    Hash a secret after trimming surrounding whitespace.

    Returns "" for None, "" and whitespace-only input. Never raises:
    anything else is converted with str() first.
    """
    if secret is None:
        return ""

    text = str(secret).strip()
    if not text:
        return ""

    return hashlib.sha256(text.encode(ENCODING, "surrogatepass")).hexdigest()


def same_secret(a: str, b: str) -> bool:
    """Constant-time equality for digests and stored credentials."""
    return secrets.compare_digest(
        a.encode(ENCODING, "surrogatepass"),
        b.encode(ENCODING, "surrogatepass"),
    )

