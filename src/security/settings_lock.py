"""
Settings Panel Lock

The settings panel (storage connection, branding, backend script) is
guarded by a password separate from any PIN. Only its digest is stored.

Lifecycle of the stored password:
1. Nothing stored: the configured default is hashed and stored.
2. Legacy plaintext under LEGACY_PASSWORD_KEY: hashed, moved to
   PASSWORD_HASH_KEY, plaintext removed.
3. Changed by an admin: new digest replaces the old one.

After max_unlock_attempts wrong passwords the panel refuses every attempt
for lockout_seconds, then the counter starts over.
"""

import time
from typing import Callable, Optional

from src.config import SecuritySettings, get_settings
from src.security.hasher import hash_secret, same_secret
from src.services.storage.local import LocalKeyValueStore

PASSWORD_HASH_KEY = "siwarga_settings_pass_hash"
LEGACY_PASSWORD_KEY = "siwarga_settings_pass"


class SettingsLockedError(Exception):
    """Too many wrong passwords; try again later."""

    def __init__(self, seconds_left: float):
        self.seconds_left = seconds_left
        super().__init__(f"Settings locked for another {seconds_left:.0f} seconds")


class SettingsPasswordError(ValueError):
    """New settings password rejected."""
    pass


class SettingsLock:
    def __init__(
        self,
        store: LocalKeyValueStore,
        settings: Optional[SecuritySettings] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._store = store
        self._settings = settings or get_settings().security
        self._clock = clock
        self._failed_attempts = 0
        self._locked_until: Optional[float] = None
        self._password_hash = self._load_password_hash()

    def _load_password_hash(self) -> str:
        current = self._store.get_item(PASSWORD_HASH_KEY)
        legacy = self._store.get_item(LEGACY_PASSWORD_KEY)

        if legacy and not current:
            current = hash_secret(legacy)
            self._store.set_item(PASSWORD_HASH_KEY, current)
            self._store.remove_item(LEGACY_PASSWORD_KEY)

        if not current:
            current = hash_secret(self._settings.default_settings_password)
            self._store.set_item(PASSWORD_HASH_KEY, current)

        return current

    @property
    def failed_attempts(self) -> int:
        return self._failed_attempts

    @property
    def remaining_attempts(self) -> int:
        return max(self._settings.max_unlock_attempts - self._failed_attempts, 0)

    def seconds_locked(self) -> float:
        """Seconds left in the current lockout (0 when not locked)."""
        if self._locked_until is None:
            return 0.0
        left = self._locked_until - self._clock()
        if left <= 0:
            self._locked_until = None
            self._failed_attempts = 0
            return 0.0
        return left

    @property
    def is_locked_out(self) -> bool:
        return self.seconds_locked() > 0

    def unlock(self, password: str) -> bool:
        """
        Check a settings password.

        Returns False for a wrong password (and counts it).
        Raises SettingsLockedError while locked out, including on the
        attempt that triggers the lockout.
        """
        left = self.seconds_locked()
        if left > 0:
            raise SettingsLockedError(left)

        if password.strip() and same_secret(hash_secret(password), self._password_hash):
            self._failed_attempts = 0
            return True

        self._failed_attempts += 1
        if self._failed_attempts >= self._settings.max_unlock_attempts:
            self._locked_until = self._clock() + self._settings.lockout_seconds
            raise SettingsLockedError(float(self._settings.lockout_seconds))
        return False

    def change_password(self, new_password: str, confirm_password: str) -> None:
        if len(new_password) < self._settings.min_settings_password_length:
            raise SettingsPasswordError(
                f"Password must be at least {self._settings.min_settings_password_length} characters"
            )
        if new_password != confirm_password:
            raise SettingsPasswordError("Password confirmation does not match")
        self._password_hash = hash_secret(new_password)
        self._store.set_item(PASSWORD_HASH_KEY, self._password_hash)
