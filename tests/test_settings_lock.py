"""Tests for the settings panel lock."""

import pytest

from src.config import SecuritySettings
from src.security.hasher import hash_secret
from src.security.settings_lock import (
    LEGACY_PASSWORD_KEY,
    PASSWORD_HASH_KEY,
    SettingsLock,
    SettingsLockedError,
    SettingsPasswordError,
)
from src.services.storage import LocalKeyValueStore


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


def make_lock(store=None, clock=None):
    return SettingsLock(
        store or LocalKeyValueStore(),
        settings=SecuritySettings(),
        clock=clock or FakeClock(),
    )


class TestPasswordStorage:
    """What ends up in the key-value store."""

    def test_default_password_is_hashed(self):
        store = LocalKeyValueStore()
        make_lock(store)
        assert store.get_item(PASSWORD_HASH_KEY) == hash_secret("KodeRahasia123!")

    def test_legacy_password_migrated(self):
        store = LocalKeyValueStore()
        store.set_item(LEGACY_PASSWORD_KEY, "rahasiaLama")
        lock = make_lock(store)
        assert store.get_item(LEGACY_PASSWORD_KEY) is None
        assert store.get_item(PASSWORD_HASH_KEY) == hash_secret("rahasiaLama")
        assert lock.unlock("rahasiaLama")

    def test_existing_hash_kept(self):
        store = LocalKeyValueStore()
        store.set_item(PASSWORD_HASH_KEY, hash_secret("sudahDiganti"))
        assert make_lock(store).unlock("sudahDiganti")


class TestUnlock:
    """Attempt counting and lockout."""

    def test_default_password_unlocks(self):
        assert make_lock().unlock("KodeRahasia123!")

    def test_wrong_password(self):
        lock = make_lock()
        assert not lock.unlock("salah")
        assert lock.failed_attempts == 1
        assert lock.remaining_attempts == 2

    def test_third_wrong_attempt_locks_out(self):
        lock = make_lock()
        lock.unlock("salah")
        lock.unlock("salah")
        with pytest.raises(SettingsLockedError):
            lock.unlock("salah")
        assert lock.is_locked_out

    def test_locked_out_refuses_correct_password(self):
        lock = make_lock()
        for _ in range(2):
            lock.unlock("salah")
        with pytest.raises(SettingsLockedError):
            lock.unlock("salah")
        with pytest.raises(SettingsLockedError):
            lock.unlock("KodeRahasia123!")

    def test_lockout_expires(self):
        clock = FakeClock()
        lock = make_lock(clock=clock)
        for _ in range(2):
            lock.unlock("salah")
        with pytest.raises(SettingsLockedError):
            lock.unlock("salah")

        clock.now += 30
        assert not lock.is_locked_out
        assert lock.failed_attempts == 0
        assert lock.unlock("KodeRahasia123!")

    def test_success_resets_counter(self):
        lock = make_lock()
        lock.unlock("salah")
        lock.unlock("KodeRahasia123!")
        assert lock.failed_attempts == 0

    def test_blank_password_never_unlocks(self):
        assert not make_lock().unlock("   ")


class TestChangePassword:
    def test_change(self):
        store = LocalKeyValueStore()
        lock = make_lock(store)
        lock.change_password("baru123", "baru123")
        assert store.get_item(PASSWORD_HASH_KEY) == hash_secret("baru123")
        assert lock.unlock("baru123")
        assert not lock.unlock("KodeRahasia123!")

    def test_too_short(self):
        with pytest.raises(SettingsPasswordError):
            make_lock().change_password("abc", "abc")

    def test_confirmation_mismatch(self):
        with pytest.raises(SettingsPasswordError):
            make_lock().change_password("baru123", "baru124")
