"""
Local Storage Implementation (demo mode)

DESIGN DECISION: The local store mirrors the browser local storage the
first version of SiWarga ran on: a flat map of string keys to
JSON-encoded string values. Here it is kept in one JSON file, so a demo
install survives restarts and can be inspected or deleted by hand.

Until something is written, the user and payment keys are absent and
the demo seed data is served instead. A present but garbled value is an
error, never a reason to fall back to the seed.
"""

import base64
import json
from pathlib import Path
from typing import Any, Optional, Union

from src.models.audit import AuditEvent
from src.models.payment import PaymentRecord, PaymentStatus
from src.models.user import UserRecord
from src.services.storage.interface import (
    AuditStorageInterface,
    DuplicateError,
    NotFoundError,
    PaymentStorageInterface,
    StorageError,
    UserStorageInterface,
)

USERS_KEY = "siwarga_users"
PAYMENTS_KEY = "siwarga_payments"
AUDIT_KEY = "siwarga_audit"

# Plaintext PINs on purpose: they are hashed by normalization on first load
DEMO_USERS = [
    {"houseNumber": "A1/1", "name": "Pak Budi", "role": "resident", "pin": "1234"},
    {"houseNumber": "Admin", "name": "Bendahara RW", "role": "admin", "pin": "1234"},
]

DEMO_PAYMENTS = [
    {
        "id": "1", "houseNumber": "A1/1", "userName": "Pak Budi",
        "month": "Januari", "year": 2024, "amount": 50000, "status": "confirmed",
        "note": "Lunas awal tahun", "date": "2024-01-05", "proofLink": "",
    },
    {
        "id": "2", "houseNumber": "A1/1", "userName": "Pak Budi",
        "month": "Februari", "year": 2024, "amount": 50000, "status": "pending",
        "note": "Transfer via BCA", "date": "2024-02-05", "proofLink": "",
    },
]


class LocalKeyValueStore:
    """
    Synchronous string key-value store backed by a JSON file.

    With path=None the store lives in memory only (used by tests).
    """

    def __init__(self, path: Optional[Union[str, Path]] = None):
        self._path = Path(path) if path is not None else None
        self._data: dict[str, str] = {}
        if self._path is not None and self._path.exists():
            self._data = self._read_file()

    def _read_file(self) -> dict[str, str]:
        try:
            raw = json.loads(self._path.read_text(encoding="utf-8") or "{}")
        except (OSError, ValueError) as e:
            raise StorageError(f"Local store is unreadable ({self._path}): {e}")
        if not isinstance(raw, dict):
            raise StorageError(f"Local store is not a key-value map: {self._path}")
        return {str(k): str(v) for k, v in raw.items()}

    def _flush(self) -> None:
        if self._path is None:
            return
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            tmp = self._path.with_suffix(self._path.suffix + ".tmp")
            tmp.write_text(json.dumps(self._data, ensure_ascii=False, indent=2), encoding="utf-8")
            tmp.replace(self._path)
        except OSError as e:
            raise StorageError(f"Failed to write local store: {e}")

    @property
    def path(self) -> Optional[Path]:
        return self._path

    def get_item(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._data[key] = value
        self._flush()

    def remove_item(self, key: str) -> None:
        if self._data.pop(key, None) is not None:
            self._flush()

    def get_json(self, key: str, default: Any = None) -> Any:
        """Decode a JSON value; default if the key is missing or garbled."""
        raw = self.get_item(key)
        if raw is None:
            return default
        try:
            return json.loads(raw)
        except ValueError:
            return default

    def set_json(self, key: str, value: Any) -> None:
        self.set_item(key, json.dumps(value, ensure_ascii=False))


def read_rows(store: LocalKeyValueStore, key: str, seed: list[dict]) -> list:
    """
    Decode the JSON list stored under key.

    Only a missing key falls back to seed. A value that does not decode,
    or is not a list, raises StorageError so callers keep what they have.
    """
    raw = store.get_item(key)
    if raw is None:
        return seed
    try:
        rows = json.loads(raw)
    except ValueError as e:
        raise StorageError(f"Stored value for {key} is not valid JSON: {e}")
    if not isinstance(rows, list):
        raise StorageError(f"Stored value for {key} is not a list")
    return rows


class LocalUserStorage(UserStorageInterface):
    """Users kept as one JSON list under USERS_KEY."""

    def __init__(self, store: LocalKeyValueStore, seed_demo_data: bool = True):
        self._store = store
        self._seed = seed_demo_data

    def _read(self) -> list[UserRecord]:
        rows = read_rows(self._store, USERS_KEY, DEMO_USERS if self._seed else [])
        users = []
        for row in rows:
            try:
                users.append(UserRecord.model_validate(row))
            except (ValueError, TypeError):
                continue  # Skip malformed rows
        return users

    def _write(self, users: list[UserRecord]) -> None:
        self._store.set_json(USERS_KEY, [user.to_wire() for user in users])

    async def list_users(self) -> list[UserRecord]:
        return self._read()

    async def register_user(self, user: UserRecord) -> bool:
        users = self._read()
        if any(existing.house_id == user.house_id for existing in users):
            raise DuplicateError(f"House already registered: {user.house_id}")
        users.append(user)
        self._write(users)
        return True

    async def update_user(self, user: UserRecord) -> bool:
        users = self._read()
        for idx, existing in enumerate(users):
            if existing.house_id == user.house_id:
                users[idx] = user
                self._write(users)
                return True
        raise NotFoundError(f"User not found: {user.house_id}")


class LocalPaymentStorage(PaymentStorageInterface):
    """
    Payments kept as one JSON list under PAYMENTS_KEY, newest first.

    Proofs are not stored separately; they are embedded as data: URLs.
    """

    def __init__(self, store: LocalKeyValueStore, seed_demo_data: bool = True):
        self._store = store
        self._seed = seed_demo_data

    def _read(self) -> list[PaymentRecord]:
        rows = read_rows(self._store, PAYMENTS_KEY, DEMO_PAYMENTS if self._seed else [])
        payments = []
        for row in rows:
            try:
                payments.append(PaymentRecord.model_validate(row))
            except (ValueError, TypeError):
                continue
        return payments

    def _write(self, payments: list[PaymentRecord]) -> None:
        self._store.set_json(PAYMENTS_KEY, [payment.to_wire() for payment in payments])

    async def list_payments(self) -> list[PaymentRecord]:
        return self._read()

    async def add_payment(self, payment: PaymentRecord) -> bool:
        payments = self._read()
        if any(existing.id == payment.id for existing in payments):
            raise DuplicateError(f"Payment already exists: {payment.id}")
        self._write([payment, *payments])
        return True

    async def update_payment_status(
        self,
        payment_id: str,
        status: PaymentStatus,
    ) -> bool:
        payments = self._read()
        for idx, payment in enumerate(payments):
            if payment.id == payment_id:
                payments[idx] = payment.model_copy(update={"status": PaymentStatus(status)})
                self._write(payments)
                return True
        raise NotFoundError(f"Payment not found: {payment_id}")

    async def store_proof(
        self,
        data: bytes,
        mime_type: str,
        file_name: str,
    ) -> str:
        encoded = base64.b64encode(data).decode("ascii")
        return f"data:{mime_type};base64,{encoded}"


class LocalAuditStorage(AuditStorageInterface):
    """Audit events as a capped JSON list under AUDIT_KEY, oldest first."""

    def __init__(self, store: LocalKeyValueStore, limit: int = 500):
        self._store = store
        self._limit = limit

    async def append_event(self, event: AuditEvent) -> bool:
        events = self._store.get_json(AUDIT_KEY, default=[])
        events.append(event.model_dump(mode="json"))
        self._store.set_json(AUDIT_KEY, events[-self._limit:])
        return True

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        events = []
        for row in reversed(self._store.get_json(AUDIT_KEY, default=[])):
            try:
                events.append(AuditEvent.model_validate(row))
            except ValueError:
                continue
            if len(events) >= limit:
                break
        return events
