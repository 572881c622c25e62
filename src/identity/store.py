"""
Identity Store

The in-memory identity table: every user record currently known, with
PINs normalized. One instance is owned by the app components and passed
explicitly to whoever needs it.

Replacing the table happens only through load(); callers fetch from
storage first and call load() only once the fetch has succeeded, so a
failed sync never leaves a half-empty table behind.
"""

from typing import Iterable, Iterator, Optional, Union

from src.models.user import Role, UserRecord, placeholder_admin
from src.security.reconciler import normalize_records


class IdentityStore:
    def __init__(self, records: Iterable[UserRecord] = ()):
        self._users: list[UserRecord] = normalize_records(records)

    def load(self, records: Iterable[UserRecord]) -> list[UserRecord]:
        """Replace the table with a normalized copy of records."""
        self._users = normalize_records(records)
        return self.users

    def normalize(self) -> list[UserRecord]:
        """Re-run normalization over the current table (idempotent)."""
        self._users = normalize_records(self._users)
        return self.users

    def upsert(self, record: UserRecord) -> UserRecord:
        """Insert record, or replace the one with the same house id."""
        for idx, existing in enumerate(self._users):
            if existing.house_id == record.house_id:
                self._users[idx] = record
                return record
        self._users.append(record)
        return record

    @property
    def users(self) -> list[UserRecord]:
        return list(self._users)

    @property
    def residents(self) -> list[UserRecord]:
        return [user for user in self._users if user.role == Role.RESIDENT]

    def find(self, house_id: str) -> Optional[UserRecord]:
        for user in self._users:
            if user.house_id == house_id:
                return user
        return None

    def find_admin(self) -> Optional[UserRecord]:
        for user in self._users:
            if user.role == Role.ADMIN:
                return user
        return None

    def detect_user(self, role: Union[Role, str], house_id: Optional[str] = None) -> Optional[UserRecord]:
        """
        Find who is trying to log in.

        Admins: the first admin record, or a placeholder admin with an
        empty PIN when none has been provisioned yet.
        Residents: the record for house_id, or None (not registered).
        """
        if Role(role) == Role.ADMIN:
            return self.find_admin() or placeholder_admin()
        if not house_id:
            return None
        return self.find(house_id)

    def __contains__(self, house_id: object) -> bool:
        return any(user.house_id == house_id for user in self._users)

    def __len__(self) -> int:
        return len(self._users)

    def __iter__(self) -> Iterator[UserRecord]:
        return iter(list(self._users))
