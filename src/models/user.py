"""
User and Session Models for SiWarga

A user is one housing unit (or the treasurer). The PIN field is the only
credential; what it may contain over its lifetime is described in
src.security.reconciler.

Wire names (houseNumber, pin, ...) are those of the Users sheet and of the
local store, so models are always dumped with by_alias=True.
"""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

# =============================================================================
# HOUSE IDENTIFIERS
# =============================================================================

ADMIN_HOUSE_ID = "Admin"
DEFAULT_ADMIN_NAME = "Bendahara RW"

BLOCK_LETTERS = ["A", "B", "C", "D"]
BLOCK_NUMBERS = ["1", "2", "3", "4", "5"]
HOUSE_NUMBERS = [str(n) for n in range(1, 23)]


class InvalidHouseIdError(ValueError):
    """House identifier outside the fixed blocks/numbers."""
    pass


def compose_house_id(block_letter: str, block_number: Any, house_number: Any) -> str:
    """
    Build a house identifier such as "A1/12" from the three pickers.

    Raises InvalidHouseIdError for values outside the fixed sets.
    """
    letter = str(block_letter).strip().upper()
    block = str(block_number).strip()
    house = str(house_number).strip()

    if letter not in BLOCK_LETTERS:
        raise InvalidHouseIdError(f"Unknown block letter: {block_letter!r}")
    if block not in BLOCK_NUMBERS:
        raise InvalidHouseIdError(f"Unknown block number: {block_number!r}")
    if house not in HOUSE_NUMBERS:
        raise InvalidHouseIdError(f"Unknown house number: {house_number!r}")

    return f"{letter}{block}/{house}"


def is_valid_house_id(house_id: str) -> bool:
    """True for well-formed resident identifiers (not the admin sentinel)."""
    letter_block, sep, house = house_id.partition("/")
    if not sep or len(letter_block) != 2:
        return False
    try:
        compose_house_id(letter_block[0], letter_block[1], house)
    except InvalidHouseIdError:
        return False
    return True


# =============================================================================
# ENUMS
# =============================================================================

class Role(str, Enum):
    """Who the user is."""
    RESIDENT = "resident"
    ADMIN = "admin"

    @classmethod
    def _missing_(cls, value):
        # Rows written before the rename still say "warga"
        if isinstance(value, str):
            lowered = value.strip().lower()
            if lowered == "warga":
                return cls.RESIDENT
            for member in cls:
                if member.value == lowered:
                    return member
        return None


# =============================================================================
# USER RECORD
# =============================================================================

def coerce_credential(value: Any) -> str:
    """
    Turn a raw PIN cell into a string.

    The spreadsheet may hand back numbers (10147, 10147.0) or null for
    the PIN column.
    """
    if value is None:
        return ""
    if isinstance(value, bool):
        return str(value).lower()
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


class UserRecord(BaseModel):
    """
    One registered housing unit, or the admin.

    The pin field holds whatever the data source holds: normally a digest,
    possibly legacy plaintext or "" (see src.security.reconciler).
    """
    model_config = ConfigDict(populate_by_name=True)

    house_id: str = Field(
        ...,
        alias="houseNumber",
        min_length=1,
        description="House identifier (e.g. A1/12) or 'Admin'"
    )
    name: str = Field(
        default="",
        max_length=200,
        description="Display name"
    )
    role: Role = Field(
        default=Role.RESIDENT,
    )
    pin: str = Field(
        default="",
        description="Stored credential"
    )

    @field_validator("house_id", "name", mode="before")
    @classmethod
    def coerce_text(cls, v: Any) -> str:
        return "" if v is None else str(v).strip()

    @field_validator("pin", mode="before")
    @classmethod
    def coerce_pin(cls, v: Any) -> str:
        return coerce_credential(v)

    @field_validator("role", mode="before")
    @classmethod
    def default_blank_role(cls, v: Any) -> Any:
        if v is None or (isinstance(v, str) and not v.strip()):
            return Role.RESIDENT
        return v

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN

    @property
    def first_name(self) -> str:
        parts = self.name.split()
        return parts[0] if parts else self.house_id

    def to_wire(self) -> dict:
        """Dictionary in the wire format of the stores."""
        return self.model_dump(mode="json", by_alias=True)


def placeholder_admin() -> UserRecord:
    """Admin record used when no admin has been provisioned yet."""
    return UserRecord(
        house_id=ADMIN_HOUSE_ID,
        name=DEFAULT_ADMIN_NAME,
        role=Role.ADMIN,
        pin="",
    )


class Session(BaseModel):
    """An authenticated user. No expiry, no server side."""

    user: UserRecord
    started_at: datetime = Field(default_factory=datetime.utcnow)
    credential_upgraded: bool = Field(
        default=False,
        description="Was the stored PIN rewritten to a digest during login?"
    )

    @property
    def is_admin(self) -> bool:
        return self.user.is_admin

    @property
    def house_id(self) -> str:
        return self.user.house_id
