"""Pydantic records for bounties, benefactors, entries, files and images.

All records cross module boundaries (store → service → API) and are therefore
Pydantic v2 ``BaseModel`` subclasses.  Each has a ``from_row`` constructor that
rebuilds it from a ``sqlite3.Row``.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

logger = logging.getLogger(__name__)


class Currency(str, Enum):
    """Currencies a benefactor may pledge in."""

    BUZZ = "BUZZ"
    USD = "USD"


# ---------------------------------------------------------------------------
# Bounties and benefactors
# ---------------------------------------------------------------------------


class Bounty(BaseModel):
    """A funded task accepting entries from many users.

    Attributes
    ----------
    id:
        Primary key.
    user_id:
        Creator of the bounty, or ``None`` if the account is gone.
    name:
        Short title.
    description:
        Free-form description.
    complete:
        ``True`` once every benefactor has awarded its pledge.  Never goes
        back to ``False``.
    created_at:
        ISO 8601 creation timestamp.
    """

    id: int
    user_id: int | None = None
    name: str
    description: str = ""
    complete: bool = False
    created_at: str

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> Bounty:
        """Build a :class:`Bounty` from a ``bounties`` row."""
        data = dict(row)
        data["complete"] = bool(data["complete"])
        return cls(**data)


class BountyBenefactor(BaseModel):
    """A user's pledge toward a bounty, awardable to exactly one entry.

    Attributes
    ----------
    bounty_id:
        Parent bounty.
    user_id:
        The pledging user.
    unit_amount:
        Pledged amount, in units of *currency*.
    currency:
        Pledge currency.
    awarded_to_id:
        Entry this pledge was awarded to.  Write-once.
    awarded_at:
        ISO 8601 timestamp of the award, or ``None``.
    created_at:
        ISO 8601 timestamp of the pledge.
    """

    bounty_id: int
    user_id: int
    unit_amount: int
    currency: Currency = Currency.BUZZ
    awarded_to_id: int | None = None
    awarded_at: str | None = None
    created_at: str

    @property
    def awarded(self) -> bool:
        """``True`` once the pledge has been awarded to an entry."""
        return self.awarded_to_id is not None

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> BountyBenefactor:
        """Build a :class:`BountyBenefactor` from a ``bounty_benefactors`` row."""
        return cls(**dict(row))


# ---------------------------------------------------------------------------
# Entries
# ---------------------------------------------------------------------------


class BountyEntry(BaseModel):
    """A submission to a bounty."""

    id: int
    bounty_id: int
    user_id: int | None = None
    description: str = ""
    created_at: str

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> BountyEntry:
        """Build a :class:`BountyEntry` from a ``bounty_entries`` row."""
        return cls(**dict(row))


class EntryAward(BaseModel):
    """Cumulative amount awarded to one entry in one currency."""

    id: int
    awarded_unit_amount: int = 0


# ---------------------------------------------------------------------------
# Files and images
# ---------------------------------------------------------------------------


class EntryFileMeta(BaseModel):
    """Access rules attached to a file on a bounty entry.

    Attributes
    ----------
    unlock_amount:
        Cumulative awarded amount the entry must reach before non-owners can
        download the file.
    currency:
        Currency *unlock_amount* is expressed in.
    benefactors_only:
        When ``True`` only the benefactor who awarded the entry may download
        the file.
    """

    unlock_amount: int = 0
    currency: Currency = Currency.BUZZ
    benefactors_only: bool = False

    model_config = ConfigDict(extra="allow")

    @field_validator("unlock_amount")
    @classmethod
    def _non_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError("unlock_amount must be >= 0")
        return v


class FileDescriptor(BaseModel):
    """A file row as returned to callers.

    ``url`` is ``None`` when the caller is not allowed to download the file;
    every other field is still populated.
    """

    id: int
    entity_id: int
    entity_type: str
    name: str
    url: str | None
    size_kb: float = 0.0
    metadata: EntryFileMeta = Field(default_factory=EntryFileMeta)

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> FileDescriptor:
        """Build a :class:`FileDescriptor` from a ``files`` row."""
        data = dict(row)
        data["metadata"] = _load_json(data.get("metadata"))
        return cls(**data)


class FileInput(BaseModel):
    """A file supplied with an entry upsert.  Rows with an ``id`` are updated."""

    id: int | None = None
    name: str
    url: str
    size_kb: float = 0.0
    metadata: EntryFileMeta = Field(default_factory=EntryFileMeta)


class ImageRecord(BaseModel):
    """An image row, linked to entities through ``image_connections``."""

    id: int
    url: str
    name: str | None = None
    user_id: int | None = None
    meta: dict[str, Any] = Field(default_factory=dict)
    created_at: str

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> ImageRecord:
        """Build an :class:`ImageRecord` from an ``images`` row."""
        data = dict(row)
        data["meta"] = _load_json(data.get("meta"))
        return cls(**data)


class ImageInput(BaseModel):
    """An image supplied with an entry upsert."""

    url: str
    name: str | None = None
    meta: dict[str, Any] = Field(default_factory=dict)


def _load_json(raw: str | None) -> dict[str, Any]:
    """Decode a JSON object column, tolerating empty or corrupt values."""
    if not raw:
        return {}
    try:
        value = json.loads(raw)
    except json.JSONDecodeError:
        logger.warning("Failed to parse JSON column; using an empty object.")
        return {}
    return value if isinstance(value, dict) else {}
