"""Row-level access to ``bounties`` and ``bounty_benefactors``.

Every function takes the storage handle explicitly as its first argument: a
:class:`~bountyhub.db.connection.Database` for autocommit reads, or a
:class:`~bountyhub.db.connection.UnitOfWork` when the call is part of a
larger atomic operation.
"""

from __future__ import annotations

from datetime import datetime, timezone

from bountyhub.db.connection import Handle
from bountyhub.store.records import Bounty, BountyBenefactor, Currency


def utc_now() -> str:
    """Return the current UTC time as an ISO 8601 string."""
    return datetime.now(timezone.utc).isoformat()


# ---------------------------------------------------------------------------
# Bounties
# ---------------------------------------------------------------------------


def insert_bounty(
    handle: Handle,
    *,
    user_id: int | None,
    name: str,
    description: str = "",
) -> Bounty:
    """Insert a new, incomplete bounty and return it."""
    cur = handle.execute(
        "INSERT INTO bounties (user_id, name, description, complete, created_at)"
        " VALUES (?, ?, ?, 0, ?)",
        (user_id, name, description, utc_now()),
    )
    bounty = get_bounty(handle, int(cur.lastrowid or 0))
    if bounty is None:
        raise RuntimeError("Inserted bounty row could not be read back.")
    return bounty


def get_bounty(handle: Handle, bounty_id: int) -> Bounty | None:
    """Return the bounty with *bounty_id*, or ``None``."""
    row = handle.query_one("SELECT * FROM bounties WHERE id = ?", (bounty_id,))
    return Bounty.from_row(row) if row is not None else None


def mark_bounty_complete(handle: Handle, bounty_id: int) -> bool:
    """Set ``complete = 1``.  Returns ``True`` if the flag changed."""
    cur = handle.execute(
        "UPDATE bounties SET complete = 1 WHERE id = ? AND complete = 0",
        (bounty_id,),
    )
    return cur.rowcount > 0


# ---------------------------------------------------------------------------
# Benefactors
# ---------------------------------------------------------------------------


def insert_benefactor(
    handle: Handle,
    *,
    bounty_id: int,
    user_id: int,
    unit_amount: int,
    currency: Currency,
) -> BountyBenefactor:
    """Insert a pledge row and return it."""
    handle.execute(
        "INSERT INTO bounty_benefactors"
        " (bounty_id, user_id, unit_amount, currency, created_at)"
        " VALUES (?, ?, ?, ?, ?)",
        (bounty_id, user_id, unit_amount, currency.value, utc_now()),
    )
    benefactor = get_benefactor(handle, bounty_id=bounty_id, user_id=user_id)
    if benefactor is None:
        raise RuntimeError("Inserted pledge row could not be read back.")
    return benefactor


def get_benefactor(
    handle: Handle, *, bounty_id: int, user_id: int
) -> BountyBenefactor | None:
    """Return the pledge of *user_id* toward *bounty_id*, or ``None``."""
    row = handle.query_one(
        "SELECT * FROM bounty_benefactors WHERE bounty_id = ? AND user_id = ?",
        (bounty_id, user_id),
    )
    return BountyBenefactor.from_row(row) if row is not None else None


def list_benefactors(handle: Handle, bounty_id: int) -> list[BountyBenefactor]:
    """Return every pledge toward *bounty_id*, oldest first."""
    rows = handle.query(
        "SELECT * FROM bounty_benefactors WHERE bounty_id = ?"
        " ORDER BY created_at, user_id",
        (bounty_id,),
    )
    return [BountyBenefactor.from_row(r) for r in rows]


def increase_benefactor_amount(
    handle: Handle, *, bounty_id: int, user_id: int, unit_amount: int
) -> None:
    """Add *unit_amount* to an unawarded pledge."""
    handle.execute(
        "UPDATE bounty_benefactors SET unit_amount = unit_amount + ?"
        " WHERE bounty_id = ? AND user_id = ? AND awarded_to_id IS NULL",
        (unit_amount, bounty_id, user_id),
    )


def award_benefactor(
    handle: Handle, *, bounty_id: int, user_id: int, entry_id: int
) -> bool:
    """Link an unawarded pledge to *entry_id*.

    The update only matches rows whose ``awarded_to_id`` is still ``NULL``,
    so of two racing awards exactly one succeeds.

    Returns
    -------
    bool
        ``True`` if the pledge was awarded by this call.
    """
    cur = handle.execute(
        "UPDATE bounty_benefactors SET awarded_to_id = ?, awarded_at = ?"
        " WHERE bounty_id = ? AND user_id = ? AND awarded_to_id IS NULL",
        (entry_id, utc_now(), bounty_id, user_id),
    )
    return cur.rowcount == 1


def has_unawarded_benefactor(handle: Handle, bounty_id: int) -> bool:
    """Return ``True`` if any pledge toward *bounty_id* is still unawarded."""
    row = handle.query_one(
        "SELECT 1 FROM bounty_benefactors"
        " WHERE bounty_id = ? AND awarded_to_id IS NULL LIMIT 1",
        (bounty_id,),
    )
    return row is not None
