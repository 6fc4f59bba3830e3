"""Row-level access to ``bounty_entries`` and awarded-amount aggregation."""

from __future__ import annotations

from collections.abc import Sequence

from bountyhub.db.connection import Handle
from bountyhub.store.bounties import utc_now
from bountyhub.store.records import BountyEntry, Currency, EntryAward

#: Entry ids bound per aggregation query; stays under SQLITE_MAX_VARIABLE_NUMBER.
MAX_IDS_PER_QUERY: int = 500


def get_entry(handle: Handle, entry_id: int) -> BountyEntry | None:
    """Return the entry with *entry_id*, or ``None``."""
    row = handle.query_one("SELECT * FROM bounty_entries WHERE id = ?", (entry_id,))
    return BountyEntry.from_row(row) if row is not None else None


def list_entries(
    handle: Handle, bounty_id: int, user_id: int | None = None
) -> list[BountyEntry]:
    """Return the entries of *bounty_id*, optionally only those by *user_id*."""
    if user_id is None:
        rows = handle.query(
            "SELECT * FROM bounty_entries WHERE bounty_id = ? ORDER BY id",
            (bounty_id,),
        )
    else:
        rows = handle.query(
            "SELECT * FROM bounty_entries WHERE bounty_id = ? AND user_id = ?"
            " ORDER BY id",
            (bounty_id, user_id),
        )
    return [BountyEntry.from_row(r) for r in rows]


def insert_entry(
    handle: Handle, *, bounty_id: int, user_id: int | None, description: str
) -> BountyEntry:
    """Insert a new entry and return it."""
    cur = handle.execute(
        "INSERT INTO bounty_entries (bounty_id, user_id, description, created_at)"
        " VALUES (?, ?, ?, ?)",
        (bounty_id, user_id, description, utc_now()),
    )
    entry = get_entry(handle, int(cur.lastrowid or 0))
    if entry is None:
        raise RuntimeError("Inserted entry row could not be read back.")
    return entry


def update_entry_description(
    handle: Handle, entry_id: int, description: str
) -> BountyEntry | None:
    """Replace the description of an entry.  Returns ``None`` if it is missing."""
    cur = handle.execute(
        "UPDATE bounty_entries SET description = ? WHERE id = ?",
        (description, entry_id),
    )
    if cur.rowcount == 0:
        return None
    return get_entry(handle, entry_id)


def delete_entry(handle: Handle, entry_id: int) -> bool:
    """Delete the entry row.  Returns ``True`` if a row was removed."""
    cur = handle.execute("DELETE FROM bounty_entries WHERE id = ?", (entry_id,))
    return cur.rowcount > 0


def get_awarded_unit_amounts(
    handle: Handle,
    ids: Sequence[int],
    currency: Currency | None = Currency.BUZZ,
) -> list[EntryAward]:
    """Sum the pledges awarded to each entry in *ids*.

    Parameters
    ----------
    handle:
        Storage handle.
    ids:
        Entry ids to aggregate.  Ids with no entry row are omitted from the
        result; entries with no awards report ``0``.  Duplicates are ignored
        and large id lists are queried in chunks of
        :data:`MAX_IDS_PER_QUERY`.
    currency:
        Only count pledges in this currency.  ``None`` counts every currency.

    Returns
    -------
    list[EntryAward]
        One :class:`EntryAward` per existing entry, ordered by id.
    """
    unique_ids = sorted(set(ids))
    currency_clause = "" if currency is None else " AND bb.currency = ?"
    awards: list[EntryAward] = []
    for start in range(0, len(unique_ids), MAX_IDS_PER_QUERY):
        chunk = unique_ids[start : start + MAX_IDS_PER_QUERY]
        placeholders = ", ".join("?" for _ in chunk)
        sql = (
            "SELECT be.id AS id,"
            " COALESCE(SUM(bb.unit_amount), 0) AS awarded_unit_amount"
            " FROM bounty_entries be"
            " LEFT JOIN bounty_benefactors bb"
            f" ON bb.awarded_to_id = be.id{currency_clause}"
            f" WHERE be.id IN ({placeholders})"  # noqa: S608
            " GROUP BY be.id ORDER BY be.id"
        )
        params: tuple[object, ...] = tuple(chunk)
        if currency is not None:
            params = (currency.value, *params)
        awards.extend(EntryAward(**dict(r)) for r in handle.query(sql, params))
    return awards
