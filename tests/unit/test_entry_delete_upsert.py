"""Unit tests for entry creation, update, reads and deletion."""

from __future__ import annotations

from pathlib import Path

import pytest

from bountyhub.db.connection import Database
from bountyhub.db.schema import ENTRY_ENTITY_TYPE, init_schema
from bountyhub.errors import InvalidStateError, NotFoundError, UnauthorizedError
from bountyhub.ledger.buzz import BuzzLedger
from bountyhub.services.bounties import BountyService
from bountyhub.services.entries import BountyEntryService
from bountyhub.store import bounties as bounty_store
from bountyhub.store import files as file_store
from bountyhub.store.records import Currency, FileInput, ImageInput


class _Fixture:
    def __init__(self, currency: Currency = Currency.BUZZ) -> None:
        self.db = Database(Path(":memory:"))
        init_schema(self.db)
        self.bounties = BountyService(self.db)
        self.entries = BountyEntryService(self.db, BuzzLedger(Database(Path(":memory:"))))
        self.bounty = self.bounties.create_bounty(
            user_id=1, name="b", unit_amount=50, currency=currency
        )

    def entry_with_attachments(self) -> int:
        entry = self.entries.upsert_entry(
            bounty_id=self.bounty.id,
            user_id=3,
            description="first try",
            files=[FileInput(name="a", url="https://cdn/a")],
            images=[ImageInput(url="https://img/a")],
        )
        return entry.id

    def file_count(self, entry_id: int) -> int:
        return len(file_store.list_files_by_entity(self.db, entry_id, ENTRY_ENTITY_TYPE))

    def image_count(self, entry_id: int) -> int:
        return len(file_store.list_images_by_entity(self.db, entry_id, ENTRY_ENTITY_TYPE))


# ---------------------------------------------------------------------------
# Upsert
# ---------------------------------------------------------------------------


class TestUpsertEntry:
    """Creating and updating entries with their attachments."""

    def test_create_with_files_and_images(self) -> None:
        """A new entry stores its files and images."""
        fx = _Fixture()
        entry_id = fx.entry_with_attachments()
        entry = fx.entries.get_entry_by_id(entry_id)
        assert entry.user_id == 3
        assert entry.description == "first try"
        assert fx.file_count(entry_id) == 1
        assert fx.image_count(entry_id) == 1

    def test_update_replaces_files_and_appends_images(self) -> None:
        """files replaces the file set; images are added."""
        fx = _Fixture()
        entry_id = fx.entry_with_attachments()
        updated = fx.entries.upsert_entry(
            entry_id=entry_id,
            bounty_id=fx.bounty.id,
            user_id=3,
            description="second try",
            files=[FileInput(name="b", url="https://cdn/b")],
            images=[ImageInput(url="https://img/b")],
        )
        assert updated.description == "second try"
        names = [f.name for f in fx.entries.list_files(entry_id, user_id=3)]
        assert names == ["b"]
        assert fx.image_count(entry_id) == 2

    def test_update_without_files_keeps_files(self) -> None:
        """Omitting files leaves the existing set alone."""
        fx = _Fixture()
        entry_id = fx.entry_with_attachments()
        fx.entries.upsert_entry(
            entry_id=entry_id, bounty_id=fx.bounty.id, user_id=3, description="x"
        )
        assert fx.file_count(entry_id) == 1

    def test_update_missing_entry(self) -> None:
        """Updating an unknown entry raises NotFoundError."""
        fx = _Fixture()
        with pytest.raises(NotFoundError):
            fx.entries.upsert_entry(entry_id=404, bounty_id=fx.bounty.id, user_id=3)

    def test_create_on_missing_bounty(self) -> None:
        """Entries need an existing bounty."""
        fx = _Fixture()
        with pytest.raises(NotFoundError):
            fx.entries.upsert_entry(bounty_id=404, user_id=3)

    def test_system_account_cannot_submit(self) -> None:
        """The payout account cannot own entries."""
        fx = _Fixture()
        with pytest.raises(UnauthorizedError, match="reserved"):
            fx.entries.upsert_entry(bounty_id=fx.bounty.id, user_id=0)
        assert fx.entries.get_all_entries_by_bounty_id(fx.bounty.id) == []

    def test_create_on_complete_bounty_rejected(self) -> None:
        """Complete bounties accept no new entries."""
        fx = _Fixture()
        bounty_store.mark_bounty_complete(fx.db, fx.bounty.id)
        with pytest.raises(InvalidStateError, match="complete"):
            fx.entries.upsert_entry(bounty_id=fx.bounty.id, user_id=3)


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------


class TestReads:
    """get_entry_by_id, listing and awarded totals."""

    def test_get_missing_entry(self) -> None:
        """Unknown ids raise NotFoundError."""
        with pytest.raises(NotFoundError):
            _Fixture().entries.get_entry_by_id(1)

    def test_list_entries_by_bounty_and_user(self) -> None:
        """Listing can be narrowed to one user."""
        fx = _Fixture()
        fx.entries.upsert_entry(bounty_id=fx.bounty.id, user_id=3)
        fx.entries.upsert_entry(bounty_id=fx.bounty.id, user_id=4)
        assert len(fx.entries.get_all_entries_by_bounty_id(fx.bounty.id)) == 2
        (only,) = fx.entries.get_all_entries_by_bounty_id(fx.bounty.id, user_id=4)
        assert only.user_id == 4

    def test_awarded_amounts_default_to_buzz(self) -> None:
        """USD awards are not counted by the default BUZZ query."""
        fx = _Fixture(currency=Currency.USD)
        entry_id = fx.entry_with_attachments()
        fx.entries.award_entry(entry_id, 1)
        (buzz,) = fx.entries.get_awarded_amounts([entry_id])
        (usd,) = fx.entries.get_awarded_amounts([entry_id], Currency.USD)
        assert buzz.awarded_unit_amount == 0
        assert usd.awarded_unit_amount == 50


# ---------------------------------------------------------------------------
# Delete
# ---------------------------------------------------------------------------


class TestDeleteEntry:
    """Deletion is allowed only for entries nobody awarded."""

    def test_unawarded_entry_deleted_with_attachments(self) -> None:
        """The entry, its files and its images all go."""
        fx = _Fixture()
        entry_id = fx.entry_with_attachments()

        deleted = fx.entries.delete_entry(entry_id)

        assert deleted is not None and deleted.id == entry_id
        with pytest.raises(NotFoundError):
            fx.entries.get_entry_by_id(entry_id)
        assert fx.file_count(entry_id) == 0
        assert fx.image_count(entry_id) == 0
        assert fx.db.query("SELECT * FROM images") == []

    def test_awarded_entry_not_deleted(self) -> None:
        """An awarded entry is kept along with its attachments."""
        fx = _Fixture()
        entry_id = fx.entry_with_attachments()
        fx.entries.award_entry(entry_id, 1)

        with pytest.raises(InvalidStateError, match="cannot be deleted"):
            fx.entries.delete_entry(entry_id)

        assert fx.entries.get_entry_by_id(entry_id).id == entry_id
        assert fx.file_count(entry_id) == 1
        assert fx.image_count(entry_id) == 1

    def test_usd_award_also_blocks_delete(self) -> None:
        """Awards in any currency count toward the deletion guard."""
        fx = _Fixture(currency=Currency.USD)
        entry_id = fx.entry_with_attachments()
        fx.entries.award_entry(entry_id, 1)
        with pytest.raises(InvalidStateError):
            fx.entries.delete_entry(entry_id)

    def test_delete_missing_entry(self) -> None:
        """Deleting an unknown entry raises NotFoundError."""
        with pytest.raises(NotFoundError):
            _Fixture().entries.delete_entry(42)

    def test_other_entries_untouched(self) -> None:
        """Only the targeted entry's attachments are removed."""
        fx = _Fixture()
        doomed = fx.entry_with_attachments()
        survivor = fx.entry_with_attachments()
        fx.entries.delete_entry(doomed)
        assert fx.file_count(survivor) == 1
        assert fx.image_count(survivor) == 1
