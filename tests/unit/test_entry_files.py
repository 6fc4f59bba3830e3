"""Unit tests for gated file listing on bounty entries.

Fixture bounty: user 1 pledges 50 BUZZ (creator), user 2 pledges 50 BUZZ,
user 3 owns the entry, user 9 is an unrelated viewer.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from bountyhub.db.connection import Database
from bountyhub.db.schema import init_schema
from bountyhub.errors import NotFoundError
from bountyhub.ledger.buzz import BuzzLedger
from bountyhub.services.bounties import BountyService
from bountyhub.services.entries import BountyEntryService
from bountyhub.store.records import Currency, EntryFileMeta, FileDescriptor, FileInput

OWNER, VIEWER = 3, 9


def _setup(
    files: list[FileInput], *, currency: Currency = Currency.BUZZ
) -> tuple[BountyEntryService, int]:
    db = Database(Path(":memory:"))
    init_schema(db)
    bounties = BountyService(db)
    entries = BountyEntryService(db, BuzzLedger(Database(Path(":memory:"))))
    bounty = bounties.create_bounty(user_id=1, name="b", unit_amount=50, currency=currency)
    bounties.add_benefactor(bounty_id=bounty.id, user_id=2, unit_amount=50, currency=currency)
    entry = entries.upsert_entry(bounty_id=bounty.id, user_id=OWNER, files=files)
    return entries, entry.id


def _file(name: str, **meta: object) -> FileInput:
    return FileInput(
        name=name,
        url=f"https://cdn.example/{name}",
        size_kb=1024,
        metadata=EntryFileMeta(**meta),  # type: ignore[arg-type]
    )


def _urls(files: list[FileDescriptor]) -> dict[str, str | None]:
    return {f.name: f.url for f in files}


class TestUnlockThreshold:
    """Files unlock once the entry's awarded total reaches unlock_amount."""

    def test_free_file_visible_to_anyone(self) -> None:
        """unlock_amount 0 needs no awards."""
        entries, entry_id = _setup([_file("free")])
        assert _urls(entries.list_files(entry_id)) == {"free": "https://cdn.example/free"}

    def test_locked_below_threshold(self) -> None:
        """50 awarded against a 100 threshold hides the url."""
        entries, entry_id = _setup([_file("model", unlock_amount=100)])
        entries.award_entry(entry_id, 1)

        (f,) = entries.list_files(entry_id, user_id=VIEWER)
        assert f.url is None
        assert f.name == "model"
        assert f.size_kb == 1024

    def test_unlocked_at_threshold(self) -> None:
        """Reaching the threshold exactly reveals the url."""
        entries, entry_id = _setup([_file("model", unlock_amount=100)])
        entries.award_entry(entry_id, 1)
        entries.award_entry(entry_id, 2)

        (f,) = entries.list_files(entry_id, user_id=VIEWER)
        assert f.url == "https://cdn.example/model"

    def test_mixed_files_gated_individually(self) -> None:
        """Each file is checked against its own threshold."""
        entries, entry_id = _setup(
            [_file("cheap", unlock_amount=50), _file("pricey", unlock_amount=500)]
        )
        entries.award_entry(entry_id, 1)
        assert _urls(entries.list_files(entry_id, user_id=VIEWER)) == {
            "cheap": "https://cdn.example/cheap",
            "pricey": None,
        }

    def test_stored_url_untouched(self) -> None:
        """Hiding a url only affects the returned copy."""
        entries, entry_id = _setup([_file("model", unlock_amount=100)])
        entries.list_files(entry_id, user_id=VIEWER)
        (f,) = entries.list_files(entry_id, user_id=OWNER)
        assert f.url == "https://cdn.example/model"


class TestBenefactorsOnly:
    """benefactors_only files are reserved for benefactors who awarded the entry."""

    def test_awarding_benefactor_sees_file(self) -> None:
        """The benefactor whose pledge went to the entry gets the url."""
        entries, entry_id = _setup([_file("secret", benefactors_only=True)])
        entries.award_entry(entry_id, 1)
        (f,) = entries.list_files(entry_id, user_id=1)
        assert f.url is not None

    def test_non_awarding_benefactor_hidden(self) -> None:
        """A benefactor who has not awarded this entry is refused."""
        entries, entry_id = _setup([_file("secret", benefactors_only=True)])
        entries.award_entry(entry_id, 1)
        (f,) = entries.list_files(entry_id, user_id=2)
        assert f.url is None

    def test_anonymous_hidden(self) -> None:
        """Anonymous callers never see benefactors-only files."""
        entries, entry_id = _setup([_file("secret", benefactors_only=True)])
        entries.award_entry(entry_id, 1)
        (f,) = entries.list_files(entry_id)
        assert f.url is None

    def test_threshold_still_applies_to_awarding_benefactor(self) -> None:
        """Awarding the entry does not bypass unlock_amount."""
        entries, entry_id = _setup(
            [_file("secret", benefactors_only=True, unlock_amount=100)]
        )
        entries.award_entry(entry_id, 1)
        (f,) = entries.list_files(entry_id, user_id=1)
        assert f.url is None


class TestPrivilegedCallers:
    """Owners and moderators bypass every gate."""

    @pytest.mark.parametrize("meta", [{"unlock_amount": 1000}, {"benefactors_only": True}])
    def test_owner_sees_everything(self, meta: dict[str, object]) -> None:
        """The entry owner always gets urls."""
        entries, entry_id = _setup([_file("f", **meta)])
        (f,) = entries.list_files(entry_id, user_id=OWNER)
        assert f.url is not None

    def test_moderator_sees_everything(self) -> None:
        """Moderators always get urls."""
        entries, entry_id = _setup([_file("f", unlock_amount=1000, benefactors_only=True)])
        (f,) = entries.list_files(entry_id, user_id=VIEWER, is_moderator=True)
        assert f.url is not None


class TestCurrencyAndErrors:
    """Currency selection and missing entries."""

    def test_usd_benefactor_counts_usd_awards(self) -> None:
        """A USD benefactor's view counts the USD total."""
        entries, entry_id = _setup([_file("f", unlock_amount=50)], currency=Currency.USD)
        entries.award_entry(entry_id, 1)
        (as_benefactor,) = entries.list_files(entry_id, user_id=2)
        (as_viewer,) = entries.list_files(entry_id, user_id=VIEWER)
        assert as_benefactor.url is not None
        assert as_viewer.url is None

    def test_missing_entry(self) -> None:
        """Unknown entries raise NotFoundError."""
        entries, _ = _setup([])
        with pytest.raises(NotFoundError):
            entries.list_files(999)
