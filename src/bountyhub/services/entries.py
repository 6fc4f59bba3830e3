"""Bounty entry workflows: awards, gated file access, deletion and upserts.

Award flow (:meth:`BountyEntryService.award_entry`)
---------------------------------------------------
Inside one unit of work on the bounty database:

1. Load the entry; it must exist and have an owning user.
2. The parent bounty must not be complete.
3. Load the awarding user's pledge for the bounty; it must exist and must
   not have been awarded yet.
4. Link the pledge to the entry (write-once ``awarded_to_id``).
5. For BUZZ pledges, transfer the pledged amount from the system account to
   the entry owner through the payment ledger.  Other currencies have no
   payout rail and transfer nothing.

After that unit of work commits, a second short unit of work marks the bounty
complete when no unawarded pledge remains.

Notes
-----
- The ledger commits on its own database.  If anything after a successful
  transfer aborts the award unit of work (for example the run budget being
  exceeded), the pledge rollback does not reverse the transfer.  The failure
  is logged at ERROR with the ledger transaction id for manual reconciliation.
- The completion check runs after its own award commits, and writers are
  serialised, so whichever award commits last always observes every earlier
  award and completes the bounty.  A failed completion check does not fail
  the award that triggered it; it is logged at ERROR and the next award or
  an explicit :meth:`BountyEntryService.complete_bounty_if_fully_awarded`
  call completes the bounty.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from bountyhub.db.connection import Database
from bountyhub.db.schema import ENTRY_ENTITY_TYPE
from bountyhub.errors import (
    BountyHubError,
    InvalidStateError,
    NotFoundError,
    UnauthorizedError,
)
from bountyhub.ledger.buzz import (
    SYSTEM_ACCOUNT_ID,
    PaymentLedger,
    TransactionResult,
    TransactionType,
)
from bountyhub.store import bounties as bounty_store
from bountyhub.store import entries as entry_store
from bountyhub.store import files as file_store
from bountyhub.store.records import (
    BountyBenefactor,
    BountyEntry,
    Currency,
    EntryAward,
    FileDescriptor,
    FileInput,
    ImageInput,
)

logger = logging.getLogger(__name__)

#: Description attached to every award payout.
AWARD_DESCRIPTION: str = "Reason: Bounty entry has been awarded!"


class BountyEntryService:
    """Operations on bounty entries.

    Parameters
    ----------
    db:
        Handle on the bounty database.
    ledger:
        Payment ledger used for BUZZ payouts.
    system_account_id:
        Ledger account that funds payouts.
    """

    def __init__(
        self,
        db: Database,
        ledger: PaymentLedger,
        *,
        system_account_id: int = SYSTEM_ACCOUNT_ID,
    ) -> None:
        self._db = db
        self._ledger = ledger
        self._system_account_id = system_account_id

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_entry_by_id(self, entry_id: int) -> BountyEntry:
        """Return the entry, or raise :class:`NotFoundError`."""
        entry = entry_store.get_entry(self._db, entry_id)
        if entry is None:
            raise NotFoundError(f"Bounty entry {entry_id} does not exist.")
        return entry

    def get_all_entries_by_bounty_id(
        self, bounty_id: int, user_id: int | None = None
    ) -> list[BountyEntry]:
        """Return the bounty's entries, optionally only those by *user_id*."""
        return entry_store.list_entries(self._db, bounty_id, user_id)

    def get_awarded_amounts(
        self, ids: Sequence[int], currency: Currency = Currency.BUZZ
    ) -> list[EntryAward]:
        """Return the cumulative amount awarded to each entry in *currency*."""
        return entry_store.get_awarded_unit_amounts(self._db, ids, currency)

    # ------------------------------------------------------------------
    # Upsert
    # ------------------------------------------------------------------

    def upsert_entry(
        self,
        *,
        bounty_id: int,
        user_id: int,
        description: str = "",
        files: Sequence[FileInput] | None = None,
        images: Sequence[ImageInput] | None = None,
        entry_id: int | None = None,
    ) -> BountyEntry:
        """Create an entry, or update an existing one when *entry_id* is given.

        On update, a non-``None`` *files* replaces the entry's file set and a
        non-``None`` *images* is appended as new images.  Everything happens
        in one unit of work.

        Raises
        ------
        NotFoundError
            If *entry_id* or, on create, *bounty_id* does not exist.
        InvalidStateError
            If a new entry targets a complete bounty.
        UnauthorizedError
            If *user_id* is the system account, which cannot receive payouts.
        """
        if user_id == self._system_account_id:
            raise UnauthorizedError(f"Account {user_id} is reserved and cannot submit entries.")

        with self._db.transaction() as uow:
            if entry_id is not None:
                entry = entry_store.update_entry_description(uow, entry_id, description)
                if entry is None:
                    raise NotFoundError(f"Bounty entry {entry_id} does not exist.")
            else:
                bounty = bounty_store.get_bounty(uow, bounty_id)
                if bounty is None:
                    raise NotFoundError(f"Bounty {bounty_id} does not exist.")
                if bounty.complete:
                    raise InvalidStateError("Bounty is already complete.")
                entry = entry_store.insert_entry(
                    uow, bounty_id=bounty_id, user_id=user_id, description=description
                )

            if files is not None:
                file_store.update_entity_files(uow, entry.id, ENTRY_ENTITY_TYPE, files)
            if images:
                file_store.create_entity_images(
                    uow,
                    entity_id=entry.id,
                    entity_type=ENTRY_ENTITY_TYPE,
                    user_id=user_id,
                    images=images,
                )

        logger.info(
            "%s bounty entry %d on bounty %d",
            "Updated" if entry_id is not None else "Created",
            entry.id,
            entry.bounty_id,
        )
        return entry

    # ------------------------------------------------------------------
    # Award
    # ------------------------------------------------------------------

    def award_entry(self, entry_id: int, awarding_user_id: int) -> BountyBenefactor:
        """Award *awarding_user_id*'s pledge to the entry and pay it out.

        Parameters
        ----------
        entry_id:
            The winning entry.
        awarding_user_id:
            The benefactor making the award.

        Returns
        -------
        BountyBenefactor
            The pledge after the award, with ``awarded_to_id`` and
            ``awarded_at`` set.

        Raises
        ------
        NotFoundError
            If the entry does not exist, or the user has no pledge toward the
            entry's bounty.
        InvalidStateError
            If the entry has no owner, the bounty is complete, or the pledge
            was already awarded.
        LedgerError
            If the BUZZ transfer fails; the award is rolled back.
        """
        payout: TransactionResult | None = None
        try:
            with self._db.transaction() as uow:
                entry = entry_store.get_entry(uow, entry_id)
                if entry is None:
                    raise NotFoundError(f"Bounty entry {entry_id} does not exist.")
                if entry.user_id is None:
                    raise InvalidStateError("Entry has no user.")

                bounty = bounty_store.get_bounty(uow, entry.bounty_id)
                if bounty is None:
                    raise NotFoundError(f"Bounty {entry.bounty_id} does not exist.")
                if bounty.complete:
                    raise InvalidStateError("Bounty is already complete.")

                benefactor = bounty_store.get_benefactor(
                    uow, bounty_id=entry.bounty_id, user_id=awarding_user_id
                )
                if benefactor is None:
                    raise NotFoundError(
                        f"User {awarding_user_id} is not a supporter of bounty {entry.bounty_id}."
                    )
                if benefactor.awarded:
                    raise InvalidStateError("Supporter has already awarded an entry.")

                if not bounty_store.award_benefactor(
                    uow,
                    bounty_id=entry.bounty_id,
                    user_id=awarding_user_id,
                    entry_id=entry.id,
                ):
                    raise InvalidStateError("Supporter has already awarded an entry.")
                awarded = bounty_store.get_benefactor(
                    uow, bounty_id=entry.bounty_id, user_id=awarding_user_id
                )
                if awarded is None:
                    raise NotFoundError(
                        f"User {awarding_user_id} is not a supporter of bounty {entry.bounty_id}."
                    )

                if awarded.currency is Currency.BUZZ:
                    payout = self._ledger.transfer(
                        self._system_account_id,
                        entry.user_id,
                        awarded.unit_amount,
                        TransactionType.BOUNTY,
                        AWARD_DESCRIPTION,
                    )
                else:
                    logger.warning(
                        "No payout rail for %s; award of entry %d recorded without transfer",
                        awarded.currency.value,
                        entry.id,
                    )
        except Exception:
            if payout is not None:
                logger.error(
                    "Award of entry %d by user %d rolled back after ledger transaction %d "
                    "committed; manual reconciliation required",
                    entry_id,
                    awarding_user_id,
                    payout.transaction_id,
                )
            raise

        logger.info(
            "User %d awarded %d %s to bounty entry %d",
            awarding_user_id,
            awarded.unit_amount,
            awarded.currency.value,
            entry_id,
        )
        try:
            self.complete_bounty_if_fully_awarded(awarded.bounty_id)
        except BountyHubError as exc:
            logger.error(
                "Completion check for bounty %d failed after award of entry %d: %s",
                awarded.bounty_id,
                entry_id,
                exc,
            )
        return awarded

    def complete_bounty_if_fully_awarded(self, bounty_id: int) -> bool:
        """Mark the bounty complete if none of its pledges is unawarded.

        Returns
        -------
        bool
            ``True`` if this call flipped the bounty to complete.
        """
        with self._db.transaction() as uow:
            if bounty_store.has_unawarded_benefactor(uow, bounty_id):
                return False
            changed = bounty_store.mark_bounty_complete(uow, bounty_id)
        if changed:
            logger.info("Bounty %d is complete", bounty_id)
        return changed

    # ------------------------------------------------------------------
    # Files
    # ------------------------------------------------------------------

    def list_files(
        self,
        entry_id: int,
        user_id: int | None = None,
        is_moderator: bool = False,
    ) -> list[FileDescriptor]:
        """Return the entry's files, hiding URLs the caller may not download.

        Owners and moderators see every URL.  For anyone else a file is
        downloadable when it is not benefactors-only (or the caller's pledge
        was awarded to this entry) and the entry's cumulative awarded amount
        has reached the file's ``unlock_amount``.  Hidden files are returned
        with ``url=None``.

        Raises
        ------
        NotFoundError
            If the entry does not exist.
        """
        entry = self.get_entry_by_id(entry_id)
        files = file_store.list_files_by_entity(self._db, entry.id, ENTRY_ENTITY_TYPE)

        if is_moderator or (user_id is not None and entry.user_id == user_id):
            return files

        benefactor = (
            None
            if user_id is None
            else bounty_store.get_benefactor(
                self._db, bounty_id=entry.bounty_id, user_id=user_id
            )
        )
        currency = benefactor.currency if benefactor is not None else Currency.BUZZ
        awards = entry_store.get_awarded_unit_amounts(self._db, [entry.id], currency)
        awarded_amount = awards[0].awarded_unit_amount if awards else 0

        visible: list[FileDescriptor] = []
        for f in files:
            meta = f.metadata
            if meta.benefactors_only:
                has_full_access = (
                    benefactor is not None and benefactor.awarded_to_id == entry.id
                )
            else:
                has_full_access = True
            if awarded_amount < meta.unlock_amount:
                has_full_access = False
            visible.append(f if has_full_access else f.model_copy(update={"url": None}))
        return visible

    # ------------------------------------------------------------------
    # Delete
    # ------------------------------------------------------------------

    def delete_entry(self, entry_id: int) -> BountyEntry | None:
        """Delete an entry that has received no awards, with its files and images.

        Returns
        -------
        BountyEntry | None
            The deleted entry, or ``None`` if it disappeared before the
            delete ran.

        Raises
        ------
        NotFoundError
            If the entry does not exist.
        InvalidStateError
            If any pledge has been awarded to the entry.  Nothing is deleted.
        """
        with self._db.transaction() as uow:
            entry = entry_store.get_entry(uow, entry_id)
            if entry is None:
                raise NotFoundError(f"Bounty entry {entry_id} does not exist.")

            awards = entry_store.get_awarded_unit_amounts(uow, [entry.id], currency=None)
            if awards and awards[0].awarded_unit_amount > 0:
                raise InvalidStateError(
                    "This bounty entry has been awarded by some users and as such, "
                    "cannot be deleted."
                )

            if not entry_store.delete_entry(uow, entry.id):
                return None
            file_store.delete_entity_files(uow, entry.id, ENTRY_ENTITY_TYPE)
            file_store.delete_entity_images(uow, entry.id, ENTRY_ENTITY_TYPE)

        logger.info("Deleted bounty entry %d from bounty %d", entry.id, entry.bounty_id)
        return entry
