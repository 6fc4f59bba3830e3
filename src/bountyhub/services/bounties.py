"""Bounty creation and benefactor pledges."""

from __future__ import annotations

import logging

from bountyhub.db.connection import Database
from bountyhub.errors import InvalidStateError, NotFoundError
from bountyhub.store import bounties as bounty_store
from bountyhub.store.records import Bounty, BountyBenefactor, Currency

logger = logging.getLogger(__name__)


class BountyService:
    """Creates bounties and records pledges toward them.

    Parameters
    ----------
    db:
        Handle on the bounty database.
    """

    def __init__(self, db: Database) -> None:
        self._db = db

    def create_bounty(
        self,
        *,
        user_id: int,
        name: str,
        unit_amount: int,
        currency: Currency = Currency.BUZZ,
        description: str = "",
    ) -> Bounty:
        """Create a bounty funded by its creator's initial pledge.

        The bounty row and the creator's benefactor row are written in one
        unit of work.

        Raises
        ------
        ValueError
            If *unit_amount* is not positive or *name* is blank.
        """
        if unit_amount <= 0:
            raise ValueError(f"unit_amount must be positive, got {unit_amount!r}")
        if not name or not name.strip():
            raise ValueError("name must be a non-empty string.")

        with self._db.transaction() as uow:
            bounty = bounty_store.insert_bounty(
                uow, user_id=user_id, name=name, description=description
            )
            bounty_store.insert_benefactor(
                uow,
                bounty_id=bounty.id,
                user_id=user_id,
                unit_amount=unit_amount,
                currency=currency,
            )
        logger.info(
            "Bounty %d created by user %d with %d %s",
            bounty.id,
            user_id,
            unit_amount,
            currency.value,
        )
        return bounty

    def get_bounty(self, bounty_id: int) -> Bounty:
        """Return the bounty, or raise :class:`NotFoundError`."""
        bounty = bounty_store.get_bounty(self._db, bounty_id)
        if bounty is None:
            raise NotFoundError(f"Bounty {bounty_id} does not exist.")
        return bounty

    def get_benefactors(self, bounty_id: int) -> list[BountyBenefactor]:
        """Return every pledge toward the bounty."""
        self.get_bounty(bounty_id)
        return bounty_store.list_benefactors(self._db, bounty_id)

    def add_benefactor(
        self,
        *,
        bounty_id: int,
        user_id: int,
        unit_amount: int,
        currency: Currency = Currency.BUZZ,
    ) -> BountyBenefactor:
        """Record a pledge of *unit_amount* by *user_id*.

        A user who already pledged tops up the existing pledge, which must be
        unawarded and in the same currency.

        Raises
        ------
        ValueError
            If *unit_amount* is not positive.
        NotFoundError
            If the bounty does not exist.
        InvalidStateError
            If the bounty is complete, the existing pledge was already
            awarded, or its currency differs.
        """
        if unit_amount <= 0:
            raise ValueError(f"unit_amount must be positive, got {unit_amount!r}")

        with self._db.transaction() as uow:
            bounty = bounty_store.get_bounty(uow, bounty_id)
            if bounty is None:
                raise NotFoundError(f"Bounty {bounty_id} does not exist.")
            if bounty.complete:
                raise InvalidStateError("Bounty is already complete.")

            existing = bounty_store.get_benefactor(uow, bounty_id=bounty_id, user_id=user_id)
            if existing is None:
                benefactor = bounty_store.insert_benefactor(
                    uow,
                    bounty_id=bounty_id,
                    user_id=user_id,
                    unit_amount=unit_amount,
                    currency=currency,
                )
            else:
                if existing.awarded:
                    raise InvalidStateError("Supporter has already awarded an entry.")
                if existing.currency != currency:
                    raise InvalidStateError(
                        f"Existing pledge is in {existing.currency.value}; "
                        f"cannot add {currency.value}."
                    )
                bounty_store.increase_benefactor_amount(
                    uow, bounty_id=bounty_id, user_id=user_id, unit_amount=unit_amount
                )
                refreshed = bounty_store.get_benefactor(
                    uow, bounty_id=bounty_id, user_id=user_id
                )
                if refreshed is None:
                    raise NotFoundError(
                        f"Pledge of user {user_id} on bounty {bounty_id} does not exist."
                    )
                benefactor = refreshed

        logger.info(
            "User %d pledged %d %s to bounty %d",
            user_id,
            unit_amount,
            currency.value,
            bounty_id,
        )
        return benefactor
