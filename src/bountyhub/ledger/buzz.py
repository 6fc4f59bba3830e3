"""BUZZ payment ledger.

Moves the platform's virtual currency between accounts.  The ledger lives in
its own SQLite database and commits every transfer independently, so from the
point of view of a caller's unit of work on the bounty database it is external
state: rolling back the caller does not undo a transfer that already
succeeded.

Accounts are plain integer ids (user ids).  The system account (id ``0`` by
default) funds bounty payouts and has an unlimited balance; every other
account must hold at least the amount it sends.

Typical usage::

    ledger = BuzzLedger(Database(Path("data/ledger.db")))
    ledger.transfer(
        from_account_id=0,
        to_account_id=42,
        amount=50,
        type=TransactionType.BOUNTY,
        description="Reason: Bounty entry has been awarded!",
    )
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Protocol

from pydantic import BaseModel

from bountyhub.db.connection import Database, UnitOfWork
from bountyhub.errors import BountyHubError

logger = logging.getLogger(__name__)

#: Account that funds payouts and is exempt from balance checks.
SYSTEM_ACCOUNT_ID: int = 0

_SCHEMA_SQL: str = """
CREATE TABLE IF NOT EXISTS buzz_accounts (
    id INTEGER PRIMARY KEY,
    balance INTEGER NOT NULL DEFAULT 0
);

CREATE TABLE IF NOT EXISTS buzz_transactions (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    from_account_id INTEGER NOT NULL,
    to_account_id INTEGER NOT NULL,
    amount INTEGER NOT NULL CHECK(amount > 0),
    type TEXT NOT NULL,
    description TEXT NOT NULL DEFAULT '',
    created_at TIMESTAMP NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_buzz_transactions_from ON buzz_transactions(from_account_id);
CREATE INDEX IF NOT EXISTS idx_buzz_transactions_to ON buzz_transactions(to_account_id);
"""


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class LedgerError(BountyHubError):
    """Base class for ledger failures."""


class InsufficientFundsError(LedgerError):
    """The source account does not hold enough BUZZ for the transfer."""


class InvalidAccountError(LedgerError):
    """An account id is negative, or source and destination are the same."""


# ---------------------------------------------------------------------------
# Models
# ---------------------------------------------------------------------------


class TransactionType(str, Enum):
    """Reason codes recorded with each transfer."""

    TIP = "Tip"
    REWARD = "Reward"
    PURCHASE = "Purchase"
    REFUND = "Refund"
    BOUNTY = "Bounty"


class TransactionResult(BaseModel):
    """A committed ledger transfer.

    Attributes
    ----------
    transaction_id:
        Primary key of the ``buzz_transactions`` row.
    from_account_id:
        Debited account.
    to_account_id:
        Credited account.
    amount:
        Transferred amount, always positive.
    type:
        Reason code.
    description:
        Free-form note shown to the recipient.
    created_at:
        ISO 8601 commit timestamp.
    """

    transaction_id: int
    from_account_id: int
    to_account_id: int
    amount: int
    type: TransactionType
    description: str = ""
    created_at: str


class PaymentLedger(Protocol):
    """The part of the ledger the award workflow depends on."""

    def transfer(
        self,
        from_account_id: int,
        to_account_id: int,
        amount: int,
        type: TransactionType,
        description: str = "",
    ) -> TransactionResult: ...


# ---------------------------------------------------------------------------
# BuzzLedger
# ---------------------------------------------------------------------------


class BuzzLedger:
    """SQLite-backed BUZZ balances and transfer history.

    Parameters
    ----------
    db:
        Handle on the ledger database.  The schema is created on init.
    system_account_id:
        Account exempt from balance checks.
    """

    def __init__(self, db: Database, system_account_id: int = SYSTEM_ACCOUNT_ID) -> None:
        self._db = db
        self._system_account_id = system_account_id
        self._db.executescript(_SCHEMA_SQL)

    @property
    def db(self) -> Database:
        """The ledger's own database handle."""
        return self._db

    def transfer(
        self,
        from_account_id: int,
        to_account_id: int,
        amount: int,
        type: TransactionType,
        description: str = "",
    ) -> TransactionResult:
        """Move *amount* BUZZ from one account to another.

        The debit, the credit and the history row are written in one ledger
        transaction, committed before this method returns.

        Parameters
        ----------
        from_account_id:
            Account to debit.
        to_account_id:
            Account to credit.
        amount:
            Positive number of BUZZ to move.
        type:
            Reason code recorded with the transfer.
        description:
            Free-form note.

        Returns
        -------
        TransactionResult
            The committed transfer.

        Raises
        ------
        ValueError
            If *amount* is not a positive integer.
        InvalidAccountError
            If an account id is negative or both ids are equal.
        InsufficientFundsError
            If a non-system source holds less than *amount*.
        """
        if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
            raise ValueError(f"amount must be a positive integer, got {amount!r}")
        if from_account_id < 0 or to_account_id < 0:
            raise InvalidAccountError(
                f"Account ids must be non-negative (from={from_account_id}, to={to_account_id})."
            )
        if from_account_id == to_account_id:
            raise InvalidAccountError(f"Cannot transfer from account {from_account_id} to itself.")

        created_at = datetime.now(timezone.utc).isoformat()
        with self._db.transaction() as uow:
            if from_account_id != self._system_account_id:
                row = uow.query_one(
                    "SELECT balance FROM buzz_accounts WHERE id = ?", (from_account_id,)
                )
                balance = int(row["balance"]) if row is not None else 0
                if balance < amount:
                    raise InsufficientFundsError(
                        f"Account {from_account_id} holds {balance} BUZZ; {amount} required."
                    )
            self._adjust(uow, from_account_id, -amount)
            self._adjust(uow, to_account_id, amount)
            cur = uow.execute(
                "INSERT INTO buzz_transactions"
                " (from_account_id, to_account_id, amount, type, description, created_at)"
                " VALUES (?, ?, ?, ?, ?, ?)",
                (from_account_id, to_account_id, amount, type.value, description, created_at),
            )
            transaction_id = int(cur.lastrowid or 0)

        logger.info(
            "Transferred %d BUZZ from account %d to %d (%s, transaction %d)",
            amount,
            from_account_id,
            to_account_id,
            type.value,
            transaction_id,
        )
        return TransactionResult(
            transaction_id=transaction_id,
            from_account_id=from_account_id,
            to_account_id=to_account_id,
            amount=amount,
            type=type,
            description=description,
            created_at=created_at,
        )

    def get_balance(self, account_id: int) -> int:
        """Return the balance of *account_id*; unknown accounts hold ``0``."""
        row = self._db.query_one("SELECT balance FROM buzz_accounts WHERE id = ?", (account_id,))
        return int(row["balance"]) if row is not None else 0

    def get_transactions(self, account_id: int) -> list[TransactionResult]:
        """Return every transfer into or out of *account_id*, oldest first."""
        rows = self._db.query(
            "SELECT * FROM buzz_transactions"
            " WHERE from_account_id = ? OR to_account_id = ? ORDER BY id",
            (account_id, account_id),
        )
        return [
            TransactionResult(
                transaction_id=r["id"],
                from_account_id=r["from_account_id"],
                to_account_id=r["to_account_id"],
                amount=r["amount"],
                type=TransactionType(r["type"]),
                description=r["description"],
                created_at=r["created_at"],
            )
            for r in rows
        ]

    @staticmethod
    def _adjust(uow: UnitOfWork, account_id: int, delta: int) -> None:
        # Upsert keeps accounts implicit: the first transfer creates the row.
        uow.execute(
            "INSERT INTO buzz_accounts (id, balance) VALUES (?, ?)"
            " ON CONFLICT(id) DO UPDATE SET balance = balance + excluded.balance",
            (account_id, delta),
        )
