"""Payment ledger subpackage for bountyhub.

BUZZ balances and transfers, kept in a database of their own.
"""

from bountyhub.ledger.buzz import (
    BuzzLedger,
    InsufficientFundsError,
    InvalidAccountError,
    LedgerError,
    PaymentLedger,
    TransactionResult,
    TransactionType,
)

__all__: list[str] = [
    "BuzzLedger",
    "InsufficientFundsError",
    "InvalidAccountError",
    "LedgerError",
    "PaymentLedger",
    "TransactionResult",
    "TransactionType",
]
