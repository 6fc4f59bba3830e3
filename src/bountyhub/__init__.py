"""bountyhub — bounty entries, benefactor awards and BUZZ payouts.

This package provides the server-side components of the bounty feature: an
explicit SQLite storage handle with a unit-of-work guard, record stores for
bounties, entries and their files, a BUZZ payment ledger, the entry services
(award, gated file access, deletion guard) and a FastAPI surface.
"""

__version__ = "0.1.0"
__all__: list[str] = []
