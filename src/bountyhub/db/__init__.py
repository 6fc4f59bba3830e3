"""Database subpackage for bountyhub.

Provides the explicit SQLite storage handle, the unit-of-work transaction
guard, and schema creation for the bounty database.
"""

from bountyhub.db.connection import Database, Handle, UnitOfWork
from bountyhub.db.schema import ENTRY_ENTITY_TYPE, init_schema

__all__: list[str] = [
    "ENTRY_ENTITY_TYPE",
    "Database",
    "Handle",
    "UnitOfWork",
    "init_schema",
]
