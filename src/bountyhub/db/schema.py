"""Schema for the bounty database.

Tables
------
- ``bounties``            — funded tasks; ``complete`` only moves 0 → 1.
- ``bounty_entries``      — submissions tied to a parent bounty.
- ``bounty_benefactors``  — pledges, one per ``(bounty_id, user_id)``; the
  award link ``awarded_to_id`` is write-once.
- ``files``               — entity-tagged file rows keyed by
  ``(entity_id, entity_type)``.
- ``images`` / ``image_connections`` — images and their entity links.

The write-once award and the monotonic completion flag are enforced by
triggers, so no code path (including ad-hoc SQL) can violate them.
"""

from __future__ import annotations

import logging

from bountyhub.db.connection import Database

logger = logging.getLogger(__name__)

#: Entity type tag used for files and images attached to bounty entries.
ENTRY_ENTITY_TYPE: str = "BountyEntry"

_SCHEMA_SQL: str = """
CREATE TABLE IF NOT EXISTS bounties (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id INTEGER,
    name TEXT NOT NULL,
    description TEXT NOT NULL DEFAULT '',
    complete INTEGER NOT NULL DEFAULT 0 CHECK(complete IN (0, 1)),
    created_at TIMESTAMP NOT NULL
);

CREATE TABLE IF NOT EXISTS bounty_entries (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    bounty_id INTEGER NOT NULL,
    user_id INTEGER,
    description TEXT NOT NULL DEFAULT '',
    created_at TIMESTAMP NOT NULL,
    FOREIGN KEY (bounty_id) REFERENCES bounties(id) ON DELETE CASCADE
);

CREATE TABLE IF NOT EXISTS bounty_benefactors (
    bounty_id INTEGER NOT NULL,
    user_id INTEGER NOT NULL,
    unit_amount INTEGER NOT NULL CHECK(unit_amount > 0),
    currency TEXT NOT NULL CHECK(currency IN ('BUZZ', 'USD')),
    awarded_to_id INTEGER,
    awarded_at TIMESTAMP,
    created_at TIMESTAMP NOT NULL,
    PRIMARY KEY (bounty_id, user_id),
    FOREIGN KEY (bounty_id) REFERENCES bounties(id) ON DELETE CASCADE,
    FOREIGN KEY (awarded_to_id) REFERENCES bounty_entries(id)
);

CREATE TABLE IF NOT EXISTS files (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    entity_id INTEGER NOT NULL,
    entity_type TEXT NOT NULL,
    name TEXT NOT NULL,
    url TEXT NOT NULL,
    size_kb REAL NOT NULL DEFAULT 0,
    metadata TEXT NOT NULL DEFAULT '{}'
);

CREATE TABLE IF NOT EXISTS images (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    url TEXT NOT NULL,
    name TEXT,
    user_id INTEGER,
    meta TEXT NOT NULL DEFAULT '{}',
    created_at TIMESTAMP NOT NULL
);

CREATE TABLE IF NOT EXISTS image_connections (
    image_id INTEGER NOT NULL,
    entity_id INTEGER NOT NULL,
    entity_type TEXT NOT NULL,
    PRIMARY KEY (image_id, entity_id, entity_type),
    FOREIGN KEY (image_id) REFERENCES images(id) ON DELETE CASCADE
);

CREATE INDEX IF NOT EXISTS idx_entries_bounty ON bounty_entries(bounty_id);
CREATE INDEX IF NOT EXISTS idx_benefactors_awarded_to ON bounty_benefactors(awarded_to_id);
CREATE INDEX IF NOT EXISTS idx_files_entity ON files(entity_id, entity_type);
CREATE INDEX IF NOT EXISTS idx_image_connections_entity
    ON image_connections(entity_id, entity_type);

CREATE TRIGGER IF NOT EXISTS trg_benefactor_award_final
BEFORE UPDATE OF awarded_to_id ON bounty_benefactors
WHEN OLD.awarded_to_id IS NOT NULL
    AND (NEW.awarded_to_id IS NULL OR NEW.awarded_to_id != OLD.awarded_to_id)
BEGIN
    SELECT RAISE(ABORT, 'benefactor award is final');
END;

CREATE TRIGGER IF NOT EXISTS trg_bounty_complete_monotonic
BEFORE UPDATE OF complete ON bounties
WHEN OLD.complete = 1 AND NEW.complete = 0
BEGIN
    SELECT RAISE(ABORT, 'bounty completion cannot be reversed');
END;
"""


def init_schema(db: Database) -> None:
    """Create tables, indexes and integrity triggers if they do not exist.

    Parameters
    ----------
    db:
        The bounty database handle.
    """
    db.executescript(_SCHEMA_SQL)
    logger.debug("Bounty schema ready at %s", db.path)
