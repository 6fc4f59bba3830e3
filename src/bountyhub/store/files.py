"""Entity-tagged file and image association tables.

Files and images are attached to any entity through an
``(entity_id, entity_type)`` pair; bounty entries use
:data:`~bountyhub.db.schema.ENTRY_ENTITY_TYPE`.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Sequence

from bountyhub.db.connection import Handle
from bountyhub.store.bounties import utc_now
from bountyhub.store.records import FileDescriptor, FileInput, ImageInput, ImageRecord

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Files
# ---------------------------------------------------------------------------


def list_files_by_entity(
    handle: Handle, entity_id: int, entity_type: str
) -> list[FileDescriptor]:
    """Return every file attached to the entity, ordered by id."""
    rows = handle.query(
        "SELECT * FROM files WHERE entity_id = ? AND entity_type = ? ORDER BY id",
        (entity_id, entity_type),
    )
    return [FileDescriptor.from_row(r) for r in rows]


def update_entity_files(
    handle: Handle,
    entity_id: int,
    entity_type: str,
    files: Sequence[FileInput],
) -> list[FileDescriptor]:
    """Make *files* the complete file set of the entity.

    Files carrying an ``id`` that belongs to the entity are updated in place,
    files without an ``id`` are created, and attached files missing from
    *files* are deleted.  An ``id`` that does not belong to the entity is
    treated as a new file.

    Returns
    -------
    list[FileDescriptor]
        The entity's files after the update.
    """
    existing_ids = {
        f.id for f in list_files_by_entity(handle, entity_id, entity_type)
    }
    keep_ids: set[int] = set()

    for f in files:
        metadata = f.metadata.model_dump_json()
        if f.id is not None and f.id in existing_ids:
            handle.execute(
                "UPDATE files SET name = ?, url = ?, size_kb = ?, metadata = ?"
                " WHERE id = ?",
                (f.name, f.url, f.size_kb, metadata, f.id),
            )
            keep_ids.add(f.id)
        else:
            cur = handle.execute(
                "INSERT INTO files (entity_id, entity_type, name, url, size_kb, metadata)"
                " VALUES (?, ?, ?, ?, ?, ?)",
                (entity_id, entity_type, f.name, f.url, f.size_kb, metadata),
            )
            keep_ids.add(int(cur.lastrowid or 0))

    for stale_id in existing_ids - keep_ids:
        handle.execute("DELETE FROM files WHERE id = ?", (stale_id,))

    return list_files_by_entity(handle, entity_id, entity_type)


def delete_entity_files(handle: Handle, entity_id: int, entity_type: str) -> int:
    """Delete every file attached to the entity.  Returns the number removed."""
    cur = handle.execute(
        "DELETE FROM files WHERE entity_id = ? AND entity_type = ?",
        (entity_id, entity_type),
    )
    return cur.rowcount


# ---------------------------------------------------------------------------
# Images
# ---------------------------------------------------------------------------


def create_entity_images(
    handle: Handle,
    *,
    entity_id: int,
    entity_type: str,
    user_id: int | None,
    images: Sequence[ImageInput],
) -> list[ImageRecord]:
    """Create *images* and connect each of them to the entity."""
    created: list[ImageRecord] = []
    for image in images:
        cur = handle.execute(
            "INSERT INTO images (url, name, user_id, meta, created_at)"
            " VALUES (?, ?, ?, ?, ?)",
            (image.url, image.name, user_id, json.dumps(image.meta), utc_now()),
        )
        image_id = int(cur.lastrowid or 0)
        handle.execute(
            "INSERT INTO image_connections (image_id, entity_id, entity_type)"
            " VALUES (?, ?, ?)",
            (image_id, entity_id, entity_type),
        )
        row = handle.query_one("SELECT * FROM images WHERE id = ?", (image_id,))
        if row is not None:
            created.append(ImageRecord.from_row(row))
    return created


def list_images_by_entity(
    handle: Handle, entity_id: int, entity_type: str
) -> list[ImageRecord]:
    """Return every image connected to the entity, ordered by id."""
    rows = handle.query(
        "SELECT i.* FROM images i"
        " JOIN image_connections ic ON ic.image_id = i.id"
        " WHERE ic.entity_id = ? AND ic.entity_type = ? ORDER BY i.id",
        (entity_id, entity_type),
    )
    return [ImageRecord.from_row(r) for r in rows]


def delete_entity_images(handle: Handle, entity_id: int, entity_type: str) -> int:
    """Delete the entity's image connections and the connected images.

    Returns
    -------
    int
        Number of images removed.
    """
    image_ids = [
        int(r["image_id"])
        for r in handle.query(
            "SELECT image_id FROM image_connections"
            " WHERE entity_id = ? AND entity_type = ?",
            (entity_id, entity_type),
        )
    ]
    handle.execute(
        "DELETE FROM image_connections WHERE entity_id = ? AND entity_type = ?",
        (entity_id, entity_type),
    )
    removed = 0
    for image_id in image_ids:
        removed += handle.execute("DELETE FROM images WHERE id = ?", (image_id,)).rowcount
    logger.debug("Removed %d images from %s %d", removed, entity_type, entity_id)
    return removed
