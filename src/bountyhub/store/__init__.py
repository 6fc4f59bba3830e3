"""Record stores subpackage for bountyhub.

Row-level access to bounties, benefactor pledges, entries and their
entity-tagged files and images, plus the Pydantic records they return.
"""

from bountyhub.store.records import (
    Bounty,
    BountyBenefactor,
    BountyEntry,
    Currency,
    EntryAward,
    EntryFileMeta,
    FileDescriptor,
    FileInput,
    ImageInput,
    ImageRecord,
)

__all__: list[str] = [
    "Bounty",
    "BountyBenefactor",
    "BountyEntry",
    "Currency",
    "EntryAward",
    "EntryFileMeta",
    "FileDescriptor",
    "FileInput",
    "ImageInput",
    "ImageRecord",
]
