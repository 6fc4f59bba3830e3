"""Services subpackage for bountyhub.

Bounty funding and the bounty entry workflows (award, gated file access,
deletion guard, upserts), each taking its storage handle explicitly.
"""

from bountyhub.services.bounties import BountyService
from bountyhub.services.entries import BountyEntryService

__all__: list[str] = ["BountyEntryService", "BountyService"]
