"""HTTP API subpackage for bountyhub.

Exposes the FastAPI endpoints used by clients to fund bounties, submit and
manage entries, award pledges and download entry files.
"""

__all__: list[str] = []
