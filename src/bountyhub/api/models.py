"""Pydantic request and response models for the bountyhub API.

Records returned by the services (:mod:`bountyhub.store.records`) are used
directly as response bodies; this module holds the request bodies and the
responses that have no record counterpart.

Models
------
- :class:`SessionUser`          — caller identity resolved from headers
- :class:`CreateBountyRequest`  — ``POST /bounties`` body
- :class:`PledgeRequest`        — ``POST /bounties/{id}/benefactors`` body
- :class:`UpsertEntryRequest`   — ``POST /bounties/{id}/entries`` and ``PUT /entries/{id}`` body
- :class:`BalanceResponse`      — ``GET /accounts/{id}/balance`` response
- :class:`HealthResponse`       — ``GET /health`` response
"""

from __future__ import annotations

from pydantic import BaseModel, Field

from bountyhub.store.records import Currency, FileInput, ImageInput


class SessionUser(BaseModel):
    """The caller, as identified by the ``X-User-Id`` / ``X-User-Role`` headers."""

    id: int
    is_moderator: bool = False


class CreateBountyRequest(BaseModel):
    """Body of ``POST /bounties``.

    Attributes
    ----------
    name:
        Bounty title.
    description:
        Free-form description.
    unit_amount:
        The creator's initial pledge.
    currency:
        Currency of the initial pledge.
    """

    name: str = Field(min_length=1)
    description: str = ""
    unit_amount: int = Field(gt=0)
    currency: Currency = Currency.BUZZ


class PledgeRequest(BaseModel):
    """Body of ``POST /bounties/{id}/benefactors``."""

    unit_amount: int = Field(gt=0)
    currency: Currency = Currency.BUZZ


class UpsertEntryRequest(BaseModel):
    """Body for creating or updating a bounty entry.

    ``files`` replaces the entry's file set when present; ``images`` are
    appended.  Omitted lists leave the existing attachments untouched.
    """

    description: str = ""
    files: list[FileInput] | None = None
    images: list[ImageInput] | None = None


class BalanceResponse(BaseModel):
    """Ledger balance of one account."""

    account_id: int
    balance: int


class HealthResponse(BaseModel):
    """Response body for ``GET /health``.

    Attributes
    ----------
    status:
        Always ``"ok"`` when the process is serving requests.
    version:
        Installed package version, or ``"unknown"``.
    db_reachable:
        Whether the bounty database answered a probe query.
    ledger_reachable:
        Whether the ledger database answered a probe query.
    """

    status: str = "ok"
    version: str
    db_reachable: bool
    ledger_reachable: bool
