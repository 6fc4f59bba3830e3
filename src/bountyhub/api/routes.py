"""FastAPI router for the bountyhub API.

Endpoints:

- ``GET /health``                      — liveness check
- ``POST /bounties``                   — create a bounty with the creator's pledge
- ``GET /bounties/{id}``               — fetch a bounty
- ``POST /bounties/{id}/benefactors``  — pledge toward a bounty
- ``GET /bounties/{id}/benefactors``   — list pledges
- ``GET /bounties/{id}/entries``       — list entries (``?user_id=``)
- ``POST /bounties/{id}/entries``      — submit an entry
- ``GET /entries/awarded``             — awarded totals (``?ids=&currency=``)
- ``GET /entries/{id}``                — fetch an entry
- ``PUT /entries/{id}``                — update an entry (owner or moderator)
- ``POST /entries/{id}/award``         — award the caller's pledge to an entry
- ``GET /entries/{id}/files``          — entry files, URLs gated per caller
- ``DELETE /entries/{id}``             — delete an unawarded entry (owner or moderator)
- ``GET /accounts/{id}/balance``       — BUZZ balance

Caller identity comes from the ``X-User-Id`` and ``X-User-Role`` headers.
Service errors are mapped to HTTP status codes by :func:`_to_http`.
"""

from __future__ import annotations

import importlib.metadata
import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Header, HTTPException, Query, Request

from bountyhub.api.models import (
    BalanceResponse,
    CreateBountyRequest,
    HealthResponse,
    PledgeRequest,
    SessionUser,
    UpsertEntryRequest,
)
from bountyhub.db.connection import Database
from bountyhub.errors import (
    BountyHubError,
    InvalidStateError,
    NotFoundError,
    TransactionTimeoutError,
    UnauthorizedError,
)
from bountyhub.ledger.buzz import BuzzLedger, LedgerError
from bountyhub.services.bounties import BountyService
from bountyhub.services.entries import BountyEntryService
from bountyhub.store.records import (
    Bounty,
    BountyBenefactor,
    BountyEntry,
    Currency,
    EntryAward,
    FileDescriptor,
)

logger = logging.getLogger(__name__)

router = APIRouter()

#: Value of ``X-User-Role`` that grants moderator rights.
MODERATOR_ROLE: str = "moderator"


# ---------------------------------------------------------------------------
# Dependency accessor helpers
# ---------------------------------------------------------------------------


def _get_db(request: Request) -> Database:
    return request.app.state.db  # type: ignore[no-any-return]


def _get_ledger(request: Request) -> BuzzLedger:
    return request.app.state.ledger  # type: ignore[no-any-return]


def _get_bounty_service(request: Request) -> BountyService:
    return request.app.state.bounty_service  # type: ignore[no-any-return]


def _get_entry_service(request: Request) -> BountyEntryService:
    return request.app.state.entry_service  # type: ignore[no-any-return]


def _get_session_user(
    request: Request,
    x_user_id: Annotated[int | None, Header(gt=0)] = None,
    x_user_role: Annotated[str | None, Header()] = None,
) -> SessionUser | None:
    """Resolve the caller from request headers; ``None`` when anonymous.

    User ids must be positive, and the ledger's system account cannot act as
    a caller.
    """
    if x_user_id is None:
        return None
    if x_user_id == request.app.state.config.system_account_id:
        raise _to_http(UnauthorizedError(f"Account {x_user_id} is reserved."))
    return SessionUser(
        id=x_user_id,
        is_moderator=(x_user_role or "").lower() == MODERATOR_ROLE,
    )


def _require_user(
    user: Annotated[SessionUser | None, Depends(_get_session_user)],
) -> SessionUser:
    """Like :func:`_get_session_user` but rejects anonymous callers with 401."""
    if user is None:
        raise _to_http(UnauthorizedError("Authentication required."))
    return user


# ---------------------------------------------------------------------------
# GET /health
# ---------------------------------------------------------------------------


@router.get("/health", response_model=HealthResponse, tags=["meta"])
def get_health(
    db: Annotated[Database, Depends(_get_db)],
    ledger: Annotated[BuzzLedger, Depends(_get_ledger)],
) -> HealthResponse:
    """Return a liveness check response.

    Always returns HTTP 200; database reachability is reported in the body.
    """
    return HealthResponse(
        status="ok",
        version=_get_package_version(),
        db_reachable=db.ping(),
        ledger_reachable=ledger.db.ping(),
    )


# ---------------------------------------------------------------------------
# Bounties
# ---------------------------------------------------------------------------


@router.post("/bounties", response_model=Bounty, status_code=201, tags=["bounties"])
def create_bounty(
    body: CreateBountyRequest,
    user: Annotated[SessionUser, Depends(_require_user)],
    service: Annotated[BountyService, Depends(_get_bounty_service)],
) -> Bounty:
    """Create a bounty funded by the caller's initial pledge."""
    try:
        return service.create_bounty(
            user_id=user.id,
            name=body.name,
            description=body.description,
            unit_amount=body.unit_amount,
            currency=body.currency,
        )
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    except BountyHubError as exc:
        raise _to_http(exc) from exc


@router.get("/bounties/{bounty_id}", response_model=Bounty, tags=["bounties"])
def get_bounty(
    bounty_id: int,
    service: Annotated[BountyService, Depends(_get_bounty_service)],
) -> Bounty:
    """Return one bounty."""
    try:
        return service.get_bounty(bounty_id)
    except BountyHubError as exc:
        raise _to_http(exc) from exc


@router.post(
    "/bounties/{bounty_id}/benefactors",
    response_model=BountyBenefactor,
    tags=["bounties"],
)
def add_benefactor(
    bounty_id: int,
    body: PledgeRequest,
    user: Annotated[SessionUser, Depends(_require_user)],
    service: Annotated[BountyService, Depends(_get_bounty_service)],
) -> BountyBenefactor:
    """Pledge toward a bounty, or top up the caller's existing pledge."""
    try:
        return service.add_benefactor(
            bounty_id=bounty_id,
            user_id=user.id,
            unit_amount=body.unit_amount,
            currency=body.currency,
        )
    except BountyHubError as exc:
        raise _to_http(exc) from exc


@router.get(
    "/bounties/{bounty_id}/benefactors",
    response_model=list[BountyBenefactor],
    tags=["bounties"],
)
def list_benefactors(
    bounty_id: int,
    service: Annotated[BountyService, Depends(_get_bounty_service)],
) -> list[BountyBenefactor]:
    """List every pledge toward a bounty."""
    try:
        return service.get_benefactors(bounty_id)
    except BountyHubError as exc:
        raise _to_http(exc) from exc


@router.get(
    "/bounties/{bounty_id}/entries",
    response_model=list[BountyEntry],
    tags=["entries"],
)
def list_entries(
    bounty_id: int,
    service: Annotated[BountyEntryService, Depends(_get_entry_service)],
    user_id: int | None = None,
) -> list[BountyEntry]:
    """List a bounty's entries, optionally only those by ``user_id``."""
    return service.get_all_entries_by_bounty_id(bounty_id, user_id)


@router.post(
    "/bounties/{bounty_id}/entries",
    response_model=BountyEntry,
    status_code=201,
    tags=["entries"],
)
def create_entry(
    bounty_id: int,
    body: UpsertEntryRequest,
    user: Annotated[SessionUser, Depends(_require_user)],
    service: Annotated[BountyEntryService, Depends(_get_entry_service)],
) -> BountyEntry:
    """Submit a new entry to a bounty."""
    try:
        return service.upsert_entry(
            bounty_id=bounty_id,
            user_id=user.id,
            description=body.description,
            files=body.files,
            images=body.images,
        )
    except BountyHubError as exc:
        raise _to_http(exc) from exc


# ---------------------------------------------------------------------------
# Entries
# ---------------------------------------------------------------------------


@router.get("/entries/awarded", response_model=list[EntryAward], tags=["entries"])
def get_awarded_amounts(
    service: Annotated[BountyEntryService, Depends(_get_entry_service)],
    ids: Annotated[list[int], Query()] = [],  # noqa: B006
    currency: Currency = Currency.BUZZ,
) -> list[EntryAward]:
    """Return the cumulative awarded amount of each requested entry."""
    return service.get_awarded_amounts(ids, currency)


@router.get("/entries/{entry_id}", response_model=BountyEntry, tags=["entries"])
def get_entry(
    entry_id: int,
    service: Annotated[BountyEntryService, Depends(_get_entry_service)],
) -> BountyEntry:
    """Return one entry."""
    try:
        return service.get_entry_by_id(entry_id)
    except BountyHubError as exc:
        raise _to_http(exc) from exc


@router.put("/entries/{entry_id}", response_model=BountyEntry, tags=["entries"])
def update_entry(
    entry_id: int,
    body: UpsertEntryRequest,
    user: Annotated[SessionUser, Depends(_require_user)],
    service: Annotated[BountyEntryService, Depends(_get_entry_service)],
) -> BountyEntry:
    """Update an entry's description and attachments (owner or moderator)."""
    try:
        entry = service.get_entry_by_id(entry_id)
        _ensure_owner_or_moderator(entry, user)
        return service.upsert_entry(
            entry_id=entry.id,
            bounty_id=entry.bounty_id,
            user_id=user.id,
            description=body.description,
            files=body.files,
            images=body.images,
        )
    except BountyHubError as exc:
        raise _to_http(exc) from exc


@router.post(
    "/entries/{entry_id}/award",
    response_model=BountyBenefactor,
    tags=["entries"],
)
def award_entry(
    entry_id: int,
    user: Annotated[SessionUser, Depends(_require_user)],
    service: Annotated[BountyEntryService, Depends(_get_entry_service)],
) -> BountyBenefactor:
    """Award the caller's pledge to the entry."""
    try:
        return service.award_entry(entry_id, user.id)
    except BountyHubError as exc:
        raise _to_http(exc) from exc


@router.get(
    "/entries/{entry_id}/files",
    response_model=list[FileDescriptor],
    tags=["entries"],
)
def list_entry_files(
    entry_id: int,
    user: Annotated[SessionUser | None, Depends(_get_session_user)],
    service: Annotated[BountyEntryService, Depends(_get_entry_service)],
) -> list[FileDescriptor]:
    """List the entry's files; URLs the caller may not download are ``null``."""
    try:
        return service.list_files(
            entry_id,
            user_id=user.id if user is not None else None,
            is_moderator=user.is_moderator if user is not None else False,
        )
    except BountyHubError as exc:
        raise _to_http(exc) from exc


@router.delete("/entries/{entry_id}", response_model=BountyEntry | None, tags=["entries"])
def delete_entry(
    entry_id: int,
    user: Annotated[SessionUser, Depends(_require_user)],
    service: Annotated[BountyEntryService, Depends(_get_entry_service)],
) -> BountyEntry | None:
    """Delete an entry that has not received any awards (owner or moderator)."""
    try:
        entry = service.get_entry_by_id(entry_id)
        _ensure_owner_or_moderator(entry, user)
        return service.delete_entry(entry_id)
    except BountyHubError as exc:
        raise _to_http(exc) from exc


# ---------------------------------------------------------------------------
# Ledger
# ---------------------------------------------------------------------------


@router.get(
    "/accounts/{account_id}/balance",
    response_model=BalanceResponse,
    tags=["ledger"],
)
def get_balance(
    account_id: int,
    ledger: Annotated[BuzzLedger, Depends(_get_ledger)],
) -> BalanceResponse:
    """Return the BUZZ balance of an account."""
    return BalanceResponse(account_id=account_id, balance=ledger.get_balance(account_id))


# ---------------------------------------------------------------------------
# Private helpers
# ---------------------------------------------------------------------------


class _ForbiddenError(UnauthorizedError):
    """Authenticated caller acting on someone else's record."""


def _ensure_owner_or_moderator(entry: BountyEntry, user: SessionUser) -> None:
    if user.is_moderator or entry.user_id == user.id:
        return
    raise _ForbiddenError(f"User {user.id} may not modify bounty entry {entry.id}.")


def _to_http(exc: BountyHubError) -> HTTPException:
    """Map a service error onto an :class:`HTTPException`.

    Parameters
    ----------
    exc:
        The error raised by a service or store.

    Returns
    -------
    HTTPException
        404 for missing rows, 400 for state violations and ledger failures,
        401/403 for identity problems, 503 for transaction timeouts and 500
        for anything else.
    """
    if isinstance(exc, NotFoundError):
        status = 404
    elif isinstance(exc, (InvalidStateError, LedgerError)):
        status = 400
    elif isinstance(exc, _ForbiddenError):
        status = 403
    elif isinstance(exc, UnauthorizedError):
        status = 401
    elif isinstance(exc, TransactionTimeoutError):
        status = 503
    else:
        status = 500
    if status >= 500:
        logger.error("Request failed: %s", exc)
    return HTTPException(status_code=status, detail=str(exc))


def _get_package_version() -> str:
    """Return the installed package version, or ``"unknown"``."""
    try:
        return importlib.metadata.version("bountyhub")
    except importlib.metadata.PackageNotFoundError:
        return "unknown"
