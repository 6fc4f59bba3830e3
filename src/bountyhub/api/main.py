"""FastAPI application factory for the bountyhub API.

Exposes a :func:`create_app` factory function that instantiates the
:class:`fastapi.FastAPI` application, wires up the dependency-injected
components (the bounty :class:`~bountyhub.db.connection.Database`, the
:class:`~bountyhub.ledger.buzz.BuzzLedger` and the two services), and
registers the API router defined in :mod:`bountyhub.api.routes`.

Usage::

    # Production startup (uvicorn)
    uvicorn bountyhub.api.main:app --host 0.0.0.0 --port 8000

    # Testing: pass in-memory handles
    from bountyhub.api.main import create_app
    app = create_app(db=Database(Path(":memory:")),
                     ledger=BuzzLedger(Database(Path(":memory:"))))

Components are attached to ``app.state`` so that route handlers can retrieve
them via ``request.app.state``.
"""

from __future__ import annotations

import importlib.metadata
import logging

from fastapi import FastAPI

from bountyhub.api.routes import router
from bountyhub.config import AppConfig, get_config
from bountyhub.db.connection import Database
from bountyhub.db.schema import init_schema
from bountyhub.ledger.buzz import BuzzLedger
from bountyhub.services.bounties import BountyService
from bountyhub.services.entries import BountyEntryService

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# App factory
# ---------------------------------------------------------------------------


def create_app(
    config: AppConfig | None = None,
    db: Database | None = None,
    ledger: BuzzLedger | None = None,
    bounty_service: BountyService | None = None,
    entry_service: BountyEntryService | None = None,
) -> FastAPI:
    """Create and configure the bountyhub FastAPI application.

    Every component is injectable.  When a parameter is ``None`` the factory
    builds a default from *config*, so tests can pass in-memory databases or
    mocks without touching the filesystem.

    Parameters
    ----------
    config:
        Settings to build defaults from.  Resolved with
        :func:`~bountyhub.config.get_config` when ``None``.
    db:
        Handle on the bounty database.  Opened at ``config.db_path`` when
        ``None``.  The schema is created either way.
    ledger:
        BUZZ ledger.  Opened at ``config.ledger_db_path`` when ``None``.
    bounty_service:
        Pre-built :class:`~bountyhub.services.bounties.BountyService`.
    entry_service:
        Pre-built :class:`~bountyhub.services.entries.BountyEntryService`.

    Returns
    -------
    FastAPI
        A fully-configured application instance with all routes registered
        and dependencies attached to ``app.state``.
    """
    if config is None:
        config = get_config()
    logging.getLogger("bountyhub").setLevel(config.log_level)

    app = FastAPI(
        title="bountyhub API",
        description="Bounty entries, benefactor awards and BUZZ payouts.",
        version=_get_version(),
        docs_url="/docs",
        redoc_url="/redoc",
    )

    # ---- Bounty database ----
    if db is None:
        db = Database(
            config.db_path,
            max_wait=config.transaction_max_wait_seconds,
            timeout=config.transaction_timeout_seconds,
        )
        logger.info("Bounty database opened at %s", config.db_path)
    init_schema(db)

    # ---- Ledger ----
    if ledger is None:
        ledger_db = Database(
            config.ledger_db_path,
            max_wait=config.transaction_max_wait_seconds,
            timeout=config.transaction_timeout_seconds,
        )
        ledger = BuzzLedger(ledger_db, system_account_id=config.system_account_id)
        logger.info("BUZZ ledger opened at %s", config.ledger_db_path)

    # ---- Services ----
    if bounty_service is None:
        bounty_service = BountyService(db)
    if entry_service is None:
        entry_service = BountyEntryService(
            db, ledger, system_account_id=config.system_account_id
        )

    # ---- Attach to app.state ----
    app.state.config = config
    app.state.db = db
    app.state.ledger = ledger
    app.state.bounty_service = bounty_service
    app.state.entry_service = entry_service

    # ---- Register routes ----
    app.include_router(router)

    return app


def _get_version() -> str:
    """Return the installed package version, or ``"unknown"``."""
    try:
        return importlib.metadata.version("bountyhub")
    except importlib.metadata.PackageNotFoundError:
        return "unknown"


# ---------------------------------------------------------------------------
# Production application instance
# ---------------------------------------------------------------------------

#: Module-level application object for production use with uvicorn:
#:
#:   uvicorn bountyhub.api.main:app --host 0.0.0.0 --port 8000
app: FastAPI = create_app()
