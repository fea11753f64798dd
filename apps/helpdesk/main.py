import logging
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from apps.helpdesk.api.routes import ping, staff, tickets
from apps.helpdesk.core.config import Settings, get_settings
from apps.helpdesk.core.logging import configure_logging, init_tracer, shutdown_tracer
from apps.helpdesk.middleware import RBACMiddleware
from apps.helpdesk.services import AccountRepository
from apps.helpdesk.tickets import (
    AssignmentService,
    DefaultNeedsAttentionPolicy,
    MessageThreadService,
    TicketQueryService,
    TicketRepository,
    TicketService,
)

logger = logging.getLogger(__name__)


def _to_asyncpg_dsn(dsn: str) -> str:
    """Ensure the SQLAlchemy DSN uses the asyncpg driver."""

    if dsn.startswith("postgresql+asyncpg://"):
        return dsn
    if dsn.startswith("postgresql://"):
        return "postgresql+asyncpg://" + dsn[len("postgresql://") :]
    return dsn


def _engine_options(dsn: str) -> dict[str, Any]:
    # In-memory SQLite lives inside a single connection.
    if dsn.startswith("sqlite") and ":memory:" in dsn:
        return {"poolclass": StaticPool, "connect_args": {"check_same_thread": False}}
    return {}


async def _build_services(app: FastAPI, settings: Settings, session_factory, engine) -> None:
    ticket_repository = TicketRepository(session_factory, engine=engine)
    account_repository = AccountRepository(session_factory, engine=engine)
    await ticket_repository.ensure_schema()
    await account_repository.seed(account.to_identity() for account in settings.auth_tokens.values())

    app.state.account_repository = account_repository
    app.state.ticket_service = TicketService(
        ticket_repository,
        clear_closed_at_on_reopen=settings.clear_closed_at_on_reopen,
    )
    app.state.message_service = MessageThreadService(ticket_repository)
    app.state.assignment_service = AssignmentService(ticket_repository, account_repository)
    app.state.query_service = TicketQueryService(
        ticket_repository,
        needs_attention=DefaultNeedsAttentionPolicy(stale_after=settings.needs_attention_stale_after),
        snippet_length=settings.message_snippet_length,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings: Settings = app.state.settings
    app.state.logger = configure_logging(settings)
    tracer_provider = init_tracer(settings)
    app.state.tracer_provider = tracer_provider

    dsn = _to_asyncpg_dsn(settings.database_dsn)
    db_engine = create_async_engine(dsn, echo=settings.database_echo, future=True, **_engine_options(dsn))
    session_factory = async_sessionmaker(db_engine, expire_on_commit=False)
    app.state.db_engine = db_engine
    app.state.db_session_factory = session_factory
    try:
        await _build_services(app, settings, session_factory, db_engine)
    except Exception:
        logger.exception("Ticket services could not be initialised")
        app.state.ticket_service = None
        app.state.message_service = None
        app.state.assignment_service = None
        app.state.query_service = None
    try:
        yield
    finally:
        await db_engine.dispose()
        shutdown_tracer(tracer_provider)


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or get_settings()
    app = FastAPI(title=settings.app_name, lifespan=lifespan)
    app.state.settings = settings
    app.add_middleware(RBACMiddleware)
    app.include_router(ping.router)
    app.include_router(tickets.router)
    app.include_router(staff.router)
    return app


app = create_app()
