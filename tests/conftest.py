from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from apps.helpdesk.services import AccountRepository
from apps.helpdesk.tickets import (
    AssignmentService,
    Identity,
    MessageThreadService,
    Role,
    TicketQueryService,
    TicketRepository,
    TicketService,
)

CUSTOMER = Identity(id="customer-1", username="customer", role=Role.CUSTOMER, display_name="Casey Customer")
OTHER_CUSTOMER = Identity(id="customer-2", username="customer2", role=Role.CUSTOMER, display_name="Jordan Buyer")
STAFF = Identity(id="staff-1", username="staff", role=Role.STAFF, display_name="Sam Support")
OTHER_STAFF = Identity(id="staff-2", username="staff2", role=Role.STAFF, display_name="Riley Agent")
ADMIN = Identity(id="admin-1", username="admin", role=Role.ADMIN, display_name="Alex Admin")


class FrozenClock:
    """Manually advanced clock so timestamps are deterministic."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2024, 5, 1, 9, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest_asyncio.fixture
async def engine() -> AsyncEngine:
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    try:
        yield engine
    finally:
        await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(engine: AsyncEngine) -> async_sessionmaker:
    return async_sessionmaker(engine, expire_on_commit=False)


@pytest_asyncio.fixture
async def repository(session_factory: async_sessionmaker, engine: AsyncEngine) -> TicketRepository:
    repository = TicketRepository(session_factory, engine=engine)
    await repository.ensure_schema()
    return repository


@pytest_asyncio.fixture
async def accounts(repository: TicketRepository, session_factory: async_sessionmaker, engine: AsyncEngine) -> AccountRepository:
    accounts = AccountRepository(session_factory, engine=engine)
    await accounts.seed([CUSTOMER, OTHER_CUSTOMER, STAFF, OTHER_STAFF, ADMIN])
    return accounts


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture
def ticket_service(repository: TicketRepository, clock: FrozenClock) -> TicketService:
    return TicketService(repository, clock=clock)


@pytest.fixture
def message_service(repository: TicketRepository, clock: FrozenClock) -> MessageThreadService:
    return MessageThreadService(repository, clock=clock)


@pytest.fixture
def assignment_service(
    repository: TicketRepository, accounts: AccountRepository, clock: FrozenClock
) -> AssignmentService:
    return AssignmentService(repository, accounts, clock=clock)


@pytest.fixture
def query_service(repository: TicketRepository, clock: FrozenClock) -> TicketQueryService:
    return TicketQueryService(repository, clock=clock)
