from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Iterable

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker
from sqlmodel import SQLModel

from apps.helpdesk.tickets.identity import Identity, Role
from packages.db.models import UserTable

logger = logging.getLogger(__name__)


class AccountRepository:
    """Repository responsible for the `users` table.

    The identity provider stays the source of truth; this table only mirrors
    the accounts the helpdesk has seen so staff ids can be validated and
    listed without a round trip to the provider.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        engine: AsyncEngine | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._engine: AsyncEngine | None = engine

    async def ensure_schema(self) -> None:
        if self._engine is None:
            raise RuntimeError("Session factory is not bound to an async engine")
        async with self._engine.begin() as connection:
            await connection.run_sync(SQLModel.metadata.create_all)

    async def upsert_account(self, identity: Identity, *, email: str | None = None) -> Identity:
        async with self._session_factory() as session:
            row = await session.get(UserTable, identity.id)
            now = datetime.now(timezone.utc)
            if row is None:
                row = UserTable(id=identity.id, created_at=now)
                session.add(row)
            row.username = identity.username
            row.display_name = identity.name
            row.role = identity.role.value
            row.email = email if email is not None else row.email
            row.is_active = True
            row.updated_at = now
            await session.commit()
            await session.refresh(row)
            return self._table_to_identity(row)

    async def seed(self, identities: Iterable[Identity]) -> int:
        count = 0
        for identity in identities:
            await self.upsert_account(identity)
            count += 1
        logger.info("Seeded %d helpdesk accounts", count)
        return count

    async def get_account(self, account_id: str) -> Identity | None:
        """Return the active account, or ``None`` when it is unknown or disabled."""

        async with self._session_factory() as session:
            row = await session.get(UserTable, account_id)
            if row is None or not row.is_active:
                return None
            return self._table_to_identity(row)

    async def list_accounts(self, *, roles: Iterable[Role] | None = None) -> list[Identity]:
        statement = select(UserTable).where(UserTable.is_active.is_(True))
        if roles is not None:
            statement = statement.where(UserTable.role.in_([role.value for role in roles]))
        async with self._session_factory() as session:
            result = await session.execute(statement.order_by(UserTable.display_name.asc()))
            return [self._table_to_identity(row) for row in result.scalars().all()]

    async def deactivate(self, account_id: str) -> bool:
        async with self._session_factory() as session:
            row = await session.get(UserTable, account_id)
            if row is None:
                return False
            row.is_active = False
            row.updated_at = datetime.now(timezone.utc)
            await session.commit()
            return True

    @staticmethod
    def _table_to_identity(row: UserTable) -> Identity:
        return Identity(
            id=row.id,
            username=row.username,
            role=Role(row.role),
            display_name=row.display_name,
        )
