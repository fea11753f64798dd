from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Callable

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker
from sqlmodel import SQLModel

from packages.db.models import TicketAuditLogTable, TicketMessageTable, TicketTable

from .models import MessageSender, Ticket, TicketAuditEntry, TicketMessage, TicketSummary
from .senders import resolve_sender, sender_columns
from .state import TicketPriority, TicketStatus

_SENDER_COLUMNS = (
    "sender_id",
    "sender_name",
    "sender_role",
    "staff_id",
    "staff_name",
    "customer_id",
    "customer_name",
    "is_from_staff",
)

TicketMutation = Callable[[Ticket], TicketAuditEntry]
TicketCheck = Callable[[Ticket], None]


class TicketRepository:
    """Persistence helper wrapping `tickets`, `ticket_messages` and audit logs."""

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

    async def create_ticket(self, ticket: Ticket, audit: TicketAuditEntry) -> Ticket:
        async with self._session_factory() as session:
            async with session.begin():
                session.add(
                    TicketTable(
                        id=ticket.id,
                        subject=ticket.subject,
                        description=ticket.description,
                        status=ticket.status.value,
                        priority=ticket.priority.value,
                        customer_id=ticket.customer_id,
                        customer_name=ticket.customer_name,
                        assigned_staff_id=ticket.assigned_staff_id,
                        assigned_staff_name=ticket.assigned_staff_name,
                        version=ticket.version,
                        created_at=ticket.created_at,
                        updated_at=ticket.updated_at,
                        closed_at=ticket.closed_at,
                    )
                )
                session.add(self._audit_to_table(audit))
        return ticket

    async def get_ticket(self, ticket_id: str) -> Ticket | None:
        async with self._session_factory() as session:
            row = await session.get(TicketTable, ticket_id)
            if row is None:
                return None
            return self._table_to_ticket(row)

    async def list_summaries(
        self,
        *,
        customer_id: str | None = None,
        status: TicketStatus | None = None,
        unassigned: bool = False,
        search: str | None = None,
        snippet_length: int = 120,
    ) -> list[TicketSummary]:
        """List tickets together with message counts and the latest message."""

        statement = self._ticket_query(
            customer_id=customer_id, status=status, unassigned=unassigned, search=search
        )
        async with self._session_factory() as session:
            result = await session.execute(statement)
            tickets = [self._table_to_ticket(row) for row in result.scalars().all()]
            if not tickets:
                return []

            ranked = (
                select(
                    TicketMessageTable.id,
                    TicketMessageTable.ticket_id,
                    TicketMessageTable.content,
                    TicketMessageTable.created_at,
                    *(getattr(TicketMessageTable, name) for name in _SENDER_COLUMNS),
                    func.count()
                    .over(partition_by=TicketMessageTable.ticket_id)
                    .label("message_count"),
                    func.row_number()
                    .over(
                        partition_by=TicketMessageTable.ticket_id,
                        order_by=[TicketMessageTable.created_at.desc(), TicketMessageTable.sequence.desc()],
                    )
                    .label("position"),
                )
                .where(TicketMessageTable.ticket_id.in_([ticket.id for ticket in tickets]))
                .subquery()
            )
            latest = await session.execute(select(ranked).where(ranked.c.position == 1))
            latest_by_ticket = {row["ticket_id"]: row for row in latest.mappings().all()}

        summaries: list[TicketSummary] = []
        for ticket in tickets:
            row = latest_by_ticket.get(ticket.id)
            if row is None:
                summaries.append(TicketSummary(ticket=ticket))
                continue
            summaries.append(
                TicketSummary(
                    ticket=ticket,
                    message_count=int(row["message_count"]),
                    last_message=_snippet(str(row["content"]), snippet_length),
                    last_message_at=_ensure_datetime(row["created_at"]),
                    last_message_from_staff=resolve_sender(row).is_staff,
                )
            )
        return summaries

    async def modify_ticket(self, ticket_id: str, mutate: TicketMutation) -> Ticket | None:
        """Apply ``mutate`` to the stored ticket and persist it with its audit entry.

        The read, the mutation and the audit insert share one transaction, so
        errors raised by ``mutate`` leave the ticket untouched.
        """

        async with self._session_factory() as session:
            async with session.begin():
                row = await session.get(TicketTable, ticket_id, with_for_update=True)
                if row is None:
                    return None
                ticket = self._table_to_ticket(row)
                audit = mutate(ticket)

                row.status = ticket.status.value
                row.assigned_staff_id = ticket.assigned_staff_id
                row.assigned_staff_name = ticket.assigned_staff_name
                row.version = ticket.version
                row.updated_at = ticket.updated_at
                row.closed_at = ticket.closed_at
                session.add(self._audit_to_table(audit))
        return ticket

    async def append_message(
        self,
        ticket_id: str,
        *,
        sender: MessageSender,
        content: str,
        now: datetime,
        idempotency_key: str | None = None,
        check: TicketCheck | None = None,
    ) -> TicketMessage | None:
        """Append a message after every existing message of the ticket.

        Returns ``None`` when the ticket does not exist. A repeated
        ``idempotency_key`` from the same sender returns the stored message.
        """

        async with self._session_factory() as session:
            async with session.begin():
                ticket_row = await session.get(TicketTable, ticket_id, with_for_update=True)
                if ticket_row is None:
                    return None

                if idempotency_key is not None:
                    existing = await session.execute(
                        select(TicketMessageTable).where(
                            TicketMessageTable.ticket_id == ticket_id,
                            TicketMessageTable.sender_id == sender.id,
                            TicketMessageTable.idempotency_key == idempotency_key,
                        )
                    )
                    duplicate = existing.scalars().first()
                    if duplicate is not None:
                        return self._table_to_message(duplicate)

                if check is not None:
                    check(self._table_to_ticket(ticket_row))

                tail = await session.execute(
                    select(
                        func.max(TicketMessageTable.sequence),
                        func.max(TicketMessageTable.created_at),
                    ).where(TicketMessageTable.ticket_id == ticket_id)
                )
                last_sequence, last_created_at = tail.one()
                created_at = advance_timestamp(
                    now, None if last_created_at is None else _ensure_datetime(last_created_at)
                )

                row = TicketMessageTable(
                    ticket_id=ticket_id,
                    sequence=(last_sequence or 0) + 1,
                    content=content,
                    idempotency_key=idempotency_key,
                    created_at=created_at,
                    **sender_columns(sender),
                )
                session.add(row)
                ticket_row.updated_at = advance_timestamp(
                    created_at, _ensure_datetime(ticket_row.updated_at)
                )
                await session.flush()
                return self._table_to_message(row)

    async def list_messages(self, ticket_id: str) -> list[TicketMessage]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(TicketMessageTable)
                .where(TicketMessageTable.ticket_id == ticket_id)
                .order_by(
                    TicketMessageTable.created_at.asc(),
                    TicketMessageTable.sequence.asc(),
                    TicketMessageTable.id.asc(),
                )
            )
            return [self._table_to_message(row) for row in result.scalars().all()]

    async def get_audit_log(self, ticket_id: str) -> list[TicketAuditEntry]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(TicketAuditLogTable)
                .where(TicketAuditLogTable.ticket_id == ticket_id)
                .order_by(TicketAuditLogTable.created_at.asc())
            )
            return [self._table_to_audit(row) for row in result.scalars().all()]

    @staticmethod
    def _ticket_query(
        *,
        customer_id: str | None,
        status: TicketStatus | None,
        unassigned: bool,
        search: str | None,
    ) -> Any:
        statement = select(TicketTable)
        if customer_id is not None:
            statement = statement.where(TicketTable.customer_id == customer_id)
        if status is not None:
            statement = statement.where(TicketTable.status == status.value)
        if unassigned:
            statement = statement.where(TicketTable.assigned_staff_id.is_(None))
        if search:
            pattern = _like_pattern(search)
            matching_threads = select(TicketMessageTable.ticket_id).where(
                TicketMessageTable.content.ilike(pattern, escape="\\")
            )
            statement = statement.where(
                or_(
                    TicketTable.subject.ilike(pattern, escape="\\"),
                    TicketTable.id.in_(matching_threads),
                )
            )
        return statement.order_by(TicketTable.created_at.desc(), TicketTable.id.asc())

    @staticmethod
    def _table_to_ticket(row: TicketTable) -> Ticket:
        return Ticket(
            id=row.id,
            subject=row.subject,
            description=row.description,
            status=TicketStatus(row.status),
            priority=TicketPriority(row.priority),
            customer_id=row.customer_id,
            customer_name=row.customer_name,
            assigned_staff_id=row.assigned_staff_id,
            assigned_staff_name=row.assigned_staff_name,
            version=row.version,
            created_at=_ensure_datetime(row.created_at),
            updated_at=_ensure_datetime(row.updated_at),
            closed_at=None if row.closed_at is None else _ensure_datetime(row.closed_at),
        )

    @staticmethod
    def _table_to_message(row: TicketMessageTable) -> TicketMessage:
        record: dict[str, Any] = {name: getattr(row, name) for name in _SENDER_COLUMNS}
        record["id"] = row.id
        return TicketMessage(
            id=row.id,
            ticket_id=row.ticket_id,
            sequence=row.sequence,
            sender=resolve_sender(record),
            content=row.content,
            created_at=_ensure_datetime(row.created_at),
        )

    @staticmethod
    def _audit_to_table(audit: TicketAuditEntry) -> TicketAuditLogTable:
        return TicketAuditLogTable(
            id=audit.id,
            ticket_id=audit.ticket_id,
            action=audit.action,
            actor=audit.actor,
            from_status=audit.from_status.value if audit.from_status else None,
            to_status=audit.to_status.value if audit.to_status else None,
            metadata_=dict(audit.metadata),
            created_at=audit.created_at,
        )

    @staticmethod
    def _table_to_audit(row: TicketAuditLogTable) -> TicketAuditEntry:
        from_status = row.from_status
        to_status = row.to_status
        return TicketAuditEntry(
            id=row.id,
            ticket_id=row.ticket_id,
            action=row.action,
            actor=row.actor,
            from_status=TicketStatus(from_status) if from_status else None,
            to_status=TicketStatus(to_status) if to_status else None,
            metadata=dict(row.metadata_ or {}),
            created_at=_ensure_datetime(row.created_at),
        )


def advance_timestamp(now: datetime, previous: datetime | None) -> datetime:
    """Return ``now``, or the instant right after ``previous`` if the clock lags."""

    if previous is not None and now <= previous:
        return previous + timedelta(microseconds=1)
    return now


def _like_pattern(term: str) -> str:
    escaped = term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def _snippet(content: str, length: int) -> str:
    collapsed = " ".join(content.split())
    if len(collapsed) <= length:
        return collapsed
    return collapsed[: max(length - 3, 0)].rstrip() + "..."


def _ensure_datetime(value: Any) -> datetime:
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value
    if isinstance(value, str):
        return _ensure_datetime(datetime.fromisoformat(value))
    raise TypeError("Expected datetime value from database")
