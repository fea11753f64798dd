"""Resolve message authorship from stored rows or imported payloads.

Rows written by this service always carry ``sender_id``/``sender_name``/
``sender_role``. Older data may only have a staff association, a customer
association or an ``is_from_staff`` flag, and imported payloads use nested
``sender``/``staff``/``customer`` objects. Everything is folded into a
:class:`MessageSender` here so that callers never repeat the fallback logic.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping

from .identity import Role
from .models import MessageSender

logger = logging.getLogger(__name__)

DEFAULT_STAFF_NAME = "Staff Member"
DEFAULT_CUSTOMER_NAME = "Customer"


def parse_role(value: Any) -> Role | None:
    """Return the matching role, or ``None`` for blank or unknown values."""

    if isinstance(value, Role):
        return value
    if not value:
        return None
    try:
        return Role(str(value).strip().upper())
    except ValueError:
        return None


def _nested(record: Mapping[str, Any], key: str) -> Mapping[str, Any]:
    value = record.get(key)
    return value if isinstance(value, Mapping) else {}


def _first(*values: Any) -> Any:
    for value in values:
        if value is not None and value != "":
            return value
    return None


def _as_id(value: Any) -> str | None:
    return None if value is None else str(value)


def resolve_sender(record: Mapping[str, Any]) -> MessageSender:
    """Classify the author of ``record``.

    Precedence: explicit sender role, staff association, customer
    association, the ``is_from_staff`` flag, and finally the customer.
    """

    sender = _nested(record, "sender")
    staff = _nested(record, "staff")
    customer = _nested(record, "customer")

    sender_id = _as_id(_first(record.get("sender_id"), sender.get("id")))
    sender_name = _first(
        record.get("sender_name"), sender.get("display_name"), sender.get("username")
    )
    role = parse_role(_first(record.get("sender_role"), sender.get("role")))
    if role is not None:
        default_name = DEFAULT_CUSTOMER_NAME if role == Role.CUSTOMER else DEFAULT_STAFF_NAME
        return MessageSender(id=sender_id, display_name=sender_name or default_name, role=role)

    staff_id = _as_id(_first(record.get("staff_id"), staff.get("id")))
    if staff_id is not None:
        name = _first(record.get("staff_name"), staff.get("display_name"), staff.get("username"))
        return MessageSender(id=staff_id, display_name=name or DEFAULT_STAFF_NAME, role=Role.STAFF)

    customer_id = _as_id(_first(record.get("customer_id"), customer.get("id")))
    if customer_id is not None:
        name = _first(
            record.get("customer_name"), customer.get("display_name"), customer.get("username")
        )
        return MessageSender(
            id=customer_id, display_name=name or DEFAULT_CUSTOMER_NAME, role=Role.CUSTOMER
        )

    from_staff = _first(record.get("is_from_staff"), record.get("isFromStaff"))
    if from_staff:
        return MessageSender(
            id=sender_id, display_name=sender_name or DEFAULT_STAFF_NAME, role=Role.STAFF
        )

    if from_staff is None:
        logger.debug("Message %s has no sender information; assuming customer", record.get("id"))
    return MessageSender(
        id=sender_id, display_name=sender_name or DEFAULT_CUSTOMER_NAME, role=Role.CUSTOMER
    )


def sender_columns(sender: MessageSender) -> dict[str, Any]:
    """Column values stamped on a new message row for ``sender``."""

    columns: dict[str, Any] = {
        "sender_id": sender.id,
        "sender_name": sender.display_name,
        "sender_role": sender.role.value,
        "is_from_staff": sender.is_staff,
    }
    if sender.is_staff:
        columns["staff_id"] = sender.id
        columns["staff_name"] = sender.display_name
    else:
        columns["customer_id"] = sender.id
        columns["customer_name"] = sender.display_name
    return columns
