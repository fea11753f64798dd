import pytest

from apps.helpdesk.tickets import MessageSender, Role
from apps.helpdesk.tickets.senders import parse_role, resolve_sender, sender_columns


@pytest.mark.parametrize(
    ("record", "expected"),
    [
        (
            {"sender_id": "s-1", "sender_name": "Sam", "sender_role": "STAFF", "customer_id": "c-1"},
            MessageSender(id="s-1", display_name="Sam", role=Role.STAFF),
        ),
        (
            {"sender": {"id": "a-1", "display_name": "Alex", "role": "admin"}},
            MessageSender(id="a-1", display_name="Alex", role=Role.ADMIN),
        ),
        (
            {"staff_id": "s-2", "staff_name": "Riley", "customer_id": "c-1", "is_from_staff": False},
            MessageSender(id="s-2", display_name="Riley", role=Role.STAFF),
        ),
        (
            {"staff": {"id": "s-3", "username": "agent3"}},
            MessageSender(id="s-3", display_name="agent3", role=Role.STAFF),
        ),
        (
            {"customer_id": "c-2", "customer_name": "Jordan", "is_from_staff": True},
            MessageSender(id="c-2", display_name="Jordan", role=Role.CUSTOMER),
        ),
        (
            {"customer": {"id": "c-3"}},
            MessageSender(id="c-3", display_name="Customer", role=Role.CUSTOMER),
        ),
        (
            {"isFromStaff": True},
            MessageSender(id=None, display_name="Staff Member", role=Role.STAFF),
        ),
        (
            {"is_from_staff": False, "sender_name": "Casey"},
            MessageSender(id=None, display_name="Casey", role=Role.CUSTOMER),
        ),
        (
            {},
            MessageSender(id=None, display_name="Customer", role=Role.CUSTOMER),
        ),
    ],
)
def test_resolve_sender_fallback_chain(record, expected):
    assert resolve_sender(record) == expected


def test_unknown_sender_role_falls_through_to_associations():
    record = {"sender_role": "robot", "staff_id": "s-1"}

    assert resolve_sender(record).role == Role.STAFF


def test_parse_role_normalises_case():
    assert parse_role(" staff ") == Role.STAFF
    assert parse_role(Role.ADMIN) == Role.ADMIN
    assert parse_role("") is None
    assert parse_role("superuser") is None


def test_sender_columns_round_trip_through_resolution():
    staff = MessageSender(id="s-1", display_name="Sam", role=Role.STAFF)
    customer = MessageSender(id="c-1", display_name="Casey", role=Role.CUSTOMER)

    staff_columns = sender_columns(staff)
    customer_columns = sender_columns(customer)

    assert staff_columns["is_from_staff"] is True
    assert staff_columns["staff_id"] == "s-1"
    assert "customer_id" not in staff_columns
    assert customer_columns["customer_name"] == "Casey"
    assert resolve_sender(staff_columns) == staff
    assert resolve_sender(customer_columns) == customer
