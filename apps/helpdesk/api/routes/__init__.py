from . import ping, staff, tickets

__all__ = ["ping", "staff", "tickets"]
