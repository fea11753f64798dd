"""Service layer exports."""

from .accounts import AccountRepository

__all__ = ["AccountRepository"]
