"""Database layer - engine, declarative base and money rounding."""

from portfolio_kernel.db.base import UUID, Base, TrackedBase, UUIDString
from portfolio_kernel.db.engine import create_tables, get_engine, get_session, session_scope
from portfolio_kernel.db.types import round_money

__all__ = [
    "get_engine",
    "get_session",
    "session_scope",
    "create_tables",
    "Base",
    "TrackedBase",
    "UUIDString",
    "UUID",
    "round_money",
]
