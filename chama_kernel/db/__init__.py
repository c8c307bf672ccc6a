"""Database layer - engine, base classes, types, and storage listeners."""

from chama_kernel.db.base import Base, TrackedBase, UUIDString
from chama_kernel.db.engine import create_tables, get_engine, get_session, session_scope
from chama_kernel.db.types import Money, Rate

__all__ = [
    "get_engine",
    "get_session",
    "session_scope",
    "create_tables",
    "Base",
    "TrackedBase",
    "UUIDString",
    "Money",
    "Rate",
]
