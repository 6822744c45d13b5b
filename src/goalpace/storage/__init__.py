"""Storage layer for goals, tasks and focus sessions."""

from goalpace.storage.database import Database, Transaction

__all__ = ["Database", "Transaction"]
