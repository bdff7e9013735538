"""
Persistence layer components: sessions, transactions, and write fallbacks.
"""

from .session import Execution, ExecutionKind, ResultSet, Session
from .transaction import SessionState, TransactionAction, TransactionManager
from .write_fallback import FallbackWriter

__all__ = [
    "Execution",
    "ExecutionKind",
    "FallbackWriter",
    "ResultSet",
    "Session",
    "SessionState",
    "TransactionAction",
    "TransactionManager",
]
