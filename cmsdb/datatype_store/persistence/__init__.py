"""
Persistence module for the data type store.

This module handles:
- The SQLite database and its schema (Database)
- The narrow statement interface repositories write through (Transaction)
- Ambient unit-of-work scopes with post-commit callbacks (ScopeProvider)

Invariants:
    - One transaction per logical operation
    - Foreign keys are enforced without cascades
    - Post-commit callbacks never run for a rolled-back scope
"""

from .database import Database, Transaction, from_ms, now_ms
from .scope import Scope, ScopeProvider

__all__ = [
    "Database",
    "Transaction",
    "Scope",
    "ScopeProvider",
    "now_ms",
    "from_ms",
]
