"""
Data type store test suite.

This package contains:
- unit/: Unit tests (pure helpers, entities, the pre-value cache)
- integration/: Repository, service and CLI tests against SQLite
"""
