"""
Data type store - persistence for CMS data type definitions.

This package stores the data types a CMS uses to configure property
editors, organized in a tree:
- Data types and folder containers as node rows with materialized paths
- Pre-values (per data type configuration), cached per data type
- Content types whose property definitions reference data types

Layout:
    models/        Entities, pre-values and collections
    persistence/   SQLite database, transactions and ambient scopes
    repositories/  Data type, container and content type repositories
    cache/         Sliding-expiration pre-value cache
    events/        Change notifications published after commit
    services/      Scoped, event-publishing facade

Invariants:
    - Every repository call runs inside an ambient scope
    - A node's path ends with its own id and level equals its path length
    - Data type names are unique (case-insensitively) per kind
    - Deleting a data type never leaves rows referencing it

How to change safely:
    - Add tables referencing nodes or data types to the cascade
    - Keep cache invalidation tied to commit
"""

from ._version import __version__

__all__ = ["__version__"]
