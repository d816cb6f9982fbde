"""
Unique node naming.

Names are unique per node kind. A requested name that is already taken
gets a " (n)" suffix, using the smallest n not in use.

Invariants:
    - Resolving an unused name returns it unchanged
    - Comparison is case-insensitive
    - The excluded id (the entity being updated) never conflicts with itself
"""

from __future__ import annotations

import logging
import re
from typing import Iterable, Optional, Tuple

from ..models import ObjectType
from ..persistence import Transaction

logger = logging.getLogger(__name__)

_SUFFIX = re.compile(r"^(?P<base>.*?)\s*\((?P<number>\d+)\)$")


def get_unique_name(
    existing: Iterable[Tuple[int, Optional[str]]],
    name: str,
    exclude_id: int = 0,
) -> str:
    """Pick a name not used by any other node.

    Args:
        existing: (id, name) pairs of every node of the same kind
        name: Requested name
        exclude_id: Id whose current name does not count as taken

    Returns:
        name itself when free, otherwise "base (n)" with the smallest free n

    Example:
        >>> get_unique_name([(1, "Text"), (2, "Text (1)")], "Text")
        'Text (2)'
    """
    taken = {
        text.casefold()
        for node_id, text in existing
        if node_id != exclude_id and text is not None
    }
    if name.casefold() not in taken:
        return name

    # "Text (1)" colliding resolves against "Text", not "Text (1) (1)"
    match = _SUFFIX.match(name)
    base = match.group("base") if match and match.group("base") else name

    number = 1
    while f"{base} ({number})".casefold() in taken:
        number += 1
    return f"{base} ({number})"


class UniqueNameResolver:
    """Resolves unique names for one node kind against the store."""

    def __init__(self, object_type: ObjectType) -> None:
        self.object_type = object_type

    def resolve(self, tx: Transaction, name: str, exclude_id: int = 0) -> str:
        """Return a name unique among nodes of this kind.

        Args:
            tx: Open transaction
            name: Requested name
            exclude_id: Entity being updated, 0 for a new one

        Returns:
            The name to persist
        """
        rows = tx.fetch(
            "SELECT id, text FROM nodes WHERE node_object_type = ?",
            (self.object_type.value,),
        )
        resolved = get_unique_name(((row["id"], row["text"]) for row in rows), name, exclude_id)
        if resolved != name:
            logger.debug(
                f"Renamed {self.object_type.value} '{name}' to '{resolved}'",
                extra={"object_type": self.object_type.value, "exclude_id": exclude_id},
            )
        return resolved

    def is_taken(self, tx: Transaction, name: str, exclude_id: int = 0) -> bool:
        """Check the store directly for another node using name."""
        count = tx.execute_scalar(
            """
            SELECT COUNT(*) FROM nodes
            WHERE node_object_type = ? AND text = ? COLLATE NOCASE AND id <> ?
            """,
            (self.object_type.value, name, exclude_id),
        )
        return count > 0
