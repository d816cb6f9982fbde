"""
Pre-value types for the data type store.

A data type's configuration is a list of pre-value rows. Materialized,
the rows form a PreValueCollection, which is one of two variants:
- PreValueSequence: ordered values, no usable aliases
- PreValueMapping: alias -> value, in sort order

to_collection() is the only place deciding which variant applies.

Invariants:
    - A collection is never both a sequence and a mapping
    - Empty aliases everywhere -> sequence
    - Some empty and some non-empty aliases -> sequence
    - A repeated non-empty alias -> sequence
    - Iteration order always follows sort_order
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, Iterator, Mapping, Optional, Tuple, Union


@dataclass(frozen=True)
class PreValue:
    """A single configuration value.

    Attributes:
        id: Row id, 0 for a value not yet persisted
        value: Stored string value
        sort_order: Position within the owning collection
    """

    id: int = 0
    value: Optional[str] = None
    sort_order: int = 0


@dataclass(frozen=True)
class PreValueSequence:
    """Ordered pre-values without aliases."""

    values: Tuple[PreValue, ...] = ()

    def __iter__(self) -> Iterator[PreValue]:
        return iter(self.values)

    def __len__(self) -> int:
        return len(self.values)

    def items(self) -> Iterator[Tuple[str, PreValue]]:
        """Alias/value pairs; a sequence has no aliases."""
        for pre_value in self.values:
            yield "", pre_value

    def as_dict(self) -> Dict[str, PreValue]:
        """Index-keyed view ("0", "1", ...) for callers that want a dict."""
        return {str(index): pre_value for index, pre_value in enumerate(self.values)}

    def find(self, pre_value_id: int) -> Optional[PreValue]:
        return next((pv for pv in self.values if pv.id == pre_value_id), None)


@dataclass(frozen=True)
class PreValueMapping:
    """Pre-values keyed by their unique, non-empty alias."""

    values: Mapping[str, PreValue] = field(default_factory=dict)

    def __iter__(self) -> Iterator[PreValue]:
        return iter(self.values.values())

    def __len__(self) -> int:
        return len(self.values)

    def __getitem__(self, alias: str) -> PreValue:
        return self.values[alias]

    def items(self) -> Iterator[Tuple[str, PreValue]]:
        return iter(self.values.items())

    def as_dict(self) -> Dict[str, PreValue]:
        return dict(self.values)

    def find(self, pre_value_id: int) -> Optional[PreValue]:
        return next((pv for pv in self.values.values() if pv.id == pre_value_id), None)


PreValueCollection = Union[PreValueSequence, PreValueMapping]


def _has_alias(alias: Optional[str]) -> bool:
    return bool(alias and alias.strip())


def to_collection(rows: Iterable[Tuple[Optional[str], PreValue]]) -> PreValueCollection:
    """Build a collection from (alias, pre-value) rows.

    Args:
        rows: Alias and pre-value pairs, in any order

    Returns:
        PreValueMapping when every alias is present and unique,
        PreValueSequence otherwise
    """
    ordered = sorted(rows, key=lambda row: row[1].sort_order)
    aliases = [alias for alias, _ in ordered]

    if (
        not ordered
        or not all(_has_alias(alias) for alias in aliases)
        or len(set(aliases)) != len(aliases)
    ):
        return PreValueSequence(tuple(pre_value for _, pre_value in ordered))

    return PreValueMapping({alias: pre_value for alias, pre_value in ordered})
