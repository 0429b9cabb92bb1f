from __future__ import annotations

"""Mutable attribute sets shared by nodes, links, graphs and scope frames."""

from types import MappingProxyType
from typing import Any, Dict, Iterator, Mapping, MutableMapping, Optional


class Attributes(MutableMapping[str, Any]):
    """
    Ordered attribute name -> value mapping.

    Merging is last-write-wins per key: ``add`` keeps existing keys unless the
    merged mapping carries the same key.
    """

    __slots__ = ("_values",)

    def __init__(self, values: Optional[Mapping[str, Any]] = None, **kwargs: Any) -> None:
        self._values: Dict[str, Any] = {}
        self.add(values, **kwargs)

    # ------------------------------------------------------------------ #
    # MutableMapping protocol
    # ------------------------------------------------------------------ #
    def __getitem__(self, key: str) -> Any:
        return self._values[key]

    def __setitem__(self, key: str, value: Any) -> None:
        self._values[key] = value

    def __delitem__(self, key: str) -> None:
        del self._values[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    # ------------------------------------------------------------------ #
    # Merge / snapshot
    # ------------------------------------------------------------------ #
    def add(self, other: Optional[Mapping[str, Any]] = None, **kwargs: Any) -> Attributes:
        """Merge ``other`` and ``kwargs`` into this set; returns self for chaining."""
        if other is not None:
            self._values.update(other.items())
        if kwargs:
            self._values.update(kwargs)
        return self

    def copy(self) -> Attributes:
        return Attributes(self._values)

    def frozen(self) -> Mapping[str, Any]:
        """Return a read-only snapshot that later mutation of this set does not affect."""
        return MappingProxyType(dict(self._values))

    def __repr__(self) -> str:
        return f"Attributes({self._values!r})"
