from __future__ import annotations

"""Node, label and link value types."""

from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, List, Mapping, Optional, Tuple, Union

from .attributes import Attributes

if TYPE_CHECKING:
    from .graph import MutableGraph


@dataclass(frozen=True, slots=True)
class Label:
    """Value-equality key identifying a node across resolution calls."""

    value: str
    html: bool = False

    @classmethod
    def of(cls, value: Union[Label, str]) -> Label:
        if isinstance(value, Label):
            return value
        if isinstance(value, str):
            return cls(value)
        raise TypeError(f"Label must be a Label or str, got {type(value).__name__}")

    @classmethod
    def html_label(cls, value: str) -> Label:
        return cls(value, html=True)

    def __str__(self) -> str:
        return self.value


def _freeze(attrs: Mapping[str, Any]) -> Mapping[str, Any]:
    return MappingProxyType(dict(attrs))


@dataclass(frozen=True, slots=True)
class ImmutableNode:
    """
    Value-type node snapshot.

    Two snapshots are equal when label, attributes and links are equal; the
    hash only covers the label so snapshots stay usable as dict keys.
    """

    label: Label
    attrs: Mapping[str, Any] = field(default_factory=dict, hash=False)
    links: Tuple[Link, ...] = field(default=(), hash=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "label", Label.of(self.label))
        object.__setattr__(self, "attrs", _freeze(self.attrs))
        object.__setattr__(self, "links", tuple(self.links))

    def with_attrs(self, attrs: Optional[Mapping[str, Any]] = None, **kwargs: Any) -> ImmutableNode:
        """Return a copy with ``attrs`` merged over the current attributes."""
        merged = Attributes(self.attrs).add(attrs, **kwargs)
        return replace(self, attrs=merged)

    def link(self, *targets: Union[LinkEndpoint, str]) -> ImmutableNode:
        """
        Return a copy with one extra link per target.

        String targets resolve to snapshots in the active scope; links pick
        up the scope's link defaults.
        """
        from ..context import resolve_link, resolve_node  # local import avoids cycles

        new_links = [
            resolve_link(self, resolve_node(t) if isinstance(t, str) else t)
            for t in targets
        ]
        return replace(self, links=self.links + tuple(new_links))


@dataclass(slots=True, eq=False)
class MutableNode:
    """Shared, identity-compared node; attribute changes are seen by every holder."""

    label: Label
    attrs: Attributes = field(default_factory=Attributes)
    links: List[Link] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.label = Label.of(self.label)

    def add(self, attrs: Optional[Mapping[str, Any]] = None, **kwargs: Any) -> MutableNode:
        self.attrs.add(attrs, **kwargs)
        return self

    def add_link(self, *targets: Union[LinkEndpoint, str]) -> MutableNode:
        """
        Append one link per target.

        String targets resolve to mutable nodes in the active scope, so they
        dedupe with other declarations and land in the enclosing graph.
        """
        from ..context import resolve_link, resolve_mutable_node

        for t in targets:
            target = resolve_mutable_node(t) if isinstance(t, str) else t
            self.links.append(resolve_link(self, target))
        return self

    def to_immutable(self) -> ImmutableNode:
        return ImmutableNode(self.label, self.attrs, tuple(self.links))

    def __repr__(self) -> str:
        return f"MutableNode(label={self.label.value!r}, attrs={dict(self.attrs)!r}, links={len(self.links)})"


@dataclass(slots=True, eq=False)
class Link:
    """Directed connection between two endpoints; never deduplicated."""

    source: Optional[LinkEndpoint]
    target: LinkEndpoint
    attrs: Attributes = field(default_factory=Attributes)

    def add(self, attrs: Optional[Mapping[str, Any]] = None, **kwargs: Any) -> Link:
        self.attrs.add(attrs, **kwargs)
        return self


LinkEndpoint = Union[ImmutableNode, MutableNode, "MutableGraph", Label]


def endpoint_label(endpoint: Any) -> Optional[Label]:
    """Label of a node-like endpoint, or None for graphs and unknown objects."""
    if isinstance(endpoint, Label):
        return endpoint
    if isinstance(endpoint, (ImmutableNode, MutableNode)):
        return endpoint.label
    return None
