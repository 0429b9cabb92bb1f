from __future__ import annotations

"""Terse construction functions answered by the active construction scope."""

from typing import Optional, Union

from .. import context
from .graph import MutableGraph
from .nodes import ImmutableNode, Label, Link, LinkEndpoint, MutableNode


def node(label: Union[Label, str]) -> ImmutableNode:
    return context.resolve_node(label)


def mut_node(label: Union[Label, str]) -> MutableNode:
    return context.resolve_mutable_node(label)


def mut_graph(name: str = "", *, directed: bool = True) -> MutableGraph:
    """New graph; registered as a subgraph when the active scope has a graph."""
    graph = context.resolve_subgraph()
    graph.name = name
    graph.directed = directed
    return graph


def link(source: Optional[LinkEndpoint], target: Union[LinkEndpoint, str]) -> Link:
    """New link carrying the active scope's link defaults. String targets become labels."""
    if isinstance(target, str):
        target = Label.of(target)
    return context.resolve_link(source, target)


__all__ = ["node", "mut_node", "mut_graph", "link"]
