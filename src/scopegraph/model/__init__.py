"""
scopegraph.model
================

In-memory graph model populated through construction scopes.

Public API:

- Attributes   : mutable attribute set with last-write-wins merge.
- Label        : value-equality node key.
- ImmutableNode: value-type node snapshot.
- MutableNode  : shared, identity-compared node.
- Link         : connection between two endpoints.
- MutableGraph : graph holding nodes, subgraphs and graph attributes.
- Adjacency    : sparse link-count view returned by MutableGraph.adjacency().
- node, mut_node, mut_graph, link: construction functions answered by the
  active scope (see scopegraph.context).
"""

from __future__ import annotations

from .attributes import Attributes
from .nodes import ImmutableNode, Label, Link, LinkEndpoint, MutableNode
from .graph import Adjacency, MutableGraph
from .factory import link, mut_graph, mut_node, node

__all__ = [
    "Attributes",
    "Label",
    "ImmutableNode",
    "MutableNode",
    "Link",
    "LinkEndpoint",
    "MutableGraph",
    "Adjacency",
    "node",
    "mut_node",
    "mut_graph",
    "link",
]
