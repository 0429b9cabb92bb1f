from __future__ import annotations

from contextlib import AbstractContextManager
from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING, Callable, Dict, Iterator, List, Set, Tuple, TypeVar, Union

import numpy as np
import graphblas as gb
from graphblas import Matrix

from .attributes import Attributes
from .nodes import Label, MutableNode, endpoint_label

if TYPE_CHECKING:
    from ..context import Frame

logger = getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class Adjacency:
    """
    Sparse link-count view of a graph.

    Structure:
      - labels: index -> Label, in first-seen order (nodes first, then
        link targets that are not nodes of the graph).
      - matrix: Matrix[INT64] of shape (len(labels), len(labels));
        matrix[i, j] = number of links from labels[i] to labels[j].
    """

    labels: Tuple[Label, ...]
    matrix: Matrix

    def index_of(self, label: Union[Label, str]) -> int:
        return self.labels.index(Label.of(label))

    def count(self, source: Union[Label, str], target: Union[Label, str]) -> int:
        value = self.matrix.get(self.index_of(source), self.index_of(target))
        return 0 if value is None else int(value)


class MutableGraph:
    """
    Mutable graph being populated by construction code.

    Holds its own attribute set, the mutable nodes registered into it and its
    child subgraphs. Each node or subgraph instance is registered at most once.
    """

    __slots__ = (
        "name",
        "directed",
        "graph_attrs",
        "_nodes",
        "_subgraphs",
        "_member_ids",  # id() of registered nodes and subgraphs
    )

    # ------------------------------------------------------------------ #
    # Construction
    # ------------------------------------------------------------------ #
    def __init__(self, name: str = "", *, directed: bool = True) -> None:
        self.name = name
        self.directed = directed
        self.graph_attrs = Attributes()
        self._nodes: List[MutableNode] = []
        self._subgraphs: List[MutableGraph] = []
        self._member_ids: Set[int] = set()

    def add(self, *items: Union[MutableNode, MutableGraph]) -> MutableGraph:
        """
        Register child nodes and/or subgraphs.

        Raises ValueError when a subgraph would contain this graph, directly
        or through its own subgraphs.
        """
        for item in items:
            if isinstance(item, MutableNode):
                if id(item) not in self._member_ids:
                    self._member_ids.add(id(item))
                    self._nodes.append(item)
                    logger.debug("Graph %r: registered node %s", self.name, item.label)
            elif isinstance(item, MutableGraph):
                if id(item) in self._member_ids:
                    continue
                if item is self or item._contains_graph(self):
                    raise ValueError(
                        f"Adding graph {item.name!r} to {self.name!r} would create a cycle"
                    )
                self._member_ids.add(id(item))
                self._subgraphs.append(item)
                logger.debug("Graph %r: registered subgraph %r", self.name, item.name)
            else:
                raise TypeError(
                    f"Can only add MutableNode or MutableGraph, got {type(item).__name__}"
                )
        return self

    def _contains_graph(self, other: MutableGraph) -> bool:
        pending = list(self._subgraphs)
        while pending:
            graph = pending.pop()
            if graph is other:
                return True
            pending.extend(graph._subgraphs)
        return False

    # ------------------------------------------------------------------ #
    # Scoped construction bound to this graph
    # ------------------------------------------------------------------ #
    def use(self, body: Callable[[Frame], T]) -> T:
        """Run ``body`` inside a scope whose enclosing graph is this graph."""
        from ..context import with_scope  # local import avoids cycles

        return with_scope(self, body)

    def scope(self) -> AbstractContextManager[Frame]:
        from ..context import scope

        return scope(self)

    # ------------------------------------------------------------------ #
    # Structural accessors
    # ------------------------------------------------------------------ #
    @property
    def nodes(self) -> List[MutableNode]:
        """Shallow copy of the directly registered nodes."""
        return list(self._nodes)

    @property
    def subgraphs(self) -> List[MutableGraph]:
        return list(self._subgraphs)

    def all_nodes(self) -> Iterator[MutableNode]:
        """Depth-first over this graph's nodes, then each subgraph's."""
        yield from self._nodes
        for sub in self._subgraphs:
            yield from sub.all_nodes()

    def adjacency(self) -> Adjacency:
        """
        Build a sparse link-count matrix over the links held by all mutable
        nodes of this graph and its subgraphs.

        Links whose target is a graph are skipped.
        """
        index: Dict[Label, int] = {}
        for node in self.all_nodes():
            index.setdefault(node.label, len(index))

        src: List[int] = []
        dst: List[int] = []
        for node in self.all_nodes():
            for link in node.links:
                target = endpoint_label(link.target)
                if target is None:
                    continue
                src.append(index[node.label])
                dst.append(index.setdefault(target, len(index)))

        n = len(index)
        matrix = gb.Matrix.from_coo(
            np.asarray(src, dtype=np.int64),
            np.asarray(dst, dtype=np.int64),
            np.ones(len(src), dtype=np.int64),
            nrows=n,
            ncols=n,
            dtype=gb.dtypes.INT64,
            dup_op=gb.binary.plus,
        )
        return Adjacency(labels=tuple(index), matrix=matrix)

    # ------------------------------------------------------------------ #
    # Introspection
    # ------------------------------------------------------------------ #
    def __repr__(self) -> str:
        return (
            f"MutableGraph(name={self.name!r}, "
            f"directed={self.directed}, "
            f"nodes={len(self._nodes)}, "
            f"subgraphs={len(self._subgraphs)})"
        )
