from __future__ import annotations

"""
scopegraph.context
==================

Scoped graph-construction context.

A ScopeStack holds, per logical call path, a LIFO stack of Frames. Model
construction code calls the resolve_* functions without passing any context;
they are answered by the top frame of the current call path:

- nodes are deduplicated by label within a frame,
- node and link defaults of the frame are applied at creation time,
- mutable nodes and subgraphs are registered into the frame's graph,
- the frame's graph defaults are merged into its graph when it is popped.

With no active frame every resolve_* call degrades to plain construction.

Call-path isolation uses one module-level ContextVar holding a read-only
mapping of stack -> tuple of frames, so every thread and every asyncio task
sees its own stacks. A stack whose depth returns to 0 is dropped from the
mapping.
"""

import contextvars
from contextlib import contextmanager
from dataclasses import dataclass, field
from functools import lru_cache
from logging import getLogger
from types import MappingProxyType
from typing import Callable, Dict, Iterator, Mapping, Optional, Tuple, TypeVar, Union

from .model.attributes import Attributes
from .model.graph import MutableGraph
from .model.nodes import ImmutableNode, Label, Link, LinkEndpoint, MutableNode

logger = getLogger(__name__)

T = TypeVar("T")

LabelLike = Union[Label, str]


class ScopeError(RuntimeError):
    """Base exception for construction-scope errors."""
    pass


class NoActiveScope(ScopeError):
    """Raised by require_scope() when the current call path has no open scope."""
    pass


class ScopeDepthExceeded(ScopeError):
    """Raised by begin_scope() when the configured nesting limit is reached."""
    pass


class ScopeBodyFailure(ScopeError):
    """Raised by with_scope() after cleanup; the body's exception is the __cause__."""
    pass


@dataclass(slots=True, eq=False)
class Frame:
    """
    One nested construction scope.

    graph:
        Enclosing graph receiving new mutable nodes and subgraphs, and the
        graph defaults on close. None for a detached scope.
    node_defaults / link_defaults / graph_defaults:
        Attribute defaults owned by this frame; mutate them directly.
    """

    graph: Optional[MutableGraph] = None
    depth: int = 0
    node_defaults: Attributes = field(default_factory=Attributes)
    link_defaults: Attributes = field(default_factory=Attributes)
    graph_defaults: Attributes = field(default_factory=Attributes)
    _immutable_nodes: Dict[Label, ImmutableNode] = field(default_factory=dict, init=False)
    _mutable_nodes: Dict[Label, MutableNode] = field(default_factory=dict, init=False)

    # ------------------------------------------------------------------ #
    # Resolution against this frame
    # ------------------------------------------------------------------ #
    def node(self, label: Label) -> ImmutableNode:
        cached = self._immutable_nodes.get(label)
        if cached is None:
            cached = ImmutableNode(label, self.node_defaults.frozen())
            self._immutable_nodes[label] = cached
        return cached

    def mut_node(self, label: Label) -> MutableNode:
        cached = self._mutable_nodes.get(label)
        if cached is None:
            cached = MutableNode(label, self.node_defaults.copy())
            if self.graph is not None:
                self.graph.add(cached)
            self._mutable_nodes[label] = cached
        return cached

    def mut_graph(self) -> MutableGraph:
        graph = MutableGraph()
        if self.graph is not None:
            self.graph.add(graph)
        return graph

    def link(self, source: Optional[LinkEndpoint], target: LinkEndpoint) -> Link:
        return Link(source, target, self.link_defaults.copy())

    def close(self) -> None:
        """Merge graph defaults into the enclosing graph (called once, on pop)."""
        if self.graph is not None:
            self.graph.graph_attrs.add(self.graph_defaults)

    def __repr__(self) -> str:
        graph_name = None if self.graph is None else self.graph.name
        return f"Frame(depth={self.depth}, graph={graph_name!r})"


_stack_frames: contextvars.ContextVar[Mapping[ScopeStack, Tuple[Frame, ...]]] = contextvars.ContextVar(
    "scopegraph_stack_frames", default=MappingProxyType({})
)


class ScopeStack:
    """
    Per-call-path stack of construction frames.

    Instances are independent of each other; bind one for a call path with
    use_stack() to keep tests or embedded builders isolated from the process
    default stack.
    """

    def __init__(self, name: str = "default", *, max_depth: Optional[int] = None) -> None:
        """
        Parameters
        ----------
        name:
            Name used in logging.
        max_depth:
            Maximum number of nested frames per call path; None = unbounded.
        """
        if max_depth is not None and max_depth < 1:
            raise ValueError(f"max_depth must be >= 1 or None, got {max_depth}")
        self.name = name
        self.max_depth = max_depth

    def _frames(self) -> Tuple[Frame, ...]:
        return _stack_frames.get().get(self, ())

    def _set_frames(self, frames: Tuple[Frame, ...]) -> None:
        updated = dict(_stack_frames.get())
        if frames:
            updated[self] = frames
        else:
            updated.pop(self, None)
        _stack_frames.set(MappingProxyType(updated))

    # ------------------------------------------------------------------ #
    # Stack lifecycle
    # ------------------------------------------------------------------ #
    @property
    def depth(self) -> int:
        return len(self._frames())

    def begin_scope(self, graph: Optional[MutableGraph] = None) -> Frame:
        frames = self._frames()
        if self.max_depth is not None and len(frames) >= self.max_depth:
            raise ScopeDepthExceeded(
                f"Stack {self.name!r}: cannot open more than {self.max_depth} nested scopes"
            )
        frame = Frame(graph=graph, depth=len(frames) + 1)
        self._set_frames(frames + (frame,))
        logger.debug(
            "Stack %r: begin scope depth=%d graph=%r",
            self.name,
            frame.depth,
            None if graph is None else graph.name,
        )
        return frame

    def end_scope(self) -> None:
        """Pop the top frame and merge its graph defaults; no-op on an empty stack."""
        frames = self._frames()
        if not frames:
            logger.debug("Stack %r: end scope on empty stack ignored", self.name)
            return
        frame = frames[-1]
        # Pop before merging so a failing merge cannot leave the frame behind.
        self._set_frames(frames[:-1])
        logger.debug("Stack %r: end scope depth=%d", self.name, frame.depth)
        frame.close()

    def with_scope(self, graph: Optional[MutableGraph], body: Callable[[Frame], T]) -> T:
        """
        Run ``body(frame)`` inside a new scope and close it on every exit path.

        An Exception raised by ``body`` surfaces as ScopeBodyFailure with the
        original exception as its cause.
        """
        frame = self.begin_scope(graph)
        try:
            result = body(frame)
        except Exception as exc:
            self._end_after_failure(exc)
            raise ScopeBodyFailure(
                f"Scope body failed at depth {frame.depth}: {exc!r}"
            ) from exc
        except BaseException as exc:
            self._end_after_failure(exc)
            raise
        self.end_scope()
        return result

    @contextmanager
    def scope(self, graph: Optional[MutableGraph] = None) -> Iterator[Frame]:
        """Context-manager form of with_scope(); body exceptions propagate unchanged."""
        frame = self.begin_scope(graph)
        try:
            yield frame
        except BaseException as exc:
            self._end_after_failure(exc)
            raise
        self.end_scope()

    def _end_after_failure(self, exc: BaseException) -> None:
        try:
            self.end_scope()
        except Exception as cleanup_exc:
            logger.warning(
                "Stack %r: scope cleanup failed while handling %r: %r",
                self.name,
                exc,
                cleanup_exc,
            )
            exc.add_note(f"scope cleanup also failed: {cleanup_exc!r}")

    def current_scope(self) -> Optional[Frame]:
        frames = self._frames()
        return frames[-1] if frames else None

    def require_scope(self) -> Frame:
        frame = self.current_scope()
        if frame is None:
            raise NoActiveScope(f"Stack {self.name!r}: not inside a construction scope")
        return frame

    # ------------------------------------------------------------------ #
    # Resolution
    # ------------------------------------------------------------------ #
    def resolve_node(self, label: LabelLike) -> ImmutableNode:
        key = Label.of(label)
        frame = self.current_scope()
        if frame is None:
            return ImmutableNode(key)
        return frame.node(key)

    def resolve_mutable_node(self, label: LabelLike) -> MutableNode:
        key = Label.of(label)
        frame = self.current_scope()
        if frame is None:
            return MutableNode(key)
        return frame.mut_node(key)

    def resolve_subgraph(self) -> MutableGraph:
        frame = self.current_scope()
        if frame is None:
            return MutableGraph()
        return frame.mut_graph()

    def resolve_link(self, source: Optional[LinkEndpoint], target: LinkEndpoint) -> Link:
        frame = self.current_scope()
        if frame is None:
            return Link(source, target)
        return frame.link(source, target)

    def __repr__(self) -> str:
        return f"ScopeStack(name={self.name!r}, depth={self.depth}, max_depth={self.max_depth})"


# ---------------------------------------------------------------------- #
# Stack provider
# ---------------------------------------------------------------------- #

_bound_stack: contextvars.ContextVar[Optional[ScopeStack]] = contextvars.ContextVar(
    "scopegraph_bound_stack", default=None
)


@lru_cache(maxsize=1)
def default_stack() -> ScopeStack:
    """Process-wide fallback stack, configured from get_settings().scopes."""
    from .config import get_settings

    settings = get_settings().scopes
    stack = ScopeStack(settings.default_stack_name, max_depth=settings.max_depth)
    logger.info("Created default scope stack %r (max_depth=%s)", stack.name, stack.max_depth)
    return stack


def get_stack() -> ScopeStack:
    """Stack bound to the current call path by use_stack(), else the default stack."""
    stack = _bound_stack.get()
    if stack is None:
        return default_stack()
    return stack


@contextmanager
def use_stack(stack: ScopeStack) -> Iterator[ScopeStack]:
    """Bind ``stack`` as the active stack for the current call path."""
    token = _bound_stack.set(stack)
    try:
        yield stack
    finally:
        _bound_stack.reset(token)


# ---------------------------------------------------------------------- #
# Module-level API (delegates to get_stack())
# ---------------------------------------------------------------------- #

def begin_scope(graph: Optional[MutableGraph] = None) -> Frame:
    return get_stack().begin_scope(graph)


def end_scope() -> None:
    get_stack().end_scope()


def with_scope(graph: Optional[MutableGraph], body: Callable[[Frame], T]) -> T:
    return get_stack().with_scope(graph, body)


def scope(graph: Optional[MutableGraph] = None):
    return get_stack().scope(graph)


def current_scope() -> Optional[Frame]:
    return get_stack().current_scope()


def require_scope() -> Frame:
    return get_stack().require_scope()


def resolve_node(label: LabelLike) -> ImmutableNode:
    return get_stack().resolve_node(label)


def resolve_mutable_node(label: LabelLike) -> MutableNode:
    return get_stack().resolve_mutable_node(label)


def resolve_subgraph() -> MutableGraph:
    return get_stack().resolve_subgraph()


def resolve_link(source: Optional[LinkEndpoint], target: LinkEndpoint) -> Link:
    return get_stack().resolve_link(source, target)


__all__ = [
    "Frame",
    "ScopeStack",
    "ScopeError",
    "NoActiveScope",
    "ScopeDepthExceeded",
    "ScopeBodyFailure",
    "default_stack",
    "get_stack",
    "use_stack",
    "begin_scope",
    "end_scope",
    "with_scope",
    "scope",
    "current_scope",
    "require_scope",
    "resolve_node",
    "resolve_mutable_node",
    "resolve_subgraph",
    "resolve_link",
]
