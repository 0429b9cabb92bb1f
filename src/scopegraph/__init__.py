try:
    from ._version import version as __version__  # populated by setuptools-scm
except ModuleNotFoundError:
    __version__ = "0.0.0"

from .context import (
    Frame,
    NoActiveScope,
    ScopeBodyFailure,
    ScopeDepthExceeded,
    ScopeError,
    ScopeStack,
    current_scope,
    get_stack,
    require_scope,
    scope,
    use_stack,
    with_scope,
)
from .model import Attributes, Label, MutableGraph, link, mut_graph, mut_node, node

__all__ = [
    "__version__",
    "Frame",
    "ScopeStack",
    "ScopeError",
    "NoActiveScope",
    "ScopeDepthExceeded",
    "ScopeBodyFailure",
    "current_scope",
    "get_stack",
    "require_scope",
    "scope",
    "use_stack",
    "with_scope",
    "Attributes",
    "Label",
    "MutableGraph",
    "node",
    "mut_node",
    "mut_graph",
    "link",
]
