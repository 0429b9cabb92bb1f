from __future__ import annotations

from typing import Iterator

import pytest

from scopegraph.context import ScopeStack, begin_scope, end_scope, use_stack
from scopegraph.model import (
    Attributes,
    ImmutableNode,
    Label,
    Link,
    MutableGraph,
    MutableNode,
    link,
    mut_graph,
    mut_node,
    node,
)


@pytest.fixture
def stack() -> Iterator[ScopeStack]:
    with use_stack(ScopeStack("model-test")) as s:
        yield s


# ---------------------------------------------------------------------------
# Attributes
# ---------------------------------------------------------------------------


def test_attributes_add_is_last_write_wins() -> None:
    attrs = Attributes(color="red", shape="box")
    result = attrs.add({"color": "blue"}, style="dashed")
    assert result is attrs
    assert attrs == {"color": "blue", "shape": "box", "style": "dashed"}
    assert list(attrs) == ["color", "shape", "style"]


def test_attributes_copy_and_frozen_are_detached() -> None:
    attrs = Attributes(color="red")
    copy = attrs.copy()
    frozen = attrs.frozen()
    attrs["color"] = "blue"

    assert copy["color"] == "red"
    assert frozen["color"] == "red"
    with pytest.raises(TypeError):
        frozen["color"] = "green"  # type: ignore[index]


def test_attributes_mapping_protocol() -> None:
    attrs = Attributes({"a": 1})
    attrs["b"] = 2
    del attrs["a"]
    assert len(attrs) == 1
    assert "b" in attrs
    assert attrs.get("a") is None


# ---------------------------------------------------------------------------
# Labels and nodes
# ---------------------------------------------------------------------------


def test_label_coercion_and_equality() -> None:
    assert Label.of("a") == Label("a")
    assert Label.of(Label("a")) == Label("a")
    assert Label.html_label("<b>a</b>") != Label("<b>a</b>")
    assert str(Label("a")) == "a"
    assert len({Label("a"), Label("a"), Label("b")}) == 2


def test_immutable_node_is_value_type() -> None:
    a1 = ImmutableNode("a", {"color": "red"})
    a2 = ImmutableNode(Label("a"), Attributes(color="red"))
    assert a1 == a2
    assert hash(a1) == hash(a2)
    assert a1 != ImmutableNode("a", {"color": "blue"})

    with pytest.raises(TypeError):
        a1.attrs["color"] = "blue"  # type: ignore[index]


def test_immutable_node_with_attrs_returns_copy() -> None:
    a = ImmutableNode("a", {"color": "red"})
    b = a.with_attrs(shape="box")
    assert a.attrs == {"color": "red"}
    assert b.attrs == {"color": "red", "shape": "box"}
    assert b.label == a.label


def test_immutable_node_link_uses_scope(stack: ScopeStack) -> None:
    frame = begin_scope()
    frame.link_defaults["arrowhead"] = "none"

    a = node("a")
    linked = a.link("b", node("c"))

    assert a.links == ()
    assert len(linked.links) == 2
    assert linked.links[0].target is node("b")
    assert all(l.attrs == {"arrowhead": "none"} for l in linked.links)
    end_scope()


def test_mutable_node_add_link_resolves_targets_into_graph(stack: ScopeStack) -> None:
    graph = MutableGraph("g")
    frame = begin_scope(graph)
    frame.link_defaults["color"] = "gray"

    a = mut_node("a").add_link("b", "c")
    b = mut_node("b")

    assert [l.target for l in a.links][0] is b
    assert [n.label.value for n in graph.nodes] == ["a", "b", "c"]
    assert a.links[1].attrs == {"color": "gray"}
    end_scope()


def test_mutable_node_to_immutable() -> None:
    m = MutableNode("a").add(color="red")
    snapshot = m.to_immutable()
    m.add(color="blue")
    assert snapshot.attrs == {"color": "red"}
    assert snapshot.label == Label("a")


# ---------------------------------------------------------------------------
# Graph
# ---------------------------------------------------------------------------


def test_graph_add_registers_once() -> None:
    graph = MutableGraph("g")
    a = MutableNode("a")
    sub = MutableGraph("sub")
    graph.add(a, sub, a, sub)
    assert graph.nodes == [a]
    assert graph.subgraphs == [sub]


def test_graph_add_rejects_other_types() -> None:
    graph = MutableGraph("g")
    with pytest.raises(TypeError):
        graph.add("a")  # type: ignore[arg-type]
    with pytest.raises(ValueError):
        graph.add(graph)


def test_graph_add_rejects_subgraph_cycles() -> None:
    a, b, c = MutableGraph("a"), MutableGraph("b"), MutableGraph("c")
    a.add(b)
    b.add(c)

    with pytest.raises(ValueError):
        b.add(a)
    with pytest.raises(ValueError):
        c.add(a)

    assert b.subgraphs == [c]
    assert c.subgraphs == []
    assert list(a.all_nodes()) == []


def test_graph_shared_subgraph_is_not_a_cycle() -> None:
    root, left, shared = MutableGraph("root"), MutableGraph("left"), MutableGraph("shared")
    root.add(left, shared)
    left.add(shared)
    assert root.subgraphs == [left, shared]
    assert left.subgraphs == [shared]


def test_graph_add_many_nodes_registers_each_once() -> None:
    graph = MutableGraph("g")
    nodes = [MutableNode(f"n{i}") for i in range(2000)]
    graph.add(*nodes)
    graph.add(*reversed(nodes))
    assert graph.nodes == nodes


def test_graph_all_nodes_includes_subgraphs() -> None:
    graph = MutableGraph("g")
    sub = MutableGraph("sub")
    a, b = MutableNode("a"), MutableNode("b")
    sub.add(b)
    graph.add(a, sub)
    assert list(graph.all_nodes()) == [a, b]


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------


def test_factory_builds_nested_graph(stack: ScopeStack) -> None:
    root = MutableGraph("root")

    with root.scope() as frame:
        frame.node_defaults["fontname"] = "Helvetica"
        cluster = mut_graph("cluster_0", directed=False)
        with cluster.scope() as inner:
            inner.graph_defaults["label"] = "cluster"
            x = mut_node("x")
        a = mut_node("a")

    assert root.subgraphs == [cluster]
    assert cluster.name == "cluster_0"
    assert cluster.directed is False
    assert cluster.nodes == [x]
    assert cluster.graph_attrs == {"label": "cluster"}
    assert root.nodes == [a]
    assert a.attrs == {"fontname": "Helvetica"}
    assert len(x.attrs) == 0


def test_factory_link_string_target(stack: ScopeStack) -> None:
    result = link(node("a"), "b")
    assert isinstance(result, Link)
    assert result.target == Label("b")


def test_factory_without_scope_is_context_free(stack: ScopeStack) -> None:
    g = mut_graph("free")
    assert g.name == "free"
    assert g.subgraphs == []
    assert mut_node("a") is not mut_node("a")
