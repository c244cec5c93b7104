"""Tests for the Kahn's-algorithm dependency resolver."""

import logging


from flowcore.core.resolver import execution_order, resolve_order


class TestExecutionOrder:
    """Topological ordering of workflow nodes."""

    def test_sources_precede_targets(self, make_workflow):
        """Every edge's source appears before its target."""
        workflow = make_workflow(
            [("d", "output", {}), ("b", "function", {}), ("a", "trigger", {}), ("c", "agent", {})],
            [("a", "b"), ("a", "c"), ("b", "d"), ("c", "d")],
        )
        order = execution_order(workflow)
        position = {node_id: i for i, node_id in enumerate(order)}
        for edge in workflow.edges:
            assert position[edge.source] < position[edge.target]
        assert sorted(order) == ["a", "b", "c", "d"]

    def test_roots_in_declaration_order(self, make_workflow):
        """Independent nodes keep the order they were declared in."""
        workflow = make_workflow([("z", "input", {}), ("y", "input", {}), ("x", "input", {})])
        assert execution_order(workflow) == ["z", "y", "x"]

    def test_fifo_processing(self, make_workflow):
        """Siblings are emitted breadth-first."""
        workflow = make_workflow(
            [("r", "trigger", {}), ("a", "function", {}), ("b", "function", {}), ("a2", "output", {})],
            [("r", "a"), ("r", "b"), ("a", "a2")],
        )
        assert execution_order(workflow) == ["r", "a", "b", "a2"]

    def test_dangling_edges_ignored(self, make_workflow):
        workflow = make_workflow([("a", "trigger", {}), ("b", "output", {})], [("ghost", "b"), ("a", "b")])
        assert execution_order(workflow) == ["a", "b"]


class TestCycles:
    """Cycles and unreachable nodes are reported, not fatal."""

    def test_partial_order_excludes_cycle(self, make_workflow, caplog):
        workflow = make_workflow(
            [("start", "trigger", {}), ("a", "function", {}), ("b", "function", {}), ("c", "output", {})],
            [("start", "a"), ("a", "b"), ("b", "a"), ("b", "c")],
        )
        with caplog.at_level(logging.WARNING, logger="flowcore.core.resolver"):
            resolved = resolve_order(workflow)

        assert resolved.order == ["start"]
        assert resolved.unresolved == ["a", "b", "c"]
        assert not resolved.complete
        assert "contains cycles or unreachable nodes" in caplog.text

    def test_acyclic_is_complete(self, branch_workflow):
        resolved = resolve_order(branch_workflow)
        assert resolved.complete
        assert resolved.order == ["trigger", "cond", "A", "B"]
