"""
Tests for the BaseWorkflow scaffolding
"""

from typing import Optional

import pytest
from langgraph.graph import StateGraph, START, END

from deploy_core.schemas.state import WorkflowState
from deploy_core.workflow import BaseWorkflow, track_node


class CounterState(WorkflowState, total=False):
    count: int


class CounterWorkflow(BaseWorkflow):
    """Two nodes that each bump a counter"""

    def __init__(self, fail_with: Optional[Exception] = None):
        super().__init__(name="counter")
        self.fail_with = fail_with

    def get_state_class(self) -> type:
        return CounterState

    def build_graph(self, graph: StateGraph) -> None:
        async def first(state):
            return {**track_node(state, "first"), "count": state["count"] + 1}

        async def second(state):
            if self.fail_with:
                raise self.fail_with
            return {**track_node(state, "second"), "count": state["count"] + 1, "status": "done"}

        graph.add_node("first", first)
        graph.add_node("second", second)
        graph.add_edge(START, "first")
        graph.add_edge("first", "second")
        graph.add_edge("second", END)


class TestBaseWorkflow:

    @pytest.mark.asyncio
    async def test_execute_runs_nodes_in_order(self):
        workflow = CounterWorkflow()
        state = {**workflow.get_initial_state(run_id="run-1"), "count": 0}

        final = await workflow.execute(state)

        assert final["count"] == 2
        assert final["nodes_executed"] == ["first", "second"]
        assert final["current_node"] == "second"
        assert final["status"] == "done"

    def test_compile_is_cached(self):
        workflow = CounterWorkflow()

        assert workflow.compile() is workflow.compile()

    @pytest.mark.asyncio
    async def test_node_errors_propagate(self):
        workflow = CounterWorkflow(fail_with=RuntimeError("node broke"))

        with pytest.raises(RuntimeError, match="node broke"):
            await workflow.execute({**workflow.get_initial_state(run_id="run-2"), "count": 0})

    def test_initial_state(self):
        state = CounterWorkflow().get_initial_state(run_id="run-3", correlation_id="corr")

        assert state["run_id"] == "run-3"
        assert state["correlation_id"] == "corr"
        assert state["status"] == "running"
        assert state["nodes_executed"] == []


def test_track_node_appends():
    assert track_node({"nodes_executed": ["a"]}, "b") == {"current_node": "b", "nodes_executed": ["a", "b"]}
    assert track_node({}, "a")["nodes_executed"] == ["a"]
