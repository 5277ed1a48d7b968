"""
Base LangGraph Workflow

This module provides the base workflow structure that state machines extend.
Customize by:
1. Extending WorkflowState for workflow-specific fields
2. Defining the nodes
3. Configuring the graph edges
"""

from typing import Any, Optional
from datetime import datetime, timezone
from abc import ABC, abstractmethod

import structlog
from langgraph.graph import StateGraph

logger = structlog.get_logger(__name__)


class BaseWorkflow(ABC):
    """
    Abstract base class for LangGraph workflows.

    Subclass this to create a concrete state machine.
    Override the abstract methods to customize behavior.
    """

    def __init__(
        self,
        name: str,
        version: str = "1.0.0",
        recursion_limit: int = 50,
    ):
        """
        Initialize workflow.

        Args:
            name: Workflow name (used in logs)
            version: Version string
            recursion_limit: Maximum node executions per run
        """
        self.name = name
        self.version = version
        self.recursion_limit = recursion_limit

        self._graph: Optional[StateGraph] = None
        self._compiled = None

    @abstractmethod
    def get_state_class(self) -> type:
        """Return the TypedDict class for this workflow's state"""
        pass

    @abstractmethod
    def build_graph(self, graph: StateGraph) -> None:
        """
        Build the workflow graph.

        Add nodes and edges to the graph.
        Called by compile() before compilation.
        """
        pass

    def get_initial_state(self, run_id: str, correlation_id: Optional[str] = None, **kwargs) -> dict[str, Any]:
        """
        Create initial state for workflow execution.

        Override to add workflow-specific initial state.
        """
        return {
            "run_id": run_id,
            "correlation_id": correlation_id,
            "current_node": "start",
            "started_at": datetime.now(timezone.utc).isoformat(),
            "nodes_executed": [],
            "status": "running",
            "error": None,
        }

    def compile(self) -> Any:
        """
        Compile the workflow graph.

        Returns the compiled LangGraph application.
        """
        if self._compiled:
            return self._compiled

        state_class = self.get_state_class()
        self._graph = StateGraph(state_class)

        # Let subclass build the graph
        self.build_graph(self._graph)

        self._compiled = self._graph.compile()
        logger.info("Compiled workflow", workflow=self.name)
        return self._compiled

    async def execute(self, initial_state: dict[str, Any]) -> dict[str, Any]:
        """
        Execute the workflow to completion.

        Args:
            initial_state: State produced by get_initial_state()

        Returns:
            Final workflow state
        """
        app = self.compile()

        logger.info(
            "Executing workflow",
            workflow=self.name,
            run_id=initial_state.get("run_id"),
        )

        try:
            final_state = await app.ainvoke(
                initial_state,
                config={"recursion_limit": self.recursion_limit},
            )
        except Exception:
            logger.exception("Workflow exception", workflow=self.name, run_id=initial_state.get("run_id"))
            raise

        if final_state.get("error"):
            logger.error(
                "Workflow finished with error",
                run_id=initial_state.get("run_id"),
                error=final_state.get("error"),
            )
        else:
            logger.info(
                "Workflow completed",
                run_id=initial_state.get("run_id"),
                nodes_executed=final_state.get("nodes_executed", []),
            )

        return final_state


def track_node(state: dict, node_name: str) -> dict:
    """Execution tracking fields for a node's update"""
    return {
        "current_node": node_name,
        "nodes_executed": state.get("nodes_executed", []) + [node_name],
    }
