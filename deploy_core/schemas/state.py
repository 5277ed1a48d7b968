"""
LangGraph Workflow State Definition

This module defines the base TypedDict that flows through all LangGraph nodes.
Workflows extend it with their own fields.
"""

from typing import Any, TypedDict, Optional


class WorkflowState(TypedDict, total=False):
    """
    Base workflow state.

    Common fields:
    - Identification (run_id, correlation_id)
    - Execution tracking (current_node, nodes_executed)
    - Results (result, error, status)
    """

    # ============== Identification ==============
    run_id: str                           # Unique run identifier
    correlation_id: Optional[str]         # For distributed tracing

    # ============== Execution Tracking ==============
    current_node: str                     # Currently executing node name
    started_at: str                       # ISO timestamp of start
    nodes_executed: list[str]             # List of executed node names

    # ============== Final Results ==============
    result: dict[str, Any]                # Structured result
    error: Optional[str]                  # Error message if failed
    status: str                           # Workflow-specific status value
