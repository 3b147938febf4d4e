"""Workflow executor integration."""

from clixen.integrations.workflows.executor_client import WorkflowExecutorClient, WorkflowResult

__all__ = ["WorkflowExecutorClient", "WorkflowResult"]
