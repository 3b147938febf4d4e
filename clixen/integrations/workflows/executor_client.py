"""
Workflow executor client.

Runs a named automation on the external executor and returns its
user-facing result. Success requires a 2xx response whose JSON body has
"success": true and a string "message"; everything else (timeouts,
transport errors, unexpected bodies) is a failure with an internal
error description that is never shown to the user.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx

logger = logging.getLogger(__name__)

SOURCE_HEADER = "X-Clixen-Source"
SOURCE_VALUE = "telegram-bot"


@dataclass(frozen=True)
class WorkflowResult:
    """Outcome of one executor call."""
    success: bool
    message: Optional[str] = None
    error: Optional[str] = None


class WorkflowExecutorClient:
    """POSTs workflow requests to {base_url}/webhook/api/v1/{workflow}."""

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        base_url: str,
        api_key: str = "",
        timeout_seconds: float = 15.0,
    ):
        self._http = http_client
        self._base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._timeout = timeout_seconds

    def workflow_url(self, workflow: str) -> str:
        return f"{self._base_url}/webhook/api/v1/{workflow}"

    async def execute(
        self,
        workflow: str,
        parameters: Dict[str, Any],
        *,
        profile_id: str,
        chat_id=None,
        message_text: Optional[str] = None,
    ) -> WorkflowResult:
        """Run a workflow. Never raises."""
        if not self._base_url:
            logger.error("Workflow executor URL not configured", extra={"workflow": workflow})
            return WorkflowResult(success=False, error="executor_not_configured")

        headers = {SOURCE_HEADER: SOURCE_VALUE}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"

        payload = {
            "workflow": workflow,
            "parameters": parameters or {},
            "user_id": profile_id,
            "chat_id": chat_id,
            "message": message_text,
        }

        try:
            response = await self._http.post(
                self.workflow_url(workflow),
                json=payload,
                headers=headers,
                timeout=self._timeout,
            )
        except httpx.TimeoutException:
            logger.warning("Workflow executor timed out", extra={"workflow": workflow})
            return WorkflowResult(success=False, error="timeout")
        except httpx.HTTPError as e:
            logger.warning(
                "Workflow executor request failed",
                extra={"workflow": workflow, "error_type": type(e).__name__},
            )
            return WorkflowResult(success=False, error=f"transport_error:{type(e).__name__}")

        if not response.is_success:
            logger.warning(
                "Workflow executor returned error status",
                extra={"workflow": workflow, "status_code": response.status_code},
            )
            return WorkflowResult(success=False, error=f"http_{response.status_code}")

        try:
            body = response.json()
        except ValueError:
            logger.warning("Workflow executor returned invalid JSON", extra={"workflow": workflow})
            return WorkflowResult(success=False, error="invalid_json")

        if not isinstance(body, dict):
            return WorkflowResult(success=False, error="unexpected_body")

        message = body.get("message")
        if body.get("success") is not True or not isinstance(message, str) or not message:
            logger.info(
                "Workflow reported failure",
                extra={"workflow": workflow, "executor_error": str(body.get("error"))[:200]},
            )
            return WorkflowResult(success=False, error=str(body.get("error") or "workflow_failed"))

        return WorkflowResult(success=True, message=message)
