"""
Intent classification for inbound chat messages.

The classification service returns a JSON object; it is validated into
exactly one of three decisions, discriminated by "action". Anything the
service gets wrong (timeout, transport error, malformed JSON, a missing
required field) degrades to a generic direct response instead of
propagating.
"""

import asyncio
import json
import logging
from dataclasses import dataclass
from typing import Annotated, Any, Dict, Literal, Mapping, Optional, Union

from openai import APIError, AsyncOpenAI
from pydantic import BaseModel, Field, TypeAdapter, ValidationError, field_validator

from clixen.services.bot_messages import CLASSIFIER_FALLBACK
from clixen.services.workflow_catalog import WORKFLOWS, WorkflowDefinition

logger = logging.getLogger(__name__)


class RouteToWorkflow(BaseModel):
    action: Literal["route_to_workflow"]
    workflow: str = Field(min_length=1)
    parameters: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("parameters", mode="before")
    @classmethod
    def _null_parameters(cls, value):
        return {} if value is None else value


class DirectResponse(BaseModel):
    action: Literal["direct_response"]
    response: str = Field(min_length=1)


class NeedClarification(BaseModel):
    action: Literal["need_clarification"]
    clarification: str = Field(min_length=1)


ClassificationDecision = Annotated[
    Union[RouteToWorkflow, DirectResponse, NeedClarification],
    Field(discriminator="action"),
]

_decision_adapter = TypeAdapter(ClassificationDecision)


def fallback_decision() -> DirectResponse:
    return DirectResponse(action="direct_response", response=CLASSIFIER_FALLBACK)


def parse_decision(content: Optional[str]) -> Union[RouteToWorkflow, DirectResponse, NeedClarification]:
    """Validate raw classifier output; invalid output becomes the fallback response."""
    if not content:
        logger.warning("Classifier returned empty content")
        return fallback_decision()
    try:
        return _decision_adapter.validate_python(json.loads(content))
    except (ValueError, ValidationError) as e:
        logger.warning(
            "Classifier output rejected",
            extra={"error_type": type(e).__name__},
        )
        return fallback_decision()


@dataclass(frozen=True)
class ClassificationContext:
    """Account facts the classifier may use to phrase its answer."""
    tier: str = "free"
    is_trial: bool = False
    credits_remaining: int = 0
    attachment_name: Optional[str] = None


def _describe_workflow(workflow: WorkflowDefinition) -> str:
    params = ", ".join(workflow.parameters) or "none"
    return (
        f'- "{workflow.key}": {workflow.description} '
        f'(parameters: {params}; example: "{workflow.example}")'
    )


class IntentClassifier:
    """Turns free text into a routing decision via the chat completions API."""

    def __init__(
        self,
        client: Optional[AsyncOpenAI],
        *,
        model: str = "gpt-4o-mini",
        timeout_seconds: float = 8.0,
        catalog: Mapping[str, WorkflowDefinition] = WORKFLOWS,
    ):
        self._client = client
        self._model = model
        self._timeout = timeout_seconds
        self._catalog = catalog

    def build_system_prompt(self) -> str:
        workflows = "\n".join(_describe_workflow(w) for w in self._catalog.values())
        return (
            "You are the assistant of an automation bot. Decide how to handle the "
            "user's message and answer with a single JSON object.\n\n"
            "Available workflows:\n"
            f"{workflows}\n\n"
            "Respond with exactly one of:\n"
            '{"action": "route_to_workflow", "workflow": "<workflow key>", "parameters": {...}}\n'
            '{"action": "direct_response", "response": "<answer for the user>"}\n'
            '{"action": "need_clarification", "clarification": "<question for the user>"}\n\n'
            "Only route to the workflow keys listed above. Use need_clarification when a "
            "required parameter is missing. Keep responses short and friendly."
        )

    def build_user_message(self, text: str, context: ClassificationContext) -> str:
        parts = [
            f"User tier: {context.tier}" + (" (trial)" if context.is_trial else ""),
            f"Credits remaining: {context.credits_remaining}",
        ]
        if context.attachment_name:
            parts.append(f'Attached file: "{context.attachment_name}"')
        parts.append(f"Message: {text}")
        return "\n".join(parts)

    async def classify(
        self,
        text: str,
        context: Optional[ClassificationContext] = None,
    ) -> Union[RouteToWorkflow, DirectResponse, NeedClarification]:
        """Classify a message. Never raises; failures produce the fallback response."""
        if self._client is None:
            logger.error("Classifier not configured")
            return fallback_decision()

        context = context or ClassificationContext()
        try:
            completion = await asyncio.wait_for(
                self._client.chat.completions.create(
                    model=self._model,
                    messages=[
                        {"role": "system", "content": self.build_system_prompt()},
                        {"role": "user", "content": self.build_user_message(text, context)},
                    ],
                    response_format={"type": "json_object"},
                    temperature=0.1,
                    max_tokens=300,
                ),
                timeout=self._timeout,
            )
        except asyncio.TimeoutError:
            logger.warning("Classifier timed out", extra={"timeout_seconds": self._timeout})
            return fallback_decision()
        except APIError as e:
            logger.warning(
                "Classifier request failed",
                extra={"error_type": type(e).__name__, "error": str(e)},
            )
            return fallback_decision()
        except Exception:
            logger.exception("Unexpected classifier error")
            return fallback_decision()

        choices = getattr(completion, "choices", None) or []
        content = choices[0].message.content if choices else None
        decision = parse_decision(content)
        logger.info("Message classified", extra={"action": decision.action})
        return decision
