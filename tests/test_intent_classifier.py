"""
Intent classifier tests.

The completion client is mocked; these tests cover validation of the
tagged-union output and the fallback for every failure mode.
"""

import asyncio
import json
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import httpx
import openai
import pytest

from clixen.services.bot_messages import CLASSIFIER_FALLBACK
from clixen.services.intent_classifier import (
    ClassificationContext,
    DirectResponse,
    IntentClassifier,
    NeedClarification,
    RouteToWorkflow,
    parse_decision,
)


def _completion(content):
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])


def _client(content=None, side_effect=None):
    client = MagicMock()
    if side_effect is not None:
        client.chat.completions.create = AsyncMock(side_effect=side_effect)
    else:
        client.chat.completions.create = AsyncMock(return_value=_completion(content))
    return client


class TestParseDecision:

    def test_route_to_workflow(self):
        decision = parse_decision(json.dumps({
            "action": "route_to_workflow",
            "workflow": "weather",
            "parameters": {"city": "Paris"},
            "confidence": 0.93,
        }))

        assert isinstance(decision, RouteToWorkflow)
        assert decision.workflow == "weather"
        assert decision.parameters == {"city": "Paris"}

    def test_null_parameters_become_empty(self):
        decision = parse_decision('{"action": "route_to_workflow", "workflow": "weather", "parameters": null}')

        assert decision.parameters == {}

    def test_need_clarification(self):
        decision = parse_decision('{"action": "need_clarification", "clarification": "Which city?"}')

        assert isinstance(decision, NeedClarification)
        assert decision.clarification == "Which city?"

    @pytest.mark.parametrize("content", [
        None,
        "",
        "not json",
        "[1, 2]",
        '{"action": "launch_rocket"}',
        '{"action": "route_to_workflow"}',
        '{"action": "direct_response", "response": ""}',
        '{"action": "need_clarification"}',
    ])
    def test_invalid_output_falls_back(self, content):
        decision = parse_decision(content)

        assert isinstance(decision, DirectResponse)
        assert decision.response == CLASSIFIER_FALLBACK


class TestIntentClassifier:

    @pytest.mark.asyncio
    async def test_classify_returns_validated_decision(self):
        client = _client('{"action": "direct_response", "response": "Hi there!"}')
        classifier = IntentClassifier(client, model="gpt-4o-mini", timeout_seconds=2)

        decision = await classifier.classify("hello", ClassificationContext(tier="pro"))

        assert decision == DirectResponse(action="direct_response", response="Hi there!")
        kwargs = client.chat.completions.create.call_args.kwargs
        assert kwargs["model"] == "gpt-4o-mini"
        assert kwargs["response_format"] == {"type": "json_object"}
        assert kwargs["messages"][0]["role"] == "system"
        assert "weather" in kwargs["messages"][0]["content"]
        assert "Message: hello" in kwargs["messages"][1]["content"]

    @pytest.mark.asyncio
    async def test_attachment_name_is_mentioned(self):
        client = _client('{"action": "route_to_workflow", "workflow": "pdf_summary"}')
        classifier = IntentClassifier(client)

        await classifier.classify("", ClassificationContext(attachment_name="report.pdf"))

        user_message = client.chat.completions.create.call_args.kwargs["messages"][1]["content"]
        assert 'Attached file: "report.pdf"' in user_message

    @pytest.mark.asyncio
    async def test_timeout_falls_back(self):
        async def slow(**kwargs):
            await asyncio.sleep(1)

        client = MagicMock()
        client.chat.completions.create = slow
        classifier = IntentClassifier(client, timeout_seconds=0.01)

        decision = await classifier.classify("What's the weather?")

        assert isinstance(decision, DirectResponse)
        assert decision.response == CLASSIFIER_FALLBACK

    @pytest.mark.asyncio
    async def test_api_error_falls_back(self):
        error = openai.APIConnectionError(request=httpx.Request("POST", "https://api.openai.com/v1/chat/completions"))
        classifier = IntentClassifier(_client(side_effect=error))

        decision = await classifier.classify("hello")

        assert decision.response == CLASSIFIER_FALLBACK

    @pytest.mark.asyncio
    async def test_unexpected_error_falls_back(self):
        classifier = IntentClassifier(_client(side_effect=KeyError("choices")))

        decision = await classifier.classify("hello")

        assert isinstance(decision, DirectResponse)

    @pytest.mark.asyncio
    async def test_malformed_json_falls_back(self):
        classifier = IntentClassifier(_client("{'action': 'direct_response'"))

        decision = await classifier.classify("hello")

        assert decision.response == CLASSIFIER_FALLBACK

    @pytest.mark.asyncio
    async def test_unconfigured_client_falls_back(self):
        decision = await IntentClassifier(None).classify("hello")

        assert decision.response == CLASSIFIER_FALLBACK

    def test_system_prompt_lists_every_workflow(self):
        prompt = IntentClassifier(MagicMock()).build_system_prompt()

        for key in ("weather", "translate", "email_scanner", "pdf_summary", "reminder"):
            assert f'"{key}"' in prompt
