"""Workflow executor client tests (httpx.MockTransport, no network)."""

import json

import httpx
import pytest

from clixen.integrations.workflows.executor_client import WorkflowExecutorClient


def _executor(handler, base_url="https://executor.test", api_key="secret-key"):
    http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return http, WorkflowExecutorClient(http, base_url, api_key=api_key, timeout_seconds=1)


class TestWorkflowExecutorClient:

    @pytest.mark.asyncio
    async def test_success_relays_message(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["headers"] = request.headers
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"success": True, "message": "Paris: 18°C, light rain"})

        http, executor = _executor(handler)
        async with http:
            result = await executor.execute(
                "weather",
                {"city": "Paris"},
                profile_id="profile-1",
                chat_id=42,
                message_text="What's the weather in Paris?",
            )

        assert result.success is True
        assert result.message == "Paris: 18°C, light rain"
        assert seen["url"] == "https://executor.test/webhook/api/v1/weather"
        assert seen["headers"]["Authorization"] == "Bearer secret-key"
        assert seen["headers"]["X-Clixen-Source"] == "telegram-bot"
        assert seen["body"]["parameters"] == {"city": "Paris"}
        assert seen["body"]["user_id"] == "profile-1"
        assert seen["body"]["chat_id"] == 42

    @pytest.mark.asyncio
    async def test_error_status_is_failure(self):
        http, executor = _executor(lambda request: httpx.Response(500, text="Traceback: boom"))
        async with http:
            result = await executor.execute("weather", {}, profile_id="p")

        assert result.success is False
        assert result.message is None
        assert result.error == "http_500"

    @pytest.mark.asyncio
    async def test_success_false_is_failure(self):
        http, executor = _executor(
            lambda request: httpx.Response(200, json={"success": False, "error": "city not found"})
        )
        async with http:
            result = await executor.execute("weather", {"city": "Atlantis"}, profile_id="p")

        assert result.success is False
        assert result.error == "city not found"

    @pytest.mark.asyncio
    async def test_missing_message_is_failure(self):
        http, executor = _executor(lambda request: httpx.Response(200, json={"success": True}))
        async with http:
            result = await executor.execute("weather", {}, profile_id="p")

        assert result.success is False

    @pytest.mark.asyncio
    async def test_invalid_json_is_failure(self):
        http, executor = _executor(lambda request: httpx.Response(200, text="<html>ok</html>"))
        async with http:
            result = await executor.execute("weather", {}, profile_id="p")

        assert result.error == "invalid_json"

    @pytest.mark.asyncio
    async def test_timeout_is_failure(self):
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        http, executor = _executor(handler)
        async with http:
            result = await executor.execute("weather", {}, profile_id="p")

        assert result.success is False
        assert result.error == "timeout"

    @pytest.mark.asyncio
    async def test_connection_error_is_failure(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        http, executor = _executor(handler)
        async with http:
            result = await executor.execute("weather", {}, profile_id="p")

        assert result.success is False
        assert result.error.startswith("transport_error")

    @pytest.mark.asyncio
    async def test_unconfigured_base_url(self):
        http, executor = _executor(lambda request: httpx.Response(200), base_url="")
        async with http:
            result = await executor.execute("weather", {}, profile_id="p")

        assert result.error == "executor_not_configured"
