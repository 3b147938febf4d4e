"""
Error handling tests.

Verifies consistent error shapes, no stack traces in responses, and
correlation IDs on every response.
"""

from unittest.mock import MagicMock

from fastapi import FastAPI, HTTPException
from fastapi.testclient import TestClient

from clixen.platform.errors import (
    AppError,
    AuthenticationError,
    ErrorHandlerMiddleware,
    ServiceUnavailableError,
    WebhookRejectedError,
    app_error_handler,
    get_correlation_id,
)


def _app() -> FastAPI:
    app = FastAPI()
    app.add_middleware(ErrorHandlerMiddleware)
    app.add_exception_handler(AppError, app_error_handler)

    @app.get("/conflict")
    async def conflict():
        raise AppError("LINK_CONFLICT", "chat already linked", 409, {"chat_id": "555"})

    @app.get("/rejected")
    async def rejected():
        raise WebhookRejectedError("INVALID_SIGNATURE", "Invalid webhook signature")

    @app.get("/http")
    async def http_error():
        raise HTTPException(status_code=404, detail="missing")

    @app.get("/crash")
    async def crash():
        raise RuntimeError("secret internal detail")

    return app


class TestErrorClasses:

    def test_app_error_shape(self):
        error = AppError("SOME_CODE", "message", 418, {"k": "v"})

        assert error.to_dict() == {"error": {"code": "SOME_CODE", "message": "message", "details": {"k": "v"}}}

    def test_status_codes(self):
        assert AuthenticationError().status_code == 401
        assert ServiceUnavailableError().status_code == 503
        assert WebhookRejectedError("INVALID_PAYLOAD", "x").status_code == 400


class TestErrorHandling:

    def test_app_error_response(self):
        response = TestClient(_app()).get("/conflict")

        assert response.status_code == 409
        assert response.json()["error"]["code"] == "LINK_CONFLICT"
        assert response.json()["error"]["details"] == {"chat_id": "555"}
        assert "X-Correlation-ID" in response.headers

    def test_webhook_rejection_code(self):
        response = TestClient(_app()).get("/rejected")

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "INVALID_SIGNATURE"

    def test_http_exception_keeps_status(self):
        response = TestClient(_app()).get("/http")

        assert response.status_code == 404

    def test_unexpected_error_hides_details(self):
        response = TestClient(_app(), raise_server_exceptions=False).get("/crash")

        assert response.status_code == 500
        body = response.json()
        assert body["error"]["code"] == "INTERNAL_ERROR"
        assert "secret internal detail" not in str(body)
        assert "RuntimeError" not in str(body)

    def test_correlation_id_from_header(self):
        request = MagicMock()
        request.headers = {"X-Correlation-ID": "cid-1"}

        assert get_correlation_id(request) == "cid-1"
