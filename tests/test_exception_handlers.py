"""Tests for global exception handlers.

Validates that all exception types are handled consistently with
proper HTTP status codes, error format, and no information leakage.
"""

import asyncio
import json
from unittest.mock import AsyncMock, patch

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from app.core.errors import (
    AppError,
    RateLimitExceededAppError,
    StoreUnavailableError,
    ValidationAppError,
)
from app.core.exception_handlers import general_exception_handler, setup_exception_handlers


@pytest.fixture
def app_with_handlers() -> FastAPI:
    """Create FastAPI app with exception handlers registered."""
    app = FastAPI()
    setup_exception_handlers(app)
    return app


@pytest.fixture
def client(app_with_handlers: FastAPI) -> TestClient:
    return TestClient(app_with_handlers, raise_server_exceptions=False)


def _rate_limit_error() -> RateLimitExceededAppError:
    return RateLimitExceededAppError(
        code="rate_limit_exceeded",
        message="Too many requests, please try again later.",
        details={
            "status_code": 429,
            "limit": 3,
            "current": 3,
            "remaining_requests": 0,
            "next_valid_request_time": "2024-01-01T00:01:00+00:00",
            "retry_after": 42,
        },
    )


class TestAppErrorHandler:
    """Test handler for AppError and subclasses."""

    def test_validation_error_returns_400(self, client: TestClient, app_with_handlers: FastAPI):
        @app_with_handlers.get("/test-validation")
        async def test_endpoint():
            raise ValidationAppError(code="cache_invalid_entries", message="Entries must be a list")

        response = client.get("/test-validation")

        assert response.status_code == 400
        data = response.json()
        assert data["error"]["code"] == "cache_invalid_entries"
        assert "request_id" in data["error"]

    def test_store_error_returns_503(self, client: TestClient, app_with_handlers: FastAPI):
        @app_with_handlers.get("/test-store")
        async def test_endpoint():
            raise StoreUnavailableError(code="store_unavailable", message="Store unavailable")

        response = client.get("/test-store")

        assert response.status_code == 503
        assert response.json()["error"]["code"] == "store_unavailable"

    def test_rate_limit_error_returns_429_with_headers(
        self, client: TestClient, app_with_handlers: FastAPI
    ):
        @app_with_handlers.get("/test-rate-limit")
        async def test_endpoint():
            raise _rate_limit_error()

        response = client.get("/test-rate-limit")

        assert response.status_code == 429
        details = response.json()["error"]["details"]
        assert details["limit"] == 3
        assert details["current"] == 3
        assert details["remaining_requests"] == 0
        assert response.headers["Retry-After"] == "42"
        assert response.headers["X-RateLimit-Limit"] == "3"
        assert response.headers["X-RateLimit-Remaining"] == "0"

    @patch("app.core.exception_handlers.settings")
    def test_rate_limit_headers_can_be_disabled(
        self, mock_settings, client: TestClient, app_with_handlers: FastAPI
    ):
        mock_settings.rate_limit.include_headers = False

        @app_with_handlers.get("/test-rate-limit-quiet")
        async def test_endpoint():
            raise _rate_limit_error()

        response = client.get("/test-rate-limit-quiet")

        assert response.status_code == 429
        assert "Retry-After" not in response.headers

    def test_error_response_format_is_consistent(self, client: TestClient, app_with_handlers: FastAPI):
        @app_with_handlers.get("/test-format")
        async def test_endpoint():
            raise AppError(code="test", message="test")

        response = client.get("/test-format")
        data = response.json()

        assert response.status_code == 400
        assert set(data["error"]) == {"code", "message", "request_id"}


class TestGeneralExceptionHandler:
    """Test fallback handler for unexpected exceptions."""

    def test_unexpected_exception_returns_generic_500(self, client: TestClient, app_with_handlers: FastAPI):
        @app_with_handlers.get("/test-boom")
        async def test_endpoint():
            raise RuntimeError("redis password is hunter2")

        response = client.get("/test-boom")

        assert response.status_code == 500
        assert response.json()["error"]["code"] == "internal_server_error"
        assert "hunter2" not in response.text

    def test_general_exception_handler_never_leaks_stack_trace(self):
        request = AsyncMock()
        request.url.path = "/test"
        request.method = "GET"

        response = asyncio.run(general_exception_handler(request, ValueError("Test error with details")))

        response_text = bytes(response.body).decode()
        assert response.status_code == 500
        assert "Traceback" not in response_text
        assert "ValueError" not in response_text
        assert json.loads(response_text)["error"]["code"] == "internal_server_error"


def test_setup_exception_handlers_registers_handlers(app_with_handlers: FastAPI):
    assert AppError in app_with_handlers.exception_handlers
    assert Exception in app_with_handlers.exception_handlers
