"""
Tests for error handler middleware and custom exceptions.
"""
import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from kmerbeauty.api.middleware.error_handler import (
    AppException,
    ForbiddenException,
    UnauthorizedException,
    app_exception_handler,
    cancelled_exception_handler,
    data_access_exception_handler,
)
from kmerbeauty.lib.cancellation import OperationCancelled
from kmerbeauty.lib.errors import (
    DataAccessError,
    DataValidationError,
    NetworkError,
    NotFoundError,
    UnknownDataError,
)


@pytest.fixture
def client():
    """Minimal app raising each kind of error."""
    app = FastAPI()
    app.add_exception_handler(AppException, app_exception_handler)
    app.add_exception_handler(DataAccessError, data_access_exception_handler)
    app.add_exception_handler(OperationCancelled, cancelled_exception_handler)

    errors = {
        "not-found": NotFoundError("Service", "42"),
        "network": NetworkError("Database unavailable"),
        "validation": DataValidationError("Unknown test", {"test_id": "x"}),
        "unknown": UnknownDataError("Unexpected database error"),
        "cancelled": OperationCancelled("dashboard"),
        "unauthorized": UnauthorizedException(),
        "forbidden": ForbiddenException("Admin access required"),
    }

    @app.get("/raise/{name}")
    def raise_error(name: str):
        raise errors[name]

    return TestClient(app)


@pytest.mark.unit
def test_app_exception_creation():
    exc = AppException(message="Test error", status_code=500, details={"key": "value"})
    assert exc.message == "Test error"
    assert exc.status_code == 500
    assert exc.details == {"key": "value"}


@pytest.mark.unit
@pytest.mark.parametrize(
    "name, status_code",
    [
        ("not-found", 404),
        ("network", 503),
        ("validation", 422),
        ("unknown", 500),
        ("cancelled", 504),
        ("unauthorized", 401),
        ("forbidden", 403),
    ],
)
def test_status_codes(client, name, status_code):
    response = client.get(f"/raise/{name}")
    assert response.status_code == status_code
    body = response.json()
    assert "error" in body
    assert "correlation_id" in body


@pytest.mark.unit
def test_data_error_body_carries_kind_and_details(client):
    body = client.get("/raise/validation").json()
    assert body["error"] == "Unknown test"
    assert body["details"] == {"kind": "validation_error", "test_id": "x"}


@pytest.mark.unit
def test_not_found_body(client):
    body = client.get("/raise/not-found").json()
    assert body["error"] == "Service with id '42' not found"
    assert body["details"]["resource"] == "Service"
