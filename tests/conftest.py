"""
Shared pytest fixtures for the ServeRest load-test suite.

The scenario code only talks to an HTTP client through ``post``, so the
fixtures here stand in for Locust's ``HttpSession`` with mocks that
return canned responses.  No test touches the network.

Key Concepts Demonstrated:
- Factory fixtures for fake responses
- Test data generated with Faker
- Fresh run state per test for isolation
"""

from datetime import timedelta
from typing import Any
from unittest.mock import MagicMock

import pytest
from faker import Faker

from serverest_load.helpers import Product
from serverest_load.scenarios.base import RunContext


# Initialize Faker for generating test data
fake = Faker()


# -----------------------------------------------------------------------------
# Fixture Data
# -----------------------------------------------------------------------------

@pytest.fixture
def products() -> tuple[Product, ...]:
    """A small fixture of three products with distinct prices."""
    return (
        Product(name="Mouse", price=50),
        Product(name="Teclado", price=120),
        Product(name="Monitor", price=899),
    )


@pytest.fixture
def run_context(products) -> RunContext:
    """Fresh run state with empty metric sinks."""
    return RunContext(products=products)


@pytest.fixture
def token() -> str:
    """A token shaped like the ones ServeRest returns."""
    return f"Bearer {fake.sha256()}"


# -----------------------------------------------------------------------------
# HTTP Doubles
# -----------------------------------------------------------------------------

@pytest.fixture
def make_response():
    """
    Factory fixture for fake HTTP responses.

    Example:
        def test_something(make_response):
            response = make_response(201, {"_id": "abc"})
            assert response.status_code == 201
    """

    def _make_response(
        status_code: int = 200,
        body: Any = None,
        response_time_ms: float = 0.0,
        headers_ms: float = 0.0,
    ) -> MagicMock:
        """
        Args:
            response_time_ms: Full request time, as Locust stores it in
                ``request_meta["response_time"]``.
            headers_ms: Time until the headers arrived (``elapsed`` in
                requests), which excludes the body download.
        """
        response = MagicMock()
        response.status_code = status_code
        if body is None:
            response.json.side_effect = ValueError("Response body is not JSON")
        else:
            response.json.return_value = body
        response.request_meta = {"response_time": response_time_ms}
        response.elapsed = timedelta(milliseconds=headers_ms)
        return response

    return _make_response


@pytest.fixture
def make_client():
    """Factory fixture for a client whose ``post`` returns *responses* in order."""

    def _make_client(*responses: MagicMock) -> MagicMock:
        client = MagicMock()
        client.post.side_effect = list(responses)
        return client

    return _make_client
