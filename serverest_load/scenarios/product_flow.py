"""
User-to-product Locust scenario.

Defines :func:`run_iteration`, one pass of the workflow every virtual
user repeats, and :class:`ProductFlowUser`, the Locust user that runs
it with a fixed one-second pause between iterations:

1. create a random user (``POST /usuarios``)
2. log in with it and keep the token (``POST /login``)
3. create a product from a random fixture entry (``POST /produtos``)

Checks along the way are recorded, never enforced: a failed check does
not stop the iteration.  The token is extracted after login whatever
the login outcome, so an empty token still reaches the product request
(and the API answers it with 401, which shows up in the failure rate).

Key Concepts Demonstrated:
- Response reuse: the login token feeds the next request's headers
- Data-driven requests from a shared read-only fixture
- A custom latency trend for a single step of the flow
"""

from __future__ import annotations

import logging
import random
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from locust import constant, task

from serverest_load.helpers import (
    build_auth_headers,
    build_product_payload,
    generate_random_user,
    pick_product,
    safe_json,
)
from serverest_load.metrics import check
from serverest_load.scenarios.base import (
    RunContext,
    ServeRestUser,
    create_product,
    create_user,
    login,
)

logger = logging.getLogger(__name__)

CHECK_USER_CREATED = "usuario criado com sucesso"
CHECK_LOGGED_IN = "login realizado"
CHECK_HAS_TOKEN = "tem token"
CHECK_PRODUCT_CREATED = "produto cadastrado"


@dataclass(frozen=True)
class IterationResult:
    """What one iteration sent and how its checks came out."""

    user: dict[str, str]
    token: str
    product_payload: dict[str, Any]
    user_created: bool
    logged_in: bool
    product_created: bool


def _epoch_ms() -> int:
    return int(time.time() * 1000)


def _duration_ms(response: Any) -> float:
    """
    Full request time in ms, as Locust records it for the request stats.

    ``response.elapsed`` stops once the headers are parsed, so it would
    leave the body download out of the sample.
    """
    request_meta = getattr(response, "request_meta", None) or {}
    return float(request_meta.get("response_time") or 0.0)


def _has_token(response: Any) -> bool:
    token = safe_json(response).get("authorization")
    return isinstance(token, str) and token != ""


def run_iteration(
    client: Any,
    context: RunContext,
    *,
    now_ms: Callable[[], int] | None = None,
    rng: random.Random | None = None,
) -> IterationResult:
    """
    Run one create-user → login → create-product pass.

    Args:
        client: The Locust HTTP session (or any object with a compatible
            ``post`` method).
        context: Shared run state (fixture and metric sinks).
        now_ms: Clock used for the product name suffix. Defaults to the
            current epoch in milliseconds.
        rng: Random source for product selection.

    Returns:
        An :class:`IterationResult` describing the iteration.
    """
    now_ms = now_ms or _epoch_ms
    user = generate_random_user()

    create_response = create_user(client, user)
    user_created = check(
        create_response,
        {CHECK_USER_CREATED: lambda r: r.status_code == 201},
        context.checks,
    )

    login_response = login(client, email=user["email"], password=user["password"])
    context.login_duration.add(_duration_ms(login_response))
    logged_in = check(
        login_response,
        {
            CHECK_LOGGED_IN: lambda r: r.status_code == 200,
            CHECK_HAS_TOKEN: _has_token,
        },
        context.checks,
    )

    token = safe_json(login_response).get("authorization")
    if not isinstance(token, str):
        token = ""

    product = pick_product(context.products, rng)
    payload = build_product_payload(product, now_ms())
    product_response = create_product(client, payload, build_auth_headers(token))
    product_created = check(
        product_response,
        {CHECK_PRODUCT_CREATED: lambda r: r.status_code == 201},
        context.checks,
    )

    if not (user_created and logged_in and product_created):
        logger.debug("Iteration for %s finished with failed checks", user["email"])

    return IterationResult(
        user=user,
        token=token,
        product_payload=payload,
        user_created=user_created,
        logged_in=logged_in,
        product_created=product_created,
    )


class ProductFlowUser(ServeRestUser):
    """Repeat the user-to-product workflow, pausing 1 s between iterations."""

    wait_time = constant(1)

    @task
    def create_user_and_product(self) -> None:
        run_iteration(self.client, self.run_context)
