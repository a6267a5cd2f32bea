"""
Shared run state and the abstract Locust user for ServeRest scenarios.

Provides two building blocks that concrete scenarios use:

1. :class:`RunContext`: everything an iteration reads that outlives
   it (the product fixture and the custom metric sinks).  It is built
   once when Locust initialises and handed to every virtual user.
2. :class:`ServeRestUser`: an abstract ``HttpUser`` that resolves the
   target host from configuration and looks the run context up on the
   Locust environment.

The request primitives (:func:`create_user`, :func:`login`,
:func:`create_product`) take the HTTP client as an argument so the
iteration logic can be exercised with a stand-in client.

Key Concepts Demonstrated:
- Immutable shared fixture instead of module-level globals
- Named requests so Locust groups statistics per endpoint
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from locust import HttpUser

from serverest_load.config import Config
from serverest_load.helpers import Product
from serverest_load.metrics import CheckResults, Trend
from serverest_load.thresholds import Threshold

# Attribute name under which the init listener stores the RunContext.
CONTEXT_ATTRIBUTE = "serverest_context"

# Requests are named "<group> <path> [<method>]" so Locust statistics keep
# the two phases of an iteration apart.
GROUP_USER_LOGIN = "Criação de Usuário e Login"
GROUP_PRODUCTS = "Operações de Produtos (Data Driven)"

REQUEST_CREATE_USER = f"{GROUP_USER_LOGIN} /usuarios [POST]"
REQUEST_LOGIN = f"{GROUP_USER_LOGIN} /login [POST]"
REQUEST_CREATE_PRODUCT = f"{GROUP_PRODUCTS} /produtos [POST]"


@dataclass(frozen=True)
class RunContext:
    """
    Per-run state shared by every iteration.

    Attributes:
        products: The product fixture. A tuple, so iterations can read
            it concurrently and nothing can mutate it.
        checks: Pass/fail counters of in-iteration checks.
        login_duration: Login latency samples in milliseconds.
        thresholds: Parsed acceptance criteria, evaluated at run end.
    """

    products: tuple[Product, ...]
    checks: CheckResults = field(default_factory=CheckResults)
    login_duration: Trend = field(default_factory=lambda: Trend(Config.LOGIN_TREND))
    thresholds: dict[str, list[Threshold]] = field(default_factory=dict)

    def metric_sources(self) -> dict[str, Any]:
        """Custom metric sources for threshold evaluation."""
        return {
            self.login_duration.name: self.login_duration,
            "checks": self.checks,
        }


def create_user(client: Any, user: dict[str, str]) -> Any:
    """POST a new user record and return the response."""
    return client.post(
        "/usuarios",
        json=user,
        headers={"Content-Type": "application/json"},
        name=REQUEST_CREATE_USER,
    )


def login(client: Any, *, email: str, password: str) -> Any:
    """POST the credentials to the login endpoint and return the response."""
    return client.post(
        "/login",
        json={"email": email, "password": password},
        headers={"Content-Type": "application/json"},
        name=REQUEST_LOGIN,
    )


def create_product(client: Any, payload: dict[str, Any], headers: dict[str, str]) -> Any:
    """POST a new product with the given auth headers and return the response."""
    return client.post(
        "/produtos",
        json=payload,
        headers=headers,
        name=REQUEST_CREATE_PRODUCT,
    )


class ServeRestUser(HttpUser):
    """
    Base user targeting the ServeRest API.

    ``abstract = True`` tells Locust not to spawn this class directly,
    only its concrete subclasses.  ``host`` defaults to the ``URL_BASE``
    setting; Locust's ``--host`` flag still takes precedence.
    """

    abstract = True
    host = Config.BASE_URL

    @property
    def run_context(self) -> RunContext:
        context = getattr(self.environment, CONTEXT_ATTRIBUTE, None)
        if context is None:
            raise RuntimeError("Run context was not initialised; use the bundled locustfile")
        return context
