"""
Helper utilities for the ServeRest load scenario.

Provides the building blocks the scenario relies on: synthetic user
generation, auth header construction, product fixture loading and
payload factories.  Keeping these in a shared module keeps the scenario
file down to request sequencing only.

Key Concepts Demonstrated:
- Probabilistically unique identities from a random integer suffix
- Data-driven testing with a fixture loaded once and shared read-only
- Tolerant JSON parsing so a bad response body never aborts an iteration
"""

from __future__ import annotations

import json
import random
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from faker import Faker

USER_PASSWORD = "teste"
USER_EMAIL_DOMAIN = "qa.com.br"
RANDOM_ID_UPPER_BOUND = 1_000_000
PRODUCT_DESCRIPTION = "Produto teste k6"
PRODUCT_QUANTITY = 10

_fake = Faker("pt_BR")


class FixtureError(ValueError):
    """Raised when the product fixture file cannot be used."""


@dataclass(frozen=True)
class Product:
    """One entry of the product fixture (``nome``/``preco`` on disk)."""

    name: str
    price: float


def safe_json(response: Any) -> dict[str, Any]:
    """
    Return response JSON as dict, or an empty dict if parsing fails.

    Locust responses may contain non-JSON bodies (e.g. on 5xx errors or
    gateway timeouts).  Using this wrapper prevents ``ValueError`` from
    propagating into task methods where it would abort the virtual user.

    Args:
        response: A Locust/requests ``Response`` object.

    Returns:
        The parsed JSON body as a dictionary, or ``{}`` if parsing fails
        or the top-level value is not a dict.
    """
    try:
        data = response.json()
    except ValueError:
        return {}

    if isinstance(data, dict):
        return data
    return {}


def generate_random_user() -> dict[str, str]:
    """
    Build a fresh ServeRest user record.

    The same random integer is embedded in ``nome`` and ``email`` so that
    concurrent virtual users rarely collide on the API's unique-email
    rule.  Uniqueness is probabilistic only: two draws can still match.

    Returns:
        A dictionary with ``nome``, ``email``, ``password`` and
        ``administrador`` keys, ready to be sent as the request body.
    """
    random_id = random.randrange(RANDOM_ID_UPPER_BOUND)
    return {
        "nome": f"{_fake.first_name()} Locust {random_id}",
        "email": f"locust_desafio_{random_id}@{USER_EMAIL_DOMAIN}",
        "password": USER_PASSWORD,
        "administrador": "true",
    }


def build_auth_headers(token: str) -> dict[str, str]:
    """
    Build the headers for authenticated ServeRest requests.

    ServeRest expects the raw token returned by ``/login`` (it already
    carries the ``Bearer`` prefix), so the value is passed through
    verbatim, including when it is empty.
    """
    return {
        "Content-Type": "application/json",
        "Authorization": token,
    }


def load_products(path: Path | str) -> tuple[Product, ...]:
    """
    Read the product fixture once and return it as an immutable tuple.

    Args:
        path: Location of a JSON array of ``{"nome": str, "preco": number}``
            objects.

    Returns:
        The parsed products, in file order.

    Raises:
        FixtureError: If the file is missing, is not valid JSON, is not a
            non-empty array, or contains a malformed entry.
    """
    fixture_path = Path(path)
    try:
        with fixture_path.open("r", encoding="utf-8") as handle:
            data = json.load(handle)
    except FileNotFoundError as exc:
        raise FixtureError(f"Product fixture not found: {fixture_path}") from exc
    except json.JSONDecodeError as exc:
        raise FixtureError(f"Product fixture is not valid JSON: {fixture_path}") from exc

    if not isinstance(data, list) or not data:
        raise FixtureError("Product fixture must be a non-empty JSON array")

    products = []
    for index, entry in enumerate(data):
        if not isinstance(entry, dict):
            raise FixtureError(f"Product #{index} is not an object")

        name = entry.get("nome")
        price = entry.get("preco")
        if not isinstance(name, str) or not name:
            raise FixtureError(f"Product #{index} is missing a 'nome' string")
        # bool is an int subclass; reject it explicitly.
        if isinstance(price, bool) or not isinstance(price, (int, float)):
            raise FixtureError(f"Product #{index} is missing a numeric 'preco'")

        products.append(Product(name=name, price=price))

    return tuple(products)


def pick_product(products: tuple[Product, ...], rng: random.Random | None = None) -> Product:
    """Pick one product uniformly at random."""
    rng = rng or random
    return products[rng.randrange(len(products))]


def build_product_payload(product: Product, timestamp_ms: int) -> dict[str, Any]:
    """
    Build a product-create payload from a fixture entry.

    The millisecond timestamp is appended to the fixture name because
    ServeRest rejects duplicate product names.

    Args:
        product: The fixture entry to base the product on.
        timestamp_ms: Epoch milliseconds at payload construction.

    Returns:
        A JSON-serialisable dictionary matching the product-create schema.
    """
    return {
        "nome": f"{product.name} {timestamp_ms}",
        "preco": product.price,
        "descricao": PRODUCT_DESCRIPTION,
        "quantidade": PRODUCT_QUANTITY,
    }
