"""
Unit tests for the user-to-product iteration.

The Locust client is replaced by a mock whose ``post`` returns one
canned response per request, in order: create user, login, create
product.
"""

import random

import pytest
from locust.env import Environment

from serverest_load.helpers import Product
from serverest_load.scenarios.base import CONTEXT_ATTRIBUTE, RunContext
from serverest_load.scenarios.product_flow import (
    CHECK_HAS_TOKEN,
    CHECK_LOGGED_IN,
    CHECK_PRODUCT_CREATED,
    CHECK_USER_CREATED,
    ProductFlowUser,
    run_iteration,
)


pytestmark = pytest.mark.unit

FIXED_NOW_MS = 1700000000123


def _fixed_clock() -> int:
    return FIXED_NOW_MS


def test_happy_path_posts_in_order(make_client, make_response, run_context, token):
    client = make_client(
        make_response(201, {"message": "Cadastro realizado com sucesso"}),
        make_response(200, {"authorization": token}, response_time_ms=123),
        make_response(201, {"_id": "abc"}),
    )

    result = run_iteration(client, run_context, now_ms=_fixed_clock)

    paths = [call.args[0] for call in client.post.call_args_list]
    assert paths == ["/usuarios", "/login", "/produtos"]
    assert result.user_created and result.logged_in and result.product_created
    assert result.token == token


def test_login_uses_created_user_credentials(make_client, make_response, run_context, token):
    client = make_client(
        make_response(201, {}),
        make_response(200, {"authorization": token}),
        make_response(201, {}),
    )

    result = run_iteration(client, run_context, now_ms=_fixed_clock)

    create_call, login_call, _ = client.post.call_args_list
    assert create_call.kwargs["json"] == result.user
    assert login_call.kwargs["json"] == {
        "email": result.user["email"],
        "password": result.user["password"],
    }


def test_product_request_carries_token_and_fixture_data(make_client, make_response, token):
    context = RunContext(products=(Product("Mouse", 50),))
    client = make_client(
        make_response(201, {}),
        make_response(200, {"authorization": token}),
        make_response(201, {}),
    )

    run_iteration(client, context, now_ms=_fixed_clock)

    product_call = client.post.call_args_list[2]
    assert product_call.kwargs["json"] == {
        "nome": f"Mouse {FIXED_NOW_MS}",
        "preco": 50,
        "descricao": "Produto teste k6",
        "quantidade": 10,
    }
    assert product_call.kwargs["headers"] == {
        "Content-Type": "application/json",
        "Authorization": token,
    }


def test_login_duration_is_recorded(make_client, make_response, run_context, token):
    client = make_client(
        make_response(201, {}),
        make_response(200, {"authorization": token}, response_time_ms=250),
        make_response(201, {}),
    )

    run_iteration(client, run_context, now_ms=_fixed_clock)

    assert run_context.login_duration.count == 1
    assert run_context.login_duration.max == pytest.approx(250)


def test_login_duration_includes_body_download(make_client, make_response, run_context, token):
    # Headers arrive after 2 ms but the body takes another half second.
    client = make_client(
        make_response(201, {}),
        make_response(200, {"authorization": token}, response_time_ms=504, headers_ms=2),
        make_response(201, {}),
    )

    run_iteration(client, run_context, now_ms=_fixed_clock)

    assert run_context.login_duration.max == pytest.approx(504)


def test_login_duration_defaults_to_zero_without_request_meta(make_client, make_response, run_context, token):
    login_response = make_response(200, {"authorization": token}, headers_ms=80)
    login_response.request_meta = None
    client = make_client(make_response(201, {}), login_response, make_response(201, {}))

    run_iteration(client, run_context, now_ms=_fixed_clock)

    assert run_context.login_duration.max == 0.0


def test_empty_token_fails_check_but_still_creates_product(make_client, make_response, run_context):
    client = make_client(
        make_response(201, {}),
        make_response(200, {"authorization": ""}),
        make_response(401, {"message": "Token de acesso ausente"}),
    )

    result = run_iteration(client, run_context, now_ms=_fixed_clock)

    assert client.post.call_count == 3
    assert result.token == ""
    assert client.post.call_args_list[2].kwargs["headers"]["Authorization"] == ""
    assert run_context.checks.get(CHECK_LOGGED_IN).passes == 1
    assert run_context.checks.get(CHECK_HAS_TOKEN).fails == 1
    assert run_context.checks.get(CHECK_PRODUCT_CREATED).fails == 1


def test_failed_user_creation_does_not_abort_iteration(make_client, make_response, run_context, token):
    client = make_client(
        make_response(500, {"message": "erro"}),
        make_response(200, {"authorization": token}),
        make_response(201, {}),
    )

    result = run_iteration(client, run_context, now_ms=_fixed_clock)

    assert client.post.call_count == 3
    assert result.user_created is False
    assert result.logged_in and result.product_created
    assert run_context.checks.get(CHECK_USER_CREATED).fails == 1


def test_non_json_login_body_yields_empty_token(make_client, make_response, run_context):
    client = make_client(
        make_response(201, {}),
        make_response(502),
        make_response(401, {}),
    )

    result = run_iteration(client, run_context, now_ms=_fixed_clock)

    assert result.token == ""
    assert result.logged_in is False
    assert client.post.call_count == 3


def test_product_is_drawn_from_fixture(make_client, make_response, run_context, products, token):
    client = make_client(
        make_response(201, {}),
        make_response(200, {"authorization": token}),
        make_response(201, {}),
    )

    result = run_iteration(client, run_context, now_ms=_fixed_clock, rng=random.Random(7))

    names = {f"{product.name} {FIXED_NOW_MS}" for product in products}
    assert result.product_payload["nome"] in names


def test_user_requires_initialised_context(products):
    environment = Environment(user_classes=[ProductFlowUser])
    user = ProductFlowUser(environment)

    with pytest.raises(RuntimeError):
        user.run_context

    context = RunContext(products=products)
    setattr(environment, CONTEXT_ATTRIBUTE, context)
    assert user.run_context is context


def test_requests_are_named_by_group(make_client, make_response, run_context, token):
    client = make_client(
        make_response(201, {}),
        make_response(200, {"authorization": token}),
        make_response(201, {}),
    )

    run_iteration(client, run_context, now_ms=_fixed_clock)

    names = [call.kwargs["name"] for call in client.post.call_args_list]
    assert names == [
        "Criação de Usuário e Login /usuarios [POST]",
        "Criação de Usuário e Login /login [POST]",
        "Operações de Produtos (Data Driven) /produtos [POST]",
    ]
