"""Unit tests for OrderNumberIssuer."""

from __future__ import annotations

import re
from itertools import chain, repeat

import pytest
from freezegun import freeze_time

from modules.orders.exceptions import OrderNumberCollisionExhausted
from modules.orders.dtos import CreateOrderFromCartDTO
from modules.orders.numbering import OrderNumberIssuer, generate_order_number
from modules.orders.repositories import OrderDjangoRepository
from modules.orders.services import build_order_service

pytestmark = pytest.mark.unit


@freeze_time("2026-03-14 23:59:59")
def test_generated_number_format_uses_utc_date():
    number = generate_order_number()

    assert re.fullmatch(r"ORD-20260314-[0-9A-F]{6}", number)


def test_allocate_returns_first_free_candidate():
    candidates = iter(["ORD-A", "ORD-B", "ORD-C"])
    taken = {"ORD-A"}

    issuer = OrderNumberIssuer(exists=taken.__contains__, generator=lambda: next(candidates))

    assert issuer.allocate() == "ORD-B"


def test_allocate_gives_up_after_bounded_attempts():
    calls = []

    def generator():
        calls.append(1)
        return "ORD-TAKEN"

    issuer = OrderNumberIssuer(exists=lambda _: True, max_attempts=3, generator=generator)

    with pytest.raises(OrderNumberCollisionExhausted) as exc_info:
        issuer.allocate()

    assert exc_info.value.attempts == 3
    assert len(calls) == 3


def test_allocate_succeeds_on_last_attempt():
    candidates = chain(repeat("ORD-TAKEN", 4), ["ORD-FREE"])

    issuer = OrderNumberIssuer(
        exists=lambda number: number == "ORD-TAKEN",
        max_attempts=5,
        generator=lambda: next(candidates),
    )

    assert issuer.allocate() == "ORD-FREE"


def test_max_attempts_must_be_positive():
    with pytest.raises(ValueError):
        OrderNumberIssuer(exists=lambda _: False, max_attempts=0)


def test_allocate_checks_existing_orders(make_product, make_cart, address):
    order = build_order_service().create_order_from_cart(
        CreateOrderFromCartDTO(
            cart_id=make_cart([(make_product(), 1)]).id,
            billing_address=address,
        )
    )
    candidates = iter([order.order_number, "ORD-20990101-ABCDEF"])

    issuer = OrderNumberIssuer(
        exists=OrderDjangoRepository().exists_order_number,
        generator=lambda: next(candidates),
    )

    assert issuer.allocate() == "ORD-20990101-ABCDEF"
