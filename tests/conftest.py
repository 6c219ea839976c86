from decimal import Decimal

import pytest
from django.contrib.auth import get_user_model
from rest_framework.test import APIClient

from config.celery import app as celery_app
from modules.carts.models import Cart, CartItem, CartStatus
from modules.catalog.models import Product, ProductVariant
from modules.orders.value_objects import Address

User = get_user_model()

ADDRESS = {
    "first_name": "Ada",
    "last_name": "Lovelace",
    "line1": "12 Analytical Way",
    "city": "London",
    "state": "LDN",
    "postal_code": "N1 9GU",
    "country": "GB",
}


@pytest.fixture(autouse=True)
def _use_db(db):
    """Automatically use the test database for all tests."""


@pytest.fixture(autouse=True)
def _celery_eager():
    """Run Celery tasks synchronously in the test process."""
    # The app reads Django settings with the ``CELERY`` namespace, so its
    # configuration keys carry the ``CELERY_`` prefix.
    previous = celery_app.conf.CELERY_TASK_ALWAYS_EAGER
    celery_app.conf.CELERY_TASK_ALWAYS_EAGER = True
    yield
    celery_app.conf.CELERY_TASK_ALWAYS_EAGER = previous


@pytest.fixture()
def api_client():
    """DRF APIClient for testing API endpoints."""
    return APIClient()


@pytest.fixture()
def api_client_with_correlation(api_client):
    """APIClient pre-configured with a known correlation ID header."""
    cid = "test-correlation-id-fixture"
    api_client.defaults["HTTP_X_REQUEST_ID"] = cid
    return api_client, cid


@pytest.fixture()
def user():
    return User.objects.create_user(username="shopper", password="testpass123")


@pytest.fixture()
def auth_client(api_client, user):
    """APIClient with a force-authenticated Django user."""
    api_client.force_authenticate(user=user)
    return api_client


@pytest.fixture()
def address():
    return Address(**ADDRESS)


@pytest.fixture()
def make_product():
    counter = {"n": 0}

    def _make(stock=100, price="10.00", manage_stock=True, **extra):
        counter["n"] += 1
        return Product.objects.create(
            sku=extra.pop("sku", f"SKU-{counter['n']:04d}"),
            name=extra.pop("name", f"Product {counter['n']}"),
            price=Decimal(price),
            stock_quantity=stock,
            manage_stock=manage_stock,
            **extra,
        )

    return _make


@pytest.fixture()
def make_variant():
    counter = {"n": 0}

    def _make(product, stock=10, price="12.00", manage_stock=True, attributes=None):
        counter["n"] += 1
        return ProductVariant.objects.create(
            product=product,
            sku=f"{product.sku}-V{counter['n']}",
            price=Decimal(price),
            stock_quantity=stock,
            manage_stock=manage_stock,
            attributes=attributes or {"size": "M"},
        )

    return _make


@pytest.fixture()
def make_cart():
    """Build a cart whose totals are consistent with its lines.

    ``lines`` is a list of ``(product, quantity)`` or
    ``(product, quantity, variant)`` tuples; unit price comes from the
    variant or product.
    """

    def _make(
        lines,
        user=None,
        status=CartStatus.ACTIVE,
        shipping="0.00",
        tax="0.00",
        discount="0.00",
        referral_code_id=None,
    ):
        cart = Cart.objects.create(user=user, status=status, referral_code_id=referral_code_id)
        subtotal = Decimal("0.00")
        for line in lines:
            product, quantity = line[0], line[1]
            variant = line[2] if len(line) > 2 else None
            unit_price = variant.price if variant else product.price
            total = unit_price * quantity
            CartItem.objects.create(
                cart=cart,
                product=product,
                variant=variant,
                quantity=quantity,
                unit_price=unit_price,
                total_price=total,
            )
            subtotal += total
        cart.subtotal = subtotal
        cart.shipping_total = Decimal(shipping)
        cart.tax_total = Decimal(tax)
        cart.discount_total = Decimal(discount)
        cart.grand_total = subtotal + cart.shipping_total + cart.tax_total - cart.discount_total
        cart.save()
        return cart

    return _make


# Transitions that lead from ``pending`` to each status. ``refunded`` is
# reached from ``completed`` through a full refund.
STATUS_PATHS = {
    "pending": [],
    "processing": ["processing"],
    "completed": ["processing", "completed"],
    "cancelled": ["cancelled"],
    "refunded": ["processing", "completed"],
    "failed": ["failed"],
}


@pytest.fixture()
def order_service():
    from modules.orders.services import build_order_service

    return build_order_service()


@pytest.fixture()
def make_order(order_service, make_product, make_cart, address):
    """Create an order through the saga, then walk it to ``status``."""
    from modules.orders.dtos import CreateOrderFromCartDTO
    from modules.orders.models import Order

    def _make(status="pending", lines=None, **cart_kwargs):
        if lines is None:
            lines = [(make_product(stock=100, price="10.00"), 2)]
        cart = make_cart(lines, **cart_kwargs)
        order = order_service.create_order_from_cart(
            CreateOrderFromCartDTO(cart_id=cart.id, billing_address=address)
        )
        for step in STATUS_PATHS[status]:
            order_service.update_status(order.id, step)
        if status == "refunded":
            order_service.refund_order(order.id, order.grand_total, reason="full refund")
        return Order.objects.prefetch_related("items", "status_history").get(id=order.id)

    return _make
