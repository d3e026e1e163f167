"""Pytest fixtures for the shop service tests."""

import os

# settings are read at import time, so the environment goes first
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["CELERY_TASK_ALWAYS_EAGER"] = "1"
os.environ["GATEWAY_MOCK_LATENCY"] = "0"
os.environ["LOG_LEVEL"] = "WARNING"

import random
from decimal import Decimal

import pytest

from shop.data.database import Base, SessionLocal, engine, get_db, init_db
from shop.data.models import CustomerAddressModel, CustomerModel, DiscountModel, ProductModel
from shop.data.models.discount import TYPE_PERCENTAGE
from shop.services.gateway import MockPaymentGateway
from shop.services.lock_service import LockService


class InMemoryLockService(LockService):
    """LockService with a dict instead of redis."""

    def __init__(self):
        self.locks = {}

    def acquire(self, key, token, ttl):
        if key in self.locks:
            return False
        self.locks[key] = token
        return True

    def release(self, key, token):
        if self.locks.get(key) == token:
            del self.locks[key]
            return True
        return False


@pytest.fixture
def db():
    """Fresh in-memory schema per test."""
    init_db()
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def lock_service():
    return InMemoryLockService()


@pytest.fixture
def gateway():
    """Approves everything except the sandbox decline/error cards."""
    return MockPaymentGateway(success_rate=1.0, latency=0, rng=random.Random(7))


@pytest.fixture
def make_customer(db):
    counter = {"n": 0}

    def _make(name="Sara"):
        counter["n"] += 1
        customer = CustomerModel(name=name, phone_number=f"+96650000000{counter['n']}")
        db.add(customer)
        db.commit()
        return customer

    return _make


@pytest.fixture
def customer(make_customer):
    return make_customer()


@pytest.fixture
def make_product(db):
    counter = {"n": 0}

    def _make(price="100.00", stock=10, **kwargs):
        counter["n"] += 1
        product = ProductModel(
            name=kwargs.pop("name", f"Product {counter['n']}"),
            slug=kwargs.pop("slug", f"product-{counter['n']}"),
            price=Decimal(price),
            stock=stock,
            in_stock=stock > 0,
            is_active=kwargs.pop("is_active", True),
            **kwargs,
        )
        db.add(product)
        db.commit()
        return product

    return _make


@pytest.fixture
def address(db, customer):
    address = CustomerAddressModel(
        customer_id=customer.id,
        name="Sara",
        phone="+966500000001",
        address_line_1="King Fahd Road 1",
        city="Riyadh",
        state="Riyadh",
        postal_code="11564",
        country="SA",
    )
    db.add(address)
    db.commit()
    return address


@pytest.fixture
def make_discount(db):
    def _make(code="SAVE10", type=TYPE_PERCENTAGE, value="10", **kwargs):
        discount = DiscountModel(code=code, name=code, type=type, value=Decimal(value), **kwargs)
        db.add(discount)
        db.commit()
        return discount

    return _make


@pytest.fixture
def client(db, lock_service, gateway):
    """TestClient sharing the test session, lock double and mock gateway."""
    from fastapi.testclient import TestClient

    from shop.api.deps import get_lock_service, get_payment_gateway
    from shop.main import app

    def _get_db():
        yield db

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_lock_service] = lambda: lock_service
    app.dependency_overrides[get_payment_gateway] = lambda: gateway

    yield TestClient(app)

    app.dependency_overrides.clear()
