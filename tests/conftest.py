"""
Shared fixtures: in-memory database, users, products, API client, provider stub
"""
import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")

import httpx
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.api.dependencies import get_payment_transport
from app.core.database import Base, get_db
from app.core.security import create_access_token
from app.main import app
from app.models import User, Product, Payment
from app.schemas.order import OrderCreate
from app.services.order_service import OrderService


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db(engine):
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSessionLocal()
    yield session
    session.close()


# ========== USERS ==========

def _make_user(db, email, role, region="Central", **kwargs):
    user = User(
        email=email,
        full_name=email.split("@")[0].title(),
        phone="+256772123456",
        role=role,
        region=region,
        **kwargs
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def buyer(db):
    return _make_user(db, "buyer@agrisupply.ug", "buyer", region="Central")


@pytest.fixture
def other_buyer(db):
    return _make_user(db, "other@agrisupply.ug", "buyer", region="Eastern")


@pytest.fixture
def farmer(db):
    return _make_user(db, "farmer@agrisupply.ug", "farmer", region="Central")


@pytest.fixture
def western_farmer(db):
    return _make_user(db, "west@agrisupply.ug", "farmer", region="Western")


@pytest.fixture
def admin(db):
    return _make_user(db, "admin@agrisupply.ug", "admin", region="Central")


# ========== PRODUCTS ==========

def _make_product(db, farmer, name, price, quantity):
    product = Product(
        farmer_id=farmer.id,
        name=name,
        category="vegetables",
        unit="kg",
        price=price,
        quantity_available=quantity,
    )
    db.add(product)
    db.commit()
    db.refresh(product)
    return product


@pytest.fixture
def tomatoes(db, farmer):
    return _make_product(db, farmer, "Tomatoes", 5000, 10)


@pytest.fixture
def matooke(db, western_farmer):
    return _make_product(db, western_farmer, "Matooke", 20000, 5)


# ========== ORDERS ==========

@pytest.fixture
def place_order(db):
    """Create an order through the builder: place_order(buyer, [(product, qty), ...])"""
    def _place(user, lines, payment_method="mobile_money", region="Central"):
        data = OrderCreate(
            items=[{"productId": product.id, "quantity": quantity} for product, quantity in lines],
            shippingAddress={"region": region, "district": "Kampala", "address": "Plot 12 Kampala Rd"},
            paymentMethod=payment_method,
        )
        return OrderService(db).create_order(user, data)
    return _place


@pytest.fixture
def make_payment(db):
    """Insert a Payment row directly: make_payment(order, status='pending', ...)"""
    counter = {"n": 0}

    def _make(order, status="pending", method="mtn_mobile", provider_reference=None):
        counter["n"] += 1
        payment = Payment(
            order_id=order.id,
            user_id=order.buyer_id,
            amount=order.total,
            method=method,
            transaction_ref=f"TXN-TEST{counter['n']:08d}",
            provider_reference=provider_reference,
            status=status,
        )
        db.add(payment)
        db.commit()
        db.refresh(payment)
        return payment
    return _make


# ========== PROVIDER STUB ==========

class ProviderStub:
    """httpx.MockTransport handler answering stubbed (method, path suffix) pairs"""

    def __init__(self):
        self.routes = []
        self.requests = []

    def add(self, method, path, status_code=200, json=None, exc=None):
        self.routes.append((method, path, status_code, json, exc))

    def __call__(self, request):
        self.requests.append(request)
        for method, path, status_code, body, exc in self.routes:
            if request.method == method and request.url.path.endswith(path):
                if exc is not None:
                    raise exc
                if body is None:
                    return httpx.Response(status_code)
                return httpx.Response(status_code, json=body)
        return httpx.Response(404, json={"message": f"not stubbed: {request.method} {request.url.path}"})

    @property
    def transport(self):
        return httpx.MockTransport(self)


@pytest.fixture
def provider():
    return ProviderStub()


# ========== API ==========

@pytest.fixture
def client(db, provider):
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_payment_transport] = lambda: provider.transport

    yield TestClient(app, raise_server_exceptions=False)

    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers():
    def _headers(user):
        token = create_access_token({"sub": str(user.id)})
        return {"Authorization": f"Bearer {token}"}
    return _headers


@pytest.fixture
def reload(db):
    """Fresh copy of a row, bypassing the identity map"""
    def _reload(model, pk):
        db.expire_all()
        return db.get(model, pk)
    return _reload

