# tests/conftest.py
import os

# Settings are read once at import time; point them at throwaway values
# before any app module is imported.
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("JWT_SECRET", "test-secret")
os.environ.setdefault("STORAGE_BACKEND", "local")

from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient
from sqlmodel import SQLModel, Session

from app.core.security import create_access_token, hash_password
from app.core.storage_utils import LocalBlobStore, get_blob_store
from app.database import build_engine, get_session
from app.main import app
from app.models.product import Category, Product, ProductCategory, ProductImage
from app.models.user import User

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64


@pytest.fixture
def engine(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'test.db'}")
    SQLModel.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session(engine):
    """Session for arranging data; commit before calling the API."""
    with Session(engine) as session:
        yield session


@pytest.fixture
def blob_store(tmp_path):
    return LocalBlobStore(tmp_path / "uploads", "/uploads/products")


@pytest.fixture
def client(engine, blob_store):
    def override_get_session():
        with Session(engine) as session:
            yield session

    app.dependency_overrides[get_session] = override_get_session
    app.dependency_overrides[get_blob_store] = lambda: blob_store
    yield TestClient(app, raise_server_exceptions=False)
    app.dependency_overrides.clear()


@pytest.fixture
def categories(session):
    rows = [
        Category(id="premium", name="Premium"),
        Category(id="lifestyle", name="Lifestyle"),
        Category(id="limited", name="Limited Edition"),
    ]
    session.add_all(rows)
    session.commit()
    return [row.id for row in rows]


def _make_user(session: Session, email: str, role: str) -> User:
    user = User(
        email=email,
        password_hash=hash_password("s3cret-pass"),
        first_name="Test",
        last_name=role.capitalize(),
        role=role,
    )
    session.add(user)
    session.commit()
    session.refresh(user)
    return user


@pytest.fixture
def admin_user(session):
    return _make_user(session, "admin@example.com", "admin")


@pytest.fixture
def customer_user(session):
    return _make_user(session, "shopper@example.com", "customer")


@pytest.fixture
def admin_headers(admin_user):
    token = create_access_token(admin_user.id, admin_user.email)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def customer_headers(customer_user):
    token = create_access_token(customer_user.id, customer_user.email)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def make_product(session):
    """
    Insert a product directly, with categories and images.

    `age_minutes` pushes created_at into the past so tests control
    the newest-first order.
    """
    now = datetime.now(timezone.utc)

    def _make(
        product_id: str,
        *,
        age_minutes: int = 0,
        categories: tuple[str, ...] = (),
        images: tuple[tuple[str, str], ...] = (),
        **fields,
    ) -> Product:
        fields.setdefault("name", f"Item {product_id}")
        fields.setdefault("sku", f"SKU-{product_id}")
        fields.setdefault("price", 10.0)
        fields.setdefault("quantity", 5)
        fields.setdefault("in_stock", True)
        created = now - timedelta(minutes=age_minutes)
        product = Product(id=product_id, created_at=created, updated_at=created, **fields)
        session.add(product)
        session.flush()
        for category_id in categories:
            session.add(ProductCategory(product_id=product_id, category_id=category_id))
        for idx, (url, image_type) in enumerate(images):
            session.add(
                ProductImage(
                    product_id=product_id,
                    image_url=url,
                    image_type=image_type,
                    sort_order=idx,
                )
            )
        session.commit()
        session.refresh(product)
        return product

    return _make
