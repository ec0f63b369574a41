# app/seed.py
"""
Sample catalog data for local development.

Run once with:

    python -m app.seed

or set SEED_SAMPLE_DATA=true to run it on application startup.
Existing rows are left untouched, so running it twice is harmless.
"""
import logging
from datetime import datetime, timedelta, timezone

from sqlmodel import Session

from app.core.config import get_settings
from app.core.security import hash_password
from app.database import create_db_and_tables, engine
from app.models.product import Category, Product, ProductCategory, ProductImage
from app.models.user import User
from app.repositories.user_repo import UserRepository

settings = get_settings()
logger = logging.getLogger(__name__)

SAMPLE_CATEGORIES = [
    ("premium", "Premium"),
    ("lifestyle", "Lifestyle"),
    ("limited", "Limited Edition"),
    ("collection", "Signature Collection"),
    ("new-season", "New Season"),
]

SAMPLE_PRODUCTS = [
    {
        "id": "product-1",
        "name": "Signature Collection Item",
        "price": 199.00,
        "old_price": 249.00,
        "description": "Our flagship product from the signature collection.",
        "sku": "BINGO-001",
        "quantity": 24,
        "trending": True,
        "best_seller": True,
        "new_arrival": False,
        "categories": ["premium"],
    },
    {
        "id": "product-2",
        "name": "Modern Minimalist Piece",
        "price": 179.00,
        "description": "Clean lines and minimalist design.",
        "sku": "BINGO-002",
        "quantity": 18,
        "trending": False,
        "best_seller": False,
        "new_arrival": True,
        "categories": ["lifestyle"],
    },
    {
        "id": "product-3",
        "name": "Exclusive Designer Item",
        "price": 299.00,
        "description": "Limited edition designer collaboration.",
        "sku": "BINGO-003",
        "quantity": 0,
        "trending": False,
        "best_seller": False,
        "new_arrival": False,
        "categories": ["limited"],
    },
    {
        "id": "product-4",
        "name": "Premium Collector's Edition",
        "price": 349.00,
        "description": "A must-have for collectors.",
        "sku": "BINGO-004",
        "quantity": 5,
        "trending": False,
        "best_seller": True,
        "new_arrival": False,
        "categories": ["collection"],
    },
    {
        "id": "product-5",
        "name": "Contemporary Classic",
        "price": 189.00,
        "description": "Modern take on classic design.",
        "sku": "BINGO-005",
        "quantity": 12,
        "trending": True,
        "best_seller": False,
        "new_arrival": True,
        "categories": ["new-season"],
    },
]


def seed_sample_data(session: Session) -> None:
    """
    Insert sample categories, products (with category links and a primary
    image each) and the admin account, skipping rows that already exist.

    Products get staggered created_at values so "newest first" follows
    the list order in reverse (product-5 first).
    """
    for category_id, name in SAMPLE_CATEGORIES:
        if session.get(Category, category_id) is None:
            session.add(Category(id=category_id, name=name))
    session.flush()

    base_time = datetime.now(timezone.utc) - timedelta(days=1)
    for idx, data in enumerate(SAMPLE_PRODUCTS):
        if session.get(Product, data["id"]) is not None:
            continue

        fields = {key: value for key, value in data.items() if key != "categories"}
        session.add(
            Product(
                **fields,
                in_stock=data["quantity"] > 0,
                created_at=base_time + timedelta(minutes=idx),
                updated_at=base_time + timedelta(minutes=idx),
            )
        )
        session.flush()

        for category_id in data["categories"]:
            session.add(ProductCategory(product_id=data["id"], category_id=category_id))
        session.add(
            ProductImage(
                product_id=data["id"],
                image_url=f"/images/{data['id']}.jpg",
                image_type="primary",
            )
        )
    session.flush()

    users = UserRepository()
    if users.get_by_email(session, settings.ADMIN_EMAIL) is None:
        session.add(
            User(
                email=settings.ADMIN_EMAIL,
                password_hash=hash_password(settings.ADMIN_PASSWORD),
                first_name="Admin",
                last_name="User",
                role="admin",
            )
        )
        logger.info("👤 Admin user created - Email: %s", settings.ADMIN_EMAIL)
    else:
        logger.info("👤 Admin user already exists")

    session.commit()
    logger.info("✅ Sample data inserted")


def run_seed() -> None:
    with Session(engine) as session:
        seed_sample_data(session)


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    create_db_and_tables()
    run_seed()
