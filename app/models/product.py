# app/models/product.py
from datetime import datetime, timezone

from sqlalchemy import Column, ForeignKey, String, Text
from sqlmodel import SQLModel, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Category(SQLModel, table=True):
    """
    Catalog category (e.g. "premium", "lifestyle").

    The id is a human-readable slug chosen by the admin / seed data.
    """

    __tablename__ = "categories"

    id: str = Field(
        primary_key=True,
        max_length=50,
        description="Slug-like identifier",
    )

    name: str = Field(
        max_length=100,
        description="Display name",
    )

    created_at: datetime = Field(
        default_factory=_utcnow,
        description="Creation timestamp (UTC)",
    )


class Product(SQLModel, table=True):
    """
    Product catalog entry.

    Notes:
      - sku is unique across all products.
      - trending / best_seller / new_arrival are independent flags.
      - `status` is NOT stored; it is derived at read time from
        quantity and in_stock (see `derive_status`).
    """

    __tablename__ = "products"

    id: str = Field(
        primary_key=True,
        max_length=50,
        description="Time-based identifier, e.g. product-1718000000000000000",
    )

    name: str = Field(
        max_length=255,
        index=True,
        description="Display name",
    )

    sku: str | None = Field(
        default=None,
        max_length=100,
        unique=True,
        description="Stock-keeping unit (unique)",
    )

    price: float = Field(
        default=0,
        description="Current unit price",
    )

    old_price: float | None = Field(
        default=None,
        description="Previous price shown as strikethrough",
    )

    description: str | None = Field(
        default=None,
        sa_column=Column(Text, nullable=True),
    )

    quantity: int = Field(default=0, description="Units on hand")

    in_stock: bool = Field(
        default=True,
        index=True,
        description="Whether the product is sellable / visible on the storefront",
    )

    low_stock_threshold: int = Field(default=5)

    rating: float = Field(default=0)
    review_count: int = Field(default=0)

    trending: bool = Field(default=False, index=True)
    best_seller: bool = Field(default=False, index=True)
    new_arrival: bool = Field(default=False)

    created_at: datetime = Field(
        default_factory=_utcnow,
        index=True,
        description="Creation timestamp (UTC)",
    )

    updated_at: datetime = Field(
        default_factory=_utcnow,
        description="Last modification timestamp (UTC)",
    )


class ProductCategory(SQLModel, table=True):
    """
    Many-to-many link between products and categories.

    Both foreign keys cascade, so deleting either side removes the link.
    """

    __tablename__ = "product_categories"

    product_id: str = Field(
        sa_column=Column(
            String(50),
            ForeignKey("products.id", ondelete="CASCADE"),
            primary_key=True,
        ),
    )

    category_id: str = Field(
        sa_column=Column(
            String(50),
            ForeignKey("categories.id", ondelete="CASCADE"),
            primary_key=True,
        ),
    )


class ProductImage(SQLModel, table=True):
    """
    Image attached to a product.

    - image_type: "primary" (one per product by convention) | "gallery"
    - sort_order: display ordering within the product
    """

    __tablename__ = "product_images"

    id: int | None = Field(default=None, primary_key=True)

    product_id: str = Field(
        sa_column=Column(
            String(50),
            ForeignKey("products.id", ondelete="CASCADE"),
            index=True,
            nullable=False,
        ),
    )

    image_url: str = Field(
        max_length=500,
        description="Blob-store URL or static asset path",
    )

    image_type: str = Field(default="gallery", max_length=20)

    sort_order: int = Field(default=0)

    created_at: datetime = Field(default_factory=_utcnow)


def derive_status(product: Product) -> str:
    """out-of-stock if nothing on hand, else active/draft by in_stock."""
    if (product.quantity or 0) <= 0:
        return "out-of-stock"
    return "active" if product.in_stock else "draft"
