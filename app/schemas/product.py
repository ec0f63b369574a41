# app/schemas/product.py
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator
from sqlmodel import SQLModel

TRUTHY_STRINGS = {"true", "1", "on", "yes"}


def _coerce_flag(v: object) -> object:
    """Form checkboxes arrive as strings; only truthy spellings mean True."""
    if isinstance(v, bool) or v is None:
        return v
    return str(v).strip().lower() in TRUTHY_STRINGS


class ProductFormBase(BaseModel):
    """
    Scalar fields of the admin product form (multipart/form-data).

    Accepts both the admin UI's camelCase names (oldPrice, inStock,
    lowStockThreshold) and snake_case. Fields not present in the form
    stay "unset", which is how updates tell omitted from empty.
    """

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    name: str | None = None
    sku: str | None = None
    price: float | None = None
    old_price: float | None = Field(default=None, alias="oldPrice")
    description: str | None = None
    quantity: int | None = None
    in_stock: bool | None = Field(default=None, alias="inStock")
    low_stock_threshold: int | None = Field(default=None, alias="lowStockThreshold")
    trending: bool | None = None
    best_seller: bool | None = None
    new_arrival: bool | None = None

    @field_validator("in_stock", "trending", "best_seller", "new_arrival", mode="before")
    @classmethod
    def coerce_flags(cls, v):
        return _coerce_flag(v)

    @field_validator("old_price", mode="before")
    @classmethod
    def blank_old_price_is_none(cls, v):
        # An emptied "old price" input clears the strikethrough price
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator("old_price")
    @classmethod
    def zero_old_price_is_none(cls, v: float | None) -> float | None:
        # No strikethrough price is stored as NULL, never as 0
        return v or None

    @field_validator("name", "sku")
    @classmethod
    def strip_text(cls, v: str | None) -> str | None:
        if v is None:
            return v
        v = v.strip()
        if not v:
            raise ValueError("field cannot be empty")
        return v


class ProductCreate(ProductFormBase):
    """
    Payload for creating a product.

    name, sku, price and quantity are required; the service reports all
    missing ones in a single 400 instead of one schema error per field.
    """

    def missing_required(self) -> list[str]:
        return [
            field
            for field in ("name", "sku", "price", "quantity")
            if getattr(self, field) is None
        ]


class ProductUpdate(ProductFormBase):
    """
    Partial update payload.

    Only fields present in the request are applied (see `changes`).
    """

    def changes(self) -> dict:
        return self.model_dump(exclude_unset=True)


class UploadedImage(BaseModel):
    """An uploaded file already read into memory and validated."""

    filename: str
    content_type: str
    data: bytes


# -------- Read models --------


class CategoryRead(SQLModel):
    id: str
    name: str
    created_at: datetime | None = None


class ProductRow(SQLModel):
    """
    Raw product row, returned by create/update.
    """

    id: str
    name: str
    sku: str | None
    price: float
    old_price: float | None
    description: str | None
    quantity: int
    in_stock: bool
    low_stock_threshold: int
    rating: float
    review_count: int
    trending: bool
    best_seller: bool
    new_arrival: bool
    created_at: datetime
    updated_at: datetime


class ProductMutationResponse(SQLModel):
    message: str
    product: ProductRow


class ProductImageRead(SQLModel):
    image_url: str
    image_type: str
    sort_order: int


class ImageSet(SQLModel):
    primary: str
    gallery: list[str]


class ProductListItem(SQLModel):
    """
    Storefront card view (GET /products).

    `image_url` is the primary image or the placeholder.
    """

    id: str
    name: str
    price: float
    old_price: float | None
    description: str | None
    categories: list[str]
    in_stock: bool
    sku: str | None
    quantity: int
    trending: bool
    best_seller: bool
    new_arrival: bool
    product_images: list[ProductImageRead]
    image_url: str


class ProductDetail(BaseModel):
    """
    Product page view (GET /products/{id}).
    """

    model_config = ConfigDict(populate_by_name=True)

    id: str
    name: str
    price: float
    old_price: float | None = Field(alias="oldPrice")
    description: str | None
    categories: list[str]
    in_stock: bool = Field(alias="inStock")
    sku: str | None
    quantity: int
    trending: bool
    best_seller: bool
    new_arrival: bool
    product_images: list[ProductImageRead]
    images: ImageSet


class AdminProduct(BaseModel):
    """
    Back-office table row (GET /admin/products), with derived status.
    """

    model_config = ConfigDict(populate_by_name=True)

    id: str
    name: str
    price: float
    old_price: float | None = Field(alias="oldPrice")
    description: str | None
    categories: list[str]
    in_stock: bool = Field(alias="inStock")
    sku: str | None
    quantity: int
    low_stock_threshold: int = Field(alias="lowStockThreshold")
    trending: bool
    best_seller: bool
    new_arrival: bool
    images: ImageSet
    status: str


class Pagination(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    total: int
    limit: int
    offset: int
    has_more: bool = Field(alias="hasMore")


class AdminProductPage(BaseModel):
    products: list[AdminProduct]
    pagination: Pagination


class BulkDeleteRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    product_ids: list[str] | None = Field(default=None, alias="productIds")


class BulkDeleteResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    message: str
    deleted_ids: list[str] = Field(alias="deletedIds")
