# app/services/product_service.py
import logging
import time
from collections.abc import Iterable, Sequence
from datetime import datetime, timezone
from typing import NoReturn

from sqlalchemy.exc import IntegrityError
from sqlmodel import Session

from app.core.config import get_settings
from app.core.errors import (
    AppError,
    ConflictError,
    InternalError,
    NotFoundError,
    ValidationError,
)
from app.core.storage_utils import BlobStore, discard_blobs
from app.models.product import Product, ProductImage
from app.repositories.product_repo import ProductRepository
from app.schemas.product import (
    BulkDeleteResponse,
    ProductCreate,
    ProductMutationResponse,
    ProductRow,
    ProductUpdate,
    UploadedImage,
)

settings = get_settings()
logger = logging.getLogger(__name__)

DEFAULT_LOW_STOCK_THRESHOLD = 5

# SQLSTATE codes raised by Postgres (psycopg2 exposes them as `pgcode`)
PG_UNIQUE_VIOLATION = "23505"
PG_FOREIGN_KEY_VIOLATION = "23503"


def generate_product_id() -> str:
    """
    Time-based product id, e.g. "product-1718000000123456789".

    Unique as long as two creates never land on the same nanosecond tick.
    """
    return f"product-{time.time_ns()}"


def clean_category_ids(category_ids: Iterable[str] | None) -> list[str]:
    """Strip ids and drop blanks, keeping the caller's order."""
    return [cid.strip() for cid in (category_ids or []) if cid and cid.strip()]


class ProductService:
    """
    Write side of the catalog (admin only, enforced at router via require_admin).

    Responsibilities:
      - one transaction per create / update / delete, spanning the
        product row, its category links and its image rows
      - storing uploaded files and removing them again if the
        transaction fails
      - mapping store failures to domain errors (SKU conflict,
        unknown category, generic failure)
    """

    def __init__(self, repo: ProductRepository, blob_store: BlobStore):
        self.repo = repo
        self.blob_store = blob_store

    # ----- Helpers -----

    def _store_uploads(self, uploads: Sequence[UploadedImage], stored: list[str]) -> None:
        """
        Write uploads to the blob store, recording each URL in `stored`
        as soon as it exists so a later failure can clean it up.
        """
        for upload in uploads:
            stored.append(
                self.blob_store.save(upload.filename, upload.data, upload.content_type)
            )

    @staticmethod
    def _translate_integrity_error(exc: IntegrityError, action: str) -> AppError:
        """
        Map a constraint violation to a domain error.

        Postgres reports an error code and the violated constraint's name;
        SQLite only has the message text, which never contains row values.
        """
        orig = exc.orig
        pgcode = getattr(orig, "pgcode", None)
        if pgcode is not None:
            constraint = getattr(getattr(orig, "diag", None), "constraint_name", None) or ""
            if pgcode == PG_UNIQUE_VIOLATION and "sku" in constraint:
                return ConflictError("SKU already exists")
            if pgcode == PG_FOREIGN_KEY_VIOLATION and "category" in constraint:
                return ValidationError("Unknown category")
            return InternalError(f"Failed to {action} product")

        message = str(orig).lower()
        if "foreign key" in message:
            return ValidationError("Unknown category")
        if "unique" in message and "sku" in message:
            return ConflictError("SKU already exists")
        return InternalError(f"Failed to {action} product")

    def _abort(
        self,
        session: Session,
        exc: Exception,
        stored: list[str],
        action: str,
    ) -> NoReturn:
        """
        Roll back, remove this request's files, and raise the mapped error.
        """
        session.rollback()
        discard_blobs(self.blob_store, stored)

        if isinstance(exc, AppError):
            raise exc
        if isinstance(exc, IntegrityError):
            logger.warning("Integrity error while trying to %s product: %s", action, exc.orig)
            raise self._translate_integrity_error(exc, action) from exc

        logger.exception("Error while trying to %s product", action)
        if settings.DEBUG:
            raise InternalError(f"Failed to {action} product: {exc}") from exc
        raise InternalError(f"Failed to {action} product") from exc

    @staticmethod
    def _image_rows(
        product_id: str,
        urls: Sequence[str],
        first_sort_order: int,
    ) -> list[ProductImage]:
        """First URL becomes the primary image, the rest gallery images."""
        return [
            ProductImage(
                product_id=product_id,
                image_url=url,
                image_type="primary" if idx == 0 else "gallery",
                sort_order=first_sort_order + idx,
            )
            for idx, url in enumerate(urls)
        ]

    # ----- Create -----

    def create_product(
        self,
        session: Session,
        payload: ProductCreate,
        category_ids: Iterable[str] | None = None,
        uploads: Sequence[UploadedImage] = (),
    ) -> ProductMutationResponse:
        """
        Create a product with its category links and images.

        - name, sku, price, quantity are required (400, nothing written).
        - First uploaded file -> "primary", the rest -> "gallery", in upload
          order; no uploads -> a single placeholder primary image.
        - Any failure rolls back every row and deletes the files stored for
          this request. A duplicate SKU is reported as a conflict.
        """
        if payload.missing_required():
            raise ValidationError(
                "Missing required fields: name, sku, price, and quantity are required"
            )

        stored: list[str] = []
        try:
            self._store_uploads(uploads, stored)

            product = Product(
                id=generate_product_id(),
                name=payload.name,
                sku=payload.sku,
                price=payload.price,
                old_price=payload.old_price,
                description=payload.description or "",
                quantity=payload.quantity,
                in_stock=bool(payload.in_stock),
                low_stock_threshold=(
                    payload.low_stock_threshold
                    if payload.low_stock_threshold is not None
                    else DEFAULT_LOW_STOCK_THRESHOLD
                ),
                trending=bool(payload.trending),
                best_seller=bool(payload.best_seller),
                new_arrival=bool(payload.new_arrival),
            )
            self.repo.add(session, product)
            self.repo.replace_categories(session, product.id, clean_category_ids(category_ids))

            if stored:
                images = self._image_rows(product.id, stored, first_sort_order=0)
            else:
                images = [
                    ProductImage(
                        product_id=product.id,
                        image_url=settings.PLACEHOLDER_IMAGE_URL,
                        image_type="primary",
                    )
                ]
            self.repo.add_images(session, images)

            session.commit()
        except Exception as exc:
            self._abort(session, exc, stored, "create")

        session.refresh(product)
        logger.info("Product created successfully: %s", product.id)
        return ProductMutationResponse(
            message="Product created successfully",
            product=ProductRow.model_validate(product),
        )

    # ----- Update -----

    def update_product(
        self,
        session: Session,
        product_id: str,
        payload: ProductUpdate,
        category_ids: Iterable[str] | None = None,
        uploads: Sequence[UploadedImage] = (),
    ) -> ProductMutationResponse:
        """
        Partial update of a product.

        - Only fields present in the payload change.
        - Category links are replaced wholesale; an absent list clears them.
        - New files are appended after the current highest sort_order. When
          files are uploaded the existing primary image is dropped so the
          first new file becomes the only primary; its stored file is
          deleted once the transaction has committed.
        """
        stored: list[str] = []
        replaced_primary_urls: list[str] = []
        try:
            product = self.repo.get_by_id(session, product_id)
            if product is None:
                raise NotFoundError("Product not found")

            self._store_uploads(uploads, stored)

            for field, value in payload.changes().items():
                setattr(product, field, value)
            product.updated_at = datetime.now(timezone.utc)
            session.add(product)
            session.flush()

            self.repo.replace_categories(session, product.id, clean_category_ids(category_ids))

            if stored:
                replaced_primary_urls = self.repo.delete_primary_images(session, product.id)
                max_sort = self.repo.max_sort_order(session, product.id)
                next_sort = (max_sort if max_sort is not None else -1) + 1
                self.repo.add_images(
                    session,
                    self._image_rows(product.id, stored, first_sort_order=next_sort),
                )

            session.commit()
        except Exception as exc:
            self._abort(session, exc, stored, "update")

        discard_blobs(self.blob_store, replaced_primary_urls)

        session.refresh(product)
        logger.info("Product updated successfully: %s", product.id)
        return ProductMutationResponse(
            message="Product updated successfully",
            product=ProductRow.model_validate(product),
        )

    # ----- Delete -----

    def delete_product(self, session: Session, product_id: str) -> dict[str, str]:
        """
        Delete a product (links and image rows cascade), then its files.

        Image URLs are read inside the same transaction, before the delete.
        """
        try:
            product = self.repo.get_by_id(session, product_id)
            if product is None:
                raise NotFoundError("Product not found")

            image_urls = [
                img.image_url for img in self.repo.list_images_for_product(session, product_id)
            ]
            self.repo.delete_many(session, [product_id])
            session.commit()
        except Exception as exc:
            self._abort(session, exc, [], "delete")

        discard_blobs(self.blob_store, image_urls)
        logger.info("Product deleted successfully: %s", product_id)
        return {"message": "Product deleted successfully"}

    def bulk_delete_products(
        self,
        session: Session,
        product_ids: list[str] | None,
    ) -> BulkDeleteResponse:
        """
        Delete several products in one statement.

        Unknown ids are skipped silently; the response lists the ids that
        were actually deleted.
        """
        if not product_ids:
            raise ValidationError("Product IDs array is required")

        try:
            image_urls = [
                img.image_url
                for img in self.repo.list_images_for_products(session, product_ids)
            ]
            deleted_ids = self.repo.existing_ids(session, product_ids)
            if deleted_ids:
                self.repo.delete_many(session, deleted_ids)
            session.commit()
        except Exception as exc:
            self._abort(session, exc, [], "delete")

        discard_blobs(self.blob_store, image_urls)
        logger.info("%d products deleted successfully", len(deleted_ids))
        return BulkDeleteResponse(
            message=f"{len(deleted_ids)} products deleted successfully",
            deleted_ids=deleted_ids,
        )
