# app/repositories/product_repo.py
from collections.abc import Sequence

from sqlalchemy import ColumnElement, delete, func
from sqlmodel import Session, col, select

from app.models.product import Category, Product, ProductCategory, ProductImage


class ProductRepository:
    """
    Data access layer for Product, ProductCategory & ProductImage.

    - Pure DB operations (queries + staged writes).
    - No FastAPI, no business logic.
    - No commits here: create/update/delete span several tables and the
      service owns the transaction (session.commit / session.rollback).
    """

    # ----- Products -----

    def get_by_id(self, session: Session, product_id: str) -> Product | None:
        return session.get(Product, product_id)

    def list_page(
        self,
        session: Session,
        predicates: Sequence[ColumnElement[bool]],
        limit: int = 20,
        offset: int = 0,
    ) -> list[Product]:
        """
        Newest first; id breaks ties between equal timestamps so paging
        over the same data always yields the same order.
        """
        stmt = (
            select(Product)
            .where(*predicates)
            .order_by(col(Product.created_at).desc(), col(Product.id).desc())
            .offset(offset)
            .limit(limit)
        )
        return list(session.exec(stmt).all())

    def count(self, session: Session, predicates: Sequence[ColumnElement[bool]]) -> int:
        stmt = select(func.count()).select_from(Product).where(*predicates)
        value = session.exec(stmt).one()
        return int(value or 0)

    def add(self, session: Session, product: Product) -> Product:
        """Stage a new product and flush so dependent rows can reference it."""
        session.add(product)
        session.flush()
        return product

    def existing_ids(self, session: Session, product_ids: Sequence[str]) -> list[str]:
        stmt = select(Product.id).where(col(Product.id).in_(product_ids))
        return list(session.exec(stmt).all())

    def delete_many(self, session: Session, product_ids: Sequence[str]) -> None:
        """
        Delete product rows in one statement.

        Category links and image rows go with them through ON DELETE CASCADE.
        """
        session.exec(delete(Product).where(col(Product.id).in_(product_ids)))

    # ----- Categories -----

    def list_categories(self, session: Session) -> list[Category]:
        stmt = select(Category).order_by(col(Category.name))
        return list(session.exec(stmt).all())

    def list_category_ids_for_product(self, session: Session, product_id: str) -> list[str]:
        stmt = (
            select(ProductCategory.category_id)
            .where(ProductCategory.product_id == product_id)
            .order_by(col(ProductCategory.category_id))
        )
        return list(session.exec(stmt).all())

    def replace_categories(
        self,
        session: Session,
        product_id: str,
        category_ids: Sequence[str],
    ) -> None:
        """Drop every link of the product, then insert the given set."""
        session.exec(
            delete(ProductCategory).where(col(ProductCategory.product_id) == product_id)
        )
        for category_id in dict.fromkeys(category_ids):
            session.add(ProductCategory(product_id=product_id, category_id=category_id))
        session.flush()

    # ----- Product images -----

    def list_images_for_product(self, session: Session, product_id: str) -> list[ProductImage]:
        stmt = (
            select(ProductImage)
            .where(ProductImage.product_id == product_id)
            .order_by(col(ProductImage.sort_order), col(ProductImage.id))
        )
        return list(session.exec(stmt).all())

    def list_images_for_products(
        self,
        session: Session,
        product_ids: Sequence[str],
    ) -> list[ProductImage]:
        stmt = select(ProductImage).where(col(ProductImage.product_id).in_(product_ids))
        return list(session.exec(stmt).all())

    def max_sort_order(self, session: Session, product_id: str) -> int | None:
        stmt = select(func.max(ProductImage.sort_order)).where(
            ProductImage.product_id == product_id
        )
        return session.exec(stmt).one()

    def add_images(self, session: Session, images: Sequence[ProductImage]) -> None:
        session.add_all(images)
        session.flush()

    def delete_primary_images(self, session: Session, product_id: str) -> list[str]:
        """
        Remove the product's primary image rows.

        Returns:
            URLs of the removed rows, so the caller can clean up their files.
        """
        primaries = [
            image
            for image in self.list_images_for_product(session, product_id)
            if image.image_type == "primary"
        ]
        for image in primaries:
            session.delete(image)
        session.flush()
        return [image.image_url for image in primaries]
