# app/services/catalog_service.py
import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session

from app.core.config import get_settings
from app.core.errors import NotFoundError
from app.models.product import Category, Product, ProductImage, derive_status
from app.repositories.catalog_query import (
    CatalogFilters,
    admin_predicates,
    public_predicates,
)
from app.repositories.product_repo import ProductRepository
from app.schemas.product import (
    AdminProduct,
    AdminProductPage,
    ImageSet,
    Pagination,
    ProductDetail,
    ProductImageRead,
    ProductListItem,
)

settings = get_settings()
logger = logging.getLogger(__name__)


class CatalogService:
    """
    Read side of the catalog.

    Responsibilities:
      - turn listing filters into SQL predicates and run the paged query
      - enrich every row with its categories and images
      - shape storefront / product page / back-office views

    Known behaviour: the category filter is applied in memory AFTER
    pagination (membership is only known once rows are enriched), so a
    filtered page can hold fewer than `limit` products even when more
    matches exist further on.
    """

    def __init__(self, repo: ProductRepository):
        self.repo = repo

    # ----- Helpers -----

    def _enrich(
        self,
        session: Session,
        product: Product,
    ) -> tuple[list[str], list[ProductImage]]:
        """
        Fetch categories and images of one product.

        A failing side query degrades to an empty list instead of failing
        the whole listing.
        """
        try:
            categories = self.repo.list_category_ids_for_product(session, product.id)
        except SQLAlchemyError:
            logger.exception("Error fetching categories for product %s", product.id)
            session.rollback()
            categories = []

        try:
            images = self.repo.list_images_for_product(session, product.id)
        except SQLAlchemyError:
            logger.exception("Error fetching images for product %s", product.id)
            session.rollback()
            images = []

        return categories, images

    @staticmethod
    def _primary_url(images: list[ProductImage]) -> str | None:
        return next((img.image_url for img in images if img.image_type == "primary"), None)

    @classmethod
    def _image_set(cls, images: list[ProductImage]) -> ImageSet:
        return ImageSet(
            primary=cls._primary_url(images) or "",
            gallery=[img.image_url for img in images if img.image_url],
        )

    @staticmethod
    def _image_reads(images: list[ProductImage]) -> list[ProductImageRead]:
        return [
            ProductImageRead(
                image_url=img.image_url,
                image_type=img.image_type,
                sort_order=img.sort_order,
            )
            for img in images
        ]

    # ----- Storefront -----

    def list_products(self, session: Session, filters: CatalogFilters) -> list[ProductListItem]:
        products = self.repo.list_page(
            session,
            public_predicates(filters),
            limit=filters.limit,
            offset=filters.offset,
        )

        items: list[ProductListItem] = []
        for product in products:
            categories, images = self._enrich(session, product)
            items.append(
                ProductListItem(
                    id=product.id,
                    name=product.name,
                    price=float(product.price or 0),
                    old_price=float(product.old_price) if product.old_price else None,
                    description=product.description,
                    categories=categories,
                    in_stock=product.in_stock,
                    sku=product.sku,
                    quantity=product.quantity or 0,
                    trending=product.trending or False,
                    best_seller=product.best_seller or False,
                    new_arrival=product.new_arrival or False,
                    product_images=self._image_reads(images),
                    image_url=self._primary_url(images) or settings.PLACEHOLDER_IMAGE_URL,
                )
            )

        if filters.category:
            items = [item for item in items if filters.category in item.categories]

        logger.info("Returning %d products", len(items))
        return items

    def get_product(self, session: Session, product_id: str) -> ProductDetail:
        product = self.repo.get_by_id(session, product_id)
        if product is None:
            raise NotFoundError("Product not found")

        categories = self.repo.list_category_ids_for_product(session, product.id)
        images = self.repo.list_images_for_product(session, product.id)

        return ProductDetail(
            id=product.id,
            name=product.name,
            price=float(product.price or 0),
            old_price=float(product.old_price) if product.old_price else None,
            description=product.description,
            categories=categories,
            in_stock=product.in_stock,
            sku=product.sku,
            quantity=product.quantity or 0,
            trending=product.trending or False,
            best_seller=product.best_seller or False,
            new_arrival=product.new_arrival or False,
            product_images=self._image_reads(images),
            images=self._image_set(images),
        )

    def list_categories(self, session: Session) -> list[Category]:
        return self.repo.list_categories(session)

    # ----- Back office -----

    def list_admin_products(self, session: Session, filters: CatalogFilters) -> AdminProductPage:
        """
        Paged back-office listing.

        `total` counts the SQL-filtered rows (search/status) without
        pagination; like the storefront, the category filter only trims
        the returned page.
        """
        predicates = admin_predicates(filters)
        products = self.repo.list_page(
            session,
            predicates,
            limit=filters.limit,
            offset=filters.offset,
        )
        total = self.repo.count(session, predicates)

        rows: list[AdminProduct] = []
        for product in products:
            categories, images = self._enrich(session, product)
            rows.append(
                AdminProduct(
                    id=product.id,
                    name=product.name,
                    price=float(product.price or 0),
                    old_price=float(product.old_price) if product.old_price else None,
                    description=product.description,
                    categories=categories,
                    in_stock=product.in_stock,
                    sku=product.sku,
                    quantity=product.quantity or 0,
                    low_stock_threshold=product.low_stock_threshold,
                    trending=product.trending or False,
                    best_seller=product.best_seller or False,
                    new_arrival=product.new_arrival or False,
                    images=self._image_set(images),
                    status=derive_status(product),
                )
            )

        if filters.category:
            rows = [row for row in rows if filters.category in row.categories]

        return AdminProductPage(
            products=rows,
            pagination=Pagination(
                total=total,
                limit=filters.limit,
                offset=filters.offset,
                has_more=filters.offset + filters.limit < total,
            ),
        )
