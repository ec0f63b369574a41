# app/routers/products.py
from fastapi import APIRouter, Depends, Query
from sqlmodel import Session

from app.database import get_session
from app.repositories.catalog_query import CatalogFilters
from app.repositories.product_repo import ProductRepository
from app.schemas.product import CategoryRead, ProductDetail, ProductListItem
from app.services.catalog_service import CatalogService

router = APIRouter(tags=["Products"])

repo = ProductRepository()
service = CatalogService(repo)


# -------- Public endpoints --------


@router.get("/products", response_model=list[ProductListItem])
def list_products(
    session: Session = Depends(get_session),
    search: str | None = None,
    category: str | None = None,
    trending: str | None = None,
    best_seller: str | None = None,
    new_arrival: str | None = None,
    limit: int = Query(20, ge=0),
    offset: int = Query(0, ge=0),
):
    """
    List in-stock products, newest first.

    - `search` matches name or description (case-insensitive substring).
    - `trending` / `best_seller` / `new_arrival` filter only when "true".
    - `category` is applied to the fetched page, so a filtered page may
      contain fewer than `limit` items.
    """
    filters = CatalogFilters(
        search=search,
        category=category,
        trending=trending,
        best_seller=best_seller,
        new_arrival=new_arrival,
        limit=limit,
        offset=offset,
    )
    return service.list_products(session, filters)


@router.get("/products/{product_id}", response_model=ProductDetail)
def get_product(
    product_id: str,
    session: Session = Depends(get_session),
):
    """
    Get a single product by id (any stock state).
    """
    return service.get_product(session, product_id)


@router.get("/categories", response_model=list[CategoryRead])
def list_categories(session: Session = Depends(get_session)):
    """
    List all categories ordered by name.
    """
    return service.list_categories(session)
