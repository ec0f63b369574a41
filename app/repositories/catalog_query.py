# app/repositories/catalog_query.py
"""
Filter representation for catalog listings.

A listing request is turned into an ordered list of SQLAlchemy predicates.
Each predicate carries its own bound parameters, so user input never ends
up in statement text; the repository simply renders them with
`select(Product).where(*predicates)`.
"""
from dataclasses import dataclass

from sqlalchemy import ColumnElement, false, or_, true
from sqlmodel import col

from app.models.product import Product

# Values of ?status= understood by the admin listing
STATUS_ACTIVE = "active"
STATUS_OUT_OF_STOCK = "out-of-stock"
STATUS_DRAFT = "draft"


@dataclass
class CatalogFilters:
    """
    Raw listing filters as received from the query string.

    Boolean flags stay strings on purpose: only the exact value "true"
    turns a filter on, anything else (absent, "false", "1") is ignored.
    """

    search: str | None = None
    category: str | None = None
    trending: str | None = None
    best_seller: str | None = None
    new_arrival: str | None = None
    status: str | None = None
    limit: int = 20
    offset: int = 0


def _search_term(search: str) -> str:
    return f"%{search}%"


def _flag_predicates(filters: CatalogFilters) -> list[ColumnElement[bool]]:
    predicates: list[ColumnElement[bool]] = []
    if filters.trending == "true":
        predicates.append(col(Product.trending) == true())
    if filters.best_seller == "true":
        predicates.append(col(Product.best_seller) == true())
    if filters.new_arrival == "true":
        predicates.append(col(Product.new_arrival) == true())
    return predicates


def status_predicates(status: str | None) -> list[ColumnElement[bool]]:
    """
    Map an admin status filter to predicates.

    Mirrors `derive_status`: active needs stock on hand AND in_stock,
    out-of-stock is quantity <= 0, draft is NOT in_stock. Unknown
    values add no constraint.
    """
    if status == STATUS_ACTIVE:
        return [col(Product.in_stock) == true(), col(Product.quantity) > 0]
    if status == STATUS_OUT_OF_STOCK:
        return [col(Product.quantity) <= 0]
    if status == STATUS_DRAFT:
        return [col(Product.in_stock) == false()]
    return []


def public_predicates(filters: CatalogFilters) -> list[ColumnElement[bool]]:
    """
    Storefront listing: only in-stock products, search on name/description.
    """
    predicates: list[ColumnElement[bool]] = [col(Product.in_stock) == true()]

    if filters.search:
        term = _search_term(filters.search)
        predicates.append(
            or_(col(Product.name).ilike(term), col(Product.description).ilike(term))
        )

    predicates.extend(_flag_predicates(filters))
    return predicates


def admin_predicates(filters: CatalogFilters) -> list[ColumnElement[bool]]:
    """
    Back-office listing: no default scope, search on name/SKU, status filter.
    """
    predicates: list[ColumnElement[bool]] = []

    if filters.search:
        term = _search_term(filters.search)
        predicates.append(
            or_(col(Product.name).ilike(term), col(Product.sku).ilike(term))
        )

    predicates.extend(status_predicates(filters.status))
    return predicates
