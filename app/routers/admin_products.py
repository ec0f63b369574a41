# app/routers/admin_products.py
import re
from pathlib import PurePosixPath

from fastapi import APIRouter, Depends, Query, Request, status
from pydantic import BaseModel
from pydantic import ValidationError as SchemaValidationError
from sqlmodel import Session
from starlette.concurrency import run_in_threadpool
from starlette.datastructures import UploadFile

from app.core.auth import require_admin
from app.core.config import get_settings
from app.core.errors import ValidationError
from app.core.storage_utils import BlobStore, get_blob_store
from app.database import get_session
from app.repositories.catalog_query import CatalogFilters
from app.repositories.product_repo import ProductRepository
from app.schemas.product import (
    AdminProductPage,
    BulkDeleteRequest,
    BulkDeleteResponse,
    ProductCreate,
    ProductMutationResponse,
    ProductUpdate,
    UploadedImage,
)
from app.services.catalog_service import CatalogService
from app.services.product_service import ProductService

settings = get_settings()

router = APIRouter(
    prefix="/admin/products",
    tags=["Admin Products"],
    dependencies=[Depends(require_admin)],
)

repo = ProductRepository()
catalog_service = CatalogService(repo)

# Same rule for extension and MIME type
ALLOWED_IMAGE_TYPES = re.compile(r"jpeg|jpg|png|gif|webp")

CATEGORY_FIELDS = ("categories[]", "categories")
IMAGE_FIELD = "images"


def get_product_service(blob_store: BlobStore = Depends(get_blob_store)) -> ProductService:
    return ProductService(repo, blob_store)


# -------- Form helpers --------


def _parse_form_fields(schema: type[BaseModel], fields: dict[str, str]):
    try:
        return schema.model_validate(fields)
    except SchemaValidationError as exc:
        error = exc.errors()[0]
        field = ".".join(str(part) for part in error["loc"]) or "form"
        raise ValidationError(f"Invalid value for {field}: {error['msg']}")


async def _read_uploads(files: list[UploadFile]) -> list[UploadedImage]:
    """
    Validate and read uploaded images.

    Rules: at most MAX_UPLOAD_FILES files, each at most MAX_IMAGE_BYTES,
    with an image extension AND an image MIME type.
    """
    if len(files) > settings.MAX_UPLOAD_FILES:
        raise ValidationError(f"Too many files (max {settings.MAX_UPLOAD_FILES})")

    uploads: list[UploadedImage] = []
    for upload in files:
        ext = PurePosixPath(upload.filename or "").suffix.lower().lstrip(".")
        content_type = upload.content_type or ""
        if not ALLOWED_IMAGE_TYPES.search(ext) or not ALLOWED_IMAGE_TYPES.search(content_type):
            raise ValidationError("Only image files are allowed")

        # Never buffer more than one byte past the limit
        too_large = upload.size is not None and upload.size > settings.MAX_IMAGE_BYTES
        data = b"" if too_large else await upload.read(settings.MAX_IMAGE_BYTES + 1)
        if too_large or len(data) > settings.MAX_IMAGE_BYTES:
            max_mb = settings.MAX_IMAGE_BYTES // (1024 * 1024)
            raise ValidationError(f"Image too large (max {max_mb}MB)")

        uploads.append(
            UploadedImage(filename=upload.filename, content_type=content_type, data=data)
        )
    return uploads


async def _read_product_form(request: Request, schema: type[BaseModel]):
    """
    Split a multipart product form into (payload, category ids, images).

    Only keys actually present in the form end up set on the payload.
    """
    form = await request.form()

    fields: dict[str, str] = {}
    for key, value in form.multi_items():
        if isinstance(value, str) and key not in CATEGORY_FIELDS:
            fields[key] = value

    category_ids = [
        value
        for key in CATEGORY_FIELDS
        for value in form.getlist(key)
        if isinstance(value, str)
    ]
    files = [
        value
        for value in form.getlist(IMAGE_FIELD)
        if isinstance(value, UploadFile) and value.filename
    ]

    payload = _parse_form_fields(schema, fields)
    uploads = await _read_uploads(files)
    return payload, category_ids, uploads


# -------- Admin endpoints --------


@router.get("", response_model=AdminProductPage)
def list_admin_products(
    session: Session = Depends(get_session),
    search: str | None = None,
    category: str | None = None,
    status_filter: str | None = Query(None, alias="status"),
    limit: int = Query(20, ge=0),
    offset: int = Query(0, ge=0),
):
    """
    Back-office listing with total count and derived status.

    Query params:
      - search: name or SKU substring
      - status: active | out-of-stock | draft
      - category, limit, offset
    """
    filters = CatalogFilters(
        search=search,
        category=category,
        status=status_filter,
        limit=limit,
        offset=offset,
    )
    return catalog_service.list_admin_products(session, filters)


@router.post(
    "",
    response_model=ProductMutationResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_product(
    request: Request,
    session: Session = Depends(get_session),
    service: ProductService = Depends(get_product_service),
):
    """
    Create a product (multipart/form-data).

    Fields: name, sku, price, quantity (required), oldPrice, description,
    inStock, lowStockThreshold, trending, best_seller, new_arrival,
    categories[] (repeatable), images (up to 8 files, 5MB each).
    """
    payload, category_ids, uploads = await _read_product_form(request, ProductCreate)
    return await run_in_threadpool(
        service.create_product, session, payload, category_ids, uploads
    )


@router.put("/{product_id}", response_model=ProductMutationResponse)
async def update_product(
    product_id: str,
    request: Request,
    session: Session = Depends(get_session),
    service: ProductService = Depends(get_product_service),
):
    """
    Partially update a product (multipart/form-data).

    - Omitted fields keep their value; categories[] replaces all links.
    - Uploaded images are appended, the first one becoming the primary.
    """
    payload, category_ids, uploads = await _read_product_form(request, ProductUpdate)
    return await run_in_threadpool(
        service.update_product, session, product_id, payload, category_ids, uploads
    )


@router.delete("/{product_id}")
def delete_product(
    product_id: str,
    session: Session = Depends(get_session),
    service: ProductService = Depends(get_product_service),
) -> dict[str, str]:
    """
    Delete a product, its category links, image rows and image files.
    """
    return service.delete_product(session, product_id)


@router.delete("", response_model=BulkDeleteResponse)
def bulk_delete_products(
    payload: BulkDeleteRequest,
    session: Session = Depends(get_session),
    service: ProductService = Depends(get_product_service),
):
    """
    Delete several products: body {"productIds": [...]}.

    Returns the ids that were actually deleted (unknown ids are skipped).
    """
    return service.bulk_delete_products(session, payload.product_ids)
