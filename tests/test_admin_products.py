# tests/test_admin_products.py
from types import SimpleNamespace

import pytest
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select
from starlette.datastructures import UploadFile

from app.core.config import get_settings
from app.core.errors import ConflictError, InternalError, ValidationError
from app.models.product import Product, ProductCategory, ProductImage
from app.services.product_service import ProductService

from conftest import PNG_BYTES

settings = get_settings()

URL = "/api/admin/products"
PLACEHOLDER = "/images/placeholder.jpg"


def _png(name: str):
    return ("images", (name, PNG_BYTES, "image/png"))


def _form(**overrides):
    data = {"name": "Desk Lamp", "sku": "LAMP-1", "price": "49.90", "quantity": "7", "inStock": "true"}
    data.update(overrides)
    return data


def _rows(engine, model, product_id):
    with Session(engine) as s:
        return list(s.exec(select(model).where(model.product_id == product_id)).all())


def _images(engine, product_id):
    with Session(engine) as s:
        stmt = (
            select(ProductImage)
            .where(ProductImage.product_id == product_id)
            .order_by(ProductImage.sort_order)
        )
        return [(img.image_url, img.image_type, img.sort_order) for img in s.exec(stmt).all()]


def _stored_files(blob_store):
    if not blob_store.root.exists():
        return []
    return sorted(p.name for p in blob_store.root.iterdir())


def _product_count(engine):
    with Session(engine) as s:
        return len(s.exec(select(Product)).all())


# -------- Create --------


def test_create_without_files_gets_placeholder(client, engine, admin_headers, categories):
    resp = client.post(
        URL,
        data=_form(**{"categories[]": ["premium", " ", "lifestyle"]}),
        headers=admin_headers,
    )

    assert resp.status_code == 201, resp.text
    body = resp.json()
    assert body["message"] == "Product created successfully"
    product = body["product"]
    assert product["id"].startswith("product-")
    assert product["name"] == "Desk Lamp"
    assert product["price"] == pytest.approx(49.90)
    assert product["quantity"] == 7
    assert product["in_stock"] is True
    assert product["low_stock_threshold"] == 5
    assert product["old_price"] is None
    assert product["description"] == ""

    links = _rows(engine, ProductCategory, product["id"])
    assert sorted(link.category_id for link in links) == ["lifestyle", "premium"]
    assert _images(engine, product["id"]) == [(PLACEHOLDER, "primary", 0)]


def test_create_with_files_tags_first_as_primary(client, engine, admin_headers, blob_store):
    resp = client.post(
        URL,
        data=_form(oldPrice="59.90", lowStockThreshold="2", trending="true"),
        files=[_png("front.png"), _png("side.png"), _png("back.png")],
        headers=admin_headers,
    )

    assert resp.status_code == 201, resp.text
    product = resp.json()["product"]
    assert product["old_price"] == pytest.approx(59.90)
    assert product["low_stock_threshold"] == 2
    assert product["trending"] is True

    images = _images(engine, product["id"])
    assert [(kind, order) for _, kind, order in images] == [
        ("primary", 0),
        ("gallery", 1),
        ("gallery", 2),
    ]
    assert images[0][0].startswith("/uploads/products/front-")
    assert images[1][0].startswith("/uploads/products/side-")
    assert len(_stored_files(blob_store)) == 3


def test_create_in_stock_defaults_to_false(client, admin_headers):
    data = _form()
    del data["inStock"]
    resp = client.post(URL, data=data, headers=admin_headers)
    assert resp.status_code == 201
    assert resp.json()["product"]["in_stock"] is False


def test_create_without_name_writes_nothing(client, engine, admin_headers, blob_store):
    data = _form()
    del data["name"]
    resp = client.post(URL, data=data, files=[_png("a.png")], headers=admin_headers)

    assert resp.status_code == 400
    assert resp.json()["detail"] == (
        "Missing required fields: name, sku, price, and quantity are required"
    )
    assert _product_count(engine) == 0
    with Session(engine) as s:
        assert s.exec(select(ProductImage)).all() == []
        assert s.exec(select(ProductCategory)).all() == []
    assert _stored_files(blob_store) == []


def test_create_with_bad_number_is_validation_error(client, engine, admin_headers):
    resp = client.post(URL, data=_form(price="cheap"), headers=admin_headers)
    assert resp.status_code == 400
    assert "price" in resp.json()["detail"]
    assert _product_count(engine) == 0


def test_duplicate_sku_is_conflict_and_removes_uploads(client, engine, admin_headers, blob_store):
    first = client.post(URL, data=_form(), headers=admin_headers)
    assert first.status_code == 201

    resp = client.post(
        URL,
        data=_form(name="Another Lamp"),
        files=[_png("dup1.png"), _png("dup2.png")],
        headers=admin_headers,
    )

    assert resp.status_code == 400
    assert resp.json()["detail"] == "SKU already exists"
    assert _product_count(engine) == 1
    assert _stored_files(blob_store) == []


def test_unknown_category_rolls_back(client, engine, admin_headers, categories, blob_store):
    resp = client.post(
        URL,
        data=_form(**{"categories[]": ["premium", "does-not-exist"]}),
        files=[_png("a.png")],
        headers=admin_headers,
    )

    assert resp.status_code == 400
    assert resp.json()["detail"] == "Unknown category"
    assert _product_count(engine) == 0
    with Session(engine) as s:
        assert s.exec(select(ProductCategory)).all() == []
    assert _stored_files(blob_store) == []


def test_storage_failure_rolls_back_and_cleans_up(client, engine, admin_headers, blob_store, monkeypatch):
    original_save = blob_store.save
    calls = []

    def flaky_save(filename, data, content_type):
        calls.append(filename)
        if len(calls) == 2:
            raise OSError("disk full")
        return original_save(filename, data, content_type)

    monkeypatch.setattr(blob_store, "save", flaky_save)

    resp = client.post(
        URL,
        data=_form(),
        files=[_png("one.png"), _png("two.png")],
        headers=admin_headers,
    )

    assert resp.status_code == 500
    assert resp.json()["detail"] == "Failed to create product"
    assert _product_count(engine) == 0
    assert _stored_files(blob_store) == []


def test_rejects_non_image_upload(client, engine, admin_headers):
    resp = client.post(
        URL,
        data=_form(),
        files=[("images", ("notes.txt", b"hello", "text/plain"))],
        headers=admin_headers,
    )
    assert resp.status_code == 400
    assert resp.json()["detail"] == "Only image files are allowed"
    assert _product_count(engine) == 0


def test_rejects_too_many_files(client, admin_headers):
    files = [_png(f"f{i}.png") for i in range(9)]
    resp = client.post(URL, data=_form(), files=files, headers=admin_headers)
    assert resp.status_code == 400
    assert resp.json()["detail"] == "Too many files (max 8)"


def test_rejects_oversized_file(client, admin_headers):
    big = ("images", ("huge.jpg", b"\xff" * (5 * 1024 * 1024 + 1), "image/jpeg"))
    resp = client.post(URL, data=_form(), files=[big], headers=admin_headers)
    assert resp.status_code == 400
    assert resp.json()["detail"] == "Image too large (max 5MB)"


def test_oversized_file_is_not_read_whole(client, admin_headers, monkeypatch):
    reads = []
    real_read = UploadFile.read

    async def tracking_read(self, size: int = -1) -> bytes:
        reads.append(size)
        return await real_read(self, size)

    monkeypatch.setattr(UploadFile, "read", tracking_read)

    big = ("images", ("huge.jpg", b"\xff" * (settings.MAX_IMAGE_BYTES + 1024), "image/jpeg"))
    resp = client.post(URL, data=_form(), files=[_png("ok.png"), big], headers=admin_headers)

    assert resp.status_code == 400
    assert resp.json()["detail"] == "Image too large (max 5MB)"
    # every read is capped just past the limit
    assert reads
    assert all(size == settings.MAX_IMAGE_BYTES + 1 for size in reads)


def test_create_zero_old_price_is_stored_as_null(client, admin_headers):
    resp = client.post(URL, data=_form(oldPrice="0"), headers=admin_headers)
    assert resp.status_code == 201
    assert resp.json()["product"]["old_price"] is None


def test_create_requires_admin(client, customer_headers):
    assert client.post(URL, data=_form()).status_code == 401
    assert client.post(URL, data=_form(), headers=customer_headers).status_code == 403


# -------- Update --------


@pytest.fixture
def lamp(make_product, categories, blob_store):
    """Existing product with a stored primary image and a gallery image."""
    primary_url = blob_store.save("old.png", PNG_BYTES, "image/png")
    gallery_url = blob_store.save("gallery.png", PNG_BYTES, "image/png")
    return make_product(
        "lamp",
        name="Desk Lamp",
        sku="LAMP-1",
        price=49.9,
        old_price=59.9,
        quantity=7,
        description="Warm light",
        low_stock_threshold=3,
        categories=("premium", "lifestyle"),
        images=((primary_url, "primary"), (gallery_url, "gallery")),
    )


def test_update_only_touches_sent_fields(client, engine, admin_headers, lamp):
    resp = client.put(
        f"{URL}/lamp",
        data={"name": "Brass Lamp", "categories[]": ["premium", "lifestyle"]},
        headers=admin_headers,
    )

    assert resp.status_code == 200, resp.text
    assert resp.json()["message"] == "Product updated successfully"
    product = resp.json()["product"]
    assert product["name"] == "Brass Lamp"
    assert product["sku"] == "LAMP-1"
    assert product["price"] == pytest.approx(49.9)
    assert product["old_price"] == pytest.approx(59.9)
    assert product["quantity"] == 7
    assert product["low_stock_threshold"] == 3
    assert product["in_stock"] is True
    assert product["description"] == "Warm light"


def test_update_empty_description_is_applied(client, admin_headers, lamp):
    resp = client.put(
        f"{URL}/lamp",
        data={"description": "", "oldPrice": "", "inStock": "false"},
        headers=admin_headers,
    )
    product = resp.json()["product"]
    assert product["description"] == ""
    assert product["old_price"] is None
    assert product["in_stock"] is False
    assert product["name"] == "Desk Lamp"


def test_update_zero_old_price_is_stored_as_null(client, engine, admin_headers, lamp):
    resp = client.put(f"{URL}/lamp", data={"oldPrice": "0"}, headers=admin_headers)

    assert resp.status_code == 200
    assert resp.json()["product"]["old_price"] is None
    with Session(engine) as s:
        assert s.get(Product, "lamp").old_price is None


def test_update_blank_name_is_rejected(client, admin_headers, lamp):
    resp = client.put(f"{URL}/lamp", data={"name": "   "}, headers=admin_headers)
    assert resp.status_code == 400


def test_update_without_categories_clears_links(client, engine, admin_headers, lamp):
    resp = client.put(f"{URL}/lamp", data={"price": "39.90"}, headers=admin_headers)
    assert resp.status_code == 200
    assert _rows(engine, ProductCategory, "lamp") == []


def test_update_replaces_category_set(client, engine, admin_headers, lamp):
    resp = client.put(
        f"{URL}/lamp",
        data={"categories[]": ["limited"]},
        headers=admin_headers,
    )
    assert resp.status_code == 200
    assert [link.category_id for link in _rows(engine, ProductCategory, "lamp")] == ["limited"]


def test_update_with_files_replaces_primary_and_appends(client, engine, admin_headers, lamp, blob_store):
    old_gallery = _images(engine, "lamp")[1][0]

    resp = client.put(
        f"{URL}/lamp",
        data={"categories[]": ["premium"]},
        files=[_png("new-front.png"), _png("new-side.png")],
        headers=admin_headers,
    )

    assert resp.status_code == 200, resp.text
    images = _images(engine, "lamp")
    assert [(kind, order) for _, kind, order in images] == [
        ("gallery", 1),
        ("primary", 2),
        ("gallery", 3),
    ]
    assert images[0][0] == old_gallery
    assert images[1][0].startswith("/uploads/products/new-front-")
    assert [kind for _, kind, _ in images].count("primary") == 1


def test_update_deletes_replaced_primary_file(client, engine, admin_headers, lamp, blob_store):
    old_primary = _images(engine, "lamp")[0][0]
    assert blob_store.path_for(old_primary).exists()

    resp = client.put(
        f"{URL}/lamp",
        data={"categories[]": ["premium"]},
        files=[_png("replacement.png")],
        headers=admin_headers,
    )

    assert resp.status_code == 200
    # The replaced primary image's file is removed, not left orphaned
    assert not blob_store.path_for(old_primary).exists()
    assert len(_stored_files(blob_store)) == 2


def test_update_missing_product_is_not_found(client, admin_headers, blob_store):
    resp = client.put(
        f"{URL}/ghost",
        data={"name": "x"},
        files=[_png("a.png")],
        headers=admin_headers,
    )
    assert resp.status_code == 404
    assert resp.json()["detail"] == "Product not found"
    assert _stored_files(blob_store) == []


def test_update_to_existing_sku_is_conflict(client, engine, admin_headers, lamp, make_product, blob_store):
    make_product("chair", sku="CHAIR-1")
    files_before = _stored_files(blob_store)

    resp = client.put(
        f"{URL}/lamp",
        data={"sku": "CHAIR-1", "categories[]": ["premium"]},
        files=[_png("x.png")],
        headers=admin_headers,
    )

    assert resp.status_code == 400
    assert resp.json()["detail"] == "SKU already exists"
    assert _stored_files(blob_store) == files_before
    # nothing from the failed request stuck
    with Session(engine) as s:
        assert s.get(Product, "lamp").sku == "LAMP-1"
    assert len(_rows(engine, ProductCategory, "lamp")) == 2


# -------- Delete --------


def test_delete_cascades_and_removes_files(client, engine, admin_headers, lamp, blob_store):
    urls = [url for url, _, _ in _images(engine, "lamp")]

    resp = client.delete(f"{URL}/lamp", headers=admin_headers)

    assert resp.status_code == 200
    assert resp.json() == {"message": "Product deleted successfully"}
    with Session(engine) as s:
        assert s.get(Product, "lamp") is None
    assert _rows(engine, ProductCategory, "lamp") == []
    assert _rows(engine, ProductImage, "lamp") == []
    assert all(not blob_store.path_for(url).exists() for url in urls)


def test_delete_ignores_file_errors(client, engine, admin_headers, lamp, blob_store, monkeypatch):
    def failing_delete(url):
        raise OSError("permission denied")

    monkeypatch.setattr(blob_store, "delete", failing_delete)

    resp = client.delete(f"{URL}/lamp", headers=admin_headers)
    assert resp.status_code == 200
    with Session(engine) as s:
        assert s.get(Product, "lamp") is None


def test_delete_missing_product(client, admin_headers):
    resp = client.delete(f"{URL}/ghost", headers=admin_headers)
    assert resp.status_code == 404
    assert resp.json()["detail"] == "Product not found"


def test_bulk_delete_reports_only_existing_ids(client, engine, admin_headers, lamp, make_product, blob_store):
    make_product("chair")
    lamp_urls = [url for url, _, _ in _images(engine, "lamp")]

    resp = client.request(
        "DELETE",
        URL,
        json={"productIds": ["lamp", "missing"]},
        headers=admin_headers,
    )

    assert resp.status_code == 200
    assert resp.json() == {
        "message": "1 products deleted successfully",
        "deletedIds": ["lamp"],
    }
    with Session(engine) as s:
        assert s.get(Product, "lamp") is None
        assert s.get(Product, "chair") is not None
    assert _rows(engine, ProductImage, "lamp") == []
    assert all(not blob_store.path_for(url).exists() for url in lamp_urls)


@pytest.mark.parametrize("body", [{"productIds": []}, {"productIds": None}, {}])
def test_bulk_delete_requires_ids(client, admin_headers, body):
    resp = client.request("DELETE", URL, json=body, headers=admin_headers)
    assert resp.status_code == 400
    assert resp.json()["detail"] == "Product IDs array is required"


def test_bulk_delete_requires_admin(client, customer_headers):
    resp = client.request("DELETE", URL, json={"productIds": ["x"]}, headers=customer_headers)
    assert resp.status_code == 403


# -------- Constraint error mapping --------


class _PostgresError(Exception):
    """Shape of a psycopg2 error: message, SQLSTATE and diagnostics."""

    def __init__(self, message: str, pgcode: str, constraint_name: str):
        super().__init__(message)
        self.pgcode = pgcode
        self.diag = SimpleNamespace(constraint_name=constraint_name)


def _integrity_error(orig: Exception) -> IntegrityError:
    return IntegrityError("INSERT INTO ...", {}, orig)


def test_postgres_fk_violation_mentioning_sku_is_unknown_category():
    orig = _PostgresError(
        'insert or update on table "product_categories" violates foreign key constraint '
        '"product_categories_category_id_fkey"\n'
        'DETAIL:  Key (category_id)=(sku-bundle) is not present in table "categories".',
        "23503",
        "product_categories_category_id_fkey",
    )
    error = ProductService._translate_integrity_error(_integrity_error(orig), "create")
    assert isinstance(error, ValidationError)
    assert error.detail == "Unknown category"


def test_postgres_unique_sku_violation_is_conflict():
    orig = _PostgresError(
        'duplicate key value violates unique constraint "products_sku_key"',
        "23505",
        "products_sku_key",
    )
    error = ProductService._translate_integrity_error(_integrity_error(orig), "update")
    assert isinstance(error, ConflictError)
    assert error.detail == "SKU already exists"


def test_postgres_other_violation_is_internal_error():
    orig = _PostgresError("null value in column", "23502", "")
    error = ProductService._translate_integrity_error(_integrity_error(orig), "create")
    assert isinstance(error, InternalError)
    assert error.detail == "Failed to create product"


def test_sqlite_messages_are_matched_by_text():
    fk = Exception("FOREIGN KEY constraint failed")
    unique = Exception("UNIQUE constraint failed: products.sku")
    assert isinstance(
        ProductService._translate_integrity_error(_integrity_error(fk), "create"),
        ValidationError,
    )
    assert isinstance(
        ProductService._translate_integrity_error(_integrity_error(unique), "create"),
        ConflictError,
    )
