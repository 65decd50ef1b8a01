"""Tests for product endpoints under the approval gate."""

import pytest
from httpx import AsyncClient
from sqlalchemy import func, select

from goagri.models.activity_log import ActivityLog
from goagri.models.product import Product


async def _log_count(db_session) -> int:
    return await db_session.scalar(select(func.count()).select_from(ActivityLog))


@pytest.mark.integration
@pytest.mark.asyncio
class TestProductApprovalScenario:

    async def test_admin_create_then_superadmin_approves(
        self, client: AsyncClient, admin_headers, superadmin_headers, category, fetch
    ):
        created = await client.post(
            "/api/products",
            json={"name": "Urea 50kg", "price": 1200, "category_id": category.id},
            headers=admin_headers,
        )
        assert created.status_code == 201
        body = created.json()
        assert body["success"] is True
        assert body["requires_approval"] is True
        assert body["message"] == "Product created and pending approval"
        assert body["product"]["active"] is False
        product_id = body["product"]["id"]

        listing = await client.get("/api/products")
        assert listing.json()["items"] == []

        pending = await client.get("/api/activity-logs/pending", headers=superadmin_headers)
        assert pending.status_code == 200
        assert pending.json()["count"] == 1
        [entry] = pending.json()["data"]
        assert entry["action"] == "CREATE_PRODUCT"
        assert entry["status"] == "PENDING"
        assert entry["entity_id"] == product_id

        approved = await client.post(
            f"/api/activity-logs/{entry['id']}/approve", headers=superadmin_headers
        )
        assert approved.status_code == 200
        assert approved.json()["data"]["status"] == "APPROVED"
        assert approved.json()["data"]["reviewed_by_name"] == "Super Admin"

        assert (await fetch(Product, product_id)).active is True
        listing = await client.get("/api/products")
        assert [p["name"] for p in listing.json()["items"]] == ["Urea 50kg"]

    async def test_admin_price_change_rejected(
        self, client: AsyncClient, admin_headers, superadmin_headers, product, db_session, fetch
    ):
        response = await client.put(
            f"/api/products/{product.id}", json={"price": 150}, headers=admin_headers
        )
        assert response.status_code == 200
        assert response.json()["product"]["price"] == 100
        assert (await fetch(Product, product.id)).price == 100

        log = await db_session.scalar(
            select(ActivityLog).where(ActivityLog.entity_id == product.id)
        )
        assert log.changes["before"]["price"] == 100
        assert log.changes["after"] == {"price": 150.0}

        rejected = await client.post(
            f"/api/activity-logs/{log.id}/reject", headers=superadmin_headers
        )
        assert rejected.status_code == 200
        assert rejected.json()["data"]["status"] == "REJECTED"
        assert (await fetch(Product, product.id)).price == 100


@pytest.mark.integration
@pytest.mark.asyncio
class TestCreateProduct:

    async def test_superadmin_create_is_live(
        self, client: AsyncClient, superadmin_headers, category, db_session, broadcaster
    ):
        response = await client.post(
            "/api/products",
            json={
                "name": "Maize Seed H614",
                "price": 450,
                "category_id": category.id,
                "images": "https://cdn.goagri.test/a.jpg, https://cdn.goagri.test/b.jpg",
            },
            headers=superadmin_headers,
        )

        assert response.status_code == 201
        product = response.json()["product"]
        assert product["active"] is True
        assert product["images"] == [
            "https://cdn.goagri.test/a.jpg",
            "https://cdn.goagri.test/b.jpg",
        ]
        log = await db_session.scalar(select(ActivityLog))
        assert log.status == "AUTO_APPROVED"
        assert log.description == 'Super Admin created a new product: "Maize Seed H614"'
        assert broadcaster.names == ["product.created"]

    async def test_missing_category_is_bad_request(
        self, client: AsyncClient, superadmin_headers, db_session
    ):
        response = await client.post(
            "/api/products",
            json={
                "name": "Orphan",
                "price": 1,
                "category_id": "5b5b5b5b-0000-4000-8000-000000000000",
            },
            headers=superadmin_headers,
        )

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "INVALID_CATEGORY"
        assert await _log_count(db_session) == 0

    async def test_malformed_category_is_bad_request(
        self, client: AsyncClient, superadmin_headers
    ):
        response = await client.post(
            "/api/products",
            json={"name": "Orphan", "price": 1, "category_id": "fertilizer"},
            headers=superadmin_headers,
        )
        assert response.status_code == 400

    async def test_duplicate_name_conflicts(
        self, client: AsyncClient, admin_headers, product, category, db_session
    ):
        response = await client.post(
            "/api/products",
            json={"name": product.name, "price": 5, "category_id": category.id},
            headers=admin_headers,
        )

        assert response.status_code == 409
        assert await _log_count(db_session) == 0

    async def test_non_http_image_is_rejected(
        self, client: AsyncClient, superadmin_headers, category
    ):
        response = await client.post(
            "/api/products",
            json={
                "name": "Hoe",
                "price": 10,
                "category_id": category.id,
                "images": ["ftp://files/hoe.jpg"],
            },
            headers=superadmin_headers,
        )
        assert response.status_code == 422

    async def test_negative_price_is_rejected(
        self, client: AsyncClient, superadmin_headers, category
    ):
        response = await client.post(
            "/api/products",
            json={"name": "Hoe", "price": -1, "category_id": category.id},
            headers=superadmin_headers,
        )
        assert response.status_code == 422


@pytest.mark.integration
@pytest.mark.asyncio
class TestUpdateAndDeleteProduct:

    async def test_superadmin_update_is_applied(
        self, client: AsyncClient, superadmin_headers, product, fetch, broadcaster
    ):
        response = await client.patch(
            f"/api/products/{product.id}",
            json={"price": 120, "stock": 10},
            headers=superadmin_headers,
        )

        assert response.status_code == 200
        body = response.json()
        assert body["requires_approval"] is False
        assert body["product"]["price"] == 120
        stored = await fetch(Product, product.id)
        assert (stored.price, stored.stock) == (120, 10)
        assert broadcaster.last("product.updated")["price"] == 120

    async def test_update_to_unknown_category(
        self, client: AsyncClient, superadmin_headers, product
    ):
        response = await client.patch(
            f"/api/products/{product.id}",
            json={"category_id": "5b5b5b5b-0000-4000-8000-000000000000"},
            headers=superadmin_headers,
        )
        assert response.status_code == 400

    async def test_admin_delete_then_reject_restores(
        self, client: AsyncClient, admin_headers, superadmin_headers, product, db_session, fetch
    ):
        original = await fetch(Product, product.id)
        before = {c: getattr(original, c) for c in Product.MUTABLE_FIELDS}

        response = await client.delete(f"/api/products/{product.id}", headers=admin_headers)
        assert response.status_code == 200
        assert response.json()["product"]["active"] is False
        assert (await fetch(Product, product.id)).active is False

        listing = await client.get("/api/products")
        assert listing.json()["total"] == 0

        log = await db_session.scalar(
            select(ActivityLog).where(ActivityLog.action == "DELETE_PRODUCT")
        )
        await client.post(f"/api/activity-logs/{log.id}/reject", headers=superadmin_headers)

        restored = await fetch(Product, product.id)
        assert {c: getattr(restored, c) for c in Product.MUTABLE_FIELDS} == before

    async def test_admin_delete_then_approve_removes(
        self, client: AsyncClient, admin_headers, superadmin_headers, product, db_session, fetch
    ):
        await client.delete(f"/api/products/{product.id}", headers=admin_headers)
        log = await db_session.scalar(
            select(ActivityLog).where(ActivityLog.action == "DELETE_PRODUCT")
        )

        response = await client.post(
            f"/api/activity-logs/{log.id}/approve", headers=superadmin_headers
        )

        assert response.status_code == 200
        assert await fetch(Product, product.id) is None

    async def test_superadmin_delete_is_physical(
        self, client: AsyncClient, superadmin_headers, product, fetch, broadcaster
    ):
        response = await client.delete(
            f"/api/products/{product.id}", headers=superadmin_headers
        )

        assert response.status_code == 200
        assert response.json()["product"] is None
        assert await fetch(Product, product.id) is None
        assert broadcaster.names == ["product.deleted"]

    async def test_rejecting_stale_delete_keeps_superadmin_delete(
        self, client: AsyncClient, admin_headers, superadmin_headers, product, db_session, fetch
    ):
        pending = await client.delete(f"/api/products/{product.id}", headers=admin_headers)
        assert pending.json()["requires_approval"] is True
        final = await client.delete(f"/api/products/{product.id}", headers=superadmin_headers)
        assert final.status_code == 200

        log = await db_session.scalar(
            select(ActivityLog).where(
                ActivityLog.action == "DELETE_PRODUCT", ActivityLog.status == "PENDING"
            )
        )
        response = await client.post(
            f"/api/activity-logs/{log.id}/reject", headers=superadmin_headers
        )

        assert response.status_code == 200
        assert response.json()["data"]["status"] == "REJECTED"
        assert await fetch(Product, product.id) is None


@pytest.mark.integration
@pytest.mark.asyncio
class TestListProducts:

    async def test_filters_and_pagination(
        self, client: AsyncClient, category, db_session
    ):
        for i in range(5):
            db_session.add(Product(
                name=f"Seed pack {i}", price=10 + i, category_id=category.id,
                catalog=i % 2 == 0, active=True,
            ))
        db_session.add(Product(name="Hidden seed", price=1, category_id=category.id, active=False))
        await db_session.commit()

        everything = await client.get("/api/products", params={"limit": 2})
        assert everything.json()["total"] == 5
        assert len(everything.json()["items"]) == 2

        page_three = await client.get("/api/products", params={"limit": 2, "page": 3})
        assert len(page_three.json()["items"]) == 1
        assert page_three.json()["offset"] == 4

        searched = await client.get("/api/products", params={"search": "pack 3"})
        assert [p["name"] for p in searched.json()["items"]] == ["Seed pack 3"]

        catalog_only = await client.get("/api/products", params={"catalog": "true"})
        assert catalog_only.json()["total"] == 3

        by_category = await client.get("/api/products", params={"category": category.id})
        assert by_category.json()["total"] == 5
