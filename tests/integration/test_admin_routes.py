"""
Route tests for the admin category/refund API and the storefront category lookup.

Services are replaced through app.dependency_overrides so no database is needed.
"""
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from decimal import Decimal
from unittest.mock import MagicMock, patch

import pytest
from fastapi.testclient import TestClient
from httpx import ASGITransport, AsyncClient

from conftest import make_node, scalars_result
from commerce_console.api.deps import get_refund_service, get_taxonomy_service
from commerce_console.core.config import settings
from commerce_console.core.exceptions import (
    DuplicateCategoryUrlError,
    InvalidRefundTransitionError,
    RefundValidationError,
    TaxonomyNotFoundError,
)
from commerce_console.main import app
from commerce_console.models import Order, Refund
from commerce_console.models.taxonomy import EMPTY
from commerce_console.services.refund_reconciliation import RefundDecision, history_entry
from commerce_console.services.refund_service import RefundService
from commerce_console.services.taxonomy import TaxonomyNode, options_tree
from commerce_console.services.taxonomy_service import TaxonomyService


@pytest.fixture
def taxonomy_service():
    service = MagicMock(spec=TaxonomyService)
    app.dependency_overrides[get_taxonomy_service] = lambda: service
    yield service
    app.dependency_overrides.pop(get_taxonomy_service, None)


@pytest.fixture
def refund_service():
    service = MagicMock(spec=RefundService)
    app.dependency_overrides[get_refund_service] = lambda: service
    yield service
    app.dependency_overrides.pop(get_refund_service, None)


@pytest.fixture
def client():
    return TestClient(app)


def make_refund(status="pending", amount="40.00"):
    now = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)
    return Refund(
        id=11,
        order_id=1,
        amount=Decimal(amount),
        reason="Damaged",
        status=status,
        refund_type="partial",
        refund_method="original_payment",
        refund_policy="standard",
        refund_fee=Decimal("0.00"),
        refund_currency="USD",
        refund_status_history=[history_entry("pending", "Refund created", timestamp=now)],
        refunded_by="alice",
        created_at=now,
        updated_at=now,
    )


@pytest.mark.anyio
async def test_root_endpoint_basic_response():
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        resp = await client.get("/")
    assert resp.status_code == 200
    body = resp.json()
    assert body.get("message") == "Commerce Console API"
    assert body.get("status") == "operational"


class TestAdminCategoryRoutes:

    def test_list_flags_malformed_rows(self, client, taxonomy_service, taxonomy_nodes):
        bad = TaxonomyNode(id=50, dept="Apparel", typ=EMPTY, subtyp_1="Socks", web_url="socks")
        taxonomy_service.load_nodes.return_value = taxonomy_nodes + [bad]

        resp = client.get("/api/admin/catalog/categories")

        assert resp.status_code == 200
        body = resp.json()
        assert body["total"] == 9
        men = next(c for c in body["categories"] if c["id"] == 2)
        assert men["name"] == "Men"
        assert men["path"] == "Apparel > Men"
        assert men["level"] == "Type"
        socks = next(c for c in body["categories"] if c["id"] == 50)
        assert socks["name"] is None
        assert "not contiguous" in socks["integrity_error"]

    def test_options(self, client, taxonomy_service, taxonomy_nodes):
        taxonomy_service.options.return_value = list(options_tree(taxonomy_nodes))

        resp = client.get("/api/admin/catalog/categories/options")

        assert resp.status_code == 200
        body = resp.json()
        assert body[0] == {"id": 1, "label": "Apparel", "level": "Category", "depth": 1}
        assert [o["id"] for o in body] == [1, 2, 4, 5, 6, 3, 7]

    def test_detail(self, client, taxonomy_service, taxonomy_nodes):
        taxonomy_service.get_detail.return_value = (
            taxonomy_nodes[1], taxonomy_nodes[0], [taxonomy_nodes[3]]
        )

        resp = client.get("/api/admin/catalog/categories/2")

        assert resp.status_code == 200
        body = resp.json()
        assert body["parent"]["name"] == "Apparel"
        assert [c["name"] for c in body["children"]] == ["Shirts"]

    def test_detail_not_found(self, client, taxonomy_service):
        taxonomy_service.get_detail.side_effect = TaxonomyNotFoundError("Category 99 not found")

        resp = client.get("/api/admin/catalog/categories/99")

        assert resp.status_code == 404
        assert resp.json()["detail"]["code"] == "TAXONOMY_NOT_FOUND"

    def test_create(self, client, taxonomy_service):
        taxonomy_service.create.return_value = make_node(
            9, "Apparel", "Men", "Shoes", web_url="apparel-men-shoes"
        )

        resp = client.post(
            "/api/admin/catalog/categories",
            json={"name": "Shoes", "parent_id": 2},
            headers={"X-Admin-User": "alice"},
        )

        assert resp.status_code == 201
        body = resp.json()
        assert body["web_url"] == "apparel-men-shoes"
        assert body["level"] == "Subtype 1"
        sent = taxonomy_service.create.await_args.args[0]
        assert sent.name == "Shoes"
        assert sent.parent_id == 2

    def test_create_duplicate_url(self, client, taxonomy_service):
        taxonomy_service.create.side_effect = DuplicateCategoryUrlError("apparel-men")

        resp = client.post("/api/admin/catalog/categories", json={"name": "Men!", "parent_id": 1})

        assert resp.status_code == 409
        detail = resp.json()["detail"]
        assert detail["code"] == "TAXONOMY_DUPLICATE_URL"
        assert "apparel-men" in detail["message"]

    def test_create_blank_name(self, client, taxonomy_service):
        resp = client.post("/api/admin/catalog/categories", json={"name": "   "})
        assert resp.status_code == 422
        taxonomy_service.create.assert_not_called()

    def test_delete(self, client, taxonomy_service):
        taxonomy_service.delete.return_value = None

        resp = client.delete("/api/admin/catalog/categories/3")

        assert resp.status_code == 200
        assert resp.json()["id"] == 3


class TestStorefrontRoutes:

    def test_category_page(self, client, taxonomy_service, taxonomy_nodes):
        taxonomy_service.storefront_category.return_value = (
            taxonomy_nodes[1], [taxonomy_nodes[3]], taxonomy_nodes[:2]
        )

        resp = client.get("/api/categories/apparel-men")

        assert resp.status_code == 200
        body = resp.json()
        assert body["category"]["name"] == "Men"
        assert [b["web_url"] for b in body["breadcrumbs"]] == ["apparel", "apparel-men"]
        assert [c["name"] for c in body["children"]] == ["Shirts"]

    def test_unknown_slug(self, client, taxonomy_service):
        taxonomy_service.storefront_category.side_effect = TaxonomyNotFoundError(
            "Category 'garden' not found"
        )
        assert client.get("/api/categories/garden").status_code == 404


class TestAdminRefundRoutes:

    def test_create_refund(self, client, refund_service):
        refund_service.create_refund.return_value = make_refund()

        resp = client.post(
            "/api/admin/refunds",
            json={"order_id": 1, "refund_type": "partial", "amount": "40.00", "reason": "Damaged"},
            headers={"X-Admin-User": "alice"},
        )

        assert resp.status_code == 201
        body = resp.json()
        assert body["amount"] == 40.0
        assert body["status"] == "pending"
        assert body["refund_status_history"][0]["note"] == "Refund created"
        assert refund_service.create_refund.await_args.args[1] == "alice"

    def test_create_refund_rejected(self, client, refund_service):
        decision = RefundDecision.reject(
            Decimal("60.00"), Decimal("60.00"),
            "Cannot select full refund for partially refunded order",
        )
        refund_service.create_refund.side_effect = RefundValidationError(
            decision.reason, decision=decision
        )

        resp = client.post(
            "/api/admin/refunds",
            json={"order_id": 1, "refund_type": "full", "amount": 60, "reason": "Rest"},
        )

        assert resp.status_code == 400
        detail = resp.json()["detail"]
        assert detail["code"] == "REFUND_VALIDATION_FAILED"
        assert detail["message"] == "Cannot select full refund for partially refunded order"

    def test_create_refund_bad_type(self, client, refund_service):
        resp = client.post(
            "/api/admin/refunds",
            json={"order_id": 1, "refund_type": "half", "amount": 10, "reason": "x"},
        )
        assert resp.status_code == 422

    def test_default_actor(self, client, refund_service):
        refund_service.update_status.return_value = make_refund(status="approved")

        resp = client.patch("/api/admin/refunds/11/status", json={"status": "approved"})

        assert resp.status_code == 200
        assert refund_service.update_status.await_args.args[2] == "admin"

    def test_invalid_transition(self, client, refund_service):
        refund_service.update_status.side_effect = InvalidRefundTransitionError("completed", "approved")

        resp = client.patch("/api/admin/refunds/11/status", json={"status": "approved"})

        assert resp.status_code == 409
        assert resp.json()["detail"]["message"] == "Cannot transition refund from completed to approved"

    def test_list_refunds_status_filter(self, client, refund_service):
        refund_service.list_refunds.return_value = ([make_refund()], 1)

        resp = client.get("/api/admin/refunds", params={"status": "pending", "order_id": 1})

        assert resp.status_code == 200
        assert resp.json()["total"] == 1
        kwargs = refund_service.list_refunds.await_args.kwargs
        assert kwargs["status"].value == "pending"
        assert kwargs["order_id"] == 1

    def test_order_summary(self, client, refund_service):
        order = Order(
            id=1, order_number="ORD-1001", status="partial_refunded",
            total_amount=Decimal("100.00"), currency="USD",
        )
        refund_service.order_summary.return_value = {
            "order": order,
            "refunds": [make_refund()],
            "refunded_amount": Decimal("40.00"),
            "remaining": Decimal("60.00"),
            "allowed_types": ["partial"],
        }

        resp = client.get("/api/admin/refunds/orders/1/summary")

        assert resp.status_code == 200
        body = resp.json()
        assert body["remaining"] == 60.0
        assert body["allowed_types"] == ["partial"]
        assert len(body["refunds"]) == 1

    def test_refundable_orders(self, client, refund_service):
        refund_service.refundable_orders.return_value = [
            Order(id=2, order_number="ORD-1002", status="delivered", total_amount=Decimal("25.00"))
        ]

        resp = client.get("/api/admin/refunds/orders")

        assert resp.status_code == 200
        assert resp.json()["orders"][0]["total_amount"] == 25.0


class TestDomainMessagesReachTheClient:

    @pytest.fixture
    def real_taxonomy_service(self, mock_db, taxonomy_nodes):
        rows = taxonomy_nodes + [make_node(20, "Apparel", "Outline Tees", web_url="apparel-outline-tees")]
        mock_db.execute.return_value = scalars_result(rows)
        app.dependency_overrides[get_taxonomy_service] = lambda: TaxonomyService(mock_db)
        yield
        app.dependency_overrides.pop(get_taxonomy_service, None)

    def test_duplicate_category_message_kept(self, client, real_taxonomy_service):
        resp = client.post(
            "/api/admin/catalog/categories", json={"name": "Outline Tees", "parent_id": 1}
        )

        assert resp.status_code == 409
        detail = resp.json()["detail"]
        assert detail["code"] == "TAXONOMY_INTEGRITY"
        assert detail["message"] == "Category 'Apparel > Outline Tees' already exists"


class TestHealth:

    def test_database_error_is_sanitized(self, client):
        @asynccontextmanager
        async def broken_session():
            raise OSError("asyncpg: password authentication failed")
            yield

        with patch("commerce_console.main.get_db_session", broken_session):
            resp = client.get("/health")

        assert resp.status_code == 503
        body = resp.json()
        assert body["status"] == "unhealthy"
        assert "asyncpg" not in body["database"]
        assert body["database"] == "error: An internal error occurred. Please try again later."


class TestCategoryProducts:

    @pytest.fixture
    def listing(self):
        return {
            "products": [
                {"STYLE_ID": "S1", "NAME": "Classic Polo", "BRAND": "Nike",
                 "SELLING_PRICE": 45, "REGULAR_PRICE": 55,
                 "VARIATIONS": [{"COLOR": "Red"}, {"COLOR": "Blue"}]},
                {"STYLE_ID": "S2", "NAME": "Rain Jacket", "BRAND": "Columbia",
                 "SELLING_PRICE": 150, "REGULAR_PRICE": 180,
                 "VARIATIONS": [{"COLOR": "Green"}]},
                {"STYLE_ID": "S3", "NAME": "Active Tee", "BRAND": "Nike",
                 "SELLING_PRICE": 20, "REGULAR_PRICE": 25,
                 "VARIATIONS": [{"COLOR": "Red"}]},
            ],
            "filters": [{"name": "brand"}, {"name": "color", "source": "VARIATIONS"}],
        }

    def test_filtered_page(self, client, taxonomy_service, taxonomy_nodes, listing):
        taxonomy_service.storefront_category.return_value = (taxonomy_nodes[1], [], taxonomy_nodes[:2])
        listing["params"] = {"color": "Red", "sortBy": "nameAZ"}

        resp = client.post("/api/categories/apparel-men/products", json=listing)

        assert resp.status_code == 200
        body = resp.json()
        assert [p["STYLE_ID"] for p in body["products"]] == ["S3", "S1"]
        assert body["product_count"] == 2
        assert body["active_filters"] == {"color": ["Red"]}
        assert body["facets"]["color"] == ["Red", "Blue", "Green"]
        assert body["facets"]["brand"] == ["Nike", "Columbia"]
        assert "Under $50" in body["facets"]["price-range"]

    def test_default_page_size_from_settings(self, client, taxonomy_service, taxonomy_nodes, listing):
        taxonomy_service.storefront_category.return_value = (taxonomy_nodes[1], [], taxonomy_nodes[:2])

        with patch.object(settings, "STOREFRONT_DEFAULT_PER_PAGE", 2):
            resp = client.post("/api/categories/apparel-men/products", json=listing)

        body = resp.json()
        assert body["per_page"] == 2
        assert body["total_pages"] == 2
        assert len(body["products"]) == 2

    def test_unknown_category(self, client, taxonomy_service, listing):
        taxonomy_service.storefront_category.side_effect = TaxonomyNotFoundError(
            "Category 'garden' not found"
        )
        resp = client.post("/api/categories/garden/products", json=listing)
        assert resp.status_code == 404
