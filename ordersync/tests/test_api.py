"""
Test the HTTP surface.
The lifespan is not entered, so no external service is contacted.
"""
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fastapi.testclient import TestClient

from ordersync import main
from ordersync.readiness import ReadinessManager

client = TestClient(main.app)

HOODIE = {
    "id": "h1",
    "name": "Hoodie",
    "sku": "HD-1",
    "price": 40,
    "variants": [{
        "id": "v-red-l",
        "options": [{"name": "Color", "value": "Red"}, {"name": "Size", "value": "Large"}],
    }],
}


def test_root_and_health():
    root = client.get("/")
    assert root.status_code == 200
    assert root.json()["service"] == "OrderSync"

    health = client.get("/health")
    assert health.status_code == 200
    assert health.json()["status"] in ("healthy", "degraded")


def test_ingest_and_search():
    response = client.post("/api/v1/catalog/ingest", json={"products": [HOODIE, {"sku": "no-name"}]})

    body = response.json()
    assert response.status_code == 200
    assert body["success"] is False
    assert body["errors"] == ["Product at index 1: Missing name"]
    assert body["index"]["product_count"] == 1

    search = client.get("/api/v1/catalog/search", params={"q": "red hoodie"}).json()
    assert [p["id"] for p in search["results"]] == ["h1"]


def test_ingest_reports_malformed_records():
    bad = {"name": "Denim Jacket", "variants": [{"inventory_quantity": "n/a"}]}

    response = client.post("/api/v1/catalog/ingest", json={"products": [HOODIE, bad]})

    body = response.json()
    assert response.status_code == 200
    assert body["errors"] == ["Product at index 1: Invalid inventory_quantity: 'n/a'"]
    assert body["index"]["product_count"] == 1


def test_import_csv_appends_to_catalog():
    client.post("/api/v1/catalog/ingest", json={"products": [HOODIE]})

    response = client.post("/api/v1/catalog/import-csv", json={
        "csv_text": "Title,SKU,Price\nBeanie Hat,BH-8,22\nNo Sku,,5\n",
        "seller_id": "seller-1",
    })

    body = response.json()
    assert body["imported_rows"] == 1
    assert body["total_rows"] == 2
    assert body["errors"] == [{"row": 2, "message": "Missing required fields: Title and SKU are required"}]
    assert client.get("/api/v1/catalog/products").json()["count"] == 2


def test_map_headers():
    body = client.post("/api/v1/catalog/map-headers", json={"headers": ["Product Title", "SKU", "Cost"]}).json()

    assert body["mapping"] == {"title": "Product Title", "sku": "SKU", "price": "Cost", "link": None}
    assert body["confidence"]["link"] == "Not mapped"
    assert body["validation"]["valid"] is True


def test_update_and_delete_products():
    client.post("/api/v1/catalog/ingest", json={"products": [HOODIE]})

    updated = client.patch("/api/v1/catalog/products/h1", json={"name": "Zip Hoodie"})
    assert updated.status_code == 200
    assert updated.json()["search_string"].startswith("zip hoodie")

    assert client.patch("/api/v1/catalog/products/h1", json={"name": " "}).status_code == 422
    bad_variants = {"variants": [{"inventory_quantity": "lots"}]}
    assert client.patch("/api/v1/catalog/products/h1", json=bad_variants).status_code == 422
    assert client.patch("/api/v1/catalog/products/nope", json={"price": 1}).status_code == 404

    assert client.delete("/api/v1/catalog/products/h1").json()["success"] is True
    assert client.delete("/api/v1/catalog/products/nope").status_code == 404
    assert client.get("/api/v1/catalog/products").json()["count"] == 0
    assert client.get("/api/v1/catalog/products", params={"include_inactive": True}).json()["count"] == 1


def test_parse_intent_endpoint():
    with patch("ordersync.matching.intent_parser.ai_service", MagicMock(is_available=False)):
        body = client.post("/api/v1/intent/parse", json={"message": "how much for the hat?"}).json()

    assert body["customer_intent"] == "inquiry"
    assert body["orders"][0]["product_name"] == "hat"
    assert body["is_fallback"] is True


def test_parse_intent_rejects_empty_message():
    assert client.post("/api/v1/intent/parse", json={"message": ""}).status_code == 422


def test_match_endpoint():
    body = client.post("/api/v1/match", json={
        "product": "vintage tee", "variant": "red large", "quantity": 2, "platform": "stripe",
    }).json()

    assert body["match"]["sku"] == "VTEE-002"
    assert body["match"]["matched_variant"] == "Red L"
    assert body["cart_link"] == "https://checkout.stripe.com/pay/price_1234567891?quantity=2"

    miss = client.post("/api/v1/match", json={"product": "xyzzy plugh"}).json()
    assert miss == {"match": None, "cart_link": None}


def test_match_against_ingested_catalog():
    client.post("/api/v1/catalog/ingest", json={"products": [HOODIE]})

    body = client.post("/api/v1/match", json={
        "product": "red hoodie", "variant": "red large", "use_catalog": True,
    }).json()

    assert body["match"]["id"] == "h1"


def test_analyze_with_inline_catalog():
    messages = [
        {"role": "seller", "text": "We have hoodies!"},
        {"isSeller": False, "text": "I'll take 2 of the red hoodie in large", "timestamp": 1718000000},
    ]
    with patch.object(main.analyzer, "ai", MagicMock(is_available=False)):
        body = client.post("/api/v1/analyze", json={"messages": messages, "catalog": [HOODIE]}).json()

    result = body["result"]
    assert result["intent_detected"] is True
    assert result["product_id"] == "h1"
    assert result["variant_id"] == "v-red-l"
    assert result["total_value"] == 80.0
    assert body["tier"] == "auto_accept"
    assert body["checkout_ready"] is True


def test_store_failure_maps_to_503():
    with patch.object(main.catalog_manager, "ingest", AsyncMock(side_effect=main.CatalogStoreError("down"))):
        response = client.post("/api/v1/catalog/ingest", json={"products": [HOODIE]})

    assert response.status_code == 503


def test_sync_seller_products():
    with patch.object(main.product_repository, "upsert_products", AsyncMock(return_value=1)) as mock_upsert:
        body = client.post("/api/v1/sellers/seller-7/products", json={"products": [HOODIE, {"sku": "x"}]}).json()

    assert body == {"seller_id": "seller-7", "written": 1, "errors": ["Product at index 1: Missing name"]}
    written = mock_upsert.await_args.args[0]
    assert [p.seller_id for p in written] == ["seller-7"]


def test_sync_without_database_is_503():
    response = client.post("/api/v1/sellers/seller-7/products", json={"products": [HOODIE]})
    assert response.status_code == 503


@pytest.mark.asyncio
async def test_readiness_survives_failing_services():
    healthy = MagicMock(is_available=True, initialize=AsyncMock())
    broken = MagicMock(initialize=AsyncMock(side_effect=OSError("connection refused")))
    manager = ReadinessManager()

    await manager.initialize_services({"redis": healthy, "postgres": broken})

    status = manager.get_status()
    assert status["ready"] is True
    assert status["services"] == {"config": True, "redis": True, "postgres": False}
    assert manager.is_service_available("postgres") is False


if __name__ == "__main__":
    test_root_and_health()
    test_ingest_and_search()
    test_match_endpoint()
    print("\nAll API tests passed!")
