"""
Main application entry point.
"""
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse

from ordersync import __version__
from ordersync.catalog.csv_import import validate_csv_structure
from ordersync.catalog.header_mapping import CANONICAL_FIELDS, auto_map_headers, mapping_confidence
from ordersync.catalog.ingestion import ingest_catalog
from ordersync.catalog.manager import CatalogManager
from ordersync.config import config
from ordersync.errors import CatalogStoreError, DataContractError, ExternalServiceError
from ordersync.health import router as health_router
from ordersync.logger import logger
from ordersync.matching.analyzer import ConversationAnalyzer, build_envelope
from ordersync.matching.intent_parser import parse_intent
from ordersync.matching.product_matcher import (
    ExtractedOrder,
    ProductMatcher,
    default_matcher,
    generate_cart_link,
)
from ordersync.matching.vector_search import VectorSearchEngine
from ordersync.readiness import readiness_manager
from ordersync.schemas import (
    AnalyzeRequest,
    CSVImportRequest,
    HeaderMappingRequest,
    IngestRequest,
    IntentRequest,
    MatchRequest,
    ProductUpdate,
)
from ordersync.sentry import initialize_sentry
from ordersync.services.ai_service import ai_service
from ordersync.services.catalog_store import InMemoryCatalogStore, RedisCatalogStore
from ordersync.services.embedding_service import embedding_service
from ordersync.services.product_repository import product_repository

# Initialize services
catalog_store = RedisCatalogStore()
catalog_manager = CatalogManager(InMemoryCatalogStore())
analyzer = ConversationAnalyzer(ai=ai_service, repository=product_repository)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifecycle."""
    # Startup
    logger.info("Starting OrderSync matching service")
    initialize_sentry()

    await readiness_manager.initialize_services({
        "catalog_store": catalog_store,
        "product_repository": product_repository,
        "ai": ai_service,
        "embeddings": embedding_service,
    })

    if catalog_store.is_available:
        catalog_manager.store = catalog_store
        try:
            await catalog_manager.load()
        except CatalogStoreError as e:
            logger.warning(f"Starting with an empty catalog: {e}")
    else:
        logger.warning("Redis unavailable, catalog is kept in process memory only")

    if embedding_service.is_available:
        analyzer.engine = VectorSearchEngine(embedding_service)

    yield

    # Shutdown
    logger.info("Shutting down OrderSync matching service")
    await ai_service.close()
    await embedding_service.close()
    await catalog_store.close()
    await product_repository.close()


# Create FastAPI app
app = FastAPI(
    title="OrderSync API",
    description="Catalog ingestion, product matching and order intent extraction",
    version=__version__,
    lifespan=lifespan
)
app.include_router(health_router)


@app.exception_handler(DataContractError)
async def data_contract_error_handler(request: Request, exc: DataContractError):
    logger.warning(f"Rejected request to {request.url.path}: {exc}")
    return JSONResponse(status_code=422, content={"detail": str(exc)})


@app.exception_handler(CatalogStoreError)
@app.exception_handler(ExternalServiceError)
async def service_error_handler(request: Request, exc: Exception):
    logger.error(f"External service error on {request.url.path}: {exc}")
    return JSONResponse(status_code=503, content={"detail": "Service unavailable"})


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "service": "OrderSync",
        "version": __version__,
        "status": "operational",
        "timestamp": datetime.utcnow().isoformat()
    }


@app.post("/api/v1/catalog/ingest")
async def ingest(body: IngestRequest):
    result = await catalog_manager.ingest(body.products)
    return result.to_dict()


@app.post("/api/v1/catalog/import-csv")
async def import_csv(body: CSVImportRequest):
    result = await catalog_manager.import_csv(body.csv_text, seller_id=body.seller_id, mapping=body.mapping)
    return result.to_dict()


@app.post("/api/v1/catalog/map-headers")
async def map_headers(body: HeaderMappingRequest):
    mapping = auto_map_headers(body.headers, threshold=body.threshold, exclusive=body.exclusive)
    return {
        "mapping": mapping,
        "confidence": {f: mapping_confidence(f, mapping[f]) for f in CANONICAL_FIELDS},
        "validation": validate_csv_structure(body.headers),
    }


@app.get("/api/v1/catalog/products")
async def list_products(source: Optional[str] = None, include_inactive: bool = False):
    products = catalog_manager.list_products(source=source, include_inactive=include_inactive)
    return {"products": [p.to_dict() for p in products], "count": len(products)}


@app.patch("/api/v1/catalog/products/{product_id}")
async def update_product(product_id: str, body: ProductUpdate):
    product = await catalog_manager.update_product(product_id, body.model_dump(exclude_unset=True))
    if product is None:
        raise HTTPException(status_code=404, detail="Product not found")
    return product.to_dict()


@app.delete("/api/v1/catalog/products/{product_id}")
async def delete_product(product_id: str):
    if not await catalog_manager.soft_delete(product_id):
        raise HTTPException(status_code=404, detail="Product not found")
    return {"success": True, "product_id": product_id}


@app.get("/api/v1/catalog/search")
async def search_catalog(q: str, limit: int = 10):
    results = catalog_manager.search(q, limit=limit)
    return {"query": q, "results": [p.to_dict() for p in results], "count": len(results)}


@app.post("/api/v1/sellers/{seller_id}/products")
async def sync_seller_products(seller_id: str, body: IngestRequest):
    """Validate a seller catalog and write it to the product repository."""
    result = ingest_catalog(body.products)
    for product in result.products:
        product.seller_id = seller_id
    written = await product_repository.upsert_products(result.products)
    return {"seller_id": seller_id, "written": written, "errors": result.errors}


@app.post("/api/v1/intent/parse")
async def parse_message(body: IntentRequest):
    intent = await parse_intent(body.message)
    return intent.model_dump()


@app.post("/api/v1/match")
async def match_product(body: MatchRequest):
    matcher = default_matcher
    if body.use_catalog:
        matcher = ProductMatcher.from_products(catalog_manager.list_products())

    match = matcher.find_best_match(
        ExtractedOrder(product=body.product, variant=body.variant, quantity=body.quantity)
    )
    if match is None:
        return {"match": None, "cart_link": None}

    return {
        "match": match.to_dict(),
        "cart_link": generate_cart_link(match, body.quantity, body.platform),
    }


@app.post("/api/v1/analyze")
async def analyze(body: AnalyzeRequest):
    if body.catalog is not None:
        catalog = ingest_catalog(body.catalog)
        result = await analyzer.analyze(body.messages, catalog=catalog.products, index=catalog.index)
    elif body.seller_id:
        result = await analyzer.analyze(body.messages, seller_id=body.seller_id)
    else:
        state = catalog_manager.state
        result = await analyzer.analyze(body.messages, catalog=state.products, index=state.index)

    return build_envelope(result)


if __name__ == "__main__":
    import os
    import uvicorn
    port = int(os.environ.get("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port, log_level=config.LOG_LEVEL.lower())
