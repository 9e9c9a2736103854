"""Main FastAPI application."""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from app.api import cart, catalog, health, orders
from app.core.config import settings
from app.core.logging import setup_logging
from app.db.database import AsyncSessionLocal, dispose_db, init_db
from app.services.catalog.loader import load_catalog
from app.services.catalog.repository import CatalogRepository

logger = logging.getLogger(__name__)


async def seed_catalog() -> None:
    """Load the configured catalog into an empty products table."""
    catalog_data = load_catalog(settings.catalog_file)
    async with AsyncSessionLocal() as session:
        seeded = await CatalogRepository(session).seed_if_empty(catalog_data)
    if seeded:
        logger.info(f"[STARTUP] Seeded {seeded} products")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    # Startup
    setup_logging()
    await init_db()
    await seed_catalog()
    yield
    # Shutdown
    await dispose_db()


app = FastAPI(
    title="Storefront Fulfillment",
    description="Cart, pricing, inventory and order fulfillment for a made-to-order storefront",
    version="0.1.0",
    lifespan=lifespan,
)

app.include_router(health.router, tags=["health"])
app.include_router(catalog.router, tags=["catalog"])
app.include_router(cart.router, tags=["cart"])
app.include_router(orders.router, tags=["orders"])


@app.get("/")
async def root():
    """Service banner."""
    return {
        "message": f"{settings.store_name} fulfillment API",
        "version": "0.1.0",
    }


def run() -> None:
    """Serve the API with uvicorn."""
    import uvicorn

    uvicorn.run("app.main:app", host=settings.host, port=settings.port)


if __name__ == "__main__":
    run()
