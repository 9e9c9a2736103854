"""Catalog API endpoints."""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request

from app.core.dependencies import get_catalog_repository
from app.services.catalog.models import Catalog, Product
from app.services.catalog.repository import CatalogRepository

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/api/catalog", response_model=Catalog)
async def get_catalog(
    request: Request,
    category: Optional[str] = None,
    catalog_repository: CatalogRepository = Depends(get_catalog_repository),
):
    """Get the full catalog."""
    logger.info(
        f"[CATALOG] Request received - category: {category}, "
        f"Client: {request.client.host if request.client else 'unknown'}"
    )

    try:
        catalog = await catalog_repository.get_catalog(category=category)
        logger.info(
            f"[CATALOG] Catalog loaded - {len(catalog.products)} products, "
            f"{len(catalog.categories)} categories"
        )
        return catalog

    except Exception as e:
        logger.error(
            f"[CATALOG] Error fetching catalog - Error: {type(e).__name__}: {str(e)}",
            exc_info=True,
        )
        raise HTTPException(status_code=500, detail=f"Error fetching catalog: {str(e)}")


@router.get("/api/catalog/{product_id}", response_model=Product)
async def get_product(
    product_id: str,
    catalog_repository: CatalogRepository = Depends(get_catalog_repository),
):
    """Get a single product."""
    product = await catalog_repository.get_product(product_id)
    if product is None:
        raise HTTPException(status_code=404, detail=f"Product '{product_id}' not found")
    return product
