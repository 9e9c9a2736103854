"""Catalog repository."""
import logging
from typing import Dict, Iterable, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models import ProductRecord
from app.services.catalog.models import Catalog, Product

logger = logging.getLogger(__name__)


class CatalogRepository:
    """Read model over the products table.

    Returns immutable ``Product`` snapshots; the only writer of stock is the
    inventory ledger.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_catalog(self, category: Optional[str] = None) -> Catalog:
        """Get all products, optionally filtered by category."""
        query = select(ProductRecord).order_by(ProductRecord.category, ProductRecord.name)
        if category:
            query = query.where(ProductRecord.category == category)
        result = await self.db.execute(query)
        products = [Product.model_validate(record) for record in result.scalars().all()]

        categories: List[str] = []
        for product in products:
            if product.category and product.category not in categories:
                categories.append(product.category)
        return Catalog(products=products, categories=categories)

    async def get_product(self, product_id: str) -> Optional[Product]:
        """Get a product by id."""
        products = await self.get_products([product_id])
        return products.get(product_id)

    async def get_products(
        self, product_ids: Iterable[str], fresh: bool = False
    ) -> Dict[str, Product]:
        """
        Get products by id.

        Args:
            product_ids: Ids to fetch; unknown ids are simply absent from the result
            fresh: Re-read rows even if the session already holds them

        Returns:
            Mapping of product id to snapshot
        """
        ids = sorted(set(product_ids))
        if not ids:
            return {}
        query = select(ProductRecord).where(ProductRecord.id.in_(ids))
        if fresh:
            query = query.execution_options(populate_existing=True)
        result = await self.db.execute(query)
        return {
            record.id: Product.model_validate(record) for record in result.scalars().all()
        }

    async def upsert_products(self, products: Iterable[Product]) -> int:
        """Insert or replace product definitions (catalog seeding)."""
        count = 0
        for product in products:
            await self.db.merge(
                ProductRecord(
                    id=product.id,
                    name=product.name,
                    category=product.category,
                    description=product.description,
                    base_price=product.base_price,
                    stock=product.stock,
                    modifier_groups=[group.model_dump() for group in product.modifier_groups] or None,
                    tier_pricing=dict(product.tier_pricing) or None,
                    tier_units=dict(product.tier_units) or None,
                    recipe=dict(product.recipe) or None,
                )
            )
            count += 1
        await self.db.commit()
        logger.info(f"[CATALOG] Upserted {count} products")
        return count

    async def seed_if_empty(self, catalog: Catalog) -> int:
        """Seed the products table when it holds no rows yet."""
        result = await self.db.execute(select(ProductRecord.id).limit(1))
        if result.first() is not None:
            return 0
        return await self.upsert_products(catalog.products)
