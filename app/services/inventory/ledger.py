"""Inventory ledger: validation and atomic reservation of stock.

The ledger is the only writer of product stock. A reservation is computed as a
whole (every plain line and every container constituent), checked against live
stock, and applied with guarded updates inside the caller's transaction. If any
guard fails the transaction is rolled back, so no product is ever partially
decremented.
"""
import asyncio
import logging
import weakref
from typing import Dict, Iterable, List, Mapping, NamedTuple, Optional, Set

from pydantic import BaseModel, ConfigDict
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import StockInsufficientError
from app.db.models import ProductRecord
from app.services.cart.models import CartLine
from app.services.catalog.models import Product
from app.services.catalog.repository import CatalogRepository

logger = logging.getLogger(__name__)

_commit_locks: "weakref.WeakKeyDictionary[asyncio.AbstractEventLoop, asyncio.Lock]" = (
    weakref.WeakKeyDictionary()
)


def get_commit_lock() -> asyncio.Lock:
    """Process-wide commit lock for the running event loop."""
    loop = asyncio.get_running_loop()
    lock = _commit_locks.get(loop)
    if lock is None:
        lock = asyncio.Lock()
        _commit_locks[loop] = lock
    return lock


class InventoryAdjustment(BaseModel):
    """One entry of a commit's write-set."""

    model_config = ConfigDict(frozen=True)

    product_id: str
    units_delta: int


class StockDemand(NamedTuple):
    """Units one line needs from one product counter."""

    product_id: str
    units: int
    line_product_id: str
    constituent_id: Optional[str]


class InventoryLedger:
    """Validates and reserves stock for a set of cart lines."""

    def __init__(self, db: AsyncSession, catalog: Optional[CatalogRepository] = None):
        self.db = db
        self.catalog = catalog or CatalogRepository(db)

    @staticmethod
    def effective_recipe(line: CartLine, product: Product) -> Dict[str, int]:
        """Recipe a container line consumes: the customer's split, else the declared recipe."""
        if line.recipe_selection is not None:
            return dict(line.recipe_selection)
        return dict(product.recipe)

    @staticmethod
    def referenced_product_ids(
        lines: Iterable[CartLine], products: Mapping[str, Product]
    ) -> Set[str]:
        """Every product counter the lines touch, constituents included."""
        ids = set()
        for line in lines:
            ids.add(line.product_id)
            ids.update((line.recipe_selection or {}).keys())
            product = products.get(line.product_id)
            if product is not None:
                ids.update(product.recipe.keys())
        return ids

    def demands(
        self, lines: Iterable[CartLine], products: Mapping[str, Product]
    ) -> List[StockDemand]:
        """Units every line needs from every counter it touches, in line order."""
        demands = []
        for line in lines:
            product = products.get(line.product_id)
            units_per_package = product.units_for_tier(line.selected_tier) if product else 1
            demands.append(
                StockDemand(line.product_id, line.quantity * units_per_package, line.product_id, None)
            )
            if product is None or not product.has_recipe:
                continue
            for constituent_id, count in self.effective_recipe(line, product).items():
                if count <= 0:
                    continue
                demands.append(
                    StockDemand(constituent_id, count * line.quantity, line.product_id, constituent_id)
                )
        return demands

    def plan(
        self, lines: Iterable[CartLine], products: Mapping[str, Product]
    ) -> List[InventoryAdjustment]:
        """
        Compute the write-set for ``lines`` against a stock snapshot.

        Demands are accumulated per product in line order; the first demand
        that pushes a product past its stock is reported.

        Raises:
            StockInsufficientError: Naming the line product and, for container
                lines, the constituent that is short
        """
        totals: Dict[str, int] = {}
        for demand in self.demands(lines, products):
            product = products.get(demand.product_id)
            available = product.stock if product else 0
            needed = totals.get(demand.product_id, 0) + demand.units
            if needed > available:
                raise StockInsufficientError(
                    demand.line_product_id,
                    requested=needed,
                    available=available,
                    constituent_id=demand.constituent_id,
                )
            totals[demand.product_id] = needed

        return [
            InventoryAdjustment(product_id=product_id, units_delta=-units)
            for product_id, units in sorted(totals.items())
            if units
        ]

    async def _current_stock(self, product_id: str) -> int:
        result = await self.db.execute(
            select(ProductRecord.stock).where(ProductRecord.id == product_id)
        )
        stock = result.scalar_one_or_none()
        return stock or 0

    @staticmethod
    def _overflowing_demand(
        demands: Iterable[StockDemand], product_id: str, available: int
    ) -> Optional[StockDemand]:
        """First demand on ``product_id`` whose running total passes ``available``."""
        needed = 0
        for demand in demands:
            if demand.product_id != product_id:
                continue
            needed += demand.units
            if needed > available:
                return demand
        return None

    async def apply(
        self,
        adjustments: Iterable[InventoryAdjustment],
        demands: Optional[Iterable[StockDemand]] = None,
    ) -> None:
        """
        Apply a write-set with guarded updates in the open transaction.

        Rows are updated in product-id order so concurrent commits lock them
        in the same sequence. Does not commit.

        Args:
            adjustments: Write-set from ``plan``
            demands: The demands the write-set was planned from; a failed
                guard is reported against the line that overflows, the same
                way ``plan`` reports it

        Raises:
            StockInsufficientError: A guard failed because another commit got there first
        """
        demands = list(demands or [])
        for adjustment in sorted(adjustments, key=lambda a: a.product_id):
            needed = -adjustment.units_delta
            result = await self.db.execute(
                update(ProductRecord)
                .where(ProductRecord.id == adjustment.product_id)
                .where(ProductRecord.stock >= needed)
                .values(stock=ProductRecord.stock + adjustment.units_delta)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                available = await self._current_stock(adjustment.product_id)
                logger.warning(
                    f"[INVENTORY] Guarded update failed for {adjustment.product_id}: "
                    f"need={needed}, have={available}"
                )
                demand = self._overflowing_demand(demands, adjustment.product_id, available)
                if demand is None:
                    raise StockInsufficientError(
                        adjustment.product_id, requested=needed, available=available
                    )
                raise StockInsufficientError(
                    demand.line_product_id,
                    requested=needed,
                    available=available,
                    constituent_id=demand.constituent_id,
                )

    async def reserve(self, lines: Iterable[CartLine]) -> List[InventoryAdjustment]:
        """
        Check and apply the stock reservation for an order's lines.

        Reads live stock, plans the write-set, and applies it in the current
        transaction. On any insufficiency the transaction is rolled back and
        nothing is touched. The caller commits.

        Returns:
            The applied adjustments
        """
        lines = list(lines)
        products = await self.catalog.get_products(
            {line.product_id for line in lines}, fresh=True
        )
        constituent_ids = self.referenced_product_ids(lines, products) - set(products)
        if constituent_ids:
            products.update(await self.catalog.get_products(constituent_ids, fresh=True))

        try:
            adjustments = self.plan(lines, products)
            await self.apply(adjustments, self.demands(lines, products))
        except StockInsufficientError as e:
            logger.info(f"[INVENTORY] Reservation aborted: {e.message}")
            await self.db.rollback()
            raise

        logger.info(
            f"[INVENTORY] Reserved {len(adjustments)} counters: "
            f"{[(a.product_id, a.units_delta) for a in adjustments]}"
        )
        return adjustments
