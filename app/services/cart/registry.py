"""In-process registry of open carts."""
import logging
from typing import Dict, List

from app.services.cart.store import CartStore
from app.services.catalog.models import Product

logger = logging.getLogger(__name__)


class CartRegistry:
    """Carts keyed by a client-chosen session id.

    Subscribed to the catalog feed, so every open cart's stock ceiling follows
    committed stock changes.
    """

    def __init__(self):
        self._carts: Dict[str, CartStore] = {}

    def get(self, cart_id: str) -> CartStore:
        """Get (or start) the cart for a session."""
        store = self._carts.get(cart_id)
        if store is None:
            store = CartStore()
            self._carts[cart_id] = store
        return store

    def discard(self, cart_id: str) -> None:
        self._carts.pop(cart_id, None)

    def clear(self) -> None:
        self._carts.clear()

    def __len__(self) -> int:
        return len(self._carts)

    def refresh_known_stock(self, products: List[Product]) -> None:
        """Catalog feed subscriber."""
        by_id = {product.id: product for product in products}
        for store in self._carts.values():
            store.refresh_known_stock(by_id)
        logger.debug(
            f"[CART] Refreshed stock ceilings of {len(self._carts)} carts for {sorted(by_id)}"
        )
