"""Cart store: pure transitions over immutable cart snapshots.

Every transition takes a snapshot and returns a new one wrapped in a
``CartUpdate``. The stock ceiling enforced here is optimistic and local to the
cart; the authoritative check happens in the inventory ledger at commit time.
"""
import logging
from typing import Mapping, Optional

from pydantic import BaseModel, ConfigDict

from app.core.errors import ValidationError
from app.services.cart.models import CartLine, CartSelections, CartSnapshot
from app.services.catalog.models import Product
from app.services.pricing.engine import PricingEngine

logger = logging.getLogger(__name__)


class StockCeilingWarning(BaseModel):
    """Signal that a transition was refused because it would exceed known stock."""

    model_config = ConfigDict(frozen=True)

    product_id: str
    product_name: str
    requested_quantity: int
    known_stock: int

    @property
    def message(self) -> str:
        return (
            f"Cannot hold {self.requested_quantity} of '{self.product_name}'; "
            f"available stock: {self.known_stock}"
        )


class CartUpdate(BaseModel):
    """Result of a cart transition."""

    model_config = ConfigDict(frozen=True)

    snapshot: CartSnapshot
    warning: Optional[StockCeilingWarning] = None

    @property
    def changed(self) -> bool:
        return self.warning is None


def _exceeds_ceiling(line: CartLine, quantity: int) -> bool:
    if line.known_stock is None:
        return False
    return quantity * line.units_per_package > line.known_stock


def _warning(line: CartLine, quantity: int) -> StockCeilingWarning:
    return StockCeilingWarning(
        product_id=line.product_id,
        product_name=line.product_name or line.product_id,
        requested_quantity=quantity,
        known_stock=line.known_stock or 0,
    )


def _replace(snapshot: CartSnapshot, key: str, new_line: Optional[CartLine]) -> CartSnapshot:
    lines = []
    for line in snapshot.lines:
        if line.key != key:
            lines.append(line)
        elif new_line is not None:
            lines.append(new_line)
    return CartSnapshot(lines=tuple(lines))


def add_line(
    snapshot: CartSnapshot,
    product: Product,
    quantity: int = 1,
    selections: Optional[CartSelections] = None,
) -> CartUpdate:
    """
    Add a selection to the cart, merging into an identical line if present.

    Merging increases the quantity and replaces the recipe selection. The
    product's stock value is recorded on the line as the ceiling for later
    increases.
    """
    if quantity < 1:
        raise ValidationError("Quantity must be at least 1", field="quantity")
    selections = selections or CartSelections()

    candidate = CartLine(
        product_id=product.id,
        product_name=product.name,
        quantity=quantity,
        selected_modifiers=dict(selections.selected_modifiers),
        selected_tier=selections.selected_tier,
        recipe_selection=dict(selections.recipe_selection) if selections.recipe_selection else None,
        known_stock=product.stock,
        units_per_package=product.units_for_tier(selections.selected_tier),
    )
    PricingEngine.validate_line(product, candidate)

    existing = snapshot.find(candidate.key)
    if existing is None:
        if _exceeds_ceiling(candidate, quantity):
            return CartUpdate(snapshot=snapshot, warning=_warning(candidate, quantity))
        return CartUpdate(snapshot=CartSnapshot(lines=snapshot.lines + (candidate,)))

    new_quantity = existing.quantity + quantity
    if _exceeds_ceiling(candidate, new_quantity):
        return CartUpdate(snapshot=snapshot, warning=_warning(candidate, new_quantity))

    merged = candidate.model_copy(
        update={
            "quantity": new_quantity,
            "recipe_selection": candidate.recipe_selection or existing.recipe_selection,
        }
    )
    return CartUpdate(snapshot=_replace(snapshot, candidate.key, merged))


def increase_line(
    snapshot: CartSnapshot, key: str, product: Optional[Product] = None
) -> CartUpdate:
    """Increase a line by one, up to its known stock."""
    line = snapshot.find(key)
    if line is None:
        return CartUpdate(snapshot=snapshot)
    if product is not None:
        line = line.model_copy(update={"known_stock": product.stock})
    new_quantity = line.quantity + 1
    if _exceeds_ceiling(line, new_quantity):
        return CartUpdate(snapshot=snapshot, warning=_warning(line, new_quantity))
    return CartUpdate(snapshot=_replace(snapshot, key, line.model_copy(update={"quantity": new_quantity})))


def decrease_line(snapshot: CartSnapshot, key: str) -> CartUpdate:
    """Decrease a line by one; a line at quantity 1 is removed."""
    line = snapshot.find(key)
    if line is None:
        return CartUpdate(snapshot=snapshot)
    if line.quantity <= 1:
        return remove_line(snapshot, key)
    return CartUpdate(
        snapshot=_replace(snapshot, key, line.model_copy(update={"quantity": line.quantity - 1}))
    )


def remove_line(snapshot: CartSnapshot, key: str) -> CartUpdate:
    """Drop a line."""
    return CartUpdate(snapshot=_replace(snapshot, key, None))


def clear(snapshot: CartSnapshot) -> CartUpdate:
    """Empty the cart."""
    return CartUpdate(snapshot=CartSnapshot())


def refresh_known_stock(
    snapshot: CartSnapshot, products: Mapping[str, Product]
) -> CartSnapshot:
    """Update each line's stock ceiling from newer product snapshots."""
    lines = []
    changed = False
    for line in snapshot.lines:
        product = products.get(line.product_id)
        if product is not None and product.stock != line.known_stock:
            line = line.model_copy(update={"known_stock": product.stock})
            changed = True
        lines.append(line)
    return CartSnapshot(lines=tuple(lines)) if changed else snapshot


class CartStore:
    """Holds the current snapshot of one session's cart.

    Each operation computes a complete new snapshot before swapping it in, so
    no partially applied change is ever observable.
    """

    def __init__(self, snapshot: Optional[CartSnapshot] = None):
        self.snapshot = snapshot or CartSnapshot()

    def _apply(self, update: CartUpdate) -> CartUpdate:
        self.snapshot = update.snapshot
        if update.warning:
            logger.info(f"[CART] {update.warning.message}")
        return update

    def add_line(
        self, product: Product, quantity: int = 1, selections: Optional[CartSelections] = None
    ) -> CartUpdate:
        return self._apply(add_line(self.snapshot, product, quantity, selections))

    def increase_line(self, key: str, product: Optional[Product] = None) -> CartUpdate:
        return self._apply(increase_line(self.snapshot, key, product))

    def decrease_line(self, key: str) -> CartUpdate:
        return self._apply(decrease_line(self.snapshot, key))

    def remove_line(self, key: str) -> CartUpdate:
        return self._apply(remove_line(self.snapshot, key))

    def clear(self) -> CartUpdate:
        return self._apply(clear(self.snapshot))

    def refresh_known_stock(self, products: Mapping[str, Product]) -> None:
        self.snapshot = refresh_known_stock(self.snapshot, products)

    def to_json(self) -> str:
        """Serialize the current snapshot."""
        return self.snapshot.model_dump_json()

    @classmethod
    def from_json(cls, data: str) -> "CartStore":
        """Restore a store from a serialized snapshot."""
        return cls(CartSnapshot.model_validate_json(data))
