"""Cart models."""
import hashlib
import json
from typing import Dict, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field


def line_key(
    product_id: str,
    selected_modifiers: Optional[Dict[str, str]] = None,
    selected_tier: Optional[str] = None,
) -> str:
    """
    Deterministic identity key of a cart selection.

    Two selections with the same product, modifiers and tier share a key and
    merge into one line. Recipe selections are not part of the key.
    """
    payload = json.dumps(
        {
            "product_id": product_id,
            "modifiers": sorted((selected_modifiers or {}).items()),
            "tier": selected_tier,
        },
        separators=(",", ":"),
    )
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()[:20]


class CartSelections(BaseModel):
    """What the customer picked for a product."""

    selected_modifiers: Dict[str, str] = {}
    selected_tier: Optional[str] = None
    recipe_selection: Optional[Dict[str, int]] = None


class CartLine(BaseModel):
    """One line of the cart."""

    model_config = ConfigDict(frozen=True)

    product_id: str
    product_name: str = ""
    quantity: int = Field(ge=1)
    selected_modifiers: Dict[str, str] = {}
    selected_tier: Optional[str] = None
    recipe_selection: Optional[Dict[str, int]] = None
    known_stock: Optional[int] = None  # Last stock value seen when the line was touched
    units_per_package: int = 1  # Stock units one unit of quantity consumes (tier packages)

    @property
    def key(self) -> str:
        return line_key(self.product_id, self.selected_modifiers, self.selected_tier)


class CartSnapshot(BaseModel):
    """Immutable, serializable state of one cart."""

    model_config = ConfigDict(frozen=True)

    lines: Tuple[CartLine, ...] = ()

    def find(self, key: str) -> Optional[CartLine]:
        """Get a line by identity key."""
        for line in self.lines:
            if line.key == key:
                return line
        return None

    @property
    def is_empty(self) -> bool:
        return not self.lines

    @property
    def item_count(self) -> int:
        return sum(line.quantity for line in self.lines)
