"""Catalog product models."""
from typing import Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

# Stored deltas and tier prices may carry fractions from legacy catalog
# documents; computed prices are always floored to int.
Amount = Union[int, float]


class ModifierOption(BaseModel):
    """Selectable option inside a modifier group."""

    id: str
    name: str
    price_delta: Amount = 0
    is_free: bool = False

    @field_validator("price_delta")
    @classmethod
    def _non_negative_delta(cls, value):
        if value < 0:
            raise ValueError("price_delta must not be negative")
        return value

    @property
    def effective_delta(self) -> Amount:
        """Delta actually charged; free options never charge."""
        return 0 if self.is_free else self.price_delta


class ModifierGroup(BaseModel):
    """Named group of options, e.g. sauces or sizes."""

    id: str
    name: str
    required: bool = False
    options: List[ModifierOption] = []

    def get_option(self, option_id: str) -> Optional[ModifierOption]:
        """Get an option by id."""
        for option in self.options:
            if option.id == option_id:
                return option
        return None


class Product(BaseModel):
    """Point-in-time snapshot of a catalog product.

    A product always has a base price and a stock counter. Modifier groups,
    tier pricing and a container recipe are optional capabilities.
    """

    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    category: Optional[str] = None
    description: Optional[str] = None
    base_price: int = Field(ge=0)
    stock: int = Field(default=0, ge=0)
    modifier_groups: List[ModifierGroup] = []
    tier_pricing: Dict[str, Amount] = {}
    tier_units: Dict[str, int] = {}
    recipe: Dict[str, int] = {}

    @field_validator("modifier_groups", mode="before")
    @classmethod
    def _empty_groups(cls, value):
        return [] if value is None else value

    @field_validator("tier_pricing", "tier_units", "recipe", mode="before")
    @classmethod
    def _empty_mappings(cls, value):
        return {} if value is None else value

    @field_validator("tier_pricing")
    @classmethod
    def _non_negative_tier_prices(cls, value):
        for tier, price in value.items():
            if price < 0:
                raise ValueError(f"tier '{tier}' has a negative price")
        return value

    @property
    def has_modifier_groups(self) -> bool:
        return bool(self.modifier_groups)

    @property
    def has_tier_pricing(self) -> bool:
        return bool(self.tier_pricing)

    @property
    def has_recipe(self) -> bool:
        return bool(self.recipe)

    @property
    def container_size(self) -> int:
        """Sub-units one container holds."""
        return sum(self.recipe.values())

    def get_group(self, group_id: str) -> Optional[ModifierGroup]:
        """Get a modifier group by id."""
        for group in self.modifier_groups:
            if group.id == group_id:
                return group
        return None

    def units_for_tier(self, tier: Optional[str]) -> int:
        """Stock units one package of ``tier`` consumes (1 when undeclared)."""
        if tier is None:
            return 1
        return self.tier_units.get(tier, 1)


class Catalog(BaseModel):
    """Full catalog."""

    products: List[Product]
    categories: List[str] = []
