"""Pricing engine.

Prices are floored to an integer at the unit step and again at the line step;
the order total is the plain sum of line totals. Cart views, order totals and
rendered summaries all go through these functions, so they never disagree.
"""
import math
from typing import Dict, Iterable, List, Mapping, Optional

from app.core.errors import ModifierNotRecognizedError, ValidationError
from app.services.cart.models import CartLine
from app.services.catalog.models import ModifierOption, Product


class PricingEngine:
    """Pure computation of line and order totals."""

    @staticmethod
    def resolve_options(
        product: Product, selected_modifiers: Optional[Mapping[str, str]]
    ) -> List[ModifierOption]:
        """Map selected ``{group_id: option_id}`` pairs to declared options."""
        options = []
        for group_id, option_id in (selected_modifiers or {}).items():
            group = product.get_group(group_id)
            if group is None:
                raise ModifierNotRecognizedError(
                    product.id,
                    group_id=group_id,
                    option_id=option_id,
                    message=f"Product '{product.id}' has no modifier group '{group_id}'",
                )
            option = group.get_option(option_id)
            if option is None:
                raise ModifierNotRecognizedError(product.id, group_id=group_id, option_id=option_id)
            options.append(option)
        return options

    @staticmethod
    def resolve_base_price(product: Product, selected_tier: Optional[str]):
        """Tier price when a tier is selected, base price otherwise."""
        if selected_tier is None:
            return product.base_price
        if selected_tier not in product.tier_pricing:
            raise ModifierNotRecognizedError(
                product.id,
                group_id="tier",
                option_id=selected_tier,
                message=f"Product '{product.id}' has no pricing tier '{selected_tier}'",
            )
        return product.tier_pricing[selected_tier]

    @staticmethod
    def compute_line_unit_price(
        product: Product,
        selected_modifiers: Optional[Mapping[str, str]] = None,
        selected_tier: Optional[str] = None,
    ) -> int:
        """Unit price of a selection, floored to int."""
        price = PricingEngine.resolve_base_price(product, selected_tier)
        for option in PricingEngine.resolve_options(product, selected_modifiers):
            price += option.effective_delta
        return math.floor(price)

    @staticmethod
    def compute_line_total(product: Product, line: CartLine) -> int:
        """Unit price times quantity, floored again."""
        unit_price = PricingEngine.compute_line_unit_price(
            product, line.selected_modifiers, line.selected_tier
        )
        return math.floor(unit_price * line.quantity)

    @staticmethod
    def compute_order_total(
        lines: Iterable[CartLine], products: Mapping[str, Product]
    ) -> int:
        """Sum of line totals."""
        return sum(
            PricingEngine.compute_line_total(products[line.product_id], line) for line in lines
        )

    @staticmethod
    def validate_line(product: Product, line: CartLine) -> None:
        """
        Check a line's selections against the live product definition.

        Raises:
            ModifierNotRecognizedError: Unknown group, option, tier or constituent
            ValidationError: Missing required group or tier, or a malformed recipe split
        """
        PricingEngine.resolve_options(product, line.selected_modifiers)

        for group in product.modifier_groups:
            if group.required and group.id not in line.selected_modifiers:
                raise ValidationError(
                    f"'{product.name}' requires a choice of {group.name}",
                    field=f"selected_modifiers.{group.id}",
                )

        if product.has_tier_pricing and line.selected_tier is None:
            raise ValidationError(
                f"'{product.name}' is sold by tier; select one of {sorted(product.tier_pricing)}",
                field="selected_tier",
            )
        PricingEngine.resolve_base_price(product, line.selected_tier)

        if line.recipe_selection is not None:
            PricingEngine.validate_recipe(product, line.recipe_selection)

    @staticmethod
    def validate_recipe(product: Product, recipe_selection: Mapping[str, int]) -> None:
        """A container split may only use declared constituents and must fill the container."""
        if not product.has_recipe:
            raise ValidationError(
                f"'{product.name}' is not a container product", field="recipe_selection"
            )
        for constituent_id, count in recipe_selection.items():
            if constituent_id not in product.recipe:
                raise ModifierNotRecognizedError(
                    product.id,
                    group_id="recipe",
                    option_id=constituent_id,
                    message=f"'{constituent_id}' is not a constituent of '{product.id}'",
                )
            if count < 0:
                raise ValidationError(
                    f"Negative count for '{constituent_id}'", field="recipe_selection"
                )
        filled = sum(recipe_selection.values())
        if filled != product.container_size:
            raise ValidationError(
                f"'{product.name}' holds {product.container_size} units, selection has {filled}",
                field="recipe_selection",
            )

    @staticmethod
    def describe_line(product: Product, line: CartLine) -> List[str]:
        """Human-readable annotations for a line (modifiers, tier, recipe)."""
        annotations = []
        if line.selected_tier:
            annotations.append(f"Tier: {line.selected_tier}")
        for group_id, option_id in line.selected_modifiers.items():
            group = product.get_group(group_id)
            option = group.get_option(option_id) if group else None
            if group is None or option is None:
                continue
            if option.is_free:
                price_note = " (free)"
            elif option.price_delta:
                price_note = f" (+${math.floor(option.price_delta)})"
            else:
                price_note = ""
            annotations.append(f"{group.name}: {option.name}{price_note}")
        recipe: Dict[str, int] = line.recipe_selection or {}
        for constituent_id, count in recipe.items():
            if count:
                annotations.append(f"{count}x {constituent_id}")
        return annotations
