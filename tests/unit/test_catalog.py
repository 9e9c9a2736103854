"""Unit tests for catalog loading, the catalog repository and change feeds."""
import pytest

from pydantic import ValidationError as PydanticValidationError

from app.services.catalog.loader import load_catalog
from app.services.catalog.models import ModifierOption, Product
from app.services.catalog.repository import CatalogRepository
from app.services.feeds import ChangeFeed


class TestCatalogLoader:
    """Test YAML catalog loading."""

    def test_load_test_catalog(self, test_catalog):
        """Test that products and capabilities are parsed."""
        products = {product.id: product for product in test_catalog.products}

        assert test_catalog.categories == ["empanadas", "pastas", "drinks"]
        assert products["beef"].has_tier_pricing
        assert products["beef"].units_for_tier("dozen") == 12
        assert products["mixed-dozen"].container_size == 12
        assert products["pasta"].get_group("sauce").required is True
        assert products["pasta"].get_group("sauce").get_option("filetto").effective_delta == 0
        assert not products["product-a"].has_modifier_groups

    def test_load_bundled_catalog(self):
        """Test the bundled sample catalog loads."""
        catalog = load_catalog()

        assert len(catalog.products) > 0
        assert all(product.stock >= 0 for product in catalog.products)

    def test_negative_price_delta_rejected(self):
        """Test a modifier option cannot lower the line price."""
        with pytest.raises(PydanticValidationError):
            ModifierOption(id="discount", name="Discount", price_delta=-100)

        assert ModifierOption(id="free", name="Free", price_delta=0).effective_delta == 0

    def test_negative_tier_price_rejected(self):
        """Test tier prices must not be negative."""
        with pytest.raises(PydanticValidationError):
            Product(
                id="beef",
                name="Beef",
                base_price=900,
                tier_pricing={"unit": 900, "dozen": -1},
                tier_units={"unit": 1, "dozen": 12},
            )

    def test_catalog_with_negative_delta_fails_to_load(self, tmp_path):
        """Test a catalog file carrying a negative delta is refused at load."""
        catalog_file = tmp_path / "catalog.yaml"
        catalog_file.write_text(
            "products:\n"
            "  - id: pasta\n"
            "    name: Pasta\n"
            "    base_price: 6500\n"
            "    modifier_groups:\n"
            "      - id: sauce\n"
            "        name: Sauce\n"
            "        options:\n"
            "          - id: cheap\n"
            "            name: Cheap\n"
            "            price_delta: -500\n"
        )

        with pytest.raises(PydanticValidationError):
            load_catalog(str(catalog_file))


class TestCatalogRepository:
    """Test the products table read model."""

    @pytest.mark.asyncio
    async def test_seed_if_empty(self, test_db, test_catalog):
        """Test seeding happens once."""
        repository = CatalogRepository(test_db)

        first = await repository.seed_if_empty(test_catalog)
        second = await repository.seed_if_empty(test_catalog)

        assert first == len(test_catalog.products)
        assert second == 0

    @pytest.mark.asyncio
    async def test_round_trip_capabilities(self, seeded_db):
        """Test stored products keep their modifiers, tiers and recipes."""
        repository = CatalogRepository(seeded_db)

        pasta = await repository.get_product("pasta")
        dozen = await repository.get_product("mixed-dozen")
        plain = await repository.get_product("product-a")

        assert pasta.get_group("sauce").get_option("bolognesa").price_delta == 1200
        assert dozen.recipe == {"flavor-x": 6, "flavor-y": 6}
        assert plain.modifier_groups == []
        assert plain.tier_pricing == {}

    @pytest.mark.asyncio
    async def test_get_catalog_by_category(self, seeded_db):
        """Test filtering the catalog by category."""
        catalog = await CatalogRepository(seeded_db).get_catalog(category="drinks")

        assert {product.id for product in catalog.products} == {"product-a", "lemonade"}
        assert catalog.categories == ["drinks"]

    @pytest.mark.asyncio
    async def test_get_products_skips_unknown(self, seeded_db):
        """Test unknown ids are absent from the result."""
        products = await CatalogRepository(seeded_db).get_products(["beef", "ghost"])

        assert set(products) == {"beef"}

    @pytest.mark.asyncio
    async def test_get_product_missing(self, seeded_db):
        """Test a missing product returns None."""
        assert await CatalogRepository(seeded_db).get_product("ghost") is None


class TestChangeFeed:
    """Test push-based change feeds."""

    def test_subscribers_receive_snapshots(self):
        """Test every subscriber gets published snapshots."""
        feed = ChangeFeed("test")
        first, second = [], []
        feed.subscribe(first.extend)
        feed.subscribe(second.extend)

        feed.publish(["a", "b"])

        assert first == ["a", "b"]
        assert second == ["a", "b"]

    def test_failing_subscriber_is_isolated(self):
        """Test a failing subscriber does not stop the others."""
        feed = ChangeFeed("test")
        received = []

        def broken(snapshots):
            raise RuntimeError("boom")

        feed.subscribe(broken)
        feed.subscribe(received.extend)

        feed.publish(["a"])

        assert received == ["a"]

    def test_unsubscribe(self):
        """Test unsubscribed callbacks stop receiving."""
        feed = ChangeFeed("test")
        received = []
        unsubscribe = feed.subscribe(received.extend)

        unsubscribe()
        feed.publish(["a"])

        assert received == []
        assert feed.subscriber_count == 0
