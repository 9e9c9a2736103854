"""YAML catalog loader."""
import logging
from pathlib import Path
from typing import Optional

import yaml

from app.services.catalog.models import Catalog, Product

logger = logging.getLogger(__name__)

DEFAULT_CATALOG_FILE = Path(__file__).parent / "data" / "catalog.yaml"


def load_catalog(catalog_file: Optional[str] = None) -> Catalog:
    """Load catalog definitions from a YAML file.

    Args:
        catalog_file: Path to the YAML file; the bundled sample catalog when omitted

    Returns:
        Catalog with products and the unique categories in first-seen order
    """
    path = Path(catalog_file) if catalog_file else DEFAULT_CATALOG_FILE
    with open(path, "r") as f:
        data = yaml.safe_load(f) or {}

    products = [Product(**item) for item in data.get("products", [])]

    categories = list(data.get("categories", []))
    for product in products:
        if product.category and product.category not in categories:
            categories.append(product.category)

    logger.info(f"[CATALOG] Loaded {len(products)} products from {path}")
    return Catalog(products=products, categories=categories)
