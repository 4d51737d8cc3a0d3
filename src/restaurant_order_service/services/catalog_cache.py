"""Read-through cache of catalog products."""

import logging

from restaurant_order_service.models.catalog_models import Product
from restaurant_order_service.services.catalog_client import CatalogServiceClient

logger = logging.getLogger(__name__)


class CatalogCache:
    """Product lookup cache in front of the catalog service.

    Products are fetched on first use and kept until invalidated. Catalog
    change events call invalidate() so edited prices are picked up by the
    next lookup.
    """

    def __init__(self, catalog_client: CatalogServiceClient) -> None:
        self.catalog_client = catalog_client
        self._products: dict[str, Product] = {}

    async def get_product(self, product_id: str) -> Product | None:
        """Return a product, fetching it from the catalog service on a miss.

        Args:
            product_id: The product to look up

        Returns:
            Product, or None if the catalog does not know it
        """
        cached = self._products.get(product_id)
        if cached is not None:
            return cached

        product = await self.catalog_client.get_product_by_id(product_id)
        if product is not None:
            self._products[product_id] = product
        return product

    async def get_products(self, product_ids: list[str]) -> dict[str, Product]:
        """Return the known products among product_ids keyed by id."""
        found: dict[str, Product] = {}
        for product_id in product_ids:
            product = await self.get_product(product_id)
            if product is not None:
                found[product_id] = product
        return found

    def prime(self, products: list[Product]) -> None:
        """Seed the cache with already fetched products."""
        for product in products:
            self._products[product.id] = product

    async def refresh(self) -> bool:
        """Reload every product from the catalog service.

        Returns:
            bool: True if the catalog was reloaded, False if the request failed
        """
        products = await self.catalog_client.get_all_products()
        if products is None:
            logger.warning("Catalog refresh failed, keeping cached products")
            return False

        self._products = {product.id: product for product in products}
        logger.info(f"Catalog cache refreshed with {len(products)} products")
        return True

    def invalidate(self, product_id: str | None = None) -> None:
        """Drop one cached product, or every product when product_id is None."""
        if product_id is None:
            self._products.clear()
            logger.info("Catalog cache cleared")
        else:
            self._products.pop(product_id, None)
            logger.debug(f"Catalog cache entry {product_id} invalidated")
