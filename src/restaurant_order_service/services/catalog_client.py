"""Client for interacting with the Catalog Service API."""

import logging
from typing import Any

import httpx

from restaurant_order_service.models.catalog_models import (
    ModifierSlot,
    Package,
    PackageItem,
    PackageItemSlotOverride,
    Product,
    ServingStyle,
)

logger = logging.getLogger(__name__)


class CatalogServiceClient:
    """HTTP client for reading catalog definitions from the Catalog Service.

    The catalog is read-only from the point of view of order composition. Every
    method returns None when the request fails so callers can decide whether a
    missing definition is fatal.
    """

    def __init__(self, base_url: str, api_key: str, timeout: float = 10.0) -> None:
        """Initialize the Catalog Service client.

        Args:
            base_url: Base URL of the Catalog Service API (e.g., "https://catalog.example.com")
            api_key: API key for service-to-service authentication
            timeout: Request timeout in seconds
        """
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout

    async def _get(self, path: str) -> dict[str, Any] | None:
        """Issue a GET request and return the decoded JSON body.

        A 404 is an expected outcome (the definition was deleted) and returns
        None without logging an error.
        """
        url = f"{self.base_url}{path}"
        headers = {"X-API-Key": self.api_key}

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.get(url, headers=headers)
                if response.status_code == 404:
                    logger.debug(f"Catalog resource not found: {path}")
                    return None
                response.raise_for_status()
                return response.json()

        except (httpx.HTTPStatusError, httpx.RequestError) as e:
            logger.error(f"Catalog request to {path} failed: {e}")  # pragma: no cover
            return None

    async def get_product_by_id(self, product_id: str) -> Product | None:
        """Fetch a single product.

        Args:
            product_id: The product to fetch

        Returns:
            Product, or None if it does not exist or the request failed
        """
        data = await self._get(f"/products/{product_id}")
        if data is None:
            return None
        return Product(**data)

    async def get_all_products(self) -> list[Product] | None:
        """Fetch every product in the catalog.

        Returns:
            List of Product objects, or None on failure
        """
        data = await self._get("/products")
        if data is None:
            return None
        return [Product(**product_data) for product_data in data.get("products", [])]

    async def get_package_by_id(self, package_id: str) -> Package | None:
        """Fetch a single package.

        Args:
            package_id: The package to fetch

        Returns:
            Package, or None if it does not exist or the request failed
        """
        data = await self._get(f"/packages/{package_id}")
        if data is None:
            return None
        return Package(**data)

    async def get_items_for_package(self, package_id: str) -> list[PackageItem] | None:
        """Fetch the contents of a package ordered by display order.

        Args:
            package_id: The package whose items to fetch

        Returns:
            List of PackageItem objects, or None on failure
        """
        data = await self._get(f"/packages/{package_id}/items")
        if data is None:
            return None
        items = [PackageItem(**item_data) for item_data in data.get("items", [])]
        return sorted(items, key=lambda item: item.display_order)

    async def get_modifier_slots_for_product(self, product_id: str) -> list[ModifierSlot] | None:
        """Fetch the modifier slots of a product, including explicit slot options.

        Args:
            product_id: The product whose slots to fetch

        Returns:
            List of ModifierSlot objects in catalog order, or None on failure
        """
        data = await self._get(f"/products/{product_id}/modifier-slots")
        if data is None:
            return None
        return [ModifierSlot(**slot_data) for slot_data in data.get("slots", [])]

    async def get_overrides_for_package_item(
        self, package_item_id: str
    ) -> list[PackageItemSlotOverride] | None:
        """Fetch slot constraint overrides for a package item.

        Args:
            package_item_id: The package item whose overrides to fetch

        Returns:
            List of PackageItemSlotOverride objects, or None on failure
        """
        data = await self._get(f"/package-items/{package_item_id}/slot-overrides")
        if data is None:
            return None
        return [PackageItemSlotOverride(**override) for override in data.get("overrides", [])]

    async def get_modifiers_by_category(self, category_id: str) -> list[Product] | None:
        """Fetch every product of a modifier category.

        Args:
            category_id: The modifier category

        Returns:
            List of Product objects, or None on failure
        """
        data = await self._get(f"/categories/{category_id}/products")
        if data is None:
            return None
        return [Product(**product_data) for product_data in data.get("products", [])]

    async def get_serving_styles_for_category(self, category_id: str) -> list[ServingStyle] | None:
        """Fetch the serving styles offered for a modifier category.

        Args:
            category_id: The modifier category

        Returns:
            List of ServingStyle objects ordered by display order, or None on failure
        """
        data = await self._get(f"/categories/{category_id}/serving-styles")
        if data is None:
            return None
        styles = [ServingStyle(**style) for style in data.get("serving_styles", [])]
        return sorted(styles, key=lambda style: style.display_order)
