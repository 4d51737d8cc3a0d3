"""EventBridge event handler for catalog and inventory change events."""

import logging
from typing import Any

from pydantic import BaseModel, ValidationError

from restaurant_order_service.services.catalog_cache import CatalogCache
from restaurant_order_service.services.inventory_service import InventoryService

logger = logging.getLogger(__name__)

EVENT_SOURCE = "com.restaurant.catalog"
CATALOG_CHANGED = "CatalogChanged"
INVENTORY_CHANGED = "InventoryChanged"


class CatalogChangedEvent(BaseModel):
    """Model for catalog change events from EventBridge.

    Attributes:
        entity_type: Kind of record that changed (product, package, category, inventory)
        entity_id: The changed record, None when many records changed
        event_type: Type of change (e.g. product.updated)
        timestamp: ISO 8601 timestamp of when the event occurred
    """

    entity_type: str
    entity_id: str | None = None
    event_type: str = "updated"
    timestamp: str = ""


def parse_eventbridge_event(event: dict[str, Any]) -> CatalogChangedEvent | None:
    """Parse an EventBridge event into a CatalogChangedEvent.

    Args:
        event: Raw EventBridge event dictionary

    Returns:
        CatalogChangedEvent if parsing succeeds, None otherwise
    """
    try:
        detail = event.get("detail", {})
        return CatalogChangedEvent(**detail)
    except (ValidationError, TypeError) as e:
        logger.error(f"Failed to parse EventBridge event: {e}")  # pragma: no cover
        return None


class CatalogEventHandler:
    """Keeps cached catalog products and the inventory snapshot current.

    Product changes drop the affected cache entry so the next lookup reads the
    new definition. Inventory changes made outside of orders reload the
    snapshot used for stock checks.
    """

    def __init__(self, catalog_cache: CatalogCache, inventory_service: InventoryService) -> None:
        """Initialize the event handler.

        Args:
            catalog_cache: Product cache to invalidate
            inventory_service: Service whose inventory snapshot to refresh
        """
        self.catalog_cache = catalog_cache
        self.inventory_service = inventory_service

    async def handle_catalog_changed(self, event: CatalogChangedEvent) -> bool:
        """Invalidate cached catalog data affected by a change.

        Args:
            event: The catalog change to process

        Returns:
            True once the cache has been invalidated
        """
        logger.info(f"Processing catalog change: {event.event_type} {event.entity_type} {event.entity_id}")

        if event.entity_type == "product" and event.entity_id:
            self.catalog_cache.invalidate(event.entity_id)
        else:
            self.catalog_cache.invalidate()

        return True

    async def handle_inventory_changed(self, event: CatalogChangedEvent) -> bool:
        """Reload the inventory snapshot.

        Returns:
            True if the snapshot was reloaded, False if the read failed
        """
        logger.info(f"Processing inventory change for {event.entity_id or 'all items'}")
        return self.inventory_service.refresh()

    async def handle_event(self, detail_type: str, event: CatalogChangedEvent) -> bool:
        """Route a parsed event by its EventBridge detail type.

        Returns:
            True if handled, False if the detail type is unknown or handling failed
        """
        if detail_type == CATALOG_CHANGED:
            return await self.handle_catalog_changed(event)
        if detail_type == INVENTORY_CHANGED:
            return await self.handle_inventory_changed(event)

        logger.warning(f"Unsupported detail type: {detail_type}")
        return False

    async def handle_eventbridge_event(self, event: dict[str, Any], _context: Any) -> dict[str, Any]:
        """Lambda handler for EventBridge events.

        Args:
            event: EventBridge event dictionary
            _context: Lambda context object (unused)

        Returns:
            Dictionary with statusCode and body for Lambda response
        """
        change = parse_eventbridge_event(event)
        if not change:
            logger.error("Received invalid event format")  # pragma: no cover
            return {"statusCode": 400, "body": "Invalid event format"}

        detail_type = event.get("detail-type", "")
        if await self.handle_event(detail_type, change):
            return {"statusCode": 200, "body": f"Processed {detail_type} for {change.entity_type}"}

        return {"statusCode": 500, "body": f"Failed to process {detail_type} for {change.entity_type}"}
