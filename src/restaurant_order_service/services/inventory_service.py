"""Inventory validation, consumption and restock.

Stock is checked against a snapshot of the inventory table before anything
is added to an order, and consumed only when an order is finalized. Every
finalize, edit or cancel produces a single delta map applied as one batch.
"""

import logging
from collections import defaultdict
from collections.abc import Iterable
from decimal import Decimal

from restaurant_order_service.exceptions import (
    CatalogInconsistencyError,
    InsufficientStockError,
    InventoryAdjustmentError,
    InventoryUnavailableError,
)
from restaurant_order_service.models.catalog_models import InventoryItem, Product
from restaurant_order_service.models.order_models import (
    OrderItem,
    OrderItemType,
    SavedOrder,
    SavedOrderItem,
)
from restaurant_order_service.repositories.inventory_repository import InventoryRepository
from restaurant_order_service.services.catalog_cache import CatalogCache
from restaurant_order_service.services.catalog_client import CatalogServiceClient

logger = logging.getLogger(__name__)

ZERO = Decimal("0")


def merge_deltas(*delta_maps: dict[str, Decimal]) -> dict[str, Decimal]:
    """Sum several delta maps per inventory item, dropping entries that net to zero."""
    merged: dict[str, Decimal] = defaultdict(lambda: ZERO)
    for deltas in delta_maps:
        for item_id, delta in deltas.items():
            merged[item_id] += delta
    return {item_id: delta for item_id, delta in merged.items() if delta != 0}


def max_satisfiable(available: Decimal, consumed_per_unit: Decimal) -> int:
    """Largest number of units the available stock can cover."""
    if consumed_per_unit <= 0:
        return 0
    if available <= 0:
        return 0
    return int(available // consumed_per_unit)


class InventoryService:
    """Checks and applies inventory changes caused by orders.

    Holds a snapshot of the inventory table that is refreshed on demand and
    after every applied batch.
    """

    def __init__(
        self,
        repository: InventoryRepository,
        catalog_cache: CatalogCache,
        catalog_client: CatalogServiceClient,
    ) -> None:
        """Initialize the service.

        Args:
            repository: Inventory gateway
            catalog_cache: Product cache used to find inventory links
            catalog_client: Client used to read package contents for legacy restocks
        """
        self.repository = repository
        self.catalog_cache = catalog_cache
        self.catalog_client = catalog_client
        self._snapshot: dict[str, InventoryItem] | None = None

    def refresh(self) -> bool:
        """Reload the inventory snapshot from storage.

        Returns:
            bool: True if reloaded, False if the read failed and the old snapshot was kept
        """
        items = self.repository.get_inventory_items()
        if items is None:
            logger.warning("Inventory refresh failed, keeping previous snapshot")
            return False

        self._snapshot = {item.id: item for item in items}
        logger.debug(f"Inventory snapshot refreshed with {len(items)} items")
        return True

    @property
    def snapshot(self) -> dict[str, InventoryItem]:
        """Current snapshot, loaded on first use.

        Raises:
            InventoryUnavailableError: If nothing has been loaded yet and the read fails
        """
        if self._snapshot is None and not self.refresh():
            raise InventoryUnavailableError()
        return self._snapshot or {}

    def available(self, inventory_item_id: str) -> Decimal:
        """Stock on hand for an item, zero if the item is unknown."""
        item = self.snapshot.get(inventory_item_id)
        return item.current_stock if item else ZERO

    def _item_name(self, inventory_item_id: str) -> str:
        item = self.snapshot.get(inventory_item_id)
        return item.name if item else f"inventory item {inventory_item_id}"

    def max_units(self, product: Product) -> int | None:
        """Maximum units of a product the stock can cover, None if untracked."""
        if not product.tracks_inventory:
            return None
        return max_satisfiable(self.available(product.inventory_item_id), product.inventory_consumed_per_unit)

    def ensure_available(self, product: Product, units: int) -> None:
        """Reject adding units of a product the stock cannot cover.

        Args:
            product: Product or modifier being added
            units: Units requested

        Raises:
            InsufficientStockError: If current stock is below the requirement
        """
        if not product.tracks_inventory:
            return

        required = product.inventory_consumed_per_unit * units
        available = self.available(product.inventory_item_id)
        if available < required:
            raise InsufficientStockError(
                self._item_name(product.inventory_item_id),
                required,
                available,
                max_satisfiable(available, product.inventory_consumed_per_unit),
                product.name,
            )

    def validate_package(
        self,
        contents: Iterable[tuple[Product, int]],
        modifiers: Iterable[Product],
        copies: int,
    ) -> None:
        """Validate stock for adding copies of a configured package.

        Requirements are aggregated per inventory item before comparing with
        stock, so two sub-items drawing on the same item are checked together.

        Args:
            contents: (product, quantity per package) for every package item
            modifiers: Modifier products selected across all package items
            copies: Number of package copies being added

        Raises:
            InsufficientStockError: For the first inventory item that cannot be covered
        """
        per_copy: dict[str, Decimal] = defaultdict(lambda: ZERO)
        first_product: dict[str, Product] = {}

        for product, quantity in contents:
            if product.tracks_inventory:
                per_copy[product.inventory_item_id] += product.inventory_consumed_per_unit * quantity
                first_product.setdefault(product.inventory_item_id, product)

        for product in modifiers:
            if product.tracks_inventory:
                per_copy[product.inventory_item_id] += product.inventory_consumed_per_unit
                first_product.setdefault(product.inventory_item_id, product)

        for item_id, amount in per_copy.items():
            required = amount * copies
            available = self.available(item_id)
            if available < required:
                raise InsufficientStockError(
                    self._item_name(item_id),
                    required,
                    available,
                    max_satisfiable(available, amount),
                    first_product[item_id].name,
                )

    async def _require_product(self, product_id: str) -> Product:
        product = await self.catalog_cache.get_product(product_id)
        if product is None:
            raise CatalogInconsistencyError("Product", product_id)
        return product

    async def consumption_deltas(self, items: Iterable[OrderItem]) -> dict[str, Decimal]:
        """Compute the negative stock deltas of finalizing the given lines.

        Args:
            items: Lines of the order being finalized

        Returns:
            dict: One negative delta per consumed inventory item

        Raises:
            CatalogInconsistencyError: If a referenced product no longer exists
        """
        deltas: dict[str, Decimal] = defaultdict(lambda: ZERO)

        async def consume(product_id: str, units: Decimal) -> None:
            product = await self._require_product(product_id)
            if product.tracks_inventory:
                deltas[product.inventory_item_id] -= product.inventory_consumed_per_unit * units

        for item in items:
            if item.type == OrderItemType.PACKAGE:
                for sub_item in item.package_items:
                    await consume(sub_item.product_id, Decimal(sub_item.quantity * item.quantity))
                    for modifier in sub_item.selected_modifiers:
                        await consume(modifier.product_id, Decimal(item.quantity))
            else:
                await consume(item.id, Decimal(item.quantity))
                for modifier in item.selected_modifiers:
                    await consume(modifier.product_id, Decimal(item.quantity))

        return {item_id: delta for item_id, delta in deltas.items() if delta != 0}

    async def restock_deltas(self, saved_order: SavedOrder) -> dict[str, Decimal]:
        """Compute the positive deltas that undo a saved order's consumption.

        Orders carrying an inventory ledger are restocked exactly from it.
        Older records are recomputed from their components and the current
        catalog.

        Args:
            saved_order: The persisted order to restock

        Returns:
            dict: One positive delta per inventory item
        """
        if saved_order.inventory_consumed is not None:
            return {
                item_id: Decimal(amount)
                for item_id, amount in saved_order.inventory_consumed.items()
                if amount != 0
            }

        logger.warning(f"Order {saved_order.id} has no inventory ledger, recomputing restock from catalog")
        deltas: dict[str, Decimal] = defaultdict(lambda: ZERO)
        for saved_item in saved_order.items:
            for item_id, amount in (await self._legacy_consumption(saved_item)).items():
                deltas[item_id] += amount
        return {item_id: delta for item_id, delta in deltas.items() if delta != 0}

    async def _legacy_consumption(self, saved_item: SavedOrderItem) -> dict[str, Decimal]:
        consumed: dict[str, Decimal] = defaultdict(lambda: ZERO)
        quantity = Decimal(saved_item.quantity)

        async def add(product_id: str, units: Decimal) -> None:
            product = await self.catalog_cache.get_product(product_id)
            if product is None:
                logger.warning(f"Product {product_id} not found, it will not be restocked")
                return
            if product.tracks_inventory:
                consumed[product.inventory_item_id] += product.inventory_consumed_per_unit * units

        if saved_item.is_package:
            package_items = await self.catalog_client.get_items_for_package(saved_item.id) or []
            quantity_by_product = {item.product_id: item.quantity for item in package_items}
            for component in saved_item.components:
                if component.product_id is None:
                    continue
                if component.is_package_content:
                    per_package = quantity_by_product.get(component.product_id, 1)
                    await add(component.product_id, quantity * per_package)
                else:
                    await add(component.product_id, quantity)
        else:
            await add(saved_item.id, quantity)
            for component in saved_item.components:
                if component.product_id is not None:
                    await add(component.product_id, quantity)

        return consumed

    def apply_deltas(self, deltas: dict[str, Decimal]) -> dict[str, Decimal]:
        """Apply a delta map as a single all-or-nothing batch.

        Args:
            deltas: Signed stock changes keyed by inventory item id

        Returns:
            dict: The non-zero deltas that were applied

        Raises:
            InsufficientStockError: If a negative delta would drive stock below zero
            InventoryAdjustmentError: If the gateway rejected the batch
        """
        effective = {item_id: delta for item_id, delta in deltas.items() if delta != 0}
        if not effective:
            return {}

        for item_id, delta in effective.items():
            if delta >= 0:
                continue
            available = self.available(item_id)
            if available + delta < 0:
                raise InsufficientStockError(self._item_name(item_id), -delta, available, 0)

        if not self.repository.apply_stock_deltas(effective):
            raise InventoryAdjustmentError(effective)

        logger.info(f"Applied inventory deltas to {len(effective)} item(s)")
        self.refresh()
        return effective
