"""Resolution of modifier slots for products embedded in a package."""

import logging
from dataclasses import dataclass, field

from restaurant_order_service.exceptions import CatalogInconsistencyError
from restaurant_order_service.models.catalog_models import (
    Package,
    PackageItem,
    PackageItemSlotOverride,
    Product,
    ResolvedSlot,
)
from restaurant_order_service.services.catalog_cache import CatalogCache
from restaurant_order_service.services.catalog_client import CatalogServiceClient
from restaurant_order_service.services.slot_resolver import SlotResolver

logger = logging.getLogger(__name__)


@dataclass
class ResolvedPackageItem:
    """A package item with its product and override-resolved slots.

    Attributes:
        package_item: Catalog package item
        product: Contained product
        slots: Slots of the product with package-scoped constraints applied
    """

    package_item: PackageItem
    product: Product
    slots: list[ResolvedSlot] = field(default_factory=list)


@dataclass
class ResolvedPackage:
    """A package with every item resolved for configuration."""

    package: Package
    items: list[ResolvedPackageItem] = field(default_factory=list)

    def find_item(self, package_item_id: str) -> ResolvedPackageItem | None:
        for item in self.items:
            if item.package_item.id == package_item_id:
                return item
        return None


class PackageResolver:
    """Applies package-item slot overrides on top of the base slot resolution.

    Overrides only replace min/max. Options and prices always come from the
    base slot. Overrides are re-read on every call so catalog edits apply to
    the next package opened.
    """

    def __init__(
        self,
        catalog_client: CatalogServiceClient,
        catalog_cache: CatalogCache,
        slot_resolver: SlotResolver,
    ) -> None:
        self.catalog_client = catalog_client
        self.catalog_cache = catalog_cache
        self.slot_resolver = slot_resolver

    async def resolve_item_slots(self, package_item: PackageItem) -> list[ResolvedSlot]:
        """Resolve the slots of a package item's product with overrides applied.

        Args:
            package_item: The package item to resolve

        Returns:
            List of ResolvedSlot objects in base catalog order
        """
        base_slots = await self.slot_resolver.resolve_slots(package_item.product_id)
        overrides = await self._overrides_by_slot(package_item.id)

        resolved: list[ResolvedSlot] = []
        for slot in base_slots:
            override = overrides.get(slot.id)
            if override is None:
                resolved.append(slot)
            else:
                resolved.append(slot.with_constraints(override.min_quantity, override.max_quantity))
        return resolved

    async def resolve_package(self, package_id: str) -> ResolvedPackage:
        """Resolve a package and all of its items.

        Args:
            package_id: Package to resolve

        Returns:
            ResolvedPackage with items in display order

        Raises:
            CatalogInconsistencyError: If the package, its items or a contained
                product cannot be read
        """
        package = await self.catalog_client.get_package_by_id(package_id)
        if package is None:
            raise CatalogInconsistencyError("Package", package_id)

        package_items = await self.catalog_client.get_items_for_package(package_id)
        if package_items is None:
            raise CatalogInconsistencyError("Items of package", package_id)

        resolved = ResolvedPackage(package=package)
        for package_item in package_items:
            product = await self.catalog_cache.get_product(package_item.product_id)
            if product is None:
                raise CatalogInconsistencyError("Product", package_item.product_id)

            if package_item.product_name is None:
                package_item = package_item.model_copy(update={"product_name": product.name})

            slots = await self.resolve_item_slots(package_item)
            resolved.items.append(ResolvedPackageItem(package_item=package_item, product=product, slots=slots))

        return resolved

    async def _overrides_by_slot(self, package_item_id: str) -> dict[str, PackageItemSlotOverride]:
        overrides = await self.catalog_client.get_overrides_for_package_item(package_item_id)
        if overrides is None:
            raise CatalogInconsistencyError("Slot overrides of package item", package_item_id)

        by_slot: dict[str, PackageItemSlotOverride] = {}
        for override in overrides:
            if override.slot_id in by_slot:
                logger.warning(
                    f"Duplicate override for package item {package_item_id} and slot "
                    f"{override.slot_id}, keeping the first"
                )
                continue
            by_slot[override.slot_id] = override
        return by_slot
