"""Resolution of the legal modifier choices for a product."""

import logging

from restaurant_order_service.exceptions import CatalogInconsistencyError
from restaurant_order_service.models.catalog_models import (
    ModifierSlot,
    ResolvedOption,
    ResolvedSlot,
)
from restaurant_order_service.services.catalog_cache import CatalogCache
from restaurant_order_service.services.catalog_client import CatalogServiceClient

logger = logging.getLogger(__name__)


class SlotResolver:
    """Resolves a product's modifier slots into concrete, priced options.

    A slot with explicit options offers exactly those products at their base
    price plus the option's adjustment. A slot without explicit options offers
    every product of its linked category at base price.
    """

    def __init__(self, catalog_client: CatalogServiceClient, catalog_cache: CatalogCache) -> None:
        """Initialize the resolver.

        Args:
            catalog_client: Client used to read slots and category members
            catalog_cache: Product cache used to look up explicit option products
        """
        self.catalog_client = catalog_client
        self.catalog_cache = catalog_cache

    async def resolve_slots(self, product_id: str) -> list[ResolvedSlot]:
        """Resolve every modifier slot of a product, in catalog order.

        Args:
            product_id: Product whose slots to resolve

        Returns:
            List of ResolvedSlot objects, empty if the product has no slots

        Raises:
            CatalogInconsistencyError: If the slots could not be read
        """
        slots = await self.catalog_client.get_modifier_slots_for_product(product_id)
        if slots is None:
            raise CatalogInconsistencyError("Modifier slots of product", product_id)

        resolved: list[ResolvedSlot] = []
        for slot in slots:
            resolved_slot = await self.resolve_slot(slot)
            if resolved_slot is not None:
                resolved.append(resolved_slot)
        return resolved

    async def resolve_slot(self, slot: ModifierSlot) -> ResolvedSlot | None:
        """Resolve a single slot.

        Args:
            slot: Catalog slot definition

        Returns:
            ResolvedSlot, or None when an explicit allow-list resolves to nothing
        """
        if slot.allowed_options:
            options = await self._resolve_explicit_options(slot)
            if not options:
                logger.warning(
                    f"Skipping slot '{slot.label}' ({slot.id}): none of its explicit options exist"
                )
                return None
        else:
            options = await self._resolve_category_options(slot)

        if not options and slot.min_quantity > 0:
            logger.warning(
                f"Slot '{slot.label}' ({slot.id}) requires {slot.min_quantity} selection(s) "
                "but has no options"
            )

        return ResolvedSlot(
            id=slot.id,
            product_id=slot.product_id,
            label=slot.label,
            linked_category_id=slot.linked_category_id,
            min_quantity=slot.min_quantity,
            max_quantity=slot.max_quantity,
            options=tuple(options),
        )

    async def _resolve_explicit_options(self, slot: ModifierSlot) -> list[ResolvedOption]:
        options: list[ResolvedOption] = []
        for slot_option in slot.allowed_options:
            product = await self.catalog_cache.get_product(slot_option.modifier_product_id)
            if product is None:
                logger.warning(
                    f"Option product {slot_option.modifier_product_id} of slot "
                    f"'{slot.label}' not found, dropping it"
                )
                continue

            options.append(
                ResolvedOption(
                    product=product,
                    effective_price=product.price + slot_option.price_adjustment,
                    price_adjustment=slot_option.price_adjustment,
                    is_default=slot_option.is_default,
                )
            )
        return options

    async def _resolve_category_options(self, slot: ModifierSlot) -> list[ResolvedOption]:
        products = await self.catalog_client.get_modifiers_by_category(slot.linked_category_id)
        if products is None:
            logger.warning(
                f"Could not read category {slot.linked_category_id} for slot '{slot.label}'"
            )
            return []

        self.catalog_cache.prime(products)
        return [ResolvedOption(product=product, effective_price=product.price) for product in products]
