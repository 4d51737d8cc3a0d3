"""Rebuilds an editable order from a saved, flattened order record."""

import logging
from dataclasses import dataclass, field

from restaurant_order_service.models.catalog_models import PackageItem
from restaurant_order_service.models.order_models import (
    DEFAULT_SERVING_STYLE,
    Order,
    OrderItem,
    OrderItemType,
    PackageSubItem,
    SavedOrder,
    SavedOrderComponent,
    SavedOrderItem,
    SelectedModifier,
)
from restaurant_order_service.observability import traced
from restaurant_order_service.observability.metrics import record_reconciliation_gaps
from restaurant_order_service.services.catalog_cache import CatalogCache
from restaurant_order_service.services.catalog_client import CatalogServiceClient

logger = logging.getLogger(__name__)


@dataclass
class ReconciliationGap:
    """A saved item or component that could not be rebuilt.

    Attributes:
        item_name: Name of the saved order item
        reason: Why it was dropped
        component_name: Name of the dropped component, None if the whole item was dropped
    """

    item_name: str
    reason: str
    component_name: str | None = None


@dataclass
class ReconciliationResult:
    """Outcome of rebuilding a saved order."""

    order: Order
    source: SavedOrder
    gaps: list[ReconciliationGap] = field(default_factory=list)


def _to_modifier(component: SavedOrderComponent) -> SelectedModifier:
    return SelectedModifier(
        product_id=component.product_id,
        name=component.name,
        slot_id=component.slot_id,
        price_modifier=component.price_modifier or 0,
        serving_style=component.serving_style or DEFAULT_SERVING_STYLE,
        extra_cost=component.extra_cost or 0,
    )


class OrderReconciler:
    """Turns a SavedOrder back into a composing Order.

    Names and base prices come from the current catalog. Each line keeps its
    saved total until the operator changes it.
    """

    def __init__(self, catalog_client: CatalogServiceClient, catalog_cache: CatalogCache) -> None:
        self.catalog_client = catalog_client
        self.catalog_cache = catalog_cache

    @traced("reconcile_order")
    async def reconcile(self, saved_order: SavedOrder) -> ReconciliationResult:
        """Rebuild an order for editing.

        Args:
            saved_order: The persisted order

        Returns:
            ReconciliationResult with the rebuilt order and anything that was dropped
        """
        result = ReconciliationResult(
            order=Order(
                customer_name=saved_order.customer_name,
                client_id=saved_order.client_id,
                payment_method=saved_order.payment_method,
                order_type=saved_order.order_type,
                delivery_address=saved_order.delivery_address,
                delivery_phone=saved_order.delivery_phone,
                platform_name=saved_order.platform_name,
                platform_order_id=saved_order.platform_order_id,
            ),
            source=saved_order,
        )

        for saved_item in saved_order.items:
            if saved_item.is_package:
                item = await self._reconcile_package(saved_item, result.gaps)
            else:
                item = await self._reconcile_product(saved_item, result.gaps)

            if item is not None:
                result.order.items.append(item)

        for gap in result.gaps:
            logger.warning(
                f"Order #{saved_order.order_number}: dropped "
                f"{gap.component_name or gap.item_name} ({gap.reason})"
            )
        record_reconciliation_gaps(len(result.gaps))

        return result

    async def _reconcile_product(
        self, saved_item: SavedOrderItem, gaps: list[ReconciliationGap]
    ) -> OrderItem | None:
        product = await self.catalog_cache.get_product(saved_item.id)
        if product is None:
            gaps.append(ReconciliationGap(saved_item.name, "product no longer in catalog"))
            return None

        modifiers = []
        for component in saved_item.components:
            if component.product_id and component.slot_id:
                modifiers.append(_to_modifier(component))
            else:
                gaps.append(
                    ReconciliationGap(saved_item.name, "component has no product or slot", component.name)
                )

        return OrderItem(
            type=OrderItemType.PRODUCT,
            id=product.id,
            name=product.name,
            quantity=saved_item.quantity,
            base_price=product.price,
            selected_modifiers=modifiers,
            total_price=saved_item.total_item_price,
        )

    async def _reconcile_package(
        self, saved_item: SavedOrderItem, gaps: list[ReconciliationGap]
    ) -> OrderItem | None:
        package = await self.catalog_client.get_package_by_id(saved_item.id)
        if package is None:
            gaps.append(ReconciliationGap(saved_item.name, "package no longer in catalog"))
            return None

        package_items = await self.catalog_client.get_items_for_package(package.id)
        if package_items is None:
            gaps.append(ReconciliationGap(saved_item.name, "package contents could not be read"))
            return None

        sub_items = [await self._sub_item(package_item) for package_item in package_items]
        self._distribute_modifiers(saved_item, sub_items, gaps)

        return OrderItem(
            type=OrderItemType.PACKAGE,
            id=package.id,
            name=package.name,
            quantity=saved_item.quantity,
            base_price=package.price,
            package_items=sub_items,
            total_price=saved_item.total_item_price,
        )

    async def _sub_item(self, package_item: PackageItem) -> PackageSubItem:
        name = package_item.product_name
        if name is None:
            product = await self.catalog_cache.get_product(package_item.product_id)
            name = product.name if product else package_item.product_id

        return PackageSubItem(
            package_item_id=package_item.id,
            product_id=package_item.product_id,
            product_name=name,
            quantity=package_item.quantity,
        )

    @staticmethod
    def _distribute_modifiers(
        saved_item: SavedOrderItem, sub_items: list[PackageSubItem], gaps: list[ReconciliationGap]
    ) -> None:
        """Attach each saved modifier component to one package sub-item.

        Matching order: the explicit packageItemId, then the sub-item whose
        product name appears in the component name, then the sub-item of the
        nearest preceding content row.
        """
        by_package_item = {sub_item.package_item_id: sub_item for sub_item in sub_items}
        content_ordinal = -1
        current_sub_item: PackageSubItem | None = None

        for component in saved_item.components:
            if component.is_package_content:
                content_ordinal += 1
                current_sub_item = _content_row_sub_item(component, content_ordinal, sub_items, by_package_item)
                if current_sub_item is None:
                    gaps.append(
                        ReconciliationGap(saved_item.name, "package content no longer in package", component.name)
                    )
                continue

            if not (component.product_id and component.slot_id):
                gaps.append(ReconciliationGap(saved_item.name, "component has no product or slot", component.name))
                continue

            target = by_package_item.get(component.package_item_id) if component.package_item_id else None
            if target is None:
                target = next((sub for sub in sub_items if sub.product_name in component.name), None)
            if target is None:
                target = current_sub_item

            if target is None:
                gaps.append(
                    ReconciliationGap(saved_item.name, "no package item matches the modifier", component.name)
                )
                continue

            target.selected_modifiers.append(_to_modifier(component))


def _content_row_sub_item(
    component: SavedOrderComponent,
    ordinal: int,
    sub_items: list[PackageSubItem],
    by_package_item: dict[str, PackageSubItem],
) -> PackageSubItem | None:
    if component.package_item_id and component.package_item_id in by_package_item:
        return by_package_item[component.package_item_id]

    if ordinal < len(sub_items) and sub_items[ordinal].product_id == component.product_id:
        return sub_items[ordinal]

    return next(
        (
            sub
            for sub in sub_items
            if sub.product_id == component.product_id or sub.product_name == component.name
        ),
        None,
    )
