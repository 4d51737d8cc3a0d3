"""Pricing of configured order lines.

Line totals are always recomputed from base price, modifiers and quantity.
Nothing is adjusted incrementally.
"""

from collections.abc import Iterable
from decimal import Decimal

from restaurant_order_service.models.order_models import (
    OrderItem,
    OrderItemType,
    PackageSubItem,
    SelectedModifier,
)

ZERO = Decimal("0")


def modifiers_total(modifiers: Iterable[SelectedModifier]) -> Decimal:
    """Sum of price modifier plus extra cost over the given modifiers."""
    return sum((modifier.line_amount for modifier in modifiers), ZERO)


def instance_price(base_price: Decimal, modifiers: Iterable[SelectedModifier]) -> Decimal:
    """Price of one configured product instance.

    Args:
        base_price: Catalog price of the product
        modifiers: Modifiers selected on the instance

    Returns:
        Decimal: base price plus every modifier's price and extra cost
    """
    return base_price + modifiers_total(modifiers)


def package_unit_price(package_price: Decimal, sub_items: Iterable[PackageSubItem]) -> Decimal:
    """Price of one copy of a configured package.

    Sub-item products are included in the package price. Only their modifiers
    add to it.
    """
    return package_price + sum(
        (modifiers_total(sub_item.selected_modifiers) for sub_item in sub_items), ZERO
    )


def recompute_item(item: OrderItem) -> OrderItem:
    """Recalculate an order line's total from scratch.

    Args:
        item: Line to reprice, updated in place

    Returns:
        OrderItem: The same line, for chaining
    """
    if item.type == OrderItemType.PACKAGE:
        unit_price = package_unit_price(item.base_price, item.package_items)
    else:
        unit_price = instance_price(item.base_price, item.selected_modifiers)

    item.total_price = unit_price * item.quantity
    return item


def order_subtotal(items: Iterable[OrderItem]) -> Decimal:
    """Sum of line totals. The order total equals the subtotal."""
    return sum((item.total_price for item in items), ZERO)
