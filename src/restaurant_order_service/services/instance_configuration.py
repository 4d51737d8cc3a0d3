"""In-progress modifier selections for products and packages.

A product added with quantity N gets N independent selection sets, one per
instance. A package gets one selection set per package item, shared by every
copy added in the same action. Selections are only checked against slot
minimums when the configuration is committed.
"""

import logging
from decimal import Decimal

from restaurant_order_service.exceptions import InvalidSelectionError, SlotSelectionError
from restaurant_order_service.models.catalog_models import Product, ResolvedSlot
from restaurant_order_service.models.order_models import (
    OrderItem,
    OrderItemType,
    PackageSubItem,
    SelectedModifier,
)
from restaurant_order_service.services.inventory_service import InventoryService
from restaurant_order_service.services.package_resolver import ResolvedPackage, ResolvedPackageItem
from restaurant_order_service.services.pricing import recompute_item

logger = logging.getLogger(__name__)


def _find_slot(slots: dict[str, ResolvedSlot], slot_id: str) -> ResolvedSlot:
    slot = slots.get(slot_id)
    if slot is None:
        raise InvalidSelectionError(f"Unknown modifier slot {slot_id}", {"slot_id": slot_id})
    return slot


def _find_selection(selections: list[SelectedModifier], slot_id: str, product_id: str) -> SelectedModifier:
    for modifier in selections:
        if modifier.slot_id == slot_id and modifier.product_id == product_id:
            return modifier
    raise InvalidSelectionError(
        f"Option {product_id} is not selected in slot {slot_id}",
        {"slot_id": slot_id, "product_id": product_id},
    )


def toggle_selection(
    selections: list[SelectedModifier],
    slot: ResolvedSlot,
    option_product_id: str,
    inventory: InventoryService,
    instance_number: int | None = None,
    product_name: str | None = None,
) -> bool:
    """Select an option, or deselect it if already selected.

    Deselection is always allowed. Selection is rejected without changing
    anything when the slot is already at its maximum or the option's stock
    cannot cover one more unit.

    Args:
        selections: Selection set to update in place
        slot: Slot the option belongs to, with effective constraints
        option_product_id: Modifier product to toggle
        inventory: Stock checker
        instance_number: 1-based instance for error messages
        product_name: Product being configured, for error messages

    Returns:
        bool: True if the option is now selected, False if it was deselected
    """
    for index, modifier in enumerate(selections):
        if modifier.slot_id == slot.id and modifier.product_id == option_product_id:
            del selections[index]
            return False

    option = slot.find_option(option_product_id)
    if option is None:
        raise InvalidSelectionError(
            f'Option {option_product_id} is not offered in "{slot.label}"',
            {"slot_id": slot.id, "product_id": option_product_id},
        )

    selected_in_slot = sum(1 for modifier in selections if modifier.slot_id == slot.id)
    if selected_in_slot >= slot.max_quantity:
        raise SlotSelectionError(
            slot.label,
            slot.min_quantity,
            slot.max_quantity,
            selected_in_slot + 1,
            instance_number,
            product_name,
        )

    inventory.ensure_available(option.product, 1)

    selections.append(
        SelectedModifier(
            product_id=option.product.id,
            name=option.product.name,
            slot_id=slot.id,
            price_modifier=option.effective_price,
        )
    )
    return True


def validate_selections(
    selections: list[SelectedModifier],
    slots: list[ResolvedSlot],
    instance_number: int | None = None,
    product_name: str | None = None,
) -> None:
    """Check every slot's count against its [min, max] range.

    Raises:
        SlotSelectionError: For the first slot out of range
    """
    for slot in slots:
        count = sum(1 for modifier in selections if modifier.slot_id == slot.id)
        if count < slot.min_quantity or count > slot.max_quantity:
            raise SlotSelectionError(
                slot.label, slot.min_quantity, slot.max_quantity, count, instance_number, product_name
            )


def _check_extra_cost(extra_cost: Decimal) -> None:
    if extra_cost < 0:
        raise InvalidSelectionError("Extra cost cannot be negative", {"extra_cost": str(extra_cost)})


class ProductInstanceConfiguration:
    """Selections for N instances of one product being added to an order."""

    def __init__(
        self,
        product: Product,
        slots: list[ResolvedSlot],
        inventory: InventoryService,
        quantity: int = 1,
    ) -> None:
        """Start configuring a product.

        Args:
            product: Product being added
            slots: Resolved slots of the product
            inventory: Stock checker
            quantity: Initial number of instances

        Raises:
            InsufficientStockError: If stock cannot cover the initial quantity
        """
        self.product = product
        self.slots = slots
        self.inventory = inventory
        self._slots_by_id = {slot.id: slot for slot in slots}
        self.instances: list[list[SelectedModifier]] = [[]]
        self.active_index = 0
        if quantity != 1:
            self.set_instance_count(quantity)
        else:
            inventory.ensure_available(product, 1)

    @property
    def instance_count(self) -> int:
        return len(self.instances)

    @property
    def active_selections(self) -> list[SelectedModifier]:
        return self.instances[self.active_index]

    def set_instance_count(self, count: int) -> None:
        """Grow or shrink the number of instances.

        Surviving instances keep their selections. If the active instance is
        removed, the last remaining instance becomes active.

        Raises:
            InvalidSelectionError: If count is below 1
            InsufficientStockError: If growing beyond what stock can cover
        """
        if count < 1:
            raise InvalidSelectionError("Quantity must be at least 1", {"quantity": count})

        if count > len(self.instances):
            self.inventory.ensure_available(self.product, count)
            self.instances.extend([] for _ in range(count - len(self.instances)))
        else:
            del self.instances[count:]

        if self.active_index >= count:
            self.active_index = count - 1

    def set_active_instance(self, index: int) -> None:
        if not 0 <= index < len(self.instances):
            raise InvalidSelectionError(
                f"Instance {index + 1} does not exist", {"instance_number": index + 1}
            )
        self.active_index = index

    def _instance(self, index: int | None) -> tuple[int, list[SelectedModifier]]:
        if index is None:
            index = self.active_index
        if not 0 <= index < len(self.instances):
            raise InvalidSelectionError(
                f"Instance {index + 1} does not exist", {"instance_number": index + 1}
            )
        return index, self.instances[index]

    def select_option(self, slot_id: str, option_product_id: str, instance_index: int | None = None) -> bool:
        """Toggle an option on one instance (the active one by default).

        Returns:
            bool: True if the option is now selected
        """
        index, selections = self._instance(instance_index)
        slot = _find_slot(self._slots_by_id, slot_id)
        return toggle_selection(
            selections, slot, option_product_id, self.inventory, index + 1, self.product.name
        )

    def apply_current_to_all(self) -> None:
        """Copy the active instance's selections onto every instance."""
        source = self.active_selections
        self.instances = [
            [modifier.model_copy() for modifier in source] for _ in range(len(self.instances))
        ]

    def set_serving_style(
        self, slot_id: str, product_id: str, serving_style: str, instance_index: int | None = None
    ) -> None:
        _, selections = self._instance(instance_index)
        _find_selection(selections, slot_id, product_id).serving_style = serving_style

    def set_extra_cost(
        self, slot_id: str, product_id: str, extra_cost: Decimal, instance_index: int | None = None
    ) -> None:
        _check_extra_cost(extra_cost)
        _, selections = self._instance(instance_index)
        _find_selection(selections, slot_id, product_id).extra_cost = extra_cost

    def validate(self) -> None:
        """Check every instance against every slot's range.

        Raises:
            SlotSelectionError: Naming the slot and the 1-based instance
        """
        for index, selections in enumerate(self.instances):
            validate_selections(selections, self.slots, index + 1, self.product.name)

    def build_order_items(self) -> list[OrderItem]:
        """Validate and turn the configuration into priced order lines.

        A product without slots becomes one line with the full quantity. A
        product with slots becomes one line per instance so that each keeps
        its own modifiers.
        """
        self.validate()
        self.inventory.ensure_available(self.product, len(self.instances))

        if not self.slots:
            return [recompute_item(self._new_item(len(self.instances), []))]

        return [
            recompute_item(self._new_item(1, [modifier.model_copy() for modifier in selections]))
            for selections in self.instances
        ]

    def _new_item(self, quantity: int, modifiers: list[SelectedModifier]) -> OrderItem:
        return OrderItem(
            type=OrderItemType.PRODUCT,
            id=self.product.id,
            name=self.product.name,
            quantity=quantity,
            base_price=self.product.price,
            selected_modifiers=modifiers,
        )


class PackageConfiguration:
    """Selections for the items of a package being added to an order."""

    def __init__(self, resolved_package: ResolvedPackage, inventory: InventoryService, copies: int = 1) -> None:
        self.resolved_package = resolved_package
        self.inventory = inventory
        self.copies = 1
        self.selections: dict[str, list[SelectedModifier]] = {
            item.package_item.id: [] for item in resolved_package.items
        }
        self.set_copies(copies)

    def _item(self, package_item_id: str) -> ResolvedPackageItem:
        item = self.resolved_package.find_item(package_item_id)
        if item is None:
            raise InvalidSelectionError(
                f"Package item {package_item_id} is not part of {self.resolved_package.package.name}",
                {"package_item_id": package_item_id},
            )
        return item

    def set_copies(self, copies: int) -> None:
        """Set how many copies of the package are added.

        Raises:
            InvalidSelectionError: If copies is below 1
            InsufficientStockError: If stock cannot cover the contents
        """
        if copies < 1:
            raise InvalidSelectionError("Quantity must be at least 1", {"quantity": copies})
        if copies > self.copies:
            self._validate_stock(copies)
        self.copies = copies

    def select_option(self, package_item_id: str, slot_id: str, option_product_id: str) -> bool:
        """Toggle an option for a package item against its override-resolved slots.

        Returns:
            bool: True if the option is now selected
        """
        item = self._item(package_item_id)
        slot = _find_slot({slot.id: slot for slot in item.slots}, slot_id)
        return toggle_selection(
            self.selections[package_item_id],
            slot,
            option_product_id,
            self.inventory,
            product_name=item.package_item.product_name,
        )

    def set_serving_style(self, package_item_id: str, slot_id: str, product_id: str, serving_style: str) -> None:
        self._item(package_item_id)
        _find_selection(self.selections[package_item_id], slot_id, product_id).serving_style = serving_style

    def set_extra_cost(self, package_item_id: str, slot_id: str, product_id: str, extra_cost: Decimal) -> None:
        _check_extra_cost(extra_cost)
        self._item(package_item_id)
        _find_selection(self.selections[package_item_id], slot_id, product_id).extra_cost = extra_cost

    def validate(self) -> None:
        """Check every package item's selections against its effective slot ranges.

        Raises:
            SlotSelectionError: Naming the slot and the package item's product
        """
        for item in self.resolved_package.items:
            validate_selections(
                self.selections[item.package_item.id], item.slots, product_name=item.package_item.product_name
            )

    def _validate_stock(self, copies: int) -> None:
        contents = [(item.product, item.package_item.quantity) for item in self.resolved_package.items]
        modifiers = []
        for item in self.resolved_package.items:
            slots = {slot.id: slot for slot in item.slots}
            for modifier in self.selections[item.package_item.id]:
                option = slots[modifier.slot_id].find_option(modifier.product_id)
                if option is not None:
                    modifiers.append(option.product)
        self.inventory.validate_package(contents, modifiers, copies)

    def build_order_item(self) -> OrderItem:
        """Validate and turn the configuration into one priced package line."""
        self.validate()
        self._validate_stock(self.copies)

        package = self.resolved_package.package
        sub_items = [
            PackageSubItem(
                package_item_id=item.package_item.id,
                product_id=item.product.id,
                product_name=item.package_item.product_name or item.product.name,
                quantity=item.package_item.quantity,
                selected_modifiers=[modifier.model_copy() for modifier in self.selections[item.package_item.id]],
            )
            for item in self.resolved_package.items
        ]
        item = OrderItem(
            type=OrderItemType.PACKAGE,
            id=package.id,
            name=package.name,
            quantity=self.copies,
            base_price=package.price,
            package_items=sub_items,
        )
        logger.debug(f"Configured {self.copies} x package {package.name}")
        return recompute_item(item)
