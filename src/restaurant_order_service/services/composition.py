"""Order composition: view state machine, per-order context and composer actions.

The view state is an immutable value. Every transition function returns a new
state or raises InvalidTransitionError; nothing mutates a state in place.
"""

import logging
import uuid
from dataclasses import dataclass, field, replace
from decimal import Decimal
from enum import Enum

from restaurant_order_service.exceptions import (
    CatalogInconsistencyError,
    InvalidSelectionError,
    InvalidTransitionError,
)
from restaurant_order_service.models.catalog_models import ServingStyle
from restaurant_order_service.models.order_models import (
    Order,
    OrderItem,
    OrderItemType,
    SavedOrder,
)
from restaurant_order_service.services.catalog_cache import CatalogCache
from restaurant_order_service.services.catalog_client import CatalogServiceClient
from restaurant_order_service.services.instance_configuration import (
    PackageConfiguration,
    ProductInstanceConfiguration,
)
from restaurant_order_service.services.inventory_service import InventoryService
from restaurant_order_service.services.package_resolver import PackageResolver
from restaurant_order_service.services.pricing import recompute_item
from restaurant_order_service.services.slot_resolver import SlotResolver

logger = logging.getLogger(__name__)


class CompositionView(str, Enum):
    """Screens an operator moves through while composing an order."""

    CATEGORIES = "categories"
    PRODUCTS = "products"
    MODIFIERS = "modifiers"
    PACKAGE_DETAILS = "package_details"


@dataclass(frozen=True)
class CompositionState:
    """Where the operator currently is."""

    view: CompositionView = CompositionView.CATEGORIES
    category_id: str | None = None
    product_id: str | None = None
    package_id: str | None = None


def _require(state: CompositionState, action: str, *views: CompositionView) -> None:
    if state.view not in views:
        raise InvalidTransitionError(action, state.view.value)


def select_category(state: CompositionState, category_id: str | None) -> CompositionState:
    """Show the products of a category. None lists items that belong to no category."""
    _require(state, "select a category", CompositionView.CATEGORIES, CompositionView.PRODUCTS)
    return CompositionState(view=CompositionView.PRODUCTS, category_id=category_id)


def open_product(state: CompositionState, product_id: str) -> CompositionState:
    _require(state, "configure a product", CompositionView.PRODUCTS)
    return replace(state, view=CompositionView.MODIFIERS, product_id=product_id, package_id=None)


def open_package(state: CompositionState, package_id: str) -> CompositionState:
    _require(state, "configure a package", CompositionView.PRODUCTS)
    return replace(state, view=CompositionView.PACKAGE_DETAILS, package_id=package_id, product_id=None)


def close_configuration(state: CompositionState) -> CompositionState:
    _require(state, "finish a configuration", CompositionView.MODIFIERS, CompositionView.PACKAGE_DETAILS)
    return replace(state, view=CompositionView.PRODUCTS, product_id=None, package_id=None)


def go_back(state: CompositionState) -> CompositionState:
    """Return to the previous view."""
    if state.view in (CompositionView.MODIFIERS, CompositionView.PACKAGE_DETAILS):
        return close_configuration(state)
    if state.view == CompositionView.PRODUCTS:
        return CompositionState()
    raise InvalidTransitionError("go back", state.view.value)


@dataclass
class CompositionContext:
    """Everything belonging to one order being composed by one operator."""

    order: Order
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    state: CompositionState = field(default_factory=CompositionState)
    editing: SavedOrder | None = None
    product_configuration: ProductInstanceConfiguration | None = None
    package_configuration: PackageConfiguration | None = None

    @property
    def is_editing(self) -> bool:
        return self.editing is not None

    def require_product_configuration(self) -> ProductInstanceConfiguration:
        if self.product_configuration is None:
            raise InvalidTransitionError("change product modifiers", self.state.view.value)
        return self.product_configuration

    def require_package_configuration(self) -> PackageConfiguration:
        if self.package_configuration is None:
            raise InvalidTransitionError("change package modifiers", self.state.view.value)
        return self.package_configuration

    def require_item(self, unique_id: str) -> OrderItem:
        item = self.order.find_item(unique_id)
        if item is None:
            raise InvalidSelectionError(f"Order line {unique_id} not found", {"unique_id": unique_id})
        return item


class OrderComposer:
    """Actions an operator performs on a composing order.

    Each action either completes and leaves the order repriced, or raises
    before changing anything.
    """

    def __init__(
        self,
        catalog_client: CatalogServiceClient,
        catalog_cache: CatalogCache,
        slot_resolver: SlotResolver,
        package_resolver: PackageResolver,
        inventory: InventoryService,
        default_customer_name: str = "Cliente General",
    ) -> None:
        self.catalog_client = catalog_client
        self.catalog_cache = catalog_cache
        self.slot_resolver = slot_resolver
        self.package_resolver = package_resolver
        self.inventory = inventory
        self.default_customer_name = default_customer_name

    def new_context(self, customer_name: str | None = None) -> CompositionContext:
        return CompositionContext(order=Order(customer_name=customer_name or self.default_customer_name))

    def select_category(self, context: CompositionContext, category_id: str) -> None:
        context.state = select_category(context.state, category_id)

    def go_back(self, context: CompositionContext) -> None:
        """Leave the current view, discarding any unfinished configuration."""
        context.state = go_back(context.state)
        context.product_configuration = None
        context.package_configuration = None

    async def add_product(
        self, context: CompositionContext, product_id: str, quantity: int = 1
    ) -> list[OrderItem] | None:
        """Add a product, opening a configuration first if it has modifier slots.

        Args:
            context: Order being composed
            product_id: Product to add
            quantity: Number of instances

        Returns:
            The added lines for a product without slots, None if a
            configuration was opened instead

        Raises:
            CatalogInconsistencyError: If the product does not exist
            InsufficientStockError: If stock cannot cover the quantity
        """
        product = await self.catalog_cache.get_product(product_id)
        if product is None:
            raise CatalogInconsistencyError("Product", product_id)

        state = context.state
        if state.view == CompositionView.CATEGORIES:
            state = select_category(state, product.category_id)
        state = open_product(state, product_id)

        slots = await self.slot_resolver.resolve_slots(product_id)
        configuration = ProductInstanceConfiguration(product, slots, self.inventory, quantity)

        if not slots:
            items = configuration.build_order_items()
            context.order.items.extend(items)
            context.state = close_configuration(state)
            logger.info(f"Added {quantity} x {product.name} to order {context.id}")
            return items

        context.state = state
        context.product_configuration = configuration
        context.package_configuration = None
        return None

    async def begin_package(
        self, context: CompositionContext, package_id: str, copies: int = 1
    ) -> PackageConfiguration:
        """Open a package for configuration.

        Raises:
            CatalogInconsistencyError: If the package or its contents cannot be read
        """
        state = context.state
        resolved = await self.package_resolver.resolve_package(package_id)
        if state.view == CompositionView.CATEGORIES:
            state = select_category(state, resolved.package.category_id)
        state = open_package(state, package_id)

        configuration = PackageConfiguration(resolved, self.inventory, copies)
        context.state = state
        context.package_configuration = configuration
        context.product_configuration = None
        return configuration

    def commit_configuration(self, context: CompositionContext) -> list[OrderItem]:
        """Validate the open configuration and add its lines to the order.

        Raises:
            SlotSelectionError: If any slot is below its minimum or above its maximum
            InsufficientStockError: If stock no longer covers the configuration
            InvalidTransitionError: If nothing is being configured
        """
        if context.state.view == CompositionView.MODIFIERS:
            items = context.require_product_configuration().build_order_items()
        elif context.state.view == CompositionView.PACKAGE_DETAILS:
            items = [context.require_package_configuration().build_order_item()]
        else:
            raise InvalidTransitionError("commit a configuration", context.state.view.value)

        context.order.items.extend(items)
        context.state = close_configuration(context.state)
        context.product_configuration = None
        context.package_configuration = None
        logger.info(f"Added {len(items)} line(s) to order {context.id}")
        return items

    def remove_item(self, context: CompositionContext, unique_id: str) -> None:
        item = context.require_item(unique_id)
        context.order.items.remove(item)

    async def change_item_quantity(self, context: CompositionContext, unique_id: str, quantity: int) -> OrderItem:
        """Change a line's quantity and reprice it.

        Raises:
            InvalidSelectionError: If quantity is below 1 or the line does not exist
            InsufficientStockError: If increasing beyond what stock can cover
        """
        item = context.require_item(unique_id)
        if quantity < 1:
            raise InvalidSelectionError("Quantity must be at least 1", {"quantity": quantity})

        if quantity > item.quantity:
            await self._check_line_stock(item, quantity)

        item.quantity = quantity
        return recompute_item(item)

    async def _check_line_stock(self, item: OrderItem, quantity: int) -> None:
        if item.type == OrderItemType.PRODUCT:
            product = await self.catalog_cache.get_product(item.id)
            if product is None:
                raise CatalogInconsistencyError("Product", item.id)
            self.inventory.ensure_available(product, quantity)
            return

        contents = []
        modifiers = []
        for sub_item in item.package_items:
            product = await self.catalog_cache.get_product(sub_item.product_id)
            if product is None:
                raise CatalogInconsistencyError("Product", sub_item.product_id)
            contents.append((product, sub_item.quantity))
            for modifier in sub_item.selected_modifiers:
                modifier_product = await self.catalog_cache.get_product(modifier.product_id)
                if modifier_product is not None:
                    modifiers.append(modifier_product)
        self.inventory.validate_package(contents, modifiers, quantity)

    def set_item_serving_style(
        self,
        context: CompositionContext,
        unique_id: str,
        slot_id: str,
        product_id: str,
        serving_style: str,
        package_item_id: str | None = None,
    ) -> OrderItem:
        item = context.require_item(unique_id)
        modifier = item.find_modifier(slot_id, product_id, package_item_id)
        if modifier is None:
            raise InvalidSelectionError(
                f"Modifier {product_id} not found on line {unique_id}",
                {"unique_id": unique_id, "slot_id": slot_id, "product_id": product_id},
            )
        modifier.serving_style = serving_style
        return recompute_item(item)

    def set_item_extra_cost(
        self,
        context: CompositionContext,
        unique_id: str,
        slot_id: str,
        product_id: str,
        extra_cost: Decimal,
        package_item_id: str | None = None,
    ) -> OrderItem:
        """Set the surcharge of a modifier on an order line and reprice the line.

        The line total moves by the change in extra cost times the line quantity.
        """
        if extra_cost < 0:
            raise InvalidSelectionError("Extra cost cannot be negative", {"extra_cost": str(extra_cost)})

        item = context.require_item(unique_id)
        modifier = item.find_modifier(slot_id, product_id, package_item_id)
        if modifier is None:
            raise InvalidSelectionError(
                f"Modifier {product_id} not found on line {unique_id}",
                {"unique_id": unique_id, "slot_id": slot_id, "product_id": product_id},
            )
        modifier.extra_cost = extra_cost
        return recompute_item(item)

    def clear(self, context: CompositionContext) -> None:
        """Discard the order and leave edit mode."""
        context.order = Order(customer_name=self.default_customer_name)
        context.state = CompositionState()
        context.editing = None
        context.product_configuration = None
        context.package_configuration = None

    async def serving_styles(self, category_id: str) -> list[ServingStyle]:
        styles = await self.catalog_client.get_serving_styles_for_category(category_id)
        return styles or []
