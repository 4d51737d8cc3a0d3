"""Order lifecycle: finalize, edit, pause, complete and cancel."""

import logging
from datetime import UTC, datetime
from decimal import Decimal

from restaurant_order_service.exceptions import (
    EmptyOrderError,
    InventoryAdjustmentError,
    OrderDetailsError,
    OrderNotFoundError,
    OrderPersistenceError,
    OrderStatusError,
    PausedOrderNotFoundError,
    PaymentError,
    VoidConfirmationRequired,
)
from restaurant_order_service.models.order_models import (
    PACKAGE_CONTENT_LABEL,
    CancellationDetails,
    Order,
    OrderItem,
    OrderItemType,
    OrderStatus,
    OrderType,
    PausedOrder,
    PaymentMethod,
    SavedOrder,
    SavedOrderComponent,
    SavedOrderItem,
    SelectedModifier,
)
from restaurant_order_service.observability import traced
from restaurant_order_service.observability.metrics import (
    record_inventory_adjustment_failure,
    record_order_cancelled,
    record_order_finalized,
    record_order_paused,
)
from restaurant_order_service.repositories.order_repository import SavedOrderRepository
from restaurant_order_service.repositories.paused_order_repository import PausedOrderRepository
from restaurant_order_service.services.composition import CompositionContext, OrderComposer
from restaurant_order_service.services.inventory_service import InventoryService, merge_deltas
from restaurant_order_service.services.order_reconciler import OrderReconciler, ReconciliationGap

logger = logging.getLogger(__name__)


def _modifier_component(modifier: SelectedModifier, package_item_id: str | None = None) -> SavedOrderComponent:
    return SavedOrderComponent(
        name=modifier.name,
        product_id=modifier.product_id,
        slot_id=modifier.slot_id,
        price_modifier=modifier.price_modifier,
        serving_style=modifier.serving_style,
        extra_cost=modifier.extra_cost,
        package_item_id=package_item_id,
    )


def flatten_item(item: OrderItem) -> SavedOrderItem:
    """Flatten a composing order line into its saved form.

    A package line lists each contained product as a content row followed by
    that product's modifiers. Every package component carries its package item
    id so the line can be rebuilt exactly.
    """
    components: list[SavedOrderComponent] = []
    if item.type == OrderItemType.PACKAGE:
        for sub_item in item.package_items:
            components.append(
                SavedOrderComponent(
                    name=sub_item.product_name,
                    slot_label=PACKAGE_CONTENT_LABEL,
                    product_id=sub_item.product_id,
                    package_item_id=sub_item.package_item_id,
                )
            )
            components.extend(
                _modifier_component(modifier, sub_item.package_item_id) for modifier in sub_item.selected_modifiers
            )
    else:
        components.extend(_modifier_component(modifier) for modifier in item.selected_modifiers)

    return SavedOrderItem(
        id=item.id,
        name=item.name,
        quantity=item.quantity,
        price=item.base_price,
        total_item_price=item.total_price,
        components=components,
    )


class OrderService:
    """Service for moving orders through their lifecycle.

    Finalize and cancel apply their inventory changes as one batch before the
    order is written. If the write fails, the batch is reversed.
    """

    def __init__(
        self,
        order_repository: SavedOrderRepository,
        inventory: InventoryService,
        reconciler: OrderReconciler,
        paused_order_repository: PausedOrderRepository,
    ) -> None:
        """Initialize the OrderService.

        Args:
            order_repository: Saved order storage
            inventory: Inventory validator and consumer
            reconciler: Rebuilds saved orders for editing
            paused_order_repository: Storage for orders set aside before finalizing
        """
        self.order_repository = order_repository
        self.inventory = inventory
        self.reconciler = reconciler
        self.paused_order_repository = paused_order_repository

    def get_order(self, order_id: str) -> SavedOrder:
        """Fetch a saved order.

        Raises:
            OrderNotFoundError: If the order does not exist
        """
        saved = self.order_repository.get_order(order_id)
        if saved is None:
            raise OrderNotFoundError(order_id)
        return saved

    def list_orders(self, status: OrderStatus | None = None) -> list[SavedOrder]:
        return self.order_repository.list_orders(status)

    @traced("finalize_order")
    async def finalize(self, context: CompositionContext) -> SavedOrder:
        """Validate, consume inventory for and persist the composed order.

        When the context is editing a saved order, the saved order's consumption
        is returned and the new consumption taken in the same batch, and the
        saved record is replaced.

        Args:
            context: The order being composed

        Returns:
            SavedOrder: The persisted record

        Raises:
            EmptyOrderError: If the order has no lines
            PaymentError: If a cash payment does not cover the total
            OrderDetailsError: If a delivery or platform order lacks its details
            OrderStatusError: If the edited order is no longer pending
            InsufficientStockError: If stock cannot cover the order
            InventoryAdjustmentError: If the inventory batch was rejected
            OrderPersistenceError: If the order could not be stored
        """
        order = context.order
        self._check_payable(order)

        original = context.editing
        if original is not None:
            current = self.get_order(original.id)
            if current.status != OrderStatus.PENDING:
                raise OrderStatusError(current.id, current.status, "edited")
            original = current

        consumption = await self.inventory.consumption_deltas(order.items)
        restock = await self.inventory.restock_deltas(original) if original else {}
        deltas = merge_deltas(restock, consumption)

        saved = self._build_saved_order(order, original, consumption)

        try:
            applied = self.inventory.apply_deltas(deltas)
        except InventoryAdjustmentError:
            record_inventory_adjustment_failure("finalize")
            raise

        if not self.order_repository.save_order(saved):
            self._compensate(applied)
            raise OrderPersistenceError(saved.id)

        record_order_finalized(float(saved.total), edited=original is not None)
        logger.info(
            f"Order #{saved.order_number} {'updated' if original else 'finalized'} "
            f"with {len(saved.items)} item(s), total {saved.total}"
        )
        return saved

    @staticmethod
    def _check_payable(order: Order) -> None:
        if not order.items:
            raise EmptyOrderError()

        if order.payment_method == PaymentMethod.CASH and (
            order.paid_amount is None or order.paid_amount < order.total
        ):
            raise PaymentError(order.total, order.paid_amount)

        missing = []
        if order.order_type == OrderType.PLATFORM:
            if not order.platform_name:
                missing.append("platform_name")
            if not order.platform_order_id:
                missing.append("platform_order_id")
        elif order.order_type == OrderType.DELIVERY and not order.delivery_address:
            missing.append("delivery_address")
        if missing:
            raise OrderDetailsError(OrderType(order.order_type).value, missing)

    def _build_saved_order(
        self, order: Order, original: SavedOrder | None, consumption: dict[str, Decimal]
    ) -> SavedOrder:
        if original is None:
            order_number = self.order_repository.next_order_number()
            if order_number is None:
                raise OrderPersistenceError("new order")
        else:
            order_number = original.order_number

        delivery = order.order_type == OrderType.DELIVERY
        platform = order.order_type == OrderType.PLATFORM
        fields = {
            "order_number": order_number,
            "customer_name": order.customer_name,
            "client_id": order.client_id,
            "payment_method": order.payment_method,
            "order_type": order.order_type,
            "delivery_address": order.delivery_address if delivery else None,
            "delivery_phone": order.delivery_phone if delivery else None,
            "platform_name": order.platform_name if platform else None,
            "platform_order_id": order.platform_order_id if platform else None,
            "status": OrderStatus.PENDING,
            "subtotal": order.subtotal,
            "total": order.total,
            "paid_amount": order.paid_amount if order.payment_method == PaymentMethod.CASH else None,
            "change_given": order.change_due if order.payment_method == PaymentMethod.CASH else None,
            "items": [flatten_item(item) for item in order.items],
            "inventory_consumed": {item_id: -delta for item_id, delta in consumption.items()},
        }

        if original is None:
            return SavedOrder(**fields)

        return SavedOrder(
            id=original.id,
            created_at=original.created_at,
            updated_at=datetime.now(UTC),
            **fields,
        )

    def _compensate(self, applied: dict[str, Decimal]) -> None:
        if not applied:
            return
        try:
            self.inventory.apply_deltas({item_id: -delta for item_id, delta in applied.items()})
            logger.warning(f"Reverted inventory batch of {len(applied)} item(s) after a failed order write")
        except InventoryAdjustmentError as e:
            record_inventory_adjustment_failure("compensate")
            logger.error(f"Could not revert inventory after a failed order write: {e.details}")

    @traced("cancel_order")
    async def cancel(
        self,
        order_id: str,
        details: CancellationDetails,
        acknowledge_no_restock: bool = False,
    ) -> SavedOrder:
        """Cancel a pending order or void a completed one.

        A pending order's consumption is returned to stock. A completed order
        is voided without any stock change, which the operator must
        acknowledge.

        Args:
            order_id: Order to cancel
            details: Reason, operator and authorization
            acknowledge_no_restock: Operator confirmed a void does not restock

        Returns:
            SavedOrder: The cancelled record

        Raises:
            OrderNotFoundError: If the order does not exist
            OrderStatusError: If the order is already cancelled
            VoidConfirmationRequired: If voiding without acknowledgement
            InventoryAdjustmentError: If the restock batch was rejected
            OrderPersistenceError: If the cancelled order could not be stored
        """
        saved = self.get_order(order_id)

        if saved.status == OrderStatus.CANCELLED:
            raise OrderStatusError(order_id, saved.status, OrderStatus.CANCELLED.value)

        restocking = saved.status == OrderStatus.PENDING
        if not restocking and not acknowledge_no_restock:
            raise VoidConfirmationRequired(order_id, saved.order_number)

        applied: dict[str, Decimal] = {}
        if restocking:
            try:
                applied = self.inventory.apply_deltas(await self.inventory.restock_deltas(saved))
            except InventoryAdjustmentError:
                record_inventory_adjustment_failure("cancel")
                raise

        cancelled = saved.model_copy(
            update={
                "status": OrderStatus.CANCELLED.value,
                "cancellation_details": details,
                "updated_at": datetime.now(UTC),
            }
        )
        if not self.order_repository.save_order(cancelled):
            self._compensate(applied)
            raise OrderPersistenceError(order_id)

        record_order_cancelled(restocked=restocking)
        logger.info(
            f"Order #{saved.order_number} {'cancelled and restocked' if restocking else 'voided without restock'}"
        )
        return cancelled

    def complete(self, order_id: str) -> SavedOrder:
        """Mark a pending order as completed.

        Raises:
            OrderNotFoundError: If the order does not exist
            OrderStatusError: If the order is not pending
            OrderPersistenceError: If the update could not be stored
        """
        saved = self.get_order(order_id)
        if saved.status != OrderStatus.PENDING:
            raise OrderStatusError(order_id, saved.status, OrderStatus.COMPLETED.value)

        completed = saved.model_copy(
            update={"status": OrderStatus.COMPLETED.value, "updated_at": datetime.now(UTC)}
        )
        if not self.order_repository.save_order(completed):
            raise OrderPersistenceError(order_id)
        return completed

    async def load_for_editing(
        self, order_id: str, composer: OrderComposer
    ) -> tuple[CompositionContext, list[ReconciliationGap]]:
        """Rebuild a pending saved order into a composition context.

        Returns:
            The editing context and any items or modifiers that could not be restored

        Raises:
            OrderNotFoundError: If the order does not exist
            OrderStatusError: If the order is not pending
        """
        saved = self.get_order(order_id)
        if saved.status != OrderStatus.PENDING:
            raise OrderStatusError(order_id, saved.status, "edited")

        result = await self.reconciler.reconcile(saved)
        context = composer.new_context(saved.customer_name)
        context.order = result.order
        context.editing = saved
        return context, result.gaps

    def pause(self, context: CompositionContext, composer: OrderComposer) -> PausedOrder:
        """Set the composed order aside and clear the context for the next one.

        No stock moves. Any open product or package configuration is discarded.

        Raises:
            EmptyOrderError: If the order has no lines
            OrderPersistenceError: If the paused order could not be stored
        """
        if not context.order.items:
            raise EmptyOrderError()

        paused = PausedOrder.from_order(context.order, context.editing.id if context.editing else None)
        if not self.paused_order_repository.save_paused_order(paused):
            raise OrderPersistenceError(paused.paused_id)

        composer.clear(context)
        record_order_paused()
        logger.info(f"Paused order for {paused.customer_name} with {len(paused.items)} item(s) as {paused.paused_id}")
        return paused

    def list_paused(self) -> list[PausedOrder]:
        return self.paused_order_repository.list_paused_orders()

    def resume(self, paused_id: str, composer: OrderComposer) -> CompositionContext:
        """Restore a paused order into a new composition context.

        A paused revision of a saved order resumes in edit mode, provided the
        saved order is still pending. The paused record is removed.

        Raises:
            PausedOrderNotFoundError: If the paused order does not exist
            OrderNotFoundError: If the revised saved order no longer exists
            OrderStatusError: If the revised saved order is no longer pending
            OrderPersistenceError: If the paused record could not be removed
        """
        paused = self.paused_order_repository.get_paused_order(paused_id)
        if paused is None:
            raise PausedOrderNotFoundError(paused_id)

        editing = None
        if paused.editing_order_id is not None:
            editing = self.get_order(paused.editing_order_id)
            if editing.status != OrderStatus.PENDING:
                raise OrderStatusError(editing.id, editing.status, "edited")

        if not self.paused_order_repository.delete_paused_order(paused_id):
            raise OrderPersistenceError(paused_id)

        context = composer.new_context(paused.customer_name)
        context.order = paused.to_order()
        context.editing = editing
        logger.info(f"Resumed paused order {paused_id} in session {context.id}")
        return context

    def discard_paused(self, paused_id: str) -> None:
        """Drop a paused order without finalizing it.

        Raises:
            PausedOrderNotFoundError: If the paused order does not exist
            OrderPersistenceError: If the paused record could not be removed
        """
        if self.paused_order_repository.get_paused_order(paused_id) is None:
            raise PausedOrderNotFoundError(paused_id)
        if not self.paused_order_repository.delete_paused_order(paused_id):
            raise OrderPersistenceError(paused_id)
