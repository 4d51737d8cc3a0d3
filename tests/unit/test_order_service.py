"""Unit tests for OrderService."""

from decimal import Decimal
from unittest.mock import MagicMock

import pytest

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
    OrderItem,
    OrderItemType,
    OrderStatus,
    OrderType,
    PackageSubItem,
    PaymentMethod,
    SelectedModifier,
)
from restaurant_order_service.services.catalog_cache import CatalogCache
from restaurant_order_service.services.composition import CompositionContext, OrderComposer
from restaurant_order_service.services.inventory_service import InventoryService
from restaurant_order_service.services.order_reconciler import OrderReconciler
from restaurant_order_service.services.order_service import OrderService, flatten_item
from restaurant_order_service.services.package_resolver import PackageResolver
from restaurant_order_service.services.slot_resolver import SlotResolver


@pytest.mark.unit
class TestFlattenItem:
    """Test suite for flattening order lines into saved items."""

    def test_product_line(self) -> None:
        """Test that a product line lists its modifiers as components."""
        item = OrderItem(
            type=OrderItemType.PRODUCT,
            id="prod_wings6",
            name="Wings-6",
            base_price=Decimal("95"),
            total_price=Decimal("100"),
            selected_modifiers=[
                SelectedModifier(
                    product_id="prod_sauce_b", name="Sauce-B", slot_id="slot_sauces", price_modifier=Decimal("5")
                )
            ],
        )

        saved = flatten_item(item)

        assert saved.price == Decimal("95")
        assert saved.total_item_price == Decimal("100")
        assert saved.components[0].product_id == "prod_sauce_b"
        assert saved.components[0].package_item_id is None
        assert saved.is_package is False

    def test_package_line(self) -> None:
        """Test that a package line lists content rows followed by their modifiers."""
        item = OrderItem(
            type=OrderItemType.PACKAGE,
            id="pkg_combo",
            name="Combo",
            base_price=Decimal("270"),
            total_price=Decimal("270"),
            package_items=[
                PackageSubItem(
                    package_item_id="pi_wings",
                    product_id="prod_wings6",
                    product_name="Wings-6",
                    selected_modifiers=[
                        SelectedModifier(product_id="prod_sauce_a", name="Sauce-A", slot_id="slot_sauces")
                    ],
                ),
                PackageSubItem(package_item_id="pi_side", product_id="prod_sauce_c", product_name="Sauce-C"),
            ],
        )

        saved = flatten_item(item)

        assert [component.name for component in saved.components] == ["Wings-6", "Sauce-A", "Sauce-C"]
        assert saved.components[0].slot_label == PACKAGE_CONTENT_LABEL
        assert saved.components[1].package_item_id == "pi_wings"
        assert saved.is_package is True


@pytest.mark.unit
class TestOrderService:
    """Test suite for OrderService."""

    @pytest.fixture
    def composer(
        self,
        mock_catalog_client: MagicMock,
        catalog_cache: CatalogCache,
        slot_resolver: SlotResolver,
        package_resolver: PackageResolver,
        inventory_service: InventoryService,
    ) -> OrderComposer:
        return OrderComposer(mock_catalog_client, catalog_cache, slot_resolver, package_resolver, inventory_service)

    @pytest.fixture
    def service(
        self,
        mock_order_repository: MagicMock,
        inventory_service: InventoryService,
        mock_catalog_client: MagicMock,
        catalog_cache: CatalogCache,
        mock_paused_order_repository: MagicMock,
    ) -> OrderService:
        return OrderService(
            order_repository=mock_order_repository,
            inventory=inventory_service,
            reconciler=OrderReconciler(mock_catalog_client, catalog_cache),
            paused_order_repository=mock_paused_order_repository,
        )

    async def _wings_context(self, composer: OrderComposer, paid: str = "100") -> CompositionContext:
        context = composer.new_context()
        await composer.add_product(context, "prod_wings6")
        context.require_product_configuration().select_option("slot_sauces", "prod_sauce_b")
        composer.commit_configuration(context)
        context.order.paid_amount = Decimal(paid)
        return context

    @pytest.mark.asyncio
    async def test_finalize_consumes_and_saves(
        self, service: OrderService, composer: OrderComposer, inventory_store: dict, order_store: dict
    ) -> None:
        """Test that finalizing consumes stock, allocates a number and stores the ledger."""
        context = await self._wings_context(composer, paid="120")

        saved = await service.finalize(context)

        assert saved.order_number == 1
        assert saved.status == OrderStatus.PENDING
        assert saved.total == Decimal("100")
        assert saved.change_given == Decimal("20")
        assert saved.inventory_consumed == {"inv_raw_wings": Decimal("6")}
        assert inventory_store["inv_raw_wings"].current_stock == Decimal("994")
        assert saved.id in order_store

    @pytest.mark.asyncio
    async def test_finalize_empty_order(self, service: OrderService, composer: OrderComposer) -> None:
        with pytest.raises(EmptyOrderError):
            await service.finalize(composer.new_context())

    @pytest.mark.asyncio
    async def test_finalize_underpaid_cash(
        self, service: OrderService, composer: OrderComposer, inventory_store: dict
    ) -> None:
        """Test that an underpaid cash order is rejected before touching stock."""
        context = await self._wings_context(composer, paid="50")

        with pytest.raises(PaymentError):
            await service.finalize(context)

        assert inventory_store["inv_raw_wings"].current_stock == Decimal("1000")

    @pytest.mark.asyncio
    async def test_finalize_card_ignores_paid_amount(self, service: OrderService, composer: OrderComposer) -> None:
        """Test that card orders need no paid amount and record no change."""
        context = await self._wings_context(composer)
        context.order.payment_method = PaymentMethod.CARD
        context.order.paid_amount = None

        saved = await service.finalize(context)

        assert saved.paid_amount is None
        assert saved.change_given is None

    @pytest.mark.asyncio
    async def test_finalize_inventory_failure_saves_nothing(
        self, service: OrderService, composer: OrderComposer, mock_inventory_repository: MagicMock, order_store: dict
    ) -> None:
        """Test that a rejected inventory batch aborts the finalize."""
        context = await self._wings_context(composer)
        mock_inventory_repository.apply_stock_deltas.side_effect = None
        mock_inventory_repository.apply_stock_deltas.return_value = False

        with pytest.raises(InventoryAdjustmentError):
            await service.finalize(context)

        assert order_store == {}

    @pytest.mark.asyncio
    async def test_finalize_save_failure_compensates(
        self,
        service: OrderService,
        composer: OrderComposer,
        mock_order_repository: MagicMock,
        inventory_store: dict,
    ) -> None:
        """Test that stock is restored when the order cannot be written."""
        context = await self._wings_context(composer)
        mock_order_repository.save_order.side_effect = None
        mock_order_repository.save_order.return_value = False

        with pytest.raises(OrderPersistenceError):
            await service.finalize(context)

        assert inventory_store["inv_raw_wings"].current_stock == Decimal("1000")

    @pytest.mark.asyncio
    async def test_finalize_counter_failure(
        self, service: OrderService, composer: OrderComposer, mock_order_repository: MagicMock, inventory_store: dict
    ) -> None:
        """Test that no stock moves when an order number cannot be allocated."""
        context = await self._wings_context(composer)
        mock_order_repository.next_order_number.side_effect = None
        mock_order_repository.next_order_number.return_value = None

        with pytest.raises(OrderPersistenceError):
            await service.finalize(context)

        assert inventory_store["inv_raw_wings"].current_stock == Decimal("1000")

    @pytest.mark.asyncio
    async def test_edit_applies_merged_deltas(
        self,
        service: OrderService,
        composer: OrderComposer,
        mock_inventory_repository: MagicMock,
        inventory_store: dict,
    ) -> None:
        """Test that an edit restocks the old consumption and takes the new one in one batch."""
        saved = await service.finalize(await self._wings_context(composer))

        context, gaps = await service.load_for_editing(saved.id, composer)
        line = context.order.items[0]
        await composer.change_item_quantity(context, line.unique_id, 2)
        context.order.paid_amount = Decimal("200")
        edited = await service.finalize(context)

        assert gaps == []
        assert edited.id == saved.id
        assert edited.order_number == saved.order_number
        assert edited.created_at == saved.created_at
        assert edited.updated_at is not None
        assert edited.total == Decimal("200")
        assert edited.inventory_consumed == {"inv_raw_wings": Decimal("12")}
        assert mock_inventory_repository.apply_stock_deltas.call_args.args[0] == {"inv_raw_wings": Decimal("-6")}
        assert inventory_store["inv_raw_wings"].current_stock == Decimal("988")

    @pytest.mark.asyncio
    async def test_edit_without_changes_moves_no_stock(
        self, service: OrderService, composer: OrderComposer, mock_inventory_repository: MagicMock
    ) -> None:
        """Test that re-finalizing an unchanged edit applies no inventory batch."""
        saved = await service.finalize(await self._wings_context(composer))
        mock_inventory_repository.apply_stock_deltas.reset_mock()

        context, _ = await service.load_for_editing(saved.id, composer)
        context.order.paid_amount = Decimal("100")
        await service.finalize(context)

        mock_inventory_repository.apply_stock_deltas.assert_not_called()

    @pytest.mark.asyncio
    async def test_edit_of_completed_order_rejected(self, service: OrderService, composer: OrderComposer) -> None:
        saved = await service.finalize(await self._wings_context(composer))
        service.complete(saved.id)

        with pytest.raises(OrderStatusError):
            await service.load_for_editing(saved.id, composer)

    @pytest.mark.asyncio
    async def test_cancel_pending_restocks(
        self, service: OrderService, composer: OrderComposer, inventory_store: dict
    ) -> None:
        """Test that cancelling a pending order returns its stock."""
        saved = await service.finalize(await self._wings_context(composer))

        cancelled = await service.cancel(saved.id, CancellationDetails(reason="Customer left", cancelled_by="cashier"))

        assert cancelled.status == OrderStatus.CANCELLED
        assert cancelled.cancellation_details.reason == "Customer left"
        assert inventory_store["inv_raw_wings"].current_stock == Decimal("1000")

    @pytest.mark.asyncio
    async def test_void_completed_requires_confirmation(
        self, service: OrderService, composer: OrderComposer, inventory_store: dict
    ) -> None:
        """Test that voiding a completed order needs acknowledgement and never restocks."""
        saved = await service.finalize(await self._wings_context(composer))
        service.complete(saved.id)
        details = CancellationDetails(reason="Wrong order", cancelled_by="manager", authorized_pin="1234")

        with pytest.raises(VoidConfirmationRequired):
            await service.cancel(saved.id, details)

        voided = await service.cancel(saved.id, details, acknowledge_no_restock=True)

        assert voided.status == OrderStatus.CANCELLED
        assert inventory_store["inv_raw_wings"].current_stock == Decimal("994")

    @pytest.mark.asyncio
    async def test_cancel_twice_rejected(self, service: OrderService, composer: OrderComposer) -> None:
        saved = await service.finalize(await self._wings_context(composer))
        details = CancellationDetails(reason="Customer left", cancelled_by="cashier")
        await service.cancel(saved.id, details)

        with pytest.raises(OrderStatusError):
            await service.cancel(saved.id, details)

    @pytest.mark.asyncio
    async def test_cancel_unknown_order(self, service: OrderService) -> None:
        with pytest.raises(OrderNotFoundError):
            await service.cancel("order_missing", CancellationDetails(reason="x", cancelled_by="y"))

    @pytest.mark.asyncio
    async def test_complete_only_pending(self, service: OrderService, composer: OrderComposer) -> None:
        """Test that only pending orders can be completed."""
        saved = await service.finalize(await self._wings_context(composer))

        completed = service.complete(saved.id)

        assert completed.status == OrderStatus.COMPLETED
        with pytest.raises(OrderStatusError):
            service.complete(saved.id)

    @pytest.mark.asyncio
    async def test_list_orders(self, service: OrderService, composer: OrderComposer) -> None:
        first = await service.finalize(await self._wings_context(composer))
        await service.finalize(await self._wings_context(composer))
        service.complete(first.id)

        assert len(service.list_orders()) == 2
        assert [order.id for order in service.list_orders(OrderStatus.COMPLETED)] == [first.id]

    @pytest.mark.asyncio
    async def test_finalize_delivery_without_address(
        self, service: OrderService, composer: OrderComposer, inventory_store: dict
    ) -> None:
        """Test that a delivery order needs an address before anything is consumed."""
        context = await self._wings_context(composer)
        context.order.order_type = OrderType.DELIVERY

        with pytest.raises(OrderDetailsError) as exc_info:
            await service.finalize(context)

        assert exc_info.value.details["missing"] == ["delivery_address"]
        assert inventory_store["inv_raw_wings"].current_stock == Decimal("1000")

    @pytest.mark.asyncio
    async def test_finalize_platform_needs_platform_order(self, service: OrderService, composer: OrderComposer) -> None:
        context = await self._wings_context(composer)
        context.order.order_type = OrderType.PLATFORM
        context.order.platform_name = "Rappi"

        with pytest.raises(OrderDetailsError) as exc_info:
            await service.finalize(context)

        assert exc_info.value.details["missing"] == ["platform_order_id"]

    @pytest.mark.asyncio
    async def test_finalize_keeps_only_details_of_order_type(
        self, service: OrderService, composer: OrderComposer
    ) -> None:
        """Test that a platform order drops delivery details typed earlier."""
        context = await self._wings_context(composer)
        order = context.order
        order.client_id = "client_7"
        order.order_type = OrderType.PLATFORM
        order.platform_name = "Rappi"
        order.platform_order_id = "R-1001"
        order.delivery_address = "Calle 1"

        saved = await service.finalize(context)

        assert saved.order_type == OrderType.PLATFORM
        assert saved.platform_order_id == "R-1001"
        assert saved.client_id == "client_7"
        assert saved.delivery_address is None
        assert "deliveryAddress" not in saved.to_dynamodb_item()

    @pytest.mark.asyncio
    async def test_edit_keeps_delivery_details(self, service: OrderService, composer: OrderComposer) -> None:
        context = await self._wings_context(composer)
        context.order.order_type = OrderType.DELIVERY
        context.order.delivery_address = "Calle 1"
        context.order.delivery_phone = "555-0101"
        saved = await service.finalize(context)

        editing, _ = await service.load_for_editing(saved.id, composer)

        assert editing.order.order_type == OrderType.DELIVERY
        assert editing.order.delivery_address == "Calle 1"
        assert editing.order.delivery_phone == "555-0101"

    @pytest.mark.asyncio
    async def test_pause_sets_order_aside(
        self,
        service: OrderService,
        composer: OrderComposer,
        paused_store: dict,
        mock_inventory_repository: MagicMock,
    ) -> None:
        """Test that pausing stores the order, clears the context and moves no stock."""
        context = await self._wings_context(composer)
        context.order.customer_name = "Ana"

        paused = service.pause(context, composer)

        assert paused_store[paused.paused_id].total == Decimal("100")
        assert paused.customer_name == "Ana"
        assert context.order.items == []
        assert context.order.customer_name == "Cliente General"
        mock_inventory_repository.apply_stock_deltas.assert_not_called()

    def test_pause_empty_order(self, service: OrderService, composer: OrderComposer, paused_store: dict) -> None:
        with pytest.raises(EmptyOrderError):
            service.pause(composer.new_context(), composer)

        assert paused_store == {}

    @pytest.mark.asyncio
    async def test_pause_save_failure_keeps_order(
        self, service: OrderService, composer: OrderComposer, mock_paused_order_repository: MagicMock
    ) -> None:
        mock_paused_order_repository.save_paused_order.side_effect = None
        mock_paused_order_repository.save_paused_order.return_value = False
        context = await self._wings_context(composer)

        with pytest.raises(OrderPersistenceError):
            service.pause(context, composer)

        assert len(context.order.items) == 1

    @pytest.mark.asyncio
    async def test_resume_restores_order(
        self, service: OrderService, composer: OrderComposer, paused_store: dict
    ) -> None:
        """Test that a resumed order continues with its lines and details, once."""
        context = await self._wings_context(composer)
        context.order.order_type = OrderType.DELIVERY
        context.order.delivery_address = "Calle 1"
        line = context.order.items[0]
        paused = service.pause(context, composer)

        resumed = service.resume(paused.paused_id, composer)

        assert resumed.id != context.id
        assert resumed.order.items[0].unique_id == line.unique_id
        assert resumed.order.total == Decimal("100")
        assert resumed.order.paid_amount == Decimal("100")
        assert resumed.order.delivery_address == "Calle 1"
        assert resumed.is_editing is False
        assert paused_store == {}
        with pytest.raises(PausedOrderNotFoundError):
            service.resume(paused.paused_id, composer)

    @pytest.mark.asyncio
    async def test_resumed_order_finalizes(
        self, service: OrderService, composer: OrderComposer, inventory_store: dict
    ) -> None:
        paused = service.pause(await self._wings_context(composer), composer)
        resumed = service.resume(paused.paused_id, composer)

        saved = await service.finalize(resumed)

        assert saved.total == Decimal("100")
        assert inventory_store["inv_raw_wings"].current_stock == Decimal("994")

    @pytest.mark.asyncio
    async def test_resume_paused_edit(self, service: OrderService, composer: OrderComposer) -> None:
        """Test that a paused revision resumes in edit mode of the same saved order."""
        saved = await service.finalize(await self._wings_context(composer))
        editing, _ = await service.load_for_editing(saved.id, composer)
        paused = service.pause(editing, composer)

        resumed = service.resume(paused.paused_id, composer)

        assert paused.editing_order_id == saved.id
        assert resumed.editing is not None
        assert resumed.editing.id == saved.id

    @pytest.mark.asyncio
    async def test_resume_paused_edit_of_completed_order(
        self, service: OrderService, composer: OrderComposer, paused_store: dict
    ) -> None:
        saved = await service.finalize(await self._wings_context(composer))
        editing, _ = await service.load_for_editing(saved.id, composer)
        paused = service.pause(editing, composer)
        service.complete(saved.id)

        with pytest.raises(OrderStatusError):
            service.resume(paused.paused_id, composer)

        assert paused.paused_id in paused_store

    @pytest.mark.asyncio
    async def test_list_and_discard_paused(self, service: OrderService, composer: OrderComposer) -> None:
        first = service.pause(await self._wings_context(composer), composer)
        second = service.pause(await self._wings_context(composer), composer)

        assert [paused.paused_id for paused in service.list_paused()] == [first.paused_id, second.paused_id]

        service.discard_paused(first.paused_id)

        assert [paused.paused_id for paused in service.list_paused()] == [second.paused_id]
        with pytest.raises(PausedOrderNotFoundError):
            service.discard_paused(first.paused_id)
