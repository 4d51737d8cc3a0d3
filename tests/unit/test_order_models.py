"""Unit tests for order models."""

from datetime import UTC, datetime
from decimal import Decimal

import pytest

from restaurant_order_service.models.order_models import (
    PACKAGE_CONTENT_LABEL,
    CancellationDetails,
    Order,
    OrderItem,
    OrderItemType,
    OrderStatus,
    OrderType,
    PackageSubItem,
    PausedOrder,
    PaymentMethod,
    SavedOrder,
    SavedOrderComponent,
    SavedOrderItem,
    SelectedModifier,
)


def _modifier(product_id: str = "prod_sauce_b", slot_id: str = "slot_sauces") -> SelectedModifier:
    return SelectedModifier(product_id=product_id, name="Sauce-B", slot_id=slot_id, price_modifier=Decimal("5"))


@pytest.mark.unit
class TestSelectedModifier:
    """Test suite for SelectedModifier."""

    def test_defaults(self) -> None:
        """Test that a new modifier is served normally with no extra cost."""
        modifier = _modifier()

        assert modifier.serving_style == "Normal"
        assert modifier.extra_cost == Decimal("0")

    def test_line_amount_includes_extra_cost(self) -> None:
        """Test that the per-unit amount is price modifier plus extra cost."""
        modifier = _modifier()
        modifier.extra_cost = Decimal("10")

        assert modifier.line_amount == Decimal("15")


@pytest.mark.unit
class TestOrderItem:
    """Test suite for OrderItem."""

    def test_unique_ids_differ(self) -> None:
        """Test that two lines of the same product get distinct identities."""
        first = OrderItem(type=OrderItemType.PRODUCT, id="prod_1", name="Soda", base_price=Decimal("25"))
        second = OrderItem(type=OrderItemType.PRODUCT, id="prod_1", name="Soda", base_price=Decimal("25"))

        assert first.unique_id != second.unique_id

    def test_find_modifier_on_product_line(self) -> None:
        """Test locating a modifier on a product line."""
        item = OrderItem(
            type=OrderItemType.PRODUCT,
            id="prod_wings6",
            name="Wings-6",
            base_price=Decimal("95"),
            selected_modifiers=[_modifier()],
        )

        assert item.find_modifier("slot_sauces", "prod_sauce_b") is not None
        assert item.find_modifier("slot_sauces", "prod_sauce_a") is None

    def test_find_modifier_on_package_sub_item(self) -> None:
        """Test locating a modifier on a package sub-item by package item id."""
        item = OrderItem(
            type=OrderItemType.PACKAGE,
            id="pkg_combo",
            name="Combo",
            base_price=Decimal("270"),
            package_items=[
                PackageSubItem(
                    package_item_id="pi_wings",
                    product_id="prod_wings6",
                    product_name="Wings-6",
                    selected_modifiers=[_modifier()],
                )
            ],
        )

        assert item.find_modifier("slot_sauces", "prod_sauce_b", "pi_wings") is not None
        assert item.find_modifier("slot_sauces", "prod_sauce_b", "pi_missing") is None


@pytest.mark.unit
class TestOrder:
    """Test suite for Order derived amounts."""

    @pytest.fixture
    def order(self) -> Order:
        return Order(
            items=[
                OrderItem(
                    type=OrderItemType.PRODUCT,
                    id="prod_1",
                    name="Soda",
                    base_price=Decimal("25"),
                    quantity=2,
                    total_price=Decimal("50"),
                ),
                OrderItem(
                    type=OrderItemType.PRODUCT,
                    id="prod_2",
                    name="Wings-6",
                    base_price=Decimal("95"),
                    total_price=Decimal("100"),
                ),
            ]
        )

    def test_default_customer(self) -> None:
        """Test that orders default to the walk-in customer."""
        assert Order().customer_name == "Cliente General"

    def test_subtotal_and_total(self, order: Order) -> None:
        """Test that total equals the sum of line totals."""
        assert order.subtotal == Decimal("150")
        assert order.total == Decimal("150")

    def test_change_due_for_cash(self, order: Order) -> None:
        """Test that cash change is paid minus total."""
        order.paid_amount = Decimal("200")

        assert order.change_due == Decimal("50")

    def test_change_never_negative(self, order: Order) -> None:
        """Test that underpayment gives zero change rather than a negative amount."""
        order.paid_amount = Decimal("100")

        assert order.change_due == Decimal("0")

    def test_no_change_for_card(self, order: Order) -> None:
        """Test that card payments never produce change."""
        order.payment_method = PaymentMethod.CARD
        order.paid_amount = Decimal("500")

        assert order.change_due == Decimal("0")

    def test_find_item(self, order: Order) -> None:
        """Test locating a line by its unique id."""
        line = order.items[1]

        assert order.find_item(line.unique_id) is line
        assert order.find_item("missing") is None


@pytest.mark.unit
class TestSavedOrder:
    """Test suite for SavedOrder persistence format."""

    @pytest.fixture
    def saved_order(self) -> SavedOrder:
        return SavedOrder(
            id="order_1",
            order_number=7,
            customer_name="Ana",
            payment_method=PaymentMethod.CASH,
            subtotal=Decimal("270"),
            total=Decimal("270"),
            paid_amount=Decimal("300"),
            change_given=Decimal("30"),
            created_at=datetime(2024, 1, 15, 10, 0, tzinfo=UTC),
            items=[
                SavedOrderItem(
                    id="pkg_combo",
                    name="Combo",
                    quantity=1,
                    price=Decimal("270"),
                    total_item_price=Decimal("270"),
                    components=[
                        SavedOrderComponent(
                            name="Wings-6",
                            slot_label=PACKAGE_CONTENT_LABEL,
                            product_id="prod_wings6",
                            package_item_id="pi_wings",
                        ),
                        SavedOrderComponent(
                            name="Sauce-A",
                            product_id="prod_sauce_a",
                            slot_id="slot_sauces",
                            price_modifier=Decimal("0"),
                            serving_style="Normal",
                            extra_cost=Decimal("0"),
                            package_item_id="pi_wings",
                        ),
                    ],
                )
            ],
            inventory_consumed={"inv_raw_wings": Decimal("6")},
        )

    def test_to_dynamodb_item_uses_camel_case(self, saved_order: SavedOrder) -> None:
        """Test that persisted attribute names are camelCase."""
        item = saved_order.to_dynamodb_item()

        assert item["orderNumber"] == 7
        assert item["customerName"] == "Ana"
        assert item["paymentMethod"] == "cash"
        assert item["status"] == "pending"
        assert item["changeGiven"] == Decimal("30")
        assert item["createdAt"] == "2024-01-15T10:00:00+00:00"
        assert item["inventoryConsumed"] == {"inv_raw_wings": Decimal("6")}
        component = item["items"][0]["components"][0]
        assert component["slotLabel"] == PACKAGE_CONTENT_LABEL
        assert component["packageItemId"] == "pi_wings"
        assert item["items"][0]["totalItemPrice"] == Decimal("270")

    def test_to_dynamodb_item_omits_none(self, saved_order: SavedOrder) -> None:
        """Test that unset optional fields are not written."""
        item = saved_order.to_dynamodb_item()

        assert "cancellationDetails" not in item
        assert "updatedAt" not in item

    def test_from_dynamodb_item_round_trip(self, saved_order: SavedOrder) -> None:
        """Test that a stored record parses back into an equal order."""
        parsed = SavedOrder.from_dynamodb_item(saved_order.to_dynamodb_item())

        assert parsed.order_number == 7
        assert parsed.status == OrderStatus.PENDING
        assert parsed.created_at == saved_order.created_at
        assert parsed.items[0].is_package is True
        assert parsed.items[0].components[1].package_item_id == "pi_wings"
        assert parsed.inventory_consumed == {"inv_raw_wings": Decimal("6")}

    def test_legacy_record_without_ledger(self) -> None:
        """Test that records written before the inventory ledger still parse."""
        parsed = SavedOrder.from_dynamodb_item(
            {
                "id": "order_old",
                "orderNumber": Decimal("3"),
                "customerName": "Cliente General",
                "paymentMethod": "card",
                "status": "completed",
                "subtotal": Decimal("95"),
                "total": Decimal("95"),
                "createdAt": "2023-12-01T09:00:00+00:00",
                "items": [
                    {
                        "id": "prod_wings6",
                        "name": "Wings-6",
                        "quantity": Decimal("1"),
                        "price": Decimal("95"),
                        "totalItemPrice": Decimal("95"),
                        "components": [],
                    }
                ],
            }
        )

        assert parsed.order_number == 3
        assert parsed.inventory_consumed is None
        assert parsed.items[0].is_package is False

    def test_cancellation_details_serialized(self, saved_order: SavedOrder) -> None:
        """Test that cancellation details are stored with camelCase keys and ISO timestamps."""
        cancelled = saved_order.model_copy(
            update={
                "status": OrderStatus.CANCELLED.value,
                "cancellation_details": CancellationDetails(
                    reason="Customer left",
                    cancelled_by="cashier_1",
                    cancelled_at=datetime(2024, 1, 15, 11, 0, tzinfo=UTC),
                ),
            }
        )

        item = cancelled.to_dynamodb_item()

        assert item["status"] == "cancelled"
        assert item["cancellationDetails"] == {
            "reason": "Customer left",
            "cancelledBy": "cashier_1",
            "cancelledAt": "2024-01-15T11:00:00+00:00",
        }


@pytest.mark.unit
class TestPausedOrder:
    """Test suite for PausedOrder."""

    @pytest.fixture
    def order(self) -> Order:
        return Order(
            customer_name="Ana",
            client_id="client_7",
            order_type=OrderType.PLATFORM,
            platform_name="Rappi",
            platform_order_id="R-1001",
            payment_method=PaymentMethod.CARD,
            items=[
                OrderItem(
                    type=OrderItemType.PRODUCT,
                    id="prod_wings6",
                    name="Wings-6",
                    base_price=Decimal("95"),
                    selected_modifiers=[_modifier()],
                    total_price=Decimal("100"),
                )
            ],
        )

    def test_from_order_keeps_details_and_amounts(self, order: Order) -> None:
        paused = PausedOrder.from_order(order, editing_order_id="order_1")

        assert paused.total == Decimal("100")
        assert paused.editing_order_id == "order_1"
        assert paused.platform_order_id == "R-1001"

    def test_to_order_restores_lines(self, order: Order) -> None:
        """Test that a stored paused order restores the same lines as independent copies."""
        stored = PausedOrder.from_dynamodb_item(PausedOrder.from_order(order).to_dynamodb_item())

        restored = stored.to_order()

        assert restored.order_type == OrderType.PLATFORM
        assert restored.client_id == "client_7"
        assert restored.items[0].unique_id == order.items[0].unique_id
        assert restored.items[0].selected_modifiers[0].price_modifier == Decimal("5")
        assert restored.total == order.total
        assert restored.items[0] is not stored.items[0]
