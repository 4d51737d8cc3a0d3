"""Order models.

The composing order is a nested structure (items, package sub-items,
per-instance modifiers). The saved order is the flat record written to
DynamoDB, keyed with camelCase attribute names.
"""

import uuid
from datetime import UTC, datetime
from decimal import Decimal
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_serializer
from pydantic.alias_generators import to_camel

DEFAULT_SERVING_STYLE = "Normal"
PACKAGE_CONTENT_LABEL = "Contenido"


class OrderItemType(str, Enum):
    """Enumeration of order line kinds."""

    PRODUCT = "product"
    PACKAGE = "package"


class PaymentMethod(str, Enum):
    """Enumeration of accepted payment methods."""

    CASH = "cash"
    CARD = "card"


class OrderStatus(str, Enum):
    """Enumeration of saved order states."""

    PENDING = "pending"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class OrderType(str, Enum):
    """How the order reaches the customer."""

    PICKUP = "pickup"
    DELIVERY = "delivery"
    PLATFORM = "platform"


class SelectedModifier(BaseModel):
    """A modifier chosen for one product instance or package sub-item.

    price_modifier is fixed when the option is selected; serving_style and
    extra_cost stay editable until the order is finalized.
    """

    product_id: str = Field(..., description="Modifier product")
    name: str = Field(..., description="Modifier product name")
    slot_id: str = Field(..., description="Slot the modifier was chosen in")
    price_modifier: Decimal = Field(default=Decimal("0"), description="Effective in-slot price")
    serving_style: str = Field(default=DEFAULT_SERVING_STYLE, description="Serving style label")
    extra_cost: Decimal = Field(default=Decimal("0"), description="Manual surcharge", ge=0)

    @property
    def line_amount(self) -> Decimal:
        """Price contribution of this modifier for a single unit."""
        return self.price_modifier + self.extra_cost


class PackageSubItem(BaseModel):
    """One contained product of a package line."""

    package_item_id: str
    product_id: str
    product_name: str
    quantity: int = Field(default=1, ge=1)
    selected_modifiers: list[SelectedModifier] = Field(default_factory=list)


class OrderItem(BaseModel):
    """A line of the composing order."""

    unique_id: str = Field(default_factory=lambda: str(uuid.uuid4()), description="Line identity")
    type: OrderItemType = Field(..., description="Product or package line")
    id: str = Field(..., description="Catalog product or package id")
    name: str = Field(..., description="Display name")
    quantity: int = Field(default=1, description="Units on this line", ge=1)
    base_price: Decimal = Field(..., description="Catalog base price per unit", ge=0)
    selected_modifiers: list[SelectedModifier] = Field(default_factory=list)
    package_items: list[PackageSubItem] = Field(default_factory=list)
    total_price: Decimal = Field(default=Decimal("0"), description="Derived line total")

    def find_modifier(
        self, slot_id: str, product_id: str, package_item_id: str | None = None
    ) -> SelectedModifier | None:
        """Locate a selected modifier on the line or on one of its sub-items."""
        if package_item_id is None:
            modifiers = self.selected_modifiers
        else:
            sub_item = next(
                (sub for sub in self.package_items if sub.package_item_id == package_item_id), None
            )
            modifiers = sub_item.selected_modifiers if sub_item else []

        for modifier in modifiers:
            if modifier.slot_id == slot_id and modifier.product_id == product_id:
                return modifier
        return None


class Order(BaseModel):
    """The order being composed by an operator.

    Delivery orders need an address, platform orders need the platform name
    and the platform's own order id. Both are checked at finalize.
    """

    customer_name: str = Field(default="Cliente General")
    client_id: str | None = Field(None, description="Known customer record")
    items: list[OrderItem] = Field(default_factory=list)
    payment_method: PaymentMethod = Field(default=PaymentMethod.CASH)
    paid_amount: Decimal | None = Field(None, ge=0)
    order_type: OrderType = Field(default=OrderType.PICKUP)
    delivery_address: str | None = None
    delivery_phone: str | None = None
    platform_name: str | None = None
    platform_order_id: str | None = None

    @property
    def subtotal(self) -> Decimal:
        return sum((item.total_price for item in self.items), Decimal("0"))

    @property
    def total(self) -> Decimal:
        return self.subtotal

    @property
    def change_due(self) -> Decimal:
        """Cash change owed to the customer, zero if underpaid or by card."""
        if self.payment_method != PaymentMethod.CASH or self.paid_amount is None:
            return Decimal("0")
        return max(self.paid_amount - self.total, Decimal("0"))

    def find_item(self, unique_id: str) -> OrderItem | None:
        return next((item for item in self.items if item.unique_id == unique_id), None)


class _SavedRecord(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, use_enum_values=True)


class SavedOrderComponent(_SavedRecord):
    """Flattened modifier or package content row of a saved item."""

    name: str
    slot_label: str | None = None
    product_id: str | None = None
    slot_id: str | None = None
    price_modifier: Decimal | None = None
    serving_style: str | None = None
    extra_cost: Decimal | None = None
    package_item_id: str | None = None

    @property
    def is_package_content(self) -> bool:
        return self.slot_label == PACKAGE_CONTENT_LABEL


class SavedOrderItem(_SavedRecord):
    """Flattened order line."""

    id: str
    name: str
    quantity: int = Field(..., ge=1)
    price: Decimal
    total_item_price: Decimal
    components: list[SavedOrderComponent] = Field(default_factory=list)

    @property
    def is_package(self) -> bool:
        return any(component.is_package_content for component in self.components)


class CancellationDetails(_SavedRecord):
    """Who cancelled an order, when and why."""

    reason: str
    cancelled_by: str
    cancelled_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    authorized_pin: str | None = None

    @field_serializer("cancelled_at")
    def serialize_cancelled_at(self, value: datetime) -> str:
        return value.isoformat()


class SavedOrder(_SavedRecord):
    """Persisted order record.

    Stored in DynamoDB with id as partition key. inventory_consumed records the
    exact amount taken from each inventory item at finalize so that a restock
    can return it without consulting the catalog.
    """

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    order_number: int = Field(..., ge=1)
    customer_name: str
    client_id: str | None = None
    payment_method: PaymentMethod
    order_type: OrderType = OrderType.PICKUP
    delivery_address: str | None = None
    delivery_phone: str | None = None
    platform_name: str | None = None
    platform_order_id: str | None = None
    status: OrderStatus = OrderStatus.PENDING
    subtotal: Decimal
    total: Decimal
    paid_amount: Decimal | None = None
    change_given: Decimal | None = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime | None = None
    cancellation_details: CancellationDetails | None = None
    items: list[SavedOrderItem] = Field(default_factory=list)
    inventory_consumed: dict[str, Decimal] | None = None

    @field_serializer("created_at", "updated_at")
    def serialize_timestamps(self, value: datetime | None) -> str | None:
        return value.isoformat() if value is not None else None

    def to_dynamodb_item(self) -> dict[str, Any]:
        """Convert to DynamoDB item format.

        Returns:
            dict: DynamoDB-compatible representation with camelCase keys
        """
        return self.model_dump(by_alias=True, exclude_none=True)

    @classmethod
    def from_dynamodb_item(cls, item: dict[str, Any]) -> "SavedOrder":
        """Create SavedOrder from DynamoDB item.

        Args:
            item: DynamoDB item dictionary

        Returns:
            SavedOrder: Parsed model instance
        """
        return cls.model_validate(item)


class PausedOrder(_SavedRecord):
    """An unfinished order set aside by the operator.

    Lines are kept in their composing form so a resumed order continues
    exactly where it was left. Nothing has been taken from inventory.
    """

    paused_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    paused_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    editing_order_id: str | None = Field(None, description="Saved order the paused order revises")
    customer_name: str
    client_id: str | None = None
    payment_method: PaymentMethod = PaymentMethod.CASH
    paid_amount: Decimal | None = None
    order_type: OrderType = OrderType.PICKUP
    delivery_address: str | None = None
    delivery_phone: str | None = None
    platform_name: str | None = None
    platform_order_id: str | None = None
    subtotal: Decimal
    total: Decimal
    items: list[OrderItem] = Field(default_factory=list)

    @field_serializer("paused_at")
    def serialize_paused_at(self, value: datetime) -> str:
        return value.isoformat()

    @classmethod
    def from_order(cls, order: Order, editing_order_id: str | None = None) -> "PausedOrder":
        return cls(
            editing_order_id=editing_order_id,
            customer_name=order.customer_name,
            client_id=order.client_id,
            payment_method=order.payment_method,
            paid_amount=order.paid_amount,
            order_type=order.order_type,
            delivery_address=order.delivery_address,
            delivery_phone=order.delivery_phone,
            platform_name=order.platform_name,
            platform_order_id=order.platform_order_id,
            subtotal=order.subtotal,
            total=order.total,
            items=[item.model_copy(deep=True) for item in order.items],
        )

    def to_order(self) -> Order:
        return Order(
            customer_name=self.customer_name,
            client_id=self.client_id,
            items=[item.model_copy(deep=True) for item in self.items],
            payment_method=self.payment_method,
            paid_amount=self.paid_amount,
            order_type=self.order_type,
            delivery_address=self.delivery_address,
            delivery_phone=self.delivery_phone,
            platform_name=self.platform_name,
            platform_order_id=self.platform_order_id,
        )

    def to_dynamodb_item(self) -> dict[str, Any]:
        """Convert to DynamoDB item format.

        Returns:
            dict: DynamoDB-compatible representation. Lines keep their snake_case keys.
        """
        return self.model_dump(by_alias=True, exclude_none=True)

    @classmethod
    def from_dynamodb_item(cls, item: dict[str, Any]) -> "PausedOrder":
        return cls.model_validate(item)
