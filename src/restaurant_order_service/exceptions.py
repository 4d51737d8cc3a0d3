"""Exception hierarchy for the order composition engine.

Every error carries a machine-readable code and a details payload so the API
layer can render it for the operator without knowing the concrete type.
"""

from decimal import Decimal
from typing import Any


class OrderEngineError(Exception):
    """Base exception for all order engine errors."""

    def __init__(self, message: str, error_code: str, details: dict[str, Any] | None = None) -> None:
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for API responses."""
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "error_code": self.error_code,
            "details": self.details,
        }


class ValidationBlockError(OrderEngineError):
    """A user action was rejected; nothing in the order was changed."""


class SlotSelectionError(ValidationBlockError):
    """Raised when a slot's min/max quantity would be violated."""

    def __init__(
        self,
        slot_label: str,
        min_quantity: int,
        max_quantity: int,
        selected_count: int,
        instance_number: int | None = None,
        product_name: str | None = None,
    ) -> None:
        self.slot_label = slot_label
        self.instance_number = instance_number

        if selected_count > max_quantity:
            message = f'Maximum {max_quantity} selection(s) allowed for "{slot_label}"'
            code = "SLOT_MAX_EXCEEDED"
        else:
            message = f'Select at least {min_quantity} option(s) for "{slot_label}"'
            code = "SLOT_MIN_NOT_MET"

        if product_name:
            message += f" on {product_name}"
        if instance_number is not None:
            message += f" (instance {instance_number})"

        super().__init__(
            message,
            code,
            {
                "slot_label": slot_label,
                "min_quantity": min_quantity,
                "max_quantity": max_quantity,
                "selected_count": selected_count,
                "instance_number": instance_number,
                "product_name": product_name,
            },
        )


class InvalidSelectionError(ValidationBlockError):
    """Raised for a selection that refers to nothing configurable or carries a bad value."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message, "INVALID_SELECTION", details)


class InsufficientStockError(ValidationBlockError):
    """Raised when an inventory item cannot cover the requested units."""

    def __init__(
        self,
        inventory_item_name: str,
        required: Decimal,
        available: Decimal,
        max_satisfiable: int,
        product_name: str | None = None,
    ) -> None:
        self.inventory_item_name = inventory_item_name
        self.max_satisfiable = max_satisfiable

        subject = f" for {product_name}" if product_name else ""
        message = (
            f"Not enough {inventory_item_name}{subject}: need {required}, "
            f"have {available} (max {max_satisfiable} unit(s))"
        )
        super().__init__(
            message,
            "INSUFFICIENT_STOCK",
            {
                "inventory_item": inventory_item_name,
                "required": str(required),
                "available": str(available),
                "max_satisfiable": max_satisfiable,
                "product_name": product_name,
            },
        )


class EmptyOrderError(ValidationBlockError):
    """Raised when finalizing an order without items."""

    def __init__(self) -> None:
        super().__init__("The order has no items", "EMPTY_ORDER")


class PaymentError(ValidationBlockError):
    """Raised when a cash payment does not cover the order total."""

    def __init__(self, total: Decimal, paid_amount: Decimal | None) -> None:
        super().__init__(
            f"Paid amount {paid_amount or 0} does not cover total {total}",
            "INCOMPLETE_PAYMENT",
            {"total": str(total), "paid_amount": str(paid_amount) if paid_amount is not None else None},
        )


class OrderDetailsError(ValidationBlockError):
    """Raised when a delivery or platform order is missing the details its type needs."""

    def __init__(self, order_type: str, missing: list[str]) -> None:
        super().__init__(
            f"A {order_type} order needs {', '.join(missing)}",
            "INCOMPLETE_ORDER_DETAILS",
            {"order_type": order_type, "missing": missing},
        )


class OrderStatusError(ValidationBlockError):
    """Raised when an order status transition is not allowed."""

    def __init__(self, order_id: str, current_status: str, requested: str) -> None:
        super().__init__(
            f"Order {order_id} is {current_status} and cannot become {requested}",
            "INVALID_STATUS_TRANSITION",
            {"order_id": order_id, "current_status": current_status, "requested": requested},
        )


class VoidConfirmationRequired(ValidationBlockError):
    """Raised when voiding a completed order without acknowledging no restock."""

    def __init__(self, order_id: str, order_number: int) -> None:
        super().__init__(
            f"Order #{order_number} is completed: voiding it will NOT restock inventory",
            "VOID_REQUIRES_CONFIRMATION",
            {"order_id": order_id, "order_number": order_number, "restock": False},
        )


class CatalogInconsistencyError(OrderEngineError):
    """Raised when a referenced catalog definition no longer resolves."""

    def __init__(self, entity_type: str, entity_id: str) -> None:
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(
            f"{entity_type} {entity_id} could not be found in the catalog",
            "CATALOG_INCONSISTENCY",
            {"entity_type": entity_type, "entity_id": entity_id},
        )


class InventoryAdjustmentError(OrderEngineError):
    """Raised when an inventory batch could not be applied."""

    def __init__(self, deltas: dict[str, Decimal], reason: str = "Inventory gateway rejected the batch") -> None:
        super().__init__(
            f"Failed to adjust inventory: {reason}",
            "INVENTORY_ADJUSTMENT_FAILED",
            {"deltas": {item_id: str(delta) for item_id, delta in deltas.items()}},
        )


class InventoryUnavailableError(OrderEngineError):
    """Raised when stock cannot be checked because the inventory table could not be read."""

    def __init__(self) -> None:
        super().__init__("Inventory could not be read, stock cannot be checked", "INVENTORY_UNAVAILABLE")


class OrderPersistenceError(OrderEngineError):
    """Raised when a finalized or cancelled order could not be stored."""

    def __init__(self, order_id: str) -> None:
        super().__init__(
            f"Order {order_id} could not be saved",
            "ORDER_PERSISTENCE_FAILED",
            {"order_id": order_id},
        )


class OrderNotFoundError(OrderEngineError):
    """Raised when a saved order does not exist."""

    def __init__(self, order_id: str) -> None:
        super().__init__(f"Order {order_id} not found", "ORDER_NOT_FOUND", {"order_id": order_id})


class PausedOrderNotFoundError(OrderEngineError):
    """Raised when a paused order does not exist or was already resumed."""

    def __init__(self, paused_id: str) -> None:
        super().__init__(
            f"Paused order {paused_id} not found", "PAUSED_ORDER_NOT_FOUND", {"paused_id": paused_id}
        )


class InvalidTransitionError(OrderEngineError):
    """Raised when a composition action is not legal in the current view."""

    def __init__(self, action: str, view: str) -> None:
        super().__init__(
            f"Cannot {action} while in the {view} view",
            "INVALID_TRANSITION",
            {"action": action, "view": view},
        )
