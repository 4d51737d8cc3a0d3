"""Custom metrics for the restaurant order service."""

from opentelemetry import metrics

meter = metrics.get_meter("order-svc")

orders_finalized_counter = meter.create_counter(
    name="orders_finalized_total",
    description="Total number of finalized orders, new or edited",
    unit="1",
)

orders_cancelled_counter = meter.create_counter(
    name="orders_cancelled_total",
    description="Total number of cancelled orders by whether stock was returned",
    unit="1",
)

order_total_histogram = meter.create_histogram(
    name="order_total_amount",
    description="Total amount of finalized orders",
    unit="1",
)

validation_block_counter = meter.create_counter(
    name="order_validation_blocks_total",
    description="User actions rejected by validation, by error code",
    unit="1",
)

inventory_adjustment_failure_counter = meter.create_counter(
    name="inventory_adjustment_failures_total",
    description="Inventory batches rejected by storage",
    unit="1",
)

reconciliation_gap_counter = meter.create_counter(
    name="order_reconciliation_gaps_total",
    description="Saved order items or components dropped while loading an order for editing",
    unit="1",
)

orders_paused_counter = meter.create_counter(
    name="orders_paused_total",
    description="Orders set aside before finalizing",
    unit="1",
)


def record_order_finalized(total: float, edited: bool) -> None:
    """Record a finalized order.

    Args:
        total: Order total
        edited: Whether an existing order was replaced
    """
    orders_finalized_counter.add(1, {"edited": edited})
    order_total_histogram.record(total, {"edited": edited})


def record_order_cancelled(restocked: bool) -> None:
    orders_cancelled_counter.add(1, {"restocked": restocked})


def record_validation_block(error_code: str) -> None:
    validation_block_counter.add(1, {"error_code": error_code})


def record_inventory_adjustment_failure(operation: str) -> None:
    """Record a rejected inventory batch.

    Args:
        operation: What triggered the batch ("finalize", "cancel", "compensate")
    """
    inventory_adjustment_failure_counter.add(1, {"operation": operation})


def record_reconciliation_gaps(count: int) -> None:
    if count:
        reconciliation_gap_counter.add(count)


def record_order_paused() -> None:
    orders_paused_counter.add(1)
