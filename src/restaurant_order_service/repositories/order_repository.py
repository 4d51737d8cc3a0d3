"""DynamoDB repository for saved orders and the order number counter."""

import logging
from typing import Any

from boto3.dynamodb.conditions import Attr
from botocore.exceptions import ClientError
from mypy_boto3_dynamodb.service_resource import DynamoDBServiceResource, Table

from restaurant_order_service.models.order_models import OrderStatus, SavedOrder

logger = logging.getLogger(__name__)

ORDER_NUMBER_COUNTER = "order_number"


class SavedOrderRepository:
    """Repository for saved order CRUD operations.

    Orders are stored with id as partition key. Order numbers come from an
    atomic counter item in a separate counters table.
    """

    def __init__(
        self,
        dynamodb_resource: DynamoDBServiceResource,
        table_name: str,
        counter_table_name: str,
    ) -> None:
        """Initialize repository.

        Args:
            dynamodb_resource: Boto3 DynamoDB resource
            table_name: Name of the orders table
            counter_table_name: Name of the counters table
        """
        self.dynamodb = dynamodb_resource
        self.table_name = table_name
        self.table: Table = dynamodb_resource.Table(table_name)
        self.counter_table: Table = dynamodb_resource.Table(counter_table_name)

    def get_order(self, order_id: str) -> SavedOrder | None:
        """Retrieve a saved order by ID.

        Args:
            order_id: Order identifier

        Returns:
            SavedOrder if found, None otherwise
        """
        try:
            response = self.table.get_item(Key={"id": order_id})

            if "Item" not in response:
                return None

            return SavedOrder.from_dynamodb_item(response["Item"])

        except ClientError as e:
            logger.error(f"Failed to get order {order_id}: {e}")  # pragma: no cover
            return None

    def save_order(self, order: SavedOrder) -> bool:
        """Create or replace a saved order.

        Args:
            order: SavedOrder to save

        Returns:
            bool: True if save succeeded, False otherwise
        """
        try:
            self.table.put_item(Item=order.to_dynamodb_item())
            return True

        except ClientError as e:
            logger.error(f"Failed to save order {order.id}: {e}")  # pragma: no cover
            return False

    def list_orders(self, status: OrderStatus | None = None) -> list[SavedOrder]:
        """List saved orders, optionally filtered by status.

        Args:
            status: Only return orders in this status

        Returns:
            list: SavedOrder objects sorted by order number (empty list on failure)
        """
        try:
            scan_kwargs: dict[str, Any] = {}
            if status is not None:
                scan_kwargs["FilterExpression"] = Attr("status").eq(OrderStatus(status).value)

            orders: list[SavedOrder] = []
            while True:
                response = self.table.scan(**scan_kwargs)
                orders.extend(SavedOrder.from_dynamodb_item(item) for item in response.get("Items", []))

                last_key = response.get("LastEvaluatedKey")
                if not last_key:
                    break
                scan_kwargs["ExclusiveStartKey"] = last_key

            return sorted(orders, key=lambda order: order.order_number)

        except ClientError as e:
            logger.error(f"Failed to list orders: {e}")  # pragma: no cover
            return []

    def next_order_number(self) -> int | None:
        """Atomically allocate the next order number.

        Returns:
            int: The allocated number, or None if the counter could not be updated
        """
        try:
            response = self.counter_table.update_item(
                Key={"name": ORDER_NUMBER_COUNTER},
                UpdateExpression="ADD current_value :one",
                ExpressionAttributeValues={":one": 1},
                ReturnValues="UPDATED_NEW",
            )
            return int(response["Attributes"]["current_value"])

        except ClientError as e:
            logger.error(f"Failed to allocate order number: {e}")  # pragma: no cover
            return None
