"""DynamoDB repository for orders the operator set aside before finalizing."""

import logging
from typing import Any

from botocore.exceptions import ClientError
from mypy_boto3_dynamodb.service_resource import DynamoDBServiceResource, Table

from restaurant_order_service.models.order_models import PausedOrder

logger = logging.getLogger(__name__)


class PausedOrderRepository:
    """Repository for paused orders, keyed by pausedId."""

    def __init__(self, dynamodb_resource: DynamoDBServiceResource, table_name: str) -> None:
        """Initialize repository.

        Args:
            dynamodb_resource: Boto3 DynamoDB resource
            table_name: Name of the paused orders table
        """
        self.dynamodb = dynamodb_resource
        self.table_name = table_name
        self.table: Table = dynamodb_resource.Table(table_name)

    def get_paused_order(self, paused_id: str) -> PausedOrder | None:
        try:
            response = self.table.get_item(Key={"pausedId": paused_id})

            if "Item" not in response:
                return None

            return PausedOrder.from_dynamodb_item(response["Item"])

        except ClientError as e:
            logger.error(f"Failed to get paused order {paused_id}: {e}")  # pragma: no cover
            return None

    def save_paused_order(self, paused: PausedOrder) -> bool:
        """Store a paused order.

        Returns:
            bool: True if save succeeded, False otherwise
        """
        try:
            self.table.put_item(Item=paused.to_dynamodb_item())
            return True

        except ClientError as e:
            logger.error(f"Failed to save paused order {paused.paused_id}: {e}")  # pragma: no cover
            return False

    def list_paused_orders(self) -> list[PausedOrder]:
        """List paused orders, oldest first (empty list on failure)."""
        try:
            scan_kwargs: dict[str, Any] = {}
            paused: list[PausedOrder] = []
            while True:
                response = self.table.scan(**scan_kwargs)
                paused.extend(PausedOrder.from_dynamodb_item(item) for item in response.get("Items", []))

                last_key = response.get("LastEvaluatedKey")
                if not last_key:
                    break
                scan_kwargs["ExclusiveStartKey"] = last_key

            return sorted(paused, key=lambda order: order.paused_at)

        except ClientError as e:
            logger.error(f"Failed to list paused orders: {e}")  # pragma: no cover
            return []

    def delete_paused_order(self, paused_id: str) -> bool:
        """Remove a paused order once it is resumed or discarded.

        Returns:
            bool: True if the delete succeeded, False otherwise
        """
        try:
            self.table.delete_item(Key={"pausedId": paused_id})
            return True

        except ClientError as e:
            logger.error(f"Failed to delete paused order {paused_id}: {e}")  # pragma: no cover
            return False
