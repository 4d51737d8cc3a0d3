"""DynamoDB repository for inventory items.

Stock changes are atomic increments. A batch of changes is written as one
DynamoDB transaction so that either every delta is applied or none is.
Following the repository pattern of the service, expected failures return
None/False rather than raising.
"""

import logging
from decimal import Decimal
from typing import Any

from botocore.exceptions import ClientError
from mypy_boto3_dynamodb.service_resource import DynamoDBServiceResource, Table

from restaurant_order_service.models.catalog_models import InventoryItem

logger = logging.getLogger(__name__)

MAX_TRANSACTION_ITEMS = 100


class InventoryRepository:
    """Repository for inventory item reads and stock adjustments.

    Manages inventory records in DynamoDB with id as partition key.
    """

    def __init__(self, dynamodb_resource: DynamoDBServiceResource, table_name: str) -> None:
        """Initialize repository.

        Args:
            dynamodb_resource: Boto3 DynamoDB resource
            table_name: Name of the DynamoDB table
        """
        self.dynamodb = dynamodb_resource
        self.table_name = table_name
        self.table: Table = dynamodb_resource.Table(table_name)

    def get_inventory_items(self) -> list[InventoryItem] | None:
        """Read every inventory item.

        Returns:
            list: All InventoryItem objects, or None if the scan failed
        """
        try:
            items: list[InventoryItem] = []
            scan_kwargs: dict[str, Any] = {}
            while True:
                response = self.table.scan(**scan_kwargs)
                items.extend(InventoryItem.from_dynamodb_item(item) for item in response.get("Items", []))

                last_key = response.get("LastEvaluatedKey")
                if not last_key:
                    return items
                scan_kwargs["ExclusiveStartKey"] = last_key

        except ClientError as e:
            logger.error(f"Failed to scan inventory items: {e}")  # pragma: no cover
            return None

    def get_item(self, item_id: str) -> InventoryItem | None:
        """Retrieve one inventory item.

        Args:
            item_id: Inventory item identifier

        Returns:
            InventoryItem if found, None otherwise
        """
        try:
            response = self.table.get_item(Key={"id": item_id})

            if "Item" not in response:
                return None

            return InventoryItem.from_dynamodb_item(response["Item"])

        except ClientError as e:
            logger.error(f"Failed to get inventory item {item_id}: {e}")  # pragma: no cover
            return None

    def save_item(self, item: InventoryItem) -> bool:
        """Create or replace an inventory item.

        Args:
            item: InventoryItem to save

        Returns:
            bool: True if save succeeded, False otherwise
        """
        try:
            self.table.put_item(Item=item.to_dynamodb_item())
            return True

        except ClientError as e:
            logger.error(f"Failed to save inventory item {item.id}: {e}")  # pragma: no cover
            return False

    def adjust_stock(self, item_id: str, delta: Decimal) -> bool:
        """Atomically add a signed delta to one item's stock.

        Args:
            item_id: Inventory item identifier
            delta: Signed quantity to add

        Returns:
            bool: True if applied, False if the item does not exist or the write failed
        """
        try:
            self.table.update_item(
                Key={"id": item_id},
                UpdateExpression="ADD current_stock :delta",
                ConditionExpression="attribute_exists(id)",
                ExpressionAttributeValues={":delta": delta},
            )
            return True

        except ClientError as e:
            logger.error(f"Failed to adjust stock of {item_id} by {delta}: {e}")  # pragma: no cover
            return False

    def apply_stock_deltas(self, deltas: dict[str, Decimal]) -> bool:
        """Apply several stock deltas in a single all-or-nothing transaction.

        Every item must exist. Negative deltas are additionally conditioned on
        the stored stock covering them, so no item can go below zero.

        Args:
            deltas: Signed quantity to add, keyed by inventory item id

        Returns:
            bool: True if every delta was applied, False if none was
        """
        if not deltas:
            return True

        if len(deltas) > MAX_TRANSACTION_ITEMS:
            logger.error(
                f"Refusing inventory batch of {len(deltas)} items, "
                f"a transaction holds at most {MAX_TRANSACTION_ITEMS}"
            )
            return False

        transact_items = [self._build_update(item_id, delta) for item_id, delta in deltas.items()]

        try:
            self.dynamodb.meta.client.transact_write_items(TransactItems=transact_items)
            return True

        except ClientError as e:
            logger.error(f"Inventory transaction of {len(deltas)} items failed: {e}")  # pragma: no cover
            return False

    def _build_update(self, item_id: str, delta: Decimal) -> dict[str, Any]:
        update: dict[str, Any] = {
            "TableName": self.table_name,
            "Key": {"id": item_id},
            "UpdateExpression": "ADD current_stock :delta",
            "ConditionExpression": "attribute_exists(id)",
            "ExpressionAttributeValues": {":delta": delta},
        }

        if delta < 0:
            update["ConditionExpression"] = "attribute_exists(id) AND current_stock >= :required"
            update["ExpressionAttributeValues"][":required"] = -delta

        return {"Update": update}
