"""AWS Lambda handler for both API Gateway and EventBridge events.

This module provides a single Lambda entry point that handles:
1. API Gateway requests (via Mangum ASGI adapter for FastAPI)
2. EventBridge catalog and inventory change events (direct handling)

The handler detects the event type and routes accordingly.
"""

import asyncio
import logging
import os
from typing import Any

from mangum import Mangum

from lambda_dependencies import get_event_handler, get_fastapi_app, initialize_lambda_environment
from restaurant_order_service.handlers.event_handler import (
    CATALOG_CHANGED,
    EVENT_SOURCE,
    INVENTORY_CHANGED,
    parse_eventbridge_event,
)

if os.getenv("ENVIRONMENT") != "test":
    initialize_lambda_environment()

logger = logging.getLogger(__name__)

# Created once per container; skipped in tests so imports need no configuration
if os.getenv("ENVIRONMENT") != "test":
    app = get_fastapi_app()
    mangum_handler = Mangum(app, lifespan="off")
else:
    app = None  # type: ignore
    mangum_handler = None  # type: ignore


def is_eventbridge_event(event: dict[str, Any]) -> bool:
    """Determine if the event is from EventBridge.

    Args:
        event: The Lambda event payload

    Returns:
        True if this is an EventBridge event, False otherwise
    """
    return "source" in event and "detail-type" in event and "detail" in event


def lambda_handler(event: dict[str, Any], context: Any) -> dict[str, Any]:
    """Multi-purpose Lambda handler for API Gateway and EventBridge events.

    Args:
        event: The Lambda event payload (EventBridge or API Gateway)
        context: The Lambda context object

    Returns:
        Response dict with statusCode and body
    """
    logger.info(f"Received Lambda invocation, request_id: {context.request_id}")

    try:
        if is_eventbridge_event(event):
            logger.info(f"Processing EventBridge event: {event.get('source')} - {event.get('detail-type')}")
            return handle_eventbridge_event(event)

        logger.info("Processing API Gateway request via Mangum")
        result: dict[str, Any] = mangum_handler(event, context)
        return result

    except Exception as e:
        logger.exception(f"Unhandled error in Lambda handler: {e}")
        return {
            "statusCode": 500,
            "body": f"Internal server error: {str(e)}",
        }


def handle_eventbridge_event(event: dict[str, Any]) -> dict[str, Any]:
    """Handle EventBridge catalog and inventory change events.

    Args:
        event: The EventBridge event payload

    Returns:
        Response dict with statusCode and body
    """
    try:
        source = event.get("source", "")
        detail_type = event.get("detail-type", "")

        if source != EVENT_SOURCE or detail_type not in (CATALOG_CHANGED, INVENTORY_CHANGED):
            logger.warning(f"Unsupported event type: {source}/{detail_type}")
            return {
                "statusCode": 400,
                "body": f"Unsupported event type: {source}/{detail_type}",
            }

        change = parse_eventbridge_event(event)
        if change is None:
            return {"statusCode": 400, "body": "Invalid event format"}

        success = asyncio.run(get_event_handler().handle_event(detail_type, change))

        if success:
            logger.info(f"Processed {detail_type} for {change.entity_type} {change.entity_id}")
            return {
                "statusCode": 200,
                "body": f"Processed {detail_type} for {change.entity_type}",
            }

        logger.error(f"Failed to process {detail_type} for {change.entity_type}")
        return {
            "statusCode": 500,
            "body": f"Failed to process {detail_type} for {change.entity_type}",
        }

    except Exception as e:
        logger.exception(f"Error processing EventBridge event: {e}")
        return {
            "statusCode": 500,
            "body": f"Error processing event: {str(e)}",
        }
