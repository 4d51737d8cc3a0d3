"""Main application entry point for the restaurant order service.

This module provides the FastAPI application factory and configuration
for running the service locally or in production.
"""

import logging
import os
from typing import Any

import boto3
from fastapi import FastAPI

from restaurant_order_service.handlers.api_handler import create_app
from restaurant_order_service.observability import configure_logging, setup_observability
from restaurant_order_service.repositories.inventory_repository import InventoryRepository
from restaurant_order_service.repositories.order_repository import SavedOrderRepository
from restaurant_order_service.repositories.paused_order_repository import PausedOrderRepository
from restaurant_order_service.services.catalog_cache import CatalogCache
from restaurant_order_service.services.catalog_client import CatalogServiceClient
from restaurant_order_service.services.composition import OrderComposer
from restaurant_order_service.services.inventory_service import InventoryService
from restaurant_order_service.services.order_reconciler import OrderReconciler
from restaurant_order_service.services.order_service import OrderService
from restaurant_order_service.services.package_resolver import PackageResolver
from restaurant_order_service.services.slot_resolver import SlotResolver

logger = logging.getLogger(__name__)


def get_dynamodb_resource() -> Any:
    """Create DynamoDB resource with appropriate configuration.

    Returns:
        Boto3 DynamoDB resource configured for environment
    """
    endpoint_url = os.getenv("DYNAMODB_ENDPOINT")
    region = os.getenv("AWS_REGION", "us-east-1")

    if endpoint_url:
        logger.info(f"Using local DynamoDB at {endpoint_url}")
        return boto3.resource(
            "dynamodb",
            endpoint_url=endpoint_url,
            region_name=region,
            aws_access_key_id=os.getenv("AWS_ACCESS_KEY_ID"),
            aws_secret_access_key=os.getenv("AWS_SECRET_ACCESS_KEY"),
        )

    logger.info(f"Using AWS DynamoDB in region {region}")
    return boto3.resource("dynamodb", region_name=region)


def create_catalog_client() -> CatalogServiceClient:
    """Create the catalog service client from environment variables.

    Raises:
        ValueError: If the catalog service URL or API key is missing
    """
    base_url = os.getenv("CATALOG_SERVICE_BASE_URL")
    api_key = os.getenv("CATALOG_SERVICE_API_KEY")

    if not base_url or not api_key:
        raise ValueError("CATALOG_SERVICE_BASE_URL and CATALOG_SERVICE_API_KEY must be set in environment")

    logger.info(f"Catalog service client configured - URL: {base_url}")
    return CatalogServiceClient(base_url=base_url, api_key=api_key)


def create_application() -> FastAPI:
    """Create and configure the FastAPI application with all dependencies.

    Returns:
        Configured FastAPI application instance
    """
    configure_logging(os.getenv("LOG_LEVEL", "INFO"))
    logger.info("Initializing restaurant order service...")

    dynamodb_resource = get_dynamodb_resource()
    inventory_table = os.getenv("DYNAMODB_INVENTORY_TABLE", "restaurant-inventory")
    orders_table = os.getenv("DYNAMODB_ORDERS_TABLE", "restaurant-orders")
    counters_table = os.getenv("DYNAMODB_COUNTERS_TABLE", "restaurant-counters")
    paused_orders_table = os.getenv("DYNAMODB_PAUSED_ORDERS_TABLE", "restaurant-paused-orders")

    inventory_repository = InventoryRepository(dynamodb_resource=dynamodb_resource, table_name=inventory_table)
    order_repository = SavedOrderRepository(
        dynamodb_resource=dynamodb_resource,
        table_name=orders_table,
        counter_table_name=counters_table,
    )
    paused_order_repository = PausedOrderRepository(dynamodb_resource=dynamodb_resource, table_name=paused_orders_table)
    logger.info(
        f"Repositories configured - inventory: {inventory_table}, orders: {orders_table}, "
        f"paused: {paused_orders_table}"
    )

    catalog_client = create_catalog_client()
    catalog_cache = CatalogCache(catalog_client)
    slot_resolver = SlotResolver(catalog_client, catalog_cache)
    package_resolver = PackageResolver(catalog_client, catalog_cache, slot_resolver)
    inventory_service = InventoryService(inventory_repository, catalog_cache, catalog_client)

    composer = OrderComposer(
        catalog_client=catalog_client,
        catalog_cache=catalog_cache,
        slot_resolver=slot_resolver,
        package_resolver=package_resolver,
        inventory=inventory_service,
        default_customer_name=os.getenv("DEFAULT_CUSTOMER_NAME", "Cliente General"),
    )
    order_service = OrderService(
        order_repository=order_repository,
        inventory=inventory_service,
        reconciler=OrderReconciler(catalog_client, catalog_cache),
        paused_order_repository=paused_order_repository,
    )
    logger.info("Services initialized")

    app = create_app(
        composer=composer,
        order_service=order_service,
        slot_resolver=slot_resolver,
        package_resolver=package_resolver,
    )
    setup_observability(app)

    logger.info("Restaurant order service initialized successfully")
    return app


# Only build the real application outside of tests so test collection needs no AWS config
if os.getenv("ENVIRONMENT") != "test":  # noqa: SIM108
    app = create_application()
else:
    app = FastAPI()


if __name__ == "__main__":
    """Run the application with uvicorn when executed directly."""
    import uvicorn

    port = int(os.getenv("PORT", "8002"))
    host = os.getenv("HOST", "0.0.0.0")

    logger.info(f"Starting development server on {host}:{port}")
    logger.info(f"API documentation available at http://{host}:{port}/docs")

    uvicorn.run(
        "main:app",
        host=host,
        port=port,
        reload=True,
        log_level=os.getenv("LOG_LEVEL", "info").lower(),
    )
