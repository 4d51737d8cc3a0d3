"""Shared dependency factory for Lambda handlers.

Dependencies are created once and reused across invocations within the same
Lambda container. The catalog cache and inventory snapshot live as long as
the container, and catalog change events keep them current.
"""

import logging
import os
from typing import Any

import boto3
from fastapi import FastAPI

from restaurant_order_service.handlers.api_handler import create_app
from restaurant_order_service.handlers.event_handler import CatalogEventHandler
from restaurant_order_service.observability import configure_logging
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

# Module-level caches for Lambda container reuse
_dynamodb_resource: Any | None = None
_catalog_client: CatalogServiceClient | None = None
_catalog_cache: CatalogCache | None = None
_inventory_service: InventoryService | None = None
_event_handler: CatalogEventHandler | None = None
_fastapi_app: FastAPI | None = None


def get_dynamodb_resource() -> Any:
    """Create or retrieve cached DynamoDB resource.

    Returns:
        Boto3 DynamoDB resource configured for environment
    """
    global _dynamodb_resource

    if _dynamodb_resource is not None:
        return _dynamodb_resource

    endpoint_url = os.getenv("DYNAMODB_ENDPOINT")
    region = os.getenv("AWS_REGION", "us-east-1")

    if endpoint_url:
        logger.info(f"Using local DynamoDB at {endpoint_url}")
        _dynamodb_resource = boto3.resource(
            "dynamodb",
            endpoint_url=endpoint_url,
            region_name=region,
            aws_access_key_id=os.getenv("AWS_ACCESS_KEY_ID"),
            aws_secret_access_key=os.getenv("AWS_SECRET_ACCESS_KEY"),
        )
    else:
        logger.info(f"Using AWS DynamoDB in region {region}")
        _dynamodb_resource = boto3.resource("dynamodb", region_name=region)

    return _dynamodb_resource


def get_catalog_client() -> CatalogServiceClient:
    """Create or retrieve cached catalog service client.

    Raises:
        ValueError: If the catalog service URL or API key is missing
    """
    global _catalog_client

    if _catalog_client is not None:
        return _catalog_client

    base_url = os.getenv("CATALOG_SERVICE_BASE_URL")
    api_key = os.getenv("CATALOG_SERVICE_API_KEY")

    if not base_url or not api_key:
        raise ValueError("CATALOG_SERVICE_BASE_URL and CATALOG_SERVICE_API_KEY must be set in environment")

    _catalog_client = CatalogServiceClient(base_url=base_url, api_key=api_key)
    return _catalog_client


def get_catalog_cache() -> CatalogCache:
    """Create or retrieve cached catalog product cache."""
    global _catalog_cache

    if _catalog_cache is None:
        _catalog_cache = CatalogCache(get_catalog_client())

    return _catalog_cache


def get_inventory_service() -> InventoryService:
    """Create or retrieve cached inventory service.

    Returns:
        Configured InventoryService instance
    """
    global _inventory_service

    if _inventory_service is not None:
        return _inventory_service

    inventory_table = os.getenv("DYNAMODB_INVENTORY_TABLE", "restaurant-inventory")
    repository = InventoryRepository(dynamodb_resource=get_dynamodb_resource(), table_name=inventory_table)

    _inventory_service = InventoryService(repository, get_catalog_cache(), get_catalog_client())

    logger.info("Inventory service initialized")
    return _inventory_service


def get_event_handler() -> CatalogEventHandler:
    """Create or retrieve cached event handler.

    Returns:
        Configured CatalogEventHandler instance
    """
    global _event_handler

    if _event_handler is not None:
        return _event_handler

    _event_handler = CatalogEventHandler(
        catalog_cache=get_catalog_cache(),
        inventory_service=get_inventory_service(),
    )

    logger.info("Event handler initialized")
    return _event_handler


def get_fastapi_app() -> FastAPI:
    """Create or retrieve cached FastAPI application.

    Returns:
        Configured FastAPI application instance
    """
    global _fastapi_app

    if _fastapi_app is not None:
        return _fastapi_app

    catalog_client = get_catalog_client()
    catalog_cache = get_catalog_cache()
    inventory_service = get_inventory_service()
    slot_resolver = SlotResolver(catalog_client, catalog_cache)
    package_resolver = PackageResolver(catalog_client, catalog_cache, slot_resolver)

    order_repository = SavedOrderRepository(
        dynamodb_resource=get_dynamodb_resource(),
        table_name=os.getenv("DYNAMODB_ORDERS_TABLE", "restaurant-orders"),
        counter_table_name=os.getenv("DYNAMODB_COUNTERS_TABLE", "restaurant-counters"),
    )
    paused_order_repository = PausedOrderRepository(
        dynamodb_resource=get_dynamodb_resource(),
        table_name=os.getenv("DYNAMODB_PAUSED_ORDERS_TABLE", "restaurant-paused-orders"),
    )

    _fastapi_app = create_app(
        composer=OrderComposer(
            catalog_client=catalog_client,
            catalog_cache=catalog_cache,
            slot_resolver=slot_resolver,
            package_resolver=package_resolver,
            inventory=inventory_service,
            default_customer_name=os.getenv("DEFAULT_CUSTOMER_NAME", "Cliente General"),
        ),
        order_service=OrderService(
            order_repository=order_repository,
            inventory=inventory_service,
            reconciler=OrderReconciler(catalog_client, catalog_cache),
            paused_order_repository=paused_order_repository,
        ),
        slot_resolver=slot_resolver,
        package_resolver=package_resolver,
    )

    logger.info("FastAPI application initialized")
    return _fastapi_app


def initialize_lambda_environment() -> None:
    """Initialize Lambda environment with logging.

    Should be called once during Lambda cold start.
    """
    configure_logging(os.getenv("LOG_LEVEL", "INFO"))

    logger.info("Lambda environment initialized")
