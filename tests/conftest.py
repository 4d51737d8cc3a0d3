"""Shared pytest fixtures and configuration for all tests."""

import itertools
import os
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest

os.environ.setdefault("ENVIRONMENT", "test")

from restaurant_order_service.models.catalog_models import (  # noqa: E402
    InventoryItem,
    ModifierSlot,
    Package,
    PackageItem,
    PackageItemSlotOverride,
    Product,
    ServingStyle,
    SlotOption,
)
from restaurant_order_service.models.order_models import OrderStatus, PausedOrder, SavedOrder  # noqa: E402
from restaurant_order_service.repositories.inventory_repository import InventoryRepository  # noqa: E402
from restaurant_order_service.repositories.order_repository import SavedOrderRepository  # noqa: E402
from restaurant_order_service.repositories.paused_order_repository import PausedOrderRepository  # noqa: E402
from restaurant_order_service.services.catalog_cache import CatalogCache  # noqa: E402
from restaurant_order_service.services.catalog_client import CatalogServiceClient  # noqa: E402
from restaurant_order_service.services.inventory_service import InventoryService  # noqa: E402
from restaurant_order_service.services.package_resolver import PackageResolver  # noqa: E402
from restaurant_order_service.services.slot_resolver import SlotResolver  # noqa: E402


@pytest.fixture
def wings_product() -> Product:
    """Fixture providing the Wings-6 product (6 raw wings per unit)."""
    return Product(
        id="prod_wings6",
        name="Wings-6",
        price=Decimal("95"),
        category_id="cat_wings",
        inventory_item_id="inv_raw_wings",
        inventory_consumed_per_unit=Decimal("6"),
    )


@pytest.fixture
def sauce_products() -> list[Product]:
    """Fixture providing the sauces of the sauce modifier category."""
    return [
        Product(id="prod_sauce_a", name="Sauce-A", price=Decimal("0"), category_id="cat_sauces"),
        Product(id="prod_sauce_b", name="Sauce-B", price=Decimal("0"), category_id="cat_sauces"),
        Product(id="prod_sauce_c", name="Sauce-C", price=Decimal("3"), category_id="cat_sauces"),
    ]


@pytest.fixture
def sauces_slot() -> ModifierSlot:
    """Fixture providing the Sauces slot of Wings-6 with an explicit allow-list."""
    return ModifierSlot(
        id="slot_sauces",
        product_id="prod_wings6",
        label="Sauces",
        linked_category_id="cat_sauces",
        min_quantity=1,
        max_quantity=2,
        allowed_options=[
            SlotOption(id="opt_a", slot_id="slot_sauces", modifier_product_id="prod_sauce_a"),
            SlotOption(
                id="opt_b",
                slot_id="slot_sauces",
                modifier_product_id="prod_sauce_b",
                price_adjustment=Decimal("5"),
            ),
        ],
    )


@pytest.fixture
def combo_package() -> Package:
    return Package(id="pkg_combo", name="Combo", price=Decimal("270"), category_id="cat_packages")


@pytest.fixture
def combo_items() -> list[PackageItem]:
    return [
        PackageItem(
            id="pi_wings",
            package_id="pkg_combo",
            product_id="prod_wings6",
            quantity=1,
            display_order=1,
            product_name="Wings-6",
        ),
    ]


@pytest.fixture
def combo_overrides() -> list[PackageItemSlotOverride]:
    """Fixture providing the Combo override limiting Wings-6 to one sauce."""
    return [
        PackageItemSlotOverride(
            id="ovr_1", package_item_id="pi_wings", slot_id="slot_sauces", min_quantity=1, max_quantity=1
        )
    ]


@pytest.fixture
def raw_wings() -> InventoryItem:
    return InventoryItem(
        id="inv_raw_wings",
        name="RawWings",
        initial_stock=Decimal("1000"),
        current_stock=Decimal("1000"),
    )


@pytest.fixture
def mock_catalog_client(
    wings_product: Product,
    sauce_products: list[Product],
    sauces_slot: ModifierSlot,
    combo_package: Package,
    combo_items: list[PackageItem],
    combo_overrides: list[PackageItemSlotOverride],
) -> MagicMock:
    """Fixture providing a catalog client mock answering from the sample catalog."""
    products = {product.id: product for product in [wings_product, *sauce_products]}
    slots = {"prod_wings6": [sauces_slot]}
    packages = {combo_package.id: combo_package}
    package_items = {combo_package.id: combo_items}
    overrides = {"pi_wings": combo_overrides}

    client = MagicMock(spec=CatalogServiceClient)
    client.get_product_by_id = AsyncMock(side_effect=lambda product_id: products.get(product_id))
    client.get_all_products = AsyncMock(side_effect=lambda: list(products.values()))
    client.get_modifier_slots_for_product = AsyncMock(side_effect=lambda product_id: slots.get(product_id, []))
    client.get_package_by_id = AsyncMock(side_effect=lambda package_id: packages.get(package_id))
    client.get_items_for_package = AsyncMock(side_effect=lambda package_id: package_items.get(package_id, []))
    client.get_overrides_for_package_item = AsyncMock(side_effect=lambda item_id: overrides.get(item_id, []))
    client.get_modifiers_by_category = AsyncMock(
        side_effect=lambda category_id: [p for p in products.values() if p.category_id == category_id]
    )
    client.get_serving_styles_for_category = AsyncMock(
        return_value=[
            ServingStyle(id="style_side", category_id="cat_sauces", label="On the side", display_order=1),
        ]
    )
    return client


@pytest.fixture
def inventory_store(raw_wings: InventoryItem) -> dict[str, InventoryItem]:
    """Fixture providing the mutable inventory table behind the repository mock."""
    return {raw_wings.id: raw_wings}


@pytest.fixture
def mock_inventory_repository(inventory_store: dict[str, InventoryItem]) -> MagicMock:
    """Fixture providing an inventory repository mock with all-or-nothing batches."""

    def apply_stock_deltas(deltas: dict[str, Decimal]) -> bool:
        for item_id, delta in deltas.items():
            if item_id not in inventory_store or inventory_store[item_id].current_stock + delta < 0:
                return False
        for item_id, delta in deltas.items():
            item = inventory_store[item_id]
            inventory_store[item_id] = item.model_copy(update={"current_stock": item.current_stock + delta})
        return True

    repository = MagicMock(spec=InventoryRepository)
    repository.get_inventory_items.side_effect = lambda: list(inventory_store.values())
    repository.get_item.side_effect = lambda item_id: inventory_store.get(item_id)
    repository.apply_stock_deltas.side_effect = apply_stock_deltas
    return repository


@pytest.fixture
def order_store() -> dict[str, SavedOrder]:
    return {}


@pytest.fixture
def mock_order_repository(order_store: dict[str, SavedOrder]) -> MagicMock:
    """Fixture providing a saved order repository mock backed by a dict."""
    numbers = itertools.count(1)

    def save_order(order: SavedOrder) -> bool:
        order_store[order.id] = order.model_copy(deep=True)
        return True

    def list_orders(status: OrderStatus | None = None) -> list[SavedOrder]:
        return [order for order in order_store.values() if status is None or order.status == status]

    repository = MagicMock(spec=SavedOrderRepository)
    repository.get_order.side_effect = lambda order_id: order_store.get(order_id)
    repository.save_order.side_effect = save_order
    repository.list_orders.side_effect = list_orders
    repository.next_order_number.side_effect = lambda: next(numbers)
    return repository


@pytest.fixture
def paused_store() -> dict[str, PausedOrder]:
    return {}


@pytest.fixture
def mock_paused_order_repository(paused_store: dict[str, PausedOrder]) -> MagicMock:
    """Fixture providing a paused order repository mock backed by a dict."""

    def save_paused_order(paused: PausedOrder) -> bool:
        paused_store[paused.paused_id] = paused.model_copy(deep=True)
        return True

    def delete_paused_order(paused_id: str) -> bool:
        paused_store.pop(paused_id, None)
        return True

    repository = MagicMock(spec=PausedOrderRepository)
    repository.get_paused_order.side_effect = lambda paused_id: paused_store.get(paused_id)
    repository.save_paused_order.side_effect = save_paused_order
    repository.list_paused_orders.side_effect = lambda: sorted(paused_store.values(), key=lambda p: p.paused_at)
    repository.delete_paused_order.side_effect = delete_paused_order
    return repository


@pytest.fixture
def catalog_cache(mock_catalog_client: MagicMock) -> CatalogCache:
    return CatalogCache(mock_catalog_client)


@pytest.fixture
def slot_resolver(mock_catalog_client: MagicMock, catalog_cache: CatalogCache) -> SlotResolver:
    return SlotResolver(mock_catalog_client, catalog_cache)


@pytest.fixture
def package_resolver(
    mock_catalog_client: MagicMock, catalog_cache: CatalogCache, slot_resolver: SlotResolver
) -> PackageResolver:
    return PackageResolver(mock_catalog_client, catalog_cache, slot_resolver)


@pytest.fixture
def inventory_service(
    mock_inventory_repository: MagicMock, catalog_cache: CatalogCache, mock_catalog_client: MagicMock
) -> InventoryService:
    return InventoryService(mock_inventory_repository, catalog_cache, mock_catalog_client)


@pytest.fixture
def mock_eventbridge_event() -> dict:
    """Fixture providing a sample EventBridge catalog change event."""
    return {
        "version": "0",
        "id": "event_123",
        "detail-type": "CatalogChanged",
        "source": "com.restaurant.catalog",
        "account": "123456789012",
        "time": "2024-01-15T10:30:00Z",
        "region": "us-east-1",
        "resources": [],
        "detail": {
            "entity_type": "product",
            "entity_id": "prod_wings6",
            "event_type": "product.updated",
            "timestamp": "2024-01-15T10:30:00Z",
        },
    }
