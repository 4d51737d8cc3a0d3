"""Catalog and inventory data models.

Catalog models mirror the records served by the catalog service. They are
read-only during order composition. Inventory items live in DynamoDB.
"""

from decimal import Decimal
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator


class CategoryType(str, Enum):
    """Enumeration of category kinds."""

    PRODUCT = "product"
    MODIFIER = "modifier"
    PACKAGE = "package"


class InventoryUnit(str, Enum):
    """Units an inventory item is counted in."""

    PIECES = "pieces"
    KG = "kg"


class Category(BaseModel):
    """Catalog category model."""

    id: str = Field(..., description="Unique identifier for the category")
    name: str = Field(..., description="Category name")
    type: CategoryType = Field(default=CategoryType.PRODUCT, description="Kind of items it groups")
    image_url: str | None = Field(None, description="URL to category image")


class Product(BaseModel):
    """Sellable product or modifier option."""

    model_config = ConfigDict(json_encoders={Decimal: str})

    id: str = Field(..., description="Unique identifier for the product")
    name: str = Field(..., description="Product name")
    price: Decimal = Field(..., description="Base price", ge=0)
    category_id: str = Field(..., description="Category this product belongs to")
    image_url: str | None = Field(None, description="URL to product image")
    inventory_item_id: str | None = Field(None, description="Linked inventory item, if tracked")
    inventory_consumed_per_unit: Decimal = Field(
        default=Decimal("1"), description="Inventory units consumed per unit sold", ge=0
    )

    @property
    def tracks_inventory(self) -> bool:
        """Whether selling this product consumes stock."""
        return self.inventory_item_id is not None and self.inventory_consumed_per_unit > 0


class SlotOption(BaseModel):
    """Explicit allow-list entry binding a modifier product to a slot."""

    id: str = Field(..., description="Unique identifier for the option")
    slot_id: str = Field(..., description="Slot this option belongs to")
    modifier_product_id: str = Field(..., description="Modifier product offered by the option")
    is_default: bool = Field(default=False, description="Whether the option is preselected")
    price_adjustment: Decimal = Field(
        default=Decimal("0"), description="Signed adjustment applied within this slot only"
    )


class ModifierSlot(BaseModel):
    """Selection point on a product where modifiers may be chosen."""

    id: str = Field(..., description="Unique identifier for the slot")
    product_id: str = Field(..., description="Product owning the slot")
    label: str = Field(..., description="Label shown to the operator")
    linked_category_id: str = Field(..., description="Modifier category supplying options")
    min_quantity: int = Field(default=0, description="Minimum selections", ge=0)
    max_quantity: int = Field(default=1, description="Maximum selections", ge=0)
    allowed_options: list[SlotOption] = Field(
        default_factory=list, description="Explicit options; empty means whole linked category"
    )

    @model_validator(mode="after")
    def validate_range(self) -> "ModifierSlot":
        """Validate that max_quantity is not below min_quantity."""
        if self.max_quantity < self.min_quantity:
            raise ValueError("max_quantity must be greater than or equal to min_quantity")
        return self


class Package(BaseModel):
    """Fixed-price bundle of products."""

    id: str = Field(..., description="Unique identifier for the package")
    name: str = Field(..., description="Package name")
    price: Decimal = Field(..., description="Fixed base price", ge=0)
    category_id: str | None = Field(None, description="Optional UI grouping category")
    image_url: str | None = Field(None, description="URL to package image")


class PackageItem(BaseModel):
    """A product contained in a package."""

    id: str = Field(..., description="Unique identifier for the package item")
    package_id: str = Field(..., description="Owning package")
    product_id: str = Field(..., description="Contained product")
    quantity: int = Field(default=1, description="Units of the product per package", ge=1)
    display_order: int = Field(default=0, description="Display order inside the package")
    product_name: str | None = Field(None, description="Name of the contained product")


class PackageItemSlotOverride(BaseModel):
    """Package-scoped replacement of a slot's min/max constraints."""

    id: str = Field(..., description="Unique identifier for the override")
    package_item_id: str = Field(..., description="Package item the override applies to")
    slot_id: str = Field(..., description="Overridden modifier slot")
    min_quantity: int = Field(..., description="Replacement minimum", ge=0)
    max_quantity: int = Field(..., description="Replacement maximum", ge=0)
    slot_label: str | None = Field(None, description="Label of the overridden slot")

    @model_validator(mode="after")
    def validate_range(self) -> "PackageItemSlotOverride":
        """Validate that max_quantity is not below min_quantity."""
        if self.max_quantity < self.min_quantity:
            raise ValueError("max_quantity must be greater than or equal to min_quantity")
        return self


class ServingStyle(BaseModel):
    """How a modifier is served (e.g. on the side)."""

    id: str
    category_id: str
    label: str
    display_order: int = 0


class InventoryItem(BaseModel):
    """Stock-tracked raw material.

    Stored in DynamoDB with id as partition key.
    """

    id: str = Field(..., description="Unique identifier for the inventory item")
    name: str = Field(..., description="Inventory item name")
    unit: InventoryUnit = Field(default=InventoryUnit.PIECES, description="Counting unit")
    initial_stock: Decimal = Field(default=Decimal("0"), description="Stock at creation", ge=0)
    current_stock: Decimal = Field(default=Decimal("0"), description="Stock on hand", ge=0)

    def to_dynamodb_item(self) -> dict[str, Any]:
        """Convert to DynamoDB item format.

        Returns:
            dict: DynamoDB-compatible representation
        """
        return {
            "id": self.id,
            "name": self.name,
            "unit": self.unit.value,
            "initial_stock": self.initial_stock,
            "current_stock": self.current_stock,
        }

    @classmethod
    def from_dynamodb_item(cls, item: dict[str, Any]) -> "InventoryItem":
        """Create InventoryItem from DynamoDB item.

        Args:
            item: DynamoDB item dictionary

        Returns:
            InventoryItem: Parsed model instance
        """
        return cls(
            id=item["id"],
            name=item["name"],
            unit=InventoryUnit(item.get("unit", InventoryUnit.PIECES.value)),
            initial_stock=Decimal(str(item.get("initial_stock", 0))),
            current_stock=Decimal(str(item.get("current_stock", 0))),
        )


class ResolvedOption(BaseModel):
    """A legal option of a slot with its effective in-slot price."""

    model_config = ConfigDict(frozen=True)

    product: Product
    effective_price: Decimal
    price_adjustment: Decimal = Decimal("0")
    is_default: bool = False

    @property
    def product_id(self) -> str:
        return self.product.id


class ResolvedSlot(BaseModel):
    """A modifier slot with its resolved options and effective constraints."""

    model_config = ConfigDict(frozen=True)

    id: str
    product_id: str
    label: str
    linked_category_id: str
    min_quantity: int
    max_quantity: int
    options: tuple[ResolvedOption, ...] = ()

    def find_option(self, product_id: str) -> ResolvedOption | None:
        """Find a legal option by its modifier product id."""
        for option in self.options:
            if option.product.id == product_id:
                return option
        return None

    def with_constraints(self, min_quantity: int, max_quantity: int) -> "ResolvedSlot":
        """Return a copy with replaced min/max constraints."""
        return self.model_copy(update={"min_quantity": min_quantity, "max_quantity": max_quantity})
