"""Catalog models: categories, products and services."""

from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, Field

from restaurant_pos_service.models.document_models import DocumentModel


class ItemType(str, Enum):
    """Kind of catalog entry a line item refers to."""

    PRODUCT = "product"
    SERVICE = "service"


class CategoryType(str, Enum):
    """Which catalog entries a category may hold."""

    PRODUCT = "product"
    SERVICE = "service"
    BOTH = "both"

    def matches(self, item_type: "CategoryType | ItemType") -> bool:
        """Whether this category type holds entries of ``item_type``."""
        if self is CategoryType.BOTH:
            return True
        return self.value == item_type.value


class Category(DocumentModel):
    """Catalog category; ``parent_id`` of None makes it a root."""

    collection = "categories"

    name: str = Field(..., min_length=1, description="Category name")
    description: str | None = Field(None, description="Category description")
    type: CategoryType = Field(default=CategoryType.BOTH)
    parent_id: str | None = Field(None, description="Parent category, None for roots")


class ProductVariation(BaseModel):
    """Priced variant of a product (size, flavour...)."""

    id: str
    name: str
    price: Decimal = Field(..., ge=0)
    description: str | None = None


class Product(DocumentModel):
    """Sellable product."""

    collection = "products"

    name: str = Field(..., min_length=1)
    description: str | None = None
    price: Decimal = Field(..., ge=0, description="Unit price")
    category_id: str | None = Field(None, description="Category, None if uncategorized")
    variations: list[ProductVariation] = Field(default_factory=list)

    @property
    def item_type(self) -> ItemType:
        return ItemType.PRODUCT


class Service(DocumentModel):
    """Sellable service."""

    collection = "services"

    name: str = Field(..., min_length=1)
    description: str | None = None
    price: Decimal = Field(..., ge=0, description="Total price")
    category_id: str | None = None

    @property
    def item_type(self) -> ItemType:
        return ItemType.SERVICE


CatalogEntry = Product | Service
