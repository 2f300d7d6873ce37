"""Catalog management: categories, products and services."""

import logging
import uuid
from decimal import Decimal
from typing import Any

from restaurant_pos_service.models.catalog_models import (
    Category,
    CategoryType,
    ItemType,
    Product,
    Service,
)
from restaurant_pos_service.observability import traced
from restaurant_pos_service.repositories.catalog_repositories import (
    CategoryRepository,
    ProductRepository,
    ServiceRepository,
)
from restaurant_pos_service.services.category_tree import CategoryTree
from restaurant_pos_service.services.live_query import LiveQueryCache

logger = logging.getLogger(__name__)


def new_id(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4().hex[:12]}"


class CatalogService:
    """Service for the catalog used for POS browsing.

    Category parents are validated on every create and re-parent so the
    hierarchy stays acyclic. Deleting a category does not cascade to its
    children or items; they keep pointing at the missing id and are shown
    as roots / uncategorized.
    """

    def __init__(
        self,
        category_repository: CategoryRepository,
        product_repository: ProductRepository,
        service_repository: ServiceRepository,
        live_queries: LiveQueryCache | None = None,
    ) -> None:
        self.category_repository = category_repository
        self.product_repository = product_repository
        self.service_repository = service_repository
        self.live_queries = live_queries

    def _changed(self, organization_id: str, collection: str) -> None:
        if self.live_queries is not None:
            self.live_queries.notify(organization_id, collection)

    async def get_tree(self, organization_id: str) -> CategoryTree:
        """Build the category tree from the current catalog."""
        return CategoryTree(
            self.category_repository.list_for_organization(organization_id),
            self.product_repository.list_for_organization(organization_id),
            self.service_repository.list_for_organization(organization_id),
        )

    async def list_categories(
        self, organization_id: str, category_type: CategoryType | None = None
    ) -> list[Category]:
        categories = self.category_repository.list_for_organization(organization_id)
        if category_type is None or category_type is CategoryType.BOTH:
            return categories
        return [c for c in categories if c.type.matches(category_type)]

    async def browse(
        self,
        organization_id: str,
        parent_id: str | None = None,
        item_type: ItemType | None = None,
    ) -> list[dict[str, Any]]:
        """Children of ``parent_id`` (roots when None) with their counts, sorted by name.

        This is what the POS shows when navigating categories.
        """
        tree = await self.get_tree(organization_id)
        children = tree.children_of(parent_id)
        if item_type is not None:
            children = [c for c in children if c.type.matches(item_type)]
        return [
            {
                "id": category.id,
                "name": category.name,
                "type": category.type.value,
                "level": tree.hierarchy_level(category.id),
                "path": tree.path_label(category.id),
                "item_count": tree.item_count(category.id, item_type),
                "subcategory_count": tree.subcategory_count(category.id),
            }
            for category in sorted(children, key=lambda c: c.name.lower())
        ]

    @traced("catalog.create_category")
    async def create_category(
        self,
        organization_id: str,
        name: str,
        category_type: CategoryType = CategoryType.BOTH,
        description: str | None = None,
        parent_id: str | None = None,
    ) -> Category:
        """Create a category under ``parent_id``.

        Raises:
            NotFoundError: If the parent does not exist
        """
        tree = CategoryTree(self.category_repository.list_for_organization(organization_id))
        tree.validate_parent(None, parent_id)

        category = Category(
            id=new_id("cat"),
            organization_id=organization_id,
            name=name,
            description=description,
            type=category_type,
            parent_id=parent_id,
        )
        self.category_repository.create(category)
        self._changed(organization_id, Category.collection)
        return category

    @traced("catalog.update_category")
    async def update_category(
        self, organization_id: str, category_id: str, fields: dict[str, Any]
    ) -> Category:
        """Update a category, validating any change of parent.

        Raises:
            NotFoundError: If the category or new parent does not exist
            CategoryCycleError: If the new parent is the category or one of its descendants
        """
        tree = CategoryTree(self.category_repository.list_for_organization(organization_id))
        tree.get(category_id)
        if "parent_id" in fields:
            tree.validate_parent(category_id, fields["parent_id"])

        category = self.category_repository.update(organization_id, category_id, fields)
        self._changed(organization_id, Category.collection)
        return category

    async def delete_category(self, organization_id: str, category_id: str) -> None:
        self.category_repository.require(organization_id, category_id)
        self.category_repository.delete(organization_id, category_id)
        self._changed(organization_id, Category.collection)

    async def list_products(
        self, organization_id: str, category_id: str | None = None
    ) -> list[Product]:
        products = self.product_repository.list_for_organization(organization_id)
        if category_id is not None:
            products = [p for p in products if p.category_id == category_id]
        return products

    async def list_services(
        self, organization_id: str, category_id: str | None = None
    ) -> list[Service]:
        services = self.service_repository.list_for_organization(organization_id)
        if category_id is not None:
            services = [s for s in services if s.category_id == category_id]
        return services

    async def create_product(
        self,
        organization_id: str,
        name: str,
        price: Decimal,
        description: str | None = None,
        category_id: str | None = None,
        variations: list[dict[str, Any]] | None = None,
    ) -> Product:
        """Create a product; the category must exist when given."""
        if category_id is not None:
            self.category_repository.require(organization_id, category_id)
        product = Product(
            id=new_id("prod"),
            organization_id=organization_id,
            name=name,
            price=price,
            description=description,
            category_id=category_id,
            variations=[
                {"id": v.get("id") or new_id("var"), **{k: v[k] for k in v if k != "id"}}
                for v in variations or []
            ],
        )
        self.product_repository.create(product)
        self._changed(organization_id, Product.collection)
        return product

    async def create_service(
        self,
        organization_id: str,
        name: str,
        price: Decimal,
        description: str | None = None,
        category_id: str | None = None,
    ) -> Service:
        if category_id is not None:
            self.category_repository.require(organization_id, category_id)
        service = Service(
            id=new_id("svc"),
            organization_id=organization_id,
            name=name,
            price=price,
            description=description,
            category_id=category_id,
        )
        self.service_repository.create(service)
        self._changed(organization_id, Service.collection)
        return service

    async def update_item(
        self, organization_id: str, item_type: ItemType, item_id: str, fields: dict[str, Any]
    ) -> Product | Service:
        """Update a product or service.

        Raises:
            NotFoundError: If the item, or a newly assigned category, does not exist
        """
        if fields.get("category_id") is not None:
            self.category_repository.require(organization_id, fields["category_id"])
        repository = self._repository_for(item_type)
        item = repository.update(organization_id, item_id, fields)
        self._changed(organization_id, repository.collection)
        return item

    async def delete_item(self, organization_id: str, item_type: ItemType, item_id: str) -> None:
        repository = self._repository_for(item_type)
        repository.require(organization_id, item_id)
        repository.delete(organization_id, item_id)
        self._changed(organization_id, repository.collection)

    async def get_item(
        self, organization_id: str, item_type: ItemType, item_id: str
    ) -> Product | Service:
        """Catalog entry to sell.

        Raises:
            NotFoundError: If the item does not exist
        """
        return self._repository_for(item_type).require(organization_id, item_id)

    def _repository_for(self, item_type: ItemType) -> ProductRepository | ServiceRepository:
        if item_type is ItemType.PRODUCT:
            return self.product_repository
        return self.service_repository
