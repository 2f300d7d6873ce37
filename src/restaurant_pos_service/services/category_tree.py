"""Navigable view over a snapshot of an organization's categories.

The tree is a forest: several roots, unbounded depth. A category whose
``parent_id`` points at a missing category is treated as a root, so a
deleted parent never breaks navigation. Item counts are shallow: a category
counts only the products and services assigned to it directly.
"""

from collections.abc import Iterable

from restaurant_pos_service.exceptions import CategoryCycleError, NotFoundError
from restaurant_pos_service.models.catalog_models import (
    Category,
    CategoryType,
    ItemType,
    Product,
    Service,
)


class CategoryTree:
    """Read-only hierarchy built from categories, products and services."""

    def __init__(
        self,
        categories: Iterable[Category],
        products: Iterable[Product] = (),
        services: Iterable[Service] = (),
    ) -> None:
        self.categories = list(categories)
        self.products = list(products)
        self.services = list(services)
        self._by_id = {category.id: category for category in self.categories}

    def get(self, category_id: str) -> Category:
        category = self._by_id.get(category_id)
        if category is None:
            raise NotFoundError(Category.collection, category_id)
        return category

    def _effective_parent(self, category: Category) -> str | None:
        if category.parent_id is not None and category.parent_id in self._by_id:
            return category.parent_id
        return None

    def children_of(self, category_id: str | None) -> list[Category]:
        """Direct children of a category, or the roots when ``category_id`` is None.

        Input order is preserved.
        """
        return [c for c in self.categories if self._effective_parent(c) == category_id]

    def roots(self) -> list[Category]:
        return self.children_of(None)

    def item_count(self, category_id: str, item_type: ItemType | None = None) -> int:
        """Products and services assigned directly to the category.

        Args:
            category_id: Category to count
            item_type: Restrict the count to products or services

        Returns:
            Count excluding items of descendant categories
        """
        count = 0
        if item_type in (None, ItemType.PRODUCT):
            count += sum(1 for p in self.products if p.category_id == category_id)
        if item_type in (None, ItemType.SERVICE):
            count += sum(1 for s in self.services if s.category_id == category_id)
        return count

    def subcategory_count(self, category_id: str) -> int:
        return len(self.children_of(category_id))

    def ancestors(self, category_id: str) -> list[Category]:
        """Ancestors from the nearest parent up to the root.

        The walk stops at a missing parent or at a category already visited,
        so corrupted data cannot cause an infinite loop.
        """
        chain: list[Category] = []
        seen = {category_id}
        parent_id = self._effective_parent(self.get(category_id))
        while parent_id is not None and parent_id not in seen:
            parent = self._by_id[parent_id]
            chain.append(parent)
            seen.add(parent_id)
            parent_id = self._effective_parent(parent)
        return chain

    def hierarchy_level(self, category_id: str) -> int:
        """Depth of the category, 0 for roots."""
        return len(self.ancestors(category_id))

    def path_label(self, category_id: str, separator: str = " / ") -> str:
        """Breadcrumb of names from the root down to the category."""
        names = [c.name for c in reversed(self.ancestors(category_id))]
        names.append(self.get(category_id).name)
        return separator.join(names)

    def descendant_ids(self, category_id: str) -> set[str]:
        """Ids of every category below ``category_id``."""
        found: set[str] = set()
        pending = [category_id]
        while pending:
            current = pending.pop()
            for child in self.children_of(current):
                if child.id not in found and child.id != category_id:
                    found.add(child.id)
                    pending.append(child.id)
        return found

    def filter_by_type(self, category_type: CategoryType | ItemType) -> list[Category]:
        """Categories usable for the given type; ``both`` matches either."""
        return [c for c in self.categories if c.type.matches(category_type)]

    def validate_parent(self, category_id: str | None, parent_id: str | None) -> None:
        """Check that ``parent_id`` may become the parent of ``category_id``.

        ``category_id`` is None for a category that does not exist yet.

        Raises:
            NotFoundError: If the parent does not exist
            CategoryCycleError: If the parent is the category itself or one of its descendants
        """
        if parent_id is None:
            return
        self.get(parent_id)
        if category_id is None:
            return
        if parent_id == category_id or parent_id in self.descendant_ids(category_id):
            raise CategoryCycleError(category_id, parent_id)
