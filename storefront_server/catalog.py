"""Catalog browsing helpers."""

from typing import TYPE_CHECKING, Optional

from .models import Category, Product

if TYPE_CHECKING:
    from .backend_client import StorefrontClient


def search_products(products: list[Product], query: str) -> list[Product]:
    """Case-insensitive match on name, description or brand."""
    needle = query.strip().lower()
    if not needle:
        return list(products)
    return [
        product
        for product in products
        if needle in product.name.lower()
        or needle in product.description.lower()
        or (product.brand is not None and needle in product.brand.lower())
    ]


def filter_by_category(products: list[Product], category: str) -> list[Product]:
    """Products in a category, or in a subcategory with that id."""
    return [p for p in products if p.category == category or p.subcategory == category]


def popular_products(products: list[Product]) -> list[Product]:
    return [p for p in products if p.popular]


def build_category_tree(categories: list[Category]) -> list[Category]:
    """
    Nest a flat category list under its parents.

    Children keep the input order (already sorted by ``sort_order``). A
    category whose parent is missing is promoted to the root level.
    ``level`` and ``path`` are filled in for breadcrumb display.
    """
    nodes = {c.id: c.model_copy(update={"subcategories": []}) for c in categories}
    roots: list[Category] = []
    for category in categories:
        node = nodes[category.id]
        parent = nodes.get(category.parent_id) if category.parent_id else None
        if parent is not None and parent is not node:
            parent.subcategories.append(node)
        else:
            roots.append(node)

    def annotate(node: Category, level: int, prefix: str) -> None:
        node.level = level
        node.path = f"{prefix} > {node.name}" if prefix else node.name
        for child in node.subcategories:
            annotate(child, level + 1, node.path)

    for root in roots:
        annotate(root, 0, "")
    return roots


class ProductCatalog:
    """Product snapshot fetched from the backend, refreshed on demand."""

    def __init__(self, client: "StorefrontClient") -> None:
        self.client = client
        self._products: Optional[list[Product]] = None

    async def get_products(self, refresh: bool = False) -> list[Product]:
        """Return the cached product list, fetching it on first use."""
        if self._products is None or refresh:
            self._products = await self.client.get_products()
        return self._products

    async def find(self, product_id: str) -> Optional[Product]:
        for product in await self.get_products():
            if product.id == product_id:
                return product
        # Not in the snapshot, it may have been added since
        for product in await self.get_products(refresh=True):
            if product.id == product_id:
                return product
        return None

    def invalidate(self) -> None:
        self._products = None
