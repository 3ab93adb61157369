from decimal import Decimal
from typing import Any, List, Optional
from uuid import UUID

from app.core.errors import AlreadyExists, InvalidState, NotFound
from app.models.catalog import Category, Product
from app.models.order import OrderItem


class CatalogService:
    """Product catalog collaborator: lookups for order intake plus basic menu upkeep."""

    async def find_by_id(self, product_id: UUID, conn: Any = None) -> Optional[Product]:
        return await Product.get_or_none(id=product_id).using_db(conn)

    async def get_product(self, product_id: UUID) -> Product:
        product = await self.find_by_id(product_id)
        if not product:
            raise NotFound("Product", product_id)
        return product

    async def list_products(
        self,
        available: Optional[bool] = None,
        category_id: Optional[UUID] = None,
    ) -> List[Product]:
        filters = {}
        if available is not None:
            filters["is_available"] = available
        if category_id is not None:
            filters["category_id"] = category_id
        return await Product.filter(**filters).order_by("name")

    async def list_categories(self) -> List[Category]:
        return await Category.all().order_by("name")

    async def create_category(self, name: str, description: Optional[str] = None) -> Category:
        if await Category.exists(name=name):
            raise AlreadyExists("Category", "name", name)
        return await Category.create(name=name, description=description)

    async def create_product(
        self,
        name: str,
        price: Decimal,
        category_id: Optional[UUID] = None,
        description: Optional[str] = None,
        is_available: bool = True,
    ) -> Product:
        if await Product.exists(name=name):
            raise AlreadyExists("Product", "name", name)
        category = await self._category_or_none(category_id)

        return await Product.create(
            name=name,
            price=price,
            category=category,
            description=description,
            is_available=is_available,
        )

    async def update_product(
        self,
        product_id: UUID,
        name: str,
        price: Decimal,
        category_id: Optional[UUID] = None,
        description: Optional[str] = None,
        is_available: bool = True,
    ) -> Product:
        """Existing orders keep the name and price they were placed with."""
        product = await self.get_product(product_id)

        # Only check for duplicates when the name actually changes
        if name != product.name and await Product.exists(name=name):
            raise AlreadyExists("Product", "name", name)
        category = await self._category_or_none(category_id)

        product.name = name
        product.price = price
        product.category = category
        product.description = description
        product.is_available = is_available
        await product.save()
        return product

    async def delete_product(self, product_id: UUID) -> None:
        product = await self.get_product(product_id)
        if await OrderItem.exists(product_id=product.id):
            raise InvalidState(
                "product", product.id, None,
                "Product is referenced by existing orders; mark it unavailable instead",
            )
        await product.delete()

    async def set_availability(self, product_id: UUID, is_available: bool) -> Product:
        product = await self.get_product(product_id)
        product.is_available = is_available
        await product.save(update_fields=["is_available", "updated_at"])
        return product

    async def _category_or_none(self, category_id: Optional[UUID]) -> Optional[Category]:
        if category_id is None:
            return None
        category = await Category.get_or_none(id=category_id)
        if not category:
            raise NotFound("Category", category_id)
        return category
