"""
Catalog backend protocol: the remote operations the dashboard consumes.

The GraphQL implementation lives in ``catalog_admin.gateway.catalog``;
tests provide an in-memory one.
"""

from __future__ import annotations

from typing import List, Optional, Protocol, runtime_checkable

from catalog_admin.schemas import (
    Category,
    CategoryLabel,
    Localization,
    OrderDetails,
    OrderEvent,
    Page,
    Product,
)


@runtime_checkable
class CatalogBackend(Protocol):
    # ── product queries ──

    async def list_products(self, limit: int, next_token: Optional[str] = None) -> Page[Product]: ...

    async def list_products_by_localization(
        self, lang: str, country: str, limit: int, next_token: Optional[str] = None
    ) -> Page[Product]: ...

    async def get_products_by_sku(self, skus: List[str]) -> List[Product]: ...

    async def get_products_by_category(
        self, category: str, limit: int, next_token: Optional[str] = None
    ) -> Page[Product]: ...

    async def search_products(self, search: str, limit: int, next_token: Optional[str] = None) -> Page[Product]: ...

    # ── category queries ──

    async def list_categories(self, limit: int, next_token: Optional[str] = None) -> Page[Category]: ...

    async def list_categories_by_language(
        self, lang: str, limit: int, next_token: Optional[str] = None
    ) -> Page[CategoryLabel]: ...

    async def search_categories(self, search: str, limit: int, next_token: Optional[str] = None) -> Page[Category]: ...

    async def get_category(self, category: str) -> Optional[Category]: ...

    # ── order log ──

    async def get_order_events(
        self, limit: int, next_token: Optional[str] = None, order_id: Optional[str] = None
    ) -> Page[OrderEvent]: ...

    async def get_order_details(self, order_id: str) -> Optional[OrderDetails]: ...

    # ── product mutations ──

    async def create_product(self, product: Product) -> Product: ...

    async def update_product(self, product: Product) -> Product:
        """Update scalar fields only; localizations have their own calls."""
        ...

    async def delete_product(self, sku: str) -> None: ...

    async def add_localizations(self, sku: str, localizations: List[Localization]) -> Product: ...

    async def update_localizations(self, sku: str, localizations: List[Localization]) -> Product: ...

    async def remove_localization(self, sku: str, lang: str, country: str) -> Product: ...

    # ── category mutations ──

    async def create_category(self, category: Category) -> Category: ...

    async def delete_category(self, category: str) -> None: ...

    async def upsert_category_translation(self, category: str, lang: str, text: str) -> Category: ...

    async def remove_category_translation(self, category: str, lang: str) -> Category: ...
