from typing import List, Optional

from catalog_admin.gateway import documents as docs
from catalog_admin.gateway.client import GatewayClient
from catalog_admin.schemas import (
    Category,
    CategoryLabel,
    Localization,
    OrderDetails,
    OrderEvent,
    Page,
    Product,
)

class GraphQLCatalogBackend:
    """CatalogBackend over the GraphQL gateway."""

    def __init__(self, gateway: GatewayClient):
        self.gateway = gateway

    async def _field(self, document: str, field: str, **variables):
        data = await self.gateway.execute(document, variables)
        return data.get(field)

    # products

    async def list_products(self, limit: int, next_token: Optional[str] = None) -> Page[Product]:
        raw = await self._field(docs.GET_ALL_PRODUCTS, 'getAllProducts', limit=limit, nextToken=next_token)
        return Page[Product].model_validate(raw or {})

    async def list_products_by_localization(self, lang: str, country: str, limit: int, next_token: Optional[str] = None) -> Page[Product]:
        raw = await self._field(docs.GET_ALL_PRODUCTS_BY_LOCALIZATION, 'getAllProductsByLocalization',
                                lang=lang, country=country, limit=limit, nextToken=next_token)
        return Page[Product].model_validate(raw or {})

    async def get_products_by_sku(self, skus: List[str]) -> List[Product]:
        raw = await self._field(docs.GET_PRODUCTS_BY_SKU, 'getProductsBySku', skus=skus)
        return [Product.model_validate(p) for p in raw or [] if p]

    async def get_products_by_category(self, category: str, limit: int, next_token: Optional[str] = None) -> Page[Product]:
        raw = await self._field(docs.GET_PRODUCTS_BY_CATEGORY, 'getProductsByCategory',
                                category=category, limit=limit, nextToken=next_token)
        return Page[Product].model_validate(raw or {})

    async def search_products(self, search: str, limit: int, next_token: Optional[str] = None) -> Page[Product]:
        raw = await self._field(docs.SEARCH_PRODUCTS, 'searchProducts', search=search, limit=limit, nextToken=next_token)
        return Page[Product].model_validate(raw or {})

    # categories

    async def list_categories(self, limit: int, next_token: Optional[str] = None) -> Page[Category]:
        raw = await self._field(docs.GET_ALL_CATEGORIES, 'getAllCategories', limit=limit, nextToken=next_token)
        return Page[Category].model_validate(raw or {})

    async def list_categories_by_language(self, lang: str, limit: int, next_token: Optional[str] = None) -> Page[CategoryLabel]:
        raw = await self._field(docs.GET_ALL_CATEGORIES_BY_LANGUAGE, 'getAllCategoriesByLanguage',
                                lang=lang, limit=limit, nextToken=next_token)
        return Page[CategoryLabel].model_validate(raw or {})

    async def search_categories(self, search: str, limit: int, next_token: Optional[str] = None) -> Page[Category]:
        raw = await self._field(docs.SEARCH_CATEGORIES, 'searchCategories', search=search, limit=limit, nextToken=next_token)
        return Page[Category].model_validate(raw or {})

    async def get_category(self, category: str) -> Optional[Category]:
        raw = await self._field(docs.GET_CATEGORY, 'getCategory', category=category)
        return Category.model_validate(raw) if raw else None

    # order log

    async def get_order_events(self, limit: int, next_token: Optional[str] = None, order_id: Optional[str] = None) -> Page[OrderEvent]:
        raw = await self._field(docs.GET_ORDER_EVENTS, 'getOrderEvents', limit=limit, nextToken=next_token, orderId=order_id)
        return Page[OrderEvent].model_validate(raw or {})

    async def get_order_details(self, order_id: str) -> Optional[OrderDetails]:
        raw = await self._field(docs.GET_ORDER_DETAILS, 'getOrderDetails', orderId=order_id)
        return OrderDetails.model_validate(raw) if raw else None

    # product mutations

    async def create_product(self, product: Product) -> Optional[Product]:
        raw = await self._field(docs.CREATE_PRODUCT, 'createProduct', input=product.to_input())
        return Product.model_validate(raw) if raw else None

    async def update_product(self, product: Product) -> Optional[Product]:
        raw = await self._field(docs.UPDATE_PRODUCT, 'updateProduct', input=product.to_input(exclude={'localizations'}))
        return Product.model_validate(raw) if raw else None

    async def delete_product(self, sku: str) -> None:
        await self.gateway.execute(docs.DELETE_PRODUCT, {'sku': sku})

    async def add_localizations(self, sku: str, localizations: List[Localization]) -> Optional[Product]:
        raw = await self._field(docs.ADD_LOCALIZATION, 'addLocalization',
                                sku=sku, localizations=[l.to_input() for l in localizations])
        return Product.model_validate(raw) if raw else None

    async def update_localizations(self, sku: str, localizations: List[Localization]) -> Optional[Product]:
        raw = await self._field(docs.UPDATE_LOCALIZATION, 'updateLocalization',
                                sku=sku, localizations=[l.to_input() for l in localizations])
        return Product.model_validate(raw) if raw else None

    async def remove_localization(self, sku: str, lang: str, country: str) -> Optional[Product]:
        raw = await self._field(docs.REMOVE_LOCALIZATION, 'removeLocalization', sku=sku, lang=lang, country=country)
        return Product.model_validate(raw) if raw else None

    # category mutations

    async def create_category(self, category: Category) -> Optional[Category]:
        raw = await self._field(docs.CREATE_CATEGORY, 'createCategory', input=category.to_input())
        return Category.model_validate(raw) if raw else None

    async def delete_category(self, category: str) -> None:
        await self.gateway.execute(docs.DELETE_CATEGORY, {'category': category})

    async def upsert_category_translation(self, category: str, lang: str, text: str) -> Optional[Category]:
        raw = await self._field(docs.UPSERT_CATEGORY_TRANSLATION, 'upsertCategoryTranslation',
                                input={'category': category, 'lang': lang, 'text': text})
        return Category.model_validate(raw) if raw else None

    async def remove_category_translation(self, category: str, lang: str) -> Optional[Category]:
        raw = await self._field(docs.REMOVE_CATEGORY_TRANSLATION, 'removeCategoryTranslation', category=category, lang=lang)
        return Category.model_validate(raw) if raw else None
