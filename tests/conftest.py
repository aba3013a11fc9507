"""
Shared fixtures: an in-memory CatalogBackend with a call log and failure
injection, plus token helpers.
"""

import time
from decimal import Decimal
from typing import Dict, List, Optional

import httpx
import jwt
import pytest

from catalog_admin.core.errors import ApplicationError
from catalog_admin.schemas import (
    Category,
    CategoryLabel,
    Localization,
    OrderDetails,
    OrderEvent,
    Page,
    Product,
    Translation,
)
from catalog_admin.services.events import EventLog
from catalog_admin.services.reconciliation import Reconciler


def make_product(sku: str, category: Optional[str] = "Tools", name: Optional[str] = None, **kw) -> Product:
    loc = Localization(lang="en", country="us", product_name=name or f"Product {sku}", price=Decimal("9.99"))
    return Product(sku=sku, category=category, quantity_in_stock=kw.pop("quantity_in_stock", 10), localizations=[loc], **kw)


def make_token(exp_offset: Optional[float] = 3600, sub: str = "operator@example.com") -> str:
    claims = {"sub": sub}
    if exp_offset is not None:
        claims["exp"] = int(time.time() + exp_offset)
    return jwt.encode(claims, "test-secret", algorithm="HS256")


class IdentityStub:
    """MockTransport handler playing the identity backend."""

    def __init__(self):
        self.requests = []
        self.login_status = 200
        self.refresh_status = 200
        self.issue = make_token(sub="refreshed@example.com")

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        if path == "/auth/login":
            if self.login_status != 200:
                return httpx.Response(self.login_status, json={"detail": "Invalid credentials"})
            return httpx.Response(200, json={"access_token": self.issue, "refresh_token": "r-1"})
        if path == "/auth/refresh":
            if self.refresh_status != 200:
                return httpx.Response(self.refresh_status, json={"detail": "expired"})
            return httpx.Response(200, json={"access_token": self.issue, "refresh_token": "r-2"})
        if path == "/auth/logout":
            return httpx.Response(204)
        return httpx.Response(404)

    def paths(self):
        return [r.url.path for r in self.requests]


class FakeBackend:
    """
    In-memory catalog. Mutations are recorded in ``calls`` as
    ``(method, *args)``; queries in ``queries``. ``fail(method)`` makes the
    next and every later call of that method raise.
    """

    def __init__(self, products=(), categories=(), events=(), orders=None):
        self.products: Dict[str, Product] = {p.sku: self._clean(p) for p in products}
        self.categories: Dict[str, Category] = {c.category: self._clean(c) for c in categories}
        self.events: List[OrderEvent] = list(events)
        self.orders: Dict[str, OrderDetails] = dict(orders or {})
        self.calls: List[tuple] = []
        self.queries: List[str] = []
        self.failures: Dict[str, Exception] = {}

    def fail(self, method: str, exc: Optional[Exception] = None) -> None:
        self.failures[method] = exc or ApplicationError(f"{method} rejected")

    @staticmethod
    def _clean(record):
        # drops pending_id, like a round trip through the server would
        return type(record).model_validate(record.model_dump())

    @staticmethod
    def _page(items, limit: int, token: Optional[str]) -> Page:
        start = int(token or 0)
        end = start + limit
        return Page(
            items=[i.model_copy(deep=True) for i in items[start:end]],
            next_token=str(end) if end < len(items) else None,
        )

    def _query(self, method: str) -> None:
        self.queries.append(method)
        exc = self.failures.get(method)
        if exc is not None:
            raise exc

    def _mutate(self, method: str, *args) -> None:
        self.calls.append((method, *args))
        exc = self.failures.get(method)
        if exc is not None:
            raise exc

    # products

    async def list_products(self, limit, next_token=None):
        self._query("list_products")
        return self._page(list(self.products.values()), limit, next_token)

    async def list_products_by_localization(self, lang, country, limit, next_token=None):
        self._query("list_products_by_localization")
        hits = [p for p in self.products.values() if any(l.key == (lang, country) for l in p.localizations)]
        return self._page(hits, limit, next_token)

    async def get_products_by_sku(self, skus):
        self._query("get_products_by_sku")
        return [self.products[s].model_copy(deep=True) for s in skus if s in self.products]

    async def get_products_by_category(self, category, limit, next_token=None):
        self._query("get_products_by_category")
        hits = [p for p in self.products.values() if p.category == category]
        return self._page(hits, limit, next_token)

    async def search_products(self, search, limit, next_token=None):
        self._query("search_products")
        needle = search.lower()
        hits = [
            p for p in self.products.values()
            if needle in p.sku.lower() or any(needle in l.product_name.lower() for l in p.localizations)
        ]
        return self._page(hits, limit, next_token)

    # categories

    async def list_categories(self, limit, next_token=None):
        self._query("list_categories")
        return self._page(list(self.categories.values()), limit, next_token)

    async def list_categories_by_language(self, lang, limit, next_token=None):
        self._query("list_categories_by_language")
        labels = [
            CategoryLabel(category=c.category, text=next((t.text for t in c.translations if t.lang == lang), None))
            for c in self.categories.values()
        ]
        return self._page(labels, limit, next_token)

    async def search_categories(self, search, limit, next_token=None):
        self._query("search_categories")
        hits = [c for c in self.categories.values() if search.lower() in c.category.lower()]
        return self._page(hits, limit, next_token)

    async def get_category(self, category):
        self._query("get_category")
        found = self.categories.get(category)
        return found.model_copy(deep=True) if found else None

    # order log

    async def get_order_events(self, limit, next_token=None, order_id=None):
        self._query("get_order_events")
        hits = [e for e in self.events if order_id is None or e.order_id == order_id]
        return self._page(hits, limit, next_token)

    async def get_order_details(self, order_id):
        self._query("get_order_details")
        return self.orders.get(order_id)

    # product mutations

    async def create_product(self, product):
        self._mutate("create_product", product.sku)
        self.products[product.sku] = self._clean(product)
        return self.products[product.sku]

    async def update_product(self, product):
        self._mutate("update_product", product.sku)
        stored = self.products[product.sku]
        self.products[product.sku] = Product.model_validate(
            {**product.scalars(), "localizations": [l.model_dump() for l in stored.localizations]}
        )
        return self.products[product.sku]

    async def delete_product(self, sku):
        self._mutate("delete_product", sku)
        self.products.pop(sku, None)

    async def add_localizations(self, sku, localizations):
        self._mutate("add_localizations", sku, [l.key for l in localizations])
        self.products[sku].localizations.extend(self._clean(l) for l in localizations)
        return self.products[sku]

    async def update_localizations(self, sku, localizations):
        self._mutate("update_localizations", sku, [l.key for l in localizations])
        by_key = {l.key: self._clean(l) for l in localizations}
        product = self.products[sku]
        product.localizations = [by_key.get(l.key, l) for l in product.localizations]
        return product

    async def remove_localization(self, sku, lang, country):
        self._mutate("remove_localization", sku, (lang, country))
        product = self.products[sku]
        product.localizations = [l for l in product.localizations if l.key != (lang, country)]
        return product

    # category mutations

    async def create_category(self, category):
        self._mutate("create_category", category.category)
        self.categories[category.category] = self._clean(category)
        return self.categories[category.category]

    async def delete_category(self, category):
        self._mutate("delete_category", category)
        self.categories.pop(category, None)

    async def upsert_category_translation(self, category, lang, text):
        self._mutate("upsert_category_translation", category, lang, text)
        stored = self.categories[category]
        stored.translations = [t for t in stored.translations if t.lang != lang] + [Translation(lang=lang, text=text)]
        return stored

    async def remove_category_translation(self, category, lang):
        self._mutate("remove_category_translation", category, lang)
        stored = self.categories[category]
        stored.translations = [t for t in stored.translations if t.lang != lang]
        return stored


# ═══════════════════════════════════════════════════════════════════
# FIXTURES
# ═══════════════════════════════════════════════════════════════════


@pytest.fixture
def backend():
    return FakeBackend(
        products=[make_product("A1", "Tools"), make_product("B2", "Garden")],
        categories=[
            Category(category="Tools"),
            Category(category="Garden", translations=[Translation(lang="fr", text="Jardin")]),
            Category(category="Empty"),
        ],
        events=[
            OrderEvent(event_id="e1", order_id="o1", log_type="PAYMENT", message="authorized"),
            OrderEvent(event_id="e2", order_id="o2", log_type="PAYMENT", message="captured"),
            OrderEvent(event_id="e3", order_id="o1", log_type="REFUND", message="refunded"),
        ],
        orders={"o1": OrderDetails(order_id="o1", amount=Decimal("19.98"), currency="USD")},
    )


@pytest.fixture
def reconciler(backend):
    return Reconciler(backend, page_size=20, category_page_size=2)


@pytest.fixture
def event_log(backend):
    return EventLog(backend, page_size=2)
