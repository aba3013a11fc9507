"""
Listings and search.

A ``ListingView`` shows either the unfiltered working set or the results
of one filtered query. Free text may start with a directive:

    sku:A1, B2        products with exactly these SKUs
    category:Tools    products in a category / the category itself
    locale:en-us      products that have this localization
    anything else     full-text search

Results are always merged into the tracked set: a record that is already
tracked is shown as its working copy, so a search never hides unsaved
edits.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional

from catalog_admin.core.errors import Busy
from catalog_admin.schemas import Page
from catalog_admin.services.reconciliation import Reconciler
from catalog_admin.services.tracking import Identity, Tracked, TrackedSet

logger = logging.getLogger(__name__)

PRODUCTS = "products"
CATEGORIES = "categories"

DIRECTIVES = {
    PRODUCTS: ("sku", "category", "locale"),
    CATEGORIES: ("category",),
}


@dataclass(frozen=True)
class Filter:
    directive: str
    argument: str


@dataclass
class ResultPage:
    items: List[Tracked] = field(default_factory=list)
    next_token: Optional[str] = None


def parse_query(scope: str, text: Optional[str]) -> Optional[Filter]:
    """Blank text means no filter; an unknown prefix is plain text."""
    text = (text or "").strip()
    if not text:
        return None
    head, sep, rest = text.partition(":")
    directive = head.strip().lower()
    if sep and directive in DIRECTIVES[scope] and rest.strip():
        return Filter(directive, rest.strip())
    return Filter("text", text)


class ListingView:
    def __init__(self, reconciler: Reconciler, scope: str):
        if scope not in DIRECTIVES:
            raise ValueError(f"unknown scope {scope!r}")
        self.reconciler = reconciler
        self.backend = reconciler.backend
        self.scope = scope
        self.filter: Optional[Filter] = None
        self.next_token: Optional[str] = None
        self.rows: List[Identity] = []
        self.loading = False

    @property
    def tracked(self) -> TrackedSet:
        return self.reconciler.products if self.scope == PRODUCTS else self.reconciler.categories

    @property
    def page_size(self) -> int:
        return self.reconciler.page_size if self.scope == PRODUCTS else self.reconciler.category_page_size

    @property
    def has_more(self) -> bool:
        if self.filter is None:
            return self.scope == PRODUCTS and self.reconciler.product_next_token is not None
        return self.next_token is not None

    def items(self) -> List[Tracked]:
        if self.filter is None:
            return self.tracked.entries()
        found = (self.tracked.find(identity) for identity in self.rows)
        return [entry for entry in found if entry is not None]

    # ── queries ──

    async def search(self, query: Optional[str], page_token: Optional[str] = None) -> ResultPage:
        """Run one page of a query and merge it into the tracked set."""
        page = await self._fetch(parse_query(self.scope, query), page_token)
        return ResultPage(items=self.tracked.adopt(page.items), next_token=page.next_token)

    async def apply_filter(self, query: Optional[str]) -> List[Tracked]:
        flt = parse_query(self.scope, query)
        if flt is None:
            return await self.clear_filter()
        await self._run_first_page(flt)
        return self.items()

    async def clear_filter(self) -> List[Tracked]:
        self._start_loading()
        try:
            self.filter = None
            self.next_token = None
            self.rows = []
            if self.scope == PRODUCTS:
                # page one again, not the last unfiltered continuation token
                await self.reconciler.restart_products()
        finally:
            self.loading = False
        return self.items()

    async def load_more(self) -> List[Tracked]:
        self._start_loading()
        try:
            if self.filter is None:
                if self.scope == PRODUCTS:
                    await self.reconciler.load_more_products()
            elif self.next_token is not None:
                page = await self._fetch(self.filter, self.next_token)
                self.next_token = page.next_token
                for entry in self.tracked.adopt(page.items):
                    if entry.identity not in self.rows:
                        self.rows.append(entry.identity)
        finally:
            self.loading = False
        return self.items()

    async def refresh(self) -> List[Tracked]:
        """Re-run page one of the active filter, e.g. after a reload."""
        if self.filter is not None:
            await self._run_first_page(self.filter)
        return self.items()

    def reset(self) -> None:
        self.filter = None
        self.next_token = None
        self.rows = []

    async def _run_first_page(self, flt: Filter) -> None:
        self._start_loading()
        try:
            page = await self._fetch(flt, None)
            self.filter = flt
            self.next_token = page.next_token
            self.rows = [entry.identity for entry in self.tracked.adopt(page.items)]
        finally:
            self.loading = False
        logger.debug("%s filter %s:%s -> %d rows", self.scope, flt.directive, flt.argument, len(self.rows))

    def _start_loading(self) -> None:
        if self.loading:
            raise Busy("LOAD_IN_PROGRESS", scope=self.scope)
        self.loading = True

    async def _fetch(self, flt: Optional[Filter], token: Optional[str]) -> Page:
        api = self.backend
        limit = self.page_size
        if self.scope == PRODUCTS:
            if flt is None:
                return await api.list_products(limit, token)
            if flt.directive == "sku":
                skus = [s.strip() for s in flt.argument.split(",") if s.strip()]
                return Page(items=await api.get_products_by_sku(skus))
            if flt.directive == "category":
                return await api.get_products_by_category(flt.argument, limit, token)
            if flt.directive == "locale":
                lang, _, country = flt.argument.replace("_", "-").partition("-")
                return await api.list_products_by_localization(lang.strip().lower(), country.strip().lower(), limit, token)
            return await api.search_products(flt.argument, limit, token)

        if flt is None:
            return await api.list_categories(limit, token)
        if flt.directive == "category":
            category = await api.get_category(flt.argument)
            return Page(items=[category] if category else [])
        return await api.search_categories(flt.argument, limit, token)
