import logging
from typing import Optional

import httpx

from catalog_admin.core.auth import CredentialProvider
from catalog_admin.core.config import Settings
from catalog_admin.gateway.catalog import GraphQLCatalogBackend
from catalog_admin.gateway.client import GatewayClient
from catalog_admin.results import SaveResult
from catalog_admin.services.events import EventLog
from catalog_admin.services.reconciliation import Reconciler
from catalog_admin.services.search import CATEGORIES, PRODUCTS, ListingView
from catalog_admin.store.token_store import get_token_store

logger = logging.getLogger(__name__)


class Dashboard:
    """
    One operator's session: credentials, the editable working set, the
    two listings and the order event log.
    """

    def __init__(
        self,
        credentials: CredentialProvider,
        reconciler: Reconciler,
        events: EventLog,
        http: Optional[httpx.AsyncClient] = None,
    ):
        self.credentials = credentials
        self.reconciler = reconciler
        self.events = events
        self.products = ListingView(reconciler, PRODUCTS)
        self.categories = ListingView(reconciler, CATEGORIES)
        self.http = http

    def view(self, scope: str) -> ListingView:
        return self.products if scope == PRODUCTS else self.categories

    async def start(self) -> bool:
        """Resume a persisted session and load page one when it worked."""
        restored = await self.credentials.restore()
        if restored:
            await self.reconciler.load()
        return restored

    async def login(self, username: str, password: str) -> None:
        await self.credentials.login(username, password)
        await self.reconciler.load()

    async def logout(self) -> None:
        await self.credentials.logout()
        self._reset()

    async def end_session(self) -> None:
        """Called by the gateway once a call can no longer be authenticated."""
        logger.warning("Session is no longer authenticated, logging out")
        await self.logout()

    async def save(self) -> SaveResult:
        result = await self.reconciler.save()
        if result.calls and not self.reconciler.stale:
            # the reload replaced every tracked entry, re-run active filters on top of it
            for view in (self.products, self.categories):
                await view.refresh()
        return result

    def discard(self) -> None:
        self.reconciler.revert()

    async def reload(self) -> None:
        await self.reconciler.load()
        for view in (self.products, self.categories):
            await view.refresh()

    async def aclose(self) -> None:
        await self.credentials.store.aclose()
        if self.http is not None:
            await self.http.aclose()

    def _reset(self) -> None:
        self.reconciler.reset()
        self.products.reset()
        self.categories.reset()
        self.events.events = []
        self.events.next_token = None
        self.events.order_id = None


def build_dashboard(settings: Settings, http: Optional[httpx.AsyncClient] = None) -> Dashboard:
    http = http or httpx.AsyncClient(timeout=httpx.Timeout(settings.GATEWAY_TIMEOUT_SECONDS))
    credentials = CredentialProvider(
        get_token_store(settings.TOKEN_STORE_URL, settings.SESSION_KEY),
        http,
        settings.IDENTITY_BASE,
        leeway_seconds=settings.TOKEN_REFRESH_LEEWAY_SECONDS,
    )
    gateway = GatewayClient(settings.GRAPHQL_ENDPOINT, credentials, http)
    backend = GraphQLCatalogBackend(gateway)
    reconciler = Reconciler(
        backend,
        page_size=settings.PAGE_SIZE,
        category_page_size=settings.CATEGORY_PAGE_SIZE,
        default_lang=settings.DEFAULT_LANG,
        default_country=settings.DEFAULT_COUNTRY,
        default_currency=settings.DEFAULT_CURRENCY,
    )
    dashboard = Dashboard(credentials, reconciler, EventLog(backend, settings.EVENTS_PAGE_SIZE), http=http)
    gateway.on_unauthenticated = dashboard.end_session
    return dashboard
