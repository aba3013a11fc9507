from typing import List, Optional

from catalog_admin.core.errors import Busy, NotFound
from catalog_admin.protocols import CatalogBackend
from catalog_admin.schemas import OrderDetails, OrderEvent

class EventLog:
    """Payment/order event log, paged, optionally narrowed to one order."""

    def __init__(self, backend: CatalogBackend, page_size: int = 25):
        self.backend = backend
        self.page_size = page_size
        self.events: List[OrderEvent] = []
        self.order_id: Optional[str] = None
        self.next_token: Optional[str] = None
        self.loading = False

    @property
    def has_more(self) -> bool:
        return self.next_token is not None

    async def load(self, order_id: Optional[str] = None) -> List[OrderEvent]:
        order_id = (order_id or '').strip() or None
        self._start_loading()
        try:
            page = await self.backend.get_order_events(self.page_size, None, order_id)
        finally:
            self.loading = False
        self.order_id = order_id
        self.events = list(page.items)
        self.next_token = page.next_token
        return self.events

    async def load_more(self) -> List[OrderEvent]:
        if self.next_token is None:
            return self.events
        self._start_loading()
        try:
            page = await self.backend.get_order_events(self.page_size, self.next_token, self.order_id)
        finally:
            self.loading = False
        self.events.extend(page.items)
        self.next_token = page.next_token
        return self.events

    async def order_details(self, order_id: str) -> OrderDetails:
        details = await self.backend.get_order_details(order_id)
        if details is None:
            raise NotFound(kind='order', order_id=order_id)
        return details

    def _start_loading(self) -> None:
        if self.loading:
            raise Busy('LOAD_IN_PROGRESS', scope='events')
        self.loading = True
