from typing import Optional
from fastapi import APIRouter, Depends
from catalog_admin.api.deps import require_login
from catalog_admin.services.dashboard import Dashboard
from catalog_admin.services.events import EventLog

router = APIRouter()

def events_out(log: EventLog) -> dict:
    return {
        'items': [e.model_dump(by_alias=True, mode='json') for e in log.events],
        'orderId': log.order_id,
        'hasMore': log.has_more,
    }

@router.get('/')
async def list_events(order_id: Optional[str] = None, dashboard: Dashboard = Depends(require_login)):
    await dashboard.events.load(order_id)
    return events_out(dashboard.events)

@router.post('/more')
async def more_events(dashboard: Dashboard = Depends(require_login)):
    await dashboard.events.load_more()
    return events_out(dashboard.events)

@router.get('/orders/{order_id}')
async def order_details(order_id: str, dashboard: Dashboard = Depends(require_login)):
    details = await dashboard.events.order_details(order_id)
    return details.model_dump(by_alias=True, mode='json')
