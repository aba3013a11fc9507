from typing import List

from fastapi import Depends, Request

from catalog_admin.core.errors import Unauthenticated
from catalog_admin.services.dashboard import Dashboard
from catalog_admin.services.search import ListingView
from catalog_admin.services.tracking import Identity, Tracked, parse_identity

def get_session(request: Request) -> Dashboard:
    return request.app.state.dashboard

def require_login(dashboard: Dashboard = Depends(get_session)) -> Dashboard:
    if not dashboard.credentials.is_authenticated():
        raise Unauthenticated('NO_SESSION')
    return dashboard

def identity_param(identity: str) -> Identity:
    return parse_identity(identity)

def entry_out(dashboard: Dashboard, entry: Tracked) -> dict:
    return {
        'id': str(entry.identity),
        'status': dashboard.reconciler.status(entry),
        'record': entry.record.model_dump(by_alias=True, mode='json'),
    }

def listing_out(dashboard: Dashboard, view: ListingView, entries: List[Tracked]) -> dict:
    flt = view.filter
    return {
        'items': [entry_out(dashboard, e) for e in entries],
        'filter': f'{flt.directive}:{flt.argument}' if flt else None,
        'hasMore': view.has_more,
        'loading': view.loading,
    }
