from typing import Optional
from fastapi import APIRouter, Depends
from catalog_admin.api.deps import entry_out, identity_param, listing_out, require_login
from catalog_admin.schemas import FieldEdit, FilterPayload, LocalizationCreate
from catalog_admin.services.dashboard import Dashboard
from catalog_admin.services.tracking import Identity

router = APIRouter()

# listing

@router.get('/')
async def list_products(dashboard: Dashboard = Depends(require_login)):
    view = dashboard.products
    return listing_out(dashboard, view, view.items())

@router.get('/search')
async def search_products(q: Optional[str] = None, page_token: Optional[str] = None,
                          dashboard: Dashboard = Depends(require_login)):
    page = await dashboard.products.search(q, page_token)
    return {'items': [entry_out(dashboard, e) for e in page.items], 'nextToken': page.next_token}

@router.post('/filter')
async def apply_filter(payload: FilterPayload, dashboard: Dashboard = Depends(require_login)):
    view = dashboard.products
    return listing_out(dashboard, view, await view.apply_filter(payload.q))

@router.delete('/filter')
async def clear_filter(dashboard: Dashboard = Depends(require_login)):
    view = dashboard.products
    return listing_out(dashboard, view, await view.clear_filter())

@router.post('/more')
async def load_more(dashboard: Dashboard = Depends(require_login)):
    view = dashboard.products
    return listing_out(dashboard, view, await view.load_more())

# rows

@router.post('/', status_code=201)
async def add_product(dashboard: Dashboard = Depends(require_login)):
    identity = dashboard.reconciler.add_product()
    return entry_out(dashboard, dashboard.reconciler.products.get(identity))

@router.patch('/{identity}')
async def edit_product(payload: FieldEdit, identity: Identity = Depends(identity_param),
                       dashboard: Dashboard = Depends(require_login)):
    dashboard.reconciler.edit_product_field(identity, payload.field, payload.value)
    return entry_out(dashboard, dashboard.reconciler.products.get(identity))

@router.delete('/{identity}')
async def delete_product(identity: Identity = Depends(identity_param), dashboard: Dashboard = Depends(require_login)):
    rec = dashboard.reconciler
    if rec.products.get(identity).is_new:
        # never saved, just forget it
        rec.remove_new_product(identity)
        return {'id': str(identity), 'status': 'removed'}
    rec.mark_product_deleted(identity)
    return entry_out(dashboard, rec.products.get(identity))

@router.post('/{identity}/restore')
async def restore_product(identity: Identity = Depends(identity_param), dashboard: Dashboard = Depends(require_login)):
    dashboard.reconciler.mark_product_deleted(identity, deleted=False)
    return entry_out(dashboard, dashboard.reconciler.products.get(identity))

# localizations

@router.post('/{identity}/localizations', status_code=201)
async def add_localization(payload: LocalizationCreate, identity: Identity = Depends(identity_param),
                           dashboard: Dashboard = Depends(require_login)):
    dashboard.reconciler.add_localization(identity, **payload.model_dump())
    return entry_out(dashboard, dashboard.reconciler.products.get(identity))

@router.patch('/{identity}/localizations/{lang}/{country}')
async def edit_localization(lang: str, country: str, payload: FieldEdit, identity: Identity = Depends(identity_param),
                            dashboard: Dashboard = Depends(require_login)):
    dashboard.reconciler.edit_localization(identity, (lang, country), payload.field, payload.value)
    return entry_out(dashboard, dashboard.reconciler.products.get(identity))

@router.delete('/{identity}/localizations/{lang}/{country}')
async def remove_localization(lang: str, country: str, identity: Identity = Depends(identity_param),
                              dashboard: Dashboard = Depends(require_login)):
    dashboard.reconciler.remove_localization(identity, (lang, country))
    return entry_out(dashboard, dashboard.reconciler.products.get(identity))
