from typing import Optional
from fastapi import APIRouter, Depends
from catalog_admin.api.deps import entry_out, identity_param, listing_out, require_login
from catalog_admin.schemas import CategoryCreate, FilterPayload, TranslationText, TranslationWrite
from catalog_admin.services.dashboard import Dashboard
from catalog_admin.services.tracking import Identity

router = APIRouter()

@router.get('/')
async def list_categories(dashboard: Dashboard = Depends(require_login)):
    view = dashboard.categories
    return listing_out(dashboard, view, view.items())

@router.get('/search')
async def search_categories(q: Optional[str] = None, page_token: Optional[str] = None,
                            dashboard: Dashboard = Depends(require_login)):
    page = await dashboard.categories.search(q, page_token)
    return {'items': [entry_out(dashboard, e) for e in page.items], 'nextToken': page.next_token}

@router.get('/labels')
async def category_labels(lang: Optional[str] = None, page_token: Optional[str] = None,
                          dashboard: Dashboard = Depends(require_login)):
    page = await dashboard.reconciler.category_labels(lang, page_token)
    return page.model_dump(by_alias=True, mode='json')

@router.post('/filter')
async def apply_filter(payload: FilterPayload, dashboard: Dashboard = Depends(require_login)):
    view = dashboard.categories
    return listing_out(dashboard, view, await view.apply_filter(payload.q))

@router.delete('/filter')
async def clear_filter(dashboard: Dashboard = Depends(require_login)):
    view = dashboard.categories
    return listing_out(dashboard, view, await view.clear_filter())

@router.post('/more')
async def load_more(dashboard: Dashboard = Depends(require_login)):
    view = dashboard.categories
    return listing_out(dashboard, view, await view.load_more())

@router.post('/', status_code=201)
async def add_category(payload: CategoryCreate, dashboard: Dashboard = Depends(require_login)):
    identity = dashboard.reconciler.add_category(payload.name)
    return entry_out(dashboard, dashboard.reconciler.categories.get(identity))

@router.delete('/{identity}')
async def delete_category(identity: Identity = Depends(identity_param), dashboard: Dashboard = Depends(require_login)):
    dashboard.reconciler.mark_category_deleted(identity)
    return entry_out(dashboard, dashboard.reconciler.categories.get(identity))

@router.post('/{identity}/restore')
async def restore_category(identity: Identity = Depends(identity_param), dashboard: Dashboard = Depends(require_login)):
    dashboard.reconciler.mark_category_deleted(identity, deleted=False)
    return entry_out(dashboard, dashboard.reconciler.categories.get(identity))

@router.post('/{identity}/translations', status_code=201)
async def add_translation(payload: TranslationWrite, identity: Identity = Depends(identity_param),
                          dashboard: Dashboard = Depends(require_login)):
    dashboard.reconciler.add_translation(identity, payload.lang, payload.text)
    return entry_out(dashboard, dashboard.reconciler.categories.get(identity))

@router.put('/{identity}/translations/{lang}')
async def edit_translation(lang: str, payload: TranslationText, identity: Identity = Depends(identity_param),
                           dashboard: Dashboard = Depends(require_login)):
    dashboard.reconciler.edit_translation(identity, lang, payload.text)
    return entry_out(dashboard, dashboard.reconciler.categories.get(identity))

@router.delete('/{identity}/translations/{lang}')
async def remove_translation(lang: str, identity: Identity = Depends(identity_param),
                             dashboard: Dashboard = Depends(require_login)):
    dashboard.reconciler.remove_translation(identity, lang)
    return entry_out(dashboard, dashboard.reconciler.categories.get(identity))
