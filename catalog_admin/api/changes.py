from fastapi import APIRouter, Depends
from catalog_admin.api.deps import require_login
from catalog_admin.services.dashboard import Dashboard

router = APIRouter()

@router.get('/')
async def pending_changes(dashboard: Dashboard = Depends(require_login)):
    rec = dashboard.reconciler
    return {
        'hasChanges': rec.has_changes(),
        'saving': rec.saving,
        'stale': rec.stale,
        'violations': [v.as_dict() for v in rec.validate()],
    }

@router.post('/validate')
async def validate(dashboard: Dashboard = Depends(require_login)):
    violations = dashboard.reconciler.validate()
    return {'valid': not violations, 'violations': [v.as_dict() for v in violations]}

@router.post('/save')
async def save(dashboard: Dashboard = Depends(require_login)):
    result = await dashboard.save()
    return result.as_dict()

@router.post('/discard')
async def discard(dashboard: Dashboard = Depends(require_login)):
    dashboard.discard()
    return {'hasChanges': dashboard.reconciler.has_changes()}

@router.post('/reload')
async def reload(dashboard: Dashboard = Depends(require_login)):
    """Drop every local change and fetch page one again."""
    await dashboard.reload()
    return {'hasChanges': dashboard.reconciler.has_changes()}
