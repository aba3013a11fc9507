from fastapi import APIRouter, Depends
from catalog_admin.api.deps import get_session
from catalog_admin.schemas import LoginPayload
from catalog_admin.services.dashboard import Dashboard

router = APIRouter()

@router.get('/login')
async def login_state(dashboard: Dashboard = Depends(get_session)):
    return {'authenticated': dashboard.credentials.is_authenticated()}

@router.post('/login')
async def login(payload: LoginPayload, dashboard: Dashboard = Depends(get_session)):
    await dashboard.login(payload.username, payload.password)
    return {'authenticated': True}

@router.post('/logout')
async def logout(dashboard: Dashboard = Depends(get_session)):
    await dashboard.logout()
    return {'authenticated': False}
