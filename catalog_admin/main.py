import logging
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, RedirectResponse
from prometheus_fastapi_instrumentator import Instrumentator
from catalog_admin.version import VERSION
from catalog_admin.core.config import settings
from catalog_admin.core.errors import (
    ApplicationError,
    Busy,
    CatalogError,
    DuplicateKey,
    DuplicateName,
    NotFound,
    TransportError,
    Unauthenticated,
    ValidationError,
)
from catalog_admin.api import auth, categories, changes, events, products
from catalog_admin.services.dashboard import build_dashboard

logging.basicConfig(level=settings.LOG_LEVEL, format='%(asctime)s %(levelname)s %(name)s: %(message)s')
logger = logging.getLogger(__name__)

# most specific first
ERROR_STATUS = (
    (DuplicateKey, 409),
    (DuplicateName, 409),
    (Busy, 409),
    (ValidationError, 422),
    (NotFound, 404),
    (ApplicationError, 400),
    (TransportError, 502),
)

def status_for(exc: CatalogError) -> int:
    for cls, status in ERROR_STATUS:
        if isinstance(exc, cls):
            return status
    return 500

instrumentator = Instrumentator()

app = FastAPI(title='Catalog Admin', version=VERSION)

instrumentator.instrument(app).expose(
    app,
    include_in_schema=False,
    endpoint="/metrics",
    should_gzip=True,
)

@app.exception_handler(CatalogError)
async def catalog_error(request: Request, exc: CatalogError):
    if isinstance(exc, Unauthenticated):
        return RedirectResponse(settings.LOGIN_URL, status_code=303)
    status = status_for(exc)
    if status >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    return JSONResponse(exc.as_dict(), status_code=status)

@app.get('/health')
def health(): return {'status':'ok'}

@app.get('/v1/_info')
def info(): return {'service':'catalog-admin','version':VERSION}

@app.on_event("startup")
async def startup_event():
    dashboard = build_dashboard(settings)
    app.state.dashboard = dashboard
    try:
        restored = await dashboard.start()
    except (TransportError, ApplicationError) as exc:
        # credentials stay; listings stay empty until POST /v1/changes/reload
        logger.warning("Initial load failed: %s", exc)
        return
    logger.info("Session restored" if restored else "No session to restore")

@app.on_event("shutdown")
async def shutdown_event():
    dashboard = getattr(app.state, 'dashboard', None)
    if dashboard is not None:
        await dashboard.aclose()

app.include_router(auth.router, tags=['auth'])
app.include_router(products.router,   prefix='/v1/products',   tags=['products'])
app.include_router(categories.router, prefix='/v1/categories', tags=['categories'])
app.include_router(changes.router,    prefix='/v1/changes',    tags=['changes'])
app.include_router(events.router,     prefix='/v1/events',     tags=['events'])
