import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, APIRouter, Depends
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, RedirectResponse
from slowapi.middleware import SlowAPIMiddleware
from sqlalchemy.orm import Session

from app.config import settings
from app.database import get_db, init_db, check_db_connection
from app.models.all_models import local_now
from app.routes.auth.router import router as auth_router
from app.routes.users.router import router as users_router
from app.routes.cms.router import router as cms_router
from app.routes.services.router import router as services_router
from app.routes.contact.router import router as contact_router
from app.routes.radiologist_applications.router import router as applications_router
from app.routes.sales_leads.router import router as sales_leads_router
from app.routes.uploads.router import router as uploads_router
from app.routes.dashboard.router import router as dashboard_router
from app.utils.errors import register_exception_handlers
from app.utils.rate_limit import limiter

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    logger.info("%s %s started (%s)", settings.APP_NAME, settings.APP_VERSION, settings.ENVIRONMENT)
    yield

app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Marketing site, CMS and lead tracking backend for an AI teleradiology provider",
    docs_url="/api-docs",
    lifespan=lifespan,
)

@app.get("/", include_in_schema=False)
def read_root():
    return RedirectResponse(url="/api-docs")

@app.get("/health", tags=["health"])
def health_check(db: Session = Depends(get_db)):
    database_up = check_db_connection(db)
    body = {
        "status": "OK" if database_up else "ERROR",
        "timestamp": local_now(),
        "environment": settings.ENVIRONMENT,
        "version": settings.APP_VERSION,
        "database": "connected" if database_up else "disconnected",
    }
    if not database_up:
        return JSONResponse(status_code=503, content={**body, "timestamp": body["timestamp"].isoformat()})
    return body

API_ENDPOINTS = {
    "auth": "/api/auth",
    "users": "/api/users",
    "cms": "/api/cms",
    "services": "/api/services",
    "contact": "/api/contact",
    "radiologist_applications": "/api/radiologist-applications",
    "sales_leads": "/api/sales-leads",
    "uploads": "/api/uploads",
    "dashboard": "/api/dashboard",
}

api_router = APIRouter(prefix="/api")

@api_router.get("", tags=["health"])
def api_info():
    return {
        "name": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "documentation": "/api-docs",
        "endpoints": API_ENDPOINTS,
    }

api_router.include_router(auth_router)
api_router.include_router(users_router)
api_router.include_router(cms_router)
api_router.include_router(services_router)
api_router.include_router(contact_router)
api_router.include_router(applications_router)
api_router.include_router(sales_leads_router)
api_router.include_router(uploads_router)
api_router.include_router(dashboard_router)

app.include_router(api_router)

app.state.limiter = limiter
app.add_middleware(SlowAPIMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)
