from fastapi import APIRouter
from gombesafe.api.routes import health, incidents, security_areas, stats, realtime

api_router = APIRouter()

api_router.include_router(health.router)
api_router.include_router(incidents.router)
api_router.include_router(security_areas.router)
api_router.include_router(stats.router)
api_router.include_router(realtime.router)
