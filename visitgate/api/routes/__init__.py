from fastapi import APIRouter

from visitgate.api.routes import health, logs, qr, visit_requests

api_router = APIRouter()
api_router.include_router(health.router, tags=["health"])
api_router.include_router(qr.router, prefix="/qr", tags=["qr"])
api_router.include_router(visit_requests.router, prefix="/visit-requests", tags=["visit-requests"])
api_router.include_router(logs.router, prefix="/logs", tags=["logs"])
