from fastapi import APIRouter

from visitgate.core.config import get_settings

router = APIRouter()
settings = get_settings()


@router.get("/health")
def health():
    return {
        "status": "ok",
        "environment": settings.ENVIRONMENT,
        "legacyQrEnabled": settings.LEGACY_QR_ENABLED,
    }
