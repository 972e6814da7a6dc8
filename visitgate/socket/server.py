import logging

import socketio

from visitgate.core.config import get_settings

settings = get_settings()
logger = logging.getLogger(__name__)

sio = socketio.AsyncServer(
    async_mode="asgi",
    cors_allowed_origins="*" if settings.DEBUG else settings.cors_origins,
    logger=False,
    engineio_logger=False,
)


@sio.on("connect", namespace=settings.DASHBOARD_NAMESPACE)
async def _dashboard_connect(sid, environ, auth=None):
    logger.debug("dashboard client connected sid=%s", sid)


async def publish_scan_activity(activity: dict) -> None:
    """Push a scan result to officer dashboards. Never raises."""
    try:
        await sio.emit(
            "dashboard.patch",
            {"data": {"activity": [activity]}},
            namespace=settings.DASHBOARD_NAMESPACE,
        )
    except Exception:
        logger.exception("dashboard.patch emit failed activity_id=%s", activity.get("id"))
