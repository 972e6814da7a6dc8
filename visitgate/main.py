import logging
from datetime import date

import socketio
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from visitgate.api.routes import api_router
from visitgate.core.config import get_settings
from visitgate.core.exceptions import register_exception_handlers
from visitgate.core.logging import setup_logging
from visitgate.db.base import Base
from visitgate.db.models import VisitRequest, VisitStatus
from visitgate.db.session import SessionLocal, engine
from visitgate.middleware.request_context import RequestContextMiddleware
from visitgate.socket.server import sio

settings = get_settings()
setup_logging(settings.log_level)
logger = logging.getLogger(__name__)

fastapi_app = FastAPI(title=settings.APP_NAME, debug=settings.DEBUG)
fastapi_app.include_router(api_router, prefix=settings.API_V1_PREFIX)
fastapi_app.add_middleware(RequestContextMiddleware)
fastapi_app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
register_exception_handlers(fastapi_app)


def _seed_dev_data(db: Session):
    if db.query(VisitRequest).count() > 0:
        return

    today = date.today().isoformat()
    rows = [
        VisitRequest(
            id="demo-visit-approved",
            client_name="Ana Cruz",
            inmate_name="Jose Reyes",
            visit_date=today,
            visit_time="10:00",
            purpose="Family visit",
            relationship="Sibling",
            status=VisitStatus.approved,
            reviewed_by="Demo Officer",
        ),
        VisitRequest(
            id="demo-visit-pending",
            client_name="Maria Santos",
            inmate_name="Pedro Santos",
            visit_date=today,
            visit_time="14:30",
            purpose="Family visit",
            relationship="Spouse",
            status=VisitStatus.pending,
        ),
    ]
    try:
        db.add_all(rows)
        db.commit()
    except IntegrityError:
        # Another worker already inserted seed rows.
        db.rollback()


@fastapi_app.on_event("startup")
async def on_startup():
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        if settings.ENVIRONMENT.lower() == "development":
            _seed_dev_data(db)
    finally:
        db.close()
    logger.info("%s started environment=%s", settings.APP_NAME, settings.ENVIRONMENT)


app = socketio.ASGIApp(
    sio,
    other_asgi_app=fastapi_app,
    socketio_path=settings.SOCKET_PATH.lstrip("/"),
)
