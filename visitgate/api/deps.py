from datetime import datetime

from fastapi import Depends
from sqlalchemy.orm import Session

from visitgate.core.config import get_settings
from visitgate.db.session import get_db
from visitgate.services.qr_validation_service import WindowPolicy
from visitgate.services.visit_store import VisitRequestStore


def get_clock():
    return datetime.now


def get_now(clock=Depends(get_clock)) -> datetime:
    # One reading per request; every check in a scan sees the same instant.
    return clock()


def get_window_policy() -> WindowPolicy:
    return WindowPolicy.from_settings(get_settings())


def get_visit_store(db: Session = Depends(get_db)) -> VisitRequestStore:
    return VisitRequestStore(db)
