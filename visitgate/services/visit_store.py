import logging
from datetime import datetime
from enum import Enum
from typing import Any

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from visitgate.core.exceptions import StoreUnavailable
from visitgate.db.models import LogEntry, VisitRequest, VisitStatus
from visitgate.services.log_service import write_log_entry

logger = logging.getLogger(__name__)


class MarkUsedResult(str, Enum):
    ok = "ok"
    already_used = "already_used"
    not_found = "not_found"
    invalidated = "invalidated"
    not_approved = "not_approved"


class VisitRequestStore:
    """Visit-request reads and writes needed by QR scanning.

    Read and mark-used failures surface as StoreUnavailable so that an
    outage is never mistaken for a missing record.
    """

    def __init__(self, db: Session):
        self.db = db

    def find_visit_request_by_id(self, visit_id: str) -> VisitRequest | None:
        try:
            return self.db.get(VisitRequest, visit_id, populate_existing=True)
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.warning("visit_store.lookup failed visit_id=%s error=%s", visit_id, exc)
            raise StoreUnavailable() from exc

    def try_mark_used(self, visit_id: str, used_by: str, used_at: datetime) -> MarkUsedResult:
        # Conditional update: only one concurrent caller can flip qr_used, and
        # a revocation or status change committed since the lookup still wins.
        stmt = (
            update(VisitRequest)
            .where(
                VisitRequest.id == visit_id,
                VisitRequest.qr_used.is_(False),
                VisitRequest.qr_invalidated.is_(False),
                VisitRequest.status == VisitStatus.approved,
            )
            .values(qr_used=True, used_by=used_by, used_at=used_at, updated_at=used_at)
            .execution_options(synchronize_session=False)
        )
        try:
            result = self.db.execute(stmt)
            self.db.commit()
            if result.rowcount == 1:
                return MarkUsedResult.ok
            current = self.db.get(VisitRequest, visit_id, populate_existing=True)
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.warning("visit_store.mark_used failed visit_id=%s error=%s", visit_id, exc)
            raise StoreUnavailable() from exc
        if current is None:
            return MarkUsedResult.not_found
        if current.qr_invalidated:
            return MarkUsedResult.invalidated
        if VisitStatus(current.status) != VisitStatus.approved:
            return MarkUsedResult.not_approved
        return MarkUsedResult.already_used

    def append_log_entry(self, **fields: Any) -> LogEntry:
        try:
            return write_log_entry(self.db, **fields)
        except SQLAlchemyError:
            self.db.rollback()
            raise
