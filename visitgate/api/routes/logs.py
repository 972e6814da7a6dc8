from datetime import date

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from visitgate.db.session import get_db
from visitgate.services.log_service import list_logs, serialize_log_entry

router = APIRouter()


@router.get("")
def logs(
    limit: int = Query(50, ge=1, le=500),
    officer: str | None = None,
    start: date | None = None,
    end: date | None = None,
    db: Session = Depends(get_db),
):
    rows = list_logs(db, limit=limit, officer_name=officer, start=start, end=end)
    return {"data": [serialize_log_entry(row) for row in rows]}
