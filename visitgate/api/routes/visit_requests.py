from datetime import datetime

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from visitgate.api.deps import get_now
from visitgate.core.config import get_settings
from visitgate.db.session import get_db
from visitgate.schemas.qr import InvalidateRequest
from visitgate.schemas.visit_request import VisitRequestCreate, VisitStatusUpdate
from visitgate.services.visit_request_service import (
    create_visit_request,
    get_visit_request,
    invalidate_qr_code,
    issue_qr_code,
    list_visit_requests,
    serialize_visit_request,
    update_visit_status,
)

router = APIRouter()


@router.post("", status_code=status.HTTP_201_CREATED)
def create(payload: VisitRequestCreate, db: Session = Depends(get_db)):
    return {"data": serialize_visit_request(create_visit_request(db, payload))}


@router.get("")
def list_requests(status: str | None = None, db: Session = Depends(get_db)):
    return {"data": [serialize_visit_request(row) for row in list_visit_requests(db, status=status)]}


@router.get("/{request_id}")
def get_one(request_id: str, db: Session = Depends(get_db)):
    return {"data": serialize_visit_request(get_visit_request(db, request_id))}


@router.patch("/{request_id}/status")
def change_status(request_id: str, payload: VisitStatusUpdate, db: Session = Depends(get_db)):
    row = update_visit_status(
        db,
        request_id,
        payload.status,
        reviewed_by=payload.reviewedBy,
        reason=payload.reason,
    )
    return {"data": serialize_visit_request(row)}


@router.post("/{request_id}/qr")
def issue_qr(request_id: str, db: Session = Depends(get_db), now: datetime = Depends(get_now)):
    return {"data": issue_qr_code(db, request_id, get_settings(), now)}


@router.post("/{request_id}/qr/invalidate")
def invalidate_qr(
    request_id: str,
    payload: InvalidateRequest,
    db: Session = Depends(get_db),
    now: datetime = Depends(get_now),
):
    row = invalidate_qr_code(db, request_id, payload.reason, payload.officerName, now)
    return {"data": serialize_visit_request(row)}
