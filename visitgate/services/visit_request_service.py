import logging
from datetime import datetime

from sqlalchemy.orm import Session

from visitgate.core.config import Settings
from visitgate.core.exceptions import AppException, ConflictError, NotFoundError
from visitgate.db.models import VisitRequest, VisitStatus
from visitgate.schemas.visit_request import VisitRequestCreate
from visitgate.services.log_service import write_log_entry
from visitgate.services.qr_validation_service import WindowPolicy, parse_slot

logger = logging.getLogger(__name__)


def normalize_status(value: str | VisitStatus) -> VisitStatus:
    raw = value.value if isinstance(value, VisitStatus) else (value or "")
    normalized = raw.strip().lower()
    if normalized == "reschedule":
        normalized = "rescheduled"
    try:
        return VisitStatus(normalized)
    except ValueError:
        raise AppException(f"Unknown visit status: {value}", status_code=422)


def create_visit_request(db: Session, payload: VisitRequestCreate) -> VisitRequest:
    try:
        parse_slot(payload.visitDate, payload.visitTime)
    except ValueError as exc:
        raise AppException(str(exc), status_code=422)

    row = VisitRequest(
        client_id=payload.clientId,
        client_name=payload.clientName.strip(),
        client_email=str(payload.clientEmail) if payload.clientEmail else None,
        inmate_name=payload.inmateName.strip(),
        visit_date=payload.visitDate,
        visit_time=payload.visitTime,
        purpose=payload.purpose,
        relationship=payload.relationship,
        facility=payload.facility,
        status=VisitStatus.pending,
    )
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


def get_visit_request(db: Session, request_id: str) -> VisitRequest:
    row = db.query(VisitRequest).filter(VisitRequest.id == request_id).first()
    if not row:
        raise NotFoundError("Visit request not found")
    return row


def list_visit_requests(db: Session, status: str | None = None, limit: int = 200) -> list[VisitRequest]:
    query = db.query(VisitRequest)
    if status:
        query = query.filter(VisitRequest.status == normalize_status(status))
    return query.order_by(VisitRequest.created_at.desc()).limit(limit).all()


def _log_quietly(db: Session, **fields) -> None:
    try:
        write_log_entry(db, **fields)
    except Exception:
        db.rollback()
        logger.exception("visit_request log append failed action=%s", fields.get("action"))


def update_visit_status(
    db: Session,
    request_id: str,
    status: str,
    reviewed_by: str | None = None,
    reason: str | None = None,
) -> VisitRequest:
    row = get_visit_request(db, request_id)
    previous = VisitStatus(row.status)
    new_status = normalize_status(status)
    officer_name = reviewed_by or "System Admin"

    row.status = new_status
    row.reviewed_by = officer_name
    db.commit()
    db.refresh(row)

    if new_status != previous:
        logger.info(
            "visit_request.status changed id=%s from=%s to=%s by=%s",
            row.id,
            previous.value,
            new_status.value,
            officer_name,
        )
        meta = {"previousStatus": previous.value, "relationship": row.relationship}
        if reason:
            meta["actionReason"] = reason
        _log_quietly(
            db,
            officer_name=officer_name,
            action=new_status.value,
            client_name=row.client_name,
            inmate_name=row.inmate_name,
            visit_date=row.visit_date,
            visit_time=row.visit_time,
            reason=reason or row.purpose or "Family visit",
            visit_request_id=row.id,
            meta=meta,
        )
    return row


def issue_qr_code(db: Session, request_id: str, settings: Settings, now: datetime) -> dict:
    """Stamp the approval window on a request and return the payload to encode."""
    row = get_visit_request(db, request_id)
    if VisitStatus(row.status) != VisitStatus.approved:
        raise ConflictError(f"Visit request is {VisitStatus(row.status).value}; only approved visits get a QR code")

    _, expiration = WindowPolicy.from_settings(settings).window(parse_slot(row.visit_date, row.visit_time))
    row.approved_at = now
    row.expires_at = expiration
    row.qr_used = False
    row.used_by = None
    row.used_at = None
    row.qr_invalidated = False
    row.invalidated_at = None
    row.invalidation_reason = None
    db.commit()
    db.refresh(row)

    return {
        "visitId": row.id,
        "clientId": row.client_id,
        "clientName": row.client_name,
        "clientEmail": row.client_email,
        "inmateName": row.inmate_name,
        "visitDate": row.visit_date,
        "visitTime": row.visit_time,
        "purpose": row.purpose,
        "relationship": row.relationship,
        "approvedAt": row.approved_at.isoformat(),
        "expiresAt": row.expires_at.isoformat(),
        "status": VisitStatus.approved.value,
        "facility": row.facility or settings.FACILITY_NAME,
        "qrVersion": settings.QR_VERSION,
    }


def invalidate_qr_code(
    db: Session,
    request_id: str,
    reason: str,
    officer_name: str,
    now: datetime,
) -> VisitRequest:
    row = get_visit_request(db, request_id)
    row.qr_invalidated = True
    row.invalidated_at = now
    row.invalidation_reason = reason or None
    db.commit()
    db.refresh(row)

    _log_quietly(
        db,
        officer_name=officer_name,
        action="qr_invalidated",
        client_name=row.client_name,
        inmate_name=row.inmate_name,
        visit_date=row.visit_date,
        visit_time=row.visit_time,
        reason=reason or "QR code revoked",
        visit_request_id=row.id,
        created_at=now,
    )
    return row


def serialize_visit_request(row: VisitRequest) -> dict:
    return {
        "id": row.id,
        "clientName": row.client_name,
        "inmateName": row.inmate_name,
        "visitDate": row.visit_date,
        "visitTime": row.visit_time,
        "status": VisitStatus(row.status).value,
        "purpose": row.purpose,
        "relationship": row.relationship,
        "facility": row.facility,
        "clientEmail": row.client_email,
        "reviewedBy": row.reviewed_by,
        "qrUsed": row.qr_used,
        "qrInvalidated": row.qr_invalidated,
        "usedBy": row.used_by,
        "usedAt": row.used_at.isoformat() if row.used_at else None,
        "approvedAt": row.approved_at.isoformat() if row.approved_at else None,
        "expiresAt": row.expires_at.isoformat() if row.expires_at else None,
        "createdAt": row.created_at.isoformat() if row.created_at else None,
    }
