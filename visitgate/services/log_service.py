import json
from datetime import date, datetime, time
from typing import Any

from sqlalchemy.orm import Session

from visitgate.db.models import LogEntry


def write_log_entry(
    db: Session,
    officer_name: str,
    action: str,
    client_name: str | None = None,
    inmate_name: str | None = None,
    visit_date: str | None = None,
    visit_time: str | None = None,
    reason: str | None = None,
    visit_request_id: str | None = None,
    meta: dict[str, Any] | None = None,
    created_at: datetime | None = None,
) -> LogEntry:
    row = LogEntry(
        officer_name=officer_name or "Unknown Officer",
        action=action,
        client_name=client_name,
        inmate_name=inmate_name,
        visit_date=visit_date,
        visit_time=visit_time,
        reason=reason,
        visit_request_id=visit_request_id,
        meta_json=json.dumps(meta or {}, ensure_ascii=True, default=str),
        created_at=created_at or datetime.now(),
    )
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


def list_logs(
    db: Session,
    limit: int = 50,
    officer_name: str | None = None,
    start: date | None = None,
    end: date | None = None,
) -> list[LogEntry]:
    query = db.query(LogEntry)
    if officer_name:
        query = query.filter(LogEntry.officer_name == officer_name)
    if start:
        query = query.filter(LogEntry.created_at >= datetime.combine(start, time.min))
    if end:
        query = query.filter(LogEntry.created_at <= datetime.combine(end, time.max))
    return query.order_by(LogEntry.created_at.desc()).limit(limit).all()


def serialize_log_entry(row: LogEntry) -> dict:
    return {
        "id": row.id,
        "officerName": row.officer_name,
        "action": row.action,
        "clientName": row.client_name,
        "inmateName": row.inmate_name,
        "visitDate": row.visit_date,
        "visitTime": row.visit_time,
        "reason": row.reason,
        "visitRequestId": row.visit_request_id,
        "meta": json.loads(row.meta_json or "{}"),
        "timestamp": row.created_at.isoformat(),
    }
