"""QR visit-entry validation.

Scanning runs in two phases. ``validate`` parses the scanned text, looks up
the referenced visit request and produces a verdict without writing anything.
``record_outcome`` then redeems the code when the verdict is valid and always
appends a log entry. ``evaluate`` holds the decision rules and is pure.

All datetimes are naive facility-local time. ``now`` is captured once per
scan by the caller and threaded through every check.
"""

import json
import logging
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta
from typing import Any

from pydantic import ValidationError

from visitgate.core.config import Settings
from visitgate.core.exceptions import StoreUnavailable
from visitgate.db.models import VisitRequest, VisitStatus
from visitgate.schemas.qr import QRPayload, ValidationVerdict, VerdictStatus
from visitgate.services.visit_store import MarkUsedResult, VisitRequestStore

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ("visitId", "clientName", "inmateName")
DISPLAY_FORMAT = "%Y-%m-%d %H:%M"

ACTION_SCANNED = "scanned"
ACTION_SCAN_FAILED = "scan_failed"
ACTION_SCAN_ERROR = "scan_error"


@dataclass(frozen=True)
class WindowPolicy:
    early_grace: timedelta = timedelta(minutes=30)
    late_grace: timedelta = timedelta(minutes=30)
    duration: timedelta = timedelta(0)
    legacy_enabled: bool = True

    @classmethod
    def from_settings(cls, settings: Settings) -> "WindowPolicy":
        return cls(
            early_grace=timedelta(minutes=settings.QR_EARLY_GRACE_MINUTES),
            late_grace=timedelta(minutes=settings.QR_LATE_GRACE_MINUTES),
            duration=timedelta(minutes=settings.VISIT_DURATION_MINUTES),
            legacy_enabled=settings.LEGACY_QR_ENABLED,
        )

    def window(self, start: datetime) -> tuple[datetime, datetime]:
        return start - self.early_grace, start + self.duration + self.late_grace


@dataclass(frozen=True)
class ParsedPayload:
    payload: QRPayload


@dataclass(frozen=True)
class ParseFailure:
    reason: str
    action: str
    fields: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ScanOutcome:
    verdict: ValidationVerdict
    action: str
    payload: QRPayload | None = None
    record: VisitRequest | None = None
    fields: dict[str, Any] = field(default_factory=dict)


def _verdict(status: VerdictStatus, reason: str, **extra) -> ValidationVerdict:
    return ValidationVerdict(valid=status == VerdictStatus.valid, status=status, reason=reason, **extra)


def _malformed(reason: str, **extra) -> ValidationVerdict:
    return _verdict(VerdictStatus.malformed, reason, **extra)


def parse_qr_payload(raw_text: str) -> ParsedPayload | ParseFailure:
    if not isinstance(raw_text, str) or not raw_text.strip():
        return ParseFailure("Invalid QR code format", ACTION_SCAN_ERROR)
    try:
        data = json.loads(raw_text)
    except (ValueError, RecursionError):
        return ParseFailure("Invalid QR code format", ACTION_SCAN_ERROR)

    if not isinstance(data, dict):
        return ParseFailure("Invalid QR code format", ACTION_SCAN_FAILED)

    for name in REQUIRED_FIELDS:
        value = data.get(name)
        if not isinstance(value, str) or not value.strip():
            return ParseFailure(f"QR code is missing {name}.", ACTION_SCAN_FAILED, data)

    try:
        payload = QRPayload.model_validate(data)
    except ValidationError as exc:
        first = exc.errors()[0]
        location = ".".join(str(part) for part in first["loc"]) or "payload"
        return ParseFailure(f"QR code field {location} is invalid.", ACTION_SCAN_FAILED, data)
    return ParsedPayload(payload)


def parse_slot(visit_date: str | None, visit_time: str | None) -> datetime:
    """Combine a ``YYYY-MM-DD`` date and ``HH:MM[:SS]`` time. Raises ValueError."""
    date_part = (visit_date or "").strip()
    time_part = (visit_time or "").strip()
    if not date_part or not time_part:
        raise ValueError("Missing visit date or time.")
    for fmt in ("%Y-%m-%d %H:%M", "%Y-%m-%d %H:%M:%S"):
        try:
            return datetime.strptime(f"{date_part} {time_part}", fmt)
        except ValueError:
            continue
    raise ValueError("Invalid date/time format.")


def _naive(value: datetime | None) -> datetime | None:
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone().replace(tzinfo=None)


def _check_window(
    now: datetime,
    allowed: datetime | None,
    expiration: datetime | None,
    is_legacy: bool = False,
) -> ValidationVerdict:
    extra = {"allowedTime": allowed, "expirationTime": expiration, "isLegacyQR": is_legacy}
    if allowed is not None and now < allowed:
        return _verdict(
            VerdictStatus.too_early,
            f"Too early to use QR code. Entry opens at {allowed.strftime(DISPLAY_FORMAT)}.",
            **extra,
        )
    if expiration is not None and now > expiration:
        return _verdict(
            VerdictStatus.expired,
            f"QR code expired at {expiration.strftime(DISPLAY_FORMAT)}.",
            **extra,
        )
    if is_legacy:
        return _verdict(VerdictStatus.valid, "Legacy QR code accepted. Entry permitted.", **extra)
    return _verdict(VerdictStatus.valid, "QR code is valid. Entry permitted.", **extra)


def _evaluate_legacy(payload: QRPayload, now: datetime, policy: WindowPolicy) -> ValidationVerdict:
    if not policy.legacy_enabled:
        return _malformed("QR code not found in system")

    allowed = _naive(payload.approvedAt)
    expiration = _naive(payload.expiresAt)
    if allowed is None or expiration is None:
        # A missing bound is taken from the payload slot.
        try:
            slot_allowed, slot_expiration = policy.window(parse_slot(payload.visitDate, payload.visitTime))
        except ValueError:
            return _malformed("Legacy QR code carries no validity window.", isLegacyQR=True)
        allowed = allowed if allowed is not None else slot_allowed
        expiration = expiration if expiration is not None else slot_expiration
    return _check_window(now, allowed, expiration, is_legacy=True)


def evaluate(
    payload: QRPayload,
    record: VisitRequest | None,
    now: datetime,
    policy: WindowPolicy,
) -> ValidationVerdict:
    """Decide a verdict for one scan. The first failing check wins."""
    if record is None:
        return _evaluate_legacy(payload, now, policy)

    if record.qr_invalidated:
        return _verdict(VerdictStatus.invalidated, "QR code has been revoked.")

    status = VisitStatus(record.status)
    if status != VisitStatus.approved:
        return _verdict(
            VerdictStatus.not_approved,
            f"Visit request is {status.value}, not approved.",
        )

    if payload.clientName != record.client_name:
        return _verdict(VerdictStatus.data_mismatch, "Visitor name on QR code does not match the visit request.")
    if payload.inmateName != record.inmate_name:
        return _verdict(VerdictStatus.data_mismatch, "Inmate name on QR code does not match the visit request.")

    if record.qr_used:
        used_at = f" at {record.used_at.strftime(DISPLAY_FORMAT)}" if record.used_at else ""
        used_by = f" by {record.used_by}" if record.used_by else ""
        return _verdict(VerdictStatus.already_used, f"QR code already used{used_by}{used_at}.")

    try:
        start = parse_slot(record.visit_date, record.visit_time)
    except ValueError as exc:
        return _malformed(str(exc))
    allowed, expiration = policy.window(start)
    return _check_window(now, allowed, expiration)


def validate(
    store: VisitRequestStore,
    raw_text: str,
    now: datetime,
    policy: WindowPolicy,
) -> ScanOutcome:
    parsed = parse_qr_payload(raw_text)
    if isinstance(parsed, ParseFailure):
        return ScanOutcome(
            verdict=_malformed(parsed.reason),
            action=parsed.action,
            fields=parsed.fields,
        )

    payload = parsed.payload
    try:
        record = store.find_visit_request_by_id(payload.visitId)
    except StoreUnavailable as exc:
        return ScanOutcome(
            verdict=_verdict(VerdictStatus.error, exc.message),
            action=ACTION_SCAN_ERROR,
            payload=payload,
        )

    verdict = evaluate(payload, record, now, policy)
    return ScanOutcome(
        verdict=verdict,
        action=ACTION_SCANNED if verdict.valid else ACTION_SCAN_FAILED,
        payload=payload,
        record=record,
    )


def _redeem(store: VisitRequestStore, outcome: ScanOutcome, officer_name: str, now: datetime) -> ScanOutcome:
    visit_id = outcome.payload.visitId
    try:
        result = store.try_mark_used(visit_id, officer_name, now)
    except StoreUnavailable as exc:
        return replace(outcome, verdict=_verdict(VerdictStatus.error, exc.message), action=ACTION_SCAN_ERROR)

    if result == MarkUsedResult.ok:
        return outcome
    if result == MarkUsedResult.already_used:
        logger.info("qr.scan lost redeem race visit_id=%s officer=%s", visit_id, officer_name)
        verdict = _verdict(VerdictStatus.already_used, "QR code already used.")
        return replace(outcome, verdict=verdict, action=ACTION_SCAN_FAILED)
    if result == MarkUsedResult.invalidated:
        verdict = _verdict(VerdictStatus.invalidated, "QR code has been revoked.")
        return replace(outcome, verdict=verdict, action=ACTION_SCAN_FAILED)
    if result == MarkUsedResult.not_approved:
        verdict = _verdict(VerdictStatus.not_approved, "Visit request is no longer approved.")
        return replace(outcome, verdict=verdict, action=ACTION_SCAN_FAILED)
    verdict = _verdict(VerdictStatus.error, "Visit request could not be found while recording entry. Please rescan.")
    # The row is gone; log from the payload instead.
    return replace(outcome, verdict=verdict, action=ACTION_SCAN_ERROR, record=None)


def _log_fields(outcome: ScanOutcome) -> dict[str, Any]:
    record, payload, raw = outcome.record, outcome.payload, outcome.fields
    if record is not None:
        return {
            "client_name": record.client_name,
            "inmate_name": record.inmate_name,
            "visit_date": record.visit_date,
            "visit_time": record.visit_time,
            "visit_request_id": record.id,
        }
    if payload is not None:
        return {
            "client_name": payload.clientName,
            "inmate_name": payload.inmateName,
            "visit_date": payload.visitDate,
            "visit_time": payload.visitTime,
            "visit_request_id": payload.visitId,
        }

    def text(name: str) -> str | None:
        value = raw.get(name)
        return value if isinstance(value, str) else None

    return {
        "client_name": text("clientName"),
        "inmate_name": text("inmateName"),
        "visit_date": text("visitDate"),
        "visit_time": text("visitTime"),
        "visit_request_id": text("visitId"),
    }


def record_outcome(
    store: VisitRequestStore,
    outcome: ScanOutcome,
    officer_name: str,
    now: datetime,
) -> ScanOutcome:
    """Redeem a valid code and append the scan log entry.

    A failed log write is logged locally and never changes the verdict.
    """
    if outcome.verdict.valid and not outcome.verdict.isLegacyQR:
        outcome = _redeem(store, outcome, officer_name, now)

    verdict = outcome.verdict
    try:
        store.append_log_entry(
            officer_name=officer_name,
            action=outcome.action,
            reason=verdict.reason,
            meta={
                "status": verdict.status.value,
                "isLegacyQR": verdict.isLegacyQR,
                "purpose": outcome.payload.purpose if outcome.payload else None,
            },
            created_at=now,
            **_log_fields(outcome),
        )
    except Exception:
        logger.exception("qr.scan log append failed action=%s status=%s", outcome.action, verdict.status.value)
    return outcome


def scan(
    store: VisitRequestStore,
    raw_text: str,
    officer_name: str,
    now: datetime,
    policy: WindowPolicy,
) -> ScanOutcome:
    return record_outcome(store, validate(store, raw_text, now, policy), officer_name, now)
