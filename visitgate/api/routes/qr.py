import logging
from datetime import datetime
from time import perf_counter

from fastapi import APIRouter, Depends
from starlette.concurrency import run_in_threadpool

from visitgate.api.deps import get_now, get_visit_store, get_window_policy
from visitgate.schemas.qr import ScanRequest, ValidateRequest
from visitgate.services.qr_validation_service import WindowPolicy, scan, validate
from visitgate.services.visit_store import VisitRequestStore
from visitgate.socket.server import publish_scan_activity

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("/scan")
async def scan_qr(
    payload: ScanRequest,
    store: VisitRequestStore = Depends(get_visit_store),
    now: datetime = Depends(get_now),
    policy: WindowPolicy = Depends(get_window_policy),
):
    started = perf_counter()
    officer_name = payload.officerName.strip() or "Unknown Officer"
    # Store calls block; keep them off the event loop.
    outcome = await run_in_threadpool(scan, store, payload.rawText, officer_name, now, policy)
    verdict = outcome.verdict
    visit_id = outcome.payload.visitId if outcome.payload else None

    await publish_scan_activity(
        {
            "id": visit_id,
            "event": f"QR scan by {officer_name}: {verdict.status.value}",
            "time": now.isoformat(),
            "state": "approved" if verdict.valid else "rejected",
        }
    )

    logger.info(
        "qr.scan completed in %.1fms visit_id=%s status=%s legacy=%s officer=%s",
        (perf_counter() - started) * 1000,
        visit_id,
        verdict.status.value,
        verdict.isLegacyQR,
        officer_name,
    )
    return {"data": verdict.model_dump(mode="json")}


@router.post("/validate")
def validate_qr(
    payload: ValidateRequest,
    store: VisitRequestStore = Depends(get_visit_store),
    now: datetime = Depends(get_now),
    policy: WindowPolicy = Depends(get_window_policy),
):
    outcome = validate(store, payload.rawText, now, policy)
    return {"data": outcome.verdict.model_dump(mode="json")}
