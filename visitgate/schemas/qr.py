from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict


class QRPayload(BaseModel):
    """Decoded contents of a visitor QR code."""

    model_config = ConfigDict(extra="ignore")

    visitId: str
    clientName: str
    inmateName: str
    visitDate: str | None = None
    visitTime: str | None = None
    purpose: str | None = None
    relationship: str | None = None
    facility: str | None = None
    clientEmail: str | None = None
    clientId: str | None = None
    approvedAt: datetime | None = None
    expiresAt: datetime | None = None
    status: str | None = None
    qrVersion: str | None = None


class VerdictStatus(str, Enum):
    valid = "valid"
    too_early = "too_early"
    expired = "expired"
    already_used = "already_used"
    invalidated = "invalidated"
    not_approved = "not_approved"
    data_mismatch = "data_mismatch"
    malformed = "malformed"
    error = "error"


class ValidationVerdict(BaseModel):
    model_config = ConfigDict(frozen=True)

    valid: bool
    status: VerdictStatus
    reason: str
    allowedTime: datetime | None = None
    expirationTime: datetime | None = None
    isLegacyQR: bool = False


class ScanRequest(BaseModel):
    rawText: str
    officerName: str = "Unknown Officer"


class ValidateRequest(BaseModel):
    rawText: str


class InvalidateRequest(BaseModel):
    reason: str = ""
    officerName: str = "System Admin"
