
from pydantic import BaseModel, EmailStr, Field


class VisitRequestCreate(BaseModel):
    clientName: str = Field(min_length=1, max_length=120)
    inmateName: str = Field(min_length=1, max_length=120)
    visitDate: str = Field(pattern=r"^\d{4}-\d{2}-\d{2}$")
    visitTime: str = Field(pattern=r"^\d{2}:\d{2}(:\d{2})?$")
    clientId: str | None = None
    clientEmail: EmailStr | None = None
    purpose: str | None = None
    relationship: str | None = None
    facility: str | None = None


class VisitStatusUpdate(BaseModel):
    status: str
    reviewedBy: str | None = None
    reason: str | None = None
