from visitgate.db.models.log_entry import LogEntry
from visitgate.db.models.visit_request import VisitRequest, VisitStatus

__all__ = [
    "LogEntry",
    "VisitRequest",
    "VisitStatus",
]
