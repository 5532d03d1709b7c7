import logging
import time
import uuid
from collections import Counter, deque
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError

from .db import SessionLocal
from .models import ThreatReportRecord

logger = logging.getLogger(__name__)

RECENT_LIMIT = 10
MEMORY_LIMIT = 1000

# used when the database is disabled; lost on restart, oldest entries dropped first
_memory: "deque[Dict[str, Any]]" = deque(maxlen=MEMORY_LIMIT)


def new_report_id() -> str:
    return f"report-{int(time.time() * 1000)}-{uuid.uuid4().hex[:8]}"


def save_report(tx_hash: str, report_type: str, details: Optional[str], persist: bool) -> str:
    report_id = new_report_id()
    row = {"reportId": report_id, "txHash": tx_hash, "reportType": report_type, "details": details}
    if not persist:
        _memory.append(row)
        return report_id
    with SessionLocal() as db:
        db.add(ThreatReportRecord(report_id=report_id, tx_hash=tx_hash,
                                  report_type=report_type, details=details))
        db.commit()
    return report_id


def _all_reports(persist: bool) -> List[Dict[str, Any]]:
    if not persist:
        return list(_memory)
    try:
        with SessionLocal() as db:
            rows = db.query(ThreatReportRecord).order_by(ThreatReportRecord.id).all()
    except SQLAlchemyError as e:
        logger.warning("could not read threat reports: %s", e)
        return []
    return [{"reportId": r.report_id, "txHash": r.tx_hash,
             "reportType": r.report_type, "details": r.details} for r in rows]


def report_summary(persist: bool) -> Dict[str, Any]:
    rows = _all_reports(persist)
    return {
        "total": len(rows),
        "byType": dict(Counter(r["reportType"] for r in rows)),
        "recent": list(reversed(rows[-RECENT_LIMIT:])),
    }


def clear_memory() -> None:
    _memory.clear()
