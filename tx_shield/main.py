import os, logging
from typing import Any, Dict, Optional, Union
from fastapi import FastAPI, HTTPException, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.exc import SQLAlchemyError

from dotenv import load_dotenv
load_dotenv()

from .risk_engine.core import analyze_transaction, build_threat_report, fallback_report
from .risk_engine.factors import ExplorerOracle
from .risk_engine.reputation import safe_check_address
from .risk_engine.types import TransactionIntent
from .storage.db import SessionLocal, maybe_init_db
from .storage.models import Analysis
from .storage.reports import report_summary, save_report
from .storage.snapshots import cache_key, load_snapshot, save_snapshot

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

AUDIT_ENABLED = os.getenv("AUDIT_ENABLED", "false").lower() in ("1", "true", "yes")
maybe_init_db(AUDIT_ENABLED)

app = FastAPI(title="TX Shield Risk API", version="0.1")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)


class TransactionRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    to: Optional[str] = None
    data: Optional[str] = "0x"
    value: Union[int, str, None] = None
    from_address: Optional[str] = Field(default=None, alias="from")
    chainId: Optional[int] = 1
    riskFactors: Optional[Dict[str, Any]] = None

    def intent(self) -> TransactionIntent:
        return TransactionIntent.from_payload(self.model_dump(by_alias=True, exclude={"riskFactors"}))


class ReportRequest(BaseModel):
    txHash: Optional[str] = None
    reportType: Optional[str] = None
    details: Optional[str] = None


def get_oracle():
    # chain lookups need an explorer key; without one only the calldata is scored
    if os.getenv("EXPLORER_API_KEY"):
        return ExplorerOracle()
    return None


def _audit(intent: TransactionIntent, report: dict) -> None:
    if not AUDIT_ENABLED:
        return
    risk = report["riskScore"]
    try:
        with SessionLocal() as db:
            db.add(Analysis(
                chain_id=intent.chain_id,
                to_address=intent.to,
                from_address=intent.from_address,
                tx_type=report["details"]["transactionType"],
                risk_score=risk["score"],
                risk_level=risk["level"],
                threat_level=report["threatLevel"],
                confidence=report["confidence"],
                risk_flags=risk["breakdown"]["riskFlags"],
                snapshot=report,
            ))
            db.commit()
    except SQLAlchemyError as e:
        logger.warning("audit write failed: %s", e)


@app.api_route("/health", methods=["GET", "HEAD"])
async def health(request: Request):
    if request.method == "HEAD":
        return Response(status_code=200)
    return {"ok": True}


@app.post("/threat-check")
async def threat_check(req: TransactionRequest):
    key = cache_key(req.model_dump(by_alias=True))
    cached = load_snapshot(key)
    if cached is not None:
        return cached
    intent = req.intent()
    try:
        bundle = await analyze_transaction(intent, req.riskFactors, oracle=get_oracle())
    except ValueError as e:
        # unknown risk factor name or value
        raise HTTPException(400, detail=str(e))
    except Exception as e:
        logger.exception("threat check failed for to=%s", intent.to)
        return fallback_report(str(e))
    report = build_threat_report(bundle)
    try:
        save_snapshot(key, report)
    except OSError as e:
        logger.warning("snapshot write failed: %s", e)
    _audit(intent, report)
    return report


@app.post("/recommendations")
async def recommendations(req: TransactionRequest):
    try:
        bundle = await analyze_transaction(req.intent(), req.riskFactors, oracle=get_oracle())
    except ValueError as e:
        raise HTTPException(400, detail=str(e))
    return {
        "transactionType": bundle.analysis.type.value,
        "recommendations": [r.as_dict() for r in bundle.recommendations],
    }


@app.get("/address/{address}")
async def address_check(address: str):
    rep = safe_check_address(None, address)
    return {
        "address": address,
        "isScam": rep.is_scam,
        "confidence": rep.confidence,
        "reason": rep.reason,
        "risk": {"level": rep.risk_level, "reason": rep.reason},
    }


@app.post("/reports")
async def submit_report(req: ReportRequest):
    if not req.txHash or not req.reportType:
        raise HTTPException(400, detail="Missing required fields: txHash and reportType")
    try:
        report_id = save_report(req.txHash, req.reportType, req.details, persist=AUDIT_ENABLED)
    except SQLAlchemyError as e:
        logger.exception("report write failed")
        raise HTTPException(500, detail=f"Failed to submit report: {e}")
    logger.info("threat report %s for %s (%s)", report_id, req.txHash, req.reportType)
    return {"success": True, "message": "Report submitted successfully", "reportId": report_id}


@app.get("/reports")
async def reports():
    return report_summary(persist=AUDIT_ENABLED)
