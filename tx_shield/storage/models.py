from sqlalchemy import Column, Integer, String, DateTime, JSON, Float, func
from .db import Base

class Analysis(Base):
    __tablename__ = "analyses"
    id = Column(Integer, primary_key=True, index=True)
    chain_id = Column(Integer)
    to_address = Column(String, index=True)
    from_address = Column(String, index=True)
    tx_type = Column(String)
    risk_score = Column(Integer)
    risk_level = Column(String)
    threat_level = Column(String)
    confidence = Column(Float)
    risk_flags = Column(JSON)
    snapshot = Column(JSON)
    created_at = Column(DateTime, server_default=func.now())

class ThreatReportRecord(Base):
    __tablename__ = "threat_reports"
    id = Column(Integer, primary_key=True, index=True)
    report_id = Column(String, unique=True, index=True)
    tx_hash = Column(String, index=True)
    report_type = Column(String, index=True)
    details = Column(String)
    created_at = Column(DateTime, server_default=func.now())
