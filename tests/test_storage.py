"""Tests for the audit log and persisted threat reports."""

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from tx_shield import main
from tx_shield.storage import reports, snapshots
from tx_shield.storage.db import Base
from tx_shield.storage.models import Analysis, ThreatReportRecord

from builders import MAX_UINT256, approve_intent


@pytest.fixture
def session_factory(monkeypatch, tmp_path):
    engine = create_engine(f"sqlite:///{tmp_path / 'audit.db'}", connect_args={"check_same_thread": False})
    Base.metadata.create_all(bind=engine)
    factory = sessionmaker(bind=engine, autoflush=False)
    monkeypatch.setattr(main, "SessionLocal", factory)
    monkeypatch.setattr(reports, "SessionLocal", factory)
    yield factory
    engine.dispose()


@pytest.fixture
def audited_client(monkeypatch, tmp_path, session_factory):
    monkeypatch.setattr(snapshots, "SNAPSHOT_DIR", tmp_path / "snapshots")
    monkeypatch.setattr(main, "get_oracle", lambda: None)
    monkeypatch.setattr(main, "AUDIT_ENABLED", True)
    reports.clear_memory()
    return TestClient(main.app)


def test_threat_check_writes_audit_row(audited_client, session_factory):
    intent = approve_intent(MAX_UINT256)
    report = audited_client.post("/threat-check", json=intent.as_payload()).json()

    with session_factory() as db:
        rows = db.query(Analysis).all()
    assert len(rows) == 1
    row = rows[0]
    assert row.to_address == intent.to
    assert row.tx_type == "UNLIMITED_APPROVAL"
    assert row.risk_level == report["riskScore"]["level"]
    assert row.threat_level == "HIGH"
    assert "Transaction includes unlimited token approval" in row.risk_flags
    assert row.snapshot["threatLevel"] == "HIGH"


def test_reports_are_persisted(audited_client, session_factory):
    r = audited_client.post("/reports", json={"txHash": "0xabc", "reportType": "phishing", "details": "drainer"})
    report_id = r.json()["reportId"]
    audited_client.post("/reports", json={"txHash": "0xdef", "reportType": "rug_pull"})

    with session_factory() as db:
        stored = db.query(ThreatReportRecord).filter_by(report_id=report_id).one()
    assert stored.tx_hash == "0xabc"
    assert stored.details == "drainer"

    summary = audited_client.get("/reports").json()
    assert summary["total"] == 2
    assert summary["byType"] == {"phishing": 1, "rug_pull": 1}
    assert summary["recent"][0]["txHash"] == "0xdef"
    # nothing went to the in-memory store
    assert reports.report_summary(persist=False)["total"] == 0


def test_memory_store_is_bounded():
    reports.clear_memory()
    for i in range(reports.MEMORY_LIMIT + 5):
        reports.save_report(f"0x{i:x}", "phishing", None, persist=False)
    summary = reports.report_summary(persist=False)
    assert summary["total"] == reports.MEMORY_LIMIT
    assert summary["recent"][0]["txHash"] == f"0x{reports.MEMORY_LIMIT + 4:x}"
    reports.clear_memory()
