"""Tests for the HTTP API."""

import pytest
from fastapi.testclient import TestClient

from tx_shield import main
from tx_shield.storage import reports, snapshots

from builders import MAX_UINT256, RECIPIENT, SCAM, approve_intent


@pytest.fixture
def client(monkeypatch, tmp_path):
    monkeypatch.setattr(snapshots, "SNAPSHOT_DIR", tmp_path)
    monkeypatch.setattr(main, "get_oracle", lambda: None)
    reports.clear_memory()
    return TestClient(main.app)


def _body(intent, **extra):
    return {**intent.as_payload(), **extra}


def test_health(client):
    assert client.get("/health").json() == {"ok": True}
    assert client.head("/health").status_code == 200


def test_threat_check_unlimited_approval(client):
    r = client.post("/threat-check", json=_body(approve_intent(MAX_UINT256)))
    assert r.status_code == 200
    report = r.json()
    assert report["threatLevel"] == "HIGH"
    assert report["details"]["transactionType"] == "UNLIMITED_APPROVAL"
    assert report["details"]["transactionDetails"]["approvalAmount"] == str(MAX_UINT256)


def test_threat_check_accepts_hex_value(client):
    r = client.post("/threat-check", json={"to": RECIPIENT, "value": "0xde0b6b3a7640000", "data": "0x"})
    assert r.json()["details"]["transactionType"] == "TRANSFER"


def test_threat_check_with_risk_factors(client):
    body = _body(approve_intent(10), riskFactors={"contractVerified": "VERIFIED", "contractAuditStatus": True})
    report = client.post("/threat-check", json=body).json()
    assert "Contract has been audited" in report["riskScore"]["breakdown"]["protectiveFlags"]


def test_threat_check_unknown_risk_factor(client):
    r = client.post("/threat-check", json=_body(approve_intent(10), riskFactors={"nope": True}))
    assert r.status_code == 400


def test_threat_check_is_cached(client, monkeypatch):
    body = _body(approve_intent(MAX_UINT256))
    first = client.post("/threat-check", json=body).json()

    async def fail(*args, **kwargs):
        raise AssertionError("cache miss")

    monkeypatch.setattr(main, "analyze_transaction", fail)
    assert client.post("/threat-check", json=body).json() == first


def test_threat_check_fallback_on_crash(client, monkeypatch):
    async def crash(*args, **kwargs):
        raise RuntimeError("node exploded")

    monkeypatch.setattr(main, "analyze_transaction", crash)
    r = client.post("/threat-check", json={"to": RECIPIENT, "data": "0x"})
    assert r.status_code == 200
    assert r.json()["threatLevel"] == "SUSPICIOUS"
    assert r.json()["error"] == "node exploded"


def test_recommendations(client):
    r = client.post("/recommendations", json=_body(approve_intent(MAX_UINT256)))
    body = r.json()
    assert body["transactionType"] == "UNLIMITED_APPROVAL"
    titles = [rec["title"] for rec in body["recommendations"]]
    assert "Limit Token Approval Amount" in titles
    assert len(titles) == len(set(titles))


def test_address_check(client):
    body = client.get(f"/address/{SCAM}").json()
    assert body["address"] == SCAM
    assert body["isScam"] is True
    assert body["risk"]["level"] == 9


def test_report_requires_fields(client):
    assert client.post("/reports", json={"txHash": "0xabc"}).status_code == 400


def test_report_roundtrip(client):
    r = client.post("/reports", json={"txHash": "0xabc", "reportType": "phishing", "details": "fake airdrop"})
    assert r.status_code == 200
    assert r.json()["success"] is True
    report_id = r.json()["reportId"]
    client.post("/reports", json={"txHash": "0xdef", "reportType": "phishing"})

    summary = client.get("/reports").json()
    assert summary["total"] == 2
    assert summary["byType"] == {"phishing": 2}
    assert summary["recent"][-1]["reportId"] == report_id


def test_threat_check_rejects_string_flag(client):
    r = client.post("/threat-check", json=_body(approve_intent(10), riskFactors={"contractAuditStatus": "false"}))
    assert r.status_code == 400
