"""Tests for the recommendation engine."""

from eth_abi import decode

from tx_shield.risk_engine.decoder import classify
from tx_shield.risk_engine.recommendations import (
    CATALOG,
    CATALOG_BY_TYPE,
    HIGH_RISK_TITLE,
    LIMIT_APPROVAL_TITLE,
    MAX_SLIPPAGE_TITLE,
    limited_approval_data,
    recommend,
)
from tx_shield.risk_engine.scoring import score
from tx_shield.risk_engine.types import (
    Priority,
    SecurityRiskLevel,
    TransactionAnalysis,
    TransactionComplexity,
    TransactionIntent,
    TransactionType,
)
from tx_shield.risk_engine.weights import SAFE_APPROVAL_WEI

from builders import RECIPIENT, SPENDER, swap_intent


def _recs(intent, factors=None):
    analysis = classify(intent)
    return recommend(intent, analysis, score(intent, factors, analysis))


def _titles(recs):
    return [r.title for r in recs]


class TestUnlimitedApproval:
    def test_titles_unique(self, unlimited_approval):
        titles = _titles(_recs(unlimited_approval))
        assert len(titles) == len(set(titles))

    def test_sorted_by_priority(self, unlimited_approval):
        keys = [r.priority.sort_key for r in _recs(unlimited_approval)]
        assert keys == sorted(keys)

    def test_high_risk_alert_first(self, unlimited_approval):
        recs = _recs(unlimited_approval)
        assert recs[0].priority == Priority.CRITICAL
        assert HIGH_RISK_TITLE in _titles(recs)
        assert LIMIT_APPROVAL_TITLE in _titles(recs)

    def test_unlimited_flag_not_repeated(self, unlimited_approval):
        titles = _titles(_recs(unlimited_approval))
        assert not any("unlimited token approval" in t.lower() for t in titles if t.startswith("Risk:"))

    def test_limited_approval_action(self, unlimited_approval):
        rec = next(r for r in _recs(unlimited_approval) if r.title == LIMIT_APPROVAL_TITLE)
        data = rec.action.data
        assert data["to"] == unlimited_approval.to
        assert data["data"].startswith("0x095ea7b3")
        spender, amount = decode(["address", "uint256"], bytes.fromhex(data["data"][10:]))
        assert spender.lower() == SPENDER
        assert amount == SAFE_APPROVAL_WEI


def test_limited_approval_data_keeps_intent_fields(unlimited_approval):
    out = limited_approval_data(unlimited_approval, amount=42)
    assert out["chainId"] == unlimited_approval.chain_id
    assert out["value"] == "0"


def test_swap_slippage_data():
    recs = _recs(swap_intent(0))
    rec = next(r for r in recs if r.title == MAX_SLIPPAGE_TITLE)
    assert rec.action.data["slippagePercentage"] == 1
    assert rec.action.data["description"] == "Set maximum slippage to 1%"


def test_low_risk_transfer_has_no_alert():
    recs = _recs(TransactionIntent(to=RECIPIENT, value=10 ** 17))
    titles = _titles(recs)
    assert "Verify Recipient Address" in titles
    assert HIGH_RISK_TITLE not in titles


def test_limited_approval_is_not_high_risk(limited_approval):
    titles = _titles(_recs(limited_approval))
    assert LIMIT_APPROVAL_TITLE not in titles
    assert "Set Token Approval Deadline" in titles


def test_catalog_not_mutated(unlimited_approval):
    _recs(unlimited_approval)
    _recs(swap_intent(0))
    assert all(r.action is None or r.action.data is None for r in CATALOG)


def test_fresh_list_per_call(unlimited_approval):
    first = _recs(unlimited_approval)
    first.clear()
    assert _recs(unlimited_approval)


def test_index_covers_every_type():
    assert set(CATALOG_BY_TYPE) == set(TransactionType)
    assert CATALOG_BY_TYPE[TransactionType.UNKNOWN] == ()


def test_without_risk_only_catalog(unlimited_approval):
    recs = recommend(unlimited_approval, classify(unlimited_approval))
    assert HIGH_RISK_TITLE not in _titles(recs)


def test_enrichment_failure_keeps_recommendation():
    # selector says approve, arguments are truncated
    intent = TransactionIntent(to=RECIPIENT, data="0x095ea7b3" + "00" * 20)
    analysis = TransactionAnalysis(
        type=TransactionType.UNLIMITED_APPROVAL,
        complexity=TransactionComplexity.MEDIUM,
        base_risk_level=SecurityRiskLevel.HIGH,
        description="Unlimited token approval",
    )
    recs = recommend(intent, analysis)
    rec = next(r for r in recs if r.title == LIMIT_APPROVAL_TITLE)
    assert rec.action is not None
    assert rec.action.data is None
    assert rec.priority == Priority.CRITICAL
