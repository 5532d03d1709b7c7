"""Tests for the weighted risk scorer."""

import pytest

from tx_shield.risk_engine.scoring import level_for_score, score
from tx_shield.risk_engine.types import (
    ContractAge,
    RiskFactors,
    SecurityRiskLevel,
    TransactionIntent,
    VerificationStatus,
)

from builders import RECIPIENT, SCAM, swap_intent

EMPTY = TransactionIntent(to=RECIPIENT, data="0x", value=0)


@pytest.mark.parametrize("total,level", [
    (0, SecurityRiskLevel.LOW),
    (24, SecurityRiskLevel.LOW),
    (25, SecurityRiskLevel.MEDIUM),
    (49, SecurityRiskLevel.MEDIUM),
    (50, SecurityRiskLevel.HIGH),
    (74, SecurityRiskLevel.HIGH),
    (75, SecurityRiskLevel.CRITICAL),
    (100, SecurityRiskLevel.CRITICAL),
])
def test_bands(total, level):
    assert level_for_score(total) == level


def test_level_ordering():
    assert SecurityRiskLevel.LOW < SecurityRiskLevel.MEDIUM < SecurityRiskLevel.HIGH < SecurityRiskLevel.CRITICAL
    assert max(SecurityRiskLevel.HIGH, SecurityRiskLevel.CRITICAL) == SecurityRiskLevel.CRITICAL


class TestScenarios:
    def test_unlimited_approval(self, unlimited_approval):
        result = score(unlimited_approval)
        assert result.breakdown.transaction_specific >= 20
        assert result.level >= SecurityRiskLevel.HIGH
        assert "Transaction includes unlimited token approval" in result.breakdown.risk_flags

    def test_empty_call(self):
        result = score(EMPTY)
        b = result.breakdown
        assert result.level == SecurityRiskLevel.LOW
        assert b.transaction_specific == 0
        assert b.implementation == 0
        assert result.score == b.contract_security + b.user_trust + b.external_factors

    def test_known_scammer_forces_high(self):
        result = score(TransactionIntent(to=SCAM), {"is_known_scammer": True})
        assert result.score < 50
        assert result.level >= SecurityRiskLevel.HIGH


def test_score_is_sum_of_categories(unlimited_approval):
    result = score(unlimited_approval, {"contractVerified": "UNVERIFIED", "copycat": True})
    assert result.score == result.breakdown.category_total
    assert 0 <= result.score <= 100


def test_category_caps():
    everything = {
        "contract_verified": VerificationStatus.UNVERIFIED,
        "contract_age": ContractAge.NEW,
        "is_known_scammer": True,
        "scam_similarity": 0.95,
        "unlimited_approval": True,
        "high_value": True,
        "complex_method": True,
        "interacts_with_blacklisted": True,
        "high_slippage": True,
        "vulnerable_to_mev": True,
        "recently_deployed": True,
        "copycat": True,
        "has_security_incidents": True,
        "reentrancy_risk": True,
        "decentralization_score": 0.0,
        "has_admin_functions": True,
    }
    result = score(EMPTY, everything)
    b = result.breakdown
    assert (b.contract_security, b.transaction_specific, b.user_trust,
            b.external_factors, b.implementation) == (25, 35, 15, 15, 10)
    assert result.score == 100
    assert result.level == SecurityRiskLevel.CRITICAL


def test_user_trust_never_negative():
    result = score(EMPTY, {"interacted_before": True, "whitelisted_by_user": True})
    assert result.breakdown.user_trust == 0
    assert "Address is whitelisted by user" in result.breakdown.protective_flags


@pytest.mark.parametrize("factor", [
    "is_known_scammer", "high_value", "complex_method", "interacts_with_blacklisted",
    "high_slippage", "vulnerable_to_mev", "recently_deployed", "copycat",
    "has_security_incidents", "reentrancy_risk", "has_admin_functions",
])
def test_risk_factor_never_lowers_score(factor):
    base = {"contract_verified": "VERIFIED", "contract_age": "MATURE"}
    before = score(EMPTY, base)
    after = score(EMPTY, {**base, factor: True})
    assert after.score >= before.score
    assert after.level >= before.level


@pytest.mark.parametrize("similarity", [0.81, 0.9, 1.0])
def test_scam_similarity_override(similarity):
    result = score(EMPTY, {"scam_similarity": similarity, "contract_audited": True})
    assert result.level >= SecurityRiskLevel.HIGH


def test_similarity_below_override_keeps_band():
    result = score(EMPTY, {"scam_similarity": 0.75, "contract_audited": True,
                           "whitelisted_by_user": True})
    assert result.level == level_for_score(result.score)


def test_blacklisted_interaction_override():
    result = score(EMPTY, {"interacts_with_blacklisted": True, "whitelisted_by_user": True})
    assert result.level >= SecurityRiskLevel.HIGH
    assert "ALERT: Transaction interacts with known dangerous address" in result.breakdown.suggested_mitigations


def test_deterministic(unlimited_approval):
    factors = {"contractAge": "RECENT", "highSlippage": True}
    assert score(unlimited_approval, factors) == score(unlimited_approval, factors)


def test_does_not_mutate_inputs():
    factors = {"copycat": True}
    score(EMPTY, factors)
    assert factors == {"copycat": True}


class TestConfidence:
    def test_no_factors(self):
        assert score(EMPTY).confidence == 0.5

    def test_half_supplied(self):
        names = RiskFactors.field_names()[:10]
        factors = {n: getattr(RiskFactors(), n) for n in names}
        assert score(EMPTY, factors).confidence == 0.75

    def test_all_supplied(self):
        factors = {n: getattr(RiskFactors(), n) for n in RiskFactors.field_names()}
        assert score(EMPTY, factors).confidence == 1.0


def test_high_value_derived_from_intent():
    result = score(TransactionIntent(to=RECIPIENT, value=5 * 10 ** 18))
    assert "High value transaction" in result.breakdown.risk_flags


def test_supplied_true_is_not_cleared():
    result = score(EMPTY, {"unlimited_approval": True})
    assert "Transaction includes unlimited token approval" in result.breakdown.risk_flags


def test_mitigations_are_unique():
    result = score(EMPTY, {"contract_age": "NEW", "recently_deployed": True})
    mitigations = result.breakdown.suggested_mitigations
    assert len(mitigations) == len(set(mitigations))
    assert result.breakdown.risk_flags.count("Contract was deployed very recently") == 1


def test_unknown_factor_rejected():
    with pytest.raises(ValueError):
        score(EMPTY, {"notAFactor": True})


def test_swap_floor():
    result = score(swap_intent(0), {"contract_audited": True})
    assert result.level >= SecurityRiskLevel.MEDIUM


def test_unusual_for_user_is_flagged():
    result = score(EMPTY, {"unusualForUser": True})
    assert "Transaction pattern is unusual for this user" in result.breakdown.risk_flags


@pytest.mark.parametrize("value", ["false", "0", 0, 1, "yes"])
def test_non_boolean_flag_rejected(value):
    with pytest.raises(ValueError):
        score(EMPTY, {"contractAuditStatus": value})


@pytest.mark.parametrize("name,value", [
    ("similarToScam", 5),
    ("similarToScam", -0.1),
    ("decentralizationScore", 1.5),
    ("decentralizationScore", "0.5"),
    ("similarToScam", True),
])
def test_ratio_out_of_range_rejected(name, value):
    with pytest.raises(ValueError):
        score(EMPTY, {name: value})


def test_ratio_bounds_accepted():
    assert score(EMPTY, {"similarToScam": 1, "decentralizationScore": 0}).level >= SecurityRiskLevel.HIGH
