from dataclasses import replace
from typing import Any, List, Mapping, Optional, Tuple

from .decoder import classify
from .types import (
    ContractAge,
    RiskBreakdown,
    RiskFactors,
    RiskScoreResult,
    SecurityRiskLevel,
    TransactionAnalysis,
    TransactionComplexity,
    TransactionIntent,
    TransactionType,
    VerificationStatus,
    max_level,
)
from .weights import (
    CENTRALIZATION_THRESHOLD,
    CRITICAL_MIN,
    HIGH_MIN,
    HIGH_VALUE_WEI,
    MEDIUM_MIN,
    SIMILARITY_FLAG,
    SIMILARITY_OVERRIDE,
    W,
)

TOTAL_FACTORS = len(RiskFactors.field_names())


def _clamp(value: int, cap: int) -> int:
    return max(0, min(cap, value))


class _Trail:
    """Collects flag / mitigation texts, keeping the first occurrence of each."""

    def __init__(self) -> None:
        self.risk: List[str] = []
        self.protective: List[str] = []
        self.mitigations: List[str] = []

    @staticmethod
    def _add(bucket: List[str], text: Optional[str]) -> None:
        if text and text not in bucket:
            bucket.append(text)

    def risk_flag(self, flag: str, mitigation: Optional[str] = None) -> None:
        self._add(self.risk, flag)
        self._add(self.mitigations, mitigation)

    def protective_flag(self, flag: str) -> None:
        self._add(self.protective, flag)


def level_for_score(score: int) -> SecurityRiskLevel:
    if score >= CRITICAL_MIN:
        return SecurityRiskLevel.CRITICAL
    if score >= HIGH_MIN:
        return SecurityRiskLevel.HIGH
    if score >= MEDIUM_MIN:
        return SecurityRiskLevel.MEDIUM
    return SecurityRiskLevel.LOW


def derive_factors(intent: TransactionIntent, analysis: TransactionAnalysis,
                   factors: RiskFactors) -> RiskFactors:
    """Facts the intent itself proves; a supplied True is never cleared."""
    return replace(
        factors,
        complex_method=factors.complex_method or analysis.complexity == TransactionComplexity.COMPLEX,
        unlimited_approval=factors.unlimited_approval or analysis.type == TransactionType.UNLIMITED_APPROVAL,
        high_value=factors.high_value or intent.value > HIGH_VALUE_WEI,
    )


def _contract_security(f: RiskFactors, trail: _Trail) -> int:
    s = 0
    if f.contract_verified == VerificationStatus.VERIFIED:
        s += W.CONTRACT_VERIFIED
        trail.protective_flag("Contract is verified on block explorer")
    elif f.contract_verified == VerificationStatus.UNVERIFIED:
        s += W.CONTRACT_UNVERIFIED
        trail.risk_flag("Contract is not verified on block explorer",
                        "Only interact with verified contracts")

    if f.contract_audited:
        s += W.AUDITED
        trail.protective_flag("Contract has been audited")
    else:
        s += W.NOT_AUDITED
        trail.risk_flag("No known security audits for this contract",
                        "Prefer interacting with audited contracts")

    if f.is_known_scammer:
        s += W.KNOWN_SCAMMER
        trail.risk_flag("Address is flagged as a known scammer",
                        "ALERT: Avoid this transaction entirely")

    if f.scam_similarity > SIMILARITY_FLAG:
        s += W.SIMILAR_TO_SCAM
        trail.risk_flag("Contract behavior is similar to known scams",
                        "Proceed with extreme caution or avoid this transaction")

    if f.contract_age == ContractAge.NEW:
        s += W.AGE_NEW
        trail.risk_flag("Contract was deployed very recently",
                        "Be extra cautious with newly deployed contracts")
    elif f.contract_age == ContractAge.RECENT:
        s += W.AGE_RECENT
        trail.risk_flag("Contract was deployed in the last few months",
                        "Be cautious with contracts that have a short track record")
    elif f.contract_age == ContractAge.ESTABLISHED:
        s += W.AGE_ESTABLISHED
        trail.protective_flag("Contract has been established for 6-12 months")
    elif f.contract_age == ContractAge.MATURE:
        s += W.AGE_MATURE
        trail.protective_flag("Contract has been established for over a year")

    return _clamp(s, W.CONTRACT_SECURITY_CAP)


def _transaction_specific(f: RiskFactors, trail: _Trail) -> int:
    s = 0
    if f.unlimited_approval:
        s += W.UNLIMITED_APPROVAL
        trail.risk_flag("Transaction includes unlimited token approval",
                        "Use limited approval amount instead of unlimited approval")
    if f.high_value:
        s += W.HIGH_VALUE
        trail.risk_flag("High value transaction",
                        "Consider splitting into smaller transactions for safety")
    if f.complex_method:
        s += W.COMPLEX_METHOD
        trail.risk_flag("Complex transaction method",
                        "Review all aspects of this transaction carefully")
    if f.interacts_with_blacklisted:
        s += W.BLACKLIST_INTERACTION
        trail.risk_flag("Transaction interacts with blacklisted address",
                        "ALERT: Transaction interacts with known dangerous address")
    if f.high_slippage:
        s += W.HIGH_SLIPPAGE
        trail.risk_flag("High slippage in swap transaction",
                        "Set a lower slippage tolerance (e.g., 1-2%)")
    if f.vulnerable_to_mev:
        s += W.MEV_VULNERABLE
        trail.risk_flag("Transaction is vulnerable to MEV extraction",
                        "Use an MEV-protected transaction or private transaction service")
    return _clamp(s, W.TRANSACTION_CAP)


def _user_trust(f: RiskFactors, trail: _Trail) -> int:
    s = W.USER_TRUST_START
    if f.unusual_for_user:
        s += W.UNUSUAL_FOR_USER
        trail.risk_flag("Transaction pattern is unusual for this user")
    if f.interacted_before:
        s += W.INTERACTED_BEFORE
        trail.protective_flag("User has safely interacted with this contract before")
    if f.whitelisted_by_user:
        s += W.WHITELISTED
        trail.protective_flag("Address is whitelisted by user")
    return _clamp(s, W.USER_TRUST_CAP)


def _external(f: RiskFactors, trail: _Trail) -> int:
    s = 0
    if f.recently_deployed:
        s += W.RECENTLY_DEPLOYED
        trail.risk_flag("Contract was deployed very recently",
                        "Be extra cautious with newly deployed contracts")
    if f.copycat:
        s += W.COPYCAT
        trail.risk_flag("Contract appears to be imitating a known legitimate project",
                        "Verify you are interacting with the correct contract address")
    if f.has_security_incidents:
        s += W.SECURITY_INCIDENTS
        trail.risk_flag("Protocol has had security incidents in the past",
                        "Research recent security updates before proceeding")
    return _clamp(s, W.EXTERNAL_CAP)


def _implementation(f: RiskFactors, trail: _Trail) -> int:
    s = 0
    if f.reentrancy_risk:
        s += W.REENTRANCY
        trail.risk_flag("Contract may be vulnerable to reentrancy attacks",
                        "Avoid depositing large amounts into contracts with reentrancy risk")
    if f.decentralization_score < CENTRALIZATION_THRESHOLD:
        s += W.CENTRALIZED
        trail.risk_flag("Contract has high centralization risk",
                        "Be aware this protocol is highly centralized")
    if f.has_admin_functions:
        s += W.ADMIN_FUNCTIONS
        trail.risk_flag("Contract has privileged admin functions",
                        "Check who controls the admin functions of this contract")
    return _clamp(s, W.IMPLEMENTATION_CAP)


def _override(level: SecurityRiskLevel, f: RiskFactors) -> SecurityRiskLevel:
    if f.is_known_scammer or f.interacts_with_blacklisted or f.scam_similarity > SIMILARITY_OVERRIDE:
        return max_level(level, SecurityRiskLevel.HIGH)
    return level


def confidence_for(supplied: Mapping[str, Any]) -> float:
    return min(1.0, 0.5 + 0.5 * len(supplied) / TOTAL_FACTORS)


def score(intent: TransactionIntent,
          factors: Optional[Mapping[str, Any]] = None,
          analysis: Optional[TransactionAnalysis] = None) -> RiskScoreResult:
    """Weighted five-category risk score for one intent.

    `factors` is a partial record (snake_case field names or the dashboard's
    camelCase aliases); absent fields use the RiskFactors defaults.
    """
    supplied = RiskFactors.normalize_partial(factors)
    if analysis is None:
        analysis = classify(intent)
    merged = derive_factors(intent, analysis, RiskFactors(**supplied))

    trail = _Trail()
    breakdown_scores: Tuple[int, ...] = (
        _contract_security(merged, trail),
        _transaction_specific(merged, trail),
        _user_trust(merged, trail),
        _external(merged, trail),
        _implementation(merged, trail),
    )
    total = sum(breakdown_scores)
    # the call shape itself sets a floor, e.g. an unlimited approval is never below HIGH
    level = _override(max_level(level_for_score(total), analysis.base_risk_level), merged)

    breakdown = RiskBreakdown(
        *breakdown_scores,
        risk_flags=tuple(trail.risk),
        protective_flags=tuple(trail.protective),
        suggested_mitigations=tuple(trail.mitigations),
    )
    return RiskScoreResult(score=total, level=level, breakdown=breakdown,
                           confidence=confidence_for(supplied))
