import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Tuple

from .decoder import classify
from .factors import FACTOR_TIMEOUT_S, ChainDataOracle, collect_risk_factors, intent_factors
from .recommendations import recommend
from .reputation import ReputationOracle, reputation_factors, safe_check_address
from .scoring import score
from .types import (
    AddressReputation,
    ApprovalDetails,
    NFTApprovalDetails,
    Recommendation,
    RiskFactors,
    RiskScoreResult,
    SecurityRiskLevel,
    SignatureMatch,
    SWAP_TYPES,
    THREAT_LEVEL_BY_RISK,
    TokenTransferDetails,
    TransactionAnalysis,
    TransactionIntent,
    TransactionType,
)

logger = logging.getLogger(__name__)

MAX_MITIGATIONS = 5
VERIFY_CONTRACT = "Verify the contract address on a trusted block explorer"
# reputations at or above this confidence are surfaced to the dashboard
SCAM_DETAILS_MIN_CONFIDENCE = 0.4

ASSESSMENT_BY_LEVEL = {
    SecurityRiskLevel.LOW: "SAFE",
    SecurityRiskLevel.MEDIUM: "SUSPICIOUS",
    SecurityRiskLevel.HIGH: "DANGEROUS",
    SecurityRiskLevel.CRITICAL: "DANGEROUS",
}


@dataclass(frozen=True)
class AnalysisBundle:
    intent: TransactionIntent
    analysis: TransactionAnalysis
    destination: AddressReputation
    counterparty: Optional[AddressReputation]
    factors: Mapping[str, Any]
    risk: RiskScoreResult
    recommendations: Tuple[Recommendation, ...]


def escalate(factors: Dict[str, Any], findings: Mapping[str, Any]) -> None:
    """Fold reputation findings into `factors`; a finding never lowers a value."""
    for name, value in findings.items():
        if name == "scam_similarity":
            factors[name] = max(factors.get(name, 0.0), value)
        else:
            factors[name] = bool(factors.get(name)) or value


def counterparty_address(analysis: TransactionAnalysis) -> Optional[str]:
    d = analysis.details
    if isinstance(d, ApprovalDetails):
        return d.spender_address
    if isinstance(d, NFTApprovalDetails):
        return d.operator_address
    if isinstance(d, TokenTransferDetails):
        return d.recipient
    return None


async def analyze_transaction(intent: TransactionIntent,
                              supplied_factors: Optional[Mapping[str, Any]] = None,
                              *,
                              oracle: Optional[ChainDataOracle] = None,
                              reputation: Optional[ReputationOracle] = None,
                              timeout: float = FACTOR_TIMEOUT_S) -> AnalysisBundle:
    """Full pipeline: classify, reputation, factor collection, score, recommend.

    Observations are layered with increasing precedence: decoded call,
    chain data from `oracle`, then `supplied_factors`. Reputation findings
    only escalate: a caller cannot clear a scam flag.
    """
    analysis = classify(intent)

    destination = safe_check_address(reputation, intent.to)
    other = counterparty_address(analysis)
    counterparty = safe_check_address(reputation, other) if other else None

    if oracle is not None:
        observed = await collect_risk_factors(intent, analysis, oracle, timeout=timeout)
    else:
        observed = intent_factors(analysis)

    factors: Dict[str, Any] = dict(observed)
    factors.update(RiskFactors.normalize_partial(supplied_factors))
    escalate(factors, reputation_factors(destination, counterparty))

    risk = score(intent, factors, analysis)
    recs = tuple(recommend(intent, analysis, risk))
    logger.info("analyzed tx to=%s type=%s score=%s level=%s",
                intent.to, analysis.type.value, risk.score, risk.level.value)
    return AnalysisBundle(intent=intent, analysis=analysis, destination=destination,
                          counterparty=counterparty, factors=factors, risk=risk,
                          recommendations=recs)


# ------------------- dashboard report -------------------

def signature_matches(bundle: AnalysisBundle) -> List[SignatureMatch]:
    a, risk = bundle.analysis, bundle.risk
    matches: List[SignatureMatch] = []
    if a.type == TransactionType.UNLIMITED_APPROVAL:
        matches.append(SignatureMatch("unlimited_approval", "APPROVAL_PHISHING",
                                      "Requesting unlimited token approval", 8))
    elif a.type == TransactionType.APPROVAL:
        matches.append(SignatureMatch("token_approval", "APPROVAL", "Token approval", 5))
    elif a.type == TransactionType.NFT_APPROVAL and isinstance(a.details, NFTApprovalDetails) and a.details.approved:
        matches.append(SignatureMatch("nft_approval_for_all", "APPROVAL_PHISHING",
                                      "Operator approval for an entire NFT collection", 7))
    elif a.type in SWAP_TYPES:
        matches.append(SignatureMatch("swap_transaction", "SWAP_RISK",
                                      "Token swap with potential slippage", 5))
    elif a.type == TransactionType.CONTRACT_DEPLOYMENT:
        matches.append(SignatureMatch("contract_deployment", "CONTRACT_DEPLOYMENT",
                                      "New contract deployment", 6))

    if "High value transaction" in risk.breakdown.risk_flags:
        matches.append(SignatureMatch("high_value_transfer", "SUSPICIOUS_TRANSFER", "High value transfer", 6))

    for rep in (bundle.destination, bundle.counterparty):
        if rep is not None and rep.is_scam:
            matches.append(SignatureMatch("known_scam_address", "KNOWN_SCAM", rep.reason, 10))
            break
    return matches


def build_reasoning(bundle: AnalysisBundle) -> str:
    t, level = bundle.analysis.type, bundle.risk.level
    if bundle.destination.is_scam or (bundle.counterparty and bundle.counterparty.is_scam):
        return "This transaction involves an address flagged as malicious. Do not proceed."
    if t == TransactionType.UNLIMITED_APPROVAL:
        return ("This transaction contains an unlimited token approval which gives the recipient contract "
                "complete control over your tokens. This is a common pattern in phishing attacks.")
    if t == TransactionType.APPROVAL:
        return ("This transaction approves token spending to a third-party contract. While the approval "
                "amount is limited, verify the contract address carefully.")
    if t in SWAP_TYPES:
        return ("This appears to be a token swap transaction, which may be subject to front-running or "
                "MEV attacks. Check slippage settings.")
    if "High value transaction" in bundle.risk.breakdown.risk_flags:
        return "This is a high-value transaction. Verify the recipient address carefully."
    if level != SecurityRiskLevel.LOW:
        return "This transaction contains suspicious patterns. Proceed with caution."
    return "This transaction appears to use standard parameters and doesn't match known threat patterns."


def mitigation_suggestions(risk: RiskScoreResult) -> List[str]:
    out = [VERIFY_CONTRACT]
    for m in risk.breakdown.suggested_mitigations:
        if m not in out:
            out.append(m)
    return out[:MAX_MITIGATIONS]


def transaction_details(bundle: AnalysisBundle) -> Dict[str, Any]:
    d = bundle.analysis.details
    out: Dict[str, Any] = {}
    if isinstance(d, ApprovalDetails):
        out.update(spender=d.spender_address, approvalAmount=str(d.amount), tokenAddress=d.token_address)
    elif isinstance(d, NFTApprovalDetails):
        out.update(spender=d.operator_address, tokenAddress=d.token_address)
    elif isinstance(d, TokenTransferDetails):
        out.update(recipient=d.recipient, tokenAddress=d.token_address)
    elif bundle.analysis.type == TransactionType.TRANSFER:
        out["recipient"] = bundle.intent.to

    rep = bundle.destination
    if rep.is_scam or rep.confidence >= SCAM_DETAILS_MIN_CONFIDENCE:
        out["scamDetails"] = rep.as_dict()
    return {k: v for k, v in out.items() if v is not None}


def build_threat_report(bundle: AnalysisBundle) -> Dict[str, Any]:
    risk = bundle.risk
    return {
        "threatLevel": THREAT_LEVEL_BY_RISK[risk.level].value,
        "confidence": round(risk.confidence, 4),
        "mitigationSuggestions": mitigation_suggestions(risk),
        "details": {
            "mlScore": risk.score / 100,
            "signatureMatches": [m.as_dict() for m in signature_matches(bundle)],
            "similarTransactions": [],
            "transactionType": bundle.analysis.type.value,
            "transactionDetails": transaction_details(bundle),
            "llmAnalysis": {
                "assessment": ASSESSMENT_BY_LEVEL[risk.level],
                "reasoning": build_reasoning(bundle),
            },
        },
        "classification": bundle.analysis.as_dict(),
        "riskScore": risk.as_dict(),
        "recommendations": [r.as_dict() for r in bundle.recommendations],
    }


def fallback_report(error: str) -> Dict[str, Any]:
    """Verdict returned when the analysis itself crashed."""
    return {
        "error": error or "Unknown error",
        "threatLevel": "SUSPICIOUS",
        "confidence": 0.5,
        "mitigationSuggestions": [
            "API error occurred - proceed with caution",
            "Verify the contract address on Etherscan before proceeding",
            "Consider using limited approval amounts for token contracts",
        ],
        "details": {
            "mlScore": 0.5,
            "signatureMatches": [],
            "similarTransactions": [],
            "transactionType": TransactionType.UNKNOWN.value,
            "transactionDetails": {},
            "llmAnalysis": {
                "assessment": "SUSPICIOUS",
                "reasoning": f"Unable to analyze the transaction completely. Error: {error or 'Unknown error'}",
            },
        },
    }
