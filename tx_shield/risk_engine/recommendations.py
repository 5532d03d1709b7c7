import logging
from dataclasses import replace
from types import MappingProxyType
from typing import Dict, List, Optional, Tuple

from eth_abi import encode

from ..utils.address import hex_to_bytes
from .decoder import SELECTORS, decode_static_args
from .types import (
    APPROVAL_TYPES,
    ActionType,
    Priority,
    Recommendation,
    RecommendationAction,
    RecommendationType,
    RiskScoreResult,
    SecurityRiskLevel,
    SWAP_TYPES,
    TransactionAnalysis,
    TransactionIntent,
    TransactionType,
)
from .weights import MAX_SLIPPAGE_PERCENT, SAFE_APPROVAL_WEI

logger = logging.getLogger(__name__)

T = TransactionType

LIMIT_APPROVAL_TITLE = "Limit Token Approval Amount"
MAX_SLIPPAGE_TITLE = "Set Maximum Slippage"
HIGH_RISK_TITLE = "High Risk Transaction Alert"

APPROVE_SELECTOR = "095ea7b3"

CATALOG: Tuple[Recommendation, ...] = (
    Recommendation(
        type=RecommendationType.SECURITY,
        title=LIMIT_APPROVAL_TITLE,
        description="Instead of granting unlimited approval, specify an exact amount needed for this transaction.",
        actionable=True,
        action=RecommendationAction(ActionType.REPLACE_TX, "Replace with limited approval"),
        priority=Priority.CRITICAL,
        applies_to=frozenset({T.UNLIMITED_APPROVAL}),
    ),
    Recommendation(
        type=RecommendationType.SECURITY,
        title="Set Token Approval Deadline",
        description="Add an expiration time to your approval to automatically revoke access after a certain period.",
        actionable=True,
        action=RecommendationAction(ActionType.REPLACE_TX, "Add approval deadline"),
        priority=Priority.HIGH,
        applies_to=APPROVAL_TYPES,
    ),
    Recommendation(
        type=RecommendationType.BEST_PRACTICE,
        title="Revoke Unused Approvals",
        description="You have previous approvals for this token. Consider revoking unused approvals to improve security.",
        actionable=True,
        action=RecommendationAction(ActionType.EXTERNAL_TOOL, "Use Revoke.cash"),
        priority=Priority.MEDIUM,
        applies_to=APPROVAL_TYPES,
    ),
    Recommendation(
        type=RecommendationType.SECURITY,
        title=MAX_SLIPPAGE_TITLE,
        description="Limit potential price impact by setting a maximum slippage tolerance (e.g., 1%).",
        actionable=True,
        action=RecommendationAction(ActionType.MODIFY_PARAM, "Set slippage to 1%"),
        priority=Priority.HIGH,
        applies_to=SWAP_TYPES,
    ),
    Recommendation(
        type=RecommendationType.SECURITY,
        title="Set Minimum Output Amount",
        description="Specify a minimum amount of tokens to receive to protect against front-running.",
        actionable=True,
        action=RecommendationAction(ActionType.MODIFY_PARAM, "Set minimum output"),
        priority=Priority.HIGH,
        applies_to=SWAP_TYPES,
    ),
    Recommendation(
        type=RecommendationType.PRIVACY,
        title="Use Private Transaction",
        description="Send your swap through a private transaction service to prevent front-running.",
        actionable=True,
        action=RecommendationAction(ActionType.USE_DIFFERENT_CONTRACT, "Use TX Shield private transaction"),
        priority=Priority.MEDIUM,
        applies_to=SWAP_TYPES,
    ),
    Recommendation(
        type=RecommendationType.GAS_OPTIMIZATION,
        title="Optimize Gas Price",
        description="Current gas price is higher than necessary. You can save by waiting or using a lower gas price.",
        actionable=True,
        action=RecommendationAction(ActionType.MODIFY_PARAM, "Use optimal gas price"),
        priority=Priority.LOW,
        applies_to=frozenset({T.SWAP, T.TRANSFER, T.APPROVAL, T.UNLIMITED_APPROVAL}),
    ),
    Recommendation(
        type=RecommendationType.SECURITY,
        title="Verify Recipient Address",
        description="Double-check the recipient address before sending to avoid irreversible errors.",
        actionable=False,
        priority=Priority.HIGH,
        applies_to=frozenset({T.TRANSFER}),
    ),
    Recommendation(
        type=RecommendationType.BEST_PRACTICE,
        title="Send Test Transaction First",
        description="For large transfers, consider sending a small amount first to verify the recipient.",
        actionable=True,
        action=RecommendationAction(ActionType.REPLACE_TX, "Create test transaction"),
        priority=Priority.MEDIUM,
        applies_to=frozenset({T.TRANSFER}),
    ),
    Recommendation(
        type=RecommendationType.SECURITY,
        title="Limit NFT Approvals",
        description="Be cautious when approving an operator for all your NFTs. Consider using individual approvals instead.",
        actionable=False,
        priority=Priority.HIGH,
        applies_to=frozenset({T.NFT_APPROVAL}),
    ),
    Recommendation(
        type=RecommendationType.SECURITY,
        title="Understand Impermanent Loss",
        description="Adding liquidity exposes you to impermanent loss. Make sure you understand the risks.",
        actionable=False,
        priority=Priority.MEDIUM,
        applies_to=frozenset({T.ADD_LIQUIDITY}),
    ),
    Recommendation(
        type=RecommendationType.SECURITY,
        title="Use TX Shield Secure Execution",
        description="Execute through TX Shield's secure contract for additional protection against scams and exploits.",
        actionable=True,
        action=RecommendationAction(ActionType.USE_DIFFERENT_CONTRACT, "Execute through TX Shield"),
        priority=Priority.MEDIUM,
        applies_to=APPROVAL_TYPES | SWAP_TYPES,
    ),
)


def _build_index() -> "MappingProxyType[TransactionType, Tuple[Recommendation, ...]]":
    index: Dict[TransactionType, List[Recommendation]] = {t: [] for t in TransactionType}
    for rec in CATALOG:
        for t in rec.applies_to:
            index[t].append(rec)
    return MappingProxyType({t: tuple(recs) for t, recs in index.items()})


CATALOG_BY_TYPE = _build_index()

# risk flags that a dedicated catalog entry already answers
_COVERED_FLAG_MARKERS = ("unlimited approval", "unlimited token approval")


def _covered(flag: str) -> bool:
    low = flag.lower()
    return any(m in low for m in _COVERED_FLAG_MARKERS)


def _mentioned(text: str, recs: List[Recommendation]) -> bool:
    low = text.lower()
    return any(low in r.title.lower() or low in r.description.lower() for r in recs)


def _risk_driven(tx_type: TransactionType, risk: RiskScoreResult,
                 recs: List[Recommendation]) -> List[Recommendation]:
    scope = frozenset({tx_type})
    extra = [Recommendation(
        type=RecommendationType.SECURITY,
        title=HIGH_RISK_TITLE,
        description=(f"This transaction has been identified as {risk.level.value.lower()} risk. "
                     "Review carefully before proceeding."),
        actionable=False,
        priority=Priority.CRITICAL,
        applies_to=scope,
    )]
    for flag in risk.breakdown.risk_flags:
        if _covered(flag):
            continue
        extra.append(Recommendation(
            type=RecommendationType.SECURITY,
            title=f"Risk: {flag}",
            description="This specific risk was detected in your transaction.",
            actionable=False,
            priority=Priority.HIGH,
            applies_to=scope,
        ))
    for mitigation in risk.breakdown.suggested_mitigations:
        if _mentioned(mitigation, recs + extra):
            continue
        extra.append(Recommendation(
            type=RecommendationType.SECURITY,
            title=f"Recommendation: {mitigation}",
            description=mitigation,
            actionable=False,
            priority=Priority.HIGH,
            applies_to=scope,
        ))
    return extra


def limited_approval_data(intent: TransactionIntent, amount: int = SAFE_APPROVAL_WEI) -> dict:
    """Replacement transaction approving `amount` to the same spender."""
    payload = hex_to_bytes(intent.data)
    spender, _ = decode_static_args(SELECTORS[APPROVE_SELECTOR].abi, payload[4:])
    data = "0x" + APPROVE_SELECTOR + encode(["address", "uint256"], [spender, amount]).hex()
    return {**intent.as_payload(), "data": data}


def _with_action_data(rec: Recommendation, data: dict) -> Recommendation:
    return replace(rec, action=replace(rec.action, data=MappingProxyType(data)))


def _enrich(rec: Recommendation, intent: TransactionIntent, analysis: TransactionAnalysis) -> Recommendation:
    if rec.action is None:
        return rec
    if analysis.type == T.UNLIMITED_APPROVAL and rec.title == LIMIT_APPROVAL_TITLE:
        try:
            return _with_action_data(rec, limited_approval_data(intent))
        except Exception as e:
            logger.warning("could not build limited approval for %s: %s", intent.to, e)
            return rec
    if analysis.type in SWAP_TYPES and rec.title == MAX_SLIPPAGE_TITLE:
        return _with_action_data(rec, {
            "slippagePercentage": MAX_SLIPPAGE_PERCENT,
            "description": f"Set maximum slippage to {MAX_SLIPPAGE_PERCENT:g}%",
        })
    return rec


def recommend(intent: TransactionIntent, analysis: TransactionAnalysis,
              risk: Optional[RiskScoreResult] = None) -> List[Recommendation]:
    recs = list(CATALOG_BY_TYPE[analysis.type])
    if risk is not None and risk.level >= SecurityRiskLevel.HIGH:
        recs.extend(_risk_driven(analysis.type, risk, recs))

    recs = [_enrich(r, intent, analysis) for r in recs]

    seen = set()
    unique: List[Recommendation] = []
    for r in recs:
        if r.title in seen:
            continue
        seen.add(r.title)
        unique.append(r)
    # sorted() is stable, ties keep catalog order
    return sorted(unique, key=lambda r: r.priority.sort_key)
