from __future__ import annotations

from dataclasses import dataclass, field, fields
from enum import Enum
from typing import Any, Dict, FrozenSet, Mapping, Optional, Tuple, Union


class TransactionType(str, Enum):
    UNKNOWN = "UNKNOWN"
    TRANSFER = "TRANSFER"
    APPROVAL = "APPROVAL"
    UNLIMITED_APPROVAL = "UNLIMITED_APPROVAL"
    SWAP = "SWAP"
    SWAP_ETH_FOR_TOKENS = "SWAP_ETH_FOR_TOKENS"
    SWAP_TOKENS_FOR_ETH = "SWAP_TOKENS_FOR_ETH"
    SWAP_TOKENS_FOR_TOKENS = "SWAP_TOKENS_FOR_TOKENS"
    NFT_TRANSFER = "NFT_TRANSFER"
    NFT_APPROVAL = "NFT_APPROVAL"
    ADD_LIQUIDITY = "ADD_LIQUIDITY"
    REMOVE_LIQUIDITY = "REMOVE_LIQUIDITY"
    LENDING = "LENDING"
    BORROWING = "BORROWING"
    CONTRACT_DEPLOYMENT = "CONTRACT_DEPLOYMENT"


SWAP_TYPES: FrozenSet[TransactionType] = frozenset({
    TransactionType.SWAP,
    TransactionType.SWAP_ETH_FOR_TOKENS,
    TransactionType.SWAP_TOKENS_FOR_ETH,
    TransactionType.SWAP_TOKENS_FOR_TOKENS,
})

APPROVAL_TYPES: FrozenSet[TransactionType] = frozenset({
    TransactionType.APPROVAL,
    TransactionType.UNLIMITED_APPROVAL,
})


class TransactionComplexity(str, Enum):
    SIMPLE = "SIMPLE"
    MEDIUM = "MEDIUM"
    COMPLEX = "COMPLEX"


class SecurityRiskLevel(str, Enum):
    """Ordered risk level: LOW < MEDIUM < HIGH < CRITICAL."""

    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"

    @property
    def rank(self) -> int:
        return _LEVEL_RANK[self]

    # str comparison would order the members alphabetically
    def __lt__(self, other):
        if not isinstance(other, SecurityRiskLevel):
            return NotImplemented
        return self.rank < other.rank

    def __le__(self, other):
        if not isinstance(other, SecurityRiskLevel):
            return NotImplemented
        return self.rank <= other.rank

    def __gt__(self, other):
        if not isinstance(other, SecurityRiskLevel):
            return NotImplemented
        return self.rank > other.rank

    def __ge__(self, other):
        if not isinstance(other, SecurityRiskLevel):
            return NotImplemented
        return self.rank >= other.rank


_LEVEL_RANK = {
    SecurityRiskLevel.LOW: 0,
    SecurityRiskLevel.MEDIUM: 1,
    SecurityRiskLevel.HIGH: 2,
    SecurityRiskLevel.CRITICAL: 3,
}


def max_level(a: SecurityRiskLevel, b: SecurityRiskLevel) -> SecurityRiskLevel:
    return a if a >= b else b


class ThreatLevel(str, Enum):
    SAFE = "SAFE"
    SUSPICIOUS = "SUSPICIOUS"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


THREAT_LEVEL_BY_RISK = {
    SecurityRiskLevel.LOW: ThreatLevel.SAFE,
    SecurityRiskLevel.MEDIUM: ThreatLevel.SUSPICIOUS,
    SecurityRiskLevel.HIGH: ThreatLevel.HIGH,
    SecurityRiskLevel.CRITICAL: ThreatLevel.CRITICAL,
}


class VerificationStatus(str, Enum):
    VERIFIED = "VERIFIED"
    UNVERIFIED = "UNVERIFIED"
    PARTIALLY_VERIFIED = "PARTIALLY_VERIFIED"
    UNKNOWN = "UNKNOWN"


class ContractAge(str, Enum):
    NEW = "NEW"                   # < 30 days
    RECENT = "RECENT"             # 1-6 months
    ESTABLISHED = "ESTABLISHED"   # 6-12 months
    MATURE = "MATURE"             # > 1 year
    UNKNOWN = "UNKNOWN"


# ------------------- intent -------------------

def _parse_wei(raw: Any) -> int:
    if raw is None or raw == "":
        return 0
    if isinstance(raw, bool):
        return int(raw)
    if isinstance(raw, int):
        return max(raw, 0)
    try:
        text = str(raw).strip()
        value = int(text, 16) if text.lower().startswith("0x") else int(text)
    except ValueError:
        return 0
    return max(value, 0)


@dataclass(frozen=True)
class TransactionIntent:
    to: Optional[str]
    data: str = "0x"
    value: int = 0
    from_address: Optional[str] = None
    chain_id: int = 1

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "TransactionIntent":
        """Build an intent from the dashboard JSON body (camelCase keys)."""
        chain_id = payload.get("chainId", payload.get("chain_id", 1))
        try:
            chain_id = int(chain_id) if chain_id is not None else 1
        except (TypeError, ValueError):
            chain_id = 1
        return cls(
            to=(payload.get("to") or None),
            data=payload.get("data") or "0x",
            value=_parse_wei(payload.get("value")),
            from_address=payload.get("from") or payload.get("from_address") or None,
            chain_id=chain_id,
        )

    @property
    def has_data(self) -> bool:
        return bool(self.data) and self.data.lower() not in ("0x", "0x0")

    def as_payload(self) -> Dict[str, Any]:
        return {
            "to": self.to,
            "data": self.data,
            "value": str(self.value),
            "from": self.from_address,
            "chainId": self.chain_id,
        }


# ------------------- classification details -------------------

def _compact(d: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in d.items() if v is not None}


@dataclass(frozen=True)
class NativeTransferDetails:
    eth_value: str

    def as_dict(self) -> Dict[str, Any]:
        return {"ethValue": self.eth_value}


@dataclass(frozen=True)
class TokenTransferDetails:
    token_address: Optional[str]
    recipient: str
    amount: int
    function_name: str
    sender: Optional[str] = None

    def as_dict(self) -> Dict[str, Any]:
        return _compact({
            "tokenAddress": self.token_address,
            "recipient": self.recipient,
            "sender": self.sender,
            "amount": str(self.amount),
            "humanReadableFunctionName": self.function_name,
        })


@dataclass(frozen=True)
class ApprovalDetails:
    token_address: Optional[str]
    spender_address: str
    amount: int
    is_unlimited: bool
    function_name: str = "approve"

    def as_dict(self) -> Dict[str, Any]:
        return _compact({
            "tokenAddress": self.token_address,
            "spenderAddress": self.spender_address,
            "isUnlimited": self.is_unlimited,
            "amount": str(self.amount),
            "humanReadableFunctionName": self.function_name,
        })


@dataclass(frozen=True)
class NFTTransferDetails:
    token_address: Optional[str]
    function_name: str = "safeTransferFrom"

    def as_dict(self) -> Dict[str, Any]:
        return _compact({
            "tokenAddress": self.token_address,
            "humanReadableFunctionName": self.function_name,
        })


@dataclass(frozen=True)
class NFTApprovalDetails:
    token_address: Optional[str]
    operator_address: str
    approved: bool
    function_name: str = "setApprovalForAll"

    def as_dict(self) -> Dict[str, Any]:
        return _compact({
            "tokenAddress": self.token_address,
            "spenderAddress": self.operator_address,
            "isUnlimited": self.approved,
            "humanReadableFunctionName": self.function_name,
        })


@dataclass(frozen=True)
class ProtocolCallDetails:
    protocol: str
    function_name: str
    eth_value: Optional[str] = None
    amount_out_min: Optional[int] = None

    def as_dict(self) -> Dict[str, Any]:
        return _compact({
            "protocol": self.protocol,
            "humanReadableFunctionName": self.function_name,
            "ethValue": self.eth_value,
        })


@dataclass(frozen=True)
class DeploymentDetails:
    data_size: int

    def as_dict(self) -> Dict[str, Any]:
        return {"dataSize": self.data_size}


@dataclass(frozen=True)
class RawCallDetails:
    data_size: int = 0
    selector: Optional[str] = None
    function_name: Optional[str] = None

    def as_dict(self) -> Dict[str, Any]:
        return _compact({
            "dataSize": self.data_size,
            "selector": self.selector,
            "humanReadableFunctionName": self.function_name,
        })


TransactionDetails = Union[
    NativeTransferDetails,
    TokenTransferDetails,
    ApprovalDetails,
    NFTTransferDetails,
    NFTApprovalDetails,
    ProtocolCallDetails,
    DeploymentDetails,
    RawCallDetails,
]


@dataclass(frozen=True)
class TransactionAnalysis:
    type: TransactionType
    complexity: TransactionComplexity
    base_risk_level: SecurityRiskLevel
    description: str
    details: TransactionDetails = field(default_factory=RawCallDetails)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type.value,
            "complexity": self.complexity.value,
            "baseRiskLevel": self.base_risk_level.value,
            "description": self.description,
            "details": self.details.as_dict(),
        }


# ------------------- risk factors -------------------

@dataclass(frozen=True)
class RiskFactors:
    # contract
    contract_verified: VerificationStatus = VerificationStatus.UNKNOWN
    contract_age: ContractAge = ContractAge.UNKNOWN
    contract_audited: bool = False
    is_known_scammer: bool = False
    scam_similarity: float = 0.0
    # transaction
    unlimited_approval: bool = False
    high_value: bool = False
    complex_method: bool = False
    interacts_with_blacklisted: bool = False
    # user
    unusual_for_user: bool = False
    interacted_before: bool = False
    whitelisted_by_user: bool = False
    # external
    recently_deployed: bool = False
    copycat: bool = False
    has_security_incidents: bool = False
    # swap execution
    high_slippage: bool = False
    vulnerable_to_mev: bool = False
    # implementation
    reentrancy_risk: bool = False
    decentralization_score: float = 0.5
    has_admin_functions: bool = False

    @classmethod
    def field_names(cls) -> Tuple[str, ...]:
        return tuple(f.name for f in fields(cls))

    @classmethod
    def normalize_partial(cls, partial: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
        """Map camelCase aliases to field names and coerce enum values.

        Unknown keys, non-boolean flags and ratios outside [0, 1] raise
        ValueError; None values are treated as absent.
        """
        if not partial:
            return {}
        known = set(cls.field_names())
        out: Dict[str, Any] = {}
        for key, value in partial.items():
            name = FACTOR_ALIASES.get(key, key)
            if name not in known:
                raise ValueError(f"Unknown risk factor: {key}")
            if value is None:
                continue
            if name == "contract_verified":
                value = VerificationStatus(value)
            elif name == "contract_age":
                value = ContractAge(value)
            elif name in ("scam_similarity", "decentralization_score"):
                if isinstance(value, bool) or not isinstance(value, (int, float)) or not 0 <= value <= 1:
                    raise ValueError(f"Risk factor {key} must be a number between 0 and 1, got {value!r}")
                value = float(value)
            elif not isinstance(value, bool):
                raise ValueError(f"Risk factor {key} must be true or false, got {value!r}")
            out[name] = value
        return out


FACTOR_ALIASES = {
    "contractVerified": "contract_verified",
    "contractAge": "contract_age",
    "contractAuditStatus": "contract_audited",
    "isKnownScammer": "is_known_scammer",
    "similarToScam": "scam_similarity",
    "unlimitedApproval": "unlimited_approval",
    "highValue": "high_value",
    "complexMethod": "complex_method",
    "interactsWithBlacklisted": "interacts_with_blacklisted",
    "unusualForUser": "unusual_for_user",
    "interactedBefore": "interacted_before",
    "whitelistedByUser": "whitelisted_by_user",
    "recentlyDeployed": "recently_deployed",
    "copycat": "copycat",
    "hasSecurityIncidents": "has_security_incidents",
    "highSlippage": "high_slippage",
    "vulnerableToMEV": "vulnerable_to_mev",
    "reentrancyRisk": "reentrancy_risk",
    "decentralizationScore": "decentralization_score",
    "hasAdminFunctions": "has_admin_functions",
}


# ------------------- scoring -------------------

@dataclass(frozen=True)
class RiskBreakdown:
    contract_security: int
    transaction_specific: int
    user_trust: int
    external_factors: int
    implementation: int
    risk_flags: Tuple[str, ...] = ()
    protective_flags: Tuple[str, ...] = ()
    suggested_mitigations: Tuple[str, ...] = ()

    @property
    def category_total(self) -> int:
        return (self.contract_security + self.transaction_specific + self.user_trust
                + self.external_factors + self.implementation)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "categoryScores": {
                "contractSecurity": self.contract_security,
                "transactionSpecific": self.transaction_specific,
                "userTrust": self.user_trust,
                "externalFactors": self.external_factors,
                "implementation": self.implementation,
            },
            "riskFlags": list(self.risk_flags),
            "protectiveFlags": list(self.protective_flags),
            "suggestedMitigations": list(self.suggested_mitigations),
        }


@dataclass(frozen=True)
class RiskScoreResult:
    score: int
    level: SecurityRiskLevel
    breakdown: RiskBreakdown
    confidence: float

    def as_dict(self) -> Dict[str, Any]:
        return {
            "score": self.score,
            "level": self.level.value,
            "breakdown": self.breakdown.as_dict(),
            "confidence": self.confidence,
        }


# ------------------- recommendations -------------------

class RecommendationType(str, Enum):
    SECURITY = "SECURITY"
    PRIVACY = "PRIVACY"
    GAS_OPTIMIZATION = "GAS_OPTIMIZATION"
    ALTERNATIVE_OPTION = "ALTERNATIVE_OPTION"
    BEST_PRACTICE = "BEST_PRACTICE"


class ActionType(str, Enum):
    REPLACE_TX = "REPLACE_TX"
    MODIFY_PARAM = "MODIFY_PARAM"
    USE_DIFFERENT_CONTRACT = "USE_DIFFERENT_CONTRACT"
    EXTERNAL_TOOL = "EXTERNAL_TOOL"


class Priority(str, Enum):
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @property
    def sort_key(self) -> int:
        return _PRIORITY_ORDER[self]


_PRIORITY_ORDER = {
    Priority.CRITICAL: 0,
    Priority.HIGH: 1,
    Priority.MEDIUM: 2,
    Priority.LOW: 3,
}


@dataclass(frozen=True)
class RecommendationAction:
    type: ActionType
    description: str
    data: Optional[Mapping[str, Any]] = None

    def as_dict(self) -> Dict[str, Any]:
        return _compact({
            "type": self.type.value,
            "description": self.description,
            "data": dict(self.data) if self.data is not None else None,
        })


@dataclass(frozen=True)
class Recommendation:
    type: RecommendationType
    title: str
    description: str
    actionable: bool
    priority: Priority
    applies_to: FrozenSet[TransactionType]
    action: Optional[RecommendationAction] = None

    def as_dict(self) -> Dict[str, Any]:
        return _compact({
            "type": self.type.value,
            "title": self.title,
            "description": self.description,
            "actionable": self.actionable,
            "action": self.action.as_dict() if self.action else None,
            "priority": self.priority.value,
            "appliesTo": sorted(t.value for t in self.applies_to),
        })


# ------------------- reputation / signatures -------------------

@dataclass(frozen=True)
class AddressReputation:
    is_scam: bool
    confidence: float
    reason: str
    risk_level: int

    def as_dict(self) -> Dict[str, Any]:
        return {
            "isScam": self.is_scam,
            "confidence": self.confidence,
            "reason": self.reason,
            "riskLevel": self.risk_level,
        }


@dataclass(frozen=True)
class SignatureMatch:
    pattern: str
    type: str
    description: str
    severity: int

    def as_dict(self) -> Dict[str, Any]:
        return {
            "pattern": self.pattern,
            "type": self.type,
            "description": self.description,
            "severity": self.severity,
        }
