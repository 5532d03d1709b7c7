import asyncio
import logging
import os
import time
from typing import Any, Dict, Optional, Protocol

from ..sources.explorer import get_block_timestamp, get_code, get_contract_creation, get_source_code
from .types import (
    ContractAge,
    ProtocolCallDetails,
    SWAP_TYPES,
    TransactionAnalysis,
    TransactionIntent,
    TransactionType,
    VerificationStatus,
)

logger = logging.getLogger(__name__)

FACTOR_TIMEOUT_S = float(os.getenv("FACTOR_TIMEOUT_S", "5"))

DAY_S = 86400
NEW_DAYS = 30
RECENT_DAYS = 180
ESTABLISHED_DAYS = 365


class ChainDataOracle(Protocol):
    async def is_contract(self, chain_id: int, address: str) -> bool: ...

    async def verification_status(self, chain_id: int, address: str) -> VerificationStatus: ...

    async def deployed_at(self, chain_id: int, address: str) -> Optional[int]:
        """Unix timestamp of the contract creation, None if unknown."""
        ...


class ExplorerOracle:
    """Etherscan v2 backed oracle; every lookup is routed by `chain_id`."""

    async def is_contract(self, chain_id: int, address: str) -> bool:
        code = await get_code(chain_id, address)
        return code not in ("0x", "0x0", "")

    async def verification_status(self, chain_id: int, address: str) -> VerificationStatus:
        info = await get_source_code(chain_id, address)
        if not info:
            return VerificationStatus.UNKNOWN
        if info.get("SourceCode"):
            # proxies whose implementation is not verified only count as partial
            if str(info.get("Proxy")) == "1" and not info.get("Implementation"):
                return VerificationStatus.PARTIALLY_VERIFIED
            return VerificationStatus.VERIFIED
        return VerificationStatus.UNVERIFIED

    async def deployed_at(self, chain_id: int, address: str) -> Optional[int]:
        info = await get_contract_creation(chain_id, address)
        if info.get("timestamp"):
            return int(info["timestamp"])
        if info.get("blockNumber"):
            return await get_block_timestamp(chain_id, int(info["blockNumber"]))
        return None


def age_bucket(deployed_ts: int, now: float) -> ContractAge:
    days = (now - deployed_ts) / DAY_S
    if days < NEW_DAYS:
        return ContractAge.NEW
    if days < RECENT_DAYS:
        return ContractAge.RECENT
    if days < ESTABLISHED_DAYS:
        return ContractAge.ESTABLISHED
    return ContractAge.MATURE


def intent_factors(analysis: TransactionAnalysis) -> Dict[str, Any]:
    """Factors observable from the decoded call alone (no I/O)."""
    factors: Dict[str, Any] = {}
    if analysis.type in SWAP_TYPES:
        factors["vulnerable_to_mev"] = True
        details = analysis.details
        if isinstance(details, ProtocolCallDetails) and details.amount_out_min == 0:
            factors["high_slippage"] = True
    return factors


async def _guarded(name: str, coro, timeout: float):
    try:
        return await asyncio.wait_for(coro, timeout)
    except asyncio.TimeoutError:
        logger.warning("factor lookup %s timed out after %ss", name, timeout)
    except Exception as e:
        logger.warning("factor lookup %s failed: %s", name, e)
    return None


async def collect_risk_factors(intent: TransactionIntent,
                               analysis: TransactionAnalysis,
                               oracle: ChainDataOracle,
                               timeout: float = FACTOR_TIMEOUT_S,
                               now: Optional[float] = None) -> Dict[str, Any]:
    """Partial risk factors for `intent`, never raising.

    Lookups that fail or time out are left out so the scorer falls back to
    the defaults for those fields.
    """
    factors = intent_factors(analysis)
    if not intent.to or analysis.type == TransactionType.CONTRACT_DEPLOYMENT:
        return factors
    if analysis.type == TransactionType.TRANSFER and not intent.has_data:
        return factors  # plain native transfer, nothing to look up

    is_contract = await _guarded("is_contract", oracle.is_contract(intent.chain_id, intent.to), timeout)
    if is_contract is False:
        return factors

    status, deployed = await asyncio.gather(
        _guarded("verification", oracle.verification_status(intent.chain_id, intent.to), timeout),
        _guarded("deployment", oracle.deployed_at(intent.chain_id, intent.to), timeout),
    )
    if status is not None:
        factors["contract_verified"] = status
    if deployed is not None:
        age = age_bucket(deployed, time.time() if now is None else now)
        factors["contract_age"] = age
        if age == ContractAge.NEW:
            factors["recently_deployed"] = True
    return factors
