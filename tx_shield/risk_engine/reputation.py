import logging
import re
from typing import Any, Dict, Optional, Protocol

from ..utils.address import is_zero_address, normalize_address
from .types import AddressReputation

logger = logging.getLogger(__name__)

KNOWN_SCAM_ADDRESSES = frozenset({
    "0x1234567890123456789012345678901234567890",
    "0xd3a78da11f8ae5a70eb301e97ae9bc315c05c733",
    "0x72c9c4e04882bb2a4154d0bd21bdb8dbad09dca3",
    "0x4648a43b2c14da09fdf38bb7cf8ff5ba58f95b9f",
})

SUSPICIOUS_ADDRESSES = frozenset({
    "0xfff9976782d46cc05630d1f6ebab18b2324d6b14",
    "0xc532a74256d3db42d0bf7a0400fefdbad7694008",
    "0x881d40237659c251811cec9c364ef91dc08d300c",
})

KNOWN_UTILITY_ADDRESSES = frozenset({
    "0x7a250d5630b4cf539739df2c5dacb4c659f2488d",  # Uniswap V2 router
    "0xe592427a0aece92de3edee1f18e0157c05861564",  # Uniswap V3 router
    "0x68b3465833fb72a70ecdf485e0e4c7bd8665fc45",  # Uniswap universal router
    "0xd9e1ce17f2641f24ae83637ab66a2cca9c378b9f",  # SushiSwap router
    "0xdef1c0ded9bec7f1a1670819833240f027b25eff",  # 0x exchange proxy
    "0x1111111254fb6c44bac0bed2854e76f90643097d",  # 1inch router
    "0x7d2768de32b0b80b7a3454c06bdac94a69ddc7a9",  # Aave V2 pool
    "0x3d9819210a31b4961b30ef54be2aed79b9c9cd3b",  # Compound comptroller
})

REPEATED_CHARS = re.compile(r"([0-9a-f])\1{5,}")
LEET_PATTERNS = ("dead", "beef", "bad", "1337", "face", "babe", "f00d")

DEFAULT_REPUTATION = AddressReputation(
    is_scam=False, confidence=0.2, risk_level=2,
    reason="No known issues detected, but exercise caution with unfamiliar addresses",
)

# reputation risk level from which the address feeds scam_similarity
SUSPICIOUS_LEVEL = 5


class ReputationOracle(Protocol):
    def check(self, address: str) -> AddressReputation: ...


def check_address(address: str | None) -> AddressReputation:
    if is_zero_address(address):
        return AddressReputation(is_scam=False, confidence=0.0, risk_level=0,
                                 reason="Empty or zero address")

    addr = normalize_address(address)
    if addr in KNOWN_SCAM_ADDRESSES:
        return AddressReputation(is_scam=True, confidence=0.9, risk_level=9,
                                 reason="Known malicious address identified in security database")
    if addr in SUSPICIOUS_ADDRESSES:
        return AddressReputation(is_scam=False, confidence=0.6, risk_level=6,
                                 reason="Address has suspicious activity patterns")
    if addr in KNOWN_UTILITY_ADDRESSES:
        return AddressReputation(is_scam=False, confidence=0.1, risk_level=1,
                                 reason="Known legitimate protocol contract")

    body = addr[2:]
    if REPEATED_CHARS.search(body):
        return AddressReputation(is_scam=False, confidence=0.5, risk_level=5,
                                 reason="Address contains suspicious repeated characters")
    if any(p in body for p in LEET_PATTERNS):
        return AddressReputation(is_scam=False, confidence=0.4, risk_level=4,
                                 reason="Contains common leet-speak patterns sometimes used in scams")
    return DEFAULT_REPUTATION


class StaticReputationOracle:
    """Placeholder oracle backed by the static lists above."""

    def check(self, address: str) -> AddressReputation:
        return check_address(address)


def safe_check_address(oracle: Optional[ReputationOracle], address: str | None) -> AddressReputation:
    if oracle is None:
        oracle = StaticReputationOracle()
    try:
        return oracle.check(address or "")
    except Exception as e:
        logger.warning("reputation check failed for %s: %s", address, e)
        return DEFAULT_REPUTATION


def reputation_factors(destination: AddressReputation,
                       counterparty: Optional[AddressReputation] = None) -> Dict[str, Any]:
    """Translate reputations into partial risk factors for the scorer.

    The destination feeds is_known_scammer / scam_similarity; a scam spender or
    operator marks the call as interacting with a blacklisted address.
    """
    factors: Dict[str, Any] = {}
    if destination.is_scam:
        factors["is_known_scammer"] = True
    elif destination.risk_level >= SUSPICIOUS_LEVEL:
        factors["scam_similarity"] = destination.risk_level / 10
    if counterparty is not None and counterparty.is_scam:
        factors["interacts_with_blacklisted"] = True
    return factors
