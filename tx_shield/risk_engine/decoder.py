import logging
from dataclasses import dataclass
from types import MappingProxyType
from typing import Callable, Dict, Optional, Tuple

from eth_abi import decode
from eth_utils import from_wei

from ..utils.address import hex_to_bytes, normalize_address
from .types import (
    ApprovalDetails,
    DeploymentDetails,
    NativeTransferDetails,
    NFTApprovalDetails,
    NFTTransferDetails,
    ProtocolCallDetails,
    RawCallDetails,
    SecurityRiskLevel,
    TokenTransferDetails,
    TransactionAnalysis,
    TransactionComplexity,
    TransactionIntent,
    TransactionType,
    max_level,
)
from .weights import COMPLEX_PAYLOAD_BYTES, MEDIUM_PAYLOAD_BYTES, UNLIMITED_APPROVAL_WEI

logger = logging.getLogger(__name__)

MAX_UINT256 = 2 ** 256 - 1
UNDECODABLE_SUFFIX = " (unable to decode parameters)"

Low, Med, High = SecurityRiskLevel.LOW, SecurityRiskLevel.MEDIUM, SecurityRiskLevel.HIGH
Simple, Medium, Complex = (TransactionComplexity.SIMPLE, TransactionComplexity.MEDIUM,
                           TransactionComplexity.COMPLEX)


@dataclass(frozen=True)
class Selector:
    name: str
    type: TransactionType
    complexity: TransactionComplexity
    risk: SecurityRiskLevel
    description: str
    # static ABI tuple to decode; None when the classification does not need arguments
    abi: Optional[Tuple[str, ...]] = None


SELECTORS = MappingProxyType({
    # ERC-20
    "a9059cbb": Selector("transfer", TransactionType.TRANSFER, Simple, Low,
                         "Token transfer", ("address", "uint256")),
    "23b872dd": Selector("transferFrom", TransactionType.TRANSFER, Medium, Med,
                         "Token transfer from another account", ("address", "address", "uint256")),
    "095ea7b3": Selector("approve", TransactionType.APPROVAL, Medium, Med,
                         "Token approval", ("address", "uint256")),
    # Uniswap V2 style routers
    "38ed1739": Selector("swapExactTokensForTokens", TransactionType.SWAP_TOKENS_FOR_TOKENS,
                         Medium, Med, "Token to token swap"),
    "8803dbee": Selector("swapTokensForExactTokens", TransactionType.SWAP_TOKENS_FOR_TOKENS,
                         Medium, Med, "Token to token swap"),
    "7ff36ab5": Selector("swapExactETHForTokens", TransactionType.SWAP_ETH_FOR_TOKENS,
                         Medium, Med, "ETH to token swap"),
    "fb3bdb41": Selector("swapETHForExactTokens", TransactionType.SWAP_ETH_FOR_TOKENS,
                         Medium, Med, "ETH to token swap"),
    "18cbafe5": Selector("swapExactTokensForETH", TransactionType.SWAP_TOKENS_FOR_ETH,
                         Medium, Med, "Token to ETH swap"),
    "4a25d94a": Selector("swapTokensForExactETH", TransactionType.SWAP_TOKENS_FOR_ETH,
                         Medium, Med, "Token to ETH swap"),
    # Uniswap V3 router
    "414bf389": Selector("exactInputSingle", TransactionType.SWAP, Complex, Med, "Uniswap V3 token swap"),
    "db3e2198": Selector("exactOutputSingle", TransactionType.SWAP, Complex, Med, "Uniswap V3 token swap"),
    "c04b8d59": Selector("exactInput", TransactionType.SWAP, Complex, Med, "Uniswap V3 token swap"),
    "f28c0498": Selector("exactOutput", TransactionType.SWAP, Complex, Med, "Uniswap V3 token swap"),
    # ERC-721 / ERC-1155
    "42842e0e": Selector("safeTransferFrom", TransactionType.NFT_TRANSFER, Medium, Med, "NFT transfer"),
    "b88d4fde": Selector("safeTransferFrom", TransactionType.NFT_TRANSFER, Medium, Med, "NFT transfer"),
    "a22cb465": Selector("setApprovalForAll", TransactionType.NFT_APPROVAL, Medium, Med,
                         "NFT collection approval", ("address", "bool")),
    # liquidity
    "e8e33700": Selector("addLiquidity", TransactionType.ADD_LIQUIDITY, Complex, Med,
                         "Add token liquidity to pool"),
    "f305d719": Selector("addLiquidityETH", TransactionType.ADD_LIQUIDITY, Complex, Med,
                         "Add ETH and token liquidity to pool"),
    "baa2abde": Selector("removeLiquidity", TransactionType.REMOVE_LIQUIDITY, Complex, Med,
                         "Remove liquidity from pool"),
    "02751cec": Selector("removeLiquidityETH", TransactionType.REMOVE_LIQUIDITY, Complex, Med,
                         "Remove liquidity from pool"),
    # lending
    "b6b55f25": Selector("deposit", TransactionType.LENDING, Medium, Med, "Deposit to lending protocol"),
    "2e1a7d4d": Selector("withdraw", TransactionType.LENDING, Medium, Med, "Withdraw from lending protocol"),
    "c5ebeaec": Selector("borrow", TransactionType.BORROWING, Complex, High, "Borrow from lending protocol"),
    "4e4d9fea": Selector("repay", TransactionType.BORROWING, Medium, Med, "Repay loan to lending protocol"),
})

# amountOutMin position in the Uniswap V2 swapExact* argument tuples
_SWAP_MIN_OUT_ABI = MappingProxyType({
    "38ed1739": (("uint256", "uint256", "address[]", "address", "uint256"), 1),
    "7ff36ab5": (("uint256", "address[]", "address", "uint256"), 0),
    "18cbafe5": (("uint256", "uint256", "address[]", "address", "uint256"), 1),
})

_ETH_VALUE_FUNCTIONS = {
    "swapExactETHForTokens", "swapETHForExactTokens", "addLiquidity", "addLiquidityETH",
    "deposit", "repay", "exactInputSingle", "exactOutputSingle", "exactInput", "exactOutput",
}

KNOWN_PROTOCOLS = MappingProxyType({
    "0x7a250d5630b4cf539739df2c5dacb4c659f2488d": "Uniswap V2",
    "0xe592427a0aece92de3edee1f18e0157c05861564": "Uniswap V3",
    "0xd9e1ce17f2641f24ae83637ab66a2cca9c378b9f": "SushiSwap",
    "0x7d2768de32b0b80b7a3454c06bdac94a69ddc7a9": "Aave V2",
    "0x3d9819210a31b4961b30ef54be2aed79b9c9cd3b": "Compound",
})


def detect_protocol(address: str | None) -> str:
    if not address:
        return "Unknown"
    return KNOWN_PROTOCOLS.get(normalize_address(address), "Unknown")


def format_ether(wei: int) -> str:
    if wei == 0:
        return "0"
    return format(from_wei(wei, "ether"), "f")


def is_unlimited_amount(amount: int) -> bool:
    # large-but-not-max sentinels are used by some approval UIs
    return amount == MAX_UINT256 or amount >= UNLIMITED_APPROVAL_WEI


def decode_static_args(abi: Tuple[str, ...], args: bytes) -> tuple:
    """Strict decode of a static argument tuple; the payload length must match exactly."""
    if len(args) != 32 * len(abi):
        raise ValueError(f"expected {32 * len(abi)} argument bytes, got {len(args)}")
    return decode(list(abi), args)


# ------------------- per-selector builders -------------------

def _transfer(intent: TransactionIntent, sel: Selector, values: tuple) -> TransactionAnalysis:
    recipient, amount = values
    return TransactionAnalysis(
        type=sel.type, complexity=sel.complexity, base_risk_level=sel.risk,
        description=sel.description,
        details=TokenTransferDetails(token_address=intent.to, recipient=recipient,
                                     amount=amount, function_name=sel.name),
    )


def _transfer_from(intent: TransactionIntent, sel: Selector, values: tuple) -> TransactionAnalysis:
    sender, recipient, amount = values
    return TransactionAnalysis(
        type=sel.type, complexity=sel.complexity, base_risk_level=sel.risk,
        description=sel.description,
        details=TokenTransferDetails(token_address=intent.to, recipient=recipient,
                                     amount=amount, function_name=sel.name, sender=sender),
    )


def _approve(intent: TransactionIntent, sel: Selector, values: tuple) -> TransactionAnalysis:
    spender, amount = values
    unlimited = is_unlimited_amount(amount)
    return TransactionAnalysis(
        type=TransactionType.UNLIMITED_APPROVAL if unlimited else TransactionType.APPROVAL,
        complexity=sel.complexity,
        base_risk_level=High if unlimited else Med,
        description="Unlimited token approval" if unlimited else "Token approval",
        details=ApprovalDetails(token_address=intent.to, spender_address=spender,
                                amount=amount, is_unlimited=unlimited),
    )


def _approval_for_all(intent: TransactionIntent, sel: Selector, values: tuple) -> TransactionAnalysis:
    operator, approved = values
    return TransactionAnalysis(
        type=sel.type, complexity=sel.complexity,
        base_risk_level=High if approved else Low,
        description="NFT collection approval granted" if approved else "NFT collection approval revoked",
        details=NFTApprovalDetails(token_address=intent.to, operator_address=operator,
                                   approved=bool(approved)),
    )


_DECODED_BUILDERS: Dict[str, Callable[[TransactionIntent, Selector, tuple], TransactionAnalysis]] = {
    "transfer": _transfer,
    "transferFrom": _transfer_from,
    "approve": _approve,
    "setApprovalForAll": _approval_for_all,
}


def _swap_min_out(selector: str, args: bytes) -> Optional[int]:
    entry = _SWAP_MIN_OUT_ABI.get(selector)
    if entry is None:
        return None
    abi, idx = entry
    try:
        return decode(list(abi), args)[idx]
    except Exception as e:  # best effort only, the selector already classifies the call
        logger.debug("swap arguments not decodable for %s: %s", selector, e)
        return None


def _protocol_call(intent: TransactionIntent, selector: str, sel: Selector, args: bytes) -> TransactionAnalysis:
    if sel.type == TransactionType.NFT_TRANSFER:
        return TransactionAnalysis(
            type=sel.type, complexity=sel.complexity, base_risk_level=sel.risk,
            description=sel.description,
            details=NFTTransferDetails(token_address=intent.to, function_name=sel.name),
        )
    protocol = detect_protocol(intent.to)
    if sel.type == TransactionType.SWAP and protocol == "Unknown":
        protocol = "Uniswap V3"
    eth_value = format_ether(intent.value) if sel.name in _ETH_VALUE_FUNCTIONS else None
    return TransactionAnalysis(
        type=sel.type, complexity=sel.complexity, base_risk_level=sel.risk,
        description=sel.description,
        details=ProtocolCallDetails(protocol=protocol, function_name=sel.name, eth_value=eth_value,
                                    amount_out_min=_swap_min_out(selector, args)),
    )


def _undecodable(sel: Selector, selector: str, payload_size: int) -> TransactionAnalysis:
    return TransactionAnalysis(
        type=sel.type,
        complexity=sel.complexity,
        base_risk_level=max_level(sel.risk, Med),
        description=sel.description + UNDECODABLE_SUFFIX,
        details=RawCallDetails(data_size=payload_size, selector="0x" + selector, function_name=sel.name),
    )


def _unknown_by_size(size: int, selector: Optional[str]) -> TransactionAnalysis:
    if size > COMPLEX_PAYLOAD_BYTES:
        complexity, risk = Complex, High
    elif size > MEDIUM_PAYLOAD_BYTES:
        complexity, risk = Medium, Med
    else:
        complexity, risk = Simple, Low
    return TransactionAnalysis(
        type=TransactionType.UNKNOWN, complexity=complexity, base_risk_level=risk,
        description="Unknown contract interaction",
        details=RawCallDetails(data_size=size, selector=selector),
    )


# ------------------- entry point -------------------

def classify(intent: TransactionIntent) -> TransactionAnalysis:
    if not intent.has_data:
        if intent.value > 0:
            return TransactionAnalysis(
                type=TransactionType.TRANSFER, complexity=Simple, base_risk_level=Low,
                description="ETH transfer",
                details=NativeTransferDetails(eth_value=format_ether(intent.value)),
            )
        return TransactionAnalysis(
            type=TransactionType.UNKNOWN, complexity=Simple, base_risk_level=Low,
            description="Transaction with no data and no value",
        )

    try:
        payload = hex_to_bytes(intent.data)
    except ValueError as e:
        logger.debug("malformed call data: %s", e)
        return TransactionAnalysis(
            type=TransactionType.UNKNOWN, complexity=Simple, base_risk_level=Low,
            description=f"Malformed call data: {e}",
        )

    if not intent.to:
        return TransactionAnalysis(
            type=TransactionType.CONTRACT_DEPLOYMENT, complexity=Complex, base_risk_level=High,
            description="New contract deployment",
            details=DeploymentDetails(data_size=len(payload)),
        )

    if len(payload) < 4:
        return _unknown_by_size(len(payload), None)

    selector, args = payload[:4].hex(), payload[4:]
    sel = SELECTORS.get(selector)
    if sel is None:
        return _unknown_by_size(len(payload), "0x" + selector)

    if sel.abi is None:
        return _protocol_call(intent, selector, sel, args)

    try:
        values = decode_static_args(sel.abi, args)
    except Exception as e:  # eth_abi raises several unrelated decoding errors
        logger.debug("unable to decode %s arguments: %s", sel.name, e)
        return _undecodable(sel, selector, len(payload))
    return _DECODED_BUILDERS[sel.name](intent, sel, values)
