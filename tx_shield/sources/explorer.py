import os, httpx

EXPLORER_API_URL = os.getenv("EXPLORER_API_URL", "https://api.etherscan.io/v2/api")
EXPLORER_TIMEOUT_S = float(os.getenv("EXPLORER_TIMEOUT_S", "10"))


class ExplorerError(RuntimeError):
    pass


def _params(chain_id: int, **extra) -> dict:
    p = {"chainid": chain_id, **extra}
    key = os.getenv("EXPLORER_API_KEY", "")
    if key:
        p["apikey"] = key
    return p


def _result(payload: dict):
    # Etherscan answers HTTP 200 with status "0" on errors
    if str(payload.get("status")) != "1":
        raise ExplorerError(str(payload.get("result") or payload.get("message") or "explorer error"))
    return payload.get("result")


def _proxy_result(payload: dict):
    # module=proxy relays the node's JSON-RPC answer; explorer errors keep the status/message shape
    if payload.get("error"):
        raise ExplorerError(str(payload["error"]))
    if str(payload.get("status")) == "0":
        raise ExplorerError(str(payload.get("result") or payload.get("message") or "explorer error"))
    return payload.get("result")


async def _get(params: dict) -> dict:
    async with httpx.AsyncClient(timeout=EXPLORER_TIMEOUT_S) as client:
        r = await client.get(EXPLORER_API_URL, params=params)
        r.raise_for_status()
        return r.json()


async def get_source_code(chain_id: int, address: str) -> dict:
    result = _result(await _get(_params(chain_id, module="contract", action="getsourcecode", address=address)))
    if isinstance(result, list) and result:
        return result[0]
    return {}


async def get_contract_creation(chain_id: int, address: str) -> dict:
    result = _result(await _get(_params(chain_id, module="contract", action="getcontractcreation",
                                        contractaddresses=address)))
    if isinstance(result, list) and result:
        return result[0]
    return {}


async def get_code(chain_id: int, address: str) -> str:
    payload = await _get(_params(chain_id, module="proxy", action="eth_getCode", address=address, tag="latest"))
    return _proxy_result(payload) or "0x"


async def get_block_timestamp(chain_id: int, block_number: int) -> int:
    payload = await _get(_params(chain_id, module="proxy", action="eth_getBlockByNumber",
                                 tag=hex(block_number), boolean="false"))
    block = _proxy_result(payload)
    if not block:
        raise ExplorerError(f"block {block_number} not found on chain {chain_id}")
    return int(block["timestamp"], 16)
