ZERO_ADDRESS = "0x" + "0" * 40


def normalize_address(addr: str | None) -> str:
    """Lower-cased 0x address, or "" when the input is empty."""
    if not addr:
        return ""
    addr = addr.strip().lower()
    if not addr.startswith("0x"):
        addr = "0x" + addr
    return addr


def is_zero_address(addr: str | None) -> bool:
    body = normalize_address(addr)[2:]
    return not body or set(body) == {"0"}


def hex_to_bytes(data: str) -> bytes:
    """Decode 0x-hex call data; raises ValueError on odd length or non-hex."""
    body = data[2:] if data[:2].lower() == "0x" else data
    if len(body) % 2:
        raise ValueError("odd-length hex data")
    return bytes.fromhex(body)
