import os


class W:
    # Contract security (0-25)
    CONTRACT_VERIFIED = 10
    CONTRACT_UNVERIFIED = 25
    AUDITED = -10
    NOT_AUDITED = 5
    KNOWN_SCAMMER = 25
    SIMILAR_TO_SCAM = 15
    AGE_NEW = 10
    AGE_RECENT = 5
    AGE_ESTABLISHED = -5
    AGE_MATURE = -10
    CONTRACT_SECURITY_CAP = 25

    # Transaction specific (0-35)
    UNLIMITED_APPROVAL = 20
    HIGH_VALUE = 10
    COMPLEX_METHOD = 5
    BLACKLIST_INTERACTION = 25
    HIGH_SLIPPAGE = 10
    MEV_VULNERABLE = 15
    TRANSACTION_CAP = 35

    # User trust (starts at the cap and subtracts)
    USER_TRUST_START = 15
    UNUSUAL_FOR_USER = -5
    INTERACTED_BEFORE = -10
    WHITELISTED = -15
    USER_TRUST_CAP = 15

    # External factors (0-15)
    RECENTLY_DEPLOYED = 5
    COPYCAT = 10
    SECURITY_INCIDENTS = 10
    EXTERNAL_CAP = 15

    # Implementation (0-10)
    REENTRANCY = 7
    CENTRALIZED = 5
    ADMIN_FUNCTIONS = 3
    IMPLEMENTATION_CAP = 10


# Banding, inclusive lower bounds
CRITICAL_MIN = 75
HIGH_MIN = 50
MEDIUM_MIN = 25

SIMILARITY_FLAG = 0.7        # adds SIMILAR_TO_SCAM
SIMILARITY_OVERRIDE = 0.8    # forces at least HIGH
CENTRALIZATION_THRESHOLD = 0.3

# Uncalibrated heuristics, overridable per deployment
HIGH_VALUE_WEI = int(os.getenv("HIGH_VALUE_WEI", str(10 ** 18)))
UNLIMITED_APPROVAL_WEI = int(os.getenv("UNLIMITED_APPROVAL_WEI", str(10 ** 9 * 10 ** 18)))
SAFE_APPROVAL_WEI = int(os.getenv("SAFE_APPROVAL_WEI", str(10 * 10 ** 18)))
MAX_SLIPPAGE_PERCENT = float(os.getenv("MAX_SLIPPAGE_PERCENT", "1"))

# Payload size fallback for unknown selectors (bytes)
MEDIUM_PAYLOAD_BYTES = 200
COMPLEX_PAYLOAD_BYTES = 1000
