"""
Protocol constants and runtime settings.

The constants are fixed by the proof-of-payment protocol and must not be
changed for interoperability. Settings are knobs of this implementation and
may be overridden through the environment:

    BTCPOP_NONCE_LENGTH      nonce size in bytes (default 6)
    BTCPOP_REPLY_SIZE_LIMIT  max characters read from a validator reply (default 1024)
    BTCPOP_HTTP_TIMEOUT      seconds before an HTTP send gives up (default 30)
"""

import os
from dataclasses import dataclass

# ------------------------------
# Protocol constants
# ------------------------------
SCHEME = "btcpop"
URI_PREFIX = SCHEME + ":?"

# Highest lock-time interpreted as a block height; keeps a PoP out of any block
# for thousands of years.
POP_LOCK_TIME = 499999999
POP_SEQUENCE = 0
POP_VERSION = b"\x01\x00"

OP_RETURN = 0x6a

NONCE_LENGTH = 6
TXID_LENGTH = 32

COIN = 100000000
MAX_MONEY = 21000000 * COIN

REPLY_SIZE_LIMIT = 1024
CONTENT_TYPE = "application/bitcoin-pop"
HTTP_TIMEOUT = 30.0


def pop_script_length(nonce_length: int = NONCE_LENGTH) -> int:
    """OP_RETURN + version + txid + nonce"""
    return 1 + len(POP_VERSION) + TXID_LENGTH + nonce_length


@dataclass(frozen=True)
class Settings:
    nonce_length: int = NONCE_LENGTH
    reply_size_limit: int = REPLY_SIZE_LIMIT
    http_timeout: float = HTTP_TIMEOUT

    @staticmethod
    def from_env() -> "Settings":
        nonce_length = int(os.environ.get("BTCPOP_NONCE_LENGTH", str(NONCE_LENGTH)))
        reply_size_limit = int(os.environ.get("BTCPOP_REPLY_SIZE_LIMIT", str(REPLY_SIZE_LIMIT)))
        http_timeout = float(os.environ.get("BTCPOP_HTTP_TIMEOUT", str(HTTP_TIMEOUT)))
        if nonce_length < 1:
            raise ValueError("BTCPOP_NONCE_LENGTH must be >= 1")
        if reply_size_limit < 1:
            raise ValueError("BTCPOP_REPLY_SIZE_LIMIT must be >= 1")
        return Settings(nonce_length=nonce_length, reply_size_limit=reply_size_limit, http_timeout=http_timeout)
