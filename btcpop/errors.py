"""
Exception types raised by btcpop.

PopError is the common base. Ledger-level failures (decoding, structural
verification, connecting inputs, key handling) derive from LedgerError so the
generator and validator can translate them into protocol-level errors.
"""

from typing import Optional


class PopError(Exception):
    """Base class for every error raised by this package."""


class IllegalInput(PopError, ValueError):
    """Malformed or out-of-range request, URI value or argument."""


class GenerationError(PopError):
    """A PoP could not be built from the given transaction."""


class SigningError(PopError):
    def __init__(self, message: str, bad_decryption_key: bool = False):
        super().__init__(message)
        self.bad_decryption_key = bad_decryption_key


class InvalidPop(PopError):
    """
    Raised when a PoP fails validation. `reason` is the human readable
    message; `cause` is the lower level exception, if any.
    """

    def __init__(self, reason: str, cause: Optional[BaseException] = None):
        super().__init__(reason)
        self.reason = reason
        self.cause = cause
        if cause is not None:
            self.__cause__ = cause


# ------------------------------
# Ledger engine
# ------------------------------
class LedgerError(PopError):
    pass


class TransactionDecodeError(LedgerError, ValueError):
    pass


class VerificationError(LedgerError):
    pass


class ConnectError(LedgerError):
    pass


class KeyNotFoundError(LedgerError):
    pass


class KeyCrypterError(LedgerError):
    """Decryption key missing or wrong for an encrypted private key."""
