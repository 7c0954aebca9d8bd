"""
Validating side: check a received PoP against the nonce that was requested.

The validation is an ordered list of checks. Each check looks at the attempt
and returns None to pass or a failed ValidationResult to stop; nothing is
retried. What the PoP proves (amount paid, destination) is left to the caller,
who gets the proven transaction back on success.
"""

import logging
from dataclasses import dataclass
from typing import Callable, List, Optional

from .config import NONCE_LENGTH, OP_RETURN, POP_LOCK_TIME, POP_SEQUENCE, POP_VERSION, pop_script_length
from .errors import ConnectError, InvalidPop, LedgerError, VerificationError
from .ledger import Transaction, connect_input, self_verify, verify_input
from .pop import NONCE_OFFSET, TXID_OFFSET, Pop
from .store import TransactionStore

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class ValidationResult:
    transaction: Optional[Transaction] = None
    reason: Optional[str] = None
    cause: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.reason is None

    @staticmethod
    def success(transaction: Transaction) -> "ValidationResult":
        return ValidationResult(transaction=transaction)

    @staticmethod
    def failure(reason: str, cause: Optional[BaseException] = None) -> "ValidationResult":
        return ValidationResult(reason=reason, cause=cause)

    def unwrap(self) -> Transaction:
        if not self.ok:
            raise InvalidPop(self.reason, self.cause)
        return self.transaction


@dataclass
class _Attempt:
    pop: Optional[Pop]
    nonce: Optional[bytes]
    script: bytes = b""
    proven: Optional[Transaction] = None


Check = Callable[[_Attempt], Optional[ValidationResult]]


class PopValidator:
    def __init__(self, store: TransactionStore, nonce_length: int = NONCE_LENGTH):
        """
        store must resolve the proven transaction and every transaction
        funding one of its inputs.
        """
        self.store = store
        self.nonce_length = nonce_length
        self.checks: List[Check] = [
            self._check_present,
            self._check_basic,
            self._check_lock_time,
            self._check_output,
            self._check_nonce,
            self._check_proven_transaction,
            self._check_input_count,
            self._check_inputs,
            self._check_signatures,
        ]

    def validate(self, pop: Optional[Pop], nonce: Optional[bytes]) -> ValidationResult:
        attempt = _Attempt(pop=pop, nonce=nonce)
        for check in self.checks:
            failure = check(attempt)
            if failure is not None:
                log.debug("PoP rejected: %s", failure.reason)
                return failure
        log.debug("PoP valid for %s", attempt.proven.txid_hex)
        return ValidationResult.success(attempt.proven)

    def validate_pop(self, pop: Optional[Pop], nonce: Optional[bytes]) -> Transaction:
        """Like validate() but returns the proven transaction or raises InvalidPop."""
        return self.validate(pop, nonce).unwrap()

    def validate_bytes(self, raw: bytes, nonce: Optional[bytes]) -> ValidationResult:
        try:
            pop = Pop.from_bytes(raw)
        except LedgerError as e:
            log.debug("PoP rejected: unparseable (%s)", e)
            return ValidationResult.failure("could not parse PoP", e)
        return self.validate(pop, nonce)

    # ------------------------------
    # Checks, in order
    # ------------------------------
    def _check_present(self, a: _Attempt) -> Optional[ValidationResult]:
        if a.pop is None:
            return ValidationResult.failure("PoP is None")
        return None

    def _check_basic(self, a: _Attempt) -> Optional[ValidationResult]:
        try:
            self_verify(a.pop.transaction)
        except VerificationError as e:
            return ValidationResult.failure("basic verification failed", e)
        return None

    def _check_lock_time(self, a: _Attempt) -> Optional[ValidationResult]:
        if a.pop.lock_time != POP_LOCK_TIME:
            return ValidationResult.failure(f"invalid lock_time {a.pop.lock_time}, expected {POP_LOCK_TIME}")
        return None

    def _check_output(self, a: _Attempt) -> Optional[ValidationResult]:
        outputs = a.pop.outputs
        if len(outputs) != 1:
            return ValidationResult.failure("wrong number of outputs, expected 1")
        if outputs[0].value != 0:
            return ValidationResult.failure("invalid value of PoP output, must be 0")
        script = outputs[0].script_pubkey
        expected = pop_script_length(self.nonce_length)
        if len(script) != expected:
            return ValidationResult.failure(f"invalid script length {len(script)}, expected {expected}")
        if script[0] != OP_RETURN:
            return ValidationResult.failure(f"wrong opcode 0x{script[0]:02x}, expected OP_RETURN")
        if script[1:TXID_OFFSET] != POP_VERSION:
            return ValidationResult.failure(f"wrong version {script[1:TXID_OFFSET].hex()}, expected 0100")
        a.script = script
        return None

    def _check_nonce(self, a: _Attempt) -> Optional[ValidationResult]:
        if a.nonce is None or a.script[NONCE_OFFSET:] != bytes(a.nonce):
            return ValidationResult.failure("wrong nonce")
        return None

    def _check_proven_transaction(self, a: _Attempt) -> Optional[ValidationResult]:
        txid = a.script[TXID_OFFSET:NONCE_OFFSET]
        a.proven = self.store.get_transaction(txid)
        if a.proven is None:
            return ValidationResult.failure(f"unknown transaction {txid.hex()}")
        return None

    def _check_input_count(self, a: _Attempt) -> Optional[ValidationResult]:
        if len(a.pop.inputs) != len(a.proven.inputs):
            return ValidationResult.failure("wrong number of inputs")
        return None

    def _check_inputs(self, a: _Attempt) -> Optional[ValidationResult]:
        for pop_in, tx_in in zip(a.pop.inputs, a.proven.inputs):
            # same outpoints, same order
            if pop_in.outpoint != tx_in.outpoint:
                return ValidationResult.failure("mismatching inputs")
            if pop_in.sequence != POP_SEQUENCE:
                return ValidationResult.failure("invalid sequence number, must be 0")
        return None

    def _check_signatures(self, a: _Attempt) -> Optional[ValidationResult]:
        pop_tx = a.pop.transaction
        for index, tx_in in enumerate(a.proven.inputs):
            funding = tx_in.funding_tx
            if funding is None:
                funding = self.store.get_transaction(tx_in.outpoint.txid)
                if funding is None:
                    return ValidationResult.failure(f"could not find input tx {tx_in.outpoint.txid.hex()}")
            try:
                # the PoP input is always re-connected to what the payment spends
                connect_input(a.proven, index, funding)
                connect_input(pop_tx, index, funding)
            except ConnectError as e:
                return ValidationResult.failure(f"could not connect input {index}", e)
            try:
                verify_input(pop_tx, index)
            except VerificationError as e:
                log.debug("failed to verify input %d", index, exc_info=True)
                return ValidationResult.failure("signature verification failed", e)
        return None
