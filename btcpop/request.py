"""
Proof-of-payment requests and their `btcpop:?` URI form.

The verifier fills in a PopRequest, turns it into a PopRequestURI and hands
`to_uri_string()` to the prover (QR code, link, ...). The prover parses it back
with PopRequestURI.parse.

    btcpop:?p=<destination>&n=<base58 nonce>[&r=<redirect>][&txid=<base58>]
           [&label=<text>][&message=<text>][&amount=<BTC decimal>]
"""

import re
from dataclasses import dataclass
from decimal import MAX_EMAX, MIN_EMIN, Context, Decimal, Inexact, InvalidOperation, Overflow, Rounded, Underflow
from typing import Optional

from bitsv import base58

from . import uricodec
from .config import MAX_MONEY, TXID_LENGTH, URI_PREFIX
from .crypto import b58decode
from .errors import IllegalInput

# plain decimal only; Decimal() alone would also take "NaN", "Infinity" and "1_0"
_AMOUNT_RE = re.compile(r"^[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?$")


@dataclass
class PopRequest:
    nonce: Optional[bytes] = None
    destination: Optional[str] = None
    amount: Optional[int] = None      # satoshis
    label: Optional[str] = None
    message: Optional[str] = None
    txid: Optional[bytes] = None
    redirect: Optional[str] = None


def parse_amount(value: str) -> int:
    """BTC decimal string -> satoshis. Must be exact, >= 0 and <= MAX_MONEY."""
    if not _AMOUNT_RE.match(value):
        raise IllegalInput(f"malformed amount {value!r}")
    try:
        # shifting must be exact: any rounding or underflow is an error
        ctx = Context(prec=len(value) + 16, Emin=MIN_EMIN, Emax=MAX_EMAX,
                      traps=[InvalidOperation, Overflow, Underflow, Inexact, Rounded])
        sats = Decimal(value).scaleb(8, context=ctx)
    except ArithmeticError as e:
        raise IllegalInput(f"malformed amount {value!r}") from e
    if sats != sats.to_integral_value():
        raise IllegalInput(f"amount {value!r} has more than 8 decimals")
    if sats < 0:
        raise IllegalInput(f"negative amount not allowed: {value!r}")
    if sats > MAX_MONEY:
        raise IllegalInput(f"too high amount: {value!r}")
    return int(sats)


def format_amount(sats: int) -> str:
    """Satoshis -> plain BTC string with as few decimals as possible."""
    return format(Decimal(sats).scaleb(-8).normalize(), "f")


def _decode_base58(key: str, value: str) -> bytes:
    try:
        return b58decode(value)
    except ValueError as e:
        raise IllegalInput(f"can't base58 decode value {value!r} of {key!r}") from e


@dataclass(frozen=True)
class PopRequestURI:
    n: Optional[bytes] = None
    p: Optional[str] = None
    r: Optional[str] = None
    amount: Optional[int] = None
    label: Optional[str] = None
    message: Optional[str] = None
    txid: Optional[bytes] = None

    @staticmethod
    def from_request(request: PopRequest) -> "PopRequestURI":
        if request.nonce is None:
            raise IllegalInput("nonce must not be None")
        if not request.nonce:
            raise IllegalInput("nonce must not be empty")
        if request.destination is None:
            raise IllegalInput("destination must not be None")
        if not request.destination:
            raise IllegalInput("destination must not be empty")
        if request.amount is not None and not 0 <= request.amount <= MAX_MONEY:
            raise IllegalInput(f"amount out of range: {request.amount}")
        if request.txid is not None and len(request.txid) != TXID_LENGTH:
            raise IllegalInput(f"bad transaction id size {len(request.txid)}, expected {TXID_LENGTH}")
        return PopRequestURI(
            n=bytes(request.nonce),
            p=request.destination,
            r=request.redirect,
            amount=request.amount,
            label=request.label,
            message=request.message,
            txid=request.txid,
        )

    @staticmethod
    def parse(text: str) -> "PopRequestURI":
        if text is None or not text.startswith(URI_PREFIX):
            raise IllegalInput(f"URI must start with {URI_PREFIX!r}: {text!r}")
        fields = {}
        for token in text[len(URI_PREFIX):].split("&"):
            if not token:
                continue
            if token.startswith("="):
                raise IllegalInput(f"empty parameter name in: {token!r}")
            if "=" not in token:
                raise IllegalInput(f"no '=' in: {token!r}")
            if token.count("=") > 1:
                raise IllegalInput(f"more than one '=' in: {token!r}")
            key, _, raw = token.partition("=")
            value = uricodec.decode(raw) if raw else None
            _parse_param(fields, key, value, token)
        uri = PopRequestURI(**fields)
        if uri.r is None and (uri.p is None or uri.n is None):
            raise IllegalInput(f"p and n must be set: {text!r}")
        return uri

    def to_request(self) -> PopRequest:
        return PopRequest(
            nonce=self.n,
            destination=self.p,
            amount=self.amount,
            label=self.label,
            message=self.message,
            txid=self.txid,
            redirect=self.r,
        )

    def to_uri_string(self) -> str:
        params = []
        if self.p is not None:
            params.append(("p", self.p))
        if self.n is not None:
            params.append(("n", base58.b58encode(self.n)))
        if self.r is not None:
            params.append(("r", self.r))
        if self.txid is not None:
            params.append(("txid", base58.b58encode(self.txid)))
        if self.label is not None:
            params.append(("label", self.label))
        if self.message is not None:
            params.append(("message", self.message))
        if self.amount is not None:
            params.append(("amount", format_amount(self.amount)))
        return URI_PREFIX + "&".join(f"{k}={uricodec.encode(v)}" for k, v in params)

    def __str__(self) -> str:
        txid = self.txid.hex() if self.txid is not None else None
        return f"txid={txid}, label={self.label}, amount={self.amount}"


def _parse_param(fields: dict, key: str, value: Optional[str], token: str):
    if key == "n":
        if value is None:
            raise IllegalInput(f"nonce must not be empty: {token!r}")
        nonce = _decode_base58(key, value)
        if len(nonce) < 1:
            raise IllegalInput(f"nonce too short: {token!r}")
        fields["n"] = nonce
    elif key == "p":
        if value is None:
            raise IllegalInput(f"pop destination must not be empty: {token!r}")
        fields["p"] = value
    elif key == "r":
        fields["r"] = value
    elif key == "label":
        fields["label"] = value
    elif key == "message":
        fields["message"] = value
    elif key == "amount":
        if value is not None:
            try:
                fields["amount"] = parse_amount(value)
            except IllegalInput as e:
                raise IllegalInput(f"{e} in: {token!r}") from e
    elif key == "txid":
        if value is not None:
            txid = _decode_base58(key, value)
            if len(txid) != TXID_LENGTH:
                raise IllegalInput(f"bad transaction id size {len(txid)}, expected {TXID_LENGTH}: {token!r}")
            fields["txid"] = txid
