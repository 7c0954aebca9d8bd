"""
Percent-escaping for btcpop request URI values.

A btcpop URI is not a URL, so only the characters that would break the
`key=value&...` structure (or are outside printable ASCII) are escaped. `/`,
`?` and `:` stay literal, which keeps URIs short enough for QR codes.

Escapes are upper-case hex over UTF-8 bytes; a literal space becomes `%20`.
A literal `+` is data, never a space. Other implementations of the scheme that
follow form-encoding may read `+` as a space; this one does not.
"""

from typing import Optional

from .errors import IllegalInput

_ILLEGAL_ASCII = frozenset('"#%&<=>[\\]^`{|}~')
_HEX_DIGITS = frozenset("0123456789abcdefABCDEF")


def is_illegal_character(c: str) -> bool:
    return c < "!" or c > "~" or c in _ILLEGAL_ASCII


def _escape(c: str) -> str:
    return "".join("%%%02X" % b for b in c.encode("utf-8"))


def _code_points(value: str):
    """Yield code points, joining surrogate pairs given as separate characters."""
    pending_high = None
    for c in value:
        cp = ord(c)
        if 0xD800 <= cp <= 0xDBFF:
            if pending_high is not None:
                raise IllegalInput("found high surrogate without following low surrogate")
            pending_high = cp
        elif 0xDC00 <= cp <= 0xDFFF:
            if pending_high is None:
                raise IllegalInput("found low surrogate without preceding high surrogate")
            yield chr(0x10000 + ((pending_high - 0xD800) << 10) + (cp - 0xDC00))
            pending_high = None
        else:
            if pending_high is not None:
                raise IllegalInput("found high surrogate without following low surrogate")
            yield c
    if pending_high is not None:
        raise IllegalInput("found high surrogate without following low surrogate")


def encode(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    out = []
    for c in _code_points(value):
        if c == " ":
            out.append("%20")
        elif is_illegal_character(c):
            out.append(_escape(c))
        else:
            out.append(c)
    return "".join(out)


def decode(value: Optional[str]) -> Optional[str]:
    """
    Decode a URI value. Raises IllegalInput on a malformed escape (`%` not
    followed by two hex digits, or escaped bytes that are not UTF-8) and on any
    unescaped illegal character such as a space or `&`.
    """
    if value is None:
        return None
    out = []
    run = bytearray()
    i = 0
    n = len(value)
    while i < n:
        c = value[i]
        if c == "%":
            digits = value[i + 1:i + 3]
            if len(digits) != 2 or not all(d in _HEX_DIGITS for d in digits):
                raise IllegalInput(f"bad format of input {value!r} at position {i}")
            run.append(int(digits, 16))
            i += 3
            continue
        if is_illegal_character(c):
            raise IllegalInput(f"illegal character {c!r} in input {value!r}")
        if run:
            out.append(_decode_run(run, value))
            run = bytearray()
        out.append(c)
        i += 1
    if run:
        out.append(_decode_run(run, value))
    return "".join(out)


def _decode_run(run: bytearray, value: str) -> str:
    try:
        return run.decode("utf-8")
    except UnicodeDecodeError as e:
        raise IllegalInput(f"escaped bytes in {value!r} are not valid UTF-8") from e
