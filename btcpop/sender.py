"""
Deliver a signed PoP to the validator named in the request URI.

HttpPopSender POSTs the raw PoP to `p` with Content-Type
application/bitcoin-pop and reads back a short plain-text reply:

    valid                  -> SendResult.OK
    invalid[\\n<message>]   -> SendResult.INVALID_POP
    anything else          -> SendResult.PROTOCOL_ERROR

Transport failures map to COMMUNICATION_ERROR, local ones (bad URL, reply
encoding) to LOCAL_ERROR. Only the first `reply_size_limit` characters of the
reply are read.
"""

import logging
from enum import Enum
from typing import Iterable, Optional

import requests

from .config import CONTENT_TYPE, Settings
from .pop import Pop
from .request import PopRequestURI

log = logging.getLogger(__name__)


class SendResult(str, Enum):
    OK = "ok"
    INVALID_POP = "invalid_pop"
    COMMUNICATION_ERROR = "communication_error"
    PROTOCOL_ERROR = "protocol_error"
    LOCAL_ERROR = "local_error"


class PopSender:
    """Sends a PoP and remembers the outcome of the last send."""

    def __init__(self):
        self._result: Optional[SendResult] = None
        self._message: Optional[str] = None

    def send_pop(self, signed_pop: Pop) -> SendResult:
        raise NotImplementedError

    @property
    def result(self) -> SendResult:
        if self._result is None:
            raise RuntimeError("send_pop has not been called yet")
        return self._result

    @property
    def error_message(self) -> Optional[str]:
        """Message from the validator or describing the failure, None if there is none."""
        if self._result is None:
            raise RuntimeError("send_pop has not been called yet")
        return self._message

    def _set(self, result: SendResult, message: Optional[str] = None) -> SendResult:
        self._result = result
        self._message = message or None
        if result is SendResult.OK:
            log.info("PoP accepted")
        else:
            log.warning("PoP send result %s: %s", result.value, self._message)
        return result


class HttpPopSender(PopSender):
    def __init__(self, request_uri: PopRequestURI, settings: Optional[Settings] = None,
                 session: Optional[requests.Session] = None):
        super().__init__()
        self.request_uri = request_uri
        self.settings = settings or Settings()
        self.session = session or requests.Session()

    def send_pop(self, signed_pop: Pop) -> SendResult:
        url = self.request_uri.p
        if not url:
            return self._set(SendResult.LOCAL_ERROR, "request has no pop destination")
        body = signed_pop.serialize()
        try:
            resp = self.session.post(url, data=body, headers={"Content-Type": CONTENT_TYPE},
                                     timeout=self.settings.http_timeout, stream=True)
        except (requests.exceptions.MissingSchema, requests.exceptions.InvalidSchema,
                requests.exceptions.InvalidURL) as e:
            return self._set(SendResult.LOCAL_ERROR, f"invalid url: {url} ({e})")
        except requests.RequestException as e:
            return self._set(SendResult.COMMUNICATION_ERROR, f"cannot send to {url}: {e}")
        try:
            if resp.status_code != 200:
                return self._set(SendResult.COMMUNICATION_ERROR, f"got response code: {resp.status_code}")
            try:
                chunks = (c.decode("ascii") for c in resp.iter_content(chunk_size=128))
                return self.read_reply(chunks)
            except UnicodeDecodeError as e:
                return self._set(SendResult.LOCAL_ERROR, f"reply is not US-ASCII: {e}")
            except requests.RequestException as e:
                return self._set(SendResult.COMMUNICATION_ERROR, f"could not read reply: {e}")
        finally:
            resp.close()

    def read_reply(self, chunks: Iterable[str]) -> SendResult:
        """Read at most reply_size_limit characters and map them to a result."""
        limit = self.settings.reply_size_limit
        text = ""
        for chunk in chunks:
            text += chunk
            if len(text) > limit:
                text = text[:limit]
                break
        if text == "valid":
            return self._set(SendResult.OK)
        if not text.startswith("invalid"):
            return self._set(SendResult.PROTOCOL_ERROR)
        _, newline, message = text.partition("\n")
        return self._set(SendResult.INVALID_POP, message if newline else None)
