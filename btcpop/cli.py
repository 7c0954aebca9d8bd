"""
btcpop command line.

    btcpop make-uri --dest https://shop.example/pop --amount 0.001 --label "order 42"
    btcpop parse-uri 'btcpop:?p=...&n=...'
    btcpop build-pop --tx <payment hex> --nonce <base58>
    btcpop inspect-pop <pop hex>
"""

import argparse
import json
import logging
import os
import sys
from typing import List, Optional

from bitsv import base58

from .config import Settings
from .crypto import b58decode
from .errors import PopError
from .ledger import Transaction
from .pop import Pop
from .request import PopRequest, PopRequestURI, parse_amount


def _request_to_dict(uri: PopRequestURI) -> dict:
    return {
        "p": uri.p,
        "n": base58.b58encode(uri.n) if uri.n is not None else None,
        "nonce_hex": uri.n.hex() if uri.n is not None else None,
        "r": uri.r,
        "amount_satoshis": uri.amount,
        "label": uri.label,
        "message": uri.message,
        "txid": uri.txid.hex() if uri.txid is not None else None,
    }


def cmd_make_uri(args, settings: Settings) -> int:
    nonce = b58decode(args.nonce) if args.nonce else os.urandom(settings.nonce_length)
    request = PopRequest(
        nonce=nonce,
        destination=args.dest,
        amount=parse_amount(args.amount) if args.amount is not None else None,
        label=args.label,
        message=args.message,
        txid=bytes.fromhex(args.txid) if args.txid else None,
    )
    print(PopRequestURI.from_request(request).to_uri_string())
    return 0


def cmd_parse_uri(args, settings: Settings) -> int:
    uri = PopRequestURI.parse(args.uri)
    print(json.dumps(_request_to_dict(uri), indent=2, ensure_ascii=False))
    return 0


def cmd_build_pop(args, settings: Settings) -> int:
    pop = Pop.build(Transaction.from_hex(args.tx).serialize(), b58decode(args.nonce), settings.nonce_length)
    print(pop.to_hex())
    return 0


def cmd_inspect_pop(args, settings: Settings) -> int:
    pop = Pop.from_bytes(Transaction.from_hex(args.pop).serialize())
    txid_to_prove = pop.txid_to_prove
    nonce = pop.nonce
    print(json.dumps({
        "txid": pop.txid.hex(),
        "lock_time": pop.lock_time,
        "inputs": [{"outpoint": str(i.outpoint), "sequence": i.sequence} for i in pop.inputs],
        "txid_to_prove": txid_to_prove.hex() if txid_to_prove is not None else None,
        "nonce": base58.b58encode(nonce) if nonce else None,
    }, indent=2))
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="btcpop", description="Bitcoin proof-of-payment tools")
    parser.add_argument("-v", "--verbose", action="store_true", help="debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("make-uri", help="create a btcpop: request URI")
    p.add_argument("--dest", required=True, help="where the PoP should be sent")
    p.add_argument("--nonce", help="base58 nonce (random if omitted)")
    p.add_argument("--amount", help="amount in BTC")
    p.add_argument("--label")
    p.add_argument("--message")
    p.add_argument("--txid", help="transaction id (hex) to prove")
    p.set_defaults(func=cmd_make_uri)

    p = sub.add_parser("parse-uri", help="decode a btcpop: request URI as JSON")
    p.add_argument("uri")
    p.set_defaults(func=cmd_parse_uri)

    p = sub.add_parser("build-pop", help="build an unsigned PoP for a raw transaction")
    p.add_argument("--tx", required=True, help="raw payment transaction (hex)")
    p.add_argument("--nonce", required=True, help="base58 nonce from the request")
    p.set_defaults(func=cmd_build_pop)

    p = sub.add_parser("inspect-pop", help="show the fields of a PoP")
    p.add_argument("pop", help="raw PoP (hex)")
    p.set_defaults(func=cmd_inspect_pop)
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING,
                        format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    try:
        return args.func(args, Settings.from_env())
    except (PopError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
