"""
Hash, key and address helpers over secp256k1.

Keys are plain integers (secret exponents) on the signing side and compressed
33-byte points on the verifying side, the same domain ecdsa and bitsv use.
"""

import hashlib
import hmac

from bitsv import base58
from ecdsa import SECP256k1, SigningKey, VerifyingKey
from ecdsa.util import sigencode_der_canonize

SECP = SECP256k1
N = SECP.order


# ------------------------------
# Hashing
# ------------------------------
def sha256(b: bytes) -> bytes:
    return hashlib.sha256(b).digest()

def dbl_sha256(b: bytes) -> bytes:
    return hashlib.sha256(hashlib.sha256(b).digest()).digest()

def ripemd160(b: bytes) -> bytes:
    h = hashlib.new("ripemd160")
    h.update(b)
    return h.digest()

def h160(b: bytes) -> bytes:
    return ripemd160(sha256(b))

# Simple HKDF (extract+expand), used to derive key-encryption material
def hkdf_extract(salt: bytes, ikm: bytes) -> bytes:
    return hmac.new(salt, ikm, hashlib.sha256).digest()

def hkdf_expand(prk: bytes, info: bytes, l: int) -> bytes:
    t = b""
    okm = b""
    block = 1
    while len(okm) < l:
        t = hmac.new(prk, t + info + bytes([block]), hashlib.sha256).digest()
        okm += t
        block += 1
    return okm[:l]

def hkdf(ikm: bytes, salt: bytes, info: bytes, l: int) -> bytes:
    prk = hkdf_extract(salt, ikm)
    return hkdf_expand(prk, info, l)


# ------------------------------
# Keys and signatures
# ------------------------------
def priv_to_pub_compressed(priv: int) -> bytes:
    sk = SigningKey.from_secret_exponent(priv, curve=SECP)
    return sk.get_verifying_key().to_string("compressed")

def sign_digest(priv: int, digest: bytes) -> bytes:
    """Deterministic (RFC 6979) low-S DER signature over a 32-byte digest."""
    sk = SigningKey.from_secret_exponent(priv, curve=SECP)
    return sk.sign_digest_deterministic(digest, hashfunc=hashlib.sha256, sigencode=sigencode_der_canonize)

def load_verifying_key(pubkey: bytes) -> VerifyingKey:
    # accepts compressed and uncompressed SEC encodings
    return VerifyingKey.from_string(pubkey, curve=SECP)

def p2pkh_address_from_pubkey_compressed(pub_compressed: bytes, version: int = 0x00) -> str:
    payload = bytes([version]) + h160(pub_compressed)
    checksum = dbl_sha256(payload)[:4]
    return base58.b58encode(payload + checksum)


# ------------------------------
# Base58
# ------------------------------
def b58decode(value: str) -> bytes:
    """
    Base58 text -> bytes, one zero byte per leading '1'. Raises ValueError on
    characters outside the alphabet.
    """
    # bitsv adds an extra zero byte when the text is nothing but '1's
    if not value.strip("1"):
        return bytes(len(value))
    return base58.b58decode(value)
