"""
Signing context: a small key store that signs P2PKH inputs.

Private keys may be held in the clear or encrypted under a password. Encryption
derives a keystream and a MAC key from the password with HKDF-SHA256 over a
random salt; a wrong or missing password is detected through the MAC and
reported as KeyCrypterError.
"""

import hmac
import logging
import os
from dataclasses import dataclass
from typing import Dict, List, Optional

from bitsv import Key

from .crypto import N, h160, hkdf, p2pkh_address_from_pubkey_compressed, priv_to_pub_compressed
from .errors import ConnectError, KeyCrypterError, KeyNotFoundError
from .ledger import Transaction, p2pkh_hash, p2pkh_script, sign_input

log = logging.getLogger(__name__)

_KEY_INFO = b"btcpop-wallet-key"


@dataclass(frozen=True)
class EncryptedKey:
    salt: bytes
    ciphertext: bytes
    mac: bytes


def _key_material(password: bytes, salt: bytes):
    okm = hkdf(password, salt, _KEY_INFO, 64)
    return okm[:32], okm[32:]

def encrypt_priv(priv: int, password: bytes, salt: Optional[bytes] = None) -> EncryptedKey:
    salt = salt if salt is not None else os.urandom(16)
    stream, mac_key = _key_material(password, salt)
    ciphertext = bytes(a ^ b for a, b in zip(priv.to_bytes(32, "big"), stream))
    return EncryptedKey(salt=salt, ciphertext=ciphertext, mac=hmac.new(mac_key, ciphertext, "sha256").digest())

def decrypt_priv(enc: EncryptedKey, password: Optional[bytes]) -> int:
    if password is None:
        raise KeyCrypterError("key is encrypted and no decryption key was given")
    stream, mac_key = _key_material(password, enc.salt)
    expected = hmac.new(mac_key, enc.ciphertext, "sha256").digest()
    if not hmac.compare_digest(expected, enc.mac):
        raise KeyCrypterError("wrong decryption key")
    return int.from_bytes(bytes(a ^ b for a, b in zip(enc.ciphertext, stream)), "big")


@dataclass
class WalletKey:
    pubkey: bytes
    priv: Optional[int] = None
    encrypted: Optional[EncryptedKey] = None

    def is_encrypted(self) -> bool:
        return self.encrypted is not None

    def secret(self, decryption_key: Optional[bytes]) -> int:
        if self.encrypted is not None:
            return decrypt_priv(self.encrypted, decryption_key)
        return self.priv


class Wallet:
    def __init__(self):
        self._keys: Dict[bytes, WalletKey] = {}   # hash160(pubkey) -> key

    def import_key(self, priv: int) -> bytes:
        if not 0 < priv < N:
            raise ValueError("private key out of range")
        pub = priv_to_pub_compressed(priv)
        self._keys[h160(pub)] = WalletKey(pubkey=pub, priv=priv)
        return pub

    def import_wif(self, wif: str) -> bytes:
        return self.import_key(Key(wif).to_int())

    def remove_key(self, pubkey: bytes):
        self._keys.pop(h160(pubkey), None)

    def encrypt(self, password: bytes):
        """Encrypt every clear key in place."""
        for pkh, k in self._keys.items():
            if not k.is_encrypted():
                self._keys[pkh] = WalletKey(pubkey=k.pubkey, encrypted=encrypt_priv(k.priv, password))

    def is_encrypted(self) -> bool:
        return any(k.is_encrypted() for k in self._keys.values())

    def pubkeys(self) -> List[bytes]:
        return [k.pubkey for k in self._keys.values()]

    def addresses(self) -> List[str]:
        return [p2pkh_address_from_pubkey_compressed(k.pubkey) for k in self._keys.values()]

    def script_for(self, pubkey: bytes) -> bytes:
        return p2pkh_script(h160(pubkey))

    def has_key_for(self, script_pubkey: bytes) -> bool:
        pkh = p2pkh_hash(script_pubkey)
        return pkh is not None and pkh in self._keys

    def sign_transaction(self, tx: Transaction, decryption_key: Optional[bytes] = None):
        """
        Sign every input of `tx` with SIGHASH_ALL. All inputs must be connected
        and spend P2PKH outputs of keys in this wallet. Keys are resolved (and
        decrypted) before any input is touched, so a failure leaves `tx` as it was.
        """
        secrets = []
        for index, inp in enumerate(tx.inputs):
            out = inp.connected_output
            if out is None:
                raise ConnectError(f"input {index} is not connected")
            pkh = p2pkh_hash(out.script_pubkey)
            key = self._keys.get(pkh) if pkh is not None else None
            if key is None:
                raise KeyNotFoundError(f"no key for input {index} ({inp.outpoint})")
            secrets.append(key.secret(decryption_key))
        for index, priv in enumerate(secrets):
            sign_input(tx, index, priv)
        log.debug("signed %d inputs of %s", len(secrets), tx.txid_hex)
