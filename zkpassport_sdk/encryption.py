"""Key agreement and AEAD helpers protecting messages exchanged over the bridge.

The bridge only relays opaque ciphertext.  Both sides hold a secp256k1 key pair;
once the wallet announces its public key the two sides derive the same ECDH
secret, stretch it through HKDF-SHA256 and use the result as an AES-256-GCM key.
Every ciphertext is bound to its session topic through the AEAD associated data
so a payload captured on one topic cannot be replayed on another.

The rest of the client only talks to :class:`EncryptionGateway`; the concrete
primitives live in :class:`Secp256k1Gateway`.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Protocol

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.hkdf import HKDF
from cryptography.hazmat.primitives.serialization import Encoding, PublicFormat

from .errors import ZkPassportError

logger = logging.getLogger(__name__)

_AESGCM_NONCE_SIZE = 12
_PRIVATE_KEY_SIZE = 32
HKDF_KEY_LEN = 32
HKDF_INFO = b"zkpassport|bridge|shared-secret"


class CryptoError(ZkPassportError):
    """Raised when key material is unusable or a ciphertext fails authentication."""


@dataclass(frozen=True)
class KeyPair:
    """Raw secp256k1 key material: 32-byte scalar and 33-byte compressed point."""

    private_key: bytes
    public_key: bytes

    @property
    def public_key_hex(self) -> str:
        return self.public_key.hex()

    def __repr__(self) -> str:
        return f"KeyPair(public_key={self.public_key_hex!r})"


class EncryptionGateway(Protocol):
    """The four operations the session protocol needs from a crypto backend."""

    def generate_key_pair(self) -> KeyPair:
        ...

    def derive_shared_secret(self, private_key: bytes, peer_public_key: bytes) -> bytes:
        ...

    def encrypt(self, plaintext: bytes, shared_secret: bytes, context: str) -> bytes:
        ...

    def decrypt(self, ciphertext: bytes, shared_secret: bytes, context: str) -> bytes:
        ...


def _load_private_key(data: bytes) -> ec.EllipticCurvePrivateKey:
    if len(data) != _PRIVATE_KEY_SIZE:
        raise CryptoError(f"Private key must be {_PRIVATE_KEY_SIZE} bytes, got {len(data)}")
    try:
        return ec.derive_private_key(int.from_bytes(data, "big"), ec.SECP256K1())
    except ValueError as exc:
        raise CryptoError("Private key is outside the secp256k1 scalar range") from exc


def _load_public_key(data: bytes) -> ec.EllipticCurvePublicKey:
    try:
        return ec.EllipticCurvePublicKey.from_encoded_point(ec.SECP256K1(), data)
    except ValueError as exc:
        raise CryptoError("Peer public key is not a valid secp256k1 point") from exc


def _serialize_private_key(private_key: ec.EllipticCurvePrivateKey) -> bytes:
    return private_key.private_numbers().private_value.to_bytes(_PRIVATE_KEY_SIZE, "big")


def _serialize_public_key(public_key: ec.EllipticCurvePublicKey) -> bytes:
    return public_key.public_bytes(Encoding.X962, PublicFormat.CompressedPoint)


def key_pair_from_private_key(private_key: bytes) -> KeyPair:
    """Rebuild a :class:`KeyPair` from a stored private scalar."""

    loaded = _load_private_key(private_key)
    return KeyPair(private_key=bytes(private_key), public_key=_serialize_public_key(loaded.public_key()))


def parse_public_key_hex(value: str) -> bytes:
    """Decode a hex encoded peer public key as sent in ``handshake`` messages."""

    cleaned = value[2:] if value.startswith(("0x", "0X")) else value
    try:
        raw = bytes.fromhex(cleaned)
    except ValueError as exc:
        raise CryptoError("Peer public key is not valid hex") from exc
    _load_public_key(raw)
    return raw


class Secp256k1Gateway:
    """Default :class:`EncryptionGateway` built on the ``cryptography`` package."""

    def generate_key_pair(self) -> KeyPair:
        private_key = ec.generate_private_key(ec.SECP256K1())
        logger.debug("Generated secp256k1 session key pair")
        return KeyPair(
            private_key=_serialize_private_key(private_key),
            public_key=_serialize_public_key(private_key.public_key()),
        )

    def derive_shared_secret(self, private_key: bytes, peer_public_key: bytes) -> bytes:
        local = _load_private_key(private_key)
        peer = _load_public_key(peer_public_key)
        raw_secret = local.exchange(ec.ECDH(), peer)
        hkdf = HKDF(
            algorithm=hashes.SHA256(),
            length=HKDF_KEY_LEN,
            salt=None,
            info=HKDF_INFO,
        )
        return hkdf.derive(raw_secret)

    def encrypt(self, plaintext: bytes, shared_secret: bytes, context: str) -> bytes:
        aesgcm = self._cipher(shared_secret)
        nonce = os.urandom(_AESGCM_NONCE_SIZE)
        return nonce + aesgcm.encrypt(nonce, plaintext, context.encode("utf-8"))

    def decrypt(self, ciphertext: bytes, shared_secret: bytes, context: str) -> bytes:
        aesgcm = self._cipher(shared_secret)
        if len(ciphertext) <= _AESGCM_NONCE_SIZE:
            raise CryptoError("Ciphertext is truncated")
        nonce, body = ciphertext[:_AESGCM_NONCE_SIZE], ciphertext[_AESGCM_NONCE_SIZE:]
        try:
            return aesgcm.decrypt(nonce, body, context.encode("utf-8"))
        except InvalidTag as exc:
            raise CryptoError("Failed to decrypt payload; wrong key, topic or tampered data") from exc

    @staticmethod
    def _cipher(shared_secret: bytes | None) -> AESGCM:
        if not shared_secret:
            raise CryptoError("No shared secret has been established for this session")
        if len(shared_secret) != HKDF_KEY_LEN:
            raise CryptoError(f"Shared secret must be {HKDF_KEY_LEN} bytes")
        return AESGCM(shared_secret)
