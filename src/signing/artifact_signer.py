"""
Artifact Signer Module

Produces Ed25519 signatures over signing payloads. Ed25519 is deterministic,
so the same payload and key always yield the same signature.
"""

import base64
from typing import Tuple

try:
    from cryptography.hazmat.primitives import serialization
    from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey, Ed25519PublicKey
    CRYPTOGRAPHY_AVAILABLE = True
except ImportError:
    CRYPTOGRAPHY_AVAILABLE = False

from .errors import SigningFailure
from .key_manager import KeyMaterial

SEED_SIZE = 32
SIGNATURE_SIZE = 64


def encode_signature(signature: bytes) -> str:
    """Standard base64 form of a signature, as displayed and uploaded."""
    return base64.b64encode(signature).decode('utf-8')


class ArtifactSigner:
    """Digital signer for image signing payloads."""

    def __init__(self):
        if not CRYPTOGRAPHY_AVAILABLE:
            raise ImportError("cryptography library is required for signing operations")

    def sign(self, payload: bytes, key: KeyMaterial) -> bytes:
        """
        Sign a payload.

        Args:
            payload: Bytes to sign
            key: Private key material (32-byte seed or 64-byte seed||public)

        Returns:
            64-byte signature
        """
        if not isinstance(payload, (bytes, bytearray)):
            raise SigningFailure(f"Payload must be bytes, got {type(payload).__name__}")

        private_key, _ = self._load(key)
        return private_key.sign(bytes(payload))

    def _load(self, key: KeyMaterial) -> Tuple['Ed25519PrivateKey', 'Ed25519PublicKey']:
        raw = key.raw()
        if len(raw) not in (SEED_SIZE, SEED_SIZE * 2):
            raise SigningFailure(
                f"Unsupported key size {len(raw)} bytes from {key.source}; "
                f"expected {SEED_SIZE} or {SEED_SIZE * 2}"
            )

        try:
            private_key = Ed25519PrivateKey.from_private_bytes(bytes(raw[:SEED_SIZE]))
        except ValueError as e:
            raise SigningFailure(f"Malformed key material from {key.source}: {e}") from e
        public_key = private_key.public_key()

        if len(raw) == SEED_SIZE * 2:
            public_bytes = public_key.public_bytes(
                encoding=serialization.Encoding.Raw,
                format=serialization.PublicFormat.Raw
            )
            if bytes(raw[SEED_SIZE:]) != public_bytes:
                raise SigningFailure(f"Public half of key material from {key.source} does not match its seed")

        return private_key, public_key
