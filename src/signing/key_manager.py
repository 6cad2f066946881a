"""
Key Manager Module

Manages Ed25519 signing keys: generation, encrypted storage, and loading
private keys into short-lived KeyMaterial holders.
"""

from pathlib import Path
from typing import Optional, Tuple

try:
    from cryptography.exceptions import UnsupportedAlgorithm
    from cryptography.hazmat.primitives import serialization
    from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey, Ed25519PublicKey
    CRYPTOGRAPHY_AVAILABLE = True
except ImportError:
    CRYPTOGRAPHY_AVAILABLE = False

from .errors import KeyLoadError, SigningFailure


class KeyMaterial:
    """
    Raw private key bytes held for the duration of one sign operation.

    Use as a context manager; the buffer is zeroed when the block exits,
    whether signing succeeded or not.
    """

    def __init__(self, private_bytes: bytes, source: str = '<memory>'):
        self._buffer = bytearray(private_bytes)
        self.source = source
        self._released = False

    def __enter__(self) -> 'KeyMaterial':
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()

    def __len__(self) -> int:
        return len(self._buffer)

    def __repr__(self) -> str:
        state = 'released' if self._released else f'{len(self._buffer)} bytes'
        return f"KeyMaterial(source={self.source!r}, {state})"

    @property
    def released(self) -> bool:
        return self._released

    def raw(self) -> bytearray:
        """Return the live key buffer."""
        if self._released:
            raise SigningFailure(f"Key material from {self.source} has already been released")
        return self._buffer

    def release(self) -> None:
        """Zero the key buffer."""
        for i in range(len(self._buffer)):
            self._buffer[i] = 0
        self._released = True


class KeyManager:
    """Manages cryptographic keys for the signing system."""

    def __init__(self):
        if not CRYPTOGRAPHY_AVAILABLE:
            raise ImportError("cryptography library is required for key management operations")

    def generate_key_pair(self) -> Tuple['Ed25519PrivateKey', 'Ed25519PublicKey']:
        """
        Generate an Ed25519 key pair.

        Returns:
            Tuple of (private_key, public_key)
        """
        private_key = Ed25519PrivateKey.generate()
        return private_key, private_key.public_key()

    def save_private_key(self,
                         private_key: 'Ed25519PrivateKey',
                         file_path: str,
                         password: Optional[bytes] = None) -> None:
        """
        Save a private key to a PEM file.

        Args:
            private_key: Private key to save
            file_path: Path where to save the key
            password: Optional password for encryption
        """
        output_dir = Path(file_path).parent
        output_dir.mkdir(parents=True, exist_ok=True)

        encryption_algorithm = serialization.NoEncryption()
        if password:
            encryption_algorithm = serialization.BestAvailableEncryption(password)

        pem_bytes = private_key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=encryption_algorithm
        )

        with open(file_path, 'wb') as f:
            f.write(pem_bytes)
        Path(file_path).chmod(0o600)

    def save_public_key(self, public_key: 'Ed25519PublicKey', file_path: str) -> None:
        """Save a public key to a PEM file."""
        output_dir = Path(file_path).parent
        output_dir.mkdir(parents=True, exist_ok=True)

        pem_bytes = public_key.public_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PublicFormat.SubjectPublicKeyInfo
        )

        with open(file_path, 'wb') as f:
            f.write(pem_bytes)

    def load_private_key(self, file_path: str, password: Optional[bytes] = None) -> KeyMaterial:
        """
        Load a private key from a PEM file.

        Args:
            file_path: Path to the private key file
            password: Passphrase for decryption; empty means unencrypted

        Returns:
            KeyMaterial holding the raw Ed25519 seed
        """
        path = Path(file_path)
        if not path.exists():
            raise KeyLoadError(str(file_path), "file not found")

        with open(path, 'rb') as f:
            pem_data = f.read()

        try:
            private_key = serialization.load_pem_private_key(
                pem_data,
                password=password or None
            )
        except (ValueError, TypeError) as e:
            raise KeyLoadError(str(file_path), f"bad passphrase or corrupt key file ({e})") from e
        except UnsupportedAlgorithm as e:
            raise KeyLoadError(str(file_path), f"unsupported key algorithm ({e})") from e

        if not isinstance(private_key, Ed25519PrivateKey):
            raise KeyLoadError(str(file_path), f"expected an Ed25519 key, got {type(private_key).__name__}")

        raw = private_key.private_bytes(
            encoding=serialization.Encoding.Raw,
            format=serialization.PrivateFormat.Raw,
            encryption_algorithm=serialization.NoEncryption()
        )
        return KeyMaterial(raw, source=str(file_path))

    def load_public_key(self, file_path: str) -> 'Ed25519PublicKey':
        """Load a public key from a PEM file."""
        if not Path(file_path).exists():
            raise FileNotFoundError(f"Public key file not found: {file_path}")

        with open(file_path, 'rb') as f:
            pem_data = f.read()

        public_key = serialization.load_pem_public_key(pem_data)
        if not isinstance(public_key, Ed25519PublicKey):
            raise ValueError(f"Expected an Ed25519 public key, got {type(public_key).__name__}")
        return public_key

    def create_key_pair_files(self,
                              private_key_path: str = 'imagesign.key',
                              public_key_path: str = 'imagesign.pub',
                              password: Optional[bytes] = None,
                              overwrite: bool = False) -> Tuple[str, str]:
        """
        Generate and save a key pair to files.

        Args:
            private_key_path: Path for private key file
            public_key_path: Path for public key file
            password: Optional password for private key encryption
            overwrite: Replace existing files instead of failing

        Returns:
            Tuple of (private_key_path, public_key_path)
        """
        if not overwrite:
            for existing in (private_key_path, public_key_path):
                if Path(existing).exists():
                    raise FileExistsError(f"Refusing to overwrite existing key file: {existing}")

        private_key, public_key = self.generate_key_pair()

        self.save_private_key(private_key, private_key_path, password)
        self.save_public_key(public_key, public_key_path)

        return private_key_path, public_key_path
