"""
Signing Errors Module

Error taxonomy shared by the signing, registry and publication modules.
Every error keeps the offending input so callers can report it as-is.
"""

from typing import Optional


class ImageSignError(Exception):
    """Base class for all image signing failures."""


class InvalidDigestFormat(ImageSignError, ValueError):
    """Raised when a digest is not in the expected algorithm:hex shape."""

    def __init__(self, digest: str, reason: str = "expected algorithm:hex"):
        self.digest = digest
        super().__init__(f"Invalid digest format: {digest!r} ({reason})")


class SigningFailure(ImageSignError):
    """Raised when the key material cannot be used to produce a signature."""


class ReferenceResolutionError(ImageSignError):
    """Raised when an image reference is malformed or cannot be resolved."""

    def __init__(self, reference: str, reason: str):
        self.reference = reference
        self.reason = reason
        super().__init__(f"Failed to resolve {reference}: {reason}")


class KeyLoadError(ImageSignError):
    """Raised when a private key cannot be read or decrypted."""

    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Failed to load private key {path}: {reason}")


class UnsupportedFormat(ImageSignError, ValueError):
    """Raised when a signature format has no registered uploader."""

    def __init__(self, format_name: str, supported: Optional[list] = None):
        self.format_name = format_name
        self.supported = supported or []
        message = f"unsupported format flag: {format_name}"
        if self.supported:
            message += f" (supported: {', '.join(self.supported)})"
        super().__init__(message)


class UploadError(ImageSignError):
    """Raised when the signature artifact cannot be published."""

    def __init__(self, target: str, reason: str):
        self.target = target
        self.reason = reason
        super().__init__(f"Failed to upload to {target}: {reason}")


class PassphraseMismatch(ImageSignError):
    """Raised when a new passphrase and its confirmation differ."""

    def __init__(self):
        super().__init__("passphrases do not match")
