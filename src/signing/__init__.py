"""
Image Signing Framework - Signing Module

This module provides payload construction, key management and Ed25519
signing for content-addressed artifacts.
"""

from .artifact_signer import ArtifactSigner, encode_signature
from .errors import (
    ImageSignError,
    InvalidDigestFormat,
    KeyLoadError,
    PassphraseMismatch,
    ReferenceResolutionError,
    SigningFailure,
    UnsupportedFormat,
    UploadError,
)
from .key_manager import KeyManager, KeyMaterial
from .passphrase import PassphraseProvider
from .payload import PayloadBuilder, split_digest

__all__ = [
    'ArtifactSigner', 'encode_signature', 'KeyManager', 'KeyMaterial',
    'PassphraseProvider', 'PayloadBuilder', 'split_digest',
    'ImageSignError', 'InvalidDigestFormat', 'KeyLoadError', 'PassphraseMismatch',
    'ReferenceResolutionError', 'SigningFailure', 'UnsupportedFormat', 'UploadError',
]
