"""
Image Signing Framework - Publication Module

This module derives signature publication addresses, orchestrates sign
operations and uploads signatures in the supported registry conventions.
"""

from .address import AddressDeriver, PublicationAddress
from .gate import GateState, PublicationGate, PublicationResult, sign_image
from .uploaders import (
    CompatUploader,
    IndexUploader,
    SignatureFormat,
    Uploader,
    UploaderRegistry,
    default_uploader_registry,
)

__all__ = [
    'AddressDeriver', 'PublicationAddress',
    'GateState', 'PublicationGate', 'PublicationResult', 'sign_image',
    'CompatUploader', 'IndexUploader', 'SignatureFormat', 'Uploader',
    'UploaderRegistry', 'default_uploader_registry',
]
