"""
Image Signing Framework - OCI Registry Module

This module provides image reference parsing and a registry client for
resolving references and pushing signature artifacts.
"""

from .client import (
    DOCKER_MANIFEST,
    DOCKER_MANIFEST_LIST,
    OCI_INDEX,
    OCI_MANIFEST,
    Credentials,
    DockerConfigKeychain,
    RegistryClient,
    sha256_digest,
)
from .reference import ContentDescriptor, ImageReference, Repository

__all__ = [
    'ContentDescriptor', 'ImageReference', 'Repository',
    'Credentials', 'DockerConfigKeychain', 'RegistryClient', 'sha256_digest',
    'OCI_MANIFEST', 'OCI_INDEX', 'DOCKER_MANIFEST', 'DOCKER_MANIFEST_LIST',
]
