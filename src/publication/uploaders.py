"""
Uploaders Module

Publishes a signature and its payload to the registry under a publication
address. Two conventions are supported, selected by format name:

- compat: the signature tag holds a single image manifest with one layer per
  signature.
- index: every signature is its own image manifest, and the signature tag
  holds an image index listing them.
"""

import json
from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Dict, List, Optional

from oci_registry.client import (
    DOCKER_MANIFEST,
    DOCKER_MANIFEST_LIST,
    OCI_INDEX,
    OCI_MANIFEST,
    RegistryClient,
    sha256_digest,
)
from oci_registry.reference import Repository
from signing.artifact_signer import encode_signature
from signing.errors import UnsupportedFormat, UploadError
from .address import PublicationAddress

SIGNATURE_ANNOTATION = 'dev.cosignproject.cosign/signature'
PAYLOAD_MEDIA_TYPE = 'application/vnd.dev.cosign.simplesigning.v1+json'
CONFIG_MEDIA_TYPE = 'application/vnd.oci.image.config.v1+json'


def canonical_json(document: Dict[str, Any]) -> bytes:
    return json.dumps(document, sort_keys=True, separators=(',', ':')).encode('utf-8')


class SignatureFormat(Enum):
    """Registered signature publication conventions."""

    COMPAT = 'compat'
    INDEX = 'index'


class Uploader(ABC):
    """Abstract base class for signature uploaders."""

    format: SignatureFormat

    @abstractmethod
    def upload(self, signature: bytes, payload: bytes, address: PublicationAddress) -> None:
        """Publish the signature and payload at the address."""
        pass


class RegistryUploader(Uploader):
    """Shared blob and manifest construction for registry-backed uploaders."""

    def __init__(self, client: RegistryClient):
        self.client = client

    def _read_existing(self, address: PublicationAddress, accepted: tuple) -> Optional[Dict[str, Any]]:
        existing = self.client.fetch_manifest(address.reference(), accept=accepted)
        if existing is None:
            return None

        body, media_type = existing
        try:
            document = json.loads(body)
        except ValueError as e:
            raise UploadError(str(address), f"existing manifest is not JSON ({e})") from e

        media_type = media_type or document.get('mediaType', '')
        if media_type not in accepted:
            raise UploadError(
                str(address),
                f"existing content has media type {media_type!r}, expected one of {', '.join(accepted)}"
            )
        return document

    def _push_layer(self, repository: Repository, signature: bytes, payload: bytes) -> Dict[str, Any]:
        digest = self.client.upload_blob(repository, payload)
        return {
            'mediaType': PAYLOAD_MEDIA_TYPE,
            'digest': digest,
            'size': len(payload),
            'annotations': {SIGNATURE_ANNOTATION: encode_signature(signature)}
        }

    def _push_manifest_body(self, repository: Repository, layers: List[Dict[str, Any]]) -> bytes:
        config = canonical_json({
            'architecture': '',
            'os': '',
            'config': {},
            'rootfs': {'type': 'layers', 'diff_ids': [layer['digest'] for layer in layers]}
        })
        config_digest = self.client.upload_blob(repository, config)

        return canonical_json({
            'schemaVersion': 2,
            'mediaType': OCI_MANIFEST,
            'config': {
                'mediaType': CONFIG_MEDIA_TYPE,
                'digest': config_digest,
                'size': len(config)
            },
            'layers': layers
        })


class CompatUploader(RegistryUploader):
    """Legacy convention: one manifest at the signature tag, one layer per signature."""

    format = SignatureFormat.COMPAT

    def upload(self, signature: bytes, payload: bytes, address: PublicationAddress) -> None:
        existing = self._read_existing(address, (OCI_MANIFEST, DOCKER_MANIFEST))
        layers = list(existing.get('layers', [])) if existing else []

        layer = self._push_layer(address.repository, signature, payload)
        if layer not in layers:
            layers.append(layer)

        body = self._push_manifest_body(address.repository, layers)
        self.client.put_manifest(address.reference(), body, OCI_MANIFEST)


class IndexUploader(RegistryUploader):
    """Multi-architecture index convention: one manifest per signature, indexed at the tag."""

    format = SignatureFormat.INDEX

    def upload(self, signature: bytes, payload: bytes, address: PublicationAddress) -> None:
        existing = self._read_existing(address, (OCI_INDEX, DOCKER_MANIFEST_LIST))
        manifests = list(existing.get('manifests', [])) if existing else []

        layer = self._push_layer(address.repository, signature, payload)
        body = self._push_manifest_body(address.repository, [layer])
        digest = sha256_digest(body)
        self.client.put_manifest(address.repository.digest(digest), body, OCI_MANIFEST)

        if not any(entry.get('digest') == digest for entry in manifests):
            manifests.append({
                'mediaType': OCI_MANIFEST,
                'digest': digest,
                'size': len(body),
                'annotations': {SIGNATURE_ANNOTATION: encode_signature(signature)}
            })

        index = canonical_json({
            'schemaVersion': 2,
            'mediaType': OCI_INDEX,
            'manifests': manifests
        })
        self.client.put_manifest(address.reference(), index, OCI_INDEX)


class UploaderRegistry:
    """Fixed mapping from signature format to uploader, built once at startup."""

    def __init__(self, uploaders: Dict[SignatureFormat, Uploader]):
        self._uploaders = dict(uploaders)

    def formats(self) -> List[str]:
        return [fmt.value for fmt in SignatureFormat if fmt in self._uploaders]

    def get(self, format_name: str) -> Uploader:
        """
        Look up the uploader for a format name.

        Raises:
            UnsupportedFormat: if the name is not a registered format
        """
        try:
            signature_format = SignatureFormat(format_name)
        except ValueError:
            raise UnsupportedFormat(format_name, self.formats()) from None

        if signature_format not in self._uploaders:
            raise UnsupportedFormat(format_name, self.formats())
        return self._uploaders[signature_format]


def default_uploader_registry(client: RegistryClient) -> UploaderRegistry:
    return UploaderRegistry({
        SignatureFormat.COMPAT: CompatUploader(client),
        SignatureFormat.INDEX: IndexUploader(client),
    })
