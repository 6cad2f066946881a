"""
Publication Gate Module

Runs one sign operation: build (or accept) the payload, load the key just
long enough to sign, then either display the signature or publish it at the
address derived from the content digest.
"""

import sys
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, TextIO, Union

from oci_registry.reference import ContentDescriptor, ImageReference, Repository
from signing.artifact_signer import ArtifactSigner, encode_signature
from signing.key_manager import KeyManager
from signing.payload import PayloadBuilder
from .address import AddressDeriver, PublicationAddress
from .uploaders import SignatureFormat, Uploader, UploaderRegistry


class GateState(Enum):
    """Stages of a sign operation."""

    REFERENCE_RESOLVED = 'reference_resolved'
    PAYLOAD_READY = 'payload_ready'
    SIGNED = 'signed'
    DISPLAYED = 'displayed'
    PUBLICATION_ADDRESSED = 'publication_addressed'
    UPLOADED = 'uploaded'
    FAILED = 'failed'


TERMINAL_STATES = {GateState.DISPLAYED, GateState.UPLOADED, GateState.FAILED}


class PublicationResult:
    """Outcome of a sign operation and the states it passed through."""

    def __init__(self, descriptor: ContentDescriptor):
        self.descriptor = descriptor
        self.history: List[GateState] = [GateState.REFERENCE_RESOLVED]
        self.payload: Optional[bytes] = None
        self.signature: Optional[str] = None
        self.address: Optional[PublicationAddress] = None
        self.error: Optional[Exception] = None

    @property
    def state(self) -> GateState:
        return self.history[-1]

    def advance(self, state: GateState) -> None:
        if self.state in TERMINAL_STATES:
            raise RuntimeError(f"Sign operation already finished in state {self.state.value}")
        self.history.append(state)

    def fail(self, error: Exception) -> None:
        self.error = error
        self.history.append(GateState.FAILED)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'descriptor': self.descriptor.to_dict(),
            'state': self.state.value,
            'history': [state.value for state in self.history],
            'signature': self.signature,
            'address': str(self.address) if self.address else None,
            'error': str(self.error) if self.error else None
        }


class PublicationGate:
    """Orchestrates payload building, signing and publication."""

    def __init__(self,
                 key_loader: KeyManager,
                 passphrase_provider: Callable[[bool], bytes],
                 payload_builder: Optional[PayloadBuilder] = None,
                 signer: Optional[ArtifactSigner] = None,
                 address_deriver: Optional[AddressDeriver] = None,
                 output: Optional[TextIO] = None,
                 interactive: bool = False):
        """
        Initialize the gate.

        Args:
            key_loader: Loads KeyMaterial from a key path and passphrase
            passphrase_provider: Returns the key passphrase; receives the interactive flag
            payload_builder: Builds payloads when no override is given
            signer: Produces signatures
            address_deriver: Maps digests to publication addresses
            output: Stream receiving the displayed signature (default: stdout)
            interactive: Whether the passphrase may be prompted for
        """
        self.key_loader = key_loader
        self.passphrase_provider = passphrase_provider
        self.payload_builder = payload_builder or PayloadBuilder()
        self.signer = signer or ArtifactSigner()
        self.address_deriver = address_deriver or AddressDeriver()
        self.output = output
        self.interactive = interactive
        self.last_result: Optional[PublicationResult] = None

    def execute(self,
                descriptor: ContentDescriptor,
                repository: Repository,
                key_path: str,
                annotations: Optional[Dict[str, str]] = None,
                override_payload: Optional[bytes] = None,
                upload: bool = True,
                uploader: Optional[Uploader] = None) -> PublicationResult:
        """
        Sign a resolved descriptor and display or publish the signature.

        An override payload is signed verbatim and is NOT checked to contain
        the descriptor digest; callers using it own whatever binding they need.

        Returns:
            PublicationResult ending in DISPLAYED or UPLOADED

        Raises:
            The first error encountered, unchanged.
        """
        result = PublicationResult(descriptor)
        self.last_result = result

        try:
            if upload and uploader is None:
                raise ValueError("An uploader is required when upload is enabled")
            self._run(result, repository, key_path, annotations, override_payload, upload, uploader)
        except Exception as e:
            result.fail(e)
            raise

        return result

    def _run(self, result: PublicationResult, repository: Repository, key_path: str,
             annotations: Optional[Dict[str, str]], override_payload: Optional[bytes],
             upload: bool, uploader: Optional[Uploader]) -> None:
        if override_payload is not None:
            payload = bytes(override_payload)
        else:
            payload = self.payload_builder.build(result.descriptor.digest, annotations or {})
        result.payload = payload
        result.advance(GateState.PAYLOAD_READY)

        passphrase = self.passphrase_provider(self.interactive)
        with self.key_loader.load_private_key(key_path, passphrase) as key:
            signature = self.signer.sign(payload, key)
        result.signature = encode_signature(signature)
        result.advance(GateState.SIGNED)

        if not upload:
            print(result.signature, file=self.output or sys.stdout)
            result.advance(GateState.DISPLAYED)
            return

        address = self.address_deriver.address_for(repository, result.descriptor.digest)
        result.address = address
        result.advance(GateState.PUBLICATION_ADDRESSED)

        print("Pushing signature to:", address, file=sys.stderr)
        uploader.upload(signature, payload, address)
        result.advance(GateState.UPLOADED)


def sign_image(reference: Union[str, ImageReference],
               key_path: str,
               resolver,
               uploaders: UploaderRegistry,
               gate: PublicationGate,
               upload: bool = True,
               payload_path: Optional[str] = None,
               annotations: Optional[Dict[str, str]] = None,
               format_name: str = SignatureFormat.COMPAT.value) -> PublicationResult:
    """
    Resolve, sign and optionally publish a signature for an image reference.

    The format is checked first, so an unknown format fails before any
    registry access or key loading.

    Args:
        reference: Image reference to sign
        key_path: Path to the private key
        resolver: Object with resolve(reference) -> ContentDescriptor
        uploaders: Registry of uploaders by format
        gate: Configured PublicationGate
        upload: Publish the signature instead of printing it
        payload_path: Optional file whose raw bytes are signed instead of a generated payload
        annotations: Extra key/value pairs embedded in a generated payload
        format_name: Signature format name

    Returns:
        PublicationResult of the gate
    """
    uploader = uploaders.get(format_name)

    ref = reference if isinstance(reference, ImageReference) else ImageReference.parse(reference)
    descriptor = resolver.resolve(ref)

    override_payload = None
    if payload_path:
        print("Using payload from:", payload_path, file=sys.stderr)
        with open(payload_path, 'rb') as f:
            override_payload = f.read()

    return gate.execute(
        descriptor,
        ref.context(),
        key_path,
        annotations=annotations,
        override_payload=override_payload,
        upload=upload,
        uploader=uploader
    )
