"""
Payload Builder Module

Builds the canonical "simple signing" payload that binds a signature to an
exact content digest plus optional caller annotations.
"""

import json
import re
from typing import Dict, Optional, Tuple

from .errors import InvalidDigestFormat

SIGNATURE_TYPE = 'imagesign container image signature'

# algorithm components may use + . _ but never '-', hex is lowercase
_DIGEST_PATTERN = re.compile(r'^([a-z0-9]+(?:[+._][a-z0-9]+)*):([0-9a-f]+)$')


def split_digest(digest: str) -> Tuple[str, str]:
    """
    Split a digest into its algorithm and hex value.

    Args:
        digest: Digest string such as 'sha256:abc123'

    Returns:
        Tuple of (algorithm, hex_value)
    """
    if not isinstance(digest, str):
        raise InvalidDigestFormat(repr(digest), "digest must be a string")

    match = _DIGEST_PATTERN.match(digest)
    if match is None:
        raise InvalidDigestFormat(digest)

    return match.group(1), match.group(2)


class PayloadBuilder:
    """Builds deterministic signing payloads for content digests."""

    def __init__(self, docker_reference: str = ''):
        self.docker_reference = docker_reference

    def build(self, digest: str, annotations: Optional[Dict[str, str]] = None) -> bytes:
        """
        Build the signable payload for a digest.

        Args:
            digest: Content digest in algorithm:hex form
            annotations: Optional key/value pairs to embed in the payload

        Returns:
            Canonical UTF-8 JSON bytes
        """
        split_digest(digest)

        optional = None
        if annotations:
            for key, value in annotations.items():
                if not isinstance(key, str) or not isinstance(value, str):
                    raise ValueError(f"Annotations must map strings to strings, got {key!r}={value!r}")
            optional = dict(annotations)

        document = {
            'critical': {
                'identity': {'docker-reference': self.docker_reference},
                'image': {'docker-manifest-digest': digest},
                'type': SIGNATURE_TYPE,
            },
            'optional': optional,
        }

        # Sorted keys make equal annotation sets serialize identically
        payload_json = json.dumps(document, sort_keys=True, separators=(',', ':'))
        return payload_json.encode('utf-8')
