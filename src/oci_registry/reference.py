"""
Image Reference Module

Parses human-given image references such as 'ghcr.io/org/app:v1' or
'alpine@sha256:...' into registry, repository, tag and digest parts.
"""

import re
from dataclasses import dataclass
from typing import Any, Dict, Optional

from signing.errors import InvalidDigestFormat, ReferenceResolutionError
from signing.payload import split_digest

DEFAULT_REGISTRY = 'index.docker.io'
DEFAULT_TAG = 'latest'

_DOCKER_HUB_ALIASES = {'docker.io', 'index.docker.io', 'registry-1.docker.io'}
_PATH_COMPONENT = re.compile(r'^[a-z0-9]+(?:(?:[._]|__|-+)[a-z0-9]+)*$')
_TAG = re.compile(r'^[A-Za-z0-9_][A-Za-z0-9_.-]{0,127}$')
_REGISTRY = re.compile(r'^[A-Za-z0-9.-]+(?::[0-9]+)?$')


@dataclass(frozen=True)
class ContentDescriptor:
    """Immutable description of resolved content in a registry."""

    digest: str
    media_type: str
    size: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            'digest': self.digest,
            'mediaType': self.media_type,
            'size': self.size
        }


@dataclass(frozen=True)
class Repository:
    """A repository within a registry, e.g. ghcr.io/org/app."""

    registry: str
    name: str

    def tag(self, tag: str) -> 'ImageReference':
        """Reference to a tag within this repository."""
        if not _TAG.match(tag):
            raise ReferenceResolutionError(f"{self}:{tag}", "invalid tag")
        return ImageReference(repository=self, tag=tag)

    def digest(self, digest: str) -> 'ImageReference':
        """Reference to a digest within this repository."""
        return ImageReference(repository=self, digest=digest)

    def __str__(self) -> str:
        return f"{self.registry}/{self.name}"


@dataclass(frozen=True)
class ImageReference:
    """A parsed tag or digest reference."""

    repository: Repository
    tag: Optional[str] = None
    digest: Optional[str] = None

    @property
    def identifier(self) -> str:
        """Digest when pinned, otherwise the tag."""
        return self.digest or self.tag or DEFAULT_TAG

    def context(self) -> Repository:
        return self.repository

    def __str__(self) -> str:
        text = str(self.repository)
        if self.tag:
            text += f":{self.tag}"
        if self.digest:
            text += f"@{self.digest}"
        return text

    @classmethod
    def parse(cls, reference: str) -> 'ImageReference':
        """
        Parse an image reference string.

        Args:
            reference: Reference in [registry/]repository[:tag][@digest] form

        Returns:
            ImageReference with defaults applied (Docker Hub, 'latest')
        """
        if not reference or reference != reference.strip():
            raise ReferenceResolutionError(reference, "empty or padded reference")

        name, digest = reference, None
        if '@' in reference:
            name, digest = reference.rsplit('@', 1)
            try:
                split_digest(digest)
            except InvalidDigestFormat as e:
                raise ReferenceResolutionError(reference, str(e)) from e

        tag = None
        last_slash = name.rfind('/')
        last_colon = name.rfind(':')
        if last_colon > last_slash:
            name, tag = name[:last_colon], name[last_colon + 1:]
            if not _TAG.match(tag):
                raise ReferenceResolutionError(reference, f"invalid tag {tag!r}")

        parts = name.split('/')
        first = parts[0]
        if len(parts) > 1 and ('.' in first or ':' in first or first == 'localhost'):
            registry = first
            path = parts[1:]
        else:
            registry = DEFAULT_REGISTRY
            path = parts

        if not _REGISTRY.match(registry):
            raise ReferenceResolutionError(reference, f"invalid registry {registry!r}")
        if registry in _DOCKER_HUB_ALIASES:
            registry = DEFAULT_REGISTRY
            if len(path) == 1:
                path = ['library'] + path

        for component in path:
            if not _PATH_COMPONENT.match(component):
                raise ReferenceResolutionError(reference, f"invalid repository component {component!r}")

        if tag is None and digest is None:
            tag = DEFAULT_TAG

        return cls(repository=Repository(registry, '/'.join(path)), tag=tag, digest=digest)
