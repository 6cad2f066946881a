"""
Address Deriver Module

Maps a content digest to the tag under which its signature is published.
Registry tags cannot contain ':', so 'sha256:abc' becomes 'sha256-abc'.
"""

from dataclasses import dataclass

from oci_registry.reference import ImageReference, Repository
from signing.errors import InvalidDigestFormat
from signing.payload import split_digest

DIGEST_SEPARATOR = ':'
TAG_SEPARATOR = '-'


@dataclass(frozen=True)
class PublicationAddress:
    """Tag within a repository that holds the signatures for one digest."""

    repository: Repository
    tag: str

    def reference(self) -> ImageReference:
        # Digest-derived tags can exceed the 128 character tag grammar; the
        # registry decides whether to accept them.
        return ImageReference(repository=self.repository, tag=self.tag)

    def digest(self) -> str:
        """Recover the signed digest from the tag."""
        return AddressDeriver.digest_from_tag(self.tag)

    def __str__(self) -> str:
        return f"{self.repository}:{self.tag}"


class AddressDeriver:
    """Derives publication tags from digests and back."""

    @staticmethod
    def derive(digest: str) -> str:
        """
        Derive the signature tag for a digest.

        Neither the algorithm nor the hex value may contain '-', so the
        mapping is injective and exactly reversible.
        """
        algorithm, hex_value = split_digest(digest)
        return f"{algorithm}{TAG_SEPARATOR}{hex_value}"

    @staticmethod
    def digest_from_tag(tag: str) -> str:
        if tag.count(TAG_SEPARATOR) != 1:
            raise InvalidDigestFormat(tag, "not a signature tag")
        digest = tag.replace(TAG_SEPARATOR, DIGEST_SEPARATOR)
        split_digest(digest)
        return digest

    def address_for(self, repository: Repository, digest: str) -> PublicationAddress:
        """Publication address for a digest, scoped to the given repository."""
        return PublicationAddress(repository=repository, tag=self.derive(digest))
