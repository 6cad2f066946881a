"""
Registry Client Module

Minimal OCI distribution API client: resolves references to content
descriptors and pushes blobs and manifests, following registry auth
challenges with credentials from the Docker config file.
"""

import base64
import hashlib
import json
import os
import re
import sys
from pathlib import Path
from typing import Dict, Iterable, NamedTuple, Optional, Tuple, Union
from urllib.parse import urljoin

import requests

from signing.errors import ReferenceResolutionError, UploadError
from .reference import DEFAULT_REGISTRY, ContentDescriptor, ImageReference, Repository

OCI_MANIFEST = 'application/vnd.oci.image.manifest.v1+json'
OCI_INDEX = 'application/vnd.oci.image.index.v1+json'
DOCKER_MANIFEST = 'application/vnd.docker.distribution.manifest.v2+json'
DOCKER_MANIFEST_LIST = 'application/vnd.docker.distribution.manifest.list.v2+json'

MANIFEST_MEDIA_TYPES = (OCI_INDEX, OCI_MANIFEST, DOCKER_MANIFEST_LIST, DOCKER_MANIFEST)

_LOCAL_REGISTRIES = ('localhost', '127.0.0.1')
_CHALLENGE_PARAM = re.compile(r'(\w+)="([^"]*)"')


def sha256_digest(data: bytes) -> str:
    return 'sha256:' + hashlib.sha256(data).hexdigest()


class Credentials(NamedTuple):
    username: str
    password: str


class DockerConfigKeychain:
    """Looks up registry credentials, like `docker login` stores them."""

    def __init__(self,
                 config_path: Optional[str] = None,
                 username: Optional[str] = None,
                 password: Optional[str] = None):
        if config_path is None:
            docker_dir = os.getenv('DOCKER_CONFIG', str(Path.home() / '.docker'))
            config_path = str(Path(docker_dir) / 'config.json')
        self.config_path = config_path
        self.explicit = Credentials(username, password or '') if username else None

    def _load_auths(self) -> Dict[str, Dict[str, str]]:
        path = Path(self.config_path)
        if not path.exists():
            return {}
        try:
            with open(path, 'r') as f:
                return json.load(f).get('auths', {})
        except (OSError, json.JSONDecodeError) as e:
            print(f"Warning: Failed to read docker config {path}: {e}", file=sys.stderr)
            return {}

    def resolve(self, registry: str) -> Optional[Credentials]:
        """Return credentials for a registry host, or None for anonymous."""
        if self.explicit is not None:
            return self.explicit

        candidates = {registry}
        if registry == DEFAULT_REGISTRY:
            candidates.update({'docker.io', 'https://index.docker.io/v1/'})

        for key, entry in self._load_auths().items():
            host = re.sub(r'^https?://', '', key).split('/')[0]
            if key not in candidates and host not in candidates:
                continue
            if entry.get('auth'):
                try:
                    decoded = base64.b64decode(entry['auth'], validate=True).decode('utf-8')
                except ValueError as e:
                    print(f"Warning: Skipping malformed auth entry for {key}: {e}", file=sys.stderr)
                    continue
                username, _, password = decoded.partition(':')
                return Credentials(username, password)
            if entry.get('username'):
                return Credentials(entry['username'], entry.get('password', ''))
        return None


class RegistryClient:
    """OCI distribution API client built on requests."""

    def __init__(self,
                 keychain: Optional[DockerConfigKeychain] = None,
                 insecure_registries: Iterable[str] = (),
                 timeout: float = 30,
                 session: Optional[requests.Session] = None):
        self.keychain = keychain or DockerConfigKeychain()
        self.insecure_registries = set(insecure_registries)
        self.timeout = timeout
        self.session = session or requests.Session()
        self._authorizations: Dict[Tuple[str, str], str] = {}

    def _base_url(self, registry: str) -> str:
        host = registry.split(':')[0]
        scheme = 'http' if host in _LOCAL_REGISTRIES or registry in self.insecure_registries else 'https'
        if registry == DEFAULT_REGISTRY:
            registry = 'registry-1.docker.io'
        return f"{scheme}://{registry}/v2/"

    def _request(self, method: str, repository: Repository, path: str,
                 actions: str = 'pull', url: Optional[str] = None, **kwargs) -> requests.Response:
        """Send a request, answering one auth challenge if the registry asks."""
        url = url or urljoin(self._base_url(repository.registry), f"{repository.name}/{path}")
        scope = f"repository:{repository.name}:{actions}"
        key = (repository.registry, scope)
        headers = dict(kwargs.pop('headers', {}))

        if key in self._authorizations:
            headers['Authorization'] = self._authorizations[key]
        response = self.session.request(method, url, headers=headers, timeout=self.timeout, **kwargs)

        if response.status_code == 401 and key not in self._authorizations:
            authorization = self._authenticate(repository.registry, response.headers.get('WWW-Authenticate', ''), scope)
            if authorization:
                self._authorizations[key] = authorization
                headers['Authorization'] = authorization
                response = self.session.request(method, url, headers=headers, timeout=self.timeout, **kwargs)

        return response

    def _authenticate(self, registry: str, challenge: str, scope: str) -> Optional[str]:
        scheme, _, params_text = challenge.partition(' ')
        params = dict(_CHALLENGE_PARAM.findall(params_text))
        credentials = self.keychain.resolve(registry)

        if scheme.lower() == 'basic':
            if credentials is None:
                return None
            token = base64.b64encode(f"{credentials.username}:{credentials.password}".encode('utf-8'))
            return f"Basic {token.decode('utf-8')}"

        if scheme.lower() != 'bearer' or 'realm' not in params:
            return None

        query = {'scope': scope}
        if params.get('service'):
            query['service'] = params['service']
        auth = (credentials.username, credentials.password) if credentials else None
        response = self.session.get(params['realm'], params=query, auth=auth, timeout=self.timeout)
        if response.status_code != 200:
            return None
        body = response.json()
        token = body.get('token') or body.get('access_token')
        return f"Bearer {token}" if token else None

    def resolve(self, reference: Union[str, ImageReference]) -> ContentDescriptor:
        """
        Resolve a reference to the descriptor of its manifest.

        Args:
            reference: Reference string or parsed ImageReference

        Returns:
            ContentDescriptor with digest, media type and size
        """
        ref = reference if isinstance(reference, ImageReference) else ImageReference.parse(reference)

        try:
            response = self._request(
                'GET', ref.repository, f"manifests/{ref.identifier}",
                headers={'Accept': ', '.join(MANIFEST_MEDIA_TYPES)}
            )
        except requests.RequestException as e:
            raise ReferenceResolutionError(str(ref), str(e)) from e

        if response.status_code != 200:
            raise ReferenceResolutionError(str(ref), f"registry returned HTTP {response.status_code}")

        body = response.content
        computed = sha256_digest(body)
        if ref.digest and ref.digest.startswith('sha256:') and ref.digest != computed:
            raise ReferenceResolutionError(str(ref), f"manifest digest mismatch, got {computed}")

        digest = ref.digest or response.headers.get('Docker-Content-Digest') or computed
        media_type = response.headers.get('Content-Type', '').split(';')[0].strip()
        if not media_type:
            try:
                media_type = json.loads(body).get('mediaType', '')
            except ValueError:
                media_type = ''

        return ContentDescriptor(digest=digest, media_type=media_type, size=len(body))

    def fetch_manifest(self, reference: ImageReference,
                       accept: Iterable[str] = MANIFEST_MEDIA_TYPES) -> Optional[Tuple[bytes, str]]:
        """Fetch a manifest for push-side reads; None when it does not exist yet."""
        try:
            response = self._request(
                'GET', reference.repository, f"manifests/{reference.identifier}", 'pull,push',
                headers={'Accept': ', '.join(accept)}
            )
        except requests.RequestException as e:
            raise UploadError(str(reference), str(e)) from e

        if response.status_code == 404:
            return None
        if response.status_code != 200:
            raise UploadError(str(reference), f"reading existing manifest returned HTTP {response.status_code}")

        media_type = response.headers.get('Content-Type', '').split(';')[0].strip()
        return response.content, media_type

    def blob_exists(self, repository: Repository, digest: str) -> bool:
        try:
            response = self._request('HEAD', repository, f"blobs/{digest}", 'pull,push')
        except requests.RequestException as e:
            raise UploadError(f"{repository}@{digest}", str(e)) from e
        return response.status_code == 200

    def upload_blob(self, repository: Repository, data: bytes) -> str:
        """
        Push a blob with a monolithic upload.

        Returns:
            Digest of the blob
        """
        digest = sha256_digest(data)
        if self.blob_exists(repository, digest):
            return digest

        target = f"{repository}@{digest}"
        try:
            started = self._request('POST', repository, 'blobs/uploads/', 'pull,push')
            if started.status_code not in (201, 202):
                raise UploadError(target, f"starting blob upload returned HTTP {started.status_code}")

            location = started.headers.get('Location')
            if not location:
                raise UploadError(target, "registry did not return an upload location")

            finished = self._request(
                'PUT', repository, '', 'pull,push',
                url=urljoin(self._base_url(repository.registry), location),
                params={'digest': digest},
                headers={'Content-Type': 'application/octet-stream'},
                data=data
            )
        except requests.RequestException as e:
            raise UploadError(target, str(e)) from e

        if finished.status_code not in (201, 204):
            raise UploadError(target, f"completing blob upload returned HTTP {finished.status_code}")
        return digest

    def put_manifest(self, reference: ImageReference, body: bytes, media_type: str) -> str:
        """
        Push a manifest under a tag or digest.

        Returns:
            Digest of the manifest
        """
        try:
            response = self._request(
                'PUT', reference.repository, f"manifests/{reference.identifier}", 'pull,push',
                headers={'Content-Type': media_type},
                data=body
            )
        except requests.RequestException as e:
            raise UploadError(str(reference), str(e)) from e

        if response.status_code not in (200, 201, 202):
            raise UploadError(str(reference), f"pushing manifest returned HTTP {response.status_code}")
        return sha256_digest(body)
