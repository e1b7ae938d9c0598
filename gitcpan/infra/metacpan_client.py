"""
MetaCPAN API client infrastructure for gitcpan.

Provides access to the MetaCPAN public API:
- Resolve a module name to its distribution
- Latest release and full release history of a distribution
- Author details (name, email) by CPAN id
- Tarball downloads

Public API, no authentication needed.
"""

import logging
import os
from dataclasses import dataclass, field
from typing import Optional, List, Dict, Any

import requests

from ..exit_codes import APIError

logger = logging.getLogger(__name__)

# MetaCPAN public API base URL
METACPAN_API_BASE = "https://fastapi.metacpan.org/v1"

# Default page size for release searches
DEFAULT_PAGE_SIZE = 100

RELEASE_FIELDS = [
    'name', 'distribution', 'version', 'author', 'date',
    'download_url', 'metadata.resources.repository',
]


@dataclass
class ReleaseInfo:
    """A release as described by MetaCPAN."""
    distribution: str
    version: str
    author: Optional[str] = None        # CPAN id, e.g. "FOOBAR"
    date: Optional[str] = None          # ISO-8601
    download_url: Optional[str] = None
    name: Optional[str] = None          # e.g. "Foo-Bar-0.01"
    repository: Dict[str, Any] = field(default_factory=dict)
    data: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_api_response(cls, data: Dict[str, Any]) -> 'ReleaseInfo':
        """Create from a release document (flat or dotted `_source` fields)."""
        metadata = data.get('metadata') or {}
        repository = (metadata.get('resources') or {}).get('repository')
        if repository is None:
            repository = data.get('metadata.resources.repository')

        return cls(
            distribution=data.get('distribution', ''),
            version=str(data.get('version', '')),
            author=data.get('author'),
            date=data.get('date'),
            download_url=data.get('download_url'),
            name=data.get('name'),
            repository=repository if isinstance(repository, dict) else {},
            data=data,
        )

    @property
    def repository_url(self) -> Optional[str]:
        return self.repository.get('url') or self.repository.get('web')

    def looks_like_git(self) -> bool:
        """True if the release advertises a git repository."""
        if not self.repository:
            return False
        if self.repository.get('type') == 'git':
            return True
        url = self.repository.get('url') or ''
        return 'github.com' in url or url.endswith('.git')


@dataclass
class AuthorInfo:
    """A CPAN author."""
    pauseid: str
    name: Optional[str] = None
    email: Optional[str] = None

    @classmethod
    def from_api_response(cls, data: Dict[str, Any]) -> 'AuthorInfo':
        email = data.get('email')
        if isinstance(email, list):
            email = email[0] if email else None
        return cls(
            pauseid=data.get('pauseid', ''),
            name=data.get('name') or data.get('asciiname'),
            email=email,
        )


class MetaCPANClient:
    """
    Client for the MetaCPAN REST API.

    Example:
        client = MetaCPANClient()
        dist = client.distribution_for("Foo::Bar")
        for release in client.releases(dist):
            print(release.version, release.date)
    """

    def __init__(self, base_url: str = METACPAN_API_BASE, timeout: int = 30):
        """
        Initialize MetaCPANClient.

        Args:
            base_url: API base URL
            timeout: HTTP request timeout in seconds
        """
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.session = requests.Session()
        self.session.headers.update({
            'Accept': 'application/json',
        })

    def _get(self, path: str, **kwargs) -> Optional[Dict[str, Any]]:
        """GET a document; None on 404."""
        url = f"{self.base_url}/{path.lstrip('/')}"
        try:
            response = self.session.get(url, timeout=self.timeout, **kwargs)
            if response.status_code == 404:
                return None
            response.raise_for_status()
            return response.json()
        except requests.RequestException as e:
            raise APIError(f"MetaCPAN request failed for {url}: {e}") from e
        except ValueError as e:
            raise APIError(f"MetaCPAN returned invalid JSON for {url}: {e}") from e

    def module(self, name: str) -> Optional[Dict[str, Any]]:
        """Module document, or None if MetaCPAN doesn't know it."""
        return self._get(f"module/{name}")

    def distribution_for(self, dist_or_module: str) -> str:
        """
        Distribution a module belongs to.

        Falls back to the given name, which may already be a distribution.
        """
        try:
            data = self.module(dist_or_module)
        except APIError as e:
            logger.debug(f"Module lookup failed for {dist_or_module}: {e}")
            data = None
        if data and data.get('distribution'):
            return data['distribution']
        return dist_or_module

    def release(self, dist: str) -> Optional[ReleaseInfo]:
        """Latest release of a distribution."""
        data = self._get(f"release/{dist}")
        if not data:
            return None
        return ReleaseInfo.from_api_response(data)

    def releases(self, dist: str) -> List[ReleaseInfo]:
        """
        Every release of a distribution, oldest first.

        Paginates automatically.
        """
        releases = []
        offset = 0

        while True:
            query = {
                'query': {'term': {'distribution': dist}},
                'size': DEFAULT_PAGE_SIZE,
                'from': offset,
                'sort': [{'date': 'asc'}],
                '_source': RELEASE_FIELDS,
            }
            url = f"{self.base_url}/release/_search"
            try:
                response = self.session.post(url, json=query, timeout=self.timeout)
                response.raise_for_status()
                data = response.json()
            except requests.RequestException as e:
                raise APIError(f"MetaCPAN release search failed for {dist}: {e}") from e
            except ValueError as e:
                raise APIError(f"MetaCPAN returned invalid JSON for {dist}: {e}") from e

            hits = data.get('hits', {}).get('hits', [])
            if not hits:
                break

            for hit in hits:
                source = hit.get('_source') or hit.get('fields') or {}
                releases.append(ReleaseInfo.from_api_response(source))

            total = data.get('hits', {}).get('total', 0)
            if isinstance(total, dict):
                total = total.get('value', 0)
            offset += len(hits)
            if offset >= total:
                break

        logger.debug(f"MetaCPAN: found {len(releases)} releases for {dist}")
        return sorted(releases, key=lambda r: r.date or '')

    def author(self, pauseid: str) -> Optional[AuthorInfo]:
        """Author details by CPAN id."""
        try:
            data = self._get(f"author/{pauseid}")
        except APIError as e:
            logger.debug(f"Author lookup failed for {pauseid}: {e}")
            return None
        if not data:
            return None
        return AuthorInfo.from_api_response(data)

    def download(self, url: str, destination: str) -> str:
        """
        Download `url` to `destination`, streaming to disk.

        Returns:
            The destination path
        """
        logger.info(f"copying '{url}' to '{destination}'")
        try:
            with self.session.get(url, stream=True, timeout=self.timeout) as response:
                response.raise_for_status()
                os.makedirs(os.path.dirname(destination) or '.', exist_ok=True)
                with open(destination, 'wb') as f:
                    for chunk in response.iter_content(chunk_size=64 * 1024):
                        if chunk:
                            f.write(chunk)
        except requests.RequestException as e:
            raise APIError(f"Failed to mirror {url}: {e}") from e
        return destination
