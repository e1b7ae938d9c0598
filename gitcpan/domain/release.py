"""
Release domain objects for gitcpan.

A Release is one published snapshot of a CPAN distribution, already
extracted on disk. Release sources describe where releases come from;
the kind of source is decided once, when the user's token is classified.
"""

import os
import re
from dataclasses import dataclass, field
from typing import Optional, Dict, Any, Union


@dataclass(frozen=True)
class Release:
    """
    One distribution snapshot to import.

    Attributes:
        dist_name: Distribution name (e.g., "Foo-Bar")
        version: Version string as published (e.g., "0.02", "v1.2.3")
        extracted_dir: Directory holding the extracted source tree
        author_name: Author's display name, if known
        author_email: Author's email, if known
        author_id: Author's CPAN id (PAUSE id), if known
        date: Release date (ISO-8601), if known
        download_url: Where the tarball came from
    """
    dist_name: str
    version: str
    extracted_dir: str
    author_name: Optional[str] = None
    author_email: Optional[str] = None
    author_id: Optional[str] = None
    date: Optional[str] = None
    download_url: Optional[str] = None
    meta: Dict[str, Any] = field(default_factory=dict, compare=False, hash=False)

    @property
    def label(self) -> str:
        """Human readable identity, e.g. "Foo-Bar 0.02"."""
        return f"{self.dist_name} {self.version}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            'dist_name': self.dist_name,
            'version': self.version,
            'author_name': self.author_name,
            'author_email': self.author_email,
            'author_id': self.author_id,
            'date': self.date,
            'download_url': self.download_url,
            'extracted_dir': self.extracted_dir,
        }


@dataclass(frozen=True)
class UnavailableRelease:
    """
    A release that is known to exist but couldn't be downloaded or
    extracted. The importer reports it as failed.
    """
    dist_name: str
    version: str
    reason: str

    @property
    def label(self) -> str:
        return f"{self.dist_name} {self.version}"


@dataclass(frozen=True)
class UrlSource:
    """A tarball to download."""
    url: str


@dataclass(frozen=True)
class FileSource:
    """A tarball already on disk."""
    path: str


@dataclass(frozen=True)
class NamedSource:
    """A distribution or module name to look up on MetaCPAN."""
    name: str


@dataclass(frozen=True)
class LatestSource:
    """The latest release of the module the repository already tracks."""


ReleaseSource = Union[UrlSource, FileSource, NamedSource, LatestSource]

PlannedRelease = Union[Release, UnavailableRelease]

URL_RE = re.compile(r'^(?:https?|ftp|file)://', re.IGNORECASE)

TARBALL_RE = re.compile(
    r'^(?P<dist>.+?)-(?P<version>v?\d[\w.]*?)'
    r'(?:-TRIAL)?\.(?:tar\.gz|tgz|tar\.bz2|tbz|zip)$',
    re.IGNORECASE,
)


def classify_source(token: Optional[str]) -> ReleaseSource:
    """
    Decide what kind of source a user-supplied token names.

    Examples:
        classify_source("https://cpan.org/.../Foo-Bar-0.01.tar.gz") -> UrlSource
        classify_source("./Foo-Bar-0.01.tar.gz")                    -> FileSource
        classify_source("Foo::Bar")                                 -> NamedSource
        classify_source(None)                                       -> LatestSource
    """
    if not token:
        return LatestSource()
    if URL_RE.match(token):
        return UrlSource(token)
    if os.path.isfile(token):
        return FileSource(os.path.abspath(token))
    return NamedSource(token)


def parse_tarball_name(filename: str) -> Optional[Dict[str, str]]:
    """
    Split a CPAN tarball file name into distribution and version.

    "Foo-Bar-0.01.tar.gz" -> {"dist": "Foo-Bar", "version": "0.01"}
    """
    match = TARBALL_RE.match(os.path.basename(filename))
    if not match:
        return None
    return {'dist': match.group('dist'), 'version': match.group('version')}
