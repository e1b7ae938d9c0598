"""
Release sources for gitcpan.

Turns what the user asked to import (a URL, a tarball, a module or
distribution name, or nothing at all) into an ImportPlan: either a
sequence of extracted releases, oldest first, or the URL of an upstream
git repository to mirror instead.
"""

import json
import os
import re
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List, Optional, Tuple
from urllib.parse import unquote, urlparse

import yaml

from .archive import extract_archive
from .config import logger
from .domain.release import (
    FileSource,
    LatestSource,
    NamedSource,
    PlannedRelease,
    Release,
    ReleaseSource,
    UnavailableRelease,
    UrlSource,
    parse_tarball_name,
)
from .exit_codes import APIError, SourceError
from .infra.metacpan_client import AuthorInfo, MetaCPANClient, ReleaseInfo

AUTHOR_PATH_RE = re.compile(r'(?:^|/)(?:authors/id/)?[A-Z]/[A-Z]{2}/([A-Z][A-Z0-9-]*)/[^/]+$')
AUTHOR_RE = re.compile(r'^\s*(?P<name>[^<]*?)\s*(?:<(?P<email>[^>]+)>)?\s*$')


@dataclass
class ImportPlan:
    """
    What to do for one invocation.

    `releases` may hold UnavailableRelease entries for releases that
    couldn't be fetched; they keep their place in the sequence.
    """
    dist_name: Optional[str]
    releases: Iterable[PlannedRelease] = field(default_factory=list)
    mirror_url: Optional[str] = None

    @property
    def is_mirror(self) -> bool:
        return self.mirror_url is not None


def read_meta(extracted_dir: str) -> Dict[str, Any]:
    """
    Read the distribution's META.json or META.yml.

    Returns an empty dict when neither exists or both are unreadable.
    """
    root = Path(extracted_dir)
    meta_json = root / 'META.json'
    if meta_json.is_file():
        try:
            return json.loads(meta_json.read_text(encoding='utf-8'))
        except (ValueError, OSError) as e:
            logger.debug(f"Error parsing {meta_json}: {e}")

    meta_yml = root / 'META.yml'
    if meta_yml.is_file():
        try:
            data = yaml.safe_load(meta_yml.read_text(encoding='utf-8'))
            if isinstance(data, dict):
                return data
        except (yaml.YAMLError, OSError) as e:
            logger.debug(f"Error parsing {meta_yml}: {e}")

    return {}


def meta_author(meta: Dict[str, Any]) -> Tuple[Optional[str], Optional[str]]:
    """First author of a META file as (name, email)."""
    authors = meta.get('author')
    if isinstance(authors, str):
        authors = [authors]
    if not authors:
        return None, None
    match = AUTHOR_RE.match(str(authors[0]))
    if not match:
        return None, None
    return match.group('name') or None, match.group('email') or None


def author_id_from_path(path: str) -> Optional[str]:
    """CPAN id from a path like .../authors/id/F/FO/FOOBAR/Foo-Bar-0.01.tar.gz."""
    match = AUTHOR_PATH_RE.search(path.replace(os.sep, '/'))
    return match.group(1) if match else None


class ReleaseProvider:
    """
    Resolves release sources to extracted releases.

    Example:
        provider = ReleaseProvider(MetaCPANClient(), workdir="/tmp/gitcpan")
        plan = provider.plan(classify_source("Foo::Bar"))
        for release in plan.releases:
            print(release.label, release.extracted_dir)
    """

    def __init__(
        self,
        metacpan: MetaCPANClient,
        workdir: str,
        mirror_git_repositories: bool = True,
    ):
        self.metacpan = metacpan
        self.workdir = workdir
        self.mirror_git_repositories = mirror_git_repositories
        self._authors: Dict[str, Optional[AuthorInfo]] = {}

    def plan(
        self,
        source: ReleaseSource,
        latest: bool = False,
        tracked_module: Optional[str] = None,
    ) -> ImportPlan:
        """
        Decide what to import for a classified source.

        Args:
            source: Result of classify_source()
            latest: Only import the most recent release of a named distribution
            tracked_module: Module the repository already tracks (for LatestSource)

        Raises:
            SourceError: If nothing importable can be found
        """
        if isinstance(source, UrlSource):
            release = self.release_from_url(source.url)
            return ImportPlan(release.dist_name, [release])
        if isinstance(source, FileSource):
            release = self.release_from_file(source.path)
            return ImportPlan(release.dist_name, [release])
        if isinstance(source, NamedSource):
            return self.plan_for_name(source.name, latest=latest)
        if isinstance(source, LatestSource):
            if not tracked_module:
                raise SourceError(
                    "this repository doesn't track a module yet; "
                    "give a module name, tarball or URL"
                )
            return self.plan_for_name(tracked_module, latest=True, mirror=False)
        raise SourceError(f"unknown release source {source!r}")

    def plan_for_name(self, name: str, latest: bool = False, mirror: bool = True) -> ImportPlan:
        """Plan the import of a module or distribution known to MetaCPAN."""
        dist = self.metacpan.distribution_for(name)

        if dist == 'perl':
            raise SourceError(
                f"{name} is a core module, clone perl from "
                f"https://github.com/Perl/perl5 instead."
            )

        try:
            latest_info = self.metacpan.release(dist)
        except APIError as e:
            raise SourceError(str(e)) from e

        if mirror and self.mirror_git_repositories and latest_info and latest_info.looks_like_git():
            return ImportPlan(dist, mirror_url=latest_info.repository_url)

        if latest:
            infos = [latest_info] if latest_info else []
        else:
            try:
                infos = self.metacpan.releases(dist)
            except APIError as e:
                raise SourceError(str(e)) from e

        if not infos:
            raise SourceError(f"could not find release for '{name}' on metacpan")

        return ImportPlan(dist, self._extract_all(dist, infos))

    def _extract_all(self, dist: str, infos: List[ReleaseInfo]) -> Iterator[PlannedRelease]:
        for info in infos:
            try:
                yield self.release_from_info(info)
            except (SourceError, APIError) as e:
                logger.debug(f"Could not fetch {info.distribution} {info.version}: {e}")
                yield UnavailableRelease(
                    dist_name=info.distribution or dist,
                    version=info.version,
                    reason=str(e),
                )

    def release_from_info(self, info: ReleaseInfo) -> Release:
        """Download and extract a MetaCPAN release."""
        if not info.download_url:
            raise SourceError(f"{info.distribution} {info.version} has no download URL")

        filename = os.path.basename(urlparse(info.download_url).path)
        tarball = self.metacpan.download(
            info.download_url,
            os.path.join(self.workdir, 'downloads', filename),
        )
        extracted = self._extract(tarball)
        meta = read_meta(extracted)
        name, email = self._author_identity(info.author, meta)

        return Release(
            dist_name=info.distribution or meta.get('name', ''),
            version=info.version or str(meta.get('version', '')),
            extracted_dir=extracted,
            author_name=name,
            author_email=email,
            author_id=info.author,
            date=info.date,
            download_url=info.download_url,
            meta=info.data,
        )

    def release_from_url(self, url: str) -> Release:
        """Download a tarball (or use a file:// path) and extract it."""
        parsed = urlparse(url)
        if parsed.scheme == 'file':
            return self.release_from_file(unquote(parsed.path))

        filename = os.path.basename(parsed.path)
        tarball = self.metacpan.download(url, os.path.join(self.workdir, 'downloads', filename))
        release = self.release_from_file(tarball, author_id=author_id_from_path(parsed.path))
        return replace(release, download_url=url)

    def release_from_file(self, path: str, author_id: Optional[str] = None) -> Release:
        """
        Extract a local tarball.

        The distribution and version come from the file name, falling
        back to the META file inside the archive.
        """
        if not os.path.isfile(path):
            raise SourceError(f"{path} does not exist")

        extracted = self._extract(path)
        meta = read_meta(extracted)

        parsed = parse_tarball_name(path) or {}
        dist = parsed.get('dist') or str(meta.get('name', '')).replace('::', '-')
        version = parsed.get('version') or str(meta.get('version', '') or '')
        if not dist or not version:
            raise SourceError(f"can't tell distribution and version of {path}")

        author_id = author_id or author_id_from_path(path)
        name, email = self._author_identity(author_id, meta)

        return Release(
            dist_name=dist,
            version=version,
            extracted_dir=extracted,
            author_name=name,
            author_email=email,
            author_id=author_id,
            meta=meta,
        )

    def _extract(self, tarball: str) -> str:
        stem = os.path.basename(tarball)
        for suffix in ('.tar.gz', '.tgz', '.tar.bz2', '.tbz', '.zip', '.tar'):
            if stem.lower().endswith(suffix):
                stem = stem[:-len(suffix)]
                break
        return extract_archive(tarball, os.path.join(self.workdir, 'extracted', stem))

    def _author_identity(
        self,
        author_id: Optional[str],
        meta: Dict[str, Any],
    ) -> Tuple[Optional[str], Optional[str]]:
        """Author name/email from MetaCPAN, then from the META file."""
        name = email = None
        if author_id:
            if author_id not in self._authors:
                self._authors[author_id] = self.metacpan.author(author_id)
            author = self._authors[author_id]
            if author:
                name, email = author.name, author.email

        meta_name, meta_email = meta_author(meta)
        return name or meta_name, email or meta_email
