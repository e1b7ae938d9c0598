"""
Release import service for gitcpan.

Sequences the import of each release:
version check -> tree -> commit -> tracking ref + tag -> module identity.

Releases are imported strictly one after another: each import reads the
tracking reference to find its parent, and that read-then-write must
not interleave with another import into the same repository.
"""

import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Dict, Generator, Iterable, List, Optional

from ..config import load_config
from ..domain.operation import ImportResult, ImportState, ImportSummary, OperationStatus
from ..domain.provenance import ProvenanceBlock
from ..domain.release import PlannedRelease, Release, UnavailableRelease
from ..exit_codes import (
    GitCommandError,
    GitCpanError,
    ProvenanceUnparseable,
    VersionRejected,
)
from ..infra.git_client import GitClient
from ..version import InvalidVersionError, Ordering, compare
from .history_service import TRACKING_REF, HistoryLinker, ImportHistory, version_tag
from .synthesis_service import CommitSynthesizer, TreeSynthesizer, unique_parents

logger = logging.getLogger(__name__)


@dataclass
class ImportOptions:
    """Options for importing releases."""
    check: bool = True
    parents: List[str] = field(default_factory=list)  # Extra parent commit ids
    author_name: Optional[str] = None
    author_email: Optional[str] = None

    @classmethod
    def from_config(cls, config: Dict[str, Any], **overrides) -> 'ImportOptions':
        options = cls(check=config.get('import', {}).get('check_by_default', True))
        for key, value in overrides.items():
            if value is not None:
                setattr(options, key, value)
        return options


class ReleaseImporter:
    """
    Imports releases as commits on the tracking reference.

    Example:
        importer = ReleaseImporter(GitClient("/path/to/repo"))
        for result in importer.import_releases(releases, ImportOptions()):
            print(result.status, result.label)

        summary = importer.last_result
        print(f"Imported {summary.imported} releases")
    """

    def __init__(
        self,
        git_client: GitClient,
        config: Optional[Dict[str, Any]] = None,
    ):
        """
        Initialize ReleaseImporter.

        Args:
            git_client: Client bound to the destination repository
            config: Configuration dict (loads default if None)
        """
        self.config = config or load_config()
        self.git = git_client

        import_config = self.config.get('import', {})
        author_config = self.config.get('author', {})
        self.tracking_ref = import_config.get('tracking_ref') or TRACKING_REF
        self.tag_prefix = import_config.get('tag_prefix', 'v')

        self.history = ImportHistory(git_client, self.tracking_ref)
        self.trees = TreeSynthesizer(git_client)
        self.commits = CommitSynthesizer(
            git_client,
            default_name=author_config.get('name'),
            default_email=author_config.get('email'),
        )
        self.linker = HistoryLinker(git_client)
        self.last_result: Optional[ImportSummary] = None
        self._lock = threading.Lock()

    def import_releases(
        self,
        releases: Iterable[PlannedRelease],
        options: Optional[ImportOptions] = None,
    ) -> Generator[ImportResult, None, ImportSummary]:
        """
        Import releases in order.

        A failed release is reported and the batch moves on to the
        next one. Only ProvenanceUnparseable stops the batch.

        Yields:
            ImportResult for each release

        Returns:
            ImportSummary (also stored in self.last_result)
        """
        options = options or ImportOptions.from_config(self.config)
        summary = ImportSummary()
        self.last_result = summary

        for release in releases:
            result = self.import_release(release, options)
            summary.add_detail(result)
            yield result

        return summary

    def import_release(self, release: PlannedRelease, options: Optional[ImportOptions] = None) -> ImportResult:
        """
        Import a single release.

        An UnavailableRelease is reported as failed without touching
        the repository.

        Returns:
            ImportResult ending in DONE, SKIPPED or FAILED

        Raises:
            ProvenanceUnparseable: If the repository's history can't be trusted
        """
        options = options or ImportOptions.from_config(self.config)
        result = ImportResult(dist_name=release.dist_name, version=release.version)

        if isinstance(release, UnavailableRelease):
            result.advance(ImportState.FAILED)
            result.status = OperationStatus.FAILED
            result.error = release.reason
            logger.warning(f"failed to fetch {release.label}, skipping...\n{release.reason}")
            return result

        with self._lock:
            try:
                self._import(release, options, result)
            except VersionRejected as e:
                result.advance(ImportState.SKIPPED)
                result.status = OperationStatus.SKIPPED
                result.message = str(e)
                logger.info(str(e))
            except ProvenanceUnparseable:
                result.advance(ImportState.FAILED)
                raise
            except (GitCpanError, GitCommandError, InvalidVersionError) as e:
                result.advance(ImportState.FAILED)
                result.status = OperationStatus.FAILED
                result.error = str(e)
                logger.warning(f"failed to import {release.label}, skipping...\n{e}")

        return result

    def check_version(self, release: Release, tip: Optional[str]) -> None:
        """
        Refuse releases that are not newer than the last import.

        Raises:
            VersionRejected: If the release was already imported or is older
        """
        last = self.history.last_imported_version(tip)
        if last is None:
            return

        ordering = compare(release.version, last)
        if ordering == Ordering.EQUAL:
            raise VersionRejected(
                f"{release.label} has already been imported",
                already_imported=True,
            )
        if ordering == Ordering.LESS:
            raise VersionRejected(
                f"last imported version {last} is more recent than "
                f"{release.version}, can't import"
            )

    def _import(self, release: Release, options: ImportOptions, result: ImportResult) -> None:
        tip = self.history.tip()

        result.advance(ImportState.CHECKED)
        if options.check and tip is not None:
            self.check_version(release, tip)

        result.tree = self.trees.synthesize(release.extracted_dir)
        result.advance(ImportState.STAGED)

        parents = unique_parents([tip, *options.parents])
        headline = (
            f"initial import of {release.label}" if tip is None
            else f"import {release.label}"
        )
        provenance = ProvenanceBlock(
            module=release.dist_name,
            version=release.version,
            author_id=release.author_id,
        )
        result.commit = self.commits.synthesize(
            result.tree,
            parents,
            headline,
            provenance,
            author_name=options.author_name or release.author_name,
            author_email=options.author_email or release.author_email,
            author_date=release.date,
        )
        result.parents = parents
        result.advance(ImportState.COMMITTED)

        tag = version_tag(release.version, self.tag_prefix)
        self.linker.link_and_tag(
            self.tracking_ref,
            result.commit,
            tag,
            previous_tip=tip,
            reason=f"import {release.dist_name}",
        )
        result.tag = tag
        result.advance(ImportState.LINKED)

        self.history.store_module_name(release.dist_name)
        result.advance(ImportState.DONE)
        result.status = OperationStatus.SUCCESS
        result.message = f"imported {release.label} as {tag}"
        logger.info(f"{headline} ({result.commit})")


class MirrorImporter:
    """
    Tracks a distribution's own git repository instead of its tarballs.

    Adds the upstream repository as remote `cpan` and fetches it, so the
    tracking reference follows upstream history. No commits, provenance
    blocks or tags are synthesized.
    """

    REMOTE = "cpan"

    def __init__(self, git_client: GitClient):
        self.git = git_client
        self.history = ImportHistory(git_client)

    def mirror(self, dist_name: str, url: str) -> ImportResult:
        """Add and fetch the upstream remote, then record the module identity."""
        result = ImportResult(dist_name=dist_name, version="", metadata={'url': url})
        try:
            logger.info(f"Git repository found: {url}")
            self.git.add_remote(self.REMOTE, url)
            self.git.fetch(self.REMOTE)
            self.history.store_module_name(dist_name)
        except GitCommandError as e:
            result.advance(ImportState.FAILED)
            result.status = OperationStatus.FAILED
            result.error = str(e)
            logger.warning(f"failed to mirror {url}: {e}")
            return result

        result.advance(ImportState.DONE)
        result.status = OperationStatus.MIRRORED
        result.message = f"tracking {url} as remote '{self.REMOTE}'"
        return result
