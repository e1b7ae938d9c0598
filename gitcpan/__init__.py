"""
gitcpan - Import CPAN releases into a git repository.

Every release of a distribution becomes a commit on a dedicated
tracking reference (refs/remotes/cpan/master), tagged with its version.
Imports are written with git plumbing through a private index, so they
never touch your working tree or staged changes.

Quick Start:
    from gitcpan import GitClient, ReleaseImporter, Release

    client = GitClient("/path/to/repo")
    importer = ReleaseImporter(client)

    release = Release(
        dist_name="Foo-Bar",
        version="0.01",
        extracted_dir="/tmp/Foo-Bar-0.01",
        author_name="Foo Bar",
        author_email="foo@example.com",
    )
    result = importer.import_release(release)
    print(result.status, result.commit, result.tag)

Domain Objects:
    Release - One extracted distribution snapshot
    ProvenanceBlock - Import metadata embedded in each commit message
    ImportResult / ImportSummary - What happened to each release

Services:
    ReleaseImporter - Version check, tree, commit, tracking ref and tag
    MirrorImporter - Track an upstream git repository instead
"""

__version__ = "0.1.0"

from .domain import (
    Release,
    ProvenanceBlock,
    ImportState,
    OperationStatus,
    ImportResult,
    ImportSummary,
    classify_source,
)
from .infra.git_client import GitClient, GitWorkspace, isolated_workspace
from .services import (
    ReleaseImporter,
    MirrorImporter,
    ImportOptions,
    ImportHistory,
    TRACKING_REF,
)
from .version import compare, Ordering

__all__ = [
    "__version__",
    "Release",
    "ProvenanceBlock",
    "ImportState",
    "OperationStatus",
    "ImportResult",
    "ImportSummary",
    "classify_source",
    "GitClient",
    "GitWorkspace",
    "isolated_workspace",
    "ReleaseImporter",
    "MirrorImporter",
    "ImportOptions",
    "ImportHistory",
    "TRACKING_REF",
    "compare",
    "Ordering",
]
