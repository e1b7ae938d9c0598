"""
Domain layer for gitcpan.

Contains pure domain objects with no I/O or side effects:
- Release: One extracted distribution snapshot to import
- UnavailableRelease: A release that couldn't be fetched
- ReleaseSource: Where releases come from (URL, file, name, latest)
- ProvenanceBlock: Import metadata embedded in commit messages
- ImportResult / ImportSummary: Outcome of imports

These objects are immutable where possible and provide
serialization methods for JSONL output.
"""

from .release import (
    Release,
    UnavailableRelease,
    PlannedRelease,
    ReleaseSource,
    UrlSource,
    FileSource,
    NamedSource,
    LatestSource,
    classify_source,
    parse_tarball_name,
)
from .provenance import ProvenanceBlock, commit_message
from .operation import ImportState, OperationStatus, ImportResult, ImportSummary

__all__ = [
    'Release',
    'UnavailableRelease',
    'PlannedRelease',
    'ReleaseSource',
    'UrlSource',
    'FileSource',
    'NamedSource',
    'LatestSource',
    'classify_source',
    'parse_tarball_name',
    'ProvenanceBlock',
    'commit_message',
    'ImportState',
    'OperationStatus',
    'ImportResult',
    'ImportSummary',
]
