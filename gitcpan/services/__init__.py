"""
Service layer for gitcpan.

Contains the import logic that orchestrates domain objects and infrastructure:
- TreeSynthesizer / CommitSynthesizer: Write tree and commit objects
- ImportHistory / HistoryLinker: Read and advance the tracking reference
- ReleaseImporter: Import releases one after another
- MirrorImporter: Track a distribution's upstream git repository

Services are the primary API for commands to use.
"""

from .synthesis_service import TreeSynthesizer, CommitSynthesizer, AuthorIdentity
from .history_service import ImportHistory, HistoryLinker, version_tag, TRACKING_REF, MODULE_NAME_KEY
from .import_service import ReleaseImporter, MirrorImporter, ImportOptions

__all__ = [
    'TreeSynthesizer',
    'CommitSynthesizer',
    'AuthorIdentity',
    'ImportHistory',
    'HistoryLinker',
    'version_tag',
    'TRACKING_REF',
    'MODULE_NAME_KEY',
    'ReleaseImporter',
    'MirrorImporter',
    'ImportOptions',
]
