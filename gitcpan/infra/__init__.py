"""
Infrastructure layer for gitcpan.

Contains abstractions for external systems:
- GitClient: Git command execution, isolated workspaces
- MetaCPANClient: MetaCPAN API access

These provide clean interfaces that can be mocked for testing.
"""

from .git_client import GitClient, GitWorkspace, isolated_workspace
from .metacpan_client import MetaCPANClient, ReleaseInfo, AuthorInfo

__all__ = [
    'GitClient',
    'GitWorkspace',
    'isolated_workspace',
    'MetaCPANClient',
    'ReleaseInfo',
    'AuthorInfo',
]
