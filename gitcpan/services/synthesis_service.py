"""
Tree and commit synthesis for gitcpan.

Creates git objects for an extracted release without touching the
user's index or working tree:
- TreeSynthesizer stages a directory through a private index and
  writes it out as a tree object
- CommitSynthesizer wraps a tree in a commit carrying the provenance
  block; it never moves a reference
"""

import logging
import os
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

from ..domain.provenance import ProvenanceBlock, commit_message
from ..exit_codes import GitCommandError, IdentityUnresolved, StagingError
from ..infra.git_client import GitClient, isolated_workspace

logger = logging.getLogger(__name__)


class TreeSynthesizer:
    """
    Turns an extracted release directory into a tree object.

    Example:
        tree = TreeSynthesizer(client).synthesize("/tmp/Foo-Bar-0.01")
    """

    def __init__(self, git_client: GitClient):
        self.git = git_client

    def synthesize(self, extracted_dir: str) -> str:
        """
        Stage every file of `extracted_dir` and write the tree.

        Files matched by the repository's ignore rules are included:
        a release is imported exactly as published.

        Returns:
            Tree object id

        Raises:
            StagingError: If the directory or one of its files can't be staged
        """
        if not os.path.isdir(extracted_dir):
            raise StagingError(f"release directory {extracted_dir} does not exist")

        # git add only warns about unreadable directories
        check_readable(extracted_dir)

        try:
            with isolated_workspace(self.git, extracted_dir) as workspace:
                self.git.run(['add', '--all', '--force', '.'], workspace=workspace)
                tree = self.git.run(['write-tree'], workspace=workspace).strip()
        except GitCommandError as e:
            raise StagingError(f"could not stage {extracted_dir}: {e.stderr.strip() or e}") from e

        logger.debug(f"Wrote tree {tree} for {extracted_dir}")
        return tree


def check_readable(root: str) -> None:
    """
    Raise StagingError for the first file or directory under `root`
    that can't be read.
    """
    def on_error(error: OSError) -> None:
        raise StagingError(f"could not read {error.filename}: {error.strerror}")

    for dirpath, dirnames, filenames in os.walk(root, onerror=on_error):
        for name in dirnames:
            path = os.path.join(dirpath, name)
            if not os.path.islink(path) and not os.access(path, os.R_OK | os.X_OK):
                raise StagingError(f"could not read directory {path}")
        for name in filenames:
            path = os.path.join(dirpath, name)
            if not os.path.islink(path) and not os.access(path, os.R_OK):
                raise StagingError(f"could not read {path}")


@dataclass(frozen=True)
class AuthorIdentity:
    """Commit author."""
    name: str
    email: str
    date: Optional[str] = None

    def to_env(self) -> Dict[str, str]:
        env = {
            'GIT_AUTHOR_NAME': self.name,
            'GIT_AUTHOR_EMAIL': self.email,
        }
        if self.date:
            env['GIT_AUTHOR_DATE'] = self.date
        return env


class CommitSynthesizer:
    """
    Builds commit objects for imported trees.

    Author identity is resolved per field: explicit value first (the
    caller passes overrides ahead of release metadata), then the
    configured default author, then git's own identity.
    """

    def __init__(
        self,
        git_client: GitClient,
        default_name: Optional[str] = None,
        default_email: Optional[str] = None,
    ):
        self.git = git_client
        self.default_name = default_name or None
        self.default_email = default_email or None

    def resolve_author(
        self,
        name: Optional[str] = None,
        email: Optional[str] = None,
        date: Optional[str] = None,
    ) -> AuthorIdentity:
        """
        Fill in a missing author name or email.

        Raises:
            IdentityUnresolved: If no name or no email can be found
        """
        name = name or self.default_name
        email = email or self.default_email
        if not name or not email:
            ambient_name, ambient_email = self.git.ident()
            name = name or ambient_name
            email = email or ambient_email
        if not name or not email:
            raise IdentityUnresolved(
                "no author name/email: pass --author-name/--author-email "
                "or configure git user.name and user.email"
            )
        return AuthorIdentity(name=name, email=email, date=date or None)

    def synthesize(
        self,
        tree: str,
        parents: Sequence[str],
        headline: str,
        provenance: ProvenanceBlock,
        author_name: Optional[str] = None,
        author_email: Optional[str] = None,
        author_date: Optional[str] = None,
    ) -> str:
        """
        Write a commit object.

        Args:
            tree: Tree object id
            parents: Parent commit ids, in order (may be empty)
            headline: First line of the message
            provenance: Block appended after a blank line
            author_name: Author name, if known
            author_email: Author email, if known
            author_date: Author date, if known

        Returns:
            New commit id
        """
        author = self.resolve_author(author_name, author_email, author_date)
        env = author.to_env()

        # commit-tree needs a committer; borrow the author's if git has none
        committer_name, committer_email = self.git.ident()
        if not committer_name or not committer_email:
            env['GIT_COMMITTER_NAME'] = author.name
            env['GIT_COMMITTER_EMAIL'] = author.email

        args = ['commit-tree', tree]
        for parent in unique_parents(parents):
            args.extend(['-p', parent])

        commit = self.git.run(
            args,
            input=commit_message(headline, provenance),
            env=env,
        ).strip()
        logger.debug(f"Wrote commit {commit} ({headline})")
        return commit


def unique_parents(parents: Sequence[Optional[str]]) -> List[str]:
    """Drop empty and repeated parents, keeping the first occurrence order."""
    seen = set()
    ordered = []
    for parent in parents:
        if parent and parent not in seen:
            seen.add(parent)
            ordered.append(parent)
    return ordered
