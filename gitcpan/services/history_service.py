"""
Import history for gitcpan.

- ImportHistory answers "what did we import last?" from the tracking
  reference and the stored module identity (git config cpan.module-name)
- HistoryLinker advances the tracking reference and tags imported commits
"""

import logging
from typing import Optional

from ..domain.provenance import ProvenanceBlock
from ..exit_codes import InvalidTagName, ProvenanceUnparseable, TagAlreadyExists
from ..infra.git_client import GitClient

logger = logging.getLogger(__name__)

TRACKING_REF = "refs/remotes/cpan/master"
MODULE_NAME_KEY = "cpan.module-name"


def version_tag(version: str, prefix: str = "v") -> str:
    """Tag name for a version: "0.01" -> "v0.01", "v1.2.3" stays as is."""
    if prefix and version.startswith(prefix):
        return version
    return f"{prefix}{version}"


class ImportHistory:
    """
    Read access to what has already been imported into a repository.

    Resolution of the tracked module follows a fixed precedence:
    1. The stored module identity in repository config
    2. The provenance block of the tracking reference's tip commit
       (cached into config once parsed)
    """

    def __init__(self, git_client: GitClient, tracking_ref: str = TRACKING_REF):
        self.git = git_client
        self.tracking_ref = tracking_ref

    def tip(self) -> Optional[str]:
        """Commit the tracking reference points at, or None before the first import."""
        return self.git.rev_parse(f"{self.tracking_ref}^{{commit}}")

    def stored_module_name(self) -> Optional[str]:
        return self.git.config_get(MODULE_NAME_KEY)

    def store_module_name(self, name: str) -> None:
        self.git.config_set(MODULE_NAME_KEY, name)

    def tip_provenance(self, tip: Optional[str] = None) -> Optional[ProvenanceBlock]:
        """Parse the provenance block of the tip commit, if there is one."""
        tip = tip or self.tip()
        if tip is None:
            return None
        return ProvenanceBlock.parse(self.git.commit_message(tip))

    def module_name(self) -> Optional[str]:
        """
        Distribution this repository tracks.

        Raises:
            ProvenanceUnparseable: If nothing is stored and the tip has no block
        """
        stored = self.stored_module_name()
        if stored:
            return stored

        tip = self.tip()
        if tip is None:
            return None

        block = self.tip_provenance(tip)
        if block is None:
            raise ProvenanceUnparseable(tip, self.git.commit_message(tip))

        self.store_module_name(block.module)
        return block.module

    def last_imported_version(self, tip: Optional[str] = None) -> Optional[str]:
        """
        Version recorded on the tip commit.

        Returns None before the first import, and when the tip came from
        a mirrored upstream history (module identity stored, no block).

        Raises:
            ProvenanceUnparseable: If the tip has no block and no identity is stored
        """
        tip = tip or self.tip()
        if tip is None:
            return None

        block = self.tip_provenance(tip)
        if block is not None:
            return block.version

        if self.stored_module_name():
            logger.warning(
                f"{self.tracking_ref} ({tip}) carries no import metadata; "
                f"last imported version unknown"
            )
            return None

        raise ProvenanceUnparseable(tip, self.git.commit_message(tip))


class HistoryLinker:
    """
    Links an imported commit into the tracking history.

    The tracking reference is moved with a compare-and-swap against the
    tip the commit was built on, then a lightweight version tag is
    created. Tags are never moved.
    """

    def __init__(self, git_client: GitClient):
        self.git = git_client

    def link_and_tag(
        self,
        tracking_ref: str,
        commit: str,
        tag: str,
        previous_tip: Optional[str] = None,
        reason: Optional[str] = None,
    ) -> None:
        """
        Point `tracking_ref` at `commit` and tag it.

        Raises:
            InvalidTagName: If `tag` can't be a tag; nothing is changed
            TagAlreadyExists: If `tag` is taken; nothing is changed and
                `commit` is left unreferenced
        """
        if not self.git.is_valid_ref_name(f"refs/tags/{tag}"):
            raise InvalidTagName(tag)
        if self.git.tag_exists(tag):
            raise TagAlreadyExists(tag, commit)

        self.git.run([
            'update-ref', '-m', reason or f"import {tag}",
            tracking_ref, commit, previous_tip or '',
        ])
        self.git.run(['tag', tag, commit])
        logger.info(f"created tag '{tag}' ({commit})")
