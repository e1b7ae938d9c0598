"""
Provenance block domain object for gitcpan.

Every imported commit carries a block like this in its message:

    git-cpan-module:   Foo-Bar
    git-cpan-version:  0.02
    git-cpan-authorid: FOOBAR

The labels, their spacing and their order are read back by other tools
to find the last imported version, so rendering must not change.
"""

import re
from dataclasses import dataclass
from typing import Optional, Dict, Any


MODULE_LABEL = "git-cpan-module:"
VERSION_LABEL = "git-cpan-version:"
AUTHORID_LABEL = "git-cpan-authorid:"

PROVENANCE_RE = re.compile(
    r'^git-cpan-module:[ \t]+(?P<module>\S.*?)[ \t]*\n'
    r'\s*git-cpan-version:[ \t]+(?P<version>\S+)[ \t]*$'
    r'(?:\n\s*git-cpan-authorid:[ \t]*(?P<author_id>\S*))?',
    re.MULTILINE,
)


@dataclass(frozen=True)
class ProvenanceBlock:
    """Which distribution, version and CPAN author a commit represents."""
    module: str
    version: str
    author_id: Optional[str] = None

    def render(self) -> str:
        """Render the block, including its trailing blank line."""
        return (
            f"{MODULE_LABEL}   {self.module}\n"
            f"{VERSION_LABEL}  {self.version}\n"
            f"{AUTHORID_LABEL} {self.author_id or ''}\n"
            "\n"
        )

    @classmethod
    def parse(cls, message: str) -> Optional['ProvenanceBlock']:
        """
        Extract the block from a commit message.

        Any text may precede the block. Returns None if no well-formed
        block is present.
        """
        if not message:
            return None
        match = PROVENANCE_RE.search(message)
        if not match:
            return None
        return cls(
            module=match.group('module'),
            version=match.group('version'),
            author_id=match.group('author_id') or None,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'module': self.module,
            'version': self.version,
            'author_id': self.author_id,
        }


def commit_message(headline: str, provenance: ProvenanceBlock) -> str:
    """Headline, blank line, then the provenance block."""
    return f"{headline}\n\n{provenance.render()}"
