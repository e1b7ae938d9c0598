"""
Operation result domain objects for gitcpan.

Provides standardized result types for release imports: the state a
release reached, what happened to it, and a summary of a whole batch.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Any, List, Optional


class ImportState(Enum):
    """
    Progress of one release through the importer.

    PENDING -> CHECKED -> STAGED -> COMMITTED -> LINKED -> DONE,
    with SKIPPED reachable from CHECKED and FAILED from any non-terminal
    state. A mirrored distribution goes from PENDING straight to DONE.
    """
    PENDING = "pending"
    CHECKED = "checked"
    STAGED = "staged"
    COMMITTED = "committed"
    LINKED = "linked"
    DONE = "done"
    SKIPPED = "skipped"
    FAILED = "failed"

    @property
    def terminal(self) -> bool:
        return self in (ImportState.DONE, ImportState.SKIPPED, ImportState.FAILED)


# Allowed transitions; FAILED is allowed from every non-terminal state
TRANSITIONS = {
    # DONE directly: mirrored distributions
    ImportState.PENDING: {ImportState.CHECKED, ImportState.DONE},
    ImportState.CHECKED: {ImportState.STAGED, ImportState.SKIPPED},
    ImportState.STAGED: {ImportState.COMMITTED},
    ImportState.COMMITTED: {ImportState.LINKED},
    ImportState.LINKED: {ImportState.DONE},
}


class OperationStatus(Enum):
    """Outcome of an individual import."""
    SUCCESS = "success"
    SKIPPED = "skipped"
    FAILED = "failed"
    MIRRORED = "mirrored"


@dataclass
class ImportResult:
    """
    What happened to one release.

    Used to track each release during a batch import.
    """
    dist_name: str
    version: str
    state: ImportState = ImportState.PENDING
    status: Optional[OperationStatus] = None
    message: Optional[str] = None
    error: Optional[str] = None
    tree: Optional[str] = None
    commit: Optional[str] = None
    parents: List[str] = field(default_factory=list)
    tag: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def label(self) -> str:
        return f"{self.dist_name} {self.version}"

    def advance(self, state: ImportState) -> None:
        """Move to the next state, refusing transitions the importer never makes."""
        if state == ImportState.FAILED and not self.state.terminal:
            self.state = state
            return
        if state not in TRANSITIONS.get(self.state, set()):
            raise ValueError(f"invalid import transition {self.state.value} -> {state.value}")
        self.state = state

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        result = {
            'dist_name': self.dist_name,
            'version': self.version,
            'state': self.state.value,
            'status': self.status.value if self.status else None,
        }
        if self.message:
            result['message'] = self.message
        if self.error:
            result['error'] = self.error
        if self.tree:
            result['tree'] = self.tree
        if self.commit:
            result['commit'] = self.commit
            result['parents'] = list(self.parents)
        if self.tag:
            result['tag'] = self.tag
        if self.metadata:
            result.update(self.metadata)
        return result


@dataclass
class ImportSummary:
    """
    Summary of a batch import.

    A batch of N releases may import anywhere from 0 to N of them;
    partial success is a normal outcome.
    """
    total: int = 0
    imported: int = 0
    skipped: int = 0
    failed: int = 0
    mirrored: int = 0
    details: List[ImportResult] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        """True if no failures occurred."""
        return self.failed == 0

    def add_detail(self, detail: ImportResult) -> None:
        """Add an import result and update counts."""
        self.details.append(detail)
        self.total += 1

        if detail.status == OperationStatus.SUCCESS:
            self.imported += 1
        elif detail.status == OperationStatus.SKIPPED:
            self.skipped += 1
        elif detail.status == OperationStatus.MIRRORED:
            self.mirrored += 1
        elif detail.status == OperationStatus.FAILED:
            self.failed += 1
            if detail.error:
                self.errors.append(f"{detail.label}: {detail.error}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            'total': self.total,
            'imported': self.imported,
            'skipped': self.skipped,
            'failed': self.failed,
            'mirrored': self.mirrored,
            'errors': list(self.errors),
        }
