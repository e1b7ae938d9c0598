"""
Git client infrastructure for gitcpan.

Provides a clean abstraction over git command execution.
All git operations go through this client, making them:
- Easy to mock for testing
- Consistent in error handling
- Isolated from business logic

Plumbing commands that must not touch the user's checkout run inside
an isolated workspace: a private index file, the repository's control
directory and an alternate work tree, handed to one child process at a
time through its environment. The parent process environment is never
modified.
"""

import os
import shutil
import subprocess
import tempfile
import threading
import logging
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Sequence, Tuple

from ..exit_codes import GitCommandError, NotARepositoryError

logger = logging.getLogger(__name__)

# Only one isolated workspace may be active per process
_workspace_lock = threading.Lock()


@dataclass(frozen=True)
class GitWorkspace:
    """
    Alternate index / control directory / work tree triple.

    Passed explicitly to `GitClient.run()`; the values are applied to
    the child process only.
    """
    index_file: str
    git_dir: str
    work_tree: str

    def to_env(self) -> Dict[str, str]:
        """Environment overrides that point git at this workspace."""
        return {
            'GIT_INDEX_FILE': self.index_file,
            'GIT_DIR': self.git_dir,
            'GIT_WORK_TREE': self.work_tree,
        }


class GitClient:
    """
    Abstraction over git commands for one repository.

    Example:
        client = GitClient("/path/to/repo")
        tip = client.rev_parse("refs/remotes/cpan/master")
        if tip is None:
            print("Nothing imported yet")
    """

    def __init__(self, repo_path: str = ".", timeout: Optional[int] = None):
        """
        Initialize GitClient.

        Args:
            repo_path: Path inside the repository (default: current directory)
            timeout: Command timeout in seconds (default: no timeout)
        """
        self.repo_path = str(Path(repo_path).expanduser().absolute())
        self.timeout = timeout
        self._git_dir: Optional[str] = None

    def run(
        self,
        args: Sequence[str],
        input: Optional[str] = None,
        workspace: Optional[GitWorkspace] = None,
        env: Optional[Dict[str, str]] = None,
        check: bool = True,
    ) -> str:
        """
        Run a git command and return its stdout.

        Args:
            args: Git arguments (e.g., ['write-tree'])
            input: Text fed to the command's stdin
            workspace: Isolated workspace to run against
            env: Extra environment variables for this command only
            check: Raise GitCommandError on non-zero exit

        Returns:
            Stdout with the trailing newline removed
        """
        output, _ = self._run(args, input=input, workspace=workspace, env=env, check=check)
        return output

    def _run(
        self,
        args: Sequence[str],
        input: Optional[str] = None,
        workspace: Optional[GitWorkspace] = None,
        env: Optional[Dict[str, str]] = None,
        check: bool = True,
    ) -> Tuple[str, int]:
        full_command = ['git', *args]

        child_env = None
        cwd = self.repo_path
        if workspace is not None or env:
            child_env = os.environ.copy()
            if workspace is not None:
                child_env.update(workspace.to_env())
                cwd = workspace.work_tree
            if env:
                child_env.update(env)

        logger.debug(f"Running {' '.join(full_command)} in {cwd}")
        try:
            result = subprocess.run(
                full_command,
                cwd=cwd,
                env=child_env,
                input=input,
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except subprocess.TimeoutExpired:
            logger.warning(f"Git command timed out: {' '.join(full_command)}")
            raise GitCommandError(args, -1, "timed out")
        except OSError as e:
            raise GitCommandError(args, -1, str(e))

        if check and result.returncode != 0:
            raise GitCommandError(args, result.returncode, result.stderr)

        return result.stdout.rstrip('\n'), result.returncode

    def lines(self, args: Sequence[str], **kwargs) -> List[str]:
        """Run a git command and return its non-empty output lines."""
        output = self.run(args, **kwargs)
        return [line for line in output.split('\n') if line]

    def is_git_repo(self) -> bool:
        """Check if repo_path is inside a git repository."""
        _, code = self._run(['rev-parse', '--git-dir'], check=False)
        return code == 0

    @property
    def git_dir(self) -> str:
        """Absolute path of the repository's control directory."""
        if self._git_dir is None:
            output, code = self._run(['rev-parse', '--absolute-git-dir'], check=False)
            if code != 0 or not output:
                raise NotARepositoryError(self.repo_path)
            self._git_dir = output.strip()
        return self._git_dir

    def rev_parse(self, rev: str) -> Optional[str]:
        """Resolve a revision to an object id, or None if it doesn't exist."""
        output, code = self._run(['rev-parse', '--verify', '--quiet', rev], check=False)
        if code == 0 and output:
            return output.strip()
        return None

    def resolve_commit(self, rev: str) -> str:
        """Resolve a revision to a commit id, raising if it isn't one."""
        return self.run(['rev-parse', '--verify', f'{rev}^{{commit}}']).strip()

    def config_get(self, key: str) -> Optional[str]:
        """Read a repository-local config value."""
        output, code = self._run(['config', '--local', '--get', key], check=False)
        if code == 0 and output:
            return output.strip()
        return None

    def config_set(self, key: str, value: str) -> None:
        """Write a repository-local config value."""
        self.run(['config', '--local', key, value])

    def commit_message(self, commit: str) -> str:
        """Get the raw message of a commit."""
        return self.run(['log', '--pretty=format:%B', '-n', '1', commit])

    def commit_parents(self, commit: str) -> List[str]:
        """Get the ordered parent ids of a commit."""
        output = self.run(['rev-list', '--parents', '-n', '1', commit])
        return output.split()[1:]

    def tag_exists(self, name: str) -> bool:
        """Check whether refs/tags/<name> exists."""
        return self.rev_parse(f'refs/tags/{name}') is not None

    def is_valid_ref_name(self, ref: str) -> bool:
        """Check a full reference name against git's naming rules."""
        _, code = self._run(['check-ref-format', ref], check=False)
        return code == 0

    def ident(self) -> Tuple[Optional[str], Optional[str]]:
        """
        Ambient author identity as configured for git.

        Returns:
            Tuple of (name, email); either may be None
        """
        output, code = self._run(['var', 'GIT_AUTHOR_IDENT'], check=False)
        if code != 0 or not output or '<' not in output:
            return None, None
        name, _, rest = output.partition('<')
        email = rest.split('>', 1)[0]
        return name.strip() or None, email.strip() or None

    def add_remote(self, name: str, url: str) -> None:
        """Add a remote."""
        self.run(['remote', 'add', name, url])

    def fetch(self, remote: str) -> str:
        """Fetch from a remote; git reports fetched refs on stderr."""
        output, _ = self._run(['fetch', remote])
        return output


@contextmanager
def isolated_workspace(client: GitClient, work_tree: str) -> Iterator[GitWorkspace]:
    """
    Provide a private index scoped to `work_tree`.

    The index lives in a fresh temporary directory that is removed on
    exit, whether the body returns or raises. The repository's own
    index and the caller's checkout are never used.

    Example:
        with isolated_workspace(client, "/tmp/Foo-Bar-0.01") as ws:
            client.run(['add', '--all', '--force', '.'], workspace=ws)
            tree = client.run(['write-tree'], workspace=ws)
    """
    git_dir = client.git_dir
    with _workspace_lock:
        temp_dir = tempfile.mkdtemp(prefix='gitcpan-index-')
        try:
            yield GitWorkspace(
                index_file=os.path.join(temp_dir, 'index'),
                git_dir=git_dir,
                work_tree=str(Path(work_tree).absolute()),
            )
        finally:
            shutil.rmtree(temp_dir, ignore_errors=True)
