"""Pytest fixtures for all test modules."""
import subprocess
from pathlib import Path
from typing import Dict, Optional

import pytest

from gitcpan.config import get_default_config
from gitcpan.domain.release import Release
from gitcpan.infra.git_client import GitClient


def git(repo_path, *args, input: Optional[str] = None) -> str:
    """Run git in a test repository and return stripped stdout."""
    result = subprocess.run(
        ["git", *args],
        cwd=repo_path,
        input=input,
        capture_output=True,
        text=True,
        check=True,
    )
    return result.stdout.strip()


@pytest.fixture
def git_repo(tmp_path) -> Path:
    """
    A real git repository with one commit on its default branch.

    Returns:
        Path to the repository root
    """
    repo_path = tmp_path / "repo"
    repo_path.mkdir()

    git(repo_path, "init", "-q")
    git(repo_path, "config", "user.email", "test@example.com")
    git(repo_path, "config", "user.name", "Test User")

    (repo_path / "README.md").write_text("# repo\n\nTest repository.\n")
    (repo_path / ".gitignore").write_text("blib/\n*.o\n")
    git(repo_path, "add", ".")
    git(repo_path, "commit", "-q", "-m", "Initial commit")

    return repo_path


@pytest.fixture
def client(git_repo) -> GitClient:
    return GitClient(str(git_repo))


@pytest.fixture
def config() -> dict:
    return get_default_config()


@pytest.fixture
def make_release(tmp_path):
    """
    Factory for extracted releases.

    Example:
        release = make_release("0.01", {"lib/Foo/Bar.pm": "package Foo::Bar;"})
    """
    def _make(
        version: str,
        files: Optional[Dict[str, str]] = None,
        dist_name: str = "Foo-Bar",
        **kwargs,
    ) -> Release:
        base = tmp_path / "releases" / f"{dist_name}-{version}"
        extracted = base
        copies = 0
        while extracted.exists():
            copies += 1
            extracted = base.with_name(f"{base.name}.{copies}")
        extracted.mkdir(parents=True)
        if files is None:
            files = {
                "lib/Foo/Bar.pm": f"package Foo::Bar;\nour $VERSION = '{version}';\n1;\n",
                "Changes": f"{version}\n  - release\n",
            }
        for name, content in files.items():
            path = extracted / name
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(content)

        defaults = {
            "author_name": "Foo Author",
            "author_email": "foo@cpan.org",
            "author_id": "FOOBAR",
        }
        defaults.update(kwargs)
        return Release(
            dist_name=dist_name,
            version=version,
            extracted_dir=str(extracted),
            **defaults,
        )

    return _make


@pytest.fixture
def run_git():
    """The `git` helper, for tests that drive a repository directly."""
    return git
