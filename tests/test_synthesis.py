"""
Tests for tree/commit synthesis and the import history.
"""

import os
from unittest.mock import patch

import pytest

from gitcpan.domain.provenance import ProvenanceBlock
from gitcpan.exit_codes import (
    GitCommandError,
    IdentityUnresolved,
    InvalidTagName,
    ProvenanceUnparseable,
    StagingError,
    TagAlreadyExists,
)
from gitcpan.services.history_service import (
    MODULE_NAME_KEY,
    TRACKING_REF,
    HistoryLinker,
    ImportHistory,
    version_tag,
)
from gitcpan.services.synthesis_service import (
    AuthorIdentity,
    CommitSynthesizer,
    TreeSynthesizer,
    unique_parents,
)


def tree_paths(run_git, repo, tree):
    return run_git(repo, 'ls-tree', '-r', '--name-only', tree).split('\n')


class TestTreeSynthesizer:

    def test_tree_matches_directory(self, client, git_repo, make_release, run_git):
        release = make_release("0.01")
        tree = TreeSynthesizer(client).synthesize(release.extracted_dir)

        assert run_git(git_repo, 'cat-file', '-t', tree) == 'tree'
        assert sorted(tree_paths(run_git, git_repo, tree)) == ['Changes', 'lib/Foo/Bar.pm']

    def test_ignored_files_are_included(self, client, git_repo, make_release, run_git):
        # the repository ignores blib/ and *.o
        release = make_release("0.01", {
            "lib/Foo/Bar.pm": "1;\n",
            "blib/lib/Foo/Bar.pm": "1;\n",
            "Bar.o": "binary\n",
            ".gitignore": "*.pm\n",
        })
        tree = TreeSynthesizer(client).synthesize(release.extracted_dir)

        assert sorted(tree_paths(run_git, git_repo, tree)) == [
            '.gitignore', 'Bar.o', 'blib/lib/Foo/Bar.pm', 'lib/Foo/Bar.pm',
        ]

    def test_same_content_same_tree(self, client, make_release):
        first = make_release("0.01", {"a.txt": "a\n"}, dist_name="A")
        second = make_release("0.01", {"a.txt": "a\n"}, dist_name="B")
        trees = TreeSynthesizer(client)
        assert trees.synthesize(first.extracted_dir) == trees.synthesize(second.extracted_dir)

    def test_user_checkout_untouched(self, client, git_repo, make_release, run_git):
        (git_repo / 'wip.txt').write_text('work in progress\n')
        run_git(git_repo, 'add', 'wip.txt')
        status = run_git(git_repo, 'status', '--porcelain')

        TreeSynthesizer(client).synthesize(make_release("0.01").extracted_dir)

        assert run_git(git_repo, 'status', '--porcelain') == status
        assert not (git_repo / 'Changes').exists()

    def test_missing_directory(self, client, tmp_path):
        with pytest.raises(StagingError):
            TreeSynthesizer(client).synthesize(str(tmp_path / "missing"))

    @pytest.mark.skipif(os.geteuid() == 0, reason="root can read everything")
    def test_unreadable_file(self, client, make_release):
        release = make_release("0.01", {"lib/Foo/Bar.pm": "1;\n", "secret.txt": "x\n"})
        secret = os.path.join(release.extracted_dir, "secret.txt")
        os.chmod(secret, 0)
        try:
            with pytest.raises(StagingError, match="secret.txt"):
                TreeSynthesizer(client).synthesize(release.extracted_dir)
        finally:
            os.chmod(secret, 0o644)

    @pytest.mark.skipif(os.geteuid() == 0, reason="root can read everything")
    def test_unreadable_directory(self, client, make_release):
        release = make_release("0.01", {"lib/Foo/Bar.pm": "1;\n", "t/basic.t": "ok\n"})
        tests_dir = os.path.join(release.extracted_dir, "t")
        os.chmod(tests_dir, 0)
        try:
            with pytest.raises(StagingError, match="could not read directory"):
                TreeSynthesizer(client).synthesize(release.extracted_dir)
        finally:
            os.chmod(tests_dir, 0o755)


class TestCommitSynthesizer:

    def _block(self, version="0.01"):
        return ProvenanceBlock(module="Foo-Bar", version=version, author_id="FOOBAR")

    def test_root_commit(self, client, git_repo, make_release, run_git):
        tree = TreeSynthesizer(client).synthesize(make_release("0.01").extracted_dir)
        commit = CommitSynthesizer(client).synthesize(
            tree, [], "initial import of Foo-Bar 0.01", self._block(),
            author_name="Foo Author", author_email="foo@cpan.org",
            author_date="2010-01-02T03:04:05",
        )

        assert client.commit_parents(commit) == []
        assert run_git(git_repo, 'rev-parse', f'{commit}^{{tree}}') == tree
        assert client.commit_message(commit) == (
            "initial import of Foo-Bar 0.01\n"
            "\n"
            "git-cpan-module:   Foo-Bar\n"
            "git-cpan-version:  0.01\n"
            "git-cpan-authorid: FOOBAR"
        )
        assert run_git(git_repo, 'log', '-1', '--format=%an <%ae>', commit) == 'Foo Author <foo@cpan.org>'
        assert run_git(git_repo, 'log', '-1', '--format=%ad', '--date=format:%Y-%m-%d', commit) == '2010-01-02'

    def test_parents_in_order(self, client, git_repo, make_release, run_git):
        head = run_git(git_repo, 'rev-parse', 'HEAD')
        trees = TreeSynthesizer(client)
        commits = CommitSynthesizer(client)
        first = commits.synthesize(
            trees.synthesize(make_release("0.01").extracted_dir), [],
            "initial import of Foo-Bar 0.01", self._block(),
        )
        second = commits.synthesize(
            trees.synthesize(make_release("0.02").extracted_dir), [first, head, first],
            "import Foo-Bar 0.02", self._block("0.02"),
        )
        assert client.commit_parents(second) == [first, head]

    def test_does_not_move_refs(self, client, git_repo, make_release, run_git):
        refs_before = run_git(git_repo, 'for-each-ref')
        tree = TreeSynthesizer(client).synthesize(make_release("0.01").extracted_dir)
        CommitSynthesizer(client).synthesize(tree, [], "initial import of Foo-Bar 0.01", self._block())
        assert run_git(git_repo, 'for-each-ref') == refs_before

    def test_resolve_author_precedence(self, client):
        commits = CommitSynthesizer(client, default_name="Configured", default_email="conf@example.com")
        assert commits.resolve_author("Given", "given@example.com") == AuthorIdentity("Given", "given@example.com")
        assert commits.resolve_author(None, "given@example.com").name == "Configured"
        assert commits.resolve_author("Given", None).email == "conf@example.com"

    def test_resolve_author_falls_back_to_git(self, client):
        author = CommitSynthesizer(client).resolve_author(None, None, "2010-01-01")
        assert author == AuthorIdentity("Test User", "test@example.com", "2010-01-01")

    def test_identity_unresolved(self, client, make_release):
        tree = TreeSynthesizer(client).synthesize(make_release("0.01").extracted_dir)
        with patch.object(client, 'ident', return_value=(None, None)):
            with pytest.raises(IdentityUnresolved):
                CommitSynthesizer(client).synthesize(tree, [], "import", self._block(), author_name="Only Name")

    def test_committer_borrowed_when_git_has_none(self, client, git_repo, make_release, run_git):
        tree = TreeSynthesizer(client).synthesize(make_release("0.01").extracted_dir)
        with patch.object(client, 'ident', return_value=(None, None)):
            commit = CommitSynthesizer(client).synthesize(
                tree, [], "import", self._block(),
                author_name="Foo Author", author_email="foo@cpan.org",
            )
        assert run_git(git_repo, 'log', '-1', '--format=%cn <%ce>', commit) == 'Foo Author <foo@cpan.org>'

    def test_author_identity_env(self):
        assert AuthorIdentity("A", "a@example.com").to_env() == {
            'GIT_AUTHOR_NAME': 'A',
            'GIT_AUTHOR_EMAIL': 'a@example.com',
        }
        assert AuthorIdentity("A", "a@example.com", "2010-01-01").to_env()['GIT_AUTHOR_DATE'] == "2010-01-01"


class TestUniqueParents:

    def test_drops_empty_and_duplicates(self):
        assert unique_parents([None, "a", "", "b", "a", "c", "b"]) == ["a", "b", "c"]

    def test_empty(self):
        assert unique_parents([]) == []


class TestVersionTag:

    def test_prefix_added(self):
        assert version_tag("0.01") == "v0.01"

    def test_prefix_not_doubled(self):
        assert version_tag("v1.2.3") == "v1.2.3"

    def test_custom_prefix(self):
        assert version_tag("0.01", prefix="release-") == "release-0.01"
        assert version_tag("0.01", prefix="") == "0.01"


@pytest.fixture
def imported_commit(client, make_release):
    """A commit carrying a provenance block, not yet referenced."""
    def _make(version="0.01", parents=(), block=True):
        tree = TreeSynthesizer(client).synthesize(make_release(version).extracted_dir)
        provenance = ProvenanceBlock(module="Foo-Bar", version=version, author_id="FOOBAR")
        if block:
            return CommitSynthesizer(client).synthesize(tree, list(parents), f"import Foo-Bar {version}", provenance)
        return client.run(['commit-tree', tree], input="not an import\n")
    return _make


class TestHistoryLinker:

    def test_link_and_tag(self, client, imported_commit):
        commit = imported_commit()
        HistoryLinker(client).link_and_tag(TRACKING_REF, commit, "v0.01")

        assert client.rev_parse(TRACKING_REF) == commit
        assert client.rev_parse("refs/tags/v0.01") == commit

    def test_compare_and_swap(self, client, imported_commit):
        linker = HistoryLinker(client)
        first = imported_commit("0.01")
        linker.link_and_tag(TRACKING_REF, first, "v0.01")

        second = imported_commit("0.02", parents=[first])
        linker.link_and_tag(TRACKING_REF, second, "v0.02", previous_tip=first)
        assert client.rev_parse(TRACKING_REF) == second

    def test_stale_tip_rejected(self, client, imported_commit):
        linker = HistoryLinker(client)
        first = imported_commit("0.01")
        linker.link_and_tag(TRACKING_REF, first, "v0.01")

        # expecting the ref to be absent while it points at `first`
        second = imported_commit("0.02", parents=[first])
        with pytest.raises(GitCommandError):
            linker.link_and_tag(TRACKING_REF, second, "v0.02", previous_tip=None)
        assert client.rev_parse(TRACKING_REF) == first
        assert not client.tag_exists("v0.02")

    def test_existing_tag_leaves_everything_unchanged(self, client, git_repo, imported_commit, run_git):
        run_git(git_repo, 'tag', 'v0.01')
        head = run_git(git_repo, 'rev-parse', 'HEAD')
        commit = imported_commit()

        with pytest.raises(TagAlreadyExists) as exc_info:
            HistoryLinker(client).link_and_tag(TRACKING_REF, commit, "v0.01")

        assert exc_info.value.tag == "v0.01"
        assert commit in str(exc_info.value)
        assert client.rev_parse(TRACKING_REF) is None
        assert client.rev_parse("refs/tags/v0.01") == head

    @pytest.mark.parametrize("tag", ["v0.01~rc", "v0.01 beta", "v0.01..2"])
    def test_invalid_tag_name_leaves_ref_alone(self, client, imported_commit, tag):
        commit = imported_commit()

        with pytest.raises(InvalidTagName):
            HistoryLinker(client).link_and_tag(TRACKING_REF, commit, tag)

        assert client.rev_parse(TRACKING_REF) is None

    def test_reflog_reason(self, client, git_repo, imported_commit, run_git):
        run_git(git_repo, 'config', 'core.logAllRefUpdates', 'always')
        commit = imported_commit()
        HistoryLinker(client).link_and_tag(TRACKING_REF, commit, "v0.01", reason="import Foo-Bar")
        assert "import Foo-Bar" in run_git(git_repo, 'reflog', 'show', TRACKING_REF)


class TestImportHistory:

    def test_empty_repository(self, client):
        history = ImportHistory(client)
        assert history.tip() is None
        assert history.module_name() is None
        assert history.last_imported_version() is None

    def test_reads_tip_block(self, client, imported_commit):
        commit = imported_commit("0.02")
        HistoryLinker(client).link_and_tag(TRACKING_REF, commit, "v0.02")

        history = ImportHistory(client)
        assert history.tip() == commit
        assert history.last_imported_version() == "0.02"
        assert history.tip_provenance().module == "Foo-Bar"

    def test_module_name_cached_into_config(self, client, imported_commit):
        commit = imported_commit()
        HistoryLinker(client).link_and_tag(TRACKING_REF, commit, "v0.01")

        assert client.config_get(MODULE_NAME_KEY) is None
        assert ImportHistory(client).module_name() == "Foo-Bar"
        assert client.config_get(MODULE_NAME_KEY) == "Foo-Bar"

    def test_stored_module_name_wins(self, client, imported_commit):
        commit = imported_commit()
        HistoryLinker(client).link_and_tag(TRACKING_REF, commit, "v0.01")
        client.config_set(MODULE_NAME_KEY, "Other-Dist")

        assert ImportHistory(client).module_name() == "Other-Dist"

    def test_unparseable_tip(self, client, imported_commit):
        commit = imported_commit(block=False)
        client.run(['update-ref', TRACKING_REF, commit])
        history = ImportHistory(client)

        with pytest.raises(ProvenanceUnparseable) as exc_info:
            history.last_imported_version()
        assert exc_info.value.commit == commit
        assert "not an import" in str(exc_info.value)

        with pytest.raises(ProvenanceUnparseable):
            history.module_name()

    def test_mirrored_tip(self, client, imported_commit):
        commit = imported_commit(block=False)
        client.run(['update-ref', TRACKING_REF, commit])
        client.config_set(MODULE_NAME_KEY, "Foo-Bar")
        history = ImportHistory(client)

        assert history.last_imported_version() is None
        assert history.module_name() == "Foo-Bar"
