#!/usr/bin/env python3

import json
import sys
import tempfile

import click

from gitcpan import __version__
from gitcpan.config import load_config, configure_logging, logger
from gitcpan.domain.operation import ImportSummary
from gitcpan.domain.release import LatestSource, classify_source
from gitcpan.exit_codes import CommandError, NotARepositoryError, INTERRUPTED
from gitcpan.infra.git_client import GitClient
from gitcpan.infra.metacpan_client import MetaCPANClient, METACPAN_API_BASE
from gitcpan.render import render_import_table, print_import_summary, summary_line
from gitcpan.services.import_service import ImportOptions, MirrorImporter, ReleaseImporter
from gitcpan.sources import ReleaseProvider


@click.group()
@click.version_option(version=__version__)
def cli():
    """gitcpan - Import CPAN releases into a git repository.

    Each release becomes a commit on refs/remotes/cpan/master, tagged
    with its version. Your index and working tree are never touched.
    """
    pass


@cli.command(name='import')
@click.argument('thing_to_import', required=False)
@click.option('--check/--nocheck', default=None,
              help='Verify that the imported version is greater than what is already imported')
@click.option('--latest', is_flag=True,
              help='Only pick the latest release, if importing from CPAN')
@click.option('--parent', 'parents', multiple=True, metavar='REV',
              help='Extra parent of the imported release (can be given more than once)')
@click.option('--author-name', help="Explicitly set the author's name")
@click.option('--author-email', help="Explicitly set the author's email")
@click.option('--norepository', is_flag=True,
              help="Don't mirror the distribution's git repository, import tarballs")
@click.option('-C', '--repo', 'repo_path', default='.',
              type=click.Path(exists=True, file_okay=False),
              help='Repository to import into (default: current directory)')
@click.option('--pretty', is_flag=True, help='Display as a formatted table')
@click.option('-v', '--verbose', is_flag=True, help='Show git commands as they run')
def import_handler(thing_to_import, check, latest, parents, author_name, author_email,
                   norepository, repo_path, pretty, verbose):
    """Import a module, tarball or URL into the repository.

    \b
    Examples:
        gitcpan import Foo::Bar
        gitcpan import A/AU/AUTHORID/Foo-Bar-0.03.tar.gz
        gitcpan import https://backpan.perl.org/authors/id/A/AU/AUTHORID/Foo-Bar-0.03.tar.gz
        gitcpan import            # latest release of the tracked module
        gitcpan import --parent HEAD My-Module

    A release that fails to import is reported and the remaining
    releases are still imported.
    """
    config = load_config()
    configure_logging(config, verbose)

    client = GitClient(repo_path)
    try:
        if not client.is_git_repo():
            raise NotARepositoryError(repo_path)

        extra_parents = [client.resolve_commit(rev) for rev in parents]
        options = ImportOptions.from_config(
            config,
            check=check,
            parents=extra_parents,
            author_name=author_name,
            author_email=author_email,
        )
        importer = ReleaseImporter(client, config)

        source = classify_source(thing_to_import)
        tracked_module = importer.history.module_name() if isinstance(source, LatestSource) else None

        metacpan_config = config.get('metacpan', {})
        metacpan = MetaCPANClient(
            base_url=metacpan_config.get('base_url') or METACPAN_API_BASE,
            timeout=metacpan_config.get('timeout_seconds', 30),
        )
        mirror = config.get('import', {}).get('mirror_git_repositories', True) and not norepository

        summary = ImportSummary()
        with tempfile.TemporaryDirectory(prefix='gitcpan-') as workdir:
            provider = ReleaseProvider(metacpan, workdir, mirror_git_repositories=mirror)
            plan = provider.plan(source, latest=latest, tracked_module=tracked_module)

            if plan.is_mirror:
                results = [MirrorImporter(client).mirror(plan.dist_name, plan.mirror_url)]
            else:
                results = importer.import_releases(plan.releases, options)

            for result in results:
                summary.add_detail(result)
                data = result.to_dict()
                click.echo(summary_line(data), err=True)
                if not pretty:
                    click.echo(json.dumps(data, ensure_ascii=False))

        if pretty:
            render_import_table([result.to_dict() for result in summary.details])
            print_import_summary(summary.to_dict())

    except KeyboardInterrupt:
        logger.error("Interrupted by user")
        sys.exit(INTERRUPTED)
    except CommandError as e:
        logger.error(str(e))
        error_obj = {
            "error": str(e),
            "type": type(e).__name__,
            "exit_code": e.exit_code,
        }
        click.echo(json.dumps(error_obj, ensure_ascii=False))
        sys.exit(e.exit_code)


def main():
    cli()

if __name__ == "__main__":
    main()
