"""
Release archive extraction for gitcpan.

CPAN tarballs normally unpack into a single `Dist-Name-Version/`
directory; that directory is what gets imported.
"""

import os
import tarfile
import zipfile
from pathlib import Path

from .config import logger
from .exit_codes import SourceError

TAR_SUFFIXES = ('.tar.gz', '.tgz', '.tar.bz2', '.tbz', '.tar')


def _is_within(base: Path, target: Path) -> bool:
    try:
        target.resolve().relative_to(base.resolve())
        return True
    except ValueError:
        return False


def extract_archive(archive_path: str, destination: str) -> str:
    """
    Extract a release archive.

    Args:
        archive_path: .tar.gz, .tgz, .tar.bz2 or .zip file
        destination: Directory to extract into (created if missing)

    Returns:
        The single top-level directory of the archive, or `destination`
        when the archive has several top-level entries

    Raises:
        SourceError: If the archive is unreadable or has unsafe paths
    """
    dest = Path(destination)
    dest.mkdir(parents=True, exist_ok=True)
    name = os.path.basename(archive_path).lower()

    try:
        if name.endswith('.zip'):
            with zipfile.ZipFile(archive_path) as zf:
                for member in zf.namelist():
                    if not _is_within(dest, dest / member):
                        raise SourceError(f"{archive_path}: unsafe path {member}")
                zf.extractall(dest)
        elif name.endswith(TAR_SUFFIXES):
            with tarfile.open(archive_path) as tf:
                for member in tf.getmembers():
                    if not _is_within(dest, dest / member.name):
                        raise SourceError(f"{archive_path}: unsafe path {member.name}")
                tf.extractall(dest, filter='data')
        else:
            raise SourceError(f"{archive_path}: unsupported archive format")
    except (tarfile.TarError, zipfile.BadZipFile, OSError) as e:
        raise SourceError(f"could not extract {archive_path}: {e}") from e

    entries = [entry for entry in dest.iterdir() if entry.name != 'pax_global_header']
    if len(entries) == 1 and entries[0].is_dir():
        extracted = entries[0]
    else:
        extracted = dest

    logger.debug(f"Extracted {archive_path} to {extracted}")
    return str(extracted)
