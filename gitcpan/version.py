"""
CPAN version ordering.

CPAN distributions use two version conventions:
- Decimal versions (0.01, 1.002003) compare as numbers, so 0.10 == 0.1
- Dotted versions (v1.2.3, 1.2.3) compare component by component

Decimal versions are converted to dotted form the way Perl's version.pm
does it (the fraction is split into groups of three digits, so
1.002003 == v1.2.3), and the resulting tuples are ordered with
packaging's Version.
"""

import re
from enum import Enum
from typing import Optional, Tuple

from packaging.version import Version, InvalidVersion


class InvalidVersionError(ValueError):
    """Raised when a string is not a CPAN version."""


class Ordering(Enum):
    """Result of comparing two versions."""
    LESS = -1
    EQUAL = 0
    GREATER = 1


DECIMAL_RE = re.compile(r'^(\d*)(?:\.(\d*))?$')
DOTTED_RE = re.compile(r'^v?(\d+(?:\.\d+)*)$')


def to_dotted(version: str) -> Tuple[int, ...]:
    """
    Normalize a CPAN version string to a tuple of integers.

    Raises:
        InvalidVersionError: If the string is not a version
    """
    raw = version.strip() if version else ''
    if not raw:
        raise InvalidVersionError(f"invalid version: {version!r}")

    if raw.startswith('v') or raw.count('.') >= 2:
        # Dotted: development underscores act as separators
        match = DOTTED_RE.match(raw.replace('_', '.'))
        if not match:
            raise InvalidVersionError(f"invalid version: {version!r}")
        return tuple(int(part) for part in match.group(1).split('.'))

    # Decimal: development underscores are dropped (1.02_03 == 1.0203)
    match = DECIMAL_RE.match(raw.replace('_', ''))
    if not match or not (match.group(1) or match.group(2)):
        raise InvalidVersionError(f"invalid version: {version!r}")

    integer = int(match.group(1) or 0)
    fraction = match.group(2) or ''
    if len(fraction) % 3:
        fraction += '0' * (3 - len(fraction) % 3)
    groups = [int(fraction[i:i + 3]) for i in range(0, len(fraction), 3)]
    return (integer, *groups)


def parse(version: str) -> Version:
    """Parse a CPAN version into a comparable packaging Version."""
    try:
        return Version('.'.join(str(part) for part in to_dotted(version)))
    except InvalidVersion as e:
        raise InvalidVersionError(str(e)) from e


def compare(a: str, b: str) -> Ordering:
    """Compare two CPAN versions numerically."""
    va, vb = parse(a), parse(b)
    if va < vb:
        return Ordering.LESS
    if va > vb:
        return Ordering.GREATER
    return Ordering.EQUAL


def is_at_least_as_new_as_last(candidate: str, last_imported: Optional[str]) -> bool:
    """True if `candidate` is not older than `last_imported`; always True without a prior import."""
    if last_imported is None:
        return True
    return compare(candidate, last_imported) != Ordering.LESS
