"""Pure predicates classifying operator input for a semantic role.

Every validator is total: it returns ``False`` for anything unacceptable,
including non-string input, and never raises.
"""

from __future__ import annotations

import re
from collections.abc import Callable
from dataclasses import dataclass
from typing import Final

_IDENTIFIER_PATTERN: Final[re.Pattern[str]] = re.compile(r"[A-Za-z0-9_]+")
_HOSTNAME_PATTERN: Final[re.Pattern[str]] = re.compile(r"[A-Za-z0-9.-]+")
# At least one segment: the bare root "/" is rejected.
_ABSOLUTE_PATH_PATTERN: Final[re.Pattern[str]] = re.compile(
    r"/(?:[A-Za-z0-9._-]+/)*[A-Za-z0-9._-]+/?"
)


def is_identifier(candidate: str) -> bool:
    """Database names, database users, admin logins."""

    return isinstance(candidate, str) and _IDENTIFIER_PATTERN.fullmatch(candidate) is not None


def is_secret(candidate: str) -> bool:
    return isinstance(candidate, str) and candidate != ""


def is_hostname(candidate: str) -> bool:
    return isinstance(candidate, str) and _HOSTNAME_PATTERN.fullmatch(candidate) is not None


def is_absolute_path(candidate: str) -> bool:
    """Absolute path built from ``[A-Za-z0-9._-]`` segments, optional trailing slash."""

    return isinstance(candidate, str) and _ABSOLUTE_PATH_PATTERN.fullmatch(candidate) is not None


@dataclass(frozen=True, slots=True)
class Validator:
    """Named predicate plus the hint shown when a value is rejected."""

    name: str
    check: Callable[[str], bool]
    hint: str

    def __call__(self, candidate: str) -> bool:
        return self.check(candidate)


IDENTIFIER: Final[Validator] = Validator(
    name="identifier",
    check=is_identifier,
    hint="Only alphanumeric characters and underscores are allowed.",
)
SECRET: Final[Validator] = Validator(
    name="secret",
    check=is_secret,
    hint="The value must not be empty.",
)
HOSTNAME: Final[Validator] = Validator(
    name="hostname",
    check=is_hostname,
    hint="Only alphanumeric characters, dots and hyphens are allowed.",
)
ABSOLUTE_PATH: Final[Validator] = Validator(
    name="absolute_path",
    check=is_absolute_path,
    hint="Enter an absolute path such as /var/www/nextcloud (letters, digits, '.', '_', '-').",
)


__all__ = [
    "ABSOLUTE_PATH",
    "HOSTNAME",
    "IDENTIFIER",
    "SECRET",
    "Validator",
    "is_absolute_path",
    "is_hostname",
    "is_identifier",
    "is_secret",
]
