"""
nextcloud-installer — resource reconciler

File: src/nextcloud_installer/provisioning/reconciler.py
Last updated: 2026-10-18

Purpose
- Compare the desired configuration with what already exists on the host and pick
  exactly one resolution per managed resource.

Normative behavior
- Directory: absent -> created (creation deferred to deployment). Present -> ask
  to remove; yes removes it recursively and resolves created, no halts with
  ``OperatorMustChooseDifferentPath``. Paths are never auto-renamed.
- Database: probed by selecting it with the root credential. Absent -> created
  (CREATE issued). Present -> operator picks use-existing (reused, nothing issued),
  reset (drop then create) or abort (``OperatorMustChooseDifferentName``).
- Database user: create-if-absent plus grant, repeated unconditionally. No probe.
- Site definition: existence is recorded, then the file is fully rewritten from
  the record each run.
- Every resource is probed at most once and resolved exactly once. Nothing is
  rolled back when a later resource fails.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from pathlib import Path
from typing import TYPE_CHECKING, Final

import structlog

from nextcloud_installer.provisioning.errors import (
    DatabaseError,
    OperatorMustChooseDifferentName,
    OperatorMustChooseDifferentPath,
    ResourceStateError,
)
from nextcloud_installer.ui.terminal import ask_choice, ask_yes_no
from nextcloud_installer.utils.fs import remove_tree

if TYPE_CHECKING:
    from nextcloud_installer.collection.fields import ConfigurationRecord
    from nextcloud_installer.provisioning.collaborators import DatabaseClient
    from nextcloud_installer.ui.terminal import Terminal

DATABASE_HOST: Final[str] = "localhost"

_log = structlog.get_logger(__name__)


class ResourceKind(StrEnum):
    DIRECTORY = "directory"
    DATABASE = "database"
    DATABASE_USER = "database_user"
    SITE = "site"


class Resolution(StrEnum):
    CREATED = "created"
    REUSED = "reused"
    RESET = "reset"
    ABORTED = "aborted"


class DatabaseChoice(StrEnum):
    USE_EXISTING = "yes"
    RESET = "reset"
    ABORT = "no"


@dataclass(slots=True)
class ManagedResource:
    """External stateful entity whose existence is probed before it is used."""

    kind: ResourceKind
    identity_key: str
    exists_observed: bool | None = None
    resolution: Resolution | None = None

    def observe(self, exists: bool) -> None:
        if self.exists_observed is not None:
            raise ResourceStateError(f"{self.kind} {self.identity_key!r} was already probed")
        self.exists_observed = exists

    def resolve(self, resolution: Resolution) -> Resolution:
        if self.resolution is not None:
            raise ResourceStateError(
                f"{self.kind} {self.identity_key!r} already resolved as {self.resolution}"
            )
        self.resolution = resolution
        _log.info(
            "resource.resolved",
            kind=self.kind.value,
            identity=self.identity_key,
            exists_observed=self.exists_observed,
            resolution=resolution.value,
        )
        return resolution


class ResourceReconciler:
    """Applies create/reuse/reset/abort decisions for each resource kind."""

    def __init__(self, *, terminal: Terminal, database: DatabaseClient) -> None:
        self._terminal = terminal
        self._database = database

    def reconcile_directory(self, resource: ManagedResource) -> Resolution:
        path = Path(resource.identity_key)
        resource.observe(path.exists() or path.is_symlink())
        if not resource.exists_observed:
            return resource.resolve(Resolution.CREATED)

        if ask_yes_no(
            self._terminal,
            f"The directory '{path}' already exists. Do you want to remove it?",
        ):
            remove_tree(path)
            self._terminal.say(f"Removed existing directory '{path}'.")
            return resource.resolve(Resolution.CREATED)

        resource.resolve(Resolution.ABORTED)
        raise OperatorMustChooseDifferentPath(
            resource, f"Please choose a different installation directory than '{path}'."
        )

    def reconcile_database(
        self, resource: ManagedResource, record: ConfigurationRecord
    ) -> Resolution:
        name = quote_identifier(resource.identity_key)
        credential = record.db_pass
        resource.observe(self._database_exists(name, credential))

        if not resource.exists_observed:
            self._database.execute(f"CREATE DATABASE {name};", credential)
            return resource.resolve(Resolution.CREATED)

        choice = ask_choice(
            self._terminal,
            f"Database '{resource.identity_key}' already exists. Do you want to use it?",
            [item.value for item in DatabaseChoice],
        )
        if choice == DatabaseChoice.USE_EXISTING:
            self._terminal.say(f"Using the existing database '{resource.identity_key}'.")
            return resource.resolve(Resolution.REUSED)
        if choice == DatabaseChoice.RESET:
            self._terminal.say(f"Resetting the database '{resource.identity_key}'.")
            self._database.execute(f"DROP DATABASE {name}; CREATE DATABASE {name};", credential)
            return resource.resolve(Resolution.RESET)

        resource.resolve(Resolution.ABORTED)
        raise OperatorMustChooseDifferentName(
            resource, f"Please choose a different database name than '{resource.identity_key}'."
        )

    def reconcile_database_user(
        self, resource: ManagedResource, record: ConfigurationRecord
    ) -> Resolution:
        account = f"{quote_literal(resource.identity_key)}@{quote_literal(DATABASE_HOST)}"
        statements = (
            f"CREATE USER IF NOT EXISTS {account} IDENTIFIED BY {quote_literal(record.db_pass)};",
            f"GRANT ALL PRIVILEGES ON {quote_identifier(record.db_name)}.* TO {account};",
            "FLUSH PRIVILEGES;",
        )
        self._database.execute(" ".join(statements), record.db_pass)
        return resource.resolve(Resolution.CREATED)

    def reconcile_site(self, resource: ManagedResource) -> Resolution:
        path = Path(resource.identity_key)
        resource.observe(path.exists())
        return resource.resolve(Resolution.CREATED)

    def reconcile(
        self, resource: ManagedResource, record: ConfigurationRecord
    ) -> Resolution:
        """Dispatch on ``resource.kind``; raises ``OperatorDeclinedAlternative`` on refusal."""

        if resource.kind is ResourceKind.DIRECTORY:
            return self.reconcile_directory(resource)
        if resource.kind is ResourceKind.DATABASE:
            return self.reconcile_database(resource, record)
        if resource.kind is ResourceKind.DATABASE_USER:
            return self.reconcile_database_user(resource, record)
        return self.reconcile_site(resource)

    def _database_exists(self, quoted_name: str, credential: str) -> bool:
        try:
            self._database.execute(f"USE {quoted_name};", credential)
        except DatabaseError:
            return False
        return True


def quote_identifier(name: str) -> str:
    return "`" + name.replace("`", "``") + "`"


def quote_literal(value: str) -> str:
    escaped = value.replace("\\", "\\\\").replace("'", "\\'")
    return f"'{escaped}'"


__all__ = [
    "DATABASE_HOST",
    "DatabaseChoice",
    "ManagedResource",
    "Resolution",
    "ResourceKind",
    "ResourceReconciler",
    "quote_identifier",
    "quote_literal",
]
