"""
nextcloud-installer — external collaborator contracts and host shims

File: src/nextcloud_installer/provisioning/collaborators.py
Last updated: 2026-10-18

Purpose
- Define the narrow interfaces the pipeline consumes from the host: package
  manager, service manager, database client, archive fetcher, certificate
  authority client, web-server activation tools and ownership tools.
- Provide default implementations that shell out through a ``CommandRunner``.

Contracts
- Every method either returns normally or raises the matching ``CollaboratorError``
  subclass with the underlying ``CommandError`` chained as ``__cause__``.
- Secrets never appear on a child command line; the database credential travels
  in ``MYSQL_PWD``; SQL statements and the hardening answers travel on stdin.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Final, Protocol

from nextcloud_installer.provisioning.commands import (
    CommandError,
    CommandRunner,
    SubprocessCommandRunner,
    run_checked,
)
from nextcloud_installer.provisioning.errors import (
    CertificateError,
    DatabaseError,
    ExtractError,
    OwnershipError,
    PackageInstallError,
    ServiceControlError,
    SiteActivationError,
    TransferError,
)

_APT_ENV: Final[dict[str, str]] = {"DEBIAN_FRONTEND": "noninteractive"}


class PackageInstaller(Protocol):
    def install(self, package_names: Sequence[str]) -> None: ...


class ServiceController(Protocol):
    def start(self, service_name: str) -> None: ...

    def restart(self, service_name: str) -> None: ...

    def reload(self, service_name: str) -> None: ...


class DatabaseClient(Protocol):
    def execute(self, statement: str, credential: str) -> list[tuple[str, ...]]:
        """Run one or more SQL statements as the database root user."""
        ...

    def harden(self, credential: str) -> None:
        """Run the engine's own security-hardening routine, setting ``credential``."""
        ...


class ArchiveFetcher(Protocol):
    def download(self, url: str, destination_path: Path) -> None: ...

    def extract(self, archive_path: Path, destination_dir: Path) -> None: ...


class CertificateIssuer(Protocol):
    def issue(self, hostname: str, contact_email: str) -> None: ...


class SiteActivator(Protocol):
    def enable_modules(self, module_names: Sequence[str]) -> None: ...

    def enable_site(self, site_name: str) -> None: ...


class TreeOwnership(Protocol):
    def apply(self, path: Path, *, owner: str, group: str, mode: str) -> None: ...


class AptPackageInstaller:
    """Refresh the package index, upgrade, then install the requested packages."""

    def __init__(self, runner: CommandRunner, *, upgrade: bool = True) -> None:
        self._runner = runner
        self._upgrade = upgrade

    def install(self, package_names: Sequence[str]) -> None:
        commands: list[list[str]] = [["apt-get", "update"]]
        if self._upgrade:
            commands.append(["apt-get", "upgrade", "-y"])
        commands.append(["apt-get", "install", "-y", *package_names])
        for command in commands:
            try:
                run_checked(self._runner, command, env=_APT_ENV)
            except CommandError as exc:
                raise PackageInstallError(str(exc)) from exc


class SystemdServiceController:
    def __init__(self, runner: CommandRunner) -> None:
        self._runner = runner

    def start(self, service_name: str) -> None:
        self._systemctl("start", service_name)

    def restart(self, service_name: str) -> None:
        self._systemctl("restart", service_name)

    def reload(self, service_name: str) -> None:
        self._systemctl("reload", service_name)

    def _systemctl(self, action: str, service_name: str) -> None:
        try:
            run_checked(self._runner, ["systemctl", action, service_name])
        except CommandError as exc:
            raise ServiceControlError(str(exc)) from exc


class MysqlCliClient:
    """Database client driving the ``mysql`` command-line tool as root."""

    def __init__(self, runner: CommandRunner, *, user: str = "root") -> None:
        self._runner = runner
        self._user = user

    def execute(self, statement: str, credential: str) -> list[tuple[str, ...]]:
        command = [
            "mysql",
            f"--user={self._user}",
            "--batch",
            "--skip-column-names",
        ]
        try:
            result = run_checked(
                self._runner, command, input_text=statement, env={"MYSQL_PWD": credential}
            )
        except CommandError as exc:
            raise DatabaseError(str(exc)) from exc
        return [tuple(line.split("\t")) for line in result.stdout.splitlines() if line]

    def harden(self, credential: str) -> None:
        # Answers in prompt order: current root password (empty), set root password,
        # new password twice, remove anonymous users, disallow remote root login,
        # drop the test database, reload privilege tables.
        # The empty current password assumes the installer runs as OS root and the
        # database root account authenticates over the unix socket (the Debian and
        # Ubuntu MariaDB default), which keeps re-runs working after a password is set.
        answers = "\n".join(["", "Y", credential, credential, "Y", "Y", "Y", "Y"]) + "\n"
        try:
            run_checked(self._runner, ["mysql_secure_installation"], input_text=answers)
        except CommandError as exc:
            raise DatabaseError(f"database hardening failed: exit {exc.returncode}") from exc


class WgetUnzipFetcher:
    def __init__(self, runner: CommandRunner) -> None:
        self._runner = runner

    def download(self, url: str, destination_path: Path) -> None:
        try:
            run_checked(self._runner, ["wget", "-q", "-O", str(destination_path), url])
        except CommandError as exc:
            raise TransferError(str(exc)) from exc

    def extract(self, archive_path: Path, destination_dir: Path) -> None:
        try:
            run_checked(
                self._runner, ["unzip", "-qo", str(archive_path), "-d", str(destination_dir)]
            )
        except CommandError as exc:
            raise ExtractError(str(exc)) from exc


class CertbotIssuer:
    def __init__(self, runner: CommandRunner, *, plugin: str = "apache") -> None:
        self._runner = runner
        self._plugin = plugin

    def issue(self, hostname: str, contact_email: str) -> None:
        command = [
            "certbot",
            f"--{self._plugin}",
            "-d",
            hostname,
            "--non-interactive",
            "--agree-tos",
            "-m",
            contact_email,
        ]
        try:
            run_checked(self._runner, command)
        except CommandError as exc:
            raise CertificateError(str(exc)) from exc


class ApacheSiteActivator:
    def __init__(self, runner: CommandRunner) -> None:
        self._runner = runner

    def enable_modules(self, module_names: Sequence[str]) -> None:
        if not module_names:
            return
        try:
            run_checked(self._runner, ["a2enmod", *module_names])
        except CommandError as exc:
            raise SiteActivationError(str(exc)) from exc

    def enable_site(self, site_name: str) -> None:
        try:
            run_checked(self._runner, ["a2ensite", f"{site_name}.conf"])
        except CommandError as exc:
            raise SiteActivationError(str(exc)) from exc


class ChownChmodOwnership:
    def __init__(self, runner: CommandRunner) -> None:
        self._runner = runner

    def apply(self, path: Path, *, owner: str, group: str, mode: str) -> None:
        try:
            run_checked(self._runner, ["chown", "-R", f"{owner}:{group}", str(path)])
            run_checked(self._runner, ["chmod", "-R", mode, str(path)])
        except CommandError as exc:
            raise OwnershipError(str(exc)) from exc


@dataclass(frozen=True, slots=True)
class Collaborators:
    """Every external system the pipeline talks to."""

    packages: PackageInstaller
    services: ServiceController
    database: DatabaseClient
    fetcher: ArchiveFetcher
    certificates: CertificateIssuer
    sites: SiteActivator
    ownership: TreeOwnership


def system_collaborators(runner: CommandRunner | None = None) -> Collaborators:
    """Collaborators for a Debian/Ubuntu host with Apache, MariaDB and certbot."""

    resolved = runner or SubprocessCommandRunner()
    return Collaborators(
        packages=AptPackageInstaller(resolved),
        services=SystemdServiceController(resolved),
        database=MysqlCliClient(resolved),
        fetcher=WgetUnzipFetcher(resolved),
        certificates=CertbotIssuer(resolved),
        sites=ApacheSiteActivator(resolved),
        ownership=ChownChmodOwnership(resolved),
    )


REQUIRED_COMMANDS: Final[tuple[str, ...]] = (
    "apt-get",
    "systemctl",
    "mysql",
    "mysql_secure_installation",
    "a2enmod",
    "a2ensite",
    "certbot",
    "wget",
    "unzip",
    "chown",
    "chmod",
)


__all__ = [
    "REQUIRED_COMMANDS",
    "ApacheSiteActivator",
    "AptPackageInstaller",
    "ArchiveFetcher",
    "CertbotIssuer",
    "CertificateIssuer",
    "ChownChmodOwnership",
    "Collaborators",
    "DatabaseClient",
    "MysqlCliClient",
    "PackageInstaller",
    "ServiceController",
    "SiteActivator",
    "SystemdServiceController",
    "TreeOwnership",
    "WgetUnzipFetcher",
    "system_collaborators",
]
