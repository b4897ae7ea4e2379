"""
nextcloud-installer — shared test fixtures

File: tests/conftest.py
Last updated: 2026-10-18

Purpose
- Scripted terminal that replays operator lines and records every prompt and message.
- Recording fake collaborators standing in for the package manager, service manager,
  database, archive fetcher, certificate issuer, site activator and ownership tools.
- Installer settings rooted under ``tmp_path`` so no test touches the real host.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from pathlib import Path

import pytest

from nextcloud_installer.collection.fields import DEFAULT_FIELDS, ConfigurationRecord
from nextcloud_installer.config.schema import (
    InstallerSettings,
    assert_valid_settings,
    default_settings,
    merge_settings,
)
from nextcloud_installer.provisioning.collaborators import Collaborators
from nextcloud_installer.provisioning.errors import DatabaseError
from nextcloud_installer.ui.terminal import AbortedByOperator

_DATABASE_STATEMENT = re.compile(r"(USE|CREATE DATABASE|DROP DATABASE) `([^`]+)`;")


@dataclass
class ScriptedTerminal:
    """Replays ``answers`` one line per prompt; running out means end-of-input."""

    answers: list[str]
    prompts: list[str] = field(default_factory=list)
    output: list[str] = field(default_factory=list)

    def ask(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if not self.answers:
            raise AbortedByOperator("script exhausted")
        return self.answers.pop(0)

    def say(self, message: str) -> None:
        self.output.append(message)

    def said(self, fragment: str) -> list[str]:
        return [line for line in self.output if fragment in line]


@dataclass
class FakeHost:
    """Shared call log for every fake collaborator.

    ``failures`` maps an operation name such as ``"services.reload"`` to errors
    raised (one per call, in order) before the call is otherwise honoured.
    """

    calls: list[tuple[object, ...]] = field(default_factory=list)
    databases: set[str] = field(default_factory=set)
    failures: dict[str, list[Exception]] = field(default_factory=dict)
    extracted_dir_name: str = "nextcloud"

    def record(self, operation: str, *args: object) -> None:
        self.calls.append((operation, *args))
        queued = self.failures.get(operation)
        if queued:
            raise queued.pop(0)

    def operations(self) -> list[str]:
        return [str(call[0]) for call in self.calls]

    def count(self, operation: str) -> int:
        return self.operations().count(operation)

    def args_for(self, operation: str) -> list[tuple[object, ...]]:
        return [call[1:] for call in self.calls if call[0] == operation]


@dataclass
class FakePackages:
    host: FakeHost

    def install(self, package_names: Sequence[str]) -> None:
        self.host.record("packages.install", tuple(package_names))


@dataclass
class FakeServices:
    host: FakeHost

    def start(self, service_name: str) -> None:
        self.host.record("services.start", service_name)

    def restart(self, service_name: str) -> None:
        self.host.record("services.restart", service_name)

    def reload(self, service_name: str) -> None:
        self.host.record("services.reload", service_name)


@dataclass
class FakeDatabase:
    """Understands just enough SQL to track which databases exist."""

    host: FakeHost

    def execute(self, statement: str, credential: str) -> list[tuple[str, ...]]:
        self.host.record("database.execute", statement, credential)
        for verb, name in _DATABASE_STATEMENT.findall(statement):
            if verb == "USE" and name not in self.host.databases:
                raise DatabaseError(f"Unknown database '{name}'")
            if verb == "CREATE DATABASE":
                self.host.databases.add(name)
            if verb == "DROP DATABASE":
                self.host.databases.discard(name)
        return []

    def harden(self, credential: str) -> None:
        self.host.record("database.harden", credential)


@dataclass
class FakeFetcher:
    host: FakeHost

    def download(self, url: str, destination_path: Path) -> None:
        self.host.record("fetcher.download", url, destination_path)
        destination_path.write_bytes(b"PK\x03\x04")

    def extract(self, archive_path: Path, destination_dir: Path) -> None:
        self.host.record("fetcher.extract", archive_path, destination_dir)
        unpacked = destination_dir / self.host.extracted_dir_name
        (unpacked / "config").mkdir(parents=True, exist_ok=True)
        (unpacked / "index.php").write_text("<?php\n", encoding="utf-8")


@dataclass
class FakeCertificates:
    host: FakeHost

    def issue(self, hostname: str, contact_email: str) -> None:
        self.host.record("certificates.issue", hostname, contact_email)


@dataclass
class FakeSites:
    host: FakeHost

    def enable_modules(self, module_names: Sequence[str]) -> None:
        self.host.record("sites.enable_modules", tuple(module_names))

    def enable_site(self, site_name: str) -> None:
        self.host.record("sites.enable_site", site_name)


@dataclass
class FakeOwnership:
    host: FakeHost

    def apply(self, path: Path, *, owner: str, group: str, mode: str) -> None:
        self.host.record("ownership.apply", path, owner, group, mode)


def fake_collaborators(host: FakeHost) -> Collaborators:
    return Collaborators(
        packages=FakePackages(host),
        services=FakeServices(host),
        database=FakeDatabase(host),
        fetcher=FakeFetcher(host),
        certificates=FakeCertificates(host),
        sites=FakeSites(host),
        ownership=FakeOwnership(host),
    )


@pytest.fixture
def host() -> FakeHost:
    return FakeHost()


@pytest.fixture
def collaborators(host: FakeHost) -> Collaborators:
    return fake_collaborators(host)


@pytest.fixture
def make_terminal() -> Callable[..., ScriptedTerminal]:
    def _make(*answers: str) -> ScriptedTerminal:
        return ScriptedTerminal(answers=list(answers))

    return _make


@pytest.fixture
def installer_settings(tmp_path: Path) -> InstallerSettings:
    staging = tmp_path / "staging"
    sites = tmp_path / "sites-available"
    staging.mkdir()
    sites.mkdir()
    return assert_valid_settings(
        merge_settings(
            default_settings(),
            {
                "application": {"staging_dir": str(staging)},
                "web_server": {"sites_available_dir": str(sites)},
                "observability": {"log_dir": str(tmp_path / "logs")},
            },
        )
    )


@pytest.fixture
def make_record(tmp_path: Path) -> Callable[..., ConfigurationRecord]:
    def _make(**overrides: str) -> ConfigurationRecord:
        values = {
            "install_dir": str(tmp_path / "var" / "www" / "app"),
            "db_name": "app_db",
            "db_user": "app_user",
            "db_pass": "s3cret",
            "admin_user": "admin",
            "admin_pass": "adminpw",
            "domain": "example.com",
        }
        values.update(overrides)
        return ConfigurationRecord(DEFAULT_FIELDS, values)

    return _make
