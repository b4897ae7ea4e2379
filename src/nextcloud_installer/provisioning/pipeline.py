"""
nextcloud-installer — provisioning pipeline

File: src/nextcloud_installer/provisioning/pipeline.py
Last updated: 2026-10-18

Purpose
- Run the fixed, ordered sequence of host-mutating steps that turns a
  ``ConfigurationRecord`` into a working application install.

State machine
- NotStarted -> Running(i) -> Running(i+1) ... -> Succeeded.
- Running(i) -> Failed(i, cause) when step i raises; later steps are never invoked.
- Succeeded and Failed are terminal. A retry needs a fresh pipeline object.

Step order (application mode)
- install_packages, secure_database, reconcile_resources, deploy_application,
  set_permissions, configure_site, issue_certificate, write_bootstrap,
  restart_web_server.
"""

from __future__ import annotations

import shutil
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from enum import StrEnum
from pathlib import Path
from typing import TYPE_CHECKING, Final

import structlog

from nextcloud_installer.observability.logging import correlation_scope
from nextcloud_installer.provisioning.errors import DeploymentError, PipelineStateError
from nextcloud_installer.provisioning.reconciler import (
    ManagedResource,
    Resolution,
    ResourceKind,
    ResourceReconciler,
)
from nextcloud_installer.provisioning.templates import TemplateRenderer
from nextcloud_installer.utils.fs import atomic_write, same_path

if TYPE_CHECKING:
    from nextcloud_installer.collection.fields import ConfigurationRecord
    from nextcloud_installer.config.schema import InstallerSettings
    from nextcloud_installer.provisioning.collaborators import Collaborators
    from nextcloud_installer.ui.terminal import Terminal

SITE_FILE_MODE: Final[int] = 0o644
BOOTSTRAP_FILE_MODE: Final[int] = 0o640

_log = structlog.get_logger(__name__)


class IdempotencyPolicy(StrEnum):
    ALWAYS_SAFE = "always-safe-to-repeat"
    GUARDED_BY_PROBE = "guarded-by-probe"
    DESTRUCTIVE_REQUIRES_CONFIRMATION = "destructive-requires-confirmation"


class StepOutcome(StrEnum):
    PENDING = "pending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class PipelineStatus(StrEnum):
    NOT_STARTED = "not_started"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass(slots=True)
class ProvisioningContext:
    """Everything a step may read; the record itself is never mutated."""

    settings: InstallerSettings
    collaborators: Collaborators
    terminal: Terminal
    record: ConfigurationRecord | None = None
    renderer: TemplateRenderer = field(default_factory=TemplateRenderer)
    resources: list[ManagedResource] = field(default_factory=list)

    def require_record(self) -> ConfigurationRecord:
        if self.record is None:
            raise PipelineStateError("this step needs a collected configuration record")
        return self.record

    def resolutions(self) -> list[Resolution | None]:
        return [item.resolution for item in self.resources]

    def reconciler(self) -> ResourceReconciler:
        return ResourceReconciler(terminal=self.terminal, database=self.collaborators.database)


StepAction = Callable[[ProvisioningContext], str | None]


@dataclass(slots=True)
class PipelineStep:
    """Named unit of work. ``action`` may return a short note, e.g. why it skipped."""

    name: str
    policy: IdempotencyPolicy
    action: StepAction
    outcome: StepOutcome = StepOutcome.PENDING
    note: str | None = None

    def finish(self, outcome: StepOutcome) -> None:
        if self.outcome is not StepOutcome.PENDING:
            raise PipelineStateError(f"step {self.name!r} already finished as {self.outcome}")
        self.outcome = outcome


@dataclass(frozen=True, slots=True)
class Failed:
    step_index: int
    step_name: str
    cause: Exception


@dataclass(frozen=True, slots=True)
class PipelineResult:
    status: PipelineStatus
    outcomes: tuple[tuple[str, StepOutcome], ...]
    resources: tuple[ManagedResource, ...]
    failure: Failed | None = None

    @property
    def succeeded(self) -> bool:
        return self.status is PipelineStatus.SUCCEEDED


class ProvisioningPipeline:
    """Runs its steps once, strictly in order, stopping at the first failure."""

    def __init__(self, steps: Sequence[PipelineStep], context: ProvisioningContext) -> None:
        if not steps:
            raise ValueError("a pipeline needs at least one step")
        names = [item.name for item in steps]
        if len(set(names)) != len(names):
            raise ValueError(f"duplicate step names: {names}")
        self._steps = tuple(steps)
        self._context = context
        self._status = PipelineStatus.NOT_STARTED
        self._current_index: int | None = None
        self._failure: Failed | None = None

    @property
    def steps(self) -> tuple[PipelineStep, ...]:
        return self._steps

    @property
    def context(self) -> ProvisioningContext:
        return self._context

    @property
    def status(self) -> PipelineStatus:
        return self._status

    @property
    def current_index(self) -> int | None:
        return self._current_index

    @property
    def failure(self) -> Failed | None:
        return self._failure

    def run(self) -> PipelineResult:
        if self._status is not PipelineStatus.NOT_STARTED:
            raise PipelineStateError(f"pipeline already {self._status}; build a new one to retry")

        self._status = PipelineStatus.RUNNING
        terminal = self._context.terminal
        for index, step in enumerate(self._steps):
            self._current_index = index
            with correlation_scope(step=step.name):
                _log.info(
                    "pipeline.step.started", step=step.name, index=index, policy=step.policy.value
                )
                terminal.say(f"[{index + 1}/{len(self._steps)}] {step.name.replace('_', ' ')}")
                try:
                    step.note = step.action(self._context)
                except Exception as exc:
                    step.finish(StepOutcome.FAILED)
                    self._failure = Failed(step_index=index, step_name=step.name, cause=exc)
                    self._status = PipelineStatus.FAILED
                    _log.error(
                        "pipeline.step.failed",
                        step=step.name,
                        index=index,
                        error_type=type(exc).__name__,
                        error=str(exc),
                    )
                    return self._result()
                step.finish(StepOutcome.SUCCEEDED)
                _log.info("pipeline.step.succeeded", step=step.name, index=index, note=step.note)

        self._status = PipelineStatus.SUCCEEDED
        return self._result()

    def _result(self) -> PipelineResult:
        return PipelineResult(
            status=self._status,
            outcomes=tuple((item.name, item.outcome) for item in self._steps),
            resources=tuple(self._context.resources),
            failure=self._failure,
        )


# ---------------------------------------------------------------------------
# Step actions
# ---------------------------------------------------------------------------


def install_packages(context: ProvisioningContext) -> None:
    packages = context.settings["packages"]
    collaborators = context.collaborators
    collaborators.packages.install(packages["install"])
    collaborators.sites.enable_modules(packages["web_server_modules"])
    collaborators.services.restart(context.settings["services"]["web_server"])


def start_database(context: ProvisioningContext) -> None:
    context.collaborators.services.start(context.settings["services"]["database"])


def secure_database(context: ProvisioningContext) -> None:
    record = context.require_record()
    start_database(context)
    context.collaborators.database.harden(record.db_pass)


def reconcile_resources(context: ProvisioningContext) -> None:
    """Directory, database, then database user; the first refusal stops the rest."""

    record = context.require_record()
    reconciler = context.reconciler()
    for kind, identity in (
        (ResourceKind.DIRECTORY, record.install_dir),
        (ResourceKind.DATABASE, record.db_name),
        (ResourceKind.DATABASE_USER, record.db_user),
    ):
        resource = ManagedResource(kind=kind, identity_key=identity)
        context.resources.append(resource)
        reconciler.reconcile(resource, record)


def deploy_application(context: ProvisioningContext) -> str | None:
    record = context.require_record()
    application = context.settings["application"]
    fetcher = context.collaborators.fetcher

    staging_dir = Path(application["staging_dir"])
    archive_path = staging_dir / application["archive_name"]
    unpacked = staging_dir / application["extracted_dir_name"]
    target = Path(record.install_dir)

    fetcher.download(application["download_url"], archive_path)
    fetcher.extract(archive_path, staging_dir)

    if same_path(unpacked, target):
        return "unpacked tree already at install directory"
    if not unpacked.is_dir():
        raise DeploymentError(f"archive did not produce {unpacked}")
    try:
        target.parent.mkdir(parents=True, exist_ok=True)
        shutil.move(str(unpacked), str(target))
    except OSError as exc:
        raise DeploymentError(f"unable to move {unpacked} to {target}: {exc}") from exc
    return None


def set_permissions(context: ProvisioningContext) -> None:
    record = context.require_record()
    application = context.settings["application"]
    context.collaborators.ownership.apply(
        Path(record.install_dir),
        owner=application["owner"],
        group=application["group"],
        mode=application["mode"],
    )


def configure_site(context: ProvisioningContext) -> None:
    record = context.require_record()
    web_server = context.settings["web_server"]
    site_name = web_server["site_name"]
    site_path = Path(web_server["sites_available_dir"]) / f"{site_name}.conf"

    resource = ManagedResource(kind=ResourceKind.SITE, identity_key=str(site_path))
    context.resources.append(resource)
    context.reconciler().reconcile(resource, record)

    content = context.renderer.render_site(
        record, site_name=site_name, log_dir=web_server["log_dir"]
    )
    atomic_write(site_path, content, mode=SITE_FILE_MODE)
    context.collaborators.sites.enable_site(site_name)
    context.collaborators.services.reload(context.settings["services"]["web_server"])


def issue_certificate(context: ProvisioningContext) -> str | None:
    record = context.require_record()
    certificates = context.settings["certificates"]
    if not certificates["enabled"]:
        return "certificate issuance disabled in settings"
    contact = certificates["contact_email"] or f"admin@{record.domain}"
    context.collaborators.certificates.issue(record.domain, contact)
    return None


def write_bootstrap(context: ProvisioningContext) -> None:
    record = context.require_record()
    application = context.settings["application"]
    bootstrap_path = Path(record.install_dir) / application["bootstrap_path"]

    content = context.renderer.render_bootstrap(
        record, data_dir_name=application["data_dir_name"]
    )
    bootstrap_path.parent.mkdir(parents=True, exist_ok=True)
    atomic_write(bootstrap_path, content, mode=BOOTSTRAP_FILE_MODE)
    context.collaborators.ownership.apply(
        bootstrap_path,
        owner=application["owner"],
        group=application["group"],
        mode=f"{BOOTSTRAP_FILE_MODE:o}",
    )


def restart_web_server(context: ProvisioningContext) -> None:
    context.collaborators.services.restart(context.settings["services"]["web_server"])


# ---------------------------------------------------------------------------
# Step lists
# ---------------------------------------------------------------------------


def build_application_steps() -> list[PipelineStep]:
    """Fresh, all-pending steps for a full application install."""

    return [
        PipelineStep("install_packages", IdempotencyPolicy.ALWAYS_SAFE, install_packages),
        PipelineStep("secure_database", IdempotencyPolicy.ALWAYS_SAFE, secure_database),
        PipelineStep(
            "reconcile_resources",
            IdempotencyPolicy.DESTRUCTIVE_REQUIRES_CONFIRMATION,
            reconcile_resources,
        ),
        PipelineStep("deploy_application", IdempotencyPolicy.GUARDED_BY_PROBE, deploy_application),
        PipelineStep("set_permissions", IdempotencyPolicy.ALWAYS_SAFE, set_permissions),
        PipelineStep("configure_site", IdempotencyPolicy.ALWAYS_SAFE, configure_site),
        PipelineStep("issue_certificate", IdempotencyPolicy.ALWAYS_SAFE, issue_certificate),
        PipelineStep("write_bootstrap", IdempotencyPolicy.ALWAYS_SAFE, write_bootstrap),
        PipelineStep("restart_web_server", IdempotencyPolicy.ALWAYS_SAFE, restart_web_server),
    ]


def build_base_stack_steps() -> list[PipelineStep]:
    """Packages, web-server modules and a running database; no configuration needed."""

    return [
        PipelineStep("install_packages", IdempotencyPolicy.ALWAYS_SAFE, install_packages),
        PipelineStep("start_database", IdempotencyPolicy.ALWAYS_SAFE, start_database),
    ]


def application_pipeline(
    record: ConfigurationRecord,
    *,
    settings: InstallerSettings,
    collaborators: Collaborators,
    terminal: Terminal,
    renderer: TemplateRenderer | None = None,
) -> ProvisioningPipeline:
    context = ProvisioningContext(
        settings=settings,
        collaborators=collaborators,
        terminal=terminal,
        record=record,
        renderer=renderer or TemplateRenderer(),
    )
    return ProvisioningPipeline(build_application_steps(), context)


def base_stack_pipeline(
    *,
    settings: InstallerSettings,
    collaborators: Collaborators,
    terminal: Terminal,
) -> ProvisioningPipeline:
    context = ProvisioningContext(settings=settings, collaborators=collaborators, terminal=terminal)
    return ProvisioningPipeline(build_base_stack_steps(), context)


__all__ = [
    "BOOTSTRAP_FILE_MODE",
    "SITE_FILE_MODE",
    "Failed",
    "IdempotencyPolicy",
    "PipelineResult",
    "PipelineStatus",
    "PipelineStep",
    "ProvisioningContext",
    "ProvisioningPipeline",
    "StepAction",
    "StepOutcome",
    "application_pipeline",
    "base_stack_pipeline",
    "build_application_steps",
    "build_base_stack_steps",
]
