"""
nextcloud-installer — unit tests for the provisioning pipeline

File: tests/unit/provisioning/test_pipeline.py
Last updated: 2026-10-18

Purpose
- Validate strict step ordering, stop-at-first-failure and terminal states.
- Validate the effects of individual step actions against fake collaborators.
"""

from __future__ import annotations

import stat
from collections.abc import Callable
from pathlib import Path

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from nextcloud_installer.collection.fields import ConfigurationRecord
from nextcloud_installer.config.schema import InstallerSettings, merge_settings
from nextcloud_installer.provisioning.collaborators import Collaborators
from nextcloud_installer.provisioning.errors import (
    DeploymentError,
    PipelineStateError,
    ServiceControlError,
)
from nextcloud_installer.provisioning.pipeline import (
    IdempotencyPolicy,
    PipelineStatus,
    PipelineStep,
    ProvisioningContext,
    ProvisioningPipeline,
    StepOutcome,
    application_pipeline,
    base_stack_pipeline,
    build_application_steps,
    deploy_application,
    issue_certificate,
    write_bootstrap,
)
from nextcloud_installer.provisioning.reconciler import Resolution

from conftest import FakeHost, ScriptedTerminal

pytestmark = pytest.mark.unit

_APPLICATION_STEP_NAMES = [
    "install_packages",
    "secure_database",
    "reconcile_resources",
    "deploy_application",
    "set_permissions",
    "configure_site",
    "issue_certificate",
    "write_bootstrap",
    "restart_web_server",
]


def _recording_steps(count: int, fail_at: int | None, invoked: list[int]) -> list[PipelineStep]:
    def make_action(index: int) -> Callable[[ProvisioningContext], None]:
        def action(context: ProvisioningContext) -> None:
            invoked.append(index)
            if index == fail_at:
                raise ServiceControlError(f"step {index} broke")

        return action

    return [
        PipelineStep(f"step_{index}", IdempotencyPolicy.ALWAYS_SAFE, make_action(index))
        for index in range(count)
    ]


def _context(
    installer_settings: InstallerSettings,
    collaborators: Collaborators,
    record: ConfigurationRecord | None = None,
) -> ProvisioningContext:
    return ProvisioningContext(
        settings=installer_settings,
        collaborators=collaborators,
        terminal=ScriptedTerminal(answers=[]),
        record=record,
    )


@given(data=st.data())
@settings(max_examples=60, deadline=None)
def test_failure_at_step_k_stops_the_run(data: st.DataObject) -> None:
    count = data.draw(st.integers(min_value=1, max_value=8), label="count")
    fail_at = data.draw(st.integers(min_value=0, max_value=count - 1), label="fail_at")
    invoked: list[int] = []
    context = ProvisioningContext(
        settings={},  # type: ignore[typeddict-item]
        collaborators=None,  # type: ignore[arg-type]
        terminal=ScriptedTerminal(answers=[]),
    )

    result = ProvisioningPipeline(_recording_steps(count, fail_at, invoked), context).run()

    assert result.status is PipelineStatus.FAILED
    assert result.failure is not None
    assert result.failure.step_index == fail_at
    assert result.failure.step_name == f"step_{fail_at}"
    assert isinstance(result.failure.cause, ServiceControlError)
    assert invoked == list(range(fail_at + 1))
    outcomes = [outcome for _, outcome in result.outcomes]
    assert outcomes[:fail_at] == [StepOutcome.SUCCEEDED] * fail_at
    assert outcomes[fail_at] is StepOutcome.FAILED
    assert outcomes[fail_at + 1 :] == [StepOutcome.PENDING] * (count - fail_at - 1)


def test_all_steps_succeed_in_order() -> None:
    invoked: list[int] = []
    terminal = ScriptedTerminal(answers=[])
    context = ProvisioningContext(
        settings={},  # type: ignore[typeddict-item]
        collaborators=None,  # type: ignore[arg-type]
        terminal=terminal,
    )
    pipeline = ProvisioningPipeline(_recording_steps(3, None, invoked), context)

    result = pipeline.run()

    assert result.succeeded
    assert invoked == [0, 1, 2]
    assert terminal.output == ["[1/3] step 0", "[2/3] step 1", "[3/3] step 2"]
    assert pipeline.current_index == 2


def test_finished_pipeline_cannot_run_again() -> None:
    context = ProvisioningContext(
        settings={},  # type: ignore[typeddict-item]
        collaborators=None,  # type: ignore[arg-type]
        terminal=ScriptedTerminal(answers=[]),
    )
    pipeline = ProvisioningPipeline(_recording_steps(2, 0, []), context)
    pipeline.run()

    assert pipeline.status is PipelineStatus.FAILED
    with pytest.raises(PipelineStateError):
        pipeline.run()


def test_pipeline_rejects_empty_or_duplicate_steps() -> None:
    context = ProvisioningContext(
        settings={},  # type: ignore[typeddict-item]
        collaborators=None,  # type: ignore[arg-type]
        terminal=ScriptedTerminal(answers=[]),
    )
    with pytest.raises(ValueError):
        ProvisioningPipeline([], context)
    steps = _recording_steps(1, None, []) * 2
    with pytest.raises(ValueError, match="duplicate"):
        ProvisioningPipeline(steps, context)


def test_application_steps_are_fixed_and_pending() -> None:
    steps = build_application_steps()
    assert [item.name for item in steps] == _APPLICATION_STEP_NAMES
    assert all(item.outcome is StepOutcome.PENDING for item in steps)
    assert steps[2].policy is IdempotencyPolicy.DESTRUCTIVE_REQUIRES_CONFIRMATION


def test_full_application_run_against_fakes(
    host: FakeHost,
    collaborators: Collaborators,
    installer_settings: InstallerSettings,
    make_record: Callable[..., ConfigurationRecord],
) -> None:
    record = make_record()
    pipeline = application_pipeline(
        record,
        settings=installer_settings,
        collaborators=collaborators,
        terminal=ScriptedTerminal(answers=[]),
    )

    result = pipeline.run()

    assert result.succeeded, result.failure
    assert [resource.resolution for resource in result.resources] == [Resolution.CREATED] * 4
    install_dir = Path(record.install_dir)
    assert (install_dir / "index.php").is_file()
    site = Path(installer_settings["web_server"]["sites_available_dir"]) / "nextcloud.conf"
    assert "ServerName example.com" in site.read_text(encoding="utf-8")
    assert host.args_for("certificates.issue") == [("example.com", "admin@example.com")]
    assert host.operations()[-1] == "services.restart"


def test_base_stack_needs_no_record(
    host: FakeHost,
    collaborators: Collaborators,
    installer_settings: InstallerSettings,
) -> None:
    result = base_stack_pipeline(
        settings=installer_settings,
        collaborators=collaborators,
        terminal=ScriptedTerminal(answers=[]),
    ).run()

    assert result.succeeded
    assert host.operations() == [
        "packages.install",
        "sites.enable_modules",
        "services.restart",
        "services.start",
    ]
    assert host.args_for("services.start") == [("mariadb",)]


def test_record_requiring_step_fails_cleanly_without_record(
    installer_settings: InstallerSettings, collaborators: Collaborators
) -> None:
    context = _context(installer_settings, collaborators)
    with pytest.raises(PipelineStateError):
        issue_certificate(context)


def test_certificate_step_notes_when_disabled(
    host: FakeHost,
    collaborators: Collaborators,
    installer_settings: InstallerSettings,
    make_record: Callable[..., ConfigurationRecord],
) -> None:
    disabled = merge_settings(installer_settings, {"certificates": {"enabled": False}})
    context = _context(disabled, collaborators, make_record())  # type: ignore[arg-type]

    assert issue_certificate(context) == "certificate issuance disabled in settings"
    assert host.count("certificates.issue") == 0


def test_certificate_uses_configured_contact(
    host: FakeHost,
    collaborators: Collaborators,
    installer_settings: InstallerSettings,
    make_record: Callable[..., ConfigurationRecord],
) -> None:
    configured = merge_settings(
        installer_settings, {"certificates": {"contact_email": "ops@example.com"}}
    )
    context = _context(configured, collaborators, make_record())  # type: ignore[arg-type]

    assert issue_certificate(context) is None
    assert host.args_for("certificates.issue") == [("example.com", "ops@example.com")]


def test_deploy_skips_move_when_unpacked_tree_is_the_install_dir(
    host: FakeHost,
    collaborators: Collaborators,
    installer_settings: InstallerSettings,
    make_record: Callable[..., ConfigurationRecord],
) -> None:
    staging = Path(installer_settings["application"]["staging_dir"])
    record = make_record(install_dir=str(staging / "nextcloud"))
    context = _context(installer_settings, collaborators, record)

    note = deploy_application(context)

    assert note == "unpacked tree already at install directory"
    assert (staging / "nextcloud" / "index.php").is_file()
    assert host.count("fetcher.download") == 1


def test_deploy_fails_when_archive_has_unexpected_layout(
    host: FakeHost,
    collaborators: Collaborators,
    installer_settings: InstallerSettings,
    make_record: Callable[..., ConfigurationRecord],
) -> None:
    host.extracted_dir_name = "nextcloud-server"
    context = _context(installer_settings, collaborators, make_record())

    with pytest.raises(DeploymentError, match="did not produce"):
        deploy_application(context)


def test_bootstrap_file_is_written_private_and_owned(
    host: FakeHost,
    collaborators: Collaborators,
    installer_settings: InstallerSettings,
    make_record: Callable[..., ConfigurationRecord],
) -> None:
    record = make_record()
    context = _context(installer_settings, collaborators, record)

    write_bootstrap(context)

    bootstrap = Path(record.install_dir) / "config" / "autoconfig.php"
    text = bootstrap.read_text(encoding="utf-8")
    assert "'dbpass' => 's3cret'," in text
    assert stat.S_IMODE(bootstrap.stat().st_mode) == 0o640
    assert host.args_for("ownership.apply") == [(bootstrap, "www-data", "www-data", "640")]


def test_refused_reconciliation_fails_the_pipeline_at_that_step(
    host: FakeHost,
    collaborators: Collaborators,
    installer_settings: InstallerSettings,
    make_record: Callable[..., ConfigurationRecord],
) -> None:
    record = make_record()
    Path(record.install_dir).mkdir(parents=True)
    terminal = ScriptedTerminal(answers=["no"])

    result = application_pipeline(
        record, settings=installer_settings, collaborators=collaborators, terminal=terminal
    ).run()

    assert result.failure is not None
    assert result.failure.step_name == "reconcile_resources"
    assert [resource.resolution for resource in result.resources] == [Resolution.ABORTED]
    assert host.count("fetcher.download") == 0
