"""Command-line interface router for nextcloud-installer."""

from __future__ import annotations

import argparse
import json
import os
import shutil
import sys
import uuid
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import StrEnum
from typing import Final

from nextcloud_installer.collection import assemble, fields_with_defaults
from nextcloud_installer.collection.fields import ConfigurationField, ConfigurationRecord
from nextcloud_installer.config import (
    AnswersLoadError,
    InstallerSettings,
    SettingsLoadError,
    SettingsValidationError,
    collect_preseeded,
    dump_effective_settings,
    load_settings,
    redact_settings,
)
from nextcloud_installer.main import ExitCode
from nextcloud_installer.observability import setup_logging, shutdown_logging
from nextcloud_installer.provisioning import (
    REQUIRED_COMMANDS,
    Collaborators,
    PipelineStateError,
    ProvisioningPipeline,
    RetrySupervisor,
    application_pipeline,
    base_stack_pipeline,
    system_collaborators,
)
from nextcloud_installer.ui.render import CLIRenderer, create_renderer
from nextcloud_installer.ui.terminal import ConsoleTerminal, Terminal

MODE_PROMPT: Final[str] = "Enter your choice [1-3]:"


class InstallMode(StrEnum):
    BASE_STACK = "base-stack"
    APPLICATION = "application"


_MODE_MENU: Final[tuple[tuple[str, str, InstallMode | None], ...]] = (
    ("1", "Install base stack (web server, database, PHP)", InstallMode.BASE_STACK),
    ("2", "Install Nextcloud", InstallMode.APPLICATION),
    ("3", "Exit", None),
)


@dataclass(frozen=True, slots=True)
class CLIError(RuntimeError):
    """Typed CLI failure with an explicit process exit code."""

    message: str
    exit_code: int = 1

    def __str__(self) -> str:
        return self.message


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse command router for all supported CLI workflows."""

    parser = argparse.ArgumentParser(
        prog="nc-installer",
        description=(
            "nextcloud-installer — interactive Nextcloud provisioning for a single host.\n\n"
            "Common workflows:\n"
            "  nc-installer install                  Choose a mode from the menu\n"
            "  nc-installer install --mode application --answers answers.yaml\n"
            "  nc-installer config                   Show effective installer settings\n"
            "  nc-installer doctor                   Check host prerequisites\n"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--config",
        dest="config_path",
        default=None,
        help="Path to installer TOML settings (default: ./installer.toml if present).",
    )
    common.add_argument(
        "--set",
        dest="overrides",
        action="append",
        default=[],
        metavar="SECTION.KEY=VALUE",
        help="Override one setting; may be repeated.",
    )
    common.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        default=False,
        help="Show detailed output.",
    )
    common.add_argument(
        "--no-color",
        action="store_true",
        default=False,
        help="Disable colored output (also respects NO_COLOR env var).",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    # install -------------------------------------------------------------
    install_parser = subparsers.add_parser(
        "install",
        parents=[common],
        help="Run the interactive installer",
        description=(
            "Install the base stack or the application on this host.\n\n"
            "Examples:\n"
            "  nc-installer install\n"
            "  nc-installer install --mode base-stack\n"
            "  nc-installer install --mode application --answers answers.yaml\n"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    install_parser.add_argument(
        "--mode",
        choices=[item.value for item in InstallMode],
        default=None,
        help="Skip the menu and run this mode directly.",
    )
    install_parser.add_argument(
        "--answers",
        dest="answers_path",
        default=None,
        help="YAML file of pre-seeded answers (field name -> value).",
    )
    install_parser.add_argument(
        "--log-dir",
        default=None,
        help="Base directory for per-run JSON-lines logs.",
    )
    install_parser.set_defaults(handler=_cmd_install)

    # config --------------------------------------------------------------
    config_parser = subparsers.add_parser(
        "config",
        parents=[common],
        help="Show effective installer settings (secrets redacted)",
    )
    config_parser.add_argument("--json", action="store_true", help="Emit deterministic JSON output")
    config_parser.set_defaults(handler=_cmd_config)

    # doctor --------------------------------------------------------------
    doctor_parser = subparsers.add_parser(
        "doctor",
        parents=[common],
        help="Check that the host has the tools the installer drives",
    )
    doctor_parser.add_argument("--json", action="store_true", help="Emit deterministic JSON output")
    doctor_parser.set_defaults(handler=_cmd_doctor)

    return parser


def run_cli(
    argv: Sequence[str] | None = None,
    *,
    terminal: Terminal | None = None,
    collaborators: Collaborators | None = None,
) -> int:
    """Parse argv, route to a command handler, and return process exit code.

    ``terminal`` and ``collaborators`` default to the console and the host tools.
    """

    parser = build_parser()
    namespace = parser.parse_args(list(argv) if argv is not None else None)
    handler = getattr(namespace, "handler", None)
    if not callable(handler):
        parser.print_help(sys.stderr)
        return int(ExitCode.CONFIG_ERROR)

    namespace.terminal = terminal
    namespace.collaborators = collaborators
    try:
        result = handler(namespace)
    except CLIError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return exc.exit_code
    return int(result)


# ---------------------------------------------------------------------------
# Command handlers
# ---------------------------------------------------------------------------


def _cmd_install(args: argparse.Namespace) -> int:
    settings = _load_settings(args)
    terminal: Terminal = args.terminal or ConsoleTerminal()

    mode = InstallMode(args.mode) if args.mode else select_mode(terminal)
    if mode is None:
        terminal.say("Exiting.")
        return int(ExitCode.SUCCESS)

    run_id = _new_run_id()
    try:
        setup_logging(settings["observability"], run_id=run_id, log_dir=args.log_dir)
    except OSError as exc:
        raise CLIError(
            f"unable to open the log directory ({exc}); pass --log-dir",
            exit_code=int(ExitCode.CONFIG_ERROR),
        ) from exc

    collaborators = args.collaborators or system_collaborators()
    renderer = _get_renderer(args)
    try:
        if mode is InstallMode.BASE_STACK:
            return _install_base_stack(settings, collaborators, terminal, renderer)
        return _install_application(args, settings, collaborators, terminal, renderer)
    finally:
        shutdown_logging()


def _install_base_stack(
    settings: InstallerSettings,
    collaborators: Collaborators,
    terminal: Terminal,
    renderer: CLIRenderer,
) -> int:
    def pipeline_factory(_record: ConfigurationRecord | None) -> ProvisioningPipeline:
        return base_stack_pipeline(
            settings=settings, collaborators=collaborators, terminal=terminal
        )

    supervisor = RetrySupervisor(terminal=terminal, pipeline_factory=pipeline_factory)
    exit_code = supervisor.run()
    if renderer.verbose and supervisor.results:
        renderer.pipeline_report(supervisor.results[-1])
    if exit_code is ExitCode.SUCCESS:
        terminal.say("Base stack installed. Run the installer again to install Nextcloud.")
    return int(exit_code)


def _install_application(
    args: argparse.Namespace,
    settings: InstallerSettings,
    collaborators: Collaborators,
    terminal: Terminal,
    renderer: CLIRenderer,
) -> int:
    fields = _configured_fields(settings)
    try:
        preseeded = collect_preseeded(fields, answers_path=args.answers_path)
    except AnswersLoadError as exc:
        raise CLIError(str(exc), exit_code=int(ExitCode.CONFIG_ERROR)) from exc

    record = assemble(fields, preseeded, terminal)

    def pipeline_factory(current: ConfigurationRecord | None) -> ProvisioningPipeline:
        if current is None:
            raise PipelineStateError("application pipeline needs a configuration record")
        return application_pipeline(
            current, settings=settings, collaborators=collaborators, terminal=terminal
        )

    def reassemble(previous: ConfigurationRecord) -> ConfigurationRecord:
        return assemble(fields, dict(previous), terminal)

    supervisor = RetrySupervisor(
        terminal=terminal, pipeline_factory=pipeline_factory, reassemble=reassemble
    )
    exit_code = supervisor.run(record)
    if renderer.verbose and supervisor.results:
        renderer.pipeline_report(supervisor.results[-1])
    final_record = supervisor.last_record or record
    if exit_code is ExitCode.SUCCESS:
        terminal.say(
            f"Installation complete. Visit http://{final_record.domain} "
            "to finish setting up Nextcloud."
        )
    return int(exit_code)


def _cmd_config(args: argparse.Namespace) -> int:
    settings = _load_settings(args)

    if _flag(args, "json"):
        print(dump_effective_settings(settings))
        return 0

    renderer = _get_renderer(args)
    renderer.heading("nc-installer config")
    renderer.text(json.dumps(redact_settings(settings), indent=2, sort_keys=True))
    return 0


def _cmd_doctor(args: argparse.Namespace) -> int:
    checks: list[tuple[str, bool, str]] = []

    try:
        _load_settings(args)
        checks.append(("settings", True, "loaded successfully"))
    except CLIError as exc:
        checks.append(("settings", False, str(exc)))

    geteuid = getattr(os, "geteuid", None)
    if geteuid is not None and geteuid() == 0:
        checks.append(("root", True, "running as root"))
    else:
        checks.append(("root", False, "installation must run as root"))

    for command in REQUIRED_COMMANDS:
        location = shutil.which(command)
        if location is not None:
            checks.append((f"command:{command}", True, f"found at {location}"))
        else:
            checks.append((f"command:{command}", False, "not found in PATH"))

    all_passed = all(passed for _, passed, _ in checks)
    if _flag(args, "json"):
        _emit_json(
            {
                "command": "doctor",
                "checks": [
                    {"name": name, "status": "ok" if passed else "fail", "detail": detail}
                    for name, passed, detail in checks
                ],
            }
        )
        return 0 if all_passed else 1

    renderer = _get_renderer(args)
    renderer.heading("nc-installer doctor")
    for name, passed, detail in checks:
        if passed:
            renderer.ok(f"{name}: {detail}")
        else:
            renderer.fail(f"{name}: {detail}")

    if all_passed:
        renderer.text("\nAll checks passed.")
        return 0
    renderer.text("\nSome checks failed. See details above.")
    return 1


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def select_mode(terminal: Terminal) -> InstallMode | None:
    """Operating-mode menu; ``None`` means the operator chose to exit."""

    choices = {key: mode for key, _, mode in _MODE_MENU}
    terminal.say("Select an option:")
    for key, label, _ in _MODE_MENU:
        terminal.say(f"  {key}) {label}")
    while True:
        answer = terminal.ask(MODE_PROMPT).strip()
        if answer in choices:
            return choices[answer]
        terminal.say(f"Invalid choice '{answer}'. Please enter 1, 2 or 3.")


def _configured_fields(settings: InstallerSettings) -> tuple[ConfigurationField, ...]:
    try:
        return fields_with_defaults(settings["defaults"])
    except ValueError as exc:
        raise CLIError(str(exc), exit_code=int(ExitCode.CONFIG_ERROR)) from exc


def _load_settings(args: argparse.Namespace) -> InstallerSettings:
    try:
        return load_settings(
            getattr(args, "config_path", None),
            cli_overrides=_parse_overrides(getattr(args, "overrides", None) or []),
        )
    except (SettingsLoadError, SettingsValidationError) as exc:
        raise CLIError(str(exc), exit_code=int(ExitCode.CONFIG_ERROR)) from exc


def _parse_overrides(raw_items: Sequence[str]) -> dict[str, object]:
    overrides: dict[str, object] = {}
    for raw in raw_items:
        key, separator, value = raw.partition("=")
        if not separator or not key.strip():
            raise CLIError(
                f"--set expects SECTION.KEY=VALUE, got {raw!r}",
                exit_code=int(ExitCode.CONFIG_ERROR),
            )
        overrides[key.strip()] = value
    return overrides


def _new_run_id() -> str:
    stamp = datetime.now(tz=UTC).strftime("%Y%m%dT%H%M%SZ")
    return f"{stamp}-{uuid.uuid4().hex[:8]}"


def _emit_json(payload: Mapping[str, object]) -> None:
    """Emit a JSON payload to stdout with deterministic formatting."""

    print(json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False))


def _get_renderer(args: argparse.Namespace) -> CLIRenderer:
    return create_renderer(no_color=_flag(args, "no_color"), verbose=_flag(args, "verbose"))


def _flag(args: argparse.Namespace, name: str) -> bool:
    return bool(getattr(args, name, False))


__all__ = ["CLIError", "InstallMode", "build_parser", "run_cli", "select_mode"]
