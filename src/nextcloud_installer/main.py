"""Executable CLI entrypoint for ``nextcloud_installer``."""

from __future__ import annotations

import sys
import traceback
from enum import IntEnum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterator, Sequence


class ExitCode(IntEnum):
    """Deterministic process exit-code contract."""

    SUCCESS = 0
    PROVISIONING_FAILED = 1
    CONFIG_ERROR = 2
    OPERATOR_ABORTED = 3
    INTERNAL_ERROR = 4


def cli_entrypoint(argv: Sequence[str] | None = None) -> int:
    """Entrypoint used by ``python -m nextcloud_installer`` and the ``nc-installer`` script."""

    try:
        from nextcloud_installer.ui.cli import run_cli

        return _normalize_exit_code(run_cli(argv))
    except SystemExit as exc:
        return _normalize_exit_code(exc.code)
    except BaseException as exc:  # noqa: BLE001 - CLI boundary normalization.
        exit_code = _route_exception(exc)
        _emit_failure(exc, exit_code)
        return int(exit_code)


def _normalize_exit_code(raw_code: object) -> int:
    if isinstance(raw_code, int) and raw_code in {item.value for item in ExitCode}:
        return raw_code
    if raw_code is None:
        return int(ExitCode.SUCCESS)
    if isinstance(raw_code, str) and raw_code.strip():
        _write_stderr(raw_code.strip())
    return int(ExitCode.INTERNAL_ERROR)


def _route_exception(exc: BaseException) -> ExitCode:
    from nextcloud_installer.collection.fields import ConfigurationRecordError
    from nextcloud_installer.config.answers import AnswersLoadError
    from nextcloud_installer.config.loader import SettingsLoadError
    from nextcloud_installer.config.schema import SettingsValidationError
    from nextcloud_installer.provisioning.errors import ProvisioningError
    from nextcloud_installer.ui.terminal import AbortedByOperator

    config_error_types = (
        AnswersLoadError,
        ConfigurationRecordError,
        SettingsLoadError,
        SettingsValidationError,
    )
    for item in _exception_chain(exc):
        if isinstance(item, (AbortedByOperator, KeyboardInterrupt)):
            return ExitCode.OPERATOR_ABORTED
        if isinstance(item, config_error_types):
            return ExitCode.CONFIG_ERROR
        if isinstance(item, ProvisioningError):
            return ExitCode.PROVISIONING_FAILED
        if isinstance(item, (FileNotFoundError, NotADirectoryError, PermissionError)):
            return ExitCode.CONFIG_ERROR
    return ExitCode.INTERNAL_ERROR


def _exception_chain(exc: BaseException) -> Iterator[BaseException]:
    """``exc`` then its explicit causes or implicit contexts, each at most once."""

    seen: set[int] = set()
    current: BaseException | None = exc
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        yield current
        if current.__cause__ is not None:
            current = current.__cause__
        elif current.__suppress_context__:
            current = None
        else:
            current = current.__context__


def _emit_failure(exc: BaseException, exit_code: ExitCode) -> None:
    if exit_code is ExitCode.INTERNAL_ERROR:
        traceback.print_exception(type(exc), exc, exc.__traceback__, file=sys.stderr)
        return
    if exit_code is ExitCode.OPERATOR_ABORTED:
        _write_stderr("Installation aborted by operator.")
        return
    _write_stderr(str(exc).strip() or exc.__class__.__name__)


def _write_stderr(message: str) -> None:
    sys.stderr.write(message.rstrip("\n") + "\n")


__all__ = ["ExitCode", "cli_entrypoint"]
