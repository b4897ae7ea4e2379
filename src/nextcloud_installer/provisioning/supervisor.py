"""Failure/retry supervisor around the provisioning pipeline.

The supervisor is the one place a failed step is caught. On failure the operator
may retry the whole pipeline from its first step with the same configuration
(optionally editing fields through the pre-seeded confirmation path) or stop.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import TYPE_CHECKING, Final

import structlog

from nextcloud_installer.collection.fields import ConfigurationRecord
from nextcloud_installer.main import ExitCode
from nextcloud_installer.observability.logging import correlation_scope
from nextcloud_installer.provisioning.errors import (
    OperatorDeclinedAlternative,
    PipelineStateError,
)
from nextcloud_installer.provisioning.pipeline import PipelineResult, ProvisioningPipeline
from nextcloud_installer.ui.terminal import AbortedByOperator, ask_yes_no

if TYPE_CHECKING:
    from nextcloud_installer.ui.terminal import Terminal

RETRY_QUESTION: Final[str] = (
    "Installation failed. Would you like to retry with the same configuration?"
)
MANUAL_RERUN_MESSAGE: Final[str] = (
    "Installation aborted. Fix the problem above and re-run the installer manually."
)

PipelineFactory = Callable[[ConfigurationRecord | None], ProvisioningPipeline]
Reassemble = Callable[[ConfigurationRecord], ConfigurationRecord]

_log = structlog.get_logger(__name__)


class RetrySupervisor:
    """Runs fresh pipelines until one succeeds or the operator declines a retry.

    ``reassemble`` receives the previous record and returns the record for the next
    attempt; the usual implementation re-runs assembly with every previous value
    pre-seeded so the operator only edits what must change. Pipelines that collect
    no configuration (the base stack) run with ``record=None`` and no reassembly.
    """

    def __init__(
        self,
        *,
        terminal: Terminal,
        pipeline_factory: PipelineFactory,
        reassemble: Reassemble | None = None,
    ) -> None:
        self._terminal = terminal
        self._pipeline_factory = pipeline_factory
        self._reassemble = reassemble
        self._results: list[PipelineResult] = []
        self._record: ConfigurationRecord | None = None

    @property
    def results(self) -> tuple[PipelineResult, ...]:
        """One result per attempt, oldest first."""

        return tuple(self._results)

    @property
    def last_record(self) -> ConfigurationRecord | None:
        """Record used by the most recent attempt."""

        return self._record

    def run(self, record: ConfigurationRecord | None = None) -> ExitCode:
        current = record
        attempt = 1
        while True:
            self._record = current
            with correlation_scope(attempt=attempt):
                result = self._pipeline_factory(current).run()
            self._results.append(result)
            if result.succeeded:
                _log.info("supervisor.succeeded", attempt=attempt)
                return ExitCode.SUCCESS

            failure = result.failure
            if failure is None:
                raise PipelineStateError("failed pipeline reported no failure")
            if isinstance(failure.cause, AbortedByOperator):
                raise failure.cause
            self._report(failure.step_name, failure.cause)
            _log.warning(
                "supervisor.attempt_failed",
                attempt=attempt,
                step=failure.step_name,
                error_type=type(failure.cause).__name__,
            )

            if not ask_yes_no(self._terminal, RETRY_QUESTION):
                self._terminal.say(MANUAL_RERUN_MESSAGE)
                _log.info("supervisor.gave_up", attempt=attempt)
                return ExitCode.PROVISIONING_FAILED

            attempt += 1
            _log.info("supervisor.retry", attempt=attempt)
            if self._reassemble is not None and current is not None:
                current = self._reassemble(current)

    def _report(self, step_name: str, cause: Exception) -> None:
        if isinstance(cause, OperatorDeclinedAlternative):
            resource = cause.resource
            self._terminal.say(
                f"Stopped at {step_name}: {resource.kind} '{resource.identity_key}' "
                f"was not resolved. {cause}"
            )
            return
        self._terminal.say(f"Error during {step_name}: {cause}")


__all__ = [
    "MANUAL_RERUN_MESSAGE",
    "RETRY_QUESTION",
    "PipelineFactory",
    "Reassemble",
    "RetrySupervisor",
]
