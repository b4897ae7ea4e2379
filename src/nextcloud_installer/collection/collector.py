"""
nextcloud-installer — interactive field collector

File: src/nextcloud_installer/collection/collector.py
Last updated: 2026-10-18

Purpose
- Obtain one confirmed value per configuration field from the operator.

Behaviour
- Fresh field: show prompt and default, read a line, substitute the default for an
  empty line, validate, and loop until the value is accepted. There is no cancel
  path inside the loop; only end-of-input aborts the session.
- Pre-seeded field: show the current value and offer keep (empty line) or replace.
  A kept value is trusted and not re-validated, so a retried run never rejects a
  value it already accepted. A replacement goes through the same validation loop;
  an empty line after a rejected replacement keeps the pre-seeded value.
- Sensitive values are never echoed back; the redaction placeholder is shown instead.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from nextcloud_installer.collection.fields import ConfigurationField
    from nextcloud_installer.ui.terminal import Terminal


class ValidationRejected(ValueError):
    """A candidate failed its field validator. Never escapes the collector."""

    def __init__(self, field: ConfigurationField, candidate: str) -> None:
        self.field_name = field.name
        shown = field.display(candidate)
        hint = f" {field.validator.hint}" if field.validator is not None else ""
        super().__init__(f"Invalid value '{shown}' for {field.name}.{hint}")


class FieldCollector:
    """Prompt/validate loop for a single field at a time."""

    def __init__(self, terminal: Terminal) -> None:
        self._terminal = terminal

    def collect(self, field: ConfigurationField, preseeded: str | None = None) -> str:
        if not preseeded:
            return self._collect_fresh(field)
        return self._confirm_preseeded(field, preseeded)

    def _collect_fresh(self, field: ConfigurationField) -> str:
        prompt = f"{field.prompt_text} (default: {field.display(field.default_value)}):"
        while True:
            line = self._terminal.ask(prompt).strip()
            candidate = line or field.default_value
            try:
                return self._accept(field, candidate)
            except ValidationRejected as rejected:
                self._terminal.say(str(rejected))

    def _confirm_preseeded(self, field: ConfigurationField, preseeded: str) -> str:
        prompt = (
            f"{field.name} is already set to '{field.display(preseeded)}'. "
            "Press Enter to keep it or type a new value:"
        )
        while True:
            line = self._terminal.ask(prompt).strip()
            if not line:
                return preseeded
            try:
                return self._accept(field, line)
            except ValidationRejected as rejected:
                self._terminal.say(str(rejected))

    @staticmethod
    def _accept(field: ConfigurationField, candidate: str) -> str:
        if field.validator is not None and not field.validator(candidate):
            raise ValidationRejected(field, candidate)
        return candidate


__all__ = ["FieldCollector", "ValidationRejected"]
