"""Build a complete ``ConfigurationRecord`` from the ordered field list."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import TYPE_CHECKING

import structlog

from nextcloud_installer.collection.collector import FieldCollector
from nextcloud_installer.collection.fields import (
    ConfigurationField,
    ConfigurationRecord,
    check_field_list,
)

if TYPE_CHECKING:
    from nextcloud_installer.ui.terminal import Terminal

SUMMARY_HEADING = "Configuration summary:"

_log = structlog.get_logger(__name__)


def assemble(
    fields: Sequence[ConfigurationField],
    preseeded: Mapping[str, str] | None,
    terminal: Terminal,
) -> ConfigurationRecord:
    """Collect every field in declared order and print the redacted summary.

    Raises ``AbortedByOperator`` (from the terminal) when input ends mid-way.
    """

    declared = check_field_list(fields)
    seeds = dict(preseeded or {})
    collector = FieldCollector(terminal)
    values: dict[str, str] = {}
    for item in declared:
        values[item.name] = collector.collect(item, seeds.get(item.name))

    record = ConfigurationRecord(declared, values)
    for line in render_summary(record):
        terminal.say(line)
    _log.info(
        "configuration.assembled",
        fields=[item.name for item in declared],
        preseeded=sorted(name for name in seeds if name in values),
    )
    return record


def render_summary(record: ConfigurationRecord) -> list[str]:
    """Summary lines; sensitive fields show the placeholder, others print literally."""

    redacted = record.redacted()
    width = max((len(name) for name in redacted), default=0)
    lines = [SUMMARY_HEADING]
    lines.extend(f"  {name.ljust(width)} : {value}" for name, value in redacted.items())
    return lines


__all__ = ["SUMMARY_HEADING", "assemble", "render_summary"]
