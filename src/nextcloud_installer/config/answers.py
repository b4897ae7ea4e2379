"""Pre-seeded operator answers from an answers file and the process environment.

Pre-seeded values are offered to the operator for confirmation instead of being
collected from nothing. Environment variables win over the answers file.
"""

from __future__ import annotations

import os
from collections.abc import Mapping, Sequence
from pathlib import Path

import yaml

from nextcloud_installer.collection.fields import DEFAULT_FIELDS, ConfigurationField


class AnswersLoadError(ValueError):
    """Raised when an answers file is missing, malformed, or names unknown fields."""


def load_answers_file(
    path: str | Path,
    fields: Sequence[ConfigurationField] = DEFAULT_FIELDS,
) -> dict[str, str]:
    """Read a flat YAML mapping of field name to value.

    Null and blank answers count as unset, so the field is collected fresh.
    """

    answers_path = Path(path).expanduser()
    try:
        raw_text = answers_path.read_text(encoding="utf-8")
    except FileNotFoundError as exc:
        raise AnswersLoadError(f"answers file not found: {answers_path}") from exc
    except OSError as exc:
        raise AnswersLoadError(f"unable to read answers file {answers_path}: {exc}") from exc

    try:
        payload = yaml.safe_load(raw_text)
    except yaml.YAMLError as exc:
        raise AnswersLoadError(f"invalid YAML in {answers_path}: {exc}") from exc

    if payload is None:
        return {}
    if not isinstance(payload, Mapping):
        raise AnswersLoadError(f"answers file root must be a mapping: {answers_path}")

    known = {item.name for item in fields}
    answers: dict[str, str] = {}
    for key in sorted(payload, key=str):
        if key not in known:
            raise AnswersLoadError(f"unknown field {key!r} in {answers_path}")
        value = payload[key]
        if value is None or (isinstance(value, str) and not value.strip()):
            continue
        if isinstance(value, bool) or not isinstance(value, (str, int, float)):
            raise AnswersLoadError(f"answer for {key!r} must be a scalar string")
        answers[key] = str(value)
    return answers


def preseeded_from_environ(
    fields: Sequence[ConfigurationField] = DEFAULT_FIELDS,
    environ: Mapping[str, str] | None = None,
) -> dict[str, str]:
    """Values for fields whose ``env_var`` is set to a non-empty string."""

    env_map = os.environ if environ is None else environ
    seeded: dict[str, str] = {}
    for item in fields:
        if item.env_var is None:
            continue
        value = env_map.get(item.env_var)
        if value:
            seeded[item.name] = value
    return seeded


def collect_preseeded(
    fields: Sequence[ConfigurationField] = DEFAULT_FIELDS,
    *,
    answers_path: str | Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> dict[str, str]:
    seeded: dict[str, str] = {}
    if answers_path is not None:
        seeded.update(load_answers_file(answers_path, fields))
    seeded.update(preseeded_from_environ(fields, environ))
    return seeded


__all__ = [
    "AnswersLoadError",
    "collect_preseeded",
    "load_answers_file",
    "preseeded_from_environ",
]
