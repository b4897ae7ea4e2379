"""
nextcloud-installer — installer settings loader.

File: src/nextcloud_installer/config/loader.py
Last updated: 2026-10-18

Purpose
- Produce the effective installer settings for one run.

Sources, later ones win
- Built-in defaults.
- ``installer.toml`` in the working directory, or the file named by ``--config``.
- ``NCI_<SECTION>_<KEY>`` environment variables.
- ``--set section.key=value`` options.

Environment and ``--set`` values are strings; each is coerced to the type of the
setting it replaces (bool, int, list of names, or string).
"""

from __future__ import annotations

import json
import os
import tomllib
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Final

from nextcloud_installer.config.schema import (
    InstallerSettings,
    assert_valid_settings,
    default_settings,
    merge_settings,
    redact_settings,
)

DEFAULT_SETTINGS_FILE: Final[str] = "installer.toml"
ENV_PREFIX: Final[str] = "NCI_"

_TRUE_WORDS: Final[frozenset[str]] = frozenset({"1", "true", "t", "yes", "y", "on"})
_FALSE_WORDS: Final[frozenset[str]] = frozenset({"0", "false", "f", "no", "n", "off"})


class SettingsLoadError(ValueError):
    """Raised when settings cannot be loaded or overrides cannot be coerced."""


@dataclass(frozen=True, slots=True)
class SettingKey:
    """One ``section.key`` leaf of the installer settings."""

    section: str
    key: str

    @classmethod
    def parse(cls, dotted: str) -> SettingKey:
        section, _, key = dotted.strip().partition(".")
        if not section or not key or "." in key:
            raise SettingsLoadError(f"override {dotted!r} must be of the form section.key")
        return cls(section, key)

    @property
    def dotted(self) -> str:
        return f"{self.section}.{self.key}"

    @property
    def env_name(self) -> str:
        return f"{ENV_PREFIX}{self.section.upper()}_{self.key.upper()}"


def load_settings(
    settings_path: str | Path | None = None,
    *,
    cli_overrides: Mapping[str, object] | None = None,
    environ: Mapping[str, str] | None = None,
) -> InstallerSettings:
    """Load effective settings with precedence: CLI > env > file > defaults."""

    if settings_path is None:
        path = Path.cwd() / DEFAULT_SETTINGS_FILE
    else:
        path = Path(settings_path).expanduser()
    env_map = os.environ if environ is None else environ

    file_payload = _read_toml(path, required=settings_path is not None)
    settings = merge_settings(default_settings(), file_payload)
    # File errors are reported before any override can mask them.
    assert_valid_settings(settings)

    settings = merge_settings(settings, _as_sections(_env_overrides(settings, env_map)))
    settings = merge_settings(settings, _as_sections(_cli_overrides(settings, cli_overrides or {})))
    return assert_valid_settings(settings)


def dump_effective_settings(settings: Mapping[str, object]) -> str:
    """Compact, key-sorted JSON of the settings with secrets redacted."""

    return json.dumps(
        redact_settings(settings), sort_keys=True, separators=(",", ":"), ensure_ascii=False
    )


def _read_toml(path: Path, *, required: bool) -> dict[str, Any]:
    try:
        raw = path.read_bytes()
    except FileNotFoundError as exc:
        if required:
            raise SettingsLoadError(f"settings file not found: {path}") from exc
        return {}
    except OSError as exc:
        raise SettingsLoadError(f"unable to read settings file {path}: {exc}") from exc

    try:
        return tomllib.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, tomllib.TOMLDecodeError) as exc:
        raise SettingsLoadError(f"invalid TOML in {path}: {exc}") from exc


def _setting_types(settings: Mapping[str, object]) -> dict[SettingKey, type]:
    """Type of every overridable leaf; ``meta`` is never overridden."""

    types: dict[SettingKey, type] = {}
    for section, body in settings.items():
        if section == "meta" or not isinstance(body, Mapping):
            continue
        for key, value in body.items():
            if isinstance(value, (bool, int, str, list)):
                types[SettingKey(section, key)] = type(value)
    return types


def _env_overrides(
    settings: Mapping[str, object], environ: Mapping[str, str]
) -> dict[SettingKey, object]:
    found: dict[SettingKey, object] = {}
    for setting, kind in _setting_types(settings).items():
        raw = environ.get(setting.env_name)
        if raw is not None:
            found[setting] = _coerce(raw, kind, source=setting.env_name, setting=setting)
    return found


def _cli_overrides(
    settings: Mapping[str, object], overrides: Mapping[str, object]
) -> dict[SettingKey, object]:
    types = _setting_types(settings)
    found: dict[SettingKey, object] = {}
    for dotted, value in overrides.items():
        setting = SettingKey.parse(dotted)
        kind = types.get(setting)
        if isinstance(value, str) and kind is not None:
            value = _coerce(value, kind, source=f"--set {dotted}", setting=setting)
        found[setting] = value
    return found


def _coerce(raw: str, kind: type, *, source: str, setting: SettingKey) -> object:
    text = raw.strip()
    if kind is bool:
        lowered = text.lower()
        if lowered in _TRUE_WORDS:
            return True
        if lowered in _FALSE_WORDS:
            return False
        raise SettingsLoadError(
            f"{source} -> {setting.dotted} must be a boolean (true/false/1/0/yes/no/on/off)"
        )
    if kind is int:
        try:
            return int(text)
        except ValueError as exc:
            raise SettingsLoadError(f"{source} -> {setting.dotted} must be an integer") from exc
    if kind is list:
        # Package and module lists: commas or whitespace separate names.
        return text.replace(",", " ").split()
    return text


def _as_sections(overrides: Mapping[SettingKey, object]) -> dict[str, dict[str, object]]:
    sections: dict[str, dict[str, object]] = {}
    for setting, value in overrides.items():
        sections.setdefault(setting.section, {})[setting.key] = value
    return sections


__all__ = [
    "DEFAULT_SETTINGS_FILE",
    "ENV_PREFIX",
    "SettingKey",
    "SettingsLoadError",
    "dump_effective_settings",
    "load_settings",
]
