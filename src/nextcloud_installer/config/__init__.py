"""
nextcloud-installer config package public API.

File: src/nextcloud_installer/config/__init__.py
Last updated: 2026-10-18

Purpose
- Export installer settings loading/validation and answers-file entrypoints.

Functional requirements
- Support loading from ``installer.toml`` + ``NCI_`` env overrides + CLI overrides.
- Fail fast with clear structured validation/load errors.
"""

from nextcloud_installer.config.answers import (
    AnswersLoadError,
    collect_preseeded,
    load_answers_file,
    preseeded_from_environ,
)
from nextcloud_installer.config.loader import (
    DEFAULT_SETTINGS_FILE,
    ENV_PREFIX,
    SettingsLoadError,
    dump_effective_settings,
    load_settings,
)
from nextcloud_installer.config.schema import (
    DEFAULT_SETTINGS,
    SETTINGS_SCHEMA_VERSION,
    InstallerSettings,
    SettingsValidationError,
    SettingsValidationIssue,
    assert_valid_settings,
    default_settings,
    merge_settings,
    redact_settings,
    validate_settings,
)

__all__ = [
    "DEFAULT_SETTINGS",
    "DEFAULT_SETTINGS_FILE",
    "ENV_PREFIX",
    "SETTINGS_SCHEMA_VERSION",
    "AnswersLoadError",
    "InstallerSettings",
    "SettingsLoadError",
    "SettingsValidationError",
    "SettingsValidationIssue",
    "assert_valid_settings",
    "collect_preseeded",
    "default_settings",
    "dump_effective_settings",
    "load_answers_file",
    "load_settings",
    "merge_settings",
    "preseeded_from_environ",
    "redact_settings",
    "validate_settings",
]
