"""
nextcloud-installer — installer settings schema and validation.

File: src/nextcloud_installer/config/schema.py
Last updated: 2026-10-18

Purpose
- Define authoritative installer defaults and strict validation rules.

What should be included in this file
- Schema versioning and migration guidance.
- Validation rules for required fields, types, enums and value formats.
- Deterministic deep-merge and redaction helpers.

Functional requirements
- Validate settings payloads and return structured errors (field path + message).
- Reject secrets embedded in settings; operator secrets are pre-seeded through the
  environment or an answers file, never through ``installer.toml``.

Non-functional requirements
- Keep rules deterministic and easy to audit.
"""

from __future__ import annotations

import copy
import re
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Final, Literal, TypedDict

from nextcloud_installer.collection.fields import DEFAULT_FIELDS
from nextcloud_installer.collection.validators import is_absolute_path

SETTINGS_SCHEMA_VERSION: Final[int] = 1

LOG_LEVELS: Final[tuple[str, ...]] = ("DEBUG", "INFO", "WARNING", "ERROR")

_NAME_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9+._-]*$")
_OCTAL_MODE_PATTERN = re.compile(r"^[0-7]{3,4}$")
_URL_PATTERN = re.compile(r"^https?://\S+$")
_EMAIL_PATTERN = re.compile(r"^[^@\s]+@[A-Za-z0-9.-]+$")

_SENSITIVE_FIELD_NAMES: Final[frozenset[str]] = frozenset(
    item.name for item in DEFAULT_FIELDS if item.sensitive
)
_DEFAULTABLE_FIELD_NAMES: Final[tuple[str, ...]] = tuple(
    item.name for item in DEFAULT_FIELDS if not item.sensitive
)
_REDACT_KEY_TERMS: Final[tuple[str, ...]] = ("password", "pass", "secret", "token", "credential")


class MetaSettings(TypedDict):
    schema_version: int


class PackagesSettings(TypedDict):
    install: list[str]
    web_server_modules: list[str]


class ServicesSettings(TypedDict):
    web_server: str
    database: str


class ApplicationSettings(TypedDict):
    download_url: str
    staging_dir: str
    archive_name: str
    extracted_dir_name: str
    owner: str
    group: str
    mode: str
    bootstrap_path: str
    data_dir_name: str


class WebServerSettings(TypedDict):
    sites_available_dir: str
    site_name: str
    log_dir: str


class CertificateSettings(TypedDict):
    enabled: bool
    contact_email: str


class ObservabilitySettings(TypedDict):
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"]
    log_dir: str
    log_to_stdout: bool
    redact_secrets: bool


class InstallerSettings(TypedDict):
    meta: MetaSettings
    packages: PackagesSettings
    services: ServicesSettings
    application: ApplicationSettings
    web_server: WebServerSettings
    certificates: CertificateSettings
    defaults: dict[str, str]
    observability: ObservabilitySettings


DEFAULT_SETTINGS: Final[InstallerSettings] = {
    "meta": {
        "schema_version": SETTINGS_SCHEMA_VERSION,
    },
    "packages": {
        "install": [
            "apache2",
            "mariadb-server",
            "libapache2-mod-php",
            "php-gd",
            "php-mysql",
            "php-curl",
            "php-mbstring",
            "php-intl",
            "php-xml",
            "php-zip",
            "php-bz2",
            "php-imagick",
            "php-gmp",
            "wget",
            "unzip",
            "curl",
            "certbot",
            "python3-certbot-apache",
        ],
        "web_server_modules": ["rewrite", "headers", "env", "dir", "mime", "ssl"],
    },
    "services": {
        "web_server": "apache2",
        "database": "mariadb",
    },
    "application": {
        "download_url": "https://download.nextcloud.com/server/releases/latest.zip",
        "staging_dir": "/tmp",
        "archive_name": "nextcloud.zip",
        "extracted_dir_name": "nextcloud",
        "owner": "www-data",
        "group": "www-data",
        "mode": "750",
        "bootstrap_path": "config/autoconfig.php",
        "data_dir_name": "data",
    },
    "web_server": {
        "sites_available_dir": "/etc/apache2/sites-available",
        "site_name": "nextcloud",
        "log_dir": "${APACHE_LOG_DIR}",
    },
    "certificates": {
        "enabled": True,
        "contact_email": "",
    },
    "defaults": {item.name: item.default_value for item in DEFAULT_FIELDS if not item.sensitive},
    "observability": {
        "log_level": "INFO",
        "log_dir": "/var/log/nextcloud-installer",
        "log_to_stdout": False,
        "redact_secrets": True,
    },
}


@dataclass(frozen=True, slots=True)
class SettingsValidationIssue:
    """Single structured validation failure."""

    path: str
    message: str


class SettingsValidationError(ValueError):
    """Raised when strict settings validation fails."""

    def __init__(self, issues: Sequence[SettingsValidationIssue]) -> None:
        self.issues = tuple(issues)
        if not self.issues:
            rendered = "unknown validation failure"
        else:
            rendered = "\n".join(f"- {item.path}: {item.message}" for item in self.issues)
        super().__init__(f"invalid installer settings:\n{rendered}")


class _IssueCollector:
    __slots__ = ("_items",)

    def __init__(self) -> None:
        self._items: list[SettingsValidationIssue] = []

    def add(self, path: str, message: str) -> None:
        self._items.append(SettingsValidationIssue(path=path, message=message))

    def items(self) -> tuple[SettingsValidationIssue, ...]:
        return tuple(self._items)

    @property
    def has_issues(self) -> bool:
        return bool(self._items)


def default_settings() -> InstallerSettings:
    """Return a deep copy of the built-in defaults."""

    return copy.deepcopy(DEFAULT_SETTINGS)


def migration_guidance(found_version: int) -> str:
    if found_version < SETTINGS_SCHEMA_VERSION:
        return (
            f"schema version {found_version} is older than supported {SETTINGS_SCHEMA_VERSION}; "
            "upgrade installer.toml to the current schema"
        )
    if found_version > SETTINGS_SCHEMA_VERSION:
        return (
            f"schema version {found_version} is newer than supported {SETTINGS_SCHEMA_VERSION}; "
            "upgrade nextcloud-installer"
        )
    return "schema version is current"


def merge_settings(base: Mapping[str, object], overlay: Mapping[str, object]) -> dict[str, Any]:
    """Deep-merge ``overlay`` onto ``base``; lists and scalars are replaced, not merged."""

    merged: dict[str, Any] = copy.deepcopy(dict(base))
    _merge_into(merged, overlay)
    return merged


def validate_settings(settings: Mapping[str, object]) -> tuple[SettingsValidationIssue, ...]:
    """Return every issue found in ``settings``; empty when valid."""

    issues = _IssueCollector()
    if not isinstance(settings, Mapping):
        issues.add("<root>", f"expected object, got {type(settings).__name__}")
        return issues.items()

    _reject_unknown_keys(settings, set(DEFAULT_SETTINGS), "", issues)
    _require_keys(settings, set(DEFAULT_SETTINGS), "", issues)

    for section, validator in _SECTION_VALIDATORS.items():
        payload = settings.get(section)
        if payload is None:
            continue
        if not isinstance(payload, Mapping):
            issues.add(section, f"expected object, got {type(payload).__name__}")
            continue
        validator(payload, section, issues)

    return issues.items()


def assert_valid_settings(settings: Mapping[str, object]) -> InstallerSettings:
    """Validate ``settings`` and raise ``SettingsValidationError`` on failure."""

    issues = validate_settings(settings)
    if issues:
        raise SettingsValidationError(issues)
    return settings  # type: ignore[return-value]


def redact_settings(settings: Mapping[str, object]) -> dict[str, Any]:
    """Deterministic redacted copy for display and logs."""

    redacted = _redact_value(settings)
    return redacted if isinstance(redacted, dict) else {}


def _validate_meta(payload: Mapping[str, object], path: str, issues: _IssueCollector) -> None:
    _reject_unknown_keys(payload, {"schema_version"}, path, issues)
    version = payload.get("schema_version")
    if isinstance(version, bool) or not isinstance(version, int):
        issues.add(_join(path, "schema_version"), "expected integer")
    elif version != SETTINGS_SCHEMA_VERSION:
        issues.add(_join(path, "schema_version"), migration_guidance(version))


def _validate_packages(payload: Mapping[str, object], path: str, issues: _IssueCollector) -> None:
    allowed = {"install", "web_server_modules"}
    _reject_unknown_keys(payload, allowed, path, issues)
    _require_keys(payload, allowed, path, issues)
    install = _as_name_list(payload.get("install"), _join(path, "install"), issues)
    if install is not None and not install:
        issues.add(_join(path, "install"), "must list at least one package")
    _as_name_list(payload.get("web_server_modules"), _join(path, "web_server_modules"), issues)


def _validate_services(payload: Mapping[str, object], path: str, issues: _IssueCollector) -> None:
    allowed = {"web_server", "database"}
    _reject_unknown_keys(payload, allowed, path, issues)
    _require_keys(payload, allowed, path, issues)
    for key in sorted(allowed):
        _as_name(payload.get(key), _join(path, key), issues)


def _validate_application(
    payload: Mapping[str, object], path: str, issues: _IssueCollector
) -> None:
    allowed = set(DEFAULT_SETTINGS["application"])
    _reject_unknown_keys(payload, allowed, path, issues)
    _require_keys(payload, allowed, path, issues)

    url = _as_str(payload.get("download_url"), _join(path, "download_url"), issues)
    if url is not None and not _URL_PATTERN.fullmatch(url):
        issues.add(_join(path, "download_url"), "must be an http(s) URL")
    _as_absolute_path(payload.get("staging_dir"), _join(path, "staging_dir"), issues)
    for key in ("archive_name", "extracted_dir_name", "owner", "group", "data_dir_name"):
        _as_name(payload.get(key), _join(path, key), issues)
    mode = _as_str(payload.get("mode"), _join(path, "mode"), issues)
    if mode is not None and not _OCTAL_MODE_PATTERN.fullmatch(mode):
        issues.add(_join(path, "mode"), "must be an octal permission string such as 750")
    bootstrap = _as_str(payload.get("bootstrap_path"), _join(path, "bootstrap_path"), issues)
    if bootstrap is not None and (bootstrap.startswith("/") or ".." in bootstrap.split("/")):
        issues.add(_join(path, "bootstrap_path"), "must be relative to the install directory")


def _validate_web_server(
    payload: Mapping[str, object], path: str, issues: _IssueCollector
) -> None:
    allowed = {"sites_available_dir", "site_name", "log_dir"}
    _reject_unknown_keys(payload, allowed, path, issues)
    _require_keys(payload, allowed, path, issues)
    _as_absolute_path(
        payload.get("sites_available_dir"), _join(path, "sites_available_dir"), issues
    )
    _as_name(payload.get("site_name"), _join(path, "site_name"), issues)
    _as_str(payload.get("log_dir"), _join(path, "log_dir"), issues)


def _validate_certificates(
    payload: Mapping[str, object], path: str, issues: _IssueCollector
) -> None:
    allowed = {"enabled", "contact_email"}
    _reject_unknown_keys(payload, allowed, path, issues)
    _require_keys(payload, allowed, path, issues)
    _as_bool(payload.get("enabled"), _join(path, "enabled"), issues)
    email = payload.get("contact_email")
    if not isinstance(email, str):
        issues.add(_join(path, "contact_email"), f"expected string, got {type(email).__name__}")
    elif email.strip() and not _EMAIL_PATTERN.fullmatch(email.strip()):
        issues.add(_join(path, "contact_email"), "must be an email address or empty")


def _validate_defaults(payload: Mapping[str, object], path: str, issues: _IssueCollector) -> None:
    for key in sorted(payload):
        key_path = _join(path, key)
        if key in _SENSITIVE_FIELD_NAMES:
            issues.add(
                key_path,
                "embedded secret values are forbidden; pre-seed secrets through the "
                "environment or an answers file",
            )
            continue
        if key not in _DEFAULTABLE_FIELD_NAMES:
            issues.add(key_path, "unknown field")
            continue
        value = _as_str(payload[key], key_path, issues)
        if value is None:
            continue
        field = next(item for item in DEFAULT_FIELDS if item.name == key)
        if field.validator is not None and not field.validator(value):
            issues.add(key_path, field.validator.hint)


def _validate_observability(
    payload: Mapping[str, object], path: str, issues: _IssueCollector
) -> None:
    allowed = {"log_level", "log_dir", "log_to_stdout", "redact_secrets"}
    _reject_unknown_keys(payload, allowed, path, issues)
    _require_keys(payload, allowed, path, issues)
    level = _as_str(payload.get("log_level"), _join(path, "log_level"), issues)
    if level is not None and level.upper() not in LOG_LEVELS:
        issues.add(
            _join(path, "log_level"),
            f"invalid value {level!r}; expected one of: {', '.join(LOG_LEVELS)}",
        )
    _as_absolute_path(payload.get("log_dir"), _join(path, "log_dir"), issues)
    _as_bool(payload.get("log_to_stdout"), _join(path, "log_to_stdout"), issues)
    _as_bool(payload.get("redact_secrets"), _join(path, "redact_secrets"), issues)


_SECTION_VALIDATORS: Final[
    dict[str, Callable[[Mapping[str, object], str, _IssueCollector], None]]
] = {
    "meta": _validate_meta,
    "packages": _validate_packages,
    "services": _validate_services,
    "application": _validate_application,
    "web_server": _validate_web_server,
    "certificates": _validate_certificates,
    "defaults": _validate_defaults,
    "observability": _validate_observability,
}


def _as_str(value: object, path: str, issues: _IssueCollector) -> str | None:
    if not isinstance(value, str):
        issues.add(path, f"expected string, got {type(value).__name__}")
        return None
    parsed = value.strip()
    if not parsed:
        issues.add(path, "must not be empty")
        return None
    if "\x00" in parsed:
        issues.add(path, "must not contain NUL bytes")
        return None
    return parsed


def _as_name(value: object, path: str, issues: _IssueCollector) -> str | None:
    parsed = _as_str(value, path, issues)
    if parsed is None:
        return None
    if not _NAME_PATTERN.fullmatch(parsed):
        issues.add(path, "must be a plain name (letters, digits, '+', '.', '_', '-')")
        return None
    return parsed


def _as_name_list(value: object, path: str, issues: _IssueCollector) -> list[str] | None:
    if not isinstance(value, list):
        issues.add(path, f"expected list, got {type(value).__name__}")
        return None
    names: list[str] = []
    for index, item in enumerate(value):
        parsed = _as_name(item, f"{path}[{index}]", issues)
        if parsed is not None:
            names.append(parsed)
    return names


def _as_absolute_path(value: object, path: str, issues: _IssueCollector) -> str | None:
    parsed = _as_str(value, path, issues)
    if parsed is None:
        return None
    if not is_absolute_path(parsed):
        issues.add(path, "must be an absolute path")
        return None
    return parsed


def _as_bool(value: object, path: str, issues: _IssueCollector) -> bool | None:
    if isinstance(value, bool):
        return value
    issues.add(path, f"expected boolean, got {type(value).__name__}")
    return None


def _reject_unknown_keys(
    payload: Mapping[str, object],
    allowed: set[str],
    path: str,
    issues: _IssueCollector,
) -> None:
    for key in sorted(payload):
        if key not in allowed:
            issues.add(_join(path, key), "unknown field")


def _require_keys(
    payload: Mapping[str, object],
    required: set[str],
    path: str,
    issues: _IssueCollector,
) -> None:
    for key in sorted(required):
        if key not in payload:
            issues.add(_join(path, key), "missing required field")


def _join(path: str, key: str) -> str:
    if not path:
        return key
    return f"{path}.{key}"


def _merge_into(target: dict[str, Any], overlay: Mapping[str, object]) -> None:
    for key in sorted(overlay):
        value = overlay[key]
        existing = target.get(key)
        if isinstance(value, Mapping) and isinstance(existing, dict):
            _merge_into(existing, value)
        else:
            target[key] = copy.deepcopy(value)


def _redact_value(value: object) -> object:
    if isinstance(value, Mapping):
        return {
            key: "<redacted>" if _key_is_sensitive(key) else _redact_value(value[key])
            for key in sorted(value)
        }
    if isinstance(value, (list, tuple)):
        return [_redact_value(item) for item in value]
    return value


def _key_is_sensitive(key: str) -> bool:
    lowered = key.lower()
    if lowered in _SENSITIVE_FIELD_NAMES:
        return True
    return any(term in lowered.split("_") for term in _REDACT_KEY_TERMS)


__all__ = [
    "DEFAULT_SETTINGS",
    "LOG_LEVELS",
    "SETTINGS_SCHEMA_VERSION",
    "InstallerSettings",
    "SettingsValidationError",
    "SettingsValidationIssue",
    "assert_valid_settings",
    "default_settings",
    "merge_settings",
    "migration_guidance",
    "redact_settings",
    "validate_settings",
]
