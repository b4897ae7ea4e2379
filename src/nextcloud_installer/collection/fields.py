"""
nextcloud-installer — configuration fields and the confirmed record

File: src/nextcloud_installer/collection/fields.py
Last updated: 2026-10-18

Purpose
- Declare the ordered list of operator-supplied fields.
- Hold the confirmed answers in an immutable ``ConfigurationRecord``.

Ordering contract
- The field list mirrors the provisioning dependency order: the database password
  doubles as the root credential, so it is confirmed before any step that probes
  the database with it.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping, Sequence
from dataclasses import dataclass
from types import MappingProxyType
from typing import Final

from nextcloud_installer.collection.validators import (
    ABSOLUTE_PATH,
    HOSTNAME,
    IDENTIFIER,
    SECRET,
    Validator,
)

INSTALL_DIR: Final[str] = "install_dir"
DB_NAME: Final[str] = "db_name"
DB_USER: Final[str] = "db_user"
DB_PASS: Final[str] = "db_pass"
ADMIN_USER: Final[str] = "admin_user"
ADMIN_PASS: Final[str] = "admin_pass"
DOMAIN: Final[str] = "domain"

REDACTED_PLACEHOLDER: Final[str] = "[hidden]"


class ConfigurationRecordError(ValueError):
    """Raised when a record would violate the one-value-per-field invariant."""


@dataclass(frozen=True, slots=True)
class ConfigurationField:
    """A named slot in the configuration record."""

    name: str
    prompt_text: str
    default_value: str
    validator: Validator | None = None
    sensitive: bool = False
    env_var: str | None = None

    def __post_init__(self) -> None:
        if not self.name or not self.name.strip():
            raise ValueError("ConfigurationField.name must not be empty")
        if not self.prompt_text.strip():
            raise ValueError(f"ConfigurationField {self.name!r} requires prompt text")

    def display(self, value: str) -> str:
        """Value as it may be shown on the terminal."""

        return REDACTED_PLACEHOLDER if self.sensitive else value

    def with_default(self, default_value: str) -> ConfigurationField:
        return ConfigurationField(
            name=self.name,
            prompt_text=self.prompt_text,
            default_value=default_value,
            validator=self.validator,
            sensitive=self.sensitive,
            env_var=self.env_var,
        )


DEFAULT_FIELDS: Final[tuple[ConfigurationField, ...]] = (
    ConfigurationField(
        name=INSTALL_DIR,
        prompt_text="Enter the directory where Nextcloud will be installed",
        default_value="/var/www/nextcloud",
        validator=ABSOLUTE_PATH,
        env_var="NEXTCLOUD_DIR",
    ),
    ConfigurationField(
        name=DB_NAME,
        prompt_text="Enter the database name for Nextcloud",
        default_value="nextcloud_db",
        validator=IDENTIFIER,
        env_var="DB_NAME",
    ),
    ConfigurationField(
        name=DB_USER,
        prompt_text="Enter the database user for Nextcloud",
        default_value="nextcloud_user",
        validator=IDENTIFIER,
        env_var="DB_USER",
    ),
    ConfigurationField(
        name=DB_PASS,
        prompt_text="Enter the database password for Nextcloud",
        default_value="secure_password",
        validator=SECRET,
        sensitive=True,
        env_var="DB_PASS",
    ),
    ConfigurationField(
        name=ADMIN_USER,
        prompt_text="Enter the admin username for Nextcloud",
        default_value="admin",
        validator=IDENTIFIER,
        env_var="ADMIN_USER",
    ),
    ConfigurationField(
        name=ADMIN_PASS,
        prompt_text="Enter the admin password for Nextcloud",
        default_value="admin_password",
        validator=SECRET,
        sensitive=True,
        env_var="ADMIN_PASS",
    ),
    ConfigurationField(
        name=DOMAIN,
        prompt_text="Enter the domain for Nextcloud",
        default_value="example.com",
        validator=HOSTNAME,
        env_var="DOMAIN",
    ),
)


def check_field_list(fields: Sequence[ConfigurationField]) -> tuple[ConfigurationField, ...]:
    """Return ``fields`` as a tuple after enforcing unique names."""

    seen: set[str] = set()
    for item in fields:
        if item.name in seen:
            raise ValueError(f"duplicate configuration field {item.name!r}")
        seen.add(item.name)
    return tuple(fields)


def fields_with_defaults(
    defaults: Mapping[str, str],
    fields: Sequence[ConfigurationField] = DEFAULT_FIELDS,
) -> tuple[ConfigurationField, ...]:
    """Apply per-field default overrides (from installer settings) to ``fields``."""

    known = {item.name for item in fields}
    unknown = sorted(set(defaults) - known)
    if unknown:
        raise ValueError(f"defaults given for unknown fields: {', '.join(unknown)}")
    return check_field_list(
        [
            item.with_default(defaults[item.name]) if item.name in defaults else item
            for item in fields
        ]
    )


class ConfigurationRecord(Mapping[str, str]):
    """Immutable mapping of field name to confirmed value.

    Built once by configuration assembly and shared read-only with every
    provisioning step.
    """

    __slots__ = ("_fields", "_values")

    def __init__(
        self,
        fields: Sequence[ConfigurationField],
        values: Mapping[str, str],
    ) -> None:
        declared = check_field_list(fields)
        missing = [item.name for item in declared if item.name not in values]
        if missing:
            raise ConfigurationRecordError(f"missing values for: {', '.join(missing)}")
        names = {item.name for item in declared}
        extra = sorted(set(values) - names)
        if extra:
            raise ConfigurationRecordError(
                f"values given for undeclared fields: {', '.join(extra)}"
            )
        for item in declared:
            value = values[item.name]
            if not isinstance(value, str):
                raise ConfigurationRecordError(f"{item.name} must be a string")
            if item.sensitive and value == "":
                raise ConfigurationRecordError(f"{item.name} must not be empty")
        self._fields = declared
        self._values = MappingProxyType({item.name: values[item.name] for item in declared})

    def __getitem__(self, key: str) -> str:
        return self._values[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self) -> str:
        shown = ", ".join(f"{name}={value!r}" for name, value in self.redacted().items())
        return f"ConfigurationRecord({shown})"

    @property
    def fields(self) -> tuple[ConfigurationField, ...]:
        return self._fields

    def redacted(self) -> dict[str, str]:
        """Values with sensitive fields replaced by the placeholder."""

        return {item.name: item.display(self._values[item.name]) for item in self._fields}

    @property
    def install_dir(self) -> str:
        return self._values[INSTALL_DIR]

    @property
    def db_name(self) -> str:
        return self._values[DB_NAME]

    @property
    def db_user(self) -> str:
        return self._values[DB_USER]

    @property
    def db_pass(self) -> str:
        return self._values[DB_PASS]

    @property
    def admin_user(self) -> str:
        return self._values[ADMIN_USER]

    @property
    def admin_pass(self) -> str:
        return self._values[ADMIN_PASS]

    @property
    def domain(self) -> str:
        return self._values[DOMAIN]


__all__ = [
    "ADMIN_PASS",
    "ADMIN_USER",
    "DB_NAME",
    "DB_PASS",
    "DB_USER",
    "DEFAULT_FIELDS",
    "DOMAIN",
    "INSTALL_DIR",
    "REDACTED_PLACEHOLDER",
    "ConfigurationField",
    "ConfigurationRecord",
    "ConfigurationRecordError",
    "check_field_list",
    "fields_with_defaults",
]
