"""Operator input: validators, field declarations, collection and assembly."""

from nextcloud_installer.collection.assembly import SUMMARY_HEADING, assemble, render_summary
from nextcloud_installer.collection.collector import FieldCollector, ValidationRejected
from nextcloud_installer.collection.fields import (
    DEFAULT_FIELDS,
    REDACTED_PLACEHOLDER,
    ConfigurationField,
    ConfigurationRecord,
    ConfigurationRecordError,
    fields_with_defaults,
)
from nextcloud_installer.collection.validators import (
    ABSOLUTE_PATH,
    HOSTNAME,
    IDENTIFIER,
    SECRET,
    Validator,
)

__all__ = [
    "ABSOLUTE_PATH",
    "DEFAULT_FIELDS",
    "HOSTNAME",
    "IDENTIFIER",
    "REDACTED_PLACEHOLDER",
    "SECRET",
    "SUMMARY_HEADING",
    "ConfigurationField",
    "ConfigurationRecord",
    "ConfigurationRecordError",
    "FieldCollector",
    "ValidationRejected",
    "Validator",
    "assemble",
    "fields_with_defaults",
    "render_summary",
]
