"""
nextcloud-installer — generated file rendering

File: src/nextcloud_installer/provisioning/templates.py
Last updated: 2026-10-18

Purpose
- Render the web-server site definition and the application bootstrap file from a
  ``ConfigurationRecord`` using packaged Jinja2 templates with strict placeholders.

Functional requirements
- Must render deterministically for the same record and settings.
- Missing or unexpected template variables are errors, never silently blank.

Non-functional requirements
- Values embedded in the PHP bootstrap file are escaped as single-quoted PHP strings.
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, Final

from jinja2 import Environment, StrictUndefined, meta

from nextcloud_installer.provisioning.reconciler import DATABASE_HOST

if TYPE_CHECKING:
    from collections.abc import Mapping

    from nextcloud_installer.collection.fields import ConfigurationRecord

SITE_TEMPLATE: Final[str] = "site.conf.j2"
BOOTSTRAP_TEMPLATE: Final[str] = "autoconfig.php.j2"
DATABASE_TYPE: Final[str] = "mysql"


class TemplateRenderError(RuntimeError):
    """Raised when a packaged template is missing or its variables do not line up."""


class TemplateRenderer:
    """Loads templates from the package ``templates`` directory and renders them."""

    def __init__(self, *, template_root: Path | str | None = None) -> None:
        root = Path(template_root) if template_root is not None else _default_template_root()
        self._template_root = root.resolve()
        if not self._template_root.is_dir():
            raise TemplateRenderError(f"template root is not a directory: {self._template_root}")
        self._environment = Environment(
            undefined=StrictUndefined,
            autoescape=False,
            newline_sequence="\n",
            keep_trailing_newline=True,
        )
        self._environment.filters["php_str"] = php_single_quoted

    @property
    def template_root(self) -> Path:
        return self._template_root

    def render(self, template_name: str, variables: Mapping[str, object]) -> str:
        template_path = self._template_root / template_name
        try:
            source = template_path.read_text(encoding="utf-8")
        except FileNotFoundError as exc:
            raise TemplateRenderError(f"template not found: {template_path}") from exc

        declared = meta.find_undeclared_variables(self._environment.parse(source))
        missing = sorted(declared - set(variables))
        if missing:
            raise TemplateRenderError(
                f"missing variables for {template_name}: " + ", ".join(missing)
            )
        unexpected = sorted(set(variables) - declared)
        if unexpected:
            raise TemplateRenderError(
                f"unexpected variables for {template_name}: " + ", ".join(unexpected)
            )
        return self._environment.from_string(source).render(**variables)

    def render_site(
        self, record: ConfigurationRecord, *, site_name: str, log_dir: str
    ) -> str:
        """Virtual host serving ``record.install_dir`` under ``record.domain``."""

        return self.render(
            SITE_TEMPLATE,
            {
                "domain": record.domain,
                "install_dir": record.install_dir.rstrip("/"),
                "site_name": site_name,
                "log_dir": log_dir,
            },
        )

    def render_bootstrap(self, record: ConfigurationRecord, *, data_dir_name: str) -> str:
        """PHP ``$AUTOCONFIG`` array consumed by the application's first-run setup."""

        return self.render(
            BOOTSTRAP_TEMPLATE,
            {
                "db_type": DATABASE_TYPE,
                "db_name": record.db_name,
                "db_user": record.db_user,
                "db_pass": record.db_pass,
                "db_host": DATABASE_HOST,
                "admin_user": record.admin_user,
                "admin_pass": record.admin_pass,
                "data_dir": f"{record.install_dir.rstrip('/')}/{data_dir_name}",
            },
        )


def php_single_quoted(value: object) -> str:
    text = str(value).replace("\\", "\\\\").replace("'", "\\'")
    return f"'{text}'"


def _default_template_root() -> Path:
    return Path(__file__).resolve().parents[1] / "templates"


__all__ = [
    "BOOTSTRAP_TEMPLATE",
    "DATABASE_TYPE",
    "SITE_TEMPLATE",
    "TemplateRenderError",
    "TemplateRenderer",
    "php_single_quoted",
]
