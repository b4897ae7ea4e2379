"""Rendering of the site definition and the PHP bootstrap file."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

import pytest

from nextcloud_installer.collection.fields import ConfigurationRecord
from nextcloud_installer.provisioning.templates import (
    TemplateRenderer,
    TemplateRenderError,
    php_single_quoted,
)

pytestmark = pytest.mark.unit


def test_site_definition_serves_install_dir_for_domain(
    make_record: Callable[..., ConfigurationRecord],
) -> None:
    record = make_record(install_dir="/var/www/nextcloud/", domain="cloud.example")

    text = TemplateRenderer().render_site(record, site_name="nextcloud", log_dir="/var/log/apache2")

    assert text.startswith("<VirtualHost *:80>\n")
    assert "    ServerName cloud.example\n" in text
    assert "    DocumentRoot /var/www/nextcloud\n" in text
    assert "    <Directory /var/www/nextcloud/>\n" in text
    assert "ErrorLog /var/log/apache2/nextcloud_error.log" in text
    assert "CustomLog /var/log/apache2/nextcloud_access.log combined" in text
    assert text.endswith("</VirtualHost>\n")


def test_bootstrap_embeds_database_and_admin_settings(
    make_record: Callable[..., ConfigurationRecord],
) -> None:
    record = make_record(install_dir="/var/www/nextcloud")

    text = TemplateRenderer().render_bootstrap(record, data_dir_name="data")

    assert text.startswith("<?php\n$AUTOCONFIG = array(\n")
    for line in (
        "'dbtype' => 'mysql',",
        "'dbname' => 'app_db',",
        "'dbuser' => 'app_user',",
        "'dbpass' => 's3cret',",
        "'dbhost' => 'localhost',",
        "'adminlogin' => 'admin',",
        "'adminpass' => 'adminpw',",
        "'directory' => '/var/www/nextcloud/data',",
    ):
        assert f"    {line}\n" in text
    assert text.endswith(");\n")


def test_rendering_is_deterministic(make_record: Callable[..., ConfigurationRecord]) -> None:
    record = make_record()
    renderer = TemplateRenderer()
    assert renderer.render_bootstrap(record, data_dir_name="data") == renderer.render_bootstrap(
        record, data_dir_name="data"
    )


def test_quotes_in_secrets_cannot_break_out_of_php_strings(
    make_record: Callable[..., ConfigurationRecord],
) -> None:
    record = make_record(admin_pass="it's\\here")
    text = TemplateRenderer().render_bootstrap(record, data_dir_name="data")
    assert "'adminpass' => 'it\\'s\\\\here'," in text
    assert php_single_quoted(42) == "'42'"


def test_missing_and_unexpected_variables_are_errors(tmp_path: Path) -> None:
    (tmp_path / "greeting.j2").write_text("Hello {{ name }}\n", encoding="utf-8")
    renderer = TemplateRenderer(template_root=tmp_path)

    assert renderer.render("greeting.j2", {"name": "operator"}) == "Hello operator\n"
    with pytest.raises(TemplateRenderError, match="missing variables"):
        renderer.render("greeting.j2", {})
    with pytest.raises(TemplateRenderError, match="unexpected variables"):
        renderer.render("greeting.j2", {"name": "x", "extra": "y"})
    with pytest.raises(TemplateRenderError, match="not found"):
        renderer.render("absent.j2", {})


def test_template_root_must_exist(tmp_path: Path) -> None:
    with pytest.raises(TemplateRenderError):
        TemplateRenderer(template_root=tmp_path / "absent")
