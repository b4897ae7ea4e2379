"""Module entrypoint for ``python -m nextcloud_installer``."""

from __future__ import annotations

from nextcloud_installer.main import cli_entrypoint

if __name__ == "__main__":
    raise SystemExit(cli_entrypoint())
