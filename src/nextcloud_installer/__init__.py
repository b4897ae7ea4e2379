"""
nextcloud-installer — package root

File: src/nextcloud_installer/__init__.py
Last updated: 2026-10-18

Purpose
- Package root. Interactive, re-runnable provisioning of a Nextcloud web stack
  (web server, database, PHP runtime, application) on a single host.

Import boundary rules
- Must not have side effects at import time (no settings loading, no logging init).
- Keep heavy submodules (jinja2 templates, subprocess shims) out of the root import.
"""

__version__ = "0.1.0"

__all__ = ["__version__"]
