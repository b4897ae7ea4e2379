"""Filesystem helpers shared by the provisioning steps."""
