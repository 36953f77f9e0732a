"""Bundled uninstall plans."""
