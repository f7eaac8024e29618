"""Bundled application recipes (YAML)."""
