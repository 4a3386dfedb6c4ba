"""Bundled configuration files (``profiles.yaml``) for docmerge runs."""
