"""Bundled data files for kmainline."""
