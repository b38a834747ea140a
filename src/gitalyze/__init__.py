"""Gitalyze - extract commit metadata from git remotes into MongoDB."""

__version__ = "0.9.0"
