"""Diff Digest — streaming dual-tone release notes for merged changes."""

__version__ = "0.1.0"
