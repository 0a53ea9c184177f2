"""
notelinks - A wiki-link knowledge graph engine for personal note collections.
This package parses [[Title]] references embedded in notes, keeps backlinks
consistent, cascades title renames across referencing notes and derives a
visualization-ready graph from a flat note collection.

All store-facing operations are asynchronous.
"""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("notelinks")
except PackageNotFoundError:
    __version__ = "0.3.0"
