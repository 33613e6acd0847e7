# Copyright Red Hat
#
# dirchanges/watch/__init__.py - Directory change tracker watch package
#
# This file is part of the dirchanges project.
#
# SPDX-License-Identifier: Apache-2.0
"""
Directory watch package.

Provides snapshot capture, path filtering and change detection including
rename and move correlation. The main entry points are ``Watcher`` and
``WatchOptions``.
"""
from .engine import DiffEngine, DiffResults, Event
from .filters import (
    FilterAction,
    FilterResult,
    PathFilter,
    glob_exclude_hook,
    is_hidden,
    regex_filter_hook,
)
from .options import WatchOptions
from .optypes import Op
from .treewalk import FileId, FileInfo, TreeWalker
from .watcher import Watcher

__all__ = [
    "DiffEngine",
    "DiffResults",
    "Event",
    "FileId",
    "FileInfo",
    "FilterAction",
    "FilterResult",
    "Op",
    "PathFilter",
    "TreeWalker",
    "WatchOptions",
    "Watcher",
    "glob_exclude_hook",
    "is_hidden",
    "regex_filter_hook",
]
