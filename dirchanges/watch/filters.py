# Copyright Red Hat
#
# dirchanges/watch/filters.py - Directory change tracker path filtering
#
# This file is part of the dirchanges project.
#
# SPDX-License-Identifier: Apache-2.0
"""
Path filtering for watcher listings.

Every entry found while listing a watched root passes through a
``PathFilter``: the ignore set is checked first, then the hidden file
policy, then each filter hook in registration order.
"""
from dataclasses import dataclass
from typing import Callable, Iterable, List, Optional, Pattern, Set, Union
from fnmatch import fnmatch
from enum import Enum
import logging
import stat
import os
import re

from dirchanges import DirchangesArgumentError

from .treewalk import FileInfo

_log = logging.getLogger(__name__)

_log_debug = _log.debug
_log_info = _log.info
_log_warn = _log.warning
_log_error = _log.error

#: Windows hidden file attribute (absent from ``stat`` on other platforms)
_FILE_ATTRIBUTE_HIDDEN = getattr(stat, "FILE_ATTRIBUTE_HIDDEN", 0x2)


class FilterAction(Enum):
    """
    Enum for the outcome of a filter hook.
    """

    INCLUDE = "include"
    SKIP = "skip"
    ABORT = "abort"


@dataclass(frozen=True)
class FilterResult:
    """
    The result of applying a filter hook to a single entry.
    """

    #: What to do with the entry
    action: FilterAction
    #: The error to raise for ``FilterAction.ABORT``
    error: Optional[Exception] = None

    @classmethod
    def include(cls) -> "FilterResult":
        """Return a result that keeps the entry."""
        return cls(FilterAction.INCLUDE)

    @classmethod
    def skip(cls) -> "FilterResult":
        """Return a result that drops the entry (and, for a directory, its
        subtree)."""
        return cls(FilterAction.SKIP)

    @classmethod
    def abort(cls, error: Exception) -> "FilterResult":
        """
        Return a result that aborts the listing in progress.

        :param error: The exception to raise to the caller of the listing.
        :type error: ``Exception``
        """
        if not isinstance(error, Exception):
            raise DirchangesArgumentError(
                f"FilterResult.abort() requires an exception: {error!r}"
            )
        return cls(FilterAction.ABORT, error)


#: A filter hook: called with the entry metadata and full path.
FilterHook = Callable[[FileInfo, str], Optional[FilterResult]]


def is_hidden(path: str) -> bool:
    """
    Return ``True`` if ``path`` names a hidden file or directory.

    A path is hidden if its base name starts with a dot. On Windows the
    hidden file attribute is also honoured.

    :param path: The path to check.
    :type path: ``str``
    :returns: ``True`` if the path is hidden or ``False`` otherwise.
    :rtype: ``bool``
    """
    if os.path.basename(path).startswith("."):
        return True
    if os.name == "nt":
        try:
            attrs = os.lstat(path).st_file_attributes
        except OSError:
            return False
        return bool(attrs & _FILE_ATTRIBUTE_HIDDEN)
    return False


def regex_filter_hook(
    pattern: Union[str, Pattern[str]], use_full_path: bool = False
) -> FilterHook:
    """
    Return a hook that accepts entries whose name (or full path) matches a
    regular expression and skips all others.

    :param pattern: A regular expression string or compiled pattern.
    :param use_full_path: Match against the full path rather than the name.
    :returns: A filter hook.
    """
    regex = re.compile(pattern) if isinstance(pattern, str) else pattern

    def _hook(info: FileInfo, full_path: str) -> FilterResult:
        value = full_path if use_full_path else info.name
        if regex.search(value):
            return FilterResult.include()
        return FilterResult.skip()

    return _hook


def glob_exclude_hook(patterns: Iterable[str]) -> FilterHook:
    """
    Return a hook that skips entries whose full path or name matches any of
    the glob ``patterns``.

    :param patterns: Glob patterns (``fnmatch`` notation).
    :returns: A filter hook.
    """
    patterns = tuple(patterns)

    def _hook(info: FileInfo, full_path: str) -> FilterResult:
        if any(fnmatch(full_path, pat) or fnmatch(info.name, pat) for pat in patterns):
            return FilterResult.skip()
        return FilterResult.include()

    return _hook


class PathFilter:
    """
    The chain of predicates deciding whether a path is listed.
    """

    def __init__(self):
        #: Absolute paths excluded from all listings
        self.ignored: Set[str] = set()
        #: Exclude hidden files and directories
        self.ignore_hidden: bool = False
        #: Filter hooks in registration order
        self.hooks: List[FilterHook] = []

    def add_hook(self, hook: FilterHook):
        """
        Append ``hook`` to the filter chain.

        :param hook: The hook to add.
        :type hook: ``FilterHook``
        """
        if not callable(hook):
            raise DirchangesArgumentError(f"Filter hook is not callable: {hook!r}")
        self.hooks.append(hook)

    def path_excluded(self, path: str) -> bool:
        """
        Return ``True`` if ``path`` is excluded by the ignore set or the
        hidden file policy. Filter hooks are not consulted.

        :param path: The absolute path to check.
        :type path: ``str``
        :rtype: ``bool``
        """
        if path in self.ignored:
            return True
        return self.ignore_hidden and is_hidden(path)

    def run_hooks(self, info: FileInfo, path: str) -> bool:
        """
        Run the filter hooks for one entry.

        :param info: The entry metadata.
        :type info: ``FileInfo``
        :param path: The absolute path of the entry.
        :type path: ``str``
        :returns: ``False`` if a hook skipped the entry, ``True`` otherwise.
        :raises: The error carried by an aborting hook result, unchanged.
        """
        for hook in self.hooks:
            result = hook(info, path)
            if result is None:
                continue
            if not isinstance(result, FilterResult):
                raise DirchangesArgumentError(
                    f"Invalid filter hook result for {path}: {result!r}"
                )
            if result.action == FilterAction.SKIP:
                return False
            if result.action == FilterAction.ABORT:
                _log_debug("Filter hook %r aborted listing at %s", hook, path)
                raise result.error
        return True

    def should_include(self, info: FileInfo, path: str) -> bool:
        """
        Decide whether the entry at ``path`` is included in a listing.

        :param info: The entry metadata.
        :type info: ``FileInfo``
        :param path: The absolute path of the entry.
        :type path: ``str``
        :returns: ``True`` if the entry is listed.
        :rtype: ``bool``
        """
        if self.path_excluded(path):
            return False
        return self.run_hooks(info, path)


__all__ = [
    "FilterAction",
    "FilterHook",
    "FilterResult",
    "PathFilter",
    "glob_exclude_hook",
    "is_hidden",
    "regex_filter_hook",
]
