# Copyright Red Hat
#
# dirchanges/watch/watcher.py - Directory change tracker watcher
#
# This file is part of the dirchanges project.
#
# SPDX-License-Identifier: Apache-2.0
"""
Top-level watcher interface.

A ``Watcher`` owns the registered roots, the stored snapshot and the
ignore set. Diffs are computed only on request: nothing runs in the
background and the object is not safe for concurrent use.
"""
from typing import Dict, Iterable, Optional, Set, Union
from datetime import datetime
from math import floor
import logging
import os

from dirchanges import (
    DIRCHANGES_SUBSYSTEM_WATCHER,
    DirchangesNotFoundError,
    DirchangesWatchedPathDeletedError,
)

from .engine import DiffEngine, DiffResults
from .filters import (
    FilterHook,
    PathFilter,
    glob_exclude_hook,
    regex_filter_hook,
)
from .optypes import Op
from .options import WatchOptions
from .treewalk import FileInfo, TreeWalker

_log = logging.getLogger(__name__)

_log_debug = _log.debug
_log_info = _log.info
_log_warn = _log.warning
_log_error = _log.error


def _log_debug_watcher(msg, *args, **kwargs):
    """A wrapper for watcher subsystem debug logs."""
    _log.debug(msg, *args, extra={"subsystem": DIRCHANGES_SUBSYSTEM_WATCHER}, **kwargs)


def _is_under(path: str, root: str) -> bool:
    """
    Return ``True`` if ``path`` is ``root`` or lies below it.
    """
    if path == root:
        return True
    prefix = root if root.endswith(os.sep) else root + os.sep
    return path.startswith(prefix)


class Watcher:
    """
    Tracks watched paths and reports changes between snapshots.
    """

    def __init__(self, options: Optional[WatchOptions] = None):
        """
        Initialise a new ``Watcher``.

        :param options: Options to control this ``Watcher`` instance.
        :type options: ``Optional[WatchOptions]``
        """
        options = options or WatchOptions()
        self.options: WatchOptions = options
        self.path_filter: PathFilter = PathFilter()
        self.tree_walker: TreeWalker = TreeWalker(self.path_filter)
        self.diff_engine: DiffEngine = DiffEngine()

        #: Registered roots: absolute path -> recursive flag
        self._names: Dict[str, bool] = {}
        #: The stored snapshot
        self._files: Dict[str, FileInfo] = {}
        #: Operation filter
        self._ops: Set[Op] = set()

        self.ignore_hidden_files(options.ignore_hidden)
        self.filter_ops(*options.op_filter)
        for pattern in options.filter_patterns:
            self.add_filter_hook(
                regex_filter_hook(pattern, use_full_path=options.filter_full_path)
            )
        if options.exclude_patterns:
            self.add_filter_hook(glob_exclude_hook(options.exclude_patterns))
        if options.ignore_paths:
            self.ignore(*options.ignore_paths)

    def __repr__(self):
        return (
            f"Watcher(roots={len(self._names)}, files={len(self._files)}, "
            f"ignored={len(self.path_filter.ignored)})"
        )

    #
    # Configuration
    #

    def ignore_hidden_files(self, ignore: bool):
        """
        Set whether files and directories starting with a dot are ignored.

        :param ignore: ``True`` to ignore hidden files.
        :type ignore: ``bool``
        """
        self.path_filter.ignore_hidden = bool(ignore)

    def add_filter_hook(self, hook: FilterHook):
        """
        Add a filter hook that is consulted for every listed entry.

        :param hook: A callable ``hook(info, full_path) -> FilterResult``.
        :type hook: ``FilterHook``
        """
        self.path_filter.add_hook(hook)

    def filter_ops(self, *ops: Union[Op, str]):
        """
        Restrict the events returned by ``diff()`` to ``ops``. Calling with
        no arguments reports all operations.

        :param ops: ``Op`` values or operation names.
        """
        self._ops = {op if isinstance(op, Op) else Op.from_str(op) for op in ops}

    #
    # Registration
    #

    def _excluded_root(self, path: str) -> Optional[FileInfo]:
        """
        Return the ``FileInfo`` for a candidate root, or ``None`` if the
        filter excludes it.
        """
        if self.path_filter.path_excluded(path):
            return None
        info = self.tree_walker.stat_path(path)
        if not self.path_filter.run_hooks(info, path):
            return None
        return info

    def add(self, name: str):
        """
        Add a single file, or a directory and its immediate contents, to the
        watch list. Adding an excluded path does nothing. A root that is a
        symbolic link is followed.

        :param name: The path to add.
        :type name: ``str``
        :raises: ``DirchangesNotFoundError`` if ``name`` does not exist.
        """
        name = os.path.abspath(name)
        if self._excluded_root(name) is None:
            _log_debug_watcher("Not adding excluded path '%s'", name)
            return

        self._files.update(self.tree_walker.list_path(name))
        self._names[name] = False
        _log_info("Added '%s' (%d watched paths)", name, len(self._files))

    def add_recursive(self, name: str):
        """
        Add a file or a directory tree to the watch list. Adding an excluded
        path does nothing.

        A root that is a symbolic link is followed: the tree below its target
        is walked. Symbolic links found below the root are recorded as links
        and not descended into.

        :param name: The path to add.
        :type name: ``str``
        :raises: ``DirchangesNotFoundError`` if ``name`` does not exist.
        """
        name = os.path.abspath(name)
        if self._excluded_root(name) is None:
            _log_debug_watcher("Not adding excluded path '%s'", name)
            return

        self._files.update(self.tree_walker.walk_path(name))
        self._names[name] = True
        _log_info("Added '%s' recursively (%d watched paths)", name, len(self._files))

    def remove(self, name: str):
        """
        Remove a single file, or a directory and its immediate contents, from
        the watch list.

        :param name: The path to remove.
        :type name: ``str``
        """
        name = os.path.abspath(name)
        self._names.pop(name, None)

        self._files.pop(name, None)
        for path in [p for p in self._files if os.path.dirname(p) == name]:
            del self._files[path]
        _log_debug_watcher("Removed '%s'", name)

    def remove_recursive(self, name: str):
        """
        Remove a file or a directory tree from the watch list.

        :param name: The path to remove.
        :type name: ``str``
        """
        name = os.path.abspath(name)
        self._names.pop(name, None)

        for path in [p for p in self._files if _is_under(p, name)]:
            del self._files[path]
        _log_debug_watcher("Removed '%s' recursively", name)

    def ignore(self, *paths: str):
        """
        Ignore ``paths``. Paths that are already watched are removed first,
        together with everything below them, including roots registered
        below an ignored path.

        :param paths: The paths to ignore.
        """
        for path in paths:
            path = os.path.abspath(path)
            for root in [r for r in self._names if _is_under(r, path)]:
                self.remove_recursive(root)
            self.remove_recursive(path)
            self.path_filter.ignored.add(path)
            _log_debug_watcher("Ignoring '%s'", path)

    def unignore(self, *paths: str):
        """
        Stop ignoring ``paths``. The paths are not added to the watch list.

        :param paths: The paths to stop ignoring.
        """
        for path in paths:
            self.path_filter.ignored.discard(os.path.abspath(path))

    #
    # Queries
    #

    def watched_files(self) -> Dict[str, FileInfo]:
        """
        Return a copy of the stored snapshot.

        :rtype: ``Dict[str, FileInfo]``
        """
        return dict(self._files)

    snapshot = watched_files

    def roots(self) -> Dict[str, bool]:
        """
        Return a copy of the registered roots and their recursive flags.

        :rtype: ``Dict[str, bool]``
        """
        return dict(self._names)

    def ignored(self) -> Set[str]:
        """
        Return a copy of the ignore set.

        :rtype: ``Set[str]``
        """
        return set(self.path_filter.ignored)

    @property
    def ops(self) -> Set[Op]:
        """
        The current operation filter (empty for all operations).

        :rtype: ``Set[Op]``
        """
        return set(self._ops)

    def current_mapping(self) -> Dict[str, FileInfo]:
        """
        List every registered root again and return the merged snapshot.

        Roots that no longer exist are deregistered and reported with
        ``DirchangesWatchedPathDeletedError``. Each root is checked against
        the current ignore set, hidden file policy and filter hooks: a root
        excluded since registration contributes no entries.

        :returns: A dictionary mapping path strings to ``FileInfo`` objects.
        :rtype: ``Dict[str, FileInfo]``
        """
        files = {}
        deleted = {}
        try:
            for name, recursive in self._names.items():
                try:
                    if self._excluded_root(name) is None:
                        _log_debug_watcher("Skipping excluded root '%s'", name)
                        continue
                    if recursive:
                        files.update(self.tree_walker.walk_path(name))
                    else:
                        files.update(self.tree_walker.list_path(name))
                except DirchangesNotFoundError:
                    _log_warn("Watched path '%s' was deleted", name)
                    deleted[name] = recursive
        finally:
            for name, recursive in deleted.items():
                if recursive:
                    self.remove_recursive(name)
                else:
                    self.remove(name)

        if deleted:
            raise DirchangesWatchedPathDeletedError(deleted.keys())
        return files

    def diff(self, update: bool = False) -> DiffResults:
        """
        Compare the stored snapshot with the current state of the watched
        roots.

        The stored snapshot is left unchanged unless ``update`` is ``True``,
        so repeated calls keep reporting the same changes.

        :param update: Replace the stored snapshot with the current state
                       after a successful diff.
        :type update: ``bool``
        :returns: The detected events.
        :rtype: ``DiffResults``
        """
        timestamp = floor(datetime.now().timestamp())
        files = self.current_mapping()
        results = self.diff_engine.compute_diff(
            self._files, files, self._ops, timestamp=timestamp
        )
        if update:
            self._files = files
            _log_debug_watcher("Updated stored snapshot (%d paths)", len(files))
        return results

    def commit(self):
        """
        Replace the stored snapshot with the current state of the watched
        roots without computing a diff.
        """
        self._files = self.current_mapping()

    def restore(
        self,
        roots: Dict[str, bool],
        ignored: Iterable[str],
        files: Dict[str, FileInfo],
    ):
        """
        Replace the registry, ignore set and stored snapshot with previously
        saved values.

        :param roots: Registered roots and their recursive flags.
        :type roots: ``Dict[str, bool]``
        :param ignored: Ignored absolute paths.
        :type ignored: ``Iterable[str]``
        :param files: The stored snapshot.
        :type files: ``Dict[str, FileInfo]``
        """
        self._names = dict(roots)
        self.path_filter.ignored = set(ignored)
        self._files = dict(files)


__all__ = [
    "Watcher",
]
