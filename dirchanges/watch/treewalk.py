# Copyright Red Hat
#
# dirchanges/watch/treewalk.py - Directory change tracker tree walk
#
# This file is part of the dirchanges project.
#
# SPDX-License-Identifier: Apache-2.0
"""
File system metadata capture and tree walking support.
"""
from dataclasses import dataclass
from typing import Any, Dict, Iterator, NamedTuple, Optional, Tuple, TYPE_CHECKING
from datetime import datetime
import logging
import stat
import os

from dirchanges import (
    DIRCHANGES_SUBSYSTEM_WATCHER,
    DirchangesNotFoundError,
    DirchangesSystemError,
)

if TYPE_CHECKING:
    from .filters import PathFilter

_log = logging.getLogger(__name__)

_log_debug = _log.debug
_log_info = _log.info
_log_warn = _log.warning
_log_error = _log.error


def _log_debug_watcher(msg, *args, **kwargs):
    """A wrapper for watcher subsystem debug logs."""
    _log.debug(msg, *args, extra={"subsystem": DIRCHANGES_SUBSYSTEM_WATCHER}, **kwargs)


class FileId(NamedTuple):
    """
    The system identity of a file system object: equal values on two
    entries mean the same underlying file.
    """

    #: Device number containing the object
    dev: int
    #: Inode (or file index) number of the object
    ino: int


@dataclass(frozen=True)
class FileInfo:
    """
    Metadata captured for a single file system entry. The absolute path is
    the key of the snapshot mapping and is not stored here.
    """

    #: The base name of the entry
    name: str
    #: Size in bytes
    size: int = 0
    #: File mode returned by ``stat()`` (type and permission bits)
    mode: int = 0
    #: Modification time in nanoseconds since the epoch
    mtime_ns: int = 0
    #: ``True`` if the entry is a directory
    is_dir: bool = False
    #: Opaque system identity used for rename and move detection
    file_id: Optional[FileId] = None

    @classmethod
    def from_stat(cls, name: str, stat_info: os.stat_result) -> "FileInfo":
        """
        Build a ``FileInfo`` from an ``os.stat_result``.

        :param name: The base name of the entry.
        :type name: ``str``
        :param stat_info: The ``stat()`` or ``lstat()`` result for the entry.
        :type stat_info: ``os.stat_result``
        :returns: A new ``FileInfo`` instance.
        :rtype: ``FileInfo``
        """
        file_id = None
        if stat_info.st_ino or stat_info.st_dev:
            file_id = FileId(stat_info.st_dev, stat_info.st_ino)
        return cls(
            name=name,
            size=stat_info.st_size,
            mode=stat_info.st_mode,
            mtime_ns=stat_info.st_mtime_ns,
            is_dir=stat.S_ISDIR(stat_info.st_mode),
            file_id=file_id,
        )

    @property
    def mtime(self) -> float:
        """
        The modification time in seconds since the epoch.

        :rtype: ``float``
        """
        return self.mtime_ns / 1e9

    @property
    def is_symlink(self) -> bool:
        """
        True if this ``FileInfo`` describes a symbolic link.

        :rtype: ``bool``
        """
        return stat.S_ISLNK(self.mode)

    @property
    def type_desc(self) -> str:
        """
        Return a string description of the entry type, for e.g. "file" or
        "directory".

        :rtype: ``str``
        """
        if self.is_dir:
            return "directory"
        if self.is_symlink:
            return "symbolic link"
        if stat.S_ISBLK(self.mode):
            return "block device"
        if stat.S_ISCHR(self.mode):
            return "char device"
        if stat.S_ISSOCK(self.mode):
            return "socket"
        if stat.S_ISFIFO(self.mode):
            return "FIFO"
        return "file"

    def same_file(self, other: "FileInfo") -> bool:
        """
        Return ``True`` if ``other`` refers to the same underlying file.
        Entries without an identity never match.

        :param other: The entry to compare with.
        :type other: ``FileInfo``
        :rtype: ``bool``
        """
        return self.file_id is not None and self.file_id == other.file_id

    def __str__(self):
        indent = 4 * " "
        return (
            f"{indent}name: {self.name}\n"
            f"{indent}type: {self.type_desc}\n"
            f"{indent}size: {self.size}\n"
            f"{indent}mode: {oct(self.mode)}\n"
            f"{indent}mtime: {datetime.fromtimestamp(self.mtime)}\n"
            f"{indent}file_id: {tuple(self.file_id) if self.file_id else ''}"
        )

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert this ``FileInfo`` object into a dictionary representation
        suitable for encoding as JSON.

        :returns: A dictionary mapping this instance's keys to values.
        :rtype: ``Dict[str, Any]``
        """
        return {
            "name": self.name,
            "type": self.type_desc,
            "size": self.size,
            "mode": oct(self.mode),
            "mtime": self.mtime,
            "is_dir": self.is_dir,
            "file_id": list(self.file_id) if self.file_id else None,
        }


def _os_error(err: OSError, path: str):
    """
    Convert ``err`` into the matching dirchanges exception.
    """
    if isinstance(err, FileNotFoundError):
        return DirchangesNotFoundError(f"No such file or directory: {path}")
    return DirchangesSystemError(f"Error reading {path}: {err}")


class TreeWalker:
    """
    Lists watched roots into snapshot mappings, applying a ``PathFilter``
    to every entry below the root.
    """

    def __init__(self, path_filter: "PathFilter"):
        """
        Initialise a new ``TreeWalker`` object.

        :param path_filter: The filter chain to apply to listed entries.
        :type path_filter: ``PathFilter``
        """
        self.path_filter = path_filter

    @staticmethod
    def stat_path(path: str) -> FileInfo:
        """
        Return the metadata for ``path``, following symbolic links.

        :param path: The absolute path to examine.
        :type path: ``str``
        :returns: The ``FileInfo`` for ``path``.
        :rtype: ``FileInfo``
        :raises: ``DirchangesNotFoundError`` if ``path`` does not exist, or
                 ``DirchangesSystemError`` for other failures.
        """
        try:
            path_stat = os.stat(path)
        except OSError as err:
            raise _os_error(err, path) from err
        return FileInfo.from_stat(os.path.basename(path) or path, path_stat)

    def _list_children(
        self, dir_path: str, is_root: bool
    ) -> Iterator[Tuple[str, FileInfo]]:
        """
        Yield ``(path, FileInfo)`` pairs for the filtered immediate children
        of ``dir_path``.

        :param dir_path: The directory to list.
        :type dir_path: ``str``
        :param is_root: ``True`` if ``dir_path`` is the watched root: a
                        missing root is an error, a missing subdirectory is
                        skipped.
        :type is_root: ``bool``
        """
        try:
            names = sorted(os.listdir(dir_path))
        except FileNotFoundError as err:
            if is_root:
                raise _os_error(err, dir_path) from err
            _log_debug_watcher("Directory '%s' vanished while listing", dir_path)
            return
        except OSError as err:
            raise _os_error(err, dir_path) from err

        for name in names:
            path = os.path.join(dir_path, name)
            if self.path_filter.path_excluded(path):
                _log_debug_watcher("Excluding '%s'", path)
                continue
            try:
                path_stat = os.lstat(path)
            except FileNotFoundError:
                # Path vanished between listing and stat; skip it.
                _log_debug_watcher("Path '%s' vanished while listing", path)
                continue
            except OSError as err:
                raise _os_error(err, path) from err

            info = FileInfo.from_stat(name, path_stat)
            if not self.path_filter.run_hooks(info, path):
                _log_debug_watcher("Filter hook skipped '%s'", path)
                continue
            yield path, info

    def list_path(self, path: str) -> Dict[str, FileInfo]:
        """
        List ``path`` and, if it is a directory, its immediate children.

        :param path: The absolute path to list.
        :type path: ``str``
        :returns: A dictionary mapping path strings to ``FileInfo`` objects.
        :rtype: ``Dict[str, FileInfo]``
        """
        root_info = self.stat_path(path)
        tree = {path: root_info}
        if root_info.is_dir:
            tree.update(self._list_children(path, True))
        _log_debug_watcher("Listed %d entries from '%s'", len(tree), path)
        return tree

    def walk_path(self, path: str) -> Dict[str, FileInfo]:
        """
        Walk the tree rooted at ``path``. Directories excluded by the filter
        are pruned along with everything below them.

        :param path: The absolute path to walk.
        :type path: ``str``
        :returns: A dictionary mapping path strings to ``FileInfo`` objects.
        :rtype: ``Dict[str, FileInfo]``
        """
        root_info = self.stat_path(path)
        tree = {path: root_info}
        if not root_info.is_dir:
            return tree

        to_visit = [path]
        while to_visit:
            dir_path = to_visit.pop()
            for child_path, info in self._list_children(dir_path, dir_path == path):
                tree[child_path] = info
                if info.is_dir:
                    to_visit.append(child_path)

        _log_debug_watcher("Walked %d entries from '%s'", len(tree), path)
        return tree


__all__ = [
    "FileId",
    "FileInfo",
    "TreeWalker",
]
