# Copyright Red Hat
#
# dirchanges/_dirchanges.py - Directory change tracker global definitions
#
# This file is part of the dirchanges project.
#
# SPDX-License-Identifier: Apache-2.0
"""
Global definitions for the top-level dirchanges package.
"""
from typing import Iterable
import logging

_log = logging.getLogger("dirchanges")

_log_debug = _log.debug
_log_info = _log.info
_log_warn = _log.warning
_log_error = _log.error

# Dirchanges debugging subsystem mask (legacy interface)
DIRCHANGES_DEBUG_WATCHER = 1
DIRCHANGES_DEBUG_DIFF = 2
DIRCHANGES_DEBUG_STATE = 4
DIRCHANGES_DEBUG_COMMAND = 8
DIRCHANGES_DEBUG_ALL = (
    DIRCHANGES_DEBUG_WATCHER
    | DIRCHANGES_DEBUG_DIFF
    | DIRCHANGES_DEBUG_STATE
    | DIRCHANGES_DEBUG_COMMAND
)

# Dirchanges debugging subsystem names
DIRCHANGES_SUBSYSTEM_WATCHER = "dirchanges.watcher"
DIRCHANGES_SUBSYSTEM_DIFF = "dirchanges.diff"
DIRCHANGES_SUBSYSTEM_STATE = "dirchanges.state"
DIRCHANGES_SUBSYSTEM_COMMAND = "dirchanges.command"

_DEBUG_MASK_TO_SUBSYSTEM = {
    DIRCHANGES_DEBUG_WATCHER: DIRCHANGES_SUBSYSTEM_WATCHER,
    DIRCHANGES_DEBUG_DIFF: DIRCHANGES_SUBSYSTEM_DIFF,
    DIRCHANGES_DEBUG_STATE: DIRCHANGES_SUBSYSTEM_STATE,
    DIRCHANGES_DEBUG_COMMAND: DIRCHANGES_SUBSYSTEM_COMMAND,
}

_debug_subsystems = set()


class SubsystemFilter(logging.Filter):
    """
    Filters DEBUG records based on a set of enabled subsystem names.
    Non-DEBUG records or DEBUG records without a 'subsystem' attribute
    are always passed through.
    """

    def __init__(self, name=""):
        super().__init__(name)
        self.enabled_subsystems = set(_debug_subsystems)

    def filter(self, record):
        if record.levelno != logging.DEBUG:
            return True

        if not hasattr(record, "subsystem"):
            return True

        return record.subsystem in self.enabled_subsystems

    def set_debug_subsystems(self, subsystems: Iterable[str]):
        """Sets the collection of subsystems to allow."""
        self.enabled_subsystems = set(subsystems)


def get_debug_mask():
    """
    Return the current debug mask for the ``dirchanges`` package.

    :returns: The current debug mask value
    :rtype: int
    """
    enabled_subsystems = set(_debug_subsystems)
    dirchanges_log = logging.getLogger("dirchanges")

    for handler in dirchanges_log.handlers:
        for f in handler.filters:
            if isinstance(f, SubsystemFilter):
                enabled_subsystems.update(f.enabled_subsystems)

    mask_map = {v: k for k, v in _DEBUG_MASK_TO_SUBSYSTEM.items()}
    mask = 0
    for subsystem_name in enabled_subsystems:
        mask |= mask_map.get(subsystem_name, 0)
    return mask


def set_debug_mask(mask):
    """
    Set the debug mask for the ``dirchanges`` package.

    :param mask: the logical OR of the ``DIRCHANGES_DEBUG_*``
                 values to log.
    :rtype: None
    """
    # pylint: disable=global-statement
    global _debug_subsystems

    if mask < 0 or mask > DIRCHANGES_DEBUG_ALL:
        raise ValueError(f"Invalid dirchanges debug mask: {mask}")

    enabled_subsystems = [
        subsystem_name
        for flag, subsystem_name in _DEBUG_MASK_TO_SUBSYSTEM.items()
        if mask & flag
    ]

    dirchanges_log = logging.getLogger("dirchanges")
    for handler in dirchanges_log.handlers:
        for f in handler.filters:
            if isinstance(f, SubsystemFilter):
                f.set_debug_subsystems(enabled_subsystems)

    _debug_subsystems = set(enabled_subsystems)


#
# Dirchanges exception types
#


class DirchangesError(Exception):
    """
    Base class for directory change tracker errors.
    """


class DirchangesSystemError(DirchangesError):
    """
    An error when calling the operating system.
    """


class DirchangesNotFoundError(DirchangesError):
    """
    The requested object does not exist.
    """


class DirchangesWatchedPathDeletedError(DirchangesError):
    """
    A registered watch root was deleted from the file system. The
    stale roots have been deregistered by the time this is raised.
    """

    def __init__(self, paths: Iterable[str]):
        """
        Initialise a new ``DirchangesWatchedPathDeletedError`` exception.

        :param paths: The watched root paths found to be missing.
        """
        self.paths = sorted(paths)
        super().__init__(
            f"Watched file or directory deleted: {', '.join(self.paths)}"
        )


class DirchangesFilterError(DirchangesError):
    """
    A path filter hook failed and aborted the listing.
    """


class DirchangesArgumentError(DirchangesError):
    """
    An invalid argument was passed to a dirchanges API call.
    """


class DirchangesStateError(DirchangesError):
    """
    A saved watcher state could not be read or written.
    """


__all__ = [
    "DIRCHANGES_DEBUG_WATCHER",
    "DIRCHANGES_DEBUG_DIFF",
    "DIRCHANGES_DEBUG_STATE",
    "DIRCHANGES_DEBUG_COMMAND",
    "DIRCHANGES_DEBUG_ALL",
    # Debug logging - subsystem name interface
    "SubsystemFilter",
    "DIRCHANGES_SUBSYSTEM_WATCHER",
    "DIRCHANGES_SUBSYSTEM_DIFF",
    "DIRCHANGES_SUBSYSTEM_STATE",
    "DIRCHANGES_SUBSYSTEM_COMMAND",
    # Debug logging - legacy interface
    "set_debug_mask",
    "get_debug_mask",
    "DirchangesError",
    "DirchangesSystemError",
    "DirchangesNotFoundError",
    "DirchangesWatchedPathDeletedError",
    "DirchangesFilterError",
    "DirchangesArgumentError",
    "DirchangesStateError",
]
