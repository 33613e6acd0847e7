# Copyright Red Hat
#
# dirchanges/watch/engine.py - Directory change tracker diff engine
#
# This file is part of the dirchanges project.
#
# SPDX-License-Identifier: Apache-2.0
"""
Snapshot diff engine
"""
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Iterator, List, Optional
from collections import defaultdict
from datetime import datetime
from math import floor
import logging
import json
import os

from dirchanges import DIRCHANGES_SUBSYSTEM_DIFF
from dirchanges.term import TermControl

from .optypes import Op
from .treewalk import FileInfo

_log = logging.getLogger(__name__)

_log_debug = _log.debug
_log_info = _log.info
_log_warn = _log.warning
_log_error = _log.error


def _log_debug_diff(msg, *args, **kwargs):
    """A wrapper for diff subsystem debug logs."""
    _log.debug(msg, *args, extra={"subsystem": DIRCHANGES_SUBSYSTEM_DIFF}, **kwargs)


#: ``TermControl`` color attribute used to render each operation
_OP_COLORS = {
    Op.CREATE: "GREEN",
    Op.WRITE: "YELLOW",
    Op.REMOVE: "RED",
    Op.RENAME: "CYAN",
    Op.MOVE: "CYAN",
    Op.CHMOD: "MAGENTA",
}


@dataclass(frozen=True)
class Event:
    """
    A single detected change.
    """

    #: The kind of change
    op: Op
    #: The path of the changed entry (the destination for renames and moves)
    path: str
    #: The source path for renames and moves, the removed path for removals
    old_path: str
    #: New metadata for create, write and chmod; old metadata otherwise
    info: FileInfo

    def __str__(self):
        """
        Return a string representation of this ``Event`` object.

        :returns: A human readable representation of this ``Event``.
        :rtype: ``str``
        """
        path_type = "DIRECTORY" if self.info.is_dir else "FILE"
        return f'{path_type} "{self.info.name}" {self.op} [{self.path}]'

    @property
    def name(self) -> str:
        """
        The base name of the changed entry.

        :rtype: ``str``
        """
        return self.info.name

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert this ``Event`` object into a dictionary representation
        suitable for encoding as JSON.

        :returns: A dictionary mapping this instance's keys to values.
        :rtype: ``Dict[str, Any]``
        """
        return {
            "op": self.op.value,
            "path": self.path,
            "old_path": self.old_path,
            "info": self.info.to_dict(),
        }


class DiffResults:
    """
    The events produced by a single diff.
    """

    def __init__(self, events: List[Event], timestamp: Optional[int] = None):
        """
        Initialise a new ``DiffResults`` object.

        :param events: The events in this result.
        :type events: ``List[Event]``
        :param timestamp: The time the new snapshot was captured.
        :type timestamp: ``Optional[int]``
        """
        self._events = events
        self.timestamp = (
            timestamp if timestamp is not None else floor(datetime.now().timestamp())
        )

    def __repr__(self) -> str:
        return f"DiffResults({self._events!r}, timestamp={self.timestamp})"

    def __iter__(self) -> Iterator[Event]:
        return iter(self._events)

    def __len__(self):
        return len(self._events)

    def __getitem__(self, index: int) -> Event:
        return self._events[index]

    def _by_op(self, op: Op) -> List[Event]:
        return [event for event in self._events if event.op == op]

    @property
    def created(self) -> List[Event]:
        """Return create events in this ``DiffResults`` instance."""
        return self._by_op(Op.CREATE)

    @property
    def written(self) -> List[Event]:
        """Return write events in this ``DiffResults`` instance."""
        return self._by_op(Op.WRITE)

    @property
    def removed(self) -> List[Event]:
        """Return remove events in this ``DiffResults`` instance."""
        return self._by_op(Op.REMOVE)

    @property
    def renamed(self) -> List[Event]:
        """Return rename events in this ``DiffResults`` instance."""
        return self._by_op(Op.RENAME)

    @property
    def moved(self) -> List[Event]:
        """Return move events in this ``DiffResults`` instance."""
        return self._by_op(Op.MOVE)

    @property
    def chmodded(self) -> List[Event]:
        """Return chmod events in this ``DiffResults`` instance."""
        return self._by_op(Op.CHMOD)

    def sorted(self) -> List[Event]:
        """
        Return the events sorted by path and operation for display.

        :rtype: ``List[Event]``
        """
        return sorted(self._events, key=lambda e: (e.path, e.op.value))

    def paths(self) -> List[str]:
        """
        Return the sorted set of changed paths.

        :rtype: ``List[str]``
        """
        return sorted({event.path for event in self._events})

    def short(
        self, color: str = "auto", term_control: Optional[TermControl] = None
    ) -> str:
        """
        Return one line per event in ``str(event)`` form, with the operation
        name colored by kind.

        :param color: A string to control color rendering: "auto", "always",
                      or "never".
        :type color: ``str``
        :param term_control: An optional ``TermControl`` instance to use for
                             formatting. The supplied instance overrides any
                             ``color`` argument if set.
        :type term_control: ``Optional[TermControl]``
        :rtype: ``str``
        """
        tc = term_control or TermControl(color=color)

        def _short_one(event: Event) -> str:
            path_type = "DIRECTORY" if event.info.is_dir else "FILE"
            op_color = getattr(tc, _OP_COLORS[event.op])
            op_str = f"{op_color}{event.op}{tc.NORMAL if op_color else ''}"
            line = f'{path_type} "{event.name}" {op_str} [{event.path}]'
            if event.op in (Op.RENAME, Op.MOVE):
                line += f" (from {event.old_path})"
            return line

        return "\n".join(_short_one(event) for event in self.sorted())

    def summary(
        self, color: str = "auto", term_control: Optional[TermControl] = None
    ) -> str:
        """
        Return a summary of the number of events of each kind.

        :param color: A string to control color rendering: "auto", "always",
                      or "never".
        :type color: ``str``
        :param term_control: An optional ``TermControl`` instance to use for
                             formatting.
        :type term_control: ``Optional[TermControl]``
        :returns: A string summarizing this instance.
        :rtype: ``str``
        """
        tc = term_control or TermControl(color=color)
        lines = [f"Total changes:  {len(self)}"]
        for op in Op:
            label = f"{op.value}:".ljust(8)
            op_color = getattr(tc, _OP_COLORS[op])
            normal = tc.NORMAL if op_color else ""
            lines.append(f"  {op_color}{label}{normal} {len(self._by_op(op))}")
        return "\n".join(lines)

    def full(self) -> str:
        """
        Return a detailed multi-line description of each event.

        :rtype: ``str``
        """

        def _full_one(event: Event) -> str:
            old_path = f"  old_path: {event.old_path}\n" if event.old_path else ""
            return (
                f"Path: {event.path}\n"
                f"  op: {event.op.value}\n"
                f"{old_path}"
                f"  info:\n{event.info}"
            )

        return "\n\n".join(_full_one(event) for event in self.sorted())

    def json(self, pretty: bool = False) -> str:
        """
        Return a JSON representation of the events in this result.

        :param pretty: Indent JSON to be human readable.
        :type pretty: ``bool``
        :rtype: ``str``
        """
        return json.dumps(
            [event.to_dict() for event in self.sorted()],
            indent=4 if pretty else None,
        )


class DiffEngine:
    """
    Core class for comparing two snapshot mappings.
    """

    @staticmethod
    def _correlate(
        removes: Dict[str, FileInfo], creates: Dict[str, FileInfo]
    ) -> List[Event]:
        """
        Pair removed and created candidates that refer to the same underlying
        file. Matched candidates are deleted from ``removes`` and ``creates``.

        Removed candidates are indexed by identity so that each created
        candidate is probed once. When several removed candidates share an
        identity the first in path order is used.

        :param removes: Removed candidates: path -> old metadata.
        :type removes: ``Dict[str, FileInfo]``
        :param creates: Created candidates: path -> new metadata.
        :type creates: ``Dict[str, FileInfo]``
        :returns: Rename and move events for matched pairs.
        :rtype: ``List[Event]``
        """
        by_id = defaultdict(list)
        for path in sorted(removes):
            info = removes[path]
            if info.file_id is not None:
                by_id[info.file_id].append(path)

        events = []
        for new_path in sorted(creates):
            new_info = creates[new_path]
            candidates = by_id.get(new_info.file_id) if new_info.file_id else None
            if not candidates:
                continue
            old_path = candidates.pop(0)
            old_info = removes.pop(old_path)
            del creates[new_path]

            op = Op.MOVE
            if os.path.dirname(old_path) == os.path.dirname(new_path):
                op = Op.RENAME
            _log_debug_diff("Detected %s '%s' -> '%s'", op, old_path, new_path)
            events.append(Event(op, new_path, old_path, old_info))
        return events

    # pylint: disable=too-many-locals
    def compute_diff(
        self,
        old: Dict[str, FileInfo],
        new: Dict[str, FileInfo],
        ops: Optional[Iterable[Op]] = None,
        timestamp: Optional[int] = None,
    ) -> DiffResults:
        """
        Main diff computation logic.

        :param old: The previous snapshot: a dictionary of path name -> file
                    metadata mappings.
        :type old: ``Dict[str, FileInfo]``
        :param new: The current snapshot.
        :type new: ``Dict[str, FileInfo]``
        :param ops: Optional operations to report: when non-empty, events of
                    other kinds are dropped.
        :type ops: ``Optional[Iterable[Op]]``
        :param timestamp: Optional capture time of ``new``.
        :type timestamp: ``Optional[int]``
        :returns: A ``DiffResults`` instance containing ``Event`` objects.
        :rtype: ``DiffResults``
        """
        ops = set(ops or ())
        _log_debug(
            "Starting compute_diff with %d old and %d new paths", len(old), len(new)
        )
        start_time = datetime.now()

        events: List[Event] = []

        removes = {path: info for path, info in old.items() if path not in new}

        creates = {}
        for path, info in new.items():
            old_info = old.get(path)
            if old_info is None:
                creates[path] = info
                continue
            if old_info.mtime_ns != info.mtime_ns:
                _log_debug_diff("Detected write to '%s'", path)
                events.append(Event(Op.WRITE, path, "", info))
            if old_info.mode != info.mode:
                _log_debug_diff(
                    "Detected chmod of '%s' (%s -> %s)",
                    path,
                    oct(old_info.mode),
                    oct(info.mode),
                )
                events.append(Event(Op.CHMOD, path, "", info))

        events.extend(self._correlate(removes, creates))

        events.extend(Event(Op.CREATE, path, "", info) for path, info in creates.items())
        events.extend(
            Event(Op.REMOVE, path, path, info) for path, info in removes.items()
        )

        if ops:
            events = [event for event in events if event.op in ops]

        end_time = datetime.now()
        _log_debug(
            "Found %d events in %s%s",
            len(events),
            end_time - start_time,
            f" (filtered to {', '.join(sorted(str(op) for op in ops))})" if ops else "",
        )
        return DiffResults(events, timestamp)


__all__ = [
    "DiffEngine",
    "DiffResults",
    "Event",
]
