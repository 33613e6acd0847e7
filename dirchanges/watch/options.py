# Copyright Red Hat
#
# dirchanges/watch/options.py - Directory change tracker watch options
#
# This file is part of the dirchanges project.
#
# SPDX-License-Identifier: Apache-2.0
"""
Watcher configuration options.
"""
from dataclasses import dataclass, field, fields, replace
from typing import Optional, Tuple, Union
from argparse import Namespace
import logging

from .optypes import Op

_log = logging.getLogger(__name__)

_log_debug = _log.debug
_log_info = _log.info
_log_warn = _log.warning
_log_error = _log.error


@dataclass(frozen=True)
class WatchOptions:
    """
    Directory watch options.
    """

    #: Ignore files and directories whose name starts with a dot
    ignore_hidden: bool = False
    #: Event operations to report (empty to report all operations)
    ops: Tuple[str, ...] = field(default_factory=tuple)
    #: Regular expressions an entry must match to be listed
    filter_patterns: Tuple[str, ...] = field(default_factory=tuple)
    #: Match ``filter_patterns`` against the full path instead of the name
    filter_full_path: bool = False
    #: Paths to exclude from listings (glob notation)
    exclude_patterns: Tuple[str, ...] = field(default_factory=tuple)
    #: Paths to ignore completely
    ignore_paths: Tuple[str, ...] = field(default_factory=tuple)

    def __post_init__(self):
        # Validate operation names early.
        for name in self.ops:
            Op.from_str(name)

    def __str__(self):
        """
        Return a human readable string representation of this
        ``WatchOptions`` instance.

        :returns: A human readable string.
        :rtype: ``str``
        """
        items = [
            (key, val) if not isinstance(val, tuple) else (key, " ".join(val))
            for key, val in self.__dict__.items()
        ]
        return "\n".join(f"{key}={val}" for key, val in items)

    @property
    def op_filter(self) -> Tuple[Op, ...]:
        """
        The configured operation filter as a tuple of ``Op`` values.

        :returns: A (possibly empty) tuple of ``Op`` values.
        :rtype: ``Tuple[Op, ...]``
        """
        return tuple(Op.from_str(name) for name in self.ops)

    @classmethod
    def from_cmd_args(
        cls, cmd_args: Namespace, base: Optional["WatchOptions"] = None
    ) -> "WatchOptions":
        """
        Initialise WatchOptions from command line arguments.

        Construct a new ``WatchOptions`` object from the command line
        arguments in ``cmd_args``. Arguments that are absent or ``None``
        keep the value found in ``base`` (or the default if ``base`` is
        not given).

        :param cmd_args: The command line arguments.
        :type cmd_args: ``Namespace``
        :param base: Optional options to overlay the arguments onto.
        :type base: ``Optional[WatchOptions]``
        :returns: A new ``WatchOptions`` instance
        :rtype: ``WatchOptions``
        """

        def get_value(name: str) -> Union[bool, Tuple[str, ...]]:
            attr = getattr(cmd_args, name)
            if isinstance(attr, list):
                return tuple(attr)
            if isinstance(attr, str) and name == "ops":
                return tuple(op for op in attr.split(",") if op)
            return attr

        field_names = {f.name for f in fields(cls)}
        kwargs = {
            name: get_value(name)
            for name in field_names
            if getattr(cmd_args, name, None) is not None
        }
        options = replace(base, **kwargs) if base else cls(**kwargs)
        _log_debug("Initialised WatchOptions from arguments: %s", repr(options))
        return options
