# Copyright Red Hat
#
# dirchanges/watch/optypes.py - Directory change event operation types
#
# This file is part of the dirchanges project.
#
# SPDX-License-Identifier: Apache-2.0
"""
Change event operation types
"""
from enum import Enum

from dirchanges import DirchangesArgumentError


class Op(Enum):
    """
    Enum for the kinds of change a diff can report.
    """

    CREATE = "create"
    WRITE = "write"
    REMOVE = "remove"
    RENAME = "rename"
    CHMOD = "chmod"
    MOVE = "move"

    def __str__(self):
        return self.name

    @classmethod
    def from_str(cls, name: str) -> "Op":
        """
        Return the ``Op`` named by ``name`` (case insensitive).

        :param name: The operation name, for e.g. "create" or "RENAME".
        :type name: ``str``
        :returns: The matching ``Op`` member.
        :rtype: ``Op``
        :raises: ``DirchangesArgumentError`` if ``name`` is not a known
                 operation.
        """
        try:
            return cls(name.strip().lower())
        except ValueError as err:
            raise DirchangesArgumentError(f"Unknown event operation: {name}") from err
