# Copyright Red Hat
#
# tests/test_dirchanges.py - Top-level package tests
#
# This file is part of the dirchanges project.
#
# SPDX-License-Identifier: Apache-2.0
import unittest
import logging

import dirchanges
from dirchanges import (
    DIRCHANGES_DEBUG_ALL,
    DIRCHANGES_DEBUG_DIFF,
    DIRCHANGES_DEBUG_STATE,
    DIRCHANGES_SUBSYSTEM_DIFF,
    DIRCHANGES_SUBSYSTEM_WATCHER,
    SubsystemFilter,
)

log = logging.getLogger()


class DirchangesTests(unittest.TestCase):
    def tearDown(self):
        dirchanges.set_debug_mask(0)

    def test_set_debug_mask(self):
        dirchanges.set_debug_mask(DIRCHANGES_DEBUG_DIFF | DIRCHANGES_DEBUG_STATE)
        self.assertEqual(
            dirchanges.get_debug_mask(), DIRCHANGES_DEBUG_DIFF | DIRCHANGES_DEBUG_STATE
        )

    def test_set_debug_mask_all(self):
        dirchanges.set_debug_mask(DIRCHANGES_DEBUG_ALL)
        self.assertEqual(dirchanges.get_debug_mask(), DIRCHANGES_DEBUG_ALL)

    def test_set_debug_mask_bad_mask(self):
        with self.assertRaises(ValueError):
            dirchanges.set_debug_mask(DIRCHANGES_DEBUG_ALL + 1)
        with self.assertRaises(ValueError):
            dirchanges.set_debug_mask(-1)

    def test_subsystem_filter(self):
        dirchanges.set_debug_mask(DIRCHANGES_DEBUG_DIFF)
        subsystem_filter = SubsystemFilter("dirchanges")

        def _record(level, subsystem=None):
            record = logging.LogRecord(
                "dirchanges.watch", level, __file__, 1, "msg", None, None
            )
            if subsystem:
                record.subsystem = subsystem
            return record

        self.assertTrue(subsystem_filter.filter(_record(logging.INFO)))
        self.assertTrue(subsystem_filter.filter(_record(logging.DEBUG)))
        self.assertTrue(
            subsystem_filter.filter(_record(logging.DEBUG, DIRCHANGES_SUBSYSTEM_DIFF))
        )
        self.assertFalse(
            subsystem_filter.filter(_record(logging.DEBUG, DIRCHANGES_SUBSYSTEM_WATCHER))
        )
        self.assertTrue(
            subsystem_filter.filter(_record(logging.INFO, DIRCHANGES_SUBSYSTEM_WATCHER))
        )

    def test_subsystem_filter_set_debug_subsystems(self):
        subsystem_filter = SubsystemFilter("dirchanges")
        subsystem_filter.set_debug_subsystems([DIRCHANGES_SUBSYSTEM_WATCHER])
        record = logging.LogRecord(
            "dirchanges.watch", logging.DEBUG, __file__, 1, "msg", None, None
        )
        record.subsystem = DIRCHANGES_SUBSYSTEM_WATCHER
        self.assertTrue(subsystem_filter.filter(record))

    def test_watched_path_deleted_error(self):
        err = dirchanges.DirchangesWatchedPathDeletedError(["/b", "/a"])
        self.assertEqual(err.paths, ["/a", "/b"])
        self.assertIn("/a, /b", str(err))
        self.assertIsInstance(err, dirchanges.DirchangesError)

    def test_exception_hierarchy(self):
        for exc in (
            dirchanges.DirchangesSystemError,
            dirchanges.DirchangesNotFoundError,
            dirchanges.DirchangesFilterError,
            dirchanges.DirchangesArgumentError,
            dirchanges.DirchangesStateError,
        ):
            self.assertTrue(issubclass(exc, dirchanges.DirchangesError))
