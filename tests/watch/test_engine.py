# Copyright Red Hat
#
# tests/watch/test_engine.py - Diff engine tests.
#
# This file is part of the dirchanges project.
#
# SPDX-License-Identifier: Apache-2.0
import unittest
import stat
import json

from dirchanges.watch.engine import DiffEngine, DiffResults, Event
from dirchanges.watch.optypes import Op

from ._util import make_info

ROOT = "/watched"


def _path(name):
    return f"{ROOT}/{name}"


class TestEvent(unittest.TestCase):
    def test_Event__str__file(self):
        event = Event(Op.CREATE, _path("file.txt"), "", make_info("file.txt"))
        self.assertEqual(str(event), f'FILE "file.txt" CREATE [{ROOT}/file.txt]')

    def test_Event__str__directory(self):
        event = Event(Op.REMOVE, _path("sub"), _path("sub"), make_info("sub", is_dir=True))
        self.assertEqual(str(event), f'DIRECTORY "sub" REMOVE [{ROOT}/sub]')

    def test_Event_name(self):
        event = Event(Op.WRITE, _path("a.txt"), "", make_info("a.txt"))
        self.assertEqual(event.name, "a.txt")

    def test_Event_to_dict(self):
        event = Event(Op.MOVE, _path("b/a.txt"), _path("a.txt"), make_info("a.txt", ino=7))
        d = event.to_dict()
        self.assertEqual(d["op"], "move")
        self.assertEqual(d["path"], _path("b/a.txt"))
        self.assertEqual(d["old_path"], _path("a.txt"))
        self.assertEqual(d["info"]["file_id"], [2049, 7])


class TestDiffEngine(unittest.TestCase):
    def setUp(self):
        self.engine = DiffEngine()

    def test_identical_snapshots(self):
        snap = {_path("a"): make_info("a", ino=1), _path("b"): make_info("b", ino=2)}
        results = self.engine.compute_diff(snap, dict(snap))
        self.assertEqual(len(results), 0)

    def test_empty_snapshots(self):
        results = self.engine.compute_diff({}, {})
        self.assertEqual(len(results), 0)

    def test_create(self):
        old = {}
        new = {_path("a"): make_info("a", ino=1)}
        results = self.engine.compute_diff(old, new)
        self.assertEqual(len(results), 1)
        event = results[0]
        self.assertEqual(event.op, Op.CREATE)
        self.assertEqual(event.path, _path("a"))
        self.assertEqual(event.old_path, "")

    def test_remove(self):
        old = {_path("a"): make_info("a", ino=1)}
        results = self.engine.compute_diff(old, {})
        self.assertEqual(len(results), 1)
        event = results[0]
        self.assertEqual(event.op, Op.REMOVE)
        self.assertEqual(event.path, _path("a"))
        self.assertEqual(event.old_path, _path("a"))
        self.assertEqual(event.info, old[_path("a")])

    def test_write(self):
        old = {_path("a"): make_info("a", ino=1, mtime_ns=100)}
        new = {_path("a"): make_info("a", ino=1, mtime_ns=200)}
        results = self.engine.compute_diff(old, new)
        self.assertEqual([e.op for e in results], [Op.WRITE])
        self.assertEqual(results[0].info, new[_path("a")])
        self.assertEqual(results[0].old_path, "")

    def test_chmod(self):
        old = {_path("a"): make_info("a", ino=1, mode=stat.S_IFREG | 0o644)}
        new = {_path("a"): make_info("a", ino=1, mode=stat.S_IFREG | 0o600)}
        results = self.engine.compute_diff(old, new)
        self.assertEqual([e.op for e in results], [Op.CHMOD])
        self.assertEqual(results[0].info, new[_path("a")])

    def test_write_and_chmod_independent(self):
        old = {_path("a"): make_info("a", ino=1, mtime_ns=1, mode=stat.S_IFREG | 0o644)}
        new = {_path("a"): make_info("a", ino=1, mtime_ns=2, mode=stat.S_IFREG | 0o600)}
        results = self.engine.compute_diff(old, new)
        self.assertEqual(sorted(e.op.value for e in results), ["chmod", "write"])

    def test_size_change_alone_is_not_a_write(self):
        old = {_path("a"): make_info("a", ino=1, size=1)}
        new = {_path("a"): make_info("a", ino=1, size=2)}
        self.assertEqual(len(self.engine.compute_diff(old, new)), 0)

    def test_rename_same_parent(self):
        old = {_path("a.txt"): make_info("a.txt", ino=42)}
        new = {_path("b.txt"): make_info("b.txt", ino=42)}
        results = self.engine.compute_diff(old, new)
        self.assertEqual(len(results), 1)
        event = results[0]
        self.assertEqual(event.op, Op.RENAME)
        self.assertEqual(event.path, _path("b.txt"))
        self.assertEqual(event.old_path, _path("a.txt"))
        # Correlated events carry the old metadata.
        self.assertEqual(event.info, old[_path("a.txt")])

    def test_move_different_parent(self):
        old = {_path("a.txt"): make_info("a.txt", ino=42)}
        new = {_path("sub/a.txt"): make_info("a.txt", ino=42)}
        results = self.engine.compute_diff(old, new)
        self.assertEqual(len(results), 1)
        self.assertEqual(results[0].op, Op.MOVE)
        self.assertEqual(results[0].path, _path("sub/a.txt"))
        self.assertEqual(results[0].old_path, _path("a.txt"))

    def test_different_identity_is_remove_and_create(self):
        old = {_path("a.txt"): make_info("a.txt", ino=1)}
        new = {_path("b.txt"): make_info("b.txt", ino=2)}
        results = self.engine.compute_diff(old, new)
        self.assertEqual(len(results.created), 1)
        self.assertEqual(len(results.removed), 1)
        self.assertEqual(len(results.renamed), 0)

    def test_no_identity_never_correlates(self):
        old = {_path("a.txt"): make_info("a.txt")}
        new = {_path("b.txt"): make_info("b.txt")}
        results = self.engine.compute_diff(old, new)
        self.assertEqual(sorted(e.op.value for e in results), ["create", "remove"])

    def test_removed_candidate_consumed_once(self):
        # Two new paths share the identity of a single removed path.
        old = {_path("a"): make_info("a", ino=5)}
        new = {_path("b"): make_info("b", ino=5), _path("c"): make_info("c", ino=5)}
        results = self.engine.compute_diff(old, new)
        self.assertEqual(len(results.renamed), 1)
        self.assertEqual(results.renamed[0].path, _path("b"))
        self.assertEqual([e.path for e in results.created], [_path("c")])
        self.assertEqual(len(results.removed), 0)

    def test_duplicate_identity_first_in_path_order(self):
        old = {_path("z"): make_info("z", ino=5), _path("m"): make_info("m", ino=5)}
        new = {_path("n"): make_info("n", ino=5)}
        results = self.engine.compute_diff(old, new)
        self.assertEqual(len(results.renamed), 1)
        self.assertEqual(results.renamed[0].old_path, _path("m"))
        self.assertEqual([e.path for e in results.removed], [_path("z")])

    def test_rename_plus_parent_write(self):
        old = {
            ROOT: make_info("watched", is_dir=True, ino=1, mtime_ns=1),
            _path("a"): make_info("a", ino=2),
        }
        new = {
            ROOT: make_info("watched", is_dir=True, ino=1, mtime_ns=2),
            _path("b"): make_info("b", ino=2),
        }
        results = self.engine.compute_diff(old, new)
        self.assertEqual(sorted(e.op.value for e in results), ["rename", "write"])

    def test_op_filter(self):
        old = {_path("keep"): make_info("keep", ino=1, mtime_ns=1)}
        new = {
            _path("keep"): make_info("keep", ino=1, mtime_ns=2),
            _path("new_1"): make_info("new_1", ino=2),
            _path("new_2"): make_info("new_2", ino=3),
            _path("new_3"): make_info("new_3", ino=4),
        }
        results = self.engine.compute_diff(old, new, ops=[Op.CREATE])
        self.assertEqual(len(results), 3)
        for event in results:
            self.assertEqual(event.op, Op.CREATE)
            self.assertEqual(event.old_path, "")
            self.assertEqual(event.path, _path(event.name))

    def test_op_filter_empty_reports_all(self):
        old = {_path("a"): make_info("a", ino=1)}
        results = self.engine.compute_diff(old, {}, ops=[])
        self.assertEqual(len(results), 1)

    def test_timestamp(self):
        results = self.engine.compute_diff({}, {}, timestamp=1700000000)
        self.assertEqual(results.timestamp, 1700000000)


class TestDiffResults(unittest.TestCase):
    def setUp(self):
        self.events = [
            Event(Op.WRITE, _path("b"), "", make_info("b", ino=2)),
            Event(Op.CREATE, _path("a"), "", make_info("a", ino=1)),
            Event(Op.RENAME, _path("d"), _path("c"), make_info("c", ino=3)),
            Event(Op.CHMOD, _path("b"), "", make_info("b", ino=2)),
        ]
        self.results = DiffResults(self.events, timestamp=1700000000)

    def test_accessors(self):
        self.assertEqual(len(self.results), 4)
        self.assertEqual(len(self.results.created), 1)
        self.assertEqual(len(self.results.written), 1)
        self.assertEqual(len(self.results.renamed), 1)
        self.assertEqual(len(self.results.chmodded), 1)
        self.assertEqual(self.results.removed, [])
        self.assertEqual(self.results.moved, [])
        self.assertEqual(list(self.results), self.events)

    def test_sorted(self):
        ordered = self.results.sorted()
        self.assertEqual(
            [(e.path, e.op) for e in ordered],
            [
                (_path("a"), Op.CREATE),
                (_path("b"), Op.CHMOD),
                (_path("b"), Op.WRITE),
                (_path("d"), Op.RENAME),
            ],
        )

    def test_paths(self):
        self.assertEqual(self.results.paths(), [_path("a"), _path("b"), _path("d")])

    def test_short(self):
        lines = self.results.short(color="never").splitlines()
        self.assertEqual(lines[0], f'FILE "a" CREATE [{ROOT}/a]')
        self.assertEqual(lines[-1], f'FILE "c" RENAME [{ROOT}/d] (from {ROOT}/c)')

    def test_full(self):
        full = self.results.full()
        self.assertIn(f"Path: {ROOT}/d", full)
        self.assertIn(f"old_path: {ROOT}/c", full)
        self.assertIn("op: rename", full)

    def test_json(self):
        decoded = json.loads(self.results.json(pretty=True))
        self.assertEqual(len(decoded), 4)
        self.assertEqual(decoded[0]["op"], "create")

    def test_summary(self):
        summary = self.results.summary(color="never")
        self.assertIn("Total changes:  4", summary)
        self.assertIn("create:  1", summary)
        self.assertIn("remove:  0", summary)
