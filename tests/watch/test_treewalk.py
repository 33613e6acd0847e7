# Copyright Red Hat
#
# tests/watch/test_treewalk.py - FileInfo and TreeWalker tests.
#
# This file is part of the dirchanges project.
#
# SPDX-License-Identifier: Apache-2.0
import unittest
import stat
import os
from unittest.mock import patch

from dirchanges import DirchangesNotFoundError, DirchangesSystemError
from dirchanges.watch.filters import FilterResult, PathFilter
from dirchanges.watch.treewalk import FileId, FileInfo, TreeWalker

from ._util import make_info, make_tree, remove_tree


class TestFileInfo(unittest.TestCase):
    def test_from_stat(self):
        st = os.stat_result(
            (stat.S_IFREG | 0o644, 99, 2049, 1, 1000, 1000, 10, 0, 1, 2)
        )
        info = FileInfo.from_stat("file.txt", st)
        self.assertEqual(info.name, "file.txt")
        self.assertEqual(info.size, 10)
        self.assertEqual(info.mode, stat.S_IFREG | 0o644)
        self.assertFalse(info.is_dir)
        self.assertEqual(info.file_id, FileId(2049, 99))

    def test_from_stat_no_identity(self):
        st = os.stat_result((stat.S_IFREG | 0o644, 0, 0, 1, 0, 0, 0, 0, 0, 0))
        info = FileInfo.from_stat("file.txt", st)
        self.assertIsNone(info.file_id)

    def test_from_stat_directory(self):
        st = os.stat_result((stat.S_IFDIR | 0o755, 5, 1, 2, 0, 0, 4096, 0, 0, 0))
        info = FileInfo.from_stat("sub", st)
        self.assertTrue(info.is_dir)
        self.assertEqual(info.type_desc, "directory")

    def test_type_desc(self):
        self.assertEqual(make_info("f").type_desc, "file")
        self.assertEqual(make_info("l", mode=stat.S_IFLNK | 0o777).type_desc, "symbolic link")
        self.assertEqual(make_info("p", mode=stat.S_IFIFO | 0o644).type_desc, "FIFO")

    def test_same_file(self):
        a = make_info("a", ino=1)
        b = make_info("b", ino=1)
        c = make_info("c", ino=2)
        self.assertTrue(a.same_file(b))
        self.assertFalse(a.same_file(c))
        self.assertFalse(make_info("x").same_file(make_info("y")))

    def test_equality(self):
        self.assertEqual(make_info("a", ino=1), make_info("a", ino=1))
        self.assertNotEqual(make_info("a", ino=1, mtime_ns=1), make_info("a", ino=1, mtime_ns=2))

    def test_mtime(self):
        info = make_info("a", mtime_ns=1500000000 * 10**9)
        self.assertEqual(info.mtime, 1500000000.0)

    def test__str__(self):
        s = str(make_info("a.txt", ino=3))
        self.assertIn("name: a.txt", s)
        self.assertIn("type: file", s)
        self.assertIn("file_id: (2049, 3)", s)

    def test_to_dict(self):
        d = make_info("a.txt", size=5, ino=3).to_dict()
        self.assertEqual(d["name"], "a.txt")
        self.assertEqual(d["size"], 5)
        self.assertEqual(d["file_id"], [2049, 3])
        self.assertFalse(d["is_dir"])


class TestTreeWalker(unittest.TestCase):
    def setUp(self):
        self.test_dir = make_tree()
        self.path_filter = PathFilter()
        self.walker = TreeWalker(self.path_filter)

    def tearDown(self):
        remove_tree(self.test_dir)

    def test_list_path_directory(self):
        tree = self.walker.list_path(self.test_dir)
        # Root plus six children.
        self.assertEqual(len(tree), 7)
        self.assertIn(self.test_dir, tree)
        self.assertIn(os.path.join(self.test_dir, "testDirTwo"), tree)
        self.assertNotIn(
            os.path.join(self.test_dir, "testDirTwo", "file_recursive.txt"), tree
        )

    def test_list_path_file(self):
        fname = os.path.join(self.test_dir, "file.txt")
        tree = self.walker.list_path(fname)
        self.assertEqual(len(tree), 1)
        self.assertEqual(tree[fname].name, "file.txt")

    def test_walk_path(self):
        tree = self.walker.walk_path(self.test_dir)
        self.assertEqual(len(tree), 8)
        self.assertIn(
            os.path.join(self.test_dir, "testDirTwo", "file_recursive.txt"), tree
        )

    def test_walk_path_hidden(self):
        self.path_filter.ignore_hidden = True
        tree = self.walker.walk_path(self.test_dir)
        self.assertEqual(len(tree), 7)
        self.assertNotIn(os.path.join(self.test_dir, ".dotfile"), tree)

    def test_walk_path_prunes_skipped_directory(self):
        def _skip_dir_two(info, _path):
            return FilterResult.skip() if info.name == "testDirTwo" else None

        self.path_filter.add_hook(_skip_dir_two)
        tree = self.walker.walk_path(self.test_dir)
        self.assertEqual(len(tree), 6)
        for path in tree:
            self.assertNotIn("testDirTwo", path)

    def test_walk_path_ignored_directory(self):
        self.path_filter.ignored.add(os.path.join(self.test_dir, "testDirTwo"))
        tree = self.walker.walk_path(self.test_dir)
        self.assertEqual(len(tree), 6)

    def test_list_path_not_found(self):
        with self.assertRaises(DirchangesNotFoundError):
            self.walker.list_path(os.path.join(self.test_dir, "missing"))

    def test_walk_path_not_found(self):
        with self.assertRaises(DirchangesNotFoundError):
            self.walker.walk_path(os.path.join(self.test_dir, "missing"))

    def test_stat_path_permission_error(self):
        with patch("os.stat", side_effect=PermissionError("denied")):
            with self.assertRaises(DirchangesSystemError):
                self.walker.stat_path(self.test_dir)

    def test_listdir_error(self):
        with patch("os.listdir", side_effect=PermissionError("denied")):
            with self.assertRaises(DirchangesSystemError):
                self.walker.list_path(self.test_dir)

    def test_vanished_child_skipped(self):
        real_lstat = os.lstat
        vanished = os.path.join(self.test_dir, "file_2.txt")

        def _lstat(path, *args, **kwargs):
            if path == vanished:
                raise FileNotFoundError(path)
            return real_lstat(path, *args, **kwargs)

        with patch("os.lstat", side_effect=_lstat):
            tree = self.walker.list_path(self.test_dir)
        self.assertEqual(len(tree), 6)
        self.assertNotIn(vanished, tree)

    def test_child_lstat_error(self):
        real_lstat = os.lstat
        broken = os.path.join(self.test_dir, "file_1.txt")

        def _lstat(path, *args, **kwargs):
            if path == broken:
                raise OSError(5, "Input/output error")
            return real_lstat(path, *args, **kwargs)

        with patch("os.lstat", side_effect=_lstat):
            with self.assertRaises(DirchangesSystemError):
                self.walker.list_path(self.test_dir)

    def test_symlink_child_not_followed(self):
        link = os.path.join(self.test_dir, "link")
        os.symlink(os.path.join(self.test_dir, "testDirTwo"), link)
        tree = self.walker.walk_path(self.test_dir)
        self.assertTrue(tree[link].is_symlink)
        self.assertFalse(tree[link].is_dir)
        self.assertNotIn(os.path.join(link, "file_recursive.txt"), tree)
