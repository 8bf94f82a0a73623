# Copyright Red Hat
#
# tests/fsdiff/test_treewalk.py - Tree walker tests.
#
# This file is part of the mirrordiff project.
#
# SPDX-License-Identifier: Apache-2.0
import unittest
import tempfile
import stat
import os
from io import StringIO
from unittest.mock import patch

from mirrordiff import MirrordiffSystemError
from mirrordiff.fsdiff.options import DiffOptions
from mirrordiff.fsdiff.treewalk import FileEntry, TreeWalker

from ._util import make_entry, write_file

_ABC_SHA256 = "ba7816bf8f01cfea414140de5dae2223b00361a396177a9cb410ff61f20015ad"


class TestFileEntry(unittest.TestCase):
    def test_file_properties(self):
        entry = make_entry("a/b.txt", mode=0o640)
        self.assertTrue(entry.is_file)
        self.assertFalse(entry.is_dir)
        self.assertFalse(entry.is_symlink)
        self.assertEqual(entry.mode_str, "-rw-r-----")

    def test_dir_properties(self):
        entry = make_entry("a", is_dir=True)
        self.assertTrue(entry.is_dir)
        self.assertFalse(entry.is_file)
        self.assertEqual(entry.mode_str, "drwxr-xr-x")

    def test_symlink_properties(self):
        entry = make_entry("l", is_symlink=True, mode=stat.S_IFLNK | 0o777)
        self.assertTrue(entry.is_symlink)
        self.assertFalse(entry.is_file)

    def test_to_dict(self):
        entry = make_entry("f", size=3, mtime=10, content_hash=_ABC_SHA256)
        self.assertEqual(
            entry.to_dict(),
            {
                "path": "f",
                "size": 3,
                "mode": "-rw-r--r--",
                "mtime": 10,
                "is_dir": False,
                "content_hash": _ABC_SHA256,
            },
        )


class TestTreeWalker(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.root = self._tmp.name
        self.walker = TreeWalker(DiffOptions(quiet=True))

    def tearDown(self):
        self._tmp.cleanup()

    def _paths(self, entries):
        return [entry.path for entry in entries]

    def test_empty_tree(self):
        self.assertEqual(self.walker.walk_tree(self.root), [])

    def test_entries_are_sorted_and_relative(self):
        write_file(self.root, "b", b"b")
        write_file(self.root, "a/c", b"c")
        write_file(self.root, "a/b", b"b")
        entries = self.walker.walk_tree(self.root)
        self.assertEqual(self._paths(entries), ["a", "a/b", "a/c", "b"])
        self.assertTrue(entries[0].is_dir)
        self.assertTrue(entries[1].is_file)
        self.assertEqual(entries[1].size, 1)

    def test_ignored_directory_is_pruned(self):
        write_file(self.root, ".gitignore", "node_modules/\n")
        write_file(self.root, "node_modules/pkg/index.js", b"x")
        write_file(self.root, "src/main.js", b"x")
        with patch("os.lstat", wraps=os.lstat) as mock_lstat:
            entries = self.walker.walk_tree(self.root)
        self.assertEqual(self._paths(entries), [".gitignore", "src", "src/main.js"])
        for call in mock_lstat.call_args_list:
            self.assertNotIn("node_modules", call.args[0])

    def test_ignored_file_pattern(self):
        write_file(self.root, ".gitignore", "*.log\n!keep.log\n")
        write_file(self.root, "a.log", b"x")
        write_file(self.root, "keep.log", b"x")
        write_file(self.root, "sub/b.log", b"x")
        entries = self.walker.walk_tree(self.root)
        self.assertEqual(self._paths(entries), [".gitignore", "keep.log", "sub"])

    def test_git_directory_always_excluded(self):
        write_file(self.root, ".git/HEAD", b"ref: refs/heads/main\n")
        write_file(self.root, "sub/.git", b"gitdir: ../.git\n")
        write_file(self.root, "file", b"x")
        entries = self.walker.walk_tree(self.root)
        self.assertEqual(self._paths(entries), ["file", "sub"])

    def test_custom_exclusions(self):
        write_file(self.root, ".mirrorignore", "*.bak\n")
        write_file(self.root, "a.bak", b"x")
        write_file(self.root, "cache/x", b"x")
        walker = TreeWalker(
            DiffOptions(quiet=True),
            always_exclude=["cache"],
            rules_file=".mirrorignore",
        )
        self.assertEqual(self._paths(walker.walk_tree(self.root)), [".mirrorignore"])

    def test_symlinked_directory_not_followed(self):
        write_file(self.root, "real/file", b"x")
        os.symlink(os.path.join(self.root, "real"), os.path.join(self.root, "link"))
        entries = self.walker.walk_tree(self.root)
        self.assertEqual(self._paths(entries), ["link", "real", "real/file"])
        self.assertTrue(entries[0].is_symlink)

    def test_no_hash_by_default(self):
        write_file(self.root, "f", b"abc")
        entries = self.walker.walk_tree(self.root)
        self.assertIsNone(entries[0].content_hash)

    def test_content_hash(self):
        write_file(self.root, "f", b"abc")
        write_file(self.root, "d/g", b"")
        walker = TreeWalker(DiffOptions(content_hash=True, quiet=True))
        entries = {e.path: e for e in walker.walk_tree(self.root)}
        self.assertEqual(entries["f"].content_hash, _ABC_SHA256)
        self.assertIsNone(entries["d"].content_hash)
        self.assertEqual(
            entries["d/g"].content_hash,
            "e3b0c44298fc1c149afbf4c8996fb92427ae41e4649b934ca495991b7852b855",
        )

    def test_content_hash_algorithm(self):
        write_file(self.root, "f", b"abc")
        walker = TreeWalker(
            DiffOptions(content_hash=True, hash_algorithm="md5", quiet=True)
        )
        entries = walker.walk_tree(self.root)
        self.assertEqual(entries[0].content_hash, "900150983cd24fb0d6963f7d28e17f72")

    def test_unreadable_file_has_empty_hash(self):
        walker = TreeWalker(DiffOptions(content_hash=True, quiet=True))
        self.assertEqual(walker._calculate_content_hash(self.root), "")
        self.assertEqual(
            walker._calculate_content_hash(os.path.join(self.root, "missing")), ""
        )

    def test_vanished_entry_is_skipped(self):
        write_file(self.root, "stays", b"x")
        gone = write_file(self.root, "gone", b"x")
        real_lstat = os.lstat

        def _lstat(path, *args, **kwargs):
            if path == gone:
                raise FileNotFoundError(path)
            return real_lstat(path, *args, **kwargs)

        with patch("os.lstat", side_effect=_lstat):
            entries = self.walker.walk_tree(self.root)
        self.assertEqual(self._paths(entries), ["stays"])

    def test_missing_root(self):
        with self.assertRaises(MirrordiffSystemError):
            self.walker.walk_tree(os.path.join(self.root, "missing"))

    def test_root_not_a_directory(self):
        path = write_file(self.root, "file", b"x")
        with self.assertRaises(MirrordiffSystemError):
            self.walker.walk_tree(path)

    def test_progress_output(self):
        write_file(self.root, "a", b"x")
        write_file(self.root, "b", b"x")
        stream = StringIO()
        walker = TreeWalker(DiffOptions())
        walker.walk_tree(self.root, label="A", term_stream=stream)
        output = stream.getvalue()
        self.assertTrue(output.startswith("Scanning A: .."))
        self.assertTrue(output.rstrip().endswith("2 files... done."))

    def test_quiet_has_no_progress_output(self):
        write_file(self.root, "a", b"x")
        stream = StringIO()
        self.walker.walk_tree(self.root, label="A", term_stream=stream)
        self.assertEqual(stream.getvalue(), "")

    def test_entry_values_match_lstat(self):
        path = write_file(self.root, "f", b"12345", mode=0o600)
        entry = self.walker.walk_tree(self.root)[0]
        st = os.lstat(path)
        self.assertEqual(
            entry,
            FileEntry(path="f", size=5, mode=st.st_mode, mtime=st.st_mtime),
        )
