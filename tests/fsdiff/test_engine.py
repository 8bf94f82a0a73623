# Copyright Red Hat
#
# tests/fsdiff/test_engine.py - Tree diff engine tests.
#
# This file is part of the mirrordiff project.
#
# SPDX-License-Identifier: Apache-2.0
import unittest
import json
from unittest.mock import MagicMock, patch

from mirrordiff.fsdiff.archive import (
    LABEL_NOT_TEXT,
    ArchiveDiffer,
    ArchiveMemberDiff,
    ArchiveResult,
    MemberCategory,
)
from mirrordiff.fsdiff.engine import (
    DiffEngine,
    DiffEntry,
    DiffKind,
    DiffResults,
    format_mtime,
)
from mirrordiff.fsdiff.options import DiffOptions
from mirrordiff.fsdiff.treewalk import FileEntry

from ._util import make_entry


class TestDiffEngine(unittest.TestCase):
    def test_identical_trees(self):
        entries = [make_entry("a"), make_entry("d", is_dir=True), make_entry("d/b")]
        engine = DiffEngine()
        self.assertEqual(engine.diff(entries, list(entries), "/a", "/b"), [])

    def test_identical_trees_with_hashes(self):
        entries = [make_entry("a", content_hash="0" * 64)]
        engine = DiffEngine(DiffOptions(content_hash=True))
        self.assertEqual(engine.diff(entries, list(entries), "/a", "/b"), [])

    def test_empty_mirror(self):
        entries = [make_entry("a"), make_entry("b")]
        diffs = DiffEngine().diff(entries, [], "/a", "/b")
        self.assertEqual([d.kind for d in diffs], [DiffKind.ONLY_A] * 2)
        self.assertEqual([d.path for d in diffs], ["a", "b"])
        self.assertIsNone(diffs[0].entry_b)

    def test_empty_primary(self):
        entries = [make_entry("a"), make_entry("b")]
        diffs = DiffEngine().diff([], entries, "/a", "/b")
        self.assertEqual([d.kind for d in diffs], [DiffKind.ONLY_B] * 2)
        self.assertIsNone(diffs[0].entry_a)

    def test_output_order(self):
        entries_a = [make_entry("a"), make_entry("b", size=1), make_entry("c")]
        entries_b = [make_entry("a"), make_entry("b", size=2), make_entry("d")]
        diffs = DiffEngine().diff(entries_a, entries_b, "/a", "/b")
        self.assertEqual(
            [(d.kind, d.path) for d in diffs],
            [
                (DiffKind.CHANGED, "b"),
                (DiffKind.ONLY_A, "c"),
                (DiffKind.ONLY_B, "d"),
            ],
        )

    def test_mode_difference(self):
        diffs = DiffEngine().diff(
            [make_entry("run.sh", mode=0o755)],
            [make_entry("run.sh", mode=0o644)],
            "/a",
            "/b",
        )
        self.assertEqual(diffs[0].details, ("mode: -rwxr-xr-x vs -rw-r--r--",))

    def test_size_difference(self):
        diffs = DiffEngine().diff(
            [make_entry("f", size=10)], [make_entry("f", size=20)], "/a", "/b"
        )
        self.assertEqual(diffs[0].details, ("size: 10 vs 20",))

    def test_hash_difference(self):
        engine = DiffEngine(DiffOptions(content_hash=True))
        diffs = engine.diff(
            [make_entry("f", content_hash="a" * 64)],
            [make_entry("f", content_hash="b" * 64)],
            "/a",
            "/b",
        )
        self.assertEqual(diffs[0].details, ("hash: aaaaaaaaaaaa vs bbbbbbbbbbbb",))

    def test_hash_and_size_difference(self):
        engine = DiffEngine(DiffOptions(content_hash=True))
        diffs = engine.diff(
            [make_entry("f", size=1, content_hash="a" * 64)],
            [make_entry("f", size=2, content_hash="b" * 64)],
            "/a",
            "/b",
        )
        self.assertEqual(
            diffs[0].details,
            ("hash: aaaaaaaaaaaa vs bbbbbbbbbbbb", "size: 1 vs 2"),
        )

    def test_hashes_ignored_when_disabled(self):
        diffs = DiffEngine().diff(
            [make_entry("f", content_hash="a" * 64)],
            [make_entry("f", content_hash="b" * 64)],
            "/a",
            "/b",
        )
        self.assertEqual(diffs, [])

    def test_directories_compare_mode_and_time_only(self):
        entry_a = make_entry("d", is_dir=True, mtime=0)
        entry_b = FileEntry(path="d", size=4096, mode=entry_a.mode, mtime=60)
        engine = DiffEngine(DiffOptions(compare_timestamps=True))
        diffs = engine.diff([entry_a], [entry_b], "/a", "/b")
        self.assertEqual(
            diffs[0].details,
            ("modified: 1970-01-01 00:00:00 vs 1970-01-01 00:01:00",),
        )

    def test_timestamps_ignored_by_default(self):
        diffs = DiffEngine().diff(
            [make_entry("f", mtime=0)], [make_entry("f", mtime=60)], "/a", "/b"
        )
        self.assertEqual(diffs, [])

    def test_detail_order(self):
        engine = DiffEngine(DiffOptions(compare_timestamps=True))
        diffs = engine.diff(
            [make_entry("f", mode=0o600, size=1, mtime=0)],
            [make_entry("f", mode=0o644, size=2, mtime=60)],
            "/a",
            "/b",
        )
        self.assertEqual(
            [d.split(":")[0] for d in diffs[0].details], ["mode", "size", "modified"]
        )

    def test_archive_inspected_on_size_difference(self):
        member = ArchiveMemberDiff(
            "word/styles.xml", MemberCategory.STYLE, "hash differs"
        )
        archive_differ = MagicMock(spec=ArchiveDiffer)
        archive_differ.analyze.return_value = ArchiveResult(LABEL_NOT_TEXT, (member,))
        engine = DiffEngine(archive_differ=archive_differ)
        diffs = engine.diff(
            [make_entry("docs/r.docx", size=1)],
            [make_entry("docs/r.docx", size=2)],
            "/a",
            "/b",
        )
        archive_differ.analyze.assert_called_once_with("/a/docs/r.docx", "/b/docs/r.docx")
        self.assertEqual(diffs[0].details, ("size: 1 vs 2", LABEL_NOT_TEXT))
        self.assertEqual(diffs[0].archive_details, (member,))

    def test_archive_not_inspected_without_size_difference(self):
        archive_differ = MagicMock(spec=ArchiveDiffer)
        engine = DiffEngine(archive_differ=archive_differ)
        engine.diff(
            [make_entry("r.docx", mode=0o600)],
            [make_entry("r.docx", mode=0o644)],
            "/a",
            "/b",
        )
        archive_differ.analyze.assert_not_called()

    def test_other_files_not_inspected(self):
        archive_differ = MagicMock(spec=ArchiveDiffer)
        engine = DiffEngine(archive_differ=archive_differ)
        engine.diff([make_entry("r.zip", size=1)], [make_entry("r.zip", size=2)], "/a", "/b")
        archive_differ.analyze.assert_not_called()

    def test_magic_file_type_confirms_archive(self):
        archive_differ = MagicMock(spec=ArchiveDiffer)
        engine = DiffEngine(
            DiffOptions(use_magic_file_type=True), archive_differ=archive_differ
        )
        with patch(
            "mirrordiff.fsdiff.engine.is_archive_content", return_value=False
        ) as mock_content:
            diffs = engine.diff(
                [make_entry("r.docx", size=1)], [make_entry("r.docx", size=2)], "/a", "/b"
            )
        mock_content.assert_called_once_with("/a/r.docx")
        archive_differ.analyze.assert_not_called()
        self.assertEqual(diffs[0].details, ("size: 1 vs 2",))


class TestDiffEntry(unittest.TestCase):
    def test_is_dir(self):
        self.assertTrue(
            DiffEntry(DiffKind.ONLY_B, "d", entry_b=make_entry("d", is_dir=True)).is_dir
        )
        self.assertFalse(DiffEntry(DiffKind.ONLY_A, "f", entry_a=make_entry("f")).is_dir)

    def test_to_dict(self):
        member = ArchiveMemberDiff("word/document.xml", MemberCategory.TEXT, "only in A")
        entry = DiffEntry(
            DiffKind.CHANGED,
            "f.docx",
            entry_a=make_entry("f.docx", size=1),
            entry_b=make_entry("f.docx", size=2),
            details=("size: 1 vs 2", "docx:text"),
            archive_details=(member,),
        )
        out = entry.to_dict()
        self.assertEqual(out["kind"], "changed")
        self.assertEqual(out["details"], ["size: 1 vs 2", "docx:text"])
        self.assertEqual(out["entry_a"]["size"], 1)
        self.assertEqual(out["entry_b"]["mode"], "-rw-r--r--")
        self.assertEqual(out["archive_details"][0]["category"], "text")

    def test_format_mtime(self):
        self.assertEqual(format_mtime(86400), "1970-01-02 00:00:00")


class TestDiffResults(unittest.TestCase):
    def setUp(self):
        self.entries = [
            DiffEntry(DiffKind.ONLY_A, "a", entry_a=make_entry("a")),
            DiffEntry(DiffKind.ONLY_B, "b", entry_b=make_entry("b")),
            DiffEntry(
                DiffKind.CHANGED,
                "c",
                entry_a=make_entry("c", size=1),
                entry_b=make_entry("c", size=2),
                details=("size: 1 vs 2",),
            ),
            DiffEntry(
                DiffKind.SYNCED,
                "d",
                entry_a=make_entry("d"),
                entry_b=make_entry("d"),
            ),
        ]
        self.results = DiffResults(self.entries, "/a", "/b")

    def test_list_interface(self):
        self.assertEqual(len(self.results), 4)
        self.assertIs(self.results[0], self.entries[0])
        self.assertEqual(self.results.paths(), ["a", "b", "c", "d"])

    def test_kinds(self):
        self.assertEqual([e.path for e in self.results.only_a], ["a"])
        self.assertEqual([e.path for e in self.results.only_b], ["b"])
        self.assertEqual([e.path for e in self.results.changed], ["c"])
        self.assertEqual([e.path for e in self.results.synced], ["d"])
        self.assertEqual(self.results.unresolved, 3)

    def test_json(self):
        decoded = json.loads(self.results.json())
        self.assertEqual([d["kind"] for d in decoded], ["only_a", "only_b", "changed", "synced"])
        self.assertIn("\n", self.results.json(pretty=True))
