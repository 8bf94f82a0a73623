# Copyright Red Hat
#
# mirrordiff/fsdiff/__init__.py - Mirror differ fs differ package
#
# This file is part of the mirrordiff project.
#
# SPDX-License-Identifier: Apache-2.0
"""
File system diff package.

Provides mirror tree comparison facilities including tree walking with
gitignore-style exclusion, document archive inspection, LCS text diffs and
reconciliation of auto-fixable differences. The main entry points are
``FsDiffer`` and ``DiffOptions``.
"""
from .archive import ArchiveDiffer, ArchiveMemberDiff, ArchiveResult, MemberCategory
from .engine import DiffEngine, DiffEntry, DiffKind, DiffResults
from .fsdiffer import FsDiffer
from .ignore import IgnoreMatcher, IgnorePattern
from .options import DiffOptions
from .render import render_diffs
from .sync import SyncFailure, SyncReconciler, SyncResults
from .textdiff import TextDiffer
from .treewalk import FileEntry, TreeWalker

__all__ = [
    "ArchiveDiffer",
    "ArchiveMemberDiff",
    "ArchiveResult",
    "DiffEngine",
    "DiffEntry",
    "DiffKind",
    "DiffOptions",
    "DiffResults",
    "FileEntry",
    "FsDiffer",
    "IgnoreMatcher",
    "IgnorePattern",
    "MemberCategory",
    "SyncFailure",
    "SyncReconciler",
    "SyncResults",
    "TextDiffer",
    "TreeWalker",
    "render_diffs",
]
