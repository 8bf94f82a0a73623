# Copyright Red Hat
#
# mirrordiff/fsdiff/engine.py - Mirror differ diff engine
#
# This file is part of the mirrordiff project.
#
# SPDX-License-Identifier: Apache-2.0
"""
Tree diff engine
"""
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
import logging
import json
import os

from mirrordiff import MIRRORDIFF_SUBSYSTEM_DIFF

from .archive import ArchiveDiffer, ArchiveMemberDiff, is_archive
from .filetypes import is_archive_content
from .options import DiffOptions
from .treewalk import FileEntry

_log = logging.getLogger(__name__)

_log_debug = _log.debug
_log_info = _log.info
_log_warn = _log.warning
_log_error = _log.error


def _log_debug_diff(msg, *args, **kwargs):
    """A wrapper for diff subsystem debug logs."""
    _log.debug(msg, *args, extra={"subsystem": MIRRORDIFF_SUBSYSTEM_DIFF}, **kwargs)


#: Detail prefixes produced by the entry comparison.
MODE_DETAIL = "mode:"
HASH_DETAIL = "hash:"
SIZE_DETAIL = "size:"
MODIFIED_DETAIL = "modified:"

#: Number of hash digits shown in a hash detail.
_HASH_PREFIX_LEN = 12

_TIME_FORMAT = "%Y-%m-%d %H:%M:%S"


class DiffKind(Enum):
    """
    Enum for the kinds of tree difference.
    """

    ONLY_A = "only_a"
    ONLY_B = "only_b"
    CHANGED = "changed"
    SYNCED = "synced"


@dataclass(frozen=True)
class DiffEntry:
    """
    A single difference between the primary and mirror trees.
    """

    #: The kind of difference.
    kind: DiffKind
    #: The path relative to both comparison roots.
    path: str
    #: The primary tree entry, if present.
    entry_a: Optional[FileEntry] = None
    #: The mirror tree entry, if present.
    entry_b: Optional[FileEntry] = None
    #: Human readable change descriptors, in comparison order.
    details: Tuple[str, ...] = field(default_factory=tuple)
    #: Per-member differences for inspected archives.
    archive_details: Tuple[ArchiveMemberDiff, ...] = field(default_factory=tuple)

    @property
    def is_dir(self) -> bool:
        """``True`` if either side of this difference is a directory."""
        entry = self.entry_a or self.entry_b
        return entry is not None and entry.is_dir

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert this ``DiffEntry`` into a dictionary representation
        suitable for encoding as JSON.

        :returns: A dictionary mapping this instance's keys to values.
        :rtype: ``Dict[str, Any]``
        """
        out = {
            "kind": self.kind.value,
            "path": self.path,
            "details": list(self.details),
        }
        if self.entry_a:
            out["entry_a"] = self.entry_a.to_dict()
        if self.entry_b:
            out["entry_b"] = self.entry_b.to_dict()
        if self.archive_details:
            out["archive_details"] = [
                member.to_dict() for member in self.archive_details
            ]
        return out


def format_mtime(mtime: float) -> str:
    """
    Format a modification time for a ``modified:`` detail.

    :param mtime: Seconds since the epoch.
    :type mtime: ``float``
    :returns: The local time as ``YYYY-MM-DD HH:MM:SS``.
    :rtype: ``str``
    """
    return datetime.fromtimestamp(mtime).strftime(_TIME_FORMAT)


class DiffEngine:
    """
    Core class for comparing two walked trees.
    """

    def __init__(
        self,
        options: Optional[DiffOptions] = None,
        archive_differ: Optional[ArchiveDiffer] = None,
    ):
        """
        Initialise a new ``DiffEngine``.

        :param options: Comparison options.
        :type options: ``Optional[DiffOptions]``
        :param archive_differ: The differ used to inspect archives whose
                               size differs.
        :type archive_differ: ``Optional[ArchiveDiffer]``
        """
        self.options: DiffOptions = options or DiffOptions()
        self.archive_differ: ArchiveDiffer = archive_differ or ArchiveDiffer()

    def _is_inspected_archive(self, rel_path: str, full_path: str) -> bool:
        if not is_archive(rel_path):
            return False
        if self.options.use_magic_file_type:
            return is_archive_content(full_path)
        return True

    # pylint: disable=too-many-arguments
    def compare_entries(
        self,
        entry_a: FileEntry,
        entry_b: FileEntry,
        root_a: str,
        root_b: str,
    ) -> Tuple[List[str], Tuple[ArchiveMemberDiff, ...]]:
        """
        Compare two entries with the same relative path.

        :param entry_a: The primary tree entry.
        :type entry_a: ``FileEntry``
        :param entry_b: The mirror tree entry.
        :type entry_b: ``FileEntry``
        :param root_a: The primary comparison root.
        :type root_a: ``str``
        :param root_b: The mirror comparison root.
        :type root_b: ``str``
        :returns: A tuple of the change details and archive member diffs.
        :rtype: ``Tuple[List[str], Tuple[ArchiveMemberDiff, ...]]``
        """
        details = []
        archive_details = ()

        if entry_a.mode != entry_b.mode:
            details.append(f"{MODE_DETAIL} {entry_a.mode_str} vs {entry_b.mode_str}")

        size_differs = False
        if entry_a.is_file and entry_b.is_file:
            hash_a, hash_b = entry_a.content_hash, entry_b.content_hash
            if self.options.content_hash and hash_a is not None and hash_b is not None:
                if hash_a != hash_b:
                    details.append(
                        f"{HASH_DETAIL} {hash_a[:_HASH_PREFIX_LEN]} "
                        f"vs {hash_b[:_HASH_PREFIX_LEN]}"
                    )
            if entry_a.size != entry_b.size:
                details.append(f"{SIZE_DETAIL} {entry_a.size} vs {entry_b.size}")
                size_differs = True

        if size_differs:
            path_a = os.path.join(root_a, entry_a.path)
            path_b = os.path.join(root_b, entry_b.path)
            if self._is_inspected_archive(entry_a.path, path_a):
                result = self.archive_differ.analyze(path_a, path_b)
                details.append(result.label)
                archive_details = result.member_diffs

        if self.options.compare_timestamps and entry_a.mtime != entry_b.mtime:
            details.append(
                f"{MODIFIED_DETAIL} {format_mtime(entry_a.mtime)} "
                f"vs {format_mtime(entry_b.mtime)}"
            )

        return details, archive_details

    def diff(
        self,
        entries_a: Sequence[FileEntry],
        entries_b: Sequence[FileEntry],
        root_a: str,
        root_b: str,
    ) -> List[DiffEntry]:
        """
        Compare the entries of two walked trees.

        Entries only in ``entries_a`` and changed entries are emitted in the
        order of ``entries_a``, followed by entries only in ``entries_b`` in
        their own order.

        :param entries_a: The primary tree entries, sorted by path.
        :type entries_a: ``Sequence[FileEntry]``
        :param entries_b: The mirror tree entries, sorted by path.
        :type entries_b: ``Sequence[FileEntry]``
        :param root_a: The primary comparison root.
        :type root_a: ``str``
        :param root_b: The mirror comparison root.
        :type root_b: ``str``
        :returns: The list of differences.
        :rtype: ``List[DiffEntry]``
        """
        index_b = {entry.path: entry for entry in entries_b}
        visited = set()
        diffs = []

        for entry_a in entries_a:
            entry_b = index_b.get(entry_a.path)
            if entry_b is None:
                diffs.append(DiffEntry(DiffKind.ONLY_A, entry_a.path, entry_a=entry_a))
                continue
            visited.add(entry_a.path)
            details, archive_details = self.compare_entries(
                entry_a, entry_b, root_a, root_b
            )
            if details:
                _log_debug_diff("Changed '%s': %s", entry_a.path, ", ".join(details))
                diffs.append(
                    DiffEntry(
                        DiffKind.CHANGED,
                        entry_a.path,
                        entry_a=entry_a,
                        entry_b=entry_b,
                        details=tuple(details),
                        archive_details=archive_details,
                    )
                )

        for entry_b in entries_b:
            if entry_b.path not in visited:
                diffs.append(DiffEntry(DiffKind.ONLY_B, entry_b.path, entry_b=entry_b))

        _log_debug_diff(
            "Compared %d and %d entries: %d differences",
            len(entries_a),
            len(entries_b),
            len(diffs),
        )
        return diffs


class DiffResults:
    """Container for tree diff results with formatting methods."""

    def __init__(
        self,
        entries: List[DiffEntry],
        root_a: str = "",
        root_b: str = "",
        failures: Optional[List[Any]] = None,
    ):
        self._entries = entries
        self.root_a = root_a
        self.root_b = root_b
        #: ``SyncFailure`` records from reconciliation, if any.
        self.failures = failures or []

    def __repr__(self) -> str:
        return f"DiffResults([...], {self.root_a!r}, {self.root_b!r})"

    # List-like interface
    def __iter__(self) -> Iterator[DiffEntry]:
        return iter(self._entries)

    def __len__(self):
        return len(self._entries)

    def __getitem__(self, index: int) -> DiffEntry:
        return self._entries[index]

    def _of_kind(self, kind: DiffKind) -> List[DiffEntry]:
        return [entry for entry in self._entries if entry.kind == kind]

    @property
    def only_a(self) -> List[DiffEntry]:
        """Entries present only in the primary tree."""
        return self._of_kind(DiffKind.ONLY_A)

    @property
    def only_b(self) -> List[DiffEntry]:
        """Entries present only in the mirror tree."""
        return self._of_kind(DiffKind.ONLY_B)

    @property
    def changed(self) -> List[DiffEntry]:
        """Entries present in both trees that still differ."""
        return self._of_kind(DiffKind.CHANGED)

    @property
    def synced(self) -> List[DiffEntry]:
        """Entries that were reconciled onto the mirror tree."""
        return self._of_kind(DiffKind.SYNCED)

    @property
    def unresolved(self) -> int:
        """
        Return the number of differences that remain after reconciliation.

        :returns: Count of entries that are not synced.
        :rtype: ``int``
        """
        return len(self) - len(self.synced)

    def paths(self) -> List[str]:
        """
        Return the list of paths with differences.

        :rtype: ``List[str]``
        """
        return [entry.path for entry in self._entries]

    def json(self, pretty: bool = False) -> str:
        """
        Return a JSON representation of these results.

        :param pretty: Indent JSON to be human readable.
        :type pretty: ``bool``
        :returns: JSON string description of the differences.
        :rtype: ``str``
        """
        dicts = [entry.to_dict() for entry in self._entries]
        return json.dumps(dicts, indent=4 if pretty else None)


__all__ = [
    "HASH_DETAIL",
    "MODE_DETAIL",
    "MODIFIED_DETAIL",
    "SIZE_DETAIL",
    "DiffEngine",
    "DiffEntry",
    "DiffKind",
    "DiffResults",
    "format_mtime",
]
