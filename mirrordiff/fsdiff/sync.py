# Copyright Red Hat
#
# mirrordiff/fsdiff/sync.py - Mirror differ reconciliation
#
# This file is part of the mirrordiff project.
#
# SPDX-License-Identifier: Apache-2.0
"""
Reconciliation of auto-fixable differences onto the mirror tree.

Two kinds of difference are resolved by copying from the primary tree:
archives whose differences do not touch the document text, and
permission mismatches. Each resolved entry becomes ``DiffKind.SYNCED``.
"""
from typing import List, Sequence
from dataclasses import dataclass, field, replace
import logging
import tempfile
import shutil
import stat
import os

from mirrordiff import MIRRORDIFF_SUBSYSTEM_SYNC, MirrordiffSyncError

from .archive import LABEL_IDENTICAL, LABEL_NOT_TEXT
from .engine import DiffEntry, DiffKind, MODE_DETAIL
from .render import detail_string

_log = logging.getLogger(__name__)

_log_debug = _log.debug
_log_info = _log.info
_log_warn = _log.warning
_log_error = _log.error


def _log_debug_sync(msg, *args, **kwargs):
    """A wrapper for sync subsystem debug logs."""
    _log.debug(msg, *args, extra={"subsystem": MIRRORDIFF_SUBSYSTEM_SYNC}, **kwargs)


#: Detail strings of archives that are safe to overwrite in the mirror.
SYNCABLE_ARCHIVE_DETAILS = (LABEL_NOT_TEXT, LABEL_IDENTICAL)

#: Stage names used in ``SyncFailure`` records.
SYNC_STAGE_COPY = "copy"
SYNC_STAGE_CHMOD = "chmod"


def copy_file(src: str, dst: str):
    """
    Replace ``dst`` with a copy of ``src``.

    The content is written to a temporary file in the directory of
    ``dst``, given the permission bits of ``src`` and renamed over
    ``dst``. If the copy fails ``dst`` is left unchanged.

    :param src: The source file path.
    :type src: ``str``
    :param dst: The destination file path.
    :type dst: ``str``
    :raises OSError: If either file cannot be opened, read or written.
    """
    with open(src, "rb") as fsrc:
        mode = stat.S_IMODE(os.fstat(fsrc.fileno()).st_mode)
        fd, tmp_path = tempfile.mkstemp(
            dir=os.path.dirname(dst) or ".", prefix=".tmp_mirrordiff_"
        )
        try:
            with os.fdopen(fd, "wb") as fdst:
                shutil.copyfileobj(fsrc, fdst)
                os.fchmod(fdst.fileno(), mode)
            os.replace(tmp_path, dst)
        except OSError:
            os.unlink(tmp_path)
            raise


@dataclass(frozen=True)
class SyncFailure:
    """
    A difference that could not be reconciled.
    """

    #: The relative path of the entry.
    path: str
    #: The reconciliation stage that failed (copy or chmod).
    stage: str
    #: The error raised while reconciling the entry.
    error: MirrordiffSyncError

    def __str__(self):
        return f"{self.stage} error: {self.error}"


@dataclass
class SyncResults:
    """
    The outcome of one reconciliation run.
    """

    #: The reconciled entries, in input order.
    entries: List[DiffEntry] = field(default_factory=list)
    #: Entries that could not be reconciled.
    failures: List[SyncFailure] = field(default_factory=list)
    #: Number of archives copied onto the mirror.
    synced: int = 0
    #: Number of permission mismatches fixed.
    modes_fixed: int = 0


class SyncReconciler:
    """
    Resolve auto-fixable differences by copying from the primary tree
    onto the mirror tree.
    """

    def _sync_archive(
        self, entry: DiffEntry, root_a: str, root_b: str, results: SyncResults
    ) -> DiffEntry:
        src = os.path.join(root_a, entry.path)
        dst = os.path.join(root_b, entry.path)
        try:
            copy_file(src, dst)
        except OSError as err:
            failure = SyncFailure(
                entry.path, SYNC_STAGE_COPY, MirrordiffSyncError(entry.path, err)
            )
            _log_error("sync error: %s: %s", entry.path, err)
            results.failures.append(failure)
            return entry

        _log_info("synced: %s", entry.path)
        results.synced += 1
        return replace(entry, kind=DiffKind.SYNCED)

    def _sync_mode(
        self, entry: DiffEntry, root_b: str, results: SyncResults
    ) -> DiffEntry:
        mode_a = entry.entry_a.mode
        if entry.entry_b is not None and stat.S_IFMT(mode_a) != stat.S_IFMT(
            entry.entry_b.mode
        ):
            _log_debug_sync("Not changing mode of '%s': file type differs", entry.path)
            return entry

        dst = os.path.join(root_b, entry.path)
        try:
            os.chmod(dst, stat.S_IMODE(mode_a))
        except OSError as err:
            failure = SyncFailure(
                entry.path, SYNC_STAGE_CHMOD, MirrordiffSyncError(entry.path, err)
            )
            _log_error("chmod error: %s: %s", entry.path, err)
            results.failures.append(failure)
            return entry

        _log_info("chmod: %s → %s", entry.path, entry.entry_a.mode_str)
        results.modes_fixed += 1
        remaining = tuple(d for d in entry.details if not d.startswith(MODE_DETAIL))
        if not remaining:
            return replace(entry, kind=DiffKind.SYNCED, details=remaining)
        return replace(entry, details=remaining)

    def reconcile(
        self, entries: Sequence[DiffEntry], root_a: str, root_b: str
    ) -> SyncResults:
        """
        Reconcile auto-fixable differences onto ``root_b``.

        Changed archives whose detail string is exactly ``docx:not-text``
        or ``docx:identical`` are copied from ``root_a``. Then each
        remaining changed entry with a mode difference has the permission
        bits of its primary tree entry applied. Entries that are already
        synced are left alone, and ``entries`` itself is not modified.

        :param entries: The differences to reconcile.
        :type entries: ``Sequence[DiffEntry]``
        :param root_a: The primary comparison root.
        :type root_a: ``str``
        :param root_b: The mirror comparison root.
        :type root_b: ``str``
        :returns: The reconciled entries, failures and counters.
        :rtype: ``SyncResults``
        """
        results = SyncResults()

        reconciled = []
        for entry in entries:
            if (
                entry.kind == DiffKind.CHANGED
                and detail_string(entry.details) in SYNCABLE_ARCHIVE_DETAILS
            ):
                entry = self._sync_archive(entry, root_a, root_b, results)
            reconciled.append(entry)
        if results.synced:
            _log_info("%d files synced (A → B)", results.synced)

        results.entries = []
        for entry in reconciled:
            if (
                entry.kind == DiffKind.CHANGED
                and entry.entry_a is not None
                and any(d.startswith(MODE_DETAIL) for d in entry.details)
            ):
                entry = self._sync_mode(entry, root_b, results)
            results.entries.append(entry)
        if results.modes_fixed:
            _log_info("%d modes fixed (A → B)", results.modes_fixed)

        _log_debug_sync(
            "Reconciled %d entries with %d failures",
            results.synced + results.modes_fixed,
            len(results.failures),
        )
        return results


__all__ = [
    "SYNCABLE_ARCHIVE_DETAILS",
    "SYNC_STAGE_CHMOD",
    "SYNC_STAGE_COPY",
    "SyncFailure",
    "SyncReconciler",
    "SyncResults",
    "copy_file",
]
