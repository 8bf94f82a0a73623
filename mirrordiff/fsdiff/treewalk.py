# Copyright Red Hat
#
# mirrordiff/fsdiff/treewalk.py - Mirror differ tree walk
#
# This file is part of the mirrordiff project.
#
# SPDX-License-Identifier: Apache-2.0
"""
Tree walking support for mirrordiff.
"""
from typing import Any, Dict, Iterable, List, Optional, TextIO
from dataclasses import dataclass
import logging
import stat
import os

from mirrordiff import (
    MIRRORDIFF_SUBSYSTEM_WALK,
    DEFAULT_ALWAYS_EXCLUDE,
    DEFAULT_RULES_FILE,
    MirrordiffSystemError,
)
from mirrordiff.progress import ProgressFactory

from .ignore import IgnoreMatcher
from .options import DiffOptions

_log = logging.getLogger(__name__)

_log_debug = _log.debug
_log_info = _log.info
_log_warn = _log.warning
_log_error = _log.error


def _log_debug_walk(msg, *args, **kwargs):
    """A wrapper for walk subsystem debug logs."""
    _log.debug(msg, *args, extra={"subsystem": MIRRORDIFF_SUBSYSTEM_WALK}, **kwargs)


#: Read size used when hashing file content.
_HASH_CHUNK_SIZE = 65536


@dataclass(frozen=True)
class FileEntry:
    """
    Representation of a single file system entry for comparison.
    """

    #: The ``/`` separated path relative to the comparison root
    path: str
    #: File size returned by ``lstat()``
    size: int
    #: File type and permission bits returned by ``lstat()``
    mode: int
    #: File modification time returned by ``lstat()``
    mtime: float
    #: Content hash, or ``None`` if hashing was not requested. An
    #: unreadable regular file has the empty hash.
    content_hash: Optional[str] = None

    @property
    def is_dir(self) -> bool:
        """``True`` if this entry is a directory."""
        return stat.S_ISDIR(self.mode)

    @property
    def is_file(self) -> bool:
        """``True`` if this entry is a regular file."""
        return stat.S_ISREG(self.mode)

    @property
    def is_symlink(self) -> bool:
        """``True`` if this entry is a symbolic link."""
        return stat.S_ISLNK(self.mode)

    @property
    def mode_str(self) -> str:
        """The mode of this entry as an ``ls -l`` style string."""
        return stat.filemode(self.mode)

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert this ``FileEntry`` into a dictionary suitable for encoding
        as JSON.

        :returns: A dictionary of entry fields.
        :rtype: ``Dict[str, Any]``
        """
        return {
            "path": self.path,
            "size": self.size,
            "mode": self.mode_str,
            "mtime": self.mtime,
            "is_dir": self.is_dir,
            "content_hash": self.content_hash,
        }


class TreeWalker:
    """
    Simple file system tree walker for comparisons.
    """

    def __init__(
        self,
        options: DiffOptions,
        always_exclude: Iterable[str] = DEFAULT_ALWAYS_EXCLUDE,
        rules_file: str = DEFAULT_RULES_FILE,
    ):
        """
        Initialise a new ``TreeWalker`` object.

        :param options: Options to control this ``TreeWalker`` instance.
        :type options: ``DiffOptions``
        :param always_exclude: Base names excluded from every walk.
        :type always_exclude: ``Iterable[str]``
        :param rules_file: Name of the per-directory exclusion rules file.
        :type rules_file: ``str``
        """
        self.options: DiffOptions = options
        self.always_exclude = tuple(always_exclude)
        self.rules_file: str = rules_file

    def _calculate_content_hash(self, file_path: str) -> str:
        """
        Calculate the content hash of the regular file at ``file_path``.

        :param file_path: The path to the file to hash.
        :type file_path: ``str``
        :returns: The hex digest, or the empty string if the file cannot be
                  read.
        :rtype: ``str``
        """
        hasher = self.options.new_hasher()
        try:
            with open(file_path, "rb") as f:
                for chunk in iter(lambda: f.read(_HASH_CHUNK_SIZE), b""):
                    hasher.update(chunk)
        except OSError as err:
            _log_debug_walk("Cannot hash '%s': %s", file_path, err)
            return ""
        return hasher.hexdigest()

    def _make_entry(
        self, full_path: str, rel_path: str, path_stat: os.stat_result
    ) -> FileEntry:
        content_hash = None
        if self.options.content_hash and stat.S_ISREG(path_stat.st_mode):
            content_hash = self._calculate_content_hash(full_path)
        return FileEntry(
            path=rel_path,
            size=path_stat.st_size,
            mode=path_stat.st_mode,
            mtime=path_stat.st_mtime,
            content_hash=content_hash,
        )

    # pylint: disable=too-many-locals
    def walk_tree(
        self,
        root: str,
        label: str = "",
        term_stream: Optional[TextIO] = None,
    ) -> List[FileEntry]:
        """
        Walk the file system tree below ``root`` and return its entries.

        Excluded directories are pruned and their subtrees never visited.
        Entries that vanish or cannot be examined during the walk are
        skipped.

        :param root: The comparison root to walk.
        :type root: ``str``
        :param label: A short label for the tree used in progress output.
        :type label: ``str``
        :param term_stream: Stream for progress output (default stderr).
        :type term_stream: ``Optional[TextIO]``
        :returns: The entries below ``root`` sorted by relative path.
        :rtype: ``List[FileEntry]``
        :raises MirrordiffSystemError: If ``root`` cannot be examined.
        """
        try:
            root_stat = os.stat(root)
        except OSError as err:
            raise MirrordiffSystemError(f"Cannot walk '{root}': {err}") from err
        if not stat.S_ISDIR(root_stat.st_mode):
            raise MirrordiffSystemError(f"Cannot walk '{root}': not a directory")

        _log_info("Scanning %s (%s)", label or root, root)
        matcher = IgnoreMatcher(
            root, always_exclude=self.always_exclude, rules_file=self.rules_file
        )

        throbber = ProgressFactory.get_throbber(
            f"Scanning {label or root}",
            quiet=self.options.quiet,
            term_stream=term_stream,
        )

        def _onerror(err: OSError):
            _log_debug_walk("Skipping unreadable directory: %s", err)

        entries = []
        excluded = 0
        throbber.start()
        try:
            for dir_path, dirs, files in os.walk(root, onerror=_onerror):
                rel_dir = os.path.relpath(dir_path, root)
                rel_dir = "" if rel_dir == os.curdir else rel_dir.replace(os.sep, "/")

                visit_dirs = []
                for name in sorted(dirs):
                    rel_path = f"{rel_dir}/{name}" if rel_dir else name
                    full_path = os.path.join(dir_path, name)
                    if matcher.is_excluded(rel_path, True):
                        excluded += 1
                        continue
                    try:
                        path_stat = os.lstat(full_path)
                    except OSError as err:
                        _log_debug_walk("Skipping '%s': %s", full_path, err)
                        continue
                    entries.append(self._make_entry(full_path, rel_path, path_stat))
                    throbber.throb()
                    if stat.S_ISDIR(path_stat.st_mode):
                        visit_dirs.append(name)
                # Prune excluded subtrees from the walk
                dirs[:] = visit_dirs

                for name in files:
                    rel_path = f"{rel_dir}/{name}" if rel_dir else name
                    full_path = os.path.join(dir_path, name)
                    if matcher.is_excluded(rel_path, False):
                        excluded += 1
                        continue
                    try:
                        path_stat = os.lstat(full_path)
                    except OSError as err:
                        _log_debug_walk("Skipping '%s': %s", full_path, err)
                        continue
                    entries.append(self._make_entry(full_path, rel_path, path_stat))
                    throbber.throb()
        except (KeyboardInterrupt, SystemExit):
            throbber.end("Quit!")
            raise

        throbber.end(f"{len(entries)} files... done.")
        _log_debug_walk(
            "Scanned %d entries below '%s' (excluded %d)", len(entries), root, excluded
        )
        entries.sort(key=lambda entry: entry.path)
        return entries


__all__ = [
    "FileEntry",
    "TreeWalker",
]
