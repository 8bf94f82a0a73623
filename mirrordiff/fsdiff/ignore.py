# Copyright Red Hat
#
# mirrordiff/fsdiff/ignore.py - Mirror differ exclusion rules
#
# This file is part of the mirrordiff project.
#
# SPDX-License-Identifier: Apache-2.0
"""
Gitignore-style exclusion matching.

Paths are excluded either because their base name appears in a fixed
always-exclude set, or because they match the patterns found in rules
files (``.gitignore`` by default) in the comparison root and in every
directory between the root and the path. Patterns are a subset of the
gitignore syntax:

  * blank lines and lines starting with ``#`` are ignored
  * a leading ``!`` negates the pattern
  * a trailing ``/`` restricts the pattern to directories
  * a pattern containing ``/`` is anchored to the comparison root
  * ``**`` may appear as a whole leading, trailing or middle segment

Globs are matched with ``fnmatch`` one path segment at a time, so ``*``
and ``?`` never match ``/``. ``[...]`` classes accept ``^`` or ``!``
negation. A backslash has no special meaning.
"""
from typing import Dict, Iterable, List, Optional
from dataclasses import dataclass
from fnmatch import fnmatchcase
import logging
import os

from mirrordiff import MIRRORDIFF_SUBSYSTEM_IGNORE, DEFAULT_RULES_FILE

_log = logging.getLogger(__name__)

_log_debug = _log.debug
_log_info = _log.info
_log_warn = _log.warning
_log_error = _log.error


def _log_debug_ignore(msg, *args, **kwargs):
    """A wrapper for ignore subsystem debug logs."""
    _log.debug(msg, *args, extra={"subsystem": MIRRORDIFF_SUBSYSTEM_IGNORE}, **kwargs)


_SEP = "/"
_DOUBLESTAR = "**"


@dataclass(frozen=True)
class IgnorePattern:
    """
    One parsed line from a rules file.
    """

    #: The glob with any ``!`` prefix and trailing ``/`` removed.
    pattern: str
    #: A match re-includes the path instead of excluding it.
    negated: bool = False
    #: The pattern only applies to directories.
    dir_only: bool = False
    #: The pattern is matched against the whole relative path.
    anchored: bool = False


def parse_ignore_line(line: str) -> Optional[IgnorePattern]:
    """
    Parse one line of a rules file.

    :param line: The raw line.
    :type line: ``str``
    :returns: The parsed pattern, or ``None`` for blank and comment lines.
    :rtype: ``Optional[IgnorePattern]``
    """
    line = line.strip()
    if not line or line.startswith("#"):
        return None

    negated = line.startswith("!")
    if negated:
        line = line[1:]

    dir_only = line.endswith(_SEP)
    if dir_only:
        line = line[:-1]

    return IgnorePattern(
        pattern=line,
        negated=negated,
        dir_only=dir_only,
        anchored=_SEP in line,
    )


def parse_ignore_rules(lines: Iterable[str]) -> List[IgnorePattern]:
    """
    Parse the lines of a rules file, preserving file order.

    :param lines: The lines to parse.
    :type lines: ``Iterable[str]``
    :returns: The list of parsed patterns.
    :rtype: ``List[IgnorePattern]``
    """
    return [p for p in (parse_ignore_line(line) for line in lines) if p is not None]


def _glob_segment(pattern: str) -> str:
    """
    Rewrite ``[^...]`` classes in one pattern segment to the ``[!...]``
    form understood by ``fnmatch``.
    """
    return pattern.replace("[^", "[!")


def glob_match(pattern: str, name: str) -> bool:
    """
    Shell glob match of ``name`` against ``pattern``.

    The pattern and the name are split on ``/`` and matched segment by
    segment, so ``*``, ``?`` and ``[...]`` never match the separator.

    :param pattern: The glob pattern.
    :type pattern: ``str``
    :param name: The string to match.
    :type name: ``str``
    :returns: ``True`` if ``name`` matches ``pattern``.
    :rtype: ``bool``
    """
    pattern_parts = pattern.split(_SEP)
    name_parts = name.split(_SEP)
    if len(pattern_parts) != len(name_parts):
        return False
    return all(
        fnmatchcase(part, _glob_segment(glob))
        for glob, part in zip(pattern_parts, name_parts)
    )


def _path_suffixes(path: str) -> List[str]:
    """
    Return ``path`` and every suffix obtained by dropping leading segments.
    """
    parts = path.split(_SEP)
    return [_SEP.join(parts[i:]) for i in range(len(parts))]


def _match_any_suffix(pattern: str, path: str) -> bool:
    return any(glob_match(pattern, sub) for sub in _path_suffixes(path))


def match_doublestar(pattern: str, path: str) -> bool:
    """
    Match a pattern containing ``**`` against a relative path.

    :param pattern: The pattern.
    :type pattern: ``str``
    :param path: The ``/`` separated path relative to the comparison root.
    :type path: ``str``
    :returns: ``True`` if ``path`` matches ``pattern``.
    :rtype: ``bool``
    """
    if pattern == _DOUBLESTAR:
        return True

    if pattern.startswith(_DOUBLESTAR + _SEP):
        rest = pattern[3:]
        return glob_match(rest, path) or _match_any_suffix(rest, path)

    if pattern.endswith(_SEP + _DOUBLESTAR):
        prefix = pattern[:-3]
        return path.startswith(prefix + _SEP) or path == prefix

    middle = _SEP + _DOUBLESTAR + _SEP
    index = pattern.find(middle)
    if index >= 0:
        prefix = pattern[:index]
        suffix = pattern[index + 4 :]
        if not path.startswith(prefix + _SEP) and path != prefix:
            return False
        rest = path.removeprefix(prefix + _SEP)
        return glob_match(suffix, rest) or _match_any_suffix(suffix, rest)

    return False


def match_pattern(ignore_pattern: IgnorePattern, rel_path: str) -> bool:
    """
    Test whether ``rel_path`` matches one parsed pattern.

    The ``dir_only`` and ``negated`` flags are not considered here.

    :param ignore_pattern: The pattern to test.
    :type ignore_pattern: ``IgnorePattern``
    :param rel_path: The ``/`` separated path relative to the comparison
                     root.
    :type rel_path: ``str``
    :returns: ``True`` if the path matches.
    :rtype: ``bool``
    """
    pattern = ignore_pattern.pattern

    if _DOUBLESTAR in pattern:
        return match_doublestar(pattern, rel_path)

    if ignore_pattern.anchored:
        return glob_match(pattern, rel_path)

    base_name = rel_path.rsplit(_SEP, 1)[-1]
    if glob_match(pattern, base_name):
        return True
    return _match_any_suffix(pattern, rel_path)


class IgnoreMatcher:
    """
    Decide whether paths below one comparison root are excluded.

    Rules files are read lazily, once per directory, and the parsed
    patterns (including the empty list for directories without a rules
    file) are cached for the lifetime of the matcher. A matcher belongs
    to a single tree and a single comparison run.
    """

    def __init__(
        self,
        root: str,
        always_exclude: Iterable[str] = (),
        rules_file: str = DEFAULT_RULES_FILE,
    ):
        """
        Initialise a new ``IgnoreMatcher``.

        :param root: The comparison root directory.
        :type root: ``str``
        :param always_exclude: Base names that are excluded unconditionally.
        :type always_exclude: ``Iterable[str]``
        :param rules_file: The name of per-directory rules files.
        :type rules_file: ``str``
        """
        self.root: str = root
        self.always_exclude = frozenset(always_exclude)
        self.rules_file: str = rules_file
        self._cache: Dict[str, List[IgnorePattern]] = {}

    def _load_rules(self, rel_dir: str) -> List[IgnorePattern]:
        """
        Return the patterns for the directory ``rel_dir`` (``""`` for the
        root), reading its rules file on first use.

        A missing, unreadable or undecodable rules file yields no patterns.
        """
        if rel_dir in self._cache:
            return self._cache[rel_dir]

        rules_path = os.path.join(self.root, rel_dir, self.rules_file)
        patterns = []
        try:
            with open(rules_path, "r", encoding="utf8") as rules:
                patterns = parse_ignore_rules(rules)
        except FileNotFoundError:
            pass
        except (OSError, UnicodeDecodeError) as err:
            _log_debug_ignore("Ignoring unreadable rules file %s: %s", rules_path, err)

        if patterns:
            _log_debug_ignore("Loaded %d patterns from %s", len(patterns), rules_path)
        self._cache[rel_dir] = patterns
        return patterns

    def _ancestor_dirs(self, rel_path: str) -> List[str]:
        """
        Return the directories from the root down to the parent of
        ``rel_path``, as ``/`` separated relative paths.
        """
        parts = rel_path.split(_SEP)[:-1]
        return [""] + [_SEP.join(parts[: i + 1]) for i in range(len(parts))]

    def is_excluded(self, rel_path: str, is_dir: bool) -> bool:
        """
        Test whether ``rel_path`` is excluded from the comparison.

        Patterns from every ancestor directory are applied in root-to-leaf
        and then file order; the last matching pattern decides.

        :param rel_path: The path relative to the comparison root.
        :type rel_path: ``str``
        :param is_dir: ``True`` if the path is a directory.
        :type is_dir: ``bool``
        :returns: ``True`` if the path is excluded.
        :rtype: ``bool``
        """
        rel_path = rel_path.replace(os.sep, _SEP).strip(_SEP)
        base_name = rel_path.rsplit(_SEP, 1)[-1]
        if base_name in self.always_exclude:
            _log_debug_ignore("Excluding always-excluded name '%s'", rel_path)
            return True

        excluded = False
        for rel_dir in self._ancestor_dirs(rel_path):
            for pattern in self._load_rules(rel_dir):
                if pattern.dir_only and not is_dir:
                    continue
                if match_pattern(pattern, rel_path):
                    excluded = not pattern.negated

        if excluded:
            _log_debug_ignore("Excluding '%s' by rules", rel_path)
        return excluded


__all__ = [
    "IgnoreMatcher",
    "IgnorePattern",
    "glob_match",
    "match_doublestar",
    "match_pattern",
    "parse_ignore_line",
    "parse_ignore_rules",
]
